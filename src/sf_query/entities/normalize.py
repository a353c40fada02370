"""
Normalization of raw subgraph records into entity records.

Every entity kind follows the same two rules:

1. Numeric fields the wire encodes as strings (timestamps, block numbers)
   become ints.
2. Nested reference objects (``{"id": "0x..."}``) become their id string.

A ``Normalizer`` declares which wire fields fall under each rule and which
fields embed other records; camelCase wire keys map onto snake_case model
fields and wire keys without a model field are dropped.
"""

import re
from dataclasses import fields
from types import MappingProxyType
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

from .models import (
    AccountTokenSnapshot,
    FlowUpdatedEvent,
    Index,
    IndexRef,
    IndexSubscription,
    ProtocolEvent,
    Stream,
    SuperToken,
    TokenRef,
)

T = TypeVar("T")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(name: str) -> str:
    """``createdAtBlockNumber`` -> ``created_at_block_number``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def to_int(value: Any) -> int:
    """Coerce a wire numeric (string or number) to int."""
    return int(value)


def reference_id(value: Any) -> str:
    """Flatten a reference object to its id; plain ids pass through."""
    if isinstance(value, Mapping):
        return value["id"]
    return str(value)


class Normalizer(Generic[T]):
    """
    Builds one entity type from raw records.

    Args:
        model: Frozen dataclass to construct
        numeric: Wire keys coerced to int
        references: Wire keys flattened to their id
        nested: Wire keys holding a single embedded record, with its normalizer
        many: Wire keys holding a list of embedded records, with their normalizer
    """

    def __init__(
        self,
        model: type[T],
        numeric: Iterable[str] = (),
        references: Iterable[str] = (),
        nested: Mapping[str, "Normalizer[Any]"] | None = None,
        many: Mapping[str, "Normalizer[Any]"] | None = None,
    ):
        self.model = model
        self.numeric = frozenset(numeric)
        self.references = frozenset(references)
        self.nested = dict(nested or {})
        self.many = dict(many or {})
        self._field_names = {f.name for f in fields(model)}

    def __call__(self, raw: Mapping[str, Any]) -> T:
        values = {}
        for key, value in raw.items():
            name = snake_case(key)
            if name in self._field_names:
                values[name] = self._convert(key, value)
        return self.model(**values)

    def _convert(self, key: str, value: Any) -> Any:
        if value is None:
            return None
        if key in self.numeric:
            return to_int(value)
        if key in self.references:
            return reference_id(value)
        if key in self.nested:
            return self.nested[key](value)
        if key in self.many:
            return tuple(self.many[key](item) for item in value)
        return value


_CREATED = ("createdAtTimestamp", "createdAtBlockNumber")
_UPDATED = ("updatedAtTimestamp", "updatedAtBlockNumber")

TOKEN = Normalizer(TokenRef, numeric=_CREATED)

SUPER_TOKEN = Normalizer(SuperToken, numeric=_CREATED)

INDEX = Normalizer(
    Index,
    numeric=_CREATED + _UPDATED,
    references=("publisher",),
    nested={"token": TOKEN},
)

INDEX_REF = Normalizer(IndexRef, nested={"token": TOKEN})

INDEX_SUBSCRIPTION = Normalizer(
    IndexSubscription,
    numeric=_CREATED + _UPDATED,
    references=("subscriber",),
    nested={"index": INDEX_REF},
)

FLOW_UPDATED_EVENT = Normalizer(FlowUpdatedEvent, numeric=("blockNumber", "timestamp"))

STREAM = Normalizer(
    Stream,
    numeric=_CREATED + _UPDATED,
    references=("sender", "receiver"),
    nested={"token": TOKEN},
    many={"flowUpdatedEvents": FLOW_UPDATED_EVENT},
)

ACCOUNT_TOKEN_SNAPSHOT = Normalizer(
    AccountTokenSnapshot,
    numeric=_UPDATED + (
        "totalNumberOfActiveStreams",
        "totalNumberOfClosedStreams",
        "totalSubscriptionsWithUnits",
        "totalApprovedSubscriptions",
    ),
    references=("account",),
    nested={"token": TOKEN},
)


_EVENT_NUMERIC = ("blockNumber", "logIndex", "order", "timestamp")
_EVENT_ENVELOPE = frozenset(_EVENT_NUMERIC + ("id", "name", "transactionHash", "addresses", "__typename"))


def _payload_value(value: Any) -> Any:
    # Same reference rule as typed records, applied to the untyped payload
    if isinstance(value, Mapping) and "id" in value:
        return reference_id(value)
    if isinstance(value, Mapping):
        return MappingProxyType({snake_case(k): _payload_value(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_payload_value(item) for item in value)
    return value


def normalize_event(raw: Mapping[str, Any]) -> ProtocolEvent:
    """
    Normalize one raw event of any concrete event type.

    The event name comes from ``name`` or, failing that, from ``__typename``
    with its ``Event`` suffix removed.
    """
    name = raw.get("name") or str(raw.get("__typename", "")).removesuffix("Event")
    envelope = {
        snake_case(key): to_int(raw[key])
        for key in _EVENT_NUMERIC
        if raw.get(key) is not None
    }
    payload = {
        snake_case(key): _payload_value(value)
        for key, value in raw.items()
        if key not in _EVENT_ENVELOPE
    }
    return ProtocolEvent(
        id=raw["id"],
        name=name,
        transaction_hash=raw.get("transactionHash") or "",
        addresses=tuple(raw.get("addresses") or ()),
        data=MappingProxyType(payload),
        **envelope,
    )


def normalize_all(normalizer: Callable[[Mapping[str, Any]], T], rows: Iterable[Mapping[str, Any]]) -> list[T]:
    return [normalizer(row) for row in rows]
