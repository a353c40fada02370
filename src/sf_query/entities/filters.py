"""
Request filters per entity kind, their validation and their wire form.

Validation runs before any request is built. A filter field left as None is
not sent. Address fields are lowercased on the wire since the subgraph
stores addresses in lowercase.
"""

import re
from dataclasses import dataclass, fields
from typing import Any

from sf_query.core.errors import ValidationError

_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
_UINT = re.compile(r"^[0-9]+$")


def _lower(value: str | None) -> str | None:
    return value.lower() if value is not None else None


def compact(values: dict[str, Any]) -> dict[str, Any]:
    """Drop None entries so unset filters are not sent."""
    return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class SuperTokenFilter:
    is_listed: bool | None = None

    def where(self) -> dict[str, Any]:
        return compact({"isListed": self.is_listed, "isSuperToken": True})


@dataclass(frozen=True)
class IndexFilter:
    index_id: str | None = None
    publisher: str | None = None
    token: str | None = None

    def where(self) -> dict[str, Any]:
        return compact({
            "indexId": self.index_id,
            "publisher": _lower(self.publisher),
            "token": _lower(self.token),
        })


@dataclass(frozen=True)
class IndexSubscriptionFilter:
    subscriber: str | None = None
    approved: bool | None = None

    def where(self) -> dict[str, Any]:
        return compact({"subscriber": _lower(self.subscriber), "approved": self.approved})


@dataclass(frozen=True)
class StreamFilter:
    sender: str | None = None
    receiver: str | None = None
    token: str | None = None

    def where(self) -> dict[str, Any]:
        return compact({
            "sender": _lower(self.sender),
            "receiver": _lower(self.receiver),
            "token": _lower(self.token),
        })


@dataclass(frozen=True)
class AccountTokenSnapshotFilter:
    account: str | None = None
    token: str | None = None

    def where(self) -> dict[str, Any]:
        return compact({"account": _lower(self.account), "token": _lower(self.token)})


@dataclass(frozen=True)
class EventFilter:
    """
    Filter for protocol events.

    Attributes:
        account: Only events touching this address
        timestamp_gt: Only events strictly newer than this unix timestamp (seconds)
    """
    account: str | None = None
    timestamp_gt: int | None = None

    def where(self) -> dict[str, Any]:
        return compact({
            "addresses_contains": [self.account.lower()] if self.account else None,
            "timestamp_gt": str(self.timestamp_gt) if self.timestamp_gt is not None else None,
        })


_ADDRESS_FIELDS = {"publisher", "token", "subscriber", "sender", "receiver", "account"}
_BOOL_FIELDS = {"is_listed", "approved"}


def validate_filter(filter_: Any, expected: type) -> None:
    """
    Check a filter's shape and field ranges.

    Args:
        filter_: Filter instance supplied by the caller
        expected: Filter class the operation accepts

    Raises:
        ValidationError: Listing every problem found
    """
    if not isinstance(filter_, expected):
        raise ValidationError(
            f"Expected {expected.__name__}, got {type(filter_).__name__}"
        )

    problems = []
    for f in fields(filter_):
        value = getattr(filter_, f.name)
        if value is None:
            continue
        if f.name in _ADDRESS_FIELDS:
            if not isinstance(value, str) or not _ADDRESS.match(value):
                problems.append(f"{f.name} must be a 0x-prefixed 20-byte hex address, got {value!r}")
        elif f.name in _BOOL_FIELDS:
            if not isinstance(value, bool):
                problems.append(f"{f.name} must be a boolean, got {value!r}")
        elif f.name == "index_id":
            if not isinstance(value, str) or not _UINT.match(value):
                problems.append(f"index_id must be a decimal string, got {value!r}")
        elif f.name == "timestamp_gt":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                problems.append(f"timestamp_gt must be a non-negative integer, got {value!r}")

    if problems:
        raise ValidationError(f"Invalid {expected.__name__}: " + "; ".join(problems))
