"""Entity records, filters, orderings and normalizers."""

from sf_query.entities.filters import (
    AccountTokenSnapshotFilter,
    EventFilter,
    IndexFilter,
    IndexSubscriptionFilter,
    StreamFilter,
    SuperTokenFilter,
    validate_filter,
)
from sf_query.entities.models import (
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
from sf_query.entities.normalize import Normalizer, normalize_event
from sf_query.entities.ordering import OrderDirection, Ordering

__all__ = [
    # filters
    "AccountTokenSnapshotFilter",
    "EventFilter",
    "IndexFilter",
    "IndexSubscriptionFilter",
    "StreamFilter",
    "SuperTokenFilter",
    "validate_filter",
    # models
    "AccountTokenSnapshot",
    "FlowUpdatedEvent",
    "Index",
    "IndexRef",
    "IndexSubscription",
    "ProtocolEvent",
    "Stream",
    "SuperToken",
    "TokenRef",
    # normalize / ordering
    "Normalizer",
    "normalize_event",
    "OrderDirection",
    "Ordering",
]
