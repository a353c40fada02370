"""Paginated read access to an indexed streaming-payments subgraph."""

from sf_query.core import (
    DataMode,
    ErrorKind,
    InvalidArgumentError,
    LastIdCursor,
    Page,
    QueryConfig,
    QueryError,
    RateLimitConfig,
    ServiceError,
    SkipCursor,
    UnsupportedModeError,
    ValidationError,
    load_config,
)
from sf_query.entities import (
    AccountTokenSnapshotFilter,
    EventFilter,
    IndexFilter,
    IndexSubscriptionFilter,
    OrderDirection,
    Ordering,
    StreamFilter,
    SuperTokenFilter,
)
from sf_query.poller import Subscription
from sf_query.query import Query

__version__ = "0.1.0"

__all__ = [
    "Query",
    "Subscription",
    # config
    "DataMode",
    "QueryConfig",
    "RateLimitConfig",
    "load_config",
    # errors
    "ErrorKind",
    "InvalidArgumentError",
    "QueryError",
    "ServiceError",
    "UnsupportedModeError",
    "ValidationError",
    # pagination
    "LastIdCursor",
    "Page",
    "SkipCursor",
    # filters and ordering
    "AccountTokenSnapshotFilter",
    "EventFilter",
    "IndexFilter",
    "IndexSubscriptionFilter",
    "OrderDirection",
    "Ordering",
    "StreamFilter",
    "SuperTokenFilter",
]
