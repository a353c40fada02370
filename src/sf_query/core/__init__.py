"""Core interfaces and types: cursors, errors, config, transport and pacing."""

from sf_query.core.clock import (
    FakeTimeProvider,
    LoopScheduler,
    Scheduler,
    SystemTimeProvider,
    TimeProvider,
)
from sf_query.core.config import (
    ConfigValidationError,
    DataMode,
    QueryConfig,
    RateLimitConfig,
    load_config,
    validate_config,
)
from sf_query.core.datasource import DataSource, RequestSpec
from sf_query.core.errors import (
    ErrorKind,
    InvalidArgumentError,
    QueryError,
    ServiceError,
    UnsupportedModeError,
    ValidationError,
)
from sf_query.core.pagination import (
    Cursor,
    LastIdCursor,
    Page,
    SkipCursor,
    create_page,
    list_all,
)
from sf_query.core.rate_limiter import RateLimiter, RateLimiterStats, TokenBucket

__all__ = [
    # clock
    "FakeTimeProvider",
    "LoopScheduler",
    "Scheduler",
    "SystemTimeProvider",
    "TimeProvider",
    # config
    "ConfigValidationError",
    "DataMode",
    "QueryConfig",
    "RateLimitConfig",
    "load_config",
    "validate_config",
    # datasource
    "DataSource",
    "RequestSpec",
    # errors
    "ErrorKind",
    "InvalidArgumentError",
    "QueryError",
    "ServiceError",
    "UnsupportedModeError",
    "ValidationError",
    # pagination
    "Cursor",
    "LastIdCursor",
    "Page",
    "SkipCursor",
    "create_page",
    "list_all",
    # rate_limiter
    "RateLimiter",
    "RateLimiterStats",
    "TokenBucket",
]
