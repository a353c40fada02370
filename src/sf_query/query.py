"""
Query facade: one listing operation per entity kind, exhaustive listing and
live event subscriptions.

Every listing operation performs, in order: data mode gate, filter
validation, request construction, one transport call, normalization and
lookahead page construction.
"""

import logging
import time
from typing import Any, Callable, Mapping, TypeVar

from sf_query.core.clock import LoopScheduler, Scheduler
from sf_query.core.config import DataMode, QueryConfig
from sf_query.core.datasource import DataSource
from sf_query.core.errors import QueryError, ServiceError, UnsupportedModeError
from sf_query.core.pagination import (
    Cursor,
    Page,
    PageFetch,
    SkipCursor,
    create_page,
    cursor_kind,
    cursor_variables,
    list_all,
    take_plus_one,
)
from sf_query.core.telemetry import TelemetryDecision, create_event, get_recorder
from sf_query.datasources.subgraph import SubgraphDataSource
from sf_query.entities import documents
from sf_query.entities.filters import (
    AccountTokenSnapshotFilter,
    EventFilter,
    IndexFilter,
    IndexSubscriptionFilter,
    StreamFilter,
    SuperTokenFilter,
    compact,
    validate_filter,
)
from sf_query.entities.models import (
    AccountTokenSnapshot,
    Index,
    IndexSubscription,
    ProtocolEvent,
    Stream,
    SuperToken,
)
from sf_query.entities.normalize import (
    ACCOUNT_TOKEN_SNAPSHOT,
    INDEX,
    INDEX_SUBSCRIPTION,
    STREAM,
    SUPER_TOKEN,
    normalize_all,
    normalize_event,
)
from sf_query.entities.ordering import (
    BY_BLOCK_NUMBER_DESC,
    BY_CREATED_BLOCK_DESC,
    BY_UPDATED_BLOCK_DESC,
    Ordering,
)
from sf_query.poller import ErrorCallback, EventCallback, EventPoller, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Query:
    """
    Read-only access to the indexed protocol data.

    Args:
        config: Client configuration (endpoint, data mode, page sizes)
        data_source: Transport to use; defaults to a SubgraphDataSource built
            from ``config``
        scheduler: Timer source for subscriptions; defaults to the running
            asyncio loop
    """

    def __init__(
        self,
        config: QueryConfig,
        data_source: DataSource | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.config = config
        self.data_source = data_source or SubgraphDataSource.from_config(config)
        self.poller = EventPoller(self, scheduler or LoopScheduler())

    async def close(self) -> None:
        await self.data_source.close()

    async def __aenter__(self) -> "Query":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _check_mode(self, operation: str) -> None:
        if self.config.data_mode is DataMode.WEB3_ONLY:
            raise UnsupportedModeError(f"{operation} is not supported in WEB3_ONLY mode.")

    def _default_cursor(self, cursor: Cursor | None) -> Cursor:
        return cursor if cursor is not None else SkipCursor(skip=0, take=self.config.default_take)

    async def _fetch(
        self,
        operation: str,
        document: str,
        normalizer: Callable[[Mapping[str, Any]], T],
        where: dict[str, Any],
        cursor: Cursor,
        ordering: Ordering,
    ) -> Page[T]:
        skip, last_id = cursor_variables(cursor)
        variables = compact({
            "where": compact({**where, "id_gt": last_id}),
            **ordering.variables(),
            "first": take_plus_one(cursor),
            "skip": skip,
        })

        started = time.monotonic()
        try:
            response = await self.data_source.request(document, variables)
            rows = response["result"]
        except Exception as exc:
            get_recorder().record(create_event(
                source="query",
                operation=operation,
                decision=TelemetryDecision.ERROR,
                cursor_kind=cursor_kind(cursor),
                first=variables["first"],
                elapsed_ms=(time.monotonic() - started) * 1000,
            ))
            if isinstance(exc, QueryError):
                raise
            raise ServiceError(f"{operation} failed: {exc!r}") from exc

        page = create_page(normalize_all(normalizer, rows), cursor)

        get_recorder().record(create_event(
            source="query",
            operation=operation,
            decision=TelemetryDecision.HAS_MORE if page.has_next_page else TelemetryDecision.FETCHED,
            cursor_kind=cursor_kind(cursor),
            first=variables["first"],
            rows=len(page.data),
            elapsed_ms=(time.monotonic() - started) * 1000,
        ))
        return page

    async def list_all_results(self, page_fetch: PageFetch[T], take: int | None = None) -> list[T]:
        """
        Fetch every result of a paginated query.

        Args:
            page_fetch: A listing operation bound to a fixed filter and
                ordering, e.g. ``lambda c: query.list_streams(f, c)``
            take: Page size; defaults to ``config.list_all_take`` (999)

        Returns:
            All entities, pages concatenated in fetch order
        """
        return await list_all(page_fetch, take or self.config.list_all_take)

    async def list_all_super_tokens(
        self,
        filter: SuperTokenFilter,
        cursor: Cursor | None = None,
        ordering: Ordering = BY_CREATED_BLOCK_DESC,
    ) -> Page[SuperToken]:
        self._check_mode("list_all_super_tokens")
        validate_filter(filter, SuperTokenFilter)
        return await self._fetch(
            "list_all_super_tokens", documents.GET_TOKENS, SUPER_TOKEN,
            filter.where(), self._default_cursor(cursor), ordering,
        )

    async def list_indexes(
        self,
        filter: IndexFilter,
        cursor: Cursor | None = None,
        ordering: Ordering = BY_CREATED_BLOCK_DESC,
    ) -> Page[Index]:
        self._check_mode("list_indexes")
        validate_filter(filter, IndexFilter)
        return await self._fetch(
            "list_indexes", documents.GET_INDEXES, INDEX,
            filter.where(), self._default_cursor(cursor), ordering,
        )

    async def list_index_subscriptions(
        self,
        filter: IndexSubscriptionFilter,
        cursor: Cursor | None = None,
        ordering: Ordering = BY_CREATED_BLOCK_DESC,
    ) -> Page[IndexSubscription]:
        self._check_mode("list_index_subscriptions")
        validate_filter(filter, IndexSubscriptionFilter)
        return await self._fetch(
            "list_index_subscriptions", documents.GET_INDEX_SUBSCRIPTIONS, INDEX_SUBSCRIPTION,
            filter.where(), self._default_cursor(cursor), ordering,
        )

    async def list_streams(
        self,
        filter: StreamFilter,
        cursor: Cursor | None = None,
        ordering: Ordering = BY_CREATED_BLOCK_DESC,
    ) -> Page[Stream]:
        self._check_mode("list_streams")
        validate_filter(filter, StreamFilter)
        return await self._fetch(
            "list_streams", documents.GET_STREAMS, STREAM,
            filter.where(), self._default_cursor(cursor), ordering,
        )

    async def list_user_interacted_super_tokens(
        self,
        filter: AccountTokenSnapshotFilter,
        cursor: Cursor | None = None,
        ordering: Ordering = BY_UPDATED_BLOCK_DESC,
    ) -> Page[AccountTokenSnapshot]:
        self._check_mode("list_user_interacted_super_tokens")
        validate_filter(filter, AccountTokenSnapshotFilter)
        return await self._fetch(
            "list_user_interacted_super_tokens", documents.GET_ACCOUNT_TOKEN_SNAPSHOTS,
            ACCOUNT_TOKEN_SNAPSHOT, filter.where(), self._default_cursor(cursor), ordering,
        )

    async def list_events(
        self,
        filter: EventFilter,
        cursor: Cursor | None = None,
        ordering: Ordering = BY_BLOCK_NUMBER_DESC,
    ) -> Page[ProtocolEvent]:
        self._check_mode("list_events")
        validate_filter(filter, EventFilter)
        return await self._fetch(
            "list_events", documents.GET_ALL_EVENTS, normalize_event,
            filter.where(), self._default_cursor(cursor), ordering,
        )

    def subscribe(
        self,
        callback: EventCallback,
        interval_ms: int,
        account: str | None = None,
        timeout_ms: int | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """
        Start polling for new protocol events.

        See ``EventPoller.subscribe``. Must be called from a running event loop
        unless a custom scheduler was supplied.
        """
        self._check_mode("subscribe")
        return self.poller.subscribe(callback, interval_ms, account, timeout_ms, on_error)

    def on(
        self,
        callback: EventCallback,
        interval_ms: int,
        account: str | None = None,
        timeout_ms: int | None = None,
    ) -> Callable[[], None]:
        """
        Poll for new events every ``interval_ms`` and pass each non-empty batch
        to ``callback(events, unsubscribe)``.

        Returns:
            The unsubscribe function
        """
        return self.subscribe(callback, interval_ms, account, timeout_ms).unsubscribe
