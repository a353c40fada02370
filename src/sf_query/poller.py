"""
Live event feed built on repeated polling.

Each subscription keeps a time cursor and, on every step, exhaustively lists
the events newer than it in ascending timestamp order, hands the batch to
the callback and moves the cursor to the last delivered timestamp. The next
step is armed ``interval_ms`` after the current one finishes, so a slow
backend stretches the cadence instead of piling up overlapping polls.

Failure policy: a failed step never moves the time cursor. If an
``on_error`` handler was given it is called and polling continues at the
normal cadence; otherwise the failure is logged, kept on
``Subscription.error`` and the subscription stops.

Known edge: events sharing the exact boundary timestamp across two polls may
repeat or be missed if the backend does not apply ``timestamp_gt`` strictly.
"""

import asyncio
import inspect
import logging
import math
import time
from typing import TYPE_CHECKING, Any, Callable

from sf_query.core.clock import Scheduler, TimerHandle
from sf_query.core.errors import InvalidArgumentError
from sf_query.core.pagination import Cursor
from sf_query.core.telemetry import TelemetryDecision, create_event, get_recorder
from sf_query.entities.filters import EventFilter, validate_filter
from sf_query.entities.models import ProtocolEvent
from sf_query.entities.ordering import BY_TIMESTAMP_ASC

if TYPE_CHECKING:
    from sf_query.query import Query

logger = logging.getLogger(__name__)

MIN_POLL_INTERVAL_MS = 1000

# The subgraph stamps events with their block time, which can trail the
# wall clock by the indexing lag.
CLOCK_SKEW_MS = 25000

Unsubscribe = Callable[[], None]
EventCallback = Callable[[list[ProtocolEvent], Unsubscribe], Any]
ErrorCallback = Callable[[BaseException, Unsubscribe], Any]


def initial_time_cursor(now: float, clock_skew_ms: int = CLOCK_SKEW_MS) -> int:
    """Seconds-resolution starting cursor: ``now`` minus the skew allowance."""
    return math.floor((now * 1000 - clock_skew_ms) / 1000)


class Subscription:
    """
    Handle for one live event feed.

    Attributes:
        active: False once unsubscribed; never becomes True again
        time_cursor: Only events with a timestamp strictly greater are requested
        error: The failure that stopped the subscription, or the last one
            reported to ``on_error``
        polls: Number of completed poll steps
    """

    def __init__(
        self,
        query: "Query",
        scheduler: Scheduler,
        callback: EventCallback,
        interval_ms: int,
        account: str | None = None,
        on_error: ErrorCallback | None = None,
    ):
        self.active = True
        self.time_cursor = initial_time_cursor(scheduler.now())
        self.error: BaseException | None = None
        self.polls = 0
        self.interval_ms = interval_ms
        self.account = account

        self._query = query
        self._scheduler = scheduler
        self._callback = callback
        self._on_error = on_error
        self._timer: TimerHandle | None = None
        self._timeout_timer: TimerHandle | None = None
        self._task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return (
            f"Subscription(account={self.account!r}, active={self.active}, "
            f"time_cursor={self.time_cursor}, polls={self.polls})"
        )

    def start(self, timeout_ms: int | None = None) -> None:
        """Arm the optional auto-unsubscribe timer and the first poll step."""
        if timeout_ms:
            self._timeout_timer = self._scheduler.call_later(timeout_ms / 1000, self.unsubscribe)
        self._timer = self._scheduler.call_later(0, self._fire)

    def unsubscribe(self) -> None:
        """
        Stop the feed. Safe to call any number of times.

        A step that is already running is not interrupted and may still
        deliver one more batch.
        """
        if not self.active:
            return
        self.active = False
        for handle in (self._timer, self._timeout_timer):
            if handle is not None:
                handle.cancel()
        self._timer = None
        self._timeout_timer = None
        logger.info(f"Unsubscribed event feed after {self.polls} poll(s), time cursor {self.time_cursor}")

    def _fire(self) -> None:
        self._timer = None
        self._task = asyncio.get_running_loop().create_task(self._step())

    def _fetch_page(self, since: int) -> Callable[[Cursor], Any]:
        event_filter = EventFilter(account=self.account, timestamp_gt=since)

        def fetch(cursor: Cursor):
            return self._query.list_events(event_filter, cursor, BY_TIMESTAMP_ASC)

        return fetch

    async def _step(self) -> None:
        if not self.active:
            return

        since = self.time_cursor
        started = time.monotonic()
        try:
            events = await self._query.list_all_results(self._fetch_page(since))
            if events:
                self._callback(events, self.unsubscribe)
                self.time_cursor = events[-1].timestamp
        except Exception as exc:
            self._fail(exc)
        else:
            get_recorder().record(create_event(
                source="poller",
                operation="poll",
                decision=TelemetryDecision.POLLED,
                rows=len(events),
                elapsed_ms=(time.monotonic() - started) * 1000,
            ))
            if events:
                logger.debug(f"Delivered {len(events)} event(s), time cursor {since} -> {self.time_cursor}")
        finally:
            self.polls += 1

        if self.active:
            self._timer = self._scheduler.call_later(self.interval_ms / 1000, self._fire)

    def _fail(self, exc: Exception) -> None:
        self.error = exc
        get_recorder().record(create_event(source="poller", operation="poll", decision=TelemetryDecision.ERROR))

        if self._on_error is None:
            logger.error(f"Poll step failed, stopping event feed: {exc}", exc_info=exc)
            self.unsubscribe()
            return

        logger.warning(f"Poll step failed, retrying in {self.interval_ms}ms: {exc}")
        try:
            self._on_error(exc, self.unsubscribe)
        except Exception:
            logger.exception("Error handler raised, stopping event feed")
            self.unsubscribe()


class EventPoller:
    """Creates and starts subscriptions against one Query."""

    def __init__(self, query: "Query", scheduler: Scheduler):
        self.query = query
        self.scheduler = scheduler

    def subscribe(
        self,
        callback: EventCallback,
        interval_ms: int,
        account: str | None = None,
        timeout_ms: int | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """
        Start a live event feed.

        Args:
            callback: Called as ``callback(events, unsubscribe)`` for every
                non-empty batch
            interval_ms: Pause between the end of one poll and the start of
                the next; at least 1000
            account: Only events involving this address
            timeout_ms: Unsubscribe automatically after this long; None or 0
                means never
            on_error: Called as ``on_error(exc, unsubscribe)`` when a step
                fails; polling continues afterwards

        Returns:
            The running Subscription

        Raises:
            InvalidArgumentError: interval below the floor, negative timeout,
                a non-callable callback or an async handler
            ValidationError: ``account`` is not an address
        """
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)):
            raise InvalidArgumentError(f"interval_ms must be a number, got {interval_ms!r}")
        if interval_ms < MIN_POLL_INTERVAL_MS:
            raise InvalidArgumentError(
                f"Polling interval must be at least {MIN_POLL_INTERVAL_MS}ms, got {interval_ms}ms"
            )
        if timeout_ms is not None and (
            isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)) or timeout_ms < 0
        ):
            raise InvalidArgumentError(f"timeout_ms must be a non-negative number, got {timeout_ms!r}")
        if not callable(callback):
            raise InvalidArgumentError("callback must be callable")
        for name, handler in (("callback", callback), ("on_error", on_error)):
            dunder_call = getattr(handler, "__call__", None)
            if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(dunder_call):
                raise InvalidArgumentError(f"{name} must be a plain function; coroutine functions are not awaited")
        validate_filter(EventFilter(account=account), EventFilter)

        subscription = Subscription(
            self.query, self.scheduler, callback, interval_ms, account=account, on_error=on_error,
        )
        subscription.start(timeout_ms)
        logger.info(
            f"Subscribed to events (account={account}, interval={interval_ms}ms, "
            f"timeout={timeout_ms}ms, time cursor {subscription.time_cursor})"
        )
        return subscription
