"""
Unit tests for live event subscriptions.

Time is driven by ManualScheduler: ``advance`` fires due timers, which
create poll tasks, and ``drain`` lets those tasks run to completion.
"""
import asyncio
import logging

import pytest

from sf_query.core.clock import FakeTimeProvider, LoopScheduler
from sf_query.core.config import DataMode, QueryConfig
from sf_query.core.errors import (
    ErrorKind,
    InvalidArgumentError,
    ServiceError,
    UnsupportedModeError,
    ValidationError,
)
from sf_query.core.telemetry import TelemetryRecorder, set_recorder
from sf_query.poller import CLOCK_SKEW_MS, MIN_POLL_INTERVAL_MS, initial_time_cursor
from sf_query.query import Query

from tests.fakes import ScriptedDataSource, drain, event_row

ADDR = "0x00000000000000000000000000000000000000Aa"


@pytest.fixture
def query(config, source, scheduler):
    return Query(config, data_source=source, scheduler=scheduler)


class Collector:
    """Callback that records the timestamps of every delivered batch."""

    def __init__(self):
        self.batches = []

    def __call__(self, events, unsubscribe):
        self.batches.append([e.timestamp for e in events])


def since(call):
    return int(call.variables["where"]["timestamp_gt"])


class TestInitialTimeCursor:
    """Test seeding of the time cursor."""

    def test_constants(self):
        assert MIN_POLL_INTERVAL_MS == 1000
        assert CLOCK_SKEW_MS == 25000

    def test_subtracts_skew(self):
        assert initial_time_cursor(1000.0) == 975

    def test_floors_to_seconds(self):
        assert initial_time_cursor(1000.999) == 975
        assert initial_time_cursor(1000.5, clock_skew_ms=0) == 1000
        assert initial_time_cursor(1000.5, clock_skew_ms=600) == 999

    async def test_seeded_from_scheduler_clock(self, query, scheduler, source):
        sub = query.subscribe(Collector(), 1000)

        assert sub.time_cursor == int(scheduler.now()) - 25
        await scheduler.advance(0)
        assert since(source.calls[0]) == int(scheduler.now()) - 25
        sub.unsubscribe()


class TestPollingFloor:
    """Test the minimum polling interval."""

    async def test_interval_below_floor_rejected(self, query, scheduler, source):
        with pytest.raises(InvalidArgumentError) as exc_info:
            query.subscribe(Collector(), 999)

        assert exc_info.value.kind is ErrorKind.INVALID_ARGUMENT
        await scheduler.advance(10)
        assert source.calls == []
        assert scheduler.pending == []

    async def test_interval_at_floor_polls(self, query, scheduler, source):
        sub = query.subscribe(Collector(), 1000)

        await scheduler.advance(0)

        assert len(source.calls) >= 1
        sub.unsubscribe()

    @pytest.mark.parametrize("interval", ["1000", None, True])
    def test_non_numeric_interval_rejected(self, query, interval):
        with pytest.raises(InvalidArgumentError):
            query.subscribe(Collector(), interval)

    def test_non_callable_callback_rejected(self, query):
        with pytest.raises(InvalidArgumentError, match="callable"):
            query.subscribe("not a function", 1000)

    def test_async_callback_rejected(self, query, scheduler):
        async def deliver(events, unsubscribe):
            pass

        with pytest.raises(InvalidArgumentError, match="coroutine"):
            query.subscribe(deliver, 1000)
        assert scheduler.pending == []

    def test_async_error_handler_rejected(self, query, scheduler):
        async def handle(exc, unsubscribe):
            pass

        with pytest.raises(InvalidArgumentError, match="on_error"):
            query.subscribe(Collector(), 1000, on_error=handle)
        assert scheduler.pending == []

    def test_negative_timeout_rejected(self, query, scheduler):
        with pytest.raises(InvalidArgumentError, match="timeout_ms"):
            query.subscribe(Collector(), 1000, timeout_ms=-1)
        assert scheduler.pending == []

    def test_invalid_account_rejected(self, query, scheduler):
        with pytest.raises(ValidationError):
            query.subscribe(Collector(), 1000, account="0x1234")
        assert scheduler.pending == []

    def test_mode_gate_checked_first(self, source, scheduler):
        query = Query(QueryConfig(data_mode=DataMode.WEB3_ONLY), data_source=source, scheduler=scheduler)

        with pytest.raises(UnsupportedModeError):
            query.subscribe(Collector(), 10)
        assert scheduler.pending == []


class TestTimeCursor:
    """Test that each poll asks only for events newer than the last batch."""

    async def test_cursor_advances_to_last_event(self, query, scheduler, source):
        source.enqueue(
            [event_row("a", 100), event_row("b", 105), event_row("c", 110)],
            [event_row("d", 115)],
        )
        collector = Collector()
        sub = query.subscribe(collector, 1000)

        await scheduler.advance(0)
        assert collector.batches == [[100, 105, 110]]
        assert sub.time_cursor == 110

        await scheduler.advance(1)
        assert collector.batches == [[100, 105, 110], [115]]
        assert since(source.calls[1]) == 110
        assert sub.time_cursor == 115
        sub.unsubscribe()

    async def test_empty_poll_keeps_cursor_and_skips_callback(self, query, scheduler, source):
        collector = Collector()
        sub = query.subscribe(collector, 1000)
        start_cursor = sub.time_cursor

        for _ in range(3):
            await scheduler.advance(1)

        assert collector.batches == []
        assert sub.time_cursor == start_cursor
        # Polls at 0, 1, 2 and 3 s, all from the starting cursor
        assert [since(c) for c in source.calls] == [start_cursor] * 4
        sub.unsubscribe()

    async def test_polls_ascending_by_timestamp(self, query, scheduler, source):
        sub = query.subscribe(Collector(), 1000)
        await scheduler.advance(0)

        variables = source.calls[0].variables
        assert variables["orderBy"] == "timestamp"
        assert variables["orderDirection"] == "asc"
        assert variables["first"] == 1000
        sub.unsubscribe()

    async def test_account_filter(self, query, scheduler, source):
        sub = query.subscribe(Collector(), 1000, account=ADDR)
        await scheduler.advance(0)

        assert source.calls[0].variables["where"]["addresses_contains"] == [ADDR.lower()]
        sub.unsubscribe()

    async def test_poll_drains_every_page(self, query, scheduler, source):
        rows = [event_row(f"e{i:04d}", 100 + i) for i in range(1000)]
        source.enqueue(rows, [event_row("e1000", 2000)])
        collector = Collector()
        sub = query.subscribe(collector, 1000)

        await scheduler.advance(0)

        # 1000 rows fill a 999-row page plus lookahead, so a second page is fetched
        assert len(source.calls) == 2
        assert source.calls[1].variables["where"]["id_gt"] == "e0998"
        assert len(collector.batches) == 1
        assert sub.time_cursor == 2000
        sub.unsubscribe()


class TestScheduling:
    """Test cadence and the one-poll-at-a-time guarantee."""

    async def test_first_poll_is_immediate(self, query, scheduler):
        query.subscribe(Collector(), 5000)
        assert [t.due for t in scheduler.pending] == [scheduler.now()]

    async def test_next_poll_measured_from_completion(self, query, scheduler, source):
        source.gate = asyncio.Event()
        sub = query.subscribe(Collector(), 1000)

        await scheduler.advance(0)
        assert len(source.calls) == 1

        # Slow backend: nothing else is armed while the step is in flight
        await scheduler.advance(7.5)
        assert len(source.calls) == 1
        assert scheduler.pending == []

        source.gate.set()
        await drain()
        assert [t.due for t in scheduler.pending] == [scheduler.now() + 1.0]
        assert sub.polls == 1
        sub.unsubscribe()

    async def test_steady_cadence(self, query, scheduler, source):
        sub = query.subscribe(Collector(), 2000)

        for _ in range(4):
            await scheduler.advance(0.5)

        # Polls at 0s and 2s only
        assert len(source.calls) == 2
        assert sub.polls == 2
        sub.unsubscribe()


class TestUnsubscribe:
    """Test cancellation."""

    async def test_stops_further_polls(self, query, scheduler, source):
        sub = query.subscribe(Collector(), 1000)
        await scheduler.advance(0)

        sub.unsubscribe()
        await scheduler.advance(10)

        assert not sub.active
        assert len(source.calls) == 1
        assert scheduler.pending == []

    async def test_idempotent(self, query, scheduler, source):
        unsubscribe = query.on(Collector(), 1000)
        await scheduler.advance(0)

        unsubscribe()
        state = (list(scheduler.pending), len(source.calls))
        unsubscribe()
        unsubscribe()
        await scheduler.advance(5)

        assert (list(scheduler.pending), len(source.calls)) == state == ([], 1)

    async def test_before_first_poll(self, query, scheduler, source):
        sub = query.subscribe(Collector(), 1000)
        sub.unsubscribe()

        await scheduler.advance(5)

        assert source.calls == []

    async def test_from_inside_callback(self, query, scheduler, source):
        source.enqueue([event_row("a", 100)], [event_row("b", 200)])
        batches = []

        def callback(events, unsubscribe):
            batches.append(events)
            unsubscribe()

        sub = query.subscribe(callback, 1000)
        await scheduler.advance(0)
        await scheduler.advance(5)

        assert len(batches) == 1
        assert sub.time_cursor == 100
        assert len(source.calls) == 1

    async def test_in_flight_step_may_still_deliver(self, query, scheduler, source):
        source.gate = asyncio.Event()
        source.enqueue([event_row("a", 100)])
        collector = Collector()
        sub = query.subscribe(collector, 1000)

        await scheduler.advance(0)
        sub.unsubscribe()
        source.gate.set()
        await drain()

        assert collector.batches == [[100]]
        assert scheduler.pending == []


class TestTimeout:
    """Test automatic unsubscribe."""

    async def test_no_polls_begin_after_timeout(self, query, scheduler, source):
        source.enqueue(*[[event_row(f"e{i}", 100 + i)] for i in range(10)])
        collector = Collector()
        sub = query.subscribe(collector, 1000, timeout_ms=5000)

        for _ in range(10):
            await scheduler.advance(1)

        # Polls start at 0, 1, 2, 3, 4 s; the one due at 5 s loses to the timeout
        assert collector.batches == [[100], [101], [102], [103], [104]]
        assert len(source.calls) == 5
        assert not sub.active
        assert scheduler.pending == []

    async def test_zero_timeout_means_none(self, query, scheduler):
        sub = query.subscribe(Collector(), 1000, timeout_ms=0)

        assert len(scheduler.pending) == 1
        await scheduler.advance(0)
        await scheduler.advance(60)
        assert sub.active
        sub.unsubscribe()

    async def test_manual_unsubscribe_cancels_timeout(self, query, scheduler):
        sub = query.subscribe(Collector(), 1000, timeout_ms=30000)
        sub.unsubscribe()
        assert scheduler.pending == []


class TestFailures:
    """Test what happens when a poll step fails."""

    async def test_failure_without_handler_stops(self, query, scheduler, source, caplog):
        source.enqueue(RuntimeError("subgraph down"))
        sub = query.subscribe(Collector(), 1000)
        start_cursor = sub.time_cursor

        with caplog.at_level(logging.ERROR, logger="sf_query.poller"):
            await scheduler.advance(0)

        assert not sub.active
        assert isinstance(sub.error, ServiceError)
        assert isinstance(sub.error.__cause__, RuntimeError)
        assert sub.time_cursor == start_cursor
        assert scheduler.pending == []
        assert "Poll step failed" in caplog.text

    async def test_failure_with_handler_keeps_polling(self, query, scheduler, source):
        source.enqueue(RuntimeError("blip"), [event_row("a", 300)])
        errors = []
        collector = Collector()
        sub = query.subscribe(collector, 1000, on_error=lambda exc, unsubscribe: errors.append(exc))
        start_cursor = sub.time_cursor

        await scheduler.advance(0)
        assert len(errors) == 1
        assert errors[0].kind is ErrorKind.SERVICE_ERROR
        assert sub.active
        assert sub.time_cursor == start_cursor

        await scheduler.advance(1)
        assert collector.batches == [[300]]
        assert since(source.calls[1]) == start_cursor
        assert sub.time_cursor == 300
        sub.unsubscribe()

    async def test_handler_can_unsubscribe(self, query, scheduler, source):
        source.enqueue(RuntimeError("fatal"))
        sub = query.subscribe(Collector(), 1000, on_error=lambda exc, unsubscribe: unsubscribe())

        await scheduler.advance(0)

        assert not sub.active
        assert scheduler.pending == []

    async def test_raising_handler_stops(self, query, scheduler, source):
        source.enqueue(RuntimeError("first"))

        def on_error(exc, unsubscribe):
            raise ValueError("handler bug")

        sub = query.subscribe(Collector(), 1000, on_error=on_error)
        await scheduler.advance(0)

        assert not sub.active
        assert scheduler.pending == []

    async def test_callback_failure_does_not_advance_cursor(self, query, scheduler, source):
        source.enqueue([event_row("a", 100)])

        def callback(events, unsubscribe):
            raise KeyError("consumer bug")

        sub = query.subscribe(callback, 1000)
        start_cursor = sub.time_cursor
        await scheduler.advance(0)

        assert isinstance(sub.error, KeyError)
        assert sub.time_cursor == start_cursor
        assert not sub.active


class TestTelemetry:
    async def test_polls_recorded(self, query, scheduler, source, recorder):
        source.enqueue([event_row("a", 100), event_row("b", 101)])
        sub = query.subscribe(Collector(), 1000)

        await scheduler.advance(0)
        sub.unsubscribe()

        polled = [e for e in recorder.get_events() if e.decision == "polled"]
        assert len(polled) == 1
        assert polled[0].rows == 2
        assert polled[0].source == "poller"

    async def test_long_running_subscription_keeps_bounded_history(self, query, scheduler, source):
        recorder = TelemetryRecorder()
        set_recorder(recorder)
        sub = query.subscribe(Collector(), 1000)

        for _ in range(200):
            await scheduler.advance(1)
        sub.unsubscribe()

        assert sub.polls > 100
        assert len(recorder.get_events()) <= 50


class TestLoopScheduler:
    """Test subscriptions on the real event loop."""

    async def test_first_poll_runs_on_loop(self, config):
        source = ScriptedDataSource([[event_row("a", 2000)]])
        query = Query(config, data_source=source, scheduler=LoopScheduler(FakeTimeProvider(1000.0)))
        collector = Collector()

        sub = query.subscribe(collector, 1000)
        assert sub.time_cursor == 975
        await asyncio.sleep(0.05)
        sub.unsubscribe()

        assert collector.batches == [[2000]]
        assert since(source.calls[0]) == 975
