"""
Structured telemetry for query, transport and polling operations.

Each listing call, throttle wait, retry decision and poll step produces one
``TelemetryEvent``. The recorder writes it to the module logger as a single
JSON (or key=value) line and can keep running totals, which the tests use to
assert on what the client actually did.
"""
import json
import logging
import threading
from collections import Counter, deque
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class TelemetryLevel(Enum):
    """INFO surfaces notable decisions; DEBUG sends every event to debug."""
    INFO = "info"
    DEBUG = "debug"


class TelemetryDecision(Enum):
    """Outcome recorded for a single operation."""
    FETCHED = "fetched"          # page fetched, no further page
    HAS_MORE = "has_more"        # lookahead row present, another page exists
    THROTTLE = "throttle"        # waited for a rate limit token
    BACKOFF_429 = "backoff_429"  # retrying after a 429 response
    BACKOFF_5XX = "backoff_5xx"  # retrying after a 5xx response
    POLLED = "polled"            # subscription poll step completed
    ERROR = "error"              # operation failed


_NOTABLE = frozenset(d.value for d in (
    TelemetryDecision.THROTTLE,
    TelemetryDecision.BACKOFF_429,
    TelemetryDecision.BACKOFF_5XX,
    TelemetryDecision.ERROR,
))


@dataclass
class TelemetryEvent:
    """
    One recorded operation.

    Attributes:
        timestamp: UTC time the event was created, ISO 8601
        source: Component name ("query", "poller" or the subgraph host)
        operation: Listing operation or GraphQL operation name
        decision: A ``TelemetryDecision`` value
        cursor_kind: "skip" or "last_id" for listing calls
        first: Rows requested (take + 1)
        rows: Rows kept or delivered
        elapsed_ms: Duration in milliseconds
        sleep_s: Seconds slept for throttling or backoff
        status: HTTP status, where one applies
        attempt: 0-based retry attempt
    """
    timestamp: str
    source: str
    operation: str
    decision: str
    cursor_kind: str = ""
    first: int = 0
    rows: int = 0
    elapsed_ms: float = 0.0
    sleep_s: float = 0.0
    status: Optional[int] = None
    attempt: int = 0

    @property
    def notable(self) -> bool:
        return self.decision in _NOTABLE or (self.status is not None and self.status >= 400)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_keyvalue(self) -> str:
        return " ".join(f"{key}={value}" for key, value in self.to_dict().items())


@dataclass
class TelemetryStats:
    """Running totals over recorded events."""
    total_events: int = 0
    total_rows: int = 0
    total_sleep_time: float = 0.0
    total_elapsed_time: float = 0.0
    decisions_by_type: Counter = field(default_factory=Counter)
    status_codes: Counter = field(default_factory=Counter)

    def add(self, event: TelemetryEvent) -> None:
        self.total_events += 1
        self.total_rows += event.rows
        self.total_sleep_time += event.sleep_s
        self.total_elapsed_time += event.elapsed_ms
        self.decisions_by_type[event.decision] += 1
        if event.status:
            self.status_codes[event.status] += 1

    def snapshot(self) -> "TelemetryStats":
        return replace(
            self,
            decisions_by_type=Counter(self.decisions_by_type),
            status_codes=Counter(self.status_codes),
        )

    def to_dict(self) -> Dict[str, Any]:
        mean = self.total_elapsed_time / self.total_events if self.total_events else 0.0
        return {
            "total_events": self.total_events,
            "total_rows": self.total_rows,
            "total_sleep_time": self.total_sleep_time,
            "avg_latency_ms": round(mean, 2),
            "decisions_by_type": dict(self.decisions_by_type),
            "status_codes": dict(self.status_codes),
        }


class TelemetryRecorder:
    """
    Logs telemetry events and optionally aggregates them.

    Args:
        level: INFO logs notable events at INFO and the rest at DEBUG;
            DEBUG logs everything at DEBUG
        format_json: JSON lines when True, key=value lines otherwise
        collect_stats: Keep running totals, see ``get_stats``
        max_events: How many recent events ``get_events`` keeps; older
            ones are discarded
    """

    def __init__(
        self,
        level: TelemetryLevel = TelemetryLevel.INFO,
        format_json: bool = True,
        collect_stats: bool = False,
        max_events: int = 50,
    ):
        self.level = level
        self.format_json = format_json
        self.collect_stats = collect_stats

        self._lock = threading.Lock()
        self._stats = TelemetryStats()
        self._events: Deque[TelemetryEvent] = deque(maxlen=max_events)

    def record(self, event: TelemetryEvent) -> None:
        line = event.to_json() if self.format_json else event.to_keyvalue()
        promote = self.level is TelemetryLevel.INFO and event.notable
        logger.log(logging.INFO if promote else logging.DEBUG, line)

        with self._lock:
            self._events.append(event)
            if self.collect_stats:
                self._stats.add(event)

    def get_stats(self) -> TelemetryStats:
        """Copy of the running totals."""
        with self._lock:
            return self._stats.snapshot()

    def reset_stats(self) -> None:
        with self._lock:
            self._stats = TelemetryStats()

    def get_events(self) -> List[TelemetryEvent]:
        """Most recent events, oldest first."""
        with self._lock:
            return list(self._events)

    def clear_events(self) -> None:
        with self._lock:
            self._events.clear()


_recorder = TelemetryRecorder()


def get_recorder() -> TelemetryRecorder:
    """Process-wide recorder used by the query layer."""
    return _recorder


def set_recorder(recorder: TelemetryRecorder) -> None:
    """Replace the process-wide recorder, e.g. with one collecting stats."""
    global _recorder
    _recorder = recorder


def create_event(
    source: str,
    operation: str,
    decision: TelemetryDecision,
    **fields: Any,
) -> TelemetryEvent:
    """
    Build an event stamped with the current UTC time.

    Args:
        source: Component name
        operation: Operation label
        decision: Outcome
        **fields: Any other ``TelemetryEvent`` attribute (rows, status, ...)
    """
    return TelemetryEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        source=source,
        operation=operation,
        decision=decision.value,
        **fields,
    )
