"""
Time and timer abstractions.

The rate limiter and the event poller never read the system clock or arm
timers directly; they go through a ``TimeProvider`` and a ``Scheduler`` so
tests can inject deterministic time.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Protocol


class TimeProvider(ABC):
    """Source of wall-clock time and sleeps."""

    @abstractmethod
    def now(self) -> float:
        """Seconds since the epoch."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for the given number of seconds."""
        pass


class SystemTimeProvider(TimeProvider):
    """Wall clock and asyncio.sleep."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class FakeTimeProvider(TimeProvider):
    """Fake time provider for deterministic tests. Sleeping advances the clock."""

    def __init__(self, initial_time: float = 1000.0):
        self._current_time = initial_time
        self.sleep_history: list[float] = []

    def now(self) -> float:
        return self._current_time

    async def sleep(self, seconds: float) -> None:
        self.sleep_history.append(seconds)
        self._current_time += seconds

    def advance(self, seconds: float) -> None:
        """Move the clock forward without recording a sleep."""
        self._current_time += seconds

    def set(self, value: float) -> None:
        """Set absolute time."""
        self._current_time = value


class TimerHandle(Protocol):
    """A pending timer that can be cancelled."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Arms one-shot timers and tells the wall-clock time."""

    def now(self) -> float:
        """Current wall-clock time in seconds since epoch."""
        ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...


class LoopScheduler:
    """
    Scheduler backed by the running asyncio event loop.

    Must be used from inside a running loop; timers fire on that loop.
    """

    def __init__(self, time_provider: TimeProvider | None = None):
        self.time_provider = time_provider or SystemTimeProvider()

    def now(self) -> float:
        return self.time_provider.now()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, callback)
