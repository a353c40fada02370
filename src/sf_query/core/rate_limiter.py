"""
Token bucket rate limiter and retry policy for the subgraph host.

This module implements:
- A token bucket that paces outgoing queries to a steady rate with bursts
- Concurrency control via an asyncio semaphore
- Retry decisions for 429 (honouring Retry-After) and 5xx responses with
  bounded exponential backoff
"""
import asyncio
import logging
import random
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from email.utils import parsedate_to_datetime
from typing import Any, AsyncIterator, Dict, Mapping, Optional

from .clock import SystemTimeProvider, TimeProvider
from .config import RateLimitConfig
from .telemetry import TelemetryDecision, create_event, get_recorder

logger = logging.getLogger(__name__)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # aiohttp headers are case-insensitive already; plain dicts are not
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    return next((v for k, v in headers.items() if k.lower() == lowered), None)


class TokenBucket:
    """
    Token bucket with a configurable refill rate.

    Time comes from the injected TimeProvider, never from the system clock.
    """

    def __init__(
        self,
        rate: float,
        capacity: int,
        time_provider: TimeProvider,
        initial_tokens: Optional[float] = None,
    ):
        """
        Args:
            rate: Tokens added per second
            capacity: Burst size; the bucket never holds more
            time_provider: Clock the refill is measured against
            initial_tokens: Starting fill, full when omitted
        """
        self.rate = rate
        self.capacity = capacity
        self.time_provider = time_provider
        self._tokens = float(initial_tokens if initial_tokens is not None else capacity)
        self._last_refill = self.time_provider.now()

    def _refill(self) -> None:
        now = self.time_provider.now()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last_refill = now

    def consume(self, tokens: int = 1) -> bool:
        """Take tokens if available. Returns False when the bucket is short."""
        self._refill()
        if self._tokens >= tokens:
            self._tokens -= tokens
            return True
        return False

    def peek(self) -> float:
        self._refill()
        return self._tokens

    def time_until_tokens(self, tokens: int = 1) -> float:
        """Seconds until ``tokens`` are available (0 if already available)."""
        self._refill()
        if self._tokens >= tokens:
            return 0.0
        return (tokens - self._tokens) / self.rate if self.rate > 0 else float("inf")


@dataclass
class RateLimiterStats:
    """Counters for limiter activity."""

    requests_total: int = 0
    requests_throttled: int = 0
    requests_429: int = 0
    requests_5xx: int = 0
    total_wait_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RateLimiter:
    """
    Paces requests to one host and decides whether failed requests are retried.

    GraphQL reads are sent as POST but are side-effect free, so every 429 and
    5xx response is retryable up to ``max_retries`` attempts.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        host: str = "",
        time_provider: Optional[TimeProvider] = None,
        jitter: bool = True,
    ):
        """
        Args:
            config: Rate limit and retry settings
            host: Host label used in logs and telemetry
            time_provider: Clock for pacing and backoff; the system clock when omitted
            jitter: Whether backoff delays get +/-25% random jitter
        """
        self.config = config
        self.host = host
        self.time_provider = time_provider or SystemTimeProvider()
        self.jitter = jitter
        self.bucket = TokenBucket(
            rate=config.steady_rate,
            capacity=config.burst,
            time_provider=self.time_provider,
        )
        self._semaphore = asyncio.Semaphore(config.max_concurrency)
        self._stats = RateLimiterStats()

    @asynccontextmanager
    async def acquire(self, operation: str = "") -> AsyncIterator[float]:
        """
        Wait for a token and a concurrency slot.

        Args:
            operation: Label for telemetry

        Yields:
            Seconds spent waiting for the token
        """
        async with self._semaphore:
            wait_time = 0.0
            while not self.bucket.consume(1):
                sleep_time = min(self.bucket.time_until_tokens(1), 0.1)
                await self.time_provider.sleep(sleep_time)
                wait_time += sleep_time

            self._stats.requests_total += 1
            if wait_time > 0:
                self._stats.requests_throttled += 1
                self._stats.total_wait_time += wait_time
                get_recorder().record(create_event(
                    source=self.host or "rate_limiter",
                    operation=operation,
                    decision=TelemetryDecision.THROTTLE,
                    sleep_s=wait_time,
                ))
                logger.debug(f"Throttled {operation or 'request'} on {self.host} for {wait_time:.3f}s")

            yield wait_time

    def _parse_retry_after(self, retry_after: str) -> Optional[float]:
        """
        Parse a Retry-After header value (seconds or HTTP-date).

        Returns:
            Non-negative seconds, or None when the value is unparseable
        """
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass

        try:
            retry_date = parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            return None
        return max(0.0, retry_date.timestamp() - self.time_provider.now())

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff for a 0-based attempt, capped at max_backoff."""
        backoff = min(self.config.base_backoff * (2 ** attempt), self.config.max_backoff)
        if self.jitter:
            backoff *= 0.75 + random.random() * 0.5
        return backoff

    def retry_delay(
        self,
        status_code: int,
        headers: Mapping[str, str],
        attempt: int,
        operation: str = "",
    ) -> Optional[float]:
        """
        Decide whether a response should be retried.

        Args:
            status_code: HTTP status code of the response
            headers: Response headers
            attempt: Attempt number that produced the response (0-based)
            operation: Label for telemetry

        Returns:
            Seconds to wait before retrying, or None if the response is final
        """
        if status_code == 429:
            self._stats.requests_429 += 1
            decision = TelemetryDecision.BACKOFF_429
        elif 500 <= status_code < 600:
            self._stats.requests_5xx += 1
            decision = TelemetryDecision.BACKOFF_5XX
        else:
            return None

        if attempt >= self.config.max_retries:
            logger.error(
                f"Max retries ({self.config.max_retries}) exceeded for {status_code} on {self.host}"
            )
            return None

        delay = None
        retry_after = _header(headers, "Retry-After")
        if status_code == 429 and retry_after is not None:
            delay = self._parse_retry_after(retry_after)
        if delay is None:
            delay = self._calculate_backoff(attempt)

        logger.warning(f"{status_code} from {self.host}, retrying in {delay:.2f}s (attempt {attempt + 1})")
        get_recorder().record(create_event(
            source=self.host or "rate_limiter",
            operation=operation,
            decision=decision,
            status=status_code,
            sleep_s=delay,
            attempt=attempt,
        ))
        return delay

    def get_stats(self) -> RateLimiterStats:
        return RateLimiterStats(**self._stats.to_dict())

    def reset_stats(self) -> None:
        self._stats = RateLimiterStats()
