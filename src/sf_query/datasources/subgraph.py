"""
Subgraph data source: GraphQL over HTTP with aiohttp.

Queries are POSTed as ``{"query": ..., "variables": ...}``. Every request
passes through the token bucket rate limiter; 429 and 5xx responses are
retried with backoff. Anything that still fails is raised as a ServiceError
with the original exception chained.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from sf_query.core.clock import TimeProvider
from sf_query.core.config import QueryConfig, RateLimitConfig
from sf_query.core.datasource import DataSource, RequestSpec
from sf_query.core.errors import ServiceError
from sf_query.core.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_OPERATION_NAME = re.compile(r"\bquery\s+(\w+)")


def operation_name(document: str) -> str:
    """Name of the GraphQL operation in ``document``, or "query" if anonymous."""
    match = _OPERATION_NAME.search(document)
    return match.group(1) if match else "query"


class SubgraphDataSource(DataSource):
    """
    GraphQL transport for a subgraph endpoint.

    The aiohttp session is created lazily and owned by this object unless one
    is passed in. Use ``async with`` or call ``close()`` when done.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        rate_limit: RateLimitConfig | None = None,
        api_key: str | None = None,
        session: ClientSession | None = None,
        time_provider: TimeProvider | None = None,
        jitter: bool = True,
    ):
        """
        Args:
            endpoint: Full URL of the subgraph GraphQL endpoint
            timeout: Total timeout per HTTP request in seconds
            rate_limit: Token bucket and retry settings
            api_key: Optional bearer token sent in the Authorization header
            session: Optional externally owned aiohttp session
            time_provider: Clock used for pacing and backoff sleeps
            jitter: Whether retry backoff is jittered
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.api_key = api_key
        self.rate_limiter = RateLimiter(
            rate_limit or RateLimitConfig(),
            host=endpoint,
            time_provider=time_provider,
            jitter=jitter,
        )
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_config(cls, config: QueryConfig, **kwargs: Any) -> "SubgraphDataSource":
        return cls(
            endpoint=config.subgraph_endpoint,
            timeout=config.request_timeout,
            rate_limit=config.rate_limit,
            **kwargs,
        )

    @property
    def name(self) -> str:
        return "subgraph"

    def auth(self, initial_headers: dict[str, str] | None = None) -> dict[str, str]:
        headers = super().auth(initial_headers)
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def prepare_request(self, document: str, variables: dict[str, Any]) -> RequestSpec:
        return RequestSpec(
            url=self.endpoint,
            method="POST",
            headers=self.auth({"Content-Type": "application/json", "Accept": "application/json"}),
            body={"query": document, "variables": variables},
        )

    async def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self._session

    async def request(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        spec = self.prepare_request(document, variables)
        operation = operation_name(document)
        session = await self._get_session()

        attempt = 0
        while True:
            async with self.rate_limiter.acquire(operation):
                started = time.monotonic()
                try:
                    async with session.request(
                        spec.method, spec.url, json=spec.body, headers=spec.headers
                    ) as response:
                        status = response.status
                        headers = response.headers
                        text = await response.text()
                except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                    raise ServiceError(f"{operation} request to {self.endpoint} failed: {exc!r}") from exc
                elapsed_ms = (time.monotonic() - started) * 1000

            logger.debug(f"{operation} -> HTTP {status} in {elapsed_ms:.1f}ms (attempt {attempt})")

            delay = self.rate_limiter.retry_delay(status, headers, attempt, operation)
            if delay is None:
                break
            await self.rate_limiter.time_provider.sleep(delay)
            attempt += 1

        if status >= 400:
            raise ServiceError(f"{operation} returned HTTP {status}: {text[:200]}")

        return self._decode(operation, text)

    def _decode(self, operation: str, text: str) -> dict[str, Any]:
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise ServiceError(f"{operation} returned a non-JSON body") from exc

        if not isinstance(payload, dict):
            raise ServiceError(f"{operation} returned an unexpected payload")

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            raise ServiceError(f"{operation} failed: {messages}")

        data = payload.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("result"), list):
            raise ServiceError(f"{operation} response has no result list")
        return data

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "SubgraphDataSource":
        await self._get_session()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
