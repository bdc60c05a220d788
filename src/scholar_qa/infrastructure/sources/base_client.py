"""
BaseSourceAdapter - shared HTTP plumbing of the academic search adapters.

One adapter instance serves every search term of a request concurrently, so
request spacing is enforced under a lock. Each GET goes through:

    spacing → circuit breaker → httpx GET → 429 / transport retry → parse

Whatever goes wrong surfaces as SourceUnavailableError carrying the source
name. The aggregator absorbs it as one failed call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from typing_extensions import Self

from scholar_qa.domain.entities import PaperRecord
from scholar_qa.shared.async_utils import CircuitBreaker, backoff_delay
from scholar_qa.shared.exceptions import RateLimitError, SourceUnavailableError

logger = logging.getLogger(__name__)


class _Retry(Exception):
    """Internal signal: the attempt may be repeated after ``delay`` seconds."""

    def __init__(self, reason: str, delay: float) -> None:
        super().__init__(reason)
        self.delay = delay


class BaseSourceAdapter:
    """
    Base class for the search adapters.

    Subclasses set ``source_name`` and implement ``search(query, limit)``
    returning PaperRecords.

    Example:
        class ExampleAdapter(BaseSourceAdapter):
            source_name = "Example"

            def __init__(self):
                super().__init__(base_url="https://api.example.org", min_interval=0.2)

            async def search(self, query: str, limit: int) -> list[PaperRecord]:
                data = await self._make_request("/search", params={"q": query, "limit": limit})
                return [PaperRecord.build(source=self.source_name, **item) for item in data["items"]]
    """

    source_name: str = "API"

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """
        Args:
            base_url: Prefix for relative request paths
            timeout: Per-request timeout in seconds
            min_interval: Minimum spacing between two requests to this source
            headers: Headers sent with every request (API keys)
            max_retries: Extra attempts after a 429 or a transport error
            base_delay: Linear backoff step in seconds
            circuit_breaker: Defaults to 10 failures / 60 s recovery
        """
        self._base_url = base_url.rstrip("/")
        self._min_interval = min_interval
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._next_slot = 0.0
        self._spacing_lock = asyncio.Lock()
        self._breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=10,
            recovery_timeout=60.0,
            name=self.source_name,
        )
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=headers or {},
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    async def search(self, query: str, limit: int) -> list[PaperRecord]:
        """Search the source. Raises SourceUnavailableError on failure."""
        raise NotImplementedError

    # =========================================================================
    # Requests
    # =========================================================================

    def _unavailable(self, message: str) -> SourceUnavailableError:
        return SourceUnavailableError(message, source=self.source_name)

    async def _wait_for_slot(self) -> None:
        async with self._spacing_lock:
            wait = self._next_slot - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._next_slot = time.monotonic() + self._min_interval

    async def _make_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """
        GET ``url`` (absolute, or relative to ``base_url``) and parse the body.

        Returns:
            Decoded JSON, or the body text when ``expect_json`` is False

        Raises:
            SourceUnavailableError: error status, unparseable body, open
                breaker, or retries used up
        """
        if not url.startswith(("http://", "https://")):
            url = f"{self._base_url}{url}"

        attempt = 0
        while True:
            attempt += 1
            await self._wait_for_slot()
            try:
                response = await self._attempt(url, params, headers, attempt)
            except _Retry as retry:
                logger.warning(
                    f"{self.source_name}: {retry}, retry {attempt}/{self._max_retries} in {retry.delay:.1f}s"
                )
                await asyncio.sleep(retry.delay)
                continue
            return self._parse_response(response, expect_json)

    async def _attempt(
        self,
        url: str,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        attempt: int,
    ) -> httpx.Response:
        can_retry = attempt <= self._max_retries
        try:
            async with self._breaker:
                response = await self._client.get(url, params=params, headers=headers or {})
                if response.status_code != 429:
                    response.raise_for_status()
                    return response
                if not can_retry:
                    raise self._unavailable("Rate limit exceeded after retries")
        except RateLimitError as e:
            raise self._unavailable(str(e)) from e
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.source_name}: HTTP {e.response.status_code} for {url}")
            raise self._unavailable(f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            if can_retry:
                raise _Retry(f"request error ({type(e).__name__})", backoff_delay(attempt, self._base_delay)) from e
            logger.error(f"{self.source_name}: request failed after {attempt} attempts: {e}")
            raise self._unavailable(f"Request failed: {e}") from e

        raise _Retry("rate limited (429)", backoff_delay(attempt, self._base_delay, self._retry_after(response)))

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        if not expect_json:
            return response.text
        try:
            return response.json()
        except ValueError as e:
            raise self._unavailable(f"Unparseable response body: {e}") from e

    @staticmethod
    def _retry_after(response: httpx.Response) -> float | None:
        """Retry-After in seconds; HTTP-date values are ignored."""
        try:
            return float(response.headers["Retry-After"])
        except (KeyError, ValueError):
            return None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
