"""
Async helpers for the search fan-out and the source adapters.

- backoff_delay: wait before the next retry of a rate-limited request
- gather_with_errors: run searches side by side, one failure per slot
- timeout_with_fallback: bound a single search call
- CircuitBreaker: stop hammering a source that keeps failing
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from .exceptions import ErrorContext, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BACKOFF_SECONDS = 30.0


def backoff_delay(attempt: int, base_delay: float, retry_after: float | None = None) -> float:
    """
    Seconds to wait before retry ``attempt`` (1-based).

    Retry-After from the server is honoured when present; otherwise the delay
    grows linearly with the attempt number. Both are capped.
    """
    if retry_after is None or retry_after < 0:
        delay = base_delay * attempt
    else:
        delay = retry_after
    return min(delay, MAX_BACKOFF_SECONDS)


async def gather_with_errors(
    *coros: Awaitable[T],
    return_exceptions: bool = False,
) -> list[T | Exception]:
    """
    Await all coroutines concurrently inside one TaskGroup.

    With ``return_exceptions=True`` an exception lands in the slot of the call
    that raised it and the other calls keep running. Without it the first
    failure cancels the group.

    Example:
        results = await gather_with_errors(
            s2.search("crispr", 7),
            arxiv.search("crispr", 7),
            return_exceptions=True,
        )
    """

    async def captured(coro: Awaitable[T]) -> T | Exception:
        try:
            return await coro
        except Exception as e:
            return e

    async with asyncio.TaskGroup() as tg:
        tasks = [tg.create_task(captured(c) if return_exceptions else c) for c in coros]  # type: ignore[arg-type]
    return [task.result() for task in tasks]


async def timeout_with_fallback(
    coro: Awaitable[T],
    timeout: float,
    fallback: T | Callable[[], T],
) -> T:
    """
    Await ``coro`` for at most ``timeout`` seconds.

    On timeout the fallback is returned, or called when it is callable (a
    callable may raise instead, to turn the timeout into an error).
    """
    try:
        async with asyncio.timeout(timeout):
            return await coro
    except TimeoutError:
        return fallback() if callable(fallback) else fallback


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Per-source circuit breaker.

    After ``failure_threshold`` consecutive failures the breaker opens and
    every call is refused with RateLimitError for ``recovery_timeout``
    seconds. Then a single trial call is let through: success closes the
    breaker, failure opens it again.

    Example:
        breaker = CircuitBreaker(name="arXiv", failure_threshold=5)

        async with breaker:
            response = await client.get(url)
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    name: str = "source"

    _state: BreakerState = field(init=False, default=BreakerState.CLOSED)
    _failures: int = field(init=False, default=0)
    _opened_at: float = field(init=False, default=0.0)
    _trial_task: asyncio.Task[Any] | None = field(init=False, default=None)

    @property
    def state(self) -> BreakerState:
        return self._state

    def _refuse(self, retry_after: float) -> RateLimitError:
        return RateLimitError(
            f"{self.name}: circuit breaker is {self._state.value}",
            retry_after=retry_after,
            context=ErrorContext(source=self.name),
        )

    async def __aenter__(self) -> CircuitBreaker:
        if self._state is BreakerState.OPEN:
            waited = time.monotonic() - self._opened_at
            if waited < self.recovery_timeout:
                raise self._refuse(self.recovery_timeout - waited)
            self._state = BreakerState.HALF_OPEN

        if self._state is BreakerState.HALF_OPEN:
            if self._trial_task is not None:
                raise self._refuse(self.recovery_timeout)
            self._trial_task = asyncio.current_task()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        trial = self._trial_task is not None and self._trial_task is asyncio.current_task()
        if trial:
            self._trial_task = None
        elif self._state is not BreakerState.CLOSED:
            # Entered before the breaker opened; only the trial call settles it
            return

        if exc_val is None:
            if trial:
                logger.info(f"{self.name}: circuit breaker closed again")
            self._state = BreakerState.CLOSED
            self._failures = 0
            return

        self._failures += 1
        if trial or self._failures >= self.failure_threshold:
            self._state = BreakerState.OPEN
            self._opened_at = time.monotonic()
            logger.warning(f"{self.name}: circuit breaker opened after {self._failures} failures")
