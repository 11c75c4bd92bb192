"""Resilience helpers for embedding and generation provider calls.

- CircuitBreaker (CLOSED → OPEN → HALF_OPEN → CLOSED) with a per-call timeout
- retry_with_backoff for transient HTTP failures of REST providers
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable

import httpx

from newsrag.exceptions import NewsRAGError

logger = logging.getLogger(__name__)


# ── Circuit Breaker ──

class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(NewsRAGError):
    """A provider call was skipped because its circuit is open."""

    def __init__(self, name: str, retry_in: float):
        super().__init__(f"Circuit '{name}' is OPEN (retry in {retry_in:.0f}s)")
        self.name = name
        self.retry_in = retry_in


class CircuitBreaker:
    """Guard one provider.

    failure_threshold consecutive failures open the circuit for open_timeout
    seconds; the next call after that is a single HALF_OPEN trial. A call that
    exceeds its timeout counts as a failure like any other.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        open_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.open_timeout = open_timeout
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: float | None = None

    def retry_in(self) -> float:
        """Seconds until an open circuit lets a trial call through."""
        if self.state != CircuitState.OPEN or self.opened_at is None:
            return 0.0
        return max(0.0, self.open_timeout - (self._clock() - self.opened_at))

    def _should_allow(self) -> bool:
        if self.state == CircuitState.OPEN:
            if self.retry_in() > 0:
                return False
            self.state = CircuitState.HALF_OPEN
            logger.info("Circuit %s: OPEN → HALF_OPEN", self.name)
        return True

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = self._clock()

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info("Circuit %s: HALF_OPEN → CLOSED", self.name)
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN:
            self._open()
            logger.warning("Circuit %s: HALF_OPEN → OPEN", self.name)
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            self._open()
            logger.warning("Circuit %s: CLOSED → OPEN (failures=%d)", self.name, self.failure_count)

    async def call(
        self, func: Callable[..., Any], *args: Any, timeout: float | None = None, **kwargs: Any,
    ) -> Any:
        """Await func(*args, **kwargs) through the breaker, bounded by timeout seconds."""
        if not self._should_allow():
            raise CircuitOpenError(self.name, self.retry_in())

        try:
            if timeout is None:
                result = await func(*args, **kwargs)
            else:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


# ── Retry with Exponential Backoff ──

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


async def retry_with_backoff(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = 3,
    backoff_base: float = 1.0,
    backoff_factor: float = 2.0,
    retryable_exceptions: tuple = (httpx.HTTPStatusError, httpx.TransportError),
    **kwargs: Any,
) -> Any:
    """Await func, retrying transport errors and 429/5xx responses.

    Delay before retry n (0-based) is backoff_base * backoff_factor ** n.
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as exc:
            if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code not in RETRYABLE_STATUS_CODES:
                raise
            if attempt == max_retries:
                logger.error("Giving up after %d retries: %s", max_retries, exc)
                raise
            delay = backoff_base * (backoff_factor ** attempt)
            logger.warning("Retry %d/%d in %.1fs: %s", attempt + 1, max_retries, delay, exc)
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")
