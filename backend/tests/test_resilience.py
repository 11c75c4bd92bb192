"""Tests for the circuit breaker and retry helper."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from newsrag.exceptions import NewsRAGError
from newsrag.integrations.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    retry_with_backoff,
)

from tests.conftest import FakeClock


# ═══════════════════════════════════════════════════════
# Circuit Breaker Tests
# ═══════════════════════════════════════════════════════


class TestCircuitBreaker:
    def test_initial_state_is_closed(self):
        cb = CircuitBreaker("test")
        assert cb.state == CircuitState.CLOSED

    async def test_success_keeps_closed(self):
        cb = CircuitBreaker("test")
        result = await cb.call(AsyncMock(return_value="ok"))
        assert result == "ok"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    async def test_failures_open_circuit(self):
        cb = CircuitBreaker("test", failure_threshold=3)
        failing = AsyncMock(side_effect=Exception("fail"))

        for _ in range(3):
            with pytest.raises(Exception, match="fail"):
                await cb.call(failing)

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 3

    async def test_open_circuit_blocks_calls(self):
        cb = CircuitBreaker("test", failure_threshold=1, open_timeout=30)

        with pytest.raises(Exception):
            await cb.call(AsyncMock(side_effect=Exception("fail")))

        assert cb.state == CircuitState.OPEN

        trial = AsyncMock(return_value="ok")
        with pytest.raises(CircuitOpenError):
            await cb.call(trial)
        trial.assert_not_called()

    async def test_half_open_after_timeout(self):
        clock = FakeClock()
        cb = CircuitBreaker("test", failure_threshold=1, open_timeout=30, clock=clock)

        with pytest.raises(Exception):
            await cb.call(AsyncMock(side_effect=Exception("fail")))
        assert cb.state == CircuitState.OPEN

        clock.advance(30)

        result = await cb.call(AsyncMock(return_value="recovered"))
        assert result == "recovered"
        assert cb.state == CircuitState.CLOSED

    async def test_half_open_failure_reopens(self):
        clock = FakeClock()
        cb = CircuitBreaker("test", failure_threshold=1, open_timeout=30, clock=clock)

        with pytest.raises(Exception):
            await cb.call(AsyncMock(side_effect=Exception("fail")))
        clock.advance(31)

        with pytest.raises(Exception, match="still failing"):
            await cb.call(AsyncMock(side_effect=Exception("still failing")))

        assert cb.state == CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            await cb.call(AsyncMock(return_value="ok"))

    async def test_success_resets_failure_count(self):
        cb = CircuitBreaker("test", failure_threshold=3)
        with pytest.raises(Exception):
            await cb.call(AsyncMock(side_effect=Exception("fail")))
        await cb.call(AsyncMock(return_value="ok"))
        assert cb.failure_count == 0

    async def test_timeout_counts_as_failure(self):
        cb = CircuitBreaker("test", failure_threshold=1)

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(asyncio.TimeoutError):
            await cb.call(slow, timeout=0.01)

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 1

    async def test_open_error_reports_retry_delay(self):
        clock = FakeClock()
        cb = CircuitBreaker("embedding:jina", failure_threshold=1, open_timeout=30, clock=clock)
        with pytest.raises(Exception):
            await cb.call(AsyncMock(side_effect=Exception("fail")))
        clock.advance(10)

        with pytest.raises(CircuitOpenError, match="embedding:jina") as exc_info:
            await cb.call(AsyncMock(return_value="ok"))

        assert exc_info.value.retry_in == pytest.approx(20)
        assert isinstance(exc_info.value, NewsRAGError)


# ═══════════════════════════════════════════════════════
# Retry Tests
# ═══════════════════════════════════════════════════════


def _status_error(code: int) -> httpx.HTTPStatusError:
    return httpx.HTTPStatusError("", request=MagicMock(), response=MagicMock(status_code=code))


class TestRetryWithBackoff:
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")
        result = await retry_with_backoff(func, max_retries=3, backoff_base=0.01)
        assert result == "ok"
        assert func.call_count == 1

    async def test_retry_on_failure_then_success(self):
        func = AsyncMock(side_effect=[_status_error(500), "success"])
        result = await retry_with_backoff(func, max_retries=3, backoff_base=0.01)
        assert result == "success"
        assert func.call_count == 2

    async def test_max_retries_exceeded(self):
        func = AsyncMock(side_effect=_status_error(502))
        with pytest.raises(httpx.HTTPStatusError):
            await retry_with_backoff(func, max_retries=2, backoff_base=0.01)
        assert func.call_count == 3  # initial + 2 retries

    async def test_non_retryable_status_fails_immediately(self):
        func = AsyncMock(side_effect=_status_error(400))
        with pytest.raises(httpx.HTTPStatusError):
            await retry_with_backoff(func, max_retries=3, backoff_base=0.01)
        assert func.call_count == 1

    async def test_retry_on_transport_error(self):
        func = AsyncMock(side_effect=[httpx.ConnectError("refused"), "ok"])
        assert await retry_with_backoff(func, max_retries=1, backoff_base=0.01) == "ok"

    async def test_other_exceptions_not_retried(self):
        func = AsyncMock(side_effect=KeyError("data"))
        with pytest.raises(KeyError):
            await retry_with_backoff(func, max_retries=3, backoff_base=0.01)
        assert func.call_count == 1

    async def test_arguments_forwarded(self):
        func = AsyncMock(return_value="ok")
        await retry_with_backoff(func, "a", max_retries=0, key="b")
        func.assert_awaited_once_with("a", key="b")
