from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from core.services.circuit_breaker import CircuitBreaker, CircuitState
from core.services.exceptions import CircuitOpenError, ProviderUnavailable
from tests.helpers import FakeClock


def breaker(clock, **kwargs):
    kwargs.setdefault("failure_threshold", 2)
    kwargs.setdefault("recovery_timeout", 30)
    return CircuitBreaker("feed", clock=clock, **kwargs)


async def fail_times(cb, n):
    for _ in range(n):
        with pytest.raises(RuntimeError):
            await cb.call(AsyncMock(side_effect=RuntimeError("down")))


class TestClosed:
    @pytest.mark.asyncio
    async def test_passes_calls_through(self):
        cb = breaker(FakeClock())
        func = AsyncMock(return_value=42)
        assert await cb.call(func, "a", k=1) == 42
        func.assert_awaited_once_with("a", k=1)
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        cb = breaker(FakeClock())
        await fail_times(cb, 1)
        await cb.call(AsyncMock(return_value=1))
        await fail_times(cb, 1)
        assert cb.state == CircuitState.CLOSED


class TestOpen:
    @pytest.mark.asyncio
    async def test_opens_at_threshold_and_blocks(self):
        cb = breaker(FakeClock())
        await fail_times(cb, 2)
        assert cb.state == CircuitState.OPEN
        assert cb.is_healthy() is False

        func = AsyncMock(return_value=1)
        with pytest.raises(CircuitOpenError) as err:
            await cb.call(func)
        func.assert_not_awaited()
        assert isinstance(err.value, ProviderUnavailable)
        assert cb.status()["blocked_calls"] == 1

    @pytest.mark.asyncio
    async def test_stays_open_until_recovery_timeout(self):
        clock = FakeClock()
        cb = breaker(clock)
        await fail_times(cb, 2)
        clock.advance(29)
        assert cb.state == CircuitState.OPEN


class TestHalfOpen:
    @pytest.mark.asyncio
    async def test_half_open_after_timeout_then_closes(self):
        clock = FakeClock()
        cb = breaker(clock)
        await fail_times(cb, 2)
        clock.advance(30)
        assert cb.state == CircuitState.HALF_OPEN

        assert await cb.call(AsyncMock(return_value="ok")) == "ok"
        assert cb.state == CircuitState.CLOSED
        assert cb.status()["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_failure_in_half_open_reopens(self):
        clock = FakeClock()
        cb = breaker(clock)
        await fail_times(cb, 2)
        clock.advance(30)
        await fail_times(cb, 1)
        assert cb.state == CircuitState.OPEN

        clock.advance(29)
        assert cb.state == CircuitState.OPEN
        clock.advance(1)
        assert cb.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_needs_enough_trial_successes(self):
        clock = FakeClock()
        cb = breaker(clock, half_open_successes=3)
        await fail_times(cb, 2)
        clock.advance(30)
        for _ in range(2):
            await cb.call(AsyncMock(return_value=1))
        assert cb.state == CircuitState.HALF_OPEN
        await cb.call(AsyncMock(return_value=1))
        assert cb.state == CircuitState.CLOSED


def test_reset_and_status():
    cb = breaker(FakeClock())
    cb._on_failure()
    cb._on_failure()
    assert cb.status()["state"] == "open"
    cb.reset()
    status = cb.status()
    assert status["state"] == "closed"
    assert status["failed_calls"] == 0
    assert status["name"] == "feed"


@pytest.mark.asyncio
async def test_timed_out_calls_count_as_failures():
    cb = breaker(FakeClock(), failure_threshold=1)

    async def hang():
        await asyncio.sleep(10)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(cb.call(hang), timeout=0.01)
    assert cb.state == CircuitState.OPEN
