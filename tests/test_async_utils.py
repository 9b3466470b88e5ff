"""Tests for async_utils.py - RateLimiter, gather_settled, CircuitBreaker."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from publication_search.core.async_utils import CircuitBreaker, RateLimiter, gather_settled
from publication_search.core.exceptions import RateLimitError


async def value_after(value, delay: float = 0.0):
    await asyncio.sleep(delay)
    return value


async def boom():
    raise ValueError("boom")


async def fail(breaker: CircuitBreaker) -> None:
    with pytest.raises(ValueError):
        async with breaker:
            raise ValueError("upstream down")


# ============================================================
# RateLimiter
# ============================================================


class TestRateLimiter:
    async def test_acquire_consumes_token(self):
        rl = RateLimiter(rate=10.0, per=1.0)
        await rl.acquire()
        assert rl._tokens < 10.0

    async def test_context_manager(self):
        rl = RateLimiter(rate=10.0)
        async with rl as entered:
            assert entered is rl

    async def test_waits_when_drained(self):
        rl = RateLimiter(rate=1.0, per=1.0)
        with patch("publication_search.core.async_utils.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await rl.acquire()
            await rl.acquire()

        mock_sleep.assert_awaited_once()
        assert mock_sleep.await_args.args[0] > 0.9


# ============================================================
# gather_settled
# ============================================================


class TestGatherSettled:
    async def test_keeps_positional_order(self):
        results = await gather_settled(value_after("slow", 0.02), value_after("fast"))
        assert results == ["slow", "fast"]

    async def test_exception_captured_not_raised(self):
        results = await gather_settled(value_after("ok", 0.01), boom(), value_after(3))
        assert results[0] == "ok"
        assert isinstance(results[1], ValueError)
        assert results[2] == 3

    async def test_no_branches(self):
        assert await gather_settled() == []


# ============================================================
# CircuitBreaker
# ============================================================


class TestCircuitBreaker:
    async def test_starts_closed(self):
        breaker = CircuitBreaker()
        async with breaker:
            pass
        assert breaker.state == "closed"
        assert not breaker.is_open

    async def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0)
        await fail(breaker)
        assert breaker.state == "closed"
        await fail(breaker)

        assert breaker.state == "open"
        with pytest.raises(RateLimitError, match="open") as exc_info:
            async with breaker:
                pass
        assert exc_info.value.context.retry_after == 60.0

    async def test_success_decays_failures(self):
        breaker = CircuitBreaker(failure_threshold=2)
        await fail(breaker)
        async with breaker:
            pass
        await fail(breaker)
        assert breaker.state == "closed"

    async def test_half_open_recovery(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0)
        await fail(breaker)
        assert breaker.state == "open"

        async with breaker:
            assert breaker.state == "half_open"
        assert breaker.state == "closed"

    async def test_half_open_call_limit(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0, half_open_max_calls=1)
        await fail(breaker)

        async with breaker:
            with pytest.raises(RateLimitError, match="max calls"):
                async with breaker:
                    pass
        assert breaker.state == "closed"
