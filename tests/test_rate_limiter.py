"""Tests for the fixed-window rate limiter."""

import asyncio

import pytest

from app.auth.rate_limiter import RateLimiter


@pytest.fixture
def limiter(clock):
    return RateLimiter(limit=3, window_seconds=300, clock=clock)


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_unknown_key_is_not_limited(self, limiter):
        assert await limiter.is_limited("+14155550100") is False
        assert await limiter.retry_after("+14155550100") == 0

    @pytest.mark.asyncio
    async def test_exactly_limit_attempts_per_window(self, limiter):
        key = "+14155550100"
        for _ in range(3):
            assert await limiter.is_limited(key) is False
            await limiter.record_attempt(key)

        assert await limiter.is_limited(key) is True

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, limiter):
        for _ in range(3):
            await limiter.record_attempt("+14155550100")

        assert await limiter.is_limited("+14155550100") is True
        assert await limiter.is_limited("+14155550101") is False

    @pytest.mark.asyncio
    async def test_window_resets(self, limiter, clock):
        key = "phone_change:user-1"
        for _ in range(3):
            await limiter.record_attempt(key)

        clock.advance(299)
        assert await limiter.is_limited(key) is True

        clock.advance(1)
        assert await limiter.is_limited(key) is False
        # The stale entry is cleared, so a fresh window starts
        await limiter.record_attempt(key)
        assert await limiter.is_limited(key) is False

    @pytest.mark.asyncio
    async def test_attempts_do_not_extend_window(self, limiter, clock):
        key = "+14155550100"
        await limiter.record_attempt(key)
        clock.advance(200)
        await limiter.record_attempt(key)
        await limiter.record_attempt(key)

        assert await limiter.retry_after(key) == 100
        clock.advance(100)
        assert await limiter.is_limited(key) is False

    @pytest.mark.asyncio
    async def test_reset(self, limiter):
        key = "+14155550100"
        for _ in range(3):
            await limiter.record_attempt(key)

        await limiter.reset(key)
        assert await limiter.is_limited(key) is False

    @pytest.mark.asyncio
    async def test_evict_expired(self, limiter, clock):
        await limiter.record_attempt("+14155550100")
        clock.advance(150)
        await limiter.record_attempt("+14155550101")
        clock.advance(150)

        assert await limiter.evict_expired() == 1
        assert len(limiter) == 1
        assert await limiter.evict_expired() == 0

    @pytest.mark.asyncio
    async def test_try_acquire_counts_up_to_limit(self, limiter):
        key = "+14155550100"
        results = [await limiter.try_acquire(key) for _ in range(4)]

        assert results == [True, True, True, False]
        assert await limiter.is_limited(key) is True

    @pytest.mark.asyncio
    async def test_concurrent_try_acquire(self, limiter):
        results = await asyncio.gather(*(limiter.try_acquire("+14155550100") for _ in range(6)))

        assert results.count(True) == 3

    @pytest.mark.asyncio
    async def test_release_returns_slot(self, limiter):
        key = "+14155550100"
        for _ in range(3):
            await limiter.try_acquire(key)

        await limiter.release(key)
        assert await limiter.try_acquire(key) is True
        assert await limiter.try_acquire(key) is False

    @pytest.mark.asyncio
    async def test_release_last_slot_drops_entry(self, limiter):
        await limiter.try_acquire("+14155550100")
        await limiter.release("+14155550100")
        await limiter.release("+14155550100")

        assert len(limiter) == 0

    @pytest.mark.asyncio
    async def test_release_after_window_is_noop(self, limiter, clock):
        key = "+14155550100"
        await limiter.try_acquire(key)
        clock.advance(300)

        await limiter.release(key)
        assert len(limiter) == 1
        assert await limiter.evict_expired() == 1
