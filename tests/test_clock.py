"""Tests for the time sources."""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ratekeeper.core.clock import ManualClock, RedisServerClock, SystemClock
from ratekeeper.exceptions import StoreUnavailableError


class TestManualClock:
    @pytest.mark.asyncio
    async def test_advance_and_set(self):
        clock = ManualClock(start=100)

        assert await clock.now() == 100.0
        clock.advance(2.5)
        assert await clock.now() == 102.5
        clock.set(50)
        assert await clock.now() == 50.0


class TestSystemClock:
    @pytest.mark.asyncio
    async def test_tracks_wall_clock(self):
        before = time.time()
        now = await SystemClock().now()

        assert before <= now <= time.time()


class TestRedisServerClock:
    @pytest.mark.asyncio
    async def test_combines_seconds_and_microseconds(self):
        redis = MagicMock()
        redis.time = AsyncMock(return_value=(1_700_000_000, 250_000))

        assert await RedisServerClock(redis).now() == 1_700_000_000.25

    @pytest.mark.asyncio
    async def test_failure_raises_store_unavailable(self):
        redis = MagicMock()
        redis.time = AsyncMock(side_effect=RedisConnectionError("down"))

        with pytest.raises(StoreUnavailableError) as exc_info:
            await RedisServerClock(redis).now()

        assert exc_info.value.operation == "TIME"

    @pytest.mark.asyncio
    async def test_limiter_applies_policy_when_clock_fails(self):
        from ratekeeper.limiters import SlidingWindowLogLimiter, WindowConfig
        from ratekeeper.store import InMemoryStore

        redis = MagicMock()
        redis.time = AsyncMock(side_effect=RedisConnectionError("down"))
        limiter = SlidingWindowLogLimiter(
            InMemoryStore(), clock=RedisServerClock(redis), fail_closed=True
        )

        decision = await limiter.allow("user:1", WindowConfig(limit=5, window=10))

        assert decision.allowed is False
        assert isinstance(decision.error, StoreUnavailableError)
