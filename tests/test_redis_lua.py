"""Limiters over RedisStore with fakeredis.

fakeredis executes the real Lua scripts and Redis commands in memory, so
these tests exercise exactly what production sends to Redis, without a
server.
"""

import asyncio

import fakeredis
import fakeredis.aioredis
import pytest
import pytest_asyncio

from ratekeeper.exceptions import MalformedStateError
from ratekeeper.limiters import (
    FixedWindowLimiter,
    SlidingWindowCounterLimiter,
    SlidingWindowLogLimiter,
    TokenBucketConfig,
    TokenBucketLimiter,
    WindowConfig,
)
from ratekeeper.store import RedisStore


@pytest_asyncio.fixture
async def redis_client():
    """Fakeredis client with its own server, so tests share no state."""
    client = fakeredis.aioredis.FakeRedis(
        server=fakeredis.FakeServer(), decode_responses=True
    )
    yield client
    await client.aclose()


@pytest.fixture
def redis_store(redis_client):
    return RedisStore(redis_client)


async def _run(limiter, config, count, identity="user:1"):
    return [(await limiter.allow(identity, config)).allowed for _ in range(count)]


class TestTokenBucketLua:
    """The token-bucket script as Redis runs it."""

    @pytest.fixture
    def limiter(self, redis_store, clock):
        return TokenBucketLimiter(redis_store, clock=clock, ttl_seconds=3600)

    @pytest.mark.asyncio
    async def test_burst_then_refill(self, limiter, clock):
        """capacity=5, rate=1/s: 5 pass, the 6th is denied, 1 more after 1s."""
        config = TokenBucketConfig(capacity=5, refill_rate=1.0)

        assert await _run(limiter, config, 6) == [True] * 5 + [False]

        clock.advance(1)
        assert await _run(limiter, config, 2) == [True, False]

    @pytest.mark.asyncio
    async def test_requests_faster_than_refill(self, limiter, clock):
        config = TokenBucketConfig(capacity=2, refill_rate=1.0)

        results = []
        for _ in range(8):
            results.append((await limiter.allow("user:1", config)).allowed)
            clock.advance(0.5)

        assert results == [True, True, True, False, True, False, True, False]

    @pytest.mark.asyncio
    async def test_denial_writes_nothing(self, limiter, redis_client, clock):
        config = TokenBucketConfig(capacity=1, refill_rate=0.1)
        await limiter.allow("user:1", config)
        before = await redis_client.hgetall("bucket:user:1")

        clock.advance(2)
        assert (await limiter.allow("user:1", config)).allowed is False

        assert await redis_client.hgetall("bucket:user:1") == before

    @pytest.mark.asyncio
    async def test_sets_cleanup_ttl(self, limiter, redis_client):
        await limiter.allow("user:1", TokenBucketConfig(5, 1.0))

        assert 3590 < await redis_client.ttl("bucket:user:1") <= 3600

    @pytest.mark.asyncio
    async def test_clock_behind_stored_stamp_gets_no_refill(
        self, limiter, redis_client, clock
    ):
        config = TokenBucketConfig(capacity=5, refill_rate=1.0)
        await _run(limiter, config, 5)

        clock.advance(-10)

        assert (await limiter.allow("user:1", config)).allowed is False
        assert float(await redis_client.hget("bucket:user:1", "tokens")) == 0.0

    @pytest.mark.asyncio
    async def test_last_refill_never_moves_backwards(
        self, limiter, redis_client, clock, t0
    ):
        config = TokenBucketConfig(capacity=5, refill_rate=1.0)
        await limiter.allow("user:1", config)

        clock.set(t0 - 5)
        assert (await limiter.allow("user:1", config)).allowed is True

        state = await redis_client.hgetall("bucket:user:1")
        assert float(state["last"]) == t0
        assert float(state["tokens"]) == 3.0

    @pytest.mark.asyncio
    async def test_concurrent_callers_never_share_a_token(self, limiter):
        config = TokenBucketConfig(capacity=5, refill_rate=0.01)

        decisions = await asyncio.gather(
            *(limiter.allow("user:1", config) for _ in range(20))
        )

        assert sum(d.allowed for d in decisions) == 5

    @pytest.mark.asyncio
    async def test_wrong_type_at_key_fails_closed(self, redis_store, redis_client, clock):
        await redis_client.set("bucket:user:1", "5")
        limiter = TokenBucketLimiter(redis_store, clock=clock, fail_closed=True)

        decision = await limiter.allow("user:1", TokenBucketConfig(5, 1.0))

        assert decision.allowed is False
        assert isinstance(decision.error, MalformedStateError)


class TestCorruptedBucketFields:
    """Unusable stored fields are treated as absent by both stores alike."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("fields", "expected"),
        [
            # last unusable: restamped to now, the 0 tokens get no refill
            ({"tokens": "0", "last": "nan"}, [False] * 4),
            ({"tokens": "0", "last": "inf"}, [False] * 4),
            ({"tokens": "0", "last": "-inf"}, [False] * 4),
            # tokens unusable: a full bucket of 2
            ({"tokens": "nan", "last": "T0"}, [True, True, False, False]),
            ({"tokens": "-inf", "last": "T0"}, [True, True, False, False]),
            ({"tokens": "inf", "last": "T0"}, [True, True, False, False]),
            ({"tokens": "abc", "last": "xyz"}, [True, True, False, False]),
        ],
    )
    async def test_redis_and_memory_agree(
        self, redis_store, redis_client, store, clock, t0, fields, expected
    ):
        fields = {
            name: repr(t0) if value == "T0" else value
            for name, value in fields.items()
        }
        config = TokenBucketConfig(capacity=2, refill_rate=0.001)

        await redis_client.hset("bucket:user:1", mapping=fields)
        await store.set_raw("bucket:user:1", dict(fields))

        over_redis = await _run(TokenBucketLimiter(redis_store, clock=clock), config, 4)
        over_memory = await _run(TokenBucketLimiter(store, clock=clock), config, 4)

        assert over_redis == expected
        assert over_memory == expected

    @pytest.mark.asyncio
    async def test_non_finite_last_is_not_written_back(
        self, redis_store, redis_client, clock, t0
    ):
        await redis_client.hset("bucket:user:1", mapping={"tokens": "5", "last": "nan"})
        limiter = TokenBucketLimiter(redis_store, clock=clock)

        assert (await limiter.allow("user:1", TokenBucketConfig(5, 1.0))).allowed is True

        assert float(await redis_client.hget("bucket:user:1", "last")) == t0


class TestWindowStrategiesOverRedis:
    """The window strategies' command sequences against Redis."""

    @pytest.mark.asyncio
    async def test_fixed_window(self, redis_store, redis_client, clock):
        limiter = FixedWindowLimiter(redis_store, clock=clock)
        config = WindowConfig(limit=3, window=10)

        assert await _run(limiter, config, 4) == [True, True, True, False]
        assert await redis_client.get("fixed:user:1") == "4"
        assert 0 < await redis_client.pttl("fixed:user:1") <= 10_000

    @pytest.mark.asyncio
    async def test_sliding_log_exact_trailing_count(self, redis_store, redis_client, clock, t0):
        limiter = SlidingWindowLogLimiter(redis_store, clock=clock)
        config = WindowConfig(limit=5, window=60)

        for t in (10, 15, 20, 25, 30):
            clock.set(t0 + t)
            assert (await limiter.allow("user:1", config)).allowed is True

        clock.set(t0 + 35)
        assert (await limiter.allow("user:1", config)).allowed is False
        assert await redis_client.zcard("log:user:1") == 5

        clock.set(t0 + 70)
        assert (await limiter.allow("user:1", config)).allowed is True
        assert await redis_client.zcard("log:user:1") == 5
        assert 0 < await redis_client.pttl("log:user:1") <= 60_000

    @pytest.mark.asyncio
    async def test_sliding_counter_boundary_smoothing(
        self, redis_store, redis_client, clock, t0
    ):
        limiter = SlidingWindowCounterLimiter(redis_store, clock=clock)
        config = WindowConfig(limit=10, window=10)
        current_key = f"counter:user:1:{int(t0)}"
        await redis_client.set(f"counter:user:1:{int(t0) - 10}", "12")
        await redis_client.set(current_key, "3")
        clock.set(t0 + 5)

        assert (await limiter.allow("user:1", config)).allowed is True
        assert await redis_client.get(current_key) == "4"

        await redis_client.set(current_key, "9")
        assert (await limiter.allow("user:1", config)).allowed is False
        assert await redis_client.get(current_key) == "9"

    @pytest.mark.asyncio
    async def test_sliding_log_on_wrong_type_fails_closed(
        self, redis_store, redis_client, clock
    ):
        await redis_client.set("log:user:1", "x")
        limiter = SlidingWindowLogLimiter(redis_store, clock=clock, fail_closed=True)

        decision = await limiter.allow("user:1", WindowConfig(limit=5, window=10))

        assert decision.allowed is False
        assert isinstance(decision.error, MalformedStateError)
