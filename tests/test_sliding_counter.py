"""Tests for the sliding window counter."""

import pytest

from ratekeeper.exceptions import MalformedStateError
from ratekeeper.limiters import SlidingWindowCounterLimiter, WindowConfig


@pytest.fixture
def limiter(store, clock):
    return SlidingWindowCounterLimiter(store, clock=clock)


class TestEstimate:
    """The weighted count itself."""

    def test_half_way_weights_previous_window_by_half(self):
        assert SlidingWindowCounterLimiter.estimate(12, 3, 0.5) == 9
        assert SlidingWindowCounterLimiter.estimate(12, 9, 0.5) == 15

    def test_window_start_counts_previous_in_full(self):
        assert SlidingWindowCounterLimiter.estimate(4, 2, 0.0) == 6


class TestSlidingWindowCounterLimiter:
    """Admit/deny decisions against seeded counters."""

    @pytest.mark.asyncio
    async def test_boundary_smoothing_admits_below_limit(self, limiter, store, clock, t0):
        """limit=10, previous=12, current=3 at 50%: 9 < 10 -> admitted."""
        clock.set(t0 + 5)
        await store.set_raw(f"counter:user:1:{int(t0)}", "3")
        await store.set_raw(f"counter:user:1:{int(t0) - 10}", "12")

        decision = await limiter.allow("user:1", WindowConfig(limit=10, window=10))

        assert decision.allowed is True
        assert await store.get_raw(f"counter:user:1:{int(t0)}") == "4"

    @pytest.mark.asyncio
    async def test_boundary_smoothing_denies_at_limit(self, limiter, store, clock, t0):
        """limit=10, previous=12, current=9 at 50%: 15 >= 10 -> denied, no write."""
        clock.set(t0 + 5)
        await store.set_raw(f"counter:user:1:{int(t0)}", "9")
        await store.set_raw(f"counter:user:1:{int(t0) - 10}", "12")

        decision = await limiter.allow("user:1", WindowConfig(limit=10, window=10))

        assert decision.allowed is False
        assert await store.get_raw(f"counter:user:1:{int(t0)}") == "9"

    @pytest.mark.asyncio
    async def test_previous_window_limits_next_window(self, limiter, clock, t0):
        """A full previous window leaves only part of the limit for the next one."""
        config = WindowConfig(limit=5, window=10)
        clock.set(t0 + 1)
        first = [(await limiter.allow("user:1", config)).allowed for _ in range(6)]
        assert first == [True] * 5 + [False]

        # 50% into the next window: 5 * 0.5 = 2.5 carried over
        clock.set(t0 + 15)
        second = [(await limiter.allow("user:1", config)).allowed for _ in range(5)]

        assert second == [True, True, True, False, False]

    @pytest.mark.asyncio
    async def test_counter_kept_for_two_windows(self, limiter, store, t0):
        await limiter.allow("user:1", WindowConfig(limit=5, window=10))

        assert await store.ttl(f"counter:user:1:{int(t0)}") == pytest.approx(20)

    @pytest.mark.asyncio
    async def test_old_windows_do_not_count(self, limiter, clock, t0):
        """Counts two windows back carry no weight."""
        config = WindowConfig(limit=2, window=10)
        for _ in range(2):
            await limiter.allow("user:1", config)

        clock.set(t0 + 20)

        assert (await limiter.allow("user:1", config)).allowed is True
        assert (await limiter.allow("user:1", config)).allowed is True

    @pytest.mark.asyncio
    async def test_corrupted_previous_counter_is_treated_as_zero(
        self, limiter, store, clock, t0
    ):
        clock.set(t0 + 5)
        await store.set_raw(f"counter:user:1:{int(t0) - 10}", "not-a-number")

        decision = await limiter.allow("user:1", WindowConfig(limit=1, window=10))

        assert decision.allowed is True
        assert decision.error is None

    @pytest.mark.asyncio
    async def test_corrupted_current_counter_fails_closed(self, limiter, store, t0):
        """The read tolerates garbage but INCR cannot, so the policy applies."""
        await store.set_raw(f"counter:user:1:{int(t0)}", "garbage")

        decision = await limiter.allow("user:1", WindowConfig(limit=5, window=10))

        assert decision.allowed is False
        assert isinstance(decision.error, MalformedStateError)

    @pytest.mark.asyncio
    async def test_rejects_sub_second_windows(self, limiter):
        with pytest.raises(ValueError):
            await limiter.allow("user:1", WindowConfig(limit=5, window=0.5))

    def test_validate_config_rejects_sub_second_windows_up_front(self, limiter):
        limiter.validate_config(WindowConfig(limit=5, window=1))

        with pytest.raises(ValueError, match="at least 1s"):
            limiter.validate_config(WindowConfig(limit=5, window=0.25))

    @pytest.mark.asyncio
    async def test_rejected_config_never_touches_the_store(self, limiter, store):
        with pytest.raises(ValueError):
            await limiter.allow("user:1", WindowConfig(limit=5, window=0.5))

        assert store._data == {}
