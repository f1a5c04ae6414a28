"""Sliding window counter.

Approximates a trailing window by weighting the previous fixed window's
count by the share of it that still overlaps the trailing window:

    estimate = previous * (1 - elapsed_fraction) + current

This assumes the previous window's requests were spread uniformly. The
resulting error is bounded but real, and is the price of keeping two
integers per identity instead of a full log.
"""

import math

from ratekeeper.limiters.base import RateLimiter
from ratekeeper.limiters.models import Strategy, WindowConfig


class SlidingWindowCounterLimiter(RateLimiter):
    """Two adjacent fixed-window counters (``counter:<identity>:<start>``).

    ``start`` is the window start in whole Unix seconds, so windows shorter
    than one second are rejected.
    """

    strategy = Strategy.SLIDING_COUNTER
    key_prefix = "counter"
    config_type = WindowConfig

    def window_key(self, identity: str, window_start: float) -> str:
        return f"{self.key(identity)}:{int(window_start)}"

    def retry_after(self, config: WindowConfig) -> float:
        return config.window

    @staticmethod
    def estimate(
        previous_count: int, current_count: int, elapsed_fraction: float
    ) -> float:
        """Weighted request count over the trailing window."""
        return previous_count * (1 - elapsed_fraction) + current_count

    def validate_config(self, config: WindowConfig) -> None:
        super().validate_config(config)
        if config.window < 1:
            raise ValueError(
                f"{type(self).__name__} needs a window of at least 1s, "
                f"got {config.window}"
            )

    async def _check(self, identity: str, config: WindowConfig) -> bool:
        now = await self._clock.now()
        window = config.window
        current_start = math.floor(now / window) * window
        previous_start = current_start - window

        current_key = self.window_key(identity, current_start)
        previous_key = self.window_key(identity, previous_start)

        current_count = await self._store.get_int(current_key) or 0
        previous_count = await self._store.get_int(previous_key) or 0

        elapsed_fraction = (now - current_start) / window
        if self.estimate(previous_count, current_count, elapsed_fraction) >= config.limit:
            return False

        # Read and increment are not atomic; concurrent callers may overshoot
        await self._store.incr(current_key)
        # Kept for two windows so it is still readable as "previous"
        await self._store.expire(current_key, window * 2)
        return True
