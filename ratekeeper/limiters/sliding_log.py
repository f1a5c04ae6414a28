"""Sliding window log.

Stores the timestamp of every admitted request in a sorted set and counts
those inside the trailing window. Exact, at the cost of one set member per
admitted request.
"""

import secrets

from ratekeeper.limiters.base import RateLimiter
from ratekeeper.limiters.models import Strategy, WindowConfig


class SlidingWindowLogLimiter(RateLimiter):
    """Sorted set of request timestamps (``log:<identity>``).

    Trim/count and add are separate store calls, so two concurrent callers
    can both see a stale count and both be admitted. The overshoot is bounded
    by request concurrency.
    """

    strategy = Strategy.SLIDING_LOG
    key_prefix = "log"
    config_type = WindowConfig

    def retry_after(self, config: WindowConfig) -> float:
        return config.window

    async def _check(self, identity: str, config: WindowConfig) -> bool:
        key = self.key(identity)
        now_ms = int((await self._clock.now()) * 1000)
        cutoff = now_ms - config.window_ms

        count = await self._store.trim_and_count(key, cutoff)
        if count >= config.limit:
            # Rejected attempts are not logged
            return False

        # Suffix keeps same-millisecond requests as distinct members
        member = f"{now_ms}-{secrets.token_hex(4)}"
        await self._store.add_member(key, now_ms, member)
        await self._store.expire(key, config.window)
        return True
