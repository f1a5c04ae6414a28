"""Fixed window counter.

One counter per identity that lives for one window after its first
increment. Simple and cheap, but a burst straddling two windows can admit up
to twice the limit in less than one window.
"""

from ratekeeper.limiters.base import RateLimiter
from ratekeeper.limiters.models import Strategy, WindowConfig


class FixedWindowLimiter(RateLimiter):
    """Counter reset at window expiry (``fixed:<identity>``)."""

    strategy = Strategy.FIXED_WINDOW
    key_prefix = "fixed"
    config_type = WindowConfig

    def retry_after(self, config: WindowConfig) -> float:
        return config.window

    async def _check(self, identity: str, config: WindowConfig) -> bool:
        key = self.key(identity)
        count = await self._store.incr(key)

        # The first increment opens the window. If we die before the
        # EXPIRE lands the key has no TTL; accepted.
        if count == 1:
            await self._store.expire(key, config.window)

        return count <= config.limit
