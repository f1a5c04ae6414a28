"""Token bucket.

A bucket holds up to ``capacity`` tokens and refills continuously at
``refill_rate`` tokens per second. Each admitted request spends one token, so
an idle caller can burst up to ``capacity`` requests instantly and is then
throttled to the refill rate.

The refill-then-spend sequence is a floating-point read-modify-write; it runs
as a single atomic store script so concurrent callers cannot spend the same
token twice.
"""

import math
from typing import Optional

from ratekeeper.core.clock import Clock
from ratekeeper.core.config import settings
from ratekeeper.exceptions import MalformedStateError
from ratekeeper.limiters.base import RateLimiter
from ratekeeper.limiters.models import Strategy, TokenBucketConfig
from ratekeeper.store.base import Store
from ratekeeper.store.scripts import TOKEN_BUCKET_SCRIPT


class TokenBucketLimiter(RateLimiter):
    """Hash of ``tokens``/``last`` per identity (``bucket:<identity>``)."""

    strategy = Strategy.TOKEN_BUCKET
    key_prefix = "bucket"
    config_type = TokenBucketConfig

    def __init__(
        self,
        store: Store,
        clock: Optional[Clock] = None,
        fail_closed: Optional[bool] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        super().__init__(store, clock=clock, fail_closed=fail_closed)
        self.ttl_seconds = ttl_seconds or settings.token_bucket_ttl_seconds

    def retry_after(self, config: TokenBucketConfig) -> float:
        return float(math.ceil(config.seconds_per_token))

    async def _check(self, identity: str, config: TokenBucketConfig) -> bool:
        key = self.key(identity)
        now = await self._clock.now()

        result = await self._store.run_script(
            TOKEN_BUCKET_SCRIPT,
            keys=[key],
            args=[
                float(config.capacity),
                float(config.refill_rate),
                float(now),
                int(self.ttl_seconds),
            ],
        )

        # Lua integers come back as Python ints; anything else is a bug in
        # the script or a proxy mangling replies
        if isinstance(result, bool) or not isinstance(result, int) or result not in (0, 1):
            raise MalformedStateError(key, result)
        return result == 1
