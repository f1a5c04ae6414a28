"""Rate limiting strategies.

Four independent strategies sharing the ``RateLimiter`` interface:
fixed window, sliding window log, sliding window counter and token bucket.
"""

from ratekeeper.limiters.base import RateLimiter
from ratekeeper.limiters.factory import create_limiter, get_clock
from ratekeeper.limiters.fixed_window import FixedWindowLimiter
from ratekeeper.limiters.models import (
    Decision,
    Strategy,
    TokenBucketConfig,
    WindowConfig,
)
from ratekeeper.limiters.sliding_counter import SlidingWindowCounterLimiter
from ratekeeper.limiters.sliding_log import SlidingWindowLogLimiter
from ratekeeper.limiters.token_bucket import TokenBucketLimiter

__all__ = [
    # Models
    "Decision",
    "Strategy",
    "TokenBucketConfig",
    "WindowConfig",
    # Limiters
    "RateLimiter",
    "FixedWindowLimiter",
    "SlidingWindowLogLimiter",
    "SlidingWindowCounterLimiter",
    "TokenBucketLimiter",
    # Factory
    "create_limiter",
    "get_clock",
]
