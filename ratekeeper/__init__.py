"""Distributed rate limiting backed by a shared Redis store.

Example:
    >>> from ratekeeper import RedisStore, TokenBucketLimiter, TokenBucketConfig
    >>> limiter = TokenBucketLimiter(RedisStore.from_url("redis://localhost:6379/0"))
    >>> decision = await limiter.allow("user:123", TokenBucketConfig(5, 1.0))
"""

from ratekeeper.core.clock import Clock, ManualClock, RedisServerClock, SystemClock
from ratekeeper.exceptions import (
    MalformedStateError,
    RateLimitError,
    RateLimitExceeded,
    StoreError,
    StoreUnavailableError,
)
from ratekeeper.limiters import (
    Decision,
    FixedWindowLimiter,
    RateLimiter,
    SlidingWindowCounterLimiter,
    SlidingWindowLogLimiter,
    Strategy,
    TokenBucketConfig,
    TokenBucketLimiter,
    WindowConfig,
    create_limiter,
)
from ratekeeper.store import InMemoryStore, RedisStore, Store, get_store, reset_store

__version__ = "0.1.0"

__all__ = [
    "Clock",
    "ManualClock",
    "RedisServerClock",
    "SystemClock",
    "MalformedStateError",
    "RateLimitError",
    "RateLimitExceeded",
    "StoreError",
    "StoreUnavailableError",
    "Decision",
    "FixedWindowLimiter",
    "RateLimiter",
    "SlidingWindowCounterLimiter",
    "SlidingWindowLogLimiter",
    "Strategy",
    "TokenBucketConfig",
    "TokenBucketLimiter",
    "WindowConfig",
    "create_limiter",
    "InMemoryStore",
    "RedisStore",
    "Store",
    "get_store",
    "reset_store",
]
