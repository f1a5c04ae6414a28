"""Limiter factory.

Builds a limiter for a strategy tag, wiring in the shared store and a clock
chosen from settings.
"""

from typing import Dict, Optional, Type

from ratekeeper.core.clock import Clock, RedisServerClock, SystemClock
from ratekeeper.core.config import settings
from ratekeeper.core.logging import get_logger
from ratekeeper.limiters.base import RateLimiter
from ratekeeper.limiters.fixed_window import FixedWindowLimiter
from ratekeeper.limiters.models import Strategy
from ratekeeper.limiters.sliding_counter import SlidingWindowCounterLimiter
from ratekeeper.limiters.sliding_log import SlidingWindowLogLimiter
from ratekeeper.limiters.token_bucket import TokenBucketLimiter
from ratekeeper.store import RedisStore, Store, get_store

logger = get_logger(__name__)

# Strategy registry mapping tags to classes
_LIMITER_REGISTRY: Dict[Strategy, Type[RateLimiter]] = {
    Strategy.FIXED_WINDOW: FixedWindowLimiter,
    Strategy.SLIDING_LOG: SlidingWindowLogLimiter,
    Strategy.SLIDING_COUNTER: SlidingWindowCounterLimiter,
    Strategy.TOKEN_BUCKET: TokenBucketLimiter,
}


def get_clock(store: Store) -> Clock:
    """Pick the time source configured by ``settings.clock_source``.

    The Redis server clock needs a Redis-backed store; any other store falls
    back to the local clock with a warning.
    """
    if settings.clock_source == "redis":
        if isinstance(store, RedisStore):
            return RedisServerClock(store.client)
        logger.warning(
            "clock_source=redis requires a RedisStore; using the local clock"
        )
    return SystemClock()


def create_limiter(
    strategy: Strategy | str,
    store: Optional[Store] = None,
    clock: Optional[Clock] = None,
    fail_closed: Optional[bool] = None,
) -> RateLimiter:
    """Create a limiter for ``strategy``.

    Args:
        strategy: Strategy tag or its string value (e.g. "token_bucket")
        store: Store to use (defaults to the global store from settings)
        clock: Time source (defaults to ``get_clock(store)``)
        fail_closed: Failure policy (None = from settings)

    Returns:
        A RateLimiter instance.

    Raises:
        ValueError: If the strategy is unknown.
    """
    try:
        strategy = Strategy(strategy)
    except ValueError:
        raise ValueError(
            f"Unknown strategy {strategy!r}; expected one of "
            f"{[s.value for s in Strategy]}"
        ) from None

    store = store or get_store()
    limiter_class = _LIMITER_REGISTRY[strategy]
    return limiter_class(
        store,
        clock=clock or get_clock(store),
        fail_closed=fail_closed,
    )
