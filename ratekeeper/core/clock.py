"""Time sources for rate limit decisions.

Every caller sharing a key must read time from one logical source. The
local wall clock is fine for a single host; ``RedisServerClock`` reads the
Redis server's clock so that several machines agree on "now".
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any

from redis.exceptions import RedisError

from ratekeeper.exceptions import StoreUnavailableError


class Clock(ABC):
    """Abstract time source returning seconds since the epoch."""

    @abstractmethod
    async def now(self) -> float:
        """Return the current instant in (fractional) seconds."""
        pass


class SystemClock(Clock):
    """Local wall clock."""

    async def now(self) -> float:
        return time.time()


class RedisServerClock(Clock):
    """Clock backed by the Redis ``TIME`` command.

    Costs one extra round trip per call, in exchange for all limiter
    instances sharing the server's notion of time.
    """

    def __init__(self, redis_client: Any) -> None:
        self._redis = redis_client

    async def now(self) -> float:
        try:
            seconds, microseconds = await self._redis.time()
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError("TIME", str(e)) from e
        return int(seconds) + int(microseconds) / 1_000_000


class ManualClock(Clock):
    """Clock that only moves when told to.

    Useful for tests and simulations that need deterministic windows.

    Example:
        >>> clock = ManualClock(start=1_700_000_000.0)
        >>> clock.advance(1.5)
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    async def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move the clock forward (or backward, for skew tests)."""
        self._now += seconds

    def set(self, instant: float) -> None:
        self._now = float(instant)
