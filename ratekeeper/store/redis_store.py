"""Redis-backed store for distributed rate limiting.

Every limiter instance on every machine talks to the same Redis, which makes
each primitive atomic across processes. Scripts are registered once per
client and executed with EVALSHA (redis-py reloads them on NOSCRIPT).
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence

import redis.asyncio as aioredis
from redis.exceptions import RedisError, ResponseError

from ratekeeper.core.logging import get_logger
from ratekeeper.exceptions import MalformedStateError, StoreUnavailableError
from ratekeeper.store.base import Store, StoreScript

logger = get_logger(__name__)


@contextmanager
def _translate_errors(operation: str, key: str) -> Iterator[None]:
    """Map client failures onto the store error taxonomy."""
    try:
        yield
    except ResponseError as e:
        # WRONGTYPE, "value is not an integer", script runtime errors
        raise MalformedStateError(key, str(e)) from e
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        raise StoreUnavailableError(operation, str(e)) from e


class RedisStore(Store):
    """Store implementation over a ``redis.asyncio.Redis`` client.

    Example:
        >>> store = RedisStore.from_url("redis://localhost:6379/0")
        >>> await store.incr("fixed:user:123")
    """

    def __init__(self, redis_client: Any) -> None:
        """Initialize the Redis store.

        Args:
            redis_client: An async Redis client (redis.asyncio.Redis compatible).
        """
        self._redis = redis_client
        self._scripts: Dict[str, Any] = {}

    @classmethod
    def from_url(
        cls, redis_url: str, socket_timeout: Optional[float] = None
    ) -> "RedisStore":
        """Build a store with its own connection pool."""
        client = aioredis.from_url(redis_url, socket_timeout=socket_timeout)
        return cls(client)

    @property
    def client(self) -> Any:
        return self._redis

    def _connection(self, operation: str) -> Any:
        if self._redis is None:
            raise StoreUnavailableError(operation, "store is closed")
        return self._redis

    async def incr(self, key: str) -> int:
        with _translate_errors("INCR", key):
            return int(await self._connection("INCR").incr(key))

    async def expire(self, key: str, seconds: float) -> None:
        with _translate_errors("PEXPIRE", key):
            await self._connection("PEXPIRE").pexpire(key, max(1, int(seconds * 1000)))

    async def get_int(self, key: str) -> int | None:
        with _translate_errors("GET", key):
            raw = await self._connection("GET").get(key)
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer counter at {key}: {raw!r}")
            return None

    async def trim_and_count(self, key: str, max_score: float) -> int:
        with _translate_errors("ZREMRANGEBYSCORE", key):
            pipe = self._connection("ZREMRANGEBYSCORE").pipeline(transaction=True)
            pipe.zremrangebyscore(key, "-inf", max_score)
            pipe.zcard(key)
            results = await pipe.execute()
        return int(results[1])

    async def add_member(self, key: str, score: float, member: str) -> None:
        with _translate_errors("ZADD", key):
            await self._connection("ZADD").zadd(key, {member: score})

    async def run_script(
        self, script: StoreScript, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        operation = f"EVALSHA {script.name}"
        client = self._connection(operation)
        registered = self._scripts.get(script.name)
        if registered is None:
            registered = client.register_script(script.lua)
            self._scripts[script.name] = registered
        key = keys[0] if keys else script.name
        with _translate_errors(operation, key):
            return await registered(keys=list(keys), args=list(args))

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            # aclose() for proper async cleanup in redis-py 5.0+
            await self._redis.aclose()
            self._redis = None
            self._scripts.clear()
