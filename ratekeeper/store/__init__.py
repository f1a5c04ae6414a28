"""Storage backends for rate limiter state.

Provides a pluggable store with in-memory and Redis implementations, and the
atomic scripts the token bucket relies on.
"""

from ratekeeper.store.base import Store, StoreScript
from ratekeeper.store.memory import InMemoryStore
from ratekeeper.store.redis_store import RedisStore
from ratekeeper.store.scripts import TOKEN_BUCKET_LUA, TOKEN_BUCKET_SCRIPT

# Global store instance (singleton pattern)
_store_instance: Store | None = None


def get_store(
    backend: str | None = None,
    redis_url: str | None = None,
    force_new: bool = False,
) -> Store:
    """Get or create the global store instance.

    Args:
        backend: Store backend to use ('memory', 'redis', or None for auto).
            When None, checks settings.redis_enabled.
        redis_url: Redis connection URL. If not provided, uses settings.redis_url.
        force_new: If True, create a new instance even if one exists.

    Returns:
        A Store instance (InMemoryStore or RedisStore).
    """
    global _store_instance

    if _store_instance is not None and not force_new:
        return _store_instance

    from ratekeeper.core.config import settings

    if backend == "redis":
        use_redis = True
    elif backend == "memory":
        use_redis = False
    elif backend is None:
        use_redis = settings.redis_enabled
    else:
        raise ValueError(f"Unknown store backend: {backend!r}")

    if use_redis:
        _store_instance = RedisStore.from_url(
            redis_url or settings.redis_url,
            socket_timeout=settings.redis_socket_timeout,
        )
    else:
        _store_instance = InMemoryStore()
    return _store_instance


def reset_store() -> None:
    """Reset the global store instance.

    This is primarily useful for testing.
    """
    global _store_instance
    _store_instance = None


__all__ = [
    "Store",
    "StoreScript",
    "InMemoryStore",
    "RedisStore",
    "TOKEN_BUCKET_LUA",
    "TOKEN_BUCKET_SCRIPT",
    "get_store",
    "reset_store",
]
