"""In-memory store for tests and single-process deployments.

Mirrors the Redis data types the limiters use (string counters, sorted sets,
hashes) with TTL expiry driven by an injected clock, so that expiry in tests
follows a ``ManualClock`` instead of wall time.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Sequence

from ratekeeper.core.clock import Clock, SystemClock
from ratekeeper.core.logging import get_logger
from ratekeeper.exceptions import MalformedStateError
from ratekeeper.store.base import Store, StoreScript

logger = get_logger(__name__)


@dataclass
class _Entry:
    """Internal store entry with TTL tracking.

    ``value`` is a ``str`` for counters, ``dict[str, float]`` (member -> score)
    for sorted sets, and ``dict[str, str]`` for hashes.
    """

    value: Any
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class _ScriptView:
    """Unlocked hash/TTL helpers handed to a script's ``local`` callable."""

    def __init__(self, store: "InMemoryStore", now: float) -> None:
        self._store = store
        self._now = now

    def hget(self, key: str, field: str) -> str | None:
        entry = self._store._live(key, self._now)
        if entry is None:
            return None
        if not isinstance(entry.value, dict):
            raise MalformedStateError(key, entry.value)
        return entry.value.get(field)

    def hset(self, key: str, mapping: dict[str, Any]) -> None:
        entry = self._store._live(key, self._now)
        if entry is None:
            entry = _Entry(value={})
            self._store._data[key] = entry
        elif not isinstance(entry.value, dict):
            raise MalformedStateError(key, entry.value)
        entry.value.update({field: str(value) for field, value in mapping.items()})

    def expire(self, key: str, seconds: float) -> None:
        self._store._expire_unlocked(key, seconds, self._now)


class InMemoryStore(Store):
    """In-memory store implementation with TTL support.

    Every public operation holds one ``asyncio.Lock``, so each primitive is
    atomic with respect to other coroutines on the same event loop, exactly
    like a single Redis command. Scripts run their ``local`` callable under
    the same lock.

    Expired entries are dropped lazily when their key is touched, and all of
    them are swept on the first write after each ``cleanup_interval`` seconds
    of store clock time, so identities that never return do not accumulate.

    Note: This store is not distributed and data is lost when the process
    restarts.
    """

    DEFAULT_CLEANUP_INTERVAL = 60.0

    def __init__(
        self,
        clock: Clock | None = None,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
    ) -> None:
        self._clock = clock or SystemClock()
        self._data: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._cleanup_interval = cleanup_interval
        self._next_cleanup: float | None = None

    def _live(self, key: str, now: float) -> _Entry | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._data[key]
            return None
        return entry

    def _expire_unlocked(self, key: str, seconds: float, now: float) -> None:
        entry = self._live(key, now)
        if entry is not None:
            entry.expires_at = now + seconds

    def _remove_expired(self, now: float) -> int:
        expired_keys = [
            key for key, entry in self._data.items() if entry.is_expired(now)
        ]
        for key in expired_keys:
            del self._data[key]
        return len(expired_keys)

    def _maybe_cleanup(self, now: float) -> None:
        """Sweep expired entries at most once per cleanup interval."""
        if self._next_cleanup is not None and now < self._next_cleanup:
            return
        self._next_cleanup = now + self._cleanup_interval
        removed = self._remove_expired(now)
        if removed:
            logger.debug(f"Removed {removed} expired entries from in-memory store")

    async def cleanup_expired(self) -> int:
        """Remove all expired entries from the store.

        Returns:
            Number of entries removed.
        """
        now = await self._clock.now()
        async with self._lock:
            return self._remove_expired(now)

    async def incr(self, key: str) -> int:
        now = await self._clock.now()
        async with self._lock:
            self._maybe_cleanup(now)
            entry = self._live(key, now)
            if entry is None:
                entry = _Entry(value="0")
                self._data[key] = entry
            try:
                new_value = int(entry.value) + 1
            except (TypeError, ValueError):
                raise MalformedStateError(key, entry.value) from None
            entry.value = str(new_value)
            return new_value

    async def expire(self, key: str, seconds: float) -> None:
        now = await self._clock.now()
        async with self._lock:
            self._expire_unlocked(key, seconds, now)

    async def get_int(self, key: str) -> int | None:
        now = await self._clock.now()
        async with self._lock:
            entry = self._live(key, now)
            if entry is None:
                return None
            try:
                return int(entry.value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-integer counter at {key}: {entry.value!r}")
                return None

    async def trim_and_count(self, key: str, max_score: float) -> int:
        now = await self._clock.now()
        async with self._lock:
            entry = self._live(key, now)
            if entry is None:
                return 0
            if not isinstance(entry.value, dict):
                raise MalformedStateError(key, entry.value)
            members = {m: s for m, s in entry.value.items() if s > max_score}
            if not members:
                del self._data[key]
                return 0
            entry.value = members
            return len(members)

    async def add_member(self, key: str, score: float, member: str) -> None:
        now = await self._clock.now()
        async with self._lock:
            self._maybe_cleanup(now)
            entry = self._live(key, now)
            if entry is None:
                entry = _Entry(value={})
                self._data[key] = entry
            elif not isinstance(entry.value, dict):
                raise MalformedStateError(key, entry.value)
            entry.value[member] = float(score)

    async def run_script(
        self, script: StoreScript, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        now = await self._clock.now()
        async with self._lock:
            self._maybe_cleanup(now)
            return script.local(_ScriptView(self, now), keys, args)

    # ------------------------------------------------------------------
    # Inspection helpers (tests, debugging)
    # ------------------------------------------------------------------
    async def set_raw(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` verbatim, e.g. to seed corrupted state."""
        now = await self._clock.now()
        async with self._lock:
            expires_at = now + ttl if ttl is not None else None
            self._data[key] = _Entry(value=value, expires_at=expires_at)

    async def get_raw(self, key: str) -> Any:
        now = await self._clock.now()
        async with self._lock:
            entry = self._live(key, now)
            return None if entry is None else entry.value

    async def ttl(self, key: str) -> float | None:
        """Remaining TTL in seconds, or None if absent or persistent."""
        now = await self._clock.now()
        async with self._lock:
            entry = self._live(key, now)
            if entry is None or entry.expires_at is None:
                return None
            return entry.expires_at - now

    async def exists(self, key: str) -> bool:
        return await self.get_raw(key) is not None
