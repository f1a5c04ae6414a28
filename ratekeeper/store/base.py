"""Store abstraction shared by all limiter strategies.

The limiters only compose the primitives below. Each primitive is atomic on
its own; sequences of primitives are not. Anything that must be indivisible
goes through ``run_script``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Sequence


@dataclass(frozen=True)
class StoreScript:
    """An atomic read-modify-write program.

    Attributes:
        name: Identifier used for logging and the in-memory script registry.
        lua: Program text executed by Redis (``KEYS``/``ARGV`` convention).
        local: Python equivalent run by the in-memory store while it holds its
            lock. Called as ``local(view, keys, args)`` where ``view`` exposes
            the store's unlocked hash/TTL helpers.
    """

    name: str
    lua: str
    local: Callable[[Any, Sequence[str], Sequence[Any]], Any]


class Store(ABC):
    """Abstract base class for limiter storage backends."""

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically increment an integer counter, creating it at 0 first.

        Returns:
            The value after the increment.
        """
        pass

    @abstractmethod
    async def expire(self, key: str, seconds: float) -> None:
        """Set the key's time-to-live (millisecond precision)."""
        pass

    @abstractmethod
    async def get_int(self, key: str) -> int | None:
        """Read an integer counter.

        Returns:
            The value, or None when the key is absent or not an integer.
        """
        pass

    @abstractmethod
    async def trim_and_count(self, key: str, max_score: float) -> int:
        """Drop ordered-set members scored at or below ``max_score``.

        Returns:
            Cardinality of the set after the trim.
        """
        pass

    @abstractmethod
    async def add_member(self, key: str, score: float, member: str) -> None:
        """Add ``member`` with ``score`` to the ordered set at ``key``."""
        pass

    @abstractmethod
    async def run_script(
        self, script: StoreScript, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        """Run ``script`` as one indivisible operation against the store."""
        pass

    async def close(self) -> None:
        """Release any underlying connection."""
        return None
