"""Data models for limiter configuration and decisions."""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional


class Strategy(str, Enum):
    """Supported rate limiting strategies."""
    FIXED_WINDOW = "fixed_window"
    SLIDING_LOG = "sliding_log"
    SLIDING_COUNTER = "sliding_counter"
    TOKEN_BUCKET = "token_bucket"


@dataclass(frozen=True)
class WindowConfig:
    """Configuration for the window-based strategies.

    Attributes:
        limit: Maximum admitted requests per window
        window: Window length in seconds
    """
    limit: int
    window: float

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise ValueError(f"limit must be an integer, got {self.limit!r}")
        if self.limit < 1:
            raise ValueError(f"limit must be positive, got {self.limit}")
        if self.window <= 0:
            raise ValueError(f"window must be positive, got {self.window}")

    @classmethod
    def from_timedelta(cls, limit: int, window: timedelta) -> "WindowConfig":
        return cls(limit=limit, window=window.total_seconds())

    @property
    def window_ms(self) -> int:
        """Window length in whole milliseconds."""
        return int(round(self.window * 1000))


@dataclass(frozen=True)
class TokenBucketConfig:
    """Configuration for the token bucket strategy.

    Attributes:
        capacity: Maximum tokens held (burst size)
        refill_rate: Tokens added per second
    """
    capacity: float
    refill_rate: float

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(f"capacity must be positive, got {self.capacity}")
        if self.refill_rate <= 0:
            raise ValueError(f"refill_rate must be positive, got {self.refill_rate}")

    @property
    def seconds_per_token(self) -> float:
        return 1.0 / self.refill_rate


@dataclass(frozen=True)
class Decision:
    """Result of one ``allow`` call.

    When ``error`` is set the store could not be consulted and ``allowed``
    reflects the limiter's failure policy rather than real state.
    """
    allowed: bool
    strategy: str
    error: Optional[Exception] = None

    def __bool__(self) -> bool:
        return self.allowed
