"""Core utilities for the rate limiter library."""

from ratekeeper.core.clock import Clock, ManualClock, RedisServerClock, SystemClock
from ratekeeper.core.config import settings
from ratekeeper.core.logging import get_logger, setup_logging

__all__ = [
    "Clock",
    "ManualClock",
    "RedisServerClock",
    "SystemClock",
    "settings",
    "get_logger",
    "setup_logging",
]
