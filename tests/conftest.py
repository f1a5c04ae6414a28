"""Shared fixtures for the rate limiter tests."""

import pytest

from ratekeeper.core.clock import ManualClock
from ratekeeper.store import InMemoryStore, reset_store

# Whole second, aligned to 10s and 60s windows
T0 = 1_700_000_040.0


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset the global store before and after each test."""
    reset_store()
    yield
    reset_store()


@pytest.fixture
def clock():
    return ManualClock(start=T0)


@pytest.fixture
def store(clock):
    """In-memory store whose TTLs follow the manual clock."""
    return InMemoryStore(clock=clock)


@pytest.fixture
def t0():
    """Start instant of the manual clock."""
    return T0
