"""
Main pytest configuration for all tests.

Fixtures, configuration, and utilities for unit tests of the consistency
layer.
"""

import os

import pytest

# Set test environment variables before importing package modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_JSON"] = "false"

from caching_api.infrastructure.memory import (  # noqa: E402
    InMemoryDurableStore,
    InMemoryVolatileStore,
)
from caching_api.services.cache import (  # noqa: E402
    CacheAsideStrategy,
    InMemoryWarningSink,
    WriteThroughStrategy,
)
from caching_api.services.locking import VersionManager  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def volatile(clock):
    """In-memory volatile store driven by the fake clock."""
    return InMemoryVolatileStore(clock=clock)


@pytest.fixture
def durable():
    """In-memory durable store."""
    return InMemoryDurableStore()


@pytest.fixture
def version_manager(clock):
    """Version manager driven by the fake clock."""
    return VersionManager(clock=clock)


@pytest.fixture
def warning_sink():
    """Sink collecting best-effort failures."""
    return InMemoryWarningSink()


@pytest.fixture
def cache_aside(volatile, durable, version_manager, warning_sink):
    """Cache-aside strategy over in-memory stores."""
    return CacheAsideStrategy(
        volatile, durable, version_manager=version_manager, warning_sink=warning_sink
    )


@pytest.fixture
def write_through(volatile, durable, version_manager, warning_sink):
    """Write-through strategy over in-memory stores."""
    return WriteThroughStrategy(
        volatile, durable, version_manager=version_manager, warning_sink=warning_sink
    )


# Test markers and configuration
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "redis: marks tests as Redis-related")
    config.addinivalue_line("markers", "database: marks tests as database-related")
    config.addinivalue_line("markers", "concurrency: marks multi-threaded tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "redis" in item.nodeid:
            item.add_marker(pytest.mark.redis)
        if "postgres" in item.nodeid:
            item.add_marker(pytest.mark.database)
