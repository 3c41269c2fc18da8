"""
Cache Strategy Services

Cache-aside and write-through strategies plus the warning sinks that keep
best-effort failures observable.
"""

from .sinks import (
    CacheWarning,
    InMemoryWarningSink,
    LoggingWarningSink,
    NoOpWarningSink,
    WarningSink,
)
from .strategies import (
    CacheAsideStrategy,
    CacheStrategy,
    WriteThroughStrategy,
    create_strategy,
)

__all__ = [
    "CacheStrategy",
    "CacheAsideStrategy",
    "WriteThroughStrategy",
    "create_strategy",
    "CacheWarning",
    "WarningSink",
    "LoggingWarningSink",
    "InMemoryWarningSink",
    "NoOpWarningSink",
]
