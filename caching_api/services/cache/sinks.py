"""
Warning sinks for best-effort cache operations.

A failed cache populate or cache delete must never reach the caller, but it
must stay observable. Strategies report those failures to a ``WarningSink``
instead of writing to the console:

- WarningSink: abstract interface
- LoggingWarningSink: structured log line plus Prometheus counter (default)
- InMemoryWarningSink: keeps recent warnings for inspection
- NoOpWarningSink: drops everything
"""

import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, List, Optional

import structlog

from ...domain.cache.entities import utcnow
from ...monitoring import metrics

logger = structlog.get_logger()


@dataclass(frozen=True)
class CacheWarning:
    """A swallowed failure of a best-effort operation."""

    strategy: str
    operation: str
    key: str
    error: BaseException
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def error_type(self) -> str:
        return type(self.error).__name__


class WarningSink(ABC):
    """Abstract interface for best-effort failure reporting."""

    @abstractmethod
    def report(self, warning: CacheWarning) -> None:
        """Record a swallowed failure. Must not raise."""
        ...


class NoOpWarningSink(WarningSink):
    """Sink that drops every warning."""

    def report(self, warning: CacheWarning) -> None:
        pass


class LoggingWarningSink(WarningSink):
    """Sink that logs each warning and counts it in Prometheus."""

    def report(self, warning: CacheWarning) -> None:
        metrics.best_effort_failures.labels(operation=warning.operation).inc()
        logger.warning(
            "Best-effort cache operation failed",
            strategy=warning.strategy,
            operation=warning.operation,
            key=warning.key,
            error=str(warning.error),
            error_type=warning.error_type,
        )


class InMemoryWarningSink(WarningSink):
    """Sink that keeps the most recent warnings, optionally forwarding them."""

    def __init__(self, maxlen: int = 1000, forward_to: Optional[WarningSink] = None):
        self._warnings: Deque[CacheWarning] = deque(maxlen=maxlen)
        self._lock = threading.Lock()
        self._forward_to = forward_to

    def report(self, warning: CacheWarning) -> None:
        with self._lock:
            self._warnings.append(warning)
        if self._forward_to is not None:
            self._forward_to.report(warning)

    @property
    def warnings(self) -> List[CacheWarning]:
        with self._lock:
            return list(self._warnings)

    def clear(self) -> None:
        with self._lock:
            self._warnings.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._warnings)
