"""
Cache Strategies

Orchestrate the volatile and durable stores for get/set/update/delete.

Each strategy fixes, per operation, the order in which the two stores are
touched and which failures are surfaced. Two steps are best-effort in both
variants: populating the cache after a read-through miss, and deleting from
the cache ahead of the authoritative durable delete. Their failures go to
the warning sink and never reach the caller.

No per-key mutual exclusion is provided. Concurrent updates race at the
durable store's version check and the loser gets
``OptimisticLockConflictException``; retrying is up to the caller (see
``caching_api.services.locking.optimistic``).
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import structlog

from ...core.context import OperationContext, ensure_context
from ...domain.cache.entities import extract_data, extract_expected_version
from ...domain.cache.exceptions import (
    CacheSerializationException,
    OptimisticLockConflictException,
    StoreUnavailableException,
)
from ...domain.cache.repository_interfaces import DurableStore, VolatileStore
from ...domain.cache.value_objects import TTL, CacheKey, StrategyName
from ...monitoring import metrics
from ..locking.version_manager import VersionManager
from .sinks import CacheWarning, LoggingWarningSink, WarningSink

logger = structlog.get_logger()

# Failures a best-effort step may swallow. Context cancellation and
# deadlines always propagate.
BEST_EFFORT_ERRORS = (StoreUnavailableException, CacheSerializationException)


class CacheStrategy(ABC):
    """
    Common interface and plumbing for cache-consistency strategies.

    Stores are injected and shared; a strategy never closes them.
    """

    name: StrategyName

    def __init__(
        self,
        cache: VolatileStore,
        db: DurableStore,
        expiry: TTL,
        version_manager: Optional[VersionManager] = None,
        warning_sink: Optional[WarningSink] = None,
    ):
        self.cache = cache
        self.db = db
        self.expiry = expiry
        self.version_manager = version_manager
        self.warning_sink = (
            warning_sink if warning_sink is not None else LoggingWarningSink()
        )

    @abstractmethod
    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the value for ``key``, or None when absent."""
        pass

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """Unconditionally write ``value``."""
        pass

    @abstractmethod
    async def update(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """Conditionally write ``value`` against ``value["version"]``."""
        pass

    async def delete(self, key: str, ctx: Optional[OperationContext] = None) -> None:
        """Best-effort cache delete, then durable delete."""
        CacheKey.validate(key)
        ctx = ensure_context(ctx)

        ctx.raise_if_done("delete")
        await self._best_effort("delete", key, ctx, self.cache.delete, key)

        ctx.raise_if_done("delete")
        await self.db.delete(key, ctx=ctx)
        # A re-created record starts again at version 1.
        self._track_version(key, 0)

        logger.debug("Key deleted", strategy=self.name.value, key=key)

    async def _best_effort(
        self,
        operation: str,
        key: str,
        ctx: OperationContext,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> bool:
        """Run a cache step whose store failures are reported, not raised."""
        ctx.raise_if_done(operation)
        try:
            await func(*args, ctx=ctx)
            return True
        except BEST_EFFORT_ERRORS as e:
            self.warning_sink.report(
                CacheWarning(
                    strategy=self.name.value, operation=operation, key=key, error=e
                )
            )
            return False

    async def _durable_update(
        self, key: str, value: Mapping[str, Any], ctx: OperationContext
    ) -> None:
        try:
            await self.db.update(key, value, ctx=ctx)
        except OptimisticLockConflictException as e:
            metrics.optimistic_conflicts.labels(source=self.name.value).inc()
            logger.info(
                "Optimistic locking conflict",
                strategy=self.name.value,
                key=key,
                expected_version=e.expected_version,
                current_version=e.current_version,
            )
            raise

    def _track_version(self, key: str, version: int) -> None:
        if self.version_manager is not None:
            self.version_manager.set_version(key, version)

    def _record_lookup(self, hit: bool) -> None:
        metrics.cache_lookups.labels(
            strategy=self.name.value, result="hit" if hit else "miss"
        ).inc()


class CacheAsideStrategy(CacheStrategy):
    """
    Cache-aside: the durable store leads and the cache is filled lazily.

    Reads fall back to the durable store on a miss and repopulate the cache.
    Writes go to the durable store first, then to the cache.
    """

    name = StrategyName.CACHE_ASIDE

    def __init__(
        self,
        cache: VolatileStore,
        db: DurableStore,
        version_manager: Optional[VersionManager] = None,
        warning_sink: Optional[WarningSink] = None,
    ):
        super().__init__(
            cache,
            db,
            expiry=TTL.cache_aside(),
            version_manager=version_manager,
            warning_sink=warning_sink,
        )

    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Dict[str, Any]]:
        CacheKey.validate(key)
        ctx = ensure_context(ctx)

        ctx.raise_if_done("get")
        cached = await self.cache.get(key, ctx=ctx)
        if cached is not None:
            self._record_lookup(hit=True)
            return cached
        self._record_lookup(hit=False)

        ctx.raise_if_done("get")
        record = await self.db.get(key, ctx=ctx)
        if record is None:
            return None

        value = record.to_value()
        self._track_version(key, record.version)
        await self._best_effort(
            "populate", key, ctx, self.cache.set, key, value, self.expiry
        )
        return value

    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        CacheKey.validate(key)
        extract_data(value)
        ctx = ensure_context(ctx)

        ctx.raise_if_done("set")
        await self.db.set(key, value, ctx=ctx)

        ctx.raise_if_done("set")
        await self.cache.set(key, dict(value), self.expiry, ctx=ctx)

    async def update(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """
        Conditional durable update followed by a cache refresh.

        The record is re-read after the update so the cached copy carries the
        post-update state, including the version the durable store assigned.
        """
        CacheKey.validate(key)
        extract_data(value)
        extract_expected_version(value)
        ctx = ensure_context(ctx)

        ctx.raise_if_done("update")
        await self._durable_update(key, value, ctx)

        ctx.raise_if_done("update")
        record = await self.db.get(key, ctx=ctx)

        ctx.raise_if_done("update")
        if record is None:
            # Deleted between the update and the re-read.
            logger.info(
                "Record vanished after update", strategy=self.name.value, key=key
            )
            await self.cache.delete(key, ctx=ctx)
            return

        self._track_version(key, record.version)
        await self.cache.set(key, record.to_value(), self.expiry, ctx=ctx)


class WriteThroughStrategy(CacheStrategy):
    """
    Write-through: every write hits the cache first, then the durable store.

    Reads are served from the cache only and never fall back to the durable
    store, so a cache miss is reported as absent even when a durable record
    exists.
    """

    name = StrategyName.WRITE_THROUGH

    def __init__(
        self,
        cache: VolatileStore,
        db: DurableStore,
        version_manager: Optional[VersionManager] = None,
        warning_sink: Optional[WarningSink] = None,
    ):
        super().__init__(
            cache,
            db,
            expiry=TTL.write_through(),
            version_manager=version_manager,
            warning_sink=warning_sink,
        )

    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Dict[str, Any]]:
        CacheKey.validate(key)
        ctx = ensure_context(ctx)

        ctx.raise_if_done("get")
        cached = await self.cache.get(key, ctx=ctx)
        self._record_lookup(hit=cached is not None)
        return cached

    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        CacheKey.validate(key)
        extract_data(value)
        ctx = ensure_context(ctx)

        ctx.raise_if_done("set")
        await self.cache.set(key, dict(value), self.expiry, ctx=ctx)

        ctx.raise_if_done("set")
        await self.db.set(key, value, ctx=ctx)

    async def update(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        CacheKey.validate(key)
        extract_data(value)
        expected = extract_expected_version(value)
        ctx = ensure_context(ctx)

        ctx.raise_if_done("update")
        await self.cache.set(key, dict(value), self.expiry, ctx=ctx)

        ctx.raise_if_done("update")
        await self._durable_update(key, value, ctx)

        # The durable update bumps the version by exactly one.
        self._track_version(key, expected + 1)


_STRATEGIES = {
    StrategyName.CACHE_ASIDE: CacheAsideStrategy,
    StrategyName.WRITE_THROUGH: WriteThroughStrategy,
}


def create_strategy(
    name: str,
    cache: VolatileStore,
    db: DurableStore,
    version_manager: Optional[VersionManager] = None,
    warning_sink: Optional[WarningSink] = None,
) -> CacheStrategy:
    """Build a strategy by name (``cache_aside`` or ``write_through``)."""
    try:
        strategy_name = StrategyName(name)
    except ValueError:
        allowed = [s.value for s in StrategyName]
        raise ValueError(f"Unknown cache strategy {name!r}; expected one of {allowed}")

    return _STRATEGIES[strategy_name](
        cache, db, version_manager=version_manager, warning_sink=warning_sink
    )
