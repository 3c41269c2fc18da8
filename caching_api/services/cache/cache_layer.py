"""
Cache Layer Assembly

Wires the Redis store, the PostgreSQL store, the version manager, its
sweeper and both strategies from settings. The layer owns the client, the
engine and the sweeper it creates, and releases them on ``close``.
"""

import asyncio
from typing import Optional

import structlog

from ...core.config import Settings, get_settings
from ...domain.cache.repository_interfaces import DurableStore, VolatileStore
from ...domain.cache.value_objects import StrategyName
from ..locking.optimistic import OptimisticUpdater
from ..locking.sweeper import VersionSweeper
from ..locking.version_manager import VersionManager
from .sinks import LoggingWarningSink, WarningSink
from .strategies import CacheStrategy, create_strategy

logger = structlog.get_logger()


class CacheLayer:
    """
    Owns the shared stores and version manager for one process.

    Either pass stores in (they stay owned by the caller) or call
    ``from_settings`` to build Redis and PostgreSQL stores that the layer
    owns.
    """

    def __init__(
        self,
        cache: VolatileStore,
        db: DurableStore,
        settings: Optional[Settings] = None,
        warning_sink: Optional[WarningSink] = None,
        owns_stores: bool = False,
    ):
        self.settings = settings or get_settings()
        self.cache = cache
        self.db = db
        self.warning_sink = (
            warning_sink if warning_sink is not None else LoggingWarningSink()
        )
        self.version_manager = VersionManager(
            ttl_seconds=self.settings.VERSION_TTL_SECONDS
        )
        self.sweeper = VersionSweeper(
            self.version_manager,
            interval_seconds=self.settings.VERSION_SWEEP_INTERVAL_SECONDS,
        )
        self._owns_stores = owns_stores
        self._initialized = False
        self._lock = asyncio.Lock()

        self.cache_aside = create_strategy(
            StrategyName.CACHE_ASIDE.value,
            cache,
            db,
            version_manager=self.version_manager,
            warning_sink=self.warning_sink,
        )
        self.write_through = create_strategy(
            StrategyName.WRITE_THROUGH.value,
            cache,
            db,
            version_manager=self.version_manager,
            warning_sink=self.warning_sink,
        )

    @classmethod
    async def from_settings(
        cls,
        settings: Optional[Settings] = None,
        warning_sink: Optional[WarningSink] = None,
        bootstrap: bool = True,
    ) -> "CacheLayer":
        """Connect to Redis and PostgreSQL and bootstrap the schema."""
        from ...infrastructure.database.engine import (
            create_database_engine,
            verify_connection,
        )
        from ...infrastructure.database.postgres_store import PostgresDurableStore
        from ...infrastructure.database.schema import bootstrap_schema
        from ...infrastructure.redis.connection_factory import (
            create_redis_client,
            verify_redis_connection,
        )
        from ...infrastructure.redis.redis_store import RedisVolatileStore

        settings = settings or get_settings()

        client = create_redis_client(settings)
        await verify_redis_connection(client)

        engine = create_database_engine(settings)
        await verify_connection(engine)
        if bootstrap:
            await bootstrap_schema(engine)

        return cls(
            RedisVolatileStore(client, owns_client=True),
            PostgresDurableStore(engine, owns_engine=True),
            settings=settings,
            warning_sink=warning_sink,
            owns_stores=True,
        )

    def strategy(self, name: str) -> CacheStrategy:
        """Return the shared strategy instance for ``name``."""
        strategy_name = StrategyName(name)
        if strategy_name is StrategyName.CACHE_ASIDE:
            return self.cache_aside
        return self.write_through

    def optimistic_updater(self, name: str = StrategyName.CACHE_ASIDE.value) -> OptimisticUpdater:
        return OptimisticUpdater.from_settings(
            self.strategy(name), self.version_manager, self.settings
        )

    async def initialize(self) -> None:
        """Start the version sweeper."""
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return
            self.sweeper.start()
            self._initialized = True
            logger.info("Cache layer initialized", owns_stores=self._owns_stores)

    async def close(self) -> None:
        """Stop the sweeper and release owned stores."""
        async with self._lock:
            await self.sweeper.stop()
            if self._owns_stores:
                await self.cache.close()
                await self.db.close()
            self._initialized = False
            logger.info("Cache layer closed")

    async def __aenter__(self) -> "CacheLayer":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
