"""
Unit tests for the Write-Through strategy and the strategy factory.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from caching_api.core.context import OperationContext
from caching_api.domain.cache.exceptions import (
    DeadlineExceededException,
    DurableStoreUnavailableException,
    OperationCancelledException,
    OptimisticLockConflictException,
    VolatileStoreUnavailableException,
)
from caching_api.domain.cache.value_objects import TTL
from caching_api.services.cache import (
    CacheAsideStrategy,
    InMemoryWarningSink,
    LoggingWarningSink,
    NoOpWarningSink,
    WriteThroughStrategy,
    create_strategy,
)


class TestWriteThroughGet:
    """Test cache-only reads."""

    @pytest.mark.asyncio
    async def test_get_after_set(self, write_through):
        """Values written through are readable from the cache."""
        value = {"data": [1, 2, 3]}
        await write_through.set("list", value)

        assert await write_through.get("list") == value

    @pytest.mark.asyncio
    async def test_miss_never_reads_durable(self, write_through, durable):
        """A cache miss is reported as absent even with a durable record."""
        await durable.set("k", {"data": "stored"})
        durable.get = AsyncMock(wraps=durable.get)

        assert await write_through.get("k") is None
        durable.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_entry_lifetime_is_ten_minutes(self, write_through, volatile, clock):
        """Write-through entries live for 10 minutes."""
        await write_through.set("k", {"data": 1})

        assert await volatile.ttl("k") == pytest.approx(600)
        clock.advance(599)
        assert await write_through.get("k") is not None
        clock.advance(2)
        assert await write_through.get("k") is None


class TestWriteThroughSet:
    """Test unconditional writes."""

    @pytest.mark.asyncio
    async def test_cache_first_then_durable(self):
        """The cache write happens before the durable write."""
        calls = []
        cache = MagicMock()
        db = MagicMock()
        cache.set = AsyncMock(side_effect=lambda *a, **k: calls.append("cache.set"))
        db.set = AsyncMock(side_effect=lambda *a, **k: calls.append("db.set"))
        strategy = WriteThroughStrategy(cache, db, warning_sink=NoOpWarningSink())

        await strategy.set("k", {"data": 1})

        assert calls == ["cache.set", "db.set"]
        assert cache.set.call_args.args[2] == TTL.minutes(10)

    @pytest.mark.asyncio
    async def test_cache_failure_aborts_before_durable(
        self, write_through, volatile, durable
    ):
        """A failed cache write never reaches the durable store."""
        volatile.set = AsyncMock(
            side_effect=VolatileStoreUnavailableException(operation="set")
        )
        durable.set = AsyncMock()

        with pytest.raises(VolatileStoreUnavailableException):
            await write_through.set("k", {"data": 1})
        durable.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_durable_failure_leaves_cached_value(
        self, write_through, volatile, durable
    ):
        """After a durable failure the cache still holds the unpersisted value."""
        durable.set = AsyncMock(
            side_effect=DurableStoreUnavailableException(operation="set")
        )

        with pytest.raises(DurableStoreUnavailableException):
            await write_through.set("k", {"data": "pending"})

        assert await volatile.get("k") == {"data": "pending"}

    @pytest.mark.asyncio
    async def test_expired_deadline_stops_before_durable(self, clock):
        """A deadline passing during the cache write stops the sequence."""
        ctx = OperationContext.with_timeout(1.0, clock=clock)
        cache = MagicMock()
        db = MagicMock()
        cache.set = AsyncMock(side_effect=lambda *a, **k: clock.advance(2))
        db.set = AsyncMock()
        strategy = WriteThroughStrategy(cache, db, warning_sink=NoOpWarningSink())

        with pytest.raises(DeadlineExceededException):
            await strategy.set("k", {"data": 1}, ctx=ctx)
        db.set.assert_not_called()


class TestWriteThroughUpdate:
    """Test conditional writes."""

    @pytest.mark.asyncio
    async def test_update_tracks_next_version(
        self, write_through, durable, version_manager
    ):
        """A successful update records expected version plus one."""
        await write_through.set("k", {"data": "a"})

        await write_through.update("k", {"data": "b", "version": 1})

        record = await durable.get("k")
        assert (record.data, record.version) == ("b", 2)
        assert version_manager.get_version("k") == (2, True)

    @pytest.mark.asyncio
    async def test_conflict_leaves_new_value_in_cache(
        self, write_through, volatile, durable, version_manager
    ):
        """The cache already holds the rejected value when the durable check fails."""
        await write_through.set("k", {"data": "a"})
        await durable.set("k", {"data": "b"})  # durable version 2

        with pytest.raises(OptimisticLockConflictException):
            await write_through.update("k", {"data": "c", "version": 1})

        assert await volatile.get("k") == {"data": "c", "version": 1}
        record = await durable.get("k")
        assert record.data == "b"
        assert version_manager.get_version("k") == (0, False)


class TestWriteThroughDelete:
    """Test delete path."""

    @pytest.mark.asyncio
    async def test_cache_delete_failure_is_swallowed(
        self, write_through, volatile, durable, warning_sink
    ):
        """The durable delete still runs when the cache delete fails."""
        await write_through.set("k", {"data": 1})
        volatile.delete = AsyncMock(
            side_effect=VolatileStoreUnavailableException(operation="delete")
        )

        await write_through.delete("k")

        assert await durable.get("k") is None
        assert warning_sink.warnings[0].strategy == "write_through"
        assert warning_sink.warnings[0].error_type == "VolatileStoreUnavailableException"

    @pytest.mark.asyncio
    async def test_cancelled_context_is_not_swallowed(self, write_through, durable):
        """Cancellation aborts delete even on the best-effort step."""
        await durable.set("k", {"data": 1})
        ctx = OperationContext()
        ctx.cancel("shutdown")

        with pytest.raises(OperationCancelledException):
            await write_through.delete("k", ctx=ctx)

        assert await durable.get("k") is not None


class TestCreateStrategy:
    """Test the strategy factory."""

    def test_create_by_name(self, volatile, durable):
        """Both names resolve to their strategy class."""
        assert isinstance(
            create_strategy("cache_aside", volatile, durable), CacheAsideStrategy
        )
        assert isinstance(
            create_strategy("write_through", volatile, durable), WriteThroughStrategy
        )

    def test_unknown_name(self, volatile, durable):
        """Unknown names are rejected with the allowed values."""
        with pytest.raises(ValueError, match="Unknown cache strategy"):
            create_strategy("write_behind", volatile, durable)

    def test_shares_injected_stores(self, volatile, durable, version_manager):
        """Strategies use the stores they are given."""
        strategy = create_strategy(
            "write_through", volatile, durable, version_manager=version_manager
        )

        assert strategy.cache is volatile
        assert strategy.db is durable
        assert strategy.version_manager is version_manager
        assert strategy.expiry == TTL.write_through()

    def test_empty_injected_sink_is_kept(self, volatile, durable):
        """An empty sink is still the one that receives warnings."""
        sink = InMemoryWarningSink()
        assert len(sink) == 0

        for name in ("cache_aside", "write_through"):
            strategy = create_strategy(name, volatile, durable, warning_sink=sink)
            assert strategy.warning_sink is sink

    def test_default_sink_logs(self, volatile, durable):
        strategy = create_strategy("cache_aside", volatile, durable)

        assert isinstance(strategy.warning_sink, LoggingWarningSink)
