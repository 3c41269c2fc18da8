"""
PostgreSQL Durable Store

``DurableStore`` implementation over an async SQLAlchemy engine.

- ``set`` is ``INSERT ... ON CONFLICT (id) DO UPDATE`` and bumps the version
  of an existing row.
- ``update`` is ``UPDATE ... WHERE id = :id AND version = :expected``; zero
  affected rows means the caller's version is stale (or the row is gone).
"""

import time
from typing import Any, Awaitable, Callable, List, Mapping, Optional, TypeVar

import asyncpg
import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql import func

from ...core.context import OperationContext, run_with_context
from ...domain.cache.codec import decode_value, encode_value
from ...domain.cache.entities import (
    ChangeLogEntry,
    Record,
    extract_data,
    extract_expected_version,
)
from ...domain.cache.exceptions import (
    DurableStoreUnavailableException,
    OptimisticLockConflictException,
    RecordNotFoundException,
)
from ...domain.cache.repository_interfaces import DurableStore
from ...domain.cache.value_objects import ChangeOperation
from .models import CacheableData, CacheInvalidationLog

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)

T = TypeVar("T")


class PostgresDurableStore(DurableStore):
    """PostgreSQL-backed durable store. The engine is injected and shared."""

    def __init__(self, engine: AsyncEngine, owns_engine: bool = False):
        self._engine = engine
        self._owns_engine = owns_engine

    async def _execute(
        self,
        operation: str,
        key: Optional[str],
        ctx: Optional[OperationContext],
        func_: Callable[[AsyncConnection], Awaitable[T]],
    ) -> T:
        async def run() -> T:
            async with self._engine.begin() as conn:
                return await func_(conn)

        with tracer.start_as_current_span(f"postgres.{operation}") as span:
            span.set_attribute("db.system", "postgresql")
            if key is not None:
                span.set_attribute("db.record_id", key)
            start_time = time.perf_counter()

            try:
                result = await run_with_context(ctx, f"postgres.{operation}", run())
            except (SQLAlchemyError, asyncpg.PostgresError, OSError) as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(
                    "Database operation failed",
                    operation=operation,
                    key=key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise DurableStoreUnavailableException(
                    message=f"Database {operation} failed: {e}",
                    operation=operation,
                    key=key,
                    original_error=e,
                ) from e

            span.set_attribute(
                "db.execution_time_ms", (time.perf_counter() - start_time) * 1000
            )
            span.set_status(Status(StatusCode.OK))
            return result

    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Record]:
        stmt = select(
            CacheableData.id,
            CacheableData.data,
            CacheableData.version,
            CacheableData.created_at,
            CacheableData.updated_at,
        ).where(CacheableData.id == key)

        async def run(conn: AsyncConnection):
            result = await conn.execute(stmt)
            return result.first()

        row = await self._execute("get", key, ctx, run)
        if row is None:
            return None

        return Record(
            key=row.id,
            data=decode_value(row.data, key=key),
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        encoded = encode_value(extract_data(value), key=key)

        insert_stmt = pg_insert(CacheableData).values(id=key, data=encoded, version=1)
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[CacheableData.id],
            set_={
                "data": insert_stmt.excluded.data,
                "version": CacheableData.version + 1,
                "updated_at": func.now(),
            },
        )

        async def run(conn: AsyncConnection) -> None:
            await conn.execute(stmt)

        await self._execute("set", key, ctx, run)
        logger.debug("Record upserted", key=key)

    async def update(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        encoded = encode_value(extract_data(value), key=key)
        expected = extract_expected_version(value)

        stmt = (
            sa_update(CacheableData)
            .where(CacheableData.id == key, CacheableData.version == expected)
            .values(
                data=encoded,
                version=CacheableData.version + 1,
                updated_at=func.now(),
            )
        )
        current_stmt = select(CacheableData.version).where(CacheableData.id == key)

        async def run(conn: AsyncConnection) -> None:
            result = await conn.execute(stmt)
            if result.rowcount:
                return

            current = (await conn.execute(current_stmt)).scalar_one_or_none()
            if current is None:
                raise RecordNotFoundException(key)
            raise OptimisticLockConflictException(
                key, expected_version=expected, current_version=current
            )

        await self._execute("update", key, ctx, run)
        logger.debug("Record updated", key=key, version=expected + 1)

    async def delete(self, key: str, ctx: Optional[OperationContext] = None) -> None:
        stmt = sa_delete(CacheableData).where(CacheableData.id == key)

        async def run(conn: AsyncConnection) -> None:
            await conn.execute(stmt)

        await self._execute("delete", key, ctx, run)

    async def fetch_change_log(
        self,
        after_id: int = 0,
        limit: int = 100,
        ctx: Optional[OperationContext] = None,
    ) -> List[ChangeLogEntry]:
        """Change log rows with ``id > after_id``, oldest first."""
        if limit < 1 or limit > 1000:
            raise ValueError("limit must be between 1 and 1000")

        stmt = (
            select(CacheInvalidationLog)
            .where(CacheInvalidationLog.id > after_id)
            .order_by(CacheInvalidationLog.id)
            .limit(limit)
        )

        async def run(conn: AsyncConnection):
            result = await conn.execute(stmt)
            return result.all()

        rows = await self._execute("fetch_change_log", None, ctx, run)
        return [
            ChangeLogEntry(
                id=row.id,
                operation=ChangeOperation(row.operation),
                table_name=row.table_name,
                record_id=row.record_id,
                old_data=row.old_data,
                new_data=row.new_data,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()
            logger.info("Database engine disposed")
