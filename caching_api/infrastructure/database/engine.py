"""
Database engine setup.

Creates the async SQLAlchemy engine for the durable store and verifies
connectivity with exponential-backoff retries.
"""

import time
from typing import Optional

import asyncpg
import structlog
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import Settings, get_settings

logger = structlog.get_logger()


def create_database_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """Create a pooled async engine configured from settings."""
    settings = settings or get_settings()

    engine = create_async_engine(
        settings.async_database_url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_recycle=settings.DATABASE_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DATABASE_ECHO,
        connect_args={
            "server_settings": {"application_name": "caching_api"},
        },
    )

    logger.info(
        "Database engine created",
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_recycle=settings.DATABASE_POOL_RECYCLE,
    )
    return engine


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(
        (asyncpg.PostgresConnectionError, OperationalError, ConnectionError, OSError)
    ),
    before_sleep=lambda retry_state: logger.warning(
        "Database connection retry",
        attempt=retry_state.attempt_number,
        wait_time=retry_state.next_action.sleep,
    ),
    reraise=True,
)
async def verify_connection(engine: AsyncEngine) -> None:
    """Run ``SELECT 1`` against the engine, retrying transient failures."""
    start_time = time.time()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    logger.info(
        "Database connection verified", duration_seconds=time.time() - start_time
    )
