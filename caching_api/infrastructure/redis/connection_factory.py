"""
Redis connection factory.

Builds a pooled ``redis.asyncio`` client from settings and verifies it.
The returned client is owned by the caller and may be shared by any number
of stores and strategies.
"""

from typing import Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from ...core.config import Settings, get_settings
from ...domain.cache.exceptions import VolatileStoreUnavailableException

logger = structlog.get_logger()


def create_redis_client(settings: Optional[Settings] = None) -> Redis:
    """Create a pooled Redis client configured from settings."""
    settings = settings or get_settings()

    pool = ConnectionPool.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        retry_on_timeout=True,
    )
    logger.info(
        "Redis client created",
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
    )
    return Redis(connection_pool=pool)


async def verify_redis_connection(client: Redis) -> None:
    """Ping the server once, raising a domain error when it is unreachable."""
    try:
        await client.ping()
    except RedisError as e:
        logger.error("Redis connection check failed", error=str(e))
        raise VolatileStoreUnavailableException(
            message=f"Redis connection check failed: {e}",
            operation="ping",
            original_error=e,
        ) from e
