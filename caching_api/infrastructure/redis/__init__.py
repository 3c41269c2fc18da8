"""
Redis Infrastructure Module

This module provides:
- RedisVolatileStore: VolatileStore over redis.asyncio
- create_redis_client: pooled client built from settings
- verify_redis_connection: startup connectivity check
"""

from .connection_factory import create_redis_client, verify_redis_connection
from .redis_store import RedisVolatileStore

__all__ = [
    "RedisVolatileStore",
    "create_redis_client",
    "verify_redis_connection",
]
