"""
Redis Volatile Store

``VolatileStore`` implementation over ``redis.asyncio``. Values are stored
as JSON text with ``SET key value EX ttl``; structured records use hashes.
Driver errors become ``VolatileStoreUnavailableException`` and undecodable
payloads become ``CacheSerializationException``.
"""

import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ...core.context import OperationContext, run_with_context
from ...domain.cache.codec import decode_mapping, encode_fields, encode_value
from ...domain.cache.exceptions import VolatileStoreUnavailableException
from ...domain.cache.repository_interfaces import VolatileStore
from ...domain.cache.value_objects import TTL

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)

T = TypeVar("T")


class RedisVolatileStore(VolatileStore):
    """Redis-backed volatile store. The client is injected and shared."""

    def __init__(self, client: Redis, owns_client: bool = False):
        self._client = client
        self._owns_client = owns_client

    async def _execute(
        self,
        operation: str,
        key: str,
        ctx: Optional[OperationContext],
        func: Callable[[], Awaitable[T]],
    ) -> T:
        with tracer.start_as_current_span(f"redis.{operation}") as span:
            span.set_attribute("db.system", "redis")
            span.set_attribute("redis.key", key)
            start_time = time.perf_counter()

            try:
                result = await run_with_context(ctx, f"redis.{operation}", func())
            except RedisError as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.warning(
                    "Redis operation failed",
                    operation=operation,
                    key=key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise VolatileStoreUnavailableException(
                    message=f"Redis {operation} failed: {e}",
                    operation=operation,
                    key=key,
                    original_error=e,
                ) from e

            span.set_attribute(
                "redis.execution_time_ms", (time.perf_counter() - start_time) * 1000
            )
            span.set_status(Status(StatusCode.OK))
            return result

    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Dict[str, Any]]:
        raw = await self._execute("get", key, ctx, lambda: self._client.get(key))
        if raw is None:
            return None
        return decode_mapping(raw, key=key)

    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ttl: TTL,
        ctx: Optional[OperationContext] = None,
    ) -> None:
        payload = encode_value(dict(value), key=key)
        await self._execute(
            "set", key, ctx, lambda: self._client.set(key, payload, ex=ttl.seconds)
        )

    async def delete(self, key: str, ctx: Optional[OperationContext] = None) -> None:
        await self._execute("delete", key, ctx, lambda: self._client.delete(key))

    async def hset(
        self,
        key: str,
        fields: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        if not fields:
            return
        mapping = encode_fields(fields, key=key)
        await self._execute(
            "hset", key, ctx, lambda: self._client.hset(key, mapping=mapping)
        )

    async def hgetall(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Dict[str, str]:
        result = await self._execute(
            "hgetall", key, ctx, lambda: self._client.hgetall(key)
        )
        return {
            _text(name): _text(value) for name, value in (result or {}).items()
        }

    async def ttl(self, key: str, ctx: Optional[OperationContext] = None) -> Optional[int]:
        """Remaining lifetime of ``key`` in seconds, or None when absent/persistent."""
        remaining = await self._execute("ttl", key, ctx, lambda: self._client.ttl(key))
        if remaining is None or remaining < 0:
            return None
        return remaining

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
            logger.info("Redis store closed")


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return str(value)
