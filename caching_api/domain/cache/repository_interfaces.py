"""
Store Interfaces

Abstract store contracts the cache strategies are written against.
Implementations live under ``caching_api.infrastructure``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from ...core.context import OperationContext
from .entities import Record
from .value_objects import TTL


class VolatileStore(ABC):
    """
    Abstract contract for the fast, expiring key-value store.

    A missing key is a normal ``None`` result. Transport failures raise
    ``VolatileStoreUnavailableException``; undecodable payloads raise
    ``CacheSerializationException``.
    """

    @abstractmethod
    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the cached value, or None when absent."""
        pass

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ttl: TTL,
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """Cache a value for ``ttl``."""
        pass

    @abstractmethod
    async def delete(self, key: str, ctx: Optional[OperationContext] = None) -> None:
        """Remove a cached value. Deleting a missing key is not an error."""
        pass

    @abstractmethod
    async def hset(
        self,
        key: str,
        fields: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """Write several fields of a structured record."""
        pass

    @abstractmethod
    async def hgetall(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Dict[str, str]:
        """Read all fields of a structured record (empty when absent)."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        return None


class DurableStore(ABC):
    """
    Abstract contract for the authoritative versioned record store.

    Transport failures raise ``DurableStoreUnavailableException``.
    """

    @abstractmethod
    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Record]:
        """Return the record for ``key``, or None when absent."""
        pass

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """Unconditional upsert.

        Inserts with version 1, or overwrites the data of an existing record
        and increments its version. The caller's version is not checked.
        """
        pass

    @abstractmethod
    async def update(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """Conditional update against ``value["version"]``.

        Raises:
            OptimisticLockConflictException: record exists with another version
            RecordNotFoundException: no record for ``key``
        """
        pass

    @abstractmethod
    async def delete(self, key: str, ctx: Optional[OperationContext] = None) -> None:
        """Delete the record. Deleting a missing key is not an error."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        return None
