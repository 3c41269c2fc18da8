"""
In-Memory Store Implementations

Store contracts backed by process memory. They follow the same semantics as
the Redis and PostgreSQL stores (encoded snapshots with expiry, versioned
upserts, conditional updates and a change log) and are used for tests and
single-process deployments.
"""

import asyncio
import copy
import itertools
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from ...core.context import OperationContext, ensure_context
from ...domain.cache.codec import decode_mapping, encode_fields, encode_value
from ...domain.cache.entities import (
    CachedEntry,
    ChangeLogEntry,
    Record,
    extract_data,
    extract_expected_version,
    utcnow,
)
from ...domain.cache.exceptions import (
    OptimisticLockConflictException,
    RecordNotFoundException,
)
from ...domain.cache.repository_interfaces import DurableStore, VolatileStore
from ...domain.cache.value_objects import TTL, ChangeOperation

TABLE_NAME = "cacheable_data"


class InMemoryVolatileStore(VolatileStore):
    """
    In-memory volatile store with per-key expiry.

    Values are kept as encoded text so reads go through the same decode step
    as a networked store.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CachedEntry] = {}
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._lock = asyncio.Lock()

    def _live_entry(self, key: str) -> Optional[CachedEntry]:
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Dict[str, Any]]:
        ensure_context(ctx).raise_if_done("volatile.get")
        async with self._lock:
            entry = self._live_entry(key)
        if entry is None:
            return None
        return decode_mapping(entry.payload, key=key)

    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ttl: TTL,
        ctx: Optional[OperationContext] = None,
    ) -> None:
        ensure_context(ctx).raise_if_done("volatile.set")
        payload = encode_value(dict(value), key=key)
        async with self._lock:
            self._entries[key] = CachedEntry(
                payload=payload, expires_at=self._clock() + ttl.seconds
            )

    async def delete(self, key: str, ctx: Optional[OperationContext] = None) -> None:
        ensure_context(ctx).raise_if_done("volatile.delete")
        async with self._lock:
            self._entries.pop(key, None)
            self._hashes.pop(key, None)

    async def hset(
        self,
        key: str,
        fields: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        ensure_context(ctx).raise_if_done("volatile.hset")
        encoded = encode_fields(fields, key=key)
        async with self._lock:
            target = self._hashes.setdefault(key, {})
            for name, value in encoded.items():
                target[name] = value if isinstance(value, str) else str(value)

    async def hgetall(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Dict[str, str]:
        ensure_context(ctx).raise_if_done("volatile.hgetall")
        async with self._lock:
            return dict(self._hashes.get(key, {}))

    async def ttl(self, key: str) -> Optional[float]:
        """Remaining lifetime of ``key`` in seconds, or None when absent."""
        async with self._lock:
            entry = self._live_entry(key)
        if entry is None:
            return None
        return entry.remaining(self._clock())

    async def raw(self, key: str) -> Optional[str]:
        """Encoded payload stored for ``key``."""
        async with self._lock:
            entry = self._live_entry(key)
        return entry.payload if entry else None

    async def put_raw(self, key: str, payload: str, ttl: TTL) -> None:
        """Store an already encoded payload, bypassing the codec."""
        async with self._lock:
            self._entries[key] = CachedEntry(
                payload=payload, expires_at=self._clock() + ttl.seconds
            )


class InMemoryDurableStore(DurableStore):
    """
    In-memory durable store with versioned records and a change log.

    ``set`` upserts (version 1 on insert, +1 on overwrite); ``update`` only
    applies when the supplied version matches the stored one.
    """

    def __init__(self):
        self._records: Dict[str, Record] = {}
        self._change_log: List[ChangeLogEntry] = []
        self._log_ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def get(
        self, key: str, ctx: Optional[OperationContext] = None
    ) -> Optional[Record]:
        ensure_context(ctx).raise_if_done("durable.get")
        async with self._lock:
            record = self._records.get(key)
            return copy.deepcopy(record) if record is not None else None

    async def set(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        ensure_context(ctx).raise_if_done("durable.set")
        data = copy.deepcopy(extract_data(value))
        now = utcnow()

        async with self._lock:
            existing = self._records.get(key)
            if existing is None:
                record = Record(
                    key=key, data=data, version=1, created_at=now, updated_at=now
                )
                self._log(ChangeOperation.INSERT, key, None, record)
            else:
                record = Record(
                    key=key,
                    data=data,
                    version=existing.version + 1,
                    created_at=existing.created_at,
                    updated_at=now,
                )
                self._log(ChangeOperation.UPDATE, key, existing, record)
            self._records[key] = record

    async def update(
        self,
        key: str,
        value: Mapping[str, Any],
        ctx: Optional[OperationContext] = None,
    ) -> None:
        ensure_context(ctx).raise_if_done("durable.update")
        data = copy.deepcopy(extract_data(value))
        expected = extract_expected_version(value)

        async with self._lock:
            existing = self._records.get(key)
            if existing is None:
                raise RecordNotFoundException(key)
            if existing.version != expected:
                raise OptimisticLockConflictException(
                    key, expected_version=expected, current_version=existing.version
                )

            record = Record(
                key=key,
                data=data,
                version=existing.version + 1,
                created_at=existing.created_at,
                updated_at=utcnow(),
            )
            self._log(ChangeOperation.UPDATE, key, existing, record)
            self._records[key] = record

    async def delete(self, key: str, ctx: Optional[OperationContext] = None) -> None:
        ensure_context(ctx).raise_if_done("durable.delete")
        async with self._lock:
            existing = self._records.pop(key, None)
            if existing is not None:
                self._log(ChangeOperation.DELETE, key, existing, None)

    async def fetch_change_log(
        self,
        after_id: int = 0,
        limit: int = 100,
        ctx: Optional[OperationContext] = None,
    ) -> List[ChangeLogEntry]:
        """Change log entries with ``id > after_id``, oldest first."""
        ensure_context(ctx).raise_if_done("durable.fetch_change_log")
        if limit < 1 or limit > 1000:
            raise ValueError("limit must be between 1 and 1000")

        async with self._lock:
            entries = [e for e in self._change_log if e.id > after_id]
            return copy.deepcopy(entries[:limit])

    def _log(
        self,
        operation: ChangeOperation,
        key: str,
        old: Optional[Record],
        new: Optional[Record],
    ) -> None:
        # Caller must hold the lock.
        self._change_log.append(
            ChangeLogEntry(
                id=next(self._log_ids),
                operation=operation,
                table_name=TABLE_NAME,
                record_id=key,
                old_data=_row(old),
                new_data=_row(new),
            )
        )


def _row(record: Optional[Record]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {
        "id": record.key,
        "data": encode_value(record.data, key=record.key),
        "version": record.version,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }
