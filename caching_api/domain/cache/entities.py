"""
Cache Domain Entities

Core domain entities for the consistency layer.
Encapsulates invariants for durable records, cached snapshots and tracked
versions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .value_objects import ChangeOperation, RecordVersion


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_data(value: Mapping[str, Any]) -> Any:
    """Return the ``data`` payload of a strategy value."""
    if not isinstance(value, Mapping):
        raise TypeError(f"value must be a mapping, got {type(value).__name__}")
    if "data" not in value:
        raise ValueError("value must contain a 'data' entry")
    return value["data"]


def extract_expected_version(value: Mapping[str, Any]) -> int:
    """Return the version the caller believes is current."""
    if not isinstance(value, Mapping):
        raise TypeError(f"value must be a mapping, got {type(value).__name__}")
    if "version" not in value:
        raise ValueError("update value must carry the expected 'version'")
    return RecordVersion(value["version"]).value


@dataclass
class Record:
    """
    Durable record entity.

    The authoritative copy of a key's data together with the version used
    for optimistic locking.
    """

    key: str
    data: Any
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        RecordVersion(self.version)

    def to_value(self) -> Dict[str, Any]:
        """Render the record as the value mapping strategies hand out."""
        return {"id": self.key, "data": self.data, "version": self.version}


@dataclass
class CachedEntry:
    """
    Volatile-store snapshot of a value.

    The payload is opaque encoded text; no version is guaranteed inside it.
    """

    payload: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


@dataclass
class VersionEntry:
    """Last-known version of a key, logically absent once expired."""

    version: int
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class ChangeLogEntry:
    """
    Append-only change log row.

    Written by the durable store for every insert, update and delete so that
    external consumers can invalidate caches they own.
    """

    id: int
    operation: ChangeOperation
    table_name: str
    record_id: str
    old_data: Optional[Dict[str, Any]] = None
    new_data: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=utcnow)
