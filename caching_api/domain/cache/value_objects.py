"""
Cache Value Objects

Immutable value objects for the cache domain.
Provides type safety and validation for keys, lifetimes and versions.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum


class StrategyName(str, Enum):
    """Available cache-consistency strategies."""

    CACHE_ASIDE = "cache_aside"
    WRITE_THROUGH = "write_through"


class ChangeOperation(str, Enum):
    """Row operations recorded in the durable change log."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Keys are shared verbatim between the volatile and durable stores, so they
    must fit the durable primary key column.
    """

    value: str

    MAX_LENGTH = 255

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not isinstance(self.value, str):
            raise TypeError(f"Cache key must be str, got {type(self.value).__name__}")

        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > self.MAX_LENGTH:
            raise ValueError(f"Cache key too long (max {self.MAX_LENGTH} characters)")

    @classmethod
    def validate(cls, key: str) -> str:
        """Validate a raw key and return it unchanged."""
        return cls(key).value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Provides type-safe TTL configuration with validation.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls(minutes * 60)

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        """Create TTL from hours."""
        return cls(hours * 3600)

    # Strategy presets
    @classmethod
    def cache_aside(cls) -> "TTL":
        """Cache-aside entry lifetime (5 minutes)."""
        return cls.minutes(5)

    @classmethod
    def write_through(cls) -> "TTL":
        """Write-through entry lifetime (10 minutes)."""
        return cls.minutes(10)

    @property
    def timedelta(self) -> timedelta:
        return timedelta(seconds=self.seconds)

    def __str__(self) -> str:
        return f"{self.seconds}s"


@dataclass(frozen=True)
class RecordVersion:
    """
    Record version value object for optimistic locking.

    Versions start at 1 and only move forward for a given key.
    """

    value: int

    def __post_init__(self) -> None:
        """Validate version value."""
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(
                f"Record version must be int, got {type(self.value).__name__}"
            )
        if self.value < 0:
            raise ValueError("Record version cannot be negative")

    @classmethod
    def initial(cls) -> "RecordVersion":
        """Create initial record version."""
        return cls(1)

    def next(self) -> "RecordVersion":
        """Get next version."""
        return RecordVersion(self.value + 1)

    def __str__(self) -> str:
        return f"v{self.value}"
