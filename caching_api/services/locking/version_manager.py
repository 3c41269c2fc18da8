"""
Version Manager

In-process, time-bounded map from key to the last-known record version.
Backs compare-and-swap style optimistic locking without a round-trip to the
durable store.

Entries live for ``ttl_seconds`` after their last touch. Reads treat an
expired entry as absent (lazy expiry); ``cleanup_expired`` removes them
physically and is meant to be driven by an external timer such as
``VersionSweeper``.

The lock guards the in-memory map only. No method performs I/O.
"""

import time
from typing import Callable, Dict, Optional, Tuple

import structlog

from ...domain.cache.entities import VersionEntry
from .rwlock import ReadWriteLock

logger = structlog.get_logger()

DEFAULT_VERSION_TTL_SECONDS = 300.0


class VersionManager:
    """
    Thread-safe version tracker with per-entry expiry.

    Construct one per process and pass it by reference to the components
    that need it; there is no module-level instance.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_VERSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, VersionEntry] = {}
        self._lock = ReadWriteLock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def _touch(self, key: str, version: int) -> None:
        # Caller must hold the write lock.
        self._entries[key] = VersionEntry(
            version=version, expires_at=self._clock() + self._ttl_seconds
        )

    def get_version(self, key: str) -> Tuple[int, bool]:
        """
        Get the tracked version for a key.

        Returns:
            (version, found). ``found`` is False when the key was never set or
            its entry has expired, even if it has not been swept yet.
        """
        with self._lock.read_locked():
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(self._clock()):
                return 0, False
            return entry.version, True

    def set_version(self, key: str, version: int) -> None:
        """Unconditionally record ``version`` for ``key`` and refresh its TTL."""
        with self._lock.write_locked():
            self._touch(key, version)

    def increment_version(self, key: str) -> int:
        """
        Atomically increment the tracked version and return the new value.

        An absent key counts as version 0, so the first increment returns 1.
        This does not report whether the key existed; check ``get_version``
        first when that matters. An expired entry counts as absent.
        """
        with self._lock.write_locked():
            entry = self._entries.get(key)
            current = 0
            if entry is not None and not entry.is_expired(self._clock()):
                current = entry.version
            new_version = current + 1
            self._touch(key, new_version)
            return new_version

    def check_and_set(self, key: str, expected: int, new_version: int) -> bool:
        """
        Atomic compare-and-swap.

        Commits ``new_version`` with a refreshed TTL only when the key is
        present and its stored version equals ``expected``. Presence here is
        physical: an entry that ``get_version`` already reports as expired
        but that has not been swept can still be matched.

        Returns:
            True if the swap happened, False otherwise (state untouched).
        """
        with self._lock.write_locked():
            entry = self._entries.get(key)
            if entry is None or entry.version != expected:
                return False
            self._touch(key, new_version)
            return True

    def cleanup_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock.write_locked():
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("Expired version entries removed", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        """Number of physically present entries, expired or not."""
        with self._lock.read_locked():
            return len(self._entries)

    def snapshot(self, key: str) -> Optional[VersionEntry]:
        """Copy of the raw entry for ``key`` regardless of expiry."""
        with self._lock.read_locked():
            entry = self._entries.get(key)
            if entry is None:
                return None
            return VersionEntry(version=entry.version, expires_at=entry.expires_at)
