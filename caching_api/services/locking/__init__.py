"""
Version Tracking Services

In-process version manager, its reader/writer lock and the periodic sweeper.
The optimistic update loop lives in ``.optimistic`` and is imported from
there directly.
"""

from .rwlock import ReadWriteLock
from .sweeper import VersionSweeper
from .version_manager import VersionManager

__all__ = ["ReadWriteLock", "VersionManager", "VersionSweeper"]
