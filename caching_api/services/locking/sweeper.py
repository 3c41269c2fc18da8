"""
Version Sweeper

Background task that periodically removes expired entries from a
``VersionManager``. The owner of the manager starts and stops it; nothing
here is global.
"""

import asyncio
from typing import Optional

import structlog

from .version_manager import VersionManager

logger = structlog.get_logger()


class VersionSweeper:
    """Periodic ``cleanup_expired`` driver."""

    def __init__(self, version_manager: VersionManager, interval_seconds: float = 60.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.version_manager = version_manager
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.sweeps = 0
        self.removed_total = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Version sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Version sweeper stopped", sweeps=self.sweeps)

    def sweep_once(self) -> int:
        removed = self.version_manager.cleanup_expired()
        self.sweeps += 1
        self.removed_total += removed
        return removed

    async def _sweep_loop(self) -> None:
        """Background sweep loop."""
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Version sweep failed", error=str(e), exc_info=True)

    async def __aenter__(self) -> "VersionSweeper":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
