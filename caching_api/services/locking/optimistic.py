"""
Optimistic update loop.

Caller-side read-modify-write helper built on the version primitives:

1. read the authoritative record from the durable store;
2. claim ``version + 1`` in the ``VersionManager`` with ``check_and_set`` so
   that only one in-process caller proceeds per version;
3. push the mutated data through a strategy's ``update``, carrying the read
   version for the durable store's conditional check.

A lost claim or a durable conflict raises ``OptimisticLockConflictException``,
which is retried with exponential backoff via tenacity. The strategies
themselves never retry.
"""

import copy
from typing import Any, Callable, Dict, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.config import Settings
from ...core.context import OperationContext, ensure_context
from ...domain.cache.exceptions import (
    OptimisticLockConflictException,
    RecordNotFoundException,
)
from ...domain.cache.repository_interfaces import DurableStore
from ...monitoring import metrics
from ..cache.strategies import CacheStrategy
from .version_manager import VersionManager

logger = structlog.get_logger()


class OptimisticUpdater:
    """Retry-until-success updates for a single strategy."""

    def __init__(
        self,
        strategy: CacheStrategy,
        version_manager: VersionManager,
        db: Optional[DurableStore] = None,
        max_attempts: int = 3,
        wait_seconds: float = 0.05,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.strategy = strategy
        self.version_manager = version_manager
        self.db = db or strategy.db
        self.max_attempts = max_attempts
        self.wait_seconds = wait_seconds

    @classmethod
    def from_settings(
        cls,
        strategy: CacheStrategy,
        version_manager: VersionManager,
        settings: Settings,
    ) -> "OptimisticUpdater":
        return cls(
            strategy,
            version_manager,
            max_attempts=settings.OPTIMISTIC_MAX_ATTEMPTS,
            wait_seconds=settings.OPTIMISTIC_RETRY_WAIT_SECONDS,
        )

    async def update(
        self,
        key: str,
        mutate: Callable[[Any], Any],
        ctx: Optional[OperationContext] = None,
    ) -> Dict[str, Any]:
        """
        Apply ``mutate`` to the current data of ``key`` until it sticks.

        Args:
            key: Record key
            mutate: Receives a deep copy of the current data, returns new data
            ctx: Optional cancellation/deadline context

        Returns:
            The value written, with the version the durable store assigned

        Raises:
            OptimisticLockConflictException: still conflicting after the last attempt
            RecordNotFoundException: no record exists for ``key``
        """
        ctx = ensure_context(ctx)
        result: Dict[str, Any] = {}

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.wait_seconds, max=2.0),
            retry=retry_if_exception_type(OptimisticLockConflictException),
            reraise=True,
            before_sleep=lambda retry_state: logger.info(
                "Optimistic update retry",
                key=key,
                attempt=retry_state.attempt_number,
            ),
        )

        async for attempt in retrying:
            with attempt:
                result = await self._attempt(key, mutate, ctx)

        return result

    async def _attempt(
        self, key: str, mutate: Callable[[Any], Any], ctx: OperationContext
    ) -> Dict[str, Any]:
        ctx.raise_if_done("optimistic_update")
        record = await self.db.get(key, ctx=ctx)
        if record is None:
            raise RecordNotFoundException(key)

        new_data = mutate(copy.deepcopy(record.data))
        self._claim(key, record.version)

        try:
            await self.strategy.update(
                key, {"data": new_data, "version": record.version}, ctx=ctx
            )
        except BaseException:
            # Give the version back so other callers are not blocked until expiry.
            self.version_manager.check_and_set(key, record.version + 1, record.version)
            raise

        return {"id": key, "data": new_data, "version": record.version + 1}

    def _claim(self, key: str, version: int) -> None:
        tracked, found = self.version_manager.get_version(key)
        if not found or tracked < version:
            self.version_manager.set_version(key, version)
            tracked = version

        if tracked != version or not self.version_manager.check_and_set(
            key, version, version + 1
        ):
            metrics.optimistic_conflicts.labels(source="version_manager").inc()
            raise OptimisticLockConflictException(
                key, expected_version=version, current_version=tracked
            )
