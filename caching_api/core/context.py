"""
Operation Context

Carries a caller's cancellation flag and optional deadline through every
store call a strategy makes. Strategies check it between steps; stores use
``remaining()`` to bound each network round-trip.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

from ..domain.cache.exceptions import (
    DeadlineExceededException,
    OperationCancelledException,
)

T = TypeVar("T")


class OperationContext:
    """Cancellation and deadline carrier shared by one logical operation."""

    def __init__(
        self,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._deadline = deadline
        self._clock = clock
        self._cancelled = False
        self._reason: Optional[str] = None

    @classmethod
    def background(cls) -> "OperationContext":
        """Context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(
        cls, seconds: float, clock: Callable[[], float] = time.monotonic
    ) -> "OperationContext":
        """Context whose deadline is ``seconds`` from now."""
        if seconds <= 0:
            raise ValueError("timeout must be positive")
        return cls(deadline=clock() + seconds, clock=clock)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def cancel(self, reason: Optional[str] = None) -> None:
        """Mark the context cancelled. Idempotent; the first reason wins."""
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    def done(self) -> bool:
        return self._cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def raise_if_done(self, operation: Optional[str] = None) -> None:
        """Raise if the caller cancelled or the deadline has passed."""
        if self._cancelled:
            raise OperationCancelledException(self._reason)
        if self.expired:
            raise DeadlineExceededException(operation)

    def __repr__(self) -> str:
        return (
            f"OperationContext(deadline={self._deadline!r}, "
            f"cancelled={self._cancelled!r})"
        )


def ensure_context(ctx: Optional[OperationContext]) -> OperationContext:
    return ctx if ctx is not None else OperationContext.background()


async def run_with_context(
    ctx: Optional[OperationContext], operation: str, call: Awaitable[T]
) -> T:
    """Await ``call`` bounded by the context's remaining time.

    The awaitable is closed without running when the context is already done.
    """
    ctx = ensure_context(ctx)
    try:
        ctx.raise_if_done(operation)
    except Exception:
        if asyncio.iscoroutine(call):
            call.close()
        raise

    timeout = ctx.remaining()
    if timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise DeadlineExceededException(operation) from e
