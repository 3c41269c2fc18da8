"""
Cache Layer Exceptions

Domain-specific exceptions for the consistency layer.
Store drivers translate their native errors into this hierarchy so that
strategies can tell transient unavailability apart from version conflicts
and corrupted payloads.
"""

from typing import Optional, Any, Dict


class CacheLayerException(Exception):
    """Base exception for consistency-layer errors.

    Carries a stable error code and structured details for logging.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class StoreUnavailableException(CacheLayerException):
    """Raised when a store cannot be reached or a call to it fails in transit."""

    store: str = "store"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"store": self.store}
        if operation:
            details["operation"] = operation
        if key is not None:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message or f"{self.store} store unavailable",
            error_code="STORE_UNAVAILABLE",
            details=details,
        )
        # Preserve exception context for debugging (exception chaining)
        if original_error:
            self.__cause__ = original_error


class VolatileStoreUnavailableException(StoreUnavailableException):
    """Raised when the volatile (key-value) store fails."""

    store = "volatile"


class DurableStoreUnavailableException(StoreUnavailableException):
    """Raised when the durable (relational) store fails."""

    store = "durable"


class OptimisticLockConflictException(CacheLayerException):
    """Raised when a conditional update affected zero rows.

    The record exists but its version no longer matches the one the caller
    supplied. Callers should re-read the record and retry.
    """

    def __init__(
        self,
        key: str,
        expected_version: Optional[int] = None,
        current_version: Optional[int] = None,
    ):
        details: Dict[str, Any] = {"key": key}
        if expected_version is not None:
            details["expected_version"] = expected_version
        if current_version is not None:
            details["current_version"] = current_version

        self.key = key
        self.expected_version = expected_version
        self.current_version = current_version

        super().__init__(
            message=f"optimistic locking conflict on key {key}",
            error_code="OPTIMISTIC_LOCK_CONFLICT",
            details=details,
        )


class RecordNotFoundException(CacheLayerException):
    """Raised when a conditional update targets a key with no record."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            message=f"record not found: {key}",
            error_code="RECORD_NOT_FOUND",
            details={"key": key},
        )


class CacheSerializationException(CacheLayerException):
    """Raised when a value cannot be encoded for, or decoded from, a store."""

    def __init__(
        self,
        message: str = "value could not be serialized",
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if key is not None:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="SERIALIZATION_ERROR", details=details
        )
        if original_error:
            self.__cause__ = original_error


class OperationContextException(CacheLayerException):
    """Base for errors raised because the caller's context is done."""


class OperationCancelledException(OperationContextException):
    """Raised when the caller cancelled the operation context."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__(
            message="operation cancelled" + (f": {reason}" if reason else ""),
            error_code="OPERATION_CANCELLED",
            details={"reason": reason} if reason else {},
        )


class DeadlineExceededException(OperationContextException):
    """Raised when the caller's deadline passed before the operation finished."""

    def __init__(self, operation: Optional[str] = None):
        super().__init__(
            message="operation deadline exceeded"
            + (f" during {operation}" if operation else ""),
            error_code="DEADLINE_EXCEEDED",
            details={"operation": operation} if operation else {},
        )
