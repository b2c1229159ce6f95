"""
Exception hierarchy for the dual-write ingestion engine.

Store errors carry an enumerated failure reason so the coordinator can
classify them without inspecting messages.
"""

from enum import Enum


class FailureReason(str, Enum):
    """Why a single store write did not succeed."""

    STORE_UNAVAILABLE = "StoreUnavailable"
    STORE_TIMEOUT = "StoreTimeout"
    CONSTRAINT_VIOLATION = "ConstraintViolation"
    TIMEOUT = "Timeout"
    CANCELLED = "Cancelled"


class IngestionError(Exception):
    """Base class for all ingestion engine errors."""
    pass


class StoreError(IngestionError):
    """Raised by a store adapter when a write cannot be completed."""

    reason: FailureReason = FailureReason.STORE_UNAVAILABLE

    def __init__(self, store: str, message: str):
        self.store = store
        self.message = message
        super().__init__(f"[{store}] {self.reason.value}: {message}")


class StoreUnavailableError(StoreError):
    """Connection refused, pool exhausted, or any other transport failure."""

    reason = FailureReason.STORE_UNAVAILABLE


class StoreTimeoutError(StoreError):
    """The store did not answer within its deadline."""

    reason = FailureReason.STORE_TIMEOUT


class ConstraintViolationError(StoreError):
    """The store refused the write because of an integrity constraint."""

    reason = FailureReason.CONSTRAINT_VIOLATION


class BatchTooLargeError(IngestionError):
    """Raised before any write when a batch exceeds the configured maximum size."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"BatchTooLarge: batch of {size} records exceeds maximum of {limit}")


class MalformedBatchError(IngestionError):
    """The batch request itself violates the ingestion contract."""
    pass


class ContractError(IngestionError):
    """A schema contract definition is invalid."""
    pass
