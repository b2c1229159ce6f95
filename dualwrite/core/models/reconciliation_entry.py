"""
ReconciliationEntry model representing a record waiting for its document-store write.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationEntry(BaseModel):
    """
    A half-written record: present in the primary store, missing or stale
    in the document store.

    Attributes:
        entry_id: Queue-assigned identifier (None until persisted)
        record_id: Idempotency key of the record
        document: Full document projection to replay into the document store
        failure_reason: Why the original secondary write failed
        enqueued_at: When the entry was published
        attempts: Number of replay attempts made so far
        last_error: Failure reason of the latest replay attempt
        resolved_at: When a replay succeeded or a later write superseded the entry
    """

    entry_id: int | None = None
    record_id: str = Field(..., min_length=1)
    document: dict[str, Any]
    failure_reason: str
    enqueued_at: datetime = Field(default_factory=_utcnow)
    attempts: int = Field(0, ge=0)
    last_error: str | None = None
    resolved_at: datetime | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "entry_id": 1,
                "record_id": "rec-001",
                "document": {"id": "rec-001", "status": "Active", "name": "Sample Record 1"},
                "failure_reason": "StoreUnavailable",
                "attempts": 0
            }
        }
