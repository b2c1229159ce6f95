"""
Per-store write outcomes and per-record results.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from dualwrite.core.errors import FailureReason


class OutcomeStatus(str, Enum):
    WRITTEN = "Written"
    UNCHANGED = "Unchanged"
    FAILED = "Failed"


class FinalState(str, Enum):
    CONSISTENT = "Consistent"
    PENDING_RECONCILIATION = "PendingReconciliation"
    REJECTED = "Rejected"


class WriteOutcome(BaseModel):
    """
    Outcome of one write attempt against one store.

    Attributes:
        status: Written, Unchanged or Failed
        reason: Failure reason, present only when status is Failed
    """

    status: OutcomeStatus
    reason: FailureReason | None = None

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_reason_matches_status(self) -> "WriteOutcome":
        """Only failed outcomes carry a reason, and they always do."""
        if self.status == OutcomeStatus.FAILED and self.reason is None:
            raise ValueError("Failed outcome requires a reason")
        if self.status != OutcomeStatus.FAILED and self.reason is not None:
            raise ValueError(f"{self.status.value} outcome cannot carry a reason")
        return self

    @classmethod
    def written(cls) -> "WriteOutcome":
        return cls(status=OutcomeStatus.WRITTEN)

    @classmethod
    def unchanged(cls) -> "WriteOutcome":
        return cls(status=OutcomeStatus.UNCHANGED)

    @classmethod
    def failed(cls, reason: FailureReason) -> "WriteOutcome":
        return cls(status=OutcomeStatus.FAILED, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    def __str__(self) -> str:
        if self.reason is None:
            return self.status.value
        return f"{self.status.value}({self.reason.value})"


def classify_final_state(
    primary: WriteOutcome | None,
    secondary: WriteOutcome | None,
) -> FinalState:
    """
    Derive the terminal state of a record from its two store outcomes.

    A missing primary outcome means the record never reached a store
    (validation rejection). A missing secondary outcome is only legal
    when the primary write failed.

    Raises:
        ValueError: For combinations the write ordering makes impossible
    """
    if primary is None:
        if secondary is not None:
            raise ValueError("secondary outcome without a primary write")
        return FinalState.REJECTED

    if not primary.succeeded:
        if secondary is not None:
            raise ValueError("secondary was attempted after a failed primary write")
        return FinalState.REJECTED

    if secondary is None:
        raise ValueError("primary succeeded but secondary outcome is missing")

    if secondary.succeeded:
        return FinalState.CONSISTENT
    return FinalState.PENDING_RECONCILIATION


class RecordResult(BaseModel):
    """
    Final, classified fate of one input record.

    Attributes:
        index: Position of the record in the submitted batch
        id: Record id, None when the raw record carried none
        primary_outcome: Relational store outcome (None if never attempted)
        secondary_outcome: Document store outcome (None if never attempted)
        final_state: Consistent, PendingReconciliation or Rejected
        reason: Rejection reason or the failure reason that drove the state
        reconciliation_tracked: For pending records, whether the
            reconciliation queue acknowledged the publish
    """

    index: int = Field(..., ge=0)
    id: str | None = None
    primary_outcome: WriteOutcome | None = None
    secondary_outcome: WriteOutcome | None = None
    final_state: FinalState
    reason: str | None = None
    reconciliation_tracked: bool | None = None

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_final_state(self) -> "RecordResult":
        expected = classify_final_state(self.primary_outcome, self.secondary_outcome)
        if expected != self.final_state:
            raise ValueError(
                f"final_state {self.final_state.value} does not match outcomes "
                f"(expected {expected.value})"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Encode for the ingestion entry point response."""
        encoded: dict[str, Any] = {
            "id": self.id,
            "finalState": self.final_state.value,
            "primaryOutcome": str(self.primary_outcome) if self.primary_outcome is not None else None,
            "secondaryOutcome": str(self.secondary_outcome) if self.secondary_outcome is not None else None,
        }
        if self.reason is not None:
            encoded["reason"] = self.reason
        if self.reconciliation_tracked is not None:
            encoded["reconciliationTracked"] = self.reconciliation_tracked
        return encoded
