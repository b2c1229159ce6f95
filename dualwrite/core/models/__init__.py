"""
Core data models for the dual-write ingestion engine.

All models use Pydantic for runtime validation and type safety.
"""

from .batch_summary import BatchAccumulator, BatchSummary
from .outcome import (
    FinalState,
    OutcomeStatus,
    RecordResult,
    WriteOutcome,
    classify_final_state,
)
from .reconciliation_entry import ReconciliationEntry
from .record import Record
from .rejection import RejectionCode, RejectionReason

__all__ = [
    "Record",
    "RejectionCode",
    "RejectionReason",
    "OutcomeStatus",
    "WriteOutcome",
    "FinalState",
    "RecordResult",
    "classify_final_state",
    "BatchSummary",
    "BatchAccumulator",
    "ReconciliationEntry",
]
