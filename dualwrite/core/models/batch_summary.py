"""
BatchSummary model and the accumulator that builds it during a batch.
"""

from typing import Any

from pydantic import BaseModel, Field

from .outcome import FinalState, RecordResult


class BatchSummary(BaseModel):
    """
    Sealed, immutable outcome of one ingestion batch.

    Attributes:
        batch_id: Identifier shared by all telemetry events of the batch
        received: Number of records submitted
        processed: Records that reached the primary store (Consistent or PendingReconciliation)
        failed: Records rejected (validation or primary failure)
        pending: Records awaiting reconciliation of the document store
        duration_ms: Wall-clock duration of the batch
        timed_out: Whether the batch timeout interrupted in-flight records
        cancelled: Whether the caller cancelled the batch
        results: One RecordResult per input record, in input order
    """

    batch_id: str
    received: int = Field(..., ge=0)
    processed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    pending: int = Field(..., ge=0)
    duration_ms: int = Field(..., ge=0)
    timed_out: bool = False
    cancelled: bool = False
    results: tuple[RecordResult, ...] = ()

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "batch_id": "4f1c2a9e0b7d4c8e9a1f3b5d7c9e1a2b",
                "received": 1,
                "processed": 1,
                "failed": 0,
                "pending": 0,
                "duration_ms": 12,
                "timed_out": False,
                "cancelled": False,
                "results": [
                    {
                        "index": 0,
                        "id": "rec-001",
                        "primary_outcome": {"status": "Written"},
                        "secondary_outcome": {"status": "Written"},
                        "final_state": "Consistent"
                    }
                ]
            }
        }

    def to_dict(self) -> dict[str, Any]:
        """Encode as the mapping returned by the ingestion entry point."""
        return {
            "batchId": self.batch_id,
            "received": self.received,
            "processed": self.processed,
            "failed": self.failed,
            "pending": self.pending,
            "durationMs": self.duration_ms,
            "timedOut": self.timed_out,
            "cancelled": self.cancelled,
            "results": [result.to_dict() for result in self.results],
        }


class BatchAccumulator:
    """
    Mutable collector of RecordResults for one running batch.

    Results arrive in completion order. Only the executor's collection loop
    appends, so appends are serialized. Sealing sorts by input index and
    freezes the summary; the accumulator rejects writes afterwards.
    """

    def __init__(self, batch_id: str, received: int):
        self.batch_id = batch_id
        self.received = received
        self._results: list[RecordResult] = []
        self._indices: set[int] = set()
        self._sealed: BatchSummary | None = None

    def add(self, result: RecordResult) -> None:
        if self._sealed is not None:
            raise RuntimeError(f"Batch {self.batch_id} is sealed")
        if result.index in self._indices:
            raise ValueError(f"Result for index {result.index} already recorded")
        if result.index >= self.received:
            raise ValueError(f"Index {result.index} outside batch of {self.received}")
        self._indices.add(result.index)
        self._results.append(result)

    def has(self, index: int) -> bool:
        return index in self._indices

    @property
    def completed(self) -> int:
        return len(self._results)

    @property
    def completion_order(self) -> list[int]:
        return [result.index for result in self._results]

    def seal(self, duration_ms: int, timed_out: bool = False, cancelled: bool = False) -> BatchSummary:
        """
        Freeze the accumulated results into a BatchSummary.

        Raises:
            RuntimeError: If some input record has no result yet
        """
        if self._sealed is not None:
            return self._sealed

        if len(self._results) != self.received:
            raise RuntimeError(
                f"Cannot seal batch {self.batch_id}: "
                f"{len(self._results)} of {self.received} results recorded"
            )

        ordered = tuple(sorted(self._results, key=lambda r: r.index))
        states = [r.final_state for r in ordered]
        pending = states.count(FinalState.PENDING_RECONCILIATION)

        self._sealed = BatchSummary(
            batch_id=self.batch_id,
            received=self.received,
            processed=states.count(FinalState.CONSISTENT) + pending,
            failed=states.count(FinalState.REJECTED),
            pending=pending,
            duration_ms=max(0, duration_ms),
            timed_out=timed_out,
            cancelled=cancelled,
            results=ordered,
        )
        return self._sealed
