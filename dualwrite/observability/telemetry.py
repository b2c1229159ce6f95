"""
Telemetry events emitted by the ingestion core.

The core populates the event schema; transport belongs to the sink. One
``record_completed`` event is emitted per record and one ``batch_completed``
event per batch.
"""

from abc import ABC, abstractmethod
from typing import Any

from dualwrite.core.models import BatchSummary, FinalState, RecordResult
from dualwrite.observability import metrics
from dualwrite.observability.logger import get_logger

logger = get_logger(__name__)

RECORD_COMPLETED = "record_completed"
BATCH_COMPLETED = "batch_completed"


def build_record_event(batch_id: str, result: RecordResult, duration_seconds: float) -> dict[str, Any]:
    """Build the completion event for one record."""
    return {
        "event": RECORD_COMPLETED,
        "batch_id": batch_id,
        "index": result.index,
        "record_id": result.id,
        "final_state": result.final_state.value,
        "primary_outcome": str(result.primary_outcome) if result.primary_outcome is not None else None,
        "secondary_outcome": str(result.secondary_outcome) if result.secondary_outcome is not None else None,
        "reason": result.reason,
        "reconciliation_tracked": result.reconciliation_tracked,
        "duration_ms": int(duration_seconds * 1000),
    }


def build_batch_event(summary: BatchSummary) -> dict[str, Any]:
    """Build the summary event for one batch."""
    return {
        "event": BATCH_COMPLETED,
        "batch_id": summary.batch_id,
        "received": summary.received,
        "processed": summary.processed,
        "failed": summary.failed,
        "pending": summary.pending,
        "duration_ms": summary.duration_ms,
        "timed_out": summary.timed_out,
        "cancelled": summary.cancelled,
    }


class TelemetrySink(ABC):
    """Receives structured ingestion events."""

    @abstractmethod
    def emit(self, event: dict[str, Any]) -> None:
        pass


class LoggingTelemetrySink(TelemetrySink):
    """
    Default sink: writes each event as a structured log line and updates
    the Prometheus metrics derived from it.
    """

    def __init__(self, event_logger=None):
        self.logger = event_logger or get_logger("dualwrite.telemetry")

    def emit(self, event: dict[str, Any]) -> None:
        self.logger.info(event["event"], extra=event)

        if event["event"] == RECORD_COMPLETED:
            metrics.increment_counter(
                metrics.records_ingested_total, 1, final_state=event["final_state"]
            )
            if event["final_state"] == FinalState.REJECTED.value and event.get("reason"):
                metrics.increment_counter(
                    metrics.record_rejections_total, 1, reason=event["reason"]
                )
            metrics.observe_histogram(
                metrics.record_processing_latency_seconds, event["duration_ms"] / 1000
            )


class CollectingTelemetrySink(TelemetrySink):
    """In-memory sink that keeps every event, for tests and embedding callers."""

    def __init__(self):
        self.events: list[dict[str, Any]] = []

    def emit(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e["event"] == event_type]


def safe_emit(sink: TelemetrySink, event: dict[str, Any]) -> None:
    """Emit an event; a failing sink is logged and never fails the batch."""
    try:
        sink.emit(event)
    except Exception as e:
        logger.error(
            f"Telemetry sink failed for event {event.get('event')}: {e}",
            extra={"batch_id": event.get("batch_id"), "error_type": type(e).__name__},
        )
