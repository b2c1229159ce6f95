"""
Dual-write coordination for a single record.

Flow: primary upsert -> document upsert -> classify.

The primary store is the source of truth, so the document store is never
written unless the primary write succeeded. A document write failure
leaves the record PendingReconciliation and publishes its full document
projection to the reconciliation queue. A successful document write retires any
snapshots of the same record still waiting in the queue. Every store call is attempted
exactly once; retries belong to the reconciliation consumer.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from dualwrite.core.errors import FailureReason, StoreError
from dualwrite.core.models import Record, RecordResult, WriteOutcome, classify_final_state
from dualwrite.observability import metrics
from dualwrite.observability.logger import get_logger
from dualwrite.stores.base import PrimaryStore, ReconciliationQueue, SecondaryStore

logger = get_logger(__name__)


class RecordProgress:
    """
    Mutable trace of one record's journey through the stores.

    The coordinator fills it in as each store answers. If the batch is
    interrupted, the executor settles the record from whatever the trace
    holds at that moment.
    """

    def __init__(self, index: int, record: Record):
        self.index = index
        self.record = record
        self.started_at: float | None = None
        self.primary_outcome: WriteOutcome | None = None
        self.secondary_outcome: WriteOutcome | None = None
        self.reconciliation_tracked: bool | None = None


class DualWriteCoordinator:
    """
    Drives one record through both stores and classifies the result.

    Store adapter errors never escape: they become Failed(reason) outcomes.
    """

    def __init__(
        self,
        primary: PrimaryStore,
        secondary: SecondaryStore,
        queue: ReconciliationQueue,
        per_record_timeout: float = 5.0,
    ):
        """
        Initialize coordinator.

        Args:
            primary: Relational store adapter
            secondary: Document store adapter
            queue: Reconciliation queue receiving half-written records
            per_record_timeout: Default deadline in seconds for each store call
        """
        self.primary = primary
        self.secondary = secondary
        self.queue = queue
        self.per_record_timeout = per_record_timeout

    async def process(
        self,
        record: Record,
        index: int = 0,
        progress: RecordProgress | None = None,
        timeout: float | None = None,
    ) -> RecordResult:
        """
        Write one validated record to both stores.

        Args:
            record: Validated record
            index: Position of the record in its batch
            progress: Trace to fill in (created if not supplied)
            timeout: Per store call deadline, overriding the default

        Returns:
            Classified RecordResult
        """
        progress = progress or RecordProgress(index, record)
        timeout = timeout or self.per_record_timeout

        progress.primary_outcome = await self._write_primary(record, timeout)
        if not progress.primary_outcome.succeeded:
            return self.build_result(progress)

        progress.secondary_outcome = await self._write_secondary(record, timeout)
        if progress.secondary_outcome.succeeded:
            await self._supersede(record, timeout)
        else:
            progress.reconciliation_tracked = await self._publish(
                record, progress.secondary_outcome.reason, timeout
            )

        return self.build_result(progress)

    async def settle_interrupted(
        self,
        progress: RecordProgress,
        reason: FailureReason,
        timeout: float | None = None,
    ) -> RecordResult:
        """
        Classify a record whose processing was cut short by the batch.

        Whichever store had not answered is marked Failed(reason). A record
        that already reached the primary store is published for
        reconciliation, since its document write may never have landed.
        """
        timeout = timeout or self.per_record_timeout

        if progress.primary_outcome is None:
            progress.primary_outcome = WriteOutcome.failed(reason)
        elif progress.primary_outcome.succeeded:
            if progress.secondary_outcome is None:
                progress.secondary_outcome = WriteOutcome.failed(reason)
            if not progress.secondary_outcome.succeeded and not progress.reconciliation_tracked:
                progress.reconciliation_tracked = await self._publish(
                    progress.record, progress.secondary_outcome.reason, timeout
                )

        return self.build_result(progress)

    def build_result(self, progress: RecordProgress) -> RecordResult:
        primary, secondary = progress.primary_outcome, progress.secondary_outcome

        reason = None
        if primary is not None and primary.reason is not None:
            reason = primary.reason.value
        elif secondary is not None and secondary.reason is not None:
            reason = secondary.reason.value

        return RecordResult(
            index=progress.index,
            id=progress.record.id,
            primary_outcome=primary,
            secondary_outcome=secondary,
            final_state=classify_final_state(primary, secondary),
            reason=reason,
            reconciliation_tracked=progress.reconciliation_tracked,
        )

    async def _write_primary(self, record: Record, timeout: float) -> WriteOutcome:
        async def call() -> WriteOutcome:
            result = await self.primary.upsert(record.id, record.primary_attributes())
            return WriteOutcome.written() if result.created else WriteOutcome.unchanged()

        return await self._attempt(self.primary.name, record.id, call, timeout)

    async def _write_secondary(self, record: Record, timeout: float) -> WriteOutcome:
        async def call() -> WriteOutcome:
            await self.secondary.upsert(record.id, record.document_projection())
            return WriteOutcome.written()

        return await self._attempt(self.secondary.name, record.id, call, timeout)

    async def _attempt(
        self,
        store: str,
        record_id: str,
        call: Callable[[], Awaitable[WriteOutcome]],
        timeout: float,
    ) -> WriteOutcome:
        """Run one store call under its deadline and capture any failure."""
        started = time.monotonic()
        try:
            outcome = await asyncio.wait_for(call(), timeout)
        except asyncio.TimeoutError:
            outcome = WriteOutcome.failed(FailureReason.STORE_TIMEOUT)
        except StoreError as e:
            outcome = WriteOutcome.failed(e.reason)
        except Exception as e:
            logger.error(
                f"Unexpected error from {store} store",
                extra={"record_id": record_id, "store": store, "error_type": type(e).__name__},
                exc_info=True,
            )
            outcome = WriteOutcome.failed(FailureReason.STORE_UNAVAILABLE)

        duration = time.monotonic() - started
        metrics.record_store_write(store, outcome.reason.value if outcome.reason else outcome.status.value, duration)

        if not outcome.succeeded:
            logger.warning(
                f"{store} write failed for record {record_id}",
                extra={
                    "record_id": record_id,
                    "store": store,
                    "reason": outcome.reason.value,
                    "duration_seconds": round(duration, 3),
                },
            )
        return outcome

    async def _publish(self, record: Record, reason: FailureReason, timeout: float) -> bool:
        """
        Hand a half-written record to the reconciliation queue.

        Returns:
            True if the queue acknowledged, False if the record is now untracked
        """
        document: dict[str, Any] = record.document_projection()
        try:
            entry_id = await asyncio.wait_for(
                self.queue.publish(record.id, document, reason.value), timeout
            )
        except Exception as e:
            metrics.increment_counter(metrics.reconciliation_publishes_total, 1, status="failed")
            logger.error(
                f"Reconciliation publish failed for record {record.id}; record is pending but untracked",
                extra={
                    "record_id": record.id,
                    "reason": reason.value,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            return False

        metrics.increment_counter(metrics.reconciliation_publishes_total, 1, status="acked")
        logger.info(
            f"Record {record.id} queued for reconciliation",
            extra={"record_id": record.id, "reason": reason.value, "entry_id": entry_id},
        )
        return True

    async def _supersede(self, record: Record, timeout: float) -> None:
        """Retire queued snapshots of a record whose current document just landed."""
        try:
            retired = await asyncio.wait_for(self.queue.supersede(record.id), timeout)
        except Exception as e:
            logger.warning(
                f"Could not retire queued entries for record {record.id}",
                extra={
                    "record_id": record.id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            return

        if retired:
            logger.info(
                f"Retired {retired} stale reconciliation entries for record {record.id}",
                extra={"record_id": record.id, "retired": retired},
            )
