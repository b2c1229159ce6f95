"""
Batch executor: validates a batch and drives its records through the
dual-write coordinator with bounded concurrency.

Records are independent; at most ``max_concurrency`` of them are inside
the coordinator at once. Results are collected by a single loop in
completion order and sealed into a BatchSummary in input order.
"""

import asyncio
import time
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from dualwrite.config import IngestionOptions
from dualwrite.core.errors import BatchTooLargeError, FailureReason, MalformedBatchError
from dualwrite.core.models import (
    BatchAccumulator,
    BatchSummary,
    FinalState,
    RecordResult,
    RejectionReason,
)
from dualwrite.core.validators import RecordValidator
from dualwrite.observability import metrics
from dualwrite.observability.logger import batch_context, get_logger
from dualwrite.observability.telemetry import (
    LoggingTelemetrySink,
    TelemetrySink,
    build_batch_event,
    build_record_event,
    safe_emit,
)

from .coordinator import DualWriteCoordinator, RecordProgress

logger = get_logger(__name__)


def _raw_id(raw: Any) -> str | None:
    """Best-effort id of a raw record, for reporting rejections."""
    if not isinstance(raw, Mapping):
        return None
    value = raw.get("id")
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    return str(value)


def ensure_record_shapes(batch: Sequence[Any]) -> None:
    """
    Check that every element of a batch is a mapping.

    Raises:
        MalformedBatchError: Naming the index of the first offending element
    """
    for index, item in enumerate(batch):
        if not isinstance(item, Mapping):
            raise MalformedBatchError(
                f"Record at index {index} must be a mapping, got {type(item).__name__}"
            )


class BatchExecutor:
    """
    Runs ingestion batches.

    One executor may serve many batches, sequentially or concurrently;
    every run keeps its own accumulator and concurrency limiter.
    """

    def __init__(
        self,
        coordinator: DualWriteCoordinator,
        validator: RecordValidator | None = None,
        options: IngestionOptions | None = None,
        telemetry: TelemetrySink | None = None,
    ):
        """
        Initialize executor.

        Args:
            coordinator: Dual-write coordinator for single records
            validator: Record validator (default contract if not supplied)
            options: Default batch options
            telemetry: Sink for record and batch events
        """
        self.coordinator = coordinator
        self.validator = validator or RecordValidator()
        self.options = options or IngestionOptions()
        self.telemetry = telemetry or LoggingTelemetrySink()

    async def run(
        self,
        batch: Sequence[Mapping[str, Any]],
        options: IngestionOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchSummary:
        """
        Ingest one batch.

        Args:
            batch: Raw records as submitted by the caller
            options: Per-call options overriding the executor defaults
            cancel_event: Set by the caller to abandon the batch

        Returns:
            Sealed BatchSummary with exactly one result per input record

        Raises:
            BatchTooLargeError: If the batch exceeds max_batch_size (no writes happen)
            MalformedBatchError: If an element of the batch is not a mapping
        """
        options = options or self.options
        batch_id = uuid.uuid4().hex
        started = time.monotonic()
        received = len(batch)

        if received > options.max_batch_size:
            logger.warning(
                f"Batch of {received} records rejected",
                extra={"batch_id": batch_id, "received": received, "max_batch_size": options.max_batch_size},
            )
            metrics.increment_counter(metrics.batches_total, 1, status="too_large")
            raise BatchTooLargeError(received, options.max_batch_size)

        ensure_record_shapes(batch)

        with batch_context(batch_id):
            logger.info(
                f"Starting batch {batch_id}",
                extra={"received": received, "max_concurrency": options.max_concurrency},
            )

            accumulator = BatchAccumulator(batch_id, received)
            records = self._validate(batch, accumulator)

            timed_out = cancelled = False
            if records:
                interruption = await self._execute(records, accumulator, options, started, cancel_event)
                timed_out = interruption == FailureReason.TIMEOUT
                cancelled = interruption == FailureReason.CANCELLED

            return self._seal(accumulator, started, timed_out, cancelled)

    def _validate(
        self, batch: Sequence[Mapping[str, Any]], accumulator: BatchAccumulator
    ) -> list[RecordProgress]:
        """Validate every record; rejections complete immediately."""
        accepted: list[RecordProgress] = []
        seen_ids: set[str] = set()

        for index, raw in enumerate(batch):
            outcome = self.validator.validate(raw)

            if not isinstance(outcome, RejectionReason) and outcome.id in seen_ids:
                outcome = RejectionReason.duplicate_id()

            if isinstance(outcome, RejectionReason):
                result = RecordResult(
                    index=index,
                    id=_raw_id(raw),
                    final_state=FinalState.REJECTED,
                    reason=str(outcome),
                )
                self._complete(accumulator, result, None)
                continue

            seen_ids.add(outcome.id)
            accepted.append(RecordProgress(index, outcome))

        return accepted

    async def _execute(
        self,
        records: list[RecordProgress],
        accumulator: BatchAccumulator,
        options: IngestionOptions,
        started: float,
        cancel_event: asyncio.Event | None,
    ) -> FailureReason | None:
        """
        Write accepted records and collect their results.

        Returns:
            FailureReason.TIMEOUT or FailureReason.CANCELLED if the batch was
            interrupted, None if every record finished on its own
        """
        semaphore = asyncio.Semaphore(options.max_concurrency)
        tasks = {
            asyncio.create_task(self._run_record(semaphore, progress, options)): progress
            for progress in records
        }
        pending = set(tasks)
        deadline = started + options.batch_timeout
        cancel_waiter = asyncio.create_task(cancel_event.wait()) if cancel_event else None
        interruption: FailureReason | None = None

        try:
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    interruption = FailureReason.TIMEOUT
                    break

                waiting = pending | {cancel_waiter} if cancel_waiter else pending
                done, _ = await asyncio.wait(
                    waiting, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )

                for task in done:
                    if task is cancel_waiter:
                        continue
                    pending.discard(task)
                    await self._collect(accumulator, task, tasks[task], options)

                if cancel_waiter is not None and cancel_waiter.done():
                    interruption = FailureReason.CANCELLED
                    break
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if not pending:
            return interruption

        logger.warning(
            f"Batch {accumulator.batch_id} interrupted with {len(pending)} records unfinished",
            extra={
                "batch_id": accumulator.batch_id,
                "reason": interruption.value,
                "unfinished": len(pending),
            },
        )

        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        interrupted = []
        for task in pending:
            if task.cancelled():
                interrupted.append(tasks[task])
            else:
                await self._collect(accumulator, task, tasks[task], options)

        settled = await asyncio.gather(
            *(
                self.coordinator.settle_interrupted(progress, interruption, options.per_record_timeout)
                for progress in interrupted
            )
        )
        for progress, result in zip(interrupted, settled):
            self._complete(accumulator, result, progress)

        return interruption

    async def _run_record(
        self,
        semaphore: asyncio.Semaphore,
        progress: RecordProgress,
        options: IngestionOptions,
    ) -> RecordResult:
        async with semaphore:
            progress.started_at = time.monotonic()
            metrics.records_in_flight.inc()
            try:
                return await self.coordinator.process(
                    progress.record,
                    index=progress.index,
                    progress=progress,
                    timeout=options.per_record_timeout,
                )
            finally:
                metrics.records_in_flight.dec()

    async def _collect(
        self,
        accumulator: BatchAccumulator,
        task: asyncio.Task,
        progress: RecordProgress,
        options: IngestionOptions,
    ) -> None:
        error = task.exception()
        if error is None:
            self._complete(accumulator, task.result(), progress)
            return

        logger.error(
            f"Record {progress.record.id} failed unexpectedly in batch {accumulator.batch_id}",
            extra={"batch_id": accumulator.batch_id, "record_id": progress.record.id},
            exc_info=error,
        )
        result = await self.coordinator.settle_interrupted(
            progress, FailureReason.STORE_UNAVAILABLE, options.per_record_timeout
        )
        self._complete(accumulator, result, progress)

    def _complete(
        self,
        accumulator: BatchAccumulator,
        result: RecordResult,
        progress: RecordProgress | None,
    ) -> None:
        accumulator.add(result)

        duration = 0.0
        if progress is not None and progress.started_at is not None:
            duration = time.monotonic() - progress.started_at
        safe_emit(self.telemetry, build_record_event(accumulator.batch_id, result, duration))

    def _seal(
        self,
        accumulator: BatchAccumulator,
        started: float,
        timed_out: bool,
        cancelled: bool,
    ) -> BatchSummary:
        duration = time.monotonic() - started
        summary = accumulator.seal(int(duration * 1000), timed_out=timed_out, cancelled=cancelled)

        status = "timed_out" if timed_out else "cancelled" if cancelled else "completed"
        metrics.record_batch_completion(status, summary.received, duration)
        safe_emit(self.telemetry, build_batch_event(summary))

        logger.info(
            f"Batch {summary.batch_id} {status}",
            extra={
                "batch_id": summary.batch_id,
                "received": summary.received,
                "processed": summary.processed,
                "failed": summary.failed,
                "pending": summary.pending,
                "duration_ms": summary.duration_ms,
            },
        )
        return summary
