"""
Unit tests for the batch executor.

Covers the canonical ingestion scenarios, batch size limits, ordering,
bounded concurrency, batch timeout and caller cancellation.
"""

import asyncio

import pytest

from dualwrite.config import IngestionOptions
from dualwrite.core.errors import BatchTooLargeError, MalformedBatchError, StoreUnavailableError
from dualwrite.core.models import FinalState, OutcomeStatus
from dualwrite.ingest import BatchExecutor, DualWriteCoordinator
from dualwrite.observability.telemetry import BATCH_COMPLETED, RECORD_COMPLETED


SAMPLE = {"id": "rec-001", "name": "Sample Record 1", "status": "Active"}


@pytest.mark.unit
class TestIngestionScenarios:
    """The canonical single-batch scenarios"""

    @pytest.mark.asyncio
    async def test_healthy_stores(self, executor):
        summary = await executor.run([SAMPLE])

        assert (summary.received, summary.processed, summary.failed, summary.pending) == (1, 1, 0, 0)
        assert summary.results[0].id == "rec-001"
        assert summary.results[0].final_state == FinalState.CONSISTENT

    @pytest.mark.asyncio
    async def test_secondary_error(self, executor, document_store, reconciliation_queue):
        document_store.fail(StoreUnavailableError("secondary", "connection refused"))

        summary = await executor.run([SAMPLE])

        assert (summary.received, summary.processed, summary.failed, summary.pending) == (1, 1, 0, 1)
        assert summary.results[0].final_state == FinalState.PENDING_RECONCILIATION
        assert reconciliation_queue.published_ids == ["rec-001"]

    @pytest.mark.asyncio
    async def test_missing_id(self, executor, primary_store, document_store):
        summary = await executor.run([{"status": "Active"}])

        assert (summary.received, summary.processed, summary.failed, summary.pending) == (1, 0, 1, 0)
        assert summary.results[0].final_state == FinalState.REJECTED
        assert summary.results[0].reason == "MissingId"
        assert primary_store.calls == []
        assert document_store.calls == []

    @pytest.mark.asyncio
    async def test_twenty_records_keep_input_order(self, primary_store, document_store, reconciliation_queue, record_factory):
        # Later records finish first
        primary_store.latency = lambda record_id: (20 - int(record_id[1:])) * 0.002
        coordinator = DualWriteCoordinator(primary_store, document_store, reconciliation_queue)
        executor = BatchExecutor(coordinator, options=IngestionOptions(max_concurrency=5))
        batch = [record_factory(f"r{i}") for i in range(20)]

        summary = await executor.run(batch)

        assert (summary.received, summary.processed, summary.failed, summary.pending) == (20, 20, 0, 0)
        assert [r.id for r in summary.results] == [f"r{i}" for i in range(20)]
        assert [r.index for r in summary.results] == list(range(20))

    @pytest.mark.asyncio
    async def test_primary_down_rejects_everything(self, executor, primary_store, document_store, valid_batch):
        primary_store.fail(StoreUnavailableError("primary", "connection refused"))

        summary = await executor.run(valid_batch)

        assert summary.failed == 3
        assert summary.processed == 0
        assert all(r.reason == "StoreUnavailable" for r in summary.results)
        assert document_store.calls == []

    @pytest.mark.asyncio
    async def test_mixed_batch(self, executor, document_store, record_factory):
        document_store.fail(StoreUnavailableError("secondary", "down"), record_id="r2")
        batch = [
            record_factory("r1"),
            record_factory("r2"),
            {"id": "r3", "status": "Deleted", "name": "x"},
        ]

        summary = await executor.run(batch)

        states = [r.final_state for r in summary.results]
        assert states == [
            FinalState.CONSISTENT,
            FinalState.PENDING_RECONCILIATION,
            FinalState.REJECTED,
        ]
        assert summary.processed + summary.failed == summary.received
        assert summary.pending <= summary.processed


@pytest.mark.unit
class TestBatchLimits:
    """Tests for empty and oversized batches"""

    @pytest.mark.asyncio
    async def test_empty_batch(self, executor, telemetry):
        summary = await executor.run([])

        assert summary.received == 0
        assert summary.results == ()
        assert len(telemetry.of_type(BATCH_COMPLETED)) == 1

    @pytest.mark.asyncio
    async def test_exact_max_batch_size_accepted(self, executor, record_factory):
        options = IngestionOptions(max_batch_size=5)
        batch = [record_factory(f"r{i}") for i in range(5)]

        summary = await executor.run(batch, options=options)

        assert summary.received == 5
        assert summary.processed == 5

    @pytest.mark.asyncio
    async def test_oversized_batch_rejected_wholesale(self, executor, primary_store, telemetry, record_factory):
        options = IngestionOptions(max_batch_size=5)
        batch = [record_factory(f"r{i}") for i in range(6)]

        with pytest.raises(BatchTooLargeError) as exc_info:
            await executor.run(batch, options=options)

        assert exc_info.value.size == 6
        assert exc_info.value.limit == 5
        assert primary_store.calls == []
        assert telemetry.events == []

    @pytest.mark.asyncio
    async def test_non_mapping_record_is_malformed(self, executor, primary_store, telemetry):
        with pytest.raises(MalformedBatchError, match="index 2"):
            await executor.run([SAMPLE, {"status": "Active"}, "not a record"])

        assert primary_store.calls == []
        assert telemetry.events == []


@pytest.mark.unit
class TestDuplicatesAndIdempotence:

    @pytest.mark.asyncio
    async def test_duplicate_id_within_batch(self, executor, primary_store, record_factory):
        batch = [record_factory("r1"), record_factory("r1", name="Second")]

        summary = await executor.run(batch)

        assert summary.results[0].final_state == FinalState.CONSISTENT
        assert summary.results[1].final_state == FinalState.REJECTED
        assert summary.results[1].reason == "DuplicateId"
        assert primary_store.calls == ["r1"]
        assert primary_store.rows["r1"]["name"] == "Record r1"

    @pytest.mark.asyncio
    async def test_resubmission_is_unchanged(self, executor, primary_store, document_store):
        first = await executor.run([SAMPLE])
        second = await executor.run([SAMPLE])

        assert first.results[0].primary_outcome.status == OutcomeStatus.WRITTEN
        assert second.results[0].primary_outcome.status == OutcomeStatus.UNCHANGED
        assert second.results[0].final_state == FinalState.CONSISTENT
        assert first.batch_id != second.batch_id
        assert primary_store.rows["rec-001"] == {"status": "Active", "name": "Sample Record 1"}
        assert document_store.documents["rec-001"] == SAMPLE


@pytest.mark.unit
class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_limit(self, primary_store, document_store, reconciliation_queue, record_factory):
        primary_store.latency = 0.01
        coordinator = DualWriteCoordinator(primary_store, document_store, reconciliation_queue)
        executor = BatchExecutor(coordinator, options=IngestionOptions(max_concurrency=3))

        summary = await executor.run([record_factory(f"r{i}") for i in range(12)])

        assert summary.processed == 12
        assert primary_store.max_in_flight == 3

    @pytest.mark.asyncio
    async def test_concurrency_of_one_is_sequential(self, primary_store, document_store, reconciliation_queue, record_factory):
        primary_store.latency = 0.005
        coordinator = DualWriteCoordinator(primary_store, document_store, reconciliation_queue)
        executor = BatchExecutor(coordinator, options=IngestionOptions(max_concurrency=1))

        await executor.run([record_factory(f"r{i}") for i in range(4)])

        assert primary_store.max_in_flight == 1
        assert primary_store.calls == ["r0", "r1", "r2", "r3"]

    @pytest.mark.asyncio
    async def test_concurrent_batches_are_independent(self, executor, record_factory):
        first, second = await asyncio.gather(
            executor.run([record_factory("a1"), record_factory("a2")]),
            executor.run([record_factory("b1")]),
        )

        assert [r.id for r in first.results] == ["a1", "a2"]
        assert [r.id for r in second.results] == ["b1"]


@pytest.mark.unit
class TestInterruption:
    """Tests for batch timeout and caller cancellation"""

    @pytest.mark.asyncio
    async def test_batch_timeout(self, primary_store, document_store, reconciliation_queue, record_factory):
        primary_store.latency = lambda record_id: 5.0 if record_id == "slow" else 0.0
        coordinator = DualWriteCoordinator(primary_store, document_store, reconciliation_queue)
        executor = BatchExecutor(
            coordinator,
            options=IngestionOptions(per_record_timeout=10.0, batch_timeout=0.2),
        )

        summary = await executor.run([record_factory("fast"), record_factory("slow")])

        assert summary.timed_out is True
        assert summary.received == 2
        assert summary.results[0].final_state == FinalState.CONSISTENT
        assert summary.results[1].final_state == FinalState.REJECTED
        assert summary.results[1].reason == "Timeout"

    @pytest.mark.asyncio
    async def test_timeout_after_primary_publishes(self, primary_store, document_store, reconciliation_queue, record_factory):
        document_store.latency = 5.0
        coordinator = DualWriteCoordinator(primary_store, document_store, reconciliation_queue)
        executor = BatchExecutor(
            coordinator,
            options=IngestionOptions(per_record_timeout=10.0, batch_timeout=0.2),
        )

        summary = await executor.run([record_factory("r1")])

        result = summary.results[0]
        assert summary.timed_out is True
        assert result.final_state == FinalState.PENDING_RECONCILIATION
        assert str(result.secondary_outcome) == "Failed(Timeout)"
        assert result.reconciliation_tracked is True
        assert reconciliation_queue.published_ids == ["r1"]

    @pytest.mark.asyncio
    async def test_cancel_event(self, primary_store, document_store, reconciliation_queue, record_factory):
        primary_store.latency = 5.0
        coordinator = DualWriteCoordinator(primary_store, document_store, reconciliation_queue)
        executor = BatchExecutor(coordinator, options=IngestionOptions(per_record_timeout=10.0))
        cancel_event = asyncio.Event()

        run = asyncio.create_task(
            executor.run([record_factory("r1"), record_factory("r2")], cancel_event=cancel_event)
        )
        await asyncio.sleep(0.05)
        cancel_event.set()
        summary = await run

        assert summary.cancelled is True
        assert summary.timed_out is False
        assert [r.reason for r in summary.results] == ["Cancelled", "Cancelled"]
        assert summary.failed == 2

    @pytest.mark.asyncio
    async def test_cancelling_run_cancels_records(self, primary_store, document_store, reconciliation_queue, record_factory):
        primary_store.latency = 5.0
        coordinator = DualWriteCoordinator(primary_store, document_store, reconciliation_queue)
        executor = BatchExecutor(coordinator, options=IngestionOptions(per_record_timeout=10.0))

        run = asyncio.create_task(executor.run([record_factory("r1")]))
        await asyncio.sleep(0.05)
        run.cancel()

        with pytest.raises(asyncio.CancelledError):
            await run
        await asyncio.sleep(0.05)
        assert primary_store.in_flight == 0


@pytest.mark.unit
class TestTelemetry:

    @pytest.mark.asyncio
    async def test_one_event_per_record_and_batch(self, executor, telemetry, record_factory):
        batch = [record_factory("r1"), {"status": "Active"}, record_factory("r3")]

        summary = await executor.run(batch)

        record_events = telemetry.of_type(RECORD_COMPLETED)
        batch_events = telemetry.of_type(BATCH_COMPLETED)
        assert len(record_events) == 3
        assert len(batch_events) == 1
        assert {e["batch_id"] for e in telemetry.events} == {summary.batch_id}
        assert sorted(e["index"] for e in record_events) == [0, 1, 2]
        assert batch_events[0]["received"] == 3
        assert batch_events[0]["failed"] == 1

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_fail_batch(self, coordinator):
        class BrokenSink:
            def emit(self, event):
                raise RuntimeError("sink down")

        executor = BatchExecutor(coordinator, telemetry=BrokenSink())

        summary = await executor.run([SAMPLE])

        assert summary.processed == 1
