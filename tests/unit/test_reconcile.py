"""
Unit tests for reconciliation replay.
"""

import pytest

from dualwrite.core.errors import StoreUnavailableError
from dualwrite.core.models import FinalState
from dualwrite.ingest import ReconciliationReplayer


@pytest.mark.unit
class TestReconciliationReplayer:
    """Tests for ReconciliationReplayer.replay"""

    @pytest.mark.asyncio
    async def test_empty_queue(self, document_store, reconciliation_queue):
        replayer = ReconciliationReplayer(reconciliation_queue, document_store)

        result = await replayer.replay()

        assert result["total"] == 0
        assert result["resolved"] == 0
        assert result["failed"] == 0

    @pytest.mark.asyncio
    async def test_replay_repairs_document_store(
        self, executor, primary_store, document_store, reconciliation_queue, record_factory
    ):
        document_store.fail(StoreUnavailableError("secondary", "down"))
        summary = await executor.run([record_factory("r1"), record_factory("r2")])
        assert summary.pending == 2
        assert document_store.documents == {}

        document_store.heal()
        primary_calls = list(primary_store.calls)
        result = await ReconciliationReplayer(reconciliation_queue, document_store).replay()

        assert result["total"] == 2
        assert result["resolved"] == 2
        assert document_store.documents["r1"] == {"id": "r1", "status": "Active", "name": "Record r1"}
        assert primary_store.calls == primary_calls
        assert (await reconciliation_queue.get_stats())["pending"] == 0

    @pytest.mark.asyncio
    async def test_failed_replay_stays_pending(self, executor, document_store, reconciliation_queue, record_factory):
        document_store.fail(StoreUnavailableError("secondary", "down"))
        summary = await executor.run([record_factory("r1")])
        assert summary.results[0].final_state == FinalState.PENDING_RECONCILIATION

        result = await ReconciliationReplayer(reconciliation_queue, document_store).replay()

        assert result["failed"] == 1
        entry = (await reconciliation_queue.fetch_pending())[0]
        assert entry.attempts == 1
        assert "down" in entry.last_error
        assert await reconciliation_queue.get_stats() == {"pending": 1, "resolved": 0, "retried": 1}

    @pytest.mark.asyncio
    async def test_limit(self, document_store, reconciliation_queue):
        for i in range(5):
            await reconciliation_queue.publish(f"r{i}", {"id": f"r{i}", "status": "Active"}, "StoreTimeout")

        result = await ReconciliationReplayer(reconciliation_queue, document_store).replay(limit=2)

        assert result["total"] == 2
        assert sorted(document_store.documents) == ["r0", "r1"]

    @pytest.mark.asyncio
    async def test_newer_write_is_not_overwritten_by_stale_snapshot(
        self, executor, primary_store, document_store, reconciliation_queue, record_factory
    ):
        document_store.fail(StoreUnavailableError("secondary", "down"))
        await executor.run([record_factory("r1", name="Old")])

        document_store.heal()
        summary = await executor.run([record_factory("r1", name="New")])
        assert summary.results[0].final_state == FinalState.CONSISTENT

        result = await ReconciliationReplayer(reconciliation_queue, document_store).replay()

        assert result["total"] == 0
        assert primary_store.rows["r1"]["name"] == "New"
        assert document_store.documents["r1"]["name"] == "New"
        assert await reconciliation_queue.get_stats() == {"pending": 0, "resolved": 1, "retried": 0}

    @pytest.mark.asyncio
    async def test_successive_snapshots_replay_in_order(
        self, executor, document_store, reconciliation_queue, record_factory
    ):
        document_store.fail(StoreUnavailableError("secondary", "down"))
        await executor.run([record_factory("r1", name="Old")])
        await executor.run([record_factory("r1", name="New")])

        document_store.heal()
        result = await ReconciliationReplayer(reconciliation_queue, document_store).replay()

        assert result["resolved"] == 2
        assert document_store.documents["r1"]["name"] == "New"
