"""
Unit tests for the ingestion entry point.
"""

import pytest

from dualwrite.config import IngestionOptions
from dualwrite.core.errors import BatchTooLargeError, MalformedBatchError
from dualwrite.core.schema import SchemaContract
from dualwrite.ingest import build_service, in_memory_stores, parse_batch_request


class TestParseBatchRequest:
    """Tests for parse_batch_request"""

    def test_list_of_records(self):
        assert parse_batch_request([{"id": "r1"}]) == [{"id": "r1"}]

    def test_records_envelope(self):
        assert parse_batch_request({"records": [{"id": "r1"}]}) == [{"id": "r1"}]

    @pytest.mark.parametrize(
        "request_body",
        [
            {"items": []},
            "not a batch",
            42,
            [{"id": "r1"}, ["r2"]],
            {"records": {"id": "r1"}},
        ],
    )
    def test_malformed(self, request_body):
        with pytest.raises(MalformedBatchError):
            parse_batch_request(request_body)


@pytest.mark.unit
class TestIngestionService:
    """Tests for IngestionService.ingest"""

    @pytest.mark.asyncio
    async def test_summary_mapping(self, service):
        summary = await service.ingest(
            {"records": [{"id": "rec-001", "name": "Sample Record 1", "status": "Active"}]}
        )

        assert summary["received"] == 1
        assert summary["processed"] == 1
        assert summary["failed"] == 0
        assert summary["pending"] == 0
        assert isinstance(summary["durationMs"], int)
        assert summary["results"] == [
            {
                "id": "rec-001",
                "finalState": "Consistent",
                "primaryOutcome": "Written",
                "secondaryOutcome": "Written",
            }
        ]

    @pytest.mark.asyncio
    async def test_rejection_in_summary(self, service):
        summary = await service.ingest([{"status": "Active"}])

        assert summary["results"][0]["finalState"] == "Rejected"
        assert summary["results"][0]["reason"] == "MissingId"

    @pytest.mark.asyncio
    async def test_options_override(self, service, record_factory):
        with pytest.raises(BatchTooLargeError):
            await service.ingest(
                [record_factory("r1"), record_factory("r2")],
                options=IngestionOptions(max_batch_size=1),
            )

    @pytest.mark.asyncio
    async def test_malformed_request(self, service):
        with pytest.raises(MalformedBatchError):
            await service.ingest("rec-001")


@pytest.mark.unit
class TestBuildService:

    @pytest.mark.asyncio
    async def test_in_memory_wiring(self):
        stores = in_memory_stores()
        contract = SchemaContract(fields=[])
        service = build_service(stores, contract=contract)

        summary = await service.ingest([{"id": "r1", "status": "Inactive", "note": "free form"}])

        assert summary["processed"] == 1
        assert stores.primary.rows["r1"] == {"status": "Inactive", "note": "free form"}
        assert stores.secondary.documents["r1"]["note"] == "free form"
