"""
Ingestion entry point and wiring.

``IngestionService.ingest`` accepts a batch request, runs it and returns
the encoded BatchSummary. The factory helpers assemble the service over
PostgreSQL-backed or in-memory stores.
"""

import asyncio
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any, NamedTuple

from dualwrite.config import (
    DatabaseSettings,
    IngestionOptions,
    document_database_settings,
    primary_database_settings,
)
from dualwrite.core.errors import MalformedBatchError
from dualwrite.core.schema import SchemaContract
from dualwrite.core.validators import RecordValidator
from dualwrite.observability.telemetry import TelemetrySink
from dualwrite.stores.base import PrimaryStore, ReconciliationQueue, SecondaryStore
from dualwrite.stores.connection import AsyncDatabaseConnectionPool
from dualwrite.stores.memory import (
    InMemoryDocumentStore,
    InMemoryPrimaryStore,
    InMemoryReconciliationQueue,
)
from dualwrite.stores.reconciliation_queue import PostgresReconciliationQueue
from dualwrite.stores.schema_mgmt import ensure_document_schema, ensure_primary_schema
from dualwrite.stores.upsert import PostgresDocumentStore, PostgresPrimaryStore

from .coordinator import DualWriteCoordinator
from .executor import BatchExecutor, ensure_record_shapes
from .reconcile import ReconciliationReplayer


class StoreSet(NamedTuple):
    primary: PrimaryStore
    secondary: SecondaryStore
    queue: ReconciliationQueue


def parse_batch_request(request: Any) -> list[Mapping[str, Any]]:
    """
    Extract the record list from a batch request.

    Accepts either a sequence of records or a mapping with a ``records`` key.

    Raises:
        MalformedBatchError: If the request or any element has the wrong shape
    """
    if isinstance(request, Mapping):
        if "records" not in request:
            raise MalformedBatchError("Batch request mapping must contain a 'records' key")
        request = request["records"]

    if isinstance(request, (str, bytes)) or not isinstance(request, Sequence):
        raise MalformedBatchError(
            f"Batch must be a list of records, got {type(request).__name__}"
        )

    ensure_record_shapes(request)
    return list(request)


class IngestionService:
    """Batch ingestion entry point."""

    def __init__(self, executor: BatchExecutor):
        self.executor = executor

    async def ingest(
        self,
        request: Any,
        options: IngestionOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """
        Ingest a batch and return the encoded summary.

        Raises:
            MalformedBatchError: If the request does not have the batch shape
            BatchTooLargeError: If the batch exceeds max_batch_size
        """
        records = parse_batch_request(request)
        summary = await self.executor.run(records, options=options, cancel_event=cancel_event)
        return summary.to_dict()


def build_service(
    stores: StoreSet,
    contract: SchemaContract | None = None,
    options: IngestionOptions | None = None,
    telemetry: TelemetrySink | None = None,
) -> IngestionService:
    """Assemble validator, coordinator and executor over a set of stores."""
    options = options or IngestionOptions()
    coordinator = DualWriteCoordinator(
        stores.primary, stores.secondary, stores.queue, options.per_record_timeout
    )
    executor = BatchExecutor(
        coordinator,
        validator=RecordValidator(contract),
        options=options,
        telemetry=telemetry,
    )
    return IngestionService(executor)


def build_replayer(stores: StoreSet, options: IngestionOptions | None = None) -> ReconciliationReplayer:
    options = options or IngestionOptions()
    return ReconciliationReplayer(stores.queue, stores.secondary, options.per_record_timeout)


def in_memory_stores() -> StoreSet:
    """Fresh in-memory stores, used for dry runs."""
    return StoreSet(
        primary=InMemoryPrimaryStore(),
        secondary=InMemoryDocumentStore(),
        queue=InMemoryReconciliationQueue(),
    )


@asynccontextmanager
async def postgres_stores(
    primary_settings: DatabaseSettings | None = None,
    document_settings: DatabaseSettings | None = None,
    ensure_schema: bool = False,
) -> AsyncIterator[StoreSet]:
    """
    Open connection pools and yield PostgreSQL-backed stores.

    The reconciliation queue lives in the primary database next to the
    records table. Pools are closed on exit.
    """
    primary_pool = AsyncDatabaseConnectionPool(primary_settings or primary_database_settings())
    document_pool = AsyncDatabaseConnectionPool(document_settings or document_database_settings())

    async with primary_pool, document_pool:
        if ensure_schema:
            await ensure_primary_schema(primary_pool)
            await ensure_document_schema(document_pool)

        yield StoreSet(
            primary=PostgresPrimaryStore(primary_pool),
            secondary=PostgresDocumentStore(document_pool),
            queue=PostgresReconciliationQueue(primary_pool),
        )
