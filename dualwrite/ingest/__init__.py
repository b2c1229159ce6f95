"""
Batch ingestion: per-record dual-write coordination, the batch executor,
reconciliation replay and the service entry point.
"""

from .coordinator import DualWriteCoordinator, RecordProgress
from .executor import BatchExecutor
from .reconcile import ReconciliationReplayer
from .service import (
    IngestionService,
    StoreSet,
    build_replayer,
    build_service,
    in_memory_stores,
    parse_batch_request,
    postgres_stores,
)

__all__ = [
    "DualWriteCoordinator",
    "RecordProgress",
    "BatchExecutor",
    "ReconciliationReplayer",
    "IngestionService",
    "StoreSet",
    "build_replayer",
    "build_service",
    "in_memory_stores",
    "parse_batch_request",
    "postgres_stores",
]
