"""
Store adapters: capability interfaces, PostgreSQL implementations and
in-memory fakes.
"""

from .base import PrimaryStore, ReconciliationQueue, SecondaryStore, UpsertResult
from .memory import InMemoryDocumentStore, InMemoryPrimaryStore, InMemoryReconciliationQueue

__all__ = [
    "PrimaryStore",
    "SecondaryStore",
    "ReconciliationQueue",
    "UpsertResult",
    "InMemoryPrimaryStore",
    "InMemoryDocumentStore",
    "InMemoryReconciliationQueue",
]
