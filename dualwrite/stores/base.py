"""
Capability interfaces for the two backing stores and the reconciliation queue.

The coordinator only depends on these interfaces, so PostgreSQL adapters
and in-memory fakes are interchangeable. All adapters must be safe for
concurrent use by multiple in-flight records.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from dualwrite.core.models import ReconciliationEntry


class UpsertResult(BaseModel):
    """Primary store answer to an upsert: whether the row was newly created."""

    created: bool

    class Config:
        frozen = True


class PrimaryStore(ABC):
    """Relational, strongly-consistent source of truth."""

    name = "primary"

    @abstractmethod
    async def upsert(self, record_id: str, attributes: Mapping[str, Any]) -> UpsertResult:
        """
        Insert or update one row keyed by record_id.

        Raises:
            StoreError: If the write cannot be completed
        """
        pass

    @abstractmethod
    async def upsert_many(
        self, items: Sequence[tuple[str, Mapping[str, Any]]]
    ) -> list[UpsertResult]:
        """
        Insert or update several rows in one transaction.

        Returns one UpsertResult per item, in item order.

        Raises:
            StoreError: If the transaction cannot be completed (no row is written)
        """
        pass


class SecondaryStore(ABC):
    """Schema-flexible document store holding the denormalized projection."""

    name = "secondary"

    @abstractmethod
    async def upsert(self, record_id: str, document: Mapping[str, Any]) -> None:
        """
        Replace the whole document keyed by record_id.

        Raises:
            StoreError: If the write cannot be completed
        """
        pass


class ReconciliationQueue(ABC):
    """
    Queue of records written to the primary store but not to the document store.

    The ingestion core only publishes; the consumer side is used by the
    reconciliation replayer.
    """

    name = "reconciliation_queue"

    @abstractmethod
    async def publish(
        self, record_id: str, document: Mapping[str, Any], failure_reason: str
    ) -> int:
        """
        Enqueue a document for replay into the document store.

        Returns:
            The acknowledged entry id

        Raises:
            StoreError: If the queue cannot accept the entry
        """
        pass

    @abstractmethod
    async def fetch_pending(self, limit: int = 100) -> list[ReconciliationEntry]:
        """Unresolved entries, oldest first."""
        pass

    @abstractmethod
    async def mark_resolved(self, entry_id: int) -> None:
        pass

    @abstractmethod
    async def mark_failed(self, entry_id: int, error: str) -> None:
        """Record a failed replay attempt; the entry stays pending."""
        pass

    @abstractmethod
    async def supersede(self, record_id: str) -> int:
        """
        Resolve every pending entry of record_id without replaying it.

        Called once a later write has landed the record in the document
        store, so that older snapshots are never replayed over it.

        Returns:
            Number of entries resolved
        """
        pass

    @abstractmethod
    async def get_stats(self) -> dict[str, int]:
        """Counts of pending and resolved entries."""
        pass
