"""
In-memory store adapters.

Used by the test suite and by the CLI dry run. Each fake can be told to
fail or to stall for specific record ids, and records every call so tests
can assert which stores were touched.
"""

import asyncio
import itertools
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from dualwrite.core.errors import StoreError
from dualwrite.core.models import ReconciliationEntry

from .base import PrimaryStore, ReconciliationQueue, SecondaryStore, UpsertResult

Latency = float | Callable[[str], float]


class _FaultInjector:
    """
    Shared call bookkeeping and fault injection for the in-memory fakes.

    Attributes:
        calls: Record ids in call order
        in_flight: Calls currently suspended inside the fake
        max_in_flight: Highest concurrency observed
    """

    def __init__(self, latency: Latency = 0.0):
        self.latency = latency
        self.failures: dict[str, StoreError] = {}
        self.fail_all: StoreError | None = None
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def fail(self, error: StoreError, record_id: str | None = None) -> None:
        """Fail every call (record_id None) or only calls for one id."""
        if record_id is None:
            self.fail_all = error
        else:
            self.failures[record_id] = error

    def heal(self) -> None:
        self.failures.clear()
        self.fail_all = None

    async def _enter(self, record_id: str) -> None:
        self.calls.append(record_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.latency(record_id) if callable(self.latency) else self.latency
            if delay:
                await asyncio.sleep(delay)
            error = self.failures.get(record_id) or self.fail_all
            if error is not None:
                raise error
        finally:
            self.in_flight -= 1


class InMemoryPrimaryStore(_FaultInjector, PrimaryStore):
    """Dictionary-backed relational store fake."""

    def __init__(self, latency: Latency = 0.0):
        super().__init__(latency)
        self.rows: dict[str, dict[str, Any]] = {}

    async def upsert(self, record_id: str, attributes: Mapping[str, Any]) -> UpsertResult:
        await self._enter(record_id)
        created = record_id not in self.rows
        self.rows[record_id] = dict(attributes)
        return UpsertResult(created=created)

    async def upsert_many(
        self, items: Sequence[tuple[str, Mapping[str, Any]]]
    ) -> list[UpsertResult]:
        # All-or-nothing like the transactional adapter
        for record_id, _ in items:
            await self._enter(record_id)

        results = []
        for record_id, attributes in items:
            results.append(UpsertResult(created=record_id not in self.rows))
            self.rows[record_id] = dict(attributes)
        return results


class InMemoryDocumentStore(_FaultInjector, SecondaryStore):
    """Dictionary-backed document store fake with full-replace semantics."""

    def __init__(self, latency: Latency = 0.0):
        super().__init__(latency)
        self.documents: dict[str, dict[str, Any]] = {}

    async def upsert(self, record_id: str, document: Mapping[str, Any]) -> None:
        await self._enter(record_id)
        self.documents[record_id] = dict(document)


class InMemoryReconciliationQueue(_FaultInjector, ReconciliationQueue):
    """List-backed reconciliation queue fake."""

    def __init__(self, latency: Latency = 0.0):
        super().__init__(latency)
        self.entries: dict[int, ReconciliationEntry] = {}
        self._ids = itertools.count(1)

    async def publish(
        self, record_id: str, document: Mapping[str, Any], failure_reason: str
    ) -> int:
        await self._enter(record_id)
        entry_id = next(self._ids)
        self.entries[entry_id] = ReconciliationEntry(
            entry_id=entry_id,
            record_id=record_id,
            document=dict(document),
            failure_reason=failure_reason,
        )
        return entry_id

    @property
    def published_ids(self) -> list[str]:
        return [entry.record_id for entry in self.entries.values()]

    async def fetch_pending(self, limit: int = 100) -> list[ReconciliationEntry]:
        pending = [e for e in self.entries.values() if e.resolved_at is None]
        return sorted(pending, key=lambda e: e.entry_id)[:limit]

    async def mark_resolved(self, entry_id: int) -> None:
        entry = self.entries[entry_id]
        self.entries[entry_id] = entry.model_copy(
            update={"resolved_at": datetime.now(timezone.utc), "attempts": entry.attempts + 1}
        )

    async def mark_failed(self, entry_id: int, error: str) -> None:
        entry = self.entries[entry_id]
        self.entries[entry_id] = entry.model_copy(
            update={"last_error": error, "attempts": entry.attempts + 1}
        )

    async def supersede(self, record_id: str) -> int:
        now = datetime.now(timezone.utc)
        stale = [
            e for e in self.entries.values()
            if e.record_id == record_id and e.resolved_at is None
        ]
        for entry in stale:
            self.entries[entry.entry_id] = entry.model_copy(update={"resolved_at": now})
        return len(stale)

    async def get_stats(self) -> dict[str, int]:
        entries = list(self.entries.values())
        return {
            "pending": sum(1 for e in entries if e.resolved_at is None),
            "resolved": sum(1 for e in entries if e.resolved_at is not None),
            "retried": sum(1 for e in entries if e.resolved_at is None and e.attempts > 0),
        }
