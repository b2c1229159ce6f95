"""
Reconciliation replay.

Drains pending reconciliation entries by re-writing their documents into
the document store. The primary store is never touched: it already holds
the authoritative row for every queued record.
"""

import asyncio
import time
from typing import Any

from dualwrite.core.errors import StoreError
from dualwrite.observability import metrics
from dualwrite.observability.logger import get_logger, log_operation
from dualwrite.stores.base import ReconciliationQueue, SecondaryStore

logger = get_logger(__name__)


class ReconciliationReplayer:
    """
    Replays queued documents into the document store.

    Fetches pending entries in enqueue order, upserts each document, and
    marks the entry resolved or records a failed attempt.
    """

    def __init__(self, queue: ReconciliationQueue, secondary: SecondaryStore, timeout: float = 5.0):
        """
        Initialize replayer.

        Args:
            queue: Reconciliation queue to drain
            secondary: Document store receiving the replayed documents
            timeout: Deadline in seconds for each document write
        """
        self.queue = queue
        self.secondary = secondary
        self.timeout = timeout

    async def replay(self, limit: int = 100) -> dict[str, Any]:
        """
        Run one replay pass.

        Args:
            limit: Maximum number of entries to replay

        Returns:
            Dictionary with replay results:
            - total: Entries attempted
            - resolved: Entries whose document now matches the primary
            - failed: Entries left pending for a later pass
            - durationSeconds: Time taken
        """
        started = time.monotonic()
        resolved = failed = 0

        with log_operation("Replaying reconciliation queue", logger=logger, limit=limit):
            entries = await self.queue.fetch_pending(limit)

            for entry in entries:
                try:
                    await asyncio.wait_for(
                        self.secondary.upsert(entry.record_id, entry.document), self.timeout
                    )
                except (StoreError, asyncio.TimeoutError) as e:
                    error = str(e) or type(e).__name__
                    await self.queue.mark_failed(entry.entry_id, error)
                    metrics.increment_counter(metrics.reconciliation_replays_total, 1, status="failed")
                    logger.warning(
                        f"Replay failed for record {entry.record_id}",
                        extra={
                            "entry_id": entry.entry_id,
                            "record_id": entry.record_id,
                            "attempts": entry.attempts + 1,
                            "error_message": error,
                        },
                    )
                    failed += 1
                    continue

                await self.queue.mark_resolved(entry.entry_id)
                metrics.increment_counter(metrics.reconciliation_replays_total, 1, status="resolved")
                resolved += 1

        return {
            "total": resolved + failed,
            "resolved": resolved,
            "failed": failed,
            "durationSeconds": round(time.monotonic() - started, 3),
        }
