"""
PostgreSQL-backed reconciliation queue.

Entries live in the ``reconciliation_queue`` outbox table until a replay
writes their document into the document store.
"""

import json
from collections.abc import Mapping
from functools import partial
from typing import Any

from psycopg.types.json import Jsonb

from dualwrite.core.models import ReconciliationEntry

from .base import ReconciliationQueue
from .connection import AsyncDatabaseConnectionPool, translated_errors

_json_dumps = partial(json.dumps, default=str)


class PostgresReconciliationQueue(ReconciliationQueue):
    """
    Outbox-style queue of documents awaiting replay.
    """

    def __init__(self, pool: AsyncDatabaseConnectionPool):
        """
        Initialize reconciliation queue.

        Args:
            pool: Database connection pool holding the queue table
        """
        self.pool = pool

    async def publish(
        self, record_id: str, document: Mapping[str, Any], failure_reason: str
    ) -> int:
        query = """
            INSERT INTO reconciliation_queue (record_id, document, failure_reason)
            VALUES (%s, %s, %s)
            RETURNING entry_id
        """

        async with translated_errors(self.name):
            async with self.pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        query,
                        (record_id, Jsonb(dict(document), dumps=_json_dumps), failure_reason),
                    )
                    row = await cur.fetchone()
                await conn.commit()

        return row["entry_id"]

    async def fetch_pending(self, limit: int = 100) -> list[ReconciliationEntry]:
        query = """
            SELECT entry_id, record_id, document, failure_reason, enqueued_at,
                   attempts, last_error, resolved_at
            FROM reconciliation_queue
            WHERE resolved_at IS NULL
            ORDER BY entry_id
            LIMIT %s
        """

        async with translated_errors(self.name):
            rows = await self.pool.execute_query(query, (limit,))

        return [ReconciliationEntry(**row) for row in rows]

    async def mark_resolved(self, entry_id: int) -> None:
        query = """
            UPDATE reconciliation_queue
            SET resolved_at = now(), attempts = attempts + 1
            WHERE entry_id = %s
        """

        async with translated_errors(self.name):
            await self.pool.execute_command(query, (entry_id,))

    async def mark_failed(self, entry_id: int, error: str) -> None:
        query = """
            UPDATE reconciliation_queue
            SET attempts = attempts + 1, last_error = %s
            WHERE entry_id = %s
        """

        async with translated_errors(self.name):
            await self.pool.execute_command(query, (error, entry_id))

    async def supersede(self, record_id: str) -> int:
        query = """
            UPDATE reconciliation_queue
            SET resolved_at = now()
            WHERE record_id = %s AND resolved_at IS NULL
        """

        async with translated_errors(self.name):
            return await self.pool.execute_command(query, (record_id,))

    async def get_stats(self) -> dict[str, int]:
        query = """
            SELECT
                COUNT(*) FILTER (WHERE resolved_at IS NULL) AS pending,
                COUNT(*) FILTER (WHERE resolved_at IS NOT NULL) AS resolved,
                COUNT(*) FILTER (WHERE resolved_at IS NULL AND attempts > 0) AS retried
            FROM reconciliation_queue
        """

        async with translated_errors(self.name):
            rows = await self.pool.execute_query(query)

        if not rows:
            return {"pending": 0, "resolved": 0, "retried": 0}
        return {key: int(value) for key, value in rows[0].items()}
