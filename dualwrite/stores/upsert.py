"""
Idempotent upsert adapters for the relational and document stores.

Both adapters use PostgreSQL's INSERT ... ON CONFLICT so that replaying a
record (a retried batch or a reconciliation pass) is always safe.
"""

import hashlib
import json
from collections.abc import Mapping, Sequence
from functools import partial
from typing import Any

from psycopg.types.json import Jsonb

from .base import PrimaryStore, SecondaryStore, UpsertResult
from .connection import AsyncDatabaseConnectionPool, translated_errors

_json_dumps = partial(json.dumps, default=str)


def calculate_checksum(data: Mapping[str, Any]) -> str:
    """
    Calculate MD5 checksum of a payload.

    Args:
        data: Data dictionary

    Returns:
        Hexadecimal checksum string
    """
    data_str = json.dumps(data, sort_keys=True, default=str)
    return hashlib.md5(data_str.encode()).hexdigest()


def _upsert_result(row: Mapping[str, Any] | None) -> UpsertResult:
    return UpsertResult(created=row is not None and bool(row["created"]))


class PostgresPrimaryStore(PrimaryStore):
    """
    Relational source of truth backed by the ``ingest_records`` table.

    Reports ``created`` using the system column ``xmax``: a row returned by
    an insert has xmax = 0, a row rewritten by the conflict update does not.
    A conflicting row whose checksum already matches is left untouched and
    returns nothing, which also reads as not created.
    """

    UPSERT_SQL = """
        INSERT INTO ingest_records (record_id, status, attributes, checksum, updated_at)
        VALUES (%s, %s, %s, %s, now())
        ON CONFLICT (record_id) DO UPDATE SET
            status = EXCLUDED.status,
            attributes = EXCLUDED.attributes,
            checksum = EXCLUDED.checksum,
            updated_at = EXCLUDED.updated_at
        WHERE ingest_records.checksum IS DISTINCT FROM EXCLUDED.checksum
        RETURNING (xmax = 0) AS created
    """

    def __init__(self, pool: AsyncDatabaseConnectionPool):
        """
        Initialize primary store adapter.

        Args:
            pool: Connection pool of the relational database
        """
        self.pool = pool

    def _params(self, record_id: str, attributes: Mapping[str, Any]) -> tuple:
        columns = dict(attributes)
        checksum = calculate_checksum(columns)
        status = columns.pop("status", None)
        return (record_id, status, Jsonb(columns, dumps=_json_dumps), checksum)

    async def upsert(self, record_id: str, attributes: Mapping[str, Any]) -> UpsertResult:
        async with translated_errors(self.name):
            async with self.pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(self.UPSERT_SQL, self._params(record_id, attributes))
                    row = await cur.fetchone()
                await conn.commit()

        return _upsert_result(row)

    async def upsert_many(
        self, items: Sequence[tuple[str, Mapping[str, Any]]]
    ) -> list[UpsertResult]:
        if not items:
            return []

        results = []
        async with translated_errors(self.name):
            async with self.pool.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        for record_id, attributes in items:
                            await cur.execute(self.UPSERT_SQL, self._params(record_id, attributes))
                            row = await cur.fetchone()
                            results.append(_upsert_result(row))

        return results

    async def get(self, record_id: str) -> dict[str, Any] | None:
        """Read back one row (status merged into attributes), or None."""
        rows = await self.pool.execute_query(
            "SELECT status, attributes FROM ingest_records WHERE record_id = %s",
            (record_id,),
        )
        if not rows:
            return None
        return {"status": rows[0]["status"], **rows[0]["attributes"]}


class PostgresDocumentStore(SecondaryStore):
    """
    Document store backed by a JSONB collection table ``ingest_documents``.

    Every upsert replaces the whole document.
    """

    UPSERT_SQL = """
        INSERT INTO ingest_documents (record_id, document, updated_at)
        VALUES (%s, %s, now())
        ON CONFLICT (record_id) DO UPDATE SET
            document = EXCLUDED.document,
            updated_at = EXCLUDED.updated_at
    """

    def __init__(self, pool: AsyncDatabaseConnectionPool):
        """
        Initialize document store adapter.

        Args:
            pool: Connection pool of the document database
        """
        self.pool = pool

    async def upsert(self, record_id: str, document: Mapping[str, Any]) -> None:
        async with translated_errors(self.name):
            await self.pool.execute_command(
                self.UPSERT_SQL,
                (record_id, Jsonb(dict(document), dumps=_json_dumps)),
            )

    async def get(self, record_id: str) -> dict[str, Any] | None:
        """Read back one document, or None."""
        rows = await self.pool.execute_query(
            "SELECT document FROM ingest_documents WHERE record_id = %s",
            (record_id,),
        )
        return rows[0]["document"] if rows else None
