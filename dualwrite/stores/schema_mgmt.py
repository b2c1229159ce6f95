"""
Table management for the PostgreSQL-backed stores.

All statements are idempotent; running them against an initialized
database is a no-op.
"""

from dualwrite.observability.logger import get_logger

from .connection import AsyncDatabaseConnectionPool

logger = get_logger(__name__)

PRIMARY_DDL = [
    """
    CREATE TABLE IF NOT EXISTS ingest_records (
        record_id VARCHAR(255) PRIMARY KEY,
        status TEXT NOT NULL,
        attributes JSONB NOT NULL DEFAULT '{}'::jsonb,
        checksum CHAR(32) NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reconciliation_queue (
        entry_id BIGSERIAL PRIMARY KEY,
        record_id VARCHAR(255) NOT NULL,
        document JSONB NOT NULL,
        failure_reason TEXT NOT NULL,
        enqueued_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        attempts INTEGER NOT NULL DEFAULT 0,
        last_error TEXT,
        resolved_at TIMESTAMPTZ
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS reconciliation_queue_pending_idx
        ON reconciliation_queue (entry_id)
        WHERE resolved_at IS NULL
    """,
]

DOCUMENT_DDL = [
    """
    CREATE TABLE IF NOT EXISTS ingest_documents (
        record_id VARCHAR(255) PRIMARY KEY,
        document JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
]


async def _apply(pool: AsyncDatabaseConnectionPool, statements: list[str]) -> None:
    async with pool.connection() as conn:
        async with conn.cursor() as cur:
            for statement in statements:
                await cur.execute(statement)
        await conn.commit()


async def ensure_primary_schema(pool: AsyncDatabaseConnectionPool) -> None:
    """Create the relational records table and the reconciliation queue."""
    await _apply(pool, PRIMARY_DDL)
    logger.info("Primary schema ensured", extra={"database": pool.settings.database})


async def ensure_document_schema(pool: AsyncDatabaseConnectionPool) -> None:
    """Create the document collection table."""
    await _apply(pool, DOCUMENT_DDL)
    logger.info("Document schema ensured", extra={"database": pool.settings.database})
