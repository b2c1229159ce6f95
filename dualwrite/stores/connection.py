"""
Async PostgreSQL connection pool management using psycopg3

Each PostgreSQL-backed store owns one pool. Pools are shared by all
in-flight records of a batch.
"""
import asyncio
from contextlib import asynccontextmanager

import psycopg
from psycopg import OperationalError
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from dualwrite.config import DatabaseSettings
from dualwrite.core.errors import (
    ConstraintViolationError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from dualwrite.observability.logger import get_logger

logger = get_logger(__name__)


class AsyncDatabaseConnectionPool:
    """
    PostgreSQL connection pool manager using psycopg3's async pool

    Provides pooled connections with open-time retry and dict rows.
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        """
        Initialize database connection pool

        Args:
            settings: Connection settings for the target database
        """
        self.settings = settings
        self._pool: AsyncConnectionPool | None = None

    async def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        for attempt in range(1, max_retries + 1):
            pool = AsyncConnectionPool(
                conninfo=self.settings.conninfo,
                min_size=self.settings.min_size,
                max_size=self.settings.max_size,
                timeout=self.settings.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                await pool.open(wait=True, timeout=self.settings.timeout)
                self._pool = pool
                return
            except OperationalError as e:
                await pool.close()
                if attempt < max_retries:
                    logger.warning(
                        f"Connection attempt {attempt} to {self.settings.host} failed, retrying",
                        extra={"database": self.settings.database, "error_message": str(e)},
                    )
                    await asyncio.sleep(retry_delay)
                else:
                    raise OperationalError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e

    async def close(self) -> None:
        """Close the connection pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """
        Get a connection from the pool

        Yields:
            psycopg.AsyncConnection: Database connection

        Raises:
            RuntimeError: If pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        async with self._pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def cursor(self):
        """
        Get a cursor from a pooled connection

        Yields:
            psycopg.AsyncCursor: Database cursor
        """
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                yield cur

    async def execute_query(self, query: str, params: tuple | None = None) -> list[dict]:
        """
        Execute a SELECT query and return results as dictionaries
        """
        async with self.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()

    async def execute_command(self, command: str, params: tuple | None = None) -> int:
        """
        Execute an INSERT/UPDATE/DELETE command

        Returns:
            Number of rows affected
        """
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(command, params)
                rowcount = cur.rowcount
            await conn.commit()
            return rowcount

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False


@asynccontextmanager
async def translated_errors(store: str):
    """
    Translate psycopg failures into StoreError subclasses.

    - statement cancelled (statement_timeout) -> StoreTimeoutError
    - integrity constraint violations -> ConstraintViolationError
    - pool exhaustion, connection and any other database errors -> StoreUnavailableError
    """
    try:
        yield
    except psycopg.errors.QueryCanceled as e:
        raise StoreTimeoutError(store, str(e)) from e
    except psycopg.IntegrityError as e:
        raise ConstraintViolationError(store, str(e)) from e
    except PoolTimeout as e:
        raise StoreUnavailableError(store, f"connection pool exhausted: {e}") from e
    except psycopg.Error as e:
        raise StoreUnavailableError(store, str(e)) from e
