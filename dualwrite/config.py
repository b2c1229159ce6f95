"""
Configuration for the ingestion engine.

Settings are explicit objects handed to the executor and store adapters at
construction. Values come from keyword arguments, then environment
variables (optionally loaded from a .env file), then defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from dualwrite.core.schema import ContractLoader, SchemaContract


class IngestionOptions(BaseModel):
    """
    Batch execution options.

    Attributes:
        max_concurrency: Maximum records written concurrently
        per_record_timeout: Seconds allowed for each single store call
        batch_timeout: Seconds allowed for the whole batch
        max_batch_size: Largest accepted batch; larger batches are rejected whole
    """

    max_concurrency: int = Field(8, ge=1)
    per_record_timeout: float = Field(5.0, gt=0)
    batch_timeout: float = Field(60.0, gt=0)
    max_batch_size: int = Field(1000, ge=1)

    @classmethod
    def from_env(cls, **overrides) -> "IngestionOptions":
        """
        Build options from INGEST_* environment variables.

        Explicit non-None overrides win over the environment.
        """
        env_values = {
            "max_concurrency": os.getenv("INGEST_MAX_CONCURRENCY"),
            "per_record_timeout": os.getenv("INGEST_PER_RECORD_TIMEOUT"),
            "batch_timeout": os.getenv("INGEST_BATCH_TIMEOUT"),
            "max_batch_size": os.getenv("INGEST_MAX_BATCH_SIZE"),
        }
        values = {k: v for k, v in env_values.items() if v is not None}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class DatabaseSettings(BaseModel):
    """
    Connection settings for one PostgreSQL-backed store.

    Attributes:
        host: Database host
        port: Database port
        database: Database name
        user: Database user
        password: Database password (required)
        min_size: Minimum pool size
        max_size: Maximum pool size
        timeout: Connection timeout in seconds
    """

    host: str = "localhost"
    port: int = 5432
    database: str
    user: str = "pipeline"
    password: str = Field(..., min_length=1)
    min_size: int = Field(2, ge=0)
    max_size: int = Field(10, ge=1)
    timeout: float = Field(30.0, gt=0)

    @classmethod
    def from_env(cls, prefix: str, default_database: str) -> "DatabaseSettings":
        """
        Read <prefix>HOST, <prefix>PORT, <prefix>NAME, <prefix>USER, <prefix>PASSWORD.

        Raises:
            ValueError: If the password variable is not set
        """
        password = os.getenv(f"{prefix}PASSWORD")
        if not password:
            raise ValueError(
                "Database password must be provided. "
                f"Set {prefix}PASSWORD environment variable."
            )

        return cls(
            host=os.getenv(f"{prefix}HOST", "localhost"),
            port=int(os.getenv(f"{prefix}PORT", "5432")),
            database=os.getenv(f"{prefix}NAME", default_database),
            user=os.getenv(f"{prefix}USER", "pipeline"),
            password=password,
        )

    @property
    def conninfo(self) -> str:
        return (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.database} "
            f"user={self.user} "
            f"password={self.password} "
            f"connect_timeout={int(self.timeout)}"
        )


def load_env(env_file: str | Path | None = None) -> None:
    """Load variables from a .env file without overriding the real environment."""
    if env_file is not None:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)


def load_contract(contract_path: str | Path | None = None) -> SchemaContract:
    """
    Load the schema contract from a path, the SCHEMA_CONTRACT_PATH variable,
    or fall back to the built-in default contract.
    """
    path = contract_path or os.getenv("SCHEMA_CONTRACT_PATH")
    if not path:
        return SchemaContract()
    return ContractLoader(path).load()


def primary_database_settings() -> DatabaseSettings:
    return DatabaseSettings.from_env("PRIMARY_DB_", "ingest_primary")


def document_database_settings() -> DatabaseSettings:
    return DatabaseSettings.from_env("DOCUMENT_DB_", "ingest_documents")
