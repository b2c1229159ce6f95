"""
Pytest configuration and fixtures for dualwrite tests

This module provides shared fixtures for unit and integration tests.
"""
import pytest
from typing import Generator

from dualwrite.config import DatabaseSettings, IngestionOptions
from dualwrite.core.schema import SchemaContract
from dualwrite.ingest import (
    BatchExecutor,
    DualWriteCoordinator,
    IngestionService,
)
from dualwrite.core.validators import RecordValidator
from dualwrite.observability.telemetry import CollectingTelemetrySink
from dualwrite.stores import (
    InMemoryDocumentStore,
    InMemoryPrimaryStore,
    InMemoryReconciliationQueue,
)


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# RECORD FIXTURES
# =======================

def make_record(record_id: str, status: str = "Active", **attributes) -> dict:
    """Build a raw record accepted by the default contract"""
    attributes.setdefault("name", f"Record {record_id}")
    return {"id": record_id, "status": status, **attributes}


@pytest.fixture
def valid_batch() -> list[dict]:
    """Three valid raw records"""
    return [make_record(f"r{i}") for i in range(1, 4)]


@pytest.fixture
def record_factory():
    """Factory building raw records accepted by the default contract"""
    return make_record


# =======================
# IN-MEMORY STORE FIXTURES
# =======================

@pytest.fixture
def primary_store() -> InMemoryPrimaryStore:
    return InMemoryPrimaryStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def reconciliation_queue() -> InMemoryReconciliationQueue:
    return InMemoryReconciliationQueue()


@pytest.fixture
def telemetry() -> CollectingTelemetrySink:
    return CollectingTelemetrySink()


@pytest.fixture
def options() -> IngestionOptions:
    """Small timeouts so timeout tests stay fast"""
    return IngestionOptions(
        max_concurrency=4,
        per_record_timeout=0.5,
        batch_timeout=5.0,
        max_batch_size=100,
    )


@pytest.fixture
def coordinator(primary_store, document_store, reconciliation_queue, options) -> DualWriteCoordinator:
    return DualWriteCoordinator(
        primary_store, document_store, reconciliation_queue, options.per_record_timeout
    )


@pytest.fixture
def executor(coordinator, options, telemetry) -> BatchExecutor:
    return BatchExecutor(
        coordinator,
        validator=RecordValidator(SchemaContract()),
        options=options,
        telemetry=telemetry,
    )


@pytest.fixture
def service(executor) -> IngestionService:
    return IngestionService(executor)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator:
    """
    Start PostgreSQL container for integration tests

    Skips the dependent tests when Docker is not available.

    Yields:
        PostgresContainer instance
    """
    from testcontainers.postgres import PostgresContainer

    try:
        container = PostgresContainer(
            image="postgres:16.2-alpine",
            username="test_pipeline",
            password="test_password",
            dbname="test_ingest",
        )
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def database_settings(postgres_container) -> DatabaseSettings:
    """Connection settings pointing at the test container"""
    return DatabaseSettings(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_ingest",
        user="test_pipeline",
        password="test_password",
        min_size=1,
        max_size=4,
        timeout=10.0,
    )
