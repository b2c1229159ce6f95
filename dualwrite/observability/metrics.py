"""
Prometheus metrics collection for dualwrite-ingest

Instrumentation for batch throughput, per-store write outcomes and
latency, and the reconciliation queue.
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# INGESTION METRICS
# =======================

records_ingested_total = Counter(
    name="ingest_records_total",
    documentation="Total number of records ingested, by final state",
    labelnames=["final_state"],  # Consistent, PendingReconciliation, Rejected
    registry=REGISTRY,
)

record_rejections_total = Counter(
    name="ingest_record_rejections_total",
    documentation="Records rejected, by rejection or failure reason",
    labelnames=["reason"],
    registry=REGISTRY,
)

record_processing_latency_seconds = Histogram(
    name="ingest_record_processing_latency_seconds",
    documentation="Latency for driving one record through both stores",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
    registry=REGISTRY,
)

records_in_flight = Gauge(
    name="ingest_records_in_flight",
    documentation="Records currently being written",
    registry=REGISTRY,
)

# =======================
# BATCH METRICS
# =======================

batches_total = Counter(
    name="ingest_batches_total",
    documentation="Total number of batches, by status",
    labelnames=["status"],  # completed, timed_out, cancelled, too_large
    registry=REGISTRY,
)

batch_size = Histogram(
    name="ingest_batch_size_records",
    documentation="Number of records in each batch",
    buckets=[1, 10, 50, 100, 500, 1000, 5000, 10000],
    registry=REGISTRY,
)

batch_duration_seconds = Histogram(
    name="ingest_batch_duration_seconds",
    documentation="Time spent processing a batch in seconds",
    buckets=[0.01, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

# =======================
# STORE METRICS
# =======================

store_writes_total = Counter(
    name="ingest_store_writes_total",
    documentation="Store write attempts, by store and outcome",
    labelnames=["store", "outcome"],  # store: primary, secondary
    registry=REGISTRY,
)

store_write_duration_seconds = Histogram(
    name="ingest_store_write_duration_seconds",
    documentation="Time spent in a single store write in seconds",
    labelnames=["store"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

# =======================
# RECONCILIATION METRICS
# =======================

reconciliation_publishes_total = Counter(
    name="ingest_reconciliation_publishes_total",
    documentation="Reconciliation queue publishes, by status",
    labelnames=["status"],  # acked, failed
    registry=REGISTRY,
)

reconciliation_replays_total = Counter(
    name="ingest_reconciliation_replays_total",
    documentation="Reconciliation replay attempts, by status",
    labelnames=["status"],  # resolved, failed
    registry=REGISTRY,
)


# =======================
# HELPERS
# =======================

def increment_counter(counter: Counter, value: float = 1, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment by
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    if labels:
        histogram.labels(**labels).observe(value)
    else:
        histogram.observe(value)


def get_metrics() -> tuple[bytes, str]:
    """
    Render all registered metrics in the Prometheus text format

    Returns:
        Tuple of (payload, content type)
    """
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


# =======================
# INGESTION HELPERS
# =======================

def record_store_write(store: str, outcome: str, duration_seconds: float) -> None:
    """
    Record one store write attempt.

    Args:
        store: "primary" or "secondary"
        outcome: Written, Unchanged or the failure reason
        duration_seconds: Time spent in the store call
    """
    increment_counter(store_writes_total, 1, store=store, outcome=outcome)
    observe_histogram(store_write_duration_seconds, duration_seconds, store=store)


def record_batch_completion(
    status: str,
    received: int,
    duration_seconds: float,
) -> None:
    """
    Record batch-level metrics.

    Args:
        status: completed, timed_out or cancelled
        received: Number of records in the batch
        duration_seconds: Batch duration
    """
    increment_counter(batches_total, 1, status=status)
    observe_histogram(batch_size, received)
    observe_histogram(batch_duration_seconds, duration_seconds)
