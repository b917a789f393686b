"""
Prometheus metrics collection for the adoption aggregator

Instruments the transaction fetch, each enrichment lookup and the
aggregation as a whole.
"""
from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# TRANSACTION SOURCE METRICS
# =======================

transactions_fetched_total = Counter(
    name="adoption_transactions_fetched_total",
    documentation="Total number of adoption transactions read from the store",
    registry=REGISTRY,
)

transaction_fetch_duration_seconds = Histogram(
    name="adoption_transaction_fetch_duration_seconds",
    documentation="Time spent querying the most recent transactions",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

# =======================
# ENRICHMENT METRICS
# =======================

enrichment_lookups_total = Counter(
    name="adoption_enrichment_lookups_total",
    documentation="Total number of pet search lookups",
    labelnames=["status"],  # status: success, failure, cancelled
    registry=REGISTRY,
)

enrichment_lookup_latency_seconds = Histogram(
    name="adoption_enrichment_lookup_latency_seconds",
    documentation="Latency of individual pet search lookups",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
    registry=REGISTRY,
)

# =======================
# AGGREGATION METRICS
# =======================

aggregation_duration_seconds = Histogram(
    name="adoption_aggregation_duration_seconds",
    documentation="End-to-end duration of one aggregation run",
    labelnames=["outcome"],  # outcome: complete, cancelled, error
    buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

adoptions_returned_total = Counter(
    name="adoption_adoptions_returned_total",
    documentation="Total number of merged adoption records returned to callers",
    registry=REGISTRY,
)

# =======================
# ERROR METRICS
# =======================

errors_total = Counter(
    name="adoption_errors_total",
    documentation="Total number of errors",
    labelnames=["error_type", "component"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type of the Prometheus text exposition format"""
    return CONTENT_TYPE_LATEST


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    target = counter.labels(**labels) if labels else counter
    target.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    target = histogram.labels(**labels) if labels else histogram
    target.observe(value)


def record_lookup(status: str, duration_seconds: float | None = None) -> None:
    """
    Record the outcome of one enrichment lookup.

    Args:
        status: "success", "failure" or "cancelled"
        duration_seconds: Time spent on the HTTP call, if one was made
    """
    increment_counter(enrichment_lookups_total, status=status)
    if duration_seconds is not None:
        observe_histogram(enrichment_lookup_latency_seconds, duration_seconds)


def record_aggregation(
    outcome: str,
    duration_seconds: float,
    transactions: int,
    adoptions: int,
) -> None:
    """
    Record the summary of one aggregation run.

    Args:
        outcome: "complete", "cancelled" or "error"
        duration_seconds: Wall-clock duration of the run
        transactions: Transactions fetched from the store
        adoptions: Adoption records returned
    """
    observe_histogram(aggregation_duration_seconds, duration_seconds, outcome=outcome)
    increment_counter(transactions_fetched_total, transactions)
    increment_counter(adoptions_returned_total, adoptions)
