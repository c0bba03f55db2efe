"""
Prometheus metrics collection.

In-memory counters for the client pipeline; each collector owns its own
registry so several clients (or test cases) never collide on metric names.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info


class MetricsCollector:
    """
    Centralized metrics collection for the log relay pipeline.

    Counts admission decisions in the client facade and delivery attempts
    in the server logger.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        # Library info
        self.client_info = Info(
            "logrelay_client",
            "Log relay client information",
            registry=self.registry,
        )
        self.client_info.info({
            "version": "0.1.0",
            "client": "logrelay",
        })

        # Admission metrics
        self.entries_submitted_total = Counter(
            "logrelay_entries_submitted_total",
            "Total entries handed to the server logger",
            registry=self.registry,
        )

        self.entries_dropped_total = Counter(
            "logrelay_entries_dropped_total",
            "Total entries dropped before reaching the buffer",
            ["reason"],
            registry=self.registry,
        )

        # Delivery metrics
        self.batches_dispatched_total = Counter(
            "logrelay_batches_dispatched_total",
            "Total batches dispatched",
            ["trigger"],
            registry=self.registry,
        )

        self.batch_size_entries = Histogram(
            "logrelay_batch_size_entries",
            "Number of entries per dispatched batch",
            buckets=[1, 5, 10, 25, 50, 100, 250, 500],
            registry=self.registry,
        )

        self.ingest_responses_total = Counter(
            "logrelay_ingest_responses_total",
            "Responses from the ingestion endpoint",
            ["status_code"],
            registry=self.registry,
        )

        self.delivery_failures_total = Counter(
            "logrelay_delivery_failures_total",
            "Batches lost to transport or provisioning errors",
            registry=self.registry,
        )

        self.endpoint_provisions_total = Counter(
            "logrelay_endpoint_provisions_total",
            "Endpoint provisioning attempts",
            ["outcome"],
            registry=self.registry,
        )

    def record_submitted(self, entries_count: int) -> None:
        """Record entries accepted by the client pipeline."""
        self.entries_submitted_total.inc(entries_count)

    def record_dropped(self, reason: str, entries_count: int = 1) -> None:
        """Record entries dropped by a filter, limiter or throttle."""
        self.entries_dropped_total.labels(reason=reason).inc(entries_count)

    def record_batch(self, trigger: str, batch_size: int) -> None:
        """Record a batch leaving the buffer."""
        self.batches_dispatched_total.labels(trigger=trigger).inc()
        self.batch_size_entries.observe(batch_size)

    def record_response(self, status_code: int) -> None:
        """Record an ingestion endpoint response."""
        self.ingest_responses_total.labels(status_code=str(status_code)).inc()

    def record_delivery_failure(self) -> None:
        self.delivery_failures_total.inc()

    def record_provision(self, outcome: str) -> None:
        """Record an endpoint provisioning outcome (success/failure)."""
        self.endpoint_provisions_total.labels(outcome=outcome).inc()

    def get_sample(self, name: str, **labels: str) -> float:
        """Current value of a sample, 0.0 when never recorded."""
        value = self.registry.get_sample_value(name, labels or None)
        return value or 0.0
