"""
Metrics collection and monitoring utilities.

Provides Prometheus metrics for generation traffic and provider latency.
"""

from typing import Any, Dict

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Collects and exposes metrics for monitoring.

    Each collector owns its registry, so several applications (or tests) can
    live in one process without clashing on metric names.
    """

    def __init__(self):
        self.registry = CollectorRegistry()

        # Track counts for summary
        self._counts = {"generation_requests": 0, "generation_completed": 0, "generation_failed": 0}

        self.generation_requests = Counter(
            "audiostudio_generation_requests_total",
            "Total number of generation requests by outcome",
            ["kind", "status"],
            registry=self.registry,
        )

        self.provider_duration = Histogram(
            "audiostudio_provider_call_duration_seconds",
            "Time spent waiting on the generation provider",
            ["kind"],
            buckets=(1, 2.5, 5, 10, 20, 30, 60, 90, 120, float("inf")),
            registry=self.registry,
        )

    def record_generation_request(self, kind: str, status: str):
        """Record a generation request outcome ("completed" or an error code)."""
        self.generation_requests.labels(kind=kind, status=status).inc()
        self._counts["generation_requests"] += 1
        if status == "completed":
            self._counts["generation_completed"] += 1
        else:
            self._counts["generation_failed"] += 1

    def record_provider_duration(self, kind: str, duration: float):
        """Record provider call timing."""
        self.provider_duration.labels(kind=kind).observe(duration)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry).decode("utf-8")

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get a summary of metrics as a dictionary."""
        return self._counts.copy()
