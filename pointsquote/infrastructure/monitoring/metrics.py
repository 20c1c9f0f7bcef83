"""Prometheus implementation of the MetricsSink interface.

Each sink owns its CollectorRegistry so several instances (e.g. one per
test) never collide on metric names in the global registry.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from pointsquote.domain.interfaces.metrics import MetricsSink

logger = logging.getLogger(__name__)

DURATION_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

class PrometheusMetricsSink(MetricsSink):
    """Records quote and dependency metrics in a prometheus_client registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "points_quote_requests", "Total number of points quote requests",
            registry=self.registry,
        )
        self.errors = Counter(
            "points_quote_errors", "Total number of points quote errors",
            registry=self.registry,
        )
        self.duration = Histogram(
            "points_quote_duration_seconds", "Points quote request duration",
            buckets=DURATION_BUCKETS, registry=self.registry,
        )
        self.retries = Counter(
            "external_service_retries", "Total number of retries against a dependency",
            ["dependency"], registry=self.registry,
        )
        self.failures = Counter(
            "external_service_failures", "Total number of failed logical calls to a dependency",
            ["dependency"], registry=self.registry,
        )
        logger.debug("PrometheusMetricsSink initialized")

    def increment_requests(self) -> None:
        self.requests.inc()

    def increment_errors(self) -> None:
        self.errors.inc()

    def increment_retries(self, dependency: str) -> None:
        self.retries.labels(dependency=dependency).inc()

    def increment_failures(self, dependency: str) -> None:
        self.failures.labels(dependency=dependency).inc()

    def observe_duration(self, seconds: float) -> None:
        self.duration.observe(seconds)

    def value(self, name: str, **labels: str) -> float:
        """Reads a sample value back from the registry (0.0 if never recorded)."""
        sample = self.registry.get_sample_value(name, labels or None)
        return sample if sample is not None else 0.0

    def render(self) -> str:
        """Returns the text exposition format of every metric in the registry."""
        return generate_latest(self.registry).decode("utf-8")
