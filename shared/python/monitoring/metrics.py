"""Prometheus metrics collection for all services."""

import os
import time
from contextlib import contextmanager

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class MetricsCollector:
    """Centralized metrics collection for Podcast Voicenotes."""

    def __init__(self, service_name: str, registry: CollectorRegistry | None = None):
        self.service_name = service_name
        self.registry = registry or REGISTRY
        self.enabled = os.getenv("METRICS_ENABLED", "true").lower() == "true"

        if not self.enabled:
            return

        # Submission counters
        self.submissions_total = Counter(
            "voicenotes_submissions_total",
            "Total number of upload attempts by outcome",
            ["status"],
            registry=self.registry,
        )

        self.rate_limit_rejections = Counter(
            "voicenotes_rate_limit_rejections_total",
            "Total number of uploads rejected by the daily limit",
            registry=self.registry,
        )

        self.notifications_total = Counter(
            "voicenotes_notifications_total",
            "Total number of notification emails by outcome",
            ["status"],
            registry=self.registry,
        )

        # Size and time histograms
        self.upload_bytes = Histogram(
            "voicenotes_upload_bytes",
            "Size of accepted voicenotes in bytes",
            buckets=[64 * 1024, 256 * 1024, 1024**2, 5 * 1024**2, 10 * 1024**2, 25 * 1024**2, 50 * 1024**2],
            registry=self.registry,
        )

        self.store_duration = Histogram(
            "voicenotes_store_duration_seconds",
            "Time spent writing a voicenote to storage",
            buckets=[0.01, 0.05, 0.1, 0.5, 1, 2, 5],
            registry=self.registry,
        )

        # Error counters
        self.errors_total = Counter(
            "voicenotes_errors_total",
            "Total errors by type",
            ["service", "error_type"],
            registry=self.registry,
        )

    def get_metrics(self) -> bytes:
        """Generate Prometheus metrics output."""
        if not self.enabled:
            return b""
        return generate_latest(self.registry)

    @contextmanager
    def track_duration(self, histogram_name: str):
        """Context manager to track operation duration."""
        if not self.enabled:
            yield
            return

        histogram = getattr(self, histogram_name, None)
        if histogram is None:
            yield
            return

        start = time.time()
        try:
            yield
        finally:
            histogram.observe(time.time() - start)

    def record_submission(self, status: str) -> None:
        """Record an upload attempt outcome ('accepted' or an error name)."""
        if self.enabled:
            self.submissions_total.labels(status=status).inc()

    def record_rate_limited(self) -> None:
        """Record an upload rejected by the daily limit."""
        if self.enabled:
            self.rate_limit_rejections.inc()

    def record_notification(self, status: str) -> None:
        """Record a notification attempt ('sent' or 'failed')."""
        if self.enabled:
            self.notifications_total.labels(status=status).inc()

    def record_upload_size(self, size_bytes: int) -> None:
        """Record the size of an accepted voicenote."""
        if self.enabled:
            self.upload_bytes.observe(size_bytes)

    def record_error(self, error_type: str) -> None:
        """Record an error occurrence."""
        if self.enabled:
            self.errors_total.labels(service=self.service_name, error_type=error_type).inc()


# Global metrics instance (initialized per service)
metrics: MetricsCollector | None = None


def init_metrics(service_name: str, registry: CollectorRegistry | None = None) -> MetricsCollector:
    """Initialize metrics for a service."""
    global metrics
    metrics = MetricsCollector(service_name, registry=registry)
    return metrics
