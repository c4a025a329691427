"""Monitoring and observability module."""

from .health import check_redis, check_storage, create_health_endpoints, get_health_status
from .logging import configure_logging
from .metrics import MetricsCollector, init_metrics

__all__ = [
    "check_redis",
    "check_storage",
    "configure_logging",
    "create_health_endpoints",
    "get_health_status",
    "init_metrics",
    "MetricsCollector",
]
