"""Health check utilities for all services."""

import os
import tempfile
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import redis

from .metrics import MetricsCollector

HealthCheck = Callable[[], dict[str, Any]]


def check_redis(host: str | None = None, port: int | None = None) -> dict[str, Any]:
    """Check Redis connectivity."""
    try:
        redis_host = host or os.getenv("REDIS_HOST", "localhost")
        redis_port = port or int(os.getenv("REDIS_PORT", "6379"))
        start = time.time()
        r = redis.Redis(host=redis_host, port=redis_port, socket_timeout=5)
        r.ping()
        return {"status": "healthy", "latency_ms": round((time.time() - start) * 1000, 2)}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


def check_storage(directory: str | Path) -> dict[str, Any]:
    """Check that the voicenote directory exists and is writable."""
    path = Path(directory)
    if not path.is_dir():
        return {"status": "unhealthy", "error": f"{path} does not exist"}
    try:
        with tempfile.TemporaryFile(dir=path):
            pass
        return {"status": "healthy"}
    except OSError as e:
        return {"status": "unhealthy", "error": str(e)}


def get_health_status(
    service_name: str,
    version: str = "1.0.0",
    checks: dict[str, HealthCheck] | None = None,
) -> dict[str, Any]:
    """
    Get comprehensive health status for a service.

    Args:
        service_name: Name of the service
        version: Service version
        checks: Mapping of check name to a callable returning a check result

    Returns:
        Health status dictionary
    """
    status = {
        "service": service_name,
        "version": version,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {},
    }

    for check_name, check in (checks or {}).items():
        result = check()
        status["checks"][check_name] = result
        if result["status"] != "healthy":
            status["status"] = "degraded"

    return status


def create_health_endpoints(
    app: Any,
    service_name: str,
    version: str = "1.0.0",
    checks: dict[str, HealthCheck] | None = None,
    collector: MetricsCollector | None = None,
) -> None:
    """
    Add health check endpoints to a FastAPI app.

    Args:
        app: FastAPI application instance
        service_name: Name of the service
        version: Service version
        checks: Dependency checks run by /health and /health/ready
        collector: Metrics collector exposed on /metrics
    """
    from fastapi import Response
    from fastapi.responses import JSONResponse

    @app.get("/health")
    async def health():
        """Basic health check endpoint."""
        return get_health_status(service_name, version, checks)

    @app.get("/health/live")
    async def liveness():
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/health/ready")
    async def readiness():
        """Readiness probe."""
        status = get_health_status(service_name, version, checks)
        if status["status"] == "healthy":
            return {"status": "ready"}
        return JSONResponse(status_code=503, content={"status": "not ready"})

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics endpoint."""
        if collector:
            return Response(
                content=collector.get_metrics(),
                media_type="text/plain; version=0.0.4; charset=utf-8",
            )
        return Response(content=b"", media_type="text/plain")
