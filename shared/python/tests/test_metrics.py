"""Tests for Prometheus metrics and health modules."""

import os
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry


class TestMetricsCollector:
    """Tests for MetricsCollector class."""

    def test_init_enabled(self, metrics_collector):
        """Test initialization with metrics enabled."""
        assert metrics_collector.service_name == "test-service"
        assert metrics_collector.enabled is True

    def test_init_disabled_via_env(self):
        """Test metrics disabled via environment variable."""
        from shared.python.monitoring import MetricsCollector

        with patch.dict(os.environ, {"METRICS_ENABLED": "false"}):
            collector = MetricsCollector("test-service", registry=CollectorRegistry())

        assert collector.enabled is False
        assert collector.get_metrics() == b""
        # Recording is a no-op when disabled
        collector.record_submission("accepted")
        collector.record_error("storage_failure")

    def test_get_metrics_returns_bytes(self, metrics_collector):
        """Test get_metrics returns Prometheus format."""
        output = metrics_collector.get_metrics()
        assert isinstance(output, bytes)
        assert b"voicenotes_submissions_total" in output

    def test_record_submission(self, metrics_collector):
        """Test submission outcomes are counted by status."""
        metrics_collector.record_submission("accepted")
        metrics_collector.record_submission("accepted")
        metrics_collector.record_submission("quota_exceeded")

        registry = metrics_collector.registry
        assert registry.get_sample_value("voicenotes_submissions_total", {"status": "accepted"}) == 2
        assert registry.get_sample_value("voicenotes_submissions_total", {"status": "quota_exceeded"}) == 1

    def test_record_rate_limited(self, metrics_collector):
        """Test rate limit rejections are counted."""
        metrics_collector.record_rate_limited()
        assert metrics_collector.registry.get_sample_value("voicenotes_rate_limit_rejections_total") == 1

    def test_record_notification(self, metrics_collector):
        """Test notification outcomes are counted."""
        metrics_collector.record_notification("failed")
        assert (
            metrics_collector.registry.get_sample_value(
                "voicenotes_notifications_total", {"status": "failed"}
            )
            == 1
        )

    def test_record_upload_size(self, metrics_collector):
        """Test accepted upload sizes are observed."""
        metrics_collector.record_upload_size(2048)
        assert metrics_collector.registry.get_sample_value("voicenotes_upload_bytes_sum") == 2048

    def test_record_error(self, metrics_collector):
        """Test errors are labelled with the service name."""
        metrics_collector.record_error("storage_failure")
        assert (
            metrics_collector.registry.get_sample_value(
                "voicenotes_errors_total",
                {"service": "test-service", "error_type": "storage_failure"},
            )
            == 1
        )

    def test_track_duration(self, metrics_collector):
        """Test duration tracking observes the histogram."""
        with metrics_collector.track_duration("store_duration"):
            pass
        assert metrics_collector.registry.get_sample_value("voicenotes_store_duration_seconds_count") == 1

    def test_track_duration_unknown_histogram(self, metrics_collector):
        """Test tracking an unknown histogram is a no-op."""
        with metrics_collector.track_duration("missing"):
            pass

    def test_init_metrics_sets_global(self):
        """Test init_metrics stores the global collector."""
        from shared.python.monitoring import metrics as metrics_module

        collector = metrics_module.init_metrics("test-global", registry=CollectorRegistry())
        assert metrics_module.metrics is collector


class TestHealth:
    """Tests for health checks and endpoints."""

    def test_check_storage_healthy(self, voicenotes_dir):
        """Test a writable directory is healthy."""
        from shared.python.monitoring import check_storage

        assert check_storage(voicenotes_dir)["status"] == "healthy"

    def test_check_storage_missing(self, tmp_path):
        """Test a missing directory is unhealthy."""
        from shared.python.monitoring import check_storage

        result = check_storage(tmp_path / "missing")
        assert result["status"] == "unhealthy"

    def test_check_redis_unhealthy(self, mock_redis):
        """Test Redis ping failures are reported."""
        from shared.python.monitoring import check_redis

        mock_redis.ping.side_effect = ConnectionError("Connection refused")
        result = check_redis("localhost", 6379)
        assert result["status"] == "unhealthy"
        assert "Connection refused" in result["error"]

    def test_check_redis_healthy(self, mock_redis):
        """Test a successful ping is healthy."""
        from shared.python.monitoring import check_redis

        assert check_redis()["status"] == "healthy"

    def test_health_status_degraded(self):
        """Test one failing check degrades the overall status."""
        from shared.python.monitoring import get_health_status

        status = get_health_status(
            "test-service",
            checks={
                "ok": lambda: {"status": "healthy"},
                "bad": lambda: {"status": "unhealthy", "error": "down"},
            },
        )
        assert status["status"] == "degraded"
        assert status["checks"]["bad"]["error"] == "down"

    @pytest.fixture
    def client(self, metrics_collector):
        """App with health endpoints and a controllable check."""
        from shared.python.monitoring import create_health_endpoints

        app = FastAPI()
        check = MagicMock(return_value={"status": "healthy"})
        create_health_endpoints(app, "test-service", checks={"dep": check}, collector=metrics_collector)
        return TestClient(app), check

    def test_endpoints_healthy(self, client):
        """Test health and readiness when dependencies are up."""
        test_client, _ = client
        assert test_client.get("/health").json()["status"] == "healthy"
        assert test_client.get("/health/live").json() == {"status": "ok"}
        assert test_client.get("/health/ready").json() == {"status": "ready"}

    def test_ready_returns_503_when_degraded(self, client):
        """Test readiness fails when a dependency is down."""
        test_client, check = client
        check.return_value = {"status": "unhealthy", "error": "down"}

        response = test_client.get("/health/ready")
        assert response.status_code == 503
        assert response.json() == {"status": "not ready"}

    def test_metrics_endpoint(self, client):
        """Test metrics are exposed in Prometheus text format."""
        test_client, _ = client
        response = test_client.get("/metrics")
        assert response.status_code == 200
        assert "voicenotes_submissions_total" in response.text
