"""
Pytest configuration and shared fixtures for Podcast Voicenotes tests.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

# Set test environment variables before importing modules
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("ELASTICSEARCH_HOST", "localhost")
os.environ.setdefault("ELASTICSEARCH_PORT", "9200")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("METRICS_ENABLED", "true")


class FakeClock:
    """Settable UTC clock for day rollover tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_day(self, year: int, month: int, day: int, hour: int = 12) -> None:
        self.now = datetime(year, month, day, hour, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock fixed at 2024-01-01 12:00 UTC."""
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def option_store():
    """Empty in-memory option store."""
    from shared.python.options import InMemoryOptionStore

    return InMemoryOptionStore()


@pytest.fixture
def failing_option_store():
    """Option store whose reads and writes always fail."""
    from shared.python.options import OptionStoreError

    store = MagicMock()
    store.get.side_effect = OptionStoreError("voicenotes_rate_limit_submissions", "connection refused")
    store.set.side_effect = OptionStoreError("voicenotes_rate_limit_submissions", "connection refused")
    return store


@pytest.fixture
def voicenotes_dir(tmp_path):
    """Directory for stored voicenotes."""
    path = tmp_path / "voicenotes"
    path.mkdir()
    return path


@pytest.fixture
def storage(voicenotes_dir):
    """Voicenote storage rooted in a temporary directory."""
    from shared.python.storage import VoicenoteStorage

    return VoicenoteStorage(voicenotes_dir, "https://podcast.example.com/voicenotes")


@pytest.fixture
def make_voicenote(voicenotes_dir) -> Callable[..., os.PathLike]:
    """Write a voicenote file with a given modification time."""

    def _make(name: str, content: bytes = b"webm-data", mtime: float | None = None):
        path = voicenotes_dir / name
        path.write_bytes(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    with patch("redis.Redis") as mock:
        mock_client = MagicMock()
        mock.return_value = mock_client
        yield mock_client


@pytest.fixture
def mock_elasticsearch():
    """Mock Elasticsearch client."""
    with patch("shared.python.logging.elastic_handler.Elasticsearch") as mock:
        mock_client = MagicMock()
        mock.return_value = mock_client
        yield mock_client


@pytest.fixture
def mock_smtp():
    """Mock SMTP for email testing."""
    with patch("smtplib.SMTP") as mock:
        mock_server = MagicMock()
        mock.return_value.__enter__ = MagicMock(return_value=mock_server)
        mock.return_value.__exit__ = MagicMock(return_value=False)
        yield mock_server


@pytest.fixture
def mock_notifier():
    """Email notifier that records calls instead of sending."""
    notifier = MagicMock()
    notifier.send_voicenote_notification.return_value = True
    return notifier


@pytest.fixture
def metrics_collector():
    """Metrics collector on a private registry."""
    from prometheus_client import CollectorRegistry

    from shared.python.monitoring import MetricsCollector

    return MetricsCollector("test-service", registry=CollectorRegistry())


@pytest.fixture
def webm_bytes() -> bytes:
    """Small payload standing in for a WebM recording."""
    return b"\x1a\x45\xdf\xa3" + b"\x00" * 2048
