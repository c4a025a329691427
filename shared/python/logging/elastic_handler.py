"""Elasticsearch logging handler for centralized logging."""

import json
import logging
import os
import sys
import threading
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from queue import Empty, Queue
from typing import Any

from elasticsearch import Elasticsearch
from elasticsearch.helpers import bulk

_STANDARD_RECORD_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class ElasticsearchHandler(logging.Handler):
    """
    Logging handler that sends logs to Elasticsearch.

    Records are buffered and shipped with the bulk helper, either when the
    buffer fills up or from a background thread every flush_interval seconds.
    Indices are named per service and per day.
    """

    def __init__(
        self,
        service_name: str,
        es_host: str | None = None,
        es_port: int | None = None,
        buffer_size: int = 100,
        flush_interval: float = 5.0,
        index_prefix: str = "voicenotes",
    ):
        """
        Initialize the Elasticsearch handler.

        Args:
            service_name: Name of the service (e.g., 'voicenote-intake')
            es_host: Elasticsearch host (defaults to env var)
            es_port: Elasticsearch port (defaults to env var)
            buffer_size: Number of logs to buffer before flush
            flush_interval: Seconds between automatic flushes
            index_prefix: Prefix for index names
        """
        super().__init__()

        self.service_name = service_name
        self.index_prefix = index_prefix
        self.buffer_size = buffer_size
        self.flush_interval = flush_interval

        host = es_host or os.getenv("ELASTICSEARCH_HOST", "localhost")
        port = es_port or int(os.getenv("ELASTICSEARCH_PORT", "9200"))

        self.es = Elasticsearch(
            [{"host": host, "port": port, "scheme": "http"}],
            retry_on_timeout=True,
            max_retries=3,
        )

        self._buffer: Queue[dict[str, Any]] = Queue()
        self._buffer_lock = threading.Lock()
        self._closed = False

        self._flush_thread = threading.Thread(target=self._flush_worker, daemon=True)
        self._flush_thread.start()

    def _get_index_name(self) -> str:
        """Generate index name with current date."""
        date_str = datetime.now(timezone.utc).strftime("%Y.%m.%d")
        return f"{self.index_prefix}-{self.service_name}-{date_str}"

    def emit(self, record: logging.LogRecord) -> None:
        """Add a log record to the buffer, flushing when it is full."""
        if self._closed:
            return

        try:
            self._buffer.put(self._format_record(record))
            if self._buffer.qsize() >= self.buffer_size:
                self._flush()
        except Exception:
            self.handleError(record)

    def _format_record(self, record: logging.LogRecord) -> dict[str, Any]:
        """
        Format a log record for Elasticsearch.

        Args:
            record: The log record to format

        Returns:
            Dict ready for bulk indexing
        """
        extra = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
                extra[key] = value
            except (TypeError, ValueError):
                extra[key] = str(value)

        source = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": self.service_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process_id": record.process,
            "thread_id": record.thread,
            "extra": extra,
        }
        if record.exc_info:
            source["exception"] = logging.Formatter().formatException(record.exc_info)

        return {"_index": self._get_index_name(), "_source": source}

    def _flush(self) -> None:
        """Flush the buffer to Elasticsearch."""
        with self._buffer_lock:
            docs = []
            try:
                while True:
                    docs.append(self._buffer.get_nowait())
            except Empty:
                pass

            if docs:
                try:
                    bulk(self.es, docs, raise_on_error=False, raise_on_exception=False)
                except Exception as e:
                    # Logging here would recurse into this handler
                    print(f"Failed to flush logs to Elasticsearch: {e}", file=sys.stderr)

    def _flush_worker(self) -> None:
        """Background worker that flushes periodically."""
        while not self._closed:
            time.sleep(self.flush_interval)
            if not self._buffer.empty():
                self._flush()

    def close(self) -> None:
        """Close the handler and flush remaining logs."""
        self._closed = True
        self._flush()
        super().close()


def setup_logging(
    service_name: str,
    level: str | None = None,
    enable_elasticsearch: bool = True,
    es_host: str | None = None,
    es_port: int | None = None,
) -> logging.Logger:
    """
    Set up logging for a service.

    Module loggers propagate to the root logger, so the Elasticsearch
    handler is attached there rather than to the service logger.

    Args:
        service_name: Name of the service
        level: Log level (defaults to env var LOG_LEVEL)
        enable_elasticsearch: Whether to enable ES logging
        es_host: Elasticsearch host (defaults to env var ELASTICSEARCH_HOST)
        es_port: Elasticsearch port (defaults to env var ELASTICSEARCH_PORT)

    Returns:
        Logger named after the service
    """
    log_level = level or os.getenv("LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger(service_name)
    logger.setLevel(numeric_level)

    if enable_elasticsearch:
        try:
            es_handler = ElasticsearchHandler(service_name, es_host=es_host, es_port=es_port)
            es_handler.setLevel(numeric_level)
            es_handler.addFilter(ContextFilter())
            logging.getLogger().addHandler(es_handler)
        except Exception as e:
            logger.warning(f"Failed to initialize Elasticsearch logging: {e}")

    return logger


_log_context: ContextVar[dict[str, Any]] = ContextVar("voicenotes_log_context", default={})


class LogContext:
    """
    Context manager for adding extra fields to log records.

    Backed by a context variable, so concurrent requests each see their
    own fields.

    Usage:
        with LogContext(request_id="abc", client_ip="203.0.113.5"):
            logger.info("Handling upload")  # Will include request_id and client_ip
    """

    def __init__(self, **kwargs: Any):
        self.extra = kwargs
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self.extra})
        return self

    def __exit__(self, *args: Any) -> None:
        _log_context.reset(self._token)

    @classmethod
    def get_context(cls) -> dict[str, Any]:
        """Get the current logging context."""
        return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """Filter that adds context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in LogContext.get_context().items():
            setattr(record, key, value)
        return True
