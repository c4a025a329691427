"""Structured logging configuration for all services."""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from shared.python.logging import ContextFilter

EXTRA_FIELDS = (
    "request_id",
    "client_ip",
    "filename",
    "size_bytes",
    "duration_ms",
    "status",
    "error_type",
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def configure_logging(
    service_name: str,
    log_level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """
    Configure logging for a service.

    Args:
        service_name: Name of the service (e.g., 'voicenote-intake')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env LOG_LEVEL or INFO.
        json_output: Whether to output JSON format. Defaults to LOG_FORMAT=json.
    """
    level = log_level or os.getenv("LOG_LEVEL", "INFO")
    use_json = json_output if json_output is not None else os.getenv("LOG_FORMAT") == "json"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    handler.addFilter(ContextFilter())

    if use_json:
        handler.setFormatter(JSONFormatter(service_name))
    else:
        handler.setFormatter(
            logging.Formatter(
                f"%(asctime)s | {service_name} | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("elasticsearch").setLevel(logging.WARNING)
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
