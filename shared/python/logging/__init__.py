"""Logging module for Podcast Voicenotes."""

from .elastic_handler import (
    ContextFilter,
    ElasticsearchHandler,
    LogContext,
    setup_logging,
)

__all__ = [
    "ElasticsearchHandler",
    "setup_logging",
    "LogContext",
    "ContextFilter",
]
