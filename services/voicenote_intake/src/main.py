"""Main entry point for Voicenote Intake service."""

import uvicorn

from shared.python.logging import setup_logging
from shared.python.monitoring import configure_logging

from .app import SERVICE_NAME
from .config import get_settings


def main():
    """Run the intake server."""
    settings = get_settings()
    configure_logging(SERVICE_NAME, settings.log_level, settings.log_json)
    setup_logging(
        SERVICE_NAME,
        level=settings.log_level,
        enable_elasticsearch=settings.elasticsearch_logging,
        es_host=settings.elasticsearch_host,
        es_port=settings.elasticsearch_port,
    )

    uvicorn.run(
        "services.voicenote_intake.src.app:build_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
