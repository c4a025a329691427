"""Main entry point for Voicenote Admin service."""

import uvicorn

from shared.python.monitoring import configure_logging

from .app import SERVICE_NAME
from .config import get_settings


def main():
    """Run the admin server."""
    settings = get_settings()
    configure_logging(SERVICE_NAME, settings.log_level, settings.log_json)

    uvicorn.run(
        "services.voicenote_admin.src.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
