"""Voicenote Admin FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from shared.python.monitoring import check_storage, create_health_endpoints
from shared.python.storage import (
    InvalidFilename,
    StorageError,
    VoicenoteNotFound,
    VoicenoteStorage,
)

from .config import Settings, get_settings
from .dependencies import delete_token, verify_admin, verify_delete_request

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

SERVICE_NAME = "voicenote-admin"

# Templates directory
TEMPLATES_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def format_datetime(value: datetime | None, tz_name: str = "UTC", fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Format a UTC datetime in the display timezone."""
    if value is None:
        return "N/A"
    return value.astimezone(ZoneInfo(tz_name)).strftime(fmt)


templates.env.filters["datetime"] = format_datetime


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the admin application."""
    settings = settings or get_settings()
    storage = VoicenoteStorage(settings.voicenotes_dir, settings.public_base_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        if not settings.admin_password:
            logger.warning("ADMIN_PASSWORD is not set, admin pages will refuse all requests")
        logger.info("Admin starting up")
        yield
        logger.info("Admin shutting down")

    app = FastAPI(
        title="Podcast Voicenotes - Admin",
        description="Review, play back and delete listener voicenotes",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = storage

    @app.get("/", response_class=HTMLResponse)
    async def list_voicenotes_page(
        request: Request,
        message: str | None = Query(None),
        admin: str = Depends(verify_admin),
    ):
        """Voicenote submissions, newest first."""
        return templates.TemplateResponse(
            request,
            "voicenotes.html",
            {
                "voicenotes": storage.list_voicenotes(),
                "deleted": message == "deleted",
                "timezone": settings.display_timezone,
                "date_format": settings.date_format,
                "delete_token": lambda name: delete_token(settings, name),
            },
        )

    @app.get("/api/voicenotes")
    async def list_voicenotes(admin: str = Depends(verify_admin)):
        """Voicenote submissions as JSON."""
        return [
            {
                "filename": note.filename,
                "size": note.size,
                "modified_at": note.modified_at.isoformat(),
                "url": note.url,
            }
            for note in storage.list_voicenotes()
        ]

    @app.get("/voicenotes/{filename}", name="download_voicenote")
    async def download_voicenote(filename: str, admin: str = Depends(verify_admin)):
        """Download a single voicenote."""
        try:
            note = storage.get(filename)
        except InvalidFilename:
            raise HTTPException(status_code=400, detail="Invalid file path.") from None
        except VoicenoteNotFound:
            raise HTTPException(status_code=404, detail="Voicenote not found") from None

        return FileResponse(
            storage.resolve(note.filename),
            media_type="audio/webm",
            filename=note.filename,
        )

    @app.post("/voicenotes/{filename}/delete", name="delete_voicenote")
    async def delete_voicenote(
        filename: str,
        admin: str = Depends(verify_admin),
        _: None = Depends(verify_delete_request),
    ):
        """Delete a voicenote and return to the listing."""
        try:
            storage.delete(filename)
        except InvalidFilename:
            logger.warning(f"Rejected delete of invalid path {filename!r} by {admin}")
            raise HTTPException(status_code=400, detail="Invalid file path.") from None
        except VoicenoteNotFound:
            raise HTTPException(status_code=404, detail="Voicenote not found") from None
        except StorageError:
            raise HTTPException(status_code=500, detail="Error deleting file.") from None

        logger.info(f"Voicenote {filename} deleted by {admin}")
        return RedirectResponse(url="/?message=deleted", status_code=303)

    create_health_endpoints(
        app,
        SERVICE_NAME,
        checks={"storage": lambda: check_storage(settings.voicenotes_dir)},
    )

    return app
