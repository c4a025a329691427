"""Voicenote Intake FastAPI application."""

from __future__ import annotations

import ipaddress
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from prometheus_client import CollectorRegistry
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.types import Message

from shared.python.email import EmailNotifier
from shared.python.logging import LogContext
from shared.python.monitoring import (
    MetricsCollector,
    check_redis,
    check_storage,
    create_health_endpoints,
    init_metrics,
)
from shared.python.options import OptionStore, create_option_store
from shared.python.rate_limiter import DailySubmissionLimiter
from shared.python.storage import StorageError, VoicenoteStorage

from .config import Settings, get_settings
from .intake import (
    NO_FILE_ERROR,
    TRANSPORT_TOO_LARGE_ERROR,
    UPLOAD_FIELD,
    BadUpload,
    IntakeError,
    PayloadTooLarge,
    UploadedAudio,
    VoicenoteIntake,
    notify_admin,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from datetime import datetime

logger = logging.getLogger(__name__)

SERVICE_NAME = "voicenote-intake"
UNKNOWN_IP = "UNKNOWN_IP"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

TEMPLATES_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def client_identifier(request: Request, trust_forwarded_for: bool = False) -> str:
    """Remote IP address used as the rate limit key."""
    host = request.client.host if request.client else None
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            host = forwarded.split(",")[0].strip()

    try:
        return str(ipaddress.ip_address(host))
    except (TypeError, ValueError):
        return UNKNOWN_IP


def limit_request_body(request: Request, max_bytes: int) -> Request:
    """
    Wrap a request so that reading more than max_bytes of body raises PayloadTooLarge.

    Applies to bodies sent without a Content-Length, such as chunked uploads.
    """
    received = 0

    async def receive() -> Message:
        nonlocal received
        message = await request.receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > max_bytes:
                raise PayloadTooLarge(TRANSPORT_TOO_LARGE_ERROR)
        return message

    return Request(request.scope, receive)


def create_app(
    settings: Settings | None = None,
    option_store: OptionStore | None = None,
    notifier: EmailNotifier | None = None,
    collector: MetricsCollector | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """
    Build the intake application.

    Args:
        settings: Service settings (defaults to environment)
        option_store: Store for the rate limit table (defaults to the configured backend)
        notifier: Email notifier (defaults to SMTP settings from environment)
        collector: Metrics collector (defaults to a private registry)
        clock: UTC clock for the daily limit (defaults to the system clock)
    """
    settings = settings or get_settings()
    if option_store is None:
        option_store = create_option_store(
            settings.option_store,
            redis_host=settings.redis_host,
            redis_port=settings.redis_port,
            redis_db=settings.redis_db,
        )
    notifier = notifier or EmailNotifier()
    collector = collector or MetricsCollector(SERVICE_NAME, registry=CollectorRegistry())

    storage = VoicenoteStorage(settings.voicenotes_dir, settings.public_base_url)
    limiter = DailySubmissionLimiter(
        option_store, max_per_day=settings.max_submissions_per_day, clock=clock
    )
    intake = VoicenoteIntake(settings, limiter, storage, collector)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        try:
            storage.ensure_directory()
        except StorageError as e:
            logger.error(f"Voicenote directory unavailable at startup: {e}")
        logger.info(f"Intake starting up, storing voicenotes in {storage.directory}")
        yield
        logger.info("Intake shutting down")

    app = FastAPI(
        title="Podcast Voicenotes - Intake",
        description="Listener voicenote recorder and upload endpoint",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.intake = intake
    app.state.notifier = notifier
    app.state.collector = collector

    @app.exception_handler(IntakeError)
    async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
        collector.record_submission(exc.error_type)
        logger.info(
            f"Upload rejected with {exc.status_code}: {exc.error}",
            extra={"status": exc.status_code, "error_type": exc.error_type},
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.get("/", response_class=HTMLResponse)
    async def recorder(request: Request):
        """Recording widget."""
        return templates.TemplateResponse(
            request,
            "recorder.html",
            {
                "upload_url": str(request.url_for("upload_voicenote")),
                "max_recording_seconds": settings.max_recording_seconds,
                "max_submissions_per_day": settings.max_submissions_per_day,
            },
        )

    @app.api_route("/upload", methods=ALL_METHODS, name="upload_voicenote")
    async def upload_voicenote(request: Request, background_tasks: BackgroundTasks):
        """Accept one voicenote under the audio_file form field."""
        client_ip = client_identifier(request, settings.trust_forwarded_for)

        with LogContext(request_id=uuid.uuid4().hex[:12], client_ip=client_ip):
            intake.check_method(request.method)
            await run_in_threadpool(intake.check_quota, client_ip)
            intake.check_transport(request.headers.get("content-length"))

            body = limit_request_body(request, settings.max_request_bytes)
            try:
                form = await body.form()
            except (HTTPException, MultiPartException) as e:
                logger.warning(f"Could not parse upload body: {e}")
                raise BadUpload(NO_FILE_ERROR) from e

            try:
                upload = UploadedAudio.from_form_values(form.getlist(UPLOAD_FIELD))
                result = await run_in_threadpool(intake.accept, client_ip, upload)
            finally:
                await form.close()

            background_tasks.add_task(
                notify_admin, notifier, result, settings.admin_base_url, collector
            )

        return JSONResponse(status_code=200, content=result.to_dict())

    app.mount(
        "/voicenotes",
        StaticFiles(directory=settings.voicenotes_dir, check_dir=False),
        name="voicenotes",
    )

    create_health_endpoints(
        app,
        SERVICE_NAME,
        checks=_health_checks(settings),
        collector=collector,
    )

    return app


def _health_checks(settings: Settings) -> dict:
    checks = {"storage": lambda: check_storage(settings.voicenotes_dir)}
    if settings.option_store == "redis":
        checks["redis"] = lambda: check_redis(settings.redis_host, settings.redis_port)
    return checks


def build_app() -> FastAPI:
    """Application factory used by uvicorn."""
    return create_app(collector=init_metrics(SERVICE_NAME))
