"""Upload intake: validation, storage and accounting of listener voicenotes."""

from __future__ import annotations

import hashlib
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, BinaryIO

from starlette.datastructures import UploadFile

from shared.python.rate_limiter import (
    DailySubmissionLimiter,
    QuotaDecision,
    RateLimitStoreError,
)
from shared.python.storage import StorageError, StoredVoicenote, VoicenoteStorage

from .config import Settings

if TYPE_CHECKING:
    from shared.python.email import EmailNotifier
    from shared.python.monitoring import MetricsCollector

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "audio_file"
FILENAME_PREFIX = "voicenote_"
MIB = 1024 * 1024


class IntakeError(Exception):
    """Base class for upload failures reported to the client."""

    status_code = 500
    error_type = "intake_error"

    def __init__(self, error: str, message: str | None = None, headers: dict[str, str] | None = None):
        self.error = error
        self.message = message
        self.headers = headers or {}
        super().__init__(error)

    def to_dict(self) -> dict[str, Any]:
        """JSON body sent to the client."""
        body = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body


class MethodNotAllowed(IntakeError):
    status_code = 405
    error_type = "method_not_allowed"


class QuotaExceeded(IntakeError):
    """Raised when a client has used up its daily submissions."""

    status_code = 429
    error_type = "quota_exceeded"

    def __init__(self, limit: int, retry_after: int):
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(
            "Submission limit reached.",
            f"You have reached the limit of {limit} submissions allowed per day. "
            "Please try again tomorrow.",
            headers={"Retry-After": str(retry_after)},
        )


class BadUpload(IntakeError):
    status_code = 400
    error_type = "bad_upload"


class PayloadTooLarge(IntakeError):
    status_code = 413
    error_type = "payload_too_large"


class UnsupportedMediaType(IntakeError):
    status_code = 415
    error_type = "unsupported_media_type"


class StorageFailure(IntakeError):
    status_code = 500
    error_type = "storage_failure"


class InternalError(IntakeError):
    """Raised when the rate limit table is unavailable."""

    status_code = 500
    error_type = "internal_error"


NO_FILE_ERROR = "No file uploaded or an upload error occurred."
TRANSPORT_TOO_LARGE_ERROR = "File too large. Maximum file size exceeded (check server configuration)."


@dataclass(frozen=True)
class UploadedAudio:
    """A single uploaded file, extracted once from the multipart form."""

    filename: str
    content_type: str
    size: int
    file: BinaryIO

    @classmethod
    def from_form_values(cls, values: list[Any]) -> UploadedAudio:
        """
        Build an upload from the values posted under the upload field.

        Raises:
            BadUpload: Unless exactly one file part is present
        """
        if len(values) != 1 or not isinstance(values[0], UploadFile):
            raise BadUpload(NO_FILE_ERROR)

        upload = values[0]
        size = upload.size
        if size is None:
            upload.file.seek(0, os.SEEK_END)
            size = upload.file.tell()
        upload.file.seek(0)

        return cls(
            filename=upload.filename or "",
            content_type=upload.content_type or "",
            size=size,
            file=upload.file,
        )

    @property
    def media_type(self) -> str:
        """Declared content type without parameters, e.g. 'audio/webm'."""
        return self.content_type.split(";", 1)[0].strip().lower()


@dataclass(frozen=True)
class IntakeResult:
    """An accepted submission."""

    voicenote: StoredVoicenote
    submitted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "message": "File uploaded successfully and email sent.",
            "filename": self.voicenote.filename,
            "url": self.voicenote.url,
        }


def generate_filename(now: float | None = None, extension: str = ".webm") -> str:
    """
    Generate a server side name for an accepted upload.

    Format is voicenote_<unix seconds>_<8 hex chars><extension>. The suffix
    hashes high resolution clock readings; it is unique with high
    probability, not guaranteed.
    """
    seconds = int(time.time() if now is None else now)
    clock = f"{time.time_ns()}:{time.perf_counter_ns()}".encode()
    suffix = hashlib.md5(clock, usedforsecurity=False).hexdigest()[:8]
    return f"{FILENAME_PREFIX}{seconds}_{suffix}{extension}"


def format_byte_limit(size: int) -> str:
    """Render a byte limit for messages, e.g. '50MB', '512KB' or '1500 bytes'."""
    if size >= MIB and size % MIB == 0:
        return f"{size // MIB}MB"
    if size >= 1024 and size % 1024 == 0:
        return f"{size // 1024}KB"
    return f"{size} bytes"


class VoicenoteIntake:
    """
    Runs an upload through its gates in order.

    method -> quota -> transport -> size -> type -> store -> record.
    The first failing gate raises its IntakeError; nothing is written to
    storage before the store step.
    """

    def __init__(
        self,
        settings: Settings,
        limiter: DailySubmissionLimiter,
        storage: VoicenoteStorage,
        collector: MetricsCollector | None = None,
    ):
        self.settings = settings
        self.limiter = limiter
        self.storage = storage
        self.collector = collector

    def check_method(self, method: str) -> None:
        if method.upper() != "POST":
            raise MethodNotAllowed("Method Not Allowed")

    def check_quota(self, client_ip: str) -> QuotaDecision:
        """
        Raises:
            QuotaExceeded: If the client reached today's limit
            InternalError: If the rate limit table is unavailable (fail closed)
        """
        try:
            decision = self.limiter.check_quota(client_ip)
        except RateLimitStoreError as e:
            logger.error(f"Rate limit check failed, rejecting upload: {e}")
            raise InternalError("Submission service temporarily unavailable.") from e

        if not decision.allowed:
            if self.collector:
                self.collector.record_rate_limited()
            raise QuotaExceeded(decision.limit, self.limiter.seconds_until_reset())
        return decision

    def check_transport(self, content_length: str | None) -> None:
        """Reject requests whose declared body exceeds the transport ceiling."""
        if content_length is None:
            return
        try:
            length = int(content_length)
        except ValueError:
            raise BadUpload(NO_FILE_ERROR) from None
        if length > self.settings.max_request_bytes:
            raise PayloadTooLarge(TRANSPORT_TOO_LARGE_ERROR)

    def validate(self, upload: UploadedAudio) -> None:
        """Apply the size and type gates."""
        if upload.size > self.settings.max_upload_bytes:
            limit = format_byte_limit(self.settings.max_upload_bytes)
            raise PayloadTooLarge(f"File size exceeds {limit} limit.")

        allowed_types = {t.lower() for t in self.settings.allowed_content_types}
        if upload.media_type not in allowed_types and not upload.filename.lower().endswith(
            self.settings.accepted_extension
        ):
            raise UnsupportedMediaType("Invalid file type. Only WebM audio is accepted.")

    def store(self, upload: UploadedAudio) -> StoredVoicenote:
        """
        Raises:
            StorageFailure: If the directory or the file cannot be written
        """
        try:
            self.storage.ensure_directory()
        except StorageError as e:
            raise StorageFailure("Server failed to create the target upload directory.") from e

        filename = generate_filename(extension=self.settings.accepted_extension)
        try:
            if self.collector:
                with self.collector.track_duration("store_duration"):
                    return self.storage.save(filename, upload.file)
            return self.storage.save(filename, upload.file)
        except StorageError as e:
            raise StorageFailure(
                "Failed to move the uploaded file. Check directory permissions."
            ) from e

    def record(self, client_ip: str) -> None:
        """Count the submission; a failure here does not undo the stored file."""
        try:
            count = self.limiter.record_submission(client_ip)
        except RateLimitStoreError as e:
            logger.error(f"Failed to record submission for {client_ip}: {e}")
            if self.collector:
                self.collector.record_error("rate_limit_record")
            return
        logger.debug(f"{client_ip} has {count}/{self.limiter.max_per_day} submissions today")

    def accept(self, client_ip: str, upload: UploadedAudio) -> IntakeResult:
        """Validate, store and record an upload that passed the quota check."""
        self.validate(upload)
        voicenote = self.store(upload)
        submitted_at = datetime.now()
        self.record(client_ip)

        if self.collector:
            self.collector.record_submission("accepted")
            self.collector.record_upload_size(voicenote.size)

        logger.info(
            f"Stored voicenote {voicenote.filename} ({voicenote.size} bytes)",
            extra={"filename": voicenote.filename, "size_bytes": voicenote.size},
        )
        return IntakeResult(voicenote=voicenote, submitted_at=submitted_at)


def notify_admin(
    notifier: EmailNotifier,
    result: IntakeResult,
    admin_url: str,
    collector: MetricsCollector | None = None,
) -> None:
    """
    Send the new submission email.

    Runs after the response is determined; any failure is logged and
    never reaches the client.
    """
    try:
        sent = notifier.send_voicenote_notification(
            filename=result.voicenote.filename,
            submitted_at=result.submitted_at,
            file_url=result.voicenote.url,
            admin_url=admin_url,
        )
    except Exception as e:
        logger.error(f"Notification for {result.voicenote.filename} failed: {e}")
        sent = False

    if not sent:
        logger.warning(f"Host was not notified about {result.voicenote.filename}")
    if collector:
        collector.record_notification("sent" if sent else "failed")
