"""File system storage for submitted voicenotes."""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

VOICENOTE_EXTENSION = ".webm"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class StorageError(Exception):
    """Base exception for voicenote storage failures."""


class InvalidFilename(StorageError):
    """Raised when a filename is empty or resolves outside the storage directory."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Invalid voicenote filename: {filename!r}")


class VoicenoteNotFound(StorageError):
    """Raised when a voicenote does not exist."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Voicenote not found: {filename}")


@dataclass(frozen=True)
class StoredVoicenote:
    """A voicenote file as found on disk."""

    filename: str
    size: int
    modified_at: datetime
    url: str

    @property
    def human_size(self) -> str:
        """Size formatted for display (e.g. '1.4 MB')."""
        size = float(self.size)
        for unit in ("B", "KB", "MB"):
            if size < 1024:
                return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} GB"


def sanitize_filename(filename: str) -> str:
    """
    Reduce a client supplied name to a bare, safe filename.

    Path components are dropped and anything outside [A-Za-z0-9._-] is
    removed. Leading dots are stripped so hidden files cannot be addressed.
    """
    name = os.path.basename(filename.replace("\\", "/"))
    name = _UNSAFE_CHARS.sub("", name)
    return name.lstrip(".")


class VoicenoteStorage:
    """
    Directory of submitted voicenotes.

    Files are written once under a server generated name and only ever
    removed through delete().
    """

    def __init__(self, directory: str | Path, public_base_url: str):
        self.directory = Path(directory)
        self.public_base_url = public_base_url.rstrip("/")

    def ensure_directory(self) -> Path:
        """
        Create the storage directory if needed.

        Raises:
            StorageError: If the directory cannot be created
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create voicenote directory {self.directory}: {e}")
            raise StorageError(f"Cannot create directory {self.directory}") from e
        return self.directory

    def public_url(self, filename: str) -> str:
        """Public URL under which a stored voicenote is served."""
        return f"{self.public_base_url}/{filename}"

    def save(self, filename: str, source: BinaryIO) -> StoredVoicenote:
        """
        Copy an uploaded file into the storage directory.

        An existing file with the same name is overwritten.

        Args:
            filename: Server generated target filename
            source: Readable binary file object positioned at the upload data

        Returns:
            The stored voicenote

        Raises:
            StorageError: If the directory or the file cannot be written
        """
        self.ensure_directory()
        destination = self.resolve(filename)

        try:
            with open(destination, "wb") as target:
                shutil.copyfileobj(source, target)
        except OSError as e:
            logger.error(f"Failed to write voicenote {destination}: {e}")
            destination.unlink(missing_ok=True)
            raise StorageError(f"Cannot write {filename}") from e

        return self._describe(destination)

    def resolve(self, filename: str) -> Path:
        """
        Map a filename to its path inside the storage directory.

        Raises:
            InvalidFilename: If the sanitized name is empty or escapes the directory
        """
        safe_name = sanitize_filename(filename)
        if not safe_name:
            raise InvalidFilename(filename)

        root = self.directory.resolve()
        path = (root / safe_name).resolve()
        if path.parent != root:
            raise InvalidFilename(filename)
        return path

    def get(self, filename: str) -> StoredVoicenote:
        """Look up a single stored voicenote."""
        path = self.resolve(filename)
        if not path.is_file():
            raise VoicenoteNotFound(filename)
        return self._describe(path)

    def list_voicenotes(self) -> list[StoredVoicenote]:
        """List stored voicenotes, newest first."""
        if not self.directory.is_dir():
            return []

        voicenotes = [
            self._describe(path)
            for path in self.directory.iterdir()
            if path.suffix == VOICENOTE_EXTENSION and path.is_file()
        ]
        voicenotes.sort(key=lambda note: note.modified_at, reverse=True)
        return voicenotes

    def delete(self, filename: str) -> None:
        """
        Delete a stored voicenote.

        Raises:
            InvalidFilename: If the name escapes the storage directory
            VoicenoteNotFound: If no such file exists
            StorageError: If the file cannot be removed
        """
        path = self.resolve(filename)
        if not path.is_file():
            raise VoicenoteNotFound(filename)

        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete voicenote {path}: {e}")
            raise StorageError(f"Cannot delete {filename}") from e

        logger.info(f"Deleted voicenote {path.name}")

    def _describe(self, path: Path) -> StoredVoicenote:
        stat = path.stat()
        return StoredVoicenote(
            filename=path.name,
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            url=self.public_url(path.name),
        )
