"""Storage module for submitted voicenote files."""

from .voicenotes import (
    VOICENOTE_EXTENSION,
    InvalidFilename,
    StorageError,
    StoredVoicenote,
    VoicenoteNotFound,
    VoicenoteStorage,
    sanitize_filename,
)

__all__ = [
    "InvalidFilename",
    "sanitize_filename",
    "StorageError",
    "StoredVoicenote",
    "VOICENOTE_EXTENSION",
    "VoicenoteNotFound",
    "VoicenoteStorage",
]
