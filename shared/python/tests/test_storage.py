"""Tests for voicenote storage module."""

import io
import time
from unittest.mock import patch

import pytest

from shared.python.storage import (
    InvalidFilename,
    StorageError,
    StoredVoicenote,
    VoicenoteNotFound,
    VoicenoteStorage,
    sanitize_filename,
)


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    def test_plain_name_unchanged(self):
        """Test a generated name passes through."""
        assert sanitize_filename("voicenote_1704110400_a1b2c3d4.webm") == "voicenote_1704110400_a1b2c3d4.webm"

    def test_strips_directories(self):
        """Test path components are removed."""
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("..\\..\\boot.ini") == "boot.ini"

    def test_strips_unsafe_characters(self):
        """Test characters outside the safe set are removed."""
        assert sanitize_filename("my note (1).webm") == "mynote1.webm"

    def test_dot_names_become_empty(self):
        """Test dot-only names sanitize to nothing."""
        assert sanitize_filename("..") == ""
        assert sanitize_filename(".htaccess") == "htaccess"


class TestVoicenoteStorage:
    """Tests for VoicenoteStorage."""

    def test_ensure_directory_creates_tree(self, tmp_path):
        """Test the directory is created on demand."""
        storage = VoicenoteStorage(tmp_path / "a" / "b", "https://example.com/v")
        path = storage.ensure_directory()
        assert path.is_dir()

    def test_ensure_directory_failure(self, tmp_path):
        """Test a blocked directory raises StorageError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        storage = VoicenoteStorage(blocker / "voicenotes", "https://example.com/v")
        with pytest.raises(StorageError):
            storage.ensure_directory()

    def test_public_url(self, storage):
        """Test public URLs join base and filename."""
        assert storage.public_url("a.webm") == "https://podcast.example.com/voicenotes/a.webm"

    def test_public_url_strips_trailing_slash(self, tmp_path):
        """Test a trailing slash on the base URL is not doubled."""
        storage = VoicenoteStorage(tmp_path, "https://example.com/v/")
        assert storage.public_url("a.webm") == "https://example.com/v/a.webm"

    def test_save_writes_file(self, storage, voicenotes_dir, webm_bytes):
        """Test saving copies the bytes and describes the file."""
        note = storage.save("voicenote_1_abcdef12.webm", io.BytesIO(webm_bytes))

        assert isinstance(note, StoredVoicenote)
        assert note.filename == "voicenote_1_abcdef12.webm"
        assert note.size == len(webm_bytes)
        assert note.url.endswith("/voicenote_1_abcdef12.webm")
        assert (voicenotes_dir / note.filename).read_bytes() == webm_bytes

    def test_save_overwrites_existing(self, storage, make_voicenote):
        """Test a name collision overwrites instead of failing."""
        make_voicenote("dup.webm", b"old")
        note = storage.save("dup.webm", io.BytesIO(b"new content"))
        assert note.size == len(b"new content")

    def test_save_write_failure_cleans_up(self, storage, voicenotes_dir):
        """Test a failed write raises StorageError and leaves no partial file."""
        with patch("shared.python.storage.voicenotes.shutil.copyfileobj", side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                storage.save("broken.webm", io.BytesIO(b"data"))

        assert not (voicenotes_dir / "broken.webm").exists()

    def test_list_newest_first(self, storage, make_voicenote):
        """Test listing is sorted by modification time descending."""
        now = time.time()
        make_voicenote("old.webm", mtime=now - 3600)
        make_voicenote("newest.webm", mtime=now)
        make_voicenote("middle.webm", mtime=now - 60)

        names = [note.filename for note in storage.list_voicenotes()]
        assert names == ["newest.webm", "middle.webm", "old.webm"]

    def test_list_filters_extension(self, storage, make_voicenote, voicenotes_dir):
        """Test only .webm files are listed."""
        make_voicenote("keep.webm")
        make_voicenote("notes.txt")
        make_voicenote(".htaccess")
        (voicenotes_dir / "nested.webm").mkdir()

        assert [note.filename for note in storage.list_voicenotes()] == ["keep.webm"]

    def test_list_missing_directory(self, tmp_path):
        """Test a missing directory lists nothing."""
        storage = VoicenoteStorage(tmp_path / "missing", "https://example.com/v")
        assert storage.list_voicenotes() == []

    def test_modified_at_is_utc(self, storage, make_voicenote):
        """Test timestamps come from the file mtime in UTC."""
        make_voicenote("a.webm", mtime=1704110400)
        note = storage.get("a.webm")
        assert note.modified_at.isoformat() == "2024-01-01T12:00:00+00:00"

    def test_resolve_rejects_traversal(self, storage):
        """Test names escaping the directory are rejected."""
        with pytest.raises(InvalidFilename):
            storage.resolve("..")
        with pytest.raises(InvalidFilename):
            storage.resolve("")

    def test_resolve_reduces_path_to_basename(self, storage, voicenotes_dir):
        """Test directory components cannot address other files."""
        path = storage.resolve("../../etc/passwd")
        assert path == (voicenotes_dir / "passwd").resolve()

    def test_resolve_rejects_symlink_outside(self, storage, voicenotes_dir, tmp_path):
        """Test a symlink pointing outside the directory is rejected."""
        outside = tmp_path / "secret.webm"
        outside.write_bytes(b"secret")
        (voicenotes_dir / "link.webm").symlink_to(outside)

        with pytest.raises(InvalidFilename):
            storage.resolve("link.webm")

    def test_delete(self, storage, make_voicenote, voicenotes_dir):
        """Test deleting removes the file."""
        make_voicenote("gone.webm")
        storage.delete("gone.webm")
        assert not (voicenotes_dir / "gone.webm").exists()

    def test_delete_missing(self, storage):
        """Test deleting an unknown file raises VoicenoteNotFound."""
        with pytest.raises(VoicenoteNotFound):
            storage.delete("nothing.webm")

    def test_get_missing(self, storage):
        """Test looking up an unknown file raises VoicenoteNotFound."""
        with pytest.raises(VoicenoteNotFound):
            storage.get("nothing.webm")


class TestStoredVoicenote:
    """Tests for StoredVoicenote display helpers."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [(512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024, "5.0 MB")],
    )
    def test_human_size(self, size, expected):
        """Test sizes are formatted for display."""
        from datetime import datetime, timezone

        note = StoredVoicenote("a.webm", size, datetime.now(timezone.utc), "https://example.com/a.webm")
        assert note.human_size == expected
