"""
Tests for file validation and helpers.
"""

import os

import pytest

from HebrewOCR import config
from HebrewOCR.schemas import FileKind
from HebrewOCR.utils import (
    OCRFileError,
    OCRSecurityError,
    detect_file_kind,
    format_time,
    output_path_for,
    sanitize_path,
    validate_file,
)


class TestSanitizePath:
    def test_resolves_existing_file(self, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"x")
        assert sanitize_path(str(path)) == path.resolve()

    def test_rejects_traversal(self, tmp_path):
        with pytest.raises(OCRSecurityError):
            sanitize_path(tmp_path / ".." / "a.pdf")

    def test_rejects_symlink(self, tmp_path):
        target = tmp_path / "a.pdf"
        target.write_bytes(b"x")
        link = tmp_path / "link.pdf"
        os.symlink(target, link)
        with pytest.raises(OCRSecurityError):
            sanitize_path(link)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OCRFileError, match="not found"):
            sanitize_path(tmp_path / "missing.pdf")

    def test_directory_rejected(self, tmp_path):
        with pytest.raises(OCRFileError, match="Not a regular file"):
            sanitize_path(tmp_path)


class TestDetectFileKind:
    @pytest.mark.parametrize("name", ["a.pdf", "A.PDF"])
    def test_pdf(self, tmp_path, name):
        assert detect_file_kind(tmp_path / name) == FileKind.PDF

    @pytest.mark.parametrize("name", ["a.png", "a.jpg", "a.JPEG", "a.webp", "a.tiff"])
    def test_images(self, tmp_path, name):
        assert detect_file_kind(tmp_path / name) == FileKind.IMAGE

    def test_unsupported(self, tmp_path):
        with pytest.raises(OCRFileError, match="Unsupported"):
            detect_file_kind(tmp_path / "a.docx")


class TestValidateFile:
    def test_empty_file(self, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"")
        with pytest.raises(OCRFileError, match="empty"):
            validate_file(path)

    def test_too_large(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "MAX_FILE_SIZE_MB", 0.000001)
        path = tmp_path / "a.pdf"
        path.write_bytes(b"x" * 100)
        with pytest.raises(OCRFileError, match="too large"):
            validate_file(path)

    def test_returns_kind(self, tmp_path):
        path = tmp_path / "a.png"
        path.write_bytes(b"x")
        assert validate_file(path) == FileKind.IMAGE


class TestOutputPathFor:
    def test_next_to_input(self, tmp_path):
        assert output_path_for(tmp_path / "sefer.pdf") == tmp_path / "sefer_extracted_text.txt"

    def test_in_directory(self, tmp_path):
        out = tmp_path / "out"
        assert output_path_for("docs/scan.png", out) == out / "scan_extracted_text.txt"


class TestFormatTime:
    def test_seconds(self):
        assert format_time(42.4) == "42s"

    def test_minutes(self):
        assert format_time(185) == "3m 5s"
