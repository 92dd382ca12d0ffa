"""
utils.py

File validation, security checks and small formatting helpers.

Handles:
- File path sanitization against path traversal
- File type detection (PDF vs. single image)
- File size enforcement
- Output file naming and duration formatting
"""

import logging
from pathlib import Path
from typing import Union

from . import config
from .schemas import FileKind

logger = logging.getLogger(__name__)


class OCRFileError(Exception):
    """Raised when file validation fails or a document cannot be opened."""

    pass


class OCRSecurityError(Exception):
    """Raised when a security check fails (e.g., path traversal)."""

    pass


def sanitize_path(file_path: Union[str, Path]) -> Path:
    """
    Validate and sanitize a file path.

    Args:
        file_path: Raw file path string or Path object.

    Returns:
        Resolved, sanitized Path object.

    Raises:
        OCRSecurityError: If path traversal or a symlink is detected.
        OCRFileError: If file does not exist or is not a regular file.
    """
    raw = str(file_path)
    if ".." in Path(raw).parts:
        raise OCRSecurityError(f"Path traversal detected in: {raw}")

    if Path(raw).is_symlink():
        raise OCRSecurityError(f"Symlinks are not allowed: {raw}")

    path = Path(raw).resolve()

    if not path.exists():
        raise OCRFileError(f"File not found: {path}")

    if not path.is_file():
        raise OCRFileError(f"Not a regular file: {path}")

    return path


def detect_file_kind(file_path: Path) -> FileKind:
    """
    Classify a file as PDF or image by extension.

    Raises:
        OCRFileError: If the extension is neither.
    """
    ext = file_path.suffix.lower()
    if ext in config.PDF_EXTENSIONS:
        return FileKind.PDF
    if ext in config.ALLOWED_IMAGE_EXTENSIONS:
        return FileKind.IMAGE
    raise OCRFileError(
        f"Unsupported file extension '{ext}'. "
        f"Allowed: {config.ALLOWED_EXTENSIONS}"
    )


def file_size_mb(file_path: Path) -> float:
    return file_path.stat().st_size / (1024 * 1024)


def validate_file(file_path: Path) -> FileKind:
    """
    Validate file type, size, and non-emptiness.

    Args:
        file_path: Sanitized Path object.

    Returns:
        The detected FileKind.

    Raises:
        OCRFileError: If validation fails.
    """
    kind = detect_file_kind(file_path)

    if file_path.stat().st_size == 0:
        raise OCRFileError(f"File is empty: {file_path}")

    size_mb = file_size_mb(file_path)
    if size_mb > config.MAX_FILE_SIZE_MB:
        raise OCRFileError(
            f"File too large: {size_mb:.1f}MB exceeds "
            f"limit of {config.MAX_FILE_SIZE_MB}MB"
        )

    return kind


def output_path_for(file_path: Union[str, Path], directory: Union[str, Path, None] = None) -> Path:
    """Build '<stem>_extracted_text.txt' next to the input or in directory."""
    path = Path(file_path)
    target_dir = Path(directory) if directory is not None else path.parent
    return target_dir / f"{path.stem}{config.OUTPUT_SUFFIX}"


def format_time(seconds: float) -> str:
    """Format a duration as '42s' or '3m 5s'."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    minutes = int(seconds // 60)
    remaining = seconds % 60
    return f"{minutes}m {remaining:.0f}s"
