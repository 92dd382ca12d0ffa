"""
column_detector.py

Two-column ("sefer") layout detection from pixel density.

A vertical projection counts dark pixels in every pixel column; a
text-free run near the middle of the page is taken as the gutter
between the right and left columns. The scan is pure numpy and has
no external dependencies, so it runs offline on any RGB(A) buffer.
"""

import logging
from typing import Optional

import numpy as np

from . import config
from .schemas import ColumnBounds, ColumnDetection, GapInfo

logger = logging.getLogger(__name__)


def luminance(surface: np.ndarray) -> np.ndarray:
    """Return 0.299R + 0.587G + 0.114B as a float array (H, W)."""
    if surface.ndim == 2:
        return surface.astype(np.float32)
    rgb = surface[:, :, :3].astype(np.float32)
    return rgb[:, :, 0] * 0.299 + rgb[:, :, 1] * 0.587 + rgb[:, :, 2] * 0.114


def vertical_projection(surface: np.ndarray, threshold: Optional[int] = None) -> np.ndarray:
    """Count pixels darker than threshold in every pixel column."""
    if threshold is None:
        threshold = config.LUMINANCE_THRESHOLD
    return (luminance(surface) < threshold).sum(axis=0)


def detect_columns(surface: np.ndarray, sensitivity: Optional[str] = None) -> ColumnDetection:
    """
    Look for a vertical text-free gap splitting the page into two columns.

    Args:
        surface: RGB(A) or grayscale image array.
        sensitivity: 'high', 'medium' or 'low'. Unknown values use 'medium'.

    Returns:
        ColumnDetection. Right bounds cover the pixels right of the
        separator (read first), left bounds the pixels left of it.
    """
    if sensitivity is None:
        sensitivity = config.DEFAULT_SENSITIVITY
    preset = config.COLUMN_SENSITIVITY_PRESETS.get(
        sensitivity, config.COLUMN_SENSITIVITY_PRESETS[config.DEFAULT_SENSITIVITY]
    )
    band_start, band_end, gap_fraction, noise_fraction = preset

    height, width = surface.shape[:2]
    projection = vertical_projection(surface)

    search_start = int(width * band_start)
    search_end = int(width * band_end)
    min_gap_width = max(1, int(width * gap_fraction))
    max_dark_pixels = height * noise_fraction

    logger.debug(
        "Column detection (%s): search %d-%d, min gap %dpx, max dark %.1f",
        sensitivity,
        search_start,
        search_end,
        min_gap_width,
        max_dark_pixels,
    )

    best_start, best_width = _widest_gap(
        projection, search_start, search_end, min_gap_width, max_dark_pixels
    )

    if best_start < 0:
        logger.debug("No suitable column gap found")
        return ColumnDetection(has_columns=False, confidence=0.0)

    separator = best_start + best_width // 2
    saturation = config.CONFIDENCE_SATURATION
    confidence = min(best_width / min_gap_width, saturation) / saturation

    logger.debug(
        "Column gap at %d-%d (separator %dpx, confidence %.2f)",
        best_start,
        best_start + best_width,
        separator,
        confidence,
    )

    return ColumnDetection(
        has_columns=True,
        confidence=confidence,
        right_bounds=ColumnBounds(x=separator, width=width - separator),
        left_bounds=ColumnBounds(x=0, width=separator),
        gap=GapInfo(start=best_start, width=best_width, separator=separator),
    )


def _widest_gap(
    projection: np.ndarray,
    start: int,
    end: int,
    min_width: int,
    max_dark: float,
) -> tuple:
    """Return (start, width) of the widest qualifying run, or (-1, 0)."""
    best_start, best_width = -1, 0
    run_start, run_width = -1, 0

    for x in range(start, end):
        if projection[x] < max_dark:
            if run_start == -1:
                run_start, run_width = x, 1
            else:
                run_width += 1
            continue

        if run_start != -1 and run_width > best_width and run_width >= min_width:
            best_start, best_width = run_start, run_width
        run_start, run_width = -1, 0

    # Run reaching the end of the search band
    if run_start != -1 and run_width > best_width and run_width >= min_width:
        best_start, best_width = run_start, run_width

    return best_start, best_width


def forced_split(width: int) -> ColumnDetection:
    """Exact 50/50 split used when two columns are forced but none was found."""
    half = width // 2
    return ColumnDetection(
        has_columns=True,
        confidence=config.FORCED_SPLIT_CONFIDENCE,
        right_bounds=ColumnBounds(x=half, width=width - half),
        left_bounds=ColumnBounds(x=0, width=half),
        gap=None,
    )


def extract_column_image(
    surface: np.ndarray,
    bounds: ColumnBounds,
    padding: Optional[int] = None,
) -> np.ndarray:
    """Copy a column out of a surface, padded and clamped to the image."""
    if padding is None:
        padding = config.COLUMN_PADDING
    width = surface.shape[1]
    start_x = max(0, bounds.x - padding)
    end_x = min(width, bounds.end + padding)
    return surface[:, start_x:end_x].copy()
