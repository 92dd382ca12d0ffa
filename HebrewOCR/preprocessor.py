"""
preprocessor.py

Image preprocessing for Hebrew OCR.

Raw scans carry enough midtone noise to degrade recognition of
Hebrew glyphs and especially niqqud, so every surface is binarized
and contrast-stretched before it is handed to the engine. Each step
is a separate function; preprocess_for_hebrew_ocr chains them and
returns the encoded image bytes.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from . import config
from .column_detector import luminance

logger = logging.getLogger(__name__)


class EncodingError(Exception):
    """Raised when OpenCV fails to encode a preprocessed surface."""

    pass


def preprocess_surface(
    surface: np.ndarray,
    threshold: Optional[int] = None,
    contrast: Optional[float] = None,
    brightness: Optional[float] = None,
) -> np.ndarray:
    """
    Binarize and contrast-enhance a surface, keeping its channel layout.

    Args:
        surface: RGB(A) image array.
        threshold: Override config LUMINANCE_THRESHOLD.
        contrast: Override config CONTRAST.
        brightness: Override config BRIGHTNESS.

    Returns:
        New array of the same shape; R, G and B carry the enhanced
        grayscale value and alpha is copied unchanged.
    """
    if threshold is None:
        threshold = config.LUMINANCE_THRESHOLD
    if contrast is None:
        contrast = config.CONTRAST
    if brightness is None:
        brightness = config.BRIGHTNESS

    gray = to_grayscale(surface)
    binary = binarize(gray, threshold=threshold)
    enhanced = enhance_contrast(binary, contrast=contrast, brightness=brightness)

    result = surface.copy()
    if result.ndim == 2:
        return enhanced
    result[:, :, 0] = enhanced
    result[:, :, 1] = enhanced
    result[:, :, 2] = enhanced
    return result


def to_grayscale(surface: np.ndarray) -> np.ndarray:
    """Luminance of an RGB(A) surface as float32."""
    return luminance(surface)


def binarize(gray: np.ndarray, threshold: int = 128) -> np.ndarray:
    """Map pixels below threshold to 0 and the rest to 255."""
    return np.where(gray < threshold, 0, 255).astype(np.uint8)


def enhance_contrast(image: np.ndarray, contrast: float = 1.3, brightness: float = 10) -> np.ndarray:
    """Linear stretch clamped to [0, 255]."""
    return cv2.convertScaleAbs(image, alpha=contrast, beta=brightness)


def encode_image(
    image: np.ndarray,
    fmt: Optional[str] = None,
    quality: Optional[int] = None,
) -> bytes:
    """
    Compress an image for transport to the OCR engine.

    Raises:
        EncodingError: If OpenCV rejects the image.
    """
    if fmt is None:
        fmt = config.ENCODE_FORMAT
    if quality is None:
        quality = config.ENCODE_QUALITY

    params = []
    if fmt == ".webp":
        params = [cv2.IMWRITE_WEBP_QUALITY, int(quality)]
    elif fmt in (".jpg", ".jpeg"):
        params = [cv2.IMWRITE_JPEG_QUALITY, int(quality)]

    ok, buffer = cv2.imencode(fmt, image, params)
    if not ok:
        raise EncodingError(f"Failed to encode image as {fmt}")
    return buffer.tobytes()


def preprocess_for_hebrew_ocr(surface: np.ndarray) -> bytes:
    """Run the full preprocessing chain and return encoded image bytes."""
    processed = preprocess_surface(surface)
    encoded = encode_image(processed)
    logger.debug(
        "Preprocessed %dx%d surface into %d bytes",
        surface.shape[1],
        surface.shape[0],
        len(encoded),
    )
    return encoded
