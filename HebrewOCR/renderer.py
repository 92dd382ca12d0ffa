"""
renderer.py

Rasterizer interface and the pdf2image-backed implementation.

Pages are rendered one at a time at an adaptive scale so that large
pages stay within the memory budget while small pages are upscaled
for recognition accuracy. Surfaces are RGBA numpy arrays (H, W, 4).
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image

from . import config
from .utils import OCRFileError

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """Raised when a single page cannot be rendered."""

    def __init__(self, page_index: int, cause: BaseException):
        self.page_index = page_index
        self.cause = cause
        super().__init__(f"Failed to render page {page_index}: {cause}")


@dataclass
class Viewport:
    """Page size in points at scale 1.0."""

    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass
class DocumentHandle:
    path: Path
    page_count: int
    page_size: Optional[Viewport] = None


@dataclass
class PageHandle:
    document: DocumentHandle
    index: int
    viewport: Viewport


class Rasterizer(ABC):
    """Contract for the external PDF rasterization engine."""

    @abstractmethod
    def open_document(self, path: Union[str, Path]) -> DocumentHandle:
        """Open a document and report its page count."""

    @abstractmethod
    def get_page(self, document: DocumentHandle, index: int) -> PageHandle:
        """Return a handle for the 1-based page index."""

    @abstractmethod
    def render(self, page: PageHandle, scale: float) -> np.ndarray:
        """Render a page into an RGBA surface at the given scale."""

    def cleanup(self, page: PageHandle) -> None:
        """Release engine resources held for a page."""

    def close_document(self, document: DocumentHandle) -> None:
        """Release engine resources held for a document."""


_PAGE_SIZE_RE = re.compile(r"([\d.]+)\s*x\s*([\d.]+)")
_PAGE_KEY_RE = re.compile(r"Page\s+(\d+)\s+size")


class PdfRasterizer(Rasterizer):
    """
    Rasterizer backed by pdf2image (poppler).

    Page counts and per-page sizes come from pdfinfo; each render call
    converts a single page at dpi = 72 * scale.
    """

    def __init__(self, poppler_path: Optional[str] = None):
        self.poppler_path = poppler_path

    def open_document(self, path: Union[str, Path]) -> DocumentHandle:
        try:
            from pdf2image import pdfinfo_from_path
        except ImportError:
            raise OCRFileError(
                "pdf2image is required for PDF support. "
                "Install it with: pip install pdf2image"
            )

        path = Path(path)
        try:
            info = pdfinfo_from_path(str(path), poppler_path=self.poppler_path)
        except Exception as e:
            raise OCRFileError(f"Failed to open PDF {path.name}: {e}") from e

        page_count = int(info.get("Pages", 0))
        if page_count < 1:
            raise OCRFileError(f"PDF has no pages: {path.name}")

        page_size = _parse_page_size(info.get("Page size", ""))
        logger.info("Opened PDF %s: %d page(s)", path.name, page_count)
        return DocumentHandle(path=path, page_count=page_count, page_size=page_size)

    def get_page(self, document: DocumentHandle, index: int) -> PageHandle:
        if not 1 <= index <= document.page_count:
            raise IndexError(
                f"Page {index} out of range (1-{document.page_count})"
            )
        viewport = self._page_viewport(document, index)
        return PageHandle(document=document, index=index, viewport=viewport)

    def _page_viewport(self, document: DocumentHandle, index: int) -> Viewport:
        """Size of a single page as reported by pdfinfo."""
        from pdf2image import pdfinfo_from_path

        try:
            info = pdfinfo_from_path(
                str(document.path),
                poppler_path=self.poppler_path,
                first_page=index,
                last_page=index,
            )
        except Exception as e:
            raise RenderError(index, e) from e

        viewport = _page_size_for(info, index)
        if viewport is None:
            logger.warning("No size reported for page %d, using document size", index)
            viewport = document.page_size or Viewport(612.0, 792.0)
        return viewport

    def render(self, page: PageHandle, scale: float) -> np.ndarray:
        from pdf2image import convert_from_path

        dpi = int(round(config.PDF_POINTS_PER_INCH * scale))
        images = convert_from_path(
            str(page.document.path),
            dpi=dpi,
            first_page=page.index,
            last_page=page.index,
            poppler_path=self.poppler_path,
        )
        if not images:
            raise OCRFileError(f"Page {page.index} produced no image")

        surface = np.array(images[0].convert("RGBA"))
        logger.debug(
            "Rendered page %d at %d dpi: %dx%d",
            page.index,
            dpi,
            surface.shape[1],
            surface.shape[0],
        )
        return surface


def _parse_page_size(raw: str) -> Optional[Viewport]:
    """Parse pdfinfo's 'Page size' field, e.g. '595.276 x 841.89 pts (A4)'."""
    match = _PAGE_SIZE_RE.search(raw or "")
    if not match:
        return None
    return Viewport(float(match.group(1)), float(match.group(2)))


def _page_size_for(info: dict, index: int) -> Optional[Viewport]:
    """
    Find a page's size in pdfinfo output.

    With a page range pdfinfo reports 'Page    N size' per page instead
    of a single 'Page size' for the first page.
    """
    for key, value in info.items():
        match = _PAGE_KEY_RE.fullmatch(key.strip())
        if match and int(match.group(1)) == index:
            return _parse_page_size(value)
    return _parse_page_size(info.get("Page size", ""))


def optimal_scale(viewport: Viewport, complexity: str = "medium") -> float:
    """
    Choose a render scale from page area and content complexity.

    Large pages are downscaled to bound memory and OCR latency; small
    pages are upscaled for accuracy. The result never exceeds
    MAX_RENDER_SCALE.
    """
    area = viewport.area
    if area > config.LARGE_PAGE_AREA:
        base_scale = config.LARGE_PAGE_SCALE
    elif area > config.MEDIUM_PAGE_AREA:
        base_scale = config.MEDIUM_PAGE_SCALE
    else:
        base_scale = config.SMALL_PAGE_SCALE

    factor = config.COMPLEXITY_FACTORS.get(complexity, 1.0)
    return min(base_scale * factor, config.MAX_RENDER_SCALE)


def scaled_size(viewport: Viewport, scale: float) -> tuple:
    """Pixel (width, height) of a viewport rendered at scale."""
    return int(round(viewport.width * scale)), int(round(viewport.height * scale))


def render_page(rasterizer: Rasterizer, page: PageHandle, scale: float) -> np.ndarray:
    """
    Render a page, wrapping any engine failure in RenderError.

    Raises:
        RenderError: If the rasterizer fails for this page.
    """
    try:
        return rasterizer.render(page, scale)
    except RenderError:
        raise
    except Exception as e:
        raise RenderError(page.index, e) from e


def load_image_surface(path: Union[str, Path]) -> np.ndarray:
    """
    Decode a single image file into an RGBA surface.

    Raises:
        OCRFileError: If the image cannot be decoded.
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            surface = np.array(img.convert("RGBA"))
    except Exception as e:
        raise OCRFileError(f"Failed to load image from {path.name}: {e}") from e

    logger.info("Loaded image: %dx%d", surface.shape[1], surface.shape[0])
    return surface
