"""
engine.py

Recognizer interface, Tesseract implementation and the recognition
invoker used by the page processor.

The engine is a black box with a recognize(image, language) call that
returns text and a 0-100 confidence. recognize_image runs it off the
event loop, forwards engine progress into the caller's progress
range, normalizes confidence to 0-1 and filters the text down to
Hebrew content.
"""

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import pytesseract
from PIL import Image

from . import config
from .postprocessor import validate_hebrew_text

logger = logging.getLogger(__name__)

ProgressLogger = Callable[[Dict], None]


class OCREngineError(Exception):
    """Raised when the OCR engine cannot be loaded."""

    pass


@dataclass
class RecognitionResult:
    """Raw engine output; confidence is on the engine's 0-100 scale."""

    text: str
    confidence: float


@dataclass
class RecognizedText:
    """Validated output; confidence normalized to 0-1."""

    text: str
    confidence: float
    raw_text: str = ""


class Recognizer(ABC):
    """Contract for the external OCR engine."""

    def load(self) -> None:
        """Make sure the engine can run. Raise OCREngineError if not."""

    @abstractmethod
    def recognize(
        self,
        image: bytes,
        language: str,
        progress_logger: Optional[ProgressLogger] = None,
        page_segmentation: Optional[int] = None,
    ) -> RecognitionResult:
        """Recognize text in an encoded image."""


class TesseractRecognizer(Recognizer):
    """
    Tesseract (pytesseract) wrapper.

    Availability of the binary and the Hebrew traineddata is checked
    lazily on first use and cached. Tesseract reports no incremental
    progress, so the logger receives a start and an end event.
    """

    def __init__(self, tesseract_cmd: Optional[str] = None, language: Optional[str] = None):
        self.tesseract_cmd = tesseract_cmd or config.TESSERACT_CMD
        self.language = language or config.OCR_LANGUAGE
        self._loaded = False

    def load(self) -> None:
        if self._loaded:
            return

        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        try:
            version = pytesseract.get_tesseract_version()
            languages = pytesseract.get_languages(config="")
        except Exception as e:
            raise OCREngineError(
                f"Tesseract is not available: {e}. "
                "Install tesseract-ocr or set TESSERACT_CMD."
            ) from e

        if self.language not in languages:
            raise OCREngineError(
                f"Tesseract language '{self.language}' is not installed "
                f"(available: {', '.join(sorted(languages))})"
            )

        self._loaded = True
        logger.info("Tesseract %s loaded (lang=%s)", version, self.language)

    def recognize(
        self,
        image: bytes,
        language: str,
        progress_logger: Optional[ProgressLogger] = None,
        page_segmentation: Optional[int] = None,
    ) -> RecognitionResult:
        self.load()
        _emit(progress_logger, 0.0)

        with Image.open(io.BytesIO(image)) as img:
            rgb = img.convert("RGB")

        tess_config = f"--psm {page_segmentation}" if page_segmentation else ""
        data = pytesseract.image_to_data(
            rgb,
            lang=language,
            config=tess_config,
            output_type=pytesseract.Output.DICT,
        )

        _emit(progress_logger, 1.0)
        return RecognitionResult(
            text=_rebuild_text(data),
            confidence=_mean_confidence(data),
        )

    def reset(self) -> None:
        self._loaded = False


def _emit(progress_logger: Optional[ProgressLogger], fraction: float) -> None:
    if progress_logger is not None:
        progress_logger({"status": "recognizing text", "progress": fraction})


def _rebuild_text(data: Dict[str, List]) -> str:
    """Join image_to_data words into lines keyed by (block, paragraph, line)."""
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word)
    return "\n".join(" ".join(words) for _, words in sorted(lines.items()))


def _mean_confidence(data: Dict[str, List]) -> float:
    """Average word confidence, ignoring Tesseract's -1 for non-words."""
    scores = []
    for i, raw in enumerate(data.get("conf", [])):
        try:
            score = float(raw)
        except (TypeError, ValueError):
            continue
        if score >= 0 and (data["text"][i] or "").strip():
            scores.append(score)
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def normalize_confidence(confidence: float) -> float:
    """Map engine confidence (0-100) to 0-1."""
    return max(0.0, min(1.0, float(confidence) / 100.0))


async def recognize_image(
    recognizer: Recognizer,
    image: bytes,
    language: Optional[str] = None,
    page_segmentation: Optional[int] = None,
    progress_range: Optional[Tuple[float, float]] = None,
    on_progress: Optional[Callable[[float], None]] = None,
    label: str = "page",
) -> RecognizedText:
    """
    Run the engine in a worker thread and validate its output.

    Engine progress fractions are mapped into progress_range (percent)
    and delivered to on_progress on the event loop thread. Engine
    exceptions propagate to the caller.
    """
    if language is None:
        language = config.OCR_LANGUAGE
    loop = asyncio.get_running_loop()

    def engine_logger(event: Dict) -> None:
        if event.get("status") != "recognizing text":
            return
        fraction = float(event.get("progress") or 0.0)
        logger.debug("%s OCR progress: %.1f%%", label, fraction * 100)
        if progress_range is not None and on_progress is not None:
            start, end = progress_range
            loop.call_soon_threadsafe(on_progress, start + (end - start) * fraction)

    raw = await asyncio.to_thread(
        recognizer.recognize, image, language, engine_logger, page_segmentation
    )

    return RecognizedText(
        text=validate_hebrew_text(raw.text),
        confidence=normalize_confidence(raw.confidence),
        raw_text=raw.text,
    )


# Module-level singleton engine
_engine: Optional[TesseractRecognizer] = None


def get_engine() -> TesseractRecognizer:
    """Get or create the singleton Tesseract recognizer."""
    global _engine
    if _engine is None:
        _engine = TesseractRecognizer()
    return _engine


def reset_engine() -> None:
    """Reset the singleton engine (useful for testing)."""
    global _engine
    if _engine is not None:
        _engine.reset()
    _engine = None
