"""
HebrewOCR

Extracts Hebrew text from scanned PDFs and images using Tesseract,
with adaptive scheduling for large documents, memory accounting,
two-column (sefer) layout detection and Hebrew text validation.

Public API:
    process_file       - Process a document (async)
    process_document   - Process a document (sync wrapper)
    process_batch      - Process multiple documents
    select_strategy    - Pick a scheduling strategy from a page count
    detect_columns     - Find a two-column gutter in a raster surface
    validate_hebrew_text - Filter OCR output down to Hebrew content
    finalize_results   - Assemble ordered final text
    DocumentResult     - Structured result model
    PageResult         - Per-page result model
"""

from .aggregator import ResultMap, finalize_results
from .column_detector import detect_columns
from .context import (
    CancellationToken,
    ProcessingCancelled,
    ProcessingContext,
    ProcessingObserver,
)
from .engine import OCREngineError, RecognitionResult, Recognizer, TesseractRecognizer
from .memory import MemoryTracker, estimate_memory_usage
from .ocr_pipeline import process_batch, process_document, process_file
from .postprocessor import validate_hebrew_text
from .renderer import PdfRasterizer, Rasterizer, RenderError, optimal_scale
from .schemas import (
    ColumnMode,
    DocumentResult,
    FileKind,
    JobState,
    PageResult,
    ProcessingStats,
    Strategy,
    StrategyTag,
)
from .strategy import build_strategy, select_strategy
from .utils import OCRFileError, OCRSecurityError

__all__ = [
    "process_file",
    "process_document",
    "process_batch",
    "select_strategy",
    "build_strategy",
    "detect_columns",
    "validate_hebrew_text",
    "finalize_results",
    "estimate_memory_usage",
    "optimal_scale",
    "ResultMap",
    "MemoryTracker",
    "ProcessingContext",
    "ProcessingObserver",
    "CancellationToken",
    "ProcessingCancelled",
    "Rasterizer",
    "PdfRasterizer",
    "RenderError",
    "Recognizer",
    "RecognitionResult",
    "TesseractRecognizer",
    "OCREngineError",
    "OCRFileError",
    "OCRSecurityError",
    "ColumnMode",
    "DocumentResult",
    "FileKind",
    "JobState",
    "PageResult",
    "ProcessingStats",
    "Strategy",
    "StrategyTag",
]
