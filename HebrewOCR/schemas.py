"""
schemas.py

Pydantic models and enums shared across the Hebrew OCR pipeline.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class StrategyTag(str, Enum):
    PARALLEL = "parallel"
    BATCH = "batch"
    CHUNKED = "chunked"
    PROGRESSIVE = "progressive"


class ColumnMode(str, Enum):
    AUTO = "auto"
    SINGLE = "single"
    FORCE_SINGLE = "force_single"
    FORCE_COLUMNS = "force_columns"


class FileKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"


class JobState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    PROCESSING = "processing"
    AGGREGATING = "aggregating"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


class UnitPhase(str, Enum):
    PENDING = "pending"
    RENDERING_PAGE = "rendering_page"
    DETECTING_COLUMNS = "detecting_columns"
    PREPROCESSING = "preprocessing"
    RECOGNIZING = "recognizing"
    DONE = "done"


class Strategy(BaseModel):
    """Concurrency shape of a job: a slot-bounded or a chunked executor."""

    tag: StrategyTag
    max_concurrency: Optional[int] = Field(None, ge=1)
    chunk_size: Optional[int] = Field(None, ge=1)

    @property
    def is_chunked(self) -> bool:
        return self.chunk_size is not None


class ColumnBounds(BaseModel):
    """Horizontal extent of a column in pixel coordinates."""

    x: int = Field(..., ge=0)
    width: int = Field(..., ge=0)

    @property
    def end(self) -> int:
        return self.x + self.width


class GapInfo(BaseModel):
    start: int
    width: int
    separator: int


class ColumnDetection(BaseModel):
    """Outcome of a vertical-projection gap search."""

    has_columns: bool
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    right_bounds: Optional[ColumnBounds] = None
    left_bounds: Optional[ColumnBounds] = None
    gap: Optional[GapInfo] = None


class ColumnLayout(BaseModel):
    """Layout used for a processed unit: one block, or right and left columns."""

    kind: str = "single"  # single | two_column
    right: Optional[ColumnBounds] = None
    left: Optional[ColumnBounds] = None
    confidence: float = 0.0


class ColumnResult(BaseModel):
    type: str  # single | right | left
    text: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    bounds: Optional[ColumnBounds] = None
    script_type: str = "hebrew"
    script_confidence: float = 1.0


class PageResult(BaseModel):
    """Result for a single processing unit (a PDF page or the whole image)."""

    page_number: int = Field(..., ge=1)
    text: str
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    column_data: List[ColumnResult] = Field(default_factory=list)
    layout: Optional[ColumnLayout] = None
    processing_mode: str = "auto"
    detected_script: str = "hebrew"
    script_confidence: float = 1.0
    has_errors: bool = False
    error: Optional[str] = None


class ProcessingStats(BaseModel):
    total_pages: int = 0
    completed_pages: int = 0
    average_time_per_page: float = 0.0  # seconds
    estimated_time_remaining: float = 0.0  # seconds


class DocumentResult(BaseModel):
    """Final, ordered output of a document job."""

    file_path: str
    file_kind: FileKind
    strategy: Optional[StrategyTag] = None
    pages: List[PageResult] = Field(default_factory=list)
    text: str = ""
    total_pages: int = 0
    overall_confidence: float = 0.0
    state: JobState = JobState.COMPLETE
    elapsed_seconds: float = 0.0
