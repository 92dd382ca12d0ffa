"""
page_processor.py

Per-unit pipeline: render -> detect columns -> preprocess -> recognize.

A ProcessingUnit owns its raster surface for the duration of its
processing window; the surface is dropped and its memory estimate
released as soon as recognition finishes. Render and recognition
failures are caught here and turned into an inline error placeholder
so the rest of the document keeps going. Cancellation is never
converted into a placeholder.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from . import config
from .column_detector import detect_columns, extract_column_image, forced_split
from .context import ProcessingCancelled, ProcessingContext
from .engine import Recognizer, recognize_image
from .memory import estimate_memory_usage
from .preprocessor import preprocess_for_hebrew_ocr
from .renderer import DocumentHandle, Rasterizer, optimal_scale, render_page, scaled_size
from .schemas import (
    ColumnDetection,
    ColumnLayout,
    ColumnMode,
    ColumnResult,
    PageResult,
    UnitPhase,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass
class ProcessingUnit:
    """One page of a PDF, or the whole of a single image."""

    index: int
    surface: Optional[np.ndarray] = None
    layout: Optional[ColumnLayout] = None
    text: str = ""
    confidence: float = 0.0
    phase: UnitPhase = UnitPhase.PENDING

    def enter(self, phase: UnitPhase) -> None:
        self.phase = phase
        logger.debug("Unit %d: %s", self.index, phase.value)

    def release_surface(self) -> None:
        self.surface = None


@dataclass
class SurfaceOutcome:
    text: str
    confidence: float
    processing_mode: str
    layout: ColumnLayout
    column_data: List[ColumnResult] = field(default_factory=list)


async def process_with_column_detection(
    surface: np.ndarray,
    recognizer: Recognizer,
    column_mode=ColumnMode.AUTO,
    sensitivity: Optional[str] = None,
    unit: Optional[ProcessingUnit] = None,
    progress_range: Optional[Tuple[float, float]] = None,
    on_progress: Optional[ProgressCallback] = None,
    context: Optional[ProcessingContext] = None,
) -> SurfaceOutcome:
    """
    Recognize a surface as one block or as right and left columns.

    In auto mode the page is split only when a gap is found with
    confidence >= MIN_COLUMN_CONFIDENCE. force_columns always splits,
    on the detected gap or down the middle. single/force_single skip
    detection.
    """
    mode = ColumnMode(column_mode)
    unit = unit or ProcessingUnit(index=1)
    if sensitivity is None:
        sensitivity = config.PAGE_SENSITIVITY

    if mode in (ColumnMode.SINGLE, ColumnMode.FORCE_SINGLE):
        return await _recognize_single(surface, recognizer, mode, unit, progress_range, on_progress, context)

    unit.enter(UnitPhase.DETECTING_COLUMNS)
    detection = detect_columns(surface, sensitivity)

    if mode == ColumnMode.AUTO and (
        not detection.has_columns or detection.confidence < config.MIN_COLUMN_CONFIDENCE
    ):
        logger.debug("Unit %d: auto mode falling back to single column", unit.index)
        return await _recognize_single(surface, recognizer, mode, unit, progress_range, on_progress, context)

    if not detection.has_columns:
        logger.debug("Unit %d: using forced 50/50 column split", unit.index)
        detection = forced_split(surface.shape[1])

    return await _recognize_columns(
        surface, detection, recognizer, mode, unit, progress_range, on_progress, context
    )


async def _recognize_single(surface, recognizer, mode, unit, progress_range, on_progress, context) -> SurfaceOutcome:
    unit.enter(UnitPhase.PREPROCESSING)
    image = preprocess_for_hebrew_ocr(surface)

    if context is not None:
        context.check_cancelled()
    unit.enter(UnitPhase.RECOGNIZING)
    recognized = await recognize_image(
        recognizer,
        image,
        page_segmentation=config.PSM_FULL_PAGE,
        progress_range=progress_range,
        on_progress=on_progress,
        label=f"Page {unit.index}",
    )

    layout = ColumnLayout(kind="single")
    return SurfaceOutcome(
        text=recognized.text,
        confidence=recognized.confidence,
        processing_mode=mode.value,
        layout=layout,
        column_data=[
            ColumnResult(type="single", text=recognized.text, confidence=recognized.confidence)
        ],
    )


async def _recognize_columns(
    surface, detection: ColumnDetection, recognizer, mode, unit, progress_range, on_progress, context
) -> SurfaceOutcome:
    # Hebrew reading order: right column first
    ranges = _split_range(progress_range)
    columns = []
    for column_type, bounds, column_range in (
        ("right", detection.right_bounds, ranges[0]),
        ("left", detection.left_bounds, ranges[1]),
    ):
        unit.enter(UnitPhase.PREPROCESSING)
        column_surface = extract_column_image(surface, bounds)
        image = preprocess_for_hebrew_ocr(column_surface)
        del column_surface

        if context is not None:
            context.check_cancelled()
        unit.enter(UnitPhase.RECOGNIZING)
        recognized = await recognize_image(
            recognizer,
            image,
            page_segmentation=config.PSM_SINGLE_COLUMN,
            progress_range=column_range,
            on_progress=on_progress,
            label=f"Page {unit.index} {column_type} column",
        )
        columns.append(
            ColumnResult(
                type=column_type,
                text=recognized.text,
                confidence=recognized.confidence,
                bounds=bounds,
            )
        )

    right, left = columns
    text = (
        f"--- {config.RIGHT_COLUMN_LABEL} ---\n{right.text}\n\n"
        f"--- {config.LEFT_COLUMN_LABEL} ---\n{left.text}"
    )
    layout = ColumnLayout(
        kind="two_column",
        right=detection.right_bounds,
        left=detection.left_bounds,
        confidence=detection.confidence,
    )
    return SurfaceOutcome(
        text=text,
        confidence=(right.confidence + left.confidence) / 2,
        processing_mode=mode.value,
        layout=layout,
        column_data=columns,
    )


def _split_range(progress_range):
    if progress_range is None:
        return None, None
    start, end = progress_range
    middle = start + (end - start) / 2
    return (start, middle), (middle, end)


def error_result(index: int, error: BaseException, image: bool = False) -> PageResult:
    """Placeholder entry for a unit that failed to render or recognize."""
    message = str(error)
    if image:
        text = config.IMAGE_ERROR_TEMPLATE.format(message=message)
    else:
        text = config.PAGE_ERROR_TEMPLATE.format(page=index, message=message)
    return PageResult(
        page_number=index,
        text=text,
        confidence=0.0,
        processing_mode="error",
        detected_script="unknown",
        script_confidence=0.0,
        has_errors=True,
        error=message,
    )


def _page_result(unit: ProcessingUnit, outcome: SurfaceOutcome) -> PageResult:
    return PageResult(
        page_number=unit.index,
        text=outcome.text,
        confidence=outcome.confidence,
        column_data=outcome.column_data,
        layout=outcome.layout,
        processing_mode=outcome.processing_mode,
    )


class PageProcessor:
    """
    Processes one PDF page per call.

    Instances are used as the unit function of the scheduler; every
    call is independent and owns its own surface.
    """

    def __init__(
        self,
        rasterizer: Rasterizer,
        recognizer: Recognizer,
        context: ProcessingContext,
        document: DocumentHandle,
        column_mode=ColumnMode.AUTO,
        sensitivity: Optional[str] = None,
        complexity: str = "medium",
    ):
        self.rasterizer = rasterizer
        self.recognizer = recognizer
        self.context = context
        self.document = document
        self.column_mode = ColumnMode(column_mode)
        self.sensitivity = sensitivity or config.PAGE_SENSITIVITY
        self.complexity = complexity

    async def __call__(self, index: int) -> PageResult:
        self.context.begin_page(index)
        unit = ProcessingUnit(index=index)
        try:
            result = await self._process(unit)
        except ProcessingCancelled:
            raise
        except Exception as e:
            logger.error("Error processing page %d: %s", index, e)
            result = error_result(index, e)
        finally:
            unit.release_surface()

        unit.enter(UnitPhase.DONE)
        self.context.complete_page(index)
        return result

    async def _process(self, unit: ProcessingUnit) -> PageResult:
        self.context.check_cancelled()
        unit.enter(UnitPhase.RENDERING_PAGE)
        page = await asyncio.to_thread(self.rasterizer.get_page, self.document, unit.index)

        scale = optimal_scale(page.viewport, self.complexity)
        width, height = scaled_size(page.viewport, scale)
        memory_mb = estimate_memory_usage(width, height)
        self.context.track_allocation(memory_mb)
        try:
            self.context.check_cancelled()
            unit.surface = await asyncio.to_thread(render_page, self.rasterizer, page, scale)
            rendered_mb = estimate_memory_usage(unit.surface.shape[1], unit.surface.shape[0])
            # Rasterizers may round or ignore the requested size
            if rendered_mb > memory_mb:
                self.context.track_allocation(rendered_mb - memory_mb)
            elif rendered_mb < memory_mb:
                self.context.track_release(memory_mb - rendered_mb)
            memory_mb = rendered_mb
            outcome = await process_with_column_detection(
                unit.surface,
                self.recognizer,
                self.column_mode,
                self.sensitivity,
                unit=unit,
                context=self.context,
            )
        finally:
            unit.release_surface()
            self.rasterizer.cleanup(page)
            self.context.track_release(memory_mb)

        unit.text = outcome.text
        unit.confidence = outcome.confidence
        unit.layout = outcome.layout
        return _page_result(unit, outcome)


async def process_image_unit(
    surface: np.ndarray,
    recognizer: Recognizer,
    context: ProcessingContext,
    column_mode=ColumnMode.AUTO,
    sensitivity: Optional[str] = None,
) -> PageResult:
    """Process a single decoded image as unit 1."""
    unit = ProcessingUnit(index=1, surface=surface)
    context.begin_page(1)
    memory_mb = estimate_memory_usage(surface.shape[1], surface.shape[0])
    context.track_allocation(memory_mb)
    try:
        context.report_progress(config.PROGRESS_IMAGE_START)
        outcome = await process_with_column_detection(
            surface,
            recognizer,
            column_mode,
            sensitivity,
            unit=unit,
            progress_range=(config.PROGRESS_IMAGE_START, config.PROGRESS_IMAGE_END),
            on_progress=context.report_progress,
            context=context,
        )
        result = _page_result(unit, outcome)
    except ProcessingCancelled:
        raise
    except Exception as e:
        logger.error("Error processing image: %s", e)
        result = error_result(1, e, image=True)
    finally:
        unit.release_surface()
        context.track_release(memory_mb)

    unit.enter(UnitPhase.DONE)
    context.complete_page(1)
    return result
