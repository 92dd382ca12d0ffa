"""
ocr_pipeline.py

Main orchestrator for the Hebrew OCR module.

Coordinates a document job: validation -> engine setup -> strategy
selection -> scheduled page processing -> aggregation. Per-page
failures are absorbed as inline placeholders; only setup failures
(unreadable file, engine unavailable) end the job in the error state.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Union

from . import config
from .aggregator import compute_document_confidence, finalize_results
from .context import (
    CancellationToken,
    ProcessingCancelled,
    ProcessingContext,
    ProcessingObserver,
)
from .engine import Recognizer, get_engine
from .memory import MemoryTracker
from .page_processor import PageProcessor, process_image_unit
from .renderer import PdfRasterizer, Rasterizer, load_image_surface
from .scheduler import run_strategy
from .schemas import ColumnMode, DocumentResult, FileKind, JobState, StrategyTag
from .strategy import build_strategy, select_strategy
from .utils import file_size_mb, sanitize_path, validate_file

logger = logging.getLogger(__name__)


class ProcessingJob:
    """
    State for one document, created fresh for every call.

    The results map, stats and memory estimate live in the job's
    ProcessingContext and are discarded when the job ends.
    """

    def __init__(
        self,
        path: Path,
        file_kind: FileKind,
        strategy_mode: str = config.STRATEGY_AUTO,
        column_mode=ColumnMode.AUTO,
        rasterizer: Optional[Rasterizer] = None,
        recognizer: Optional[Recognizer] = None,
        observer: Optional[ProcessingObserver] = None,
        cancel_token: Optional[CancellationToken] = None,
        memory: Optional[MemoryTracker] = None,
    ):
        self.path = path
        self.file_kind = file_kind
        self.strategy_mode = strategy_mode
        self.column_mode = ColumnMode(column_mode)
        self.rasterizer = rasterizer or PdfRasterizer()
        self.recognizer = recognizer or get_engine()
        self.context = ProcessingContext(
            observer=observer, memory=memory, cancel_token=cancel_token
        )
        self.strategy: Optional[StrategyTag] = None

    @property
    def state(self) -> JobState:
        return self.context.state

    async def run(self) -> DocumentResult:
        started = time.monotonic()
        try:
            self.context.set_state(JobState.INITIALIZING)
            await asyncio.to_thread(self.recognizer.load)
            self.context.check_cancelled()

            self.context.set_state(JobState.PROCESSING)
            if self.file_kind == FileKind.IMAGE:
                await self._process_image()
            else:
                await self._process_pdf()

            self.context.set_state(JobState.AGGREGATING)
            results = self.context.results.freeze()
            text = finalize_results(results, self.file_kind)
            pages = results.values()
            self.context.report_progress(config.PROGRESS_DONE)
            self.context.set_state(JobState.COMPLETE)
        except ProcessingCancelled:
            logger.warning("Processing of %s was cancelled", self.path.name)
            self.context.set_state(JobState.CANCELLED)
            raise
        except Exception as e:
            logger.error("Error processing file %s: %s", self.path.name, e)
            self.context.set_state(JobState.ERROR)
            raise
        finally:
            if self.context.memory.usage_mb > 0:
                await self.context.memory.cleanup()

        elapsed = time.monotonic() - started
        logger.info(
            "Processing of %s completed in %.1fs (%d page(s))",
            self.path.name,
            elapsed,
            len(pages),
        )
        return DocumentResult(
            file_path=str(self.path),
            file_kind=self.file_kind,
            strategy=self.strategy,
            pages=pages,
            text=text,
            total_pages=len(pages),
            overall_confidence=compute_document_confidence(pages),
            state=self.context.state,
            elapsed_seconds=elapsed,
        )

    async def _process_image(self) -> None:
        logger.info("Processing image: %s", self.path.name)
        self.context.start_job(1)
        surface = await asyncio.to_thread(load_image_surface, self.path)
        result = await process_image_unit(
            surface, self.recognizer, self.context, self.column_mode
        )
        del surface
        self.context.store_result(result)
        self.context.store_intermediate()

    async def _process_pdf(self) -> None:
        document = await asyncio.to_thread(self.rasterizer.open_document, self.path)
        try:
            page_count = document.page_count
            size_mb = file_size_mb(self.path)
            self.context.start_job(page_count)
            self.context.report_progress(config.PROGRESS_DOCUMENT_OPENED)

            tag = select_strategy(self.strategy_mode, page_count, size_mb)
            strategy = build_strategy(tag)
            self.strategy = strategy.tag
            logger.info(
                "Using strategy: %s for %d pages (%.1fMB)",
                strategy.tag.value,
                page_count,
                size_mb,
            )

            processor = PageProcessor(
                self.rasterizer,
                self.recognizer,
                self.context,
                document,
                column_mode=self.column_mode,
            )
            await run_strategy(strategy, page_count, processor, self.context)
        finally:
            self.rasterizer.close_document(document)


async def process_file(
    file_path: Union[str, Path],
    strategy_mode: str = config.STRATEGY_AUTO,
    column_mode=ColumnMode.AUTO,
    rasterizer: Optional[Rasterizer] = None,
    recognizer: Optional[Recognizer] = None,
    observer: Optional[ProcessingObserver] = None,
    cancel_token: Optional[CancellationToken] = None,
    memory: Optional[MemoryTracker] = None,
) -> DocumentResult:
    """
    Process a PDF or image through the full OCR pipeline.

    Validation happens before any state is created, so a rejected file
    produces no observer notifications.

    Raises:
        OCRFileError: If the file is rejected or cannot be opened.
        OCRSecurityError: If the path fails sanitization.
        OCREngineError: If the OCR engine cannot be loaded.
        ProcessingCancelled: If cancel_token fires.
    """
    path = sanitize_path(file_path)
    file_kind = validate_file(path)

    job = ProcessingJob(
        path,
        file_kind,
        strategy_mode=strategy_mode,
        column_mode=column_mode,
        rasterizer=rasterizer,
        recognizer=recognizer,
        observer=observer,
        cancel_token=cancel_token,
        memory=memory,
    )
    return await job.run()


def process_document(file_path: Union[str, Path], **kwargs) -> DocumentResult:
    """Synchronous wrapper around process_file."""
    return asyncio.run(process_file(file_path, **kwargs))


def process_batch(
    file_paths: List[Union[str, Path]],
    max_workers: Optional[int] = None,
    **kwargs,
) -> List[DocumentResult]:
    """
    Process multiple documents, each as an independent job.

    Args:
        file_paths: List of file paths to process.
        max_workers: Number of concurrent documents. Defaults to config.BATCH_WORKERS.

    Returns:
        One DocumentResult per input, in input order. Documents that fail
        entirely are reported with state 'error' and an empty text.
    """
    if max_workers is None:
        max_workers = config.BATCH_WORKERS

    results: List[Optional[DocumentResult]] = [None] * len(file_paths)

    def _failed(fp, e) -> DocumentResult:
        kind = FileKind.PDF if Path(fp).suffix.lower() in config.PDF_EXTENSIONS else FileKind.IMAGE
        logger.error("Failed to process %s: %s", fp, e)
        return DocumentResult(file_path=str(fp), file_kind=kind, state=JobState.ERROR)

    if len(file_paths) <= 1 or max_workers <= 1:
        for i, fp in enumerate(file_paths):
            try:
                results[i] = process_document(fp, **kwargs)
            except (ProcessingCancelled, KeyboardInterrupt):
                raise
            except Exception as e:
                results[i] = _failed(fp, e)
        return results

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_index = {
            executor.submit(process_document, fp, **kwargs): i
            for i, fp in enumerate(file_paths)
        }
        for future in as_completed(future_to_index):
            i = future_to_index[future]
            try:
                results[i] = future.result()
            except ProcessingCancelled:
                raise
            except Exception as e:
                results[i] = _failed(file_paths[i], e)

    return results
