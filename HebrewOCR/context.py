"""
context.py

Shared per-document state and the narrow reporting surface used by
the scheduler and page processor.

ProcessingContext owns the ResultMap, ProcessingStats and the memory
estimate for one job. All three are mutated under a single lock and
observers are notified after each change. Observer callbacks are
fire-and-forget: their return values are ignored and their
exceptions are logged, never propagated into the job.
"""

import logging
import threading
import time
from typing import Dict, List, Optional

from .aggregator import ResultMap
from .memory import MemoryTracker
from .schemas import JobState, PageResult, ProcessingStats

logger = logging.getLogger(__name__)


class ProcessingCancelled(Exception):
    """Raised when a job's cancellation token fires."""

    pass


class CancellationToken:
    """Thread-safe flag checked at every page boundary and suspension point."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ProcessingCancelled("Processing was cancelled")


class ProcessingObserver:
    """Receives progress notifications. Override the methods you need."""

    def on_stats_update(self, stats: ProcessingStats) -> None:
        pass

    def on_progress(self, percent: float) -> None:
        pass

    def on_memory_update(self, mb: float) -> None:
        pass

    def on_intermediate_results(self, results: Dict[int, PageResult]) -> None:
        pass

    def on_state_change(self, state: JobState) -> None:
        pass


class ProcessingContext:
    """Per-document shared state plus the reporting methods around it."""

    def __init__(
        self,
        observer: Optional[ProcessingObserver] = None,
        memory: Optional[MemoryTracker] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.observer = observer or ProcessingObserver()
        self.memory = memory or MemoryTracker()
        self.cancel_token = cancel_token or CancellationToken()
        self.results = ResultMap()
        self.stats = ProcessingStats()
        self.state = JobState.IDLE
        self._lock = threading.Lock()
        self._page_start_times: Dict[int, float] = {}
        self._completed_times: List[float] = []

    # -----------------------------
    # Job lifecycle
    # -----------------------------

    def set_state(self, state: JobState) -> None:
        self.state = state
        logger.debug("Job state -> %s", state.value)
        self._notify("on_state_change", state)

    def start_job(self, total_pages: int) -> None:
        with self._lock:
            self.stats = ProcessingStats(total_pages=total_pages)
            self._page_start_times.clear()
            self._completed_times.clear()
        self.report_stats()

    def check_cancelled(self) -> None:
        self.cancel_token.raise_if_cancelled()

    # -----------------------------
    # Stats and progress
    # -----------------------------

    def begin_page(self, index: int) -> None:
        with self._lock:
            self._page_start_times[index] = time.monotonic()

    def complete_page(self, index: int) -> None:
        """Record a finished unit and refresh averages, ETA and progress."""
        now = time.monotonic()
        with self._lock:
            started = self._page_start_times.pop(index, None)
            if started is not None:
                self._completed_times.append(now - started)

            completed = self.stats.completed_pages + 1
            total = self.stats.total_pages
            average = (
                sum(self._completed_times) / len(self._completed_times)
                if self._completed_times
                else self.stats.average_time_per_page
            )
            remaining = max(0, total - completed)
            self.stats = ProcessingStats(
                total_pages=total,
                completed_pages=completed,
                average_time_per_page=average,
                estimated_time_remaining=average * remaining,
            )
            percent = min(100.0, completed / total * 100) if total else None

        self.report_stats()
        if percent is not None:
            self.report_progress(percent)

    def report_stats(self) -> None:
        with self._lock:
            stats = self.stats.model_copy()
        self._notify("on_stats_update", stats)

    def report_progress(self, percent: float) -> None:
        self._notify("on_progress", percent)

    # -----------------------------
    # Results
    # -----------------------------

    def store_result(self, result: PageResult) -> None:
        with self._lock:
            self.results.set(result.page_number, result)

    def store_intermediate(self) -> None:
        """Publish a copy of the results gathered so far."""
        with self._lock:
            snapshot = self.results.snapshot()
        self._notify("on_intermediate_results", snapshot)

    # -----------------------------
    # Memory
    # -----------------------------

    def track_allocation(self, mb: float) -> None:
        self._notify("on_memory_update", self.memory.allocate(mb))

    def track_release(self, mb: float) -> None:
        self._notify("on_memory_update", self.memory.release(mb))

    async def request_cleanup(self) -> float:
        self.check_cancelled()
        usage = await self.memory.cleanup()
        self._notify("on_memory_update", usage)
        return usage

    def _notify(self, method: str, *args) -> None:
        try:
            getattr(self.observer, method)(*args)
        except Exception:
            logger.exception("Observer %s failed", method)
