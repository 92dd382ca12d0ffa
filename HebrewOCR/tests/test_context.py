"""
Tests for the shared processing context.
"""

import asyncio

import pytest

from HebrewOCR.context import (
    CancellationToken,
    ProcessingCancelled,
    ProcessingContext,
    ProcessingObserver,
)
from HebrewOCR.memory import MemoryTracker
from HebrewOCR.schemas import JobState, PageResult


class ExplodingObserver(ProcessingObserver):
    def on_progress(self, percent):
        raise RuntimeError("ui gone")


class TestCancellationToken:
    def test_starts_clear(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ProcessingCancelled):
            token.raise_if_cancelled()


class TestProcessingContext:
    def test_stats_and_progress(self, observer):
        context = ProcessingContext(observer=observer)
        context.start_job(4)
        for index in (2, 1):
            context.begin_page(index)
            context.complete_page(index)

        assert context.stats.completed_pages == 2
        assert context.stats.total_pages == 4
        assert observer.progress == [25.0, 50.0]
        assert context.stats.estimated_time_remaining == pytest.approx(
            context.stats.average_time_per_page * 2
        )

    def test_stats_notifications_are_copies(self, observer):
        context = ProcessingContext(observer=observer)
        context.start_job(2)
        observer.stats[0].completed_pages = 99
        assert context.stats.completed_pages == 0

    def test_observer_failure_does_not_propagate(self, caplog):
        context = ProcessingContext(observer=ExplodingObserver())
        context.report_progress(10)
        assert "Observer on_progress failed" in caplog.text

    def test_state_change_notified(self, observer):
        context = ProcessingContext(observer=observer)
        context.set_state(JobState.PROCESSING)
        assert context.state == JobState.PROCESSING
        assert observer.states == [JobState.PROCESSING]

    def test_intermediate_snapshot_sorted(self, observer):
        context = ProcessingContext(observer=observer)
        context.store_result(PageResult(page_number=3, text="ג"))
        context.store_result(PageResult(page_number=1, text="א"))
        context.store_intermediate()
        assert list(observer.snapshots[0]) == [1, 3]

    def test_memory_notifications(self, observer):
        context = ProcessingContext(observer=observer, memory=MemoryTracker(grace_period=0))
        context.track_allocation(100)
        context.track_release(40)
        asyncio.run(context.request_cleanup())
        assert observer.memory == pytest.approx([100, 60, 42])

    def test_cleanup_checks_cancellation(self):
        token = CancellationToken()
        token.cancel()
        context = ProcessingContext(cancel_token=token)
        with pytest.raises(ProcessingCancelled):
            asyncio.run(context.request_cleanup())
