"""
Tests for memory estimation and tracking.
"""

import asyncio
import threading

import pytest

from HebrewOCR.memory import MemoryTracker, estimate_memory_usage


class TestEstimateMemoryUsage:
    def test_four_bytes_per_pixel(self):
        assert estimate_memory_usage(1024, 1024) == pytest.approx(4.0)

    def test_letter_page_at_scale_two(self):
        assert estimate_memory_usage(1224, 1584) == pytest.approx(7.396, rel=1e-3)

    def test_zero(self):
        assert estimate_memory_usage(0, 500) == 0.0


class TestMemoryTracker:
    def test_allocate_and_release(self):
        tracker = MemoryTracker()
        tracker.allocate(10)
        tracker.allocate(5)
        assert tracker.release(10) == pytest.approx(5)
        assert tracker.peak_mb == pytest.approx(15)

    def test_release_never_negative(self):
        tracker = MemoryTracker()
        tracker.allocate(2)
        assert tracker.release(10) == 0.0

    def test_threshold_is_strict(self):
        tracker = MemoryTracker(threshold_mb=100)
        tracker.allocate(100)
        assert not tracker.over_threshold()
        tracker.allocate(0.5)
        assert tracker.over_threshold()

    def test_default_threshold(self):
        assert MemoryTracker().threshold_mb == 800

    def test_cleanup_decays_estimate(self):
        tracker = MemoryTracker(grace_period=0)
        tracker.allocate(1000)
        after = asyncio.run(tracker.cleanup())
        assert after == pytest.approx(700)
        assert tracker.usage_mb == pytest.approx(700)
        assert tracker.cleanup_count == 1

    def test_cleanup_at_zero_stays_zero(self):
        tracker = MemoryTracker(grace_period=0)
        assert asyncio.run(tracker.cleanup()) == 0.0

    def test_concurrent_updates_are_not_lost(self):
        tracker = MemoryTracker()

        def work():
            for _ in range(1000):
                tracker.allocate(1)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert tracker.usage_mb == pytest.approx(8000)
