"""
Tests for the parallel and chunked executors.
"""

import asyncio

import pytest

from HebrewOCR.context import CancellationToken, ProcessingCancelled, ProcessingContext
from HebrewOCR.memory import MemoryTracker
from HebrewOCR.scheduler import run_chunked, run_parallel, run_strategy
from HebrewOCR.schemas import PageResult
from HebrewOCR.strategy import build_strategy


class UnitRecorder:
    """Unit function that records start/finish order and concurrency."""

    def __init__(self, delays=None, fail_pages=(), on_start=None):
        self.delays = delays or {}
        self.fail_pages = set(fail_pages)
        self.on_start = on_start
        self.events = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, index):
        self.events.append(("start", index))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_start is not None:
                self.on_start(index)
            await asyncio.sleep(self.delays.get(index, 0.001))
            if index in self.fail_pages:
                raise ValueError(f"unit {index} failed")
            return PageResult(page_number=index, text=f"page {index}")
        finally:
            self.in_flight -= 1
            self.events.append(("finish", index))

    def position(self, kind, index):
        return self.events.index((kind, index))

    @property
    def started(self):
        return [i for kind, i in self.events if kind == "start"]


def _context(observer=None, **memory_kwargs):
    memory = MemoryTracker(grace_period=0, **memory_kwargs)
    return ProcessingContext(observer=observer, memory=memory)


class TestRunParallel:
    def test_all_units_stored_in_order(self):
        context = _context()
        results = asyncio.run(run_parallel(7, 3, UnitRecorder(), context))
        assert results.keys() == list(range(1, 8))

    def test_bounded_concurrency(self):
        recorder = UnitRecorder()
        asyncio.run(run_parallel(10, 3, recorder, _context()))
        assert recorder.max_in_flight == 3

    def test_unit_waits_for_previous_slot_occupant(self):
        delays = {1: 0.05, 2: 0.01, 3: 0.02, 4: 0.001, 5: 0.03}
        recorder = UnitRecorder(delays=delays)
        asyncio.run(run_parallel(5, 2, recorder, _context()))
        for index in range(3, 6):
            assert recorder.position("finish", index - 2) < recorder.position("start", index)

    def test_out_of_order_completion_still_sorted(self):
        delays = {1: 0.04, 2: 0.03, 3: 0.02, 4: 0.01}
        recorder = UnitRecorder(delays=delays)
        results = asyncio.run(run_parallel(4, 4, recorder, _context()))
        finished = [i for kind, i in recorder.events if kind == "finish"]
        assert finished == [4, 3, 2, 1]
        assert results.keys() == [1, 2, 3, 4]

    def test_snapshot_per_completion(self, observer):
        asyncio.run(run_parallel(4, 2, UnitRecorder(), _context(observer)))
        assert len(observer.snapshots) == 4
        assert list(observer.snapshots[-1]) == [1, 2, 3, 4]

    def test_cancellation_stops_remaining_units(self):
        token = CancellationToken()
        context = ProcessingContext(cancel_token=token)

        def cancel_on_second(index):
            if index == 2:
                token.cancel()

        recorder = UnitRecorder(on_start=cancel_on_second)
        with pytest.raises(ProcessingCancelled):
            asyncio.run(run_parallel(5, 1, recorder, context))
        assert recorder.started == [1, 2]

    def test_unit_failure_is_raised_after_siblings_finish(self):
        recorder = UnitRecorder(fail_pages={2})
        context = _context()
        with pytest.raises(ValueError, match="unit 2"):
            asyncio.run(run_parallel(4, 2, recorder, context))
        assert sorted(recorder.started) == [1, 2, 3, 4]
        assert 2 not in context.results

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            asyncio.run(run_parallel(3, 0, UnitRecorder(), _context()))


class TestRunChunked:
    def test_chunks_run_sequentially(self):
        recorder = UnitRecorder(delays={1: 0.03, 2: 0.01, 3: 0.02})
        asyncio.run(run_chunked(7, 3, recorder, _context()))
        chunks = [[1, 2, 3], [4, 5, 6], [7]]
        for previous, current in zip(chunks, chunks[1:]):
            last_finish = max(recorder.position("finish", i) for i in previous)
            first_start = min(recorder.position("start", i) for i in current)
            assert last_finish < first_start

    def test_units_within_chunk_run_concurrently(self):
        recorder = UnitRecorder(delays={i: 0.01 for i in range(1, 6)})
        asyncio.run(run_chunked(5, 5, recorder, _context()))
        assert recorder.max_in_flight == 5

    def test_forty_pages_in_eight_chunks(self, observer):
        context = _context(observer)
        results = asyncio.run(run_chunked(40, 5, UnitRecorder(), context))
        assert len(results) == 40
        assert len(observer.snapshots) == 8
        assert [len(s) for s in observer.snapshots] == [5, 10, 15, 20, 25, 30, 35, 40]

    def test_memory_gate_runs_cleanup_between_chunks(self, observer):
        context = _context(observer, threshold_mb=800)

        def hold_memory(index):
            context.track_allocation(300)

        asyncio.run(run_chunked(6, 2, UnitRecorder(on_start=hold_memory), context))
        # 600MB before chunk 2, 1200MB before chunk 3 -> one cleanup to 840MB
        assert context.memory.cleanup_count == 1
        assert any(mb == pytest.approx(840) for mb in observer.memory)

    def test_no_cleanup_under_threshold(self):
        context = _context()
        asyncio.run(run_chunked(10, 2, UnitRecorder(), context))
        assert context.memory.cleanup_count == 0

    def test_cancellation_between_chunks(self):
        token = CancellationToken()
        context = ProcessingContext(cancel_token=token, memory=MemoryTracker(grace_period=0))

        def cancel_on_first(index):
            if index == 1:
                token.cancel()

        recorder = UnitRecorder(on_start=cancel_on_first)
        with pytest.raises(ProcessingCancelled):
            asyncio.run(run_chunked(9, 3, recorder, context))
        assert sorted(recorder.started) == [1, 2, 3]
        assert context.results.keys() == [1, 2, 3]

    def test_failure_keeps_sibling_results(self):
        context = _context()
        with pytest.raises(ValueError):
            asyncio.run(run_chunked(6, 3, UnitRecorder(fail_pages={2}), context))
        assert context.results.keys() == [1, 3]

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            asyncio.run(run_chunked(3, 0, UnitRecorder(), _context()))


class TestRunStrategy:
    def test_dispatches_chunked(self, observer):
        asyncio.run(run_strategy(build_strategy("chunked"), 7, UnitRecorder(), _context(observer)))
        assert len(observer.snapshots) == 2

    def test_dispatches_parallel(self):
        recorder = UnitRecorder()
        asyncio.run(run_strategy(build_strategy("batch"), 6, recorder, _context()))
        assert recorder.max_in_flight == 2
