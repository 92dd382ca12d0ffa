"""
scheduler.py

Executors that run a document's pages through a unit function.

Two shapes are supported:

- run_parallel: every unit is created up front and assigned to one of
  max_concurrency slots; a unit waits for the previous occupant of its
  slot, so at most max_concurrency units execute at once.
- run_chunked: contiguous ranges of chunk_size pages run concurrently,
  one range after another, with a memory cleanup gate before each
  range.

Both store every result in the context's ResultMap keyed by page
index and publish intermediate snapshots. Completion order is
irrelevant to the final output, which is always re-sorted by index.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .aggregator import ResultMap
from .context import ProcessingCancelled, ProcessingContext
from .schemas import PageResult, Strategy

logger = logging.getLogger(__name__)

UnitFunction = Callable[[int], Awaitable[PageResult]]


async def _settle(tasks: List[asyncio.Task]) -> None:
    """Wait for every task; then re-raise cancellation or the first failure."""
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    errors = [o for o in outcomes if isinstance(o, BaseException)]
    for error in errors:
        if isinstance(error, ProcessingCancelled):
            raise error
    if errors:
        raise errors[0]


async def run_parallel(
    page_count: int,
    max_concurrency: int,
    unit_fn: UnitFunction,
    context: ProcessingContext,
) -> ResultMap:
    """Run pages 1..page_count with at most max_concurrency in flight."""
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    slots: List[Optional[asyncio.Task]] = [None] * max_concurrency

    async def run_unit(index: int, previous: Optional[asyncio.Task]) -> None:
        if previous is not None:
            # Previous occupant's outcome is reported by _settle
            await asyncio.wait([previous])
        context.check_cancelled()
        result = await unit_fn(index)
        context.store_result(result)
        context.store_intermediate()

    tasks = []
    for index in range(1, page_count + 1):
        slot = (index - 1) % max_concurrency
        task = asyncio.create_task(run_unit(index, slots[slot]))
        slots[slot] = task
        tasks.append(task)

    logger.info("Parallel run: %d page(s), %d slot(s)", page_count, max_concurrency)
    await _settle(tasks)
    return context.results


async def run_chunked(
    page_count: int,
    chunk_size: int,
    unit_fn: UnitFunction,
    context: ProcessingContext,
) -> ResultMap:
    """Run pages in sequential chunks of chunk_size concurrent units."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")

    for start in range(1, page_count + 1, chunk_size):
        end = min(start + chunk_size - 1, page_count)
        context.check_cancelled()

        if context.memory.over_threshold():
            logger.info(
                "Memory estimate %.1fMB over threshold, cleaning up before pages %d-%d",
                context.memory.usage_mb,
                start,
                end,
            )
            await context.request_cleanup()

        logger.info("Processing chunk: pages %d-%d", start, end)
        tasks = [asyncio.create_task(unit_fn(index)) for index in range(start, end + 1)]
        try:
            await _settle(tasks)
        finally:
            for task in tasks:
                if task.done() and not task.cancelled() and task.exception() is None:
                    context.store_result(task.result())
        context.store_intermediate()

    return context.results


async def run_strategy(
    strategy: Strategy,
    page_count: int,
    unit_fn: UnitFunction,
    context: ProcessingContext,
) -> ResultMap:
    """Dispatch to the executor matching a strategy."""
    if strategy.is_chunked:
        return await run_chunked(page_count, strategy.chunk_size, unit_fn, context)
    return await run_parallel(page_count, strategy.max_concurrency, unit_fn, context)
