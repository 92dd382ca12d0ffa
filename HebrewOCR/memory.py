"""
memory.py

Estimated memory accounting for raster surfaces.

The figure is an estimate built from surface dimensions (4 bytes per
pixel), not a measurement of the process. It grows while pages are
rendered concurrently, shrinks as surfaces are released, and is
decayed by cleanup() to stand in for garbage-collection relief.
"""

import asyncio
import gc
import logging
import threading
from typing import Optional

from . import config

logger = logging.getLogger(__name__)


def estimate_memory_usage(width: int, height: int) -> float:
    """Size in MB of a width x height surface at 4 bytes per pixel."""
    return (width * height * config.BYTES_PER_PIXEL) / (1024 * 1024)


class MemoryTracker:
    """
    Running memory estimate for the surfaces held by one document job.

    Updates are serialized with a lock so completions arriving from
    worker threads cannot lose increments.
    """

    def __init__(
        self,
        threshold_mb: Optional[float] = None,
        decay: Optional[float] = None,
        grace_period: Optional[float] = None,
    ):
        self.threshold_mb = (
            config.MEMORY_CLEANUP_THRESHOLD_MB if threshold_mb is None else threshold_mb
        )
        self.decay = config.CLEANUP_DECAY if decay is None else decay
        self.grace_period = (
            config.CLEANUP_GRACE_PERIOD if grace_period is None else grace_period
        )
        self._lock = threading.Lock()
        self._usage_mb = 0.0
        self._peak_mb = 0.0
        self.cleanup_count = 0

    @property
    def usage_mb(self) -> float:
        with self._lock:
            return self._usage_mb

    @property
    def peak_mb(self) -> float:
        with self._lock:
            return self._peak_mb

    def allocate(self, mb: float) -> float:
        with self._lock:
            self._usage_mb += mb
            self._peak_mb = max(self._peak_mb, self._usage_mb)
            return self._usage_mb

    def release(self, mb: float) -> float:
        with self._lock:
            self._usage_mb = max(0.0, self._usage_mb - mb)
            return self._usage_mb

    def over_threshold(self) -> bool:
        return self.usage_mb > self.threshold_mb

    async def cleanup(self) -> float:
        """
        Collect garbage, wait the grace period, then decay the estimate.

        Returns:
            The estimate after decay.
        """
        before = self.usage_mb
        gc.collect()
        await asyncio.sleep(self.grace_period)
        with self._lock:
            self._usage_mb *= self.decay
            after = self._usage_mb
            self.cleanup_count += 1
        logger.info("Memory cleanup: %.1fMB -> %.1fMB", before, after)
        return after
