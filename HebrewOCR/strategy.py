"""
strategy.py

Chooses how a document is scheduled from its page count.

Small documents run fully slot-bounded in parallel; large documents
are cut into sequential chunks so only one chunk's worth of raster
surfaces is held at a time.
"""

import logging
from typing import Union

from . import config
from .schemas import Strategy, StrategyTag

logger = logging.getLogger(__name__)


def select_strategy(
    mode: Union[str, StrategyTag],
    page_count: int,
    file_size_mb: float = 0.0,
) -> Union[str, StrategyTag]:
    """
    Pick a strategy tag for a document.

    A mode other than "auto" is a manual override and is returned as given.
    file_size_mb is accepted for callers that know it but does not
    influence the choice.
    """
    if mode != config.STRATEGY_AUTO:
        return mode

    if page_count <= config.PARALLEL_MAX_PAGES:
        return StrategyTag.PARALLEL
    if page_count <= config.BATCH_MAX_PAGES:
        return StrategyTag.BATCH
    if page_count <= config.CHUNKED_MAX_PAGES:
        return StrategyTag.CHUNKED
    return StrategyTag.PROGRESSIVE


def build_strategy(tag: Union[str, StrategyTag]) -> Strategy:
    """Attach executor parameters to a strategy tag."""
    try:
        tag = StrategyTag(tag)
    except ValueError:
        logger.warning(
            "Unknown strategy '%s', falling back to chunked (chunk size %d)",
            tag,
            config.CHUNKED_CHUNK_SIZE,
        )
        return Strategy(tag=StrategyTag.CHUNKED, chunk_size=config.CHUNKED_CHUNK_SIZE)

    if tag == StrategyTag.PARALLEL:
        return Strategy(tag=tag, max_concurrency=config.PARALLEL_CONCURRENCY)
    if tag == StrategyTag.BATCH:
        return Strategy(tag=tag, max_concurrency=config.BATCH_CONCURRENCY)
    if tag == StrategyTag.CHUNKED:
        return Strategy(tag=tag, chunk_size=config.CHUNKED_CHUNK_SIZE)
    return Strategy(tag=tag, chunk_size=config.PROGRESSIVE_CHUNK_SIZE)
