"""
aggregator.py

Result storage and final text assembly.

Pages may finish in any order, so the ResultMap never relies on
insertion order: every read is sorted by numeric page index. Keys
are not assumed to be contiguous.
"""

from typing import Dict, Iterator, List, Tuple, Union

from . import config
from .schemas import FileKind, PageResult


class ResultMap:
    """Page index -> PageResult, sorted on read, frozen once finalized."""

    def __init__(self):
        self._results: Dict[int, PageResult] = {}
        self._frozen = False

    def set(self, index: int, result: PageResult) -> None:
        if self._frozen:
            raise RuntimeError("ResultMap is finalized and can no longer change")
        self._results[int(index)] = result

    def keys(self) -> List[int]:
        return sorted(self._results)

    def items(self) -> Iterator[Tuple[int, PageResult]]:
        for key in self.keys():
            yield key, self._results[key]

    def values(self) -> List[PageResult]:
        return [result for _, result in self.items()]

    def snapshot(self) -> Dict[int, PageResult]:
        return dict(self.items())

    def freeze(self) -> "ResultMap":
        self._frozen = True
        return self

    def __contains__(self, index) -> bool:
        return index in self._results

    def __len__(self) -> int:
        return len(self._results)


def finalize_results(
    results: Union[ResultMap, Dict[int, PageResult]],
    file_kind: Union[FileKind, str],
) -> str:
    """
    Join page texts in ascending page order.

    A single image with one result yields its text unchanged; anything
    else gets a page banner per entry.
    """
    if isinstance(results, ResultMap):
        ordered = list(results.items())
    else:
        ordered = sorted(results.items())

    if file_kind == FileKind.IMAGE and len(ordered) == 1:
        return ordered[0][1].text

    return "\n".join(
        f"{config.PAGE_BANNER.format(page=index)}\n{result.text}\n"
        for index, result in ordered
    )


def compute_document_confidence(pages: List[PageResult]) -> float:
    """
    Compute document-level confidence as a weighted average of page confidences.
    Weight is proportional to the text length on each page.
    """
    if not pages:
        return 0.0

    total_chars = sum(len(p.text) for p in pages if not p.has_errors)
    if total_chars == 0:
        return 0.0

    weighted_sum = sum(p.confidence * len(p.text) for p in pages if not p.has_errors)
    return weighted_sum / total_chars
