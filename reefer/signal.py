"""Smoothing and segmentation of the per-position cost signal."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Generator, Iterable, List, Optional, Tuple

import numpy as np

from reefer.cigar import AlignmentRecord, CostSample


@dataclass(frozen=True)
class SmoothedSample:
    """Window mean of ``CostSample`` values with positions rounded half-up."""

    ref: int
    query: int
    cost: float


@dataclass(frozen=True)
class CandidateEvent:
    """A discordant interval of one record.

    Query coordinates are in the record's stored orientation until the
    pipeline mirrors them for minus-strand records.
    """

    record: AlignmentRecord
    ref_start: int
    ref_end: int
    query_start: int
    query_end: int
    duplication_length: int = 0
    non_colinear: bool = False

    @property
    def ref_span(self) -> int:
        return self.ref_end - self.ref_start

    @property
    def query_span(self) -> int:
        return self.query_end - self.query_start

    @property
    def is_insertion(self) -> bool:
        return self.query_span > self.ref_span

    def mirrored(self) -> "CandidateEvent":
        """Return the event with query coordinates mirrored across the read."""
        start, end = mirror(self.query_start, self.query_end, self.record.query_length)
        return replace(self, query_start=start, query_end=end)


def mirror(start: int, end: int, length: int) -> Tuple[int, int]:
    """Map the half-open interval [start, end) onto the opposite strand."""
    return length - end, length - start


def round_half_up(numerator: np.ndarray, denominator: int) -> np.ndarray:
    """Integer ``floor(numerator / denominator + 0.5)`` without float error."""
    return (2 * numerator + denominator) // (2 * denominator)


def smooth(samples: Iterable[CostSample], window: int) -> List[SmoothedSample]:
    """Sliding-window mean of *samples*.

    Returns ``len(samples) - window`` values, element *i* being the mean
    over ``samples[i:i + window]``. Fewer than ``window + 1`` samples give
    an empty list.
    """
    if window < 1:
        raise ValueError(f"smoothing window must be at least 1: {window}")
    samples = list(samples)
    n = len(samples)
    if n <= window:
        return []

    refs = np.fromiter((s.ref for s in samples), dtype=np.int64, count=n)
    queries = np.fromiter((s.query for s in samples), dtype=np.int64, count=n)
    costs = np.fromiter((s.cost for s in samples), dtype=np.int64, count=n)

    def window_sums(values: np.ndarray) -> np.ndarray:
        cs = np.concatenate(([0], np.cumsum(values)))
        return cs[window:n] - cs[: n - window]

    mean_cost = window_sums(costs) / window
    mean_ref = round_half_up(window_sums(refs), window)
    mean_query = round_half_up(window_sums(queries), window)

    return [
        SmoothedSample(int(r), int(q), float(c))
        for r, q, c in zip(mean_ref, mean_query, mean_cost)
    ]


def segment(
    record: AlignmentRecord,
    smoothed: List[SmoothedSample],
    min_size: int,
) -> Generator[CandidateEvent, None, None]:
    """Yield discordant intervals bounded by sign changes of the smoothed cost.

    An interval opens one position past the first negative sample after a
    non-negative one and closes at the first non-negative sample after it.
    Intervals shorter than *min_size* on both the reference and the query
    are dropped, as is an interval still open at the end of the signal.
    """
    open_at: Optional[Tuple[int, int]] = None
    for prev, cur in zip(smoothed, smoothed[1:]):
        if open_at is None:
            if prev.cost >= 0 and cur.cost < 0:
                open_at = (cur.ref + 1, cur.query + 1)
        elif prev.cost < 0 and cur.cost >= 0:
            ref_start, query_start = open_at
            open_at = None
            if cur.ref - ref_start >= min_size or cur.query - query_start >= min_size:
                yield CandidateEvent(
                    record=record,
                    ref_start=ref_start,
                    ref_end=cur.ref,
                    query_start=query_start,
                    query_end=cur.query,
                )
