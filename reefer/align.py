"""Smith-Waterman local alignment returning coordinate-tagged segments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from reefer.scoring import ScoringScheme, encode

# Traceback moves.
_DIAG, _UP, _LEFT = 0, 1, 2

_KIND = {_DIAG: "M", _UP: "D", _LEFT: "I"}


@dataclass(frozen=True)
class AlignmentSegment:
    """A maximal run of one alignment move.

    ``kind`` is ``"M"`` for aligned (match or mismatch) columns, ``"D"`` for
    reference bases against a gap and ``"I"`` for query bases against a gap.
    Coordinates are half-open and relative to the aligned sequences.
    """

    kind: str
    ref_start: int
    ref_end: int
    query_start: int
    query_end: int


@dataclass
class Alignment:
    """Stores the result of a local alignment."""

    segments: Tuple[AlignmentSegment, ...] = ()
    score: int = 0

    def __bool__(self) -> bool:
        return bool(self.segments)

    @property
    def first(self) -> Optional[AlignmentSegment]:
        return self.segments[0] if self.segments else None

    @property
    def last(self) -> Optional[AlignmentSegment]:
        return self.segments[-1] if self.segments else None

    @property
    def cigar(self) -> str:
        """CIGAR string of the alignment with the query as the read."""
        return "".join(f"{max(s.ref_end - s.ref_start, s.query_end - s.query_start)}{s.kind}"
                       for s in self.segments)


class LocalAligner:
    """Linear-gap Smith-Waterman aligner."""

    def __init__(self, scoring: Optional[ScoringScheme] = None):
        self.scoring = scoring or ScoringScheme()

    def align(self, reference: str, query: str) -> Alignment:
        """Locally align *query* against *reference*.

        The highest scoring cell is taken in row-major order, so ties
        resolve towards the start of the reference and then the query.
        Traceback prefers the diagonal, then a reference gap, then a query
        gap. An empty ``Alignment`` is returned when nothing scores above 0.
        """
        n = len(reference)
        m = len(query)
        if n == 0 or m == 0:
            return Alignment()

        H = self._fill(encode(reference), encode(query))
        best = int(np.argmax(H))
        i, j = divmod(best, m + 1)
        score = int(H[i, j])
        if score <= 0:
            return Alignment()

        moves = self._traceback(H, encode(reference), encode(query), i, j)
        return Alignment(segments=tuple(_segments(moves)), score=score)

    def _fill(self, enc_ref: np.ndarray, enc_query: np.ndarray) -> np.ndarray:
        sc = self.scoring
        n = len(enc_ref)
        m = len(enc_query)
        H = np.zeros((n + 1, m + 1), dtype=np.int64)

        # Gaps along a row depend on the cell to the left. With a linear
        # gap score g, H[j] = max over k <= j of T[k] + g * (j - k), which
        # is a running maximum of T[k] - g * k.
        ramp = sc.gap * np.arange(m + 1, dtype=np.int64)
        for i in range(1, n + 1):
            sub = sc.matrix[enc_ref[i - 1], enc_query]
            t = np.zeros(m + 1, dtype=np.int64)
            t[1:] = np.maximum(H[i - 1, :-1] + sub, H[i - 1, 1:] + sc.gap)
            np.maximum(t, 0, out=t)
            H[i] = np.maximum.accumulate(t - ramp) + ramp
        return H

    def _traceback(
        self,
        H: np.ndarray,
        enc_ref: np.ndarray,
        enc_query: np.ndarray,
        i: int,
        j: int,
    ) -> List[Tuple[int, int, int]]:
        sc = self.scoring
        moves: List[Tuple[int, int, int]] = []
        while i > 0 and j > 0 and H[i, j] > 0:
            h = H[i, j]
            if h == H[i - 1, j - 1] + sc.matrix[enc_ref[i - 1], enc_query[j - 1]]:
                i -= 1
                j -= 1
                moves.append((_DIAG, i, j))
            elif h == H[i - 1, j] + sc.gap:
                i -= 1
                moves.append((_UP, i, j))
            elif h == H[i, j - 1] + sc.gap:
                j -= 1
                moves.append((_LEFT, i, j))
            else:
                raise RuntimeError(f"inconsistent traceback at ({i}, {j}) with score {h}")
        moves.reverse()
        return moves


def _segments(moves: List[Tuple[int, int, int]]) -> List[AlignmentSegment]:
    """Collapse traceback moves into runs of the same move."""
    segments: List[AlignmentSegment] = []
    run_start = 0
    for k in range(1, len(moves) + 1):
        if k < len(moves) and moves[k][0] == moves[run_start][0]:
            continue
        move, ref_start, query_start = moves[run_start]
        last_move, ref_last, query_last = moves[k - 1]
        segments.append(AlignmentSegment(
            kind=_KIND[move],
            ref_start=ref_start,
            ref_end=ref_last + (last_move != _LEFT),
            query_start=query_start,
            query_end=query_last + (last_move != _UP),
        ))
        run_start = k
    return segments
