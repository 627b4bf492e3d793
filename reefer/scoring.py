"""Scoring scheme for breakpoint refinement alignments."""

from __future__ import annotations

import numpy as np


# Base encoding: A=0, C=1, G=2, T=3, anything else=N (4)
BASE_TO_INT = {"A": 0, "C": 1, "G": 2, "T": 3, "N": 4,
               "a": 0, "c": 1, "g": 2, "t": 3, "n": 4}

_LOOKUP = np.full(256, 4, dtype=np.int8)
for _base, _code in BASE_TO_INT.items():
    _LOOKUP[ord(_base)] = _code


def encode(seq: str) -> np.ndarray:
    """Encode a nucleotide string as small integer codes."""
    return _LOOKUP[np.frombuffer(seq.encode("ascii"), dtype=np.uint8)]


class ScoringScheme:
    """Linear-gap match/mismatch/gap scores for local alignment.

    Identical letters score *match*, differing letters *mismatch* and
    every gap position *gap*.
    """

    def __init__(self, match: int = 1, mismatch: int = -1, gap: int = -1):
        if match <= 0:
            raise ValueError(f"match score must be positive: {match}")
        if gap > 0:
            raise ValueError(f"gap score must not be positive: {gap}")
        self.match = int(match)
        self.mismatch = int(mismatch)
        self.gap = int(gap)

        self.matrix = np.full((5, 5), self.mismatch, dtype=np.int64)
        np.fill_diagonal(self.matrix, self.match)

    @classmethod
    def parse(cls, text: str) -> "ScoringScheme":
        """Parse a ``"match,mismatch,gap"`` triple."""
        fields = text.split(",")
        if len(fields) != 3:
            raise ValueError(f"invalid number of fields: {text!r}")
        try:
            match, mismatch, gap = (int(f) for f in fields)
        except ValueError as exc:
            raise ValueError(f"invalid fields: {exc}") from None
        return cls(match, mismatch, gap)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ScoringScheme):
            return NotImplemented
        return (self.match, self.mismatch, self.gap) == (other.match, other.mismatch, other.gap)

    def __str__(self) -> str:
        return f"{self.match},{self.mismatch},{self.gap}"

    def __repr__(self) -> str:
        return f"ScoringScheme(match={self.match}, mismatch={self.mismatch}, gap={self.gap})"
