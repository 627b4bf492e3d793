"""Breakpoint refinement of insertion events by paired local alignment.

The reference around the event is aligned twice: once against the query
leading into the middle of the event and once against the query leading
out of it::

                        l      s   e      r
    ref:           -----|------+~~~+------|----------

    query_left:    ----|-----------+~~~~~~|
                       l           s      m
    query_right:                          |~~~~~~+-----------|---
                                          m      e           r

The end of the left alignment and the start of the right alignment are
the breakpoints. When ``ref(s) < ref(e)`` the junction is colinear. When
``ref(e) <= ref(s)`` the reference between them appears on both sides of
the inserted sequence, a target site duplication; the reference
breakpoint is collapsed to ``e`` and the duplication length ``s - e`` is
recorded.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple

from reefer.align import Alignment, LocalAligner
from reefer.scoring import ScoringScheme
from reefer.signal import CandidateEvent


@dataclass(frozen=True)
class RefinementWindow:
    """A slice of a contig and its offset into the full contig."""

    sequence: str
    offset: int

    @property
    def end(self) -> int:
        return self.offset + len(self.sequence)

    def __len__(self) -> int:
        return len(self.sequence)

    @classmethod
    def around(cls, contig: str, centre: int, width: int) -> "RefinementWindow":
        """Up to *width* bases of *contig* centred on *centre*, clamped to the contig."""
        start = max(0, centre - width // 2)
        end = min(len(contig), centre + width - width // 2)
        start = min(start, end)
        return cls(contig[start:end], start)


@dataclass(frozen=True)
class Refinement:
    """Outcome of a refinement attempt.

    When ``ok`` is false ``event`` is the unrefined input and ``reason``
    says why refinement was abandoned.
    """

    event: CandidateEvent
    ok: bool
    reason: str = ""


class BreakpointRefiner:
    """Tightens insertion breakpoints against a set of reference contigs."""

    def __init__(
        self,
        contigs: Mapping[str, str],
        ref_window: int = 300,
        query_window: int = 500,
        min_query_gap: int = 50,
        min_ref_flank: int = 10,
        scoring: Optional[ScoringScheme] = None,
    ):
        for name, value in (
            ("ref_window", ref_window),
            ("query_window", query_window),
            ("min_query_gap", min_query_gap),
            ("min_ref_flank", min_ref_flank),
        ):
            if value < 0:
                raise ValueError(f"{name} must not be negative: {value}")
        self.contigs = contigs
        self.ref_window = ref_window
        self.query_window = query_window
        self.min_query_gap = min_query_gap
        self.min_ref_flank = min_ref_flank
        self.aligner = LocalAligner(scoring)

    @property
    def scoring(self) -> ScoringScheme:
        return self.aligner.scoring

    def refine(self, event: CandidateEvent) -> Refinement:
        """Refine the breakpoints of *event*.

        Query coordinates of *event* are expected in reporting orientation,
        that is already mirrored for minus-strand records, and the refined
        event is returned in the same orientation.
        """
        if not event.is_insertion:
            return Refinement(event, False, (
                f"not an insertion: len(q)={event.query_span} len(r)={event.ref_span}"
            ))

        record = event.record
        contig = self.contigs.get(record.reference_name)
        if contig is None:
            return Refinement(event, False, f"no reference sequence for {record.reference_name!r}")
        if not record.sequence:
            return Refinement(event, False, f"no read sequence for {record.name!r}")

        # The stored read sequence is in reference orientation.
        stored = event.mirrored() if record.is_reverse else event
        refined, reason = self._adjust(stored, contig, record.sequence)
        if refined is None:
            return Refinement(event, False, reason)
        if record.is_reverse:
            refined = refined.mirrored()
        return Refinement(refined, True)

    def _adjust(
        self, event: CandidateEvent, contig: str, query: str
    ) -> Tuple[Optional[CandidateEvent], str]:
        window = RefinementWindow.around(
            contig, (event.ref_start + event.ref_end) // 2, self.ref_window
        )

        middle = (event.query_start + event.query_end) // 2
        left_off = max(0, middle - self.query_window)
        right_end = min(len(query), middle + self.query_window)

        left = self.aligner.align(window.sequence, query[left_off:middle])
        if not left:
            return None, "no local alignment of left query flank"
        right = self.aligner.align(window.sequence, query[middle:right_end])
        if not right:
            return None, "no local alignment of right query flank"

        left_ref, left_query = left.last.ref_end, left.last.query_end
        right_ref, right_query = right.first.ref_start, right.first.query_start

        reason = self._check_flanks(len(window), left, right)
        if reason:
            return None, reason

        left_gap = (middle - left_off) - left_query
        right_gap = right_query
        if left_gap < self.min_query_gap or right_gap < self.min_query_gap:
            return None, (
                f"insufficient query gap: left={left_gap} right={right_gap} "
                f"from centre, need {self.min_query_gap}"
            )

        ref_start = window.offset + left_ref
        ref_end = window.offset + right_ref
        dup = 0
        non_colinear = ref_end <= ref_start
        if non_colinear:
            dup = ref_start - ref_end
            ref_start = ref_end

        return replace(
            event,
            ref_start=ref_start,
            ref_end=ref_end,
            query_start=left_off + left_query,
            query_end=middle + right_query,
            duplication_length=dup,
            non_colinear=non_colinear,
        ), ""

    def _check_flanks(self, width: int, left: Alignment, right: Alignment) -> str:
        # An anchor at a window edge means the alignment may continue
        # beyond the window.
        for side, aln, anchor in (
            ("left", left, left.last.ref_end),
            ("right", right, right.first.ref_start),
        ):
            flank = min(anchor, width - anchor)
            if flank < self.min_ref_flank:
                return (
                    f"insufficient reference flank: {side} anchor {flank} from "
                    f"window edge, need {self.min_ref_flank} ({side} alignment {aln.cigar})"
                )
        return ""
