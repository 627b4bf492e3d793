"""CIGAR operations, alignment records and the per-position cost signal."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Generator, List, Tuple


class OpKind(IntEnum):
    """SAM CIGAR operation kinds, valued by their BAM integer codes."""

    MATCH = 0  # M
    INSERTION = 1  # I
    DELETION = 2  # D
    SKIPPED = 3  # N
    SOFT_CLIP = 4  # S
    HARD_CLIP = 5  # H
    PADDING = 6  # P
    EQUAL = 7  # =
    MISMATCH = 8  # X
    BACK = 9  # B

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @classmethod
    def from_symbol(cls, symbol: str) -> "OpKind":
        try:
            return _KINDS[symbol]
        except KeyError:
            raise ValueError(f"unknown CIGAR operation: {symbol!r}") from None

    @property
    def consumes(self) -> Tuple[int, int]:
        """Return (reference, query) positions consumed per unit."""
        return _CONSUMES[self]


_SYMBOLS = {
    OpKind.MATCH: "M",
    OpKind.INSERTION: "I",
    OpKind.DELETION: "D",
    OpKind.SKIPPED: "N",
    OpKind.SOFT_CLIP: "S",
    OpKind.HARD_CLIP: "H",
    OpKind.PADDING: "P",
    OpKind.EQUAL: "=",
    OpKind.MISMATCH: "X",
    OpKind.BACK: "B",
}
_KINDS = {s: k for k, s in _SYMBOLS.items()}

_CONSUMES = {
    OpKind.MATCH: (1, 1),
    OpKind.INSERTION: (0, 1),
    OpKind.DELETION: (1, 0),
    OpKind.SKIPPED: (1, 0),
    OpKind.SOFT_CLIP: (0, 1),
    OpKind.HARD_CLIP: (0, 0),
    OpKind.PADDING: (0, 0),
    OpKind.EQUAL: (1, 1),
    OpKind.MISMATCH: (1, 1),
    OpKind.BACK: (0, 0),
}

# Cost of one unit of each operation kind. Every kind is listed; kinds
# that say nothing about discordance cost 0.
COST = {
    OpKind.EQUAL: 1,
    OpKind.MISMATCH: -1,
    OpKind.INSERTION: -2,
    OpKind.DELETION: -2,
    OpKind.SOFT_CLIP: 0,
    OpKind.MATCH: 0,
    OpKind.SKIPPED: 0,
    OpKind.HARD_CLIP: 0,
    OpKind.PADDING: 0,
    OpKind.BACK: 0,
}


def cost_of(kind: OpKind) -> int:
    return COST.get(kind, 0)


@dataclass(frozen=True)
class AlignmentOperation:
    """A run of *length* units of a single CIGAR operation."""

    kind: OpKind
    length: int

    def __post_init__(self):
        if self.length < 0:
            raise ValueError(f"negative operation length: {self.length}")


_CIGAR_RE = re.compile(r"(\d+)([MIDNSHP=XB])")


def parse_cigar(cigar: str) -> Tuple[AlignmentOperation, ...]:
    """Parse a CIGAR string such as ``"10S50=1X3D40="``.

    ``"*"`` and the empty string give an empty operation list.
    """
    if cigar in ("", "*"):
        return ()
    ops: List[AlignmentOperation] = []
    pos = 0
    for m in _CIGAR_RE.finditer(cigar):
        if m.start() != pos:
            break
        ops.append(AlignmentOperation(OpKind.from_symbol(m.group(2)), int(m.group(1))))
        pos = m.end()
    if pos != len(cigar):
        raise ValueError(f"malformed CIGAR string: {cigar!r}")
    return tuple(ops)


@dataclass(frozen=True)
class AlignmentRecord:
    """One read's alignment to a reference contig.

    ``sequence`` is the read sequence as stored in the alignment file, so it
    is in reference orientation for reads on the minus strand.
    """

    name: str
    reference_name: str
    reference_start: int
    operations: Tuple[AlignmentOperation, ...] = ()
    strand: str = "+"
    query_length: int = 0
    sequence: str = field(default="", repr=False)

    def __post_init__(self):
        if self.strand not in ("+", "-"):
            raise ValueError(f"{self.name}: invalid strand {self.strand!r}")
        if self.reference_start < 0:
            raise ValueError(f"{self.name}: negative reference start {self.reference_start}")
        if self.query_length < self.aligned_query_length:
            raise ValueError(
                f"{self.name}: query length {self.query_length} shorter than "
                f"the {self.aligned_query_length} query bases consumed by its CIGAR"
            )
        if self.sequence and len(self.sequence) != self.query_length:
            raise ValueError(
                f"{self.name}: sequence length {len(self.sequence)} does not "
                f"match query length {self.query_length}"
            )

    @property
    def is_reverse(self) -> bool:
        return self.strand == "-"

    @property
    def aligned_query_length(self) -> int:
        return sum(op.length * op.kind.consumes[1] for op in self.operations)

    @property
    def reference_end(self) -> int:
        return self.reference_start + sum(op.length * op.kind.consumes[0] for op in self.operations)

    def __len__(self) -> int:
        """Total number of CIGAR units."""
        return sum(op.length for op in self.operations)


@dataclass(frozen=True)
class CostSample:
    """Cost of one CIGAR unit at its reference and query position."""

    ref: int
    query: int
    cost: int


def cost_signal(record: AlignmentRecord) -> Generator[CostSample, None, None]:
    """Yield one ``CostSample`` per CIGAR unit of *record*.

    Positions start at the record's reference start and query offset 0 and
    advance after each sample according to the operation's consumption.
    """
    ref = record.reference_start
    query = 0
    for op in record.operations:
        cost = cost_of(op.kind)
        dref, dquery = op.kind.consumes
        for _ in range(op.length):
            yield CostSample(ref, query, cost)
            ref += dref
            query += dquery
