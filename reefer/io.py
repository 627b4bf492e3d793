"""File I/O: FASTA contigs, SAM/BAM alignment records and GFF features."""

from __future__ import annotations

import gzip
import logging
import re
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Dict, Generator, Iterable, List, Optional, Tuple, Union

import pysam

from reefer.cigar import AlignmentOperation, AlignmentRecord, OpKind
from reefer.errors import ReeferError

logger = logging.getLogger(__name__)


@dataclass
class Sequence:
    """A named biological sequence."""

    name: str
    seq: str
    description: str = ""


def _open(filepath: Path, mode: str):
    opener = gzip.open if filepath.suffix == ".gz" else open
    return opener(filepath, mode)  # type: ignore[operator]


def read_fasta(filepath: Union[str, Path]) -> Generator[Tuple[str, str], None, None]:
    """Yield (name, sequence) tuples from a FASTA file.

    Supports plain-text and gzip-compressed files (.gz).
    """
    filepath = Path(filepath)

    name: str | None = None
    parts: list[str] = []

    with _open(filepath, "rt") as fh:
        for line in fh:
            line = line.rstrip("\n").rstrip("\r")
            if line.startswith(">"):
                if name is not None:
                    yield name, "".join(parts)
                fields = line[1:].split()
                if not fields:
                    raise ReeferError(f"{filepath}: FASTA record without a name")
                name = fields[0]
                parts = []
            elif name is None:
                if line.strip():
                    raise ReeferError(f"{filepath}: sequence data before first FASTA header")
            else:
                parts.append(line.strip())
        if name is not None:
            yield name, "".join(parts)


def read_contigs(filepath: Union[str, Path]) -> Dict[str, str]:
    """Load every contig of a FASTA file into a name to sequence mapping."""
    contigs = dict(read_fasta(filepath))
    logger.info("read %d reference sequences from %s", len(contigs), filepath)
    return contigs


def write_fasta(
    dest: Union[str, Path, IO[str]],
    sequences: Iterable[Union[Tuple[str, str], Sequence]],
    line_width: int = 60,
) -> None:
    """Write sequences in FASTA format.

    *sequences* can be an iterable of ``(name, seq)`` tuples or
    ``Sequence`` objects. *dest* is a path, gzip-compressed when it ends
    with ``.gz``, or an open text stream.
    """
    if isinstance(dest, (str, Path)):
        ctx = _open(Path(dest), "wt")
    else:
        ctx = nullcontext(dest)

    with ctx as fh:
        for item in sequences:
            if isinstance(item, Sequence):
                header = f"{item.name} {item.description}" if item.description else item.name
                seq = item.seq
            else:
                header, seq = item
            fh.write(f">{header}\n")
            if seq:
                for i in range(0, len(seq), line_width):
                    fh.write(seq[i : i + line_width] + "\n")
            else:
                fh.write("\n")


def open_alignments(filepath: Union[str, Path]) -> pysam.AlignmentFile:
    """Open a SAM or BAM file, choosing the mode from the file suffix."""
    filepath = Path(filepath)
    mode = "rb" if filepath.suffix == ".bam" else "r"
    try:
        return pysam.AlignmentFile(str(filepath), mode, check_sq=False)
    except (OSError, ValueError) as exc:
        raise ReeferError(f"failed to open alignments {filepath}: {exc}") from exc


def record_from_segment(segment: pysam.AlignedSegment) -> AlignmentRecord:
    """Convert a mapped pysam ``AlignedSegment`` into an ``AlignmentRecord``."""
    operations = tuple(
        AlignmentOperation(OpKind(op), length) for op, length in (segment.cigartuples or ())
    )
    sequence = segment.query_sequence or ""
    query_length = len(sequence) if sequence else segment.infer_query_length() or 0
    return AlignmentRecord(
        name=segment.query_name,
        reference_name=segment.reference_name,
        reference_start=segment.reference_start,
        operations=operations,
        strand="-" if segment.is_reverse else "+",
        query_length=query_length,
        sequence=sequence,
    )


def read_alignments(filepath: Union[str, Path]) -> Generator[AlignmentRecord, None, None]:
    """Yield an ``AlignmentRecord`` for every primary mapped alignment.

    Unmapped, secondary and supplementary alignments are skipped. A record
    that cannot be decoded stops iteration with a ``ReeferError`` naming
    the last record read successfully.
    """
    filepath = Path(filepath)
    last = None
    with open_alignments(filepath) as bam:
        try:
            for segment in bam:
                if segment.is_unmapped or segment.is_secondary or segment.is_supplementary:
                    continue
                last = segment.query_name
                try:
                    record = record_from_segment(segment)
                except ValueError as exc:
                    raise ReeferError(f"{filepath}: invalid record {last!r}: {exc}") from exc
                yield record
        except (OSError, ValueError) as exc:
            where = f"after record {last!r}" if last else "before the first record"
            raise ReeferError(f"{filepath}: failed reading alignments {where}: {exc}") from exc


@dataclass
class Feature:
    """A GFF feature. ``start`` is 0-based and ``end`` exclusive."""

    seqname: str
    start: int
    end: int
    strand: str = "."
    source: str = "reefer"
    feature: str = "discordance"
    score: Optional[float] = None
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def get(self, tag: str) -> str:
        for key, value in self.attributes:
            if key == tag:
                return value
        return ""


def _format_value(value: str) -> str:
    if re.fullmatch(r"[-+.\w]+", value):
        return value
    return '"' + value.replace('"', '\\"') + '"'


class GFFWriter:
    """Writes ``Feature`` values as GFF version 2 lines."""

    def __init__(self, stream: IO[str], header: bool = True):
        self.stream = stream
        if header:
            self.stream.write("##gff-version 2\n")

    def comment(self, text: str) -> None:
        self.stream.write(f"# {text}\n")

    def write(self, feature: Feature) -> None:
        score = "." if feature.score is None else f"{feature.score:g}"
        attrs = ";".join(f"{tag} {_format_value(value)}" for tag, value in feature.attributes)
        self.stream.write(
            f"{feature.seqname}\t{feature.source}\t{feature.feature}\t"
            f"{feature.start + 1}\t{feature.end}\t{score}\t{feature.strand}\t.\t"
            f"{attrs}\n"
        )


_ATTR_RE = re.compile(r'\s*(\S+)\s+("(?:[^"\\]|\\.)*"|[^;]*?)\s*(?:;|$)')


def _parse_attributes(text: str) -> List[Tuple[str, str]]:
    attrs = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        m = _ATTR_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"malformed GFF attributes: {text!r}")
        value = m.group(2)
        if value.startswith('"'):
            value = value[1:-1].replace('\\"', '"')
        attrs.append((m.group(1), value))
        pos = m.end()
    return attrs


def read_gff(stream: IO[str]) -> Generator[Feature, None, None]:
    """Yield ``Feature`` values from GFF lines, skipping comments."""
    for lineno, line in enumerate(stream, 1):
        line = line.rstrip("\n")
        if not line or line.startswith("#"):
            continue
        fields = line.split("\t")
        if len(fields) < 8:
            raise ReeferError(f"line {lineno}: expected at least 8 GFF fields, got {len(fields)}")
        try:
            yield Feature(
                seqname=fields[0],
                source=fields[1],
                feature=fields[2],
                start=int(fields[3]) - 1,
                end=int(fields[4]),
                score=None if fields[5] == "." else float(fields[5]),
                strand=fields[6],
                attributes=_parse_attributes(fields[8]) if len(fields) > 8 else [],
            )
        except ValueError as exc:
            raise ReeferError(f"line {lineno}: {exc}") from exc
