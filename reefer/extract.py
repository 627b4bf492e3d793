"""Extraction of discordant read segments named by a reefer GFF."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Dict, Generator, Iterable, Tuple, Union

from reefer.errors import ReeferError
from reefer.io import Sequence, open_alignments, read_gff
from reefer.signal import mirror

logger = logging.getLogger(__name__)


def read_spans(stream: IO[str]) -> Dict[str, Tuple[int, int]]:
    """Collect the read spans of reefer features as 0-based half-open intervals.

    Spans come from ``Read "<name> <start> <end>"`` attributes, with
    1-based inclusive starts. Features without a Read attribute are ignored.
    """
    spans: Dict[str, Tuple[int, int]] = {}
    for feature in read_gff(stream):
        read = feature.get("Read")
        if not read:
            continue
        fields = read.split()
        try:
            name, start, end = fields[0], int(fields[1]), int(fields[2])
        except (IndexError, ValueError):
            raise ReeferError(f"failed to parse Read attribute {read!r}") from None
        spans[name] = (start - 1, end)
    return spans


def extract_reads(
    spans: Dict[str, Tuple[int, int]],
    alignments: Iterable[Union[str, Path]],
) -> Generator[Sequence, None, None]:
    """Yield the sequence of each spanned read from the alignment files.

    Each read is extracted once. Spans of minus-strand reads refer to the
    original read and are mirrored onto the stored sequence; the result is
    left in reference orientation and marked as such.
    """
    pending = dict(spans)
    for path in alignments:
        with open_alignments(path) as bam:
            for segment in bam:
                span = pending.pop(segment.query_name, None)
                if span is None:
                    continue
                start, end = span
                seq = segment.query_sequence or ""
                name = f"{segment.query_name}//{start + 1}_{end}"
                desc = ""
                if segment.is_reverse:
                    name += "(-)"
                    start, end = mirror(start, end, len(seq))
                    desc = "(sequence revcomp relative to read)"
                if not 0 <= start <= end <= len(seq):
                    raise ReeferError(
                        f"{path}: span {span} out of range for read "
                        f"{segment.query_name!r} of length {len(seq)}"
                    )
                yield Sequence(name, seq[start:end], desc)
    if pending:
        logger.warning("%d reads named in the features were not found", len(pending))
