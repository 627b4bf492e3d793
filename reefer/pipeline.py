"""Record-at-a-time discordance detection pipeline."""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Deque, Generator, Iterable, List, Mapping, Optional, Tuple, TypeVar

from reefer.cigar import AlignmentRecord, cost_signal
from reefer.io import Feature, GFFWriter
from reefer.refine import BreakpointRefiner
from reefer.scoring import ScoringScheme
from reefer.signal import CandidateEvent, segment, smooth

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ReeferConfig:
    """Detection and refinement parameters."""

    window: int = 50
    min_size: int = 300
    refine: bool = True
    ref_window: int = 300
    query_window: int = 500
    min_query_gap: int = 50
    min_ref_flank: int = 10
    scoring: ScoringScheme = field(default_factory=ScoringScheme)

    def __post_init__(self):
        if self.window < 1:
            raise ValueError(f"smoothing window must be at least 1: {self.window}")
        for name in ("min_size", "ref_window", "query_window", "min_query_gap", "min_ref_flank"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative: {getattr(self, name)}")

    def make_refiner(self, contigs: Mapping[str, str]) -> Optional[BreakpointRefiner]:
        if not self.refine:
            return None
        return BreakpointRefiner(
            contigs,
            ref_window=self.ref_window,
            query_window=self.query_window,
            min_query_gap=self.min_query_gap,
            min_ref_flank=self.min_ref_flank,
            scoring=self.scoring,
        )


@dataclass(frozen=True)
class Diagnostic:
    """Why an event of a read was reported without refinement."""

    read: str
    reason: str


@dataclass
class RunSummary:
    records: int = 0
    features: int = 0
    refined: int = 0
    diagnostics: int = 0


def candidate_events(
    record: AlignmentRecord, config: ReeferConfig
) -> Generator[CandidateEvent, None, None]:
    """Yield the discordant intervals of *record* in stored coordinates."""
    smoothed = smooth(cost_signal(record), config.window)
    if not smoothed:
        return
    yield from segment(record, smoothed, config.min_size)


def to_feature(event: CandidateEvent, refined: bool = False) -> Feature:
    """Build the GFF feature reported for *event*.

    GFF has no zero-length features, so an event whose reference
    breakpoints coincide is reported as a single base.
    """
    record = event.record
    end = event.ref_end
    if end == event.ref_start:
        end += 1
    attributes = [("Read", f"{record.name} {event.query_start + 1} {event.query_end}")]
    if refined and event.non_colinear:
        attributes.append(("Dup", str(event.duplication_length)))
    return Feature(
        seqname=record.reference_name,
        start=event.ref_start,
        end=end,
        strand=record.strand,
        attributes=attributes,
    )


def discordances(
    record: AlignmentRecord,
    config: ReeferConfig,
    refiner: Optional[BreakpointRefiner] = None,
    on_diagnostic: Optional[Callable[[Diagnostic], None]] = None,
) -> Generator[Tuple[Feature, bool], None, None]:
    """Yield ``(feature, refined)`` for every retained event of *record*.

    Query coordinates of minus-strand records are mirrored onto the
    original read before refinement and reporting. A failed refinement
    falls back to the unrefined event.
    """
    for event in candidate_events(record, config):
        if record.is_reverse:
            event = event.mirrored()
        refined = False
        if refiner is not None:
            result = refiner.refine(event)
            if result.ok:
                event = result.event
                refined = True
            else:
                diag = Diagnostic(record.name, result.reason)
                logger.debug("failed alignment %s: %s", diag.read, diag.reason)
                if on_diagnostic is not None:
                    on_diagnostic(diag)
        yield to_feature(event, refined), refined


def write_header(writer: GFFWriter, config: ReeferConfig) -> None:
    writer.comment(f"smoothing window={config.window}")
    writer.comment(f"minimum feature length={config.min_size}")


def run(
    records: Iterable[AlignmentRecord],
    writer: GFFWriter,
    config: ReeferConfig,
    refiner: Optional[BreakpointRefiner] = None,
    workers: int = 1,
) -> RunSummary:
    """Detect discordances in *records* and write them to *writer*.

    With more than one worker, records are processed concurrently and
    features are written from the calling thread in input order.
    """
    summary = RunSummary()

    def process(record: AlignmentRecord) -> Tuple[List[Tuple[Feature, bool]], int]:
        diagnostics: List[Diagnostic] = []
        features = list(discordances(record, config, refiner, diagnostics.append))
        return features, len(diagnostics)

    write_header(writer, config)
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            _write(_bounded_map(pool, process, records, 2 * workers), writer, summary)
    else:
        _write(map(process, records), writer, summary)

    logger.info(
        "processed %d records: %d features, %d refined, %d refinement failures",
        summary.records, summary.features, summary.refined, summary.diagnostics,
    )
    return summary


def _bounded_map(
    pool: Executor, fn: Callable[[T], R], items: Iterable[T], limit: int
) -> Generator[R, None, None]:
    """Like ``pool.map`` but pulls from *items* only while fewer than
    *limit* calls are pending. Results are yielded in input order.
    """
    pending: Deque[Future] = deque()
    for item in items:
        pending.append(pool.submit(fn, item))
        if len(pending) >= limit:
            yield pending.popleft().result()
    while pending:
        yield pending.popleft().result()


def _write(
    results: Iterable[Tuple[List[Tuple[Feature, bool]], int]],
    writer: GFFWriter,
    summary: RunSummary,
) -> None:
    for features, failures in results:
        summary.records += 1
        summary.diagnostics += failures
        for feature, refined in features:
            writer.write(feature)
            summary.features += 1
            summary.refined += refined
