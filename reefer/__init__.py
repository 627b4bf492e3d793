"""
reefer: discordance detection and breakpoint refinement for long read alignments.

Runs of net-negative CIGAR cost along a read's alignment mark candidate
insertions and deletions. Insertion breakpoints are then tightened with a
pair of local alignments, which also exposes target site duplications.
"""

__version__ = "0.1.0"

from reefer.cigar import AlignmentOperation, AlignmentRecord, OpKind, cost_signal, parse_cigar
from reefer.signal import CandidateEvent, segment, smooth
from reefer.scoring import ScoringScheme
from reefer.align import Alignment, LocalAligner
from reefer.refine import BreakpointRefiner, Refinement
from reefer.pipeline import ReeferConfig, discordances, run
from reefer.io import read_fasta, write_fasta, read_alignments, read_contigs, Feature, GFFWriter
from reefer.errors import ReeferError

__all__ = [
    "AlignmentOperation",
    "AlignmentRecord",
    "OpKind",
    "cost_signal",
    "parse_cigar",
    "CandidateEvent",
    "segment",
    "smooth",
    "ScoringScheme",
    "Alignment",
    "LocalAligner",
    "BreakpointRefiner",
    "Refinement",
    "ReeferConfig",
    "discordances",
    "run",
    "read_fasta",
    "write_fasta",
    "read_alignments",
    "read_contigs",
    "Feature",
    "GFFWriter",
    "ReeferError",
]
