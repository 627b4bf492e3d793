"""CLI entry point for reefer."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from reefer.blasr import Blasr
from reefer.errors import ReeferError
from reefer.extract import extract_reads, read_spans
from reefer.io import GFFWriter, read_alignments, read_contigs, write_fasta
from reefer.pipeline import ReeferConfig, run
from reefer.scoring import ScoringScheme

logger = logging.getLogger("reefer")


def _scoring(text: str) -> ScoringScheme:
    try:
        return ScoringScheme.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reefer",
        description="reefer: discordance detection and breakpoint refinement for long reads",
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="verbose logging of breakpoint adjustment")
    parser.add_argument("--err", help="log file name (default to stderr)")
    sub = parser.add_subparsers(dest="command")

    # detect sub-command
    det = sub.add_parser("detect", help="Find discordant regions of aligned reads")
    det.add_argument("--reads", required=True, help="input fasta sequence read file name")
    det.add_argument("--reference", default="", help="input reference sequence file name")
    det.add_argument("--suff", default="", help="input reference suffix array path")
    det.add_argument("--blasr", default="", help="path to blasr if not in $PATH")
    det.add_argument("--procs", type=int, default=1, help="number of blasr threads")
    det.add_argument("--run-blasr", action=argparse.BooleanOptionalAction, default=True,
                     help="run blasr; --no-run-blasr reuses existing <reads>.blasr output")
    det.add_argument("--bam", action="store_true",
                     help="use bam file inputs if not running blasr")
    det.add_argument("--window", type=int, default=50, help="smoothing window")
    det.add_argument("--min", dest="min_size", type=int, default=300,
                     help="minimum feature size")
    det.add_argument("--refine", action=argparse.BooleanOptionalAction, default=True,
                     help="use paired SW alignment to refine breakpoints")
    det.add_argument("--ref-window", type=int, default=300,
                     help="window for refinement around middle of reference indel")
    det.add_argument("--read-window", dest="query_window", type=int, default=500,
                     help="window for refinement either side of middle of read indel")
    det.add_argument("--min-read-gap", dest="min_query_gap", type=int, default=50,
                     help="minimum distance between read breakpoints")
    det.add_argument("--min-ref-flank", type=int, default=10,
                     help="minimum distance from end of reference window")
    det.add_argument("--align", dest="scoring", type=_scoring, default=ScoringScheme(1, -1, -1),
                     help="match, mismatch and gap scores for breakpoint refinement")
    det.add_argument("--workers", type=int, default=1, help="number of records processed concurrently")
    det.add_argument("--out", help="output GFF file name (default <reads>.gff, - for stdout)")

    # extract sub-command
    ext = sub.add_parser("extract", help="Extract discordant read segments named in a reefer GFF")
    ext.add_argument("alignments", nargs="+", help="SAM or BAM files holding the reads")
    ext.add_argument("--gff", help="reefer GFF file (default stdin)")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=args.err,
    )

    try:
        if args.command == "detect":
            _cmd_detect(parser, args)
        elif args.command == "extract":
            _cmd_extract(args)
    except (ReeferError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _cmd_detect(parser: argparse.ArgumentParser, args) -> None:
    if args.run_blasr and not args.reference:
        parser.error("--reference is required when running blasr")
    if args.refine and not args.reference:
        parser.error("--reference is required for breakpoint refinement")

    config = ReeferConfig(
        window=args.window,
        min_size=args.min_size,
        refine=args.refine,
        ref_window=args.ref_window,
        query_window=args.query_window,
        min_query_gap=args.min_query_gap,
        min_ref_flank=args.min_ref_flank,
        scoring=args.scoring,
    )
    refiner = config.make_refiner(read_contigs(args.reference)) if config.refine else None

    ext = "bam" if args.bam and not args.run_blasr else "sam"
    blasr = Blasr.for_reefer(args.reads, args.reference, args.suff, args.procs, ext, args.blasr)
    if args.run_blasr:
        logger.info("finding alignments for reads in %s", args.reads)
        aligned = blasr.run(sys.stderr)
    else:
        aligned = Path(blasr.aligned)

    out = args.out or f"{Path(args.reads).name}.gff"
    logger.info("writing features to %s", out)
    if out == "-":
        run(read_alignments(aligned), GFFWriter(sys.stdout), config, refiner, args.workers)
    else:
        with open(out, "w") as fh:
            run(read_alignments(aligned), GFFWriter(fh), config, refiner, args.workers)


def _cmd_extract(args) -> None:
    if args.gff:
        with open(args.gff) as fh:
            spans = read_spans(fh)
    else:
        spans = read_spans(sys.stdin)
    write_fasta(sys.stdout, extract_reads(spans, args.alignments))


if __name__ == "__main__":
    main()
