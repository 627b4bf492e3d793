"""Command line construction and execution for the BLASR long read aligner."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional

from reefer.errors import BlasrError

logger = logging.getLogger(__name__)


@dataclass
class Blasr:
    """Parameters for a blasr run.

    Only the options reefer needs are modelled. Empty or false values are
    left off the command line.
    """

    reads: str = ""
    genome: str = ""
    cmd: str = "blasr"
    suffix_array: str = ""
    aligned: str = ""
    unaligned: str = ""
    sam: bool = False
    clipping: str = ""
    sam_qv: bool = False
    cigar_seq_match: bool = False
    best_n: int = 0
    procs: int = 0

    @classmethod
    def for_reefer(
        cls,
        reads: str,
        genome: str,
        suffix_array: str = "",
        procs: int = 1,
        ext: str = "sam",
        cmd: str = "",
    ) -> "Blasr":
        """Settings producing soft-clipped SAM with ``=``/``X`` CIGAR operations."""
        base = Path(reads).name
        return cls(
            reads=reads,
            genome=genome,
            cmd=cmd or "blasr",
            suffix_array=suffix_array,
            aligned=f"{base}.blasr.{ext}",
            unaligned=f"{base}.blasr.unmapped.fasta",
            sam=True,
            clipping="soft",
            sam_qv=True,
            cigar_seq_match=True,
            best_n=1,
            procs=procs,
        )

    def build_command(self) -> List[str]:
        if not self.reads or not self.genome:
            raise BlasrError("blasr: missing required argument: reads and genome must be set")
        args = [self.cmd, self.reads, self.genome]
        if self.suffix_array:
            args += ["--sa", self.suffix_array]
        if self.aligned:
            args += ["--out", self.aligned]
        if self.sam:
            args.append("--sam")
        if self.clipping:
            args += ["--clipping", self.clipping]
        if self.sam_qv:
            args.append("--printSAMQV")
        if self.cigar_seq_match:
            args.append("--cigarUseSeqMatch")
        if self.unaligned:
            args += ["--unaligned", self.unaligned]
        if self.best_n:
            args += ["--bestn", str(self.best_n)]
        if self.procs:
            args += ["--nproc", str(self.procs)]
        return args

    def run(self, log: Optional[IO] = None) -> Path:
        """Run blasr, sending its output to *log*, and return the alignment path."""
        args = self.build_command()
        if shutil.which(args[0]) is None:
            raise BlasrError(f"could not find {args[0]!r}")
        logger.info("running %s", " ".join(args))
        try:
            subprocess.run(args, stdout=log, stderr=log, check=True)
        except subprocess.CalledProcessError as exc:
            raise BlasrError(f"blasr failed (code {exc.returncode})") from exc
        except OSError as exc:
            raise BlasrError(f"failed to run blasr: {exc}") from exc
        return Path(self.aligned)
