"""Tests for the local alignment engine."""

import numpy as np
import pytest

from reefer.align import Alignment, AlignmentSegment, LocalAligner
from reefer.scoring import ScoringScheme, encode

from conftest import random_seq


@pytest.fixture
def aligner():
    return LocalAligner(ScoringScheme(1, -2, -3))


class TestAlignment:
    def test_empty(self):
        aln = Alignment()
        assert not aln
        assert aln.first is None
        assert aln.last is None
        assert aln.cigar == ""

    def test_cigar(self):
        aln = Alignment(segments=(
            AlignmentSegment("M", 0, 5, 0, 5),
            AlignmentSegment("I", 5, 5, 5, 7),
            AlignmentSegment("M", 5, 9, 7, 11),
        ), score=3)
        assert aln.cigar == "5M2I4M"


class TestLocalAligner:
    def test_identical(self, aligner):
        seq = random_seq(40, seed=1)
        aln = aligner.align(seq, seq)
        assert aln.score == 40
        assert aln.segments == (AlignmentSegment("M", 0, 40, 0, 40),)

    def test_embedded_query(self, aligner):
        ref = random_seq(100, seed=2)
        query = "T" * 10 + ref[30:70] + "T" * 10
        aln = aligner.align(ref, query)
        assert aln.score == 40
        assert (aln.first.ref_start, aln.first.query_start) == (30, 10)
        assert (aln.last.ref_end, aln.last.query_end) == (70, 50)

    def test_no_similarity(self, aligner):
        assert not aligner.align("AAAA", "TTTT")

    def test_empty_sequences(self, aligner):
        assert not aligner.align("", "ACGT")
        assert not aligner.align("ACGT", "")

    def test_mismatch_inside_alignment(self, aligner):
        ref = random_seq(60, seed=3)
        query = ref[:30] + "T" + ref[31:]
        aln = aligner.align(ref, query)
        # 59 matches and one mismatch beat either half on its own.
        assert aln.score == 59 - 2
        assert len(aln.segments) == 1
        assert aln.last.ref_end == 60

    def test_gapped_alignment(self, aligner):
        # The deleted bases match nothing in the query, so the gap has one
        # possible placement.
        ref = random_seq(40, seed=4) + "TT" + random_seq(38, seed=8)
        query = ref[:40] + ref[42:]
        aln = aligner.align(ref, query)
        assert aln.score == 78 - 3 * 2
        assert [s.kind for s in aln.segments] == ["M", "D", "M"]
        gap = aln.segments[1]
        assert (gap.ref_start, gap.ref_end) == (40, 42)
        assert gap.query_start == gap.query_end == 40
        assert aln.last.ref_end == 80
        assert aln.last.query_end == 78

    def test_insertion_in_query(self, aligner):
        ref = random_seq(80, seed=5)
        query = ref[:40] + "TT" + ref[40:]
        aln = aligner.align(ref, query)
        assert [s.kind for s in aln.segments] == ["M", "I", "M"]
        ins = aln.segments[1]
        assert (ins.query_start, ins.query_end) == (40, 42)
        assert ins.ref_start == ins.ref_end == 40

    def test_deterministic(self, aligner):
        ref = random_seq(200, seed=6)
        query = random_seq(150, seed=7)
        assert aligner.align(ref, query) == aligner.align(ref, query)


def test_inconsistent_matrix_raises():
    aligner = LocalAligner()
    H = np.array([[0, 0], [0, 5]])
    enc = encode("A")
    with pytest.raises(RuntimeError, match="inconsistent traceback"):
        aligner._traceback(H, enc, enc, 1, 1)
