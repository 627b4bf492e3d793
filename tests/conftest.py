"""Shared test fixtures for reefer tests."""

import random

import pytest


def random_seq(length, seed, alphabet="ACG"):
    """Seeded random sequence. Omitting T leaves T free for inserts that match nothing."""
    rng = random.Random(seed)
    return "".join(rng.choice(alphabet) for _ in range(length))


@pytest.fixture
def reference():
    """1000bp synthetic contig with no T bases."""
    return random_seq(1000, seed=42)


@pytest.fixture
def contigs(reference):
    return {"chr1": reference}


@pytest.fixture
def insertion_read(reference):
    """Read with a clean 100bp insertion at reference position 500."""
    return reference[:500] + "T" * 100 + reference[500:]


@pytest.fixture
def duplication_read(reference):
    """Read with a 100bp insertion flanked by a 20bp target site duplication."""
    return reference[:520] + "T" * 100 + reference[500:]


@pytest.fixture
def sam_header():
    return "@HD\tVN:1.6\tSO:unsorted\n@SQ\tSN:chr1\tLN:1000\n"


@pytest.fixture
def write_sam(tmp_path, sam_header):
    """Write SAM lines under a header and return the file path."""

    def _write(lines, name="reads.sam"):
        path = tmp_path / name
        path.write_text(sam_header + "".join(line + "\n" for line in lines))
        return path

    return _write


def sam_line(name, flag, pos, cigar, seq, ref="chr1"):
    """One SAM line; *pos* is 0-based."""
    return "\t".join([name, str(flag), ref, str(pos + 1), "60", cigar, "*", "0", "0", seq, "*"])
