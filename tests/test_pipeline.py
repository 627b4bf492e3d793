"""End-to-end tests for the detection pipeline."""

import io

import pytest

from reefer.cigar import AlignmentRecord, parse_cigar
from reefer.io import GFFWriter, read_gff
from reefer.pipeline import (
    Diagnostic,
    ReeferConfig,
    candidate_events,
    discordances,
    run,
    to_feature,
)
from reefer.scoring import ScoringScheme
from reefer.signal import CandidateEvent


@pytest.fixture
def config():
    return ReeferConfig(
        window=50,
        min_size=50,
        min_query_gap=40,
        scoring=ScoringScheme(1, -2, -3),
    )


@pytest.fixture
def insertion_record(insertion_read):
    return AlignmentRecord(
        "read1", "chr1", 0, parse_cigar("500=100I500="),
        query_length=len(insertion_read), sequence=insertion_read,
    )


def _deletion_record():
    return AlignmentRecord("read2", "chr1", 1000, parse_cigar("50=80D50="), query_length=100)


class TestReeferConfig:
    def test_defaults(self):
        cfg = ReeferConfig()
        assert (cfg.window, cfg.min_size) == (50, 300)
        assert cfg.scoring == ScoringScheme(1, -1, -1)

    def test_rejects_zero_window(self):
        with pytest.raises(ValueError):
            ReeferConfig(window=0)

    def test_rejects_negative_min_size(self):
        with pytest.raises(ValueError):
            ReeferConfig(min_size=-1)

    def test_make_refiner(self, contigs):
        assert ReeferConfig(refine=False).make_refiner(contigs) is None
        refiner = ReeferConfig(ref_window=200).make_refiner(contigs)
        assert refiner.ref_window == 200


class TestCandidateEvents:
    def test_insertion(self, insertion_record, config):
        events = list(candidate_events(insertion_record, config))
        assert len(events) == 1
        ev = events[0]
        assert (ev.ref_start, ev.ref_end) == (490, 511)
        assert (ev.query_start, ev.query_end) == (493, 609)

    def test_deletion(self):
        cfg = ReeferConfig(window=10, min_size=50)
        events = list(candidate_events(_deletion_record(), cfg))
        assert len(events) == 1
        ev = events[0]
        assert (ev.ref_start, ev.ref_end) == (1050, 1132)
        assert (ev.query_start, ev.query_end) == (49, 52)

    def test_short_record_has_no_events(self, config):
        rec = AlignmentRecord("tiny", "chr1", 0, parse_cigar("20="), query_length=20)
        assert list(candidate_events(rec, config)) == []


class TestToFeature:
    def test_zero_length_widened(self, insertion_record):
        ev = CandidateEvent(insertion_record, 500, 500, 500, 600)
        feat = to_feature(ev)
        assert (feat.start, feat.end) == (500, 501)
        assert feat.get("Read") == "read1 501 600"
        assert feat.get("Dup") == ""

    def test_duplication_reported_when_refined(self, insertion_record):
        ev = CandidateEvent(insertion_record, 500, 500, 520, 620, duplication_length=20, non_colinear=True)
        assert to_feature(ev, refined=True).get("Dup") == "20"
        assert to_feature(ev, refined=False).get("Dup") == ""

    def test_strand_and_contig(self):
        rec = AlignmentRecord("r", "chr2", 0, parse_cigar("10="), strand="-", query_length=10)
        feat = to_feature(CandidateEvent(rec, 2, 8, 3, 4))
        assert (feat.seqname, feat.strand) == ("chr2", "-")


class TestDiscordances:
    def test_refined_insertion(self, insertion_record, config, contigs):
        results = list(discordances(insertion_record, config, config.make_refiner(contigs)))
        assert len(results) == 1
        feat, refined = results[0]
        assert refined
        assert (feat.start, feat.end) == (500, 501)
        assert feat.get("Read") == "read1 501 600"

    def test_unrefined_insertion(self, insertion_record, config):
        (feat, refined), = discordances(insertion_record, config)
        assert not refined
        assert (feat.start, feat.end) == (490, 511)
        assert feat.get("Read") == "read1 494 609"

    def test_minus_strand_query_mirrored(self, insertion_read, config):
        rec = AlignmentRecord(
            "read1", "chr1", 0, parse_cigar("500=100I500="), strand="-",
            query_length=len(insertion_read), sequence=insertion_read,
        )
        (feat, _), = discordances(rec, config)
        assert feat.strand == "-"
        assert feat.get("Read") == "read1 492 607"

    def test_minus_strand_refined(self, insertion_read, config, contigs):
        rec = AlignmentRecord(
            "read1", "chr1", 0, parse_cigar("500=100I500="), strand="-",
            query_length=len(insertion_read), sequence=insertion_read,
        )
        (feat, refined), = discordances(rec, config, config.make_refiner(contigs))
        assert refined
        assert feat.get("Read") == "read1 501 600"

    def test_failed_refinement_reported(self, insertion_record, contigs):
        cfg = ReeferConfig(window=50, min_size=50, scoring=ScoringScheme(1, -2, -3))
        seen = []
        (feat, refined), = discordances(insertion_record, cfg, cfg.make_refiner(contigs), seen.append)
        assert not refined
        assert (feat.start, feat.end) == (490, 511)
        assert len(seen) == 1
        assert seen[0].read == "read1"
        assert "insufficient query gap" in seen[0].reason

    def test_deletion_is_not_refined(self, contigs):
        cfg = ReeferConfig(window=10, min_size=50)
        seen = []
        (feat, refined), = discordances(_deletion_record(), cfg, cfg.make_refiner(contigs), seen.append)
        assert not refined
        assert (feat.start, feat.end) == (1050, 1132)
        assert feat.get("Read") == "read2 50 52"
        assert seen[0].reason.startswith("not an insertion")


class TestRun:
    def _records(self, insertion_read):
        def inserted(name):
            return AlignmentRecord(
                name, "chr1", 0, parse_cigar("500=100I500="),
                query_length=len(insertion_read), sequence=insertion_read,
            )

        clean = AlignmentRecord("clean", "chr1", 0, parse_cigar("1000="), query_length=1000)
        return [inserted("a"), inserted("b"), clean, inserted("c")]

    def test_header_and_features(self, insertion_read, config, contigs):
        out = io.StringIO()
        summary = run(self._records(insertion_read), GFFWriter(out), config, config.make_refiner(contigs))
        lines = out.getvalue().splitlines()
        assert lines[:3] == [
            "##gff-version 2",
            "# smoothing window=50",
            "# minimum feature length=50",
        ]
        assert summary.records == 4
        assert summary.features == 3
        assert summary.refined == 3
        assert summary.diagnostics == 0

        features = list(read_gff(io.StringIO(out.getvalue())))
        assert [f.get("Read").split()[0] for f in features] == ["a", "b", "c"]
        assert all((f.start, f.end) == (500, 501) for f in features)

    def test_workers_preserve_order(self, insertion_read, config, contigs):
        refiner = config.make_refiner(contigs)
        serial, threaded = io.StringIO(), io.StringIO()
        run(self._records(insertion_read), GFFWriter(serial), config, refiner)
        run(self._records(insertion_read), GFFWriter(threaded), config, refiner, workers=3)
        assert threaded.getvalue() == serial.getvalue()

    def test_counts_diagnostics(self, contigs):
        cfg = ReeferConfig(window=10, min_size=50)
        out = io.StringIO()
        summary = run([_deletion_record()], GFFWriter(out), cfg, cfg.make_refiner(contigs))
        assert summary.features == 1
        assert summary.refined == 0
        assert summary.diagnostics == 1


def test_diagnostic_is_value():
    assert Diagnostic("r", "x") == Diagnostic("r", "x")


class _RecordingWriter(GFFWriter):
    """Notes how many input records had been read at the first write."""

    def __init__(self, stream, pulled):
        super().__init__(stream)
        self.pulled = pulled
        self.pulled_at_first_write = None

    def write(self, feature):
        if self.pulled_at_first_write is None:
            self.pulled_at_first_write = self.pulled[0]
        super().write(feature)


def test_workers_stream_records(insertion_read, config, contigs):
    pulled = [0]

    def records():
        for k in range(50):
            pulled[0] += 1
            yield AlignmentRecord(
                f"read{k}", "chr1", 0, parse_cigar("500=100I500="),
                query_length=len(insertion_read), sequence=insertion_read,
            )

    writer = _RecordingWriter(io.StringIO(), pulled)
    summary = run(records(), writer, config, config.make_refiner(contigs), workers=2)
    assert summary.features == 50
    assert writer.pulled_at_first_write <= 4
