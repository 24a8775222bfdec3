"""
Unit tests for the end-to-end genotyping run.
"""

from __future__ import annotations

import json
from pathlib import Path

import polars as pl
import pytest

from genoscan.core.alignment import Alignment
from genoscan.core.exceptions import InvalidWindowError, MissingMetadataError
from genoscan.core.metadata import SequenceMetadata
from genoscan.core.pipeline import (
    AnalysisResult,
    GenotypeScanner,
    OmissionReport,
    annotate_windows,
    query_reference_pairs,
)
from genoscan.models.classification import SequenceRecord
from genoscan.models.config import AnalysisConfig, GenomeFeature

SMALL_WINDOWS = AnalysisConfig(window_length=100, step=50, num_workers=1)


@pytest.fixture
def panel_result(panel_alignment: Alignment, panel_metadata: SequenceMetadata) -> AnalysisResult:
    return GenotypeScanner(panel_alignment, panel_metadata, SMALL_WINDOWS).run()


class TestOmissionReport:
    """Tests for omission tallies."""

    def test_merge(self) -> None:
        merged = OmissionReport(1, 2, 3).merge(OmissionReport(10, 0, 1))
        assert merged == OmissionReport(11, 2, 4)
        assert merged.total == 17

    def test_to_dict(self) -> None:
        assert OmissionReport().to_dict() == {
            "undefined_distances": 0,
            "uncomputable_overlaps": 0,
            "untestable_groups": 0,
        }


class TestAnnotateWindows:
    """Tests for genome feature annotation."""

    def test_midpoint_lookup(self) -> None:
        df = pl.DataFrame({"start": [0, 100, 400], "end": [100, 200, 500]})
        features = [
            GenomeFeature(name="core", start=0, end=120),
            GenomeFeature(name="E1", start=120, end=300),
        ]
        annotated = annotate_windows(df, features)
        assert annotated["feature"].to_list() == ["core", "E1", None]

    def test_first_feature_wins_on_overlap(self) -> None:
        df = pl.DataFrame({"start": [0], "end": [100]})
        features = [
            GenomeFeature(name="outer", start=0, end=1000),
            GenomeFeature(name="inner", start=40, end=60),
        ]
        assert annotate_windows(df, features)["feature"].to_list() == ["outer"]

    def test_no_features(self) -> None:
        df = pl.DataFrame({"start": [0], "end": [100]})
        assert annotate_windows(df, [])["feature"].to_list() == [None]


class TestQueryReferencePairs:
    """Tests for orienting query distances."""

    def test_only_query_as_subject(self, toy_metadata: SequenceMetadata) -> None:
        distances = pl.DataFrame({
            "seq1": ["query1", "ref1", "ref1"],
            "seq2": ["ref3", "query1", "ref2"],
            "start": [0, 0, 0],
            "end": [20, 20, 20],
            "distance": [0.2, 0.1, 0.05],
            "pair_category": ["Query-vs-reference", "Query-vs-reference", "Between-subtype"],
        })
        pairs = query_reference_pairs(distances, toy_metadata)
        assert pairs.rows() == [("query1", "ref3", 0, 20, 2, 0.2)]


class TestGenotypeScanner:
    """Tests for the full run on a synthetic panel."""

    def test_window_count(self, panel_result: AnalysisResult) -> None:
        assert panel_result.window_count == 6
        assert panel_result.summary()["windows"] == 6

    def test_whole_alignment_distances(self, panel_result: AnalysisResult) -> None:
        n = 11
        assert panel_result.distances.height == n * (n - 1) // 2
        assert panel_result.distances["distance"].is_between(0.0, 1.0).all()

    def test_query_assigned_to_its_genotype(self, panel_result: AnalysisResult) -> None:
        overlaps = panel_result.overlaps
        assert overlaps.height == 6
        assert set(overlaps["nearest_group"]) == {1}
        assert set(overlaps["call"]) <= {"1", "uncertain"}
        assert overlaps["overlap"].is_between(0.0, 1.0).all()

    def test_calls_follow_reference_threshold(self, panel_result: AnalysisResult) -> None:
        overlaps = panel_result.overlaps
        expected = [
            ref is not None and q < ref
            for q, ref in zip(overlaps["overlap"], overlaps["reference_overlap"], strict=True)
        ]
        assert overlaps["confident"].to_list() == expected

    def test_reference_overlap_per_window(self, panel_result: AnalysisResult) -> None:
        assert panel_result.reference_overlaps.height == 6
        assert panel_result.reference_overlaps["reference_overlap"].is_between(0.0, 1.0).all()

    def test_significance(self, panel_result: AnalysisResult) -> None:
        row = panel_result.significance.row(0, named=True)
        assert row["query_id"] == "query_1"
        assert row["nearest_genotype"] == 1
        assert row["tests_run"] == 2
        assert row["max_p_value"] < 0.1

    def test_no_omissions_on_clean_panel(self, panel_result: AnalysisResult) -> None:
        assert panel_result.omissions.undefined_distances == 0
        assert panel_result.omissions.untestable_groups == 0

    def test_baselines_cover_all_rules(self, panel_result: AnalysisResult) -> None:
        assert set(panel_result.baselines["rule"]) == {
            "leave_one_out", "leave_genotype_out", "leave_subtype_out",
        }

    def test_feature_annotation(self, panel_alignment: Alignment, panel_metadata: SequenceMetadata) -> None:
        config = SMALL_WINDOWS.with_overrides(
            genome_features=(GenomeFeature(name="first_half", start=0, end=200),)
        )
        result = GenotypeScanner(panel_alignment, panel_metadata, config).run()
        features = result.overlaps.sort("start")["feature"].to_list()
        assert features == ["first_half"] * 3 + [None] * 3

    def test_progress_callback(self, panel_alignment: Alignment, panel_metadata: SequenceMetadata) -> None:
        stages: list[str] = []
        GenotypeScanner(panel_alignment, panel_metadata, SMALL_WINDOWS).run(stages.append)
        assert stages[0] == "Computing whole-alignment distances"
        assert len(stages) == 6

    def test_window_too_long(self, toy_alignment: Alignment, toy_metadata: SequenceMetadata) -> None:
        scanner = GenotypeScanner(toy_alignment, toy_metadata, AnalysisConfig(window_length=20))
        with pytest.raises(InvalidWindowError):
            scanner.run()

    def test_missing_metadata_is_fatal(self, toy_alignment: Alignment) -> None:
        metadata = SequenceMetadata([SequenceRecord(id="ref1", genotype=1, subtype="a")])
        with pytest.raises(MissingMetadataError):
            GenotypeScanner(toy_alignment, metadata, SMALL_WINDOWS).run()

    def test_undefined_distances_counted(self, toy_metadata: SequenceMetadata) -> None:
        aln = Alignment({
            "ref1": "ACACACACAC" + "-----CACAC" + "ACACACACAC",
            "ref2": "ACACCCACAC" + "ACACA-----" + "ACACAAACAC",
            "ref3": "CCACACACAA" + "A" * 10 + "ACACACACAA",
            "query1": "ACACACCCAC" + "C" * 10 + "ACACACCCAC",
        })
        config = AnalysisConfig(window_length=10, step=10, num_workers=1)
        result = GenotypeScanner(aln, toy_metadata, config).run()
        # Window [10, 20): ref1-ref2 share no ungapped column
        assert result.omissions.undefined_distances == 1
        assert result.window_count == 2

    def test_single_reference_groups_are_never_confident(
        self, toy_alignment: Alignment, toy_metadata: SequenceMetadata
    ) -> None:
        """Genotype 2 and each genotype-1 subtype hold one reference only."""
        config = AnalysisConfig(window_length=10, step=5, num_workers=1)
        result = GenotypeScanner(toy_alignment, toy_metadata, config).run()
        assert result.window_count == 2
        assert result.overlaps.is_empty()
        assert result.reference_overlaps.is_empty()
        assert result.omissions.uncomputable_overlaps >= 2 * result.window_count
        assert result.summary()["queries"] == []


class TestAnalysisResultWrite:
    """Tests for writing result tables."""

    def test_writes_all_tables(self, panel_result: AnalysisResult, temp_dir: Path) -> None:
        written = panel_result.write(temp_dir / "out", "csv")
        assert set(written) == {
            "distances", "window_distances", "overlaps", "reference_overlaps",
            "baselines", "significance", "call_summary", "summary",
        }
        assert all(path.exists() for path in written.values())

    def test_summary_json(self, panel_result: AnalysisResult, temp_dir: Path) -> None:
        written = panel_result.write(temp_dir / "out", "parquet")
        summary = json.loads(written["summary"].read_text())
        assert summary["window_length"] == 100
        assert summary["queries"][0]["query_id"] == "query_1"
        assert summary["queries"][0]["nearest_genotype"] == 1
        assert set(summary["omissions"]) == {
            "undefined_distances", "uncomputable_overlaps", "untestable_groups",
        }

    def test_overlaps_round_trip(self, panel_result: AnalysisResult, temp_dir: Path) -> None:
        written = panel_result.write(temp_dir / "out", "parquet")
        assert pl.read_parquet(written["overlaps"]).equals(panel_result.overlaps)
