"""
Unit tests for window generation and the per-window scanner.
"""

from __future__ import annotations

import polars as pl
import pytest

from genoscan.core.alignment import Alignment
from genoscan.core.metadata import SequenceMetadata
from genoscan.core.windows import Window, WindowScanner, generate_windows
from genoscan.models.classification import PairCategory, SequenceRecord


class TestGenerateWindows:
    """Tests for window layout."""

    def test_reference_layout(self) -> None:
        windows = generate_windows(1000, 500, 50)
        assert len(windows) == 10
        assert [w.start for w in windows] == list(range(0, 500, 50))
        assert windows[-1] == Window(450, 950)

    def test_window_ending_at_alignment_end_dropped(self) -> None:
        """start + length must be strictly below the alignment length."""
        windows = generate_windows(1000, 500, 100)
        assert [w.start for w in windows] == [0, 100, 200, 300, 400]
        assert all(w.end < 1000 for w in windows)

    def test_deterministic(self) -> None:
        assert generate_windows(777, 120, 33) == generate_windows(777, 120, 33)

    def test_window_not_fitting(self) -> None:
        assert generate_windows(400, 400, 50) == []
        assert generate_windows(300, 400, 50) == []

    @pytest.mark.parametrize(("length", "step"), [(0, 10), (10, 0), (-5, 10)])
    def test_invalid_parameters(self, length: int, step: int) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            generate_windows(1000, length, step)

    def test_midpoint(self) -> None:
        assert Window(100, 200).midpoint == 150


class TestWindowScanner:
    """Tests for per-window distance tables."""

    def test_table_shapes(self, panel_alignment: Alignment, panel_metadata: SequenceMetadata) -> None:
        windows = generate_windows(panel_alignment.length, 100, 50)
        scan = WindowScanner(panel_alignment, panel_metadata, num_workers=1).scan(windows)

        n_refs = len(panel_metadata.reference_ids())
        n_queries = len(panel_metadata.query_ids())
        n_windows = len(windows)

        assert scan.omitted_pairs == 0
        # Query pairs appear in both orientations
        assert scan.query_distances.height == n_windows * 2 * n_queries * n_refs
        assert scan.reference_distances.height == n_windows * n_refs * (n_refs - 1) // 2

    def test_query_table_categories(self, panel_alignment: Alignment, panel_metadata: SequenceMetadata) -> None:
        windows = generate_windows(panel_alignment.length, 100, 50)
        scan = WindowScanner(panel_alignment, panel_metadata, num_workers=1).scan(windows)
        assert set(scan.query_distances["pair_category"]) == {PairCategory.QUERY_VS_REFERENCE.value}
        assert PairCategory.QUERY_VS_REFERENCE.value not in set(scan.reference_distances["pair_category"])

    def test_windows_recorded(self, panel_alignment: Alignment, panel_metadata: SequenceMetadata) -> None:
        windows = generate_windows(panel_alignment.length, 100, 50)
        scan = WindowScanner(panel_alignment, panel_metadata, num_workers=1).scan(windows)
        spans = scan.reference_distances.select("start", "end").unique().sort("start")
        assert spans.rows() == [(w.start, w.end) for w in windows]

    def test_gapped_window_omits_pairs(self) -> None:
        aln = Alignment({
            "r1": "ACGTACGT----ACGTACGTACGT",
            "r2": "ACGT----ACGTACGTACGAACGT",
            "q": "ACGTACGTACGTACGTACGTACGT",
        })
        metadata = SequenceMetadata([
            SequenceRecord(id="r1", genotype=1, subtype="a"),
            SequenceRecord(id="r2", genotype=2, subtype="a"),
            SequenceRecord(id="q"),
        ])
        # In [4, 12) r1 and r2 share no ungapped column
        scan = WindowScanner(aln, metadata, num_workers=1).scan([Window(4, 12)])
        assert scan.omitted_pairs == 1
        assert scan.reference_distances.is_empty()
        assert scan.query_distances.height == 4

    def test_empty_window_list(self, toy_alignment: Alignment, toy_metadata: SequenceMetadata) -> None:
        scan = WindowScanner(toy_alignment, toy_metadata, num_workers=1).scan([])
        assert scan.query_distances.is_empty()
        assert scan.query_distances.columns == ["seq1", "seq2", "start", "end", "distance", "pair_category"]
        assert scan.omitted_pairs == 0

    def test_parallel_matches_serial(self, panel_alignment: Alignment, panel_metadata: SequenceMetadata) -> None:
        windows = generate_windows(panel_alignment.length, 100, 50)
        serial = WindowScanner(panel_alignment, panel_metadata, num_workers=1).scan(windows)
        parallel = WindowScanner(panel_alignment, panel_metadata, num_workers=2).scan(windows)
        assert serial.reference_distances.equals(parallel.reference_distances)
        assert isinstance(parallel.query_distances, pl.DataFrame)
