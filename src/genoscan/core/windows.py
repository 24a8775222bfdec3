"""
Sliding-window distance scanning.

Windows are fixed-length spans stepped along the alignment. Each window is
scanned independently: one distance matrix per window, from which the query
table (ordered pairs with at least one query) and the reference table
(unordered reference-only pairs) are cut.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import NamedTuple

import numpy as np
import polars as pl

from genoscan.core.alignment import Alignment
from genoscan.core.constants import DISTANCE_SCHEMA
from genoscan.core.distance import distance_matrix, distance_table
from genoscan.core.metadata import SequenceMetadata
from genoscan.core.pairs import pair_category_matrix
from genoscan.core.parallel import parallel_map

logger = logging.getLogger(__name__)


class Window(NamedTuple):
    """Half-open alignment span [start, end)."""

    start: int
    end: int

    @property
    def midpoint(self) -> int:
        return (self.start + self.end) // 2


def generate_windows(alignment_length: int, window_length: int, step: int) -> list[Window]:
    """
    Window spans for an alignment.

    Starts are 0, step, 2*step, ... kept while start + window_length is
    strictly below the alignment length, so the trailing partial window is
    never produced. N=1000, L=500, S=50 gives starts 0..450 (10 windows).

    Args:
        alignment_length: Number of alignment columns (N).
        window_length: Window length (L).
        step: Distance between consecutive starts (S).

    Returns:
        Windows in coordinate order (empty when L >= N).

    Raises:
        ValueError: If window_length or step is not positive.
    """
    if window_length < 1 or step < 1:
        msg = f"window_length and step must be positive, got {window_length} and {step}"
        raise ValueError(msg)

    return [
        Window(start, start + window_length)
        for start in range(0, max(alignment_length - window_length, 0), step)
    ]


@dataclass
class WindowScan:
    """Distance tables collected over all windows."""

    query_distances: pl.DataFrame
    reference_distances: pl.DataFrame
    omitted_pairs: int


def _scan_window_worker(
    window: Window,
    alignment: Alignment,
    categories: np.ndarray,
    query_mask: np.ndarray,
    reference_mask: np.ndarray,
) -> tuple[pl.DataFrame, pl.DataFrame, int]:
    """
    Worker function for scanning one window.

    Must be at module level for multiprocessing pickling.
    """
    distances = distance_matrix(alignment, window.start, window.end)
    query_df, query_omitted = distance_table(
        alignment, categories, window.start, window.end,
        mode="directed", include=query_mask, distances=distances,
    )
    reference_df, reference_omitted = distance_table(
        alignment, categories, window.start, window.end,
        mode="undirected", include=reference_mask, distances=distances,
    )
    return query_df, reference_df, query_omitted + reference_omitted


class WindowScanner:
    """
    Per-window distance scanner over an alignment.

    Query table: directed pairs where at least one side is a query, so each
    query appears as seq1 against every reference. Reference table:
    undirected pairs among labeled references, used for the reference
    overlap and baseline resampling.

    Example:
        scanner = WindowScanner(alignment, metadata, num_workers=4)
        scan = scanner.scan(generate_windows(alignment.length, 500, 50))
    """

    def __init__(
        self,
        alignment: Alignment,
        metadata: SequenceMetadata,
        num_workers: int | None = None,
    ) -> None:
        self.alignment = alignment
        self.metadata = metadata
        self.num_workers = num_workers

        records = metadata.records_for(alignment.ids)
        is_query = np.array([r.is_query for r in records], dtype=bool)

        self._categories = pair_category_matrix(records)
        self._query_mask = is_query[:, None] | is_query[None, :]
        self._reference_mask = ~self._query_mask

    @property
    def categories(self) -> np.ndarray:
        """Pair category matrix in alignment row order."""
        return self._categories

    def scan(
        self,
        windows: Sequence[Window],
        progress_callback: Callable[[int], None] | None = None,
    ) -> WindowScan:
        """
        Compute distance tables for every window.

        Pairs without comparable sites in a window are omitted from that
        window's tables and counted; the scan always covers every window.

        Args:
            windows: Spans from generate_windows.
            progress_callback: Optional callback(windows_completed).

        Returns:
            WindowScan with concatenated query and reference tables.
        """
        worker_fn = partial(
            _scan_window_worker,
            alignment=self.alignment,
            categories=self._categories,
            query_mask=self._query_mask,
            reference_mask=self._reference_mask,
        )
        results = parallel_map(worker_fn, windows, self.num_workers, progress_callback)

        query_frames = [r[0] for r in results]
        reference_frames = [r[1] for r in results]
        omitted = sum(r[2] for r in results)

        logger.info(
            "Scanned %d windows; %d pair observation(s) omitted for lack of comparable sites",
            len(windows), omitted,
        )

        return WindowScan(
            query_distances=_concat(query_frames),
            reference_distances=_concat(reference_frames),
            omitted_pairs=omitted,
        )


def _concat(frames: list[pl.DataFrame]) -> pl.DataFrame:
    if not frames:
        return pl.DataFrame(schema=DISTANCE_SCHEMA)
    return pl.concat(frames)
