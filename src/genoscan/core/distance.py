"""
Gap-aware pairwise distances over alignment spans.

Distances are p-distances with pairwise deletion: a column is skipped for a
pair when either sequence has a gap or missing symbol there. A pair with no
comparable column has no distance at all (NaN in matrices, None for scalars)
and is never reported as 0.0, which would make it look like the closest
possible relative.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Literal

import numpy as np
import polars as pl

from genoscan.core.alignment import Alignment
from genoscan.core.constants import BOUND_TOLERANCE, DEFAULT_GAP_SYMBOLS, DISTANCE_SCHEMA
from genoscan.core.exceptions import InvariantViolationError

logger = logging.getLogger(__name__)

PairingMode = Literal["directed", "undirected"]


def check_unit_interval(quantity: str, value: float) -> float:
    """
    Validate that a statistic lies in [0, 1].

    Values within BOUND_TOLERANCE of a bound are snapped onto it to absorb
    floating point error; anything further out is a defect.

    Raises:
        InvariantViolationError: If value is NaN or outside [0, 1].
    """
    if math.isnan(value) or value < -BOUND_TOLERANCE or value > 1.0 + BOUND_TOLERANCE:
        raise InvariantViolationError(quantity, value)
    return min(1.0, max(0.0, value))


def pairwise_distance(
    seq_a: str,
    seq_b: str,
    start: int = 0,
    end: int | None = None,
    gap_symbols: Iterable[str] = DEFAULT_GAP_SYMBOLS,
) -> float | None:
    """
    Proportion of differing sites between two aligned sequences.

    Args:
        seq_a: First aligned sequence.
        seq_b: Second aligned sequence (same length as seq_a).
        start: First column of the span (0-based, inclusive).
        end: Column after the span (exclusive); None means the sequence end.
        gap_symbols: Symbols excluded by pairwise deletion.

    Returns:
        mismatches / compared sites, or None when no site is comparable.

    Raises:
        ValueError: If the sequences differ in length.
    """
    if len(seq_a) != len(seq_b):
        msg = f"Sequences must be aligned (equal length), got {len(seq_a)} and {len(seq_b)}"
        raise ValueError(msg)

    a = np.array(list(seq_a[start:end].upper()), dtype="S1")
    b = np.array(list(seq_b[start:end].upper()), dtype="S1")
    gaps = np.array([s.upper().encode("ascii") for s in gap_symbols], dtype="S1")

    compared = ~(np.isin(a, gaps) | np.isin(b, gaps))
    sites = int(compared.sum())
    if sites == 0:
        return None

    mismatches = int(((a != b) & compared).sum())
    return check_unit_interval("distance", mismatches / sites)


def distance_matrix(alignment: Alignment, start: int = 0, end: int | None = None) -> np.ndarray:
    """
    All-against-all distances over one alignment span.

    Args:
        alignment: Aligned sequences.
        start: First column of the span (inclusive).
        end: Column after the span (exclusive); None means the alignment end.

    Returns:
        (n x n) float array, symmetric, NaN on the diagonal and wherever
        a pair has no comparable column.
    """
    block = alignment.matrix[:, start:end]
    valid = ~alignment.gap_mask[:, start:end]
    n = block.shape[0]

    distances = np.full((n, n), np.nan, dtype=np.float64)
    for i in range(n):
        compared = valid & valid[i]
        sites = compared.sum(axis=1)
        mismatches = ((block != block[i]) & compared).sum(axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            distances[i] = np.where(sites > 0, mismatches / sites, np.nan)

    np.fill_diagonal(distances, np.nan)

    finite = distances[~np.isnan(distances)]
    if finite.size and (finite.min() < 0.0 or finite.max() > 1.0):
        bad = finite[(finite < 0.0) | (finite > 1.0)][0]
        raise InvariantViolationError("distance", float(bad))

    return distances


def pair_mask(n: int, mode: PairingMode) -> np.ndarray:
    """
    Boolean selector of the pairs reported in a given pairing mode.

    'directed' keeps every ordered pair (i, j), i != j: N*(N-1) pairs.
    'undirected' keeps i < j only: N*(N-1)/2 pairs.
    """
    if mode == "directed":
        return ~np.eye(n, dtype=bool)
    if mode == "undirected":
        return np.triu(np.ones((n, n), dtype=bool), k=1)
    msg = f"Unknown pairing mode: {mode!r}"
    raise ValueError(msg)


def distance_table(
    alignment: Alignment,
    categories: np.ndarray,
    start: int = 0,
    end: int | None = None,
    mode: PairingMode = "undirected",
    include: np.ndarray | None = None,
    distances: np.ndarray | None = None,
) -> tuple[pl.DataFrame, int]:
    """
    Distance records for one span as a DataFrame.

    Args:
        alignment: Aligned sequences.
        categories: (n x n) pair category labels from pair_category_matrix.
        start: First column of the span.
        end: Column after the span; None means the alignment end.
        mode: 'directed' or 'undirected' pairing.
        include: Optional (n x n) boolean mask restricting the reported pairs.
        distances: Precomputed distance_matrix for the span, if available.

    Returns:
        Tuple of (DataFrame with DISTANCE_SCHEMA columns, number of selected
        pairs omitted because their distance is undefined).
    """
    end = alignment.length if end is None else end
    if distances is None:
        distances = distance_matrix(alignment, start, end)

    selected = pair_mask(len(alignment), mode)
    if include is not None:
        selected &= include

    undefined = selected & np.isnan(distances)
    keep = selected & ~undefined
    rows, cols = np.nonzero(keep)
    ids = np.array(alignment.ids, dtype=object)

    df = pl.DataFrame(
        {
            "seq1": ids[rows].tolist(),
            "seq2": ids[cols].tolist(),
            "start": [start] * len(rows),
            "end": [end] * len(rows),
            "distance": distances[rows, cols].tolist(),
            "pair_category": categories[rows, cols].tolist(),
        },
        schema=DISTANCE_SCHEMA,
    )

    omitted = int(undefined.sum())
    if omitted:
        logger.debug("Span %d-%d: %d pair(s) without comparable sites", start, end, omitted)
    return df, omitted


def directed_view(df: pl.DataFrame) -> pl.DataFrame:
    """
    Expand an undirected distance table to both orientations.

    Distances are symmetric, so the reversed rows carry the same values.
    """
    reversed_rows = df.with_columns(
        pl.col("seq2").alias("seq1"),
        pl.col("seq1").alias("seq2"),
    )
    return pl.concat([df, reversed_rows.select(df.columns)])
