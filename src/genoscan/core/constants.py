"""
Constants used throughout the genoscan package.

Centralizes default window settings, density estimation parameters,
symbol handling and the column schemas of every output table.
"""

from __future__ import annotations

import polars as pl

# =============================================================================
# Alignment Constants
# =============================================================================

# Symbols treated as gap or missing data (excluded by pairwise deletion)
DEFAULT_GAP_SYMBOLS: tuple[str, ...] = ("-", "N", "?", ".")

# =============================================================================
# Window Scanning Defaults
# =============================================================================

DEFAULT_WINDOW_LENGTH = 500
DEFAULT_STEP = 50

# =============================================================================
# Overlap Statistic Defaults
#
# Distances live on [0, 1]; a bandwidth of 0.01 resolves differences of about
# one mismatch per hundred compared sites.
# =============================================================================

DEFAULT_BANDWIDTH = 0.01
DEFAULT_GRID_POINTS = 1001
DEFAULT_KERNEL = "epanechnikov"

# Absolute slack allowed on [0, 1] bounds before a value counts as a defect
BOUND_TOLERANCE = 1e-9

# =============================================================================
# Classification Labels
# =============================================================================

UNCERTAIN_CALL = "uncertain"

# =============================================================================
# Table Schemas
# =============================================================================

DISTANCE_SCHEMA: dict[str, pl.DataType] = {
    "seq1": pl.Utf8,
    "seq2": pl.Utf8,
    "start": pl.Int64,
    "end": pl.Int64,
    "distance": pl.Float64,
    "pair_category": pl.Utf8,
}

NEAREST_OVERLAP_SCHEMA: dict[str, pl.DataType] = {
    "subject": pl.Utf8,
    "start": pl.Int64,
    "end": pl.Int64,
    "nearest_group": pl.Int64,
    "overlap": pl.Float64,
}

REFERENCE_OVERLAP_SCHEMA: dict[str, pl.DataType] = {
    "start": pl.Int64,
    "end": pl.Int64,
    "reference_overlap": pl.Float64,
}

BASELINE_SCHEMA: dict[str, pl.DataType] = {
    "rule": pl.Utf8,
    "representative": pl.Utf8,
    "start": pl.Int64,
    "end": pl.Int64,
    "overlap": pl.Float64,
}

SIGNIFICANCE_SCHEMA: dict[str, pl.DataType] = {
    "query_id": pl.Utf8,
    "nearest_genotype": pl.Int64,
    "max_p_value": pl.Float64,
    "tests_run": pl.Int64,
    "tests_skipped": pl.Int64,
}
