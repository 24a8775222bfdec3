"""
Density overlap between distance distributions.

The overlap coefficient of two samples is the integral of the pointwise
minimum of their kernel density estimates. It is 1 for identical samples,
0 for well separated ones, and is used here to measure how distinguishable a
sequence's distances to its nearest genotype are from its distances to all
other genotypes.

Tie-break policy: when several genotypes share the minimum distance to a
sequence, the numerically lowest genotype label is chosen as nearest group.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import lru_cache

import numpy as np
import polars as pl
from scipy.integrate import trapezoid

from genoscan.core.constants import NEAREST_OVERLAP_SCHEMA, REFERENCE_OVERLAP_SCHEMA
from genoscan.core.distance import check_unit_interval
from genoscan.models.classification import PairCategory
from genoscan.models.config import OverlapConfig

logger = logging.getLogger(__name__)

_SQRT_2PI = np.sqrt(2.0 * np.pi)

# Smallest sample a density is estimated from
MIN_SAMPLE_SIZE = 2


@lru_cache(maxsize=8)
def density_grid(grid_points: int) -> np.ndarray:
    """Evenly spaced evaluation points over [0, 1]."""
    return np.linspace(0.0, 1.0, grid_points)


def estimate_density(values: np.ndarray, config: OverlapConfig) -> np.ndarray:
    """
    Kernel density estimate of a distance sample on the [0, 1] grid.

    The estimate is renormalized to unit mass over [0, 1], which folds kernel
    mass lost past the bounds back into the supported range.

    Args:
        values: Sample of at least MIN_SAMPLE_SIZE distances.
        config: Kernel, bandwidth and grid settings.

    Returns:
        Density values at density_grid(config.grid_points).
    """
    grid = density_grid(config.grid_points)
    u = (grid[None, :] - np.asarray(values, dtype=np.float64)[:, None]) / config.bandwidth

    if config.kernel == "gaussian":
        weights = np.exp(-0.5 * u * u) / _SQRT_2PI
    else:
        weights = np.where(np.abs(u) <= 1.0, 0.75 * (1.0 - u * u), 0.0)

    density = weights.sum(axis=0) / (len(values) * config.bandwidth)
    mass = trapezoid(density, grid)
    return density / mass


def overlap_coefficient(
    first: Sequence[float] | np.ndarray,
    second: Sequence[float] | np.ndarray,
    config: OverlapConfig | None = None,
) -> float | None:
    """
    Shared density mass of two distance samples.

    Args:
        first: Distances of the first group.
        second: Distances of the second group.
        config: Density estimation settings (defaults if None).

    Returns:
        Overlap in [0, 1], or None when either sample has fewer than
        MIN_SAMPLE_SIZE values and no density can be estimated from it.

    Raises:
        InvariantViolationError: If the integral leaves [0, 1].
    """
    first = np.asarray(first, dtype=np.float64)
    second = np.asarray(second, dtype=np.float64)
    if first.size < MIN_SAMPLE_SIZE or second.size < MIN_SAMPLE_SIZE:
        return None

    config = config or OverlapConfig()
    grid = density_grid(config.grid_points)
    shared = np.minimum(estimate_density(first, config), estimate_density(second, config))
    return check_unit_interval("overlap", float(trapezoid(shared, grid)))


def select_nearest_group(genotypes: Sequence[int] | np.ndarray, distances: Sequence[float] | np.ndarray) -> int:
    """
    Genotype holding the minimum distance; ties go to the lowest label.

    Args:
        genotypes: Partner genotype per observation.
        distances: Distance per observation (same length).

    Returns:
        Nearest genotype label.

    Raises:
        ValueError: If no observation is given.
    """
    if len(genotypes) == 0:
        msg = "Cannot select a nearest group from zero observations"
        raise ValueError(msg)

    best: dict[int, float] = {}
    for genotype, distance in zip(genotypes, distances, strict=True):
        genotype = int(genotype)
        if genotype not in best or distance < best[genotype]:
            best[genotype] = float(distance)

    return min(best, key=lambda g: (best[g], g))


def nearest_group_overlaps(
    pairs: pl.DataFrame,
    config: OverlapConfig | None = None,
) -> tuple[pl.DataFrame, int]:
    """
    Overlap of "to nearest group" vs "to all other groups" per subject and window.

    Args:
        pairs: Oriented distances with columns subject, start, end,
            partner_genotype, distance. Partners must be labeled references.
        config: Density estimation settings.

    Returns:
        Tuple of (DataFrame with subject, start, end, nearest_group, overlap;
        number of subject-windows omitted because one side had fewer
        than MIN_SAMPLE_SIZE distances).
    """
    config = config or OverlapConfig()
    rows: list[tuple[str, int, int, int, float]] = []
    omitted = 0

    if pairs.is_empty():
        return pl.DataFrame(schema=NEAREST_OVERLAP_SCHEMA), 0

    for (subject, start, end), group in pairs.group_by(
        ["subject", "start", "end"], maintain_order=True
    ):
        genotypes = group["partner_genotype"].to_numpy()
        distances = group["distance"].to_numpy()

        nearest = select_nearest_group(genotypes, distances)
        is_nearest = genotypes == nearest
        value = overlap_coefficient(distances[is_nearest], distances[~is_nearest], config)
        if value is None:
            omitted += 1
            continue
        rows.append((subject, start, end, nearest, value))

    df = pl.DataFrame(rows, schema=NEAREST_OVERLAP_SCHEMA, orient="row")
    return df.sort(["subject", "start"]), omitted


def reference_overlaps(
    reference_pairs: pl.DataFrame,
    config: OverlapConfig | None = None,
    windows: Sequence[tuple[int, int]] | None = None,
) -> tuple[pl.DataFrame, int]:
    """
    Between-genotype vs between-subtype overlap among references, per window.

    This is the adaptive threshold a query overlap is compared against: it is
    low where genotypes separate cleanly from subtypes and high where the
    region is too conserved to tell them apart.

    Args:
        reference_pairs: Reference-only distance table (DISTANCE_SCHEMA).
        config: Density estimation settings.
        windows: Expected windows; windows without rows count as omitted.

    Returns:
        Tuple of (DataFrame with start, end, reference_overlap; number of
        windows omitted because a category had fewer than
        MIN_SAMPLE_SIZE distances).
    """
    config = config or OverlapConfig()
    grouped: dict[tuple[int, int], pl.DataFrame] = {}
    if not reference_pairs.is_empty():
        grouped = {
            (start, end): group
            for (start, end), group in reference_pairs.group_by(["start", "end"], maintain_order=True)
        }

    spans = [(w[0], w[1]) for w in windows] if windows is not None else sorted(grouped)
    rows: list[tuple[int, int, float]] = []
    omitted = 0

    for span in spans:
        group = grouped.get(span)
        if group is None:
            omitted += 1
            continue
        between_genotype = group.filter(
            pl.col("pair_category") == PairCategory.BETWEEN_GENOTYPE.value
        )["distance"].to_numpy()
        between_subtype = group.filter(
            pl.col("pair_category") == PairCategory.BETWEEN_SUBTYPE.value
        )["distance"].to_numpy()

        value = overlap_coefficient(between_genotype, between_subtype, config)
        if value is None:
            omitted += 1
            continue
        rows.append((span[0], span[1], value))

    return pl.DataFrame(rows, schema=REFERENCE_OVERLAP_SCHEMA, orient="row"), omitted
