"""
Whole-alignment significance of nearest-genotype assignments.

For each query, the distances to its nearest genotype are tested against the
distances to every other genotype with a one-sided Mann-Whitney U test
(nearest distances stochastically smaller). The largest p-value across the
competing genotypes is reported: a query is distinguishable from all other
genotypes only if it is distinguishable from the closest competitor.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import numpy as np
import polars as pl
from scipy.stats import mannwhitneyu

from genoscan.core.classification.overlap import select_nearest_group
from genoscan.core.constants import SIGNIFICANCE_SCHEMA
from genoscan.core.distance import check_unit_interval

logger = logging.getLogger(__name__)

# Rank tests on fewer observations per group are not computable
MIN_GROUP_SIZE = 2


def rank_test_p_value(nearest: np.ndarray, other: np.ndarray) -> float | None:
    """
    One-sided p-value that nearest distances are smaller than other distances.

    Returns:
        p-value in [0, 1], or None when either group has fewer than two
        observations.
    """
    if len(nearest) < MIN_GROUP_SIZE or len(other) < MIN_GROUP_SIZE:
        return None
    result = mannwhitneyu(nearest, other, alternative="less")
    return check_unit_interval("p_value", float(result.pvalue))


def genotype_significance(
    pairs: pl.DataFrame,
    query_ids: Iterable[str],
) -> tuple[pl.DataFrame, int]:
    """
    Maximum one-sided p-value per query across competing genotypes.

    Args:
        pairs: Whole-alignment query distances oriented with the query as
            subject; columns subject, partner_genotype, distance.
        query_ids: Queries to report, in output order.

    Returns:
        Tuple of (DataFrame with SIGNIFICANCE_SCHEMA columns; number of
        genotype comparisons skipped as not computable). max_p_value is null
        when no comparison could be tested, including queries without any
        reference distance.
    """
    grouped = {}
    if not pairs.is_empty():
        grouped = {
            key[0]: group
            for key, group in pairs.group_by(["subject"], maintain_order=True)
        }

    rows: list[tuple[str, int | None, float | None, int, int]] = []
    untestable = 0

    for query_id in query_ids:
        group = grouped.get(query_id)
        if group is None or group.is_empty():
            logger.debug("No reference distances for %s; significance not computable", query_id)
            rows.append((query_id, None, None, 0, 0))
            continue

        genotypes = group["partner_genotype"].to_numpy()
        distances = group["distance"].to_numpy()
        nearest = select_nearest_group(genotypes, distances)
        near = distances[genotypes == nearest]

        p_values = []
        skipped = 0
        for other in sorted(set(genotypes.tolist()) - {nearest}):
            p = rank_test_p_value(near, distances[genotypes == other])
            if p is None:
                skipped += 1
            else:
                p_values.append(p)

        untestable += skipped
        max_p = max(p_values) if p_values else None
        rows.append((query_id, nearest, max_p, len(p_values), skipped))

    if untestable:
        logger.info("%d genotype comparison(s) had too few observations to test", untestable)

    return pl.DataFrame(rows, schema=SIGNIFICANCE_SCHEMA, orient="row"), untestable
