"""
Pair classification from genotype/subtype labels.

Every sequence pair falls into exactly one PairCategory. The same function is
used for whole-alignment and per-window tables, so a pair keeps its category
across all spans.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from genoscan.models.classification import PairCategory, SequenceRecord


def classify_pair(first: SequenceRecord, second: SequenceRecord) -> PairCategory:
    """
    Assign the pair category implied by two sequences' labels.

    Precedence:
        1. both unlabeled -> Query-vs-query
        2. exactly one unlabeled -> Query-vs-reference
        3. different genotypes -> Between-genotype
        4. same genotype, either subtype unknown -> Same-genotype-unknown-subtype
        5. same genotype, same subtype -> Within-subtype
        6. same genotype, different subtypes -> Between-subtype

    Args:
        first: Labels of the first sequence.
        second: Labels of the second sequence.

    Returns:
        PairCategory (symmetric in its arguments).
    """
    if first.is_query and second.is_query:
        return PairCategory.QUERY_VS_QUERY
    if first.is_query or second.is_query:
        return PairCategory.QUERY_VS_REFERENCE
    if first.genotype != second.genotype:
        return PairCategory.BETWEEN_GENOTYPE
    if not first.subtype or not second.subtype:
        return PairCategory.SAME_GENOTYPE_UNKNOWN_SUBTYPE
    if first.subtype == second.subtype:
        return PairCategory.WITHIN_SUBTYPE
    return PairCategory.BETWEEN_SUBTYPE


def pair_category_matrix(records: Sequence[SequenceRecord]) -> np.ndarray:
    """
    Category label for every ordered pair of records.

    Labels depend only on metadata, so the matrix is built once and reused
    for every window. The diagonal is filled too but never read, since self
    pairs are always excluded.

    Args:
        records: Sequence labels in alignment row order.

    Returns:
        (n x n) object array of PairCategory values (as strings).
    """
    n = len(records)
    categories = np.empty((n, n), dtype=object)
    for i in range(n):
        for j in range(i, n):
            label = classify_pair(records[i], records[j]).value
            categories[i, j] = label
            categories[j, i] = label
    return categories
