"""
Overlap-based genotype classification.

This package contains the overlap statistic, the reference baselines it is
calibrated against, the per-window call rule and whole-alignment
significance testing.
"""

from genoscan.core.classification.baseline import BaselineCalibrator
from genoscan.core.classification.overlap import (
    nearest_group_overlaps,
    overlap_coefficient,
    reference_overlaps,
)
from genoscan.core.classification.significance import genotype_significance
from genoscan.core.classification.thresholds import apply_window_calls

__all__ = [
    "BaselineCalibrator",
    "apply_window_calls",
    "genotype_significance",
    "nearest_group_overlaps",
    "overlap_coefficient",
    "reference_overlaps",
]
