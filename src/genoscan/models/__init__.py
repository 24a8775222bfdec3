"""
Pydantic data models for genoscan.

Provides type-safe models for sequence labels, pair categories,
resampling rules and analysis configuration.
"""

from genoscan.models.classification import BaselineRule, PairCategory, SequenceRecord
from genoscan.models.config import AnalysisConfig, GenomeFeature, OverlapConfig

__all__ = [
    "AnalysisConfig",
    "BaselineRule",
    "GenomeFeature",
    "OverlapConfig",
    "PairCategory",
    "SequenceRecord",
]
