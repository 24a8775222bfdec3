"""
Genoscan: sliding-window genotype classification of viral sequences.

Classifies query sequences against a labeled reference panel using pairwise
distances over windows of a multiple sequence alignment. Per window, the
overlap between a query's distances to its nearest genotype and to all other
genotypes is compared with a reference-only baseline to call the genotype
confidently or flag it as uncertain.
"""

__version__ = "0.1.0"
__author__ = "Genoscan Team"

from genoscan.core.alignment import Alignment
from genoscan.core.metadata import SequenceMetadata
from genoscan.core.pipeline import AnalysisResult, GenotypeScanner
from genoscan.models.config import AnalysisConfig

__all__ = [
    "Alignment",
    "AnalysisConfig",
    "AnalysisResult",
    "GenotypeScanner",
    "SequenceMetadata",
    "__version__",
]
