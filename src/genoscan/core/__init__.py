"""
Core algorithms for sliding-window genotype classification.

This module contains the alignment and label containers together with the
distance, window scanning and overlap machinery built on them.
"""

from genoscan.core.alignment import Alignment
from genoscan.core.metadata import SequenceMetadata

__all__ = [
    "Alignment",
    "SequenceMetadata",
]
