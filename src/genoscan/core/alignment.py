"""
Multiple sequence alignment container backed by a NumPy symbol matrix.

Sequences are stored as rows of a single-byte matrix with identifiers mapped
to integer row indices, so window slices and pairwise comparisons are plain
array operations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

import numpy as np

from genoscan.core.constants import DEFAULT_GAP_SYMBOLS
from genoscan.core.exceptions import (
    AlignmentLengthMismatchError,
    EmptyAlignmentError,
    InvalidSymbolError,
)

logger = logging.getLogger(__name__)


class Alignment:
    """
    Immutable aligned sequence set with a precomputed gap mask.

    Row order follows the insertion order of the input mapping. Symbols are
    upper-cased on load; any symbol in gap_symbols is treated as missing data
    and excluded from comparisons (pairwise deletion).

    Example:
        >>> aln = Alignment({"a": "AC-T", "b": "ACGT"})
        >>> aln.length
        4
        >>> aln.ids
        ('a', 'b')
    """

    __slots__ = ("_gap_mask", "_gap_symbols", "_id_to_idx", "_ids", "_length", "_matrix")

    def __init__(
        self,
        sequences: Mapping[str, str],
        gap_symbols: Iterable[str] = DEFAULT_GAP_SYMBOLS,
    ) -> None:
        """
        Build the symbol matrix from an identifier -> sequence mapping.

        Args:
            sequences: Ordered mapping of identifier to aligned sequence.
            gap_symbols: Single-character symbols treated as gap/missing.

        Raises:
            EmptyAlignmentError: If no sequences, or only empty ones, are given.
            AlignmentLengthMismatchError: If sequences differ in length.
            InvalidSymbolError: If a sequence holds a non-ASCII symbol.
        """
        if not sequences:
            raise EmptyAlignmentError()

        lengths = {seq_id: len(seq) for seq_id, seq in sequences.items()}
        if len(set(lengths.values())) > 1:
            raise AlignmentLengthMismatchError(lengths)

        self._length: int = next(iter(lengths.values()))
        if self._length == 0:
            raise EmptyAlignmentError()

        self._ids: tuple[str, ...] = tuple(sequences.keys())
        self._id_to_idx: dict[str, int] = {seq_id: idx for idx, seq_id in enumerate(self._ids)}
        self._gap_symbols: tuple[str, ...] = tuple(s.upper() for s in gap_symbols)

        # One byte per alignment column
        self._matrix: np.ndarray = np.vstack([
            np.frombuffer(_encode_symbols(seq_id, seq), dtype="S1")
            for seq_id, seq in sequences.items()
        ])

        gap_bytes = np.array([s.encode("ascii") for s in self._gap_symbols], dtype="S1")
        self._gap_mask: np.ndarray = np.isin(self._matrix, gap_bytes)

    @classmethod
    def from_fasta(
        cls,
        path: Path,
        gap_symbols: Iterable[str] = DEFAULT_GAP_SYMBOLS,
    ) -> Alignment:
        """
        Load an aligned FASTA file.

        Record identifiers are taken from the first word of each header.

        Args:
            path: Path to aligned FASTA.
            gap_symbols: Single-character symbols treated as gap/missing.

        Returns:
            Alignment instance.

        Raises:
            EmptyAlignmentError: If the file contains no records.
            AlignmentLengthMismatchError: If records differ in length.
            InvalidSymbolError: If a record holds a non-ASCII symbol.
        """
        from Bio import SeqIO

        sequences: dict[str, str] = {}
        for record in SeqIO.parse(str(path), "fasta"):
            if record.id in sequences:
                logger.warning("Duplicate alignment identifier %s; keeping the first record", record.id)
                continue
            sequences[record.id] = str(record.seq)

        if not sequences:
            raise EmptyAlignmentError(str(path))

        logger.info("Loaded %d aligned sequences from %s", len(sequences), path)
        return cls(sequences, gap_symbols=gap_symbols)

    @property
    def ids(self) -> tuple[str, ...]:
        """Sequence identifiers in row order."""
        return self._ids

    @property
    def length(self) -> int:
        """Number of alignment columns."""
        return self._length

    @property
    def matrix(self) -> np.ndarray:
        """Symbol matrix (n_sequences x length, dtype S1)."""
        return self._matrix

    @property
    def gap_mask(self) -> np.ndarray:
        """Boolean matrix, True where a symbol is a gap or missing."""
        return self._gap_mask

    @property
    def gap_symbols(self) -> tuple[str, ...]:
        return self._gap_symbols

    def __len__(self) -> int:
        """Number of sequences."""
        return len(self._ids)

    def __contains__(self, seq_id: object) -> bool:
        return seq_id in self._id_to_idx

    def index(self, seq_id: str) -> int:
        """Row index of a sequence identifier."""
        return self._id_to_idx[seq_id]

    def sequence(self, seq_id: str) -> str:
        """Aligned sequence for an identifier, upper-cased."""
        return self._matrix[self._id_to_idx[seq_id]].tobytes().decode("ascii")


def _encode_symbols(seq_id: str, seq: str) -> bytes:
    """Upper-cased single-byte encoding of one aligned sequence."""
    try:
        return seq.encode("ascii").upper()
    except UnicodeEncodeError as e:
        raise InvalidSymbolError(seq_id, seq[e.start], e.start) from e
