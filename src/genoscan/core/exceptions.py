"""
Custom exceptions with actionable guidance.

Input-shape problems are fatal and raised before any computation starts.
Bound violations on distances, overlaps and p-values indicate a defect in
the numerics and are raised as InvariantViolationError.
"""

from __future__ import annotations


class GenoscanError(Exception):
    """Base exception for genoscan errors."""

    def __init__(self, message: str, suggestion: str | None = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class AlignmentError(GenoscanError):
    """Base class for alignment input errors."""


class EmptyAlignmentError(AlignmentError):
    """Raised when an alignment holds no sequences or only empty ones."""

    def __init__(self, source: str = "alignment"):
        super().__init__(
            message=f"No aligned sequences found in {source}",
            suggestion=(
                "Check that the file is an aligned FASTA with at least two "
                "records and non-empty sequence lines."
            ),
        )


class AlignmentLengthMismatchError(AlignmentError):
    """Raised when aligned sequences do not share one length."""

    def __init__(self, lengths: dict[str, int]):
        by_length: dict[int, list[str]] = {}
        for seq_id, length in lengths.items():
            by_length.setdefault(length, []).append(seq_id)
        details = "; ".join(
            f"{length} bp: {', '.join(ids[:3])}{'...' if len(ids) > 3 else ''}"
            for length, ids in sorted(by_length.items())
        )
        super().__init__(
            message=f"Aligned sequences have unequal lengths ({details})",
            suggestion=(
                "All sequences must come from the same multiple sequence "
                "alignment. Re-run the aligner on the full sequence set."
            ),
        )
        self.lengths = lengths


class InvalidSymbolError(AlignmentError):
    """Raised when a sequence holds a symbol outside the ASCII range."""

    def __init__(self, seq_id: str, symbol: str, position: int):
        super().__init__(
            message=(
                f"Sequence '{seq_id}' has non-ASCII symbol {symbol!r} "
                f"at alignment column {position}"
            ),
            suggestion=(
                "Aligned sequences must use single-byte IUPAC symbols and gap "
                "characters. Check the file encoding and remove stray characters."
            ),
        )
        self.seq_id = seq_id
        self.symbol = symbol
        self.position = position


class MetadataError(GenoscanError):
    """Base class for sequence metadata errors."""


class MissingMetadataError(MetadataError):
    """Raised when alignment identifiers have no metadata entry."""

    def __init__(self, missing: set[str]):
        examples = ", ".join(sorted(missing)[:5])
        if len(missing) > 5:
            examples += f"... and {len(missing) - 5} more"
        super().__init__(
            message=f"{len(missing)} alignment sequence(s) have no metadata: {examples}",
            suggestion=(
                "Add a row for every alignment identifier to the metadata table. "
                "Query sequences are listed with an empty genotype column."
            ),
        )
        self.missing = missing


class MetadataFormatError(MetadataError):
    """Raised when the metadata table is malformed."""

    def __init__(self, path: str, problem: str):
        super().__init__(
            message=f"Malformed metadata table '{path}': {problem}",
            suggestion=(
                "Metadata must be a tab-separated file with the columns "
                "id, genotype and subtype (genotype and subtype may be empty)."
            ),
        )


class InvariantViolationError(GenoscanError):
    """Raised when a computed statistic falls outside its valid range."""

    def __init__(self, quantity: str, value: float, lower: float = 0.0, upper: float = 1.0):
        super().__init__(
            message=f"Computed {quantity} = {value!r} lies outside [{lower}, {upper}]",
            suggestion=(
                "This is an internal error in the distance or density computation. "
                "Please report it together with the input alignment."
            ),
        )
        self.quantity = quantity
        self.value = value


class ConfigurationError(GenoscanError):
    """Raised when configuration is invalid."""


class InvalidWindowError(ConfigurationError):
    """Raised when no complete window fits the alignment."""

    def __init__(self, alignment_length: int, window_length: int):
        super().__init__(
            message=(
                f"Window length {window_length} leaves no complete window in an "
                f"alignment of {alignment_length} columns"
            ),
            suggestion=(
                f"Choose a window length below {alignment_length} "
                "(windows must end strictly before the alignment end)."
            ),
        )
        self.alignment_length = alignment_length
        self.window_length = window_length
