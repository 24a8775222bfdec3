"""
Unit tests for custom exceptions.
"""

from __future__ import annotations

import pytest

from genoscan.core.exceptions import (
    AlignmentError,
    AlignmentLengthMismatchError,
    ConfigurationError,
    EmptyAlignmentError,
    GenoscanError,
    InvalidSymbolError,
    InvalidWindowError,
    InvariantViolationError,
    MetadataError,
    MetadataFormatError,
    MissingMetadataError,
)


class TestGenoscanError:
    """Tests for the base exception."""

    def test_message_only(self) -> None:
        error = GenoscanError("Something failed")
        assert str(error) == "Something failed"
        assert error.suggestion is None

    def test_with_suggestion(self) -> None:
        error = GenoscanError("Something failed", suggestion="Try again")
        assert "Suggestion: Try again" in error.full_message
        assert str(error) == error.full_message


class TestInputErrors:
    """Tests for fatal input-shape errors."""

    def test_length_mismatch_groups_ids(self) -> None:
        error = AlignmentLengthMismatchError({"a": 10, "b": 10, "c": 9})
        assert isinstance(error, AlignmentError)
        assert "9 bp: c" in error.message
        assert "10 bp: a, b" in error.message

    def test_length_mismatch_truncates_long_lists(self) -> None:
        error = AlignmentLengthMismatchError({f"s{i}": 10 for i in range(5)} | {"x": 3})
        assert "..." in error.message

    def test_empty_alignment(self) -> None:
        error = EmptyAlignmentError("panel.fasta")
        assert "panel.fasta" in error.message
        assert error.suggestion

    def test_invalid_symbol(self) -> None:
        error = InvalidSymbolError("query_7", "\u00e9", 12)
        assert isinstance(error, AlignmentError)
        assert "query_7" in error.message
        assert "column 12" in error.message
        assert error.suggestion

    def test_missing_metadata(self) -> None:
        error = MissingMetadataError({f"seq{i}" for i in range(7)})
        assert isinstance(error, MetadataError)
        assert error.message.startswith("7 alignment sequence(s)")
        assert "and 2 more" in error.message

    def test_metadata_format(self) -> None:
        error = MetadataFormatError("labels.tsv", "missing required column(s) id")
        assert "labels.tsv" in error.message
        assert "missing required column(s) id" in error.message


class TestInvariantViolationError:
    """Tests for bound violations."""

    def test_message(self) -> None:
        error = InvariantViolationError("overlap", 1.5)
        assert error.quantity == "overlap"
        assert error.value == 1.5
        assert "[0.0, 1.0]" in error.message


class TestConfigurationErrors:
    """Tests for configuration errors."""

    def test_invalid_window(self) -> None:
        error = InvalidWindowError(alignment_length=400, window_length=500)
        assert isinstance(error, ConfigurationError)
        assert "400" in error.message
        assert "below 400" in error.suggestion

    def test_catchable_as_base(self) -> None:
        with pytest.raises(GenoscanError):
            raise InvalidWindowError(10, 20)
