"""Shared conftest for integration tests."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def cli_output_dir(temp_dir: Path) -> Path:
    """Output directory for CLI runs (not created in advance)."""
    return temp_dir / "results"
