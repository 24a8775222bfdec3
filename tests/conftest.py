"""
Shared pytest fixtures for genoscan tests.

Provides small hand-checkable alignments, a synthetic reference panel with
clear genotype structure, and temporary input files for CLI testing.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import numpy as np
import polars as pl
import pytest
from typer.testing import CliRunner

from genoscan.core.alignment import Alignment
from genoscan.core.metadata import SequenceMetadata
from genoscan.models.classification import SequenceRecord

# =============================================================================
# Four-sequence example (two symbols plus gap)
# =============================================================================


@pytest.fixture
def toy_sequences() -> dict[str, str]:
    """Four aligned sequences of length 20 over {A, C} with gaps."""
    return {
        "ref1": "ACACACACAC-CACACACAC",
        "ref2": "ACACACCCAC-CACAAACAC",
        "ref3": "CCACACACAA--ACACACAA",
        "query1": "ACACAC-CACACCCACACAC",
    }


@pytest.fixture
def toy_alignment(toy_sequences: dict[str, str]) -> Alignment:
    return Alignment(toy_sequences)


@pytest.fixture
def toy_records() -> list[SequenceRecord]:
    return [
        SequenceRecord(id="ref1", genotype=1, subtype="a"),
        SequenceRecord(id="ref2", genotype=1, subtype="b"),
        SequenceRecord(id="ref3", genotype=2, subtype=""),
        SequenceRecord(id="query1"),
    ]


@pytest.fixture
def toy_metadata(toy_records: list[SequenceRecord]) -> SequenceMetadata:
    return SequenceMetadata(toy_records)


# =============================================================================
# Synthetic reference panel
# =============================================================================


def _mutate(seq: np.ndarray, rng: np.random.Generator, rate: float) -> np.ndarray:
    """Substitute a fraction of sites with a different nucleotide."""
    out = seq.copy()
    sites = np.nonzero(rng.random(len(out)) < rate)[0]
    for i in sites:
        choices = [b for b in "ACGT" if b != out[i]]
        out[i] = choices[rng.integers(len(choices))]
    return out


PANEL_LAYOUT: dict[str, tuple[int, str]] = {
    "g1a_1": (1, "a"),
    "g1a_2": (1, "a"),
    "g1b_1": (1, "b"),
    "g1b_2": (1, "b"),
    "g2a_1": (2, "a"),
    "g2a_2": (2, "a"),
    "g2b_1": (2, "b"),
    "g2b_2": (2, "b"),
    "g3a_1": (3, "a"),
    "g3a_2": (3, "a"),
}


@pytest.fixture
def panel_sequences() -> dict[str, str]:
    """
    Reference panel with three genotypes plus one query close to subtype 1a.

    Genotypes diverge by ~30% from a common root, subtypes by ~8% from their
    genotype and individual sequences by ~2% from their subtype. Length 400.
    """
    rng = np.random.default_rng(20240601)
    root = rng.choice(list("ACGT"), size=400)

    genotypes = {g: _mutate(root, rng, 0.30) for g in (1, 2, 3)}
    subtypes = {
        (g, s): _mutate(genotypes[g], rng, 0.08)
        for g, s in sorted(set(PANEL_LAYOUT.values()))
    }

    sequences = {
        seq_id: "".join(_mutate(subtypes[key], rng, 0.02))
        for seq_id, key in PANEL_LAYOUT.items()
    }
    sequences["query_1"] = "".join(_mutate(subtypes[(1, "a")], rng, 0.03))
    return sequences


@pytest.fixture
def panel_alignment(panel_sequences: dict[str, str]) -> Alignment:
    return Alignment(panel_sequences)


@pytest.fixture
def panel_metadata() -> SequenceMetadata:
    records = [
        SequenceRecord(id=seq_id, genotype=genotype, subtype=subtype)
        for seq_id, (genotype, subtype) in PANEL_LAYOUT.items()
    ]
    records.append(SequenceRecord(id="query_1"))
    return SequenceMetadata(records)


# =============================================================================
# Temporary File Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Path:
    """Temporary directory that is cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def panel_fasta(temp_dir: Path, panel_sequences: dict[str, str]) -> Path:
    """Aligned FASTA of the synthetic panel."""
    path = temp_dir / "panel.fasta"
    path.write_text("".join(f">{seq_id}\n{seq}\n" for seq_id, seq in panel_sequences.items()))
    return path


@pytest.fixture
def panel_metadata_file(temp_dir: Path, panel_sequences: dict[str, str]) -> Path:
    """Metadata TSV of the synthetic panel; the query has an empty genotype."""
    rows = []
    for seq_id in panel_sequences:
        genotype, subtype = PANEL_LAYOUT.get(seq_id, (None, None))
        rows.append({
            "id": seq_id,
            "genotype": "" if genotype is None else str(genotype),
            "subtype": subtype or "",
        })
    path = temp_dir / "labels.tsv"
    pl.DataFrame(rows).write_csv(path, separator="\t")
    return path


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
