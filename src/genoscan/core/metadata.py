"""
Sequence metadata handling for genotype/subtype labels.

Provides the label table consumed by the pair classifier, the window scanner
and the baseline calibrator. Rows with an empty genotype are unlabeled query
sequences; rows with a genotype but no subtype have an unknown subtype.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import polars as pl

from genoscan.core.alignment import Alignment
from genoscan.core.exceptions import MetadataFormatError, MissingMetadataError
from genoscan.core.io_utils import read_dataframe
from genoscan.models.classification import SequenceRecord

logger = logging.getLogger(__name__)


class SequenceMetadata:
    """Genotype/subtype labels for every aligned sequence.

    Loads metadata from a TSV/CSV file with columns id, genotype, subtype and
    provides record lookups plus the normalized label DataFrame used for
    joins against distance tables.

    Example:
        >>> metadata = SequenceMetadata.from_file(Path("labels.tsv"))
        >>> metadata.validate_against(alignment)
        >>> metadata["ref1"].label
        '1a'
    """

    def __init__(self, records: Iterable[SequenceRecord]) -> None:
        """Initialize from sequence records.

        Args:
            records: SequenceRecord per identifier. Later duplicates replace
                earlier ones.
        """
        self._records: dict[str, SequenceRecord] = {}
        for record in records:
            if record.id in self._records:
                logger.warning("Duplicate metadata row for %s; keeping the last one", record.id)
            self._records[record.id] = record

        self._df = pl.DataFrame(
            {
                "id": [r.id for r in self._records.values()],
                "genotype": [r.genotype for r in self._records.values()],
                "subtype": [r.subtype for r in self._records.values()],
            },
            schema={"id": pl.Utf8, "genotype": pl.Int64, "subtype": pl.Utf8},
        )

    @classmethod
    def from_dataframe(cls, df: pl.DataFrame, source: str = "<dataframe>") -> SequenceMetadata:
        """Build metadata from a DataFrame with id, genotype and subtype columns.

        Raises:
            MetadataFormatError: If required columns are missing or labels invalid.
        """
        missing = [c for c in ("id", "genotype") if c not in df.columns]
        if missing:
            raise MetadataFormatError(source, f"missing required column(s) {', '.join(missing)}")

        if "subtype" not in df.columns:
            df = df.with_columns(pl.lit(None, dtype=pl.Utf8).alias("subtype"))

        df = df.select(
            pl.col("id").cast(pl.Utf8),
            pl.col("genotype").cast(pl.Utf8),
            pl.col("subtype").cast(pl.Utf8),
        )

        records = []
        for row in df.iter_rows(named=True):
            try:
                row["genotype"] = _parse_genotype(row["genotype"])
                records.append(SequenceRecord(**row))
            except ValueError as e:
                raise MetadataFormatError(source, f"invalid row {row}: {e}") from e

        return cls(records)

    @classmethod
    def from_file(cls, path: Path) -> SequenceMetadata:
        """Load metadata from a TSV or CSV file.

        Args:
            path: Path to the metadata table.

        Returns:
            SequenceMetadata instance

        Raises:
            FileNotFoundError: If file does not exist
            MetadataFormatError: If file is missing required columns
        """
        if not path.exists():
            msg = f"Metadata file not found: {path}"
            raise FileNotFoundError(msg)

        try:
            df = read_dataframe(path, infer_schema_length=0)
        except ValueError as e:
            raise MetadataFormatError(str(path), str(e)) from e

        return cls.from_dataframe(df, source=str(path))

    @property
    def dataframe(self) -> pl.DataFrame:
        """Normalized label table (id, genotype, subtype)."""
        return self._df

    def __getitem__(self, seq_id: str) -> SequenceRecord:
        return self._records[seq_id]

    def __contains__(self, seq_id: object) -> bool:
        return seq_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def records_for(self, ids: Iterable[str]) -> list[SequenceRecord]:
        """Records in the order of the given identifiers."""
        return [self._records[seq_id] for seq_id in ids]

    def query_ids(self, ids: Iterable[str] | None = None) -> list[str]:
        """Unlabeled sequence identifiers, restricted to ids when given."""
        pool = self._records.keys() if ids is None else ids
        return [seq_id for seq_id in pool if self._records[seq_id].is_query]

    def reference_ids(self, ids: Iterable[str] | None = None) -> list[str]:
        """Labeled sequence identifiers, restricted to ids when given."""
        pool = self._records.keys() if ids is None else ids
        return [seq_id for seq_id in pool if not self._records[seq_id].is_query]

    def validate_against(self, alignment: Alignment) -> None:
        """Ensure every alignment identifier has a metadata entry.

        Raises:
            MissingMetadataError: If any alignment identifier is absent
        """
        missing = {seq_id for seq_id in alignment.ids if seq_id not in self._records}
        if missing:
            raise MissingMetadataError(missing)

        extra = len(self._records) - len(alignment)
        if extra > 0:
            logger.debug("%d metadata rows have no alignment sequence", extra)

    def representatives(self, ids: Iterable[str] | None = None) -> list[str]:
        """One reference per genotype+subtype combination.

        The lexicographically smallest identifier of each combination is
        chosen so the selection is reproducible.

        Args:
            ids: Restrict the candidates to these identifiers.

        Returns:
            Representative identifiers sorted by (genotype, subtype).
        """
        chosen: dict[tuple[int, str], str] = {}
        for seq_id in self.reference_ids(ids):
            record = self._records[seq_id]
            key = (record.genotype, record.subtype)
            if key not in chosen or seq_id < chosen[key]:
                chosen[key] = seq_id
        return [chosen[key] for key in sorted(chosen)]

    def subtypes_per_genotype(self, ids: Iterable[str] | None = None) -> dict[int, set[str]]:
        """Known (non-empty) subtypes observed for each genotype."""
        subtypes: dict[int, set[str]] = {}
        for seq_id in self.reference_ids(ids):
            record = self._records[seq_id]
            bucket = subtypes.setdefault(record.genotype, set())
            if record.subtype:
                bucket.add(record.subtype)
        return subtypes


def _parse_genotype(value: str | None) -> int | None:
    """Empty cells mean an unlabeled query; anything else must be an integer."""
    if value is None or not value.strip():
        return None
    return int(value.strip())
