"""
I/O utilities for table serialization.

Provides consistent handling of output formats (CSV/Parquet) for the distance,
overlap, baseline, classification and significance tables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import polars as pl

OutputFormat = Literal["csv", "parquet"]


def write_dataframe(
    df: pl.DataFrame,
    path: Path,
    output_format: OutputFormat = "csv",
) -> None:
    """
    Write DataFrame to file in specified format.

    Parquet output uses zstd compression; per-window distance tables are
    large and compress well.

    Args:
        df: Polars DataFrame to write.
        path: Output file path.
        output_format: Output format - 'csv' or 'parquet'.
    """
    if output_format == "parquet":
        df.write_parquet(path, compression="zstd")
    else:
        df.write_csv(path)


def write_tables(
    tables: dict[str, pl.DataFrame],
    output_dir: Path,
    output_format: OutputFormat = "csv",
) -> dict[str, Path]:
    """
    Write a set of named tables into one directory.

    Args:
        tables: Mapping of table name to DataFrame; the name becomes the file stem.
        output_dir: Destination directory, created if missing.
        output_format: Output format - 'csv' or 'parquet'.

    Returns:
        Mapping of table name to the written path.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    written: dict[str, Path] = {}
    for name, df in tables.items():
        path = output_dir / f"{name}.{output_format}"
        write_dataframe(df, path, output_format)
        written[name] = path
    return written


def read_dataframe(path: Path, **kwargs: Any) -> pl.DataFrame:
    """
    Read DataFrame from file, auto-detecting format from extension.

    Supports: .csv, .tsv, .txt (tab-separated), .parquet, .csv.gz, .tsv.gz

    Args:
        path: Input file path.
        **kwargs: Passed to the polars reader for delimited files.

    Returns:
        Polars DataFrame.

    Raises:
        ValueError: If file extension is not recognized.
    """
    suffix = path.suffix.lower()
    name = path.name.lower()

    if suffix == ".parquet":
        return pl.read_parquet(path)
    if suffix == ".csv" or name.endswith(".csv.gz"):
        return pl.read_csv(path, **kwargs)
    if suffix in (".tsv", ".txt") or name.endswith(".tsv.gz"):
        return pl.read_csv(path, separator="\t", **kwargs)
    msg = f"Unrecognized file format: {path}"
    raise ValueError(msg)
