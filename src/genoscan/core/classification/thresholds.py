"""
Per-window call rules.

A query's nearest-group assignment in a window is confident only when its
overlap falls below the reference overlap of the same window. The threshold
is positional: conserved regions, where references of different genotypes
already overlap heavily, demand less of a query than hypervariable ones.
"""

from __future__ import annotations

import polars as pl

from genoscan.core.constants import UNCERTAIN_CALL


def apply_window_calls(
    query_overlaps: pl.DataFrame,
    reference_overlaps: pl.DataFrame,
) -> pl.DataFrame:
    """
    Attach the reference overlap and the resulting call to each query window.

    Required columns in query_overlaps:
        - subject, start, end, nearest_group, overlap

    Required columns in reference_overlaps:
        - start, end, reference_overlap

    Args:
        query_overlaps: Output of nearest_group_overlaps for query sequences.
        reference_overlaps: Output of reference_overlaps.

    Returns:
        query_overlaps with reference_overlap, confident (bool) and call
        columns. call is the nearest genotype as text when confident and
        "uncertain" otherwise, including windows without a reference overlap.
    """
    joined = query_overlaps.join(
        reference_overlaps.select("start", "end", "reference_overlap"),
        on=["start", "end"],
        how="left",
    )

    confident = (
        pl.col("reference_overlap").is_not_null()
        & (pl.col("overlap") < pl.col("reference_overlap"))
    )

    return joined.with_columns(
        confident.alias("confident"),
    ).with_columns(
        pl.when(pl.col("confident"))
        .then(pl.col("nearest_group").cast(pl.Utf8))
        .otherwise(pl.lit(UNCERTAIN_CALL))
        .alias("call"),
    ).sort(["subject", "start"])


def summarize_calls(calls: pl.DataFrame) -> pl.DataFrame:
    """
    Per-query tally of window calls.

    Args:
        calls: Output of apply_window_calls.

    Returns:
        DataFrame with subject, windows, confident_windows,
        uncertain_windows, and majority_call (most frequent confident
        genotype, lowest label on ties; null when no window is confident).
    """
    if calls.is_empty():
        return pl.DataFrame(
            schema={
                "subject": pl.Utf8,
                "windows": pl.UInt32,
                "confident_windows": pl.UInt32,
                "uncertain_windows": pl.UInt32,
                "majority_call": pl.Int64,
            }
        )

    tallies = calls.group_by("subject").agg(
        pl.len().alias("windows"),
        pl.col("confident").sum().cast(pl.UInt32).alias("confident_windows"),
        (~pl.col("confident")).sum().cast(pl.UInt32).alias("uncertain_windows"),
    )

    majority = (
        calls.filter(pl.col("confident"))
        .group_by("subject", "nearest_group")
        .agg(pl.len().alias("count"))
        .sort(["subject", "count", "nearest_group"], descending=[False, True, False])
        .unique(subset="subject", keep="first", maintain_order=True)
        .select("subject", pl.col("nearest_group").alias("majority_call"))
    )

    return tallies.join(majority, on="subject", how="left").sort("subject")
