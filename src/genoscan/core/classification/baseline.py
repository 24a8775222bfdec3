"""
Reference-only overlap baselines under resampling.

For each representative reference (one per genotype+subtype), three
baselines are computed per window:

- leave_one_out: the representative is dropped from every reference pair and
  the between-genotype vs between-subtype overlap is recomputed, measuring
  how much the window threshold depends on any single reference.
- leave_genotype_out: the representative keeps only its comparisons to other
  genotypes and is scored exactly like a query, simulating a sequence of a
  genotype absent from the panel.
- leave_subtype_out: for genotypes with at least two known subtypes, the
  representative loses its comparisons to its own genotype+subtype and is
  scored like a query, simulating an unseen subtype of a known genotype.

Representatives are independent, so they are distributed over worker
processes and the per-representative tables are concatenated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from functools import partial

import polars as pl

from genoscan.core.classification.overlap import nearest_group_overlaps, reference_overlaps
from genoscan.core.constants import BASELINE_SCHEMA
from genoscan.core.metadata import SequenceMetadata
from genoscan.core.parallel import parallel_map
from genoscan.models.classification import BaselineRule
from genoscan.models.config import OverlapConfig

logger = logging.getLogger(__name__)


def oriented_pairs(reference_pairs: pl.DataFrame, subject: str) -> pl.DataFrame:
    """
    All comparisons of one sequence, oriented with it as seq1.

    Args:
        reference_pairs: Undirected reference table joined with partner labels
            (genotype1, subtype1, genotype2, subtype2).
        subject: Sequence identifier.

    Returns:
        DataFrame with subject, partner, start, end, partner_genotype,
        partner_subtype, distance.
    """
    as_first = reference_pairs.filter(pl.col("seq1") == subject).select(
        pl.col("seq1").alias("subject"),
        pl.col("seq2").alias("partner"),
        "start",
        "end",
        pl.col("genotype2").alias("partner_genotype"),
        pl.col("subtype2").alias("partner_subtype"),
        "distance",
    )
    as_second = reference_pairs.filter(pl.col("seq2") == subject).select(
        pl.col("seq2").alias("subject"),
        pl.col("seq1").alias("partner"),
        "start",
        "end",
        pl.col("genotype1").alias("partner_genotype"),
        pl.col("subtype1").alias("partner_subtype"),
        "distance",
    )
    return pl.concat([as_first, as_second]).sort(["start", "partner"])


def _with_rule(df: pl.DataFrame, rule: BaselineRule, representative: str) -> pl.DataFrame:
    return df.select(
        pl.lit(rule.value).alias("rule"),
        pl.lit(representative).alias("representative"),
        "start",
        "end",
        "overlap",
    )


def _calibrate_representative_worker(
    representative: tuple[str, int, str, bool],
    reference_pairs: pl.DataFrame,
    windows: Sequence[tuple[int, int]],
    overlap_config: OverlapConfig,
) -> tuple[pl.DataFrame, int]:
    """
    Worker function computing all baselines of one representative.

    Must be at module level for multiprocessing pickling.
    """
    rep_id, genotype, subtype, subtype_eligible = representative
    frames: list[pl.DataFrame] = []
    omitted = 0

    # Leave one sequence out
    remaining = reference_pairs.filter((pl.col("seq1") != rep_id) & (pl.col("seq2") != rep_id))
    loo, loo_omitted = reference_overlaps(remaining, overlap_config, windows)
    frames.append(
        _with_rule(loo.rename({"reference_overlap": "overlap"}), BaselineRule.LEAVE_ONE_OUT, rep_id)
    )
    omitted += loo_omitted

    oriented = oriented_pairs(reference_pairs, rep_id)

    # Leave genotype out: only comparisons to other genotypes remain
    lgo_pairs = oriented.filter(pl.col("partner_genotype") != genotype)
    lgo, lgo_omitted = nearest_group_overlaps(lgo_pairs, overlap_config)
    frames.append(_with_rule(lgo, BaselineRule.LEAVE_GENOTYPE_OUT, rep_id))
    omitted += lgo_omitted

    # Leave subtype out: drop comparisons to the representative's own genotype+subtype
    if subtype_eligible:
        lso_pairs = oriented.filter(
            ~((pl.col("partner_genotype") == genotype) & (pl.col("partner_subtype") == subtype))
        )
        lso, lso_omitted = nearest_group_overlaps(lso_pairs, overlap_config)
        frames.append(_with_rule(lso, BaselineRule.LEAVE_SUBTYPE_OUT, rep_id))
        omitted += lso_omitted

    return pl.concat(frames), omitted


class BaselineCalibrator:
    """
    Resampling baselines over the reference panel.

    Example:
        calibrator = BaselineCalibrator(metadata, config.overlap, num_workers=4)
        baselines, omitted = calibrator.calibrate(scan.reference_distances, windows)
    """

    def __init__(
        self,
        metadata: SequenceMetadata,
        overlap_config: OverlapConfig | None = None,
        num_workers: int | None = None,
    ) -> None:
        self.metadata = metadata
        self.overlap_config = overlap_config or OverlapConfig()
        self.num_workers = num_workers

    def representatives(self, ids: Sequence[str]) -> list[tuple[str, int, str, bool]]:
        """
        Representative references with their labels.

        Returns:
            (id, genotype, subtype, leave_subtype_out_eligible) per
            genotype+subtype combination among ids.
        """
        subtypes = self.metadata.subtypes_per_genotype(ids)
        chosen = []
        for rep_id in self.metadata.representatives(ids):
            record = self.metadata[rep_id]
            eligible = bool(record.subtype) and len(subtypes.get(record.genotype, ())) >= 2
            chosen.append((rep_id, record.genotype, record.subtype, eligible))
        return chosen

    def calibrate(
        self,
        reference_pairs: pl.DataFrame,
        windows: Sequence[tuple[int, int]],
        progress_callback: Callable[[int], None] | None = None,
    ) -> tuple[pl.DataFrame, int]:
        """
        Compute every baseline for every representative.

        Args:
            reference_pairs: Undirected reference-only window distances
                (DISTANCE_SCHEMA).
            windows: Windows of the scan; windows without a value are omitted.
            progress_callback: Optional callback(representatives_completed).

        Returns:
            Tuple of (DataFrame with BASELINE_SCHEMA columns, number of
            omitted baseline values).
        """
        labeled = _join_labels(reference_pairs, self.metadata.dataframe)
        ids = sorted(set(labeled["seq1"].to_list()) | set(labeled["seq2"].to_list()))
        representatives = self.representatives(ids)
        window_spans = [(w[0], w[1]) for w in windows]

        if not representatives:
            logger.warning("No reference sequences available for baseline resampling")
            return pl.DataFrame(schema=BASELINE_SCHEMA), 0

        worker_fn = partial(
            _calibrate_representative_worker,
            reference_pairs=labeled,
            windows=window_spans,
            overlap_config=self.overlap_config,
        )
        results = parallel_map(worker_fn, representatives, self.num_workers, progress_callback)

        omitted = sum(r[1] for r in results)
        baselines = pl.concat([r[0] for r in results]).cast(BASELINE_SCHEMA)
        logger.info(
            "Computed %d baseline values for %d representatives (%d omitted)",
            len(baselines), len(representatives), omitted,
        )
        return baselines, omitted


def _join_labels(pairs: pl.DataFrame, labels: pl.DataFrame) -> pl.DataFrame:
    """Attach genotype/subtype of both sides of each pair."""
    first = labels.rename({"id": "seq1", "genotype": "genotype1", "subtype": "subtype1"})
    second = labels.rename({"id": "seq2", "genotype": "genotype2", "subtype": "subtype2"})
    return pairs.join(first, on="seq1", how="left").join(second, on="seq2", how="left")
