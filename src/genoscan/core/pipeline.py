"""
End-to-end genotyping run over one alignment.

GenotypeScanner chains the stages in dependency order:

1. Whole-alignment distances (undirected, all pairs)
2. Window scan (query and reference distance tables per window)
3. Query overlaps (nearest group vs other groups, per query and window)
4. Reference overlaps (between-genotype vs between-subtype, per window)
5. Window calls (query overlap below reference overlap = confident)
6. Baseline resampling over representative references
7. Whole-alignment significance per query

Locally undefined observations never abort the run; they are dropped from
their table and tallied in an OmissionReport.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import polars as pl

from genoscan.core.alignment import Alignment
from genoscan.core.classification.baseline import BaselineCalibrator
from genoscan.core.classification.overlap import nearest_group_overlaps, reference_overlaps
from genoscan.core.classification.significance import genotype_significance
from genoscan.core.classification.thresholds import apply_window_calls, summarize_calls
from genoscan.core.distance import directed_view, distance_table
from genoscan.core.exceptions import InvalidWindowError
from genoscan.core.io_utils import OutputFormat, write_tables
from genoscan.core.metadata import SequenceMetadata
from genoscan.core.windows import WindowScanner, generate_windows
from genoscan.models.classification import PairCategory
from genoscan.models.config import AnalysisConfig, GenomeFeature

logger = logging.getLogger(__name__)


@dataclass
class OmissionReport:
    """Counts of observations dropped because they were not computable."""

    undefined_distances: int = 0
    uncomputable_overlaps: int = 0
    untestable_groups: int = 0

    @property
    def total(self) -> int:
        return self.undefined_distances + self.uncomputable_overlaps + self.untestable_groups

    def merge(self, other: OmissionReport) -> OmissionReport:
        return OmissionReport(
            undefined_distances=self.undefined_distances + other.undefined_distances,
            uncomputable_overlaps=self.uncomputable_overlaps + other.uncomputable_overlaps,
            untestable_groups=self.untestable_groups + other.untestable_groups,
        )

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class AnalysisResult:
    """
    All output tables of a genotyping run.

    Attributes:
        distances: Whole-alignment undirected distances (DISTANCE_SCHEMA).
        window_distances: Per-window distances; query pairs in both
            orientations, reference pairs once.
        overlaps: One row per query and window with nearest_group, overlap,
            reference_overlap, confident and call.
        reference_overlaps: Reference-only overlap per window.
        baselines: Resampling baselines per rule, representative and window.
        significance: Whole-alignment max p-value per query.
        omissions: Tally of dropped observations.
        window_count: Number of windows scanned.
    """

    distances: pl.DataFrame
    window_distances: pl.DataFrame
    overlaps: pl.DataFrame
    reference_overlaps: pl.DataFrame
    baselines: pl.DataFrame
    significance: pl.DataFrame
    omissions: OmissionReport = field(default_factory=OmissionReport)
    window_count: int = 0
    config: AnalysisConfig = field(default_factory=AnalysisConfig)

    @property
    def call_summary(self) -> pl.DataFrame:
        """Per-query tally of confident and uncertain windows."""
        return summarize_calls(self.overlaps)

    def tables(self) -> dict[str, pl.DataFrame]:
        return {
            "distances": self.distances,
            "window_distances": self.window_distances,
            "overlaps": self.overlaps,
            "reference_overlaps": self.reference_overlaps,
            "baselines": self.baselines,
            "significance": self.significance,
            "call_summary": self.call_summary,
        }

    def summary(self) -> dict[str, Any]:
        """JSON-serializable overview of the run."""
        significance = {
            row["query_id"]: row for row in self.significance.iter_rows(named=True)
        }
        queries = []
        for row in self.call_summary.iter_rows(named=True):
            sig = significance.get(row["subject"], {})
            queries.append(
                {
                    "query_id": row["subject"],
                    "windows": row["windows"],
                    "confident_windows": row["confident_windows"],
                    "uncertain_windows": row["uncertain_windows"],
                    "majority_call": row["majority_call"],
                    "nearest_genotype": sig.get("nearest_genotype"),
                    "max_p_value": sig.get("max_p_value"),
                }
            )

        return {
            "windows": self.window_count,
            "window_length": self.config.window_length,
            "step": self.config.step,
            "bandwidth": self.config.overlap.bandwidth,
            "kernel": self.config.overlap.kernel,
            "queries": queries,
            "omissions": self.omissions.to_dict(),
        }

    def write(self, output_dir: Path, output_format: OutputFormat = "csv") -> dict[str, Path]:
        """
        Write every table plus summary.json into output_dir.

        Returns:
            Mapping of table name to written path.
        """
        written = write_tables(self.tables(), output_dir, output_format)
        summary_path = output_dir / "summary.json"
        summary_path.write_text(json.dumps(self.summary(), indent=2))
        written["summary"] = summary_path
        logger.info("Wrote %d files to %s", len(written), output_dir)
        return written


def annotate_windows(df: pl.DataFrame, features: Sequence[GenomeFeature]) -> pl.DataFrame:
    """
    Add a feature column naming the genome feature holding each window midpoint.

    Features are half-open [start, end); the first listed feature wins where
    features overlap. Windows outside every feature get null.
    """
    midpoint = (pl.col("start") + pl.col("end")) // 2
    expr = pl.lit(None, dtype=pl.Utf8)
    for feature in reversed(features):
        expr = (
            pl.when((midpoint >= feature.start) & (midpoint < feature.end))
            .then(pl.lit(feature.name))
            .otherwise(expr)
        )
    return df.with_columns(expr.alias("feature"))


def query_reference_pairs(distances: pl.DataFrame, metadata: SequenceMetadata) -> pl.DataFrame:
    """
    Query-to-reference distances oriented with the query as subject.

    Args:
        distances: Directed distance table (DISTANCE_SCHEMA).
        metadata: Labels providing the partner genotype.

    Returns:
        DataFrame with subject, partner, start, end, partner_genotype, distance.
    """
    labels = metadata.dataframe.select(
        pl.col("id").alias("seq2"),
        pl.col("genotype").alias("partner_genotype"),
    )
    query_ids = metadata.query_ids()
    return (
        distances.filter(
            (pl.col("pair_category") == PairCategory.QUERY_VS_REFERENCE.value)
            & pl.col("seq1").is_in(query_ids)
        )
        .join(labels, on="seq2", how="left")
        .select(
            pl.col("seq1").alias("subject"),
            pl.col("seq2").alias("partner"),
            "start",
            "end",
            "partner_genotype",
            "distance",
        )
    )


class GenotypeScanner:
    """
    Sliding-window genotype classification of query sequences.

    Example:
        >>> alignment = Alignment.from_fasta(Path("aligned.fasta"))
        >>> metadata = SequenceMetadata.from_file(Path("labels.tsv"))
        >>> result = GenotypeScanner(alignment, metadata, AnalysisConfig()).run()
        >>> result.write(Path("results"))
    """

    def __init__(
        self,
        alignment: Alignment,
        metadata: SequenceMetadata,
        config: AnalysisConfig | None = None,
    ) -> None:
        self.alignment = alignment
        self.metadata = metadata
        self.config = config or AnalysisConfig()

    def run(self, progress_callback: Callable[[str], None] | None = None) -> AnalysisResult:
        """
        Run every stage and collect the output tables.

        Args:
            progress_callback: Optional callback receiving a description of
                the stage about to start.

        Returns:
            AnalysisResult with all tables and the omission tally.

        Raises:
            MissingMetadataError: If an aligned sequence has no metadata row.
            InvalidWindowError: If the window does not fit the alignment.
        """

        def stage(description: str) -> None:
            logger.info(description)
            if progress_callback:
                progress_callback(description)

        self.metadata.validate_against(self.alignment)
        config = self.config

        windows = generate_windows(self.alignment.length, config.window_length, config.step)
        if not windows:
            raise InvalidWindowError(self.alignment.length, config.window_length)

        omissions = OmissionReport()
        scanner = WindowScanner(self.alignment, self.metadata, config.num_workers)

        stage("Computing whole-alignment distances")
        distances, undefined = distance_table(
            self.alignment, scanner.categories, mode="undirected"
        )
        omissions.undefined_distances += undefined

        stage(f"Scanning {len(windows)} windows")
        scan = scanner.scan(windows)
        omissions.undefined_distances += scan.omitted_pairs

        stage("Computing query overlaps")
        query_pairs = query_reference_pairs(scan.query_distances, self.metadata)
        query_overlaps, uncomputable = nearest_group_overlaps(query_pairs, config.overlap)
        omissions.uncomputable_overlaps += uncomputable

        stage("Computing reference overlaps")
        reference, uncomputable = reference_overlaps(
            scan.reference_distances, config.overlap, windows
        )
        omissions.uncomputable_overlaps += uncomputable

        overlaps = apply_window_calls(query_overlaps, reference)
        if config.genome_features:
            overlaps = annotate_windows(overlaps, config.genome_features)

        stage("Resampling reference baselines")
        calibrator = BaselineCalibrator(self.metadata, config.overlap, config.num_workers)
        baselines, uncomputable = calibrator.calibrate(scan.reference_distances, windows)
        omissions.uncomputable_overlaps += uncomputable

        stage("Testing whole-alignment significance")
        whole_pairs = query_reference_pairs(directed_view(distances), self.metadata)
        significance, untestable = genotype_significance(
            whole_pairs, self.metadata.query_ids(self.alignment.ids)
        )
        omissions.untestable_groups += untestable

        if omissions.total:
            logger.info(
                "Omitted observations: %d undefined distance(s), %d uncomputable overlap(s), "
                "%d untestable comparison(s)",
                omissions.undefined_distances,
                omissions.uncomputable_overlaps,
                omissions.untestable_groups,
            )

        return AnalysisResult(
            distances=distances,
            window_distances=pl.concat([scan.query_distances, scan.reference_distances]),
            overlaps=overlaps,
            reference_overlaps=reference,
            baselines=baselines,
            significance=significance,
            omissions=omissions,
            window_count=len(windows),
            config=config,
        )
