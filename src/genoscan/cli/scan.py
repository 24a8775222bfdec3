"""
Scan commands for windowed genotype classification.

This is the command most users interact with: it loads an aligned FASTA and
a label table, runs the full window scan and writes every output table.
"""

from __future__ import annotations

import logging
from pathlib import Path

import polars as pl
import typer
import yaml
from rich.console import Console
from rich.table import Table

from genoscan.cli.utils import QuietConsole, configure_logging, spinner_progress
from genoscan.core.alignment import Alignment
from genoscan.core.exceptions import GenoscanError
from genoscan.core.metadata import SequenceMetadata
from genoscan.core.pipeline import AnalysisResult, GenotypeScanner
from genoscan.models.config import AnalysisConfig

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="scan",
    help="Classify query sequences in sliding windows",
    no_args_is_help=True,
)

console = Console()


@app.command(name="run")
def run(
    alignment: Path = typer.Option(
        ...,
        "--alignment",
        "-a",
        help="Aligned sequences in FASTA format",
        exists=True,
        dir_okay=False,
    ),
    metadata: Path = typer.Option(
        ...,
        "--metadata",
        "-m",
        help="Label table (TSV/CSV) with columns id, genotype, subtype; empty genotype = query",
        exists=True,
        dir_okay=False,
    ),
    output_dir: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Directory for output tables",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML configuration file (command-line options take precedence)",
        exists=True,
        dir_okay=False,
    ),
    window_length: int | None = typer.Option(
        None,
        "--window",
        "-w",
        help="Window length in alignment columns [default: 500]",
        min=1,
    ),
    step: int | None = typer.Option(
        None,
        "--step",
        "-s",
        help="Step between window starts [default: 50]",
        min=1,
    ),
    bandwidth: float | None = typer.Option(
        None,
        "--bandwidth",
        help="Kernel bandwidth for the overlap statistic [default: 0.01]",
        min=0.0,
        max=0.5,
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-j",
        help="Worker processes [default: CPU count - 1]",
        min=1,
    ),
    output_format: str = typer.Option(
        "csv",
        "--format",
        "-f",
        help="Output format: 'csv' or 'parquet'",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress progress output (for scripting)",
    ),
) -> None:
    """
    Scan an alignment and call query genotypes per window.

    Example:

        genoscan scan run \\
            --alignment aligned.fasta \\
            --metadata labels.tsv \\
            --output results/

        # Shorter windows, Parquet output, 8 workers:
        genoscan scan run -a aligned.fasta -m labels.tsv -o results/ \\
            --window 300 --step 25 --format parquet --workers 8
    """
    out = QuietConsole(console, quiet=quiet)
    configure_logging(verbose, console)

    output_format = output_format.lower()
    if output_format not in ("csv", "parquet"):
        console.print(
            f"[red]Error: Invalid format '{output_format}'. "
            f"Use 'csv' or 'parquet'.[/red]"
        )
        raise typer.Exit(code=1) from None

    out.print("\n[bold blue]Genoscan Window Classification[/bold blue]\n")

    try:
        config = AnalysisConfig.from_yaml(config_path) if config_path else AnalysisConfig()
        config = config.with_overrides(
            window_length=window_length,
            step=step,
            bandwidth=bandwidth,
            num_workers=workers,
        )
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error: Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from None

    try:
        aligned = Alignment.from_fasta(alignment, config.gap_symbols)
        labels = SequenceMetadata.from_file(metadata)
        out.print(
            f"Loaded {len(aligned)} sequences x {aligned.length:,} columns, "
            f"{len(labels.query_ids(aligned.ids))} queries"
        )

        scanner = GenotypeScanner(aligned, labels, config)
        with spinner_progress("Starting scan...", console, quiet) as progress:
            task_id = progress.task_ids[0]
            result = scanner.run(
                progress_callback=lambda stage: progress.update(task_id, description=stage)
            )

        written = result.write(output_dir, output_format)
    except GenoscanError as e:
        console.print(f"\n[red]Error: {e.full_message}[/red]")
        raise typer.Exit(code=1) from None
    except pl.exceptions.PolarsError as e:
        console.print(f"\n[red]Data processing error: {e}[/red]")
        if verbose:
            console.print_exception()
        raise typer.Exit(code=1) from None
    except PermissionError as e:
        console.print(f"\n[red]Permission denied: {e}[/red]")
        raise typer.Exit(code=1) from None

    if not quiet:
        _display_call_table(result)

    omissions = result.omissions
    if omissions.total:
        out.print(
            f"[yellow]Omitted: {omissions.undefined_distances:,} undefined distance(s), "
            f"{omissions.uncomputable_overlaps:,} uncomputable overlap(s), "
            f"{omissions.untestable_groups:,} untestable comparison(s)[/yellow]"
        )

    out.print(f"\n[bold green]Results written to:[/bold green] {output_dir}")
    for name, path in written.items():
        out.print(f"  {name}: {path.name}")
    out.print()


@app.command(name="init-config")
def init_config(
    output: Path = typer.Option(
        Path("genoscan.yaml"),
        "--output",
        "-o",
        help="Destination for the configuration file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing file",
    ),
) -> None:
    """Write the default configuration as YAML."""
    if output.exists() and not force:
        console.print(f"[red]Error: {output} exists (use --force to overwrite)[/red]")
        raise typer.Exit(code=1)

    AnalysisConfig().to_yaml(output)
    console.print(f"[green]Configuration written to:[/green] {output}")


def _display_call_table(result: AnalysisResult) -> None:
    """Render per-query call counts and significance."""
    table = Table(title="Window Calls", show_header=True)
    table.add_column("Query", style="cyan", no_wrap=True)
    table.add_column("Windows", justify="right", style="magenta")
    table.add_column("Confident", justify="right", style="green")
    table.add_column("Uncertain", justify="right", style="yellow")
    table.add_column("Majority Call", justify="right", style="blue")
    table.add_column("Max p-value", justify="right")

    for query in result.summary()["queries"]:
        majority = query["majority_call"]
        p_value = query["max_p_value"]
        table.add_row(
            query["query_id"],
            f"{query['windows']:,}",
            f"{query['confident_windows']:,}",
            f"{query['uncertain_windows']:,}",
            str(majority) if majority is not None else "-",
            f"{p_value:.3g}" if p_value is not None else "n/a",
        )

    console.print()
    console.print(table)
