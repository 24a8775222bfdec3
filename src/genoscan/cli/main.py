"""
Main CLI entry point for genoscan.

Provides subcommands for:
- scan run: Sliding-window genotype classification of query sequences
- scan init-config: Write a default YAML configuration
"""

from __future__ import annotations

import typer
from rich import print as rprint

from genoscan import __version__

app = typer.Typer(
    name="genoscan",
    help="Sliding-window genotype classification against a labeled reference panel",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        rprint(f"genoscan version {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    Genoscan: distance-overlap genotyping along a multiple sequence alignment.

    Query sequences are compared with labeled references in sliding windows.
    Each window's genotype assignment is called confident when the query
    separates from other genotypes better than the references separate
    genotypes from subtypes at the same position.
    """


# Import subcommands
from genoscan.cli import scan  # noqa: E402

app.add_typer(scan.app, name="scan")


if __name__ == "__main__":
    app()
