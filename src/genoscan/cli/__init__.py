"""
CLI commands for genoscan.

Provides the command-line interface for running a windowed genotype scan
and for writing a default configuration file.
"""

__all__ = ["main", "scan"]
