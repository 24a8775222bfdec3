"""
Pydantic configuration models for genoscan.

These models define the sliding-window layout, the density estimation used
by the overlap statistic, and the genome feature coordinates used to annotate
window tables. Configuration can be loaded from YAML files or CLI arguments.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Self

from pydantic import BaseModel, Field, model_validator

from genoscan.core.constants import (
    DEFAULT_BANDWIDTH,
    DEFAULT_GAP_SYMBOLS,
    DEFAULT_GRID_POINTS,
    DEFAULT_KERNEL,
    DEFAULT_STEP,
    DEFAULT_WINDOW_LENGTH,
)


class GenomeFeature(BaseModel):
    """A named, half-open coordinate range of the alignment (e.g. a gene)."""

    name: str = Field(min_length=1, description="Feature label, e.g. 'E1' or 'NS5B'")
    start: int = Field(ge=0, description="0-based first alignment column")
    end: int = Field(gt=0, description="0-based column after the last one")

    @model_validator(mode="after")
    def validate_range(self) -> Self:
        if self.end <= self.start:
            msg = f"Feature '{self.name}' must have start < end, got {self.start}-{self.end}"
            raise ValueError(msg)
        return self

    model_config = {"frozen": True}


class OverlapConfig(BaseModel):
    """
    Density estimation settings for the overlap coefficient.

    Densities are evaluated on an evenly spaced grid over [0, 1] and
    renormalized to unit mass on that interval, so kernel mass falling
    outside the distance range does not leak out of the estimate.

    The Epanechnikov kernel has compact support, which makes the overlap of
    two distributions with well separated values exactly zero. The Gaussian
    kernel gives smoother densities with a small residual overlap in the tails.
    """

    bandwidth: float = Field(
        default=DEFAULT_BANDWIDTH,
        gt=0.0,
        le=0.5,
        description="Kernel bandwidth on the distance scale (distances lie in [0, 1])",
    )
    kernel: Literal["epanechnikov", "gaussian"] = Field(
        default=DEFAULT_KERNEL,
        description="Kernel used for density estimation",
    )
    grid_points: int = Field(
        default=DEFAULT_GRID_POINTS,
        ge=101,
        description="Number of evaluation points over [0, 1]",
    )

    @model_validator(mode="after")
    def validate_resolution(self) -> Self:
        """The grid must resolve the kernel: at least two points per bandwidth."""
        spacing = 1.0 / (self.grid_points - 1)
        if spacing > self.bandwidth / 2:
            msg = (
                f"grid_points={self.grid_points} is too coarse for bandwidth "
                f"{self.bandwidth}; use at least {int(2 / self.bandwidth) + 1} points"
            )
            raise ValueError(msg)
        return self

    model_config = {"frozen": True}


class AnalysisConfig(BaseModel):
    """
    Configuration for one sliding-window genotyping run.

    Window Layout:
        Windows start at 0, step, 2*step, ... and are kept while
        start + window_length < alignment length. The final partial window
        is dropped because fewer compared sites inflate distance variance.

    Parallelism:
        num_workers controls the process pool used for the window scan and
        for baseline resampling. 1 runs everything in-process.
    """

    window_length: int = Field(
        default=DEFAULT_WINDOW_LENGTH,
        ge=1,
        description="Window length in alignment columns",
    )
    step: int = Field(
        default=DEFAULT_STEP,
        ge=1,
        description="Distance between consecutive window starts",
    )
    gap_symbols: tuple[str, ...] = Field(
        default=DEFAULT_GAP_SYMBOLS,
        description="Symbols excluded from comparison (pairwise deletion)",
    )
    num_workers: int | None = Field(
        default=None,
        ge=1,
        description="Worker processes (default: CPU count - 1)",
    )
    overlap: OverlapConfig = Field(
        default_factory=OverlapConfig,
        description="Density estimation settings for the overlap statistic",
    )
    genome_features: tuple[GenomeFeature, ...] = Field(
        default=(),
        description="Genome feature coordinates used only to annotate window tables",
    )

    @model_validator(mode="after")
    def validate_gap_symbols(self) -> Self:
        bad = [s for s in self.gap_symbols if len(s) != 1 or not s.isascii()]
        if bad:
            msg = f"Gap symbols must be single ASCII characters, got {bad}"
            raise ValueError(msg)
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> AnalysisConfig:
        """
        Load analysis configuration from a YAML file.

        The YAML file uses a nested structure (windows, overlap, features,
        runtime). Unknown keys are ignored.

        Args:
            path: Path to YAML configuration file.

        Returns:
            AnalysisConfig populated from YAML values merged with defaults.

        Raises:
            FileNotFoundError: If YAML file does not exist.
            ValueError: If YAML contains invalid values.
        """
        import yaml

        raw = yaml.safe_load(path.read_text())
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            msg = f"YAML config must be a mapping, got {type(raw).__name__}"
            raise ValueError(msg)

        return cls(**_flatten_yaml_config(raw))

    def to_yaml(self, path: Path) -> None:
        """Write analysis configuration to a YAML file."""
        path.write_text(self.to_yaml_str())

    def to_yaml_str(self) -> str:
        """Serialize analysis configuration to a YAML string."""
        import yaml

        data = _build_yaml_structure(self)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def with_overrides(self, **overrides: Any) -> AnalysisConfig:
        """Return a copy with non-None keyword values replacing fields."""
        values = self.model_dump()
        overlap = values.pop("overlap")
        for key in ("bandwidth", "kernel", "grid_points"):
            if overrides.get(key) is not None:
                overlap[key] = overrides.pop(key)
            else:
                overrides.pop(key, None)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return AnalysisConfig(overlap=OverlapConfig(**overlap), **values)

    model_config = {"frozen": True}


def _flatten_yaml_config(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Flatten nested YAML config structure into AnalysisConfig keyword arguments.

    Maps the documented nested YAML structure:
        windows.length -> window_length
        windows.step -> step
        alignment.gap_symbols -> gap_symbols
        overlap.* -> OverlapConfig
        features: [{name, start, end}] -> genome_features
        runtime.num_workers -> num_workers
    """
    flat: dict[str, Any] = {}

    windows = raw.get("windows") or {}
    _map_if_present(windows, "length", flat, "window_length")
    _map_if_present(windows, "step", flat, "step")

    alignment = raw.get("alignment") or {}
    if alignment.get("gap_symbols") is not None:
        flat["gap_symbols"] = tuple(alignment["gap_symbols"])

    overlap_raw = raw.get("overlap") or {}
    if overlap_raw:
        ov_kwargs: dict[str, Any] = {}
        _map_if_present(overlap_raw, "bandwidth", ov_kwargs, "bandwidth")
        _map_if_present(overlap_raw, "kernel", ov_kwargs, "kernel")
        _map_if_present(overlap_raw, "grid_points", ov_kwargs, "grid_points")
        flat["overlap"] = OverlapConfig(**ov_kwargs)

    features = raw.get("features") or []
    if features:
        flat["genome_features"] = tuple(GenomeFeature(**f) for f in features)

    runtime = raw.get("runtime") or {}
    _map_if_present(runtime, "num_workers", flat, "num_workers")

    return flat


def _map_if_present(
    source: dict[str, Any],
    source_key: str,
    target: dict[str, Any],
    target_key: str,
) -> None:
    """Copy value from source dict to target dict if key exists."""
    if source_key in source and source[source_key] is not None:
        target[target_key] = source[source_key]


def _build_yaml_structure(config: AnalysisConfig) -> dict[str, Any]:
    """Build nested YAML dict from an AnalysisConfig instance."""
    return {
        "windows": {
            "length": config.window_length,
            "step": config.step,
        },
        "alignment": {
            "gap_symbols": list(config.gap_symbols),
        },
        "overlap": {
            "bandwidth": config.overlap.bandwidth,
            "kernel": config.overlap.kernel,
            "grid_points": config.overlap.grid_points,
        },
        "features": [
            {"name": f.name, "start": f.start, "end": f.end}
            for f in config.genome_features
        ],
        "runtime": {
            "num_workers": config.num_workers,
        },
    }
