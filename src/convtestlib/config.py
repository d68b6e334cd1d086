from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, ConfigDict
import yaml


class CriterionConfig(BaseModel):
    """Tolerances, iteration budget and reporting mode of a norm-based convergence test.

    ``print_flag`` selects reporting and the exhaustion policy:
    0 silent, 1 per-iteration summary, 2 summary on convergence only,
    4 per-iteration summary with raw vectors, 5 accept unconverged steps
    silently, 6 accept unconverged steps and summarize on convergence.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["norm_disp_or_unbalance", "norm_disp_and_unbalance"] = Field(default="norm_disp_or_unbalance")
    tol_displacement: float = Field(ge=0.0, default=1e-8)
    tol_unbalance: float = Field(ge=0.0, default=1e-8)
    max_iterations: int = Field(ge=1, default=25)
    print_flag: int = Field(ge=0, le=6, default=0)
    norm_type: int = Field(default=2, description="p-norm order; values <= 0 select the max-abs norm")


class ReportingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    sink_path: Optional[Path] = Field(default=None, description="JSONL event sink; defaults to logs/events.jsonl")
    echo: bool = Field(default=True, description="Echo each event line to stdout")
    metrics_path: Optional[Path] = Field(default=None, description="Optional JSONL sink for per-step summaries")


class ConvTestConfigEntity(BaseModel):
    """Typed, immutable configuration entity for a convergence test and its reporting."""

    model_config = ConfigDict(frozen=True)

    version: int = Field(ge=0, default=1)
    criterion: CriterionConfig = Field(default_factory=CriterionConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)

    def validate_config(self) -> None:
        if self.reporting.metrics_path is not None and self.reporting.sink_path is not None:
            assert self.reporting.metrics_path != self.reporting.sink_path, (
                "metrics_path and sink_path must differ so event and metrics records are not interleaved"
            )


def load_config(path: Union[str, Path]) -> ConvTestConfigEntity:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to a YAML configuration file.

    Returns:
        Immutable, validated `ConvTestConfigEntity`.
    """
    assert path is not None, "path required"
    path_obj = Path(path)
    assert path_obj.exists(), f"Config file not found: {path_obj}"
    with path_obj.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    entity = ConvTestConfigEntity(
        version=raw.get("version", 1),
        criterion=CriterionConfig(**raw.get("criterion", {})),
        reporting=ReportingConfig(**raw.get("reporting", {})),
    )
    entity.validate_config()
    return entity
