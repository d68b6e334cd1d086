from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ConfigDict

from .config import CriterionConfig


class BaseEntity(BaseModel):
    model_config = ConfigDict(frozen=True)

    ecs_id: UUID = Field(default_factory=uuid4)
    version: int = Field(ge=0, default=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CriterionSnapshotEntity(BaseEntity):
    """Point-in-time view of a convergence test, suitable for telemetry sinks."""

    criterion: str
    class_tag: int = Field(ge=0)
    db_tag: int = Field(ge=0)
    config: CriterionConfig
    bound: bool
    current_iteration: int = Field(ge=0)
    last_outcome: Optional[str] = None
    norms: List[float] = Field(default_factory=list)


class StepSummaryEntity(BaseModel):
    """Per nonlinear step convergence summary written by `MetricsLogger.log_step`."""

    model_config = ConfigDict(frozen=True)

    step: int = Field(ge=0)
    code: int
    outcome: Optional[str] = None
    iterations: int = Field(ge=0)
    norm_x: List[float] = Field(default_factory=list)
    norm_b: List[float] = Field(default_factory=list)
    reduction_x: float = Field(ge=0.0, default=0.0)
    reduction_b: float = Field(ge=0.0, default=0.0)
