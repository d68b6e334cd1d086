"""Convergence criteria for iterative nonlinear solvers.

Stopping tests consulted once per iteration, with value-based control codes,
typed event reporting and a compact checkpoint format.
"""

from .config import ConvTestConfigEntity, CriterionConfig, ReportingConfig, load_config
from .entities import CriterionSnapshotEntity, StepSummaryEntity
from .events import (
    BaseEvent,
    IterationReportEvent,
    ConvergenceReachedEvent,
    ConvergenceWarningEvent,
    CheckpointErrorEvent,
    EventReporter,
    emit_event,
)
from .channel import Channel, MemoryChannel, JsonlChannel
from .norms import p_norm
from .criteria import (
    ControlCode,
    ConvergenceTest,
    Outcome,
    is_converged,
    ConvergenceHistory,
    NormDispOrUnbalance,
    NormDispAndUnbalance,
    create_criterion,
    criterion_from_config,
    save_criterion,
    restore_criterion,
)
from .telemetry import MetricsLogger, history_summary

__all__ = [
    "ConvTestConfigEntity",
    "CriterionConfig",
    "ReportingConfig",
    "load_config",
    "CriterionSnapshotEntity",
    "StepSummaryEntity",
    "BaseEvent",
    "IterationReportEvent",
    "ConvergenceReachedEvent",
    "ConvergenceWarningEvent",
    "CheckpointErrorEvent",
    "EventReporter",
    "emit_event",
    "Channel",
    "MemoryChannel",
    "JsonlChannel",
    "p_norm",
    "ControlCode",
    "ConvergenceTest",
    "Outcome",
    "is_converged",
    "ConvergenceHistory",
    "NormDispOrUnbalance",
    "NormDispAndUnbalance",
    "create_criterion",
    "criterion_from_config",
    "save_criterion",
    "restore_criterion",
    "MetricsLogger",
    "history_summary",
]
