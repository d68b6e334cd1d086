from .base import ControlCode, ConvergenceTest, LinearSystem, Outcome, is_converged
from .history import ConvergenceHistory
from .norm_disp_unbalance import (
    NormDispUnbalanceTest,
    NormDispOrUnbalance,
    NormDispAndUnbalance,
    RESTORE_DEFAULTS,
)
from .registry import (
    register_criterion,
    registered_class_tags,
    create_criterion,
    criterion_from_config,
    save_criterion,
    restore_criterion,
)

__all__ = [
    "ControlCode",
    "ConvergenceTest",
    "LinearSystem",
    "Outcome",
    "is_converged",
    "ConvergenceHistory",
    "NormDispUnbalanceTest",
    "NormDispOrUnbalance",
    "NormDispAndUnbalance",
    "RESTORE_DEFAULTS",
    "register_criterion",
    "registered_class_tags",
    "create_criterion",
    "criterion_from_config",
    "save_criterion",
    "restore_criterion",
]
