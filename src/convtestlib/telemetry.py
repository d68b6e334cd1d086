from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .criteria.base import Outcome
from .entities import StepSummaryEntity


class MetricsLogger:
    """Append-only JSONL log of per-step convergence summaries."""

    def __init__(self, sink: Optional[Path] = None):
        self.sink = sink or (Path("logs") / "metrics.jsonl")
        self.sink.parent.mkdir(parents=True, exist_ok=True)

    def log(self, record: Union[StepSummaryEntity, Dict[str, Any]]) -> None:
        if isinstance(record, StepSummaryEntity):
            line = record.model_dump_json()
        else:
            assert isinstance(record, dict), "record must be a StepSummaryEntity or a dict"
            line = json.dumps(record)
        with open(self.sink, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def log_step(self, step: int, code: int, criterion: Any) -> StepSummaryEntity:
        """Summarize the criterion's current step, append it to the sink and return it."""
        outcome = getattr(criterion, "last_outcome", None)
        entry = StepSummaryEntity(
            step=step,
            code=int(code),
            outcome=outcome.value if outcome is not None else None,
            **history_summary(criterion),
        )
        self.log(entry)
        return entry


def history_summary(criterion: Any) -> Dict[str, Any]:
    """Summarize the norms a criterion recorded during the current step.

    Reduction ratios compare the last recorded norm to the first one and are
    0.0 when the first norm is zero.
    """
    history = criterion.history
    used = int(criterion.get_num_tests())
    outcome = getattr(criterion, "last_outcome", None)
    if outcome is None:
        used = 0
    elif outcome == Outcome.CONTINUE:
        # already advanced past the last recorded iteration
        used -= 1
    used = max(0, min(used, history.max_iterations))
    disp = history.displacement_norms[:used]
    resid = history.residual_norms[:used]
    if used == 0:
        return {"iterations": 0, "norm_x": [], "norm_b": [], "reduction_x": 0.0, "reduction_b": 0.0}

    def _ratio(first: float, last: float) -> float:
        return float(last / first) if first > 0.0 else 0.0

    return {
        "iterations": used,
        "norm_x": [float(v) for v in disp],
        "norm_b": [float(v) for v in resid],
        "reduction_x": _ratio(float(disp[0]), float(disp[-1])),
        "reduction_b": _ratio(float(resid[0]), float(resid[-1])),
    }
