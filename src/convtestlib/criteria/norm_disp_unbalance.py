from __future__ import annotations

from abc import abstractmethod
from typing import Any, Optional

import numpy as np
from pydantic import ValidationError

from ..channel import Channel
from ..config import CriterionConfig
from ..entities import CriterionSnapshotEntity
from ..events import (
    CheckpointErrorEvent,
    ConvergenceReachedEvent,
    ConvergenceWarningEvent,
    IterationReportEvent,
    Reporter,
)
from ..norms import as_vector, p_norm
from .base import ControlCode, ConvergenceTest, LinearSystem, Outcome, supplies_vectors
from .history import ConvergenceHistory

# Wire record: tol_displacement, max_iterations, print_flag, norm_type, tol_unbalance
RECORD_SIZE = 5

# Applied by recv_self() when the channel cannot deliver a record
RESTORE_DEFAULTS = {
    "tol_displacement": 1e-8,
    "tol_unbalance": 1e-8,
    "max_iterations": 25,
    "print_flag": 0,
    "norm_type": 2,
}

_SUMMARY_FLAGS = {1, 2, 4, 6}
_ACCEPT_FLAGS = {5, 6}


class NormDispUnbalanceTest(ConvergenceTest):
    """Shared state machine for tests on the solution-increment and residual norms.

    Subclasses decide how the two criteria are combined via `_norms_converged`.
    """

    config_type: str = ""

    def __init__(self, config: Optional[CriterionConfig] = None, *, reporter: Optional[Reporter] = None) -> None:
        super().__init__(reporter=reporter)
        cfg = config or CriterionConfig()
        if self.config_type and cfg.type != self.config_type:
            cfg = cfg.model_copy(update={"type": self.config_type})
        self.config = cfg
        self.current_iteration = 0
        self.history = ConvergenceHistory(cfg.max_iterations)
        self.last_outcome: Optional[Outcome] = None
        self._system: Optional[LinearSystem] = None

    @abstractmethod
    def _norms_converged(self, norm_x: float, norm_b: float) -> bool:
        ...

    # Configuration accessors
    @property
    def tol_displacement(self) -> float:
        return float(self.config.tol_displacement)

    @property
    def tol_unbalance(self) -> float:
        return float(self.config.tol_unbalance)

    @property
    def max_iterations(self) -> int:
        return int(self.config.max_iterations)

    @property
    def print_flag(self) -> int:
        return int(self.config.print_flag)

    @property
    def norm_type(self) -> int:
        return int(self.config.norm_type)

    @property
    def system(self) -> Optional[LinearSystem]:
        """Bound linear system, or None when unbound. Not owned by the criterion."""
        return self._system

    def _reconfigure(self, **updates: Any) -> None:
        self.config = CriterionConfig(**{**self.config.model_dump(), **updates})

    def set_tolerance(self, new_tol_displacement: float) -> None:
        self._reconfigure(tol_displacement=new_tol_displacement)

    def set_max_iterations(self, max_iterations: int) -> None:
        """Change the iteration budget; the history is reallocated and the test must be restarted."""
        self._reconfigure(max_iterations=max_iterations)
        self.history.resize(self.max_iterations)
        self.current_iteration = 0

    def bind(self, system: Any) -> int:
        """Attach the linear system (or an algorithm exposing `get_linear_system()`)."""
        if system is not None and not supplies_vectors(system) and callable(getattr(system, "get_linear_system", None)):
            system = system.get_linear_system()
        if not supplies_vectors(system):
            self._system = None
            self._report(ConvergenceWarningEvent(
                subject_id=self.name,
                reason="no_system",
                message=f"WARNING: {self.name}.bind() - no linear system",
            ))
            return -1
        self._system = system
        return 0

    def start(self) -> int:
        if self.system is None:
            self._report(ConvergenceWarningEvent(
                subject_id=self.name,
                reason="no_system",
                message=f"WARNING: {self.name}.start() - no linear system bound",
            ))
            return -1
        self.history.clear()
        self.current_iteration = 1
        self.last_outcome = None
        return 0

    def test(self) -> int:
        system = self.system
        # bind() not called or returned an error
        if system is None:
            self._report(ConvergenceWarningEvent(
                subject_id=self.name,
                reason="not_bound",
                message=f"WARNING: {self.name}.test() - no linear system bound",
            ))
            self.last_outcome = Outcome.NOT_BOUND
            return int(ControlCode.NOT_READY)
        # without start() the counter never resets and later steps could never converge
        if self.current_iteration == 0:
            self._report(ConvergenceWarningEvent(
                subject_id=self.name,
                reason="not_started",
                message=f"WARNING: {self.name}.test() - start() was never invoked.",
            ))
            self.last_outcome = Outcome.NOT_STARTED
            return int(ControlCode.NOT_READY)

        x = system.get_x()
        b = system.get_b()
        norm_x = p_norm(x, self.norm_type)
        norm_b = p_norm(b, self.norm_type)
        it = self.current_iteration
        self.history.record(it, norm_x, norm_b)

        if self.print_flag == 1:
            self._report(IterationReportEvent(subject_id=self.name, iteration=it, norm_x=norm_x, norm_b=norm_b))
        elif self.print_flag == 4:
            self._report(IterationReportEvent(
                subject_id=self.name,
                iteration=it,
                norm_x=norm_x,
                norm_b=norm_b,
                delta_x=as_vector(x).tolist(),
                delta_r=as_vector(b).tolist(),
            ))

        if self._norms_converged(norm_x, norm_b):
            if self.print_flag in _SUMMARY_FLAGS:
                self._report(ConvergenceReachedEvent(subject_id=self.name, iteration=it, norm_x=norm_x, norm_b=norm_b))
            self.last_outcome = Outcome.CONVERGED
            return it

        if it >= self.max_iterations and self.print_flag in _ACCEPT_FLAGS:
            self._report(ConvergenceWarningEvent(
                subject_id=self.name,
                reason="accepted_unconverged",
                message=f"WARNING: {self.name}.test() - failed to converge but going on",
                iteration=it,
                norm_x=norm_x,
                norm_b=norm_b,
            ))
            self.last_outcome = Outcome.ACCEPTED_UNCONVERGED
            return it

        if it >= self.max_iterations:
            self._report(ConvergenceWarningEvent(
                subject_id=self.name,
                reason="exhausted",
                message=f"WARNING: {self.name}.test() - failed to converge after: {it} iterations",
                iteration=it,
                norm_x=norm_x,
                norm_b=norm_b,
            ))
            self.current_iteration += 1
            self.last_outcome = Outcome.EXHAUSTED
            return int(ControlCode.NOT_READY)

        self.current_iteration += 1
        self.last_outcome = Outcome.CONTINUE
        return int(ControlCode.CONTINUE)

    def get_num_tests(self) -> int:
        return self.current_iteration

    def get_max_num_tests(self) -> int:
        return self.max_iterations

    def get_ratio_num_to_max(self) -> float:
        return self.current_iteration / float(self.max_iterations)

    def get_norms(self) -> np.ndarray:
        return self.history.view()

    def get_copy(self, iterations: int) -> "NormDispUnbalanceTest":
        """Same tolerances, print flag and norm type with a fresh history for `iterations`."""
        cfg = CriterionConfig(**{**self.config.model_dump(), "max_iterations": iterations})
        the_copy = type(self)(cfg, reporter=self.reporter)
        the_copy._system = self._system
        return the_copy

    def _record(self) -> np.ndarray:
        x = np.zeros(RECORD_SIZE, dtype=np.float64)
        x[0] = self.tol_displacement
        x[1] = self.max_iterations
        x[2] = self.print_flag
        x[3] = self.norm_type
        x[4] = self.tol_unbalance
        return x

    def send_self(self, c_tag: int, channel: Channel) -> int:
        res = channel.send_vector(self.db_tag, c_tag, self._record())
        if res < 0:
            self._report(CheckpointErrorEvent(
                subject_id=self.name,
                operation="send_self",
                db_tag=self.db_tag,
                c_tag=c_tag,
                result=res,
                message=f"{self.name}.send_self() - failed to send data",
            ))
        return res

    def recv_self(self, c_tag: int, channel: Channel) -> int:
        x = np.zeros(RECORD_SIZE, dtype=np.float64)
        res = channel.recv_vector(self.db_tag, c_tag, x)
        restored = None
        message = f"{self.name}.recv_self() - failed to receive data, using defaults"
        if res >= 0:
            try:
                restored = CriterionConfig(**{
                    **self.config.model_dump(),
                    "tol_displacement": float(x[0]),
                    "max_iterations": int(x[1]),
                    "print_flag": int(x[2]),
                    "norm_type": int(x[3]),
                    "tol_unbalance": float(x[4]),
                })
            except (ValidationError, ValueError, OverflowError) as e:
                message = f"{self.name}.recv_self() - invalid record {x.tolist()}, using defaults: {e}"
        if restored is None:
            self._report(CheckpointErrorEvent(
                subject_id=self.name,
                operation="recv_self",
                db_tag=self.db_tag,
                c_tag=c_tag,
                result=res if res < 0 else -1,
                message=message,
            ))
            restored = self.config.model_copy(update=RESTORE_DEFAULTS)
            if res >= 0:
                res = -1
        self.config = restored
        self.history.resize(self.max_iterations)
        self.current_iteration = 0
        return res

    def snapshot(self) -> CriterionSnapshotEntity:
        return CriterionSnapshotEntity(
            criterion=self.name,
            class_tag=self.class_tag,
            db_tag=self.db_tag,
            config=self.config,
            bound=self.system is not None,
            current_iteration=self.current_iteration,
            last_outcome=self.last_outcome.value if self.last_outcome is not None else None,
            norms=self.history.view().tolist(),
        )


class NormDispOrUnbalance(NormDispUnbalanceTest):
    """Converged when either the increment norm or the residual norm is within tolerance."""

    class_tag = 13
    config_type = "norm_disp_or_unbalance"

    def _norms_converged(self, norm_x: float, norm_b: float) -> bool:
        return norm_x <= self.tol_displacement or norm_b <= self.tol_unbalance


class NormDispAndUnbalance(NormDispUnbalanceTest):
    """Converged only when both norms are within tolerance."""

    class_tag = 12
    config_type = "norm_disp_and_unbalance"

    def _norms_converged(self, norm_x: float, norm_b: float) -> bool:
        return norm_x <= self.tol_displacement and norm_b <= self.tol_unbalance
