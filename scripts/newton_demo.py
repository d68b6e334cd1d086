import argparse
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np

from convtestlib.config import load_config
from convtestlib.criteria import (
    ControlCode,
    ConvergenceTest,
    criterion_from_config,
    is_converged,
    restore_criterion,
    save_criterion,
)
from convtestlib.channel import JsonlChannel
from convtestlib.events import EventReporter
from convtestlib.telemetry import MetricsLogger, history_summary


class DenseLinearSystem:
    """Dense A x = b holder; x is the Newton increment, b the residual."""

    def __init__(self, size: int) -> None:
        self.A = np.eye(size)
        self.b = np.zeros(size)
        self.x = np.zeros(size)

    def get_x(self) -> np.ndarray:
        return self.x

    def get_b(self) -> np.ndarray:
        return self.b

    def solve(self) -> None:
        self.x = np.linalg.solve(self.A, self.b)


class NewtonRaphson:
    """Minimal Newton-Raphson driver for F(u) = load under incremental loading."""

    def __init__(
        self,
        internal: Callable[[np.ndarray], np.ndarray],
        tangent: Callable[[np.ndarray], np.ndarray],
        size: int,
        criterion: ConvergenceTest,
    ) -> None:
        self.internal = internal
        self.tangent = tangent
        self.soe = DenseLinearSystem(size)
        self.criterion = criterion
        assert criterion.bind(self) == 0, "criterion could not bind to the linear system"

    def get_linear_system(self) -> DenseLinearSystem:
        return self.soe

    def solve_step(self, u: np.ndarray, load: np.ndarray) -> "tuple[np.ndarray, int]":
        assert self.criterion.start() == 0, "criterion not ready"
        while True:
            self.soe.b = load - self.internal(u)
            self.soe.A = self.tangent(u)
            self.soe.solve()
            u = u + self.soe.x
            code = self.criterion.test()
            if is_converged(code) or code == ControlCode.NOT_READY:
                return u, code


def _internal(u: np.ndarray) -> np.ndarray:
    # two hardening springs in series
    k1, k2, c = 10.0, 5.0, 2.0
    d = u[1] - u[0]
    f_spring1 = k1 * u[0] + c * u[0] ** 3
    f_spring2 = k2 * d + c * d ** 3
    return np.array([f_spring1 - f_spring2, f_spring2])


def _tangent(u: np.ndarray) -> np.ndarray:
    k1, k2, c = 10.0, 5.0, 2.0
    d = u[1] - u[0]
    t1 = k1 + 3.0 * c * u[0] ** 2
    t2 = k2 + 3.0 * c * d ** 2
    return np.array([[t1 + t2, -t2], [-t2, t2]])


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", type=str, default="configs/default.yaml")
    parser.add_argument("--steps", type=int, default=10)
    parser.add_argument("--load", type=float, default=40.0, help="Final load applied at the free end")
    parser.add_argument("--checkpoint", type=str, default=None, help="Optional JSONL checkpoint path")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_config(Path(args.config))
    reporter = EventReporter(cfg.reporting.sink_path, echo=cfg.reporting.echo)
    criterion = criterion_from_config(cfg, reporter=reporter)
    metrics = MetricsLogger(cfg.reporting.metrics_path) if cfg.reporting.metrics_path is not None else None

    algo = NewtonRaphson(_internal, _tangent, 2, criterion)
    u = np.zeros(2)
    failures = 0
    for step in range(1, args.steps + 1):
        load = np.array([0.0, args.load * step / float(args.steps)])
        u_new, code = algo.solve_step(u, load)
        summary = history_summary(criterion)
        if metrics is not None:
            metrics.log_step(step, code, criterion)
        if is_converged(code):
            u = u_new
        else:
            failures += 1
        print(f"step {step}: code={int(code)} iterations={summary['iterations']} u={u.tolist()}")

    if args.checkpoint:
        channel = JsonlChannel(Path(args.checkpoint))
        criterion.db_tag = 1
        assert save_criterion(criterion, 0, channel) >= 0, "checkpoint write failed"
        restored = restore_criterion(1, 0, channel, reporter=reporter)
        assert restored is not None and restored.config == criterion.config, "checkpoint round-trip mismatch"
    return 0 if failures == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
