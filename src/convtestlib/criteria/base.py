from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum, IntEnum
from typing import Any, Optional, Protocol

import numpy as np

from ..channel import Channel
from ..events import BaseEvent, Reporter, emit_event


class ControlCode(IntEnum):
    """Negative results of `ConvergenceTest.test()`; any value >= 0 means converged at that iteration."""

    CONTINUE = -1
    NOT_READY = -2


class Outcome(str, Enum):
    """Reason behind the last `test()` result, finer grained than the returned code."""

    CONVERGED = "converged"
    ACCEPTED_UNCONVERGED = "accepted_unconverged"
    CONTINUE = "continue"
    EXHAUSTED = "exhausted"
    NOT_BOUND = "not_bound"
    NOT_STARTED = "not_started"


def is_converged(code: int) -> bool:
    return int(code) >= 0


class LinearSystem(Protocol):
    """Read-only view of the linear system of equations solved each iteration."""

    def get_x(self) -> Any:
        """Current solution increment."""
        ...

    def get_b(self) -> Any:
        """Current residual (unbalance)."""
        ...


def supplies_vectors(system: Any) -> bool:
    return system is not None and callable(getattr(system, "get_x", None)) and callable(getattr(system, "get_b", None))


class ConvergenceTest(ABC):
    """Stopping criterion consulted once per iteration by a nonlinear solution algorithm.

    Usage:
        test.bind(system)            # 0 on success, -1 otherwise
        test.start()                 # once per nonlinear step
        code = test.test()           # until code >= 0 or code == ControlCode.NOT_READY
    """

    class_tag: int = 0

    def __init__(self, *, reporter: Optional[Reporter] = None) -> None:
        self.reporter: Reporter = reporter or emit_event
        self.db_tag: int = 0

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def _report(self, event: BaseEvent) -> None:
        self.reporter(event)

    @abstractmethod
    def bind(self, system: Any) -> int:
        ...

    @abstractmethod
    def start(self) -> int:
        ...

    @abstractmethod
    def test(self) -> int:
        ...

    @abstractmethod
    def get_num_tests(self) -> int:
        ...

    @abstractmethod
    def get_max_num_tests(self) -> int:
        ...

    @abstractmethod
    def get_ratio_num_to_max(self) -> float:
        ...

    @abstractmethod
    def get_norms(self) -> np.ndarray:
        ...

    @abstractmethod
    def get_copy(self, iterations: int) -> "ConvergenceTest":
        ...

    @abstractmethod
    def send_self(self, c_tag: int, channel: Channel) -> int:
        ...

    @abstractmethod
    def recv_self(self, c_tag: int, channel: Channel) -> int:
        ...
