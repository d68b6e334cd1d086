from types import SimpleNamespace

import numpy as np
import pytest

from convtestlib.config import CriterionConfig
from convtestlib.criteria import (
    ControlCode,
    NormDispAndUnbalance,
    NormDispOrUnbalance,
    Outcome,
    is_converged,
)


class FakeSystem:
    def __init__(self, x, b):
        self.x = np.asarray(x, dtype=float)
        self.b = np.asarray(b, dtype=float)

    def get_x(self):
        return self.x

    def get_b(self):
        return self.b


class SlottedSystem:
    __slots__ = ("x", "b")

    def __init__(self, x, b):
        self.x = np.asarray(x, dtype=float)
        self.b = np.asarray(b, dtype=float)

    def get_x(self):
        return self.x

    def get_b(self):
        return self.b


class FakeAlgorithm:
    def __init__(self, system):
        self.system = system

    def get_linear_system(self):
        return self.system


def _running(system, **cfg):
    events = []
    crit = NormDispOrUnbalance(CriterionConfig(**cfg), reporter=events.append)
    assert crit.bind(system) == 0
    assert crit.start() == 0
    assert crit.system is system
    return crit, events


def test_unbound_test_returns_not_ready_without_touching_history():
    events = []
    crit = NormDispOrUnbalance(CriterionConfig(max_iterations=4), reporter=events.append)
    assert crit.test() == ControlCode.NOT_READY
    assert crit.last_outcome == Outcome.NOT_BOUND
    assert crit.get_num_tests() == 0
    assert np.all(crit.get_norms() == 0.0)
    assert len(crit.get_norms()) == 8


def test_start_requires_binding():
    events = []
    crit = NormDispOrUnbalance(reporter=events.append)
    assert crit.start() == -1
    assert events and events[-1].reason == "no_system"


def test_bind_rejects_objects_without_vectors():
    events = []
    crit = NormDispOrUnbalance(reporter=events.append)
    assert crit.bind(object()) == -1
    assert crit.bind(None) == -1
    assert crit.system is None


def test_bind_accepts_algorithm_exposing_linear_system():
    system = FakeSystem([1.0], [1.0])
    crit = NormDispOrUnbalance(reporter=lambda e: None)
    assert crit.bind(FakeAlgorithm(system)) == 0
    assert crit.system is system


def test_bind_accepts_objects_without_weakref_support():
    ns = SimpleNamespace(get_x=lambda: np.array([1e-12]), get_b=lambda: np.array([1.0]))
    crit = NormDispOrUnbalance(reporter=lambda e: None)
    assert crit.bind(ns) == 0
    assert crit.start() == 0
    assert crit.test() == 1
    slotted = SlottedSystem([1.0], [1e-12])
    assert crit.bind(slotted) == 0
    assert crit.start() == 0
    assert crit.test() == 1


def test_binding_to_temporary_system_stays_usable():
    crit = NormDispOrUnbalance(CriterionConfig(tol_displacement=1e-8), reporter=lambda e: None)
    assert crit.bind(FakeSystem([1e-9], [1.0])) == 0
    assert crit.start() == 0
    assert crit.test() == 1


def test_test_without_start_is_not_ready():
    system = FakeSystem([1.0], [1.0])
    events = []
    crit = NormDispOrUnbalance(reporter=events.append)
    assert crit.bind(system) == 0
    assert crit.test() == ControlCode.NOT_READY
    assert crit.last_outcome == Outcome.NOT_STARTED
    assert events[-1].reason == "not_started"


def test_either_norm_alone_converges_without_incrementing():
    # displacement criterion met, residual not
    system = FakeSystem([1e-9, 0.0], [10.0, 0.0])
    crit, _ = _running(system, tol_displacement=1e-8, tol_unbalance=1e-8)
    code = crit.test()
    assert code == 1 and is_converged(code)
    assert crit.get_num_tests() == 1
    assert crit.last_outcome == Outcome.CONVERGED
    # residual criterion met, displacement not
    other = FakeSystem([10.0], [1e-9])
    crit, _ = _running(other, tol_displacement=1e-8, tol_unbalance=1e-8)
    assert crit.test() == 1
    assert crit.test() == 1
    assert crit.get_num_tests() == 1


def test_continue_then_converge_counts_monotonically():
    system = FakeSystem([1.0], [1.0])
    crit, _ = _running(system, tol_displacement=1e-3, tol_unbalance=1e-3, max_iterations=10)
    for expected in range(1, 4):
        assert crit.get_num_tests() == expected
        code = crit.test()
        assert code == ControlCode.CONTINUE and not is_converged(code)
        assert crit.get_num_tests() == expected + 1
    system.x = np.array([1e-4])
    assert crit.test() == 4
    assert crit.get_num_tests() == 4
    assert crit.get_norms()[:4].tolist() == pytest.approx([1.0, 1.0, 1.0, 1e-4])


def test_budget_exhaustion_fails():
    system = FakeSystem([1.0, 0.0], [0.0, 2.0])
    crit, events = _running(system, tol_displacement=0.0, tol_unbalance=0.0, max_iterations=3)
    codes = [crit.test() for _ in range(3)]
    assert codes == [ControlCode.CONTINUE, ControlCode.CONTINUE, ControlCode.NOT_READY]
    assert crit.get_num_tests() == 4
    assert crit.last_outcome == Outcome.EXHAUSTED
    assert events[-1].reason == "exhausted"


def test_budget_exhaustion_soft_accept():
    system = FakeSystem([1.0, 0.0], [0.0, 2.0])
    crit, events = _running(system, tol_displacement=0.0, tol_unbalance=0.0, max_iterations=3, print_flag=5)
    codes = [crit.test() for _ in range(3)]
    assert codes == [ControlCode.CONTINUE, ControlCode.CONTINUE, 3]
    assert crit.get_num_tests() == 3
    assert crit.last_outcome == Outcome.ACCEPTED_UNCONVERGED
    assert events[-1].reason == "accepted_unconverged"


def test_history_layout():
    system = FakeSystem([3.0, 4.0], [1.0, 0.0])
    crit, _ = _running(system, tol_displacement=0.0, tol_unbalance=0.0, max_iterations=2)
    assert crit.test() == ControlCode.CONTINUE
    system.x = np.array([0.0, 2.0])
    system.b = np.array([0.0, 0.5])
    assert crit.test() == ControlCode.NOT_READY
    norms = crit.get_norms()
    assert len(norms) == 4
    assert norms.tolist() == pytest.approx([5.0, 2.0, 1.0, 0.5])
    # past the budget nothing more is recorded
    assert crit.test() == ControlCode.NOT_READY
    assert crit.get_norms().tolist() == pytest.approx([5.0, 2.0, 1.0, 0.5])


def test_start_resets_counter_and_history():
    system = FakeSystem([1.0], [1.0])
    crit, _ = _running(system, tol_displacement=0.0, tol_unbalance=0.0, max_iterations=5)
    for _ in range(3):
        assert crit.test() == ControlCode.CONTINUE
    assert crit.get_num_tests() == 4
    assert np.any(crit.get_norms() != 0.0)
    assert crit.start() == 0
    assert crit.get_num_tests() == 1
    assert np.all(crit.get_norms() == 0.0)
    assert len(crit.get_norms()) == 10


def test_norms_view_is_read_only():
    system = FakeSystem([1.0], [1.0])
    crit, _ = _running(system)
    with pytest.raises(ValueError):
        crit.get_norms()[0] = 1.0


def test_norm_type_selects_order():
    system = FakeSystem([3.0, -4.0], [1.0, 1.0])
    crit, _ = _running(system, tol_displacement=0.0, tol_unbalance=0.0, norm_type=1)
    assert crit.test() == ControlCode.CONTINUE
    assert crit.history[0] == pytest.approx(7.0)
    crit, _ = _running(system, tol_displacement=0.0, tol_unbalance=0.0, norm_type=0)
    assert crit.test() == ControlCode.CONTINUE
    assert crit.history[0] == pytest.approx(4.0)


def test_ratio_num_to_max():
    system = FakeSystem([1.0], [1.0])
    crit, _ = _running(system, tol_displacement=0.0, tol_unbalance=0.0, max_iterations=4)
    assert crit.test() == ControlCode.CONTINUE
    assert crit.get_max_num_tests() == 4
    assert crit.get_ratio_num_to_max() == pytest.approx(0.5)


def test_get_copy_carries_configuration_and_binding():
    system = FakeSystem([1.0], [1.0])
    crit, _ = _running(system, tol_displacement=1e-5, tol_unbalance=1e-3, max_iterations=4, print_flag=2, norm_type=1)
    assert crit.test() == ControlCode.CONTINUE
    dup = crit.get_copy(7)
    assert isinstance(dup, NormDispOrUnbalance)
    assert dup.tol_displacement == 1e-5
    assert dup.tol_unbalance == 1e-3
    assert dup.print_flag == 2
    assert dup.norm_type == 1
    assert dup.max_iterations == 7
    assert len(dup.get_norms()) == 14
    assert dup.get_num_tests() == 0
    assert dup.system is system
    assert dup.reporter is crit.reporter
    assert crit.get_num_tests() == 2


def test_rebinding_replaces_previous_system():
    first = FakeSystem([1.0], [1.0])
    second = FakeSystem([1e-12], [1.0])
    crit, _ = _running(first, tol_displacement=1e-8, tol_unbalance=1e-8)
    assert crit.bind(second) == 0
    assert crit.system is second
    assert crit.start() == 0
    assert crit.test() == 1
    assert first.x.tolist() == [1.0]


def test_failed_rebind_unbinds():
    system = FakeSystem([1.0], [1.0])
    events = []
    crit = NormDispOrUnbalance(reporter=events.append)
    assert crit.bind(system) == 0
    assert crit.bind(None) == -1
    assert crit.system is None
    assert crit.start() == -1
    assert crit.test() == ControlCode.NOT_READY
    assert crit.last_outcome == Outcome.NOT_BOUND


def test_set_tolerance_and_max_iterations():
    system = FakeSystem([1e-6], [1.0])
    crit, _ = _running(system, tol_displacement=1e-8, tol_unbalance=1e-8, max_iterations=3)
    assert crit.test() == ControlCode.CONTINUE
    crit.set_tolerance(1e-5)
    assert crit.test() == 2
    crit.set_max_iterations(6)
    assert len(crit.get_norms()) == 12
    assert crit.get_num_tests() == 0
    assert crit.get_max_num_tests() == 6


def test_and_variant_requires_both_norms():
    system = FakeSystem([1e-9], [1.0])
    crit = NormDispAndUnbalance(
        CriterionConfig(tol_displacement=1e-8, tol_unbalance=1e-8, max_iterations=5), reporter=lambda e: None
    )
    assert crit.config.type == "norm_disp_and_unbalance"
    assert crit.bind(system) == 0
    assert crit.start() == 0
    assert crit.test() == ControlCode.CONTINUE
    system.b = np.array([1e-9])
    assert crit.test() == 2


def test_snapshot_reflects_state():
    system = FakeSystem([1.0], [1.0])
    crit, _ = _running(system, tol_displacement=0.0, tol_unbalance=0.0, max_iterations=2)
    assert crit.test() == ControlCode.CONTINUE
    snap = crit.snapshot()
    assert snap.criterion == "NormDispOrUnbalance"
    assert snap.class_tag == NormDispOrUnbalance.class_tag
    assert snap.bound is True
    assert snap.current_iteration == 2
    assert snap.last_outcome == "continue"
    assert snap.norms == [1.0, 0.0, 1.0, 0.0]
