"""Conformance checks any InternalSolver implementation should pass.

``run_internal_solver_tests`` drives a solver through the knapsack and
infeasible fixtures it builds itself and asserts on the tabular output the
framework relies on.
"""

from __future__ import annotations

import logging
from typing import Any, List

import numpy as np
from scipy.sparse import coo_matrix

from .internal import Constraints, InternalSolver
from .io import from_str_array, to_str_array

LOGGER = logging.getLogger("highsbridge.testing")

KNAPSACK_VAR_NAMES = ["x[0]", "x[1]", "x[2]", "x[3]", "z"]


def _approx(actual: Any, expected: Any, tol: float = 1e-3) -> None:
    np.testing.assert_allclose(np.asarray(actual, dtype=float), np.asarray(expected, dtype=float), rtol=tol, atol=tol)


def _cut(names: List[str]) -> Constraints:
    # x[0] + x[2] <= 1 excludes the knapsack optimum
    return Constraints(
        names=to_str_array(names),
        lhs=coo_matrix(np.array([[1.0, 0.0, 1.0, 0.0, 0.0]])),
        rhs=np.array([1.0]),
        senses=to_str_array(["<"]),
    )


def run_internal_solver_tests(solver: InternalSolver) -> None:
    LOGGER.info("Running internal solver tests for %s", type(solver).__name__)
    _test_static_features(solver.clone())
    _test_solve_lp(solver.clone())
    _test_solve(solver.clone())
    _test_add_and_remove_constraints(solver.clone())
    _test_infeasible(solver.clone())
    _test_fix(solver.clone())
    _test_iteration_cb(solver.clone())


def _test_static_features(solver: InternalSolver) -> None:
    instance = solver.build_test_instance_knapsack()
    solver.set_instance(instance)

    variables = solver.get_variables()
    assert from_str_array(variables.names) == KNAPSACK_VAR_NAMES
    _approx(variables.lower_bounds, [0.0, 0.0, 0.0, 0.0, 0.0])
    _approx(variables.upper_bounds, [1.0, 1.0, 1.0, 1.0, 67.0])
    _approx(variables.obj_coeffs, [505.0, 352.0, 458.0, 220.0, 0.0])
    assert from_str_array(variables.types) == ["B", "B", "B", "B", "C"]
    assert variables.values is None

    constraints = solver.get_constraints()
    assert from_str_array(constraints.names) == ["eq_capacity"]
    assert from_str_array(constraints.senses) == ["="]
    _approx(constraints.rhs, [0.0])
    _approx(constraints.lhs.toarray(), [[23.0, 26.0, 20.0, 18.0, -1.0]])
    assert constraints.slacks is None

    dynamic = solver.get_variables(with_static=False)
    assert dynamic.lower_bounds is None
    assert dynamic.obj_coeffs is None
    assert dynamic.types is None


def _test_solve_lp(solver: InternalSolver) -> None:
    instance = solver.build_test_instance_knapsack()
    solver.set_instance(instance)
    stats = solver.solve_lp()
    assert not solver.is_infeasible()
    _approx(stats.lp_value, 1287.923077)
    assert isinstance(stats.lp_log, str) and stats.lp_log.strip()

    variables = solver.get_variables()
    _approx(variables.values, [1.0, 0.923077, 1.0, 0.0, 67.0])
    assert from_str_array(variables.types) == ["B", "B", "B", "B", "C"]
    if "basis_status" in solver.get_variable_attrs():
        assert from_str_array(variables.basis_status) == ["U", "B", "U", "L", "U"]
    assert variables.reduced_costs is not None
    assert len(variables.reduced_costs) == 5

    constraints = solver.get_constraints()
    _approx(np.abs(constraints.dual_values), [13.538462])
    _approx(constraints.slacks, [0.0])
    if "basis_status" in solver.get_constraint_attrs():
        assert from_str_array(constraints.basis_status) == ["N"]
    if "sa_rhs_down" in solver.get_constraint_attrs():
        assert constraints.sa_rhs_down is not None
        assert constraints.sa_rhs_down[0] <= 0.0 <= constraints.sa_rhs_up[0]


def _test_solve(solver: InternalSolver) -> None:
    instance = solver.build_test_instance_knapsack()
    solver.set_instance(instance)
    stats = solver.solve()
    assert stats.mip_sense == "max"
    _approx(stats.mip_lower_bound, 1183.0)
    _approx(stats.mip_upper_bound, 1183.0)
    assert stats.mip_wallclock_time >= 0.0
    assert isinstance(stats.mip_log, str) and stats.mip_log.strip()

    solution = solver.get_solution()
    assert solution is not None
    _approx([solution[name] for name in KNAPSACK_VAR_NAMES], [1.0, 0.0, 1.0, 1.0, 61.0])

    constraints = solver.get_constraints()
    _approx(constraints.slacks, [0.0])


def _test_add_and_remove_constraints(solver: InternalSolver) -> None:
    instance = solver.build_test_instance_knapsack()
    solver.set_instance(instance)
    solver.solve()

    cut = _cut(["cut"])
    assert solver.are_constraints_satisfied(cut) == [False]

    solver.add_constraints(cut)
    assert solver.get_solution() is None
    stats = solver.solve()
    _approx(stats.mip_lower_bound, 1077.0)
    assert solver.are_constraints_satisfied(cut) == [True]
    assert from_str_array(solver.get_constraints().names) == ["eq_capacity", "cut"]

    solver.remove_constraints(["cut"])
    assert from_str_array(solver.get_constraints().names) == ["eq_capacity"]
    stats = solver.solve()
    _approx(stats.mip_lower_bound, 1183.0)


def _test_infeasible(solver: InternalSolver) -> None:
    instance = solver.build_test_instance_infeasible()
    solver.set_instance(instance)
    stats = solver.solve()
    assert solver.is_infeasible()
    assert solver.get_solution() is None
    assert stats.mip_lower_bound is None
    assert stats.mip_upper_bound is None

    lp_stats = solver.solve_lp()
    assert lp_stats.lp_value is None
    assert solver.get_variables().values is None


def _test_fix(solver: InternalSolver) -> None:
    instance = solver.build_test_instance_knapsack()
    solver.set_instance(instance)
    solver.fix({"x[0]": 0.0, "x[1]": None})
    stats = solver.solve()
    _approx(stats.mip_lower_bound, 1030.0)


def _test_iteration_cb(solver: InternalSolver) -> None:
    instance = solver.build_test_instance_knapsack()
    solver.set_instance(instance)
    calls: List[int] = []

    def iteration_cb() -> bool:
        calls.append(1)
        return len(calls) < 2

    solver.solve(iteration_cb=iteration_cb)
    assert len(calls) == 2


__all__ = ["KNAPSACK_VAR_NAMES", "run_internal_solver_tests"]
