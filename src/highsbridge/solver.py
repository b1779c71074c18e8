from __future__ import annotations

"""HiGHS-backed implementation of the framework's InternalSolver surface."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

import numpy as np
from scipy.sparse import csc_matrix, csr_matrix

from . import highs as hb
from .config import SolverConfig
from .highs import INF, MissingDependencyError, check_status, temporary_path
from .instance import HighsInstance
from .internal import (
    Constraints,
    Instance,
    InternalSolver,
    IterationCallback,
    LazyCallback,
    LPSolveStats,
    MIPSolveStats,
    Solution,
    Variables,
)
from .io import from_str_array, to_coo, to_str_array

LOGGER = logging.getLogger("highsbridge.solver")

_COL_BASIS_CODES = {"kBasic": "B", "kLower": "L", "kUpper": "U"}

VARIABLE_ATTRS = [
    "names",
    "basis_status",
    "categories",
    "lower_bounds",
    "obj_coeffs",
    "reduced_costs",
    "sa_lb_down",
    "sa_lb_up",
    "sa_obj_down",
    "sa_obj_up",
    "sa_ub_down",
    "sa_ub_up",
    "types",
    "upper_bounds",
    "user_features",
    "values",
]

CONSTRAINT_ATTRS = [
    "basis_status",
    "categories",
    "dual_values",
    "lazy",
    "lhs",
    "names",
    "rhs",
    "sa_rhs_down",
    "sa_rhs_up",
    "senses",
    "slacks",
    "user_features",
]


@dataclass
class SensitivityReport:
    """Ranging values copied out of HiGHS after an LP solve."""

    obj_down: np.ndarray
    obj_up: np.ndarray
    bound_down: np.ndarray
    bound_up: np.ndarray
    rhs_down: np.ndarray
    rhs_up: np.ndarray


def _optimize_and_capture_output(highs: Any, tee: bool = False) -> str:
    """Run HiGHS with its log redirected to a temporary file and return the log.

    With ``tee`` the log is also echoed to the console while the solve runs.
    """
    with temporary_path(".log") as log_path:
        highs.setOptionValue("log_file", log_path)
        highs.setOptionValue("output_flag", True)
        highs.setOptionValue("log_to_console", bool(tee))
        try:
            status = highs.run()
        finally:
            highs.setOptionValue("output_flag", False)
            highs.setOptionValue("log_to_console", False)
            highs.setOptionValue("log_file", "")
        with open(log_path, "r", encoding="utf-8", errors="replace") as file:
            log = file.read()
    check_status(status, "solve the model")
    return log


def _row_bounds(sense: str, rhs: float) -> Tuple[float, float]:
    if sense == ">":
        return rhs, INF
    if sense == "<":
        return -INF, rhs
    if sense == "=":
        return rhs, rhs
    raise ValueError(f"unknown sense: {sense}")


def _constraint_matrix(lp: Any, num_row: int, num_col: int) -> csr_matrix:
    matrix = lp.a_matrix_
    start = np.asarray(matrix.start_, dtype=np.int64)
    index = np.asarray(matrix.index_, dtype=np.int64)
    value = np.asarray(matrix.value_, dtype=np.float64)
    rowwise = "rowwise" in hb.status_name(matrix.format_).lower()
    expected = (num_row if rowwise else num_col) + 1
    if num_row == 0 or num_col == 0:
        return csr_matrix((num_row, num_col), dtype=np.float64)
    if len(start) != expected:
        raise RuntimeError(f"HiGHS returned a constraint matrix with {len(start)} starts, expected {expected}.")
    if rowwise:
        return csr_matrix((value, index, start), shape=(num_row, num_col))
    return csc_matrix((value, index, start), shape=(num_row, num_col)).tocsr()


def _ranging_values(record: Any, size: int) -> Optional[np.ndarray]:
    values = np.asarray(getattr(record, "value_", []), dtype=np.float64)
    if values.size < size:
        return None
    return values[:size]


class HighsSolver(InternalSolver):
    """Expose a HiGHS model to the learning framework.

    The solver caches everything it reads back from HiGHS after each solve
    (primal values, duals, basis and ranging), because relaxing or restoring
    integrality invalidates the engine's own copy.
    """

    def __init__(self, options: Optional[Union[SolverConfig, Mapping[str, Any]]] = None) -> None:
        hb.require_highs()
        if options is None:
            options = SolverConfig()
        elif not isinstance(options, SolverConfig):
            options = SolverConfig(options=dict(options))
        self.config: SolverConfig = options
        self.instance: Optional[Instance] = None
        self.model: Any = None
        self._var_names: List[str] = []
        self._varname_to_col: Dict[str, int] = {}
        self._bin_vars: List[int] = []
        self._warned: Set[str] = set()
        self._infeasible = False
        self._in_callback = False
        self._lazy_added = False
        self._cb_x: Optional[np.ndarray] = None
        self._clear_solution()

    # ------------------------------------------------------------------
    # Model lifecycle
    # ------------------------------------------------------------------
    def set_instance(self, instance: Instance, model: Any = None) -> None:
        self.instance = instance
        if model is None:
            model = instance.to_model()
        if hb.Highs is not None and not isinstance(model, hb.Highs):
            raise TypeError(f"model should be a highspy.Highs. Found {type(model).__name__} instead.")
        hb.apply_options(model, self.config.to_highs_options())
        model.setOptionValue("output_flag", False)
        self.model = model
        self._var_names = hb.column_names(model)
        self._varname_to_col = {name: j for j, name in enumerate(self._var_names)}
        lp = model.getLp()
        integrality = list(lp.integrality_)
        self._bin_vars = [
            j
            for j in range(len(self._var_names))
            if j < len(integrality)
            and hb.is_integer_type(integrality[j])
            and lp.col_lower_[j] == 0.0
            and lp.col_upper_[j] == 1.0
        ]
        self._infeasible = False
        self._clear_solution()
        LOGGER.debug(
            "Loaded model with %d columns (%d binary) and %d rows",
            len(self._var_names),
            len(self._bin_vars),
            model.getNumRow(),
        )

    def clone(self) -> "HighsSolver":
        return HighsSolver(self.config)

    def build_test_instance_knapsack(self) -> HighsInstance:
        weights = [23.0, 26.0, 20.0, 18.0]
        prices = [505.0, 352.0, 458.0, 220.0]
        capacity = 67.0

        model = hb.new_highs()
        n = len(weights)
        for i in range(n):
            hb.add_column(model, f"x[{i}]", cost=prices[i], lower=0.0, upper=1.0, integer=True)
        hb.add_column(model, "z", cost=0.0, lower=0.0, upper=capacity)
        check_status(model.changeObjectiveSense(hb.ObjSense.kMaximize), "set objective sense")
        hb.add_row(model, "eq_capacity", 0.0, 0.0, list(range(n + 1)), weights + [-1.0])
        return HighsInstance(model)

    def build_test_instance_infeasible(self) -> HighsInstance:
        model = hb.new_highs()
        hb.add_column(model, "x", cost=1.0, lower=0.0, upper=1.0, integer=True)
        check_status(model.changeObjectiveSense(hb.ObjSense.kMaximize), "set objective sense")
        hb.add_row(model, "", 2.0, INF, [0], [1.0])
        return HighsInstance(model)

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------
    def solve(
        self,
        tee: bool = False,
        iteration_cb: Optional[IterationCallback] = None,
        lazy_cb: Optional[LazyCallback] = None,
        user_cut_cb: Optional[LazyCallback] = None,
    ) -> MIPSolveStats:
        model = self._require_model()
        if user_cut_cb is not None:
            self._warn_once("user_cuts", "User cut callbacks are not supported by HiGHS; ignoring")
        wallclock_time = 0.0
        log = ""
        nodes = 0
        while True:
            started = time.perf_counter()
            log += _optimize_and_capture_output(model, tee=tee)
            wallclock_time += time.perf_counter() - started
            nodes += max(int(getattr(model.getInfo(), "mip_node_count", 0) or 0), 0)
            self._infeasible = hb.is_infeasible_status(model.getModelStatus())
            if self.is_infeasible():
                break
            if lazy_cb is not None and self._run_lazy_callback(lazy_cb):
                LOGGER.debug("Lazy constraints added; solving again")
                continue
            if iteration_cb is not None and iteration_cb():
                continue
            break

        primal_bound: Optional[float] = None
        dual_bound: Optional[float] = None
        if self.is_infeasible():
            self._clear_solution()
        else:
            self._update_solution()
            if self._solution:
                info = model.getInfo()
                primal_bound = float(info.objective_function_value)
                if self._bin_vars or self._integer_columns():
                    dual_bound = float(info.mip_dual_bound)
                else:
                    dual_bound = primal_bound
                    nodes = 1

        if hb.is_maximize(model):
            sense = "max"
            lower_bound, upper_bound = primal_bound, dual_bound
        else:
            sense = "min"
            lower_bound, upper_bound = dual_bound, primal_bound
        return MIPSolveStats(
            mip_lower_bound=lower_bound,
            mip_upper_bound=upper_bound,
            mip_sense=sense,
            mip_wallclock_time=wallclock_time,
            mip_nodes=nodes,
            mip_log=log,
            mip_warm_start_value=None,
        )

    def solve_lp(self, tee: bool = False) -> LPSolveStats:
        model = self._require_model()
        integer_cols = self._integer_columns()
        for j in integer_cols:
            check_status(model.changeColIntegrality(j, hb.HighsVarType.kContinuous), "relax integrality")
        try:
            started = time.perf_counter()
            log = _optimize_and_capture_output(model, tee=tee)
            wallclock_time = time.perf_counter() - started
            self._infeasible = hb.is_infeasible_status(model.getModelStatus())
            if self.is_infeasible():
                self._clear_solution()
                obj_value = None
            else:
                self._update_solution()
                obj_value = float(model.getInfo().objective_function_value) if self._solution else None
        finally:
            for j in integer_cols:
                check_status(model.changeColIntegrality(j, hb.HighsVarType.kInteger), "restore integrality")
        return LPSolveStats(
            lp_value=obj_value,
            lp_log=log,
            lp_wallclock_time=wallclock_time,
        )

    def is_infeasible(self) -> bool:
        self._require_model()
        return self._infeasible

    # ------------------------------------------------------------------
    # Solutions
    # ------------------------------------------------------------------
    def get_solution(self) -> Optional[Solution]:
        if not self._solution:
            return None
        return dict(self._solution)

    def fix(self, solution: Solution) -> None:
        model = self._require_model()
        for var_name, value in solution.items():
            if value is None:
                continue
            col = self._col(var_name)
            check_status(model.changeColBounds(col, float(value), float(value)), f"fix {var_name}")

    def set_warm_start(self, solution: Solution) -> None:
        model = self._require_model()
        lp = model.getLp()
        start = [_default_start(lb, ub) for lb, ub in zip(lp.col_lower_, lp.col_upper_)]
        for var_name, value in solution.items():
            if value is None:
                continue
            start[self._col(var_name)] = float(value)
        highs_solution = hb.highspy.HighsSolution()
        highs_solution.col_value = start
        highs_solution.value_valid = True
        check_status(model.setSolution(highs_solution), "set the warm start")

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------
    def add_constraints(self, cf: Constraints) -> None:
        model = self._require_model()
        names = from_str_array(cf.names)
        senses = from_str_array(cf.senses)
        rhs = np.asarray(cf.rhs, dtype=np.float64)
        bounds = [_row_bounds(sense, rhs[i]) for i, sense in enumerate(senses)]
        lhs = to_coo(cf.lhs, shape=(len(rhs), model.getNumCol())).tocsr()
        for i, (lower, upper) in enumerate(bounds):
            row = lhs.getrow(i)
            hb.add_row(model, names[i], lower, upper, row.indices, row.data)
        if self._in_callback:
            self._lazy_added = True
        self._clear_solution()

    def are_constraints_satisfied(self, cf: Constraints, tol: float = 1e-5) -> List[bool]:
        if self._x.size == 0:
            raise ValueError("no solution available; solve the model first")
        rhs = np.asarray(cf.rhs, dtype=np.float64)
        lhs = to_coo(cf.lhs, shape=(len(rhs), self._x.size)).tocsr()
        lhs_value = lhs @ self._x
        result: List[bool] = []
        for i, sense in enumerate(from_str_array(cf.senses)):
            if sense == "<":
                result.append(bool(lhs_value[i] <= rhs[i] + tol))
            elif sense == ">":
                result.append(bool(lhs_value[i] >= rhs[i] - tol))
            elif sense == "=":
                result.append(bool(abs(rhs[i] - lhs_value[i]) <= tol))
            else:
                raise ValueError(f"unknown sense: {sense}")
        return result

    def remove_constraints(self, names: Sequence[str]) -> None:
        model = self._require_model()
        index = {name: i for i, name in enumerate(hb.row_names(model)) if name}
        rows: List[int] = []
        for name in names:
            if name not in index:
                raise KeyError(f"unknown constraint: {name}")
            rows.append(index[name])
        if not rows:
            return
        rows = sorted(set(rows))
        check_status(
            model.deleteRows(len(rows), np.asarray(rows, dtype=np.int32)),
            "delete rows",
        )
        self._clear_solution()

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------
    def get_variables(self, with_static: bool = True, with_sa: bool = True) -> Variables:
        model = self._require_model()
        lp = model.getLp()
        n = len(self._var_names)
        obj_coeffs = np.asarray(lp.col_cost_, dtype=np.float64)
        col_lower = np.asarray(lp.col_lower_, dtype=np.float64)
        col_upper = np.asarray(lp.col_upper_, dtype=np.float64)

        lb = ub = types = None
        if with_static:
            integer_cols = set(self._integer_columns())
            bin_vars = set(self._bin_vars)
            is_bin = np.array([j in bin_vars for j in range(n)], dtype=bool)
            lb = np.where(is_bin, 0.0, col_lower)
            ub = np.where(is_bin, 1.0, col_upper)
            types = [
                "B" if j in bin_vars else "I" if j in integer_cols else "C" for j in range(n)
            ]

        values = self._x.copy() if self._solution else None

        basis_status = None
        if self._col_basis is not None:
            basis_status = to_str_array(self._col_basis)

        sa_obj_down = sa_obj_up = None
        sa_lb_down = sa_lb_up = sa_ub_down = sa_ub_up = None
        if with_sa and self._sensitivity is not None:
            report = self._sensitivity
            sa_obj_down, sa_obj_up = report.obj_down, report.obj_up
            sa_lb_down, sa_lb_up = np.full(n, -INF), np.full(n, -INF)
            sa_ub_down, sa_ub_up = np.full(n, INF), np.full(n, INF)
            for j in range(n):
                status = self._col_basis[j] if self._col_basis is not None else "B"
                x_j = self._x[j]
                if np.isfinite(col_lower[j]):
                    if status == "L":
                        sa_lb_down[j], sa_lb_up[j] = report.bound_down[j], report.bound_up[j]
                    else:
                        sa_lb_down[j], sa_lb_up[j] = -INF, x_j
                if np.isfinite(col_upper[j]):
                    if status == "U":
                        sa_ub_down[j], sa_ub_up[j] = report.bound_down[j], report.bound_up[j]
                    else:
                        sa_ub_down[j], sa_ub_up[j] = x_j, INF

        return Variables(
            names=to_str_array(self._var_names),
            basis_status=basis_status,
            lower_bounds=lb,
            obj_coeffs=obj_coeffs if with_static else None,
            reduced_costs=self._reduced_costs,
            sa_lb_down=sa_lb_down,
            sa_lb_up=sa_lb_up,
            sa_obj_down=sa_obj_down,
            sa_obj_up=sa_obj_up,
            sa_ub_down=sa_ub_down,
            sa_ub_up=sa_ub_up,
            types=to_str_array(types),
            upper_bounds=ub,
            values=values,
        )

    def get_constraints(
        self,
        with_static: bool = True,
        with_sa: bool = True,
        with_lhs: bool = True,
    ) -> Constraints:
        model = self._require_model()
        lp = model.getLp()
        num_row, num_col = model.getNumRow(), model.getNumCol()
        all_names = hb.row_names(model)
        keep = [i for i, name in enumerate(all_names) if name]

        senses: List[str] = []
        rhs_values: List[float] = []
        for i in keep:
            lower, upper = lp.row_lower_[i], lp.row_upper_[i]
            if lower == upper:
                senses.append("=")
                rhs_values.append(lower)
            elif np.isinf(lower) and not np.isinf(upper):
                senses.append("<")
                rhs_values.append(upper)
            elif not np.isinf(lower) and np.isinf(upper):
                senses.append(">")
                rhs_values.append(lower)
            else:
                raise ValueError(
                    f"Unsupported constraint {all_names[i]}: bounds [{lower}, {upper}]"
                )
        rhs = np.asarray(rhs_values, dtype=np.float64)
        lhs = _constraint_matrix(lp, num_row, num_col)[np.asarray(keep, dtype=np.int64), :]

        dual_values = None
        if self._dual_values is not None:
            dual_values = self._dual_values[keep]

        basis_status = None
        if self._row_basis is not None:
            basis_status = to_str_array([self._row_basis[i] for i in keep])

        sa_rhs_down = sa_rhs_up = None
        if with_sa and self._sensitivity is not None:
            sa_rhs_down = self._sensitivity.rhs_down[keep]
            sa_rhs_up = self._sensitivity.rhs_up[keep]

        slacks = None
        if self._solution and self._x.size == num_col:
            slacks = np.abs(lhs @ self._x - rhs)

        return Constraints(
            basis_status=basis_status,
            dual_values=dual_values,
            lhs=lhs.tocoo() if (with_static and with_lhs) else None,
            names=to_str_array([all_names[i] for i in keep]),
            rhs=rhs if with_static else None,
            sa_rhs_down=sa_rhs_down,
            sa_rhs_up=sa_rhs_up,
            senses=to_str_array(senses) if with_static else None,
            slacks=slacks,
        )

    def get_variable_attrs(self) -> List[str]:
        return list(VARIABLE_ATTRS)

    def get_constraint_attrs(self) -> List[str]:
        return list(CONSTRAINT_ATTRS)

    # ------------------------------------------------------------------
    # Callback helpers
    # ------------------------------------------------------------------
    def value(self, var_name: str) -> float:
        """Value of a variable in the callback solution, or in the cached one."""
        col = self._col(var_name)
        if self._in_callback and self._cb_x is not None:
            return float(self._cb_x[col])
        if not self._solution:
            raise ValueError("no solution available; solve the model first")
        return float(self._x[col])

    def submit(self, cf: Constraints) -> None:
        """Add constraints; inside a lazy callback this forces another solve."""
        self.add_constraints(cf)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_model(self) -> Any:
        if self.model is None:
            raise RuntimeError("No model loaded; call set_instance first.")
        return self.model

    def _col(self, var_name: str) -> int:
        try:
            return self._varname_to_col[var_name]
        except KeyError:
            raise KeyError(f"unknown variable: {var_name}") from None

    def _integer_columns(self) -> List[int]:
        integrality = list(self._require_model().getLp().integrality_)
        return [j for j, var_type in enumerate(integrality) if hb.is_integer_type(var_type)]

    def _warn_once(self, key: str, message: str) -> None:
        if key in self._warned:
            return
        self._warned.add(key)
        LOGGER.warning(message)

    def _run_lazy_callback(self, lazy_cb: LazyCallback) -> bool:
        self._cb_x = np.asarray(self.model.getSolution().col_value, dtype=np.float64)
        self._in_callback = True
        self._lazy_added = False
        try:
            lazy_cb(self, self.model)
        finally:
            self._in_callback = False
            self._cb_x = None
        return self._lazy_added

    def _clear_solution(self) -> None:
        self._solution: Dict[str, float] = {}
        self._x: np.ndarray = np.zeros(0, dtype=np.float64)
        self._reduced_costs: Optional[np.ndarray] = None
        self._dual_values: Optional[np.ndarray] = None
        self._col_basis: Optional[List[str]] = None
        self._row_basis: Optional[List[str]] = None
        self._sensitivity: Optional[SensitivityReport] = None

    def _update_solution(self) -> None:
        model = self.model
        self._clear_solution()
        solution = model.getSolution()
        if not solution.value_valid:
            return
        self._x = np.asarray(solution.col_value, dtype=np.float64)
        self._solution = dict(zip(self._var_names, self._x.tolist()))

        if not solution.dual_valid:
            return
        self._reduced_costs = np.asarray(solution.col_dual, dtype=np.float64)
        self._dual_values = np.asarray(solution.row_dual, dtype=np.float64)

        basis = model.getBasis()
        if basis.valid:
            self._col_basis = [
                _COL_BASIS_CODES.get(hb.status_name(status), "N") for status in basis.col_status
            ]
            self._row_basis = [
                "B" if hb.status_name(status) == "kBasic" else "N" for status in basis.row_status
            ]
        else:
            self._warn_once("basis", "Basis status is unavailable; ignoring")
            return

        self._sensitivity = self._get_sensitivity()

    def _get_sensitivity(self) -> Optional[SensitivityReport]:
        result = self.model.getRanging()
        if isinstance(result, tuple):
            status, ranging = result
        else:
            status, ranging = hb.HighsStatus.kOk, result
        if status != hb.HighsStatus.kOk:
            self._warn_once("ranging", "Sensitivity analysis is unavailable; ignoring")
            return None
        # Some releases append row entries to the column records
        n, m = self.model.getNumCol(), self.model.getNumRow()
        columns = [
            _ranging_values(record, n)
            for record in (ranging.col_cost_dn, ranging.col_cost_up, ranging.col_bound_dn, ranging.col_bound_up)
        ]
        rows = [_ranging_values(record, m) for record in (ranging.row_bound_dn, ranging.row_bound_up)]
        if any(values is None for values in columns + rows):
            self._warn_once("ranging", "Sensitivity analysis returned short arrays; ignoring")
            return None
        return SensitivityReport(*columns, *rows)


def _default_start(lower: float, upper: float) -> float:
    if lower > -INF:
        return float(lower)
    if upper < INF:
        return float(upper)
    return 0.0


__all__ = [
    "CONSTRAINT_ATTRS",
    "HighsSolver",
    "MissingDependencyError",
    "SensitivityReport",
    "VARIABLE_ATTRS",
]
