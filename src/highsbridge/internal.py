"""Data shapes and abstract surfaces shared with the learning framework.

The framework talks to any solver through :class:`InternalSolver` and reads
solver state back as :class:`Variables` and :class:`Constraints`. Every array
field is optional; ``None`` means the solver could not provide it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
from scipy.sparse import coo_matrix

from .io import to_str_array

Solution = Dict[str, Optional[float]]
Selection = Union[Sequence[bool], Sequence[int], np.ndarray]


@dataclass
class Variables:
    names: Optional[np.ndarray] = None
    basis_status: Optional[np.ndarray] = None
    categories: Optional[np.ndarray] = None
    lower_bounds: Optional[np.ndarray] = None
    obj_coeffs: Optional[np.ndarray] = None
    reduced_costs: Optional[np.ndarray] = None
    sa_lb_down: Optional[np.ndarray] = None
    sa_lb_up: Optional[np.ndarray] = None
    sa_obj_down: Optional[np.ndarray] = None
    sa_obj_up: Optional[np.ndarray] = None
    sa_ub_down: Optional[np.ndarray] = None
    sa_ub_up: Optional[np.ndarray] = None
    types: Optional[np.ndarray] = None
    upper_bounds: Optional[np.ndarray] = None
    user_features: Optional[np.ndarray] = None
    values: Optional[np.ndarray] = None

    def to_payload(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class Constraints:
    basis_status: Optional[np.ndarray] = None
    categories: Optional[np.ndarray] = None
    dual_values: Optional[np.ndarray] = None
    lazy: Optional[np.ndarray] = None
    lhs: Optional[coo_matrix] = None
    names: Optional[np.ndarray] = None
    rhs: Optional[np.ndarray] = None
    sa_rhs_down: Optional[np.ndarray] = None
    sa_rhs_up: Optional[np.ndarray] = None
    senses: Optional[np.ndarray] = None
    slacks: Optional[np.ndarray] = None
    user_features: Optional[np.ndarray] = None

    @classmethod
    def from_rows(
        cls,
        var_names: Sequence[str],
        rows: Sequence[Mapping[str, float]],
        senses: Sequence[str],
        rhs: Sequence[float],
        names: Sequence[str],
    ) -> "Constraints":
        """Build a constraint block from ``{var_name: coeff}`` rows.

        ``var_names`` fixes the column order of ``lhs`` and must match the
        solver's variable order.
        """
        if not (len(rows) == len(senses) == len(rhs) == len(names)):
            raise ValueError("rows, senses, rhs and names must have the same length")
        col = {name: j for j, name in enumerate(var_names)}
        r_idx: List[int] = []
        c_idx: List[int] = []
        vals: List[float] = []
        for i, row in enumerate(rows):
            for var_name, coeff in row.items():
                if var_name not in col:
                    raise KeyError(f"unknown variable: {var_name}")
                r_idx.append(i)
                c_idx.append(col[var_name])
                vals.append(float(coeff))
        lhs = coo_matrix(
            (np.array(vals, dtype=float), (np.array(r_idx, dtype=int), np.array(c_idx, dtype=int))),
            shape=(len(rows), len(var_names)),
        )
        return cls(
            lhs=lhs,
            names=to_str_array(names),
            rhs=np.array(rhs, dtype=float),
            senses=to_str_array(senses),
        )

    def __len__(self) -> int:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                return int(value.shape[0])
        return 0

    def __getitem__(self, selected: Selection) -> "Constraints":
        index = np.asarray(selected)
        if index.dtype == bool:
            index = np.flatnonzero(index)
        else:
            index = index.astype(int)
        kwargs: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                kwargs[f.name] = None
            elif f.name == "lhs":
                kwargs[f.name] = value.tocsr()[index, :].tocoo()
            else:
                kwargs[f.name] = value[index]
        return Constraints(**kwargs)


@dataclass
class MIPSolveStats:
    mip_lower_bound: Optional[float]
    mip_upper_bound: Optional[float]
    mip_sense: str
    mip_wallclock_time: float
    mip_nodes: Optional[int] = None
    mip_log: str = ""
    mip_warm_start_value: Optional[float] = None

    def to_payload(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class LPSolveStats:
    lp_value: Optional[float]
    lp_log: str = ""
    lp_wallclock_time: float = 0.0

    def to_payload(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


IterationCallback = Callable[[], bool]
LazyCallback = Callable[[Any, Any], None]


class InternalSolver(ABC):
    """Operations the framework performs on a wrapped solver."""

    @abstractmethod
    def add_constraints(self, cf: Constraints) -> None:
        pass

    @abstractmethod
    def are_constraints_satisfied(self, cf: Constraints, tol: float = 1e-5) -> List[bool]:
        pass

    @abstractmethod
    def build_test_instance_infeasible(self) -> "Instance":
        pass

    @abstractmethod
    def build_test_instance_knapsack(self) -> "Instance":
        pass

    @abstractmethod
    def clone(self) -> "InternalSolver":
        """Return a new, empty solver configured like this one."""

    @abstractmethod
    def fix(self, solution: Solution) -> None:
        pass

    @abstractmethod
    def get_solution(self) -> Optional[Solution]:
        pass

    @abstractmethod
    def get_constraints(
        self,
        with_static: bool = True,
        with_sa: bool = True,
        with_lhs: bool = True,
    ) -> Constraints:
        pass

    @abstractmethod
    def get_constraint_attrs(self) -> List[str]:
        """Names of the :class:`Constraints` fields this solver can fill."""

    @abstractmethod
    def get_variables(self, with_static: bool = True, with_sa: bool = True) -> Variables:
        pass

    @abstractmethod
    def get_variable_attrs(self) -> List[str]:
        """Names of the :class:`Variables` fields this solver can fill."""

    @abstractmethod
    def is_infeasible(self) -> bool:
        pass

    @abstractmethod
    def remove_constraints(self, names: Sequence[str]) -> None:
        pass

    @abstractmethod
    def set_instance(self, instance: "Instance", model: Any = None) -> None:
        pass

    @abstractmethod
    def set_warm_start(self, solution: Solution) -> None:
        pass

    @abstractmethod
    def solve(
        self,
        tee: bool = False,
        iteration_cb: Optional[IterationCallback] = None,
        lazy_cb: Optional[LazyCallback] = None,
        user_cut_cb: Optional[LazyCallback] = None,
    ) -> MIPSolveStats:
        pass

    @abstractmethod
    def solve_lp(self, tee: bool = False) -> LPSolveStats:
        pass


class Instance(ABC):
    """A problem instance the framework can turn into a model and learn from."""

    def __init__(self) -> None:
        self.samples: List[Any] = []

    @abstractmethod
    def to_model(self) -> Any:
        pass

    def get_instance_features(self) -> Optional[np.ndarray]:
        return None

    def get_variable_features(self, var_name: str) -> Optional[Any]:
        return None

    def get_variable_category(self, var_name: str) -> Optional[Any]:
        return None

    def get_constraint_features(self, cname: str) -> Optional[Any]:
        return None

    def get_constraint_category(self, cname: str) -> Optional[Any]:
        return None


__all__ = [
    "Constraints",
    "Instance",
    "InternalSolver",
    "IterationCallback",
    "LPSolveStats",
    "LazyCallback",
    "MIPSolveStats",
    "Solution",
    "Variables",
]
