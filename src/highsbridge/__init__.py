"""highs-bridge package.

Exposes HiGHS models to a learning-enhanced MIP framework: a solver adapter
reporting variables and constraints in the framework's tabular shape, an
instance wrapper with archive save/load, and the array marshaling helpers
shared by both.
"""

from __future__ import annotations

__version__ = "0.2.0"

from .config import SolverConfig, load_config
from .instance import ArchiveVersionError, HighsInstance, load_instance, save
from .internal import (
    Constraints,
    Instance,
    InternalSolver,
    LPSolveStats,
    MIPSolveStats,
    Variables,
)
from .io import from_str_array, read_pickle_gz, to_str_array, write_pickle_gz
from .solver import HighsSolver, MissingDependencyError

__all__ = [
    "ArchiveVersionError",
    "Constraints",
    "HighsInstance",
    "HighsSolver",
    "Instance",
    "InternalSolver",
    "LPSolveStats",
    "MIPSolveStats",
    "MissingDependencyError",
    "SolverConfig",
    "Variables",
    "__version__",
    "from_str_array",
    "load_config",
    "load_instance",
    "read_pickle_gz",
    "save",
    "to_str_array",
    "write_pickle_gz",
]
