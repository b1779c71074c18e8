from __future__ import annotations

"""Thin helpers around the highspy bindings."""

import logging
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional, Sequence

import numpy as np

try:
    import highspy
    from highspy import Highs, HighsModelStatus, HighsStatus, HighsVarType, ObjSense
except ImportError:  # pragma: no cover - exercised only when HiGHS bindings are missing.
    highspy = None  # type: ignore[assignment]
    Highs = None  # type: ignore[assignment]
    HighsModelStatus = None  # type: ignore[assignment]
    HighsStatus = None  # type: ignore[assignment]
    HighsVarType = None  # type: ignore[assignment]
    ObjSense = None  # type: ignore[assignment]


LOGGER = logging.getLogger("highsbridge.highs")

INF = float("inf")


class MissingDependencyError(RuntimeError):
    """Raised when optional solver dependencies are unavailable."""


def require_highs() -> None:
    if Highs is None or HighsStatus is None:
        raise MissingDependencyError(
            "HiGHS python bindings (highspy) are not installed. Install 'highspy' to use highs-bridge."
        )


def new_highs(options: Optional[Mapping[str, Any]] = None) -> Any:
    """Create a silent Highs object with the given options applied."""
    require_highs()
    highs = Highs()
    highs.setOptionValue("output_flag", False)
    highs.setOptionValue("log_to_console", False)
    apply_options(highs, options or {})
    return highs


def apply_options(highs: Any, options: Mapping[str, Any]) -> None:
    for key, value in options.items():
        status = highs.setOptionValue(key, value)
        if status == HighsStatus.kError:
            raise ValueError(f"HiGHS rejected option {key}={value!r}.")


def check_status(status: Any, action: str) -> None:
    if status == HighsStatus.kError:
        raise RuntimeError(f"HiGHS could not {action} (status={status_name(status)}).")
    if status == HighsStatus.kWarning:
        LOGGER.debug("HiGHS returned a warning while trying to %s", action)


def add_column(
    highs: Any,
    name: str,
    cost: float = 0.0,
    lower: float = 0.0,
    upper: float = INF,
    integer: bool = False,
) -> int:
    """Append an empty column and return its index."""
    col = highs.getNumCol()
    check_status(
        highs.addCol(
            float(cost),
            float(lower),
            float(upper),
            0,
            np.array([], dtype=np.int32),
            np.array([], dtype=np.float64),
        ),
        f"add column {name}",
    )
    if integer:
        check_status(highs.changeColIntegrality(col, HighsVarType.kInteger), f"mark {name} integer")
    check_status(highs.passColName(col, name), f"name column {name}")
    return col


def add_row(
    highs: Any,
    name: str,
    lower: float,
    upper: float,
    indices: Sequence[int],
    values: Sequence[float],
) -> int:
    """Append a named row and return its index."""
    row = highs.getNumRow()
    idx = np.asarray(indices, dtype=np.int32)
    val = np.asarray(values, dtype=np.float64)
    check_status(
        highs.addRow(float(lower), float(upper), len(idx), idx, val),
        f"add row {name}",
    )
    if name:
        check_status(highs.passRowName(row, name), f"name row {name}")
    return row


def status_name(status: Any) -> str:
    return getattr(status, "name", str(status))


def column_names(highs: Any) -> List[str]:
    return [
        _call_solver_name_getter(highs, "getColName", j) or f"c{j}"
        for j in range(highs.getNumCol())
    ]


def row_names(highs: Any) -> List[str]:
    """Row names, with ``""`` for rows that were never named."""
    return [
        _call_solver_name_getter(highs, "getRowName", i) or ""
        for i in range(highs.getNumRow())
    ]


def is_integer_type(var_type: Any) -> bool:
    return var_type == HighsVarType.kInteger


def is_maximize(highs: Any) -> bool:
    result = highs.getObjectiveSense()
    # Older bindings return the sense, newer ones (status, sense).
    sense = result[-1] if isinstance(result, tuple) else result
    return sense == ObjSense.kMaximize


def is_infeasible_status(model_status: Any) -> bool:
    return model_status in (
        HighsModelStatus.kInfeasible,
        HighsModelStatus.kUnboundedOrInfeasible,
    )


@contextmanager
def temporary_path(suffix: str) -> Iterator[str]:
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        tmp_path = tmp.name
    try:
        yield tmp_path
    finally:
        try:
            os.unlink(tmp_path)
        except OSError:
            LOGGER.warning("Failed to remove temporary file at %s", tmp_path)


def write_mps_bytes(highs: Any) -> bytes:
    with temporary_path(".mps") as path:
        check_status(highs.writeModel(path), "write the model to MPS")
        with open(path, "rb") as file:
            return file.read()


def read_mps_bytes(mps: bytes, options: Optional[Mapping[str, Any]] = None) -> Any:
    highs = new_highs(options)
    with temporary_path(".mps") as path:
        with open(path, "wb") as file:
            file.write(mps)
        status = highs.readModel(path)
        if status == HighsStatus.kError:
            raise ValueError(f"HiGHS could not parse MPS input (status={status_name(status)}).")
    return highs


def _normalize_name(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, tuple) and raw:
        raw = raw[-1]
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raw = raw.decode("latin-1", errors="ignore")
    text = str(raw).strip()
    return text or None


def _call_solver_name_getter(highs_obj: Any, method_name: str, index: int) -> Optional[str]:
    getter = getattr(highs_obj, method_name, None)
    if getter is None:
        return None
    try:
        raw = getter(index)
    except RuntimeError:
        return None
    if isinstance(raw, tuple) and len(raw) == 2 and raw[0] == getattr(HighsStatus, "kError", None):
        return None
    return _normalize_name(raw)


__all__ = [
    "INF",
    "add_column",
    "add_row",
    "MissingDependencyError",
    "apply_options",
    "check_status",
    "column_names",
    "is_infeasible_status",
    "is_integer_type",
    "is_maximize",
    "new_highs",
    "read_mps_bytes",
    "require_highs",
    "row_names",
    "status_name",
    "temporary_path",
    "write_mps_bytes",
    "_call_solver_name_getter",
    "_normalize_name",
]
