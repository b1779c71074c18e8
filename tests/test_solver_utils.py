from __future__ import annotations

import os

import pytest

from highsbridge import highs as hb
from highsbridge.highs import _call_solver_name_getter, _normalize_name


def test_normalize_name_handles_bytes_and_whitespace() -> None:
    assert _normalize_name(b" eq_capacity ") == "eq_capacity"
    assert _normalize_name("  ") is None
    assert _normalize_name(("unused", "x[0]")) == "x[0]"
    assert _normalize_name(None) is None


def test_call_solver_name_getter_invokes_highs_method() -> None:
    class Dummy:
        def __init__(self) -> None:
            self.calls: list[int] = []

        def getColName(self, index: int) -> str:  # noqa: N802 - mirrors HiGHS API
            self.calls.append(index)
            return f"x[{index}]"

    dummy = Dummy()
    name = _call_solver_name_getter(dummy, "getColName", 3)

    assert name == "x[3]"
    assert dummy.calls == [3]


def test_call_solver_name_getter_returns_none_for_missing_method() -> None:
    assert _call_solver_name_getter(object(), "getRowName", 0) is None


def test_unnamed_columns_get_positional_defaults() -> None:
    model = hb.new_highs()
    model.addVar(0.0, 1.0)

    assert hb.column_names(model) == ["c0"]
    assert hb.row_names(model) == []


def test_check_status_raises_on_error() -> None:
    hb.check_status(hb.HighsStatus.kOk, "do nothing")
    hb.check_status(hb.HighsStatus.kWarning, "do nothing")
    with pytest.raises(RuntimeError):
        hb.check_status(hb.HighsStatus.kError, "fail")


def test_apply_options_rejects_unknown_option() -> None:
    with pytest.raises(ValueError):
        hb.new_highs({"no_such_option": 1})


def test_column_and_row_names() -> None:
    model = hb.new_highs()
    hb.add_column(model, "x", cost=1.0, upper=1.0, integer=True)
    hb.add_column(model, "y", cost=1.0)
    hb.add_row(model, "cap", -hb.INF, 3.0, [0, 1], [1.0, 2.0])

    assert hb.column_names(model) == ["x", "y"]
    assert hb.row_names(model) == ["cap"]
    assert not hb.is_maximize(model)


def test_mps_round_trip_keeps_names_and_integrality() -> None:
    model = hb.new_highs()
    hb.add_column(model, "x", cost=1.0, upper=1.0, integer=True)
    hb.add_row(model, "cap", -hb.INF, 1.0, [0], [1.0])

    loaded = hb.read_mps_bytes(hb.write_mps_bytes(model))

    assert hb.column_names(loaded) == ["x"]
    assert hb.row_names(loaded) == ["cap"]
    assert hb.is_integer_type(loaded.getLp().integrality_[0])


def test_temporary_path_is_removed() -> None:
    with hb.temporary_path(".txt") as path:
        assert os.path.exists(path)
    assert not os.path.exists(path)
