from __future__ import annotations

import numpy as np
import pytest

from highsbridge.internal import Constraints, LPSolveStats, MIPSolveStats, Variables
from highsbridge.io import from_str_array

VAR_NAMES = ["x[0]", "x[1]", "z"]


def _block() -> Constraints:
    return Constraints.from_rows(
        VAR_NAMES,
        rows=[{"x[0]": 1.0, "z": -1.0}, {"x[1]": 2.0}, {"x[0]": 1.0, "x[1]": 1.0}],
        senses=["<", ">", "="],
        rhs=[0.0, 1.0, 1.0],
        names=["c1", "c2", "c3"],
    )


def test_from_rows_orders_columns_by_variable_names() -> None:
    cf = _block()
    assert cf.lhs.shape == (3, 3)
    np.testing.assert_allclose(
        cf.lhs.toarray(),
        [[1.0, 0.0, -1.0], [0.0, 2.0, 0.0], [1.0, 1.0, 0.0]],
    )
    assert from_str_array(cf.senses) == ["<", ">", "="]
    assert len(cf) == 3


def test_from_rows_rejects_unknown_variables() -> None:
    with pytest.raises(KeyError):
        Constraints.from_rows(VAR_NAMES, [{"y": 1.0}], ["<"], [1.0], ["bad"])


def test_from_rows_rejects_mismatched_lengths() -> None:
    with pytest.raises(ValueError):
        Constraints.from_rows(VAR_NAMES, [{"z": 1.0}], ["<", ">"], [1.0], ["c"])


def test_getitem_with_boolean_mask_slices_every_field() -> None:
    cf = _block()
    subset = cf[[True, False, True]]
    assert from_str_array(subset.names) == ["c1", "c3"]
    np.testing.assert_allclose(subset.rhs, [0.0, 1.0])
    np.testing.assert_allclose(subset.lhs.toarray(), [[1.0, 0.0, -1.0], [1.0, 1.0, 0.0]])
    assert subset.dual_values is None


def test_getitem_with_indices() -> None:
    subset = _block()[[1]]
    assert from_str_array(subset.names) == ["c2"]
    assert from_str_array(subset.senses) == [">"]


def test_payloads_list_every_field() -> None:
    assert set(Variables().to_payload()) >= {"names", "values", "sa_obj_up"}
    stats = MIPSolveStats(
        mip_lower_bound=1.0,
        mip_upper_bound=2.0,
        mip_sense="min",
        mip_wallclock_time=0.1,
    )
    assert stats.to_payload()["mip_sense"] == "min"
    assert LPSolveStats(lp_value=None).to_payload() == {
        "lp_value": None,
        "lp_log": "",
        "lp_wallclock_time": 0.0,
    }
