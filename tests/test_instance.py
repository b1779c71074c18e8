from __future__ import annotations

import h5py
import numpy as np
import pytest

from highsbridge.instance import (
    FORMAT_VERSION,
    ArchiveVersionError,
    HighsInstance,
    load_instance,
    save,
)
from highsbridge.io import from_str_array
from highsbridge.solver import HighsSolver
from highsbridge.testing import KNAPSACK_VAR_NAMES


def _knapsack_instance() -> HighsInstance:
    return HighsSolver().build_test_instance_knapsack()


def test_instance_rejects_non_highs_models() -> None:
    with pytest.raises(TypeError):
        HighsInstance(object())


def test_instance_metadata_getters_and_setters() -> None:
    instance = _knapsack_instance()
    assert instance.get_instance_features() is None
    assert instance.get_variable_features("x[0]") is None
    assert instance.get_constraint_category("eq_capacity") is None

    instance.set_instance_features([67.0, 4.0])
    instance.set_variable_features("x[0]", [23.0, 505.0])
    instance.set_variable_category("x[0]", "item")
    instance.set_constraint_features("eq_capacity", [67.0])
    instance.set_constraint_category("eq_capacity", "capacity")

    np.testing.assert_allclose(instance.get_instance_features(), [67.0, 4.0])
    np.testing.assert_allclose(instance.get_variable_features("x[0]"), [23.0, 505.0])
    assert instance.get_variable_category("x[0]") == "item"
    np.testing.assert_allclose(instance.get_constraint_features("eq_capacity"), [67.0])
    assert instance.get_constraint_category("eq_capacity") == "capacity"
    assert instance.to_model() is instance.model
    assert instance.samples == []


def test_save_and_load_preserve_model_metadata_and_samples(tmp_path) -> None:
    instance = _knapsack_instance()
    instance.set_variable_category("x[1]", "item")
    instance.set_instance_features([67.0])
    instance.samples.append({"lp_value": 1287.923077, "mip_lower_bound": 1183.0})
    path = tmp_path / "knapsack.h5"

    save(path, instance)
    loaded = load_instance(path)

    assert loaded.samples == [{"lp_value": 1287.923077, "mip_lower_bound": 1183.0}]
    assert loaded.get_variable_category("x[1]") == "item"
    np.testing.assert_allclose(loaded.get_instance_features(), [67.0])

    solver = HighsSolver()
    solver.set_instance(loaded)
    variables = solver.get_variables()
    assert from_str_array(variables.names) == KNAPSACK_VAR_NAMES
    assert from_str_array(variables.types) == ["B", "B", "B", "B", "C"]
    np.testing.assert_allclose(variables.upper_bounds, [1.0, 1.0, 1.0, 1.0, 67.0])
    assert from_str_array(solver.get_constraints().names) == ["eq_capacity"]

    stats = solver.solve()
    assert stats.mip_sense == "max"
    assert stats.mip_lower_bound == pytest.approx(1183.0)


def test_archive_records_format_version(tmp_path) -> None:
    path = tmp_path / "knapsack.h5"
    save(path, _knapsack_instance())

    with h5py.File(path, "r") as file:
        assert file.attrs["version"] == FORMAT_VERSION
        assert set(file.keys()) == {"ext", "mps", "samples"}


def test_load_rejects_other_format_versions(tmp_path) -> None:
    path = tmp_path / "knapsack.h5"
    save(path, _knapsack_instance())
    with h5py.File(path, "a") as file:
        file.attrs["version"] = "0.1"

    with pytest.raises(ArchiveVersionError) as excinfo:
        load_instance(path)

    assert "0.1" in str(excinfo.value)
    assert FORMAT_VERSION in str(excinfo.value)
