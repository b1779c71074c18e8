from __future__ import annotations

import json

import pytest

from highsbridge import highs as hb
from highsbridge.cli import run
from highsbridge.instance import save
from highsbridge.solver import HighsSolver


@pytest.fixture
def archive(tmp_path):
    instance = HighsSolver().build_test_instance_knapsack()
    instance.samples.append({"mip_lower_bound": 1183.0})
    path = tmp_path / "knapsack.h5"
    save(path, instance)
    return path


def test_info_summarizes_archive(archive, capsys) -> None:
    assert run(["info", str(archive)]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["version"] == "0.2"
    assert payload["num_variables"] == 5
    assert payload["num_binary"] == 4
    assert payload["num_constraints"] == 1
    assert payload["num_samples"] == 1


def test_solve_reports_mip_stats(archive, capsys) -> None:
    assert run(["solve", str(archive), "--time-limit", "10"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["mip_sense"] == "max"
    assert payload["mip_lower_bound"] == pytest.approx(1183.0)
    assert payload["infeasible"] is False
    assert "mip_log" not in payload


def test_solve_lp_reports_relaxation(archive, capsys) -> None:
    assert run(["solve", str(archive), "--lp"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["lp_value"] == pytest.approx(1287.923077, rel=1e-4)


def test_pack_wraps_mps_file(tmp_path, capsys) -> None:
    model = HighsSolver().build_test_instance_knapsack().model
    mps_path = tmp_path / "knapsack.mps"
    mps_path.write_bytes(hb.write_mps_bytes(model))
    archive_path = tmp_path / "packed.h5"

    assert run(["pack", str(mps_path), str(archive_path)]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["num_variables"] == 5
    assert payload["num_constraints"] == 1
    assert archive_path.exists()


def test_missing_archive_returns_error_code(tmp_path) -> None:
    assert run(["info", str(tmp_path / "missing.h5")]) == 1
