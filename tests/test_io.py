from __future__ import annotations

import numpy as np
import pytest
from scipy.sparse import csr_matrix

from highsbridge.io import (
    dumps_pickle_gz,
    from_coo,
    from_str_array,
    loads_pickle_gz,
    read_pickle_gz,
    to_coo,
    to_str_array,
    write_pickle_gz,
)


def test_to_str_array_produces_byte_strings() -> None:
    arr = to_str_array(["x[0]", "z"])
    assert arr.dtype.kind == "S"
    assert arr.tolist() == [b"x[0]", b"z"]
    assert to_str_array(None) is None


def test_from_str_array_decodes_bytes_and_passes_strings() -> None:
    assert from_str_array(np.array([b"eq_capacity", b"cut"], dtype="S")) == ["eq_capacity", "cut"]
    assert from_str_array(["<", ">"]) == ["<", ">"]
    assert from_str_array(None) == []


def test_to_coo_pads_to_requested_shape() -> None:
    coo = to_coo(csr_matrix(np.array([[1.0, 0.0, 2.0]])), shape=(1, 5))
    assert coo.shape == (1, 5)
    np.testing.assert_allclose(coo.toarray(), [[1.0, 0.0, 2.0, 0.0, 0.0]])


def test_to_coo_accepts_nested_lists() -> None:
    coo = to_coo([[0.0, 3.0], [4.0, 0.0]])
    assert coo.nnz == 2
    np.testing.assert_allclose(coo.toarray(), [[0.0, 3.0], [4.0, 0.0]])


def test_to_coo_rejects_matrices_larger_than_shape() -> None:
    with pytest.raises(ValueError):
        to_coo([[1.0, 2.0, 3.0]], shape=(1, 2))


def test_from_coo_builds_from_triplets() -> None:
    coo = from_coo([0, 1], [2, 0], [5.0, -1.0], shape=(2, 3))
    np.testing.assert_allclose(coo.toarray(), [[0.0, 0.0, 5.0], [-1.0, 0.0, 0.0]])


def test_pickle_gz_file_helpers(tmp_path) -> None:
    path = tmp_path / "samples.pkl.gz"
    samples = [{"lp_value": 1287.92, "names": ["x[0]"]}]

    write_pickle_gz(samples, str(path), quiet=True)

    assert read_pickle_gz(str(path), quiet=True) == samples


def test_pickle_gz_in_memory_helpers() -> None:
    blob = dumps_pickle_gz({"instance_features": [1.0, 2.0]})
    assert blob[:2] == b"\x1f\x8b"
    assert loads_pickle_gz(blob) == {"instance_features": [1.0, 2.0]}
