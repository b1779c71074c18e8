"""Marshaling helpers shared by the solver adapter and the instance archive."""

from __future__ import annotations

import gzip
import logging
import pickle
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.sparse import coo_matrix

LOGGER = logging.getLogger("highsbridge.io")


def to_str_array(values: Optional[Iterable[Any]]) -> Optional[np.ndarray]:
    """Convert a list of strings into the byte-string array the framework stores."""
    if values is None:
        return None
    return np.array(list(values), dtype="S")


def from_str_array(values: Optional[Iterable[Any]]) -> List[str]:
    if values is None:
        return []
    return [v.decode() if isinstance(v, (bytes, np.bytes_)) else str(v) for v in values]


def to_coo(matrix: Any, shape: Optional[Tuple[int, int]] = None) -> coo_matrix:
    """Coerce a scipy matrix, dense array or nested list into COO format.

    When ``shape`` is given the result is padded to it, which matters for rows
    or columns that hold no nonzeros.
    """
    if hasattr(matrix, "tocoo"):
        coo = matrix.tocoo()
    else:
        coo = coo_matrix(np.atleast_2d(np.asarray(matrix, dtype=float)))
    if shape is not None and tuple(coo.shape) != tuple(shape):
        if coo.shape[0] > shape[0] or coo.shape[1] > shape[1]:
            raise ValueError(f"matrix of shape {coo.shape} does not fit into {shape}")
        coo = coo_matrix((coo.data, (coo.row, coo.col)), shape=shape)
    return coo


def from_coo(
    rows: Sequence[int],
    cols: Sequence[int],
    values: Sequence[float],
    shape: Tuple[int, int],
) -> coo_matrix:
    """Build a COO matrix from triplets (zero-based indices)."""
    return coo_matrix(
        (
            np.asarray(values, dtype=float),
            (np.asarray(rows, dtype=int), np.asarray(cols, dtype=int)),
        ),
        shape=shape,
    )


def dumps_pickle_gz(obj: Any) -> bytes:
    return gzip.compress(pickle.dumps(obj))


def loads_pickle_gz(data: bytes) -> Any:
    return pickle.loads(gzip.decompress(data))


def write_pickle_gz(obj: Any, filename: str, quiet: bool = False) -> None:
    if not quiet:
        LOGGER.info("Writing: %s", filename)
    with gzip.GzipFile(filename, "wb") as file:
        pickle.dump(obj, file)


def read_pickle_gz(filename: str, quiet: bool = False) -> Any:
    if not quiet:
        LOGGER.info("Reading: %s", filename)
    with gzip.GzipFile(filename, "rb") as file:
        return pickle.load(file)


__all__ = [
    "dumps_pickle_gz",
    "from_coo",
    "from_str_array",
    "loads_pickle_gz",
    "read_pickle_gz",
    "to_coo",
    "to_str_array",
    "write_pickle_gz",
]
