"""Problem instances backed by HiGHS models, and their archive format.

An archive is a single HDF5 file holding the model as gzip-compressed MPS,
the learning metadata attached to the instance, and the training samples the
framework collected for it. Both blobs are stored as gzip-pickled bytes.
"""

from __future__ import annotations

import gzip
import logging
import time
from os import PathLike
from typing import Any, Dict, List, Optional, Union

import h5py
import numpy as np

from . import highs as hb
from .internal import Instance
from .io import dumps_pickle_gz, loads_pickle_gz

LOGGER = logging.getLogger("highsbridge.instance")

FORMAT_VERSION = "0.2"

PathType = Union[str, "PathLike[str]"]


class ArchiveVersionError(ValueError):
    """Raised when an archive was written by an incompatible format version."""


def _empty_ext() -> Dict[str, Any]:
    return {
        "instance_features": None,
        "variable_features": {},
        "variable_categories": {},
        "constraint_features": {},
        "constraint_categories": {},
    }


class HighsInstance(Instance):
    """Wrap a ``highspy.Highs`` model together with its learning metadata."""

    def __init__(self, model: Any, ext: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        if hb.Highs is not None and not isinstance(model, hb.Highs):
            raise TypeError(f"model should be a highspy.Highs. Found {type(model).__name__} instead.")
        self.model = model
        self.ext = _empty_ext()
        if ext:
            self.ext.update(ext)

    def to_model(self) -> Any:
        return self.model

    def get_instance_features(self) -> Optional[np.ndarray]:
        return self.ext["instance_features"]

    def get_variable_features(self, var_name: str) -> Optional[Any]:
        return self.ext["variable_features"].get(var_name)

    def get_variable_category(self, var_name: str) -> Optional[Any]:
        return self.ext["variable_categories"].get(var_name)

    def get_constraint_features(self, cname: str) -> Optional[Any]:
        return self.ext["constraint_features"].get(cname)

    def get_constraint_category(self, cname: str) -> Optional[Any]:
        return self.ext["constraint_categories"].get(cname)

    def set_instance_features(self, features: Any) -> None:
        self.ext["instance_features"] = np.asarray(features, dtype=np.float64)

    def set_variable_features(self, var_name: str, features: Any) -> None:
        self.ext["variable_features"][var_name] = np.asarray(features, dtype=np.float64)

    def set_variable_category(self, var_name: str, category: Any) -> None:
        self.ext["variable_categories"][var_name] = category

    def set_constraint_features(self, cname: str, features: Any) -> None:
        self.ext["constraint_features"][cname] = np.asarray(features, dtype=np.float64)

    def set_constraint_category(self, cname: str, category: Any) -> None:
        self.ext["constraint_categories"][cname] = category


def _to_bytes_dataset(data: bytes) -> np.ndarray:
    return np.frombuffer(data, dtype=np.uint8)


def _from_bytes_dataset(dataset: Any) -> bytes:
    return np.asarray(dataset[()], dtype=np.uint8).tobytes()


def save(filename: PathType, instance: HighsInstance) -> None:
    LOGGER.info("Writing: %s", filename)
    started = time.perf_counter()
    mps = gzip.compress(hb.write_mps_bytes(instance.model))
    with h5py.File(filename, "w") as file:
        file.attrs["version"] = FORMAT_VERSION
        file.create_dataset("mps", data=_to_bytes_dataset(mps))
        file.create_dataset("ext", data=_to_bytes_dataset(dumps_pickle_gz(instance.ext)))
        file.create_dataset("samples", data=_to_bytes_dataset(dumps_pickle_gz(instance.samples)))
    LOGGER.info("File written in %.2f seconds", time.perf_counter() - started)


def read_version(file: Any) -> str:
    version = file.attrs.get("version")
    if isinstance(version, bytes):
        version = version.decode()
    return str(version) if version is not None else "unknown"


def _check_version(file: Any) -> None:
    version = read_version(file)
    if version != FORMAT_VERSION:
        raise ArchiveVersionError(
            "The file you are trying to load has been generated by "
            f"highs-bridge format {version} and you are currently running format "
            f"{FORMAT_VERSION}. Reading files generated by different versions is "
            "not currently supported."
        )


def load_instance(filename: PathType) -> HighsInstance:
    LOGGER.info("Reading: %s", filename)
    started = time.perf_counter()
    with h5py.File(filename, "r") as file:
        _check_version(file)
        model = hb.read_mps_bytes(gzip.decompress(_from_bytes_dataset(file["mps"])))
        ext = loads_pickle_gz(_from_bytes_dataset(file["ext"]))
        samples: List[Any] = loads_pickle_gz(_from_bytes_dataset(file["samples"]))
    instance = HighsInstance(model, ext=ext)
    instance.samples = samples
    LOGGER.info("File read in %.2f seconds", time.perf_counter() - started)
    return instance


__all__ = [
    "ArchiveVersionError",
    "FORMAT_VERSION",
    "HighsInstance",
    "load_instance",
    "read_version",
    "save",
]
