"""Configuration loader for the HiGHS solver adapter."""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field


class SolverConfig(BaseModel):
    """HiGHS settings applied whenever the adapter loads a model."""

    time_limit: Optional[float] = Field(default=None, description="Time limit in seconds")
    threads: Optional[int] = Field(default=None, description="Number of HiGHS threads")
    mip_rel_gap: Optional[float] = Field(default=None, description="Relative MIP gap")
    presolve: Optional[str] = Field(default=None, description="'on', 'off' or 'choose'")
    random_seed: Optional[int] = Field(default=None, description="HiGHS random seed")
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw HiGHS options passed through unchanged",
    )

    def to_highs_options(self) -> Dict[str, Any]:
        highs_options: Dict[str, Any] = {}
        if self.time_limit is not None:
            highs_options["time_limit"] = float(self.time_limit)
        if self.threads is not None:
            highs_options["threads"] = int(self.threads)
        if self.mip_rel_gap is not None:
            highs_options["mip_rel_gap"] = float(self.mip_rel_gap)
        if self.presolve is not None:
            highs_options["presolve"] = self.presolve
        if self.random_seed is not None:
            highs_options["random_seed"] = int(self.random_seed)
        highs_options.update(self.options)
        return highs_options


def load_config(config_path: Optional[Union[str, Path]] = None) -> SolverConfig:
    """
    Load solver configuration from a YAML file.

    Args:
        config_path: Path to config.yaml. If None, looks for config.yaml in repo root.

    Returns:
        Parsed SolverConfig
    """
    if config_path is None:
        repo_root = Path(__file__).resolve().parents[2]
        config_path = repo_root / "config.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        full_config = yaml.safe_load(f) or {}

    if "highs" in full_config:
        config = full_config["highs"] or {}
    else:
        config = full_config

    return SolverConfig(**_expand_env(config))


def _expand_env(value: Any) -> Any:
    # Values written as ${NAME} are read from the environment
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        name = value[2:-1]
        if name not in os.environ:
            raise ValueError(f"Environment variable {name} is not set")
        return os.environ[name]
    return value
