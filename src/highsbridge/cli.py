from __future__ import annotations

"""Command line helpers for inspecting, packing and solving instance archives."""

import argparse
import json
import logging
from typing import Any, Optional

from . import __version__
from . import highs as hb
from .config import SolverConfig, load_config
from .highs import MissingDependencyError
from .instance import FORMAT_VERSION, HighsInstance, load_instance, save
from .io import from_str_array
from .solver import HighsSolver

LOGGER = logging.getLogger("highsbridge.cli")


def _info(args: argparse.Namespace) -> dict:
    instance = load_instance(args.archive)
    solver = HighsSolver()
    solver.set_instance(instance)
    variables = solver.get_variables(with_sa=False)
    constraints = solver.get_constraints(with_sa=False, with_lhs=False)
    types = from_str_array(variables.types)
    return {
        "archive": str(args.archive),
        "version": FORMAT_VERSION,
        "num_variables": len(types),
        "num_binary": types.count("B"),
        "num_integer": types.count("I"),
        "num_constraints": len(from_str_array(constraints.names)),
        "num_samples": len(instance.samples),
    }


def _pack(args: argparse.Namespace) -> dict:
    with open(args.mps, "rb") as file:
        model = hb.read_mps_bytes(file.read())
    instance = HighsInstance(model)
    save(args.archive, instance)
    return {"archive": str(args.archive), "num_variables": model.getNumCol(), "num_constraints": model.getNumRow()}


def _solve(args: argparse.Namespace) -> dict:
    config = load_config(args.config) if args.config else SolverConfig()
    if args.time_limit is not None:
        config.time_limit = args.time_limit
    instance = load_instance(args.archive)
    solver = HighsSolver(config)
    solver.set_instance(instance)
    if args.lp:
        payload: dict[str, Any] = solver.solve_lp(tee=args.tee).to_payload()
        payload.pop("lp_log", None)
    else:
        payload = solver.solve(tee=args.tee).to_payload()
        payload.pop("mip_log", None)
    payload["infeasible"] = solver.is_infeasible()
    return payload


def run(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="highsbridge", description="highs-bridge instance tools")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    info_parser = subparsers.add_parser("info", help="Summarize an instance archive")
    info_parser.add_argument("archive", help="Path to the archive (.h5)")
    info_parser.set_defaults(handler=_info)

    pack_parser = subparsers.add_parser("pack", help="Wrap an MPS file into an instance archive")
    pack_parser.add_argument("mps", help="Path to the MPS model")
    pack_parser.add_argument("archive", help="Path of the archive to write")
    pack_parser.set_defaults(handler=_pack)

    solve_parser = subparsers.add_parser("solve", help="Solve the model stored in an archive")
    solve_parser.add_argument("archive", help="Path to the archive (.h5)")
    solve_parser.add_argument("--config", default=None, help="YAML solver configuration")
    solve_parser.add_argument("--time-limit", type=float, default=None, help="Time limit in seconds")
    solve_parser.add_argument("--lp", action="store_true", help="Solve the LP relaxation only")
    solve_parser.add_argument("--tee", action="store_true", help="Echo the HiGHS log")
    solve_parser.set_defaults(handler=_solve)

    args = parser.parse_args(argv)

    log_level = args.log_level.upper()
    logging.basicConfig(level=log_level, format="[%(levelname)s] %(message)s")

    try:
        payload = args.handler(args)
    except MissingDependencyError as exc:
        LOGGER.error("Missing solver dependency: %s", exc)
        return 2
    except (OSError, ValueError) as exc:
        LOGGER.error("%s", exc)
        return 1
    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
