"""Command line entry point for velocity, temperature and density conversions.

Every subcommand reads an optional YAML configuration (``--config``), applies
the command line options on top of it, then the generic ``--override
PATH=VALUE`` pairs, and validates the result against :class:`Config`::

    python -m velodt.run v2rhot vs.dat out.dat --type S --compp 1 --xfe 0.1
    python -m velodt.run v2t vs_kms.dat out.dat --erm PREM --out-vs
    python -m velodt.run t2rho temps.dat rho.dat
    python -m velodt.run --override solver.damping=0.05 --config run.yml v2rhot

The ``properties``, ``drhodt`` and ``pressure`` subcommands export the
mineral database, the thermal expansion table and a pressure profile.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import config_utils
from .errors import ConfigurationError, VeloDTError
from .io import writer
from .orchestrator import run_conversion
from .physics.minerals import GOES
from .schema import Config

logger = logging.getLogger(__name__)

CONVERSION_COMMANDS = ("v2rhot", "v2t", "t2rho")


def load_config(
    path: Optional[Path] = None,
    overrides: Optional[Sequence[str]] = None,
    *,
    settings: Sequence[Tuple[str, Any]] = (),
) -> Config:
    """Load a YAML configuration file into a :class:`Config` instance.

    ``settings`` are ``(dotted path, value)`` pairs applied before the string
    ``overrides``.  Relative file names in the YAML file are resolved against
    the directory of the file.
    """

    data: Dict[str, Any] = {}
    base: Optional[Path] = None
    if path is not None:
        from ruamel.yaml import YAML

        yaml = YAML(typ="safe")
        source_path = Path(path).resolve()
        if not source_path.exists():
            raise ConfigurationError(f"Configuration file {source_path} not found")
        with source_path.open("r", encoding="utf-8") as fh:
            loaded = yaml.load(fh)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError("The YAML root of a configuration must be a mapping")
        data = loaded
        base = source_path.parent
    for dotted, value in settings:
        config_utils.set_path(data, dotted, value)
    if overrides:
        data = config_utils.apply_overrides_dict(data, overrides)
    cfg = config_utils.validate_config(data)
    if base is not None:
        cfg.input.path = config_utils.resolve_path(base, cfg.input.path)
        cfg.output.path = config_utils.resolve_path(base, cfg.output.path)
        cfg.output.summary_path = config_utils.resolve_path(base, cfg.output.summary_path)
        cfg.pressure.crust_path = config_utils.resolve_path(base, cfg.pressure.crust_path)
        cfg.pressure.topo_path = config_utils.resolve_path(base, cfg.pressure.topo_path)
    return cfg


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_io_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", nargs="?", type=Path, help="Input file (x y z value)")
    parser.add_argument("output", nargs="?", type=Path, help="Output file")
    parser.add_argument("--summary", type=Path, help="Write a JSON run summary to this path")


def _add_pressure_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--erm",
        choices=["AK135", "PREM", "simple"],
        help="Pressure from a reference Earth model or a single average density",
    )
    parser.add_argument("--rc", type=float, help="Crustal density [kg/m3]")
    parser.add_argument("--rm", type=float, help="Mantle density [kg/m3]")
    parser.add_argument("--ra", type=float, help="Average density of the simple pressure method [kg/m3]")
    parser.add_argument("--t-crust", type=Path, help="Crustal thickness file (x y thickness)")
    parser.add_argument("--z-topo", type=Path, help="Topography file (x y elevation)")


def _add_velocity_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--scale-z", type=float, help="Scale factor applied to the depth column")
    parser.add_argument("--scale-v", type=float, help="Scale factor applied to the velocity column")
    parser.add_argument(
        "--scatter",
        action="store_true",
        default=None,
        help="Treat the input as scattered points and ignore grid headers",
    )
    parser.add_argument("--threshold", type=float, help="Convergence threshold")


def _add_composition_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--compc",
        type=float,
        nargs=5,
        metavar=("OL", "OPX", "CPX", "SP", "GNT"),
        help="Custom composition as volume fractions",
    )
    parser.add_argument(
        "--compp",
        type=int,
        choices=[0, 1, 2, 3],
        help=(
            "Composition preset: 0 garnet lherzolite, 1 on-cratonic, "
            "2 off-cratonic, 3 oceanic"
        ),
    )
    parser.add_argument("--xfe", type=float, help="Iron content XFe")
    parser.add_argument("--min-db", help="Mineral database: 1/Cammarano or 2/Goes")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="velodt",
        description="Convert seismic velocities into temperature and density",
    )
    parser.add_argument("--config", type=Path, help="Path to YAML configuration")
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help="Apply configuration overrides using dotted paths; e.g. --override solver.damping=0.05",
    )
    parser.add_argument(
        "--quiet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Suppress INFO logs and Python warnings",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every iteration step (DEBUG)")
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a console progress bar with ETA over the converted points",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    v2rhot = sub.add_parser("v2rhot", help="Velocity [m/s] to temperature and density")
    _add_io_arguments(v2rhot)
    v2rhot.add_argument("--type", dest="vel_type", choices=["P", "S", "p", "s"], help="Seismic wave type")
    _add_composition_arguments(v2rhot)
    _add_pressure_arguments(v2rhot)
    _add_velocity_arguments(v2rhot)
    v2rhot.add_argument(
        "--alpha-t",
        action="store_true",
        default=None,
        help="Temperature dependent thermal expansion coefficient",
    )
    v2rhot.add_argument("--freq", type=float, help="Seismic wave frequency [Hz]")
    v2rhot.add_argument("--fdamp", type=float, help="Damping factor of the iteration")
    v2rhot.add_argument("--q", type=int, choices=[1, 2], help="Anelasticity: 1 Sobolev, 2 Berckhemer")
    v2rhot.add_argument("--t-start", type=float, help="Starting temperature of the iteration [K]")
    fmt = v2rhot.add_mutually_exclusive_group()
    fmt.add_argument("--petrel", action="store_true", help="Write a Petrel points file")
    fmt.add_argument("--parquet", action="store_true", help="Write a Parquet file")

    v2t = sub.add_parser("v2t", help="S velocity [km/s] to temperature (Priestley and McKenzie 2006)")
    _add_io_arguments(v2t)
    _add_pressure_arguments(v2t)
    _add_velocity_arguments(v2t)
    v2t.add_argument(
        "--out-vs",
        action="store_true",
        default=None,
        help="Append the velocity recomputed from the temperature",
    )
    v2t.add_argument("--parquet", action="store_true", help="Write a Parquet file")

    t2rho = sub.add_parser("t2rho", help="Temperature [degC] to density")
    _add_io_arguments(t2rho)
    t2rho.add_argument("--erm", choices=["AK135", "PREM"], help="Reference Earth model")
    t2rho.add_argument("--scale-z", type=float, help="Scale factor applied to the depth column")
    _add_composition_arguments(t2rho)
    t2rho.add_argument("--parquet", action="store_true", help="Write a Parquet file")

    props = sub.add_parser("properties", help="Print or export the mineral database")
    props.add_argument("output", nargs="?", type=Path, help="Optional .csv or text destination")
    props.add_argument("--min-db", help="Mineral database: 1/Cammarano or 2/Goes")

    drhodt = sub.add_parser("drhodt", help="Export the drho/dT table")
    drhodt.add_argument("output", type=Path, help="Destination (.csv or text)")
    drhodt.add_argument("--alpha-t", action="store_true", default=None, help="Use alpha(T)")
    drhodt.add_argument("--min-db", help="Mineral database: 1/Cammarano or 2/Goes")

    pressure = sub.add_parser("pressure", help="Export a pressure profile")
    pressure.add_argument("output", type=Path, help="Destination (.csv or text)")
    pressure.add_argument("--erm", choices=["AK135", "PREM", "simple"], help="Pressure method")
    pressure.add_argument("--ra", type=float, help="Average density of the simple method [kg/m3]")
    pressure.add_argument("--z-min", type=float, default=-200000.0, help="Deepest point [m]")
    pressure.add_argument("--z-max", type=float, default=0.0, help="Shallowest point [m]")
    pressure.add_argument("--dz", type=float, default=10000.0, help="Depth increment [m]")
    return parser


# Command line option -> configuration path
_OPTION_PATHS = (
    ("input", "input.path"),
    ("output", "output.path"),
    ("summary", "output.summary_path"),
    ("scale_z", "input.scale_z"),
    ("scale_v", "input.scale_v"),
    ("scatter", "input.scatter"),
    ("vel_type", "solver.vel_type"),
    ("compc", "rock.composition"),
    ("compp", "rock.composition_preset"),
    ("xfe", "rock.x_fe"),
    ("min_db", "rock.database"),
    ("freq", "rock.frequency_hz"),
    ("q", "rock.q_mode"),
    ("fdamp", "solver.damping"),
    ("threshold", "solver.threshold"),
    ("t_start", "solver.t_start"),
    ("erm", "pressure.method"),
    ("rc", "pressure.rho_crust"),
    ("rm", "pressure.rho_mantle"),
    ("ra", "pressure.rho_avg"),
    ("t_crust", "pressure.crust_path"),
    ("z_topo", "pressure.topo_path"),
    ("out_vs", "output.write_velocity"),
)


def _cli_settings(args: argparse.Namespace) -> List[Tuple[str, Any]]:
    """Translate parsed options into ``(dotted path, value)`` pairs."""

    settings: List[Tuple[str, Any]] = []
    if args.command in CONVERSION_COMMANDS:
        settings.append(("mode", args.command))
    for option, path in _OPTION_PATHS:
        value = getattr(args, option, None)
        if value is None:
            continue
        if isinstance(value, Path):
            value = str(value)
        elif isinstance(value, list):
            value = list(value)
        settings.append((path, value))
    if getattr(args, "alpha_t", None):
        settings.append(("rock.alpha_mode", 1))
    if getattr(args, "petrel", False):
        settings.append(("output.format", "petrel"))
    if getattr(args, "parquet", False):
        settings.append(("output.format", "parquet"))
    if args.quiet is not None:
        settings.append(("runtime.quiet", bool(args.quiet)))
    if args.verbose:
        settings.append(("runtime.verbose", True))
    if args.progress:
        settings.append(("runtime.progress", True))
    return settings


def _log_level(cfg: Config) -> int:
    if cfg.runtime.verbose:
        return logging.DEBUG
    if cfg.runtime.quiet:
        return logging.WARNING
    return logging.INFO


# ---------------------------------------------------------------------------
# Diagnostic exports
# ---------------------------------------------------------------------------


def _export_properties(cfg: Config, output: Optional[Path]) -> None:
    model = config_utils.build_rock_model(cfg)
    frame = model.properties_frame()
    if output is None:
        print(f"Mineral database: {model.database.label}")
        print(frame.to_string())
        return
    writer.write_table(frame, output, header=[f"Mineral database: {model.database.label}"])
    logger.info("Mineral properties written to %s", output)


def _export_drhodt(cfg: Config, output: Path) -> None:
    model = config_utils.build_rock_model(cfg)
    frame = model.expansion_table.to_frame()
    header = [
        f"drho/dT [kg/m3/K] of {GOES.label}",
        f"Alpha: {model.alpha_label}",
    ]
    writer.write_table(frame, output, header=header)
    logger.info("drho/dT table written to %s", output)


def _export_pressure(cfg: Config, output: Path, z_min: float, z_max: float, dz: float) -> None:
    model = config_utils.build_pressure_model(cfg)
    frame = model.profile(z_min=z_min, z_max=z_max, dz=dz)
    writer.write_table(frame, output, header=[f"Pressure calculation method: {model.describe()}"])
    logger.info("Pressure profile written to %s", output)


def main(argv: Optional[List[str]] = None) -> None:
    """Command line entry point."""

    parser = _build_parser()
    args = parser.parse_args(argv)
    config_utils.configure_logging(
        logging.DEBUG if args.verbose else (logging.WARNING if args.quiet else logging.INFO),
        suppress_warnings=bool(args.quiet),
    )
    override_list: List[str] = []
    if args.override:
        for group in args.override:
            override_list.extend(group)
    try:
        cfg = load_config(args.config, override_list, settings=_cli_settings(args))
        quiet = cfg.runtime.quiet and not cfg.runtime.verbose
        config_utils.configure_logging(_log_level(cfg), suppress_warnings=quiet)
        if args.command == "properties":
            _export_properties(cfg, args.output)
        elif args.command == "drhodt":
            _export_drhodt(cfg, args.output)
        elif args.command == "pressure":
            _export_pressure(cfg, args.output, args.z_min, args.z_max, args.dz)
        else:
            if cfg.input.path is None or cfg.output.path is None:
                raise ConfigurationError(
                    f"{args.command} needs an input and an output file (positional or in the configuration)"
                )
            logger.info("Settings: %s", config_utils.describe_run(cfg))
            run_conversion(cfg)
    except VeloDTError as exc:
        logger.error("%s", exc)
        sys.exit(1)


__all__ = ["load_config", "main"]


if __name__ == "__main__":  # pragma: no cover - standard CLI entrypoint
    main()
