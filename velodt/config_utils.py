"""Helper utilities for normalising configuration inputs."""
from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, Tuple

from pydantic import ValidationError

from . import constants
from .errors import ConfigurationError
from .physics.expansion import ALPHA_MODE_LABELS
from .physics.density import DEFAULT_X_FE
from .physics.minerals import DEFAULT_DATABASE, GOES, MineralDatabase, RockComposition, get_database
from .physics.pressure import PressureModel
from .physics.rock import RockPhysicsModel, get_anelasticity
from .schema import Config

logger = logging.getLogger(__name__)


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    if lower in {"nan"}:
        return float("nan")
    if lower in {"inf", "+inf", "+infinity", "infinity"}:
        return float("inf")
    if lower in {"-inf", "-infinity"}:
        return float("-inf")
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if text.startswith("[") and text.endswith("]"):
        inner = text[1:-1].strip()
        if not inner:
            return []
        return [parse_override_value(part) for part in inner.split(",")]
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    return text


def set_path(payload: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """Assign ``value`` at the dotted ``path`` of ``payload``, creating mappings."""

    parts = [segment for segment in path.strip().split(".") if segment]
    if not parts:
        raise ConfigurationError(f"Invalid override path {path!r}")
    target: Any = payload
    for segment in parts[:-1]:
        if not isinstance(target, dict):
            raise ConfigurationError(
                f"Cannot traverse into non-mapping for override '{path}' at '{segment}'"
            )
        if segment not in target or target[segment] is None:
            target[segment] = {}
        target = target[segment]
    if not isinstance(target, dict):
        raise ConfigurationError(f"Cannot set override '{path}'; target is not a mapping")
    target[parts[-1]] = value
    return payload


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply ``path=value`` overrides to a configuration dictionary."""

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        set_path(payload, key, parse_override_value(value_str))
    return payload


def validate_config(data: Mapping[str, Any]) -> Config:
    """Build a :class:`Config`, reporting validation failures as ``ConfigurationError``."""

    try:
        return Config(**dict(data))
    except ValidationError as exc:
        messages = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()))
            msg = str(err.get("msg", "invalid value"))
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, ") :]
            messages.append(f"{loc}: {msg}" if loc else msg)
        raise ConfigurationError("; ".join(messages)) from exc


def resolved_database(cfg: Config) -> MineralDatabase:
    """Return the configured database, defaulting per conversion mode."""

    if cfg.rock.database is not None:
        return get_database(cfg.rock.database)
    return GOES if cfg.mode == "t2rho" else get_database(DEFAULT_DATABASE)


def resolved_x_fe(cfg: Config) -> float:
    """Return the configured iron fraction, defaulting per conversion mode."""

    if cfg.rock.x_fe is not None:
        return float(cfg.rock.x_fe)
    return DEFAULT_X_FE if cfg.mode == "t2rho" else 0.0


def resolved_densities(cfg: Config) -> Tuple[float, float, float]:
    """Return ``(rho_crust, rho_mantle, rho_avg)`` with per-mode defaults."""

    p = cfg.pressure
    if cfg.mode == "v2rhot":
        crust_default, avg_default = constants.RHO_CRUST_V2RHOT, constants.RHO_AVERAGE_V2RHOT
    else:
        crust_default, avg_default = constants.RHO_CRUST, constants.RHO_AVERAGE
    rho_crust = crust_default if p.rho_crust is None else float(p.rho_crust)
    rho_avg = avg_default if p.rho_avg is None else float(p.rho_avg)
    return rho_crust, float(p.rho_mantle), rho_avg


def build_composition(cfg: Config) -> RockComposition:
    """Return the custom composition when given, otherwise the preset."""

    if cfg.rock.composition is not None:
        return RockComposition.custom_mix(cfg.rock.composition)
    return RockComposition.preset(cfg.rock.composition_preset)


def build_rock_model(cfg: Config) -> RockPhysicsModel:
    """Instantiate the forward model described by ``cfg.rock``."""

    rock = cfg.rock
    return RockPhysicsModel(
        resolved_database(cfg),
        build_composition(cfg),
        x_fe=resolved_x_fe(cfg),
        anelasticity=get_anelasticity(rock.q_mode),
        frequency_hz=rock.frequency_hz,
        alpha_mode=rock.alpha_mode,
        t0=rock.t0,
        p0=rock.p0,
    )


def build_pressure_model(cfg: Config, crust=None, topo=None) -> PressureModel:
    """Instantiate the pressure model; ``crust``/``topo`` are ``(x, y)`` lookups."""

    rho_crust, rho_mantle, rho_avg = resolved_densities(cfg)
    return PressureModel(
        cfg.pressure.method,
        rho_avg=rho_avg,
        rho_crust=rho_crust,
        rho_mantle=rho_mantle,
        crust=crust,
        topo=topo,
    )


def describe_run(cfg: Config) -> Dict[str, Any]:
    """Return a flat description of the settings for logs and output headers."""

    composition = build_composition(cfg)
    return {
        "mode": cfg.mode,
        "input": str(cfg.input.path) if cfg.input.path is not None else None,
        "database": resolved_database(cfg).label,
        "composition": composition.describe(),
        "custom_composition": composition.custom,
        "x_fe": resolved_x_fe(cfg),
        "alpha": ALPHA_MODE_LABELS[cfg.rock.alpha_mode],
        "anelasticity": get_anelasticity(cfg.rock.q_mode).label,
        "pressure_method": cfg.pressure.method,
        "vel_type": cfg.solver.vel_type,
        "damping": cfg.solver.damping,
        "threshold": cfg.solver.threshold,
        "t_start": cfg.solver.t_start,
    }


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)


def resolve_path(base: Path | None, value: Path | None) -> Path | None:
    """Resolve ``value`` relative to the directory of the configuration file."""

    if value is None:
        return None
    path = Path(value).expanduser()
    if path.is_absolute() or base is None:
        return path
    return (base / path).resolve()


__all__ = [
    "parse_override_value",
    "set_path",
    "apply_overrides_dict",
    "validate_config",
    "resolved_database",
    "resolved_x_fe",
    "resolved_densities",
    "build_composition",
    "build_rock_model",
    "build_pressure_model",
    "describe_run",
    "configure_logging",
    "resolve_path",
]
