"""Batch conversion of point sets.

Architecture
------------
The orchestrator wires the configuration to the physics layer and the I/O
collaborators:

* :func:`invert_velocities` converts P or S velocities (m/s) into temperature
  and density with the damped fixed-point solver and the full rock model.
* :func:`newton_temperatures` converts S velocities (km/s) into temperature
  with the Priestley & McKenzie (2006) law.
* :func:`temperatures_to_density` converts temperatures into density.
* :func:`run_conversion` reads the input files named in the configuration,
  runs the selected conversion and writes the output and the summary.

Points are processed one after the other in input order and every output row
corresponds to the input row with the same index.  The pressure of a point is
computed once before its solve.  Solver outcomes are reduced into a
:class:`~velodt.physics.inversion.SolverDiagnostics` after each point; no
solver state is shared between points.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from . import config_utils, constants
from .errors import ConfigurationError
from .io import tables, writer
from .physics.density import rock_density
from .physics.inversion import (
    DampedFixedPointSolver,
    NewtonRaphsonSolver,
    SolverDiagnostics,
)
from .physics.pressure import PressureModel
from .physics.rock import RockPhysicsModel
from .runtime.progress import ProgressReporter
from .schema import Config

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Converted point set plus run diagnostics.

    Attributes
    ----------
    frame:
        One row per input point in input order.  Text output uses the
        columns listed in ``columns``; Parquet output keeps all of them
        (including ``iterations`` and ``status`` where available).
    columns:
        ``(column, header label)`` pairs written to text output.
    diagnostics:
        Reduced solver counters; ``None`` for the density conversion.
    settings:
        Ordered description of the run used for headers and summaries.
    grid_shape:
        Grid dimensions of the input, ``None`` for scattered points.
    """

    frame: pd.DataFrame
    columns: List[Tuple[str, str]]
    diagnostics: Optional[SolverDiagnostics] = None
    settings: Dict[str, Any] = field(default_factory=dict)
    grid_shape: Optional[Tuple[int, int, int]] = None
    elapsed_s: float = 0.0


def _progress(cfg: Config, n_points: int, label: str) -> ProgressReporter:
    return ProgressReporter(
        n_points,
        enabled=cfg.runtime.progress and not cfg.runtime.verbose,
        label=label,
    )


def _composition_settings(cfg: Config) -> Dict[str, Any]:
    composition = config_utils.build_composition(cfg)
    settings: Dict[str, Any] = {}
    if composition.custom:
        settings["Mantle composition"] = "custom"
    else:
        settings["Mantle composition"] = composition.label
    for name, value in zip(("Ol", "Opx", "Cpx", "Sp", "Gnt"), composition.fractions):
        settings[name] = f"{value:5.2f}"
    settings["Iron content XFe"] = f"{config_utils.resolved_x_fe(cfg):3.2f}"
    return settings


def _pressure_settings(cfg: Config, pressure_model: PressureModel) -> Dict[str, Any]:
    settings: Dict[str, Any] = {"Pressure calculation method": pressure_model.describe()}
    if cfg.pressure.method == "crust":
        settings["Topography"] = str(cfg.pressure.topo_path)
        settings["Crustal thickness"] = str(cfg.pressure.crust_path)
    return settings


def invert_velocities(
    points: tables.PointData,
    cfg: Config,
    *,
    model: Optional[RockPhysicsModel] = None,
    pressure_model: Optional[PressureModel] = None,
) -> ConversionResult:
    """Convert velocities (m/s) into temperature and density."""

    model = model or config_utils.build_rock_model(cfg)
    pressure_model = pressure_model or config_utils.build_pressure_model(cfg)
    vel_type = cfg.solver.vel_type
    solver = DampedFixedPointSolver(
        model,
        vel_type,
        damping=cfg.solver.damping,
        threshold=cfg.solver.threshold,
        t_start=cfg.solver.t_start,
        max_iterations=cfg.solver.max_iterations,
    )
    df = points.frame
    n_points = len(df)
    temps = np.empty(n_points, dtype=float)
    rhos = np.empty(n_points, dtype=float)
    iterations = np.empty(n_points, dtype=int)
    statuses: List[str] = []
    diagnostics = SolverDiagnostics()
    progress = _progress(cfg, n_points, "points")
    logger.info(
        "Start iteration: %d points, %s waves, threshold %g K, T_start %g K",
        n_points,
        vel_type,
        solver.threshold,
        solver.t_start,
    )
    start = time.monotonic()
    for idx, (x, y, z, v) in enumerate(
        zip(df["x"].to_numpy(), df["y"].to_numpy(), df["z"].to_numpy(), df["velocity"].to_numpy())
    ):
        pressure = pressure_model.pressure(x, y, z)
        result = solver.solve(pressure, float(v), z)
        diagnostics.add(result)
        temps[idx] = result.temperature_c
        rhos[idx] = result.density
        iterations[idx] = result.iterations
        statuses.append(result.status)
        if result.failed:
            logger.debug("Point %d (x=%g y=%g z=%g) failed: %s", idx, x, y, z, result.status)
        progress.update(idx, failed=diagnostics.n_failed)
    elapsed = time.monotonic() - start

    frame = df.loc[:, ["x", "y", "z", "velocity"]].copy()
    frame["T_C"] = temps
    frame["rho"] = rhos
    frame["iterations"] = iterations
    frame["status"] = statuses

    settings: Dict[str, Any] = {"Date created": writer.timestamp()}
    if points.source is not None:
        settings["Input file"] = str(points.source)
    settings["Mineral database"] = model.database.label
    settings.update(_composition_settings(cfg))
    settings.update(_pressure_settings(cfg, pressure_model))
    if cfg.pressure.method == "crust":
        settings["Density crust/mantle/average"] = (
            f"{pressure_model.rho_crust:7.1f}{pressure_model.rho_mantle:7.1f}{pressure_model.rho_avg:7.1f}"
        )
    settings["Alpha"] = model.alpha_label
    settings["Wave frequency / Hz"] = f"{model.frequency(vel_type):g}"
    settings["Dampening factor"] = f"{solver.damping:g}"
    settings["Iteration starting temperature / K"] = f"{solver.t_start:g}"
    settings["Anelasticity parameters"] = model.anelasticity.label
    settings["Average iteration steps"] = f"{diagnostics.average_iterations:.1f}"
    settings["Failed points"] = diagnostics.n_failed

    logger.info(
        "Average iteration steps: %.1f (failed %d of %d, %.2fs)",
        diagnostics.average_iterations,
        diagnostics.n_failed,
        n_points,
        elapsed,
    )
    columns = [
        ("x", "X [m]"),
        ("y", "Y [m]"),
        ("z", "Z [m]"),
        ("velocity", f"V_{vel_type} [m/s]"),
        ("T_C", "T [degC]"),
        ("rho", "Rho [kg/m3]"),
    ]
    return ConversionResult(
        frame=frame,
        columns=columns,
        diagnostics=diagnostics,
        settings=settings,
        grid_shape=points.grid_shape,
        elapsed_s=elapsed,
    )


def newton_temperatures(
    points: tables.PointData,
    cfg: Config,
    *,
    pressure_model: Optional[PressureModel] = None,
    solver: Optional[NewtonRaphsonSolver] = None,
) -> ConversionResult:
    """Convert S velocities (km/s) into temperature with the empirical law."""

    pressure_model = pressure_model or config_utils.build_pressure_model(cfg)
    solver = solver or NewtonRaphsonSolver(
        threshold=cfg.solver.threshold, max_iterations=cfg.solver.max_iterations
    )
    df = points.frame
    n_points = len(df)
    temps = np.empty(n_points, dtype=float)
    iterations = np.empty(n_points, dtype=int)
    v_calc = np.empty(n_points, dtype=float)
    statuses: List[str] = []
    diagnostics = SolverDiagnostics()
    progress = _progress(cfg, n_points, "points")
    logger.info("Starting temperature calculation for %d points", n_points)
    start = time.monotonic()
    for idx, (x, y, z, v) in enumerate(
        zip(df["x"].to_numpy(), df["y"].to_numpy(), df["z"].to_numpy(), df["velocity"].to_numpy())
    ):
        pressure = pressure_model.pressure(x, y, z)
        result = solver.solve(pressure, float(v), z)
        diagnostics.add(result)
        theta = result.temperature_c
        temps[idx] = theta
        iterations[idx] = result.iterations
        statuses.append(result.status)
        if cfg.output.write_velocity:
            v_calc[idx] = solver.law.forward(theta, pressure, z)
        progress.update(idx, failed=diagnostics.n_failed)
    elapsed = time.monotonic() - start

    frame = df.loc[:, ["x", "y", "z", "velocity"]].copy()
    frame["T_C"] = temps
    columns = [
        ("x", "X [m]"),
        ("y", "Y [m]"),
        ("z", "Z [m]"),
        ("velocity", "V_S [km/s]"),
        ("T_C", "T [degC]"),
    ]
    if cfg.output.write_velocity:
        frame["velocity_calc"] = v_calc
        columns.append(("velocity_calc", "V_S calculated [km/s]"))
    frame["iterations"] = iterations
    frame["status"] = statuses

    settings: Dict[str, Any] = {"Date created": writer.timestamp()}
    if points.source is not None:
        settings["Input file"] = str(points.source)
    settings["Temperature law"] = "Priestley and McKenzie (2006)"
    settings.update(_pressure_settings(cfg, pressure_model))
    settings["Newton threshold"] = f"{solver.threshold:g}"
    settings["Zero derivative points"] = diagnostics.n_zero_derivative
    settings["Failed points"] = diagnostics.n_max_iterations + diagnostics.n_diverged
    logger.info(
        "Temperature calculation finished: %d zero derivatives, %d not converged (%.2fs)",
        diagnostics.n_zero_derivative,
        diagnostics.n_max_iterations + diagnostics.n_diverged,
        elapsed,
    )
    return ConversionResult(
        frame=frame,
        columns=columns,
        diagnostics=diagnostics,
        settings=settings,
        grid_shape=points.grid_shape,
        elapsed_s=elapsed,
    )


def temperatures_to_density(points: tables.PointData, cfg: Config) -> ConversionResult:
    """Convert temperatures (degC) into density with a reference Earth model."""

    pressure_model = config_utils.build_pressure_model(cfg)
    if pressure_model.reference is None:
        raise ConfigurationError("Density conversion needs a reference Earth model (AK135 or PREM)")
    df = points.frame
    start = time.monotonic()
    pressures = np.array([pressure_model.reference.pressure(z) for z in df["z"].to_numpy()])
    temperature_k = df["T_C"].to_numpy() + constants.KELVIN_OFFSET
    composition = config_utils.build_composition(cfg)
    database = config_utils.resolved_database(cfg)
    x_fe = config_utils.resolved_x_fe(cfg)
    rho = rock_density(pressures, temperature_k, composition, database=database, x_fe=x_fe)
    elapsed = time.monotonic() - start

    frame = df.loc[:, ["x", "y", "z", "T_C"]].copy()
    frame["rho"] = np.atleast_1d(rho)
    settings: Dict[str, Any] = {"Created": writer.timestamp()}
    if points.source is not None:
        settings["Input"] = str(points.source)
    settings["Pressure calculation method"] = pressure_model.describe()
    settings["Mineral database"] = database.label
    settings.update(_composition_settings(cfg))
    logger.info("Computed density for %d points (%.2fs)", len(frame), elapsed)
    columns = [
        ("x", "X [m]"),
        ("y", "Y [m]"),
        ("z", "Z [m]"),
        ("T_C", "T [degC]"),
        ("rho", "Rho [kg/m3]"),
    ]
    return ConversionResult(frame=frame, columns=columns, settings=settings, elapsed_s=elapsed)


def _output_header(result: ConversionResult, fmt: str, *, scattered: bool) -> List[str]:
    settings = writer.info_lines(result.settings)
    if fmt == "petrel":
        return writer.petrel_header(result.columns, settings)
    if scattered or result.grid_shape is None:
        return writer.point_header(result.columns, settings)
    frame = result.frame
    ranges = {
        axis: (float(frame[axis].min()), float(frame[axis].max())) for axis in ("x", "y", "z")
    }
    return writer.gms_header(result.columns, result.grid_shape, ranges, settings)


def write_result(result: ConversionResult, cfg: Config, path: Optional[Path] = None) -> Path:
    """Write ``result`` in the configured output format and return the path."""

    target = path if path is not None else cfg.output.path
    if target is None:
        raise ConfigurationError("output.path is required")
    destination = Path(target)
    fmt = cfg.output.format
    if fmt == "parquet":
        writer.write_parquet(result.frame, destination, settings=result.settings)
    else:
        header = _output_header(result, fmt, scattered=cfg.input.scatter)
        text_columns = [name for name, _ in result.columns]
        writer.write_text(result.frame.loc[:, text_columns], destination, header)
    logger.info("Output written to %s", destination)
    return destination


def build_summary(result: ConversionResult, cfg: Config) -> Dict[str, Any]:
    """Return the JSON run summary."""

    summary: Dict[str, Any] = {
        "mode": cfg.mode,
        "n_points": int(len(result.frame)),
        "elapsed_s": result.elapsed_s,
        "settings": config_utils.describe_run(cfg),
        "header": {key: value for key, value in result.settings.items()},
        "grid_shape": list(result.grid_shape) if result.grid_shape else None,
        "config": cfg.model_dump(mode="json"),
    }
    if result.diagnostics is not None:
        summary["diagnostics"] = result.diagnostics.to_dict()
    if "T_C" in result.frame:
        values = result.frame["T_C"].to_numpy(dtype=float)
        finite = values[np.isfinite(values)]
        if finite.size:
            summary["T_C_range"] = [float(finite.min()), float(finite.max())]
    return summary


def _load_surfaces(
    cfg: Config, points: tables.PointData
) -> Tuple[Optional[Dict[Tuple[float, float], float]], Optional[Dict[Tuple[float, float], float]]]:
    if cfg.pressure.method != "crust":
        return None, None
    crust = tables.read_surface_file(cfg.pressure.crust_path)
    topo = tables.read_surface_file(cfg.pressure.topo_path)
    tables.check_extents(points, [crust, topo])
    return crust.as_mapping(), topo.as_mapping()


def run_conversion(cfg: Config) -> ConversionResult:
    """Run the conversion described by ``cfg`` end to end."""

    if cfg.input.path is None:
        raise ConfigurationError("input.path is required")
    if cfg.mode == "t2rho":
        points = tables.read_temperature_file(cfg.input.path, scale_z=cfg.input.scale_z)
        result = temperatures_to_density(points, cfg)
    else:
        units = "m/s" if cfg.mode == "v2rhot" else "km/s"
        points = tables.read_velocity_file(
            cfg.input.path,
            scale_z=cfg.input.scale_z,
            scale_v=cfg.input.scale_v,
            scatter=cfg.input.scatter,
            units=units,
        )
        crust, topo = _load_surfaces(cfg, points)
        pressure_model = config_utils.build_pressure_model(cfg, crust=crust, topo=topo)
        if cfg.mode == "v2rhot":
            result = invert_velocities(points, cfg, pressure_model=pressure_model)
        else:
            result = newton_temperatures(points, cfg, pressure_model=pressure_model)
    if cfg.output.path is not None:
        write_result(result, cfg)
    if cfg.output.summary_path is not None:
        writer.write_summary(build_summary(result, cfg), cfg.output.summary_path)
    return result


__all__ = [
    "ConversionResult",
    "invert_velocities",
    "newton_temperatures",
    "temperatures_to_density",
    "write_result",
    "build_summary",
    "run_conversion",
]
