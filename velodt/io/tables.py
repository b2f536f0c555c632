"""Readers for velocity, temperature and surface (crust/topography) files.

All inputs are whitespace separated text files with ``#`` comment lines.
Velocity files hold ``x y z v`` rows and may carry a GMS style grid header
``# Grid_size: nx x ny x nz``; without it the data are treated as scattered
points.  Surface files hold ``x y value`` rows (additional EarthVision
columns are ignored) and are keyed by exact ``(x, y)`` coordinates.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import re
from typing import Dict, Optional, Sequence, Tuple
import warnings

import numpy as np
import pandas as pd

from .. import constants
from ..errors import DataConsistencyError, InputFileError
from ..warnings import InputWarning

logger = logging.getLogger(__name__)

GRID_SIZE_PATTERN = re.compile(r"^#\s*Grid_size:\s*(\d+)\s*x\s*(\d+)\s*x\s*(\d+)", re.IGNORECASE)

VELOCITY_COLUMNS = ("x", "y", "z", "velocity")
TEMPERATURE_COLUMNS = ("x", "y", "z", "T_C")


@dataclass(frozen=True)
class Extent:
    """Horizontal bounding box of a point set."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "Extent":
        return cls(
            x_min=float(df["x"].min()),
            x_max=float(df["x"].max()),
            y_min=float(df["y"].min()),
            y_max=float(df["y"].max()),
        )


@dataclass
class PointData:
    """Points read from a velocity or temperature file.

    Attributes
    ----------
    frame:
        One row per input point in file order.
    grid_shape:
        ``(nx, ny, nz)`` from the grid header, or ``None`` for scattered data.
    source:
        File the data were read from.
    """

    frame: pd.DataFrame
    grid_shape: Optional[Tuple[int, int, int]] = None
    source: Optional[Path] = None

    @property
    def scattered(self) -> bool:
        return self.grid_shape is None

    @property
    def extent(self) -> Extent:
        return Extent.from_frame(self.frame)

    def __len__(self) -> int:
        return len(self.frame)


@dataclass
class SurfaceGrid:
    """``(x, y) -> value`` lookup for crustal thickness or topography."""

    frame: pd.DataFrame
    source: Optional[Path] = None

    @classmethod
    def from_frame(cls, df: pd.DataFrame, source: Optional[Path] = None) -> "SurfaceGrid":
        required = {"x", "y", "value"}
        missing = required.difference(df.columns)
        if missing:
            names = ", ".join(sorted(missing))
            raise InputFileError(f"Surface table is missing required columns: {names}")
        work = df.loc[:, ["x", "y", "value"]].apply(pd.to_numeric, errors="coerce")
        if work.isna().any().any():
            raise InputFileError("Surface table contains non-numeric or missing values")
        if work.duplicated(subset=["x", "y"]).any():
            raise InputFileError("Surface table has duplicate (x, y) entries")
        return cls(frame=work.reset_index(drop=True), source=source)

    def as_mapping(self) -> Dict[Tuple[float, float], float]:
        return {
            (float(x), float(y)): float(v)
            for x, y, v in zip(self.frame["x"], self.frame["y"], self.frame["value"])
        }

    @property
    def extent(self) -> Extent:
        return Extent.from_frame(self.frame)


def _read_table(path: Path, n_columns: int, *, min_columns: Optional[int] = None) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise InputFileError(f"File {path} not found")
    try:
        df = pd.read_csv(path, sep=r"\s+", comment="#", header=None, dtype=float, engine="python")
    except pd.errors.EmptyDataError as exc:
        raise InputFileError(f"File {path} contains no data rows") from exc
    except (pd.errors.ParserError, ValueError) as exc:
        raise InputFileError(f"Could not parse {path}: {exc}") from exc
    if min_columns is not None:
        if df.shape[1] < min_columns:
            raise InputFileError(
                f"{path}: expected at least {min_columns} columns, found {df.shape[1]}"
            )
        df = df.iloc[:, :n_columns]
    elif df.shape[1] != n_columns:
        raise InputFileError(f"{path}: unknown amount of columns ({df.shape[1]} instead of {n_columns})")
    if df.isna().any().any():
        raise InputFileError(f"{path}: missing values in data rows")
    return df


def read_grid_shape(path: Path) -> Optional[Tuple[int, int, int]]:
    """Return ``(nx, ny, nz)`` from a ``# Grid_size`` header line, if present."""

    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            stripped = line.strip()
            if not stripped.startswith("#"):
                continue
            match = GRID_SIZE_PATTERN.match(stripped)
            if match:
                return tuple(int(v) for v in match.groups())  # type: ignore[return-value]
    return None


def read_velocity_file(
    path: Path,
    *,
    scale_z: float = 1.0,
    scale_v: float = 1.0,
    scatter: bool = False,
    units: str = "m/s",
) -> PointData:
    """Read ``x y z v`` rows.

    Parameters
    ----------
    path:
        Input file.
    scale_z, scale_v:
        Factors applied to depth and velocity after reading.
    scatter:
        Ignore any grid header and treat the data as scattered points.
    units:
        ``"m/s"`` rejects velocities below 50 m/s, ``"km/s"`` warns for
        velocities above 10 km/s.
    """

    df = _read_table(path, len(VELOCITY_COLUMNS))
    df.columns = list(VELOCITY_COLUMNS)
    df["z"] = df["z"] * scale_z
    df["velocity"] = df["velocity"] * scale_v
    if units == "m/s":
        if (df["velocity"] < constants.MIN_VELOCITY_MS).any():
            raise InputFileError(
                "Imported velocity is < 50 m/s! Maybe imported velocities are in km/s? "
                "To convert to m/s use a velocity scale factor of 1000"
            )
    elif units == "km/s":
        if float(df["velocity"].min()) > 10.0:
            warnings.warn(
                "Minimum velocity is above 10; velocities should be given in km/s",
                InputWarning,
            )
    else:
        raise ValueError(f"Unknown velocity unit {units!r}")

    grid_shape = None if scatter else read_grid_shape(path)
    if grid_shape is None and not scatter:
        warnings.warn(
            f"Could not find grid information in {path}; writing scattered point data",
            InputWarning,
        )
    elif grid_shape is not None and int(np.prod(grid_shape)) != len(df):
        logger.warning(
            "Grid size %s does not match the %d points in %s", grid_shape, len(df), path
        )
    logger.info("Read %d points from %s", len(df), path)
    return PointData(frame=df, grid_shape=grid_shape, source=Path(path))


def read_temperature_file(path: Path, *, scale_z: float = 1.0) -> PointData:
    """Read ``x y z T`` rows with ``T`` in degrees Celsius."""

    df = _read_table(path, len(TEMPERATURE_COLUMNS))
    df.columns = list(TEMPERATURE_COLUMNS)
    df["z"] = df["z"] * scale_z
    logger.info("Read %d points from %s", len(df), path)
    return PointData(frame=df, grid_shape=None, source=Path(path))


def read_surface_file(path: Path) -> SurfaceGrid:
    """Read crustal thickness or topography as ``x y value`` rows."""

    df = _read_table(path, 3, min_columns=3)
    df.columns = ["x", "y", "value"]
    return SurfaceGrid.from_frame(df, source=Path(path))


def check_extents(points: PointData, surfaces: Sequence[SurfaceGrid]) -> None:
    """Raise if the auxiliary grids do not cover the same area as the points."""

    reference = points.extent
    for surface in surfaces:
        if surface.extent != reference:
            raise DataConsistencyError(
                f"Datasets have different dimensions: {points.source} {reference} vs "
                f"{surface.source} {surface.extent}"
            )


__all__ = [
    "VELOCITY_COLUMNS",
    "TEMPERATURE_COLUMNS",
    "Extent",
    "PointData",
    "SurfaceGrid",
    "read_grid_shape",
    "read_velocity_file",
    "read_temperature_file",
    "read_surface_file",
    "check_extents",
]
