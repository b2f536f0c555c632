"""Output helper utilities.

Converted point sets are written as tab separated text with a commented
header (GMS grid points, plain point data or Petrel points with attributes)
or as Parquet files through :mod:`pyarrow`.  Run summaries are written as
JSON.  All functions create missing destination directories.
"""
from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

UNITS = {
    "x": "m",
    "y": "m",
    "z": "m",
    "velocity": "m/s",
    "velocity_calc": "km/s",
    "T_C": "degC",
    "rho": "kg/m3",
    "iterations": "count",
    "status": "category",
    "pressure_Pa": "Pa",
    "depth_m": "m",
    "T_K": "K",
}

DEFINITIONS = {
    "x": "Easting of the input point.",
    "y": "Northing of the input point.",
    "z": "Elevation of the point, negative below sea level [m].",
    "velocity": "Observed seismic velocity as read (after scaling).",
    "velocity_calc": "Velocity recomputed from the converted temperature [km/s].",
    "T_C": "Converted temperature [degC]; fallback values mark failed points.",
    "rho": "Rock density at the converted temperature [kg/m3].",
    "iterations": "Number of solver update steps for the point.",
    "status": "Solver outcome (converged, direct, max_iterations, zero_derivative, diverged).",
}

# Decimal places of the text output
TEXT_PRECISION = {"T_C": 1, "rho": 1}
DEFAULT_PRECISION = 5


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def info_lines(settings: Mapping[str, Any], title: str = "Transformation settings") -> List[str]:
    """Return ``# key: value`` lines describing the run settings."""

    lines = [f"# {title}:"]
    for key, value in settings.items():
        if value is None:
            continue
        if isinstance(value, float):
            value = f"{value:g}"
        lines.append(f"# {key}: {value}")
    return lines


def gms_header(
    columns: Sequence[Tuple[str, str]],
    grid_shape: Tuple[int, int, int],
    ranges: Mapping[str, Tuple[float, float]],
    settings: Sequence[str],
) -> List[str]:
    """Header of a GMS GridPoints file."""

    lines = [
        "# Type: GMS GridPoints",
        "# Version: 2",
        "# Description:",
        "# Format: free",
    ]
    lines.extend(f"# Field: {idx} {label}" for idx, (_, label) in enumerate(columns, start=1))
    lines.append("# Projection: Local Rectangular")
    lines.append("# Information from grid:")
    nx, ny, nz = grid_shape
    lines.append(f"# Grid_size: {nx} x {ny} x {nz}")
    for axis in ("x", "y", "z"):
        low, high = ranges[axis]
        lines.append(f"# Grid_{axis.upper()}_range: {low:f} to {high:f}")
    lines.extend(settings)
    lines.append("# End:")
    return lines


def point_header(columns: Sequence[Tuple[str, str]], settings: Sequence[str]) -> List[str]:
    """Header of a scattered point file."""

    lines = ["# Point data"]
    lines.extend(settings)
    lines.append("# Columns:")
    lines.extend(f"# {idx} - {label}" for idx, (_, label) in enumerate(columns, start=1))
    return lines


def petrel_header(columns: Sequence[Tuple[str, str]], settings: Sequence[str]) -> List[str]:
    """Header of a Petrel "points with attributes" file."""

    lines = [
        "# Petrel Points with attributes",
        "# Unit in X and Y direction: m",
        "# Unit in depth: m",
    ]
    lines.extend(settings)
    lines.extend(["VERSION 1", "BEGIN HEADER", "X", "Y", "Z"])
    lines.extend(f"FLOAT,{label}" for name, label in columns if name not in {"x", "y", "z"})
    lines.append("END HEADER")
    return lines


def _format_value(value: Any, precision: int) -> str:
    if isinstance(value, str):
        return value
    return f"{float(value):.{precision}f}"


def write_text(
    df: pd.DataFrame,
    path: Path,
    header: Iterable[str],
    *,
    precision: Optional[Mapping[str, int]] = None,
) -> None:
    """Write ``df`` as tab separated columns below ``header``."""

    path = Path(path)
    _ensure_parent(path)
    digits = dict(TEXT_PRECISION)
    if precision:
        digits.update(precision)
    column_digits = [digits.get(col, DEFAULT_PRECISION) for col in df.columns]
    with path.open("w", encoding="utf-8") as fh:
        for line in header:
            fh.write(f"{line}\n")
        for row in df.itertuples(index=False, name=None):
            fh.write(
                "\t".join(_format_value(val, dig) for val, dig in zip(row, column_digits))
            )
            fh.write("\n")


def write_parquet(
    df: pd.DataFrame,
    path: Path,
    *,
    settings: Optional[Mapping[str, Any]] = None,
    compression: str = "snappy",
) -> None:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Column units, definitions and the run settings are stored in the schema
    metadata.
    """

    path = Path(path)
    _ensure_parent(path)
    table = pa.Table.from_pandas(df, preserve_index=False)
    metadata = dict(table.schema.metadata or {})
    units = {col: UNITS[col] for col in df.columns if col in UNITS}
    definitions = {col: DEFINITIONS[col] for col in df.columns if col in DEFINITIONS}
    metadata.update(
        {
            b"units": json.dumps(units, sort_keys=True).encode("utf-8"),
            b"definitions": json.dumps(definitions, sort_keys=True).encode("utf-8"),
        }
    )
    if settings:
        metadata[b"settings"] = json.dumps(dict(settings), sort_keys=True, default=str).encode("utf-8")
    table = table.replace_schema_metadata(metadata)
    compression_arg = None if compression == "none" else compression
    pq.write_table(table, path, compression=compression_arg)


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary as indented JSON."""

    path = Path(path)
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(summary, fh, indent=2, sort_keys=True, default=str)


def write_table(df: pd.DataFrame, path: Path, *, header: Sequence[str] = ()) -> None:
    """Write a diagnostic table (e.g. properties, drho/dT, pressure profile).

    ``.csv`` destinations get a plain CSV, everything else a whitespace
    separated text file with ``header`` as comment lines.
    """

    path = Path(path)
    _ensure_parent(path)
    if path.suffix.lower() == ".csv":
        df.to_csv(path, index=bool(df.index.name))
        return
    with_index = bool(df.index.name)
    names = ([str(df.index.name)] if with_index else []) + [str(col) for col in df.columns]
    with path.open("w", encoding="utf-8") as fh:
        for line in header:
            fh.write(f"# {line}\n")
        fh.write("# " + " ".join(names) + "\n")
        df.to_csv(fh, sep=" ", header=False, index=with_index, float_format="%.10g")


__all__ = [
    "UNITS",
    "DEFINITIONS",
    "timestamp",
    "info_lines",
    "gms_header",
    "point_header",
    "petrel_header",
    "write_text",
    "write_parquet",
    "write_summary",
    "write_table",
]
