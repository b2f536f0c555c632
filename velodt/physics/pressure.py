"""Lithostatic pressure models.

Three ways of turning a point into pressure are supported and exactly one is
active per run:

``AK135`` / ``PREM``
    Integrate a piecewise-linear reference density profile from the surface
    to the depth of the point.
``simple``
    One average density for the whole column.
``crust``
    Crustal thickness and topography looked up at the point's ``(x, y)``
    location; crust and mantle contribute with their own densities.

Depths follow the input convention: metres above sea level, i.e. negative
below the surface.  The reference models and the simple model only use the
magnitude of the depth.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.integrate import cumulative_trapezoid

from .. import constants
from ..errors import ConfigurationError, DataConsistencyError, PhysicsError

logger = logging.getLogger(__name__)

PRESSURE_METHODS = ("AK135", "PREM", "simple", "crust")

# Control points in km and g cm^-3
_AK135_DEPTH_KM = (
    0, 3, 3, 3.3, 3.3, 10, 10, 18, 18, 43, 80, 80, 120, 120, 165, 210, 210,
    260, 310, 360, 410, 410, 460, 510, 560, 610, 660,
)
_AK135_DENSITY = (
    1.02, 1.02, 2, 2, 2.6, 2.6, 2.92, 2.92, 3.641, 3.5801, 3.502, 3.502,
    3.4268, 3.4268, 3.3711, 3.3243, 3.3243, 3.3663, 3.411, 3.4577, 3.5068,
    3.9317, 3.9273, 3.9233, 3.9218, 3.9206, 3.9201,
)

_PREM_DEPTH_KM = (
    0, 1, 2, 3, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 15, 16, 17, 18,
    19, 20, 21, 22, 23, 24.4, 24.4, 25, 26, 27, 28, 29, 30, 31, 32, 33, 34, 35,
    40, 45, 50, 60, 70, 80, 80, 90, 100, 110, 120, 130, 140, 150, 160, 170,
    180, 190, 200, 210, 220, 220, 230, 240, 250, 260, 270, 280, 290, 300, 310,
    320, 330, 340, 350, 360, 370, 380, 390, 400, 400, 410, 420, 430, 440, 450,
    460, 470, 480, 490, 500, 510, 520, 530, 540, 550, 560, 570, 580, 590, 600,
    600, 610, 620, 630, 640, 650, 660,
)
_PREM_DENSITY = (
    1.02, 1.02, 1.02, 1.02, 2.6, 2.6, 2.6, 2.6, 2.6, 2.6, 2.6, 2.6, 2.6, 2.6,
    2.6, 2.6, 2.6, 2.9, 2.9, 2.9, 2.9, 2.9, 2.9, 2.9, 2.9, 2.9, 2.9, 3.38075,
    3.38068, 3.38057, 3.38047, 3.38036, 3.38025, 3.38014, 3.38003, 3.37992,
    3.37981, 3.3797, 3.3796, 3.37905, 3.37851, 3.37797, 3.37688, 3.37579,
    3.37471, 3.37471, 3.37362, 3.37253, 3.37145, 3.37036, 3.36927, 3.36818,
    3.3671, 3.36601, 3.36492, 3.36384, 3.36275, 3.36166, 3.36058, 3.35949,
    3.43577, 3.44175, 3.44772, 3.45369, 3.45966, 3.46563, 3.4716, 3.47758,
    3.48355, 3.48952, 3.49549, 3.50146, 3.50743, 3.51341, 3.51938, 3.52535,
    3.53132, 3.53729, 3.54326, 3.72375, 3.73635, 3.74895, 3.76156, 3.77416,
    3.78677, 3.79937, 3.81197, 3.82458, 3.83718, 3.84978, 3.86239, 3.87499,
    3.88759, 3.9002, 3.9128, 3.92541, 3.93801, 3.95061, 3.96322, 3.97582,
    3.97582, 3.97815, 3.98048, 3.98281, 3.98514, 3.98746, 3.98979,
)


@dataclass(frozen=True, eq=False)
class ReferenceEarthModel:
    """Piecewise-linear density profile with pre-integrated node pressures.

    Attributes
    ----------
    name:
        Model identifier (``"AK135"`` or ``"PREM"``).
    depth:
        Control point depths in m, non-decreasing.  Repeated depths mark
        density discontinuities.
    density:
        Densities at the control points in kg m^-3.
    node_pressure:
        Pressure at each control point in Pa.
    """

    name: str
    depth: np.ndarray
    density: np.ndarray
    node_pressure: np.ndarray

    @classmethod
    def from_control_points(cls, name: str, depth_km, density_g_cm3) -> "ReferenceEarthModel":
        depth = np.asarray(depth_km, dtype=float) * 1000.0
        density = np.asarray(density_g_cm3, dtype=float) * 1000.0
        if depth.shape != density.shape or depth.size < 2:
            raise ConfigurationError(f"Reference model {name!r} needs matching depth/density arrays")
        if np.any(np.diff(depth) < 0.0):
            raise ConfigurationError(f"Reference model {name!r} depths must be non-decreasing")
        node_pressure = cumulative_trapezoid(density, depth, initial=0.0) * constants.G_ACCEL
        for arr in (depth, density, node_pressure):
            arr.setflags(write=False)
        return cls(name=name, depth=depth, density=density, node_pressure=node_pressure)

    @classmethod
    def named(cls, name: str) -> "ReferenceEarthModel":
        """Return the built-in ``AK135`` or ``PREM`` model."""

        key = str(name).strip().upper()
        if key not in _REFERENCE_MODELS:
            raise ConfigurationError(f"Unknown reference model {name!r}; choose AK135 or PREM")
        return _REFERENCE_MODELS[key]

    @property
    def max_depth(self) -> float:
        return float(self.depth[-1])

    def pressure(self, depth: float) -> float:
        """Return the lithostatic pressure in Pa at ``|depth|`` metres.

        The segment containing the target depth is found, the density at the
        target is interpolated linearly and the final partial trapezoid is
        added to the node pressure at the top of that segment.
        """

        z_abs = abs(float(depth))
        if not math.isfinite(z_abs):
            raise PhysicsError(f"Depth must be finite, got {depth!r}")
        if z_abs > self.max_depth:
            raise PhysicsError(
                f"Depth {z_abs:.1f} m exceeds the {self.name} reference model ({self.max_depth:.0f} m)"
            )
        if z_abs == self.max_depth:
            return float(self.node_pressure[-1])
        idx = int(np.searchsorted(self.depth, z_abs, side="right")) - 1
        z1 = self.depth[idx]
        z2 = self.depth[idx + 1]
        rho1 = self.density[idx]
        rho2 = self.density[idx + 1]
        rho_z = rho1 + (z_abs - z1) / (z2 - z1) * (rho2 - rho1)
        dz = z_abs - z1
        return float(self.node_pressure[idx] + dz * (rho1 + (rho_z - rho1) / 2.0) * constants.G_ACCEL)


_REFERENCE_MODELS: Dict[str, ReferenceEarthModel] = {
    "AK135": ReferenceEarthModel.from_control_points("AK135", _AK135_DEPTH_KM, _AK135_DENSITY),
    "PREM": ReferenceEarthModel.from_control_points("PREM", _PREM_DEPTH_KM, _PREM_DENSITY),
}


def pressure_simple(depth: float, rho_avg: float = constants.RHO_AVERAGE) -> float:
    """Return ``rho_avg * g * |depth|``."""

    return rho_avg * constants.G_ACCEL * abs(depth)


def pressure_with_crust(
    x: float,
    y: float,
    depth: float,
    crust: Mapping[Tuple[float, float], float],
    topo: Mapping[Tuple[float, float], float],
    *,
    rho_crust: float = constants.RHO_CRUST,
    rho_mantle: float = constants.RHO_MANTLE,
) -> float:
    """Return crust plus mantle column pressure at ``(x, y, depth)``.

    ``crust`` maps ``(x, y)`` to crustal thickness in m and ``topo`` maps
    ``(x, y)`` to topographic elevation in m.  Keys must match exactly.

    Raises
    ------
    DataConsistencyError
        If a key is missing or the point lies above the crust base.
    """

    key = (float(x), float(y))
    try:
        t_crust = float(crust[key])
        z_topo = float(topo[key])
    except KeyError as exc:
        raise DataConsistencyError(
            f"No crustal thickness/topography value at x={x} y={y}"
        ) from exc
    p_crust = rho_crust * constants.G_ACCEL * t_crust
    t_mantle = z_topo - t_crust - depth
    if t_mantle < 0.0:
        raise DataConsistencyError(
            f"Mantle thickness < 0 at x={x} y={y} z={depth} (topography {z_topo}, crust {t_crust})"
        )
    return p_crust + rho_mantle * constants.G_ACCEL * t_mantle


class PressureModel:
    """Dispatch to the configured pressure method.

    Parameters
    ----------
    method:
        One of ``AK135``, ``PREM``, ``simple`` or ``crust``.
    rho_avg, rho_crust, rho_mantle:
        Column densities in kg m^-3.
    crust, topo:
        ``(x, y) -> value`` lookups, required for ``crust``.
    """

    def __init__(
        self,
        method: str = "AK135",
        *,
        rho_avg: float = constants.RHO_AVERAGE,
        rho_crust: float = constants.RHO_CRUST,
        rho_mantle: float = constants.RHO_MANTLE,
        crust: Optional[Mapping[Tuple[float, float], float]] = None,
        topo: Optional[Mapping[Tuple[float, float], float]] = None,
    ) -> None:
        normalised = _normalise_method(method)
        self.method = normalised
        self.rho_avg = float(rho_avg)
        self.rho_crust = float(rho_crust)
        self.rho_mantle = float(rho_mantle)
        self.reference: Optional[ReferenceEarthModel] = None
        self.crust = crust
        self.topo = topo
        if normalised in ("AK135", "PREM"):
            self.reference = ReferenceEarthModel.named(normalised)
        elif normalised == "crust":
            if crust is None or topo is None:
                missing = [label for label, val in (("crustal thickness", crust), ("topography", topo)) if val is None]
                raise ConfigurationError(
                    "Pressure calculation method set to 'crust' but "
                    + " and ".join(missing)
                    + " not defined"
                )
        logger.debug("PressureModel: method=%s", normalised)

    def pressure(self, x: float, y: float, depth: float) -> float:
        """Return the pressure in Pa at the point."""

        if self.reference is not None:
            return self.reference.pressure(depth)
        if self.method == "crust":
            return pressure_with_crust(
                x,
                y,
                depth,
                self.crust,
                self.topo,
                rho_crust=self.rho_crust,
                rho_mantle=self.rho_mantle,
            )
        return pressure_simple(depth, self.rho_avg)

    def profile(self, z_min: float = -200000.0, z_max: float = 0.0, dz: float = 10000.0) -> pd.DataFrame:
        """Return pressures on a regular depth axis for inspection.

        Only defined for methods that do not depend on ``(x, y)``.
        """

        if self.method == "crust":
            raise ConfigurationError("Pressure profiles need a reference model or the simple method")
        if dz <= 0.0:
            raise ConfigurationError("Depth increment must be positive")
        n_float = (z_max - z_min) / dz + 1.0
        if math.fmod(n_float, 1.0) != 0.0:
            raise ConfigurationError(
                f"Depth range {z_min}..{z_max} is not divisible by the increment {dz}"
            )
        depths = z_min + dz * np.arange(int(n_float), dtype=float)
        pressures = [self.pressure(0.0, 0.0, z) for z in depths]
        return pd.DataFrame({"depth_m": depths, "pressure_Pa": pressures})

    def describe(self) -> str:
        if self.method == "simple":
            return f"simple (rho_avg={self.rho_avg:.1f} kg/m3)"
        if self.method == "crust":
            return f"crust (rho_crust={self.rho_crust:.1f}, rho_mantle={self.rho_mantle:.1f} kg/m3)"
        return self.method


def _normalise_method(method: str) -> str:
    text = str(method).strip()
    for candidate in PRESSURE_METHODS:
        if text.lower() == candidate.lower():
            return candidate
    raise ConfigurationError(
        f"Undefined method for pressure calculation {method!r}; choose one of {list(PRESSURE_METHODS)}"
    )


__all__ = [
    "PRESSURE_METHODS",
    "ReferenceEarthModel",
    "pressure_simple",
    "pressure_with_crust",
    "PressureModel",
]
