"""Rock density from temperature and pressure.

Used for converting temperature models into density models.  Each phase
expands with its constant coefficient ``a0`` and compresses with a bulk modulus
corrected for temperature, pressure and iron content::

    K_i   = K0_i + dT dK/dT_i + dP (dK/dP_i + X dK/dP/dX_i)
    rho_i = rho0_i (1 - a0_i dT + dP / K_i) + drho/dX_i X

The rock density is the volume weighted sum of ``rho_i``.
"""
from __future__ import annotations

import logging

import numpy as np

from ..errors import PhysicsError
from .minerals import GOES, MineralDatabase, RockComposition

logger = logging.getLogger(__name__)

T0_DENSITY: float = 293.5  # K
P0_DENSITY: float = 0.0  # Pa
DEFAULT_X_FE: float = 0.1


def rock_density(
    pressure,
    temperature,
    composition: RockComposition,
    *,
    database: MineralDatabase = GOES,
    x_fe: float = DEFAULT_X_FE,
    t0: float = T0_DENSITY,
    p0: float = P0_DENSITY,
):
    """Return the rock density in kg m^-3.

    Parameters
    ----------
    pressure:
        Pressure in Pa, scalar or array.
    temperature:
        Temperature in K, scalar or array broadcastable with ``pressure``.
    composition:
        Volume fractions of the five phases.
    database:
        Mineral database; the Goes et al. (2000) values by default.
    x_fe:
        Iron fraction.
    """

    P = np.asarray(pressure, dtype=float)
    T = np.asarray(temperature, dtype=float)
    dT = (T - t0)[..., np.newaxis]
    dP = (P - p0)[..., np.newaxis]
    K_T = (
        database.column("K")
        + dT * database.column("dK_dT")
        + dP * (database.column("dK_dP") + x_fe * database.column("dK_dP_dX"))
    )
    if np.any(K_T <= 0.0):
        raise PhysicsError("Bulk modulus became non-positive; temperature or pressure out of range")
    rho_min = database.rho * (1.0 - database.alpha[:, 0] * dT + dP / K_T) + database.column("drho_dX") * x_fe
    rho = np.sum(composition.array * rho_min, axis=-1)
    if rho.ndim == 0:
        return float(rho)
    return rho


__all__ = ["T0_DENSITY", "P0_DENSITY", "DEFAULT_X_FE", "rock_density"]
