"""Rock physics model for synthetic seismic velocities.

The model follows the appendix of Goes et al. (2000) and Cammarano et al.
(2003).  For a given pressure and temperature it evaluates, in this order,

1. the thermal expansion coefficient of every phase,
2. the bulk modulus ``K(P, T, X)`` of every phase,
3. the shear modulus ``mu(P, T, X)`` of every phase,
4. Voigt-Reuss-Hill averages of ``K`` and ``mu`` (the Reuss shear modulus
   is kept),
5. the rock density,
6. the attenuation ``Q_mu`` and, for P waves, ``Q_P``,
7. the anelastically corrected synthetic velocity,
8. the temperature derivative of that velocity.

:meth:`RockPhysicsModel.evaluate` is a pure function of ``(P, T, vel_type)``
returning a :class:`RockState`; the model object itself only holds
configuration and the pressure/temperature independent sums, which are
computed once at construction.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .. import constants
from ..errors import ConfigurationError
from .expansion import (
    ALPHA_MODE_CONSTANT,
    ALPHA_MODE_LABELS,
    ThermalExpansionTable,
    thermal_expansion,
    validate_alpha_mode,
)
from .minerals import GOES, MineralDatabase, RockComposition

logger = logging.getLogger(__name__)

VELOCITY_TYPES = ("P", "S")


@dataclass(frozen=True)
class AnelasticityParams:
    """Parameters of the Arrhenius attenuation law ``Q = A w^a exp(a (H + P V) / (R T))``.

    Attributes
    ----------
    a:
        Frequency exponent.
    A:
        Pre-factor.
    H:
        Activation enthalpy in J mol^-1.
    V:
        Activation volume in m^3 mol^-1.
    """

    label: str
    a: float
    A: float
    H: float
    V: float

    @property
    def tan_term(self) -> float:
        return math.tan(math.pi * self.a / 2.0)


SOBOLEV = AnelasticityParams(label="Sobolev et al. (1996)", a=0.15, A=0.148, H=500000.0, V=2.0e-5)
BERCKHEMER = AnelasticityParams(label="Berckhemer et al. (1982)", a=0.25, A=2.0e-4, H=584000.0, V=2.1e-5)

ANELASTICITY_PRESETS: Dict[int, AnelasticityParams] = {1: SOBOLEV, 2: BERCKHEMER}


def get_anelasticity(mode: int) -> AnelasticityParams:
    """Return the anelasticity parameter set for mode ``1`` or ``2``."""

    try:
        return ANELASTICITY_PRESETS[int(mode)]
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"Undefined anelasticity mode {mode!r}; use 1 (Sobolev) or 2 (Berckhemer)"
        ) from exc


def validate_velocity_type(vel_type: str) -> str:
    text = str(vel_type).strip().upper()
    if text not in VELOCITY_TYPES:
        raise ConfigurationError(f"Unknown velocity type {vel_type!r}; use 'P' or 'S'")
    return text


def default_frequency(vel_type: str) -> float:
    """Return the default seismic frequency in Hz for ``vel_type``."""

    return constants.DEFAULT_FREQUENCY_HZ[validate_velocity_type(vel_type)]


@dataclass(frozen=True, eq=False)
class RockState:
    """Rock properties at one ``(P, T)`` condition.

    Attributes
    ----------
    pressure, temperature:
        Evaluation point in Pa and K.
    vel_type:
        ``"P"`` or ``"S"``.
    alpha, K_minerals, mu_minerals:
        Per-phase expansion coefficient and moduli at ``(P, T, X)``.
    K, mu:
        Voigt-Reuss-Hill averaged moduli in Pa.
    mu_reuss:
        Reuss bound of the shear modulus in Pa.
    rho:
        Rock density in kg m^-3.
    Q_mu, Q_P:
        Shear and compressional quality factors; ``Q_P`` is NaN for S waves.
    dM_dT:
        Anharmonic temperature derivative of the relevant modulus in Pa K^-1.
    drho_dT:
        Rock density derivative from the expansion table in kg m^-3 K^-1.
    drho_dT_valid:
        ``False`` when the temperature fell outside the expansion table and the
        sentinel value was used.
    v_syn:
        Synthetic velocity in m s^-1.
    dv_dT:
        Temperature derivative of the synthetic velocity in m s^-1 K^-1.
    """

    pressure: float
    temperature: float
    vel_type: str
    alpha: np.ndarray
    K_minerals: np.ndarray
    mu_minerals: np.ndarray
    K: float
    mu: float
    mu_reuss: float
    rho: float
    Q_mu: float
    Q_P: float
    dM_dT: float
    drho_dT: float
    drho_dT_valid: bool
    v_syn: float
    dv_dT: float

    @property
    def quality_factor(self) -> float:
        """Quality factor used for the velocity type of this state."""
        return self.Q_mu if self.vel_type == "S" else self.Q_P


class RockPhysicsModel:
    """Synthetic velocity model for a mineral assemblage.

    Parameters
    ----------
    database:
        Active mineral property database.
    composition:
        Volume fractions of the five phases.
    x_fe:
        Iron fraction ``X``.
    anelasticity:
        Attenuation parameter set.
    frequency_hz:
        Seismic frequency; ``None`` selects the default of the velocity type
        (1 Hz for S, 0.02 Hz for P).
    alpha_mode:
        ``0`` constant expansion, ``1`` ``alpha(T)``.
    t0, p0:
        Reference temperature (K) and pressure (Pa) of the database.
    expansion_table:
        Precomputed drho/dT table; by default built from the Goes et al.
        (2000) densities and expansion coefficients for every database.
    """

    def __init__(
        self,
        database: MineralDatabase,
        composition: RockComposition,
        *,
        x_fe: float = 0.0,
        anelasticity: AnelasticityParams = SOBOLEV,
        frequency_hz: Optional[float] = None,
        alpha_mode: int = ALPHA_MODE_CONSTANT,
        t0: float = constants.T0_REFERENCE,
        p0: float = constants.P0_REFERENCE,
        expansion_table: Optional[ThermalExpansionTable] = None,
    ) -> None:
        if frequency_hz is not None and not (math.isfinite(frequency_hz) and frequency_hz > 0.0):
            raise ConfigurationError(f"Frequency must be positive, got {frequency_hz!r}")
        self.database = database
        self.composition = composition
        self.x_fe = float(x_fe)
        self.anelasticity = anelasticity
        self.frequency_hz = None if frequency_hz is None else float(frequency_hz)
        self.alpha_mode = validate_alpha_mode(alpha_mode)
        self.t0 = float(t0)
        self.p0 = float(p0)

        self._fractions = composition.array
        db = database
        self._K0 = db.column("K")
        self._dK_dT = db.column("dK_dT")
        self._dK_dP_eff = db.column("dK_dP") + self.x_fe * db.column("dK_dP_dX")
        self._K_X = self.x_fe * db.column("dK_dX")
        self._mu0 = db.column("mu")
        self._dmu_dT = db.column("dmu_dT")
        self._dmu_dP = db.column("dmu_dP")
        self._mu_X = self.x_fe * db.column("dmu_dX")
        self._alpha_coeffs = db.alpha

        # Pressure/temperature independent quantities
        self._rho_XFe = db.column("rho") + db.column("drho_dX") * self.x_fe
        self._dM_dT_minerals = {
            "S": self._dmu_dT,
            "P": self._dK_dT + 4.0 / 3.0 * self._dmu_dT,
        }
        self._anh_voigt_sum = {
            key: float(np.sum(self._fractions * value))
            for key, value in self._dM_dT_minerals.items()
        }

        if expansion_table is None:
            expansion_table = ThermalExpansionTable.build(GOES.rho, GOES.alpha, self.alpha_mode)
        self.expansion_table = expansion_table
        logger.debug(
            "RockPhysicsModel: db=%s composition=%s XFe=%.3f Q=%s alpha_mode=%d",
            db.name,
            composition.fractions,
            self.x_fe,
            anelasticity.label,
            self.alpha_mode,
        )

    def frequency(self, vel_type: str) -> float:
        if self.frequency_hz is not None:
            return self.frequency_hz
        return default_frequency(vel_type)

    def omega(self, vel_type: str) -> float:
        """Angular frequency ``2 pi f`` used for the attenuation law."""
        return 2.0 * math.pi * self.frequency(vel_type)

    @property
    def alpha_label(self) -> str:
        return ALPHA_MODE_LABELS[self.alpha_mode]

    def evaluate(self, pressure: float, temperature: float, vel_type: str = "S") -> RockState:
        """Return the rock properties at ``(pressure, temperature)``."""

        vtype = validate_velocity_type(vel_type)
        P = float(pressure)
        T = float(temperature)
        f = self._fractions
        dT = T - self.t0
        dP = P - self.p0
        an = self.anelasticity

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            alpha = thermal_expansion(T, self._alpha_coeffs, self.alpha_mode)

            K_min = self._K0 + dT * self._dK_dT + dP * self._dK_dP_eff + self._K_X
            K_voigt = float(np.sum(f * K_min))
            K_reuss = 1.0 / float(np.sum(f / K_min))
            K_rock = (K_voigt + K_reuss) / 2.0

            rho = float(np.sum(f * self._rho_XFe * (1.0 - alpha * dT + dP / K_min)))

            mu_min = self._mu0 + dT * self._dmu_dT + dP * self._dmu_dP + self._mu_X
            mu_voigt = float(np.sum(f * mu_min))
            mu_reuss = 1.0 / float(np.sum(f / mu_min))
            mu_rock = (mu_voigt + mu_reuss) / 2.0

            e_star = an.H + P * an.V
            Q_mu = float(an.A * self.omega(vtype) ** an.a * np.exp(an.a * e_star / constants.R_GAS / T))
            Q_P = float("nan")
            if vtype == "P":
                L = 4.0 * mu_rock / (3.0 * K_rock + 4.0 * mu_rock)
                Q_P = Q_mu / L

            if vtype == "S":
                Q = Q_mu
                v_anh = float(np.sqrt(mu_rock / rho))
                M_min = mu_min
            else:
                Q = Q_P
                v_anh = float(np.sqrt((K_rock + 4.0 / 3.0 * mu_rock) / rho))
                M_min = K_min + 4.0 / 3.0 * mu_min
            v_syn = v_anh * (1.0 - 2.0 / Q / an.tan_term)

            M_reuss = 1.0 / float(np.sum(f / M_min))
            anh_sum2 = float(np.sum(f / M_min * self._dM_dT_minerals[vtype]))
            dM_dT = self._anh_voigt_sum[vtype] + anh_sum2 / (M_reuss * M_reuss)

            drho_minerals = self.expansion_table.lookup_all(T)
            drho_valid = not np.any(drho_minerals == ThermalExpansionTable.SENTINEL)
            drho_dT = float(np.sum(f * drho_minerals))

            dv_anel = an.A * an.H / Q / 2.0 / constants.R_GAS / T / T / an.tan_term
            dv_anh = (dM_dT - v_syn * v_syn * drho_dT) / (2.0 * rho * v_syn)
            dv_dT = float(dv_anel + dv_anh)

        state = RockState(
            pressure=P,
            temperature=T,
            vel_type=vtype,
            alpha=alpha,
            K_minerals=K_min,
            mu_minerals=mu_min,
            K=K_rock,
            mu=mu_rock,
            mu_reuss=mu_reuss,
            rho=rho,
            Q_mu=Q_mu,
            Q_P=Q_P,
            dM_dT=dM_dT,
            drho_dT=drho_dT,
            drho_dT_valid=drho_valid,
            v_syn=v_syn,
            dv_dT=dv_dT,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "evaluate: P=%.4e T=%.3f %s rho=%.3f K=%.4e mu=%.4e Q=%.4g Vsyn=%.4f dVdT=%.5f",
                P,
                T,
                vtype,
                rho,
                K_rock,
                mu_rock,
                Q,
                v_syn,
                dv_dT,
            )
        return state

    def synthetic_velocity(self, pressure: float, temperature: float, vel_type: str = "S") -> float:
        """Shortcut for ``evaluate(...).v_syn``."""

        return self.evaluate(pressure, temperature, vel_type).v_syn

    def properties_frame(self) -> pd.DataFrame:
        """Tabulate the active mineral database with the composition column."""

        frame = self.database.to_frame()
        frame.insert(0, "fraction", self._fractions)
        return frame

    def describe(self) -> Dict[str, object]:
        """Return the model settings used in output headers and summaries."""

        return {
            "database": self.database.label,
            "composition": dict(zip(constants.PHASES, self.composition.fractions)),
            "composition_label": self.composition.label,
            "custom_composition": self.composition.custom,
            "x_fe": self.x_fe,
            "alpha": self.alpha_label,
            "anelasticity": self.anelasticity.label,
            "frequency_hz": self.frequency_hz,
        }


__all__ = [
    "VELOCITY_TYPES",
    "AnelasticityParams",
    "SOBOLEV",
    "BERCKHEMER",
    "ANELASTICITY_PRESETS",
    "get_anelasticity",
    "validate_velocity_type",
    "default_frequency",
    "RockState",
    "RockPhysicsModel",
]
