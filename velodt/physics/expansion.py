"""Tabulated temperature derivative of mineral density.

The table integrates the thermal expansion law with an explicit Euler step of
1 K from 273 K to 2273 K::

    rho(T + 1) = rho(T) / (1 + alpha(T) * 1 K)
    drho/dT(T) = rho(T + 1) - rho(T)

The step size and the order of operations are part of the model: the
resulting derivatives are compared against earlier runs of the conversion
tool, so the table must not be replaced by the closed-form derivative.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math

import numpy as np
import pandas as pd

from .. import constants
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

ALPHA_MODE_CONSTANT = 0
ALPHA_MODE_TEMPERATURE = 1
ALPHA_MODE_PRESSURE_TEMPERATURE = 2

ALPHA_MODE_LABELS = {
    ALPHA_MODE_CONSTANT: "Constant alpha",
    ALPHA_MODE_TEMPERATURE: "Alpha(T)",
    ALPHA_MODE_PRESSURE_TEMPERATURE: "Alpha(P,T)",
}


def validate_alpha_mode(mode: int) -> int:
    """Return ``mode`` if it is an implemented thermal expansion mode."""

    if mode == ALPHA_MODE_PRESSURE_TEMPERATURE:
        raise ConfigurationError("Alpha(P,T) is not implemented")
    if mode not in (ALPHA_MODE_CONSTANT, ALPHA_MODE_TEMPERATURE):
        raise ConfigurationError(f"Unknown alpha mode {mode!r}; use 0 (constant) or 1 (alpha(T))")
    return int(mode)


def thermal_expansion(temperature: float, coefficients: np.ndarray, mode: int) -> np.ndarray:
    """Return ``alpha`` of every phase at ``temperature``.

    Parameters
    ----------
    temperature:
        Temperature in K.
    coefficients:
        Array of shape ``(n_phases, 4)`` holding ``a0 .. a3``.
    mode:
        ``0`` for the constant ``a0`` or ``1`` for the polynomial form.
    """

    coeffs = np.asarray(coefficients, dtype=float)
    if mode == ALPHA_MODE_CONSTANT:
        return coeffs[:, 0].copy()
    if mode == ALPHA_MODE_TEMPERATURE:
        T = float(temperature)
        return coeffs[:, 0] + coeffs[:, 1] * T + coeffs[:, 2] / T + coeffs[:, 3] / (T * T)
    validate_alpha_mode(mode)
    raise ConfigurationError(f"Unknown alpha mode {mode!r}")  # pragma: no cover


@dataclass(frozen=True, eq=False)
class ThermalExpansionTable:
    """Per-phase ``drho/dT`` sampled at 1 K from ``T_MIN`` to ``T_MAX``.

    Attributes
    ----------
    temperatures:
        Strictly increasing temperature axis in K.
    values:
        Array of shape ``(n_temperatures, n_phases)`` in kg m^-3 K^-1.
    mode:
        Thermal expansion mode the table was built with.
    """

    temperatures: np.ndarray
    values: np.ndarray
    mode: int = ALPHA_MODE_CONSTANT

    T_MIN = float(constants.DRHODT_T_MIN)
    T_MAX = float(constants.DRHODT_T_MAX)
    STEP = constants.DRHODT_STEP
    SENTINEL = constants.DRHODT_SENTINEL

    @classmethod
    def build(
        cls,
        initial_densities: np.ndarray,
        alpha_coefficients: np.ndarray,
        mode: int = ALPHA_MODE_CONSTANT,
    ) -> "ThermalExpansionTable":
        """Integrate the expansion law and return the table."""

        validate_alpha_mode(mode)
        rho = np.array(initial_densities, dtype=float)
        coeffs = np.asarray(alpha_coefficients, dtype=float)
        if coeffs.shape != (rho.size, 4):
            raise ConfigurationError(
                f"alpha coefficients must have shape ({rho.size}, 4), got {coeffs.shape}"
            )
        n_temp = int(round((cls.T_MAX - cls.T_MIN) / cls.STEP)) + 1
        temperatures = cls.T_MIN + cls.STEP * np.arange(n_temp, dtype=float)
        values = np.empty((n_temp, rho.size), dtype=float)
        for idx, T in enumerate(temperatures):
            alpha = thermal_expansion(T, coeffs, mode)
            rho_next = rho / (1.0 + alpha * cls.STEP)
            values[idx] = (rho_next - rho) / cls.STEP
            rho = rho_next
        temperatures.setflags(write=False)
        values.setflags(write=False)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "ThermalExpansionTable.build: mode=%d rows=%d drho/dT(T_MIN)=%s",
                mode,
                n_temp,
                values[0],
            )
        return cls(temperatures=temperatures, values=values, mode=int(mode))

    def _locate(self, temperature: float) -> tuple[int, float] | None:
        T = float(temperature)
        if not math.isfinite(T) or T < self.T_MIN or T > self.T_MAX:
            logger.warning(
                "Temperature %.2f K outside of drho/dT table range [%g, %g] K",
                T,
                self.T_MIN,
                self.T_MAX,
            )
            return None
        offset = (T - self.T_MIN) / self.STEP
        lower = int(math.floor(offset))
        frac = offset - lower
        if lower >= self.temperatures.size - 1:
            return self.temperatures.size - 1, 0.0
        return lower, frac

    def lookup(self, temperature: float, mineral_index: int) -> float:
        """Return ``drho/dT`` of one phase, or ``SENTINEL`` outside the table."""

        located = self._locate(temperature)
        if located is None:
            return self.SENTINEL
        lower, frac = located
        low_val = float(self.values[lower, mineral_index])
        if frac == 0.0:
            return low_val
        high_val = float(self.values[lower + 1, mineral_index])
        return low_val + frac * (high_val - low_val)

    def lookup_all(self, temperature: float) -> np.ndarray:
        """Vector form of :meth:`lookup` over all phases."""

        located = self._locate(temperature)
        if located is None:
            return np.full(self.values.shape[1], self.SENTINEL)
        lower, frac = located
        low_val = self.values[lower]
        if frac == 0.0:
            return low_val.copy()
        return low_val + frac * (self.values[lower + 1] - low_val)

    def to_frame(self) -> pd.DataFrame:
        """Return the table with a ``T_K`` column followed by one column per phase."""

        frame = pd.DataFrame(self.values, columns=list(constants.PHASES[: self.values.shape[1]]))
        frame.insert(0, "T_K", self.temperatures)
        return frame


__all__ = [
    "ALPHA_MODE_CONSTANT",
    "ALPHA_MODE_TEMPERATURE",
    "ALPHA_MODE_PRESSURE_TEMPERATURE",
    "ALPHA_MODE_LABELS",
    "validate_alpha_mode",
    "thermal_expansion",
    "ThermalExpansionTable",
]
