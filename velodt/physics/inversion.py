"""Velocity to temperature inversion.

Two solvers share one contract, ``solve(pressure, observed_velocity, depth)``
returning a :class:`SolveResult`:

:class:`DampedFixedPointSolver`
    Inverts the full rock physics model with the damped update
    ``T_{n+1} = T_n + f_damp (V_obs - V_syn(T_n)) / (dV/dT)(T_n)``.
    Velocities in m/s, temperatures in K.
:class:`NewtonRaphsonSolver`
    Inverts the empirical S-wave relation of Priestley & McKenzie (2006)
    in km/s and degrees Celsius.

Per-point failures (iteration cap, zero derivative, divergence) never raise;
the point receives the fallback temperature of its solver and a status that
:class:`SolverDiagnostics` counts.  The fallback values differ between the
solvers (272.15 K versus -1 degC) and are kept as they are because existing
output files rely on them.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Iterable, Optional

from .. import constants
from ..errors import NumericalError
from .rock import RockPhysicsModel, RockState, validate_velocity_type

logger = logging.getLogger(__name__)

STATUS_CONVERGED = "converged"
STATUS_DIRECT = "direct"
STATUS_MAX_ITERATIONS = "max_iterations"
STATUS_ZERO_DERIVATIVE = "zero_derivative"
STATUS_DIVERGED = "diverged"

FAILURE_STATUSES = frozenset({STATUS_MAX_ITERATIONS, STATUS_ZERO_DERIVATIVE, STATUS_DIVERGED})


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one inversion.

    Attributes
    ----------
    temperature:
        Temperature in K (fallback value for failed points).
    iterations:
        Number of update steps taken.
    converged:
        ``True`` when the step size dropped below the threshold or the
        closed-form branch was used.
    status:
        One of ``converged``, ``direct``, ``max_iterations``,
        ``zero_derivative`` or ``diverged``.
    density:
        Rock density of the last model evaluation (fixed-point solver only).
    out_of_range:
        ``True`` if the expansion table sentinel was hit during iteration.
    """

    temperature: float
    iterations: int
    converged: bool
    status: str = STATUS_CONVERGED
    density: float = float("nan")
    out_of_range: bool = False

    @property
    def temperature_c(self) -> float:
        return self.temperature - constants.KELVIN_OFFSET

    @property
    def failed(self) -> bool:
        return self.status in FAILURE_STATUSES


def _check_threshold(threshold: float) -> float:
    value = float(threshold)
    if not math.isfinite(value) or value <= 0.0:
        raise NumericalError(f"Convergence threshold must be positive, got {threshold!r}")
    return value


class DampedFixedPointSolver:
    """Damped fixed-point inversion of the rock physics model.

    Parameters
    ----------
    model:
        Forward model providing ``V_syn`` and ``dV/dT``.
    vel_type:
        ``"P"`` or ``"S"``.
    damping:
        Constant damping factor ``f_damp``.
    threshold:
        Stop once ``|T_{n+1} - T_n|`` is at or below this value (K).
    t_start:
        Starting temperature (K).
    max_iterations:
        Iteration cap; exceeding it yields ``FALLBACK_TEMPERATURE_K``.
    """

    def __init__(
        self,
        model: RockPhysicsModel,
        vel_type: str = "S",
        *,
        damping: float = constants.DEFAULT_DAMPING,
        threshold: float = constants.DEFAULT_THRESHOLD,
        t_start: float = constants.DEFAULT_T_START,
        max_iterations: int = constants.MAX_ITERATIONS,
    ) -> None:
        if not math.isfinite(damping) or damping <= 0.0:
            raise NumericalError(f"Damping factor must be positive, got {damping!r}")
        if not math.isfinite(t_start) or t_start <= 0.0:
            raise NumericalError(f"Starting temperature must be positive, got {t_start!r}")
        self.model = model
        self.vel_type = validate_velocity_type(vel_type)
        self.damping = float(damping)
        self.threshold = _check_threshold(threshold)
        self.t_start = float(t_start)
        self.max_iterations = int(max_iterations)

    def solve(self, pressure: float, observed_velocity: float, depth: Optional[float] = None) -> SolveResult:
        """Return the temperature at which ``V_syn`` matches ``observed_velocity``."""

        T_n = self.t_start
        counter = 0
        out_of_range = False
        state: Optional[RockState] = None
        debug = logger.isEnabledFor(logging.DEBUG)
        while True:
            state = self.model.evaluate(pressure, T_n, self.vel_type)
            out_of_range = out_of_range or not state.drho_dT_valid
            if state.dv_dT == 0.0 or not math.isfinite(state.dv_dT):
                T_n1 = math.nan
            else:
                T_n1 = T_n + self.damping * (observed_velocity - state.v_syn) / state.dv_dT
            counter += 1
            if not math.isfinite(T_n1) or T_n1 <= 0.0:
                logger.warning(
                    "Iteration diverged at P=%.4e Pa V=%.2f after %d steps (T=%s); set T=%.2f K",
                    pressure,
                    observed_velocity,
                    counter,
                    T_n1,
                    constants.FALLBACK_TEMPERATURE_K,
                )
                return SolveResult(
                    temperature=constants.FALLBACK_TEMPERATURE_K,
                    iterations=counter,
                    converged=False,
                    status=STATUS_DIVERGED,
                    density=state.rho,
                    out_of_range=out_of_range,
                )
            delta_T = abs(T_n - T_n1)
            if debug:
                logger.debug(
                    "fixed point step %d: T=%.4f Vsyn=%.4f dVdT=%.6f -> T=%.4f (dT=%.4g)",
                    counter,
                    T_n,
                    state.v_syn,
                    state.dv_dT,
                    T_n1,
                    delta_T,
                )
            if counter > self.max_iterations:
                logger.warning(
                    "Too many iterations at P=%.4e Pa V=%.2f; set T=%.2f K",
                    pressure,
                    observed_velocity,
                    constants.FALLBACK_TEMPERATURE_K,
                )
                return SolveResult(
                    temperature=constants.FALLBACK_TEMPERATURE_K,
                    iterations=counter,
                    converged=False,
                    status=STATUS_MAX_ITERATIONS,
                    density=state.rho,
                    out_of_range=out_of_range,
                )
            if delta_T <= self.threshold:
                return SolveResult(
                    temperature=T_n1,
                    iterations=counter,
                    converged=True,
                    status=STATUS_CONVERGED,
                    density=state.rho,
                    out_of_range=out_of_range,
                )
            T_n = T_n1


@dataclass(frozen=True)
class PriestleyMcKenzieLaw:
    """Empirical S-wave velocity of Priestley & McKenzie (2006).

    ``Vs*(theta) = m theta + c + A exp(-(E + P Va) / (R (theta + 273.15)))``
    with ``theta`` in degC and velocities in km/s.  ``Vs*`` is the velocity
    reduced to 50 km depth with the gradient ``bV``.
    """

    bV: float = 3.84e-4  # 1/km
    m: float = -2.8e-4  # km/s/degC
    c: float = 4.72  # km/s
    A: float = -1.8e13  # km/s
    E: float = 409.0  # kJ/mol
    Va: float = 10e-6  # m3/mol
    direct_threshold: float = 4.4  # km/s

    def depth_factor(self, depth: float) -> float:
        return 1.0 + self.bV * (abs(depth) / 1000.0 - 50.0)

    def corrected_velocity(self, velocity: float, depth: float) -> float:
        """Return ``Vs*`` for a velocity (km/s) observed at ``depth`` (m)."""
        return velocity / self.depth_factor(depth)

    def _activation(self, pressure: float) -> float:
        return self.E * 1000.0 + pressure * self.Va

    def residual(self, corrected: float, pressure: float, theta: float) -> float:
        """``f(theta) = Vs*(theta) - Vs*_obs``."""

        act = self._activation(pressure)
        return self.m * theta - corrected + self.c + self.A * math.exp(
            -act / constants.R_GAS / (theta + constants.KELVIN_OFFSET)
        )

    def derivative(self, pressure: float, theta: float) -> float:
        act = self._activation(pressure)
        t_k = theta + constants.KELVIN_OFFSET
        return self.m + self.A * act / constants.R_GAS / (t_k * t_k) * math.exp(
            -act / constants.R_GAS / t_k
        )

    def forward(self, theta: float, pressure: float, depth: float) -> float:
        """Return the observed-depth velocity (km/s) predicted at ``theta``."""

        corrected = self.residual(0.0, pressure, theta)
        return corrected * self.depth_factor(depth)


class NewtonRaphsonSolver:
    """Newton-Raphson inversion of :class:`PriestleyMcKenzieLaw`.

    Corrected velocities at or above ``law.direct_threshold`` are converted
    with the linear branch ``theta = (Vs* - c) / m``.  Slower velocities start
    from 1000 degC, take one Newton step and iterate until the step is at or
    below ``threshold``.
    """

    THETA_INIT = 1000.0

    def __init__(
        self,
        law: Optional[PriestleyMcKenzieLaw] = None,
        *,
        threshold: float = constants.DEFAULT_THRESHOLD,
        max_iterations: int = constants.MAX_ITERATIONS,
    ) -> None:
        self.law = law or PriestleyMcKenzieLaw()
        self.threshold = _check_threshold(threshold)
        self.max_iterations = int(max_iterations)

    def _failure(self, status: str, iterations: int) -> SolveResult:
        return SolveResult(
            temperature=constants.NEWTON_FAILURE_TEMPERATURE_C + constants.KELVIN_OFFSET,
            iterations=iterations,
            converged=False,
            status=status,
        )

    def _step(self, corrected: float, pressure: float, theta: float) -> Optional[float]:
        """Return the next Newton iterate or ``None`` for a zero/overflowing derivative."""

        try:
            numerator = self.law.residual(corrected, pressure, theta)
            denominator = self.law.derivative(pressure, theta)
        except (OverflowError, ZeroDivisionError):
            return None
        if denominator == 0.0 or not math.isfinite(denominator):
            return None
        return theta - numerator / denominator

    def solve(self, pressure: float, observed_velocity: float, depth: Optional[float] = None) -> SolveResult:
        """Invert a velocity in km/s observed at ``depth`` (m)."""

        law = self.law
        corrected = law.corrected_velocity(observed_velocity, depth or 0.0)
        if corrected >= law.direct_threshold:
            if law.m == 0.0:
                logger.warning("Zero velocity gradient; temperature undefined for Vs*=%.4f", corrected)
                return self._failure(STATUS_ZERO_DERIVATIVE, 0)
            theta = (corrected - law.c) / law.m
            return SolveResult(
                temperature=theta + constants.KELVIN_OFFSET,
                iterations=0,
                converged=True,
                status=STATUS_DIRECT,
            )

        theta = self._step(corrected, pressure, self.THETA_INIT)
        if theta is None:
            logger.warning("Zero derivative at the initial estimate (Vs*=%.4f km/s)", corrected)
            return self._failure(STATUS_ZERO_DERIVATIVE, 0)
        iterations = 0
        while True:
            theta_next = self._step(corrected, pressure, theta)
            if theta_next is None:
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug("Zero derivative at theta=%.4f degC (Vs*=%.4f)", theta, corrected)
                return self._failure(STATUS_ZERO_DERIVATIVE, iterations)
            delta = abs(theta_next - theta)
            theta = theta_next
            iterations += 1
            if not math.isfinite(theta):
                return self._failure(STATUS_DIVERGED, iterations)
            if iterations > self.max_iterations:
                logger.warning(
                    "Too many iterations for Vs=%.4f km/s at depth %s m", observed_velocity, depth
                )
                return self._failure(STATUS_MAX_ITERATIONS, iterations)
            if delta <= self.threshold:
                return SolveResult(
                    temperature=theta + constants.KELVIN_OFFSET,
                    iterations=iterations,
                    converged=True,
                    status=STATUS_CONVERGED,
                )


@dataclass
class SolverDiagnostics:
    """Run level counters reduced from individual :class:`SolveResult` objects."""

    n_points: int = 0
    total_iterations: int = 0
    n_converged: int = 0
    n_direct: int = 0
    n_max_iterations: int = 0
    n_zero_derivative: int = 0
    n_diverged: int = 0
    n_out_of_range: int = 0

    @classmethod
    def from_results(cls, results: Iterable[SolveResult]) -> "SolverDiagnostics":
        diag = cls()
        for result in results:
            diag.add(result)
        return diag

    def add(self, result: SolveResult) -> None:
        self.n_points += 1
        self.total_iterations += int(result.iterations)
        if result.status == STATUS_CONVERGED:
            self.n_converged += 1
        elif result.status == STATUS_DIRECT:
            self.n_direct += 1
        elif result.status == STATUS_MAX_ITERATIONS:
            self.n_max_iterations += 1
        elif result.status == STATUS_ZERO_DERIVATIVE:
            self.n_zero_derivative += 1
        elif result.status == STATUS_DIVERGED:
            self.n_diverged += 1
        if result.out_of_range:
            self.n_out_of_range += 1

    def merge(self, other: "SolverDiagnostics") -> "SolverDiagnostics":
        merged = SolverDiagnostics()
        for name in self.__dataclass_fields__:
            setattr(merged, name, getattr(self, name) + getattr(other, name))
        return merged

    @property
    def n_failed(self) -> int:
        return self.n_max_iterations + self.n_zero_derivative + self.n_diverged

    @property
    def average_iterations(self) -> float:
        if self.n_points == 0:
            return 0.0
        return self.total_iterations / self.n_points

    def to_dict(self) -> dict:
        payload = {name: getattr(self, name) for name in self.__dataclass_fields__}
        payload["n_failed"] = self.n_failed
        payload["average_iterations"] = self.average_iterations
        return payload


__all__ = [
    "STATUS_CONVERGED",
    "STATUS_DIRECT",
    "STATUS_MAX_ITERATIONS",
    "STATUS_ZERO_DERIVATIVE",
    "STATUS_DIVERGED",
    "SolveResult",
    "DampedFixedPointSolver",
    "PriestleyMcKenzieLaw",
    "NewtonRaphsonSolver",
    "SolverDiagnostics",
]
