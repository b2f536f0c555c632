import dataclasses
import logging

import pytest

from velodt import constants
from velodt.errors import NumericalError
from velodt.physics.inversion import (
    STATUS_CONVERGED,
    STATUS_DIRECT,
    STATUS_DIVERGED,
    STATUS_MAX_ITERATIONS,
    STATUS_ZERO_DERIVATIVE,
    DampedFixedPointSolver,
    NewtonRaphsonSolver,
    PriestleyMcKenzieLaw,
    SolveResult,
    SolverDiagnostics,
)
from velodt.physics.rock import RockPhysicsModel

PRESSURE = 3.0e9


@pytest.mark.parametrize("T_true", [900.0, 1500.0])
def test_fixed_point_recovers_forward_temperature(cammarano_model: RockPhysicsModel, T_true: float) -> None:
    v_obs = cammarano_model.synthetic_velocity(PRESSURE, T_true, "S")
    solver = DampedFixedPointSolver(cammarano_model, "S", threshold=1.0e-4)
    result = solver.solve(PRESSURE, v_obs)
    assert result.converged
    assert result.status == STATUS_CONVERGED
    assert 0 < result.iterations <= constants.MAX_ITERATIONS
    assert result.temperature == pytest.approx(T_true, abs=0.01)
    assert result.density == pytest.approx(
        cammarano_model.evaluate(PRESSURE, result.temperature, "S").rho, rel=1e-6
    )


def test_fixed_point_default_threshold(cammarano_model: RockPhysicsModel) -> None:
    v_obs = cammarano_model.synthetic_velocity(PRESSURE, 1500.0, "S")
    result = DampedFixedPointSolver(cammarano_model).solve(PRESSURE, v_obs)
    assert result.converged
    # the damped stopping rule leaves an error up to threshold / damping, 4 K at the defaults
    assert result.temperature == pytest.approx(1500.0, abs=5.0)


def test_fixed_point_p_waves(cammarano_model: RockPhysicsModel) -> None:
    v_obs = cammarano_model.synthetic_velocity(PRESSURE, 1300.0, "P")
    result = DampedFixedPointSolver(cammarano_model, "P", threshold=1.0e-3).solve(PRESSURE, v_obs)
    assert result.converged
    assert result.temperature == pytest.approx(1300.0, abs=0.5)


def test_fixed_point_iteration_cap(cammarano_model: RockPhysicsModel, caplog) -> None:
    v_obs = cammarano_model.synthetic_velocity(PRESSURE, 1500.0, "S")
    solver = DampedFixedPointSolver(cammarano_model, "S", max_iterations=3)
    with caplog.at_level(logging.WARNING, logger="velodt.physics.inversion"):
        result = solver.solve(PRESSURE, v_obs)
    assert result.status == STATUS_MAX_ITERATIONS
    assert result.failed
    assert not result.converged
    assert result.temperature == constants.FALLBACK_TEMPERATURE_K
    assert result.iterations == 4
    assert "Too many iterations" in caplog.text


def test_fixed_point_below_expansion_table(cammarano_model: RockPhysicsModel) -> None:
    # faster than the rock at the starting temperature: the iterate drops below 273 K
    result = DampedFixedPointSolver(cammarano_model, "S").solve(PRESSURE, 6000.0)
    assert result.out_of_range
    assert result.temperature < constants.DRHODT_T_MIN


def test_fixed_point_flat_velocity_falls_back(cammarano_model: RockPhysicsModel, monkeypatch, caplog) -> None:
    evaluate = cammarano_model.evaluate

    def flat(pressure, temperature, vel_type="S"):
        return dataclasses.replace(evaluate(pressure, temperature, vel_type), dv_dT=0.0)

    monkeypatch.setattr(cammarano_model, "evaluate", flat)
    with caplog.at_level(logging.WARNING, logger="velodt.physics.inversion"):
        result = DampedFixedPointSolver(cammarano_model, "S").solve(PRESSURE, 4500.0)
    assert result.status == STATUS_DIVERGED
    assert result.failed
    assert result.iterations == 1
    assert result.temperature == constants.FALLBACK_TEMPERATURE_K
    assert "diverged" in caplog.text


def test_fixed_point_rejects_bad_settings(cammarano_model: RockPhysicsModel) -> None:
    with pytest.raises(NumericalError):
        DampedFixedPointSolver(cammarano_model, threshold=0.0)
    with pytest.raises(NumericalError):
        DampedFixedPointSolver(cammarano_model, damping=-1.0)


def test_newton_direct_branch() -> None:
    solver = NewtonRaphsonSolver()
    result = solver.solve(1.6e9, 4.5, -50000.0)
    assert result.status == STATUS_DIRECT
    assert result.iterations == 0
    assert result.temperature_c == pytest.approx((4.5 - 4.72) / -2.8e-4)


def test_newton_converges_on_slow_velocities() -> None:
    law = PriestleyMcKenzieLaw()
    solver = NewtonRaphsonSolver(law)
    result = solver.solve(1.6e9, 4.3, -50000.0)
    assert result.status == STATUS_CONVERGED
    assert result.iterations >= 1
    assert 1000.0 < result.temperature_c < 1500.0
    assert law.forward(result.temperature_c, 1.6e9, -50000.0) == pytest.approx(4.3, abs=1e-3)


def test_newton_depth_correction() -> None:
    law = PriestleyMcKenzieLaw()
    assert law.depth_factor(-50000.0) == 1.0
    assert law.corrected_velocity(4.5, -150000.0) == pytest.approx(4.5 / (1.0 + 3.84e-4 * 100.0))


def test_newton_zero_derivative_sentinel() -> None:
    solver = NewtonRaphsonSolver(PriestleyMcKenzieLaw(m=0.0, A=0.0))
    result = solver.solve(1.6e9, 4.0, -50000.0)
    assert result.status == STATUS_ZERO_DERIVATIVE
    assert result.failed
    assert result.temperature_c == pytest.approx(constants.NEWTON_FAILURE_TEMPERATURE_C)

    direct = solver.solve(1.6e9, 4.6, -50000.0)
    assert direct.status == STATUS_ZERO_DERIVATIVE


def test_diagnostics_reduction() -> None:
    results = [
        SolveResult(temperature=1400.0, iterations=10, converged=True),
        SolveResult(temperature=1000.0, iterations=0, converged=True, status=STATUS_DIRECT),
        SolveResult(
            temperature=272.15,
            iterations=10001,
            converged=False,
            status=STATUS_MAX_ITERATIONS,
            out_of_range=True,
        ),
        SolveResult(temperature=272.15, iterations=1, converged=False, status=STATUS_ZERO_DERIVATIVE),
    ]
    diag = SolverDiagnostics.from_results(results)
    assert diag.n_points == 4
    assert diag.n_converged == 1
    assert diag.n_direct == 1
    assert diag.n_failed == 2
    assert diag.n_out_of_range == 1
    assert diag.average_iterations == pytest.approx(10012 / 4)

    merged = diag.merge(SolverDiagnostics.from_results(results[:1]))
    assert merged.n_points == 5
    assert merged.n_converged == 2
    payload = merged.to_dict()
    assert payload["n_failed"] == 2
    assert SolverDiagnostics().average_iterations == 0.0
