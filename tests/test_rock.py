import math

import numpy as np
import pytest

from velodt.errors import ConfigurationError
from velodt.physics.expansion import ThermalExpansionTable
from velodt.physics.minerals import CAMMARANO, GOES, RockComposition
from velodt.physics.rock import (
    BERCKHEMER,
    SOBOLEV,
    RockPhysicsModel,
    default_frequency,
    get_anelasticity,
)


def test_s_wave_state(cammarano_model: RockPhysicsModel) -> None:
    state = cammarano_model.evaluate(3.0e9, 1500.0, "S")
    assert state.vel_type == "S"
    assert math.isnan(state.Q_P)
    assert state.quality_factor == state.Q_mu
    assert state.Q_mu > 1.0
    v_anh = math.sqrt(state.mu / state.rho)
    assert state.v_syn < v_anh
    assert 4000.0 < state.v_syn < 5000.0
    assert 3100.0 < state.rho < 3500.0
    assert state.dv_dT < 0.0
    assert state.drho_dT < 0.0
    assert state.drho_dT_valid


def test_voigt_reuss_hill_bounds(cammarano_model: RockPhysicsModel) -> None:
    state = cammarano_model.evaluate(2.0e9, 1200.0, "S")
    f = cammarano_model.composition.array
    mu_voigt = float(np.sum(f * state.mu_minerals))
    assert state.mu_reuss <= state.mu <= mu_voigt
    assert state.mu == pytest.approx(0.5 * (mu_voigt + state.mu_reuss))


def test_p_wave_state(cammarano_model: RockPhysicsModel) -> None:
    s_state = cammarano_model.evaluate(3.0e9, 1500.0, "S")
    p_state = cammarano_model.evaluate(3.0e9, 1500.0, "p")
    assert p_state.vel_type == "P"
    assert p_state.Q_P > p_state.Q_mu
    assert p_state.v_syn > s_state.v_syn
    assert p_state.quality_factor == p_state.Q_P


def test_velocity_decreases_with_temperature(cammarano_model: RockPhysicsModel) -> None:
    velocities = [cammarano_model.synthetic_velocity(3.0e9, T, "S") for T in (800.0, 1200.0, 1600.0)]
    assert velocities[0] > velocities[1] > velocities[2]


def test_default_frequencies(cammarano_model: RockPhysicsModel) -> None:
    assert default_frequency("S") == 1.0
    assert default_frequency("P") == 0.02
    assert cammarano_model.omega("S") == pytest.approx(2.0 * math.pi)
    model = RockPhysicsModel(GOES, RockComposition.preset(1), frequency_hz=0.5)
    assert model.frequency("P") == 0.5


def test_attenuation_presets() -> None:
    assert get_anelasticity(1) is SOBOLEV
    assert get_anelasticity(2) is BERCKHEMER
    with pytest.raises(ConfigurationError):
        get_anelasticity(3)


def test_invalid_velocity_type(cammarano_model: RockPhysicsModel) -> None:
    with pytest.raises(ConfigurationError):
        cammarano_model.evaluate(3.0e9, 1500.0, "R")


def test_expansion_table_follows_alpha_mode() -> None:
    comp = RockComposition.preset(0)
    model = RockPhysicsModel(GOES, comp, alpha_mode=1)
    assert model.expansion_table.mode == 1
    assert model.alpha_label == "Alpha(T)"
    with pytest.raises(ConfigurationError, match="not implemented"):
        RockPhysicsModel(GOES, comp, alpha_mode=2)


def test_expansion_table_uses_goes_values_for_every_database() -> None:
    comp = RockComposition.preset(0)
    for mode in (0, 1):
        expected = ThermalExpansionTable.build(GOES.rho, GOES.alpha, mode)
        table = RockPhysicsModel(CAMMARANO, comp, alpha_mode=mode).expansion_table
        assert np.allclose(table.values, expected.values)
    # 1500 K row: Opx and Cpx follow the Goes reference densities
    row = RockPhysicsModel(CAMMARANO, comp).expansion_table.values[1227]
    assert row[1] == pytest.approx(-0.1180, abs=5e-4)
    assert row[2] == pytest.approx(-0.1011, abs=5e-4)


def test_iron_content_changes_density(lherzolite: RockComposition) -> None:
    dry = RockPhysicsModel(GOES, lherzolite, x_fe=0.0).evaluate(1.0e9, 1000.0, "S")
    iron = RockPhysicsModel(GOES, lherzolite, x_fe=0.1).evaluate(1.0e9, 1000.0, "S")
    assert iron.rho > dry.rho


def test_properties_frame(cammarano_model: RockPhysicsModel) -> None:
    frame = cammarano_model.properties_frame()
    assert frame["fraction"].sum() == pytest.approx(1.0)
    assert list(frame.index) == ["ol", "opx", "cpx", "sp", "gnt"]
