import numpy as np
import pytest

from velodt import constants
from velodt.errors import ConfigurationError, DataConsistencyError, PhysicsError
from velodt.physics.pressure import (
    PressureModel,
    ReferenceEarthModel,
    pressure_simple,
    pressure_with_crust,
)


@pytest.mark.parametrize("name", ["AK135", "PREM"])
def test_reference_pressure_starts_at_zero_and_increases(name: str) -> None:
    erm = ReferenceEarthModel.named(name)
    assert erm.pressure(0.0) == 0.0
    depths = np.linspace(0.0, 650000.0, 131)
    pressures = np.array([erm.pressure(-z) for z in depths])
    assert np.all(np.diff(pressures) > 0.0)


def test_reference_pressure_uses_depth_magnitude() -> None:
    erm = ReferenceEarthModel.named("ak135")
    assert erm.pressure(-100000.0) == erm.pressure(100000.0)


def test_ak135_pressure_at_100km() -> None:
    p = ReferenceEarthModel.named("AK135").pressure(-100000.0)
    assert 3.2e9 < p < 3.4e9


def test_reference_pressure_node_values() -> None:
    erm = ReferenceEarthModel.named("AK135")
    # first segment is sea water of constant density
    assert erm.pressure(-3000.0) == pytest.approx(1020.0 * constants.G_ACCEL * 3000.0)
    assert erm.pressure(-660000.0) == pytest.approx(erm.node_pressure[-1])


def test_reference_pressure_below_model_raises() -> None:
    with pytest.raises(PhysicsError):
        ReferenceEarthModel.named("PREM").pressure(-700000.0)
    with pytest.raises(ConfigurationError):
        ReferenceEarthModel.named("IASP91")


def test_simple_pressure_is_exact() -> None:
    assert pressure_simple(-100000.0, 3100.0) == 3100 * 9.81 * 100000
    model = PressureModel("simple", rho_avg=3100.0)
    assert model.pressure(0.0, 0.0, -100000.0) == 3100 * 9.81 * 100000


def test_crust_pressure() -> None:
    crust = {(0.0, 0.0): 30000.0}
    topo = {(0.0, 0.0): 1000.0}
    p = pressure_with_crust(0.0, 0.0, -50000.0, crust, topo)
    expected = 2890.0 * 9.81 * 30000.0 + 3300.0 * 9.81 * 21000.0
    assert p == pytest.approx(expected)

    model = PressureModel("crust", crust=crust, topo=topo, rho_crust=2800.0, rho_mantle=3350.0)
    assert model.pressure(0, 0, -50000.0) == pytest.approx(
        2800.0 * 9.81 * 30000.0 + 3350.0 * 9.81 * 21000.0
    )


def test_crust_pressure_errors() -> None:
    crust = {(0.0, 0.0): 30000.0}
    topo = {(0.0, 0.0): 1000.0}
    with pytest.raises(DataConsistencyError, match="Mantle thickness < 0"):
        pressure_with_crust(0.0, 0.0, -10000.0, crust, topo)
    with pytest.raises(DataConsistencyError):
        pressure_with_crust(5.0, 0.0, -50000.0, crust, topo)
    with pytest.raises(ConfigurationError, match="topography"):
        PressureModel("crust", crust=crust)


def test_unknown_pressure_method() -> None:
    with pytest.raises(ConfigurationError):
        PressureModel("isostatic")
    assert PressureModel("prem").method == "PREM"


def test_pressure_profile() -> None:
    frame = PressureModel("simple").profile(-200000.0, 0.0, 10000.0)
    assert len(frame) == 21
    assert frame["depth_m"].iloc[0] == -200000.0
    assert frame["pressure_Pa"].iloc[-1] == 0.0
    with pytest.raises(ConfigurationError, match="not divisible"):
        PressureModel("AK135").profile(-200000.0, 0.0, 30000.0)
    with pytest.raises(ConfigurationError):
        PressureModel("crust", crust={}, topo={}).profile()
