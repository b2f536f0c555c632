import numpy as np
import pytest

from velodt.errors import PhysicsError
from velodt.physics.density import T0_DENSITY, rock_density
from velodt.physics.minerals import CAMMARANO, GOES, RockComposition


def test_reference_state_density(lherzolite: RockComposition) -> None:
    rho = rock_density(0.0, T0_DENSITY, lherzolite, x_fe=0.0)
    assert isinstance(rho, float)
    assert rho == pytest.approx(float(np.sum(lherzolite.array * GOES.rho)))


def test_iron_adds_density(lherzolite: RockComposition) -> None:
    dry = rock_density(0.0, T0_DENSITY, lherzolite, x_fe=0.0)
    wet = rock_density(0.0, T0_DENSITY, lherzolite, x_fe=0.1)
    assert wet - dry == pytest.approx(0.1 * float(np.sum(lherzolite.array * GOES.column("drho_dX"))))


def test_density_is_vectorised(lherzolite: RockComposition) -> None:
    pressures = np.array([1.0e9, 2.0e9, 3.0e9])
    temps = np.array([1273.15, 1273.15, 1273.15])
    rho = rock_density(pressures, temps, lherzolite)
    assert rho.shape == (3,)
    assert np.all(np.diff(rho) > 0.0)
    assert rho[1] == pytest.approx(rock_density(2.0e9, 1273.15, lherzolite))


def test_density_decreases_with_temperature(lherzolite: RockComposition) -> None:
    cold = rock_density(3.0e9, 800.0, lherzolite, database=CAMMARANO)
    hot = rock_density(3.0e9, 1600.0, lherzolite, database=CAMMARANO)
    assert hot < cold


def test_non_positive_bulk_modulus(lherzolite: RockComposition) -> None:
    with pytest.raises(PhysicsError):
        rock_density(0.0, 20000.0, lherzolite)
