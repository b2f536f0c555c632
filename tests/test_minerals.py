import numpy as np
import pytest

from velodt.errors import ConfigurationError
from velodt.physics.minerals import (
    CAMMARANO,
    COMPOSITION_PRESETS,
    GOES,
    RockComposition,
    get_database,
)


def test_presets_sum_to_one() -> None:
    for index in COMPOSITION_PRESETS:
        comp = RockComposition.preset(index)
        assert sum(comp.fractions) == pytest.approx(1.0)
        assert comp.custom is False


def test_garnet_lherzolite_preset() -> None:
    comp = RockComposition.preset(0)
    assert comp.fractions == (0.67, 0.225, 0.045, 0.0, 0.06)
    assert "Lherzolite" in comp.label


def test_custom_composition_must_sum_to_one() -> None:
    comp = RockComposition.custom_mix([0.5, 0.5, 0.0, 0.0, 0.0])
    assert comp.custom is True
    assert np.allclose(comp.array, [0.5, 0.5, 0.0, 0.0, 0.0])

    with pytest.raises(ConfigurationError, match="Sum of composition"):
        RockComposition.custom_mix([0.5, 0.4, 0.0, 0.0, 0.0])


def test_composition_rejects_wrong_length_and_negative_values() -> None:
    with pytest.raises(ConfigurationError):
        RockComposition.custom_mix([0.5, 0.5])
    with pytest.raises(ConfigurationError):
        RockComposition.custom_mix([1.2, -0.2, 0.0, 0.0, 0.0])


def test_unknown_preset() -> None:
    with pytest.raises(ConfigurationError):
        RockComposition.preset(7)


def test_database_lookup_by_name_and_index() -> None:
    assert get_database("goes") is GOES
    assert get_database("Cammarano") is CAMMARANO
    assert get_database(1) is CAMMARANO
    assert get_database(2) is GOES
    assert get_database("2") is GOES
    with pytest.raises(ConfigurationError):
        get_database("Stixrude")
    with pytest.raises(ConfigurationError):
        get_database(3)


def test_database_arrays() -> None:
    assert GOES.rho.shape == (5,)
    assert GOES.alpha.shape == (5, 4)
    assert GOES.column("K")[0] == pytest.approx(1.29e11)
    assert CAMMARANO.column("dmu_dT")[0] == pytest.approx(-14e6)
    with pytest.raises(KeyError):
        GOES.column("viscosity")


def test_database_frame() -> None:
    frame = CAMMARANO.to_frame()
    assert list(frame.index) == ["ol", "opx", "cpx", "sp", "gnt"]
    assert frame.loc["ol", "rho"] == pytest.approx(3222.0)
    assert "alpha0" in frame.columns
