import logging

import numpy as np
import pytest

from velodt.errors import ConfigurationError
from velodt.physics.expansion import (
    ALPHA_MODE_CONSTANT,
    ALPHA_MODE_TEMPERATURE,
    ThermalExpansionTable,
    thermal_expansion,
    validate_alpha_mode,
)
from velodt.physics.minerals import GOES


@pytest.fixture(scope="module")
def table() -> ThermalExpansionTable:
    return ThermalExpansionTable.build(GOES.rho, GOES.alpha, ALPHA_MODE_CONSTANT)


def test_table_axis(table: ThermalExpansionTable) -> None:
    assert table.values.shape == (2001, 5)
    assert table.temperatures[0] == 273.0
    assert table.temperatures[-1] == 2273.0
    assert np.all(np.diff(table.temperatures) == 1.0)


def test_first_row_is_one_euler_step(table: ThermalExpansionTable) -> None:
    rho = GOES.rho
    alpha = GOES.alpha[:, 0]
    expected = rho / (1.0 + alpha) - rho
    assert np.allclose(table.values[0], expected, rtol=1e-12)
    assert np.all(table.values < 0.0)


def test_lookup_on_grid_point_is_exact(table: ThermalExpansionTable) -> None:
    assert table.lookup(500.0, 0) == table.values[227, 0]
    assert table.lookup(2273.0, 4) == table.values[-1, 4]


def test_lookup_interpolates_linearly(table: ThermalExpansionTable) -> None:
    low = table.values[227, 1]
    high = table.values[228, 1]
    assert table.lookup(500.25, 1) == pytest.approx(low + 0.25 * (high - low))
    assert np.allclose(table.lookup_all(500.5), 0.5 * (table.values[227] + table.values[228]))


def test_lookup_out_of_range_returns_sentinel(table: ThermalExpansionTable, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="velodt.physics.expansion"):
        value = table.lookup(100.0, 0)
    assert value == ThermalExpansionTable.SENTINEL == 999.0
    assert "outside of drho/dT table range" in caplog.text
    assert np.all(table.lookup_all(3000.0) == 999.0)


def test_temperature_dependent_alpha() -> None:
    alpha = thermal_expansion(1000.0, GOES.alpha, ALPHA_MODE_TEMPERATURE)
    a0, a1, a2, a3 = GOES.alpha[0]
    assert alpha[0] == pytest.approx(a0 + a1 * 1000.0 + a2 / 1000.0 + a3 / 1.0e6)

    table_t = ThermalExpansionTable.build(GOES.rho, GOES.alpha, ALPHA_MODE_TEMPERATURE)
    assert table_t.mode == ALPHA_MODE_TEMPERATURE
    assert not np.allclose(table_t.values[-1], ThermalExpansionTable.build(GOES.rho, GOES.alpha).values[-1])


def test_alpha_mode_validation() -> None:
    with pytest.raises(ConfigurationError, match="not implemented"):
        validate_alpha_mode(2)
    with pytest.raises(ConfigurationError):
        validate_alpha_mode(5)
    with pytest.raises(ConfigurationError):
        ThermalExpansionTable.build(GOES.rho, GOES.alpha[:, :2])


def test_table_frame(table: ThermalExpansionTable) -> None:
    frame = table.to_frame()
    assert list(frame.columns) == ["T_K", "ol", "opx", "cpx", "sp", "gnt"]
    assert len(frame) == 2001
