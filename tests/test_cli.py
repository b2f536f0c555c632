import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from velodt import run
from velodt.physics.density import rock_density
from velodt.physics.minerals import GOES, RockComposition
from velodt.physics.pressure import ReferenceEarthModel
from velodt.physics.rock import RockPhysicsModel

AK135 = ReferenceEarthModel.named("AK135")


def _data_rows(path: Path) -> np.ndarray:
    return np.atleast_2d(np.loadtxt(path, comments="#"))


def test_v2rhot_recovers_temperatures(tmp_path: Path, write_points, cammarano_model: RockPhysicsModel) -> None:
    temps = {-100000.0: 1400.0, -150000.0: 1600.0}
    rows = []
    for z, T in temps.items():
        v = cammarano_model.synthetic_velocity(AK135.pressure(z), T, "S")
        rows.append((0.0, 0.0, z, v))
    inp = write_points(tmp_path / "vs.dat", rows, ["# Grid_size: 1 x 1 x 2"])
    out = tmp_path / "result.dat"
    summary = tmp_path / "summary.json"

    run.main(["v2rhot", str(inp), str(out), "--type", "S", "--threshold", "0.001", "--summary", str(summary)])

    text = out.read_text(encoding="utf-8")
    assert "# Type: GMS GridPoints" in text
    assert "# Grid_size: 1 x 1 x 2" in text
    assert "# Mineral database: Cammarano et al. (2003), Sp: Goes et al. (2000)" in text
    assert "# Ol:  0.67" in text
    data = _data_rows(out)
    assert data.shape == (2, 6)
    expected_c = np.array(list(temps.values())) - 273.15
    assert np.allclose(data[:, 4], expected_c, atol=0.2)
    assert np.all((data[:, 5] > 3100.0) & (data[:, 5] < 3600.0))

    payload = json.loads(summary.read_text(encoding="utf-8"))
    assert payload["mode"] == "v2rhot"
    assert payload["n_points"] == 2
    assert payload["diagnostics"]["n_converged"] == 2
    assert payload["diagnostics"]["n_failed"] == 0


def test_v2rhot_parquet_keeps_status(tmp_path: Path, write_points) -> None:
    inp = write_points(tmp_path / "vs.dat", [(0.0, 0.0, -100000.0, 4500.0)])
    out = tmp_path / "result.parquet"
    run.main(["v2rhot", str(inp), str(out), "--parquet", "--compp", "3", "--q", "2"])
    frame = pd.read_parquet(out)
    assert list(frame.columns) == ["x", "y", "z", "velocity", "T_C", "rho", "iterations", "status"]
    assert frame["status"].iloc[0] == "converged"


def test_v2rhot_with_crust_files(tmp_path: Path, write_points) -> None:
    rows = [(0.0, 0.0, -80000.0, 4500.0), (1000.0, 0.0, -80000.0, 4500.0)]
    inp = write_points(tmp_path / "vs.dat", rows, ["# Grid_size: 2 x 1 x 1"])
    moho = write_points(tmp_path / "moho.dat", [(0.0, 0.0, 20000.0), (1000.0, 0.0, 50000.0)])
    topo = write_points(tmp_path / "topo.dat", [(0.0, 0.0, 0.0), (1000.0, 0.0, 0.0)])
    out = tmp_path / "result.dat"
    run.main(["v2rhot", str(inp), str(out), "--t-crust", str(moho), "--z-topo", str(topo), "--petrel", "--threshold", "0.001"])
    text = out.read_text(encoding="utf-8")
    assert "BEGIN HEADER" in text
    assert "# Pressure calculation method: crust" in text
    # thicker crust means lower pressure and a lower temperature for the same velocity
    data = np.loadtxt(
        [line for line in text.splitlines() if line and line[0] in "-0123456789"]
    )
    assert data[1, 4] < data[0, 4]


def test_v2t_newton(tmp_path: Path, write_points) -> None:
    inp = write_points(tmp_path / "vs.dat", [(0.0, 0.0, -50000.0, 4.5), (0.0, 0.0, -50000.0, 4.3)])
    out = tmp_path / "temps.dat"
    run.main(["v2t", str(inp), str(out), "--out-vs", "--threshold", "0.01"])
    text = out.read_text(encoding="utf-8")
    assert "# Point data" in text
    assert "Priestley and McKenzie (2006)" in text
    data = _data_rows(out)
    assert data.shape == (2, 6)
    assert data[0, 4] == pytest.approx((4.5 - 4.72) / -2.8e-4, abs=0.1)
    assert 1000.0 < data[1, 4] < 1500.0
    assert data[:, 5] == pytest.approx([4.5, 4.3], abs=1e-3)


def test_t2rho(tmp_path: Path, write_points) -> None:
    inp = write_points(tmp_path / "temps.dat", [(0.0, 0.0, -100000.0, 1000.0), (0.0, 0.0, -200000.0, 1300.0)])
    out = tmp_path / "rho.dat"
    run.main(["t2rho", str(inp), str(out), "--erm", "AK135"])
    data = _data_rows(out)
    assert data.shape == (2, 5)
    expected = rock_density(
        AK135.pressure(-100000.0), 1273.15, RockComposition.preset(0), database=GOES, x_fe=0.1
    )
    assert data[0, 4] == pytest.approx(expected, abs=0.06)


def test_properties_and_tables(tmp_path: Path, capsys) -> None:
    run.main(["properties", "--min-db", "2"])
    captured = capsys.readouterr().out
    assert "Goes et al. (2000)" in captured
    assert "fraction" in captured

    run.main(["drhodt", str(tmp_path / "drhodt.csv"), "--alpha-t"])
    table = pd.read_csv(tmp_path / "drhodt.csv")
    assert len(table) == 2001
    assert list(table.columns) == ["T_K", "ol", "opx", "cpx", "sp", "gnt"]

    run.main(["pressure", str(tmp_path / "pressure.csv"), "--erm", "PREM", "--dz", "20000"])
    profile = pd.read_csv(tmp_path / "pressure.csv")
    assert len(profile) == 11
    assert profile["pressure_Pa"].iloc[-1] == 0.0


def test_config_file_and_overrides(tmp_path: Path, write_points) -> None:
    inp = write_points(tmp_path / "vs.dat", [(0.0, 0.0, -100000.0, 4500.0)])
    cfg = tmp_path / "run.yml"
    cfg.write_text(
        "input:\n  path: vs.dat\noutput:\n  path: out.dat\nsolver:\n  threshold: 0.5\n",
        encoding="utf-8",
    )
    run.main(["--override", "rock.composition_preset=1", "--config", str(cfg), "v2rhot"])
    text = (tmp_path / "out.dat").read_text(encoding="utf-8")
    assert "On-cratonic" in text
    assert inp.exists()


def test_fatal_errors_exit_non_zero(tmp_path: Path, write_points) -> None:
    out = tmp_path / "result.dat"
    with pytest.raises(SystemExit) as excinfo:
        run.main(["v2rhot", str(tmp_path / "missing.dat"), str(out)])
    assert excinfo.value.code == 1

    inp = write_points(tmp_path / "vs.dat", [(0.0, 0.0, -100000.0, 4500.0)])
    with pytest.raises(SystemExit) as excinfo:
        run.main(["v2rhot", str(inp), str(out), "--compc", "0.5", "0.5", "0.5", "0", "0"])
    assert excinfo.value.code == 1

    with pytest.raises(SystemExit) as excinfo:
        run.main(["v2rhot", str(inp)])
    assert excinfo.value.code == 1
    assert not out.exists()
