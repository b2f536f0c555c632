from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from velodt.physics.minerals import CAMMARANO, RockComposition  # noqa: E402
from velodt.physics.rock import RockPhysicsModel  # noqa: E402


@pytest.fixture(scope="session")
def lherzolite() -> RockComposition:
    return RockComposition.preset(0)


@pytest.fixture(scope="session")
def cammarano_model(lherzolite: RockComposition) -> RockPhysicsModel:
    """Cammarano database, garnet lherzolite, XFe = 0, constant alpha."""

    return RockPhysicsModel(CAMMARANO, lherzolite, x_fe=0.0)


def _write_points(path: Path, rows, header=()) -> Path:
    with path.open("w", encoding="utf-8") as fh:
        for line in header:
            fh.write(f"{line}\n")
        for row in rows:
            fh.write(" ".join(f"{value:.6f}" for value in row) + "\n")
    return path


@pytest.fixture
def write_points():
    """Write whitespace separated rows below ``#`` header lines."""

    return _write_points
