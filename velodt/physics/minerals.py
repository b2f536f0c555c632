"""Mineral property databases and rock compositions.

Five mantle phases are modelled in a fixed order: olivine, orthopyroxene,
clinopyroxene, spinel and garnet.  Two property compilations are available:

``Goes``
    Goes et al. (2000), J. Geophys. Res. 105(B5).
``Cammarano``
    Cammarano et al. (2003), PEPI 138; spinel values from Goes et al. (2000).

Densities are in kg m^-3, moduli and their iron derivatives in Pa, temperature
derivatives in Pa K^-1 and pressure derivatives are dimensionless.  The
thermal expansion coefficient follows
``alpha(T) = a0 + a1 T + a2 / T + a3 / T**2``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Dict, Iterable, Sequence, Tuple

import numpy as np
import pandas as pd

from .. import constants
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MineralPhase:
    """Elastic and thermal reference properties of one mineral phase."""

    name: str
    rho: float
    drho_dX: float
    K: float
    dK_dT: float
    dK_dP: float
    dK_dP_dX: float
    dK_dX: float
    mu: float
    dmu_dT: float
    dmu_dP: float
    dmu_dX: float
    alpha: Tuple[float, float, float, float]


@dataclass(frozen=True)
class MineralDatabase:
    """Ordered collection of the five phases plus a citation label.

    The per-property arrays are built once in ``__post_init__`` so that the
    rock model can use vectorised expressions over the phases.
    """

    name: str
    label: str
    phases: Tuple[MineralPhase, ...]
    _arrays: Dict[str, np.ndarray] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.phases) != constants.N_PHASES:
            raise ConfigurationError(
                f"Mineral database {self.name!r} needs {constants.N_PHASES} phases, got {len(self.phases)}"
            )
        for key in (
            "rho",
            "drho_dX",
            "K",
            "dK_dT",
            "dK_dP",
            "dK_dP_dX",
            "dK_dX",
            "mu",
            "dmu_dT",
            "dmu_dP",
            "dmu_dX",
        ):
            arr = np.array([getattr(phase, key) for phase in self.phases], dtype=float)
            arr.setflags(write=False)
            self._arrays[key] = arr
        alpha = np.array([phase.alpha for phase in self.phases], dtype=float)
        alpha.setflags(write=False)
        self._arrays["alpha"] = alpha

    def column(self, key: str) -> np.ndarray:
        """Return the read-only array of property ``key`` in phase order."""

        try:
            return self._arrays[key]
        except KeyError as exc:
            raise KeyError(f"Unknown mineral property {key!r}") from exc

    @property
    def rho(self) -> np.ndarray:
        return self._arrays["rho"]

    @property
    def alpha(self) -> np.ndarray:
        """Expansion coefficients with shape ``(5, 4)``."""
        return self._arrays["alpha"]

    def to_frame(self) -> pd.DataFrame:
        """Tabulate the database with one row per phase."""

        rows = []
        for phase in self.phases:
            row = {
                key: getattr(phase, key)
                for key in MineralPhase.__dataclass_fields__
                if key not in {"name", "alpha"}
            }
            row["phase"] = phase.name
            for idx, coeff in enumerate(phase.alpha):
                row[f"alpha{idx}"] = coeff
            rows.append(row)
        return pd.DataFrame(rows).set_index("phase")


def _build_phases(values: Dict[str, Sequence[float]], alpha: Sequence[Sequence[float]]) -> Tuple[MineralPhase, ...]:
    phases = []
    for idx, name in enumerate(constants.PHASES):
        phases.append(
            MineralPhase(
                name=name,
                alpha=tuple(float(a) for a in alpha[idx]),
                **{key: float(vals[idx]) for key, vals in values.items()},
            )
        )
    return tuple(phases)


GOES = MineralDatabase(
    name="Goes",
    label="Goes et al. (2000)",
    phases=_build_phases(
        {
            "rho": (3222.0, 3198.0, 3280.0, 3578.0, 3565.0),
            "drho_dX": (1182.0, 804.0, 377.0, 702.0, 758.0),
            "K": (1.29e11, 1.11e11, 1.05e11, 1.98e11, 1.73e11),
            "dK_dT": (-1.6e7, -1.2e7, -1.3e7, -2.8e7, -2.1e7),
            "dK_dP": (4.2, 6.0, 6.2, 5.7, 4.9),
            "dK_dP_dX": (0.0, 0.0, -1.9, 0.0, 0.0),
            "dK_dX": (0.0, -10e9, 13e9, 12e9, 7e9),
            "mu": (8.2e10, 8.1e10, 6.7e10, 1.08e11, 9.2e10),
            "dmu_dT": (-1.4e7, -1.1e7, -1.0e7, -1.2e7, -1.0e7),
            "dmu_dP": (1.4, 2.0, 1.7, 0.8, 1.4),
            "dmu_dX": (-30e9, -29e9, -6e9, -24e9, -7e9),
        },
        (
            (2.01e-5, 1.39e-8, 0.001627, -0.338),
            (3.871e-5, 4.46e-9, 0.000343, -1.7278),
            (3.206e-5, 8.11e-9, 0.001347, -1.8167),
            (6.969e-5, -1.08e-9, -0.030799, 5.0395),
            (9.91e-6, 1.165e-8, 0.010624, -2.5),
        ),
    ),
)

CAMMARANO = MineralDatabase(
    name="Cammarano",
    label="Cammarano et al. (2003), Sp: Goes et al. (2000)",
    phases=_build_phases(
        {
            "rho": (3222.0, 3215.0, 3277.0, 3578.0, 3565.0),
            "drho_dX": (1182.0, 799.0, 380.0, 702.0, 0.0),
            "K": (129e9, 109e9, 105e9, 198e9, 171e9),
            "dK_dT": (-17e6, -27e6, -13e6, -28e6, -19e6),
            "dK_dP": (4.2, 7.0, 6.2, 5.7, 4.4),
            "dK_dP_dX": (0.0, 0.0, -1.9, 0.0, 0.0),
            "dK_dX": (0.0, 20e9, 12e9, 12e9, 0.0),
            "mu": (81e9, 75e9, 67e9, 108e9, 92e9),
            "dmu_dT": (-14e6, -12e6, -10e6, -12e6, -10e6),
            "dmu_dP": (1.4, 1.6, 1.7, 0.8, 1.4),
            "dmu_dX": (-31e9, 10e9, -6e9, -24e9, 0.0),
        },
        (
            (2.01e-5, 1.39e-8, 0.001627, -0.338),
            (4.4135e-5, 6.61e-9, -0.00575625, -0.08385),
            (5.3e-5, 5.92e-9, -0.0122, 0.672),
            (6.969e-5, -1.08e-9, -0.030799, 5.0395),
            (9.91e-6, 1.17e-8, 0.0106, -2.5),
        ),
    ),
)

DATABASES: Dict[str, MineralDatabase] = {"goes": GOES, "cammarano": CAMMARANO}
# Index convention of the ``--min-db`` option
DATABASE_INDEX: Dict[int, str] = {1: "cammarano", 2: "goes"}
DEFAULT_DATABASE = "Cammarano"


def get_database(name: str | int) -> MineralDatabase:
    """Return the mineral database selected by name or CLI index."""

    if isinstance(name, bool):
        raise ConfigurationError(f"Unknown mineral database {name!r}")
    key: str | None
    if isinstance(name, int):
        key = DATABASE_INDEX.get(name)
    else:
        text = str(name).strip()
        key = DATABASE_INDEX.get(int(text)) if text.isdigit() else text.lower()
    if key is None or key not in DATABASES:
        raise ConfigurationError(
            f"Unknown mineral database {name!r}; choose one of {sorted(db.name for db in DATABASES.values())}"
        )
    return DATABASES[key]


@dataclass(frozen=True)
class RockComposition:
    """Volume fractions of the five phases.

    Attributes
    ----------
    fractions:
        Volume fractions in phase order; they must sum to one.
    label:
        Human readable description used in output headers.
    custom:
        ``True`` when the composition was supplied by the user rather than
        taken from one of the presets.
    """

    fractions: Tuple[float, float, float, float, float]
    label: str = "Custom composition"
    custom: bool = True

    def __post_init__(self) -> None:
        values = tuple(float(v) for v in self.fractions)
        if len(values) != constants.N_PHASES:
            raise ConfigurationError(
                f"Composition needs {constants.N_PHASES} fractions (Ol Opx Cpx Sp Gnt), got {len(values)}"
            )
        if any(not math.isfinite(v) or v < 0.0 for v in values):
            raise ConfigurationError(f"Composition fractions must be finite and non-negative: {values}")
        total = math.fsum(values)
        if abs(total - 1.0) > constants.COMPOSITION_TOLERANCE:
            raise ConfigurationError(f"Sum of composition is not equal to 1 ({total:.6g})")
        object.__setattr__(self, "fractions", values)

    @classmethod
    def preset(cls, index: int) -> "RockComposition":
        """Return one of the built-in compositions (index 0-3)."""

        try:
            label, fractions = COMPOSITION_PRESETS[int(index)]
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Unknown composition preset {index!r}; valid presets are {sorted(COMPOSITION_PRESETS)}"
            ) from exc
        return cls(fractions=fractions, label=label, custom=False)

    @classmethod
    def custom_mix(cls, fractions: Iterable[float]) -> "RockComposition":
        """Return a user supplied composition."""

        return cls(fractions=tuple(fractions), label="Custom composition", custom=True)

    @property
    def array(self) -> np.ndarray:
        return np.asarray(self.fractions, dtype=float)

    def describe(self) -> str:
        parts = " ".join(
            f"{name}={value:g}" for name, value in zip(constants.PHASES, self.fractions)
        )
        return f"{self.label}: {parts}"


COMPOSITION_PRESETS: Dict[int, Tuple[str, Tuple[float, ...]]] = {
    0: ("Garnet Lherzolite (Jordan 1979; Goes et al. 2000)", (0.67, 0.225, 0.045, 0.0, 0.06)),
    1: ("On-cratonic (Shapiro and Ritzwoller 2004)", (0.83, 0.15, 0.0, 0.0, 0.02)),
    2: ("Off-cratonic (Shapiro and Ritzwoller 2004)", (0.68, 0.18, 0.11, 0.0, 0.03)),
    3: ("Oceanic (Shapiro and Ritzwoller 2004)", (0.75, 0.21, 0.035, 0.005, 0.0)),
}


__all__ = [
    "MineralPhase",
    "MineralDatabase",
    "GOES",
    "CAMMARANO",
    "DATABASES",
    "DEFAULT_DATABASE",
    "get_database",
    "RockComposition",
    "COMPOSITION_PRESETS",
]
