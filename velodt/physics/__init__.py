"""Physics modules of the velocity conversion."""
from __future__ import annotations

from . import density, expansion, inversion, minerals, pressure, rock
from .expansion import ThermalExpansionTable
from .inversion import (
    DampedFixedPointSolver,
    NewtonRaphsonSolver,
    PriestleyMcKenzieLaw,
    SolveResult,
    SolverDiagnostics,
)
from .minerals import CAMMARANO, GOES, MineralDatabase, MineralPhase, RockComposition, get_database
from .pressure import PressureModel, ReferenceEarthModel, pressure_simple, pressure_with_crust
from .rock import AnelasticityParams, RockPhysicsModel, RockState, get_anelasticity

__all__ = [
    "density",
    "expansion",
    "inversion",
    "minerals",
    "pressure",
    "rock",
    "ThermalExpansionTable",
    "DampedFixedPointSolver",
    "NewtonRaphsonSolver",
    "PriestleyMcKenzieLaw",
    "SolveResult",
    "SolverDiagnostics",
    "CAMMARANO",
    "GOES",
    "MineralDatabase",
    "MineralPhase",
    "RockComposition",
    "get_database",
    "PressureModel",
    "ReferenceEarthModel",
    "pressure_simple",
    "pressure_with_crust",
    "AnelasticityParams",
    "RockPhysicsModel",
    "RockState",
    "get_anelasticity",
]
