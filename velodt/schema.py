"""Configuration schema for velocity conversion runs.

The Pydantic models below mirror the YAML configuration files read by
:func:`velodt.run.load_config`.  Every command line option of :mod:`velodt.run`
maps onto one field so that a run can be reproduced from its configuration
file alone.
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from . import constants
from .errors import ConfigurationError


class InputConfig(BaseModel):
    """Input data set."""

    path: Optional[Path] = Field(None, description="Velocity (v2rhot, v2t) or temperature (t2rho) file")
    scale_z: float = Field(1.0, description="Factor applied to the depth column")
    scale_v: float = Field(1.0, description="Factor applied to the velocity column")
    scatter: bool = Field(False, description="Treat input as scattered points and ignore grid headers")

    @field_validator("scale_z", "scale_v")
    @classmethod
    def _finite_nonzero(cls, value: float) -> float:
        if not math.isfinite(value) or value == 0.0:
            raise ConfigurationError("input scale factors must be finite and non-zero")
        return value


class OutputConfig(BaseModel):
    """Output file and format."""

    path: Optional[Path] = Field(None, description="Destination file")
    format: Literal["text", "petrel", "parquet"] = Field("text", description="Output file format")
    write_velocity: bool = Field(
        False, description="Append the velocity recomputed from the temperature (v2t only)"
    )
    summary_path: Optional[Path] = Field(None, description="Optional JSON run summary")


class RockConfig(BaseModel):
    """Mineralogy, attenuation and thermal expansion settings."""

    database: Optional[str] = Field(
        None, description="Mineral database: Cammarano or Goes; default Cammarano (Goes for t2rho)"
    )
    composition_preset: int = Field(0, ge=0, le=3, description="Built-in composition (0-3)")
    composition: Optional[List[float]] = Field(
        None, description="Custom volume fractions Ol Opx Cpx Sp Gnt; overrides the preset"
    )
    x_fe: Optional[float] = Field(None, ge=0.0, description="Iron fraction XFe; default 0 (0.1 for t2rho)")
    alpha_mode: int = Field(0, description="0 constant alpha, 1 alpha(T)")
    q_mode: int = Field(1, description="Anelasticity: 1 Sobolev et al. (1996), 2 Berckhemer et al. (1982)")
    frequency_hz: Optional[float] = Field(
        None, gt=0.0, description="Seismic frequency; default 1 Hz for S and 0.02 Hz for P waves"
    )
    t0: float = Field(constants.T0_REFERENCE, gt=0.0, description="Reference temperature [K]")
    p0: float = Field(constants.P0_REFERENCE, description="Reference pressure [Pa]")

    @field_validator("database", mode="before")
    @classmethod
    def _known_database(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        text = str(value).strip()
        if text.lower() not in {"cammarano", "goes", "1", "2"}:
            raise ConfigurationError(f"Unknown mineral database {value!r}")
        return text

    @field_validator("composition")
    @classmethod
    def _composition_sum(cls, value: Optional[List[float]]) -> Optional[List[float]]:
        if value is None:
            return value
        if len(value) != constants.N_PHASES:
            raise ConfigurationError(
                f"rock.composition needs {constants.N_PHASES} values (Ol Opx Cpx Sp Gnt)"
            )
        total = math.fsum(value)
        if abs(total - 1.0) > constants.COMPOSITION_TOLERANCE:
            raise ConfigurationError(f"Sum of composition is not equal to 1 ({total:.6g})")
        return value

    @field_validator("alpha_mode")
    @classmethod
    def _alpha_mode(cls, value: int) -> int:
        if value == 2:
            raise ConfigurationError("Alpha(P,T) is not implemented")
        if value not in (0, 1):
            raise ConfigurationError(f"Unknown alpha mode {value}")
        return value

    @field_validator("q_mode")
    @classmethod
    def _q_mode(cls, value: int) -> int:
        if value not in (1, 2):
            raise ConfigurationError(f"Undefined anelasticity mode {value}")
        return value


class PressureConfig(BaseModel):
    """Pressure calculation settings."""

    method: Literal["AK135", "PREM", "simple", "crust"] = Field("AK135")
    rho_crust: Optional[float] = Field(
        None, gt=0.0, description="Crustal density [kg/m3]; 2800 for v2rhot, 2890 otherwise"
    )
    rho_mantle: float = Field(constants.RHO_MANTLE, gt=0.0, description="Mantle density [kg/m3]")
    rho_avg: Optional[float] = Field(
        None, gt=0.0, description="Average density [kg/m3]; 3000 for v2rhot, 3100 otherwise"
    )
    crust_path: Optional[Path] = Field(None, description="Crustal thickness file (x y thickness)")
    topo_path: Optional[Path] = Field(None, description="Topography file (x y elevation)")

    @model_validator(mode="before")
    @classmethod
    def _crust_files_select_method(cls, data):
        """Providing either auxiliary file switches the method to ``crust``."""

        if not isinstance(data, dict):
            return data
        if data.get("crust_path") is not None or data.get("topo_path") is not None:
            data = dict(data)
            data["method"] = "crust"
        return data

    @model_validator(mode="after")
    def _crust_files_present(self) -> "PressureConfig":
        if self.method == "crust":
            missing = []
            if self.crust_path is None:
                missing.append("crustal thickness")
            if self.topo_path is None:
                missing.append("topography")
            if missing:
                raise ConfigurationError(
                    "Pressure calculation method set to 'crust' but "
                    + " and ".join(missing)
                    + " not defined"
                )
        return self


class SolverConfig(BaseModel):
    """Iteration settings."""

    vel_type: Literal["P", "S"] = Field("S", description="Seismic wave type")
    damping: float = Field(constants.DEFAULT_DAMPING, gt=0.0, description="Damping factor of the fixed point update")
    threshold: float = Field(constants.DEFAULT_THRESHOLD, gt=0.0, description="Convergence threshold [K]")
    t_start: float = Field(constants.DEFAULT_T_START, gt=0.0, description="Starting temperature [K]")
    max_iterations: int = Field(constants.MAX_ITERATIONS, gt=0)

    @field_validator("vel_type", mode="before")
    @classmethod
    def _upper(cls, value):
        return str(value).strip().upper() if value is not None else value


class RuntimeConfig(BaseModel):
    """Console behaviour."""

    quiet: bool = False
    verbose: bool = False
    progress: bool = False


class Config(BaseModel):
    """Top-level configuration of a conversion run."""

    mode: Literal["v2rhot", "v2t", "t2rho"] = Field("v2rhot", description="Conversion to perform")
    input: InputConfig = Field(default_factory=InputConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    rock: RockConfig = Field(default_factory=RockConfig)
    pressure: PressureConfig = Field(default_factory=PressureConfig)
    solver: SolverConfig = Field(default_factory=SolverConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="after")
    def _check_combinations(self) -> "Config":
        if self.pressure.method == "crust" and self.input.scatter:
            raise ConfigurationError(
                "Crustal thickness/topography cannot be combined with scattered input points"
            )
        if self.mode == "t2rho" and self.pressure.method not in ("AK135", "PREM"):
            raise ConfigurationError("t2rho requires a reference Earth model (AK135 or PREM)")
        return self


__all__ = [
    "InputConfig",
    "OutputConfig",
    "RockConfig",
    "PressureConfig",
    "SolverConfig",
    "RuntimeConfig",
    "Config",
]
