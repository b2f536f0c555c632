"""Physical constants and fixed numerical settings for the velocity conversion.

Values are kept identical to the reference tool chain so that converted
temperatures and densities stay comparable with earlier model runs.  All
values are in SI units unless stated otherwise.
"""
from __future__ import annotations

from typing import Tuple

# Universal gas constant (J mol^-1 K^-1)
R_GAS: float = 8.31446

# Gravitational acceleration used for lithostatic pressure (m s^-2)
G_ACCEL: float = 9.81

# Offset between Kelvin and degrees Celsius
KELVIN_OFFSET: float = 273.15

# Mineral phases in database order
PHASES: Tuple[str, ...] = ("ol", "opx", "cpx", "sp", "gnt")
N_PHASES: int = len(PHASES)

# Reference state of the mineral databases
T0_REFERENCE: float = 273.15  # K
P0_REFERENCE: float = 0.0  # Pa

# Thermal expansion table axis (K); 1 K step, both ends inclusive
DRHODT_T_MIN: int = 273
DRHODT_T_MAX: int = 2273
DRHODT_STEP: float = 1.0
DRHODT_SENTINEL: float = 999.0

# Iterative inversion
MAX_ITERATIONS: int = 10000
DEFAULT_DAMPING: float = 0.025
DEFAULT_THRESHOLD: float = 0.1
DEFAULT_T_START: float = 273.15  # K

# Fallback values for non-converged points.  The two conventions differ on
# purpose and are reported as such in the output files.
FALLBACK_TEMPERATURE_K: float = 272.15
NEWTON_FAILURE_TEMPERATURE_C: float = -1.0

# Default seismic frequencies (Hz) per wave type
DEFAULT_FREQUENCY_HZ = {"S": 1.0, "P": 0.02}

# Default column densities (kg m^-3) of the Newton conversion
RHO_CRUST: float = 2890.0
RHO_MANTLE: float = 3300.0
RHO_AVERAGE: float = 3100.0

# Crust and average densities of the fixed-point conversion
RHO_CRUST_V2RHOT: float = 2800.0
RHO_AVERAGE_V2RHOT: float = 3000.0

# Velocities below this value in m/s were most likely given in km/s
MIN_VELOCITY_MS: float = 50.0

# Composition sum tolerance
COMPOSITION_TOLERANCE: float = 1.0e-9

__all__ = [
    "R_GAS",
    "G_ACCEL",
    "KELVIN_OFFSET",
    "PHASES",
    "N_PHASES",
    "T0_REFERENCE",
    "P0_REFERENCE",
    "DRHODT_T_MIN",
    "DRHODT_T_MAX",
    "DRHODT_STEP",
    "DRHODT_SENTINEL",
    "MAX_ITERATIONS",
    "DEFAULT_DAMPING",
    "DEFAULT_THRESHOLD",
    "DEFAULT_T_START",
    "FALLBACK_TEMPERATURE_K",
    "NEWTON_FAILURE_TEMPERATURE_C",
    "DEFAULT_FREQUENCY_HZ",
    "RHO_CRUST",
    "RHO_MANTLE",
    "RHO_AVERAGE",
    "RHO_CRUST_V2RHOT",
    "RHO_AVERAGE_V2RHOT",
    "MIN_VELOCITY_MS",
    "COMPOSITION_TOLERANCE",
]
