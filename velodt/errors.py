"""Custom exceptions for the :mod:`velodt` package."""
from __future__ import annotations


class VeloDTError(Exception):
    """Base exception for velocity conversion errors."""


class ConfigurationError(VeloDTError, ValueError):
    """Invalid database, anelasticity mode, composition or other settings."""


class PhysicsError(VeloDTError, ValueError):
    """Raised when a physical quantity is non-physical or out of model range."""


class DataConsistencyError(PhysicsError):
    """Input data sets that contradict each other (e.g. crust below the point)."""


class NumericalError(VeloDTError, RuntimeError):
    """Misuse of the numerical solvers."""


class InputFileError(VeloDTError, RuntimeError):
    """Unreadable or malformed input data."""


__all__ = [
    "VeloDTError",
    "ConfigurationError",
    "PhysicsError",
    "DataConsistencyError",
    "NumericalError",
    "InputFileError",
]
