"""Structured warning classes for the :mod:`velodt` package."""
from __future__ import annotations

class VeloDTWarning(UserWarning):
    """Base warning class for velodt."""

class InputWarning(VeloDTWarning):
    """Suspicious input data or missing grid metadata."""

__all__ = [
    "VeloDTWarning",
    "InputWarning",
]
