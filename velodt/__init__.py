"""Conversion of seismic velocities into mantle temperature and density."""
from . import constants, physics
from .errors import VeloDTError

__version__ = "0.1.0"

__all__ = ["constants", "physics", "VeloDTError", "__version__"]
