"""Runtime helpers used by the conversion orchestrator."""

from .progress import ProgressReporter

__all__ = ["ProgressReporter"]
