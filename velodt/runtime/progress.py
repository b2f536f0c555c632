"""Lightweight terminal progress reporting."""

from __future__ import annotations

import math
import sys
import time
from typing import TextIO

ETA_EWMA_ALPHA = 0.1
ETA_MIN_SAMPLES = 3


class ProgressReporter:
    """Terminal progress bar over the converted points with ETA feedback."""

    def __init__(
        self,
        total_points: int,
        *,
        enabled: bool = False,
        label: str = "points",
        stream: TextIO | None = None,
    ) -> None:
        self.enabled = bool(enabled and total_points > 0)
        self.total_points = max(int(total_points), 1)
        self.label = label
        self.stream = stream if stream is not None else sys.stdout
        self.start = time.monotonic()
        self._finished = False
        self._isatty = bool(getattr(self.stream, "isatty", lambda: False)())
        self._last_percent_int: int = -1
        self._eta_ewma_s: float | None = None
        self._eta_samples: int = 0
        self._last_wall: float | None = None
        self._last_index: int | None = None

    def update(self, index: int, *, failed: int = 0, force: bool = False) -> None:
        """Render the bar when the percentage changes by 0.1% or when forced."""

        if not self.enabled or self._finished:
            return
        now = time.monotonic()
        self._update_eta(index, now)
        is_last = (index + 1) >= self.total_points
        frac = min(max((index + 1) / self.total_points, 0.0), 1.0)
        percent_tenth = int(frac * 1000)
        if not force and not is_last and percent_tenth == self._last_percent_int:
            return
        self._last_percent_int = percent_tenth
        bar_width = 28
        filled = int(bar_width * frac)
        bar = "#" * filled + "-" * (bar_width - filled)
        remaining = max(self.total_points - (index + 1), 0)
        eta_seconds = float("nan")
        if (
            self._eta_ewma_s is not None
            and math.isfinite(self._eta_ewma_s)
            and self._eta_samples >= ETA_MIN_SAMPLES
        ):
            eta_seconds = self._eta_ewma_s * remaining
        failed_text = f" failed={failed}" if failed else ""
        line = (
            f"[{bar}] {frac * 100:5.1f}% {index + 1}/{self.total_points} {self.label}"
            f"{failed_text} {_format_eta(eta_seconds)}"
        )
        if self._isatty:
            self.stream.write(f"\r\033[2K{line}")
            if is_last:
                self.stream.write("\n")
        else:
            self.stream.write(f"{line}\n")
        if is_last:
            self._finished = True
        self.stream.flush()

    def finish(self, index: int, *, failed: int = 0) -> None:
        """Force a final render to end the line cleanly."""

        if not self.enabled:
            return
        self.update(index, failed=failed, force=True)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start

    def _update_eta(self, index: int, now: float) -> None:
        """Update the ETA EWMA using the wall time per point."""

        if self._last_wall is not None and self._last_index is not None:
            delta = index - self._last_index
            if delta > 0:
                per_point = (now - self._last_wall) / delta
                if math.isfinite(per_point) and per_point > 0.0:
                    if self._eta_ewma_s is None:
                        self._eta_ewma_s = per_point
                    else:
                        self._eta_ewma_s = (
                            ETA_EWMA_ALPHA * per_point + (1.0 - ETA_EWMA_ALPHA) * self._eta_ewma_s
                        )
                    self._eta_samples += 1
        self._last_wall = now
        self._last_index = index


def _format_eta(seconds: float) -> str:
    if not math.isfinite(seconds) or seconds < 0.0:
        return "ETA ?"
    if seconds >= 3600.0:
        return f"ETA {seconds/3600.0:.1f}h"
    if seconds >= 60.0:
        return f"ETA {seconds/60.0:.1f}m"
    return f"ETA {seconds:.0f}s"


__all__ = ["ProgressReporter"]
