"""Lightweight terminal progress reporting."""

from __future__ import annotations

import math
import sys
import time

ETA_EWMA_ALPHA = 0.1
ETA_MIN_SAMPLES = 3
BAR_WIDTH = 28


def _format_eta(seconds: float) -> str:
    if not math.isfinite(seconds) or seconds < 0.0:
        return "ETA ?"
    if seconds >= 3600.0:
        return f"ETA {seconds/3600.0:.1f}h"
    if seconds >= 60.0:
        return f"ETA {seconds/60.0:.1f}m"
    return f"ETA {seconds:.0f}s"


class ProgressReporter:
    """Terminal progress bar driven by simulated time.

    The number of steps is not known in advance, so progress is the fraction
    of ``[t_start, t_end]`` covered.  The ETA is an EWMA of the wall time per
    unit of covered fraction.
    """

    def __init__(
        self,
        t_start: float,
        t_end: float,
        *,
        refresh_seconds: float = 1.0,
        enabled: bool = False,
        stream=None,
    ) -> None:
        self.t_start = float(t_start)
        self.t_end = float(t_end)
        self.enabled = bool(enabled and self.t_end > self.t_start)
        self.refresh_seconds = max(float(refresh_seconds), 0.0)
        self.stream = stream if stream is not None else sys.stdout
        self._isatty = bool(getattr(self.stream, "isatty", lambda: False)())
        self.start = time.monotonic()
        self.last = -math.inf
        self._finished = False
        self._eta_ewma_s: float | None = None
        self._eta_samples = 0
        self._last_wall: float | None = None
        self._last_frac: float | None = None
        self.lines_written = 0

    def fraction(self, sim_time_s: float) -> float:
        span = self.t_end - self.t_start
        if span <= 0.0 or not math.isfinite(sim_time_s):
            return 0.0
        return min(max((sim_time_s - self.t_start) / span, 0.0), 1.0)

    def eta_seconds(self, frac: float) -> float:
        if self._eta_ewma_s is None or self._eta_samples < ETA_MIN_SAMPLES:
            return float("nan")
        return self._eta_ewma_s * max(1.0 - frac, 0.0)

    def update(self, step_no: int, sim_time_s: float, *, force: bool = False) -> None:
        """Render the bar at most once per ``refresh_seconds`` unless forced."""

        if not self.enabled or self._finished:
            return
        now = time.monotonic()
        frac = self.fraction(sim_time_s)
        self._update_eta(frac, now)
        is_last = frac >= 1.0
        if not force and not is_last and now - self.last < self.refresh_seconds:
            return
        self.last = now
        filled = int(BAR_WIDTH * frac)
        bar = "#" * filled + "-" * (BAR_WIDTH - filled)
        line = (
            f"[{bar}] {frac * 100:5.1f}% step {step_no} "
            f"t={sim_time_s:.3e} s {_format_eta(self.eta_seconds(frac))}"
        )
        if self._isatty:
            self.stream.write(f"\r\033[2K{line}")
            if is_last:
                self.stream.write("\n")
        else:
            self.stream.write(f"{line}\n")
        self.lines_written += 1
        if is_last:
            self._finished = True
        self.stream.flush()

    def finish(self, step_no: int, sim_time_s: float) -> None:
        """Force a final render to end the line cleanly."""

        if not self.enabled:
            return
        self.update(step_no, sim_time_s, force=True)

    def _update_eta(self, frac: float, now: float) -> None:
        if self._last_wall is not None and self._last_frac is not None:
            frac_delta = frac - self._last_frac
            if frac_delta > 0.0:
                per_unit = (now - self._last_wall) / frac_delta
                if math.isfinite(per_unit) and per_unit > 0.0:
                    if self._eta_ewma_s is None:
                        self._eta_ewma_s = per_unit
                    else:
                        self._eta_ewma_s = ETA_EWMA_ALPHA * per_unit + (1.0 - ETA_EWMA_ALPHA) * self._eta_ewma_s
                    self._eta_samples += 1
        self._last_wall = now
        self._last_frac = frac


__all__ = ["ProgressReporter"]
