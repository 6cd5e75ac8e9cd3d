"""Prospective step-size selection.

The next step is chosen from the step just completed; steps are never
rejected and retried.
"""
from __future__ import annotations

import logging
import math
from typing import Sequence, Tuple

import numpy as np

from . import constants
from .errors import NumericalError
from .network.engine import NetworkEngine
from .network.zone import Zone

logger = logging.getLogger(__name__)

# Relative distance to t_end treated as having landed on it.
END_TIME_RTOL = 1.0e-12


class StepController:
    """Combine the state-change bound, the engine bound and the end-time clamp."""

    def __init__(
        self,
        t_end: float,
        *,
        reg_x: float = constants.D_X_REG_T,
        x_lim: Sequence[float] = constants.X_LIM,
        reg_t: float = constants.D_REG_T,
        reg_y: float = constants.D_REG_Y,
        y_min: float = constants.D_Y_MIN_DT,
    ) -> None:
        self.t_end = float(t_end)
        self.reg_x = float(reg_x)
        self.x_lim: Tuple[float, ...] = tuple(float(v) for v in x_lim)
        self.reg_t = float(reg_t)
        self.reg_y = float(reg_y)
        self.y_min = float(y_min)

    def state_bound(self, x: np.ndarray, x_old: np.ndarray, dt: float) -> float:
        """Largest dt keeping every limited component's relative change near ``reg_x``."""

        bound = math.inf
        for value, old, floor in zip(x, x_old, self.x_lim):
            if abs(value) <= floor:
                continue
            delta = abs((value - old) / value)
            if delta > 0.0:
                bound = min(bound, self.reg_x * dt / delta)
        return bound

    def clamp(self, t: float, dt: float) -> float:
        """Shrink ``dt`` so that ``t + dt`` does not pass ``t_end``."""

        if t + dt > self.t_end:
            return self.t_end - t
        return dt

    def advance(self, t: float, dt: float) -> float:
        """Return ``t + dt``, snapped onto ``t_end`` when within round-off."""

        t_next = t + dt
        if t_next >= self.t_end or self.t_end - t_next <= END_TIME_RTOL * abs(self.t_end):
            return self.t_end
        return t_next

    def next_step(
        self,
        engine: NetworkEngine,
        zone: Zone,
        x: np.ndarray,
        x_old: np.ndarray,
        t: float,
        dt: float,
    ) -> float:
        """Step size for the step starting at ``t`` after a completed step ``dt``."""

        bound = self.state_bound(x, x_old, dt)
        dt_next = engine.recommended_step(zone, dt, self.reg_t, self.reg_y, self.y_min)
        if dt_next > bound:
            dt_next = bound
        dt_next = self.clamp(t, dt_next)
        if t < self.t_end and not (dt_next > 0.0 and math.isfinite(dt_next)):
            raise NumericalError(f"step size collapsed to {dt_next!r} at t={t:.6e}")
        return dt_next


__all__ = ["StepController", "END_TIME_RTOL"]
