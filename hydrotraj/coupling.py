"""Right-hand side coupling the trajectory ODE to the network engine.

The engine is stateful, so an RHS call is more than a derivative: it pushes
the trial entropy, density and temperature into the zone, evolves the
composition over the trial interval, reads back the entropy-generation rate
and finally rolls the zone back to its committed composition and
temperature.  Only the driver commits changes, after a step is accepted.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import numpy as np

from . import constants
from .network.engine import NetworkEngine
from .network.view import NetView
from .network.zone import Zone
from .temperature import temperature_from_entropy
from .trajectory import TrajectoryModel

logger = logging.getLogger(__name__)


class Observer(Protocol):
    """Read-only hook called after each RHS evaluation."""

    def __call__(self, x: np.ndarray, dxdt: np.ndarray, t: float) -> None: ...


class LoggingObserver:
    """Log the trial time, step, state and derivative of every RHS call."""

    def __init__(self, zone: Zone, log: Optional[logging.Logger] = None) -> None:
        self.zone = zone
        self.log = log or logger

    def __call__(self, x: np.ndarray, dxdt: np.ndarray, t: float) -> None:
        self.log.info(
            "observe: t=%.5e dt=%.5e x={%.5e, %.5e, %.5e} dxdt={%.5e, %.5e, %.5e}",
            t,
            t - self.zone.time,
            x[0],
            x[1],
            x[2],
            dxdt[0],
            dxdt[1],
            dxdt[2],
        )


def _read_only(values: np.ndarray) -> np.ndarray:
    view = np.asarray(values).view()
    view.flags.writeable = False
    return view


class CouplingRHS:
    """``f(x, t) -> dx/dt`` for the integrator, with trial network evaluation.

    Parameters
    ----------
    zone:
        Zone whose ``time`` is the last committed time.
    engine:
        Network engine evolving ``zone``.
    trajectory:
        Supplies density and acceleration.
    view:
        Network view used for the trial evolution and the entropy-generation
        rate.  The temperature solve uses the zone composition as a whole.
    root_factor:
        Initial multiplicative bracket for the temperature solve.
    observer:
        Optional read-only hook.
    """

    def __init__(
        self,
        zone: Zone,
        engine: NetworkEngine,
        trajectory: TrajectoryModel,
        view: NetView,
        root_factor: float,
        *,
        observer: Optional[Observer] = None,
        max_expansions: int = constants.ROOT_MAX_EXPANSIONS,
    ) -> None:
        self.zone = zone
        self.engine = engine
        self.trajectory = trajectory
        self.view = view
        self.root_factor = float(root_factor)
        self.observer = observer
        self.max_expansions = int(max_expansions)
        self.calls = 0

    def __call__(self, x: np.ndarray, t: float) -> np.ndarray:
        zone = self.zone
        self.calls += 1
        t9_committed = zone.t9
        dt = t - zone.time
        zone.dtime = dt
        committed = zone.snapshot()
        try:
            zone.entropy_per_nucleon = float(x[2])
            zone.rho = self.trajectory.density(x)
            zone.t9 = temperature_from_entropy(
                self.engine,
                zone,
                zone.entropy_per_nucleon,
                self.root_factor,
                max_expansions=self.max_expansions,
            )
            self.engine.evolve(zone, self.view, dt)

            dxdt = np.empty(3)
            dxdt[0] = x[1]
            dxdt[1] = self.trajectory.acceleration(x, t)
            dxdt[2] = self.engine.entropy_generation_rate(zone, self.view)

            if self.observer is not None:
                self.observer(_read_only(x), _read_only(dxdt), t)
        finally:
            zone.restore(committed)
            zone.t9 = t9_committed
        return dxdt


__all__ = ["Observer", "LoggingObserver", "CouplingRHS"]
