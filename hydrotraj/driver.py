"""Time-stepping loop coupling the trajectory ODE to the network engine.

The driver owns the zone for the duration of a run.  Each accepted step:

1. integrates the trajectory state over ``dt`` (trial network evaluations
   happen inside :class:`~hydrotraj.coupling.CouplingRHS` and are rolled
   back);
2. commits time, density and entropy to the zone and solves for the
   temperature that reproduces the new entropy;
3. evolves the composition over the evolution network;
4. records a snapshot on the configured cadence, prunes the evolution
   network and chooses the next step size.

Outputs are always written when the loop finishes, whatever the cadence.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from .config_utils import gather_git_info
from .coupling import CouplingRHS, LoggingObserver, Observer
from .errors import NumericalError
from .integrators import Stepper, make_stepper
from .io.snapshots import SnapshotLog
from .network.engine import NetworkEngine
from .network.view import Network, NetView
from .network.zone import Zone
from .runtime import ProgressReporter, log_stage
from .schema import Config
from .stepping import StepController
from .temperature import temperature_from_entropy
from .trajectory import TrajectoryModel

logger = logging.getLogger(__name__)


class DriverState(enum.Enum):
    INITIALIZING = "initializing"
    STEPPING = "stepping"
    DONE = "done"


@dataclass
class RunResult:
    """Outcome of :meth:`IntegrationDriver.run`."""

    time: float
    state: np.ndarray
    t9: float
    rho: float
    steps: int
    snapshots: int
    rhs_calls: int
    snapshot_path: Path
    summary_path: Path
    extra: Dict[str, Any] = field(default_factory=dict)


class IntegrationDriver:
    """Run the coupled trajectory and network integration.

    Parameters
    ----------
    cfg:
        Validated configuration.
    engine:
        Network engine evolving ``zone``.
    trajectory:
        Trajectory model supplying the initial state, density and
        acceleration.
    zone:
        Zone at the initial temperature ``trajectory.t9_0`` with the initial
        composition.
    net:
        Network the zone's abundance arrays are indexed by.
    entropy_view:
        Fixed view for the entropy-generation rate.  ``None`` uses the
        engine's evolution view of each step.
    observer:
        Optional RHS observer.  Defaults to a :class:`LoggingObserver` when
        ``integration.observe`` is set.
    """

    def __init__(
        self,
        cfg: Config,
        engine: NetworkEngine,
        trajectory: TrajectoryModel,
        zone: Zone,
        net: Network,
        *,
        entropy_view: Optional[NetView] = None,
        observer: Optional[Observer] = None,
        stepper: Optional[Stepper] = None,
        outdir: Optional[Path] = None,
    ) -> None:
        self.cfg = cfg
        self.engine = engine
        self.trajectory = trajectory
        self.zone = zone
        self.net = net
        self.entropy_view = entropy_view
        integ = cfg.integration
        if observer is None and integ.observe:
            observer = LoggingObserver(zone)
        self.observer = observer
        self.stepper = stepper if stepper is not None else make_stepper(integ.stepper, integ.adams_order)
        num = cfg.numerics
        self.controller = StepController(
            integ.tend,
            reg_x=num.reg_x,
            x_lim=num.x_lim,
            reg_t=num.reg_t,
            reg_y=num.reg_y,
            y_min=num.y_min_dt,
        )
        self.outdir = Path(outdir) if outdir is not None else Path(cfg.io.outdir)
        self.snapshots = SnapshotLog(net, self.outdir)
        self.progress = ProgressReporter(
            integ.time,
            integ.tend,
            refresh_seconds=cfg.io.progress.refresh_seconds,
            enabled=cfg.io.progress.enable,
        )
        self.state = DriverState.INITIALIZING
        self.x = np.zeros(3)
        self.t = float(integ.time)
        self.dt = float(integ.dtime)
        self.step_count = 0
        self.rhs_calls = 0
        self._t9_old = float(zone.t9)
        self._dt9dt = 0.0

    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Set the initial state, entropy and evolution network."""

        integ = self.cfg.integration
        zone = self.zone
        self.x = np.asarray(self.trajectory.initial_state(), dtype=float)
        zone.rho = self.trajectory.density(self.x)
        zone.time = self.t
        zone.x0 = float(self.x[0])
        zone.x1 = float(self.x[1])
        self._t9_old = float(zone.t9)
        self._dt9dt = 0.0
        self.x[2] = self.engine.entropy(zone)
        zone.entropy_per_nucleon = float(self.x[2])
        self.engine.prune(zone, self.cfg.numerics.lim_cutoff)
        self.dt = self.controller.clamp(self.t, float(integ.dtime))
        log_stage(
            logger,
            "initialize",
            extra={
                "t9": zone.t9,
                "rho": zone.rho,
                "entropy": zone.entropy_per_nucleon,
                "x1": zone.x1,
                "dt": self.dt,
                "evolution_network": repr(self.engine.evolution_view),
            },
        )
        self.state = DriverState.STEPPING

    def _sdot_view(self) -> NetView:
        if self.entropy_view is not None:
            return self.entropy_view
        return self.engine.evolution_view

    def step(self) -> None:
        """Take one accepted step of size ``self.dt``."""

        cfg = self.cfg
        zone = self.zone
        zone.time = self.t
        x_old = self.x.copy()

        rhs = CouplingRHS(
            zone,
            self.engine,
            self.trajectory,
            self._sdot_view(),
            cfg.trajectory.root_factor,
            observer=self.observer,
            max_expansions=cfg.numerics.root_max_expansions,
        )
        self.x = np.asarray(self.stepper.do_step(rhs, self.x, self.t, self.dt), dtype=float)
        self.rhs_calls += rhs.calls
        if not np.all(np.isfinite(self.x)):
            raise NumericalError(f"non-finite state {self.x.tolist()} at t={self.t + self.dt:.6e}")

        dt = self.dt
        self.t = self.controller.advance(self.t, dt)
        zone.dtime = dt
        zone.time = self.t
        zone.rho = self.trajectory.density(self.x)
        zone.entropy_per_nucleon = float(self.x[2])

        t9_guess = None
        if cfg.integration.t9_guess:
            t9_guess = self._t9_old + self._dt9dt * dt
            if not t9_guess > 0.0:
                t9_guess = self._t9_old
        zone.t9 = temperature_from_entropy(
            self.engine,
            zone,
            zone.entropy_per_nucleon,
            cfg.trajectory.root_factor,
            t9_guess=t9_guess,
            max_expansions=cfg.numerics.root_max_expansions,
        )
        if cfg.integration.t9_guess:
            self._dt9dt = (zone.t9 - self._t9_old) / dt
            self._t9_old = zone.t9

        self.engine.evolve(zone, self.engine.evolution_view, dt)
        zone.x0 = float(self.x[0])
        zone.x1 = float(self.x[1])

        if cfg.integration.observe:
            logger.info(
                "t = %g, x = {%g, %g, %g}", self.t, self.x[0], self.x[1], self.x[2]
            )

        step_index = self.step_count
        self.step_count += 1
        if step_index % cfg.integration.steps == 0 or self.t >= cfg.integration.tend:
            self.snapshots.record(zone, self.step_count)
            if cfg.io.write_every_dump:
                self.snapshots.write(self.summary())

        self.engine.prune(zone, cfg.numerics.lim_cutoff)
        self.dt = self.controller.next_step(self.engine, zone, self.x, x_old, self.t, dt)
        self.progress.update(self.step_count, self.t)

    def summary(self) -> Dict[str, Any]:
        zone = self.zone
        return {
            "state": self.state.value,
            "time": self.t,
            "tend": self.cfg.integration.tend,
            "steps": self.step_count,
            "snapshots": len(self.snapshots),
            "rhs_calls": self.rhs_calls,
            "t9": zone.t9,
            "rho": zone.rho,
            "entropy_per_nucleon": zone.entropy_per_nucleon,
            "x": [float(v) for v in self.x],
            "mass_fraction_sum": float(np.sum(zone.abundances * self.net.a)),
            "evolution_species": len(self.engine.evolution_view),
        }

    def run(self) -> RunResult:
        """Integrate from ``integration.time`` to ``integration.tend``."""

        integ = self.cfg.integration
        self.initialize()
        try:
            while self.t < integ.tend:
                if self.step_count >= integ.max_steps:
                    raise NumericalError(
                        f"exceeded integration.max_steps={integ.max_steps} at t={self.t:.6e}"
                    )
                self.step()
        except Exception:
            logger.error("run aborted at step %d (t=%.6e)", self.step_count, self.t)
            raise
        self.state = DriverState.DONE
        self.progress.finish(self.step_count, self.t)
        summary = self.summary()
        summary["git"] = gather_git_info()
        self.snapshots.write(summary)
        log_stage(
            logger,
            "done",
            extra={"t": self.t, "steps": self.step_count, "snapshots": len(self.snapshots)},
        )
        return RunResult(
            time=self.t,
            state=self.x.copy(),
            t9=self.zone.t9,
            rho=self.zone.rho,
            steps=self.step_count,
            snapshots=len(self.snapshots),
            rhs_calls=self.rhs_calls,
            snapshot_path=self.snapshots.snapshot_path,
            summary_path=self.snapshots.summary_path,
            extra={"writes": self.snapshots.writes, "summary": summary},
        )


__all__ = ["DriverState", "RunResult", "IntegrationDriver"]
