"""Parameterised expansion trajectory.

The trajectory is described by a dimensionless scale factor ``x[0]`` with
``rho = rho_0 / x[0]**3``.  The density history combines an exponentially
decaying component (``rho_1``, timescale ``tau``) with a component that is
switched off over the cutoff time ``delta`` (``rho_2 = rho_0 - rho_1``).

State vector layout::

    x[0]  scale factor (dimensionless, > 0)
    x[1]  d x[0] / dt
    x[2]  entropy per nucleon (k_B)
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from .errors import ConfigurationError, DomainError
from .schema import Trajectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrajectoryParams:
    """Immutable parameter set of the expansion trajectory."""

    t9_0: float
    rho_0: float
    rho_1: float
    tau: float
    delta: float
    root_factor: float

    def __post_init__(self) -> None:
        if self.rho_1 > self.rho_0:
            raise ConfigurationError("rho_1 must be less than rho_0.")
        for name in ("t9_0", "rho_0", "tau", "delta"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0.0):
                raise ConfigurationError(f"{name} must be finite and positive (got {value})")
        if not self.root_factor > 1.0:
            raise ConfigurationError("root_factor must be greater than 1")

    @property
    def rho_2(self) -> float:
        return self.rho_0 - self.rho_1

    @classmethod
    def from_config(cls, cfg: Trajectory) -> "TrajectoryParams":
        return cls(
            t9_0=float(cfg.t9_0),
            rho_0=float(cfg.rho_0),
            rho_1=float(cfg.rho_1),
            tau=float(cfg.tau),
            delta=float(cfg.delta),
            root_factor=float(cfg.root_factor),
        )


def _check_scale(x: np.ndarray) -> float:
    x0 = float(x[0])
    if not (x0 > 0.0 and math.isfinite(x0)):
        raise DomainError(f"trajectory coordinate x[0] must be finite and positive (got {x0})")
    return x0


def initial_state(params: TrajectoryParams) -> np.ndarray:
    """Return the state at ``x[0] = 1``; ``x[2]`` is left for the caller."""

    x = np.zeros(3)
    x[0] = 1.0
    x[1] = (
        x[0] ** 4
        * (params.rho_1 / params.tau + 2.0 * params.rho_2 / params.delta)
        / (3.0 * params.rho_0)
    )
    return x


def density(params: TrajectoryParams, x: np.ndarray) -> float:
    """Density (g/cc) for the scale factor ``x[0]``."""

    x0 = _check_scale(x)
    return params.rho_0 / x0 ** 3


def driving_balance(params: TrajectoryParams, x: np.ndarray, t: float) -> float:
    """Driving minus restoring bracket of the density history at ``t``.

    Both brackets carry the decaying ``rho_1`` term and the ``rho_2`` cutoff
    term; the restoring bracket holds their time derivatives.
    """

    x0 = _check_scale(x)
    decay = math.exp(-t / params.tau)
    driving = 4.0 * x[1] * (
        params.rho_1 / params.tau * decay + 2.0 * params.rho_2 / params.delta
    )
    restoring = x0 * (
        params.rho_1 / params.tau ** 2 * decay + 6.0 * params.rho_2 / params.delta ** 2
    )
    return x0 ** 3 * (driving - restoring) / (3.0 * params.rho_0)


def acceleration(params: TrajectoryParams, x: np.ndarray, t: float) -> float:
    """Return ``d x[1] / dt``, the normalised expansion rate ``x[1] / (3 tau)``.

    ``x`` is not modified.
    """

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("acceleration: t=%e balance=%e", t, driving_balance(params, x, t))
    else:
        _check_scale(x)
    return float(x[1]) / (3.0 * params.tau)


class TrajectoryModel(Protocol):
    """Strategy interface injected into the driver and the RHS."""

    def initial_state(self) -> np.ndarray: ...

    def density(self, x: np.ndarray) -> float: ...

    def acceleration(self, x: np.ndarray, t: float) -> float: ...


class ExpansionTrajectory:
    """The standard expansion trajectory bound to a parameter set."""

    def __init__(self, params: TrajectoryParams) -> None:
        self.params = params

    def initial_state(self) -> np.ndarray:
        return initial_state(self.params)

    def density(self, x: np.ndarray) -> float:
        return density(self.params, x)

    def acceleration(self, x: np.ndarray, t: float) -> float:
        return acceleration(self.params, x, t)


__all__ = [
    "TrajectoryParams",
    "TrajectoryModel",
    "ExpansionTrajectory",
    "initial_state",
    "density",
    "acceleration",
    "driving_balance",
]
