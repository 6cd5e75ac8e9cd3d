"""Explicit steppers for the trajectory ODE system.

Steppers expose ``do_step(rhs, x, t, dt) -> x_new`` where ``rhs(x, t)``
returns ``dx/dt``.  The RHS of this package has side effects on the network
zone, so steppers call it exactly at the points they need and never
speculatively.
"""
from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Protocol, Tuple

import numpy as np

from .errors import ConfigurationError

RHS = Callable[[np.ndarray, float], np.ndarray]


class Stepper(Protocol):
    def do_step(self, rhs: RHS, x: np.ndarray, t: float, dt: float) -> np.ndarray: ...


def _rk4_from_k1(rhs: RHS, x: np.ndarray, t: float, dt: float, k1: np.ndarray) -> np.ndarray:
    half = 0.5 * dt
    k2 = np.asarray(rhs(x + half * k1, t + half), dtype=float)
    k3 = np.asarray(rhs(x + half * k2, t + half), dtype=float)
    k4 = np.asarray(rhs(x + dt * k3, t + dt), dtype=float)
    return x + dt / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


class RungeKutta4:
    """Classical fourth-order Runge-Kutta; four RHS calls per step."""

    def do_step(self, rhs: RHS, x: np.ndarray, t: float, dt: float) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        k1 = np.asarray(rhs(x, t), dtype=float)
        return _rk4_from_k1(rhs, x, t, dt, k1)


def adams_bashforth_weights(nodes: np.ndarray, dt: float) -> np.ndarray:
    """Integration weights of the Lagrange interpolant through ``nodes``.

    ``nodes`` are the past evaluation times relative to the current time
    (``nodes[0] == 0``, the rest negative).  The weights integrate each basis
    polynomial over ``[0, dt]``; for equally spaced nodes with spacing ``dt``
    they reduce to the classical Adams-Bashforth coefficients.
    """

    scaled = np.asarray(nodes, dtype=float) / dt
    weights = np.empty(scaled.size)
    for j, node in enumerate(scaled):
        others = np.delete(scaled, j)
        basis = np.poly1d(others, r=True) / np.prod(node - others)
        antiderivative = basis.integ()
        weights[j] = antiderivative(1.0) - antiderivative(0.0)
    return weights * dt


class AdamsBashforth:
    """Explicit Adams-Bashforth stepper of fixed order.

    The first ``order - 1`` steps are taken with Runge-Kutta 4 to build the
    derivative history; afterwards each step evaluates the RHS once, at the
    start of the step.  Unequal step sizes are handled with variable-step
    weights.
    """

    def __init__(self, order: int = 4) -> None:
        if not 1 <= int(order) <= 6:
            raise ConfigurationError(f"Adams-Bashforth order must lie in [1, 6] (got {order})")
        self.order = int(order)
        self._history: Deque[Tuple[float, np.ndarray]] = deque(maxlen=self.order)

    @property
    def initialized(self) -> bool:
        return len(self._history) >= self.order - 1

    def reset(self) -> None:
        self._history.clear()

    def do_step(self, rhs: RHS, x: np.ndarray, t: float, dt: float) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        bootstrapping = not self.initialized
        dxdt = np.asarray(rhs(x, t), dtype=float)
        self._history.appendleft((float(t), dxdt))
        if bootstrapping:
            return _rk4_from_k1(rhs, x, t, dt, dxdt)
        times = np.array([entry[0] for entry in self._history]) - float(t)
        weights = adams_bashforth_weights(times, dt)
        increment = sum(w * entry[1] for w, entry in zip(weights, self._history))
        return x + increment


def make_stepper(name: str, order: int = 4) -> Stepper:
    if name == "adams_bashforth":
        return AdamsBashforth(order)
    if name == "runge_kutta4":
        return RungeKutta4()
    raise ConfigurationError(f"Unknown stepper '{name}'")


__all__ = [
    "RHS",
    "Stepper",
    "RungeKutta4",
    "AdamsBashforth",
    "adams_bashforth_weights",
    "make_stepper",
]
