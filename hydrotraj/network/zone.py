"""Mutable physical state of a single zone."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Tuple

import numpy as np


@dataclass(frozen=True)
class CompositionSnapshot:
    """Copy of the zone composition taken before a trial evaluation."""

    abundances: np.ndarray
    abundance_changes: np.ndarray


@dataclass
class Zone:
    """Composition and thermodynamic state of one zone.

    ``abundances`` and ``abundance_changes`` are indexed like the species of
    the network the zone was built for.  ``abundance_changes`` holds the
    change produced by the last :meth:`NetworkEngine.evolve` call and feeds
    the engine's step recommendation.
    """

    abundances: np.ndarray
    t9: float
    rho: float
    time: float = 0.0
    dtime: float = 0.0
    entropy_per_nucleon: float = 0.0
    mu_nue_kT: float = float("-inf")
    particle: Literal["total", "baryon", "photon"] = "total"
    solver: Literal["dense", "sparse"] = "dense"
    x0: float = 1.0
    x1: float = 0.0
    labels: Tuple[str, str, str] = ("0", "0", "0")
    abundance_changes: np.ndarray = field(default=None)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        self.abundances = np.asarray(self.abundances, dtype=float)
        if self.abundance_changes is None:
            self.abundance_changes = np.zeros_like(self.abundances)
        else:
            self.abundance_changes = np.asarray(self.abundance_changes, dtype=float)

    def snapshot(self) -> CompositionSnapshot:
        return CompositionSnapshot(self.abundances.copy(), self.abundance_changes.copy())

    def restore(self, snap: CompositionSnapshot) -> None:
        self.abundances = snap.abundances.copy()
        self.abundance_changes = snap.abundance_changes.copy()

    def with_temperature(self, t9: float) -> "Zone":
        """Shallow copy at a trial temperature; composition arrays are shared."""

        return replace(self, t9=float(t9))

    def relabel(self, first: str) -> None:
        self.labels = (str(first), self.labels[1], self.labels[2])


__all__ = ["Zone", "CompositionSnapshot"]
