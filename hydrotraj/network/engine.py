"""Capability interface the driver requires from a reaction-network engine."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from .view import NetView
from .zone import Zone


@runtime_checkable
class NetworkEngine(Protocol):
    """Operations the integration loop calls on the network.

    Engines may raise :class:`hydrotraj.errors.EngineFailure`; callers let it
    propagate.
    """

    @property
    def evolution_view(self) -> NetView:
        """Current (possibly pruned) set of evolving species and reactions."""
        ...

    def evolve(self, zone: Zone, view: NetView, dt: float) -> None:
        """Advance ``zone.abundances`` in place by ``dt`` over ``view``."""
        ...

    def entropy(self, zone: Zone) -> float:
        """Entropy per nucleon (k_B) at the zone temperature and density."""
        ...

    def entropy_generation_rate(self, zone: Zone, view: NetView) -> float:
        """Instantaneous d(entropy per nucleon)/dt from the reactions in ``view``."""
        ...

    def recommended_step(
        self, zone: Zone, prev_dt: float, reg_t: float, reg_y: float, y_min: float
    ) -> float:
        """Step bound from the last committed abundance change."""
        ...

    def prune(self, zone: Zone, threshold: float) -> None:
        """Drop negligible species from :attr:`evolution_view`."""
        ...


__all__ = ["NetworkEngine"]
