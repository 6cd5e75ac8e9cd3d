"""Reaction-network collaborators of the integration loop."""
from .engine import NetworkEngine
from .powerlaw import PowerLawNetwork
from .view import Network, NetView, Reaction, Species
from .zone import CompositionSnapshot, Zone

__all__ = [
    "NetworkEngine",
    "PowerLawNetwork",
    "Network",
    "NetView",
    "Reaction",
    "Species",
    "Zone",
    "CompositionSnapshot",
]
