"""Custom exceptions for the :mod:`hydrotraj` package."""
from __future__ import annotations


class HydroTrajError(Exception):
    """Base exception for trajectory/network run errors."""


class ConfigurationError(HydroTrajError, ValueError):
    """Invalid configuration values or parameter relationships."""


class DomainError(HydroTrajError, ValueError):
    """The trajectory left the domain where the model is defined (x[0] <= 0)."""


class NumericalError(HydroTrajError, RuntimeError):
    """Convergence failures and step-size breakdowns."""


class RootNotBracketedError(NumericalError):
    """The temperature residual did not change sign within the allowed expansions."""


class EngineFailure(HydroTrajError, RuntimeError):
    """Raised by a network engine when it cannot evolve or evaluate the zone."""


__all__ = [
    "HydroTrajError",
    "ConfigurationError",
    "DomainError",
    "NumericalError",
    "RootNotBracketedError",
    "EngineFailure",
]
