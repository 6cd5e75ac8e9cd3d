"""Coupled expansion-trajectory and reaction-network integration."""
from .driver import DriverState, IntegrationDriver, RunResult
from .errors import (
    ConfigurationError,
    DomainError,
    EngineFailure,
    HydroTrajError,
    NumericalError,
    RootNotBracketedError,
)
from .schema import Config
from .trajectory import ExpansionTrajectory, TrajectoryParams

__all__ = [
    "Config",
    "DriverState",
    "IntegrationDriver",
    "RunResult",
    "ExpansionTrajectory",
    "TrajectoryParams",
    "HydroTrajError",
    "ConfigurationError",
    "DomainError",
    "NumericalError",
    "RootNotBracketedError",
    "EngineFailure",
]

__version__ = "0.1.0"
