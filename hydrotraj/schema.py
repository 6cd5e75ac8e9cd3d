"""Configuration schema for trajectory/network runs.

The pydantic models mirror the YAML configuration accepted by
:mod:`hydrotraj.run`.  Every section has defaults so that an empty file
(or no file at all) reproduces the standard expansion scenario: ``T9_0 = 10``,
``rho_0 = 1e8 g/cc``, ``rho_1 = 9e7 g/cc``, ``tau = delta = 0.1 s`` and a run
to ``t = 10 s``.
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from . import constants
from .errors import ConfigurationError

_YES = {"yes", "y", "true", "on", "1"}
_NO = {"no", "n", "false", "off", "0"}


def _coerce_yes_no(value: Any) -> Any:
    """Accept the historical ``yes``/``no`` toggles alongside booleans."""

    if isinstance(value, str):
        text = value.strip().lower()
        if text in _YES:
            return True
        if text in _NO:
            return False
        raise ConfigurationError(f"Expected 'yes' or 'no', got {value!r}")
    return value


class Integration(BaseModel):
    """Time integration controls."""

    time: float = Field(0.0, description="Initial time [s]")
    dtime: float = Field(1.0e-15, gt=0.0, description="Initial time step [s]")
    tend: float = Field(10.0, description="End time [s]")
    steps: int = Field(20, ge=1, description="Snapshot cadence in accepted steps")
    t9_guess: bool = Field(True, description="Extrapolate T9 before the committed root solve")
    observe: bool = Field(False, description="Log every RHS evaluation and accepted step")
    stepper: Literal["adams_bashforth", "runge_kutta4"] = "adams_bashforth"
    adams_order: int = Field(4, ge=1, le=6, description="Order of the Adams-Bashforth stepper")
    max_steps: int = Field(constants.MAX_STEPS, ge=1, description="Abort after this many steps")

    @field_validator("t9_guess", "observe", mode="before")
    def _yes_no(cls, value: Any) -> Any:
        return _coerce_yes_no(value)

    @model_validator(mode="after")
    def _check_time_order(self) -> "Integration":
        if not (math.isfinite(self.time) and math.isfinite(self.tend)):
            raise ConfigurationError("integration.time and integration.tend must be finite")
        if self.tend <= self.time:
            raise ConfigurationError(
                f"integration.tend ({self.tend}) must be greater than integration.time ({self.time})"
            )
        return self


class Trajectory(BaseModel):
    """Parameters of the expansion trajectory."""

    t9_0: float = Field(10.0, gt=0.0, description="Initial T (in 10^9 K)")
    rho_0: float = Field(1.0e8, gt=0.0, description="Initial density (g/cc)")
    rho_1: float = Field(9.0e7, ge=0.0, description="rho_1 density (g/cc)")
    tau: float = Field(0.1, gt=0.0, description="Expansion timescale (s)")
    delta: float = Field(0.1, gt=0.0, description="Cutoff time (s)")
    root_factor: float = Field(constants.ROOT_FACTOR, gt=1.0, description="Root expansion factor")

    @model_validator(mode="after")
    def _check_rho_split(self) -> "Trajectory":
        if self.rho_1 > self.rho_0:
            raise ConfigurationError("rho_1 must be less than rho_0.")
        return self


class NetworkSelection(BaseModel):
    """Filter selecting a subset of the network (species and reactions)."""

    species: Optional[List[str]] = Field(None, description="Species names to keep (default: all)")
    z_max: Optional[int] = Field(None, ge=0, description="Largest proton number kept")
    a_max: Optional[int] = Field(None, ge=1, description="Largest mass number kept")
    reactions: Optional[List[str]] = Field(None, description="Reaction names to keep (default: all)")


class Network(BaseModel):
    """Network selection and zone-level engine options."""

    evolution: NetworkSelection = Field(default_factory=NetworkSelection)
    entropy_generation: Optional[NetworkSelection] = Field(
        None,
        description="Selection used for the entropy-generation rate (default: each step's evolution network)",
    )
    solver: Literal["dense", "sparse"] = "dense"
    particle: Literal["total", "baryon", "photon"] = "total"
    mu_nue_kT: float = Field(float("-inf"), description="Electron neutrino chemical potential / kT")
    remove_isolated: bool = True

    @field_validator("mu_nue_kT", mode="before")
    def _parse_mu(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError as exc:
                raise ConfigurationError(f"network.mu_nue_kT: cannot parse {value!r}") from exc
        return value

    @field_validator("remove_isolated", mode="before")
    def _yes_no(cls, value: Any) -> Any:
        return _coerce_yes_no(value)


class Numerics(BaseModel):
    """Step control and solver tolerances."""

    reg_t: float = Field(constants.D_REG_T, gt=0.0)
    reg_y: float = Field(constants.D_REG_Y, gt=0.0)
    reg_x: float = Field(constants.D_X_REG_T, gt=0.0)
    y_min_dt: float = Field(constants.D_Y_MIN_DT, ge=0.0)
    lim_cutoff: float = Field(constants.D_LIM_CUTOFF, ge=0.0)
    x_lim: Tuple[float, float, float] = constants.X_LIM
    root_max_expansions: int = Field(constants.ROOT_MAX_EXPANSIONS, ge=1)
    newton_max_iter: int = Field(20, ge=1)
    newton_tol: float = Field(1.0e-10, gt=0.0)


class Progress(BaseModel):
    enable: bool = False
    refresh_seconds: float = Field(1.0, gt=0.0)


class IO(BaseModel):
    """Output controls."""

    outdir: Path = Path("out")
    write_every_dump: bool = Field(
        False,
        description="Rewrite the outputs at every snapshot instead of only at the end of the run",
    )
    quiet: bool = Field(False, description="Suppress INFO logging and Python warnings")
    progress: Progress = Field(default_factory=Progress)

    @field_validator("write_every_dump", "quiet", mode="before")
    def _yes_no(cls, value: Any) -> Any:
        return _coerce_yes_no(value)


class Config(BaseModel):
    """Top-level configuration object."""

    integration: Integration = Field(default_factory=Integration)
    trajectory: Trajectory = Field(default_factory=Trajectory)
    network: Network = Field(default_factory=Network)
    numerics: Numerics = Field(default_factory=Numerics)
    io: IO = Field(default_factory=IO)


__all__ = [
    "Integration",
    "Trajectory",
    "NetworkSelection",
    "Network",
    "Numerics",
    "Progress",
    "IO",
    "Config",
]
