"""YAML loaders for network definitions and initial zone files.

Network file::

    species:
      - {name: he4, z: 2, a: 4, mass_excess: 2.42492}
      - {name: c12, z: 6, a: 12, mass_excess: 0.0}
    reactions:
      - {reactants: [he4, he4, he4], products: [c12], a: 2.0e-8, b: -3.0, c: 4.4}

Zone file::

    labels: ["0", "0", "0"]
    mass_fractions: {he4: 1.0}
"""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ConfigurationError
from .view import Network, Reaction, Species
from .zone import Zone

logger = logging.getLogger(__name__)

MASS_FRACTION_TOLERANCE = 1.0e-6


class SpeciesSpec(BaseModel):
    name: str
    z: int = Field(..., ge=0)
    a: int = Field(..., ge=1)
    mass_excess: float = Field(0.0, description="Mass excess [MeV]")
    spin: float = Field(0.0, ge=0.0)


class ReactionSpec(BaseModel):
    name: Optional[str] = None
    reactants: List[str] = Field(..., min_length=1)
    products: List[str] = Field(..., min_length=1)
    a: float = Field(..., ge=0.0)
    b: float = 0.0
    c: float = Field(0.0, ge=0.0)

    def label(self) -> str:
        if self.name:
            return self.name
        return " + ".join(self.reactants) + " -> " + " + ".join(self.products)


class NetworkFile(BaseModel):
    species: List[SpeciesSpec] = Field(..., min_length=1)
    reactions: List[ReactionSpec] = Field(default_factory=list)


class ZoneFile(BaseModel):
    labels: Tuple[str, str, str] = ("0", "0", "0")
    mass_fractions: Dict[str, float]

    @field_validator("labels", mode="before")
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        return value

    @field_validator("mass_fractions")
    def _check_fractions(cls, value: Dict[str, float]) -> Dict[str, float]:
        for name, fraction in value.items():
            if not (math.isfinite(fraction) and fraction >= 0.0):
                raise ConfigurationError(f"mass fraction of {name} must be finite and non-negative")
        return value


def _read_yaml(path: Path) -> Any:
    from ruamel.yaml import YAML

    yaml = YAML(typ="safe")
    source = Path(path)
    if not source.exists():
        raise ConfigurationError(f"input file '{source}' not found")
    with source.open("r", encoding="utf-8") as fh:
        return yaml.load(fh)


def network_from_mapping(data: Mapping[str, Any]) -> Network:
    try:
        parsed = NetworkFile(**dict(data))
    except ValidationError as exc:
        raise ConfigurationError(f"invalid network definition: {exc}") from exc
    species = [
        Species(name=s.name, z=s.z, a=s.a, mass_excess=s.mass_excess, spin=s.spin)
        for s in parsed.species
    ]
    reactions = [
        Reaction(
            name=r.label(),
            reactants=tuple(r.reactants),
            products=tuple(r.products),
            a=r.a,
            b=r.b,
            c=r.c,
        )
        for r in parsed.reactions
    ]
    return Network(species, reactions)


def load_network(path: Path) -> Network:
    """Load a network definition file."""

    data = _read_yaml(path)
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"network file '{path}' must contain a mapping")
    net = network_from_mapping(data)
    logger.info(
        "load_network: %s (%d species, %d reactions)", path, net.n_species, len(net.reactions)
    )
    return net


def load_zone_file(path: Path) -> ZoneFile:
    data = _read_yaml(path)
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"zone file '{path}' must contain a mapping")
    try:
        return ZoneFile(**dict(data))
    except ValidationError as exc:
        raise ConfigurationError(f"invalid zone file '{path}': {exc}") from exc


def abundances_from_mass_fractions(net: Network, mass_fractions: Mapping[str, float]) -> np.ndarray:
    """Convert mass fractions to abundances ``Y = X / A`` in network order."""

    unknown = sorted(set(mass_fractions) - set(net.index))
    if unknown:
        raise ConfigurationError(f"zone references species not in the network: {unknown}")
    total = float(sum(mass_fractions.values()))
    if abs(total - 1.0) > MASS_FRACTION_TOLERANCE:
        logger.warning("zone mass fractions sum to %.9f (expected 1)", total)
    y = np.zeros(net.n_species)
    for name, fraction in mass_fractions.items():
        idx = net.index[name]
        y[idx] = fraction / net.a[idx]
    return y


def remove_isolated_species(
    net: Network, mass_fractions: Mapping[str, float]
) -> Tuple[Network, List[str]]:
    """Drop species in no reaction unless they carry abundance."""

    if not net.reactions:
        return net, []
    removable = sorted(
        name for name in net.isolated_species() if float(mass_fractions.get(name, 0.0)) == 0.0
    )
    if not removable:
        return net, []
    for name in removable:
        logger.info("remove_isolated_species: %s", name)
    return net.remove_species(removable), removable


def build_zone(
    net: Network,
    zone_file: ZoneFile,
    *,
    t9: float,
    rho: float,
    mu_nue_kT: float = float("-inf"),
    particle: str = "total",
    solver: str = "dense",
) -> Zone:
    return Zone(
        abundances=abundances_from_mass_fractions(net, zone_file.mass_fractions),
        t9=float(t9),
        rho=float(rho),
        mu_nue_kT=float(mu_nue_kT),
        particle=particle,  # type: ignore[arg-type]
        solver=solver,  # type: ignore[arg-type]
        labels=zone_file.labels,
    )


__all__ = [
    "SpeciesSpec",
    "ReactionSpec",
    "NetworkFile",
    "ZoneFile",
    "network_from_mapping",
    "load_network",
    "load_zone_file",
    "abundances_from_mass_fractions",
    "remove_isolated_species",
    "build_zone",
]
