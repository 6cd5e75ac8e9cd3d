"""Network tables and filtered views."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple

import numpy as np

from ..errors import ConfigurationError
from ..schema import NetworkSelection


@dataclass(frozen=True)
class Species:
    name: str
    z: int
    a: int
    mass_excess: float  # MeV
    spin: float = 0.0

    @property
    def degeneracy(self) -> float:
        return 2.0 * self.spin + 1.0


@dataclass(frozen=True)
class Reaction:
    """Irreversible reaction with rate ``a * T9**b * exp(-c / T9)``.

    The rate is per reactant set; for reactions with more than one reactant
    it is multiplied by ``rho**(n_reactants - 1)``.
    """

    name: str
    reactants: Tuple[str, ...]
    products: Tuple[str, ...]
    a: float
    b: float = 0.0
    c: float = 0.0

    @property
    def species(self) -> FrozenSet[str]:
        return frozenset(self.reactants) | frozenset(self.products)


class Network:
    """Species and reactions of the full network."""

    def __init__(self, species: Sequence[Species], reactions: Sequence[Reaction]) -> None:
        names = [sp.name for sp in species]
        duplicates = [name for name, count in Counter(names).items() if count > 1]
        if duplicates:
            raise ConfigurationError(f"duplicate species in network: {sorted(duplicates)}")
        self.species: Tuple[Species, ...] = tuple(species)
        self.index: Dict[str, int] = {name: i for i, name in enumerate(names)}
        seen = set()
        for reaction in reactions:
            if reaction.name in seen:
                raise ConfigurationError(f"duplicate reaction in network: {reaction.name}")
            seen.add(reaction.name)
            unknown = [name for name in reaction.species if name not in self.index]
            if unknown:
                raise ConfigurationError(
                    f"reaction {reaction.name!r} references unknown species {sorted(unknown)}"
                )
            self._check_conservation(reaction)
        self.reactions: Tuple[Reaction, ...] = tuple(reactions)
        self.a = np.array([sp.a for sp in self.species], dtype=float)
        self.mass_excess = np.array([sp.mass_excess for sp in self.species], dtype=float)
        self.degeneracy = np.array([sp.degeneracy for sp in self.species], dtype=float)

    def _check_conservation(self, reaction: Reaction) -> None:
        by_name = {sp.name: sp for sp in self.species}
        a_in = sum(by_name[name].a for name in reaction.reactants)
        a_out = sum(by_name[name].a for name in reaction.products)
        z_in = sum(by_name[name].z for name in reaction.reactants)
        z_out = sum(by_name[name].z for name in reaction.products)
        if a_in != a_out or z_in != z_out:
            raise ConfigurationError(
                f"reaction {reaction.name!r} does not conserve nucleon number and charge"
            )

    @property
    def n_species(self) -> int:
        return len(self.species)

    def remove_species(self, names: Iterable[str]) -> "Network":
        """Return a copy of the network without ``names``."""

        drop = set(names)
        species = [sp for sp in self.species if sp.name not in drop]
        reactions = [r for r in self.reactions if not (r.species & drop)]
        return Network(species, reactions)

    def isolated_species(self) -> FrozenSet[str]:
        """Species that take part in no reaction."""

        used = set()
        for reaction in self.reactions:
            used |= reaction.species
        return frozenset(sp.name for sp in self.species if sp.name not in used)

    def view(self, selection: Optional[NetworkSelection] = None) -> "NetView":
        return NetView.select(self, selection)


class NetView:
    """Filtered subset of a :class:`Network`.

    A reaction belongs to the view only when every reactant and product is a
    view species.
    """

    def __init__(self, net: Network, species: Iterable[str], reactions: Iterable[str]) -> None:
        self.net = net
        keep = frozenset(species)
        self.species_names: FrozenSet[str] = keep
        self.species_indices = np.array(
            sorted(net.index[name] for name in keep), dtype=int
        )
        wanted = frozenset(reactions)
        self.reactions: Tuple[Reaction, ...] = tuple(
            r for r in net.reactions if r.name in wanted and r.species <= keep
        )

    @classmethod
    def select(cls, net: Network, selection: Optional[NetworkSelection] = None) -> "NetView":
        selection = selection or NetworkSelection()
        names = [sp.name for sp in net.species]
        if selection.species is not None:
            unknown = sorted(set(selection.species) - set(names))
            if unknown:
                raise ConfigurationError(f"selection references unknown species {unknown}")
            wanted = set(selection.species)
            names = [name for name in names if name in wanted]
        if selection.z_max is not None:
            names = [name for name in names if net.species[net.index[name]].z <= selection.z_max]
        if selection.a_max is not None:
            names = [name for name in names if net.species[net.index[name]].a <= selection.a_max]
        reactions = [r.name for r in net.reactions]
        if selection.reactions is not None:
            known = set(reactions)
            unknown = sorted(set(selection.reactions) - known)
            if unknown:
                raise ConfigurationError(f"selection references unknown reactions {unknown}")
            wanted_r = set(selection.reactions)
            reactions = [name for name in reactions if name in wanted_r]
        return cls(net, names, reactions)

    @property
    def reaction_names(self) -> Tuple[str, ...]:
        return tuple(r.name for r in self.reactions)

    def __contains__(self, name: object) -> bool:
        return name in self.species_names

    def __len__(self) -> int:
        return len(self.species_names)

    def __repr__(self) -> str:
        return f"NetView(species={len(self.species_names)}, reactions={len(self.reactions)})"


__all__ = ["Species", "Reaction", "Network", "NetView"]
