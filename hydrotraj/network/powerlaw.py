"""Reference network engine with power-law rate fits.

This engine exists so the integration loop can be exercised end to end.  It
keeps the physics deliberately small:

* reactions are irreversible, ``lambda = a * T9**b * exp(-c / T9)`` per
  reactant set, times ``rho**(n_reactants - 1)``;
* composition is advanced with backward Euler and Newton iteration;
* entropy is that of non-degenerate ideal-gas nuclei plus photons;
* entropy generation is the nuclear heating rate divided by ``kT``.
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy import sparse
from scipy.sparse import linalg as sparse_linalg

from .. import constants
from ..errors import EngineFailure
from .view import Network, NetView
from .zone import Zone

logger = logging.getLogger(__name__)

_TWO_PI_HBAR2 = 2.0 * math.pi * constants.HBAR ** 2


@dataclass(frozen=True)
class _ViewTables:
    """Dense per-view arrays used by the rate and Jacobian evaluations."""

    indices: np.ndarray                 # global species index per local slot
    stoich: np.ndarray                  # (n_local, n_reactions) net stoichiometry
    reactants: Tuple[Tuple[Tuple[int, int], ...], ...]  # (local index, multiplicity)
    log_a: np.ndarray
    b: np.ndarray
    c: np.ndarray
    density_power: np.ndarray


class PowerLawNetwork:
    """:class:`~hydrotraj.network.engine.NetworkEngine` over a :class:`Network`."""

    def __init__(
        self,
        net: Network,
        *,
        base_view: Optional[NetView] = None,
        newton_max_iter: int = 20,
        newton_tol: float = 1.0e-10,
    ) -> None:
        self.net = net
        self.base_view = base_view if base_view is not None else net.view()
        self._evolution_view = self.base_view
        self.newton_max_iter = int(newton_max_iter)
        self.newton_tol = float(newton_tol)
        self._tables: Dict[Tuple[Tuple[int, ...], Tuple[str, ...]], _ViewTables] = {}

    @property
    def evolution_view(self) -> NetView:
        return self._evolution_view

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    def _view_tables(self, view: NetView) -> _ViewTables:
        key = (tuple(int(i) for i in view.species_indices), view.reaction_names)
        cached = self._tables.get(key)
        if cached is not None:
            return cached
        local = {int(g): i for i, g in enumerate(view.species_indices)}
        n_local = len(local)
        n_react = len(view.reactions)
        stoich = np.zeros((n_local, n_react))
        reactants: List[Tuple[Tuple[int, int], ...]] = []
        log_a = np.empty(n_react)
        b = np.empty(n_react)
        c = np.empty(n_react)
        density_power = np.empty(n_react)
        for j, reaction in enumerate(view.reactions):
            for name in reaction.reactants:
                stoich[local[self.net.index[name]], j] -= 1.0
            for name in reaction.products:
                stoich[local[self.net.index[name]], j] += 1.0
            counts = Counter(local[self.net.index[name]] for name in reaction.reactants)
            reactants.append(tuple(sorted(counts.items())))
            log_a[j] = math.log(reaction.a) if reaction.a > 0.0 else -math.inf
            b[j] = reaction.b
            c[j] = reaction.c
            density_power[j] = len(reaction.reactants) - 1
        tables = _ViewTables(
            indices=np.asarray(view.species_indices, dtype=int),
            stoich=stoich,
            reactants=tuple(reactants),
            log_a=log_a,
            b=b,
            c=c,
            density_power=density_power,
        )
        self._tables[key] = tables
        return tables

    def rate_coefficients(self, zone: Zone, view: NetView) -> np.ndarray:
        """Rate coefficients of the view's reactions at the zone conditions."""

        tables = self._view_tables(view)
        return self._rate_coefficients(zone, tables)

    def _rate_coefficients(self, zone: Zone, tables: _ViewTables) -> np.ndarray:
        if not (zone.t9 > 0.0 and zone.rho > 0.0):
            raise EngineFailure(f"rates need positive T9 and rho (T9={zone.t9}, rho={zone.rho})")
        log_lam = (
            tables.log_a
            + tables.b * math.log(zone.t9)
            - tables.c / zone.t9
            + tables.density_power * math.log(zone.rho)
        )
        return np.exp(log_lam)

    @staticmethod
    def _fluxes(y: np.ndarray, lam: np.ndarray, tables: _ViewTables) -> Tuple[np.ndarray, np.ndarray]:
        """Reaction fluxes and their derivatives d r_j / d y_k."""

        n_react = lam.size
        flux = np.empty(n_react)
        dflux = np.zeros((n_react, y.size))
        for j, terms in enumerate(tables.reactants):
            product = lam[j]
            for k, m in terms:
                product *= y[k] ** m
            flux[j] = product
            for k, m in terms:
                partial = lam[j] * m * y[k] ** (m - 1)
                for l, ml in terms:
                    if l != k:
                        partial *= y[l] ** ml
                dflux[j, k] = partial
        return flux, dflux

    def abundance_rates(self, zone: Zone, view: NetView) -> np.ndarray:
        """dY/dt over the view's species (local ordering of ``view.species_indices``)."""

        tables = self._view_tables(view)
        if not view.reactions:
            return np.zeros(tables.indices.size)
        lam = self._rate_coefficients(zone, tables)
        flux, _ = self._fluxes(zone.abundances[tables.indices], lam, tables)
        return tables.stoich @ flux

    # ------------------------------------------------------------------
    # Engine protocol
    # ------------------------------------------------------------------

    def evolve(self, zone: Zone, view: NetView, dt: float) -> None:
        if not math.isfinite(dt) or dt < 0.0:
            raise EngineFailure(f"cannot evolve over dt={dt}")
        y_old_full = zone.abundances.copy()
        tables = self._view_tables(view)
        if dt == 0.0 or not view.reactions:
            zone.abundance_changes = np.zeros_like(y_old_full)
            return
        lam = self._rate_coefficients(zone, tables)
        y0 = y_old_full[tables.indices]
        y = y0.copy()
        identity = np.eye(y.size)
        for iteration in range(self.newton_max_iter):
            flux, dflux = self._fluxes(y, lam, tables)
            residual = y - y0 - dt * (tables.stoich @ flux)
            jacobian = identity - dt * (tables.stoich @ dflux)
            delta = self._solve(jacobian, -residual, zone.solver)
            y = y + delta
            if not np.all(np.isfinite(y)):
                raise EngineFailure(f"non-finite abundances after Newton iteration {iteration}")
            scale = max(float(np.max(np.abs(y))), 1.0e-300)
            if float(np.max(np.abs(delta))) <= self.newton_tol * scale:
                break
        else:
            raise EngineFailure(
                f"Newton iteration did not converge in {self.newton_max_iter} iterations (dt={dt:.3e})"
            )
        y_new_full = y_old_full.copy()
        y_new_full[tables.indices] = np.clip(y, 0.0, None)
        zone.abundances = y_new_full
        zone.abundance_changes = y_new_full - y_old_full

    @staticmethod
    def _solve(jacobian: np.ndarray, rhs: np.ndarray, solver: str) -> np.ndarray:
        try:
            if solver == "sparse":
                return np.asarray(sparse_linalg.spsolve(sparse.csc_matrix(jacobian), rhs)).reshape(-1)
            return np.linalg.solve(jacobian, rhs)
        except (np.linalg.LinAlgError, RuntimeError) as exc:
            raise EngineFailure(f"{solver} linear solve failed: {exc}") from exc

    def entropy(self, zone: Zone) -> float:
        if not (zone.t9 > 0.0 and zone.rho > 0.0):
            raise EngineFailure(f"entropy needs positive T9 and rho (T9={zone.t9}, rho={zone.rho})")
        temperature = zone.t9 * constants.T9_UNIT
        kT = constants.K_B * temperature
        s = 0.0
        if zone.particle in ("total", "baryon"):
            y = zone.abundances
            mask = y > 0.0
            if np.any(mask):
                a = self.net.a[mask]
                ym = y[mask]
                log_nq = 1.5 * np.log(a * constants.M_U * kT / _TWO_PI_HBAR2)
                log_n = np.log(ym * zone.rho * constants.N_A)
                s += float(np.sum(ym * (2.5 + np.log(self.net.degeneracy[mask]) + log_nq - log_n)))
        if zone.particle in ("total", "photon"):
            s += 4.0 * constants.A_RAD * temperature ** 3 / (3.0 * zone.rho * constants.N_A * constants.K_B)
        return s

    def entropy_generation_rate(self, zone: Zone, view: NetView) -> float:
        dydt = self.abundance_rates(zone, view)
        if dydt.size == 0:
            return 0.0
        heating = -float(np.dot(self.net.mass_excess[view.species_indices], dydt))  # MeV/s
        kT_mev = constants.K_B_MEV * zone.t9 * constants.T9_UNIT
        return heating / kT_mev

    def recommended_step(
        self, zone: Zone, prev_dt: float, reg_t: float, reg_y: float, y_min: float
    ) -> float:
        dt = prev_dt * (1.0 + reg_t)
        y = zone.abundances
        dy = np.abs(zone.abundance_changes)
        mask = (y > y_min) & (dy > 0.0)
        if np.any(mask):
            dt = min(dt, float(np.min(reg_y * prev_dt * y[mask] / dy[mask])))
        return dt

    def prune(self, zone: Zone, threshold: float) -> None:
        y = zone.abundances
        above = {
            name for name in self.base_view.species_names if y[self.net.index[name]] > threshold
        }
        keep = set(above)
        for reaction in self.base_view.reactions:
            if set(reaction.reactants) <= above:
                keep |= set(reaction.products)
        previous = len(self._evolution_view)
        self._evolution_view = NetView(self.net, keep, self.base_view.reaction_names)
        if len(self._evolution_view) != previous:
            logger.debug(
                "prune: evolution network %d -> %d species (%d reactions)",
                previous,
                len(self._evolution_view),
                len(self._evolution_view.reactions),
            )


__all__ = ["PowerLawNetwork"]
