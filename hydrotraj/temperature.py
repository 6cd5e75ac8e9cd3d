"""Temperature from entropy per nucleon via one-dimensional root finding."""
from __future__ import annotations

import logging
import math
from typing import Callable, Tuple

from scipy.optimize import brentq

from . import constants
from .errors import NumericalError, RootNotBracketedError
from .network.engine import NetworkEngine
from .network.zone import Zone

logger = logging.getLogger(__name__)

ROOT_RTOL = 1.0e-12
ROOT_XTOL = 1.0e-300


def _sign(value: float, t9: float) -> int:
    if not math.isfinite(value):
        raise RootNotBracketedError(f"temperature residual is not finite at T9={t9:.6e}")
    return (value > 0.0) - (value < 0.0)


def bracket_root(
    t9_guess: float,
    root_factor: float,
    residual: Callable[[float], float],
    *,
    max_expansions: int = constants.ROOT_MAX_EXPANSIONS,
) -> Tuple[float, float]:
    """Return ``(lo, hi)`` around ``t9_guess`` where ``residual`` changes sign.

    The bracket starts at ``[guess / f, guess * f]``; every expansion squares
    the multiplicative step, so the reachable range grows doubly exponentially
    with the number of expansions.
    """

    if not (math.isfinite(t9_guess) and t9_guess > 0.0):
        raise NumericalError(f"temperature guess must be finite and positive (got {t9_guess})")
    if not root_factor > 1.0:
        raise NumericalError(f"root_factor must exceed 1 (got {root_factor})")
    factor = float(root_factor)
    lo = t9_guess / factor
    hi = t9_guess * factor
    sign_lo = _sign(residual(lo), lo)
    sign_hi = _sign(residual(hi), hi)
    expansions = 0
    while sign_lo == sign_hi and sign_lo != 0:
        expansions += 1
        if expansions > max_expansions:
            raise RootNotBracketedError(
                f"root not bracketed after {max_expansions} expansions around T9={t9_guess:.6e}"
            )
        factor = factor * factor
        lo = lo / factor
        hi = hi * factor
        if not (lo > 0.0 and math.isfinite(hi)):
            raise RootNotBracketedError(
                f"root bracket left the positive finite range around T9={t9_guess:.6e}"
            )
        sign_lo = _sign(residual(lo), lo)
        sign_hi = _sign(residual(hi), hi)
    if expansions:
        logger.debug("bracket_root: %d expansions -> [%e, %e]", expansions, lo, hi)
    return lo, hi


def solve_temperature(
    t9_guess: float,
    root_factor: float,
    residual: Callable[[float], float],
    *,
    max_expansions: int = constants.ROOT_MAX_EXPANSIONS,
) -> float:
    """Return T9 with ``residual(T9) == 0``.

    ``residual`` is entropy-at-T9 minus the target entropy.  Brent's method
    refines the bracket found by :func:`bracket_root`.
    """

    if math.isfinite(t9_guess) and t9_guess > 0.0 and residual(t9_guess) == 0.0:
        return float(t9_guess)
    lo, hi = bracket_root(t9_guess, root_factor, residual, max_expansions=max_expansions)
    f_lo = residual(lo)
    if f_lo == 0.0:
        return float(lo)
    f_hi = residual(hi)
    if f_hi == 0.0:
        return float(hi)
    root = brentq(residual, lo, hi, xtol=ROOT_XTOL, rtol=ROOT_RTOL)
    return float(root)


def entropy_residual(engine: NetworkEngine, zone: Zone, target: float) -> Callable[[float], float]:
    """Residual of the engine entropy at trial T9 against ``target``.

    Composition and density are those of ``zone``; the zone itself is not
    modified.
    """

    def _residual(t9: float) -> float:
        return engine.entropy(zone.with_temperature(t9)) - target

    return _residual


def temperature_from_entropy(
    engine: NetworkEngine,
    zone: Zone,
    target: float,
    root_factor: float,
    *,
    t9_guess: float | None = None,
    max_expansions: int = constants.ROOT_MAX_EXPANSIONS,
) -> float:
    """Solve for the zone temperature whose entropy equals ``target``."""

    guess = zone.t9 if t9_guess is None else t9_guess
    return solve_temperature(
        guess,
        root_factor,
        entropy_residual(engine, zone, target),
        max_expansions=max_expansions,
    )


__all__ = [
    "bracket_root",
    "solve_temperature",
    "entropy_residual",
    "temperature_from_entropy",
]
