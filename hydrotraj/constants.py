"""Physical constants and default step-control parameters.

Physical values are CODATA 2018 in CGS units, which is what the network
engine works in (densities in g cm^-3, temperatures in units of 10^9 K).
"""
from __future__ import annotations

from typing import Tuple

# Boltzmann constant (erg K^-1)
K_B: float = 1.380649e-16

# Boltzmann constant (MeV K^-1)
K_B_MEV: float = 8.617333262e-11

# Avogadro constant (mol^-1)
N_A: float = 6.02214076e23

# Radiation constant (erg cm^-3 K^-4)
A_RAD: float = 7.565723e-15

# Reduced Planck constant (erg s)
HBAR: float = 1.054571817e-27

# Atomic mass unit (g)
M_U: float = 1.66053906660e-24

# Temperature unit of T9 (K)
T9_UNIT: float = 1.0e9

# Step-size regulators
D_REG_T: float = 0.15     # maximum fractional growth of dt per step
D_REG_Y: float = 0.15     # abundance change regulator
D_X_REG_T: float = 0.15   # state-vector change regulator
D_Y_MIN_DT: float = 1.0e-10  # smallest abundance considered for dt
D_LIM_CUTOFF: float = 1.0e-25  # abundance cutoff for network pruning

# Per-component floors below which a state component does not limit dt
X_LIM: Tuple[float, float, float] = (1.0e-10, 1.0, 1.0e-5)

# Temperature root search
ROOT_FACTOR: float = 1.001
ROOT_MAX_EXPANSIONS: int = 64

MAX_STEPS: int = 1_000_000

__all__ = [
    "K_B",
    "K_B_MEV",
    "N_A",
    "A_RAD",
    "HBAR",
    "M_U",
    "T9_UNIT",
    "D_REG_T",
    "D_REG_Y",
    "D_X_REG_T",
    "D_Y_MIN_DT",
    "D_LIM_CUTOFF",
    "X_LIM",
    "ROOT_FACTOR",
    "ROOT_MAX_EXPANSIONS",
    "MAX_STEPS",
]
