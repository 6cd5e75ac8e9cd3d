from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hydrotraj.network.loader import network_from_mapping  # noqa: E402
from hydrotraj.network.powerlaw import PowerLawNetwork  # noqa: E402
from hydrotraj.network.zone import Zone  # noqa: E402
from hydrotraj.trajectory import TrajectoryParams  # noqa: E402

DATA_DIR = ROOT / "data"

ALPHA_NET: Dict[str, Any] = {
    "species": [
        {"name": "he4", "z": 2, "a": 4, "mass_excess": 2.42492},
        {"name": "c12", "z": 6, "a": 12, "mass_excess": 0.0},
        {"name": "o16", "z": 8, "a": 16, "mass_excess": -4.737},
        {"name": "ne20", "z": 10, "a": 20, "mass_excess": -7.04193},
    ],
    "reactions": [
        {"name": "triple_alpha", "reactants": ["he4", "he4", "he4"], "products": ["c12"], "a": 1.0e-17, "b": -3.0, "c": 4.4},
        {"name": "c12_ag", "reactants": ["c12", "he4"], "products": ["o16"], "a": 1.0e-7, "b": -0.6667, "c": 3.0},
        {"name": "o16_ag", "reactants": ["o16", "he4"], "products": ["ne20"], "a": 1.0e-8, "b": -0.6667, "c": 5.0},
    ],
}


@pytest.fixture
def alpha_net():
    return network_from_mapping(ALPHA_NET)


@pytest.fixture
def engine(alpha_net):
    return PowerLawNetwork(alpha_net)


@pytest.fixture
def zone(alpha_net):
    y = np.zeros(alpha_net.n_species)
    y[alpha_net.index["he4"]] = 0.99 / 4.0
    y[alpha_net.index["c12"]] = 0.01 / 12.0
    return Zone(abundances=y, t9=10.0, rho=1.0e8)


@pytest.fixture
def params():
    return TrajectoryParams(t9_0=10.0, rho_0=1.0e8, rho_1=9.0e7, tau=0.1, delta=0.1, root_factor=1.001)


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR
