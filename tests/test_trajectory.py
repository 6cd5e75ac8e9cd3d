import math

import numpy as np
import pytest

from hydrotraj.errors import ConfigurationError, DomainError
from hydrotraj.trajectory import (
    ExpansionTrajectory,
    TrajectoryParams,
    acceleration,
    density,
    driving_balance,
    initial_state,
)


def test_initial_state_matches_expansion_rate(params) -> None:
    x = initial_state(params)
    assert x[0] == 1.0
    assert x[2] == 0.0
    expected = (9.0e7 / 0.1 + 2.0 * 1.0e7 / 0.1) / (3.0 * 1.0e8)
    assert x[1] == pytest.approx(expected, rel=1e-14)
    assert math.isfinite(x[1])


@pytest.mark.parametrize(
    "rho_0, rho_1, tau, delta",
    [
        (1.0e8, 1.0e8, 0.1, 0.1),
        (1.0e8, 0.0, 0.1, 0.1),
        (1.0e8, 9.0e7, 1.0e-6, 1.0e3),
        (1.0e-3, 5.0e-4, 1.0e4, 1.0e-4),
        (1.0e12, 1.0, 0.5, 2.0),
    ],
)
def test_initial_state_finite_for_valid_parameters(rho_0, rho_1, tau, delta) -> None:
    params = TrajectoryParams(t9_0=5.0, rho_0=rho_0, rho_1=rho_1, tau=tau, delta=delta, root_factor=1.001)
    x = initial_state(params)
    assert x[0] == 1.0
    assert math.isfinite(x[1])
    assert x[1] >= 0.0
    expected = (rho_1 / tau + 2.0 * (rho_0 - rho_1) / delta) / (3.0 * rho_0)
    assert x[1] == pytest.approx(expected, rel=1e-12)


def test_density_at_unit_scale_is_rho_0(params) -> None:
    assert density(params, np.array([1.0, 0.0, 0.0])) == pytest.approx(1.0e8)


def test_density_strictly_decreasing_in_scale(params) -> None:
    scales = np.geomspace(0.5, 50.0, 25)
    rhos = [density(params, np.array([s, 0.0, 0.0])) for s in scales]
    assert all(b < a for a, b in zip(rhos, rhos[1:]))


@pytest.mark.parametrize("x0", [0.0, -1.0, float("nan")])
def test_density_rejects_non_positive_scale(params, x0) -> None:
    with pytest.raises(DomainError):
        density(params, np.array([x0, 1.0, 0.0]))


def test_acceleration_is_rate_over_three_tau(params) -> None:
    x = np.array([2.0, 3.0, 5.0])
    assert acceleration(params, x, 0.3) == pytest.approx(3.0 / 0.3)


def test_acceleration_does_not_modify_state(params, caplog) -> None:
    x = np.array([1.5, 2.5, 7.0])
    before = x.copy()
    with caplog.at_level("DEBUG", logger="hydrotraj.trajectory"):
        acceleration(params, x, 0.05)
    np.testing.assert_array_equal(x, before)
    assert any("balance" in rec.message for rec in caplog.records)


def test_driving_balance_is_finite_and_pure(params) -> None:
    x = initial_state(params)
    before = x.copy()
    value = driving_balance(params, x, 0.0)
    assert math.isfinite(value)
    np.testing.assert_array_equal(x, before)


def test_rho_1_above_rho_0_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="rho_1 must be less than rho_0"):
        TrajectoryParams(t9_0=10.0, rho_0=1.0e8, rho_1=2.0e8, tau=0.1, delta=0.1, root_factor=1.001)


def test_rho_2_is_remainder(params) -> None:
    assert params.rho_2 == pytest.approx(1.0e7)


def test_expansion_trajectory_delegates(params) -> None:
    model = ExpansionTrajectory(params)
    x = model.initial_state()
    assert model.density(x) == pytest.approx(params.rho_0)
    assert model.acceleration(x, 0.0) == pytest.approx(x[1] / (3.0 * params.tau))
