import numpy as np
import pytest

from hydrotraj.coupling import CouplingRHS, LoggingObserver
from hydrotraj.errors import EngineFailure
from hydrotraj.trajectory import ExpansionTrajectory, initial_state


def _state(engine, zone, params):
    x = initial_state(params)
    x[2] = engine.entropy(zone)
    return x


def test_rhs_restores_committed_zone(engine, zone, params) -> None:
    x = _state(engine, zone, params)
    abundances = zone.abundances.copy()
    changes = zone.abundance_changes.copy()
    rhs = CouplingRHS(zone, engine, ExpansionTrajectory(params), engine.evolution_view, 1.001)

    dxdt = rhs(x + np.array([0.2, 0.5, 0.0]), 0.05)

    assert zone.t9 == 10.0
    np.testing.assert_array_equal(zone.abundances, abundances)
    np.testing.assert_array_equal(zone.abundance_changes, changes)
    assert dxdt.shape == (3,)
    assert np.all(np.isfinite(dxdt))
    assert rhs.calls == 1


def test_rhs_derivative_layout(engine, zone, params) -> None:
    x = _state(engine, zone, params)
    rhs = CouplingRHS(zone, engine, ExpansionTrajectory(params), engine.evolution_view, 1.001)
    dxdt = rhs(x, 0.0)
    assert dxdt[0] == x[1]
    assert dxdt[1] == pytest.approx(x[1] / (3.0 * params.tau))
    # alpha captures release energy
    assert dxdt[2] > 0.0


def test_rhs_sets_trial_step_on_zone(engine, zone, params) -> None:
    x = _state(engine, zone, params)
    zone.time = 1.0
    rhs = CouplingRHS(zone, engine, ExpansionTrajectory(params), engine.evolution_view, 1.001)
    rhs(x, 1.25)
    assert zone.dtime == pytest.approx(0.25)


def test_observer_sees_read_only_arrays(engine, zone, params) -> None:
    x = _state(engine, zone, params)
    seen = []

    def observer(xs, dxdt, t):
        seen.append((xs, dxdt, t))
        with pytest.raises(ValueError):
            xs[0] = -1.0
        with pytest.raises(ValueError):
            dxdt[0] = -1.0

    rhs = CouplingRHS(
        zone, engine, ExpansionTrajectory(params), engine.evolution_view, 1.001, observer=observer
    )
    dxdt = rhs(x, 0.0)
    assert len(seen) == 1
    assert seen[0][2] == 0.0
    dxdt[0] = 5.0
    assert x[0] == 1.0


def test_logging_observer_reports_trial(engine, zone, params, caplog) -> None:
    x = _state(engine, zone, params)
    rhs = CouplingRHS(
        zone,
        engine,
        ExpansionTrajectory(params),
        engine.evolution_view,
        1.001,
        observer=LoggingObserver(zone),
    )
    with caplog.at_level("INFO", logger="hydrotraj.coupling"):
        rhs(x, 1.0e-3)
    assert any(rec.message.startswith("observe: t=") for rec in caplog.records)


def test_engine_failure_propagates_and_rolls_back(engine, zone, params, monkeypatch) -> None:
    x = _state(engine, zone, params)
    abundances = zone.abundances.copy()

    def failing(zone_arg, view, dt):
        zone_arg.abundances[:] = 0.0
        raise EngineFailure("boom")

    monkeypatch.setattr(engine, "evolve", failing)
    rhs = CouplingRHS(zone, engine, ExpansionTrajectory(params), engine.evolution_view, 1.001)
    with pytest.raises(EngineFailure):
        rhs(x, 1.0e-3)
    np.testing.assert_array_equal(zone.abundances, abundances)
    assert zone.t9 == 10.0
