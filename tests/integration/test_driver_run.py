import json

import numpy as np
import pandas as pd
import pytest

from hydrotraj.driver import DriverState, IntegrationDriver
from hydrotraj.errors import NumericalError
from hydrotraj.io import writer
from hydrotraj.network.powerlaw import PowerLawNetwork
from hydrotraj.run import load_config
from hydrotraj.trajectory import ExpansionTrajectory


def _driver(alpha_net, zone, params, tmp_path, overrides=(), **kwargs):
    cfg = load_config(None, list(overrides))
    engine = PowerLawNetwork(alpha_net)
    return IntegrationDriver(
        cfg, engine, ExpansionTrajectory(params), zone, alpha_net, outdir=tmp_path, **kwargs
    )


@pytest.fixture
def standard_run(alpha_net, zone, params, tmp_path, monkeypatch):
    calls = []
    real_write = writer.write_parquet

    def counting(df, path, **kwargs):
        calls.append(path)
        return real_write(df, path, **kwargs)

    monkeypatch.setattr(writer, "write_parquet", counting)
    driver = _driver(alpha_net, zone, params, tmp_path)
    result = driver.run()
    return driver, result, calls


def test_run_lands_exactly_on_end_time(standard_run) -> None:
    driver, result, _ = standard_run
    assert result.time == 10.0
    assert driver.state is DriverState.DONE
    assert driver.zone.time == 10.0


def test_scale_factor_increases_and_density_falls(standard_run) -> None:
    _, result, _ = standard_run
    frame = pd.read_parquet(result.snapshot_path)
    x0 = frame["x0"].to_numpy()
    rho = frame["rho"].to_numpy()
    assert np.all(np.diff(x0) > 0.0)
    assert np.all(np.diff(rho) < 0.0)
    assert np.all(frame["t9"].to_numpy() > 0.0)
    assert np.all(np.isfinite(frame["entropy_per_nucleon"].to_numpy()))


def test_outputs_written_once_with_final_snapshot(standard_run) -> None:
    driver, result, calls = standard_run
    assert len(calls) == 1
    frame = pd.read_parquet(result.snapshot_path)
    assert frame["time"].iloc[-1] == 10.0
    assert frame["label"].tolist() == list(range(1, len(frame) + 1))
    # first accepted step, then every 20th, then the final step
    steps = frame["step"].tolist()
    assert steps[0] == 1
    assert all((s - 1) % 20 == 0 for s in steps[:-1])
    assert steps[-1] == result.steps
    summary = json.loads(result.summary_path.read_text(encoding="utf-8"))
    assert summary["time"] == 10.0
    assert summary["steps"] == result.steps
    assert summary["mass_fraction_sum"] == pytest.approx(1.0, rel=1e-8)


def test_mass_fractions_conserved(standard_run, alpha_net) -> None:
    _, result, _ = standard_run
    frame = pd.read_parquet(result.snapshot_path)
    cols = [f"X_{sp.name}" for sp in alpha_net.species]
    np.testing.assert_allclose(frame[cols].sum(axis=1).to_numpy(), 1.0, rtol=1e-8)


def test_initial_step_beyond_end_is_single_step(alpha_net, zone, params, tmp_path) -> None:
    driver = _driver(alpha_net, zone, params, tmp_path, ["dtime=100"])
    result = driver.run()
    assert result.steps == 1
    assert result.time == 10.0
    assert result.snapshots == 1


def test_initial_entropy_reproduces_initial_temperature(alpha_net, zone, params, tmp_path) -> None:
    driver = _driver(alpha_net, zone, params, tmp_path, ["tend=1e-12"])
    driver.initialize()
    assert driver.zone.t9 == 10.0
    assert driver.x[0] == 1.0
    assert driver.x[2] == pytest.approx(driver.engine.entropy(driver.zone))
    assert driver.dt == 1.0e-15
    assert driver.state is DriverState.STEPPING


def test_step_limit_aborts(alpha_net, zone, params, tmp_path) -> None:
    driver = _driver(alpha_net, zone, params, tmp_path, ["integration.max_steps=5"])
    with pytest.raises(NumericalError):
        driver.run()
    assert driver.step_count == 5


def _expected_snapshots(steps: int, cadence: int) -> int:
    on_cadence = (steps - 1) // cadence + 1
    return on_cadence if (steps - 1) % cadence == 0 else on_cadence + 1


def test_short_horizon_is_stepped_not_skipped(alpha_net, zone, params, tmp_path) -> None:
    driver = _driver(alpha_net, zone, params, tmp_path, ["tend=1e-12", "steps=5"])
    result = driver.run()
    assert result.time == 1.0e-12
    assert result.steps > 4
    # Adams-Bashforth: three RK4 bootstrap steps, then one RHS call per step
    assert result.rhs_calls == 4 * 3 + (result.steps - 3)
    assert result.snapshots == _expected_snapshots(result.steps, 5)
    frame = pd.read_parquet(result.snapshot_path)
    assert frame["dtime"].iloc[0] == 1.0e-15
    assert frame["time"].iloc[-1] == 1.0e-12
    assert np.all(np.diff(frame["time"].to_numpy()) > 0.0)


def test_write_every_dump_rewrites_outputs(alpha_net, zone, params, tmp_path) -> None:
    driver = _driver(
        alpha_net, zone, params, tmp_path, ["tend=1e-13", "steps=1", "io.write_every_dump=true"]
    )
    result = driver.run()
    assert result.steps > 4
    assert result.snapshots == result.steps
    assert driver.snapshots.writes == result.snapshots + 1


def test_runge_kutta_stepper_and_fixed_entropy_view(alpha_net, zone, params, tmp_path) -> None:
    from hydrotraj.schema import NetworkSelection

    view = alpha_net.view(NetworkSelection(z_max=6))
    driver = _driver(
        alpha_net,
        zone,
        params,
        tmp_path,
        ["tend=1e-12", "integration.stepper=runge_kutta4", "t9_guess=no"],
        entropy_view=view,
    )
    result = driver.run()
    assert result.time == 1.0e-12
    assert result.steps > 4
    assert result.rhs_calls == 4 * result.steps
    assert result.snapshots == _expected_snapshots(result.steps, 20)


def test_observe_logs_accepted_steps(alpha_net, zone, params, tmp_path, caplog) -> None:
    driver = _driver(alpha_net, zone, params, tmp_path, ["tend=1e-14", "observe=yes"])
    with caplog.at_level("INFO"):
        result = driver.run()
    messages = [rec.getMessage() for rec in caplog.records]
    assert result.steps > 4
    assert sum(msg.startswith("observe: t=") for msg in messages) == result.rhs_calls
    assert sum(msg.startswith("t = ") for msg in messages) == result.steps
