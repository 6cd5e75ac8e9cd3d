import json

import pandas as pd
import pytest

from hydrotraj import run as run_mod


def test_cli_run_writes_outputs(data_dir, tmp_path) -> None:
    outdir = tmp_path / "out"
    run_mod.main(
        [
            str(data_dir / "alpha_net.yml"),
            str(data_dir / "zone_he4.yml"),
            str(outdir),
            "--override",
            "tend=1e-11",
            "steps=5",
            "--override",
            "network.solver=sparse",
            "--quiet",
        ]
    )
    frame = pd.read_parquet(outdir / "snapshots.parquet")
    assert frame["time"].iloc[-1] == 1.0e-11
    assert "X_fe56" not in frame.columns
    summary = json.loads((outdir / "summary.json").read_text(encoding="utf-8"))
    steps = summary["steps"]
    assert steps > 4
    on_cadence = (steps - 1) // 5 + 1
    assert len(frame) == (on_cadence if (steps - 1) % 5 == 0 else on_cadence + 1)
    assert frame["step"].tolist()[:2] == [1, 6]
    provenance = json.loads((outdir / "run_config.json").read_text(encoding="utf-8"))
    assert provenance["config"]["integration"]["tend"] == 1.0e-11
    assert provenance["config"]["network"]["solver"] == "sparse"
    assert provenance["inputs"]["network"].endswith("alpha_net.yml")


def test_cli_response_file(data_dir, tmp_path) -> None:
    outdir = tmp_path / "resp"
    args = tmp_path / "args.txt"
    args.write_text(
        "\n".join(
            [
                str(data_dir / "alpha_net.yml"),
                str(data_dir / "zone_he4.yml"),
                str(outdir),
                "--override",
                "tend=1e-12",
                "--quiet",
            ]
        ),
        encoding="utf-8",
    )
    run_mod.main([f"@{args}"])
    assert (outdir / "summary.json").exists()


def test_cli_invalid_configuration_exits(data_dir, tmp_path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_mod.main(
            [
                str(data_dir / "alpha_net.yml"),
                str(data_dir / "zone_he4.yml"),
                str(tmp_path),
                "--override",
                "rho_1=2e8",
            ]
        )
    assert excinfo.value.code == 1


def test_cli_overrides_file_and_config(data_dir, tmp_path) -> None:
    overrides = tmp_path / "overrides.txt"
    overrides.write_text("tend=1e-12\n# comment\nt9_guess=no\n", encoding="utf-8")
    outdir = tmp_path / "cfg"
    run_mod.main(
        [
            str(data_dir / "alpha_net.yml"),
            str(data_dir / "zone_he4.yml"),
            str(outdir),
            "--config",
            str(data_dir.parent / "configs" / "entropy_base.yml"),
            "--overrides-file",
            str(overrides),
            "--quiet",
        ]
    )
    summary = json.loads((outdir / "summary.json").read_text(encoding="utf-8"))
    assert summary["time"] == 1.0e-12
    assert summary["steps"] > 4
