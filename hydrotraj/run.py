"""Command line entry point for coupled trajectory/network runs.

Example::

    python -m hydrotraj.run data/alpha_net.yml data/zone_he4.yml out \
        --override tend=1 steps=10 --override network.solver=sparse

Flat option names (``tend=1``) and dotted configuration paths
(``integration.tend=1``) are both accepted by ``--override``.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from . import config_utils
from .config_utils import configure_logging
from .driver import IntegrationDriver, RunResult
from .errors import ConfigurationError, HydroTrajError
from .io import writer
from .network.loader import build_zone, load_network, load_zone_file, remove_isolated_species
from .network.powerlaw import PowerLawNetwork
from .runtime import format_exception_short, log_stage
from .schema import Config
from .trajectory import ExpansionTrajectory, TrajectoryParams

logger = logging.getLogger(__name__)

RUN_CONFIG_FILE = "run_config.json"


def load_config(path: Optional[Path] = None, overrides: Optional[Sequence[str]] = None) -> Config:
    """Load a YAML configuration file into a :class:`Config` instance.

    ``path=None`` starts from the defaults; ``overrides`` are applied on top.
    """

    data: Any = {}
    source_path = None
    if path is not None:
        from ruamel.yaml import YAML

        yaml = YAML(typ="safe")
        source_path = Path(path).resolve()
        if not source_path.exists():
            raise ConfigurationError(f"configuration file '{path}' not found")
        with source_path.open("r", encoding="utf-8") as fh:
            data = yaml.load(fh) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration overrides require the YAML root to be a mapping")
    if overrides:
        data = config_utils.apply_overrides_dict(data, overrides)
    try:
        cfg = Config(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc
    if source_path is not None:
        logger.info("load_config: %s", source_path)
    return cfg


def build_run(
    cfg: Config,
    network_path: Path,
    zone_path: Path,
    *,
    outdir: Optional[Path] = None,
) -> IntegrationDriver:
    """Load the inputs and assemble an :class:`IntegrationDriver`."""

    net = load_network(network_path)
    zone_file = load_zone_file(zone_path)
    if cfg.network.remove_isolated:
        net, removed = remove_isolated_species(net, zone_file.mass_fractions)
        if removed:
            logger.info("removed %d isolated species: %s", len(removed), ", ".join(removed))

    params = TrajectoryParams.from_config(cfg.trajectory)
    engine = PowerLawNetwork(
        net,
        base_view=net.view(cfg.network.evolution),
        newton_max_iter=cfg.numerics.newton_max_iter,
        newton_tol=cfg.numerics.newton_tol,
    )
    zone = build_zone(
        net,
        zone_file,
        t9=params.t9_0,
        rho=params.rho_0,
        mu_nue_kT=cfg.network.mu_nue_kT,
        particle=cfg.network.particle,
        solver=cfg.network.solver,
    )
    entropy_view = None
    if cfg.network.entropy_generation is not None:
        entropy_view = net.view(cfg.network.entropy_generation)
    return IntegrationDriver(
        cfg,
        engine,
        ExpansionTrajectory(params),
        zone,
        net,
        entropy_view=entropy_view,
        outdir=outdir,
    )


def _run_config_payload(
    cfg: Config, network_path: Path, zone_path: Path, argv: Sequence[str]
) -> Dict[str, Any]:
    return {
        "config": cfg.model_dump(mode="json"),
        "inputs": {"network": str(network_path), "zone": str(zone_path)},
        "argv": list(argv),
        "git": config_utils.gather_git_info(),
    }


def run(
    cfg: Config,
    network_path: Path,
    zone_path: Path,
    *,
    argv: Sequence[str] = (),
) -> RunResult:
    """Build and execute one run, writing the provenance file first."""

    outdir = Path(cfg.io.outdir)
    writer.write_run_config(
        _run_config_payload(cfg, network_path, zone_path, argv), outdir / RUN_CONFIG_FILE
    )
    driver = build_run(cfg, network_path, zone_path, outdir=outdir)
    result = driver.run()
    log_stage(logger, "outputs", extra={"snapshots": str(result.snapshot_path)})
    return result


def main(argv: Optional[List[str]] = None) -> None:
    """Command line entry point."""

    parser = argparse.ArgumentParser(
        description="Integrate an expansion trajectory coupled to a reaction network",
        fromfile_prefix_chars="@",
        epilog=(
            "Example: hydrotraj net.yml zone.yml out --override tend=1 t9_guess=no\n"
            "Arguments may also be read from a file given as @args.txt."
        ),
    )
    parser.add_argument("network", type=Path, help="YAML network definition")
    parser.add_argument("zone", type=Path, help="YAML initial zone (mass fractions)")
    parser.add_argument("output", type=Path, nargs="?", help="Output directory (overrides io.outdir)")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration")
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a console progress bar with ETA for the integration loop.",
    )
    parser.add_argument(
        "--quiet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Suppress INFO logs and Python warnings (use --no-quiet to force logs).",
    )
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help="Apply configuration overrides; e.g. --override tend=1 network.solver=sparse",
    )
    parser.add_argument(
        "--overrides-file",
        action="append",
        type=Path,
        help="Load overrides from a file (one PATH=VALUE per line).",
    )
    args = parser.parse_args(argv)

    override_list: List[str] = []
    if args.overrides_file:
        for override_path in args.overrides_file:
            override_list.extend(config_utils.read_overrides_file(override_path))
    if args.override:
        for group in args.override:
            override_list.extend(group)

    try:
        cfg = load_config(args.config, overrides=override_list)
    except HydroTrajError as exc:
        configure_logging(logging.INFO)
        logger.error("%s", format_exception_short(exc))
        sys.exit(1)
    if args.quiet is not None:
        cfg.io.quiet = bool(args.quiet)
    if args.progress:
        cfg.io.progress.enable = True
    if args.output is not None:
        cfg.io.outdir = args.output
    configure_logging(
        logging.WARNING if cfg.io.quiet else logging.INFO,
        suppress_warnings=cfg.io.quiet,
    )

    raw_argv = list(sys.argv[1:] if argv is None else argv)
    try:
        run(cfg, args.network, args.zone, argv=raw_argv)
    except HydroTrajError as exc:
        logger.error("run failed: %s", format_exception_short(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()


__all__ = ["load_config", "build_run", "run", "main", "RUN_CONFIG_FILE"]
