"""Helper utilities for normalising configuration inputs."""
from __future__ import annotations

import logging
import subprocess
import warnings
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Flat option names accepted on the command line, mapped onto config paths.
FLAT_ALIASES: Dict[str, str] = {
    "time": "integration.time",
    "dtime": "integration.dtime",
    "tend": "integration.tend",
    "steps": "integration.steps",
    "t9_guess": "integration.t9_guess",
    "observe": "integration.observe",
    "mu_nue_kT": "network.mu_nue_kT",
    "t9_0": "trajectory.t9_0",
    "rho_0": "trajectory.rho_0",
    "rho_1": "trajectory.rho_1",
    "tau": "trajectory.tau",
    "delta": "trajectory.delta",
    "root_factor": "trajectory.root_factor",
}


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    if lower in {"inf", "+inf", "infinity", "+infinity"}:
        return float("inf")
    if lower in {"-inf", "-infinity"}:
        return float("-inf")
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    if text.startswith("[") and text.endswith("]"):
        inner = text[1:-1].strip()
        if not inner:
            return []
        return [parse_override_value(part) for part in inner.split(",")]
    return text


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply dotted-path overrides to a configuration dictionary."""

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        path = key.strip()
        if not path:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        path = FLAT_ALIASES.get(path, path)
        parts = [segment for segment in path.split(".") if segment]
        if not parts:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        target: Any = payload
        for segment in parts[:-1]:
            if not isinstance(target, dict):
                raise ConfigurationError(
                    f"Cannot traverse into non-mapping for override '{item}' at '{segment}'"
                )
            if segment not in target or target[segment] is None:
                target[segment] = {}
            target = target[segment]
        if not isinstance(target, dict):
            raise ConfigurationError(f"Cannot set override '{item}'; target is not a mapping")
        target[parts[-1]] = parse_override_value(value_str)
        logger.debug("override: %s -> %r", path, target[parts[-1]])
    return payload


def read_overrides_file(path: Path) -> List[str]:
    """Return PATH=VALUE entries from a file, skipping blanks and ``#`` comments."""

    entries: List[str] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            text = line.split("#", 1)[0].strip()
            if text:
                entries.append(text)
    return entries


def gather_git_info() -> Dict[str, Any]:
    """Return basic git metadata for provenance recording."""

    repo_root = Path(__file__).resolve().parents[1]
    info: Dict[str, Any] = {}
    try:
        info["commit"] = subprocess.check_output(
            ["git", "rev-parse", "HEAD"], cwd=repo_root, text=True, stderr=subprocess.DEVNULL
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        info["commit"] = "unknown"
    try:
        status = subprocess.check_output(
            ["git", "status", "--short"], cwd=repo_root, text=True, stderr=subprocess.DEVNULL
        )
        info["dirty"] = bool(status.strip())
    except (OSError, subprocess.CalledProcessError):
        info["dirty"] = None
    return info


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)


__all__ = [
    "FLAT_ALIASES",
    "parse_override_value",
    "apply_overrides_dict",
    "read_overrides_file",
    "gather_git_info",
    "configure_logging",
]
