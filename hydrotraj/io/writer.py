"""Output helper utilities.

Snapshots are written as Parquet with per-column unit metadata; run
summaries and the run configuration are JSON.  All functions create the
destination directory when necessary.
"""
from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Mapping

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

UNITS: Dict[str, str] = {
    "label": "index",
    "step": "count",
    "time": "s",
    "dtime": "s",
    "t9": "1e9 K",
    "rho": "g cm^-3",
    "entropy_per_nucleon": "k_B",
    "x0": "dimensionless",
    "x1": "s^-1",
    "mu_nue_kT": "dimensionless",
}

DEFINITIONS: Dict[str, str] = {
    "label": "Running snapshot label k, starting at 1.",
    "step": "Number of accepted steps when the snapshot was taken.",
    "x0": "Trajectory scale factor; rho = rho_0 / x0**3.",
    "x1": "Time derivative of the scale factor.",
    "X_<species>": "Mass fraction of <species> (Y * A).",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _json_safe(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    return value


def write_parquet(df: pd.DataFrame, path: Path, *, compression: str = "snappy") -> None:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Parameters
    ----------
    df:
        Table to serialise.
    path:
        Destination file path.
    """
    _ensure_parent(path)
    units = {name: unit for name, unit in UNITS.items() if name in df.columns}
    units.update({name: "dimensionless" for name in df.columns if str(name).startswith("X_")})
    table = pa.Table.from_pandas(df, preserve_index=False)
    metadata = dict(table.schema.metadata or {})
    metadata.update(
        {
            b"units": json.dumps(units, sort_keys=True).encode("utf-8"),
            b"definitions": json.dumps(DEFINITIONS, sort_keys=True).encode("utf-8"),
        }
    )
    table = table.replace_schema_metadata(metadata)
    compression_arg = None if compression == "none" else compression
    pq.write_table(table, path, compression=compression_arg)


def read_units(path: Path) -> Dict[str, str]:
    """Return the unit metadata stored by :func:`write_parquet`."""

    metadata = pq.read_schema(path).metadata or {}
    raw = metadata.get(b"units")
    return json.loads(raw.decode("utf-8")) if raw else {}


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary to ``summary.json``.

    Non-finite floats are stored as strings so the file stays valid JSON.
    """
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(_json_safe(summary), fh, indent=2, sort_keys=True)


def write_run_config(config: Mapping[str, Any], path: Path) -> None:
    """Persist the resolved run configuration and provenance."""

    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(_json_safe(config), fh, indent=2, sort_keys=True)


__all__ = ["UNITS", "write_parquet", "read_units", "write_summary", "write_run_config"]
