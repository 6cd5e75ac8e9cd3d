"""Snapshot buffer for composition and trajectory state."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd
import pyarrow as pa

from ..network.view import Network
from ..network.zone import Zone
from . import writer

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "snapshots.parquet"
SUMMARY_FILE = "summary.json"
TOP_SPECIES_LOGGED = 5


class ColumnarBuffer:
    """Column-oriented record buffer."""

    def __init__(self, columns: Iterable[str] | None = None) -> None:
        self._columns: Dict[str, List[Any]] = {}
        self._column_order: List[str] = []
        self._row_count = 0
        for name in columns or ():
            self._columns[name] = []
            self._column_order.append(name)

    def __len__(self) -> int:
        return self._row_count

    def columns(self) -> List[str]:
        return list(self._column_order)

    def append_row(self, record: Mapping[str, Any]) -> None:
        for key in record:
            if key not in self._columns:
                self._columns[key] = [None] * self._row_count
                self._column_order.append(key)
        for name in self._column_order:
            self._columns[name].append(record.get(name))
        self._row_count += 1

    def to_table(self) -> pa.Table:
        return pa.Table.from_pydict({name: self._columns[name] for name in self._column_order})

    def to_frame(self) -> pd.DataFrame:
        return self.to_table().to_pandas()


class SnapshotLog:
    """Collect zone snapshots and write them to ``outdir``."""

    def __init__(self, net: Network, outdir: Path) -> None:
        self.net = net
        self.outdir = Path(outdir)
        self.buffer = ColumnarBuffer(
            ["label", "step", "time", "dtime", "t9", "rho", "entropy_per_nucleon", "x0", "x1", "mu_nue_kT"]
        )
        self.writes = 0

    @property
    def snapshot_path(self) -> Path:
        return self.outdir / SNAPSHOT_FILE

    @property
    def summary_path(self) -> Path:
        return self.outdir / SUMMARY_FILE

    def __len__(self) -> int:
        return len(self.buffer)

    def record(self, zone: Zone, step: int) -> int:
        """Append a snapshot of ``zone``; returns its label."""

        label = len(self.buffer) + 1
        zone.relabel(str(label))
        mass_fractions = zone.abundances * self.net.a
        row: Dict[str, Any] = {
            "label": label,
            "step": int(step),
            "time": float(zone.time),
            "dtime": float(zone.dtime),
            "t9": float(zone.t9),
            "rho": float(zone.rho),
            "entropy_per_nucleon": float(zone.entropy_per_nucleon),
            "x0": float(zone.x0),
            "x1": float(zone.x1),
            "mu_nue_kT": float(zone.mu_nue_kT),
        }
        for species, fraction in zip(self.net.species, mass_fractions):
            row[f"X_{species.name}"] = float(fraction)
        self.buffer.append_row(row)
        self._log_abundances(zone, label, mass_fractions)
        return label

    def _log_abundances(self, zone: Zone, label: int, mass_fractions: np.ndarray) -> None:
        order = np.argsort(mass_fractions)[::-1][:TOP_SPECIES_LOGGED]
        top = ", ".join(
            f"{self.net.species[i].name}={mass_fractions[i]:.6e}" for i in order if mass_fractions[i] > 0.0
        )
        logger.info(
            "snapshot %d: t=%.6e t9=%.6e rho=%.6e s=%.6e X[%s] sum(X)=%.15e",
            label,
            zone.time,
            zone.t9,
            zone.rho,
            zone.entropy_per_nucleon,
            top,
            float(np.sum(mass_fractions)),
        )

    def write(self, summary: Optional[Mapping[str, Any]] = None) -> Path:
        """Write all snapshots (and ``summary`` when given) to ``outdir``."""

        writer.write_parquet(self.buffer.to_frame(), self.snapshot_path)
        if summary is not None:
            writer.write_summary(summary, self.summary_path)
        self.writes += 1
        return self.snapshot_path


__all__ = ["ColumnarBuffer", "SnapshotLog", "SNAPSHOT_FILE", "SUMMARY_FILE"]
