"""Output helper utilities.

The routines in this module provide thin wrappers around :mod:`pandas`
functionality to serialise engine runs.  Parquet is used for the per-tick
statistics series, JSON for run summaries and CSV for discrete events.
All functions ensure that destination directories are created when
necessary.
"""
from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

# Units attached to the Parquet schema metadata.  Columns not listed are
# counts or dimensionless scene quantities.
UNITS = {
    "time": "s",
    "dt": "s",
    "a_max": "scene s^-2",
    "tidal_distance": "scene",
    "tidal_radius": "scene",
    "tidal_remnant_mass": "M_sun",
    "debris_mass": "M_sun",
    "companion_influence_radius": "scene",
    "companion_orbital_velocity": "scene s^-1",
    "avg_infall_speed": "scene s^-1",
    "average_infall_speed": "scene s^-1",
    "outflow_mean_speed": "scene s^-1",
}

DEFINITIONS = {
    "capture_count": "Disk particles reset inside the ISCO band (launches plus plunges)",
    "launch_count": "Disk particles that launched an outflow particle",
    "plunge_count": "Disk particles reset below r_isco - margin without a launch",
    "particles_in_stream": "Debris particles not yet circularized",
    "tidal_phase": "0 approaching, 1 stretching, 2 disrupted, 3 swallowed",
    "faults": "Internal per-tick faults absorbed by the engine",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _json_default(value: Any) -> Any:
    if hasattr(value, "item"):
        return value.item()
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serialisable")


def _finite_or_none(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
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
    table = pa.Table.from_pandas(df, preserve_index=False)
    units = {name: UNITS[name] for name in table.column_names if name in UNITS}
    definitions = {name: DEFINITIONS[name] for name in table.column_names if name in DEFINITIONS}
    metadata = dict(table.schema.metadata or {})
    metadata.update(
        {
            b"units": json.dumps(units, sort_keys=True).encode("utf-8"),
            b"definitions": json.dumps(definitions, sort_keys=True).encode("utf-8"),
        }
    )
    table = table.replace_schema_metadata(metadata)
    compression_arg = None if compression == "none" else compression
    pq.write_table(table, path, compression=compression_arg)


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary to ``summary.json``.

    Non-finite floats are written as ``null``.
    """
    _ensure_parent(path)
    cleaned = {key: _finite_or_none(value) for key, value in summary.items()}
    with Path(path).open("w", encoding="utf-8") as fh:
        json.dump(cleaned, fh, indent=2, sort_keys=True, default=_json_default)


def write_events(events: Iterable[Mapping[str, Any]], path: Path) -> None:
    """Write discrete engine events (phase changes, faults) to CSV."""
    _ensure_parent(path)
    pd.DataFrame(list(events)).to_csv(path, index=False)


__all__ = ["write_parquet", "write_summary", "write_events", "UNITS", "DEFINITIONS"]
