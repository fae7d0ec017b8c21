"""Immutable per-tick views handed to presentation layers.

Every array in a snapshot is a copy with the ``writeable`` flag cleared, so
consumers can neither observe later ticks through it nor mutate engine
state.  Snapshots compare by value.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from types import MappingProxyType
from typing import Any, Mapping, Optional

import numpy as np

from .physics.tidal import TidalPhase

__all__ = [
    "PopulationView",
    "TidalBodyView",
    "CompanionView",
    "Snapshot",
]


def frozen_array(array: np.ndarray) -> np.ndarray:
    out = np.array(array, copy=True)
    out.setflags(write=False)
    return out


def _values_equal(a: Any, b: Any) -> bool:
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return np.array_equal(np.asarray(a), np.asarray(b), equal_nan=np.asarray(a).dtype.kind == "f")
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if set(a) != set(b):
            return False
        return all(_values_equal(a[key], b[key]) for key in a)
    if isinstance(a, float) and isinstance(b, float) and np.isnan(a) and np.isnan(b):
        return True
    return a == b


class _ValueEquality:
    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return all(_values_equal(getattr(self, f.name), getattr(other, f.name)) for f in fields(self))

    __hash__ = None


@dataclass(frozen=True, eq=False)
class PopulationView(_ValueEquality):
    """Read-only columns of one particle population."""

    name: str
    positions: np.ndarray
    columns: Mapping[str, np.ndarray]

    @classmethod
    def build(cls, name: str, positions: np.ndarray, columns: Mapping[str, np.ndarray]) -> "PopulationView":
        frozen = {key: frozen_array(value) for key, value in columns.items()}
        return cls(name=name, positions=frozen_array(positions), columns=MappingProxyType(frozen))

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    def __getitem__(self, key: str) -> np.ndarray:
        return self.columns[key]


@dataclass(frozen=True, eq=False)
class TidalBodyView(_ValueEquality):
    """State of the infalling body."""

    enabled: bool
    phase: TidalPhase
    position: np.ndarray
    velocity: np.ndarray
    mass: float
    remnant_mass: float
    integrity: float
    tidal_radius: float
    stretch_axis: np.ndarray
    stretch_radial: float
    stretch_transverse: float
    disruption_radius: Optional[float]


@dataclass(frozen=True, eq=False)
class CompanionView(_ValueEquality):
    """Scalar state of the companion body."""

    enabled: bool
    position: np.ndarray
    velocity: np.ndarray
    mass: float
    radius: float
    temperature: float
    orbital_radius: float
    orbital_angle: float
    orbital_velocity: float
    influence_radius: float
    wind_velocity: float
    wind_density: float


@dataclass(frozen=True, eq=False)
class Snapshot(_ValueEquality):
    """Everything a renderer needs for one tick."""

    tick: int
    time: float
    dt: float
    paused: bool
    disk: PopulationView
    outflow: PopulationView
    debris: PopulationView
    wind: PopulationView
    pairs: PopulationView
    photons: PopulationView
    tidal_body: TidalBodyView
    companion: CompanionView
    statistics: Mapping[str, float]

    def population_sizes(self) -> dict[str, int]:
        return {
            view.name: len(view)
            for view in (self.disk, self.outflow, self.debris, self.wind, self.pairs, self.photons)
        }
