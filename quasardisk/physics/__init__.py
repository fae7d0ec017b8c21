"""Particle systems and force models advanced by the engine."""
from . import (
    forces,
    disk,
    outflow,
    tidal,
    companion,
    pairs,
    photons,
    scan,
)

__all__ = [
    "forces",
    "disk",
    "outflow",
    "tidal",
    "companion",
    "pairs",
    "photons",
    "scan",
]
