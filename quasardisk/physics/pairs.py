"""Transient particle/antiparticle pairs at the horizon.

A fixed pool recycled on expiry: each slot is redrawn as an escaping
particle or an infalling antiparticle just outside ``r_s``.
"""
from __future__ import annotations

import enum
import logging
from typing import Dict

import numpy as np

from .. import orbits, vecmath
from ..orbits import CentralGeometry
from ..particles import ParticlePool
from ..schema import Pairs

logger = logging.getLogger(__name__)

__all__ = ["PairKind", "PairEventSystem", "PAIR_COLUMNS"]


class PairKind(enum.IntEnum):
    PARTICLE = 0
    ANTIPARTICLE = 1


PAIR_COLUMNS = {
    "position": (np.float64, 3),
    "velocity": (np.float64, 3),
    "age": (np.float64, 1),
    "max_age": (np.float64, 1),
    "kind": (np.int8, 1),
}


class PairEventSystem:
    """Fixed pool of pair particles around the central boundary."""

    def __init__(self, cfg: Pairs, geometry: CentralGeometry, rng: np.random.Generator) -> None:
        self._rng = rng
        self.cfg = cfg
        self.geometry = geometry
        self.pool = ParticlePool(cfg.particle_count, PAIR_COLUMNS)
        self.recycled_total = 0
        self.reset()

    def apply_config(self, cfg: Pairs, geometry: CentralGeometry) -> None:
        self.cfg = cfg
        self.geometry = geometry

    def _draw(self, idx: np.ndarray, *, initial: bool = False) -> None:
        n = idx.size
        if n == 0:
            return
        cfg = self.cfg
        rng = self._rng
        direction = vecmath.random_unit(rng, n)
        radius = self.geometry.r_s * (1.0 + cfg.shell_thickness * rng.random(n))
        kind = np.where(rng.random(n) < 0.5, PairKind.PARTICLE, PairKind.ANTIPARTICLE).astype(np.int8)
        sign = np.where(kind == PairKind.PARTICLE, 1.0, -1.0)
        self.pool["position"][idx] = vecmath.scale(direction, radius)
        self.pool["velocity"][idx] = vecmath.scale(direction, sign * cfg.radial_speed)
        self.pool["kind"][idx] = kind
        self.pool["max_age"][idx] = cfg.max_age + cfg.max_age_spread * rng.random(n)
        self.pool["age"][idx] = rng.random(n) * cfg.max_age if initial else 0.0

    def reset(self) -> None:
        if self.pool.size != self.cfg.particle_count:
            self.pool = ParticlePool(self.cfg.particle_count, PAIR_COLUMNS)
        self._draw(np.arange(self.pool.size), initial=True)
        self.recycled_total = 0

    def advance(self, dt: float) -> int:
        """Drift, jitter and recycle expired pairs; returns the number recycled.

        Pairs are recycled only on expiry, at a fresh point of the shell.
        """

        if not self.cfg.enabled:
            return 0
        cfg = self.cfg
        pool = self.pool
        pool["age"] += dt
        pool["position"] += pool["velocity"] * (cfg.intensity * dt)
        # isotropic kick of length U(0, jitter)
        kick = vecmath.random_unit(self._rng, pool.size)
        pool["position"] += vecmath.scale(kick, cfg.jitter * self._rng.random(pool.size))
        expired = np.flatnonzero(pool["age"] >= pool["max_age"])
        self._draw(expired)
        self.recycled_total += int(expired.size)
        return int(expired.size)

    def statistics(self) -> Dict[str, float]:
        kind = self.pool["kind"]
        escaping = int(np.count_nonzero(kind == PairKind.PARTICLE))
        return {
            "pair_particles": float(self.pool.size),
            "pairs_escaping": float(escaping),
            "pairs_infalling": float(self.pool.size - escaping),
            "pairs_recycled": float(self.recycled_total),
            "hawking_temperature": orbits.hawking_temperature(self.geometry.mass),
        }
