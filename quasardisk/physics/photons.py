"""Short-lived orbiters on the photon sphere."""
from __future__ import annotations

import logging
import math
from typing import Dict

import numpy as np

from ..orbits import CentralGeometry
from ..particles import ParticleQueue
from ..schema import Photons

logger = logging.getLogger(__name__)

__all__ = ["PhotonRingSystem", "PHOTON_COLUMNS"]

PHOTON_COLUMNS = {
    "azimuth": (np.float64, 1),
    "polar": (np.float64, 1),
    "age": (np.float64, 1),
    "max_age": (np.float64, 1),
}


class PhotonRingSystem:
    """Capped queue of orbiters spawned at random on the photon sphere."""

    def __init__(self, cfg: Photons, geometry: CentralGeometry, rng: np.random.Generator) -> None:
        self._rng = rng
        self.cfg = cfg
        self.geometry = geometry
        self.queue = ParticleQueue(cfg.capacity, PHOTON_COLUMNS)
        self.spawned_total = 0

    def apply_config(self, cfg: Photons, geometry: CentralGeometry) -> None:
        self.cfg = cfg
        self.geometry = geometry

    def reset(self) -> None:
        if self.queue.capacity != self.cfg.capacity:
            self.queue = ParticleQueue(self.cfg.capacity, PHOTON_COLUMNS)
        self.queue.clear()
        self.queue.evicted = 0
        self.spawned_total = 0

    def advance(self, dt: float, dt_base: float, time: float) -> None:
        cfg = self.cfg
        if not cfg.enabled:
            return
        queue = self.queue
        if queue:
            azimuth = queue["azimuth"]
            azimuth += cfg.angular_speed * self.geometry.spin * dt
            np.mod(azimuth, 2.0 * math.pi, out=azimuth)
            queue["polar"] += cfg.wobble * np.sin(2.0 * time + azimuth) * (dt / dt_base)
            queue["age"] += dt
            queue.keep(queue["age"] <= queue["max_age"])
        probability = min(1.0, cfg.spawn_probability * dt / dt_base)
        if self._rng.random() < probability:
            rows = {
                "azimuth": np.array([self._rng.uniform(0.0, 2.0 * math.pi)]),
                "polar": np.array([math.pi / 2.0 + self._rng.uniform(-0.3, 0.3)]),
                "age": np.zeros(1),
                "max_age": np.array([cfg.max_age]),
            }
            queue.push(rows)
            self.spawned_total += 1

    def positions(self) -> np.ndarray:
        queue = self.queue
        r = self.geometry.r_photon
        polar = queue["polar"]
        azimuth = queue["azimuth"]
        return np.column_stack(
            (
                r * np.sin(polar) * np.cos(azimuth),
                r * np.sin(polar) * np.sin(azimuth),
                r * np.cos(polar),
            )
        )

    def statistics(self) -> Dict[str, float]:
        return {
            "photon_orbiters": float(self.queue.count),
            "photon_spawned": float(self.spawned_total),
            "photon_evicted": float(self.queue.evicted),
        }
