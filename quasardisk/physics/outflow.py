"""Collimated outflow particles confined to precomputed magnetic channels."""
from __future__ import annotations

import logging
import math
from typing import Dict

import numpy as np

from ..particles import ParticleQueue
from ..schema import Outflow
from .disk import LaunchBatch

logger = logging.getLogger(__name__)

__all__ = ["ChannelSet", "OutflowSystem", "OUTFLOW_COLUMNS"]

OUTFLOW_COLUMNS = {
    "position": (np.float64, 3),
    "channel": (np.int32, 1),
    "polarity": (np.int8, 1),
    "progress": (np.float64, 1),
    "age": (np.float64, 1),
    "max_age": (np.float64, 1),
    "saturated_time": (np.float64, 1),
    "lorentz": (np.float64, 1),
    "power": (np.float64, 1),
    "speed": (np.float64, 1),
}


class ChannelSet:
    """Tabulated helical channel curves, one per field line.

    For progress ``t`` along channel ``c`` with footpoint angle ``phi_c`` the
    upper-polarity curve is::

        r(t)     = R0 (1 - 0.8 t) + 1.5 sin(20 t)
        z(t)     = L t^(1 + k)
        theta(t) = phi_c + 0.15 t + 0.1 sin(15 t)

    The lower polarity mirrors ``z``.  Intermediate progress values are
    linearly interpolated between samples.
    """

    def __init__(
        self,
        channel_count: int,
        samples: int,
        base_radius: float,
        length: float,
        axial_exponent: float,
    ) -> None:
        self.channel_count = int(channel_count)
        self.samples = int(samples)
        t = np.linspace(0.0, 1.0, self.samples)
        footpoints = np.arange(self.channel_count) / self.channel_count * 2.0 * math.pi
        radius = base_radius * (1.0 - 0.8 * t) + 1.5 * np.sin(20.0 * t)
        axial = length * t ** (1.0 + axial_exponent)
        theta = footpoints[:, None] + 0.15 * t[None, :] + 0.1 * np.sin(15.0 * t)[None, :]
        table = np.empty((self.channel_count, self.samples, 3))
        table[:, :, 0] = radius[None, :] * np.cos(theta)
        table[:, :, 1] = radius[None, :] * np.sin(theta)
        table[:, :, 2] = axial[None, :]
        table.setflags(write=False)
        self.table = table
        self.footpoints = footpoints

    @classmethod
    def from_config(cls, cfg: Outflow) -> "ChannelSet":
        return cls(cfg.channel_count, cfg.curve_samples, cfg.base_radius, cfg.length, cfg.axial_exponent)

    def curve(self, channel: np.ndarray, progress: np.ndarray, polarity: np.ndarray) -> np.ndarray:
        """Return positions on the channel curves, shape ``(n, 3)``."""

        channel = np.asarray(channel, dtype=np.intp) % self.channel_count
        f = np.clip(np.asarray(progress, dtype=float), 0.0, 1.0) * (self.samples - 1)
        i0 = np.floor(f).astype(np.intp)
        i1 = np.minimum(i0 + 1, self.samples - 1)
        w = (f - i0)[:, None]
        points = self.table[channel, i0] * (1.0 - w) + self.table[channel, i1] * w
        points[:, 2] *= np.asarray(polarity, dtype=float)
        return points


class OutflowSystem:
    """Expiring queue of outflow particles riding the channel curves."""

    def __init__(self, cfg: Outflow) -> None:
        self.queue = ParticleQueue(cfg.capacity, OUTFLOW_COLUMNS)
        self.launched_total = 0
        self.expired_total = 0
        self.apply_config(cfg)

    def apply_config(self, cfg: Outflow) -> None:
        self.cfg = cfg
        self.channels = ChannelSet.from_config(cfg)

    @property
    def count(self) -> int:
        return self.queue.count

    def launch(self, batch: LaunchBatch) -> int:
        """Enqueue one particle per launch and return the number evicted."""

        n = batch.size
        if n == 0:
            return 0
        progress = np.zeros(n)
        rows = {
            "position": self.channels.curve(batch.channel, progress, batch.polarity),
            "channel": batch.channel,
            "polarity": batch.polarity,
            "progress": progress,
            "age": np.zeros(n),
            "max_age": np.full(n, self.cfg.max_age),
            "saturated_time": np.zeros(n),
            "lorentz": batch.lorentz,
            "power": batch.power,
            "speed": np.zeros(n),
        }
        self.launched_total += n
        return self.queue.push(rows)

    def advance(self, dt: float, dt_base: float, magnetic_field: float) -> int:
        """Advance progress, reposition on the curves and drop expired particles."""

        queue = self.queue
        if not queue:
            return 0
        cfg = self.cfg
        progress = queue["progress"]
        progress += cfg.progress_rate * queue["lorentz"] * magnetic_field * (dt / dt_base)
        np.minimum(progress, 1.0, out=progress)
        queue["saturated_time"][progress >= 1.0] += dt
        queue["age"] += dt
        new_positions = self.channels.curve(queue["channel"], progress, queue["polarity"])
        if dt > 0.0:
            step = new_positions - queue["position"]
            queue["speed"][:] = np.sqrt(np.einsum("ij,ij->i", step, step)) / dt
        queue["position"][:] = new_positions
        alive = (queue["age"] <= queue["max_age"]) & (queue["saturated_time"] <= cfg.saturation_hold)
        removed = queue.keep(alive)
        self.expired_total += removed
        if removed and logger.isEnabledFor(logging.DEBUG):
            logger.debug("OutflowSystem.advance: expired %d particles, %d live", removed, queue.count)
        return removed

    def reset(self) -> None:
        if self.queue.capacity != self.cfg.capacity:
            self.queue = ParticleQueue(self.cfg.capacity, OUTFLOW_COLUMNS)
        self.queue.clear()
        self.queue.evicted = 0
        self.launched_total = 0
        self.expired_total = 0

    def statistics(self) -> Dict[str, float]:
        queue = self.queue
        live = queue.count
        return {
            "outflow_particles": float(live),
            "outflow_launched": float(self.launched_total),
            "outflow_expired": float(self.expired_total),
            "outflow_evicted": float(queue.evicted),
            "outflow_mean_lorentz": float(queue["lorentz"].mean()) if live else 0.0,
            "outflow_mean_speed": float(queue["speed"].mean()) if live else 0.0,
            "outflow_power": float(queue["power"].sum()) if live else 0.0,
        }
