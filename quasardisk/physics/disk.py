"""Accretion disk particle population.

Each particle lives in a local cylindrical frame ``(r, phi, h)`` around the
central body.  Per tick the system

1. projects the companion acceleration onto the cylindrical axes,
2. adds the intrinsic viscous drift and integrates velocities with damping,
3. integrates positions and folds frame-dragging precession into the height,
4. accumulates ISCO residence time and heating,
5. launches outflow particles by Bernoulli trials inside the ISCO band, and
6. respawns launched and plunging particles at their seed radius.

The population is a fixed-size :class:`~quasardisk.particles.ParticlePool`;
particles are reset, never removed.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np

from .. import orbits
from ..orbits import CentralGeometry
from ..particles import ParticlePool
from ..schema import Config
from . import scan
from .forces import ForceField

logger = logging.getLogger(__name__)

__all__ = ["DiskParticleSystem", "DiskStepResult", "LaunchBatch", "DISK_COLUMNS"]

DISK_COLUMNS = {
    "radius": (np.float64, 1),
    "angle": (np.float64, 1),
    "height": (np.float64, 1),
    "display_height": (np.float64, 1),
    "v_radial": (np.float64, 1),
    "v_tangential": (np.float64, 1),
    "v_vertical": (np.float64, 1),
    "mass": (np.float64, 1),
    "density": (np.float64, 1),
    "temperature": (np.float64, 1),
    "time_in_band": (np.float64, 1),
    "heat": (np.float64, 1),
    "precession": (np.float64, 1),
    "stretch": (np.float64, 1),
    "seed_radius": (np.float64, 1),
    "channel": (np.int32, 1),
    "captured": (np.bool_, 1),
}

# Reference radius of the density and scale-height laws
_REFERENCE_RADIUS = 50.0
# Distance above the ISCO inside which particles are stretched
_STRETCH_ZONE = 5.0


@dataclass
class LaunchBatch:
    """Outflow launches produced by one disk tick."""

    positions: np.ndarray
    channel: np.ndarray
    polarity: np.ndarray
    lorentz: np.ndarray
    power: np.ndarray

    @property
    def size(self) -> int:
        return int(self.channel.size)

    @classmethod
    def empty(cls) -> "LaunchBatch":
        return cls(
            positions=np.zeros((0, 3)),
            channel=np.zeros(0, dtype=np.int32),
            polarity=np.zeros(0, dtype=np.int8),
            lorentz=np.zeros(0),
            power=np.zeros(0),
        )


@dataclass
class DiskStepResult:
    """Outcome of :meth:`DiskParticleSystem.advance`."""

    dt: float
    launches: LaunchBatch = field(default_factory=LaunchBatch.empty)
    captures: int = 0
    plunges: int = 0
    numeric_resets: int = 0


def scale_height(r, aspect_ratio: float):
    """Return the local thickness ``r * aspect (r / 50)^0.5``."""

    return r * aspect_ratio * np.sqrt(np.maximum(r, 0.0) / _REFERENCE_RADIUS)


def disk_density(r, h, thickness):
    """Return ``exp(-|h| / H) (50 / r)^1.5`` with floors on ``r`` and ``H``."""

    r = np.maximum(r, 1.0e-6)
    return np.exp(-np.abs(h) / np.maximum(thickness, 1.0e-6)) * (_REFERENCE_RADIUS / r) ** 1.5


class DiskParticleSystem:
    """Owns the disk particle pool and advances it once per tick."""

    def __init__(
        self,
        cfg: Config,
        geometry: CentralGeometry,
        rng: np.random.Generator,
    ) -> None:
        self._rng = rng
        self.apply_config(cfg, geometry)
        self.pool = ParticlePool(cfg.disk.particle_count, DISK_COLUMNS)
        self._allocate_scratch()
        self.captures_total = 0
        self.launches_total = 0
        self.plunges_total = 0
        self.numeric_resets_total = 0
        self.seed_max_radius = 0.0
        self.reset()

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------
    def apply_config(self, cfg: Config, geometry: CentralGeometry) -> None:
        """Adopt scalar parameters; the pool size changes only on :meth:`reset`."""

        self.cfg = cfg.disk
        self.channel_count = cfg.outflow.channel_count
        self.lorentz_gain = cfg.outflow.lorentz_gain
        self.use_numba = cfg.numerics.use_numba
        self.distance_floor = cfg.numerics.distance_floor
        self.geometry = geometry
        disk = self.cfg
        self.kepler_coefficient = disk.kepler_coefficient * math.sqrt(geometry.mass_ratio) * disk.rotation_speed
        self.r_seed_min = max(disk.r_in, geometry.r_isco + disk.isco_margin)
        self.r_seed_max = max(disk.r_out, self.r_seed_min + 1.0)
        self.temperature_span = max(self.r_seed_max - geometry.r_isco, 1.0e-6)

    def _allocate_scratch(self) -> None:
        n = self.pool.size
        self._a_radial = np.zeros(n)
        self._a_tangential = np.zeros(n)
        self._a_vertical = np.zeros(n)
        self._positions = np.zeros((n, 3))
        self._companion = np.zeros((n, 3))

    @property
    def size(self) -> int:
        return self.pool.size

    # ------------------------------------------------------------------
    # seeding
    # ------------------------------------------------------------------
    def _sample_radius(self, n: int) -> np.ndarray:
        u = self._rng.random(n)
        return self.r_seed_min + u ** self.cfg.radial_power * (self.r_seed_max - self.r_seed_min)

    def _sample_height(self, r: np.ndarray) -> np.ndarray:
        thickness = scale_height(r, self.cfg.aspect_ratio)
        u = self._rng.random((3, r.size)).mean(axis=0)
        return (u - 0.5) * thickness

    def reset(self) -> None:
        """Reseed the whole population from the power-law radius distribution."""

        if self.pool.size != self.cfg.particle_count:
            self.pool = ParticlePool(self.cfg.particle_count, DISK_COLUMNS)
            self._allocate_scratch()
        pool = self.pool
        pool.zero()
        n = pool.size
        rng = self._rng
        r = self._sample_radius(n)
        h = self._sample_height(r)
        pool["seed_radius"][:] = r
        pool["radius"][:] = r
        pool["angle"][:] = rng.uniform(0.0, 2.0 * math.pi, n)
        pool["height"][:] = h
        pool["display_height"][:] = h
        pool["v_tangential"][:] = orbits.v_kepler_floor(r, self.kepler_coefficient)
        density = disk_density(r, h, scale_height(r, self.cfg.aspect_ratio))
        pool["density"][:] = density
        pool["mass"][:] = 0.7 + 0.5 * density + 0.3 * rng.random(n)
        pool["channel"][:] = rng.integers(0, self.channel_count, n)
        pool["stretch"][:] = 1.0
        self._update_thermal()
        self.seed_max_radius = float(r.max())
        self.captures_total = 0
        self.launches_total = 0
        self.plunges_total = 0
        self.numeric_resets_total = 0
        logger.info(
            "DiskParticleSystem.reset: n=%d r_seed=[%.2f, %.2f] r_isco=%.2f",
            n,
            self.r_seed_min,
            self.r_seed_max,
            self.geometry.r_isco,
        )

    def _respawn(self, idx: np.ndarray) -> None:
        if idx.size == 0:
            return
        pool = self.pool
        rng = self._rng
        r = pool["seed_radius"][idx]
        h = self._sample_height(r)
        pool["radius"][idx] = r
        pool["angle"][idx] = rng.uniform(0.0, 2.0 * math.pi, idx.size)
        pool["height"][idx] = h
        pool["display_height"][idx] = h
        pool["v_radial"][idx] = 0.0
        pool["v_vertical"][idx] = 0.0
        pool["v_tangential"][idx] = orbits.v_kepler_floor(r, self.kepler_coefficient)
        pool["time_in_band"][idx] = 0.0
        pool["heat"][idx] = 0.0
        pool["precession"][idx] = 0.0
        pool["captured"][idx] = True

    # ------------------------------------------------------------------
    # per-tick update
    # ------------------------------------------------------------------
    def positions(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Cartesian positions with the precession-folded height as ``z``."""

        pool = self.pool
        if out is None:
            out = np.empty((pool.size, 3))
        r = pool["radius"]
        out[:, 0] = r * np.cos(pool["angle"])
        out[:, 1] = r * np.sin(pool["angle"])
        out[:, 2] = pool["display_height"]
        return out

    def prepare(self, force_field: ForceField) -> float:
        """Compute per-particle accelerations and return the largest magnitude.

        The accelerations are cached in scratch buffers and consumed by the
        next :meth:`advance`.
        """

        pool = self.pool
        disk = self.cfg
        r = pool["radius"]
        mass = pool["mass"]
        drift = -disk.drift_coefficient * disk.accretion_rate * disk.viscosity / np.maximum(r, self.distance_floor)
        a_r, a_t, a_z = self._a_radial, self._a_tangential, self._a_vertical
        if force_field.companion is not None:
            pos = self.positions(out=self._positions)
            comp = force_field.companion_acceleration(pos, out=self._companion)
            cos_a = np.cos(pool["angle"])
            sin_a = np.sin(pool["angle"])
            coupling = disk.force_coupling
            np.multiply(comp[:, 0], cos_a, out=a_r)
            a_r += comp[:, 1] * sin_a
            a_r *= coupling.radial
            a_r += drift
            np.multiply(comp[:, 1], cos_a, out=a_t)
            a_t -= comp[:, 0] * sin_a
            a_t *= coupling.tangential
            np.multiply(comp[:, 2], coupling.vertical, out=a_z)
        else:
            a_r[:] = drift
            a_t[:] = 0.0
            a_z[:] = 0.0
        a_r /= mass
        a_t /= mass
        a_z /= mass
        return scan.max_acceleration(a_r, a_t, a_z, use_numba=self.use_numba)

    def advance(self, dt: float, dt_base: float) -> DiskStepResult:
        """Advance all disk particles by ``dt`` using the prepared accelerations."""

        pool = self.pool
        disk = self.cfg
        geometry = self.geometry
        rng = self._rng
        pool["captured"][:] = False

        r = pool["radius"]
        v_r = pool["v_radial"]
        v_t = pool["v_tangential"]
        v_z = pool["v_vertical"]

        v_r += self._a_radial * dt
        v_r *= disk.radial_damping
        v_z += self._a_vertical * dt
        v_z *= disk.vertical_damping
        v_t += self._a_tangential * dt
        v_floor = orbits.v_kepler_floor(r, self.kepler_coefficient)
        v_t -= v_floor
        v_t *= disk.tangential_damping
        v_t += v_floor
        np.maximum(v_t, v_floor, out=v_t)

        pool["angle"] += v_t / (r + 1.0) * dt
        np.mod(pool["angle"], 2.0 * math.pi, out=pool["angle"])
        r += v_r * dt
        np.maximum(r, 0.0, out=r)
        h = pool["height"]
        h += v_z * dt
        np.clip(h, -disk.height_limit, disk.height_limit, out=h)

        if disk.frame_dragging:
            pool["precession"] += orbits.frame_drag_rate(r, geometry.spin, geometry.r_s, disk.frame_drag_scale) * dt

        in_band = np.abs(r - geometry.r_isco) <= disk.isco_margin
        pool["time_in_band"][in_band] += dt
        np.minimum(pool["time_in_band"] / disk.heating_time, 1.0, out=pool["heat"])

        probability = disk.launch_probability * disk.jet_launch_rate * (1.0 + pool["heat"]) * (dt / dt_base)
        np.clip(probability, 0.0, 1.0, out=probability)
        launch_mask = in_band & (rng.random(pool.size) < probability)
        plunge_mask = (r < geometry.r_isco - disk.isco_margin) & ~launch_mask

        finite = (
            np.isfinite(r)
            & np.isfinite(pool["angle"])
            & np.isfinite(h)
            & np.isfinite(v_r)
            & np.isfinite(v_t)
            & np.isfinite(v_z)
        )
        broken = ~finite
        launch_mask &= finite
        plunge_mask &= finite

        launch_idx = np.flatnonzero(launch_mask)
        launches = self._build_launches(launch_idx)
        plunge_idx = np.flatnonzero(plunge_mask)
        broken_idx = np.flatnonzero(broken)
        self._respawn(launch_idx)
        self._respawn(plunge_idx)
        self._respawn(broken_idx)
        self._update_thermal()

        n_launch = int(launch_idx.size)
        n_plunge = int(plunge_idx.size)
        n_broken = int(broken_idx.size)
        self.launches_total += n_launch
        self.plunges_total += n_plunge
        self.captures_total += n_launch + n_plunge
        self.numeric_resets_total += n_broken
        if n_broken:
            logger.warning("DiskParticleSystem.advance: reset %d non-finite particles", n_broken)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "DiskParticleSystem.advance: dt=%.4g launches=%d plunges=%d in_band=%d",
                dt,
                n_launch,
                n_plunge,
                int(in_band.sum()),
            )
        return DiskStepResult(
            dt=dt,
            launches=launches,
            captures=n_launch + n_plunge,
            plunges=n_plunge,
            numeric_resets=n_broken,
        )

    def _build_launches(self, idx: np.ndarray) -> LaunchBatch:
        if idx.size == 0:
            return LaunchBatch.empty()
        pool = self.pool
        geometry = self.geometry
        r = pool["radius"][idx]
        angle = pool["angle"][idx]
        power = orbits.blandford_znajek_power(r, geometry.spin, geometry.magnetic_field, geometry.r_s)
        positions = np.column_stack((r * np.cos(angle), r * np.sin(angle), pool["display_height"][idx]))
        polarity = np.where(self._rng.random(idx.size) < 0.5, 1, -1).astype(np.int8)
        return LaunchBatch(
            positions=positions,
            channel=pool["channel"][idx].copy(),
            polarity=polarity,
            lorentz=orbits.lorentz_factor(power, self.lorentz_gain),
            power=power,
        )

    def _update_thermal(self) -> None:
        pool = self.pool
        disk = self.cfg
        geometry = self.geometry
        r = pool["radius"]
        h = pool["height"]
        frac = np.clip((r - geometry.r_isco) / self.temperature_span, 0.0, 1.0)
        pool["temperature"][:] = (1.0 - frac) ** 0.75 * disk.temperature_scale + pool["heat"] * disk.heating_amplitude
        pool["density"][:] = disk_density(r, h, scale_height(r, disk.aspect_ratio))
        distance = np.maximum(r - geometry.r_isco, 0.0)
        pool["stretch"][:] = np.where(
            distance < _STRETCH_ZONE,
            1.0 + (_STRETCH_ZONE - distance) * 0.4 * disk.tidal_stretch,
            1.0,
        )
        if disk.frame_dragging:
            phase = pool["precession"]
            tilt = disk.precession_tilt * np.sin(phase)
            pool["display_height"][:] = h * np.cos(phase) + r * tilt * np.sin(phase)
        else:
            pool["display_height"][:] = h

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------
    def statistics(self) -> Dict[str, float]:
        pool = self.pool
        temperature = pool["temperature"]
        return {
            "disk_particles": float(pool.size),
            "capture_count": float(self.captures_total),
            "launch_count": float(self.launches_total),
            "plunge_count": float(self.plunges_total),
            "disk_numeric_resets": float(self.numeric_resets_total),
            "avg_infall_speed": float(np.mean(-pool["v_radial"])),
            "disk_peak_temperature": float(temperature.max()),
            "disk_mean_temperature": float(temperature.mean()),
            "disk_luminosity": float(np.sum(pool["mass"] * temperature**4)),
            "disk_in_band": float(np.count_nonzero(np.abs(pool["radius"] - self.geometry.r_isco) <= self.cfg.isco_margin)),
        }
