"""Tidal encounter of a single infalling body and its debris stream.

Body lifecycle::

    APPROACHING --(d < r_t)--> STRETCHING --(integrity < threshold)--> DISRUPTED
          \\                        |
           +--(d < r_capture)--> SWALLOWED

Debris lifecycle::

    IN_STREAM --(|v_r| < eps and r > f r_isco)--> CIRCULARIZED --(r < r_capture)--> removed

Both machines only move forward; :func:`check_transition` rejects anything
else.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from .. import orbits, vecmath
from ..errors import NumericalError, QuasarDiskError
from ..orbits import CentralGeometry
from ..particles import ParticleQueue
from ..schema import Tidal
from . import scan
from .forces import ForceField

logger = logging.getLogger(__name__)

__all__ = [
    "TidalPhase",
    "DebrisState",
    "TidalBody",
    "DebrisStream",
    "TidalEncounter",
    "check_transition",
    "DEBRIS_COLUMNS",
]


class TidalPhase(enum.IntEnum):
    APPROACHING = 0
    STRETCHING = 1
    DISRUPTED = 2
    SWALLOWED = 3


class DebrisState(enum.IntEnum):
    IN_STREAM = 0
    CIRCULARIZED = 1


_ALLOWED_PHASES = {
    TidalPhase.APPROACHING: frozenset({TidalPhase.STRETCHING, TidalPhase.SWALLOWED}),
    TidalPhase.STRETCHING: frozenset({TidalPhase.DISRUPTED, TidalPhase.SWALLOWED}),
    TidalPhase.DISRUPTED: frozenset(),
    TidalPhase.SWALLOWED: frozenset(),
}

DEBRIS_COLUMNS = {
    "uid": (np.int64, 1),
    "position": (np.float64, 3),
    "velocity": (np.float64, 3),
    "angular_momentum": (np.float64, 3),
    "temperature": (np.float64, 1),
    "age": (np.float64, 1),
    "max_age": (np.float64, 1),
    "mass": (np.float64, 1),
    "state": (np.int8, 1),
}

# Shock heating added to debris that is still in the stream
_STREAM_HEATING = 0.3


def check_transition(current: TidalPhase, new: TidalPhase) -> TidalPhase:
    """Return ``new`` if the body may move from ``current`` to it."""

    if new == current:
        return new
    if new not in _ALLOWED_PHASES[current]:
        raise QuasarDiskError(f"illegal tidal transition {current.name} -> {new.name}")
    return new


@dataclass
class TidalBody:
    """State of the infalling body."""

    position: np.ndarray
    velocity: np.ndarray
    mass: float
    tidal_radius: float
    integrity: float = 1.0
    remnant_mass: float = 0.0
    phase: TidalPhase = TidalPhase.APPROACHING
    stretch_radial: float = 1.0
    stretch_transverse: float = 1.0
    disruption_time: Optional[float] = None
    disruption_radius: Optional[float] = None
    capture_time: Optional[float] = None
    elapsed: float = 0.0

    def __post_init__(self) -> None:
        if self.remnant_mass <= 0.0:
            self.remnant_mass = self.mass

    @property
    def distance(self) -> float:
        return float(np.linalg.norm(self.position))

    @property
    def disrupted(self) -> bool:
        return self.phase == TidalPhase.DISRUPTED

    @property
    def active(self) -> bool:
        """True while the body still moves and may shed mass."""
        return self.phase != TidalPhase.SWALLOWED and self.remnant_mass > 0.0

    def transition(self, new: TidalPhase) -> None:
        old = self.phase
        self.phase = check_transition(old, new)
        if self.phase != old:
            logger.info(
                "TidalBody: %s -> %s at r=%.2f integrity=%.3f t=%.3f",
                old.name,
                self.phase.name,
                self.distance,
                self.integrity,
                self.elapsed,
            )


@dataclass
class DebrisStepResult:
    emitted: int = 0
    circularized: int = 0
    captured: int = 0
    expired: int = 0
    evicted: int = 0
    numeric_drops: int = 0


class DebrisStream:
    """Capped queue of debris particles and their two-state lifecycle."""

    def __init__(self, cfg: Tidal, geometry: CentralGeometry) -> None:
        self.queue = ParticleQueue(cfg.debris_capacity, DEBRIS_COLUMNS)
        self._acc = np.zeros((cfg.debris_capacity, 3))
        self._next_uid = 0
        self.emitted_total = 0
        self.circularized_total = 0
        self.captured_total = 0
        self.expired_total = 0
        self.apply_config(cfg, geometry)

    def apply_config(self, cfg: Tidal, geometry: CentralGeometry) -> None:
        self.cfg = cfg
        self.geometry = geometry

    @property
    def count(self) -> int:
        return self.queue.count

    def reset(self) -> None:
        if self.queue.capacity != self.cfg.debris_capacity:
            self.queue = ParticleQueue(self.cfg.debris_capacity, DEBRIS_COLUMNS)
            self._acc = np.zeros((self.cfg.debris_capacity, 3))
        self.queue.clear()
        self.queue.evicted = 0
        self.emitted_total = 0
        self.circularized_total = 0
        self.captured_total = 0
        self.expired_total = 0

    def emit(self, body: TidalBody, count: int, particle_mass: float, rng: np.random.Generator) -> int:
        """Shed ``count`` particles around the body; returns the number evicted."""

        if count <= 0:
            return 0
        cfg = self.cfg
        direction = vecmath.random_unit(rng, count)
        v_hat = vecmath.normalize(body.velocity)
        direction -= np.outer(direction @ v_hat, v_hat)
        direction = vecmath.normalize(direction, floor=1.0e-12)
        offset = vecmath.scale(direction, (rng.random(count) - 0.5) * cfg.debris_spread)
        position = body.position[None, :] + offset
        velocity = body.velocity[None, :] + (rng.random((count, 3)) - 0.5) * cfg.debris_velocity_jitter
        uid = np.arange(self._next_uid, self._next_uid + count, dtype=np.int64)
        self._next_uid += count
        rows = {
            "uid": uid,
            "position": position,
            "velocity": velocity,
            "angular_momentum": vecmath.cross(position, velocity),
            "temperature": np.full(count, _STREAM_HEATING + 0.3),
            "age": np.zeros(count),
            "max_age": cfg.debris_max_age + rng.random(count) * cfg.debris_max_age_spread,
            "mass": np.full(count, particle_mass),
            "state": np.full(count, DebrisState.IN_STREAM, dtype=np.int8),
        }
        self.emitted_total += count
        return self.queue.push(rows)

    def prepare(self, force_field: ForceField) -> float:
        """Cache accelerations of in-stream particles and return the maximum."""

        queue = self.queue
        n = queue.count
        if n == 0:
            return 0.0
        acc = self._acc[:n]
        force_field.acceleration_at(queue["position"], out=acc)
        acc[queue["state"] != DebrisState.IN_STREAM] = 0.0
        return scan.max_vector_norm(acc)

    def advance(self, dt: float) -> DebrisStepResult:
        """Integrate, circularize, decay and remove debris particles."""

        result = DebrisStepResult()
        queue = self.queue
        n = queue.count
        if n == 0:
            return result
        cfg = self.cfg
        geometry = self.geometry
        mu = geometry.mu
        pos = queue["position"]
        vel = queue["velocity"]
        ang = queue["angular_momentum"]
        state = queue["state"]
        queue["age"] += dt

        stream = state == DebrisState.IN_STREAM
        was_circular = ~stream
        vel[stream] += self._acc[:n][stream] * dt
        pos[stream] += vel[stream] * dt

        r = vecmath.length(pos)
        r_safe = np.maximum(r, 1.0e-12)
        v_radial = vecmath.dot(pos, vel) / r_safe
        ready = (
            stream
            & (np.abs(v_radial) < cfg.circularization_speed)
            & (r > cfg.circularization_factor * geometry.r_isco)
        )
        if ready.any():
            idx = np.flatnonzero(ready)
            l_hat = vecmath.normalize(ang[idx], floor=1.0e-12)
            r_hat = pos[idx] / r_safe[idx, None]
            tangent = vecmath.normalize(vecmath.cross(l_hat, r_hat), floor=1.0e-12)
            vel[idx] = vecmath.scale(tangent, orbits.circular_speed(mu, r[idx]))
            ang[idx] = vecmath.cross(pos[idx], vel[idx])
            state[idx] = DebrisState.CIRCULARIZED
            result.circularized = int(idx.size)
            self.circularized_total += int(idx.size)

        if was_circular.any():
            idx = np.flatnonzero(was_circular)
            self._decay_circular(idx, r[idx], dt)
            r[idx] = vecmath.length(pos[idx])

        in_stream_now = state == DebrisState.IN_STREAM
        proximity = np.maximum(0.0, 1.0 - (r - geometry.r_isco) / 100.0)
        queue["temperature"][:] = 0.3 + proximity * 1.2 + np.where(in_stream_now, _STREAM_HEATING, 0.0)

        finite = np.isfinite(r) & np.isfinite(vel).all(axis=1)
        captured = finite & (r < geometry.capture_radius)
        expired = finite & ~captured & (queue["age"] > queue["max_age"])
        keep = finite & ~captured & ~expired
        result.captured = int(captured.sum())
        result.expired = int(expired.sum())
        result.numeric_drops = int((~finite).sum())
        self.captured_total += result.captured
        self.expired_total += result.expired
        queue.keep(keep)
        if result.numeric_drops:
            logger.warning("DebrisStream.advance: dropped %d non-finite particles", result.numeric_drops)
        return result

    def _decay_circular(self, idx: np.ndarray, r_old: np.ndarray, dt: float) -> None:
        queue = self.queue
        mu = self.geometry.mu
        pos = queue["position"]
        vel = queue["velocity"]
        ang = queue["angular_momentum"]
        factor = max(0.0, 1.0 - self.cfg.angular_momentum_loss * dt)
        l_vec = ang[idx] * factor
        l_mag = vecmath.length(l_vec)
        l_hat = vecmath.normalize(l_vec, floor=1.0e-12)
        omega = orbits.circular_speed(mu, r_old) / np.maximum(r_old, 1.0e-12)
        rotated = vecmath.rotate_about(pos[idx], l_hat, omega * dt)
        r_new = l_mag * l_mag / mu
        r_hat = vecmath.normalize(rotated, floor=1.0e-12)
        pos[idx] = vecmath.scale(r_hat, r_new)
        vel[idx] = vecmath.scale(vecmath.cross(l_hat, r_hat), orbits.circular_speed(mu, r_new))
        ang[idx] = l_vec

    def statistics(self) -> Dict[str, float]:
        queue = self.queue
        n = queue.count
        state = queue["state"]
        in_stream = int(np.count_nonzero(state == DebrisState.IN_STREAM))
        return {
            "debris_particles": float(n),
            "debris_in_stream": float(in_stream),
            "debris_circularized": float(n - in_stream),
            "debris_mass": float(queue["mass"].sum()) if n else 0.0,
            "debris_mean_temperature": float(queue["temperature"].mean()) if n else 0.0,
            "debris_peak_temperature": float(queue["temperature"].max()) if n else 0.0,
            "debris_emitted": float(self.emitted_total),
            "debris_captured": float(self.captured_total),
            "debris_expired": float(self.expired_total),
            "debris_evicted": float(queue.evicted),
        }


class TidalEncounter:
    """Owns the infalling body and the debris stream it sheds."""

    def __init__(self, cfg: Tidal, geometry: CentralGeometry, rng: np.random.Generator) -> None:
        self._rng = rng
        self.cfg = cfg
        self.geometry = geometry
        self.stream = DebrisStream(cfg, geometry)
        self._body_acc = np.zeros(3)
        self.body = self._new_body()

    @property
    def enabled(self) -> bool:
        return bool(self.cfg.enabled)

    def apply_config(self, cfg: Tidal, geometry: CentralGeometry) -> None:
        self.cfg = cfg
        self.geometry = geometry
        self.stream.apply_config(cfg, geometry)
        self.body.tidal_radius = orbits.tidal_radius(geometry.r_s, geometry.mass, cfg.body_mass, cfg.tidal_radius_cap)

    def _new_body(self) -> TidalBody:
        cfg = self.cfg
        rng = self._rng
        azimuth = rng.uniform(0.0, 2.0 * math.pi)
        r_hat = np.array([math.cos(azimuth), math.sin(azimuth), 0.0])
        t_hat = np.array([-math.sin(azimuth), math.cos(azimuth), 0.0])
        velocity = -cfg.radial_speed * r_hat + cfg.tangential_speed * t_hat
        velocity += rng.uniform(-cfg.velocity_jitter, cfg.velocity_jitter, 3)
        return TidalBody(
            position=cfg.start_radius * r_hat,
            velocity=velocity,
            mass=cfg.body_mass,
            tidal_radius=orbits.tidal_radius(self.geometry.r_s, self.geometry.mass, cfg.body_mass, cfg.tidal_radius_cap),
        )

    def reset(self) -> None:
        """Introduce a fresh body and clear the debris stream."""

        self.body = self._new_body()
        self.stream.reset()
        logger.info(
            "TidalEncounter.reset: r0=%.1f r_t=%.2f v0=%s",
            self.body.distance,
            self.body.tidal_radius,
            np.array2string(self.body.velocity, precision=3),
        )

    def prepare(self, force_field: ForceField) -> float:
        """Cache body and debris accelerations; return the largest magnitude."""

        if not self.enabled:
            return 0.0
        a_max = self.stream.prepare(force_field)
        body = self.body
        if body.active:
            force_field.acceleration_at(body.position, out=self._body_acc)
            a_max = max(a_max, float(np.linalg.norm(self._body_acc)))
        return a_max

    def _advance_body(self, dt: float) -> None:
        body = self.body
        cfg = self.cfg
        body.elapsed += dt
        body.velocity += self._body_acc * dt
        body.position += body.velocity * dt
        if not (np.isfinite(body.position).all() and np.isfinite(body.velocity).all()):
            raise NumericalError("tidal body state became non-finite")
        d = body.distance
        if d < self.geometry.capture_radius:
            body.capture_time = body.elapsed
            if body.phase in (TidalPhase.APPROACHING, TidalPhase.STRETCHING):
                body.transition(TidalPhase.SWALLOWED)
            else:
                body.remnant_mass = 0.0
                logger.info("TidalEncounter: remnant captured at t=%.3f", body.elapsed)
            return
        s = max(0.0, 1.0 - d / body.tidal_radius)
        if body.phase == TidalPhase.APPROACHING and d < body.tidal_radius:
            body.transition(TidalPhase.STRETCHING)
        if body.phase == TidalPhase.STRETCHING:
            body.integrity = max(0.0, body.integrity - cfg.integrity_loss_rate * s * dt)
            if body.integrity < cfg.disruption_threshold:
                body.disruption_time = body.elapsed
                body.disruption_radius = d
                body.transition(TidalPhase.DISRUPTED)
        stretch = 1.0 + 3.0 * s
        body.stretch_radial = stretch
        body.stretch_transverse = 1.0 / math.sqrt(stretch)

    def advance(self, dt: float) -> DebrisStepResult:
        """Advance body and debris by ``dt`` using the prepared accelerations."""

        if not self.enabled:
            return DebrisStepResult()
        result = self.stream.advance(dt)
        body = self.body
        if body.active:
            self._advance_body(dt)
        if body.phase == TidalPhase.DISRUPTED and body.remnant_mass > 0.0:
            particle_mass = self.cfg.body_mass * self.cfg.debris_mass_fraction
            count = min(self.cfg.debris_per_tick, int(math.ceil(body.remnant_mass / particle_mass)))
            result.evicted = self.stream.emit(body, count, particle_mass, self._rng)
            result.emitted = count
            body.remnant_mass = max(0.0, body.remnant_mass - count * particle_mass)
        return result

    def statistics(self) -> Dict[str, float]:
        body = self.body
        stats = {
            "tidal_phase": float(body.phase),
            "tidal_integrity": float(body.integrity),
            "tidal_distance": float(body.distance),
            "tidal_radius": float(body.tidal_radius),
            "tidal_remnant_mass": float(body.remnant_mass),
        }
        stats.update(self.stream.statistics())
        return stats
