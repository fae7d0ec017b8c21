"""Companion body on an imposed Kepler orbit and its radial wind.

The companion is long-lived and hot-reconfigurable: :meth:`CompanionBody.set_parameters`
mutates it in place and recomputes the derived orbital speed and Hill
radius.  Its wind is a fixed-size pool whose particles are respawned at the
surface once they exceed their lifetime.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

import numpy as np
from pydantic import ValidationError

from .. import constants, orbits, vecmath
from ..errors import ConfigurationError
from ..orbits import CentralGeometry
from ..particles import ParticlePool
from ..schema import Companion
from .forces import CompanionForceState

logger = logging.getLogger(__name__)

__all__ = ["CompanionBody", "WIND_COLUMNS"]

WIND_COLUMNS = {
    "offset": (np.float64, 3),
    "direction": (np.float64, 3),
    "speed": (np.float64, 1),
    "age": (np.float64, 1),
    "max_age": (np.float64, 1),
}

# Options that only change derived state and can be applied at any time.
_MUTABLE_FIELDS = (
    "enabled",
    "mass",
    "radius",
    "temperature",
    "orbital_radius",
    "orbital_speed",
    "speed_multiplier",
    "inclination_deg",
    "eccentricity",
    "gravity_enabled",
    "gravitational_strength",
    "gravity_coupling",
    "hill_mass_scale",
    "wind_enabled",
    "wind_velocity",
    "wind_density",
    "wind_coupling",
    "wind_range_factor",
    "wind_max_age",
)


class CompanionBody:
    """Secondary massive body, its wind pool and its force contribution."""

    def __init__(self, cfg: Companion, geometry: CentralGeometry, rng: np.random.Generator) -> None:
        self._rng = rng
        self._geometry = geometry
        self._cfg = cfg
        for name in _MUTABLE_FIELDS:
            setattr(self, name, getattr(cfg, name))
        self.initial_angle = float(cfg.initial_angle)
        self.angle = self.initial_angle
        self.orbital_velocity = 0.0
        self.influence_radius = 0.0
        self._recompute_derived()
        self.wind = ParticlePool(cfg.wind_particle_count, WIND_COLUMNS)
        self._seed_wind(np.arange(self.wind.size), initial=True)

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------
    def set_parameters(self, **params: Any) -> None:
        """Validate scalar parameters, then apply them and refresh derived quantities.

        Raises
        ------
        ConfigurationError
            For unknown names or values the :class:`~quasardisk.schema.Companion`
            section rejects.  The body is left unchanged in that case.
        """

        unknown = set(params) - set(_MUTABLE_FIELDS)
        if unknown:
            raise ConfigurationError(f"unknown companion parameters: {sorted(unknown)}")
        payload = self._cfg.model_dump()
        payload.update({name: getattr(self, name) for name in _MUTABLE_FIELDS})
        payload.update(params)
        try:
            cfg = Companion.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
        self._cfg = cfg
        for name in _MUTABLE_FIELDS:
            setattr(self, name, getattr(cfg, name))
        self._recompute_derived()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "CompanionBody.set_parameters: %s -> v_orb=%.4g hill=%.4g",
                sorted(params),
                self.orbital_velocity,
                self.influence_radius,
            )

    def apply_config(self, cfg: Companion, geometry: CentralGeometry) -> None:
        """Adopt a new configuration without recreating the body."""

        self._geometry = geometry
        self._cfg = cfg
        self.initial_angle = float(cfg.initial_angle)
        self.set_parameters(**{name: getattr(cfg, name) for name in _MUTABLE_FIELDS})

    def _recompute_derived(self) -> None:
        if self.orbital_speed is not None:
            self.orbital_velocity = float(self.orbital_speed)
        else:
            self.orbital_velocity = float(
                self.speed_multiplier * orbits.circular_speed(self._geometry.mu, self.orbital_radius)
            )
        self.influence_radius = orbits.hill_radius(
            self.orbital_radius,
            self.mass,
            self._geometry.mass,
            self.hill_mass_scale,
        )

    # ------------------------------------------------------------------
    # orbit
    # ------------------------------------------------------------------
    @property
    def semi_latus_rectum(self) -> float:
        return self.orbital_radius * (1.0 - self.eccentricity**2)

    @property
    def specific_angular_momentum(self) -> float:
        return self.orbital_velocity * self.orbital_radius * math.sqrt(1.0 - self.eccentricity**2)

    @property
    def current_radius(self) -> float:
        return self.semi_latus_rectum / (1.0 + self.eccentricity * math.cos(self.angle))

    @property
    def angular_rate(self) -> float:
        r = self.current_radius
        return self.specific_angular_momentum / (r * r)

    def _to_orbit_frame(self, x: float, y: float) -> np.ndarray:
        inc = math.radians(self.inclination_deg)
        return np.array([x, y * math.cos(inc), y * math.sin(inc)])

    @property
    def position(self) -> np.ndarray:
        r = self.current_radius
        return self._to_orbit_frame(r * math.cos(self.angle), r * math.sin(self.angle))

    @property
    def velocity(self) -> np.ndarray:
        r = self.current_radius
        theta_dot = self.angular_rate
        r_dot = self.specific_angular_momentum * self.eccentricity * math.sin(self.angle) / self.semi_latus_rectum
        cos_a, sin_a = math.cos(self.angle), math.sin(self.angle)
        return self._to_orbit_frame(
            r_dot * cos_a - r * theta_dot * sin_a,
            r_dot * sin_a + r * theta_dot * cos_a,
        )

    @property
    def mass_loss_rate(self) -> float:
        return self.wind_density * self.wind_velocity * constants.MASS_LOSS_SCALE

    @property
    def wind_range(self) -> float:
        return self.wind_range_factor * self.radius

    def force_state(self) -> Optional[CompanionForceState]:
        """Return the frozen force view, or ``None`` while disabled."""

        if not self.enabled:
            return None
        pos = self.position
        return CompanionForceState(
            position=(float(pos[0]), float(pos[1]), float(pos[2])),
            mass=float(self.mass),
            radius=float(self.radius),
            influence_radius=float(self.influence_radius),
            gravitational_strength=float(self.gravitational_strength),
            gravity_coupling=float(self.gravity_coupling),
            wind_velocity=float(self.wind_velocity),
            wind_density=float(self.wind_density),
            wind_coupling=float(self.wind_coupling),
            wind_range=float(self.wind_range),
            gravity_enabled=bool(self.gravity_enabled),
            wind_enabled=bool(self.wind_enabled),
        )

    # ------------------------------------------------------------------
    # wind pool
    # ------------------------------------------------------------------
    def _seed_wind(self, idx: np.ndarray, *, initial: bool = False) -> None:
        n = idx.size
        if n == 0:
            return
        rng = self._rng
        directions = vecmath.random_unit(rng, n)
        if initial:
            launch = self.radius * (1.0 + 0.2 * rng.random(n))
            ages = rng.random(n) * self.wind_max_age
        else:
            launch = np.full(n, float(self.radius))
            ages = np.zeros(n)
        self.wind["direction"][idx] = directions
        self.wind["offset"][idx] = vecmath.scale(directions, launch)
        self.wind["speed"][idx] = self.wind_velocity * constants.WIND_SPEED_SCALE * rng.uniform(0.8, 1.2, n)
        self.wind["age"][idx] = ages
        self.wind["max_age"][idx] = self.wind_max_age

    def _advance_wind(self, dt: float) -> int:
        wind = self.wind
        wind["age"] += dt
        step = wind["speed"] * (self.wind_density * dt)
        wind["offset"] += wind["direction"] * step[:, None]
        expired = np.flatnonzero(wind["age"] >= wind["max_age"])
        self._seed_wind(expired)
        return int(expired.size)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def advance(self, dt: float) -> Dict[str, float]:
        """Advance the orbital angle and the wind pool by ``dt``."""

        respawned = 0
        if self.enabled:
            self.angle = (self.angle + self.angular_rate * dt) % (2.0 * math.pi)
            if self.wind_enabled:
                respawned = self._advance_wind(dt)
        return {"wind_respawned": float(respawned)}

    def reset(self) -> None:
        """Return to the initial orbital angle and reseed the wind."""

        self.angle = self.initial_angle
        if self.wind.size != self._cfg.wind_particle_count:
            self.wind = ParticlePool(self._cfg.wind_particle_count, WIND_COLUMNS)
        self._seed_wind(np.arange(self.wind.size), initial=True)
        logger.info("CompanionBody.reset: angle=%.3f wind=%d", self.angle, self.wind.size)

    def wind_positions(self) -> np.ndarray:
        return self.position[None, :] + self.wind["offset"]

    def statistics(self) -> Dict[str, float]:
        return {
            "companion_enabled": float(self.enabled),
            "companion_influence_radius": float(self.influence_radius),
            "companion_orbital_velocity": float(self.orbital_velocity),
            "companion_mass_loss_rate": float(self.mass_loss_rate),
            "wind_particles": float(self.wind.size),
        }
