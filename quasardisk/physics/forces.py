"""Acceleration model: central gravity plus companion gravity and wind.

``ForceField`` is a pure query object.  Its companion terms read a frozen
:class:`CompanionForceState` that the engine refreshes between ticks, so
particle updates never observe a companion that is mutated mid-tick.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .. import constants

__all__ = ["CompanionForceState", "ForceField"]


@dataclass(frozen=True)
class CompanionForceState:
    """Force-contributing fields of the companion at the start of a tick."""

    position: tuple[float, float, float]
    mass: float
    radius: float
    influence_radius: float
    gravitational_strength: float
    gravity_coupling: float
    wind_velocity: float
    wind_density: float
    wind_coupling: float
    wind_range: float
    gravity_enabled: bool = True
    wind_enabled: bool = True

    @property
    def position_array(self) -> np.ndarray:
        return np.asarray(self.position, dtype=float)


class ForceField:
    """Accelerations at arbitrary points.

    Parameters
    ----------
    mu:
        Gravitational parameter of the central body.
    distance_floor:
        Minimum distance used by the inverse-square central term.
    softening:
        Value added to ``d^2`` in the companion terms.
    companion:
        Frozen companion state, or ``None`` when the companion is disabled.
    """

    def __init__(
        self,
        mu: float,
        *,
        distance_floor: float = constants.DISTANCE_FLOOR,
        softening: float = constants.SOFTENING,
        companion: Optional[CompanionForceState] = None,
    ) -> None:
        self.mu = float(mu)
        self.distance_floor = float(distance_floor)
        self.softening = float(softening)
        self.companion = companion

    def with_companion(self, companion: Optional[CompanionForceState]) -> "ForceField":
        return ForceField(
            self.mu,
            distance_floor=self.distance_floor,
            softening=self.softening,
            companion=companion,
        )

    def central_acceleration(self, positions: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Return ``-mu / r^2 r_hat`` with ``r`` floored at ``distance_floor``."""

        pts = np.asarray(positions, dtype=float)
        r = np.sqrt(np.einsum("...i,...i->...", pts, pts))
        r = np.maximum(r, self.distance_floor)
        factor = -self.mu / (r * r * r)
        return np.multiply(pts, np.expand_dims(factor, -1), out=out)

    def companion_acceleration(self, positions: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Return the companion gravity plus wind acceleration.

        Gravity points towards the companion and acts only inside the
        influence radius; wind points away and acts only inside
        ``wind_range``.  Both fall off as ``1 / (d^2 + softening)``.
        """

        pts = np.asarray(positions, dtype=float)
        if out is None:
            out = np.zeros_like(pts)
        else:
            out[...] = 0.0
        comp = self.companion
        if comp is None:
            return out
        offset = comp.position_array - pts
        d2 = np.einsum("...i,...i->...", offset, offset)
        d = np.sqrt(d2)
        inv_d = 1.0 / np.maximum(d, self.distance_floor)
        denom = d2 + self.softening
        magnitude = np.zeros_like(d)
        if comp.gravity_enabled:
            grav = comp.mass * comp.gravitational_strength * comp.gravity_coupling / denom
            magnitude += np.where(d <= comp.influence_radius, grav, 0.0)
        if comp.wind_enabled:
            wind = comp.wind_density * comp.wind_velocity * comp.wind_coupling / denom
            magnitude -= np.where(d <= comp.wind_range, wind, 0.0)
        out += offset * np.expand_dims(magnitude * inv_d, -1)
        return out

    def acceleration_at(self, positions: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Return the total acceleration at one point or at ``(n, 3)`` points."""

        total = self.companion_acceleration(positions, out=out)
        total += self.central_acceleration(positions)
        return total
