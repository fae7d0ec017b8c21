"""Characteristic radii and orbital scalings of the central body.

All functions work in code units (see :mod:`quasardisk.constants`) and
accept either scalars or NumPy arrays for the radius argument.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from . import constants

if TYPE_CHECKING:
    from .schema import Config


def gravitational_parameter(mass: float) -> float:
    """Return ``mu = G M`` for a central mass in solar masses."""

    return float(constants.G_CODE * mass)


def horizon_radius(mass: float, reference_radius: float = constants.HORIZON_RADIUS_REF) -> float:
    """Return the horizon radius ``r_s`` scaled linearly with mass.

    Parameters
    ----------
    mass:
        Central mass in solar masses.
    reference_radius:
        Horizon radius at :data:`constants.M_REF`.
    """
    return float(reference_radius * mass / constants.M_REF)


def isco_radius(r_s: float, spin: float) -> float:
    """Return the innermost stable circular orbit.

    Interpolates linearly between ``3 r_s`` for a non-rotating body and
    ``r_s / 2`` for a maximally rotating one.
    """

    return float(r_s * (6.0 - 5.0 * spin) / 2.0)


def photon_sphere_radius(r_s: float) -> float:
    return float(constants.PHOTON_SPHERE_FACTOR * r_s)


def v_kepler_floor(r, coefficient: float):
    """Return the Keplerian floor of the tangential velocity, ``k r^-1.5``.

    Parameters
    ----------
    r:
        Cylindrical radius (scalar or array); floored at
        :data:`constants.DISTANCE_FLOOR`.
    coefficient:
        The coefficient ``k`` including mass and rotation scalings.

    Returns
    -------
    float or numpy.ndarray
        Tangential speed in scene units per second.
    """
    r = np.maximum(r, constants.DISTANCE_FLOOR)
    return coefficient * r ** -1.5


def circular_speed(mu: float, r):
    """Return the circular orbit speed ``sqrt(mu / r)``."""

    return np.sqrt(mu / np.maximum(r, constants.DISTANCE_FLOOR))


def frame_drag_rate(r, spin: float, r_s: float, scale: float):
    """Return the frame-dragging precession rate ``2 a r_s^3 / r^3`` times ``scale``."""

    r = np.maximum(r, constants.DISTANCE_FLOOR)
    return 2.0 * spin * r_s**3 / r**3 * scale


def blandford_znajek_power(r, spin: float, field_strength: float, r_s: float):
    """Return the jet power proxy ``a^2 B^2 exp(-(r - r_s)/r_s)``."""

    return spin**2 * field_strength**2 * np.exp(-(r - r_s) / r_s)


def lorentz_factor(power, gain: float):
    """Map a jet power proxy onto a Lorentz-like factor ``1 + gain P``."""

    return 1.0 + gain * power


def tidal_radius(r_s: float, central_mass: float, body_mass: float, cap: float) -> float:
    """Return the Roche-like tidal radius ``3 r_s (M/m)^(1/3)`` capped at ``cap``."""

    ratio = central_mass / max(body_mass, 1.0e-30)
    return float(min(3.0 * r_s * ratio ** (1.0 / 3.0), cap))


def hill_radius(orbital_radius: float, body_mass: float, central_mass: float, mass_scale: float) -> float:
    """Return the Hill radius ``a (m / 3 M')^(1/3)`` with ``M' = M / mass_scale``.

    ``mass_scale`` amplifies the mass ratio so that a stellar-mass companion
    carves out a visible influence region around a supermassive primary.
    """

    effective_central = central_mass / mass_scale
    return float(orbital_radius * (body_mass / (3.0 * effective_central)) ** (1.0 / 3.0))


def hawking_temperature(mass: float) -> float:
    """Return the scaled Hawking temperature statistic ``1e-16 / M``."""

    return float(constants.HAWKING_TEMPERATURE_SCALE / mass)


@dataclass(frozen=True)
class CentralGeometry:
    """Derived radii of the central body for one configuration.

    Parameters
    ----------
    mass:
        Central mass in solar masses.
    spin:
        Dimensionless spin parameter.
    magnetic_field:
        Magnetic field strength multiplier.
    mu:
        Gravitational parameter in code units.
    r_s:
        Horizon radius.
    r_isco:
        Innermost stable circular orbit (also the capture boundary).
    r_photon:
        Photon sphere radius.
    """

    mass: float
    spin: float
    magnetic_field: float
    mu: float
    r_s: float
    r_isco: float
    r_photon: float

    @classmethod
    def from_parameters(
        cls,
        mass: float,
        spin: float,
        magnetic_field: float = 1.0,
        reference_radius: float = constants.HORIZON_RADIUS_REF,
    ) -> "CentralGeometry":
        r_s = horizon_radius(mass, reference_radius)
        return cls(
            mass=float(mass),
            spin=float(spin),
            magnetic_field=float(magnetic_field),
            mu=gravitational_parameter(mass),
            r_s=r_s,
            r_isco=isco_radius(r_s, spin),
            r_photon=photon_sphere_radius(r_s),
        )

    @classmethod
    def from_config(cls, cfg: "Config") -> "CentralGeometry":
        central = cfg.central
        return cls.from_parameters(
            central.mass,
            central.spin,
            central.magnetic_field,
            central.horizon_radius_ref,
        )

    @property
    def capture_radius(self) -> float:
        return self.r_isco

    @property
    def mass_ratio(self) -> float:
        """Central mass relative to :data:`constants.M_REF`."""
        return self.mass / constants.M_REF


__all__ = [
    "gravitational_parameter",
    "horizon_radius",
    "isco_radius",
    "photon_sphere_radius",
    "v_kepler_floor",
    "circular_speed",
    "frame_drag_rate",
    "blandford_znajek_power",
    "lorentz_factor",
    "tidal_radius",
    "hill_radius",
    "hawking_temperature",
    "CentralGeometry",
]
