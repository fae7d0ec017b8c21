"""Configuration schema for quasar disk simulations.

This module defines Pydantic models for the engine configuration.  Each
section maps onto one owning system of :class:`quasardisk.engine.Simulation`.
Unknown keys are rejected in every section so that misspelled options
surface as :class:`~quasardisk.errors.ConfigurationError` instead of being
silently ignored.

Example::

    central:
      mass: 6.6e10
      spin: 0.7
    companion:
      enabled: false
    numerics:
      dt_base: 0.016
"""
from __future__ import annotations

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import constants
from .errors import ConfigurationError


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CentralBody(_Section):
    """Central compact body."""

    mass: float = Field(constants.M_REF, gt=0.0, description="Central mass [solar masses]")
    spin: float = Field(constants.SPIN_DEFAULT, ge=0.0, le=0.998, description="Dimensionless spin parameter")
    magnetic_field: float = Field(1.0, ge=0.0, description="Magnetic field strength multiplier")
    horizon_radius_ref: float = Field(
        constants.HORIZON_RADIUS_REF,
        gt=0.0,
        description="Horizon radius at the reference mass of 66e9 solar masses [scene units]",
    )

    @field_validator("mass", "spin", "magnetic_field")
    def _check_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ConfigurationError("central body parameters must be finite")
        return value


class ForceCoupling(_Section):
    """Empirical gains applied to the companion force in the disk frame."""

    radial: float = Field(30.0, ge=0.0)
    tangential: float = Field(1.2, ge=0.0)
    vertical: float = Field(18.0, ge=0.0)


class Disk(_Section):
    """Accretion disk particle population."""

    particle_count: int = Field(2000, ge=1, description="Size of the disk particle pool")
    r_in: float = Field(18.0, gt=0.0, description="Inner seed radius [scene units]")
    r_out: float = Field(98.0, gt=0.0, description="Outer seed radius [scene units]")
    radial_power: float = Field(1.5, gt=0.0, description="Exponent p of r = r_in + u^p (r_out - r_in)")
    aspect_ratio: float = Field(0.1, gt=0.0, description="H/R at r = 50")
    accretion_rate: float = Field(1.0, ge=0.0, description="Accretion rate multiplier")
    viscosity: float = Field(1.0, ge=0.0, description="Viscosity multiplier for the inward drift")
    drift_coefficient: float = Field(60.0, ge=0.0, description="Inward drift acceleration at r = 1")
    rotation_speed: float = Field(1.0, ge=0.0, description="Multiplier on the Keplerian floor")
    kepler_coefficient: float = Field(
        constants.KEPLER_COEFFICIENT,
        gt=0.0,
        description="Coefficient k of the Keplerian floor k r^-1.5 at the reference mass",
    )
    temperature_scale: float = Field(1.0, ge=0.0, description="Multiplier on the disk-law temperature")
    radial_damping: float = Field(0.95, gt=0.0, le=1.0)
    vertical_damping: float = Field(0.90, gt=0.0, le=1.0)
    tangential_damping: float = Field(0.90, ge=0.0, le=1.0, description="Relaxation factor towards the Keplerian floor")
    height_limit: float = Field(15.0, gt=0.0)
    force_coupling: ForceCoupling = ForceCoupling()
    isco_margin: float = Field(3.0, gt=0.0, description="Half width of the band around the ISCO")
    heating_time: float = Field(0.8, gt=0.0, description="Time in band to reach full ISCO heating [s]")
    heating_amplitude: float = Field(0.3, ge=0.0)
    launch_probability: float = Field(0.015, ge=0.0, le=1.0, description="Base launch probability per tick")
    jet_launch_rate: float = Field(1.0, ge=0.0, description="Global launch-rate multiplier")
    frame_dragging: bool = True
    frame_drag_scale: float = Field(0.6, ge=0.0, description="Tunable scale of the frame-dragging rate")
    precession_tilt: float = Field(0.3, ge=0.0, description="Amplitude of the precession height term")
    tidal_stretch: float = Field(1.0, ge=0.0, description="Strength of the stretch factor near the ISCO")

    @model_validator(mode="after")
    def _check_radii(self) -> "Disk":
        if self.r_out <= self.r_in:
            raise ConfigurationError("disk.r_out must exceed disk.r_in")
        return self


class Outflow(_Section):
    """Collimated outflow launched from ISCO capture events."""

    capacity: int = Field(2000, ge=1, description="Maximum number of live outflow particles")
    channel_count: int = Field(16, ge=1, description="Number of magnetic channels")
    curve_samples: int = Field(128, ge=2, description="Samples per precomputed channel curve")
    progress_rate: float = Field(0.025, ge=0.0, description="Progress per base tick at unit Lorentz factor and field")
    max_age: float = Field(4.0, gt=0.0, description="Maximum particle age [s]")
    saturation_hold: float = Field(0.5, ge=0.0, description="Time spent at progress 1 before removal [s]")
    base_radius: float = Field(18.0, gt=0.0, description="Channel radius at the launch point")
    length: float = Field(180.0, gt=0.0, description="Axial extent of a channel")
    axial_exponent: float = Field(0.4, ge=0.0, description="z = length * t^(1 + axial_exponent)")
    lorentz_gain: float = Field(10.0, ge=0.0)


class Companion(_Section):
    """Perturbing companion body and its wind."""

    enabled: bool = True
    mass: float = Field(40.0, gt=0.0, description="Companion mass [solar masses]")
    radius: float = Field(15.0, gt=0.0, description="Companion radius [scene units]")
    temperature: float = Field(40000.0, gt=0.0, description="Surface temperature [K]")
    orbital_radius: float = Field(250.0, gt=0.0, description="Semi-major axis [scene units]")
    orbital_speed: Optional[float] = Field(
        None,
        ge=0.0,
        description="Pinned orbital speed; derived from the central mass when null",
    )
    speed_multiplier: float = Field(1.0, ge=0.0)
    inclination_deg: float = Field(0.0, ge=-90.0, le=90.0)
    eccentricity: float = Field(0.0, ge=0.0, le=0.95)
    initial_angle: float = Field(0.0, description="Orbital angle at reset [rad]")
    gravity_enabled: bool = True
    gravitational_strength: float = Field(1.0, ge=0.0)
    gravity_coupling: float = Field(1.0e-3, ge=0.0)
    hill_mass_scale: float = Field(1.0e9, gt=0.0, description="Mass ratio amplification of the Hill radius")
    wind_enabled: bool = True
    wind_velocity: float = Field(2000.0, ge=0.0, description="Wind velocity [km/s]")
    wind_density: float = Field(1.0, ge=0.0)
    wind_coupling: float = Field(1.0e-4, ge=0.0)
    wind_range_factor: float = Field(2.0, gt=0.0, description="Wind force range in companion radii")
    wind_particle_count: int = Field(2000, ge=1)
    wind_max_age: float = Field(3.2, gt=0.0, description="Wind particle lifetime [s]")


class Tidal(_Section):
    """Tidal encounter of a single infalling body."""

    enabled: bool = True
    body_mass: float = Field(1.0, gt=0.0, description="Body mass [solar masses]")
    start_radius: float = Field(300.0, gt=0.0)
    radial_speed: float = Field(10.0, ge=0.0, description="Initial inbound speed")
    tangential_speed: float = Field(1.8, description="Initial speed perpendicular to the radius")
    velocity_jitter: float = Field(0.05, ge=0.0, description="Amplitude of the per-axis start velocity jitter")
    tidal_radius_cap: float = Field(80.0, gt=0.0)
    disruption_threshold: float = Field(0.3, gt=0.0, lt=1.0)
    integrity_loss_rate: float = Field(0.8, gt=0.0, description="Integrity lost per second at full stretch")
    debris_per_tick: int = Field(40, ge=0)
    debris_capacity: int = Field(5000, ge=1)
    debris_mass_fraction: float = Field(2.5e-4, gt=0.0, le=1.0, description="Body mass carried by one debris particle")
    debris_spread: float = Field(10.0, ge=0.0)
    debris_velocity_jitter: float = Field(0.2, ge=0.0)
    debris_max_age: float = Field(16.0, gt=0.0)
    debris_max_age_spread: float = Field(8.0, ge=0.0)
    circularization_speed: float = Field(0.5, gt=0.0)
    circularization_factor: float = Field(1.5, ge=1.0)
    angular_momentum_loss: float = Field(0.05, ge=0.0, description="Fractional angular momentum loss per second")


class Pairs(_Section):
    """Horizon pair events."""

    enabled: bool = True
    intensity: float = Field(0.5, ge=0.0)
    particle_count: int = Field(1000, ge=1)
    radial_speed: float = Field(3.125, ge=0.0)
    jitter: float = Field(0.04, ge=0.0)
    shell_thickness: float = Field(0.3, ge=0.0)
    max_age: float = Field(1.6, gt=0.0)
    max_age_spread: float = Field(0.8, ge=0.0)


class Photons(_Section):
    """Transient orbiters on the photon sphere."""

    enabled: bool = True
    capacity: int = Field(200, ge=1)
    spawn_probability: float = Field(0.05, ge=0.0, le=1.0)
    angular_speed: float = Field(3.0, ge=0.0)
    wobble: float = Field(0.01, ge=0.0)
    max_age: float = Field(3.2, gt=0.0)


class Numerics(_Section):
    """Time stepping control parameters."""

    dt_base: float = Field(constants.DT_BASE, gt=0.0)
    dt_min: float = Field(constants.DT_MIN, gt=0.0)
    courant_factor: float = Field(constants.COURANT_FACTOR, gt=0.0)
    characteristic_length: float = Field(constants.CHARACTERISTIC_LENGTH, gt=0.0)
    accel_noise_floor: float = Field(constants.ACCEL_NOISE_FLOOR, ge=0.0)
    distance_floor: float = Field(constants.DISTANCE_FLOOR, gt=0.0)
    softening: float = Field(constants.SOFTENING, gt=0.0)
    time_scale: float = Field(1.0, ge=0.0, le=16.0, description="Ticks run per external frame (rate, may be fractional)")
    max_frame_dt: float = Field(constants.MAX_FRAME_DT, gt=0.0)
    seed: Optional[int] = Field(None, ge=0)
    use_numba: bool = Field(True, description="Use numba kernels unless disabled by environment")

    @model_validator(mode="after")
    def _check_step_bounds(self) -> "Numerics":
        if self.dt_min > self.dt_base:
            raise ConfigurationError("numerics.dt_min must not exceed numerics.dt_base")
        return self


class Config(_Section):
    """Top-level configuration object."""

    central: CentralBody = CentralBody()
    disk: Disk = Disk()
    outflow: Outflow = Outflow()
    companion: Companion = Companion()
    tidal: Tidal = Tidal()
    pairs: Pairs = Pairs()
    photons: Photons = Photons()
    numerics: Numerics = Numerics()
    paused: bool = False


__all__ = [
    "CentralBody",
    "ForceCoupling",
    "Disk",
    "Outflow",
    "Companion",
    "Tidal",
    "Pairs",
    "Photons",
    "Numerics",
    "Config",
]
