"""Code-unit constants and default scalings for the quasar disk engine.

All quantities are expressed in code units: lengths in scene units, time in
seconds of simulated time and masses in solar masses.  The gravitational
scaling is calibrated so that a body released at a few hundred scene units
falls in over a few hundred ticks instead of a handful.
"""
from __future__ import annotations


# Gravitational constant in code units (scene^3 s^-2 per solar mass)
G_CODE: float = 7.5e-8

# Reference central mass (solar masses) and its horizon radius (scene units)
M_REF: float = 66.0e9
HORIZON_RADIUS_REF: float = 10.0

# Default spin parameter of the central body
SPIN_DEFAULT: float = 0.7

# Keplerian floor coefficient k in v_phi = k r^-1.5 at the reference mass
KEPLER_COEFFICIENT: float = 407.4

# Time stepping (s)
DT_BASE: float = 0.016
DT_MIN: float = 0.001
COURANT_FACTOR: float = 0.3
CHARACTERISTIC_LENGTH: float = 1.0
ACCEL_NOISE_FLOOR: float = 0.1
MAX_FRAME_DT: float = 0.1

# Minimum distance used whenever an inverse-square law is evaluated
DISTANCE_FLOOR: float = 0.1

# Softening added to d^2 for companion gravity and wind
SOFTENING: float = 1.0

# Multiple of r_s for the photon sphere
PHOTON_SPHERE_FACTOR: float = 1.5

# Scale of the (cosmetic) Hawking temperature statistic
HAWKING_TEMPERATURE_SCALE: float = 1.0e-16

# Conversion of wind density * velocity into a mass-loss rate proxy
MASS_LOSS_SCALE: float = 1.0e-3

# Wind velocity (km s^-1 in the interface) to scene units per second
WIND_SPEED_SCALE: float = 0.01

