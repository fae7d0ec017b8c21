"""Core package for real-time quasar disk particle simulations."""
from . import constants, orbits, vecmath
from .engine import RESET_SCENARIOS, Simulation
from .errors import ConfigurationError, NumericalError, QuasarDiskError
from .schema import Config
from .snapshot import Snapshot

__all__ = [
    "constants",
    "orbits",
    "vecmath",
    "Simulation",
    "RESET_SCENARIOS",
    "Config",
    "Snapshot",
    "QuasarDiskError",
    "ConfigurationError",
    "NumericalError",
]
