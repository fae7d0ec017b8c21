"""Structured warning classes for the :mod:`quasardisk` package."""
from __future__ import annotations


class QuasarDiskWarning(UserWarning):
    """Base warning class for quasardisk."""


class PhysicsWarning(QuasarDiskWarning):
    """Physical parameter or regime warnings."""


class NumericalWarning(QuasarDiskWarning):
    """Numerical stability or accuracy warnings."""


__all__ = [
    "QuasarDiskWarning",
    "PhysicsWarning",
    "NumericalWarning",
]
