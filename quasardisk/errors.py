"""Custom exceptions for the :mod:`quasardisk` package."""
from __future__ import annotations


class QuasarDiskError(Exception):
    """Base exception for quasar disk simulation errors."""


class ConfigurationError(QuasarDiskError, ValueError):
    """Invalid, unknown or out-of-range configuration option."""


class NumericalError(QuasarDiskError, RuntimeError):
    """Non-finite or otherwise unusable numerical state."""


__all__ = [
    "QuasarDiskError",
    "ConfigurationError",
    "NumericalError",
]
