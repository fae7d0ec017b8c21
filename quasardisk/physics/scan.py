"""Population-wide reductions with optional Numba acceleration.

Set ``QUASARDISK_DISABLE_NUMBA=1`` to force the NumPy path.
"""
from __future__ import annotations

import logging
import os
import warnings
from typing import Mapping, Optional

import numpy as np

from ..warnings import NumericalWarning
from ._numba_kernels import max_component_norm_numba, max_row_norm_numba

logger = logging.getLogger(__name__)

DISABLE_ENV = "QUASARDISK_DISABLE_NUMBA"


def numba_disabled(env: Optional[Mapping[str, str]] = None) -> bool:
    """True when ``QUASARDISK_DISABLE_NUMBA`` holds a truthy value."""

    env_map = os.environ if env is None else env
    return env_map.get(DISABLE_ENV, "").strip().lower() in {"1", "true", "yes", "on"}


_NUMBA_DISABLED_ENV = numba_disabled()
_USE_NUMBA = not _NUMBA_DISABLED_ENV
_NUMBA_FAILED = False

__all__ = ["max_acceleration", "max_vector_norm", "numba_disabled", "status"]


def status() -> dict[str, object]:
    """Kernel selection recorded in run summaries."""
    return {
        "disabled_env": _NUMBA_DISABLED_ENV,
        "use_numba": _USE_NUMBA,
        "numba_failed": _NUMBA_FAILED,
    }


def _use_jit(use_numba: bool | None) -> bool:
    if use_numba is None:
        return _USE_NUMBA and not _NUMBA_FAILED
    return bool(use_numba) and _USE_NUMBA and not _NUMBA_FAILED


def max_acceleration(a_x: np.ndarray, a_y: np.ndarray, a_z: np.ndarray, *, use_numba: bool | None = None) -> float:
    """Return the largest acceleration magnitude from three component arrays.

    Non-finite components are ignored so a single degenerate particle cannot
    collapse the time step of the whole population.
    """

    global _NUMBA_FAILED
    if a_x.size == 0:
        return 0.0
    if _use_jit(use_numba):
        try:
            value = float(max_component_norm_numba(a_x, a_y, a_z))
        except Exception as exc:  # pragma: no cover - fallback path
            _NUMBA_FAILED = True
            warnings.warn(
                f"max_acceleration: numba kernel failed ({exc!r}); falling back to NumPy.",
                NumericalWarning,
            )
        else:
            if np.isfinite(value):
                return value
    magnitude = np.sqrt(a_x * a_x + a_y * a_y + a_z * a_z)
    magnitude = magnitude[np.isfinite(magnitude)]
    return float(magnitude.max()) if magnitude.size else 0.0


def max_vector_norm(vectors: np.ndarray, *, use_numba: bool | None = None) -> float:
    """Return the largest row norm of an ``(n, 3)`` array."""

    global _NUMBA_FAILED
    if len(vectors) == 0:
        return 0.0
    if _use_jit(use_numba):
        try:
            value = float(max_row_norm_numba(np.ascontiguousarray(vectors)))
        except Exception as exc:  # pragma: no cover - fallback path
            _NUMBA_FAILED = True
            warnings.warn(
                f"max_vector_norm: numba kernel failed ({exc!r}); falling back to NumPy.",
                NumericalWarning,
            )
        else:
            if np.isfinite(value):
                return value
    magnitude = np.sqrt(np.einsum("ij,ij->i", vectors, vectors))
    magnitude = magnitude[np.isfinite(magnitude)]
    return float(magnitude.max()) if magnitude.size else 0.0
