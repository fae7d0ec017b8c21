"""Numba-compiled reductions used by the adaptive time step.

The kernels scan a whole particle population once per tick, so they are
written as plain loops without temporaries.  The wrappers in
:mod:`quasardisk.physics.scan` decide whether they are used.
"""
from __future__ import annotations

import math

import numpy as np
from numba import njit

__all__ = [
    "max_component_norm_numba",
    "max_row_norm_numba",
]


@njit(cache=True)
def max_component_norm_numba(a_x: np.ndarray, a_y: np.ndarray, a_z: np.ndarray) -> float:
    """Return ``max(sqrt(a_x^2 + a_y^2 + a_z^2))`` over three component arrays."""

    best = 0.0
    for i in range(a_x.shape[0]):
        value = a_x[i] * a_x[i] + a_y[i] * a_y[i] + a_z[i] * a_z[i]
        if value > best:
            best = value
    return math.sqrt(best)


@njit(cache=True)
def max_row_norm_numba(vectors: np.ndarray) -> float:
    """Return the largest row norm of an ``(n, 3)`` array."""

    best = 0.0
    for i in range(vectors.shape[0]):
        value = vectors[i, 0] * vectors[i, 0] + vectors[i, 1] * vectors[i, 1] + vectors[i, 2] * vectors[i, 2]
        if value > best:
            best = value
    return math.sqrt(best)
