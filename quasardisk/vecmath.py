"""Minimal 3D vector arithmetic on ``(n, 3)`` NumPy arrays.

Every helper accepts an optional ``out`` buffer so that per-tick updates can
reuse preallocated scratch arrays instead of allocating temporaries.  Single
vectors of shape ``(3,)`` are accepted wherever a row-wise array is.
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from .constants import DISTANCE_FLOOR

__all__ = [
    "add",
    "scale",
    "dot",
    "length",
    "normalize",
    "cross",
    "rotate_about",
    "random_unit",
]


def add(a: np.ndarray, b: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Return ``a + b``."""

    return np.add(a, b, out=out)


def scale(a: np.ndarray, factor, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Return ``a * factor``; ``factor`` may be a scalar or one value per row."""

    factor = np.asarray(factor, dtype=float)
    if factor.ndim == 1 and np.ndim(a) == 2:
        factor = factor[:, None]
    return np.multiply(a, factor, out=out)


def dot(a: np.ndarray, b: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Row-wise dot product."""

    if out is None:
        return np.einsum("...i,...i->...", a, b)
    return np.einsum("...i,...i->...", a, b, out=out)


def length(a: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Row-wise Euclidean length."""

    sq = dot(a, a, out=out)
    return np.sqrt(sq, out=sq if out is not None else None)


def normalize(
    a: np.ndarray,
    out: Optional[np.ndarray] = None,
    *,
    floor: float = DISTANCE_FLOOR,
) -> np.ndarray:
    """Return unit vectors along ``a``.

    Rows shorter than ``floor`` are divided by ``floor`` instead of their own
    length, so degenerate inputs shrink towards zero rather than producing
    ``nan``.
    """

    norms = np.maximum(length(a), floor)
    if np.ndim(a) == 2:
        norms = norms[:, None]
    return np.divide(a, norms, out=out)


def cross(a: np.ndarray, b: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Row-wise cross product."""

    result = np.cross(a, b)
    if out is None:
        return result
    out[...] = result
    return out


def rotate_about(
    vectors: np.ndarray,
    axes: np.ndarray,
    angles: np.ndarray,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Rotate ``vectors`` about unit ``axes`` by ``angles`` (Rodrigues).

    Parameters
    ----------
    vectors:
        Array of shape ``(n, 3)``.
    axes:
        Unit rotation axes of shape ``(n, 3)``.
    angles:
        Rotation angles in radians, shape ``(n,)``.
    """

    cos_a = np.cos(angles)[:, None]
    sin_a = np.sin(angles)[:, None]
    k_dot_v = dot(axes, vectors)[:, None]
    rotated = vectors * cos_a + np.cross(axes, vectors) * sin_a + axes * k_dot_v * (1.0 - cos_a)
    if out is None:
        return rotated
    out[...] = rotated
    return out


def random_unit(rng: np.random.Generator, n: int) -> np.ndarray:
    """Return ``n`` isotropically distributed unit vectors."""

    z = rng.uniform(-1.0, 1.0, size=n)
    phi = rng.uniform(0.0, 2.0 * np.pi, size=n)
    s = np.sqrt(1.0 - z * z)
    return np.column_stack((s * np.cos(phi), s * np.sin(phi), z))
