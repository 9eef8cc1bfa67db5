"""
Small 3D vector toolkit.

Vectors are plain NumPy ``float64`` arrays of shape ``(3,)`` so that the
mesh code can switch between per-node arithmetic and vectorized array
passes without converting types.
"""

import math
from typing import Iterable, Tuple

import numpy as np


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Build a 3-component vector."""
    return np.array([x, y, z], dtype=np.float64)


def length(v: np.ndarray) -> float:
    return float(math.sqrt(float(np.dot(v, v))))


def normalize(v: np.ndarray) -> np.ndarray:
    """Return ``v`` scaled to unit length; the zero vector is returned unchanged."""
    l = length(v)
    if l == 0.0:
        return v
    return v / l


def normalize_rows(vs: np.ndarray) -> np.ndarray:
    """Row-wise ``normalize`` for an ``(N, 3)`` array, leaving zero rows as they are."""
    lengths = np.linalg.norm(vs, axis=1)
    lengths[lengths == 0.0] = 1.0
    return vs / lengths[:, np.newaxis]


def distance(v0: np.ndarray, v1: np.ndarray) -> float:
    return length(v1 - v0)


def lerp(v0: np.ndarray, v1: np.ndarray, t: float) -> np.ndarray:
    """Linear interpolation between two points."""
    return v0 * (1.0 - t) + v1 * t


def slerp(v0: np.ndarray, v1: np.ndarray, t: float) -> np.ndarray:
    """
    Spherical linear interpolation between two vectors.

    The result follows the great circle through ``v0`` and ``v1``, so two
    points on a sphere of radius r interpolate to a point on the same
    sphere. Parallel inputs degrade to ``lerp``.
    """
    cos_omega = float(np.dot(normalize(v0), normalize(v1)))
    omega = math.acos(max(-1.0, min(1.0, cos_omega)))
    sin_omega = math.sin(omega)
    if sin_omega < 1e-12:
        return lerp(v0, v1, t)
    return (v0 * math.sin((1.0 - t) * omega) + v1 * math.sin(t * omega)) / sin_omega


def into_variance(values: Iterable[float]) -> float:
    """
    Population variance of a stream of values.

    Returns ``nan`` for fewer than two samples; the variance is undefined
    there and callers are expected to check with ``math.isnan``.
    """
    n = 0
    total = 0.0
    total_sq = 0.0
    for x in values:
        n += 1
        total += x
        total_sq += x * x
    if n < 2:
        return float("nan")
    return (total_sq - total * total / n) / n


def variance(values) -> float:
    """Variance of a sequence or array (see ``into_variance``)."""
    return into_variance(float(x) for x in values)


def sorted_pair(a: int, b: int) -> Tuple[int, int]:
    """Order two indices so the pair can serve as an undirected key."""
    return (a, b) if a <= b else (b, a)
