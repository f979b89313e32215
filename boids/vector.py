"""Small vector helpers shared by the evaluator and integrator kernels."""

import math
import numpy as np
from numba import njit

# Below this length a vector is treated as zero
EPSILON = 1e-12


@njit(cache=True)
def length(v: np.ndarray) -> float:
    """Euclidean length of a 3-vector."""
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


@njit(cache=True)
def normalize_or_zero(v: np.ndarray):
    """Normalize a 3-vector in place; zero-length vectors become zero."""
    mag = length(v)
    if mag > EPSILON:
        v[0] /= mag
        v[1] /= mag
        v[2] /= mag
    else:
        v[0] = 0.0
        v[1] = 0.0
        v[2] = 0.0


@njit(cache=True)
def clamp_length(v: np.ndarray, max_length: float):
    """Scale a 3-vector in place so its length does not exceed max_length."""
    mag = length(v)
    if mag > max_length:
        scale = max_length / mag
        v[0] *= scale
        v[1] *= scale
        v[2] *= scale


@njit(cache=True)
def look_basis(direction: np.ndarray, forward: np.ndarray, up: np.ndarray) -> bool:
    """
    Orient a (forward, up) pair to look along direction with world up = +Y.

    Writes into forward and up and returns True. A zero direction leaves both
    untouched and returns False.
    """
    dx, dy, dz = direction[0], direction[1], direction[2]
    mag = math.sqrt(dx * dx + dy * dy + dz * dz)
    if mag <= EPSILON:
        return False
    fx, fy, fz = dx / mag, dy / mag, dz / mag

    # Right = forward x world_up
    rx, ry, rz = -fz, 0.0, fx
    r_len = math.sqrt(rx * rx + rz * rz)
    if r_len < 1e-6:
        # Looking straight up or down: use world_right (+X) instead
        rx, ry, rz = 0.0, fz, -fy
        r_len = math.sqrt(ry * ry + rz * rz)
    rx /= r_len
    ry /= r_len
    rz /= r_len

    # Up = right x forward
    forward[0] = fx
    forward[1] = fy
    forward[2] = fz
    up[0] = ry * fz - rz * fy
    up[1] = rz * fx - rx * fz
    up[2] = rx * fy - ry * fx
    return True


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """Return a copy of an (N, 3) array with every row normalized; zero rows stay zero."""
    vectors = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    out = np.zeros_like(vectors)
    np.divide(vectors, norms, out=out, where=norms > EPSILON)
    return out
