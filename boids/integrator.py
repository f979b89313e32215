"""Integrator: advance velocity, position and facing from the evaluated accelerations."""

import numpy as np
from numba import njit, prange

from .vector import look_basis
from .world import BOUNDARY_SOFT, BOUNDARY_WRAP, WorldConfig


@njit(cache=True)
def _apply_boundary(i: int, positions: np.ndarray, velocities: np.ndarray,
                    half_extents: np.ndarray, mode: int):
    """Hard wall handling after movement. SOFT leaves the boid alone."""
    if mode == BOUNDARY_SOFT:
        return
    for k in range(3):
        h = half_extents[k]
        p = positions[i, k]
        if mode == BOUNDARY_WRAP:
            if p > h:
                positions[i, k] = -h
            elif p < -h:
                positions[i, k] = h
        else:
            if p > h:
                positions[i, k] = 2.0 * h - p
                if velocities[i, k] > 0.0:
                    velocities[i, k] = -velocities[i, k]
            elif p < -h:
                positions[i, k] = -2.0 * h - p
                if velocities[i, k] < 0.0:
                    velocities[i, k] = -velocities[i, k]
            # An overshoot larger than the whole box still has to land inside
            positions[i, k] = max(-h, min(h, positions[i, k]))


@njit(parallel=True, cache=True)
def integrate_kernel(
    positions: np.ndarray,
    velocities: np.ndarray,
    accelerations: np.ndarray,
    forwards: np.ndarray,
    ups: np.ndarray,
    half_extents: np.ndarray,
    boundary_mode: int,
    dt: float,
):
    """Cumulative-velocity integration; each boid touches only its own rows."""
    for i in prange(positions.shape[0]):
        for k in range(3):
            velocities[i, k] += accelerations[i, k] * dt
        for k in range(3):
            positions[i, k] += velocities[i, k] * dt

        _apply_boundary(i, positions, velocities, half_extents, boundary_mode)

        # Zero velocity keeps the previous facing
        look_basis(velocities[i], forwards[i], ups[i])


def integrate(
    positions: np.ndarray,
    velocities: np.ndarray,
    accelerations: np.ndarray,
    forwards: np.ndarray,
    ups: np.ndarray,
    config: WorldConfig,
    dt: float,
):
    """
    Advance every boid by dt seconds.

    velocity += acceleration * dt, then position += velocity * dt, then the
    configured boundary policy and finally the facing update. Arrays are
    modified in place.
    """
    integrate_kernel(
        positions, velocities, accelerations, forwards, ups,
        config.extents_array, config.boundary_code, float(dt)
    )


@njit(parallel=True, cache=True)
def update_facing(velocities: np.ndarray, forwards: np.ndarray, ups: np.ndarray):
    """Point every boid along its velocity; zero velocities keep their facing."""
    for i in prange(velocities.shape[0]):
        look_basis(velocities[i], forwards[i], ups[i])
