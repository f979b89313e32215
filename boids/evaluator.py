"""
Neighbor-force evaluator.

For every boid, classify all other boids by distance and turn the result into
an acceleration:

    d < personal_space                  -> separation
    personal_space < d < vision_range   -> alignment + cohesion
    otherwise                           -> ignored

The boundary and drag terms depend only on the boid itself. The five
components are weighted, summed and clamped to ``max_acceleration``.

Kernels read positions and velocities and write only to the output rows of
the boid being evaluated, so every boid sees the same snapshot regardless of
evaluation order.
"""

import math
from typing import NamedTuple, Optional

import numpy as np
from numba import njit, prange

from .spatial import SpatialGrid, cell_coord
from .vector import EPSILON, clamp_length, length, normalize_or_zero
from .world import NeighborSearch, WorldConfig


class SteeringComponents(NamedTuple):
    """Unweighted per-boid steering components, each of shape (N, 3)."""
    separation: np.ndarray
    alignment: np.ndarray
    cohesion: np.ndarray
    boundary: np.ndarray
    drag: np.ndarray

    @classmethod
    def zeros(cls, num_boids: int) -> "SteeringComponents":
        return cls(*(np.zeros((num_boids, 3), dtype=np.float64) for _ in range(5)))


# ============================================================================
# NUMBA JIT-COMPILED KERNELS
# ============================================================================

@njit(cache=True)
def _clear_row(i, separation, alignment, cohesion, boundary, drag):
    for k in range(3):
        separation[i, k] = 0.0
        alignment[i, k] = 0.0
        cohesion[i, k] = 0.0
        boundary[i, k] = 0.0
        drag[i, k] = 0.0


@njit(cache=True)
def _classify_pair(
    i: int,
    j: int,
    positions: np.ndarray,
    velocities: np.ndarray,
    vision_range: float,
    personal_space: float,
    separation: np.ndarray,
    alignment: np.ndarray,
    cohesion: np.ndarray,
    close_count: int,
    flock_count: int,
):
    """Fold neighbor j into boid i's running sums. Returns the updated counts."""
    dx = positions[j, 0] - positions[i, 0]
    dy = positions[j, 1] - positions[i, 1]
    dz = positions[j, 2] - positions[i, 2]
    dist = math.sqrt(dx * dx + dy * dy + dz * dz)

    if dist < personal_space:
        # Sum of too-close positions, averaged in _finish_agent
        separation[i, 0] += positions[j, 0]
        separation[i, 1] += positions[j, 1]
        separation[i, 2] += positions[j, 2]
        close_count += 1
    elif dist > personal_space and dist < vision_range:
        cohesion[i, 0] += positions[j, 0]
        cohesion[i, 1] += positions[j, 1]
        cohesion[i, 2] += positions[j, 2]

        speed = length(velocities[j])
        if speed > EPSILON:
            alignment[i, 0] += velocities[j, 0] / speed
            alignment[i, 1] += velocities[j, 1] / speed
            alignment[i, 2] += velocities[j, 2] / speed
        flock_count += 1

    return close_count, flock_count


@njit(cache=True)
def _finish_agent(
    i: int,
    positions: np.ndarray,
    velocities: np.ndarray,
    close_count: int,
    flock_count: int,
    half_extents: np.ndarray,
    soft_speed_cap: float,
    separation: np.ndarray,
    alignment: np.ndarray,
    cohesion: np.ndarray,
    boundary: np.ndarray,
    drag: np.ndarray,
):
    """Turn boid i's neighbor sums into unit-ish steering components."""
    if close_count > 0:
        for k in range(3):
            separation[i, k] = positions[i, k] - separation[i, k] / close_count
        normalize_or_zero(separation[i])
        for k in range(3):
            separation[i, k] *= close_count

    if flock_count > 0:
        for k in range(3):
            alignment[i, k] /= flock_count
            cohesion[i, k] = cohesion[i, k] / flock_count - positions[i, k]
        normalize_or_zero(alignment[i])
        normalize_or_zero(cohesion[i])

    for k in range(3):
        if positions[i, k] >= half_extents[k]:
            boundary[i, k] = -1.0
        elif positions[i, k] <= -half_extents[k]:
            boundary[i, k] = 1.0

    speed = length(velocities[i])
    if speed > soft_speed_cap:
        excess = speed - soft_speed_cap
        for k in range(3):
            drag[i, k] = -velocities[i, k] / speed * excess


@njit(parallel=True, cache=True)
def compute_components_brute(
    positions: np.ndarray,
    velocities: np.ndarray,
    half_extents: np.ndarray,
    vision_range: float,
    personal_space: float,
    soft_speed_cap: float,
    separation: np.ndarray,
    alignment: np.ndarray,
    cohesion: np.ndarray,
    boundary: np.ndarray,
    drag: np.ndarray,
):
    """Exhaustive O(n^2) neighbor scan."""
    n = positions.shape[0]
    for i in prange(n):
        _clear_row(i, separation, alignment, cohesion, boundary, drag)
        close_count = 0
        flock_count = 0
        for j in range(n):
            if j == i:
                continue
            close_count, flock_count = _classify_pair(
                i, j, positions, velocities, vision_range, personal_space,
                separation, alignment, cohesion, close_count, flock_count
            )
        _finish_agent(
            i, positions, velocities, close_count, flock_count,
            half_extents, soft_speed_cap,
            separation, alignment, cohesion, boundary, drag
        )


@njit(parallel=True, cache=True)
def compute_components_grid(
    positions: np.ndarray,
    velocities: np.ndarray,
    sorted_indices: np.ndarray,
    cell_starts: np.ndarray,
    cell_counts: np.ndarray,
    cell_size: float,
    dims: np.ndarray,
    offsets: np.ndarray,
    half_extents: np.ndarray,
    vision_range: float,
    personal_space: float,
    soft_speed_cap: float,
    separation: np.ndarray,
    alignment: np.ndarray,
    cohesion: np.ndarray,
    boundary: np.ndarray,
    drag: np.ndarray,
):
    """Same classification as the brute scan, restricted to the 27 surrounding cells."""
    n = positions.shape[0]
    for i in prange(n):
        _clear_row(i, separation, alignment, cohesion, boundary, drag)
        close_count = 0
        flock_count = 0

        cx = cell_coord(positions[i, 0], offsets[0], cell_size, dims[0])
        cy = cell_coord(positions[i, 1], offsets[1], cell_size, dims[1])
        cz = cell_coord(positions[i, 2], offsets[2], cell_size, dims[2])

        for dcx in range(-1, 2):
            ncx = cx + dcx
            if ncx < 0 or ncx >= dims[0]:
                continue
            for dcy in range(-1, 2):
                ncy = cy + dcy
                if ncy < 0 or ncy >= dims[1]:
                    continue
                for dcz in range(-1, 2):
                    ncz = cz + dcz
                    if ncz < 0 or ncz >= dims[2]:
                        continue

                    cell_idx = ncx + ncy * dims[0] + ncz * dims[0] * dims[1]
                    start = cell_starts[cell_idx]
                    if start == -1:
                        continue

                    for k in range(cell_counts[cell_idx]):
                        j = sorted_indices[start + k]
                        if j == i:
                            continue
                        close_count, flock_count = _classify_pair(
                            i, j, positions, velocities, vision_range, personal_space,
                            separation, alignment, cohesion, close_count, flock_count
                        )

        _finish_agent(
            i, positions, velocities, close_count, flock_count,
            half_extents, soft_speed_cap,
            separation, alignment, cohesion, boundary, drag
        )


@njit(parallel=True, cache=True)
def blend_components(
    separation: np.ndarray,
    alignment: np.ndarray,
    cohesion: np.ndarray,
    boundary: np.ndarray,
    drag: np.ndarray,
    weights: np.ndarray,
    max_acceleration: float,
    accelerations: np.ndarray,
):
    """Weighted sum of the five components, clamped to max_acceleration."""
    for i in prange(separation.shape[0]):
        for k in range(3):
            accelerations[i, k] = (
                weights[0] * separation[i, k]
                + weights[1] * alignment[i, k]
                + weights[2] * cohesion[i, k]
                + weights[3] * boundary[i, k]
                + weights[4] * drag[i, k]
            )
        clamp_length(accelerations[i], max_acceleration)


# ============================================================================
# PYTHON ENTRY POINTS
# ============================================================================

def _weights(config: WorldConfig) -> np.ndarray:
    return np.array([
        config.separation_weight,
        config.alignment_weight,
        config.cohesion_weight,
        config.boundary_weight,
        config.drag_weight,
    ], dtype=np.float64)


def compute_components(
    positions: np.ndarray,
    velocities: np.ndarray,
    config: WorldConfig,
    out: Optional[SteeringComponents] = None,
    grid: Optional[SpatialGrid] = None,
) -> SteeringComponents:
    """
    Compute the unweighted steering components for every boid.

    Args:
        positions: (N, 3) snapshot of boid positions (read only)
        velocities: (N, 3) snapshot of boid velocities (read only)
        config: World parameters
        out: Optional preallocated component buffers
        grid: Optional reusable spatial grid (grid search only)

    Returns:
        SteeringComponents holding five (N, 3) arrays
    """
    n = positions.shape[0]
    if out is None:
        out = SteeringComponents.zeros(n)

    if config.neighbor_search is NeighborSearch.GRID:
        if grid is None:
            grid = SpatialGrid(config, n)
        grid.build(positions)
        compute_components_grid(
            positions, velocities,
            grid.sorted_indices, grid.cell_starts, grid.cell_counts,
            grid.cell_size, grid.dims, grid.offsets,
            config.extents_array,
            config.vision_range,
            config.personal_space,
            config.soft_speed_cap,
            *out
        )
    else:
        compute_components_brute(
            positions, velocities,
            config.extents_array,
            config.vision_range,
            config.personal_space,
            config.soft_speed_cap,
            *out
        )
    return out


def compute_accelerations(
    positions: np.ndarray,
    velocities: np.ndarray,
    config: WorldConfig,
    out: Optional[np.ndarray] = None,
    components: Optional[SteeringComponents] = None,
    grid: Optional[SpatialGrid] = None,
) -> np.ndarray:
    """Evaluate the neighborhood of every boid and return the new (N, 3) accelerations."""
    if out is None:
        out = np.zeros_like(positions, dtype=np.float64)
    components = compute_components(positions, velocities, config, out=components, grid=grid)
    blend_components(*components, _weights(config), config.max_acceleration, out)
    return out
