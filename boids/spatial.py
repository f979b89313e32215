"""Uniform spatial grid used to narrow the neighbor scan."""

import math
import numpy as np
from numba import njit, prange

from .world import WorldConfig


@njit(cache=True)
def cell_coord(x: float, offset: float, cell_size: float, dim: int) -> int:
    """Convert one coordinate to a clamped cell coordinate."""
    c = int(math.floor((x + offset) / cell_size))
    return max(0, min(c, dim - 1))


@njit(parallel=True, cache=True)
def assign_cells(
    positions: np.ndarray,
    cell_indices: np.ndarray,
    cell_size: float,
    dims: np.ndarray,
    offsets: np.ndarray,
):
    """Assign each boid to a cell."""
    for i in prange(positions.shape[0]):
        cx = cell_coord(positions[i, 0], offsets[0], cell_size, dims[0])
        cy = cell_coord(positions[i, 1], offsets[1], cell_size, dims[1])
        cz = cell_coord(positions[i, 2], offsets[2], cell_size, dims[2])
        cell_indices[i] = cx + cy * dims[0] + cz * dims[0] * dims[1]


@njit(cache=True)
def build_cell_lists(
    cell_indices: np.ndarray,
    sorted_indices: np.ndarray,
    cell_starts: np.ndarray,
    cell_counts: np.ndarray,
):
    """Build cell start indices and counts after sorting."""
    for c in range(cell_starts.shape[0]):
        cell_starts[c] = -1
        cell_counts[c] = 0

    for k in range(sorted_indices.shape[0]):
        cell = cell_indices[sorted_indices[k]]
        if cell_starts[cell] == -1:
            cell_starts[cell] = k
        cell_counts[cell] += 1


class SpatialGrid:
    """
    Bucket boids into cubic cells one vision range wide.

    Any neighbor closer than the vision range then lives in the same cell or
    one of the 26 cells around it. Boids outside the box are clamped into the
    border cells, which keeps that property intact.
    """

    def __init__(self, config: WorldConfig, num_boids: int):
        self.cell_size = float(config.vision_range)
        extents = config.extents_array
        self.dims = (np.ceil(extents * 2 / self.cell_size).astype(np.int64) + 2)
        self.offsets = extents + self.cell_size
        self.num_cells = int(np.prod(self.dims))

        self.cell_indices = np.zeros(num_boids, dtype=np.int64)
        self.sorted_indices = np.arange(num_boids, dtype=np.int64)
        self.cell_starts = np.full(self.num_cells, -1, dtype=np.int64)
        self.cell_counts = np.zeros(self.num_cells, dtype=np.int64)

    def build(self, positions: np.ndarray):
        """Rebuild the cell lists for the given positions."""
        if positions.shape[0] != self.cell_indices.shape[0]:
            raise ValueError(
                f"Grid sized for {self.cell_indices.shape[0]} boids, got {positions.shape[0]}"
            )
        assign_cells(positions, self.cell_indices, self.cell_size, self.dims, self.offsets)
        self.sorted_indices[:] = np.argsort(self.cell_indices, kind="stable")
        build_cell_lists(self.cell_indices, self.sorted_indices, self.cell_starts, self.cell_counts)
