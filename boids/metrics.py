"""Summary statistics of a flock, used for status lines and recordings."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .vector import normalize_rows


@dataclass
class FlockStats:
    """Aggregate view of one tick."""
    tick: int
    count: int
    mean_speed: float
    max_speed: float
    polarization: float          # |mean unit heading|: 0 = disordered, 1 = aligned
    centroid: Tuple[float, float, float]
    spread: float                # Mean distance to the centroid
    out_of_bounds: int

    def as_dict(self) -> dict:
        return {
            "tick": self.tick,
            "count": self.count,
            "mean_speed": self.mean_speed,
            "max_speed": self.max_speed,
            "polarization": self.polarization,
            "centroid": list(self.centroid),
            "spread": self.spread,
            "out_of_bounds": self.out_of_bounds,
        }


def compute_stats(flock) -> FlockStats:
    speeds = np.linalg.norm(flock.velocities, axis=1)
    headings = normalize_rows(flock.velocities)
    centroid = flock.positions.mean(axis=0)
    spread = np.linalg.norm(flock.positions - centroid, axis=1).mean()
    outside = np.any(np.abs(flock.positions) > flock.config.extents_array, axis=1)

    return FlockStats(
        tick=flock.tick,
        count=flock.num_boids,
        mean_speed=float(speeds.mean()),
        max_speed=float(speeds.max()),
        polarization=float(np.linalg.norm(headings.mean(axis=0))),
        centroid=tuple(float(c) for c in centroid),
        spread=float(spread),
        out_of_bounds=int(outside.sum()),
    )
