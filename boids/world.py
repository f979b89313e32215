"""Immutable world configuration shared by every boid in a run."""

import math
from dataclasses import dataclass, fields, replace as _replace
from enum import Enum
from typing import Mapping, Tuple

import numpy as np


class BoundaryPolicy(Enum):
    """How the box walls are enforced."""
    SOFT = "soft"
    WRAP = "wrap"
    REFLECT = "reflect"


class NeighborSearch(Enum):
    """Strategy used to find neighbors during the evaluator pass."""
    BRUTE = "brute"
    GRID = "grid"


# Integer codes passed into the Numba kernels
BOUNDARY_SOFT = 0
BOUNDARY_WRAP = 1
BOUNDARY_REFLECT = 2

BOUNDARY_CODES = {
    BoundaryPolicy.SOFT: BOUNDARY_SOFT,
    BoundaryPolicy.WRAP: BOUNDARY_WRAP,
    BoundaryPolicy.REFLECT: BOUNDARY_REFLECT,
}


@dataclass(frozen=True)
class WorldConfig:
    """
    Read-only parameters of a flocking world.

    Attributes:
        half_extents: Box half-widths along X, Y and Z
        vision_range: Neighbors at or beyond this distance are ignored
        personal_space: Neighbors closer than this push the boid away
        separation_weight: Weight of the separation component
        alignment_weight: Weight of the alignment component
        cohesion_weight: Weight of the cohesion component
        boundary_weight: Weight of the wall repulsion component
        drag_weight: Weight of the over-speed drag component
        soft_speed_cap: Speed above which drag kicks in
        max_acceleration: Upper bound on the blended acceleration magnitude
        initial_speed: Speed given to freshly spawned boids
        boundary_policy: Wall handling after movement
        neighbor_search: Brute force scan or spatial grid
    """
    half_extents: Tuple[float, float, float] = (40.0, 25.0, 40.0)
    vision_range: float = 5.0
    personal_space: float = 1.5
    separation_weight: float = 1.5
    alignment_weight: float = 1.0
    cohesion_weight: float = 1.0
    boundary_weight: float = 6.0
    drag_weight: float = 2.0
    soft_speed_cap: float = 8.0
    max_acceleration: float = 20.0
    initial_speed: float = 5.0
    boundary_policy: BoundaryPolicy = BoundaryPolicy.SOFT
    neighbor_search: NeighborSearch = NeighborSearch.BRUTE

    def __post_init__(self):
        # Normalize loosely-typed input (lists, strings) coming from config dicts
        extents = tuple(float(h) for h in self.half_extents)
        if len(extents) != 3:
            raise ValueError(f"half_extents needs 3 values, got {len(extents)}")
        object.__setattr__(self, "half_extents", extents)
        object.__setattr__(self, "boundary_policy", BoundaryPolicy(self.boundary_policy))
        object.__setattr__(self, "neighbor_search", NeighborSearch(self.neighbor_search))

        for axis, h in zip("xyz", extents):
            if not h > 0 or not math.isfinite(h):
                raise ValueError(f"half_extents.{axis} must be positive, got {h}")

        for name in ("vision_range", "personal_space", "soft_speed_cap", "max_acceleration"):
            value = float(getattr(self, name))
            if not value > 0 or not math.isfinite(value):
                raise ValueError(f"{name} must be positive, got {value}")
            object.__setattr__(self, name, value)

        for name in ("separation_weight", "alignment_weight", "cohesion_weight",
                     "boundary_weight", "drag_weight", "initial_speed"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
            object.__setattr__(self, name, value)

        if self.initial_speed < 0:
            raise ValueError(f"initial_speed must be >= 0, got {self.initial_speed}")

    @classmethod
    def from_dict(cls, mapping: Mapping) -> "WorldConfig":
        """Build a config from a dict such as ``config.boids.BOIDS``; extra keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in mapping.items() if k in known})

    def replace(self, **overrides) -> "WorldConfig":
        """Return a copy with some fields changed."""
        return _replace(self, **overrides)

    def to_dict(self) -> dict:
        """Plain JSON-friendly representation (used for recording metadata)."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["half_extents"] = list(self.half_extents)
        data["boundary_policy"] = self.boundary_policy.value
        data["neighbor_search"] = self.neighbor_search.value
        return data

    @property
    def extents_array(self) -> np.ndarray:
        return np.array(self.half_extents, dtype=np.float64)

    @property
    def boundary_code(self) -> int:
        return BOUNDARY_CODES[self.boundary_policy]
