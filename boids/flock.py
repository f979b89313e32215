"""Flock: the agent arena plus the two-stage evaluate/integrate pipeline."""

import math
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .boid import Boid
from .evaluator import SteeringComponents, compute_accelerations
from .integrator import integrate as integrate_arrays, update_facing
from .spatial import SpatialGrid
from .vector import EPSILON
from .world import NeighborSearch, WorldConfig


def _as_rows(name: str, values, count: Optional[int] = None) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"{name} must have shape (N, 3), got {arr.shape}")
    if count is not None and arr.shape[0] != count:
        raise ValueError(f"{name} has {arr.shape[0]} rows, expected {count}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values")
    return np.ascontiguousarray(arr)


def _check_count(count) -> int:
    if isinstance(count, bool) or int(count) != count or count < 1:
        raise ValueError(f"Population size must be a positive integer, got {count!r}")
    return int(count)


def _check_dt(dt) -> float:
    dt = float(dt)
    if not math.isfinite(dt) or dt < 0:
        raise ValueError(f"Tick duration must be finite and >= 0, got {dt}")
    return dt


class Flock:
    """
    Fixed population of boids stored as contiguous (N, 3) arrays.

    Boid identity is the row index. Every array is owned by the flock; the
    rendering side should copy out of ``transforms()`` rather than hold on
    to these buffers.
    """

    def __init__(
        self,
        config: WorldConfig,
        positions,
        velocities,
        forwards=None,
        ups=None,
    ):
        self.config = config
        self.positions = _as_rows("positions", positions)
        self.num_boids = _check_count(self.positions.shape[0])
        self.velocities = _as_rows("velocities", velocities, self.num_boids)
        self.accelerations = np.zeros((self.num_boids, 3), dtype=np.float64)

        if forwards is None or ups is None:
            self.forwards = np.tile(np.array([0.0, 0.0, 1.0]), (self.num_boids, 1))
            self.ups = np.tile(np.array([0.0, 1.0, 0.0]), (self.num_boids, 1))
            update_facing(self.velocities, self.forwards, self.ups)
        else:
            self.forwards = _as_rows("forwards", forwards, self.num_boids)
            self.ups = _as_rows("ups", ups, self.num_boids)

        self.tick = 0
        self.time = 0.0

        # Scratch buffers reused every tick
        self._components = SteeringComponents.zeros(self.num_boids)
        self._grid = None
        if config.neighbor_search is NeighborSearch.GRID:
            self._grid = SpatialGrid(config, self.num_boids)

    def __len__(self) -> int:
        return self.num_boids

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def spawn(
        cls,
        config: WorldConfig,
        count: int,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ) -> "Flock":
        """
        Create count boids at uniform random positions inside the box.

        Headings are uniform random vectors in [-1, 1]^3, normalized and scaled
        to ``config.initial_speed``. Pass rng (or seed) for reproducible runs.
        """
        count = _check_count(count)
        if rng is None:
            rng = np.random.default_rng(seed)

        extents = config.extents_array
        positions = rng.uniform(-extents, extents, size=(count, 3))

        headings = rng.uniform(-1.0, 1.0, size=(count, 3))
        norms = np.linalg.norm(headings, axis=1)
        degenerate = norms <= EPSILON
        while np.any(degenerate):
            headings[degenerate] = rng.uniform(-1.0, 1.0, size=(int(degenerate.sum()), 3))
            norms = np.linalg.norm(headings, axis=1)
            degenerate = norms <= EPSILON

        velocities = headings / norms[:, None] * config.initial_speed
        return cls(config, positions, velocities)

    @classmethod
    def from_boids(cls, config: WorldConfig, boids: Iterable[Boid]) -> "Flock":
        """Build a flock from explicit Boid records (facing is derived from velocity)."""
        boids = list(boids)
        if not boids:
            raise ValueError("A flock needs at least one boid")
        return cls(
            config,
            [b.position for b in boids],
            [b.velocity for b in boids],
        )

    @classmethod
    def from_state(cls, config: WorldConfig, state: dict) -> "Flock":
        """Restore a flock from a ``state()`` snapshot."""
        flock = cls(config, state["positions"], state["velocities"],
                    state.get("forwards"), state.get("ups"))
        flock.tick = int(state.get("tick", 0))
        flock.time = float(state.get("time", 0.0))
        return flock

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def evaluate(self) -> np.ndarray:
        return evaluate(self)

    def integrate(self, dt: float):
        integrate(self, dt)

    def update(self, dt: float):
        """Advance the flock by one tick."""
        evaluate_then_integrate(self, dt)

    # ------------------------------------------------------------------
    # Read-out
    # ------------------------------------------------------------------

    def components(self) -> SteeringComponents:
        """Copy of the unweighted steering components from the last evaluation."""
        return SteeringComponents(*(c.copy() for c in self._components))

    def boid(self, index: int) -> Boid:
        return Boid(
            position=self.positions[index].copy(),
            velocity=self.velocities[index].copy(),
            acceleration=self.accelerations[index].copy(),
            forward=self.forwards[index].copy(),
            up=self.ups[index].copy(),
        )

    def boids(self) -> List[Boid]:
        return [self.boid(i) for i in range(self.num_boids)]

    def transforms(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(positions, forwards, ups) copies for the rendering collaborator."""
        return self.positions.copy(), self.forwards.copy(), self.ups.copy()

    def state(self) -> dict:
        return {
            "positions": self.positions.copy(),
            "velocities": self.velocities.copy(),
            "forwards": self.forwards.copy(),
            "ups": self.ups.copy(),
            "tick": self.tick,
            "time": self.time,
        }


# ============================================================================
# PIPELINE
# ============================================================================

def evaluate(flock: Flock) -> np.ndarray:
    """Recompute every boid's acceleration from the current, settled state."""
    return compute_accelerations(
        flock.positions,
        flock.velocities,
        flock.config,
        out=flock.accelerations,
        components=flock._components,
        grid=flock._grid,
    )


def integrate(flock: Flock, dt: float):
    """Move every boid by its current acceleration. dt == 0 is a no-op."""
    dt = _check_dt(dt)
    if dt == 0.0:
        return
    integrate_arrays(
        flock.positions, flock.velocities, flock.accelerations,
        flock.forwards, flock.ups, flock.config, dt
    )
    flock.time += dt


def evaluate_then_integrate(flock: Flock, dt: float):
    """
    One simulation tick.

    The evaluator finishes for every boid before the integrator moves any of
    them, so no boid ever sees a neighbor's position from this tick.
    """
    dt = _check_dt(dt)
    evaluate(flock)
    integrate(flock, dt)
    flock.tick += 1
