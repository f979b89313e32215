"""3D boids flocking core: world config, evaluator, integrator and flock arena."""

from .boid import Boid
from .evaluator import SteeringComponents, compute_accelerations, compute_components
from .flock import Flock, evaluate, evaluate_then_integrate, integrate
from .metrics import FlockStats, compute_stats
from .world import BoundaryPolicy, NeighborSearch, WorldConfig

__all__ = [
    "Boid",
    "BoundaryPolicy",
    "Flock",
    "FlockStats",
    "NeighborSearch",
    "SteeringComponents",
    "WorldConfig",
    "compute_accelerations",
    "compute_components",
    "compute_stats",
    "evaluate",
    "evaluate_then_integrate",
    "integrate",
]
