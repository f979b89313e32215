"""Individual boid record: a copy of one row of the flock arrays."""

import numpy as np
from dataclasses import dataclass, field


def _vec(values) -> np.ndarray:
    return np.array(values, dtype=np.float64).reshape(3)


@dataclass
class Boid:
    """
    A single boid (bird-oid object) in the simulation.

    The flock stores boids as parallel arrays; a Boid is a detached copy used
    to seed a flock with explicit agents or to read one back out.

    Attributes:
        position: 3D position vector
        velocity: 3D velocity vector
        acceleration: Steering output of the last evaluator pass
        forward: Unit facing direction
        up: Unit up vector orthogonal to forward
    """
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    acceleration: np.ndarray = field(default_factory=lambda: np.zeros(3))
    forward: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    up: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))

    def __post_init__(self):
        self.position = _vec(self.position)
        self.velocity = _vec(self.velocity)
        self.acceleration = _vec(self.acceleration)
        self.forward = _vec(self.forward)
        self.up = _vec(self.up)
