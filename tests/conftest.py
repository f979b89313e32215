import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from boids import WorldConfig  # noqa: E402


@pytest.fixture
def world() -> WorldConfig:
    """Roomy box with round-number parameters."""
    return WorldConfig(
        half_extents=(20.0, 20.0, 20.0),
        vision_range=5.0,
        personal_space=0.5,
        separation_weight=1.0,
        alignment_weight=1.0,
        cohesion_weight=1.0,
        boundary_weight=1.0,
        drag_weight=1.0,
        soft_speed_cap=8.0,
        max_acceleration=50.0,
        initial_speed=5.0,
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
