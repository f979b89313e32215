"""
Flocking Presets Library
========================

Named flock configurations for the headless runner and the recorder.
Each preset carries a population, recording length and a set of overrides
applied on top of ``config.boids.BOIDS``.

Categories:
- CLASSIC: Balanced flocks in a soft-walled box
- SWARM: Loose, noisy swarms
- TOPOLOGY: Alternate wall handling (wrap / reflect)
- STRESS: Large populations for benchmarking
"""

from typing import List, Optional, Tuple

from boids import WorldConfig
from config import boids as config

PRESETS = {}

# -----------------------------------------------------------------------------
# CLASSIC
# -----------------------------------------------------------------------------

PRESETS["default"] = {
    "name": "Default Flock",
    "description": "The stock configuration from config/boids.py",
    "category": "CLASSIC",
    "count": config.BOIDS["count"],
    "total_frames": 600,
    "dt_per_frame": 1.0 / 60.0,
    "world": {},
}

PRESETS["tight_school"] = {
    "name": "Tight School",
    "description": "Strong alignment and cohesion, fish-like schooling",
    "category": "CLASSIC",
    "count": 300,
    "total_frames": 900,
    "dt_per_frame": 1.0 / 60.0,
    "world": {
        "half_extents": (30.0, 15.0, 30.0),
        "vision_range": 6.0,
        "personal_space": 1.0,
        "separation_weight": 2.0,
        "alignment_weight": 2.5,
        "cohesion_weight": 1.5,
    },
}

# -----------------------------------------------------------------------------
# SWARM
# -----------------------------------------------------------------------------

PRESETS["sparse_swarm"] = {
    "name": "Sparse Swarm",
    "description": "Short sight and weak alignment, insect-like milling",
    "category": "SWARM",
    "count": 250,
    "total_frames": 600,
    "dt_per_frame": 1.0 / 60.0,
    "world": {
        "vision_range": 3.0,
        "personal_space": 1.2,
        "separation_weight": 2.5,
        "alignment_weight": 0.3,
        "cohesion_weight": 0.6,
        "soft_speed_cap": 10.0,
    },
}

# -----------------------------------------------------------------------------
# TOPOLOGY
# -----------------------------------------------------------------------------

PRESETS["torus"] = {
    "name": "Torus",
    "description": "Wrap-around walls, boids leaving one face reappear on the other",
    "category": "TOPOLOGY",
    "count": 400,
    "total_frames": 600,
    "dt_per_frame": 1.0 / 60.0,
    "world": {
        "boundary_policy": "wrap",
        "boundary_weight": 0.0,
    },
}

PRESETS["bouncy_box"] = {
    "name": "Bouncy Box",
    "description": "Reflecting walls, boids bounce off the faces of the box",
    "category": "TOPOLOGY",
    "count": 400,
    "total_frames": 600,
    "dt_per_frame": 1.0 / 60.0,
    "world": {
        "boundary_policy": "reflect",
        "boundary_weight": 0.0,
    },
}

# -----------------------------------------------------------------------------
# STRESS
# -----------------------------------------------------------------------------

PRESETS["big_flock"] = {
    "name": "Big Flock",
    "description": "20K boids on the spatial grid",
    "category": "STRESS",
    "count": 20_000,
    "total_frames": 300,
    "dt_per_frame": 1.0 / 30.0,
    "world": {
        "half_extents": (120.0, 60.0, 120.0),
        "neighbor_search": "grid",
    },
}


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def get_preset_list() -> List[Tuple[str, dict]]:
    """Get list of all presets sorted by category."""
    category_order = ["CLASSIC", "SWARM", "TOPOLOGY", "STRESS"]

    return sorted(
        PRESETS.items(),
        key=lambda x: (category_order.index(x[1]["category"]) if x[1]["category"] in category_order else 99, x[0])
    )


def print_preset_menu():
    """Print formatted preset listing."""
    current_category = None

    print("\n" + "=" * 70)
    print("  BOIDS PRESETS")
    print("=" * 70)

    for idx, (key, preset) in enumerate(get_preset_list()):
        if preset["category"] != current_category:
            current_category = preset["category"]
            print(f"\n{'─' * 70}")
            print(f"  {current_category}")
            print(f"{'─' * 70}")

        print(f"  [{idx:2d}] {key:<14} {preset['name']:<16} {preset['count']:>7,} boids | {preset['total_frames']:>4} frames")
        print(f"       {preset['description']}")

    print(f"\n{'=' * 70}")


def get_preset_by_index(index: int) -> Tuple[Optional[str], Optional[dict]]:
    """Get preset by menu index."""
    presets = get_preset_list()
    if 0 <= index < len(presets):
        return presets[index]
    return None, None


def get_preset_config(key: str) -> Optional[dict]:
    """
    Get a preset as a flat run config, adding session_name.

    The ``world`` entry is merged over ``config.boids.BOIDS`` so the result
    is a complete world description.
    """
    if key not in PRESETS:
        return None

    preset = PRESETS[key]
    world = {**config.BOIDS, **preset["world"]}
    world.pop("count", None)
    return {
        "session_name": key,
        "preset": key,
        "count": preset["count"],
        "total_frames": preset["total_frames"],
        "dt_per_frame": preset["dt_per_frame"],
        "world": WorldConfig.from_dict(world).to_dict(),
    }
