"""Configuration for 3D Boids flocking simulation."""

SIMULATION = {
    "ticks": 600,
    "dt": 1.0 / 60.0,           # Fixed step when not running against the wall clock
    "max_dt": 0.05,             # Cap dt to prevent physics explosion on lag
    "status_interval": 60,      # Ticks between status lines (0 disables)
    "seed": None,
}

BOIDS = {
    "count": 400,
    "half_extents": (40.0, 25.0, 40.0),   # Box is [-h, h] on each axis

    # Neighborhood
    "vision_range": 5.0,        # How far boids can see neighbors
    "personal_space": 1.5,      # Closer than this triggers separation

    # Force weights
    "separation_weight": 1.5,   # Avoid crowding
    "alignment_weight": 1.0,    # Match neighbor headings
    "cohesion_weight": 1.0,     # Move toward group center
    "boundary_weight": 6.0,     # Turn back at the walls
    "drag_weight": 2.0,         # Bleed off speed above the soft cap

    # Limits
    "initial_speed": 5.0,
    "soft_speed_cap": 8.0,
    "max_acceleration": 20.0,

    # "soft" (steer back), "wrap" (torus) or "reflect" (bounce)
    "boundary_policy": "soft",
    # "brute" (exhaustive scan) or "grid" (spatial hashing)
    "neighbor_search": "brute",
}
