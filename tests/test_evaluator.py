import numpy as np
import pytest

from boids import Boid, Flock, NeighborSearch, compute_accelerations, compute_components


def _arrays(*rows):
    return np.array(rows, dtype=np.float64)


def test_three_agent_scenario(world):
    positions = _arrays((0, 0, 0), (0.2, 0, 0), (10, 10, 10))
    velocities = _arrays((1, 0, 0), (0, 1, 0), (0, 0, 1))

    comps = compute_components(positions, velocities, world)

    np.testing.assert_allclose(comps.separation[0], [-1.0, 0.0, 0.0])
    np.testing.assert_array_equal(comps.alignment[0], np.zeros(3))
    np.testing.assert_array_equal(comps.cohesion[0], np.zeros(3))


def test_separation_pushes_mirrored_pair_apart(world):
    positions = _arrays((1.0, 2.0, 3.0), (1.3, 2.0, 3.0))
    velocities = np.zeros((2, 3))

    comps = compute_components(positions, velocities, world)

    np.testing.assert_allclose(comps.separation[0], [-1.0, 0.0, 0.0])
    np.testing.assert_allclose(comps.separation[1], [1.0, 0.0, 0.0])


def test_separation_scales_with_crowding(world):
    positions = _arrays((0, 0, 0), (0.2, 0, 0), (0.2, 0.1, 0), (0.2, -0.1, 0))
    comps = compute_components(positions, np.zeros((4, 3)), world)

    np.testing.assert_allclose(comps.separation[0], [-3.0, 0.0, 0.0])


def test_lone_boid_has_only_self_terms(world):
    positions = _arrays((0, 0, 0), (15, 0, 0))
    velocities = _arrays((12, 0, 0), (1, 0, 0))

    comps = compute_components(positions, velocities, world)

    for name in ("separation", "alignment", "cohesion", "boundary"):
        np.testing.assert_array_equal(getattr(comps, name)[0], np.zeros(3))
    # 12 is 4 over the soft cap of 8
    np.testing.assert_allclose(comps.drag[0], [-4.0, 0.0, 0.0])
    np.testing.assert_array_equal(comps.drag[1], np.zeros(3))


def test_distance_equal_to_personal_space_is_in_neither_set(world):
    positions = _arrays((0, 0, 0), (0.5, 0, 0))
    velocities = _arrays((1, 0, 0), (0, 1, 0))

    comps = compute_components(positions, velocities, world)

    for name in ("separation", "alignment", "cohesion"):
        np.testing.assert_array_equal(getattr(comps, name), np.zeros((2, 3)))


def test_distance_equal_to_vision_range_is_ignored(world):
    positions = _arrays((0, 0, 0), (5.0, 0, 0))
    comps = compute_components(positions, _arrays((1, 0, 0), (0, 1, 0)), world)

    np.testing.assert_array_equal(comps.alignment, np.zeros((2, 3)))
    np.testing.assert_array_equal(comps.cohesion, np.zeros((2, 3)))


def test_coincident_boids_do_not_produce_nan(world):
    positions = _arrays((1, 1, 1), (1, 1, 1))
    comps = compute_components(positions, np.zeros((2, 3)), world)

    for component in comps:
        assert np.all(np.isfinite(component))
    np.testing.assert_array_equal(comps.separation, np.zeros((2, 3)))


def test_alignment_averages_unit_headings(world):
    positions = _arrays((0, 0, 0), (2, 0, 0), (-2, 0, 0))
    velocities = _arrays((0, 0, 0), (0, 3, 0), (0, 0, 5))

    comps = compute_components(positions, velocities, world)

    s = np.sqrt(0.5)
    np.testing.assert_allclose(comps.alignment[0], [0.0, s, s])
    # Neighbors straddle the boid, so the center of mass is the boid itself
    np.testing.assert_allclose(comps.cohesion[0], np.zeros(3), atol=1e-12)


def test_cohesion_points_at_flock_center(world):
    positions = _arrays((0, 0, 0), (2, 0, 0), (2, 2, 0))
    comps = compute_components(positions, np.zeros((3, 3)), world)

    expected = np.array([2.0, 1.0, 0.0]) / np.sqrt(5.0)
    np.testing.assert_allclose(comps.cohesion[0], expected)


def test_boundary_pushes_inward_at_and_beyond_walls(world):
    positions = _arrays((20.0, -20.0, 0.0), (25.0, 0.0, -30.0), (19.9, 0.0, 0.0))
    comps = compute_components(positions, np.zeros((3, 3)), world)

    np.testing.assert_array_equal(comps.boundary[0], [-1.0, 1.0, 0.0])
    np.testing.assert_array_equal(comps.boundary[1], [-1.0, 0.0, 1.0])
    np.testing.assert_array_equal(comps.boundary[2], [0.0, 0.0, 0.0])


def test_blend_uses_weights(world):
    cfg = world.replace(separation_weight=2.0, boundary_weight=3.0)
    positions = _arrays((20.0, 0, 0), (20.2, 0, 0))
    velocities = np.zeros((2, 3))

    acc = compute_accelerations(positions, velocities, cfg)

    # separation (-1, 0, 0) * 2 plus boundary (-1, 0, 0) * 3
    np.testing.assert_allclose(acc[0], [-5.0, 0.0, 0.0])


def test_acceleration_is_clamped(world):
    cfg = world.replace(max_acceleration=2.0, separation_weight=10.0)
    positions = _arrays((0, 0, 0), (0.1, 0, 0), (0.1, 0.1, 0), (0, 0.1, 0.1))

    acc = compute_accelerations(positions, np.zeros((4, 3)), cfg)

    assert np.all(np.linalg.norm(acc, axis=1) <= 2.0 + 1e-9)
    assert np.linalg.norm(acc[0]) == pytest.approx(2.0)


def test_evaluation_does_not_touch_snapshot(world, rng):
    positions = rng.uniform(-5, 5, size=(50, 3))
    velocities = rng.uniform(-3, 3, size=(50, 3))
    pos_before, vel_before = positions.copy(), velocities.copy()

    compute_accelerations(positions, velocities, world)

    np.testing.assert_array_equal(positions, pos_before)
    np.testing.assert_array_equal(velocities, vel_before)


def test_result_independent_of_agent_order(world, rng):
    positions = rng.uniform(-4, 4, size=(80, 3))
    velocities = rng.uniform(-3, 3, size=(80, 3))
    order = rng.permutation(80)

    acc = compute_accelerations(positions, velocities, world)
    acc_shuffled = compute_accelerations(positions[order], velocities[order], world)

    np.testing.assert_allclose(acc_shuffled, acc[order], rtol=1e-9, atol=1e-12)


def test_grid_search_matches_brute_force(world, rng):
    cfg = world.replace(half_extents=(10.0, 6.0, 8.0), vision_range=3.0, personal_space=1.0)
    # Some boids start outside the box to exercise the border cells
    positions = rng.uniform(-1.3, 1.3, size=(300, 3)) * np.array(cfg.half_extents)
    velocities = rng.uniform(-10, 10, size=(300, 3))

    brute = compute_components(positions, velocities, cfg)
    grid = compute_components(positions, velocities, cfg.replace(neighbor_search=NeighborSearch.GRID))

    for b, g in zip(brute, grid):
        np.testing.assert_allclose(g, b, rtol=1e-9, atol=1e-12)


def test_flock_exposes_last_components(world):
    flock = Flock.from_boids(world, [
        Boid(position=(0, 0, 0), velocity=(1, 0, 0)),
        Boid(position=(0.2, 0, 0), velocity=(1, 0, 0)),
        Boid(position=(10, 10, 10), velocity=(1, 0, 0)),
    ])
    flock.evaluate()
    comps = flock.components()

    np.testing.assert_allclose(comps.separation[0], [-1.0, 0.0, 0.0])
    np.testing.assert_allclose(flock.boid(0).acceleration, [-1.0, 0.0, 0.0])
