"""
Tests for the particle arena and the two walkers.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1] / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from quad_dla.particles import FREE, REJECTED, STUCK, ParticleStore
from quad_dla.walk import KinematicStepper, RandomWalkStepper

BOUNDS = (0.0, 0.0, 100.0, 100.0)


def test_seed_ring_and_nucleus():
    store = ParticleStore(BOUNDS)
    handles = store.seed(36, 20.0)

    assert len(store.free) == 36
    assert store.aggregate == [0]
    np.testing.assert_allclose(store.positions[0], (50.0, 50.0))
    r = np.hypot(*(store.positions[handles] - 50.0).T)
    np.testing.assert_allclose(r, 20.0)
    assert np.all(store.states[handles] == FREE)
    assert store.states[0] == STUCK


def test_seed_rejects_unknown_shape():
    store = ParticleStore(BOUNDS)
    with pytest.raises(ValueError):
        store.seed(10, 5.0, shape="square")


def test_add_clamps_into_domain_and_grows():
    store = ParticleStore(BOUNDS, capacity=2)
    first = store.add(np.array([[-5.0, 50.0], [150.0, 120.0]]))
    np.testing.assert_allclose(store.positions[first], [[0.0, 50.0], [100.0, 100.0]])

    more = store.add(np.full((10, 2), 25.0))
    assert store.count == 12
    assert more.tolist() == list(range(2, 12))
    np.testing.assert_allclose(store.positions[first], [[0.0, 50.0], [100.0, 100.0]])


def test_max_radius_of_empty_aggregate_is_zero():
    store = ParticleStore(BOUNDS)
    assert store.max_radius() == 0.0
    store.add(np.array([[50.0, 50.0], [53.0, 54.0]]), state=STUCK)
    assert store.max_radius() == pytest.approx(5.0)


def test_walk_conserves_membership_and_stays_in_bounds():
    store = ParticleStore(BOUNDS)
    store.seed(100, 45.0)
    before_free = list(store.free)
    before_pos = store.free_positions().copy()

    walker = RandomWalkStepper(step_size=3.0)
    rng = np.random.default_rng(0)
    for _ in range(50):
        walker.step(store, store.free, rng)

    assert store.free == before_free
    pos = store.free_positions()
    assert np.all((pos >= 0.0) & (pos <= 100.0))
    assert not np.allclose(pos, before_pos)


def test_single_step_displacement_is_bounded():
    store = ParticleStore(BOUNDS)
    store.add(np.full((200, 2), 50.0))
    before = store.free_positions().copy()
    RandomWalkStepper(step_size=0.5).step(store, store.free, np.random.default_rng(1))
    delta = store.free_positions() - before
    assert np.all(np.abs(delta) <= 0.5)


def test_walk_clamps_at_walls():
    store = ParticleStore(BOUNDS)
    store.add(np.array([[0.0, 0.0], [100.0, 100.0]]))
    walker = RandomWalkStepper(step_size=10.0)
    rng = np.random.default_rng(2)
    for _ in range(20):
        walker.step(store, store.free, rng)
        pos = store.free_positions()
        assert pos.min() >= 0.0 and pos.max() <= 100.0


def test_walk_is_deterministic_for_a_fixed_seed():
    def run(seed):
        store = ParticleStore(BOUNDS)
        store.seed(50, 30.0)
        rng = np.random.default_rng(seed)
        walker = RandomWalkStepper(step_size=1.0)
        for _ in range(10):
            walker.step(store, store.free, rng)
        return store.free_positions()

    np.testing.assert_array_equal(run(42), run(42))
    assert not np.array_equal(run(42), run(43))


def test_stuck_particles_never_move():
    store = ParticleStore(BOUNDS)
    stuck = store.add(np.array([[20.0, 20.0]]), state=STUCK)
    free = store.add(np.array([[70.0, 70.0]]))
    handles = np.concatenate([stuck, free])

    RandomWalkStepper(step_size=2.0).step(store, handles, np.random.default_rng(0))
    KinematicStepper(step_size=2.0).step(store, handles, np.random.default_rng(0))
    np.testing.assert_array_equal(store.positions[stuck[0]], (20.0, 20.0))
    assert not np.array_equal(store.positions[free[0]], (70.0, 70.0))


def test_kinematic_walk_respects_speed_cap_and_bounds():
    store = ParticleStore(BOUNDS)
    store.add(np.random.default_rng(0).uniform(0.0, 100.0, size=(300, 2)))
    walker = KinematicStepper(step_size=1.5, damping=0.95, max_speed=1.0)
    rng = np.random.default_rng(3)
    for _ in range(40):
        walker.step(store, store.free, rng)

    idx = np.asarray(store.free)
    speed = np.hypot(*store.velocities[idx].T)
    assert np.all(speed <= 1.0 + 1e-9)
    pos = store.positions[idx]
    assert np.all((pos >= 0.0) & (pos <= 100.0))
    assert np.all(np.abs(store.accelerations[idx]) <= 1.5)


def test_recycle_waits_for_full_batch():
    store = ParticleStore(BOUNDS)
    store.seed(0, 10.0)
    rejected = store.add(np.array([[60.0, 50.0], [40.0, 50.0]]))
    store.free = []
    for h in rejected:
        store.reject(h)

    rng = np.random.default_rng(0)
    assert store.recycle_rejected(3, 5.0, rng).size == 0
    assert store.pending == rejected.tolist()
    assert np.all(store.states[rejected] == REJECTED)

    third = store.add(np.array([[50.0, 60.0]]))[0]
    store.reject(third)
    store.free = []
    store.velocities[third] = (0.7, -0.2)
    count_before = store.count
    new = store.recycle_rejected(3, 5.0, rng)
    assert new.tolist() == rejected.tolist() + [int(third)]
    assert store.pending == []
    assert store.free == new.tolist()
    assert store.recycled_total == 3
    # records are reused in place
    assert store.count == count_before
    assert np.all(store.states[new] == FREE)
    np.testing.assert_array_equal(store.velocities[new], 0.0)
    r = np.hypot(*(store.positions[new] - 50.0).T)
    np.testing.assert_allclose(r, 5.0)


def test_reseed_on_growth_triggers():
    store = ParticleStore(BOUNDS)
    store.seed(10, 20.0)
    rng = np.random.default_rng(0)

    # 1 aggregate vs 10 free, nucleus at the center: nothing to do
    assert store.reseed_on_growth(0.5, 0.8, 12, 1.5, rng).size == 0

    # aggregate outnumbers half the free population
    store.add(np.array([[50.0 + i, 50.0] for i in range(1, 6)]), state=STUCK)
    added = store.reseed_on_growth(0.5, 0.8, 12, 1.5, rng)
    assert added.size == 12
    assert len(store.free) == 22
    r = np.hypot(*(store.positions[added] - 50.0).T)
    np.testing.assert_allclose(r, 5.0 * 1.5)

    # free ceiling caps the injection
    capped = store.reseed_on_growth(0.1, 0.8, 12, 1.5, rng, max_free=25)
    assert capped.size == 3


def test_reseed_on_radius_fraction():
    store = ParticleStore(BOUNDS)
    store.seed(100, 45.0)
    rng = np.random.default_rng(0)
    store.add(np.array([[50.0, 92.0]]), state=STUCK)
    added = store.reseed_on_growth(10.0, 0.8, 20, 1.5, rng)
    assert added.size == 20
    # ring is capped at the domain half extent
    r = np.hypot(*(store.positions[added] - 50.0).T)
    assert np.all(r <= 50.0 + 1e-9)


def test_reseed_ring_keeps_clear_of_small_aggregate():
    store = ParticleStore(BOUNDS)
    store.seed(0, 10.0)
    rng = np.random.default_rng(0)
    added = store.reseed_on_growth(0.1, 0.8, 16, 1.5, rng, gap=4.0)
    assert added.size == 16
    r = np.hypot(*(store.positions[added] - 50.0).T)
    np.testing.assert_allclose(r, 4.0)
