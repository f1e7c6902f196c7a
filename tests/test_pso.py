"""
Tests for the PSO core: particles, swarm bookkeeping, update rule,
coefficient schedule and the optimizer loop.
"""

import numpy as np
import pytest

from pso_pid.pso import (
    HyperparameterSchedule,
    OptimizationBounds,
    Particle,
    PSOConfig,
    PSOOptimizer,
    SnapshotRecorder,
    Swarm,
)


def _small_bounds():
    return OptimizationBounds(Kp_min=0.0, Kp_max=10.0,
                              Ki_min=0.0, Ki_max=10.0,
                              Kd_min=0.0, Kd_max=10.0)


def _config(**overrides):
    params = dict(
        population_size=12,
        max_iterations=25,
        bounds=_small_bounds(),
        seed=7,
        backend='serial',
        verbose=False,
    )
    params.update(overrides)
    return PSOConfig(**params)


# ── Particle / Swarm ──────────────────────────────────────────────────


def test_particle_defaults():
    p = Particle(position=[1.0, 2.0, 3.0])

    assert np.array_equal(p.velocity, np.zeros(3))
    assert p.value == np.inf
    assert p.best_value == np.inf
    assert np.array_equal(p.best_position, p.position)

    # best_position is an independent copy
    p.position[0] = 99.0
    assert p.best_position[0] == 1.0


def test_particle_update_best_is_strict():
    p = Particle(position=[1.0, 1.0, 1.0])
    p.value = 4.0
    assert p.update_best()

    p.position = np.array([2.0, 2.0, 2.0])
    p.value = 4.0
    assert not p.update_best()
    assert np.array_equal(p.best_position, [1.0, 1.0, 1.0])

    p.value = 3.0
    assert p.update_best()
    assert p.best_value == 3.0
    assert np.array_equal(p.best_position, [2.0, 2.0, 2.0])


def test_swarm_initialize_within_bounds():
    bounds = OptimizationBounds()
    swarm = Swarm.initialize(200, bounds, np.random.default_rng(0))

    assert len(swarm) == 200
    positions = swarm.positions
    assert np.all(positions >= bounds.lower)
    assert np.all(positions <= bounds.upper)

    for p in swarm.particles:
        assert np.array_equal(p.velocity, np.zeros(3))
        assert p.value == np.inf
        assert p.best_value == np.inf
        assert np.array_equal(p.best_position, p.position)

    assert swarm.global_best_value == np.inf
    assert swarm.global_best_position is None


@pytest.mark.parametrize("size", [0, -3])
def test_swarm_initialize_rejects_empty_population(size):
    with pytest.raises(ValueError):
        Swarm.initialize(size, OptimizationBounds(), np.random.default_rng(0))


def test_global_best_ties_promote_last_particle():
    swarm = Swarm.from_positions([[1.0, 1.0, 1.0], [2.0, 2.0, 2.0], [3.0, 3.0, 3.0]])
    for p, value in zip(swarm.particles, [7.0, 3.0, 3.0]):
        p.value = value

    swarm.update_bests()

    assert swarm.global_best_value == 3.0
    assert np.array_equal(swarm.global_best_position, [3.0, 3.0, 3.0])


def test_global_best_never_increases():
    swarm = Swarm.from_positions([[1.0, 1.0, 1.0], [2.0, 2.0, 2.0]])
    swarm.particles[0].value = 1.0
    swarm.particles[1].value = 2.0
    swarm.update_bests()

    swarm.particles[0].value = 10.0
    swarm.particles[1].value = 10.0
    swarm.update_bests()

    assert swarm.global_best_value == 1.0
    assert np.array_equal(swarm.global_best_position, [1.0, 1.0, 1.0])


def test_move_requires_best_tracking_first():
    swarm = Swarm.from_positions([[1.0, 1.0, 1.0]])
    schedule = HyperparameterSchedule(1.0, 1.0, 1.0)

    with pytest.raises(RuntimeError):
        swarm.move(schedule, 1.0, np.ones(3) / np.sqrt(3), np.random.default_rng(0))


def test_move_clamps_velocity_norm():
    swarm = Swarm.from_positions([[0.0, 0.0, 0.0], [10.0, 10.0, 10.0]])
    swarm.particles[0].value = 100.0
    swarm.particles[1].value = 1.0
    swarm.update_bests()

    schedule = HyperparameterSchedule(inertia_weight=1.0, cognitive_weight=50.0,
                                      social_weight=50.0)
    swarm.move(schedule, 0.5, _small_bounds().velocity_scaler(), np.random.default_rng(1))

    for p in swarm.particles:
        assert np.linalg.norm(p.velocity) <= 0.5 + 1e-12


def test_velocity_scaler_is_unit_and_proportional():
    bounds = OptimizationBounds(Kp_min=0.0, Kp_max=500.0,
                                Ki_min=0.0, Ki_max=100.0,
                                Kd_min=0.0, Kd_max=100.0)
    scaler = bounds.velocity_scaler()

    assert np.linalg.norm(scaler) == pytest.approx(1.0)
    assert scaler[0] / scaler[1] == pytest.approx(5.0)
    assert scaler[1] == pytest.approx(scaler[2])


def test_bounds_contains_is_inclusive():
    bounds = _small_bounds()

    assert bounds.contains([0.0, 10.0, 5.0])
    assert not bounds.contains([-1e-9, 5.0, 5.0])
    assert not bounds.contains([5.0, 5.0, 10.000001])
    assert not bounds.contains([np.nan, 5.0, 5.0])


# ── Schedule ──────────────────────────────────────────────────────────


def test_schedule_advance_is_pure():
    schedule = HyperparameterSchedule(
        inertia_weight=100.0, cognitive_weight=5.0, social_weight=12.0,
        inertia_damping=0.99, cognitive_decrease=1.0, social_increase=1.02
    )
    nxt = schedule.advance()

    assert schedule.inertia_weight == 100.0
    assert nxt.inertia_weight == pytest.approx(99.0)
    assert nxt.cognitive_weight == pytest.approx(5.0)
    assert nxt.social_weight == pytest.approx(12.24)
    assert nxt.inertia_damping == schedule.inertia_damping


def test_inertia_decays_geometrically_over_iterations(sphere):
    config = _config(population_size=4, max_iterations=3,
                     inertia_weight=1.0, inertia_damping=0.5,
                     cognitive_weight=0.0, social_weight=0.0)
    optimizer = PSOOptimizer(sphere, config)
    optimizer.run()

    assert optimizer.schedule.inertia_weight == pytest.approx(0.125)
    assert optimizer.history['inertia_weight'] == pytest.approx([0.5, 0.25, 0.125])


# ── Configuration ─────────────────────────────────────────────────────


@pytest.mark.parametrize("overrides", [
    {'population_size': 0},
    {'max_iterations': 0},
    {'max_velocity': 0.0},
    {'max_velocity': -1.0},
    {'inertia_damping': 0.0},
    {'social_increase': -1.02},
    {'backend': 'gpu'},
    {'n_workers': 0},
    {'n_batches': 0},
    {'bounds': OptimizationBounds(Kp_min=10.0, Kp_max=1.0)},
    {'bounds': OptimizationBounds(Kd_max=np.inf)},
    {'bounds': OptimizationBounds(Kp_min=1.0, Kp_max=1.0, Ki_min=2.0, Ki_max=2.0,
                                  Kd_min=3.0, Kd_max=3.0)},
])
def test_invalid_config_rejected_before_running(overrides, counting_objective):
    with pytest.raises(ValueError):
        PSOOptimizer(counting_objective, _config(**overrides))

    assert counting_objective.calls == []


def test_initial_positions_shape_checked(sphere):
    with pytest.raises(ValueError):
        PSOOptimizer(sphere, _config(population_size=2), initial_positions=[[1.0, 2.0, 3.0]])


# ── Optimizer loop ────────────────────────────────────────────────────


def test_global_best_is_monotone(sphere):
    result = PSOOptimizer(sphere, _config()).run()

    values = result.history['global_best_value']
    assert len(values) == 25
    assert all(b <= a for a, b in zip(values, values[1:]))
    assert result.best_value == values[-1]


def test_velocity_clamped_every_iteration(sphere):
    optimizer = PSOOptimizer(sphere, _config(max_velocity=0.75))
    optimizer.initialize()

    for _ in range(15):
        optimizer.step()
        for p in optimizer.swarm.particles:
            assert np.linalg.norm(p.velocity) <= 0.75 + 1e-9


def test_personal_bests_track_minimum_seen_value(sphere):
    optimizer = PSOOptimizer(sphere, _config())
    optimizer.initialize()

    evaluated_positions = optimizer.swarm.positions
    seen_values = [[] for _ in range(len(optimizer.swarm))]
    seen_positions = [[] for _ in range(len(optimizer.swarm))]

    for _ in range(20):
        snapshot = optimizer.step()
        for i, value in enumerate(snapshot.values):
            seen_values[i].append(value)
            seen_positions[i].append(evaluated_positions[i])
        evaluated_positions = snapshot.positions

    for i, p in enumerate(optimizer.swarm.particles):
        k = int(np.argmin(seen_values[i]))
        assert p.best_value == min(seen_values[i])
        assert np.array_equal(p.best_position, seen_positions[i][k])


def test_same_seed_reproduces_trajectory(sphere):
    first = PSOOptimizer(sphere, _config(seed=123)).run()
    second = PSOOptimizer(sphere, _config(seed=123)).run()

    assert first.history['global_best_value'] == second.history['global_best_value']
    np.testing.assert_array_equal(
        np.array(first.history['global_best_position']),
        np.array(second.history['global_best_position'])
    )


def test_threaded_evaluation_matches_serial(sphere):
    serial = PSOOptimizer(sphere, _config(seed=5)).run()
    threaded = PSOOptimizer(sphere, _config(seed=5, backend='thread',
                                            n_workers=3, n_batches=5)).run()

    assert serial.history['global_best_value'] == threaded.history['global_best_value']
    np.testing.assert_array_equal(serial.best_position, threaded.best_position)


def test_single_particle_starting_at_optimum(sphere):
    config = _config(population_size=1, max_iterations=1)
    optimizer = PSOOptimizer(sphere, config, initial_positions=[sphere.target])

    result = optimizer.run()

    assert result.best_value == 0.0
    np.testing.assert_array_equal(result.best_position, sphere.target)
    np.testing.assert_array_equal(optimizer.swarm.particles[0].position, sphere.target)


def test_infeasible_particle_never_wins(counting_objective):
    def constant_cost(position):
        counting_objective(position)
        return 5.0

    feasible = [5.0, 5.0, 5.0]
    infeasible = [-1.0, 5.0, 5.0]
    config = _config(population_size=2, max_iterations=1)
    result = PSOOptimizer(constant_cost, config,
                          initial_positions=[feasible, infeasible]).run()

    assert result.best_value == 5.0
    np.testing.assert_array_equal(result.best_position, feasible)
    assert len(counting_objective.calls) == 1
    np.testing.assert_array_equal(counting_objective.calls[0], feasible)


def test_observers_receive_each_iteration(sphere):
    recorder = SnapshotRecorder()
    PSOOptimizer(sphere, _config(max_iterations=6)).run(observers=[recorder])

    assert [s.iteration for s in recorder.snapshots] == [1, 2, 3, 4, 5, 6]
    assert recorder.snapshots[-1].positions.shape == (12, 3)
    assert recorder.snapshots[-1].values.shape == (12,)

    values = [s.global_best_value for s in recorder.snapshots]
    assert all(b <= a for a, b in zip(values, values[1:]))


def test_result_exposes_gains(sphere):
    result = PSOOptimizer(sphere, _config()).run()
    gains = result.best_gains

    assert gains.to_array() == pytest.approx(result.best_position)
    assert result.iterations == 25


def test_converges_on_sphere(sphere):
    config = _config(population_size=30, max_iterations=150,
                     inertia_weight=0.7, inertia_damping=1.0,
                     cognitive_weight=1.5, social_weight=1.5,
                     social_increase=1.0, max_velocity=1.0, seed=3)
    result = PSOOptimizer(sphere, config).run()

    assert result.best_value < 1.0
    assert _small_bounds().contains(result.best_position)
