"""
Engine tests: construction, the five-phase step, configuration updates,
determinism across worker counts, and lifecycle.
"""

import json
import math

import numpy as np
import pytest

import physarum.simulation as simulation_module
from physarum.data_types import PopulationConfig, SimulationSettings
from physarum.constants import TICK_TIME_WINDOW
from physarum.rng import make_rng, tie_break_direction
from physarum.simulation import PhysarumSimulation, build_attraction_table
from physarum.trail_field import combine


def make_sim(seed: int = 7, workers: int = 1, **overrides) -> PhysarumSimulation:
    params = dict(
        width=64,
        height=64,
        particle_count=100,
        population_count=2,
        diffusion_radius=1,
        palette_index=0,
    )
    params.update(overrides)
    return PhysarumSimulation(rng=make_rng(seed), workers=workers, **params)


def fixed_config(**overrides) -> PopulationConfig:
    values = dict(
        sensor_distance=9.0,
        sensor_angle=math.radians(45.0),
        rotation_angle=math.radians(30.0),
        step_distance=1.0,
        deposition_amount=5.0,
        decay_factor=0.9,
    )
    values.update(overrides)
    return PopulationConfig(**values)


def test_end_to_end_ten_iterations():
    """64x64, 100 particles, 2 populations, radius 1, fixed seed"""
    print("=" * 60)
    print("End-to-end: 10 iterations")
    print("=" * 60)

    sim = make_sim(seed=7)
    for _ in range(10):
        sim.step()
    sim.print_tick_summary()

    assert sim.iteration == 10
    assert sim.agent_count == math.ceil(100 / 2) * 2 == 100
    for i in range(sim.population_count):
        data = sim.field_data(i)
        assert data.shape == (64 * 64,)
        assert np.all(np.isfinite(data)), f"Field {i} has non-finite values"

    print("[OK] All fields finite after 10 iterations\n")


def test_realized_particle_count_rounds_up():
    sim = make_sim(particle_count=101, population_count=4)
    assert sim.particles_per_population == 26
    assert sim.agent_count == 104


def test_agents_assigned_in_contiguous_blocks():
    sim = make_sim(particle_count=101, population_count=4)
    population_ids = [agent.population_id for agent in sim.agents()]
    assert population_ids == [i // 26 for i in range(104)]
    assert sim.get_agent(25).population_id == 0
    assert sim.get_agent(26).population_id == 1


def test_initial_agents_inside_fields():
    sim = make_sim(width=32, height=16, particle_count=500)
    positions = sim.agent_positions()
    assert positions.shape == (500, 2)
    assert np.all((positions[:, 0] >= 0) & (positions[:, 0] < 32))
    assert np.all((positions[:, 1] >= 0) & (positions[:, 1] < 16))


def test_attraction_table_signs_and_read_only():
    table = build_attraction_table(4, make_rng(3))
    assert table.shape == (4, 4)
    assert np.all(np.diag(table) > 0.0)
    off_diagonal = table[~np.eye(4, dtype=bool)]
    assert np.all(off_diagonal < 0.0)
    with pytest.raises(ValueError):
        table[0, 0] = 1.0


def test_attraction_table_fixed_across_steps():
    sim = make_sim()
    before = sim.attraction_table.copy()
    sim.run(3)
    assert np.array_equal(sim.attraction_table, before)


def test_single_population_combine_identity_on_engine_fields():
    sim = make_sim(population_count=1)
    field = sim.fields[0]
    combine([field.data], [field.buf], np.array([[1.0]]))
    assert np.array_equal(field.buf, field.data)


def test_positions_stay_wrapped_after_steps():
    sim = make_sim(width=32, height=32, particle_count=300, population_count=3)
    sim.set_population_configs([fixed_config(step_distance=2.0)] * 3)
    sim.run(20)
    positions = sim.agent_positions()
    assert np.all((positions >= 0.0) & (positions < 32.0))


def test_agents_move_every_step():
    sim = make_sim()
    sim.set_population_configs([fixed_config(step_distance=1.5)] * 2)
    before = sim.agent_positions()
    sim.step()
    after = sim.agent_positions()
    assert not np.any(np.all(before == after, axis=1))


def test_deposit_lands_in_own_field_only():
    sim = make_sim(particle_count=1, population_count=2)
    configs = [
        fixed_config(deposition_amount=1000.0, decay_factor=1.0, step_distance=0.0),
        fixed_config(deposition_amount=0.0, decay_factor=1.0, step_distance=0.0),
    ]
    sim.set_population_configs(configs)
    before = [sim.field_data(i).sum() for i in range(2)]
    sim.step()
    after = [sim.field_data(i).sum() for i in range(2)]

    # Blur with decay 1.0 conserves mass, so only deposits change the totals
    assert after[0] - before[0] == pytest.approx(1000.0)
    assert after[1] == pytest.approx(before[1])


def test_same_seed_is_deterministic():
    sim1 = make_sim(seed=99)
    sim2 = make_sim(seed=99)
    sim1.run(5)
    sim2.run(5)

    assert np.array_equal(sim1.agent_positions(), sim2.agent_positions())
    for i in range(sim1.population_count):
        assert np.array_equal(sim1.field_data(i), sim2.field_data(i))


def test_worker_count_does_not_change_results(monkeypatch):
    # Many small chunks so the pool actually interleaves tasks
    monkeypatch.setattr(simulation_module, "AGENT_CHUNK_SIZE", 16)

    serial = make_sim(seed=5, workers=1, particle_count=400, population_count=3)
    pooled = make_sim(seed=5, workers=4, particle_count=400, population_count=3)
    assert len(pooled._tasks) > 4
    assert pooled._executor is not None

    try:
        serial.run(8)
        pooled.run(8)
        assert np.array_equal(serial.agent_positions(), pooled.agent_positions())
        for i in range(serial.population_count):
            assert np.array_equal(serial.field_data(i), pooled.field_data(i))
    finally:
        pooled.close()


def test_rejects_non_power_of_two_dimensions():
    with pytest.raises(ValueError):
        make_sim(width=60)
    with pytest.raises(ValueError):
        make_sim(height=100)


def test_rejects_unknown_palette():
    with pytest.raises(ValueError):
        make_sim(palette_index=10_000)
    with pytest.raises(ValueError):
        make_sim(palette_index=-1)


def test_rejects_non_positive_counts():
    with pytest.raises(ValueError):
        make_sim(particle_count=0)
    with pytest.raises(ValueError):
        make_sim(population_count=0)


def test_set_population_configs_replaces_all():
    sim = make_sim(population_count=3)
    configs = [fixed_config(step_distance=0.5 + i) for i in range(4)]
    sim.set_population_configs(configs)
    assert [f.config.step_distance for f in sim.fields] == [0.5, 1.5, 2.5]


def test_set_population_configs_too_short_applies_nothing():
    sim = make_sim(population_count=3)
    original = [f.config for f in sim.fields]
    with pytest.raises(ValueError):
        sim.set_population_configs([fixed_config(), fixed_config()])
    assert [f.config for f in sim.fields] == original


def test_from_settings_applies_population_configs():
    settings = SimulationSettings(
        width=32,
        height=32,
        particle_count=64,
        population_count=2,
        diffusion_radius=1,
        palette_index=1,
        seed=12,
        workers=1,
        populations=[fixed_config(step_distance=0.25), fixed_config(step_distance=0.75)],
    )
    sim = PhysarumSimulation.from_settings(settings)
    assert sim.palette_index == 1
    assert [f.config.step_distance for f in sim.fields] == [0.25, 0.75]

    # Seed flows through: same settings, same initial agents
    again = PhysarumSimulation.from_settings(settings)
    assert np.array_equal(sim.agent_positions(), again.agent_positions())


def test_field_data_is_read_only_view():
    sim = make_sim()
    data = sim.field_data(0)
    with pytest.raises(ValueError):
        data[0] = 1.0
    sim.step()
    assert np.array_equal(data, sim.fields[0].data)


def test_quantile_accessor():
    sim = make_sim()
    sim.run(2)
    assert sim.quantile(0, 1.0) == sim.field_data(0).max()
    assert sim.quantile(1, 0.0) == sim.field_data(1).min()


def test_step_after_close_raises():
    with make_sim(workers=2) as sim:
        sim.step()
    with pytest.raises(RuntimeError):
        sim.step()


def test_snapshot_is_json_serializable():
    sim = make_sim()
    sim.step()
    snapshot = sim.get_snapshot()
    encoded = json.loads(json.dumps(snapshot))
    assert encoded['iteration'] == 1
    assert encoded['agent_count'] == 100
    assert len(encoded['populations']) == 2
    assert len(encoded['attraction_table']) == 2


def test_tick_stats_recorded():
    sim = make_sim()
    assert sim.get_tick_stats()['avg_tick_time_ms'] == 0.0
    sim.run(3)
    stats = sim.get_tick_stats()
    assert stats['iteration'] == 3
    assert stats['avg_tick_time_ms'] > 0.0
    sim.print_configurations()
    sim.print_perf_breakdown(every=3)


def test_tick_time_window_keeps_latest_durations():
    sim = make_sim(width=8, height=8, particle_count=4, population_count=1)
    for i in range(TICK_TIME_WINDOW + 10):
        sim._record_tick_time(float(i))

    assert len(sim._tick_times) == TICK_TIME_WINDOW
    expected_ms = np.mean(np.arange(10, TICK_TIME_WINDOW + 10)) * 1000.0
    assert sim.get_tick_stats()['avg_tick_time_ms'] == pytest.approx(expected_ms)


def test_tie_break_sign_shared_within_each_population():
    first = make_sim(seed=1, particle_count=64, population_count=2)
    second = make_sim(seed=99, particle_count=64, population_count=2)
    share = first.particles_per_population
    assert share == 32

    for population_id in range(2):
        block = slice(population_id * share, (population_id + 1) * share)
        signs = first._tie_breaks[block]
        assert len(set(signs.tolist())) == 1
        assert signs[0] == tie_break_direction(population_id)
        assert np.array_equal(signs, second._tie_breaks[block])
