import numpy as np

from physarum.data_types import PopulationConfig
from physarum.rng import make_rng
from physarum.trail_field import TrailField, combine


def make_field(seed: int, width: int = 8, height: int = 4) -> TrailField:
    config = PopulationConfig(
        sensor_distance=2.0, sensor_angle=0.4, rotation_angle=0.4,
        step_distance=1.0, deposition_amount=5.0, decay_factor=0.1,
    )
    return TrailField(width, height, config, rng=make_rng(seed))


def test_single_population_identity():
    field = make_field(1)
    field.buf[:] = 123.0  # stale contents must be cleared
    combine([field.data], [field.buf], np.array([[1.0]]))
    assert np.array_equal(field.buf, field.data)


def test_weighted_sum_across_populations():
    a, b = make_field(1), make_field(2)
    table = np.array([[1.0, -0.5],
                      [-1.0, 2.0]])
    combine([a.data, b.data], [a.buf, b.buf], table)

    assert np.allclose(a.buf, a.data - 0.5 * b.data)
    assert np.allclose(b.buf, -1.0 * a.data + 2.0 * b.data)


def test_combine_leaves_data_untouched():
    fields = [make_field(seed) for seed in range(3)]
    before = [f.data.copy() for f in fields]
    table = make_rng(4).normal(size=(3, 3))

    combine([f.data for f in fields], [f.buf for f in fields], table)

    for field, original in zip(fields, before):
        assert np.array_equal(field.data, original)
        assert field.buf is not field.data


def test_repulsion_can_make_signal_negative():
    a, b = make_field(1), make_field(2)
    a.data[:] = 0.0
    b.data[:] = 1.0
    combine([a.data, b.data], [a.buf, b.buf], np.array([[1.0, -1.0], [-1.0, 1.0]]))
    assert np.all(a.buf == -1.0)
    assert np.all(b.buf == 1.0)
