"""
Deterministic RNG utilities for physarum simulation.

All sampled randomness flows from one numpy.random.Generator(PCG64) built
from the run seed. Tie-breaks do not consume that generator: they are a
stateless splitmix64 hash of the population id, so every agent of a
population resolves the tie-break branch the same way, on every iteration
and in every run.
"""

import numpy as np


_GOLDEN_GAMMA = np.uint64(0x9E3779B97F4A7C15)
_MIX_1 = np.uint64(0xBF58476D1CE4E5B9)
_MIX_2 = np.uint64(0x94D049BB133111EB)


def make_rng(seed: int) -> np.random.Generator:
    """
    Build the seeded randomness source consumed by the engine.

    Args:
        seed: Non-negative integer seed (from settings)

    Returns:
        numpy Generator backed by PCG64
    """
    return np.random.Generator(np.random.PCG64(seed))


def splitmix64(values: np.ndarray) -> np.ndarray:
    """
    splitmix64 finalizer applied elementwise.

    Args:
        values: Integer array (interpreted as uint64)

    Returns:
        uint64 array of hashed values
    """
    z = np.asarray(values).astype(np.uint64) + _GOLDEN_GAMMA
    z = (z ^ (z >> np.uint64(30))) * _MIX_1
    z = (z ^ (z >> np.uint64(27))) * _MIX_2
    return z ^ (z >> np.uint64(31))


def tie_break_directions(population_ids: np.ndarray) -> np.ndarray:
    """
    Turn direction used when both side sensors beat the center sensor.

    Args:
        population_ids: (N,) owning population of each agent

    Returns:
        (N,) float64 array of -1.0 / +1.0
    """
    low_bit = splitmix64(population_ids) & np.uint64(1)
    return np.where(low_bit == 1, 1.0, -1.0)


def tie_break_direction(population_id: int) -> float:
    """Scalar tie_break_directions()"""
    return float(tie_break_directions(np.array([population_id]))[0])
