"""
Data types for the physarum simulation.

PopulationConfig and SimulationSettings mirror the YAML schema structures
populated by loader.py. Agent is the per-agent view handed out by the engine.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Optional, Any, Tuple

import numpy as np

from .constants import (
    SENSOR_DISTANCE_MIN,
    SENSOR_DISTANCE_MAX,
    SENSOR_ANGLE_MIN_DEG,
    SENSOR_ANGLE_MAX_DEG,
    ROTATION_ANGLE_MIN_DEG,
    ROTATION_ANGLE_MAX_DEG,
    STEP_DISTANCE_MIN,
    STEP_DISTANCE_MAX,
    DEPOSITION_AMOUNT_MIN,
    DEPOSITION_AMOUNT_MAX,
    DECAY_FACTOR_MIN,
    DECAY_FACTOR_MAX,
)


def _sample(rng: np.random.Generator, low: float, high: float) -> float:
    """Uniform sample in [low, high), or low when the range is pinned"""
    if high <= low:
        return float(low)
    return float(rng.uniform(low, high))


# ============================================================================
# Population Definition
# ============================================================================

@dataclass
class PopulationConfig:
    """
    Behavior parameters shared by every agent of one population.

    Angles are in radians. Replaced wholesale through
    PhysarumSimulation.set_population_configs(); never mutated mid-step.
    """
    sensor_distance: float
    sensor_angle: float
    rotation_angle: float
    step_distance: float
    deposition_amount: float
    decay_factor: float

    @classmethod
    def random(cls, rng: np.random.Generator) -> 'PopulationConfig':
        """
        Sample a config from the ranges in constants.

        Draw order is fixed (sensor distance, sensor angle, rotation angle,
        step distance, deposition, decay) so a seeded rng is reproducible.
        """
        return cls(
            sensor_distance=_sample(rng, SENSOR_DISTANCE_MIN, SENSOR_DISTANCE_MAX),
            sensor_angle=math.radians(_sample(rng, SENSOR_ANGLE_MIN_DEG, SENSOR_ANGLE_MAX_DEG)),
            rotation_angle=math.radians(_sample(rng, ROTATION_ANGLE_MIN_DEG, ROTATION_ANGLE_MAX_DEG)),
            step_distance=_sample(rng, STEP_DISTANCE_MIN, STEP_DISTANCE_MAX),
            deposition_amount=_sample(rng, DEPOSITION_AMOUNT_MIN, DEPOSITION_AMOUNT_MAX),
            decay_factor=_sample(rng, DECAY_FACTOR_MIN, DECAY_FACTOR_MAX),
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'PopulationConfig':
        """
        Build from a settings mapping.

        Angles may be given as `sensor_angle_deg` / `rotation_angle_deg`
        instead of radians.
        """
        values = dict(data)
        for name in ('sensor_angle', 'rotation_angle'):
            deg_key = f"{name}_deg"
            if deg_key in values:
                values[name] = math.radians(values.pop(deg_key))
        return cls(**values)

    def to_dict(self) -> Dict[str, float]:
        """Serialize to builtin floats"""
        return {k: float(v) for k, v in asdict(self).items()}

    def __str__(self) -> str:
        return (f"sensor_distance={self.sensor_distance:.3f}, "
                f"sensor_angle={math.degrees(self.sensor_angle):.1f}deg, "
                f"rotation_angle={math.degrees(self.rotation_angle):.1f}deg, "
                f"step_distance={self.step_distance:.3f}, "
                f"deposition_amount={self.deposition_amount:.3f}, "
                f"decay_factor={self.decay_factor:.3f}")


# ============================================================================
# Agent
# ============================================================================

@dataclass
class Agent:
    """
    Runtime agent in simulation.

    The engine stores agents as parallel arrays; this is a detached copy
    of one slot.

    Attributes:
        agent_id: Stable index into the engine's agent arrays
        x: Horizontal position (interpreted modulo field width)
        y: Vertical position (interpreted modulo field height)
        angle: Heading in radians
        population_id: Index of the owning population / trail field
    """
    agent_id: int
    x: float
    y: float
    angle: float
    population_id: int

    def to_dict(self) -> dict:
        return {
            'agent_id': int(self.agent_id),
            'x': float(self.x),
            'y': float(self.y),
            'angle': float(self.angle),
            'population_id': int(self.population_id),
        }


# ============================================================================
# Palette
# ============================================================================

@dataclass(frozen=True)
class Palette:
    """Named list of RGB colors, one per population"""
    name: str
    colors: Tuple[Tuple[int, int, int], ...]


# ============================================================================
# Simulation Settings
# ============================================================================

@dataclass
class SimulationSettings:
    """Engine construction parameters as loaded from YAML"""
    width: int
    height: int
    particle_count: int
    population_count: int
    diffusion_radius: int = 1
    palette_index: int = 0
    seed: int = 0
    workers: Optional[int] = None
    populations: List[PopulationConfig] = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'width': self.width,
            'height': self.height,
            'particle_count': self.particle_count,
            'population_count': self.population_count,
            'diffusion_radius': self.diffusion_radius,
            'palette_index': self.palette_index,
            'seed': self.seed,
            'workers': self.workers,
            'populations': [p.to_dict() for p in self.populations],
            'description': self.description,
        }
