"""
Physarum simulation kernel.

Main simulation class that owns the trail fields, the agents and the
attraction table, and advances them one step() at a time.
"""

import math
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .data_types import Agent, PopulationConfig, SimulationSettings
from .trail_field import TrailField, combine, is_power_of_two
from .steering import sense_positions, pick_directions, rotate_and_move
from .palette import get_palette
from .rng import make_rng, tie_break_directions
from .constants import (
    ATTRACTION_FACTOR_MEAN,
    ATTRACTION_FACTOR_STD,
    REPULSION_FACTOR_MEAN,
    REPULSION_FACTOR_STD,
    AGENT_WORKERS,
    AGENT_CHUNK_SIZE,
    TICK_TIME_WINDOW,
    PERF_BREAKDOWN_INTERVAL,
)


def build_attraction_table(population_count: int, rng: np.random.Generator) -> np.ndarray:
    """
    Sample the fixed coupling matrix between populations.

    Entry (i, j) weighs population j's trail in population i's combined
    signal. Diagonal entries are drawn around +1 (self-cohesion), the rest
    around -1 (mutual repulsion), in row-major order.

    Returns:
        (P, P) float64 read-only array
    """
    table = np.empty((population_count, population_count), dtype=np.float64)
    for i in range(population_count):
        for j in range(population_count):
            if i == j:
                table[i, j] = rng.normal(ATTRACTION_FACTOR_MEAN, ATTRACTION_FACTOR_STD)
            else:
                table[i, j] = rng.normal(REPULSION_FACTOR_MEAN, REPULSION_FACTOR_STD)
    table.flags.writeable = False
    return table


class PhysarumSimulation:
    """
    Multi-population Physarum engine.

    Lifecycle: constructed -> running (repeated step()) -> disposed (close()).

    Agents are stored as parallel arrays (x, y, angle, population_id) in
    contiguous population blocks: the first `particles_per_population`
    agents belong to population 0, the next block to population 1, etc.
    """

    def __init__(
        self,
        width: int,
        height: int,
        particle_count: int,
        population_count: int,
        diffusion_radius: int,
        palette_index: int,
        rng: np.random.Generator,
        workers: Optional[int] = None
    ):
        """
        Initialize simulation.

        Args:
            width: Field width, power of two
            height: Field height, power of two
            particle_count: Requested agent total (rounded up to a multiple
                            of population_count)
            population_count: Number of populations / trail fields
            diffusion_radius: Blur radius applied every step
            palette_index: Index into the palette registry
            rng: Seeded randomness source
            workers: Max threads for the agent phase (default AGENT_WORKERS)

        Raises:
            ValueError: On non-power-of-two dimensions, non-positive counts,
                        or a palette index outside the registry
        """
        if not is_power_of_two(width) or not is_power_of_two(height):
            raise ValueError(
                f"Field dimensions must be powers of two, got {width}x{height}"
            )
        if particle_count <= 0 or population_count <= 0:
            raise ValueError(
                f"Particle and population counts must be positive, "
                f"got {particle_count} and {population_count}"
            )
        palette = get_palette(palette_index)

        self.width = width
        self.height = height
        self.diffusion_radius = diffusion_radius
        self.palette_index = palette_index
        self.iteration: int = 0

        self.particles_per_population = math.ceil(particle_count / population_count)
        agent_count = self.particles_per_population * population_count

        # Sampling order: attraction table, agents, fields
        self.attraction_table = build_attraction_table(population_count, rng)

        self._x: np.ndarray = rng.uniform(0.0, width, size=agent_count)
        self._y: np.ndarray = rng.uniform(0.0, height, size=agent_count)
        self._angle: np.ndarray = rng.uniform(0.0, 2.0 * math.pi, size=agent_count)
        self._population_id: np.ndarray = np.arange(agent_count) // self.particles_per_population
        self._tie_breaks: np.ndarray = tie_break_directions(self._population_id)

        self.fields: List[TrailField] = [
            TrailField(width, height, PopulationConfig.random(rng), rng)
            for _ in range(population_count)
        ]

        # Agent phase work split: (population_id, start, stop) per task
        self._tasks: List[Tuple[int, int, int]] = self._plan_agent_tasks()

        self.workers = workers if workers is not None else AGENT_WORKERS
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.workers > 1 and len(self._tasks) > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers,
                thread_name_prefix="physarum-agents"
            )
        self._closed = False

        if population_count > len(palette.colors):
            print(f"[WARN] Palette '{palette.name}' has {len(palette.colors)} colors, "
                  f"populations {len(palette.colors)}..{population_count - 1} will not be rendered")

        # Performance metrics
        self._tick_times = deque(maxlen=TICK_TIME_WINDOW)  # Rolling average window

        # Phase timing breakdown
        self._combine_times = deque(maxlen=TICK_TIME_WINDOW)
        self._agent_times = deque(maxlen=TICK_TIME_WINDOW)
        self._deposit_times = deque(maxlen=TICK_TIME_WINDOW)
        self._diffuse_times = deque(maxlen=TICK_TIME_WINDOW)

        print(f"[OK] Simulation initialized: {agent_count} agents, "
              f"{population_count} populations, {width}x{height}, "
              f"radius={diffusion_radius}, palette={palette.name}, "
              f"workers={self.workers if self._executor else 1}")

    @classmethod
    def from_settings(cls, settings: SimulationSettings) -> 'PhysarumSimulation':
        """
        Build an engine from loaded settings.

        The randomness source is seeded from settings.seed. Explicit
        population configs, when present, replace the sampled ones.
        """
        sim = cls(
            width=settings.width,
            height=settings.height,
            particle_count=settings.particle_count,
            population_count=settings.population_count,
            diffusion_radius=settings.diffusion_radius,
            palette_index=settings.palette_index,
            rng=make_rng(settings.seed),
            workers=settings.workers
        )
        if settings.populations:
            sim.set_population_configs(settings.populations)
        return sim

    def _plan_agent_tasks(self) -> List[Tuple[int, int, int]]:
        """Split each population block into chunks of AGENT_CHUNK_SIZE"""
        tasks = []
        share = self.particles_per_population
        for population_id in range(len(self.fields)):
            block_start = population_id * share
            block_stop = block_start + share
            for start in range(block_start, block_stop, AGENT_CHUNK_SIZE):
                tasks.append((population_id, start, min(start + AGENT_CHUNK_SIZE, block_stop)))
        return tasks

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self):
        """Release the worker pool. The engine cannot step afterwards."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._closed = True

    def __enter__(self) -> 'PhysarumSimulation':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_population_configs(self, configs: Sequence[PopulationConfig]):
        """
        Replace every field's config, in field order.

        Extra configs beyond the field count are ignored.

        Raises:
            ValueError: If fewer configs than fields are supplied
        """
        if len(configs) < len(self.fields):
            raise ValueError(
                f"Expected at least {len(self.fields)} population configs, got {len(configs)}"
            )

        for field, config in zip(self.fields, configs):
            field.config = config

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    def _update_agents(self, population_id: int, start: int, stop: int):
        """
        Sense, steer and move agents [start, stop) of one population.

        Reads only that population's combined buffer and writes only the
        agents' own slots.
        """
        field = self.fields[population_id]
        config = field.config

        x = self._x[start:stop]
        y = self._y[start:stop]
        angle = self._angle[start:stop]

        xc, yc, xl, yl, xr, yr = sense_positions(
            x, y, angle, config.sensor_distance, config.sensor_angle
        )
        trail_c = field.read_combined_many(xc, yc)
        trail_l = field.read_combined_many(xl, yl)
        trail_r = field.read_combined_many(xr, yr)

        direction = pick_directions(trail_c, trail_l, trail_r, self._tie_breaks[start:stop])

        new_x, new_y, new_angle = rotate_and_move(
            x, y, angle, direction,
            config.rotation_angle, config.step_distance,
            field.width, field.height
        )
        self._x[start:stop] = new_x
        self._y[start:stop] = new_y
        self._angle[start:stop] = new_angle

    def step(self):
        """
        Advance simulation by one iteration.

        PHASES (each completes before the next begins):
            1. Combine: every field's buf = attraction-weighted sum of all data
            2. Agents: sense buf, pick direction, rotate, move (parallel)
            3. Deposit: each agent adds to its field's data (sequential)
            4. Diffuse: blur + decay every field's data
            5. Iteration counter += 1

        Raises:
            RuntimeError: If called after close()
        """
        if self._closed:
            raise RuntimeError("Simulation has been closed")

        start_time = time.perf_counter()

        # ============================================================
        # PHASE 1: COMBINE
        # ============================================================
        combine_start = time.perf_counter()
        combine(
            [field.data for field in self.fields],
            [field.buf for field in self.fields],
            self.attraction_table
        )
        self._combine_times.append(time.perf_counter() - combine_start)

        # ============================================================
        # PHASE 2: SENSE + STEER + MOVE (parallel over agents)
        # ============================================================
        agent_start = time.perf_counter()
        if self._executor is not None:
            futures = [self._executor.submit(self._update_agents, *task) for task in self._tasks]
            # Barrier: result() re-raises any worker exception
            for future in futures:
                future.result()
        else:
            for task in self._tasks:
                self._update_agents(*task)
        self._agent_times.append(time.perf_counter() - agent_start)

        # ============================================================
        # PHASE 3: DEPOSIT (sequential, agent order)
        # ============================================================
        deposit_start = time.perf_counter()
        share = self.particles_per_population
        for population_id, field in enumerate(self.fields):
            block = slice(population_id * share, (population_id + 1) * share)
            field.deposit_many(self._x[block], self._y[block])
        self._deposit_times.append(time.perf_counter() - deposit_start)

        # ============================================================
        # PHASE 4: DIFFUSE
        # ============================================================
        diffuse_start = time.perf_counter()
        for field in self.fields:
            field.diffuse(self.diffusion_radius)
        self._diffuse_times.append(time.perf_counter() - diffuse_start)

        # Increment iteration count
        self.iteration += 1

        # Record timing
        self._record_tick_time(time.perf_counter() - start_time)

    def run(self, iterations: int):
        """Call step() `iterations` times"""
        for _ in range(iterations):
            self.step()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def population_count(self) -> int:
        return len(self.fields)

    @property
    def agent_count(self) -> int:
        return len(self._x)

    def field_data(self, population_id: int) -> np.ndarray:
        """Read-only view of one field's row-major trail data"""
        view = self.fields[population_id].data.view()
        view.flags.writeable = False
        return view

    def quantile(self, population_id: int, fraction: float) -> float:
        return self.fields[population_id].quantile(fraction)

    def get_agent(self, agent_id: int) -> Agent:
        """Detached copy of one agent's state"""
        return Agent(
            agent_id=agent_id,
            x=float(self._x[agent_id]),
            y=float(self._y[agent_id]),
            angle=float(self._angle[agent_id]),
            population_id=int(self._population_id[agent_id])
        )

    def agents(self) -> List[Agent]:
        """Detached copies of every agent, in id order"""
        return [self.get_agent(i) for i in range(self.agent_count)]

    def agent_positions(self) -> np.ndarray:
        """(N, 2) copy of agent positions"""
        return np.column_stack((self._x, self._y))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_tick_stats(self) -> dict:
        """
        Get current tick timing statistics.

        Returns:
            Dict with iteration, avg_tick_time_ms, last_tick_time_ms
        """
        if not self._tick_times:
            return {
                'iteration': self.iteration,
                'avg_tick_time_ms': 0.0,
                'last_tick_time_ms': 0.0
            }

        avg_time = sum(self._tick_times) / len(self._tick_times)
        last_time = self._tick_times[-1]

        return {
            'iteration': self.iteration,
            'avg_tick_time_ms': avg_time * 1000.0,
            'last_tick_time_ms': last_time * 1000.0
        }

    def _record_tick_time(self, elapsed: float):
        """
        Record tick timing for rolling average.

        Args:
            elapsed: Tick time in seconds
        """
        self._tick_times.append(elapsed)

    def get_snapshot(self) -> dict:
        """
        Get simulation state summary (JSON-compatible).

        Returns:
            Dict with iteration, dimensions, population configs,
            attraction table and timing
        """
        return {
            'iteration': self.iteration,
            'width': self.width,
            'height': self.height,
            'agent_count': self.agent_count,
            'population_count': self.population_count,
            'diffusion_radius': self.diffusion_radius,
            'palette_index': self.palette_index,
            'populations': [field.config.to_dict() for field in self.fields],
            'attraction_table': self.attraction_table.tolist(),
            'timing': self.get_tick_stats()
        }

    def print_configurations(self):
        """Print per-population configs and the attraction table"""
        for i, field in enumerate(self.fields):
            print(f"Population {i}: {field.config}")
        print("Attraction table:")
        for row in self.attraction_table:
            print("  " + " ".join(f"{value:+.3f}" for value in row))

    def print_tick_summary(self):
        """Print tick summary to console (lightweight monitoring)"""
        stats = self.get_tick_stats()
        print(f"Iteration {stats['iteration']:5d} | "
              f"Avg: {stats['avg_tick_time_ms']:8.3f} ms | "
              f"Last: {stats['last_tick_time_ms']:8.3f} ms | "
              f"Agents: {self.agent_count}")

    def print_perf_breakdown(self, every: int = PERF_BREAKDOWN_INTERVAL):
        """
        Print per-phase timing averages on interval.

        Args:
            every: Print interval in iterations
        """
        if self.iteration == 0 or self.iteration % every != 0:
            return

        def avg_ms(times) -> float:
            return sum(times) / len(times) * 1000.0 if times else 0.0

        avg_combine = avg_ms(self._combine_times)
        avg_agents = avg_ms(self._agent_times)
        avg_deposit = avg_ms(self._deposit_times)
        avg_diffuse = avg_ms(self._diffuse_times)
        avg_total = avg_ms(self._tick_times)

        print(f"\n[Perf Breakdown] Iteration {self.iteration} ({self.agent_count} agents)")
        print(f"  Combine:      {avg_combine:8.3f} ms")
        print(f"  Agents:       {avg_agents:8.3f} ms")
        print(f"  Deposit:      {avg_deposit:8.3f} ms")
        print(f"  Diffuse:      {avg_diffuse:8.3f} ms")
        print(f"  Total:        {avg_total:8.3f} ms")
        print(f"  Overhead:     {(avg_total - avg_combine - avg_agents - avg_deposit - avg_diffuse):8.3f} ms")
