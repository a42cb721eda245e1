"""
Step performance across agent and worker counts.

Runs step() on a 512x512, 4-population engine and reports median/p90 per
configuration. The agent phase is the only parallel phase, so worker
scaling shows up there first.
"""

import numpy as np
import time
import gc
from typing import List

from physarum.simulation import PhysarumSimulation
from physarum.rng import make_rng


def run_step_perf_test(agent_count: int, workers: int, runs: int = 20) -> dict:
    """
    Time step() for one configuration.

    Args:
        agent_count: Requested agent total
        workers: Agent phase thread count
        runs: Number of timed steps (after 3 warm-up steps)

    Returns:
        Dict with p50, p90, min, max in milliseconds
    """
    times: List[float] = []

    with PhysarumSimulation(
        width=512,
        height=512,
        particle_count=agent_count,
        population_count=4,
        diffusion_radius=1,
        palette_index=0,
        rng=make_rng(42),
        workers=workers
    ) as sim:
        sim.run(3)

        for _ in range(runs):
            gc.collect()
            start = time.perf_counter()
            sim.step()
            times.append((time.perf_counter() - start) * 1000.0)

    times_arr = np.array(times)
    return {
        'p50': float(np.median(times_arr)),
        'p90': float(np.percentile(times_arr, 90)),
        'min': float(times_arr.min()),
        'max': float(times_arr.max()),
    }


if __name__ == '__main__':
    print("=" * 60)
    print("Step Performance: agents x workers")
    print("=" * 60)

    for agent_count in [10_000, 100_000, 500_000]:
        for workers in [1, 4]:
            result = run_step_perf_test(agent_count, workers)
            print(f"  N={agent_count:7d} workers={workers} | "
                  f"p50={result['p50']:8.2f} ms p90={result['p90']:8.2f} ms | "
                  f"min={result['min']:8.2f} max={result['max']:8.2f}")

    print("=" * 60)
