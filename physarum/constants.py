"""
Central configuration constants for the physarum simulation.

Defines sampling ranges, coupling parameters, worker pool sizing and
render defaults used across multiple modules.
"""

import os


# ============================================================================
# Population Config Sampling Ranges
# ============================================================================

# Sensor geometry (distance in cells, angles in degrees)
SENSOR_DISTANCE_MIN = 0.0
SENSOR_DISTANCE_MAX = 64.0
SENSOR_ANGLE_MIN_DEG = 0.0
SENSOR_ANGLE_MAX_DEG = 120.0

# Steering and movement
ROTATION_ANGLE_MIN_DEG = 0.0
ROTATION_ANGLE_MAX_DEG = 120.0
STEP_DISTANCE_MIN = 0.2
STEP_DISTANCE_MAX = 2.0

# Trail strength and retention (min == max pins the value)
DEPOSITION_AMOUNT_MIN = 5.0
DEPOSITION_AMOUNT_MAX = 5.0
DECAY_FACTOR_MIN = 0.1
DECAY_FACTOR_MAX = 0.1


# ============================================================================
# Attraction Table
# ============================================================================

# Self-cohesion (diagonal entries)
ATTRACTION_FACTOR_MEAN = 1.0
ATTRACTION_FACTOR_STD = 0.1

# Mutual repulsion (off-diagonal entries)
REPULSION_FACTOR_MEAN = -1.0
REPULSION_FACTOR_STD = 0.1


# ============================================================================
# Diffusion
# ============================================================================

# Number of box blur passes approximating the Gaussian kernel
BLUR_PASSES = 3


# ============================================================================
# Agent Worker Pool
# ============================================================================

# Max threads used for the agent sense/steer phase (1 = run inline)
AGENT_WORKERS = min(8, os.cpu_count() or 1)

# Agents per task submitted to the pool
AGENT_CHUNK_SIZE = 16384


# ============================================================================
# Performance Configuration
# ============================================================================

# Tick timing window for rolling average
TICK_TIME_WINDOW = 100  # Number of ticks to average

# Default perf breakdown interval (print every N ticks)
PERF_BREAKDOWN_INTERVAL = 200


# ============================================================================
# Rendering
# ============================================================================

# Normalization: max = RENDER_HEADROOM * quantile(RENDER_QUANTILE)
RENDER_QUANTILE = 0.999
RENDER_HEADROOM = 1.5

# Display gamma
RENDER_GAMMA = 2.2
