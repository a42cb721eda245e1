"""
Agent sensing and steering.

Agents probe their population's combined signal at three points ahead
(center, left, right), pick a turn direction, rotate, then step forward.
Scalar helpers mirror the vectorized ones used by the engine and are the
reference for their behavior.
"""

import math
import numpy as np
from typing import Tuple

from .rng import tie_break_direction


TAU = 2.0 * math.pi


def pick_direction(center: float, left: float, right: float, population_id: int) -> float:
    """
    Turn direction for one agent of `population_id`, from its three sensor readings.

    Priority order:
        1. center strongest            -> 0 (straight)
        2. center weakest              -> tie_break_direction(population_id)
        3. right stronger than left    -> +1
        4. left stronger than right    -> -1
        5. left == right               -> 0

    Returns:
        -1.0, 0.0 or +1.0
    """
    if center > left and center > right:
        return 0.0
    elif center < left and center < right:
        return tie_break_direction(population_id)
    elif left < right:
        return 1.0
    elif right < left:
        return -1.0
    else:
        return 0.0


def pick_directions(
    center: np.ndarray,
    left: np.ndarray,
    right: np.ndarray,
    tie_breaks: np.ndarray
) -> np.ndarray:
    """
    Vectorized pick_direction().

    Args:
        center, left, right: (N,) sensor readings
        tie_breaks: (N,) precomputed tie_break_direction() of each agent's population

    Returns:
        (N,) float64 turn directions
    """
    conditions = [
        (center > left) & (center > right),
        (center < left) & (center < right),
        left < right,
        right < left,
    ]
    choices = [0.0, tie_breaks, 1.0, -1.0]
    return np.select(conditions, choices, default=0.0).astype(np.float64)


def sense_positions(x, y, angle, sensor_distance: float, sensor_angle: float) -> Tuple:
    """
    Sensor probe coordinates (works on scalars or arrays).

    Returns:
        (xc, yc, xl, yl, xr, yr) for center, left (angle - sensor_angle)
        and right (angle + sensor_angle) probes
    """
    left_angle = angle - sensor_angle
    right_angle = angle + sensor_angle

    xc = x + np.cos(angle) * sensor_distance
    yc = y + np.sin(angle) * sensor_distance
    xl = x + np.cos(left_angle) * sensor_distance
    yl = y + np.sin(left_angle) * sensor_distance
    xr = x + np.cos(right_angle) * sensor_distance
    yr = y + np.sin(right_angle) * sensor_distance

    return xc, yc, xl, yl, xr, yr


def wrap(value, period: float):
    """Map value into [0, period)"""
    wrapped = value - period * np.floor(value / period)
    # Float rounding can land exactly on period for tiny negatives
    return np.where(wrapped >= period, 0.0, wrapped)


def rotate_and_move(
    x,
    y,
    angle,
    direction,
    rotation_angle: float,
    step_distance: float,
    width: int,
    height: int
) -> Tuple:
    """
    Rotate by direction * rotation_angle, then step along the new heading.

    Positions wrap into [0, width) x [0, height); headings into [0, 2*pi).

    Returns:
        (x, y, angle) after the move
    """
    new_angle = wrap(angle + direction * rotation_angle, TAU)
    new_x = wrap(x + step_distance * np.cos(new_angle), width)
    new_y = wrap(y + step_distance * np.sin(new_angle), height)
    return new_x, new_y, new_angle
