"""
Trail diffusion: Gaussian blur approximation plus decay.

A Gaussian of standard deviation `radius` is approximated by BLUR_PASSES
successive box blurs whose widths are chosen so the combined variance
matches. Each box blur is separable (horizontal then vertical) and
toroidal. The decay multiplier is applied once, after the last pass.
"""

import math
from functools import lru_cache
from typing import Tuple

import numpy as np
from scipy.ndimage import uniform_filter1d

from .constants import BLUR_PASSES


@lru_cache(maxsize=64)
def box_radii_for_gaussian(sigma: float, passes: int = BLUR_PASSES) -> Tuple[int, ...]:
    """
    Box radii whose successive application approximates a Gaussian.

    Args:
        sigma: Target standard deviation in cells (>= 0)
        passes: Number of box blur passes

    Returns:
        Tuple of `passes` box radii (box width = 2 * radius + 1)

    Example:
        box_radii_for_gaussian(0.0) -> (0, 0, 0)   # singleton cells unspread
    """
    w_ideal = math.sqrt(12.0 * sigma * sigma / passes + 1.0)
    w_lower = int(math.floor(w_ideal))
    if w_lower % 2 == 0:
        w_lower -= 1
    w_upper = w_lower + 2

    m_ideal = (12.0 * sigma * sigma
               - passes * w_lower * w_lower
               - 4.0 * passes * w_lower
               - 3.0 * passes) / (-4.0 * w_lower - 4.0)
    m = int(round(m_ideal))

    widths = [w_lower if i < m else w_upper for i in range(passes)]
    return tuple((w - 1) // 2 for w in widths)


def blur(
    data: np.ndarray,
    buf: np.ndarray,
    width: int,
    height: int,
    radius: float,
    decay_factor: float
):
    """
    Diffuse `data` in place, using `buf` as scratch.

    Args:
        data: (width*height,) row-major field values, overwritten with result
        buf: (width*height,) scratch array, contents clobbered
        width: Field width in cells
        height: Field height in cells
        radius: Gaussian standard deviation in cells
        decay_factor: Multiplicative retention applied after blurring
    """
    grid = data.reshape(height, width)
    scratch = buf.reshape(height, width)

    for box_radius in box_radii_for_gaussian(float(radius)):
        if box_radius == 0:
            continue
        size = 2 * box_radius + 1
        uniform_filter1d(grid, size=size, axis=1, output=scratch, mode='wrap')
        uniform_filter1d(scratch, size=size, axis=0, output=grid, mode='wrap')

    data *= decay_factor
