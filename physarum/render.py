"""
Reference renderer: trail fields to an RGB pixel array.

Each field is normalized by RENDER_HEADROOM times its RENDER_QUANTILE
value, gamma-corrected, and weighted by its palette color. Contributions
are summed across populations and clamped to the display range. Image
encoding is left to the caller.
"""

import numpy as np
from typing import Sequence

from .data_types import Palette
from .trail_field import TrailField
from .palette import get_palette
from .constants import RENDER_QUANTILE, RENDER_HEADROOM, RENDER_GAMMA


def normalized_intensity(field: TrailField) -> np.ndarray:
    """
    Display intensity in [0, 1] for one field.

    Returns:
        (height, width) float64 array
    """
    max_value = field.quantile(RENDER_QUANTILE) * RENDER_HEADROOM
    if max_value <= 0.0:
        # Empty or fully repelled field: nothing to draw
        return np.zeros((field.height, field.width), dtype=np.float64)

    t = np.clip(field.data / max_value, 0.0, 1.0)
    return (t ** (1.0 / RENDER_GAMMA)).reshape(field.height, field.width)


def render_rgb(fields: Sequence[TrailField], palette: Palette) -> np.ndarray:
    """
    Composite all fields into one RGB image.

    Fields are paired with palette colors in order; fields beyond the
    palette length are not drawn.

    Args:
        fields: Trail fields of equal dimensions
        palette: Colors, one per population

    Returns:
        (height, width, 3) uint8 array
    """
    height, width = fields[0].height, fields[0].width
    rgb = np.zeros((height, width, 3), dtype=np.float64)

    for field, color in zip(fields, palette.colors):
        t = normalized_intensity(field)
        rgb += t[:, :, np.newaxis] * np.asarray(color, dtype=np.float64)

    return np.clip(rgb, 0.0, 255.0).astype(np.uint8)


def render_simulation(sim) -> np.ndarray:
    """render_rgb() for a PhysarumSimulation using its own palette"""
    return render_rgb(sim.fields, get_palette(sim.palette_index))
