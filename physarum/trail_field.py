"""
Trail fields and the cross-population combine step.

Each population owns one TrailField: a toroidal scalar grid (`data`) plus a
same-shaped second array (`buf`). `buf` has two roles that never overlap
in time: scratch space while diffusing, and the post-combine sensing
signal while agents steer.
"""

import numpy as np
from typing import Optional, Sequence

from .data_types import PopulationConfig
from .diffusion import blur


def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, 8, ..."""
    return n > 0 and (n & (n - 1)) == 0


def toroidal_indices(xs: np.ndarray, ys: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Vectorized toroidal_index() over arrays of coordinates.

    Coordinates are shifted by one period, truncated toward zero, then
    masked with (dimension - 1). Correct for any coordinate greater than
    -dimension; further negative excursions are not wrapped correctly.

    Args:
        xs: (N,) x coordinates
        ys: (N,) y coordinates
        width: Field width (power of two)
        height: Field height (power of two)

    Returns:
        (N,) int64 flat row-major indices
    """
    i = (np.asarray(xs) + width).astype(np.int64) & (width - 1)
    j = (np.asarray(ys) + height).astype(np.int64) & (height - 1)
    return j * width + i


class TrailField:
    """
    One population's trail grid.

    Attributes:
        width: Grid width in cells (power of two)
        height: Grid height in cells (power of two)
        config: PopulationConfig for the agents depositing here
        data: (width*height,) float64 trail intensity, row-major
        buf: (width*height,) float64 combined signal / diffusion scratch
    """

    def __init__(
        self,
        width: int,
        height: int,
        config: PopulationConfig,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Args:
            width: Grid width, must be a power of two
            height: Grid height, must be a power of two
            config: Population behavior parameters
            rng: If given, data starts as uniform [0, 1) noise; otherwise zeros

        Raises:
            ValueError: If width or height is not a power of two
        """
        if not is_power_of_two(width) or not is_power_of_two(height):
            raise ValueError(
                f"Field dimensions must be powers of two, got {width}x{height}"
            )

        self.width = width
        self.height = height
        self.config = config

        if rng is not None:
            self.data = rng.uniform(0.0, 1.0, size=width * height)
        else:
            self.data = np.zeros(width * height, dtype=np.float64)
        self.buf = np.zeros(width * height, dtype=np.float64)

    def toroidal_index(self, x: float, y: float) -> int:
        """Flat index of the cell containing (x, y), wrapping around edges"""
        i = int(x + self.width) & (self.width - 1)
        j = int(y + self.height) & (self.height - 1)
        return j * self.width + i

    def read_combined(self, x: float, y: float) -> float:
        """Combined sensing signal at (x, y)"""
        return float(self.buf[self.toroidal_index(x, y)])

    def read_combined_many(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Vectorized read_combined()"""
        return self.buf[toroidal_indices(xs, ys, self.width, self.height)]

    def deposit(self, x: float, y: float):
        """Add this population's deposition amount at (x, y)"""
        self.data[self.toroidal_index(x, y)] += self.config.deposition_amount

    def deposit_many(self, xs: np.ndarray, ys: np.ndarray):
        """
        Deposit once per (x, y) pair.

        np.add.at is unbuffered: repeated indices accumulate once per
        occurrence, in input order.
        """
        idx = toroidal_indices(xs, ys, self.width, self.height)
        np.add.at(self.data, idx, self.config.deposition_amount)

    def diffuse(self, radius: float):
        """Blur data by `radius`, apply decay_factor, write back into data"""
        blur(self.data, self.buf, self.width, self.height, radius, self.config.decay_factor)

    def quantile(self, fraction: float) -> float:
        """
        Value at the given fractional rank of data.

        Uses partial selection (np.partition) on a copy. fraction=1.0 maps
        to the maximum exactly.

        Raises:
            ValueError: If fraction is outside [0, 1]
        """
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"Quantile fraction must be in [0, 1], got {fraction}")

        n = len(self.data)
        if abs(fraction - 1.0) < np.finfo(np.float32).eps:
            index = n - 1
        else:
            index = int(n * fraction)
        return float(np.partition(self.data, index)[index])


def combine(
    datas: Sequence[np.ndarray],
    bufs: Sequence[np.ndarray],
    attraction_table: np.ndarray
):
    """
    Recompute every field's combined signal.

    bufs[i] = sum_j attraction_table[i, j] * datas[j]

    `datas` and `bufs` are indexed in lockstep (entry i belongs to field i).
    Only bufs are written and only datas are read, so each bufs[i] can be
    filled independently of the others.

    Args:
        datas: Per-field trail arrays (read only)
        bufs: Per-field combined arrays (overwritten)
        attraction_table: (P, P) coupling weights
    """
    for i, buf in enumerate(bufs):
        buf.fill(0.0)
        for j, data in enumerate(datas):
            buf += attraction_table[i, j] * data
