"""
Process-wide palette registry.

Loaded once from data/palettes.yaml on first use and never mutated. The
engine only stores a palette index; renderers look the colors up here.
"""

from functools import lru_cache
from typing import Tuple

from .data_types import Palette
from .loader import DATA_DIR, load_palettes


@lru_cache(maxsize=1)
def palette_registry() -> Tuple[Palette, ...]:
    """All registered palettes, in index order"""
    return tuple(load_palettes(DATA_DIR / "palettes.yaml"))


def palette_count() -> int:
    return len(palette_registry())


def get_palette(index: int) -> Palette:
    """
    Palette at `index`.

    Raises:
        ValueError: If index is outside the registry
    """
    registry = palette_registry()
    if not 0 <= index < len(registry):
        raise ValueError(
            f"Palette index {index} out of range (registry has {len(registry)} palettes)"
        )
    return registry[index]
