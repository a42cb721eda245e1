"""
YAML data loader with schema validation.

Loads simulation settings and the palette registry from YAML files and
validates them against the JSON schemas shipped in physarum/schemas.
"""

import yaml
import json
from pathlib import Path
from typing import List, Optional
import jsonschema

from .data_types import PopulationConfig, Palette, SimulationSettings


PACKAGE_ROOT = Path(__file__).parent
DATA_DIR = PACKAGE_ROOT / "data"
SCHEMA_DIR = PACKAGE_ROOT / "schemas"


class DataLoadError(Exception):
    """Raised when data loading or validation fails"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DataLoadError(f"YAML parse error in {file_path}: {e}")

    if not isinstance(data, dict):
        raise DataLoadError(f"Expected a mapping at top level of {file_path}")
    return data


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        # No schema shipped for this file type, nothing to check
        return

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise DataLoadError(f"Validation error in {data_path}: {e.message}")
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON schema {schema_path}: {e}")


def load_settings(file_path: Path, schema_dir: Optional[Path] = SCHEMA_DIR) -> SimulationSettings:
    """Load simulation settings from YAML"""
    data = load_yaml(file_path)

    # Validate if schema available
    if schema_dir:
        schema_path = Path(schema_dir) / "settings.schema.json"
        validate_against_schema(data, schema_path, file_path)

    populations = [PopulationConfig.from_dict(p) for p in data.get('populations', [])]

    return SimulationSettings(
        width=data['width'],
        height=data['height'],
        particle_count=data['particle_count'],
        population_count=data['population_count'],
        diffusion_radius=data.get('diffusion_radius', 1),
        palette_index=data.get('palette_index', 0),
        seed=data.get('seed', 0),
        workers=data.get('workers'),
        populations=populations,
        description=data.get('description')
    )


def load_palettes(file_path: Path, schema_dir: Optional[Path] = SCHEMA_DIR) -> List[Palette]:
    """Load palette registry from YAML, preserving file order"""
    data = load_yaml(file_path)

    # Validate if schema available
    if schema_dir:
        schema_path = Path(schema_dir) / "palettes.schema.json"
        validate_against_schema(data, schema_path, file_path)

    palettes = []
    for palette_data in data['palettes']:
        colors = tuple(tuple(int(c) for c in rgb) for rgb in palette_data['colors'])
        palettes.append(Palette(name=palette_data['name'], colors=colors))

    return palettes
