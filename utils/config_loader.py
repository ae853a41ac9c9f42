"""
Configuration loading utilities.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

# Values used when config.yaml is missing or does not define a key
DEFAULT_CONFIG: Dict[str, Any] = {
    'calculation': {
        'max_workers': 4,
        'transmittance': {
            'ground_conductivity': 2.0,
            'perimeter_insulation_conductivity': 0.035,
            'perimeter_wall_width': 0.3,
            'edge_correction': [],
        },
        'obstruction': {
            'period': {'month': 7, 'day': 1, 'days': 31},
            'tolerance': 1e-9,
        },
        'permeability': {
            'new_building': 16.0,
            'existing_building': 29.0,
        },
    },
    'envelope': {
        'exclusion_token': '_EXCLUDED',
    },
    'location': {
        'latitude': 40.4168,
        'longitude': -3.7038,
        'timezone': 'Europe/Madrid',
    },
    'climate': {
        'july_irradiance': {},
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    },
}


def merge_config(base: dict, override: dict) -> dict:
    """
    Recursively merge two configuration dictionaries.

    Args:
        base: Base configuration (not modified)
        override: Values taking precedence over base

    Returns:
        New merged dictionary
    """
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: str = 'config.yaml') -> dict:
    """
    Load configuration from YAML file on top of the built-in defaults.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    config_file = Path(config_path)

    if not config_file.exists():
        logger.info(f"Config file {config_path} not found, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config {config_path}: {e}")
        return copy.deepcopy(DEFAULT_CONFIG)

    return merge_config(DEFAULT_CONFIG, loaded)


def get_config_value(config: dict, key_path: str, default: Any = None) -> Any:
    """
    Get configuration value using dot-notation path.

    Args:
        config: Configuration dictionary
        key_path: Dot-separated path (e.g., 'calculation.obstruction.tolerance')
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    keys = key_path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
