"""
Utility functions and helpers.
"""

from .config_loader import load_config, get_config_value, merge_config
from .errors import (
    EnvelopeError,
    GeometryError,
    CatalogError,
    ComputationError,
    ParseError,
    ModelReferenceError,
)
from .geometry_utils import calculate_distance, calculate_angle, normalize_vector
from .logging_setup import setup_logging

__all__ = [
    'load_config',
    'get_config_value',
    'merge_config',
    'EnvelopeError',
    'GeometryError',
    'CatalogError',
    'ComputationError',
    'ParseError',
    'ModelReferenceError',
    'calculate_distance',
    'calculate_angle',
    'normalize_vector',
    'setup_logging',
]
