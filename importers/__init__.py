"""
Project importers and element graph validation.
"""

from .base_importer import BaseImporter
from .model_validator import ModelValidationResult, ModelValidator
from .project_importer import ProjectImporter, is_excluded_name

__all__ = [
    'BaseImporter',
    'ModelValidationResult',
    'ModelValidator',
    'ProjectImporter',
    'is_excluded_name',
]
