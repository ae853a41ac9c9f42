"""
Element graph validation and quality checks.

Detects dangling references, degenerate or non-planar polygons and missing
data that would make some element values unreliable.
"""

import logging
from collections import Counter
from typing import Dict, List

from models.building import BoundaryCondition, Building
from utils.errors import GeometryError
from utils.geometry_utils import calculate_angle, is_planar

logger = logging.getLogger(__name__)


class ModelValidationResult:
    """Result of element graph validation."""

    def __init__(self):
        self.is_valid: bool = True
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.info: List[str] = []
        self.element_counts: Dict[str, int] = {}

    def add_error(self, message: str):
        """Add validation error."""
        self.is_valid = False
        self.errors.append(message)
        logger.error(f"Model Validation Error: {message}")

    def add_warning(self, message: str):
        """Add validation warning."""
        self.warnings.append(message)
        logger.warning(f"Model Validation Warning: {message}")

    def add_info(self, message: str):
        self.info.append(message)
        logger.info(f"Model Validation Info: {message}")

    def get_summary(self) -> str:
        """Get validation summary."""
        summary = [f"Validation Status: {'VALID' if self.is_valid else 'INVALID'}"]
        summary.append(f"Errors: {len(self.errors)}, Warnings: {len(self.warnings)}, Info: {len(self.info)}")
        if self.element_counts:
            summary.append(f"Elements: {', '.join(f'{k}={v}' for k, v in self.element_counts.items())}")
        return " | ".join(summary)


class ModelValidator:
    """Validates element graphs before calculation."""

    @staticmethod
    def validate(building: Building, planarity_tolerance: float = 1e-3) -> ModelValidationResult:
        """
        Validate a building element graph.

        Args:
            building: Building to check
            planarity_tolerance: Maximum vertex distance to the polygon plane in meters

        Returns:
            ModelValidationResult
        """
        result = ModelValidationResult()
        catalog = building.catalog

        counts = Counter(e.kind.value for e in building.elements.values())
        result.element_counts = {'SPACE': len(building.spaces), **dict(sorted(counts.items()))}

        for space in building.spaces.values():
            if space.area <= 0:
                result.add_warning(f"Space {space.id} ({space.name}) has zero floor area")
            if space.height <= 0:
                result.add_error(f"Space {space.id} ({space.name}) has non-positive height {space.height}")

        for element in building.elements.values():
            label = f"{element.kind.value.capitalize()} {element.id} ({element.name})"
            if element.space_id not in building.spaces:
                result.add_error(f"{label} references unknown space {element.space_id}")

            if element.is_window:
                if element.construction_id not in catalog.window_constructions:
                    result.add_error(f"{label} references unknown window construction {element.construction_id}")
                ModelValidator._check_window(building, element, label, result)
            else:
                if element.construction_id not in catalog.opaque_constructions:
                    result.add_error(f"{label} references unknown construction {element.construction_id}")
                if element.boundary == BoundaryCondition.INTERIOR:
                    if element.next_to is None:
                        result.add_error(f"{label} is interior but has no adjacent space")
                    elif element.next_to not in building.spaces:
                        result.add_error(f"{label} references unknown adjacent space {element.next_to}")
                elif element.next_to is not None:
                    result.add_warning(f"{label} has an adjacent space but boundary {element.boundary.value}")

            try:
                area = element.area
                element.normal
            except GeometryError as e:
                result.add_error(f"{label}: {e.reason}")
                continue
            if area <= 0:
                result.add_error(f"{label} has zero area")
            if not is_planar(element.polygon, planarity_tolerance):
                result.add_error(f"{label} polygon is not planar")
            if element.excluded:
                result.add_info(f"{label} excluded from regulatory aggregates by name")

        for obstruction in building.obstructions.values():
            if obstruction.area <= 0:
                result.add_warning(f"Obstruction {obstruction.id} ({obstruction.name}) has zero area")

        ModelValidator._check_ventilation(building, result)
        return result

    @staticmethod
    def _check_window(building: Building, window, label: str, result: ModelValidationResult):
        host = building.elements.get(window.parent_wall_id) if window.parent_wall_id else None
        if host is None:
            result.add_error(f"{label} references unknown host element {window.parent_wall_id}")
            return
        for obstruction_id in window.obstruction_ids:
            if obstruction_id not in building.obstructions:
                result.add_error(f"{label} references unknown obstruction {obstruction_id}")
        try:
            if calculate_angle(window.normal, host.normal) > 1.0:
                result.add_warning(f"{label} is not parallel to its host element {host.id}")
            if sum(w.area for w in building.windows_of_wall(host.id)) > host.area + 1e-6:
                result.add_error(f"Windows of {host.id} are larger than the element itself")
        except GeometryError:
            # Reported with the element's own geometry check
            return

    @staticmethod
    def _check_ventilation(building: Building, result: ModelValidationResult):
        if building.meta.global_ventilation_l_s is not None:
            return
        for space in building.spaces.values():
            if not space.is_conditioned and space.air_changes is None:
                result.add_warning(
                    f"Unconditioned space {space.id} ({space.name}) has no air change rate "
                    f"and the building has no global ventilation rate"
                )
