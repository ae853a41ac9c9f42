"""
Intrinsic thermal transmittance of constructions.

Opaque assemblies follow EN ISO 6946 (surface resistances by heat flow
direction, unventilated air layers from table). Windows combine glazing and
frame by area fraction plus an edge correction read from a configurable table.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from models.building import (
    BoundaryCondition,
    Catalog,
    Layer,
    OpaqueConstruction,
    Position,
    WindowConstruction,
)
from utils.errors import ComputationError

logger = logging.getLogger(__name__)

# Surface resistances, m2K/W
RSI_UPWARD = 0.10  # Roofs, heat flowing up
RSI_HORIZONTAL = 0.13  # Walls
RSI_DOWNWARD = 0.17  # Floors, heat flowing down
RSE = 0.04

RSI_BY_POSITION = {
    Position.TOP: RSI_UPWARD,
    Position.SIDE: RSI_HORIZONTAL,
    Position.BOTTOM: RSI_DOWNWARD,
}

# Unventilated air layers (EN ISO 6946, table 8): thickness in meters -> R by heat flow direction
AIR_GAP_THICKNESS = [0.0, 0.005, 0.007, 0.010, 0.015, 0.025, 0.050, 0.100, 0.300]
AIR_GAP_RESISTANCE = {
    Position.TOP: [0.0, 0.11, 0.13, 0.15, 0.16, 0.16, 0.16, 0.16, 0.16],
    Position.SIDE: [0.0, 0.11, 0.13, 0.15, 0.17, 0.18, 0.18, 0.18, 0.18],
    Position.BOTTOM: [0.0, 0.11, 0.13, 0.15, 0.17, 0.19, 0.21, 0.22, 0.23],
}

# Glazing solar factor for diffuse plus direct radiation over the normal incidence one
G_DIFFUSE_FACTOR = 0.90


def air_gap_resistance(thickness: float, position: Position = Position.SIDE) -> float:
    """
    Thermal resistance of an unventilated air layer.

    Args:
        thickness: Gap thickness in meters (clamped to the table range)
        position: Position of the element holding the gap, sets the heat flow direction

    Returns:
        Resistance in m2K/W, linearly interpolated between table rows
    """
    return float(np.interp(thickness, AIR_GAP_THICKNESS, AIR_GAP_RESISTANCE[position]))


@dataclass
class EdgeCorrectionRule:
    spacer_class: Optional[str]  # None matches any spacer
    shutter_box_present: bool
    percent: float


class EdgeCorrectionTable:
    """
    Percentage increase of the window U for edge effects.

    Rules are matched on spacer class and shutter box presence. A rule with
    no spacer class applies to every spacer not listed explicitly.
    """

    def __init__(self, rules: Optional[Iterable[EdgeCorrectionRule]] = None):
        self.rules: List[EdgeCorrectionRule] = list(rules or [])

    @classmethod
    def from_config(cls, rows: Optional[List[Dict]]) -> 'EdgeCorrectionTable':
        rules = []
        for row in rows or []:
            rules.append(EdgeCorrectionRule(
                spacer_class=row.get('spacer_class'),
                shutter_box_present=bool(row.get('shutter_box_present', False)),
                percent=float(row.get('percent', 0.0)),
            ))
        return cls(rules)

    def percent_for(self, spacer_class: Optional[str], shutter_box_present: bool) -> float:
        fallback = None
        for rule in self.rules:
            if rule.shutter_box_present != shutter_box_present:
                continue
            if rule.spacer_class is not None and rule.spacer_class == spacer_class:
                return rule.percent
            if rule.spacer_class is None and fallback is None:
                fallback = rule.percent
        return fallback if fallback is not None else 0.0


class ConstructionResolver:
    """
    Computes intrinsic U values of opaque and window constructions.

    Stateless apart from the catalog and the edge correction table, results
    are not cached here.
    """

    def __init__(self, catalog: Catalog, edge_correction: Optional[EdgeCorrectionTable] = None):
        """
        Args:
            catalog: Materials, glasses and frames referenced by constructions
            edge_correction: Window edge correction table (no correction if omitted)
        """
        self.catalog = catalog
        self.edge_correction = edge_correction or EdgeCorrectionTable()

    @staticmethod
    def surface_resistances(position: Position, boundary: BoundaryCondition) -> Tuple[float, float]:
        """
        Interior and exterior surface resistances for an element.

        Interior and adiabatic elements have an interior film on both sides.
        Ground elements have no exterior film, the ground model accounts for it.
        """
        rsi = RSI_BY_POSITION[position]
        if boundary == BoundaryCondition.EXTERIOR:
            return rsi, RSE
        if boundary == BoundaryCondition.GROUND:
            return rsi, 0.0
        return rsi, rsi

    def layer_resistance(self, layer: Layer, position: Position = Position.SIDE,
                         referenced_by: Optional[str] = None) -> float:
        """Thermal resistance of one layer in m2K/W."""
        material = self.catalog.material(layer.material_id, referenced_by)
        if layer.thickness <= 0:
            raise ComputationError(
                f"Layer of material '{material.id}' in '{referenced_by}' has non-positive thickness {layer.thickness}"
            )
        if material.resistance is not None:
            if material.resistance <= 0:
                raise ComputationError(f"Material '{material.id}' has non-positive resistance {material.resistance}")
            return material.resistance
        if material.air_gap:
            return air_gap_resistance(layer.thickness, position)
        if material.conductivity is None or material.conductivity <= 0:
            raise ComputationError(f"Material '{material.id}' has non-positive conductivity {material.conductivity}")
        return layer.thickness / material.conductivity

    def r_intrinsic(self, construction: OpaqueConstruction, position: Position = Position.SIDE) -> float:
        """Sum of layer resistances, surface films excluded."""
        if not construction.layers:
            raise ComputationError(f"Construction '{construction.id}' has no layers")
        return sum(self.layer_resistance(layer, position, construction.id) for layer in construction.layers)

    def opaque_u(self, construction: OpaqueConstruction, position: Position = Position.SIDE,
                 boundary: BoundaryCondition = BoundaryCondition.EXTERIOR) -> float:
        """
        U value of an opaque construction.

        Args:
            construction: Layered construction
            position: Element position (sets surface resistances)
            boundary: Boundary condition of the element

        Returns:
            U = 1 / (R_si + sum(d / lambda) + R_se) in W/m2K
        """
        rsi, rse = self.surface_resistances(position, boundary)
        r_total = rsi + self.r_intrinsic(construction, position) + rse
        if r_total <= 0:
            raise ComputationError(f"Construction '{construction.id}' has zero total resistance")
        u_value = 1.0 / r_total
        logger.debug(f"U({construction.id}, {position.value}, {boundary.value}) = {u_value:.3f} W/m2K")
        return u_value

    def edge_correction_percent(self, construction: WindowConstruction) -> float:
        if construction.delta_u_percent is not None:
            return construction.delta_u_percent
        return self.edge_correction.percent_for(construction.spacer_class, construction.shutter_box)

    def window_u(self, construction: WindowConstruction) -> float:
        """
        U value of a window assembly.

        U = (U_glass * (1 - f) + U_frame * f) * (1 + delta / 100), f being the
        frame area fraction and delta the edge correction percentage.
        """
        glass = self.catalog.glass(construction.glass_id, construction.id)
        frame = self.catalog.frame(construction.frame_id, construction.id)
        if not 0.0 <= construction.frame_fraction <= 1.0:
            raise ComputationError(
                f"Window construction '{construction.id}' has frame fraction {construction.frame_fraction} outside [0, 1]"
            )
        if glass.u_value <= 0 or frame.u_value <= 0:
            raise ComputationError(f"Window construction '{construction.id}' has non-positive glass or frame U")

        ff = construction.frame_fraction
        u_area_weighted = glass.u_value * (1.0 - ff) + frame.u_value * ff
        u_value = u_area_weighted * (1.0 + self.edge_correction_percent(construction) / 100.0)
        logger.debug(f"U({construction.id}) = {u_value:.3f} W/m2K")
        return u_value

    def window_g(self, construction: WindowConstruction) -> float:
        """Solar factor of the glazing with mobile shading active (g_gl;sh;wi)."""
        if construction.g_shading_on is not None:
            return construction.g_shading_on
        glass = self.catalog.glass(construction.glass_id, construction.id)
        return glass.g_normal * G_DIFFUSE_FACTOR

    def window_solar_factor(self, construction: WindowConstruction) -> float:
        """Solar transmittance of the whole opening, g_gl;sh;wi * (1 - frame fraction)."""
        return self.window_g(construction) * (1.0 - construction.frame_fraction)
