"""
Data models for the building element graph and calculation results.
"""

from .building import (
    BoundaryCondition,
    ElementKind,
    Position,
    Orientation,
    SpaceType,
    Space,
    EnvelopeElement,
    Material,
    Layer,
    OpaqueConstruction,
    Glass,
    Frame,
    WindowConstruction,
    Obstruction,
    ThermalBridge,
    Catalog,
    BuildingMeta,
    Building,
)
from .calculation_result import (
    ElementStatus,
    TransmittanceCacheEntry,
    ObstructionResult,
    ElementRecord,
    GroupSummary,
    EnvelopeReport,
    KDetail,
    QSolJulDetail,
    N50Detail,
    EnvelopeIndicators,
    EnvelopeCalculationResult,
)

__all__ = [
    'BoundaryCondition',
    'ElementKind',
    'Position',
    'Orientation',
    'SpaceType',
    'Space',
    'EnvelopeElement',
    'Material',
    'Layer',
    'OpaqueConstruction',
    'Glass',
    'Frame',
    'WindowConstruction',
    'Obstruction',
    'ThermalBridge',
    'Catalog',
    'BuildingMeta',
    'Building',
    'ElementStatus',
    'TransmittanceCacheEntry',
    'ObstructionResult',
    'ElementRecord',
    'GroupSummary',
    'EnvelopeReport',
    'KDetail',
    'QSolJulDetail',
    'N50Detail',
    'EnvelopeIndicators',
    'EnvelopeCalculationResult',
]
