"""
Core calculation engines: construction U values, per-element transmittance
cache, solar obstruction and envelope indicators.
"""

from .climate import IrradianceTable
from .construction_resolver import ConstructionResolver, EdgeCorrectionTable, air_gap_resistance
from .envelope_aggregator import EnvelopeAggregator
from .obstruction_calculator import ObstructionCalculator
from .sun_position import RepresentativePeriod, SolarRayProvider, SunPositionCalculator
from .transmittance_cache import TransmittanceCache

__all__ = [
    'IrradianceTable',
    'ConstructionResolver',
    'EdgeCorrectionTable',
    'air_gap_resistance',
    'EnvelopeAggregator',
    'ObstructionCalculator',
    'RepresentativePeriod',
    'SolarRayProvider',
    'SunPositionCalculator',
    'TransmittanceCache',
]
