"""
Summer solar irradiance lookup by climate zone and surface orientation.
"""

import logging
from typing import Dict, Optional

from models.building import Orientation, Position
from utils.config_loader import get_config_value
from utils.errors import CatalogError

logger = logging.getLogger(__name__)


class IrradianceTable:
    """
    Accumulated July irradiance H_sol;jul (kWh/m2.month) per orientation.

    Values are read from the ``climate.july_irradiance.<zone>`` configuration
    section, keyed by orientation name (N, NE, E, SE, S, SW, W, NW, HZ).
    """

    def __init__(self, zone: str, values: Dict[str, float]):
        self.zone = zone
        self.values = {str(k).upper(): float(v) for k, v in values.items()}

    @classmethod
    def from_config(cls, config: dict, zone: str) -> 'IrradianceTable':
        zones = get_config_value(config, 'climate.july_irradiance', {}) or {}
        if zone not in zones:
            raise CatalogError('climate zone', zone, 'climate.july_irradiance')
        logger.info(f"Using July irradiance of climate zone {zone}")
        return cls(zone, zones[zone])

    def get(self, orientation: Orientation, tilt: float = 90.0, period: Optional[str] = 'july') -> float:
        """
        Irradiance on a surface.

        Args:
            orientation: Surface orientation
            tilt: Surface tilt in degrees; non-vertical surfaces use the horizontal value
            period: Accumulation period, only July is tabulated

        Returns:
            Irradiance in kWh/m2.month
        """
        if period not in (None, 'july'):
            raise CatalogError('irradiance period', str(period), self.zone)
        key = orientation.value
        if Position.from_tilt(tilt) != Position.SIDE:
            key = Orientation.HZ.value
        try:
            return self.values[key]
        except KeyError:
            raise CatalogError('irradiance orientation', key, self.zone) from None
