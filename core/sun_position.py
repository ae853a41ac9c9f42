"""
Sun position calculator and hourly sun ray directions for a representative period.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

import pytz
from astral import LocationInfo
from astral.sun import sun

Vector3D = Tuple[float, float, float]


class SunPositionCalculator:
    """
    Calculates sun position (azimuth and elevation) for a given location and time.
    """

    def __init__(self, latitude: float, longitude: float, timezone: str = "Europe/Madrid"):
        """
        Initialize sun position calculator.

        Args:
            latitude: Latitude in decimal degrees (positive for North)
            longitude: Longitude in decimal degrees (positive for East)
            timezone: Timezone name (e.g., "Europe/Madrid")
        """
        self.latitude = math.radians(latitude)
        self.longitude = longitude
        self.tz = pytz.timezone(timezone)
        self.location = LocationInfo(
            name="Building",
            region="",
            timezone=timezone,
            latitude=latitude,
            longitude=longitude
        )

    def _localize(self, dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return self.tz.localize(dt)
        return dt.astimezone(self.tz)

    def get_sun_position(self, dt: datetime) -> Tuple[float, float]:
        """
        Calculate sun azimuth and elevation for a given datetime.

        Args:
            dt: Datetime object (naive values are taken as local time)

        Returns:
            Tuple of (azimuth_degrees, elevation_degrees)
            - Azimuth: 0° = North, 90° = East, 180° = South, 270° = West
            - Elevation: 0° = horizon, 90° = zenith
        """
        dt = self._localize(dt)

        day_of_year = dt.timetuple().tm_yday

        # Solar declination
        declination = 23.45 * math.sin(math.radians(360 * (284 + day_of_year) / 365))
        declination_rad = math.radians(declination)

        # Hour angle from local solar time
        hour = dt.hour + dt.minute / 60.0 + dt.second / 3600.0
        utc_offset_hours = dt.utcoffset().total_seconds() / 3600.0
        solar_time = hour + (self.longitude / 15.0) - utc_offset_hours
        hour_angle = 15.0 * (solar_time - 12.0)
        hour_angle_rad = math.radians(hour_angle)

        sin_elevation = (
            math.sin(self.latitude) * math.sin(declination_rad) +
            math.cos(self.latitude) * math.cos(declination_rad) * math.cos(hour_angle_rad)
        )
        elevation_rad = math.asin(max(-1.0, min(1.0, sin_elevation)))
        elevation_degrees = math.degrees(elevation_rad)

        denominator = math.cos(self.latitude) * math.cos(elevation_rad)
        if abs(denominator) < 1e-12:
            return 0.0, elevation_degrees
        cos_azimuth = (math.sin(declination_rad) - math.sin(self.latitude) * sin_elevation) / denominator
        cos_azimuth = max(-1.0, min(1.0, cos_azimuth))
        azimuth_rad = math.acos(cos_azimuth)

        # Afternoon positions are west of the meridian
        if hour_angle > 0:
            azimuth_degrees = 360 - math.degrees(azimuth_rad)
        else:
            azimuth_degrees = math.degrees(azimuth_rad)

        return azimuth_degrees, elevation_degrees

    def is_sun_above_horizon(self, dt: datetime) -> bool:
        _, elevation = self.get_sun_position(dt)
        return elevation > 0

    def get_sun_vector(self, dt: datetime) -> Vector3D:
        """Unit vector pointing from the building towards the sun (x = East, y = North, z = up)."""
        azimuth, elevation = self.get_sun_position(dt)
        azimuth_rad = math.radians(azimuth)
        elevation_rad = math.radians(elevation)
        return (
            math.sin(azimuth_rad) * math.cos(elevation_rad),
            math.cos(azimuth_rad) * math.cos(elevation_rad),
            math.sin(elevation_rad),
        )

    def get_ray_direction(self, dt: datetime) -> Optional[Vector3D]:
        """
        Direction of travel of direct sunlight, None while the sun is below the horizon.
        """
        sx, sy, sz = self.get_sun_vector(dt)
        if sz <= 0:
            return None
        return (-sx, -sy, -sz)

    def get_sunrise_sunset(self, date_obj: date) -> Tuple[datetime, datetime]:
        """
        Get sunrise and sunset times for a given date.

        Args:
            date_obj: Date object

        Returns:
            Tuple of (sunrise, sunset) datetime objects
        """
        s = sun(self.location.observer, date=date_obj, tzinfo=self.tz)
        return s['sunrise'], s['sunset']

    def get_daylight_hours(self, date_obj: date) -> float:
        sunrise, sunset = self.get_sunrise_sunset(date_obj)
        return (sunset - sunrise).total_seconds() / 3600.0


@dataclass
class RepresentativePeriod:
    """
    Consecutive days evaluated hour by hour.

    Hour index h maps to day h // 24 of the period at (h % 24):30 local time.
    """

    month: int = 7
    day: int = 1
    days: int = 31
    year: int = 2023

    @classmethod
    def from_config(cls, period: Optional[dict]) -> 'RepresentativePeriod':
        period = period or {}
        return cls(
            month=int(period.get('month', 7)),
            day=int(period.get('day', 1)),
            days=int(period.get('days', 31)),
            year=int(period.get('year', 2023)),
        )

    @property
    def start(self) -> date:
        return date(self.year, self.month, self.day)

    def hours(self) -> List[int]:
        return list(range(self.days * 24))

    def datetime_for(self, hour: int) -> datetime:
        day = self.start + timedelta(days=hour // 24)
        return datetime.combine(day, time(hour % 24, 30))


class SolarRayProvider:
    """
    Hour index -> sun ray direction lookup over a representative period.

    Callable, so any function with the same signature can replace it.
    """

    def __init__(self, calculator: SunPositionCalculator, period: RepresentativePeriod):
        self.calculator = calculator
        self.period = period

    def hours(self) -> List[int]:
        return self.period.hours()

    def daylight_hours(self) -> float:
        """Total daylight over the period, from astral sunrise and sunset."""
        return sum(
            self.calculator.get_daylight_hours(self.period.start + timedelta(days=d))
            for d in range(self.period.days)
        )

    def __call__(self, hour: int) -> Optional[Vector3D]:
        return self.calculator.get_ray_direction(self.period.datetime_for(hour))
