"""
Fraction of a window's sunlit aperture blocked by external obstructions.

For each hour the window and its obstructions are projected along the sun
ray onto the z = 0 plane. The projected obstructions are then subtracted
from the projected window one at a time with shapely polygon overlay,
which handles non-convex and multi-part regions.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
from shapely.geometry import Polygon

from models.building import Building, EnvelopeElement, Obstruction
from models.calculation_result import ObstructionResult
from utils.errors import CatalogError, GeometryError
from utils.geometry_utils import (
    clip_polygon_to_halfspace,
    is_planar,
    normalize_vector,
    project_along_ray,
)

logger = logging.getLogger(__name__)

Vector3D = Tuple[float, float, float]
RayFunction = Callable[[int], Optional[Vector3D]]

MIN_AREA = 1e-9


def _to_shape(points: List[Tuple[float, float]]) -> Polygon:
    shape = Polygon(points)
    if not shape.is_valid:
        shape = shape.buffer(0)
    return shape


class ObstructionCalculator:
    """
    Hourly obstruction fractions of windows.

    The sun ray lookup is any callable returning the direction of travel
    of sunlight for an hour index, or None while the sun is down.
    """

    def __init__(self, building: Building, ray_for_hour: RayFunction,
                 tolerance: float = 1e-9, planarity_tolerance: float = 1e-3):
        """
        Args:
            building: Resolved element graph (windows and obstructions)
            ray_for_hour: Hour index -> sun ray direction
            tolerance: Angular tolerance for rays tangent to the window plane
            planarity_tolerance: Maximum vertex distance to the window plane in meters
        """
        self.building = building
        self.ray_for_hour = ray_for_hour
        self.tolerance = tolerance
        self.planarity_tolerance = planarity_tolerance
        self._rays: Dict[int, Optional[Vector3D]] = {}
        self._rays_lock = threading.Lock()

    def _ray(self, hour: int) -> Optional[Vector3D]:
        with self._rays_lock:
            if hour not in self._rays:
                self._rays[hour] = self.ray_for_hour(hour)
            return self._rays[hour]

    def obstructions_for(self, window: EnvelopeElement) -> List[Obstruction]:
        obstructions = []
        for obstruction_id in window.obstruction_ids:
            obstruction = self.building.obstructions.get(obstruction_id)
            if obstruction is None:
                raise CatalogError('obstruction', obstruction_id, window.id)
            obstructions.append(obstruction)
        return obstructions

    def obstruction_fraction(self, window: EnvelopeElement, hour: int) -> float:
        """
        Fraction of the window blocked at an hour.

        Args:
            window: Window element
            hour: Hour index of the representative period

        Returns:
            Value in [0, 1]; 0 fully exposed, 1 fully obstructed

        Raises:
            GeometryError: sun below the horizon, ray parallel to the
                projection plane or not reaching the window front, or
                degenerate window polygon
        """
        direction = self._ray(hour)
        if direction is None:
            raise GeometryError(f"sun below the horizon at hour {hour}", window.id)
        d = np.asarray(normalize_vector(direction))
        if abs(d[2]) < self.tolerance:
            raise GeometryError(f"sun ray parallel to the projection plane at hour {hour}", window.id)

        normal = np.asarray(window.normal)
        if float(np.dot(normal, d)) >= -self.tolerance:
            raise GeometryError(f"sun ray does not reach the window front at hour {hour}", window.id)
        if not is_planar(window.polygon, self.planarity_tolerance):
            raise GeometryError("window polygon is not planar", window.id)

        window_shape = _to_shape(project_along_ray(window.polygon, d))
        window_area = window_shape.area
        if window_area < MIN_AREA:
            raise GeometryError(f"window projection has zero area at hour {hour}", window.id)

        remaining = window_shape
        for obstruction in self.obstructions_for(window):
            if remaining.is_empty:
                break
            # Only the part in front of the window plane can cast shade on it
            front = clip_polygon_to_halfspace(obstruction.polygon, window.polygon[0], normal)
            if len(front) < 3:
                continue
            shape = _to_shape(project_along_ray(front, d))
            if shape.is_empty or shape.area < MIN_AREA:
                continue
            if not remaining.intersects(shape):
                continue
            remaining = remaining.difference(shape)

        unshaded = 0.0 if remaining.is_empty else remaining.area
        fraction = 1.0 - unshaded / window_area
        return min(1.0, max(0.0, fraction))

    def hourly_fractions(self, window: EnvelopeElement, hours: Iterable[int]) -> ObstructionResult:
        """
        Obstruction fraction of a window for every hour.

        Hours failing with GeometryError are recorded as undefined with their reason.
        """
        result = ObstructionResult(window_id=window.id)
        for hour in hours:
            try:
                result.fractions[hour] = self.obstruction_fraction(window, hour)
            except GeometryError as e:
                result.fractions[hour] = None
                result.undefined_reasons[hour] = e.reason
        logger.debug(
            f"Window {window.id}: {len(result.defined_hours)} defined hour(s), mean fraction {result.mean_fraction}"
        )
        return result

    def compute_all(self, hours: Iterable[int], windows: Optional[List[EnvelopeElement]] = None,
                    max_workers: Optional[int] = None) -> Dict[str, ObstructionResult]:
        """
        Obstruction fractions for several windows on a thread pool.

        Args:
            hours: Hour indices of the representative period
            windows: Windows to evaluate (all building windows if None)
            max_workers: Thread pool size

        Returns:
            ObstructionResult keyed by window id
        """
        hours = list(hours)
        windows = self.building.windows if windows is None else windows
        total = len(windows)
        logger.info(f"Computing obstruction fractions for {total} window(s) over {len(hours)} hour(s)")

        results: Dict[str, ObstructionResult] = {}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.hourly_fractions, w, hours): w for w in windows}
            for idx, future in enumerate(as_completed(futures), 1):
                window = futures[future]
                try:
                    results[window.id] = future.result()
                except Exception:
                    for pending in futures:
                        pending.cancel()
                    raise
                logger.debug(f"[{idx}/{total}] Obstruction done for window {window.id}")
        # Keep the building's window order
        return {w.id: results[w.id] for w in windows}
