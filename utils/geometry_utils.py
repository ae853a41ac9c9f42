"""
Geometry utility functions for 3D calculations on envelope polygons.

Coordinates follow the convention x = East, y = North, z = up. Polygons are
ordered so that the right-hand rule gives the outward normal.
"""

import math
from typing import List, Sequence, Tuple

import numpy as np

from .errors import GeometryError

Point3D = Tuple[float, float, float]
Point2D = Tuple[float, float]

EPSILON = 1e-9


def calculate_distance(point1: Sequence[float], point2: Sequence[float]) -> float:
    """
    Calculate Euclidean distance between two 3D points.

    Args:
        point1: First point (x, y, z)
        point2: Second point (x, y, z)

    Returns:
        Distance in meters
    """
    return float(np.linalg.norm(np.asarray(point2, dtype=float) - np.asarray(point1, dtype=float)))


def calculate_angle(vector1: Sequence[float], vector2: Sequence[float]) -> float:
    """
    Calculate angle between two 3D vectors in degrees.

    Args:
        vector1: First vector
        vector2: Second vector

    Returns:
        Angle in degrees (0.0 if either vector is null)
    """
    v1 = np.asarray(vector1, dtype=float)
    v2 = np.asarray(vector2, dtype=float)
    mag1 = np.linalg.norm(v1)
    mag2 = np.linalg.norm(v2)

    if mag1 == 0 or mag2 == 0:
        return 0.0

    cos_angle = float(np.dot(v1, v2) / (mag1 * mag2))
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return math.degrees(math.acos(cos_angle))


def normalize_vector(vector: Sequence[float]) -> Point3D:
    """
    Normalize a 3D vector to unit length.

    Args:
        vector: Input vector

    Returns:
        Normalized vector, (0, 0, 0) for a null vector
    """
    v = np.asarray(vector, dtype=float)
    magnitude = np.linalg.norm(v)
    if magnitude == 0:
        return (0.0, 0.0, 0.0)
    return tuple(float(c) for c in v / magnitude)


def _newell_vector(points: Sequence[Sequence[float]]) -> np.ndarray:
    pts = np.asarray(points, dtype=float)
    nxt = np.roll(pts, -1, axis=0)
    return np.array([
        np.sum((pts[:, 1] - nxt[:, 1]) * (pts[:, 2] + nxt[:, 2])),
        np.sum((pts[:, 2] - nxt[:, 2]) * (pts[:, 0] + nxt[:, 0])),
        np.sum((pts[:, 0] - nxt[:, 0]) * (pts[:, 1] + nxt[:, 1])),
    ])


def polygon_normal(points: Sequence[Sequence[float]]) -> Point3D:
    """
    Unit normal of a planar polygon (Newell's method).

    Args:
        points: Ordered 3D vertices

    Returns:
        Unit normal following the right-hand rule

    Raises:
        GeometryError: fewer than 3 vertices or zero area
    """
    if len(points) < 3:
        raise GeometryError(f"polygon has {len(points)} vertices, at least 3 required")
    newell = _newell_vector(points)
    magnitude = np.linalg.norm(newell)
    if magnitude < EPSILON:
        raise GeometryError("polygon has zero area")
    return tuple(float(c) for c in newell / magnitude)


def polygon_area(points: Sequence[Sequence[float]]) -> float:
    """Area of a planar 3D polygon in square meters."""
    if len(points) < 3:
        return 0.0
    return float(0.5 * np.linalg.norm(_newell_vector(points)))


def polygon_area_2d(points: Sequence[Sequence[float]]) -> float:
    """Area of a 2D polygon (shoelace formula)."""
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=float)[:, :2]
    x, y = pts[:, 0], pts[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


def polygon_perimeter_2d(points: Sequence[Sequence[float]]) -> float:
    """Perimeter of a closed 2D polygon."""
    if len(points) < 2:
        return 0.0
    return sum(
        calculate_distance((*points[i][:2], 0.0), (*points[(i + 1) % len(points)][:2], 0.0))
        for i in range(len(points))
    )


def is_planar(points: Sequence[Sequence[float]], tolerance: float = 1e-3) -> bool:
    """
    Check that every vertex lies on the polygon's mean plane.

    Args:
        points: Ordered 3D vertices
        tolerance: Maximum allowed distance to the plane in meters
    """
    try:
        normal = np.asarray(polygon_normal(points))
    except GeometryError:
        return False
    pts = np.asarray(points, dtype=float)
    centroid = pts.mean(axis=0)
    distances = np.abs((pts - centroid) @ normal)
    return bool(np.all(distances <= tolerance))


def azimuth_from_normal(normal: Sequence[float]) -> float:
    """
    Azimuth of a surface normal in degrees (0 = North, 90 = East, 180 = South).

    Horizontal surfaces report 0.
    """
    nx, ny = float(normal[0]), float(normal[1])
    if math.hypot(nx, ny) < EPSILON:
        return 0.0
    return math.degrees(math.atan2(nx, ny)) % 360.0


def tilt_from_normal(normal: Sequence[float]) -> float:
    """Tilt of a surface in degrees (0 = facing up, 90 = vertical, 180 = facing down)."""
    return calculate_angle(normal, (0.0, 0.0, 1.0))


def plane_axes(normal: Sequence[float]) -> Tuple[Point3D, Point3D]:
    """
    In-plane axes (u, v) of a surface seen from outside.

    u is horizontal and runs left to right, v points upwards along the
    surface, and u x v equals the normal.
    """
    n = np.asarray(normalize_vector(normal))
    if np.linalg.norm(n) == 0:
        raise GeometryError("null normal vector")
    u = np.cross((0.0, 0.0, 1.0), n)
    if np.linalg.norm(u) < EPSILON:
        u = np.array([1.0, 0.0, 0.0])
    u = u / np.linalg.norm(u)
    v = np.cross(n, u)
    return tuple(float(c) for c in u), tuple(float(c) for c in v)


def rectangle_on_plane(
    origin: Sequence[float],
    normal: Sequence[float],
    x: float,
    y: float,
    width: float,
    height: float,
) -> List[Point3D]:
    """
    Rectangle lying on a plane, given in the plane's local (u, v) coordinates.

    Args:
        origin: Plane origin (local 0, 0)
        normal: Plane outward normal
        x, y: Lower-left corner in local coordinates
        width, height: Rectangle size along u and v

    Returns:
        Four 3D vertices ordered counter-clockwise seen from outside
    """
    u, v = (np.asarray(a) for a in plane_axes(normal))
    o = np.asarray(origin, dtype=float)
    corners = [(x, y), (x + width, y), (x + width, y + height), (x, y + height)]
    return [tuple(float(c) for c in o + cu * u + cv * v) for cu, cv in corners]


def plane_origin(points: Sequence[Sequence[float]], normal: Sequence[float]) -> Point3D:
    """Lower-left corner of a planar polygon's bounding rectangle in its (u, v) axes."""
    u, v = (np.asarray(a) for a in plane_axes(normal))
    n = np.asarray(normalize_vector(normal))
    pts = np.asarray(points, dtype=float)
    origin = u * np.min(pts @ u) + v * np.min(pts @ v) + n * float(pts[0] @ n)
    return tuple(float(c) for c in origin)


def direction_from_angles(azimuth: float, tilt: float) -> Point3D:
    """Unit normal of a surface given its azimuth and tilt in degrees."""
    az = math.radians(azimuth)
    tl = math.radians(tilt)
    return (math.sin(az) * math.sin(tl), math.cos(az) * math.sin(tl), math.cos(tl))


def translate_polygon(points: Sequence[Sequence[float]], offset: Sequence[float]) -> List[Point3D]:
    """Translate every vertex by an offset vector."""
    delta = np.asarray(offset, dtype=float)
    return [tuple(float(c) for c in np.asarray(p, dtype=float) + delta) for p in points]


def clip_polygon_to_halfspace(
    points: Sequence[Sequence[float]],
    plane_point: Sequence[float],
    plane_normal: Sequence[float],
    tolerance: float = 1e-9,
) -> List[Point3D]:
    """
    Keep the part of a polygon on the positive side of a plane (Sutherland-Hodgman).

    Args:
        points: Ordered 3D vertices
        plane_point: Any point of the clipping plane
        plane_normal: Normal pointing to the kept half-space
        tolerance: Vertices closer than this to the plane count as inside

    Returns:
        Clipped polygon vertices (may be empty)
    """
    p0 = np.asarray(plane_point, dtype=float)
    n = np.asarray(plane_normal, dtype=float)
    pts = [np.asarray(p, dtype=float) for p in points]
    distances = [float(np.dot(p - p0, n)) for p in pts]

    clipped: List[Point3D] = []
    for i, current in enumerate(pts):
        previous = pts[i - 1]
        d_cur, d_prev = distances[i], distances[i - 1]
        cur_inside = d_cur >= -tolerance
        prev_inside = d_prev >= -tolerance
        if cur_inside != prev_inside:
            t = d_prev / (d_prev - d_cur)
            crossing = previous + t * (current - previous)
            clipped.append(tuple(float(c) for c in crossing))
        if cur_inside:
            clipped.append(tuple(float(c) for c in current))
    return clipped


def project_along_ray(points: Sequence[Sequence[float]], direction: Sequence[float]) -> List[Point2D]:
    """
    Project 3D points onto the z = 0 plane along a ray direction.

    Each vertex maps to P' = P - (P_z / d_z) * d.

    Raises:
        GeometryError: the ray is parallel to the projection plane
    """
    d = np.asarray(direction, dtype=float)
    if abs(d[2]) < EPSILON:
        raise GeometryError("ray direction is parallel to the projection plane")
    pts = np.asarray(points, dtype=float)
    projected = pts - np.outer(pts[:, 2] / d[2], d)
    return [(float(p[0]), float(p[1])) for p in projected]
