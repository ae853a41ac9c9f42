"""
Tests for the polygon and projection helpers.
"""

import math

import pytest

from utils.errors import GeometryError
from utils.geometry_utils import (
    azimuth_from_normal,
    calculate_angle,
    calculate_distance,
    clip_polygon_to_halfspace,
    direction_from_angles,
    is_planar,
    normalize_vector,
    plane_axes,
    plane_origin,
    polygon_area,
    polygon_area_2d,
    polygon_normal,
    polygon_perimeter_2d,
    project_along_ray,
    rectangle_on_plane,
    tilt_from_normal,
)

SOUTH_WALL = [(0, 0, 0), (10, 0, 0), (10, 0, 3), (0, 0, 3)]


class TestVectors:
    """Tests for distance, angle and normalization."""

    def test_distance(self):
        assert calculate_distance((0, 0, 0), (3, 4, 0)) == pytest.approx(5.0)

    def test_angle(self):
        assert calculate_angle((1, 0, 0), (0, 1, 0)) == pytest.approx(90.0)
        assert calculate_angle((1, 0, 0), (-1, 0, 0)) == pytest.approx(180.0)

    def test_angle_of_null_vector(self):
        assert calculate_angle((0, 0, 0), (1, 0, 0)) == 0.0

    def test_normalize(self):
        assert normalize_vector((0, 3, 4)) == pytest.approx((0.0, 0.6, 0.8))
        assert normalize_vector((0, 0, 0)) == (0.0, 0.0, 0.0)


class TestPolygonProperties:
    """Tests for normals, areas and orientation angles."""

    def test_normal_follows_right_hand_rule(self):
        assert polygon_normal(SOUTH_WALL) == pytest.approx((0.0, -1.0, 0.0))
        assert polygon_normal(list(reversed(SOUTH_WALL))) == pytest.approx((0.0, 1.0, 0.0))

    def test_degenerate_polygon_raises(self):
        with pytest.raises(GeometryError):
            polygon_normal([(0, 0, 0), (1, 0, 0)])
        with pytest.raises(GeometryError):
            polygon_normal([(0, 0, 0), (1, 0, 0), (2, 0, 0)])

    def test_areas(self):
        assert polygon_area(SOUTH_WALL) == pytest.approx(30.0)
        assert polygon_area_2d([(0, 0), (10, 0), (10, 10), (0, 10)]) == pytest.approx(100.0)
        assert polygon_perimeter_2d([(0, 0), (10, 0), (10, 10), (0, 10)]) == pytest.approx(40.0)

    def test_non_convex_area(self):
        l_shape = [(0, 0), (2, 0), (2, 1), (1, 1), (1, 2), (0, 2)]
        assert polygon_area_2d(l_shape) == pytest.approx(3.0)

    def test_planarity(self):
        assert is_planar(SOUTH_WALL)
        warped = [(0, 0, 0), (10, 0, 0), (10, 0.5, 3), (0, 0, 3)]
        assert not is_planar(warped, tolerance=1e-3)

    @pytest.mark.parametrize("normal,azimuth", [
        ((0, 1, 0), 0.0),
        ((1, 0, 0), 90.0),
        ((0, -1, 0), 180.0),
        ((-1, 0, 0), 270.0),
    ])
    def test_azimuth(self, normal, azimuth):
        assert azimuth_from_normal(normal) == pytest.approx(azimuth)

    def test_tilt(self):
        assert tilt_from_normal((0, 0, 1)) == pytest.approx(0.0)
        assert tilt_from_normal((0, -1, 0)) == pytest.approx(90.0)
        assert tilt_from_normal((0, 0, -1)) == pytest.approx(180.0)

    def test_direction_from_angles_matches_azimuth_and_tilt(self):
        normal = direction_from_angles(135.0, 90.0)
        assert azimuth_from_normal(normal) == pytest.approx(135.0)
        assert tilt_from_normal(normal) == pytest.approx(90.0)


class TestPlaneCoordinates:
    """Tests for local wall coordinates."""

    def test_axes_of_south_wall(self):
        u, v = plane_axes((0, -1, 0))
        assert u == pytest.approx((1.0, 0.0, 0.0))
        assert v == pytest.approx((0.0, 0.0, 1.0))

    def test_axes_of_horizontal_surface(self):
        u, v = plane_axes((0, 0, 1))
        assert u == pytest.approx((1.0, 0.0, 0.0))
        assert v == pytest.approx((0.0, 1.0, 0.0))

    def test_rectangle_keeps_plane_normal(self):
        normal = (0.0, 1.0, 0.0)
        rect = rectangle_on_plane((10, 10, 0), normal, 1.0, 0.5, 2.0, 1.0)
        assert polygon_normal(rect) == pytest.approx(normal)
        assert polygon_area(rect) == pytest.approx(2.0)

    def test_origin_of_north_wall(self):
        north_wall = [(10, 10, 0), (0, 10, 0), (0, 10, 3), (10, 10, 3)]
        origin = plane_origin(north_wall, polygon_normal(north_wall))
        # Lower-left corner seen from outside is the east end
        assert origin == pytest.approx((10.0, 10.0, 0.0))


class TestClipAndProject:
    """Tests for half-space clipping and projection along a ray."""

    def test_clip_keeps_front_part(self):
        square = [(0, -1, 0), (1, -1, 0), (1, 1, 0), (0, 1, 0)]
        clipped = clip_polygon_to_halfspace(square, (0, 0, 0), (0, -1, 0))
        assert len(clipped) == 4
        assert max(p[1] for p in clipped) == pytest.approx(0.0)
        assert polygon_area(clipped) == pytest.approx(1.0)

    def test_clip_everything_behind(self):
        square = [(0, 1, 0), (1, 1, 0), (1, 2, 0), (0, 2, 0)]
        assert clip_polygon_to_halfspace(square, (0, 0, 0), (0, -1, 0)) == []

    def test_project_along_vertical_ray(self):
        points = [(1, 2, 3), (4, 5, 6)]
        assert project_along_ray(points, (0, 0, -1)) == pytest.approx([(1, 2), (4, 5)])

    def test_project_along_oblique_ray(self):
        c = math.cos(math.radians(45))
        projected = project_along_ray([(0, 0, 2)], (0, c, -c))
        assert projected[0] == pytest.approx((0.0, 2.0))

    def test_project_along_horizontal_ray_raises(self):
        with pytest.raises(GeometryError):
            project_along_ray([(0, 0, 1)], (0, 1, 0))
