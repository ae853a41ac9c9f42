"""
Tests for window obstruction fractions.

The test window is a 1 x 1 m square on a south facing wall (y = 0) between
z = 1 and z = 2. Rays are given directly, so each hour index is a fixed sun
position.
"""

import math

import pytest

from core.obstruction_calculator import ObstructionCalculator
from models.building import (
    BoundaryCondition,
    Building,
    ElementKind,
    EnvelopeElement,
    Obstruction,
)
from models.calculation_result import ObstructionResult
from utils.errors import CatalogError, GeometryError

C45 = math.cos(math.radians(45))

RAYS = {
    0: (0.0, C45, -C45),  # Sun due south at 45 degrees elevation
    1: None,  # Sun below the horizon
    2: (0.0, -C45, -C45),  # Sun due north, behind the window
    3: (0.0, 1.0, 0.0),  # Sun on the horizon
    4: (0.0, 0.0, -1.0),  # Sun at the zenith
}


def horizontal_slab(obstruction_id, x0, x1, y0, y1, z):
    return Obstruction(
        id=obstruction_id,
        name=obstruction_id,
        polygon=[(x0, y0, z), (x1, y0, z), (x1, y1, z), (x0, y1, z)],
    )


def make_building(*obstructions) -> Building:
    building = Building(id='OBS', name='Obstruction test')
    window = EnvelopeElement(
        id='WIN',
        name='South window',
        kind=ElementKind.WINDOW,
        space_id='S1',
        boundary=BoundaryCondition.EXTERIOR,
        construction_id='WIN',
        polygon=[(0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (1.0, 0.0, 2.0), (0.0, 0.0, 2.0)],
        obstruction_ids=[o.id for o in obstructions],
    )
    building.add_element(window)
    for obstruction in obstructions:
        building.add_obstruction(obstruction)
    return building


def calculator_for(*obstructions) -> ObstructionCalculator:
    return ObstructionCalculator(make_building(*obstructions), RAYS.get)


class TestObstructionFraction:
    """Tests for single-hour fractions."""

    def test_half_depth_overhang(self):
        # 0.5 m overhang at the window head shades the upper half at 45 degrees
        calculator = calculator_for(horizontal_slab('OVERHANG', 0.0, 1.0, -0.5, 0.0, 2.0))
        window = calculator.building.elements['WIN']
        assert calculator.obstruction_fraction(window, 0) == pytest.approx(0.5, abs=1e-9)

    def test_no_obstructions(self):
        calculator = calculator_for()
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == 0.0

    def test_disjoint_obstruction(self):
        calculator = calculator_for(horizontal_slab('FAR', 5.0, 6.0, -0.5, 0.0, 2.0))
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == 0.0

    def test_containing_obstruction(self):
        calculator = calculator_for(horizontal_slab('CANOPY', -10.0, 10.0, -10.0, 0.0, 2.0))
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == pytest.approx(1.0)

    def test_overlapping_obstructions_are_not_double_counted(self):
        calculator = calculator_for(
            horizontal_slab('OVERHANG_1', 0.0, 1.0, -0.5, 0.0, 2.0),
            horizontal_slab('OVERHANG_2', 0.0, 1.0, -0.5, 0.0, 2.0),
        )
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == pytest.approx(0.5)

    def test_strip_splits_the_sunlit_area(self):
        # Projects onto the band 1.4 < y' < 1.6, leaving two separate sunlit parts
        calculator = calculator_for(horizontal_slab('SLAT', 0.0, 1.0, -0.2, 0.0, 1.6))
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == pytest.approx(0.2)

    def test_non_convex_obstruction(self):
        l_shape = Obstruction(
            id='L',
            name='L-shaped canopy',
            polygon=[
                (0.0, 0.0, 2.0), (1.0, 0.0, 2.0), (1.0, -0.5, 2.0),
                (0.5, -0.5, 2.0), (0.5, -1.0, 2.0), (0.0, -1.0, 2.0),
            ],
        )
        calculator = calculator_for(l_shape)
        # Upper half fully shaded, plus the left half of the band below it
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == pytest.approx(0.75)

    def test_obstruction_behind_window_is_ignored(self):
        # Would overlap the projection if it were not clipped to the window front
        calculator = calculator_for(horizontal_slab('INSIDE', 0.0, 1.0, 0.0, 1.0, 1.5))
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == 0.0

    def test_obstruction_crossing_window_plane_is_clipped(self):
        # Only the 0.25 m in front of the facade casts shade, the whole slab would shade 0.75
        calculator = calculator_for(horizontal_slab('BEAM', 0.0, 1.0, -0.25, 0.5, 1.5))
        assert calculator.obstruction_fraction(calculator.building.elements['WIN'], 0) == pytest.approx(0.25)

    def test_fraction_is_bounded(self):
        calculator = calculator_for(
            horizontal_slab('A', 0.0, 1.0, -0.5, 0.0, 2.0),
            horizontal_slab('B', -1.0, 2.0, -3.0, 0.0, 2.0),
        )
        fraction = calculator.obstruction_fraction(calculator.building.elements['WIN'], 0)
        assert 0.0 <= fraction <= 1.0


class TestUndefinedHours:
    """Tests for hours without a defined fraction."""

    @pytest.mark.parametrize("hour", [1, 2, 3, 4])
    def test_geometry_error(self, hour):
        calculator = calculator_for(horizontal_slab('OVERHANG', 0.0, 1.0, -0.5, 0.0, 2.0))
        with pytest.raises(GeometryError) as exc_info:
            calculator.obstruction_fraction(calculator.building.elements['WIN'], hour)
        assert exc_info.value.geometry_id == 'WIN'

    def test_non_planar_window(self):
        building = make_building()
        building.elements['WIN'].polygon = [(0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (1.0, 0.3, 2.0), (0.0, 0.0, 2.0)]
        calculator = ObstructionCalculator(building, RAYS.get)
        with pytest.raises(GeometryError):
            calculator.obstruction_fraction(building.elements['WIN'], 0)

    def test_unknown_obstruction(self):
        building = make_building()
        building.elements['WIN'].obstruction_ids = ['GHOST']
        calculator = ObstructionCalculator(building, RAYS.get)
        with pytest.raises(CatalogError):
            calculator.obstruction_fraction(building.elements['WIN'], 0)

    def test_undefined_hours_are_recorded(self):
        calculator = calculator_for(horizontal_slab('OVERHANG', 0.0, 1.0, -0.5, 0.0, 2.0))
        result = calculator.hourly_fractions(calculator.building.elements['WIN'], [0, 1, 2])
        assert result.fractions[0] == pytest.approx(0.5)
        assert result.fractions[1] is None
        assert result.fractions[2] is None
        assert set(result.undefined_reasons) == {1, 2}
        assert "below the horizon" in result.undefined_reasons[1]
        assert result.defined_hours == [0]
        assert result.mean_fraction == pytest.approx(0.5)


class TestComputeAll:
    def test_results_per_window(self):
        calculator = calculator_for(horizontal_slab('OVERHANG', 0.0, 1.0, -0.5, 0.0, 2.0))
        results = calculator.compute_all([0, 1], max_workers=2)
        assert list(results) == ['WIN']
        assert results['WIN'].mean_fraction == pytest.approx(0.5)

    def test_ray_lookup_is_memoized(self):
        calls = []

        def ray(hour):
            calls.append(hour)
            return RAYS.get(hour)

        building = make_building(horizontal_slab('OVERHANG', 0.0, 1.0, -0.5, 0.0, 2.0))
        calculator = ObstructionCalculator(building, ray)
        window = building.elements['WIN']
        calculator.hourly_fractions(window, [0, 0, 1])
        calculator.hourly_fractions(window, [0, 1])
        assert sorted(calls) == [0, 1]


class TestObstructionResult:
    def test_mean_ignores_undefined_hours(self):
        result = ObstructionResult(window_id='W', fractions={0: 0.5, 1: None, 2: 1.0})
        assert result.mean_fraction == pytest.approx(0.75)
        assert result.shading_factor == pytest.approx(0.25)

    def test_no_defined_hour(self):
        result = ObstructionResult(window_id='W', fractions={0: None})
        assert result.mean_fraction is None
        assert result.shading_factor == 1.0
