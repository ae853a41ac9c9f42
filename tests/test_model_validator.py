"""
Tests for element graph validation.
"""

from importers import ModelValidator, ProjectImporter
from models.building import Building, Space, SpaceType


class TestModelValidator:
    """Tests for ModelValidator.validate."""

    def test_sample_project_is_valid(self, sample_project, config):
        building = ProjectImporter(str(sample_project), config).import_model()[0]
        result = ModelValidator.validate(building)
        assert result.is_valid, result.errors
        assert result.element_counts == {'SPACE': 2, 'FLOOR': 2, 'ROOF': 2, 'WALL': 7, 'WINDOW': 3}
        assert any('WIN_S2' in message for message in result.info)
        assert "VALID" in result.get_summary()

    def test_box_is_valid(self, box_building):
        result = ModelValidator.validate(box_building)
        assert result.is_valid
        assert result.errors == []

    def test_unknown_references(self, box_building):
        box_building.elements['W_N'].construction_id = 'MISSING'
        box_building.elements['WIN_S'].parent_wall_id = 'NOWHERE'
        result = ModelValidator.validate(box_building)
        assert not result.is_valid
        assert any('MISSING' in e for e in result.errors)
        assert any('NOWHERE' in e for e in result.errors)
        assert "INVALID" in result.get_summary()

    def test_degenerate_polygon(self, box_building):
        box_building.elements['W_N'].polygon = [(0, 10, 0), (5, 10, 0), (10, 10, 0)]
        result = ModelValidator.validate(box_building)
        assert not result.is_valid
        assert any('W_N' in e and 'zero area' in e for e in result.errors)

    def test_non_planar_polygon(self, box_building):
        box_building.elements['W_N'].polygon = [(10, 10, 0), (0, 10, 0), (0, 10.5, 3), (10, 10, 3)]
        result = ModelValidator.validate(box_building)
        assert any('not planar' in e for e in result.errors)

    def test_oversized_windows(self, box_building):
        box_building.elements['WIN_S'].polygon = [(-1, 0, -1), (12, 0, -1), (12, 0, 4), (-1, 0, 4)]
        result = ModelValidator.validate(box_building)
        assert any('larger than the element' in e for e in result.errors)

    def test_missing_ventilation_is_a_warning(self, garage_building):
        garage_building.spaces['GARAGE'].air_changes = None
        result = ModelValidator.validate(garage_building)
        assert result.is_valid
        assert any('GARAGE' in w for w in result.warnings)

    def test_zero_height_space(self):
        building = Building(id='B', name='Flat')
        building.add_space(Space(
            id='S', name='Flat room', polygon=[(0, 0), (1, 0), (1, 1)], height=0.0,
            space_type=SpaceType.UNINHABITED,
        ))
        result = ModelValidator.validate(building)
        assert not result.is_valid
