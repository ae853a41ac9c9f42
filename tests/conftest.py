"""
Pytest configuration and fixtures for the envelope calculation tests.

Provides reusable test fixtures for:
- Construction catalog and resolver
- A 10 x 10 x 3 m conditioned box with a south window
- The same box with an unconditioned garage to the east
- Sample project description and configuration
"""

from pathlib import Path

import pytest

from core.construction_resolver import ConstructionResolver, EdgeCorrectionTable
from models.building import (
    BoundaryCondition,
    Building,
    Catalog,
    ElementKind,
    EnvelopeElement,
    Frame,
    Glass,
    Layer,
    Material,
    OpaqueConstruction,
    Space,
    SpaceType,
    ThermalBridge,
    WindowConstruction,
)
from utils.config_loader import load_config


def vertical_wall(element_id, space_id, start, end, height=3.0, z=0.0,
                  boundary=BoundaryCondition.EXTERIOR, construction_id='WALL', next_to=None, name=None):
    """Rectangular wall from start to end in plan; outward normal on the right of start -> end."""
    (x0, y0), (x1, y1) = start, end
    return EnvelopeElement(
        id=element_id,
        name=name or element_id,
        kind=ElementKind.WALL,
        space_id=space_id,
        boundary=boundary,
        construction_id=construction_id,
        polygon=[(x0, y0, z), (x1, y1, z), (x1, y1, z + height), (x0, y0, z + height)],
        next_to=next_to,
    )


def horizontal_surface(element_id, space_id, footprint, z, facing_up=True,
                       boundary=BoundaryCondition.EXTERIOR, construction_id='ROOF', kind=None):
    """Roof (facing up) or floor (facing down) over a counter-clockwise footprint."""
    points = [(x, y, z) for x, y in footprint]
    if not facing_up:
        points = list(reversed(points))
    return EnvelopeElement(
        id=element_id,
        name=element_id,
        kind=kind or (ElementKind.ROOF if facing_up else ElementKind.FLOOR),
        space_id=space_id,
        boundary=boundary,
        construction_id=construction_id,
        polygon=points,
    )


# =============================================================================
# PATH FIXTURES
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def data_dir() -> Path:
    """Test data directory."""
    return Path(__file__).parent / "data"


@pytest.fixture
def sample_project(data_dir) -> Path:
    """Two-space sample project description."""
    return data_dir / "sample_project.yaml"


@pytest.fixture
def config(project_root) -> dict:
    """Configuration shipped with the project."""
    return load_config(str(project_root / "config.yaml"))


# =============================================================================
# CATALOG FIXTURES
# =============================================================================

@pytest.fixture
def catalog() -> Catalog:
    """Small catalog: insulated wall, roof, slab, brick partition and a double glazed window."""
    catalog = Catalog()
    for material in [
        Material(id='BRICK', name='Brick', conductivity=0.5),
        Material(id='INSUL', name='Mineral wool', conductivity=0.04),
        Material(id='CONCRETE', name='Concrete', conductivity=2.0),
        Material(id='AIR', name='Air gap', air_gap=True),
        Material(id='BOARD', name='Board', resistance=0.1),
    ]:
        catalog.materials[material.id] = material

    catalog.opaque_constructions['WALL'] = OpaqueConstruction(
        id='WALL', name='Insulated brick wall',
        layers=[Layer('BRICK', 0.1), Layer('INSUL', 0.1)],
    )
    catalog.opaque_constructions['ROOF'] = OpaqueConstruction(
        id='ROOF', name='Flat roof',
        layers=[Layer('INSUL', 0.12), Layer('CONCRETE', 0.2)],
    )
    catalog.opaque_constructions['SLAB'] = OpaqueConstruction(
        id='SLAB', name='Ground slab',
        layers=[Layer('CONCRETE', 0.15), Layer('INSUL', 0.05)],
    )
    catalog.opaque_constructions['PARTITION'] = OpaqueConstruction(
        id='PARTITION', name='Brick partition',
        layers=[Layer('BRICK', 0.1)],
    )
    catalog.glasses['DG'] = Glass(id='DG', name='Double glazing 4/12/4', u_value=2.8, g_normal=0.75)
    catalog.frames['AL'] = Frame(id='AL', name='Aluminium with thermal break', u_value=3.0)
    catalog.window_constructions['WIN'] = WindowConstruction(
        id='WIN', name='Double glazed window', glass_id='DG', frame_id='AL',
        frame_fraction=0.25, spacer_class='metal',
    )
    return catalog


@pytest.fixture
def edge_table() -> EdgeCorrectionTable:
    return EdgeCorrectionTable.from_config([
        {'spacer_class': 'metal', 'shutter_box_present': False, 'percent': 10.0},
        {'spacer_class': 'metal', 'shutter_box_present': True, 'percent': 25.0},
        {'spacer_class': None, 'shutter_box_present': False, 'percent': 0.0},
        {'spacer_class': None, 'shutter_box_present': True, 'percent': 15.0},
    ])


@pytest.fixture
def resolver(catalog, edge_table) -> ConstructionResolver:
    return ConstructionResolver(catalog, edge_table)


# =============================================================================
# BUILDING FIXTURES
# =============================================================================

BOX_FOOTPRINT = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]
GARAGE_FOOTPRINT = [(10.0, 0.0), (15.0, 0.0), (15.0, 10.0), (10.0, 10.0)]


@pytest.fixture
def box_building(catalog) -> Building:
    """
    Conditioned 10 x 10 x 3 m box on the ground.

    Four exterior walls, a flat roof, a slab on ground, a 2 x 1.5 m south
    window and one thermal bridge.
    """
    building = Building(id='BOX', name='Test box', catalog=catalog)
    building.add_space(Space(id='S1', name='Living room', polygon=list(BOX_FOOTPRINT), height=3.0))

    building.add_element(vertical_wall('W_S', 'S1', (0, 0), (10, 0)))
    building.add_element(vertical_wall('W_E', 'S1', (10, 0), (10, 10)))
    building.add_element(vertical_wall('W_N', 'S1', (10, 10), (0, 10)))
    building.add_element(vertical_wall('W_W', 'S1', (0, 10), (0, 0)))
    building.add_element(horizontal_surface('ROOF', 'S1', BOX_FOOTPRINT, 3.0))
    building.add_element(horizontal_surface(
        'FLOOR', 'S1', BOX_FOOTPRINT, 0.0, facing_up=False,
        boundary=BoundaryCondition.GROUND, construction_id='SLAB',
    ))
    building.add_element(EnvelopeElement(
        id='WIN_S',
        name='South window',
        kind=ElementKind.WINDOW,
        space_id='S1',
        boundary=BoundaryCondition.EXTERIOR,
        construction_id='WIN',
        polygon=[(2.0, 0.0, 1.0), (4.0, 0.0, 1.0), (4.0, 0.0, 2.5), (2.0, 0.0, 2.5)],
        parent_wall_id='W_S',
    ))
    building.add_thermal_bridge(ThermalBridge(id='TB1', name='Roof edge', psi=0.1, length=40.0))
    return building


@pytest.fixture
def garage_building(box_building) -> Building:
    """Box whose east wall is a partition to an unconditioned garage outside the envelope."""
    building = box_building
    building.add_space(Space(
        id='GARAGE', name='Garage', polygon=list(GARAGE_FOOTPRINT), height=3.0,
        space_type=SpaceType.UNCONDITIONED, inside_envelope=False, air_changes=0.5,
    ))
    building.add_element(vertical_wall(
        'W_E', 'S1', (10, 0), (10, 10), boundary=BoundaryCondition.INTERIOR,
        construction_id='PARTITION', next_to='GARAGE', name='Partition to garage',
    ))
    building.add_element(vertical_wall('G_S', 'GARAGE', (10, 0), (15, 0)))
    building.add_element(vertical_wall('G_E', 'GARAGE', (15, 0), (15, 10)))
    building.add_element(vertical_wall('G_N', 'GARAGE', (15, 10), (10, 10)))
    building.add_element(horizontal_surface('G_ROOF', 'GARAGE', GARAGE_FOOTPRINT, 3.0))
    building.add_element(horizontal_surface(
        'G_FLOOR', 'GARAGE', GARAGE_FOOTPRINT, 0.0, facing_up=False,
        boundary=BoundaryCondition.GROUND, construction_id='SLAB',
    ))
    return building
