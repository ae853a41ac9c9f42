"""
Building data models: the resolved element graph of a project.

Spaces, envelope elements (walls, roofs, floors, windows), the construction
catalog, obstruction geometry and linear thermal bridges. Everything here is
read-only once a calculation run starts.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from utils.errors import CatalogError
from utils.geometry_utils import (
    azimuth_from_normal,
    polygon_area,
    polygon_area_2d,
    polygon_normal,
    polygon_perimeter_2d,
    tilt_from_normal,
)

logger = logging.getLogger(__name__)

Point2D = Tuple[float, float]
Point3D = Tuple[float, float, float]


class BoundaryCondition(Enum):
    """What lies on the other side of an envelope element."""

    EXTERIOR = 'EXTERIOR'
    GROUND = 'GROUND'
    ADIABATIC = 'ADIABATIC'
    INTERIOR = 'INTERIOR'


class ElementKind(Enum):
    WALL = 'WALL'
    ROOF = 'ROOF'
    FLOOR = 'FLOOR'
    WINDOW = 'WINDOW'


class Position(Enum):
    """Position of a surface, derived from its tilt."""

    TOP = 'TOP'
    SIDE = 'SIDE'
    BOTTOM = 'BOTTOM'

    @classmethod
    def from_tilt(cls, tilt: float) -> 'Position':
        if tilt <= 60.0:
            return cls.TOP
        if tilt >= 120.0:
            return cls.BOTTOM
        return cls.SIDE


class Orientation(Enum):
    """Compass sector of a vertical surface, HZ for roofs and floors."""

    N = 'N'
    NE = 'NE'
    E = 'E'
    SE = 'SE'
    S = 'S'
    SW = 'SW'
    W = 'W'
    NW = 'NW'
    HZ = 'HZ'

    @classmethod
    def from_azimuth(cls, azimuth: float, tilt: float = 90.0) -> 'Orientation':
        if Position.from_tilt(tilt) != Position.SIDE:
            return cls.HZ
        sectors = [cls.N, cls.NE, cls.E, cls.SE, cls.S, cls.SW, cls.W, cls.NW]
        return sectors[int(((azimuth % 360.0) + 22.5) // 45.0) % 8]


class SpaceType(Enum):
    CONDITIONED = 'CONDITIONED'
    UNCONDITIONED = 'UNCONDITIONED'
    UNINHABITED = 'UNINHABITED'


@dataclass
class Space:
    """Room or zone of the building."""

    id: str
    name: str
    polygon: List[Point2D]  # Footprint in plan (x, y) in meters
    height: float = 3.0  # Floor-to-floor height in meters
    z: float = 0.0  # Floor level; negative means below ground
    space_type: SpaceType = SpaceType.CONDITIONED
    inside_envelope: bool = True
    multiplier: int = 1
    exposed_perimeter: Optional[float] = None  # Ground slab perimeter exposed to the exterior
    air_changes: Optional[float] = None  # n_v in 1/h, for unconditioned spaces
    properties: Dict = field(default_factory=dict)

    @property
    def area(self) -> float:
        """Floor area in square meters."""
        return polygon_area_2d(self.polygon)

    @property
    def perimeter(self) -> float:
        return polygon_perimeter_2d(self.polygon)

    @property
    def is_conditioned(self) -> bool:
        return self.space_type == SpaceType.CONDITIONED

    @property
    def is_habitable(self) -> bool:
        return self.space_type != SpaceType.UNINHABITED


@dataclass
class EnvelopeElement:
    """Wall, roof, floor or window bounding a space."""

    id: str
    name: str
    kind: ElementKind
    space_id: str
    boundary: BoundaryCondition
    construction_id: str
    polygon: List[Point3D]  # Ordered vertices, right-hand rule gives the outward normal
    next_to: Optional[str] = None  # Adjacent space for INTERIOR elements
    parent_wall_id: Optional[str] = None  # Host element of a window
    obstruction_ids: List[str] = field(default_factory=list)  # Obstructions shading a window
    setback: float = 0.0  # Window recess from the wall's outer face in meters
    ground_depth: Optional[float] = None  # Buried depth override; defaults to the space level
    excluded: bool = False  # Excluded from regulatory aggregates by naming convention
    properties: Dict = field(default_factory=dict)

    @property
    def is_window(self) -> bool:
        return self.kind == ElementKind.WINDOW

    @property
    def normal(self) -> Point3D:
        return polygon_normal(self.polygon)

    @property
    def area(self) -> float:
        """Gross polygon area in square meters."""
        return polygon_area(self.polygon)

    @property
    def azimuth(self) -> float:
        return azimuth_from_normal(self.normal)

    @property
    def tilt(self) -> float:
        return tilt_from_normal(self.normal)

    @property
    def position(self) -> Position:
        return Position.from_tilt(self.tilt)

    @property
    def orientation(self) -> Orientation:
        return Orientation.from_azimuth(self.azimuth, self.tilt)


@dataclass
class Material:
    """
    Opaque material.

    Either ``conductivity`` (W/mK) or a fixed ``resistance`` (m2K/W) is given.
    Air gaps take their resistance from the air layer table by thickness.
    """

    id: str
    name: str
    conductivity: Optional[float] = None
    resistance: Optional[float] = None
    air_gap: bool = False
    density: Optional[float] = None
    specific_heat: Optional[float] = None


@dataclass
class Layer:
    material_id: str
    thickness: float  # meters


@dataclass
class OpaqueConstruction:
    """Layered construction, layers ordered from exterior to interior."""

    id: str
    name: str
    layers: List[Layer] = field(default_factory=list)
    absorptance: float = 0.6

    @property
    def thickness(self) -> float:
        return sum(layer.thickness for layer in self.layers)


@dataclass
class Glass:
    id: str
    name: str
    u_value: float  # Center-of-glass U in W/m2K
    g_normal: float  # Solar factor at normal incidence


@dataclass
class Frame:
    id: str
    name: str
    u_value: float
    absorptivity: float = 0.6


@dataclass
class WindowConstruction:
    """Glazing plus frame assembly."""

    id: str
    name: str
    glass_id: str
    frame_id: str
    frame_fraction: float = 0.25  # Frame area over total window area
    spacer_class: Optional[str] = None
    shutter_box: bool = False
    delta_u_percent: Optional[float] = None  # Overrides the edge correction table
    g_shading_on: Optional[float] = None  # g_gl;sh;wi with mobile shading active
    air_permeability: float = 27.0  # m3/h.m2 at 100 Pa


@dataclass
class Obstruction:
    """Shading surface. Pure geometry, no thermal role."""

    id: str
    name: str
    polygon: List[Point3D]

    @property
    def area(self) -> float:
        return polygon_area(self.polygon)


@dataclass
class ThermalBridge:
    id: str
    name: str
    psi: float  # W/mK
    length: float  # meters


@dataclass
class Catalog:
    """Materials and constructions referenced by the envelope elements."""

    materials: Dict[str, Material] = field(default_factory=dict)
    opaque_constructions: Dict[str, OpaqueConstruction] = field(default_factory=dict)
    glasses: Dict[str, Glass] = field(default_factory=dict)
    frames: Dict[str, Frame] = field(default_factory=dict)
    window_constructions: Dict[str, WindowConstruction] = field(default_factory=dict)

    def material(self, material_id: str, referenced_by: Optional[str] = None) -> Material:
        try:
            return self.materials[material_id]
        except KeyError:
            raise CatalogError('material', material_id, referenced_by) from None

    def opaque_construction(self, construction_id: str, referenced_by: Optional[str] = None) -> OpaqueConstruction:
        try:
            return self.opaque_constructions[construction_id]
        except KeyError:
            raise CatalogError('opaque construction', construction_id, referenced_by) from None

    def window_construction(self, construction_id: str, referenced_by: Optional[str] = None) -> WindowConstruction:
        try:
            return self.window_constructions[construction_id]
        except KeyError:
            raise CatalogError('window construction', construction_id, referenced_by) from None

    def glass(self, glass_id: str, referenced_by: Optional[str] = None) -> Glass:
        try:
            return self.glasses[glass_id]
        except KeyError:
            raise CatalogError('glass', glass_id, referenced_by) from None

    def frame(self, frame_id: str, referenced_by: Optional[str] = None) -> Frame:
        try:
            return self.frames[frame_id]
        except KeyError:
            raise CatalogError('frame', frame_id, referenced_by) from None


@dataclass
class BuildingMeta:
    """General project data."""

    name: str = ''
    climate_zone: str = 'D3'
    is_new_building: bool = True
    is_dwelling: bool = True
    num_dwellings: int = 1
    n50_test: Optional[float] = None  # Measured air change rate at 50 Pa
    global_ventilation_l_s: Optional[float] = None
    perimeter_insulation_depth: float = 0.0  # meters
    perimeter_insulation_resistance: float = 0.0  # m2K/W


@dataclass
class Building:
    """Resolved element graph of a building."""

    id: str
    name: str
    meta: BuildingMeta = field(default_factory=BuildingMeta)
    spaces: Dict[str, Space] = field(default_factory=dict)
    elements: Dict[str, EnvelopeElement] = field(default_factory=dict)
    obstructions: Dict[str, Obstruction] = field(default_factory=dict)
    thermal_bridges: Dict[str, ThermalBridge] = field(default_factory=dict)
    catalog: Catalog = field(default_factory=Catalog)
    location: Tuple[float, float] = (40.4168, -3.7038)  # (latitude, longitude)
    timezone: str = "Europe/Madrid"
    properties: Dict = field(default_factory=dict)

    def add_space(self, space: Space):
        self.spaces[space.id] = space

    def add_element(self, element: EnvelopeElement):
        self.elements[element.id] = element

    def add_obstruction(self, obstruction: Obstruction):
        self.obstructions[obstruction.id] = obstruction

    def add_thermal_bridge(self, bridge: ThermalBridge):
        self.thermal_bridges[bridge.id] = bridge

    @property
    def windows(self) -> List[EnvelopeElement]:
        return [e for e in self.elements.values() if e.is_window]

    @property
    def opaque_elements(self) -> List[EnvelopeElement]:
        return [e for e in self.elements.values() if not e.is_window]

    def windows_of_wall(self, wall_id: str) -> List[EnvelopeElement]:
        """Windows hosted by an opaque element."""
        return [w for w in self.windows if w.parent_wall_id == wall_id]

    def elements_of_space(self, space_id: str) -> List[EnvelopeElement]:
        """Opaque elements whose inner side faces the space."""
        return [e for e in self.opaque_elements if e.space_id == space_id]

    def elements_next_to_space(self, space_id: str) -> List[EnvelopeElement]:
        """Interior opaque elements whose outer side faces the space."""
        return [
            e for e in self.opaque_elements
            if e.boundary == BoundaryCondition.INTERIOR and e.next_to == space_id
        ]

    def other_space_id(self, element: EnvelopeElement, space_id: str) -> Optional[str]:
        """Space on the opposite side of an interior element."""
        if element.space_id == space_id:
            return element.next_to
        if element.next_to == space_id:
            return element.space_id
        return None

    def space_multiplier(self, element: EnvelopeElement) -> int:
        space = self.spaces.get(element.space_id)
        return space.multiplier if space else 1

    def net_area(self, element: EnvelopeElement) -> float:
        """Element area without hosted windows (windows return their own area)."""
        if element.is_window:
            return element.area
        openings = sum(w.area for w in self.windows_of_wall(element.id))
        return max(0.0, element.area - openings)

    def crosses_envelope(self, element: EnvelopeElement) -> Optional[bool]:
        """
        Whether an interior element separates the thermal envelope from an outer space.

        Exactly one side inside the envelope means it belongs to the envelope.
        Returns None when either side is unknown.
        """
        space = self.spaces.get(element.space_id)
        other = self.spaces.get(element.next_to) if element.next_to else None
        if space is None or other is None:
            return None
        return space.inside_envelope != other.inside_envelope

    def is_envelope_element(self, element: EnvelopeElement) -> bool:
        if element.is_window:
            host = self.elements.get(element.parent_wall_id)
            return host is not None and self.is_envelope_element(host)
        if element.boundary in (BoundaryCondition.EXTERIOR, BoundaryCondition.GROUND):
            space = self.spaces.get(element.space_id)
            return space is not None and space.inside_envelope
        if element.boundary == BoundaryCondition.INTERIOR:
            return bool(self.crosses_envelope(element))
        return False

    def envelope_elements(self) -> List[EnvelopeElement]:
        """
        Opaque elements of the thermal envelope.

        Exterior and ground elements of spaces inside the envelope, plus
        interior elements towards spaces outside it.
        """
        return [e for e in self.opaque_elements if self.is_envelope_element(e)]

    def envelope_windows(self) -> List[EnvelopeElement]:
        envelope_ids = {e.id for e in self.envelope_elements()}
        return [w for w in self.windows if w.parent_wall_id in envelope_ids]

    def exterior_windows(self) -> List[EnvelopeElement]:
        """Envelope windows in contact with outdoor air (the ones receiving sun)."""
        return [
            w for w in self.envelope_windows()
            if self.elements[w.parent_wall_id].boundary == BoundaryCondition.EXTERIOR
        ]

    def top_element_thickness(self, space_id: str) -> float:
        """Thickness of the roof or ceiling closing a space from above."""
        for element in self.opaque_elements:
            is_own_top = element.space_id == space_id and element.position == Position.TOP
            is_upper_floor = element.next_to == space_id and element.position == Position.BOTTOM
            if not (is_own_top or is_upper_floor):
                continue
            construction = self.catalog.opaque_constructions.get(element.construction_id)
            if construction is None:
                logger.warning(f"Construction {element.construction_id} of {element.id} not found, thickness ignored")
                return 0.0
            return construction.thickness
        return 0.0

    def ground_depth(self, element: EnvelopeElement) -> float:
        """
        Buried depth z of a ground element in meters.

        The element override wins; otherwise the depth of its space floor below ground.
        """
        if element.ground_depth is not None:
            return element.ground_depth
        space = self.spaces.get(element.space_id)
        return max(0.0, -space.z) if space else 0.0

    def space_net_height(self, space_id: str) -> float:
        space = self.spaces[space_id]
        return max(0.0, space.height - self.top_element_thickness(space_id))

    @property
    def a_ref(self) -> float:
        """Useful area of habitable spaces inside the thermal envelope."""
        return sum(
            s.area * s.multiplier for s in self.spaces.values()
            if s.inside_envelope and s.is_habitable
        )

    @property
    def vol_env_gross(self) -> float:
        return sum(s.area * s.height * s.multiplier for s in self.spaces.values() if s.inside_envelope)

    @property
    def vol_env_net(self) -> float:
        return sum(
            s.area * self.space_net_height(s.id) * s.multiplier
            for s in self.spaces.values() if s.inside_envelope
        )

    @property
    def vol_env_inh_net(self) -> float:
        return sum(
            s.area * self.space_net_height(s.id) * s.multiplier
            for s in self.spaces.values() if s.inside_envelope and s.is_habitable
        )
