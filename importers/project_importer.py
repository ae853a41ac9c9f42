"""
YAML project importer.

Loading runs in two phases: raw records are collected and checked for
required keys first, then every name reference is linked and validated
before the Building is assembled. Windows given by position on their
host wall get their 3D polygon and, when recessed, reveal obstructions.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from models.building import (
    BoundaryCondition,
    Building,
    BuildingMeta,
    Catalog,
    ElementKind,
    EnvelopeElement,
    Frame,
    Glass,
    Layer,
    Material,
    Obstruction,
    OpaqueConstruction,
    Space,
    SpaceType,
    ThermalBridge,
    WindowConstruction,
)
from utils.config_loader import get_config_value
from utils.errors import GeometryError, ModelReferenceError, ParseError
from utils.geometry_utils import (
    direction_from_angles,
    plane_origin,
    polygon_normal,
    rectangle_on_plane,
    translate_polygon,
)

from .base_importer import BaseImporter

logger = logging.getLogger(__name__)

REVEAL_NAMES = ('SILL', 'JAMB_RIGHT', 'HEAD', 'JAMB_LEFT')


def is_excluded_name(name: str, token: str) -> bool:
    """Whether an element name carries the exclusion token."""
    return bool(token) and token in (name or '')


def _require(record: Dict, key: str, context: str) -> Any:
    if not isinstance(record, dict):
        raise ParseError(f"{context}: expected a mapping, got {type(record).__name__}")
    if key not in record or record[key] is None:
        raise ParseError(f"{context}: missing required key '{key}'")
    return record[key]


def _enum(enum_cls, value: Any, context: str):
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ', '.join(m.value for m in enum_cls)
        raise ParseError(f"{context}: invalid value '{value}' (expected one of {allowed})") from None


def _points(value: Any, dims: int, context: str) -> List[tuple]:
    try:
        points = [tuple(float(c) for c in p) for p in value]
    except (TypeError, ValueError):
        raise ParseError(f"{context}: polygon must be a list of coordinate lists") from None
    if any(len(p) != dims for p in points):
        raise ParseError(f"{context}: every vertex needs {dims} coordinates")
    return points


class ProjectImporter(BaseImporter):
    """Imports a YAML project description into a resolved Building."""

    def __init__(self, file_path: str, config: Dict = None):
        super().__init__(file_path, config)
        self.exclusion_token = get_config_value(self.config, 'envelope.exclusion_token', '_EXCLUDED')
        self.raw: Dict[str, Any] = {}

    def import_model(self) -> List[Building]:
        path = Path(self.file_path)
        logger.info(f"Reading project description: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"{path}: invalid YAML: {e}") from e
        building = self.load_data(data or {})
        self.buildings = [building]
        return self.buildings

    def extract_elements(self) -> List[EnvelopeElement]:
        return [e for b in self.buildings for e in b.elements.values()]

    def load_data(self, data: Dict) -> Building:
        """
        Build the element graph from an already parsed description.

        Raises:
            ParseError: malformed record
            ModelReferenceError: dangling reference between records
        """
        if not isinstance(data, dict):
            raise ParseError("Project description must be a mapping")
        self.raw = self._collect(data)
        building = self._link(self.raw)
        logger.info(
            f"Loaded building {building.id}: {len(building.spaces)} space(s), "
            f"{len(building.opaque_elements)} opaque element(s), {len(building.windows)} window(s), "
            f"{len(building.obstructions)} obstruction(s), {len(building.thermal_bridges)} thermal bridge(s)"
        )
        return building

    # Phase 1: raw collection ---------------------------------------------

    def _collect(self, data: Dict) -> Dict[str, Any]:
        raw: Dict[str, Any] = {
            'building': data.get('building') or {},
            'meta': data.get('meta') or {},
            'materials': {},
            'opaque': {},
            'glasses': {},
            'frames': {},
            'windows': {},
            'spaces': {},
            'elements': {},
            'obstructions': {},
            'thermal_bridges': {},
        }
        constructions = data.get('constructions') or {}
        sections = [
            ('materials', data.get('materials')),
            ('opaque', constructions.get('opaque')),
            ('glasses', constructions.get('glasses')),
            ('frames', constructions.get('frames')),
            ('windows', constructions.get('windows')),
            ('spaces', data.get('spaces')),
            ('elements', data.get('elements')),
            ('obstructions', data.get('obstructions')),
            ('thermal_bridges', data.get('thermal_bridges')),
        ]
        for section, records in sections:
            for idx, record in enumerate(records or []):
                record_id = str(_require(record, 'id', f"{section}[{idx}]"))
                if record_id in raw[section]:
                    raise ParseError(f"{section}: duplicated id '{record_id}'")
                raw[section][record_id] = record
        return raw

    # Phase 2: link and validate ------------------------------------------

    def _link(self, raw: Dict[str, Any]) -> Building:
        info = raw['building']
        location = info.get('location') or {}
        building = Building(
            id=str(info.get('id', 'building')),
            name=str(info.get('name', info.get('id', 'building'))),
            meta=self._meta(raw['meta']),
            catalog=self._catalog(raw),
            location=(
                float(location.get('latitude', get_config_value(self.config, 'location.latitude', 40.4168))),
                float(location.get('longitude', get_config_value(self.config, 'location.longitude', -3.7038))),
            ),
            timezone=str(location.get('timezone', get_config_value(self.config, 'location.timezone', 'Europe/Madrid'))),
        )

        for space_id, record in raw['spaces'].items():
            building.add_space(self._space(space_id, record))

        for obstruction_id, record in raw['obstructions'].items():
            building.add_obstruction(self._obstruction(obstruction_id, record))
        shared = [oid for oid, rec in raw['obstructions'].items() if rec.get('applies_to_all')]

        windows = []
        for element_id, record in raw['elements'].items():
            kind = _enum(ElementKind, _require(record, 'kind', f"element {element_id}"), f"element {element_id}")
            if kind == ElementKind.WINDOW:
                windows.append((element_id, record))
            else:
                building.add_element(self._opaque_element(building, element_id, kind, record))

        # Windows after their host elements
        for element_id, record in windows:
            self._add_window(building, element_id, record, shared)

        for bridge_id, record in raw['thermal_bridges'].items():
            context = f"thermal bridge {bridge_id}"
            building.add_thermal_bridge(ThermalBridge(
                id=bridge_id,
                name=str(record.get('name', bridge_id)),
                psi=float(_require(record, 'psi', context)),
                length=float(_require(record, 'length', context)),
            ))
        return building

    def _meta(self, record: Dict) -> BuildingMeta:
        insulation = record.get('perimeter_insulation') or {}
        n50_test = record.get('n50_test')
        ventilation = record.get('global_ventilation_l_s')
        return BuildingMeta(
            name=str(record.get('name', '')),
            climate_zone=str(record.get('climate_zone', 'D3')),
            is_new_building=bool(record.get('is_new_building', True)),
            is_dwelling=bool(record.get('is_dwelling', True)),
            num_dwellings=int(record.get('num_dwellings', 1)),
            n50_test=float(n50_test) if n50_test is not None else None,
            global_ventilation_l_s=float(ventilation) if ventilation is not None else None,
            perimeter_insulation_depth=float(insulation.get('depth', 0.0)),
            perimeter_insulation_resistance=float(insulation.get('resistance', 0.0)),
        )

    def _catalog(self, raw: Dict[str, Any]) -> Catalog:
        catalog = Catalog()
        for material_id, record in raw['materials'].items():
            conductivity = record.get('conductivity')
            resistance = record.get('resistance')
            air_gap = bool(record.get('air_gap', False))
            if conductivity is None and resistance is None and not air_gap:
                raise ParseError(f"material {material_id}: needs conductivity, resistance or air_gap")
            catalog.materials[material_id] = Material(
                id=material_id,
                name=str(record.get('name', material_id)),
                conductivity=float(conductivity) if conductivity is not None else None,
                resistance=float(resistance) if resistance is not None else None,
                air_gap=air_gap,
                density=record.get('density'),
                specific_heat=record.get('specific_heat'),
            )

        for cons_id, record in raw['opaque'].items():
            context = f"construction {cons_id}"
            layers = []
            for idx, layer in enumerate(_require(record, 'layers', context)):
                material_id = str(_require(layer, 'material', f"{context} layer {idx}"))
                if material_id not in catalog.materials:
                    raise ModelReferenceError(f"{context}: unknown material '{material_id}'")
                layers.append(Layer(material_id=material_id,
                                    thickness=float(_require(layer, 'thickness', f"{context} layer {idx}"))))
            catalog.opaque_constructions[cons_id] = OpaqueConstruction(
                id=cons_id,
                name=str(record.get('name', cons_id)),
                layers=layers,
                absorptance=float(record.get('absorptance', 0.6)),
            )

        for glass_id, record in raw['glasses'].items():
            context = f"glass {glass_id}"
            catalog.glasses[glass_id] = Glass(
                id=glass_id,
                name=str(record.get('name', glass_id)),
                u_value=float(_require(record, 'u_value', context)),
                g_normal=float(_require(record, 'g_normal', context)),
            )

        for frame_id, record in raw['frames'].items():
            catalog.frames[frame_id] = Frame(
                id=frame_id,
                name=str(record.get('name', frame_id)),
                u_value=float(_require(record, 'u_value', f"frame {frame_id}")),
                absorptivity=float(record.get('absorptivity', 0.6)),
            )

        for cons_id, record in raw['windows'].items():
            context = f"window construction {cons_id}"
            glass_id = str(_require(record, 'glass', context))
            frame_id = str(_require(record, 'frame', context))
            if glass_id not in catalog.glasses:
                raise ModelReferenceError(f"{context}: unknown glass '{glass_id}'")
            if frame_id not in catalog.frames:
                raise ModelReferenceError(f"{context}: unknown frame '{frame_id}'")
            delta_u = record.get('delta_u_percent')
            g_shading_on = record.get('g_shading_on')
            catalog.window_constructions[cons_id] = WindowConstruction(
                id=cons_id,
                name=str(record.get('name', cons_id)),
                glass_id=glass_id,
                frame_id=frame_id,
                frame_fraction=float(record.get('frame_fraction', 0.25)),
                spacer_class=record.get('spacer_class'),
                shutter_box=bool(record.get('shutter_box', False)),
                delta_u_percent=float(delta_u) if delta_u is not None else None,
                g_shading_on=float(g_shading_on) if g_shading_on is not None else None,
                air_permeability=float(record.get('air_permeability', 27.0)),
            )
        return catalog

    def _space(self, space_id: str, record: Dict) -> Space:
        context = f"space {space_id}"
        exposed = record.get('exposed_perimeter')
        air_changes = record.get('air_changes')
        return Space(
            id=space_id,
            name=str(record.get('name', space_id)),
            polygon=_points(_require(record, 'polygon', context), 2, context),
            height=float(record.get('height', 3.0)),
            z=float(record.get('z', 0.0)),
            space_type=_enum(SpaceType, record.get('type', 'CONDITIONED'), context),
            inside_envelope=bool(record.get('inside_envelope', True)),
            multiplier=int(record.get('multiplier', 1)),
            exposed_perimeter=float(exposed) if exposed is not None else None,
            air_changes=float(air_changes) if air_changes is not None else None,
        )

    def _obstruction(self, obstruction_id: str, record: Dict) -> Obstruction:
        context = f"obstruction {obstruction_id}"
        if 'polygon' in record:
            polygon = _points(record['polygon'], 3, context)
        else:
            # Rectangle given by its lower-left corner, size and orientation
            origin = _points([_require(record, 'origin', context)], 3, context)[0]
            normal = direction_from_angles(float(record.get('azimuth', 0.0)), float(record.get('tilt', 90.0)))
            polygon = rectangle_on_plane(
                origin, normal, 0.0, 0.0,
                float(_require(record, 'width', context)),
                float(_require(record, 'height', context)),
            )
        return Obstruction(id=obstruction_id, name=str(record.get('name', obstruction_id)), polygon=polygon)

    def _opaque_element(self, building: Building, element_id: str, kind: ElementKind,
                        record: Dict) -> EnvelopeElement:
        context = f"element {element_id}"
        name = str(record.get('name', element_id))
        space_id = str(_require(record, 'space', context))
        boundary = _enum(BoundaryCondition, _require(record, 'boundary', context), context)
        construction_id = str(_require(record, 'construction', context))
        next_to = record.get('next_to')
        ground_depth = record.get('ground_depth')

        if space_id not in building.spaces:
            raise ModelReferenceError(f"{context}: unknown space '{space_id}'")
        if construction_id not in building.catalog.opaque_constructions:
            raise ModelReferenceError(f"{context}: unknown opaque construction '{construction_id}'")
        if boundary == BoundaryCondition.INTERIOR:
            if next_to is None:
                raise ModelReferenceError(f"{context}: interior element without adjacent space")
            if str(next_to) not in building.spaces:
                raise ModelReferenceError(f"{context}: unknown adjacent space '{next_to}'")

        return EnvelopeElement(
            id=element_id,
            name=name,
            kind=kind,
            space_id=space_id,
            boundary=boundary,
            construction_id=construction_id,
            polygon=_points(_require(record, 'polygon', context), 3, context),
            next_to=str(next_to) if next_to is not None else None,
            ground_depth=float(ground_depth) if ground_depth is not None else None,
            excluded=is_excluded_name(name, self.exclusion_token),
        )

    def _add_window(self, building: Building, element_id: str, record: Dict, shared: List[str]):
        context = f"window {element_id}"
        name = str(record.get('name', element_id))
        wall_id = str(_require(record, 'wall', context))
        construction_id = str(_require(record, 'construction', context))
        wall = building.elements.get(wall_id)
        if wall is None or wall.is_window:
            raise ModelReferenceError(f"{context}: unknown host element '{wall_id}'")
        if construction_id not in building.catalog.window_constructions:
            raise ModelReferenceError(f"{context}: unknown window construction '{construction_id}'")

        obstruction_ids = [str(o) for o in record.get('obstructions') or []]
        for obstruction_id in obstruction_ids:
            if obstruction_id not in building.obstructions:
                raise ModelReferenceError(f"{context}: unknown obstruction '{obstruction_id}'")
        obstruction_ids += [o for o in shared if o not in obstruction_ids]

        setback = float(record.get('setback', 0.0))
        if 'polygon' in record:
            polygon = _points(record['polygon'], 3, context)
        else:
            polygon = self._window_on_wall(wall, record, context)
            if setback > 0:
                for reveal in self._reveals(element_id, polygon, wall, setback):
                    building.add_obstruction(reveal)
                    obstruction_ids.append(reveal.id)
                polygon = translate_polygon(polygon, [-setback * c for c in polygon_normal(wall.polygon)])

        building.add_element(EnvelopeElement(
            id=element_id,
            name=name,
            kind=ElementKind.WINDOW,
            space_id=wall.space_id,
            boundary=wall.boundary,
            construction_id=construction_id,
            polygon=polygon,
            next_to=wall.next_to,
            parent_wall_id=wall.id,
            obstruction_ids=obstruction_ids,
            setback=setback,
            excluded=is_excluded_name(name, self.exclusion_token),
        ))

    def _window_on_wall(self, wall: EnvelopeElement, record: Dict, context: str):
        try:
            normal = polygon_normal(wall.polygon)
        except GeometryError as e:
            raise ParseError(f"{context}: host element {wall.id} has degenerate geometry ({e.reason})") from e
        origin = plane_origin(wall.polygon, normal)
        return rectangle_on_plane(
            origin, normal,
            float(_require(record, 'x', context)),
            float(_require(record, 'y', context)),
            float(_require(record, 'width', context)),
            float(_require(record, 'height', context)),
        )

    @staticmethod
    def _reveals(window_id: str, opening: List[tuple], wall: EnvelopeElement,
                 setback: float) -> List[Obstruction]:
        """Faces of the wall opening between the outer face and the recessed glazing."""
        normal = polygon_normal(wall.polygon)
        inward = [-setback * c for c in normal]
        reveals = []
        for idx, reveal_name in enumerate(REVEAL_NAMES):
            a = opening[idx]
            b = opening[(idx + 1) % len(opening)]
            a_in, b_in = translate_polygon([a, b], inward)
            reveals.append(Obstruction(
                id=f"{window_id}_{reveal_name}",
                name=f"{window_id} {reveal_name.lower()}",
                polygon=[a, b, b_in, a_in],
            ))
        return reveals
