"""
Effective U value of every envelope element, memoized per element.

Elements in contact with the exterior, the ground or adiabatic boundaries
only need their own construction (ground elements follow EN ISO 13370).
Interior elements towards unconditioned spaces need the U values of the
elements bounding that space (EN ISO 6946 / EN ISO 13789), so they are
resolved last.
"""

import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from models.building import (
    BoundaryCondition,
    Building,
    EnvelopeElement,
    OpaqueConstruction,
    Position,
    Space,
)
from models.calculation_result import ElementStatus, TransmittanceCacheEntry
from utils.config_loader import get_config_value
from utils.errors import CatalogError, ComputationError, GeometryError

from .construction_resolver import (
    RSE,
    RSI_DOWNWARD,
    RSI_HORIZONTAL,
    RSI_UPWARD,
    ConstructionResolver,
)

logger = logging.getLogger(__name__)

# Volumetric heat capacity of air in Wh/m3K
AIR_HEAT_CAPACITY = 0.33
# Ground walls shallower than this (m) are treated as not buried
NOT_BURIED_DEPTH = 0.01

TRAVERSAL_ORDER = [
    BoundaryCondition.ADIABATIC,
    BoundaryCondition.EXTERIOR,
    BoundaryCondition.GROUND,
    BoundaryCondition.INTERIOR,
]

ElementRef = Union[str, EnvelopeElement]


class TransmittanceCache:
    """
    Per-element U value cache.

    At most one computation runs per element, concurrent requests for the
    same element wait for the in-flight result. Failed computations are
    stored and not retried until the entry is invalidated.
    """

    def __init__(self, building: Building, resolver: ConstructionResolver, config: Optional[dict] = None):
        """
        Args:
            building: Resolved element graph
            resolver: Construction resolver for intrinsic values
            config: Configuration dictionary
        """
        config = config or {}
        self.building = building
        self.resolver = resolver
        self.ground_conductivity = get_config_value(config, 'calculation.transmittance.ground_conductivity', 2.0)
        self.insulation_conductivity = get_config_value(
            config, 'calculation.transmittance.perimeter_insulation_conductivity', 0.035
        )
        self.wall_width = get_config_value(config, 'calculation.transmittance.perimeter_wall_width', 0.3)

        self.computation_count = 0
        self._entries: Dict[str, TransmittanceCacheEntry] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    # Public API ---------------------------------------------------------

    def u_for(self, element: ElementRef) -> float:
        """
        Effective U value of an element in W/m2K.

        Raises:
            CatalogError, ComputationError: stored failure of this element
        """
        entry = self._resolve(self._element(element))
        if entry.errored:
            raise entry.exception
        return entry.u_value

    def try_u_for(self, element: ElementRef) -> Optional[float]:
        """Best-effort lookup: None for elements whose computation failed."""
        entry = self._resolve(self._element(element))
        return None if entry.errored else entry.u_value

    def entry(self, element_id: str) -> Optional[TransmittanceCacheEntry]:
        with self._lock:
            return self._entries.get(element_id)

    def entries(self) -> Dict[str, TransmittanceCacheEntry]:
        with self._lock:
            return dict(self._entries)

    def traversal_order(self) -> List[EnvelopeElement]:
        """
        Elements in dependency order: adiabatic, exterior (with every window), ground, interior.
        """
        ordered = []
        for boundary in TRAVERSAL_ORDER:
            for element in self.building.elements.values():
                group = BoundaryCondition.EXTERIOR if element.is_window else element.boundary
                if group == boundary:
                    ordered.append(element)
        return ordered

    def compute_all(self, max_workers: Optional[int] = None) -> Dict[str, TransmittanceCacheEntry]:
        """
        Compute every element of the building.

        Independent elements run on a thread pool, interior elements run once
        all of them are done.

        Args:
            max_workers: Thread pool size (executor default if None)

        Returns:
            Cache entries keyed by element id
        """
        ordered = self.traversal_order()
        independent = [e for e in ordered if e.is_window or e.boundary != BoundaryCondition.INTERIOR]
        interior = [e for e in ordered if not e.is_window and e.boundary == BoundaryCondition.INTERIOR]

        logger.info(
            f"Computing U values: {len(independent)} independent element(s), {len(interior)} interior element(s)"
        )
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            self._run_batch(executor, independent)
            self._run_batch(executor, interior)

        errored = [e for e in self.entries().values() if e.errored]
        if errored:
            logger.warning(f"{len(errored)} element(s) without U value: {', '.join(e.element_id for e in errored)}")
        return self.entries()

    def invalidate_construction(self, construction_id: str) -> List[str]:
        """
        Invalidate entries whose computation used a construction, and their dependents.

        Returns:
            Ids of the invalidated elements
        """
        with self._lock:
            seeds = [eid for eid, e in self._entries.items() if construction_id in e.constructions]
            invalidated = self._invalidate_locked(seeds)
        logger.info(f"Construction {construction_id} changed: {len(invalidated)} cached U value(s) invalidated")
        return invalidated

    def invalidate_element(self, element_id: str) -> List[str]:
        """Invalidate one element and every entry depending on it."""
        with self._lock:
            return self._invalidate_locked([element_id])

    # Cache machinery ----------------------------------------------------

    def _element(self, element: ElementRef) -> EnvelopeElement:
        if isinstance(element, EnvelopeElement):
            return element
        return self.building.elements[element]

    def _run_batch(self, executor: ThreadPoolExecutor, elements: List[EnvelopeElement]):
        futures = [executor.submit(self._resolve, element) for element in elements]
        for future in as_completed(futures):
            try:
                future.result()
            except Exception:
                for pending in futures:
                    pending.cancel()
                raise

    def _resolve(self, element: EnvelopeElement) -> TransmittanceCacheEntry:
        with self._lock:
            entry = self._entries.get(element.id)
            if entry is not None and not entry.stale:
                return entry
            future = self._in_flight.get(element.id)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[element.id] = future
                self.computation_count += 1
                computations = (entry.computations if entry else 0) + 1

        if not owner:
            return future.result()

        try:
            entry = self._compute_entry(element, computations)
        except BaseException as e:
            with self._lock:
                del self._in_flight[element.id]
            future.set_exception(e)
            raise

        with self._lock:
            self._entries[element.id] = entry
            del self._in_flight[element.id]
        future.set_result(entry)
        return entry

    def _compute_entry(self, element: EnvelopeElement, computations: int) -> TransmittanceCacheEntry:
        entry = TransmittanceCacheEntry(element_id=element.id, computations=computations)
        try:
            u_value, approximate = self._effective_u(element, entry)
        except (CatalogError, ComputationError, GeometryError) as e:
            logger.error(f"U value of {element.id} ({element.name}) could not be computed: {e}")
            entry.status = ElementStatus.ERRORED
            entry.error = str(e)
            entry.exception = e
            return entry

        entry.u_value = u_value
        entry.valid = True
        entry.approximate = approximate
        entry.status = ElementStatus.EXCLUDED if element.excluded else ElementStatus.COMPUTED
        logger.debug(f"{element.id} ({element.boundary.value}) U={u_value:.3f} W/m2K")
        return entry

    def _invalidate_locked(self, seeds: List[str]) -> List[str]:
        invalidated = set()
        pending = list(seeds)
        while pending:
            element_id = pending.pop()
            if element_id in invalidated:
                continue
            entry = self._entries.get(element_id)
            if entry is None:
                continue
            entry.stale = True
            invalidated.add(element_id)
            pending.extend(eid for eid, e in self._entries.items() if element_id in e.depends_on)
        return sorted(invalidated)

    # U models -----------------------------------------------------------

    def _effective_u(self, element: EnvelopeElement, entry: TransmittanceCacheEntry) -> Tuple[float, bool]:
        catalog = self.building.catalog
        # Degenerate polygons raise GeometryError here
        position = element.position
        if element.area <= 0.0:
            raise GeometryError("polygon has zero area", element.id)
        if element.is_window:
            construction = catalog.window_construction(element.construction_id, element.id)
            entry.constructions.add(construction.id)
            return self.resolver.window_u(construction), False

        construction = catalog.opaque_construction(element.construction_id, element.id)
        entry.constructions.add(construction.id)

        if element.boundary in (BoundaryCondition.EXTERIOR, BoundaryCondition.ADIABATIC):
            return self.resolver.opaque_u(construction, position, element.boundary), False
        if element.boundary == BoundaryCondition.GROUND:
            return self._ground_u(element, construction, entry), False
        return self._interior_u(element, construction, entry)

    def _space(self, space_id: Optional[str], element: EnvelopeElement) -> Space:
        space = self.building.spaces.get(space_id) if space_id else None
        if space is None:
            raise ComputationError(f"Element '{element.id}' references unknown space '{space_id}'")
        return space

    def _ground_u(self, element: EnvelopeElement, construction: OpaqueConstruction,
                  entry: TransmittanceCacheEntry) -> float:
        position = element.position
        r_intrinsic = self.resolver.r_intrinsic(construction, position)
        if position == Position.TOP:
            # Buried roof, the soil is expected as a layer of the construction
            return 1.0 / (r_intrinsic + RSI_UPWARD + RSE)

        space = self._space(element.space_id, element)
        if position == Position.BOTTOM:
            return self._slab_on_ground_u(element, space, r_intrinsic)
        return self._basement_wall_u(element, space, r_intrinsic, entry)

    def _slab_on_ground_u(self, element: EnvelopeElement, space: Space, r_intrinsic: float) -> float:
        """EN ISO 13370 slab on ground, with perimeter insulation correction."""
        lambda_g = self.ground_conductivity
        z = self.building.ground_depth(element)
        area = space.area
        perimeter = space.exposed_perimeter if space.exposed_perimeter is not None else 4.0 * math.sqrt(area)
        if perimeter < 1e-6:
            logger.warning(f"{element.id}: space {space.id} has no exposed perimeter, U=0")
            return 0.0
        b_char = area / (0.5 * perimeter)
        if b_char <= 0:
            raise ComputationError(f"Element '{element.id}': space '{space.id}' has zero floor area")

        d_t = self.wall_width + lambda_g * (RSI_DOWNWARD + r_intrinsic + RSE)
        if d_t + 0.5 * z < b_char:
            # Uninsulated and moderately insulated floors
            u_bf = (2.0 * lambda_g / (math.pi * b_char + d_t + 0.5 * z)) * math.log(
                1.0 + math.pi * b_char / (d_t + 0.5 * z)
            )
        else:
            # Well insulated floors
            u_bf = lambda_g / (0.457 * b_char + d_t + 0.5 * z)

        meta = self.building.meta
        depth = meta.perimeter_insulation_depth
        d_extra = meta.perimeter_insulation_resistance * (lambda_g - self.insulation_conductivity)
        psi_ge = -lambda_g / math.pi * (
            math.log(depth / d_t + 1.0) - math.log(1.0 + depth / (d_t + d_extra))
        )
        u_value = u_bf + 2.0 * psi_ge / b_char
        logger.info(
            f"{element.name} (ground floor) U={u_value:.2f} (A={area:.2f}, P={perimeter:.2f}, "
            f"B'={b_char:.2f}, z={z:.2f}, d_t={d_t:.2f}, U_bf={u_bf:.2f}, psi_ge={psi_ge:.3f})"
        )
        return u_value

    def _basement_wall_u(self, element: EnvelopeElement, space: Space, r_intrinsic: float,
                         entry: TransmittanceCacheEntry) -> float:
        """EN ISO 13370 basement wall, weighted with its part above ground."""
        lambda_g = self.ground_conductivity
        z = self.building.ground_depth(element)
        u_w = 1.0 / (RSI_HORIZONTAL + r_intrinsic + RSE)
        if z < NOT_BURIED_DEPTH:
            logger.info(f"{element.name} (ground wall, not buried) U={u_w:.2f}")
            return u_w

        # Equivalent thickness of the basement floors, averaged
        floor_thicknesses = []
        for floor in self.building.elements_of_space(space.id):
            if floor.position != Position.BOTTOM:
                continue
            floor_cons = self.building.catalog.opaque_construction(floor.construction_id, floor.id)
            entry.constructions.add(floor_cons.id)
            floor_r = self.resolver.r_intrinsic(floor_cons, Position.BOTTOM)
            floor_thicknesses.append(self.wall_width + lambda_g * (RSI_DOWNWARD + floor_r + RSE))
        d_t = sum(floor_thicknesses) / len(floor_thicknesses) if floor_thicknesses else 0.0

        d_w = lambda_g * (RSI_HORIZONTAL + r_intrinsic + RSE)
        d_t = min(d_t, d_w)

        u_bw = (2.0 * lambda_g / (math.pi * z)) * (1.0 + 0.5 * d_t / (d_t + z)) * math.log(z / d_w + 1.0)

        height_net = self.building.space_net_height(space.id)
        above_ground = max(0.0, height_net - z)
        if above_ground == 0.0:
            u_value = u_bw
        else:
            u_value = (z * u_bw + above_ground * u_w) / height_net
        logger.info(
            f"{element.name} (ground wall) U={u_value:.2f} (z={z:.2f}, h={above_ground:.2f}, "
            f"U_w={u_w:.2f}, U_bw={u_bw:.2f}, d_t={d_t:.2f}, d_w={d_w:.2f})"
        )
        return u_value

    def _interior_u(self, element: EnvelopeElement, construction: OpaqueConstruction,
                    entry: TransmittanceCacheEntry) -> Tuple[float, bool]:
        position = element.position
        r_intrinsic = self.resolver.r_intrinsic(construction, position)
        space = self._space(element.space_id, element)
        next_space = self._space(element.next_to, element)

        if space.is_conditioned == next_space.is_conditioned:
            # Partition between two spaces at the same regime
            if space.is_conditioned:
                return 1.0 / (r_intrinsic + 2.0 * RSI_HORIZONTAL), False
            return self.resolver.opaque_u(construction, position, BoundaryCondition.INTERIOR), False

        this_conditioned = space.is_conditioned
        uncond_space = next_space if this_conditioned else space

        # Heat flow direction seen from the conditioned side
        if position == Position.SIDE:
            r_f = r_intrinsic + 2.0 * RSI_HORIZONTAL
        elif (position == Position.BOTTOM) == this_conditioned:
            r_f = r_intrinsic + 2.0 * RSI_DOWNWARD
        else:
            r_f = r_intrinsic + 2.0 * RSI_UPWARD

        h_ue, approximate = self._unconditioned_heat_transfer(uncond_space, element.id, frozenset(), entry)
        area = self.building.net_area(element)
        if h_ue <= 0:
            logger.warning(f"{element.name}: unconditioned space {uncond_space.id} has no heat loss path, U=0")
            return 0.0, approximate

        r_u = area / h_ue
        u_value = 1.0 / (r_f + r_u)
        logger.info(
            f"{element.name} (conditioned-unconditioned) U={u_value:.2f} "
            f"(R_f={r_f:.3f}, R_u={r_u:.3f}, A_i={area:.2f}, H_ue={h_ue:.2f})"
        )
        return u_value, approximate

    def _unconditioned_heat_transfer(self, space: Space, via_element_id: str, chain: FrozenSet[str],
                                     entry: TransmittanceCacheEntry) -> Tuple[float, bool]:
        """
        Heat transfer coefficient H_ue (W/K) from an unconditioned space to the outside.

        Sums U*A of its exterior and ground elements and their windows, the
        series conductance through partitions to other unconditioned spaces,
        and ventilation. A partition leading back into the current chain of
        spaces contributes its own U*A only and flags the result approximate.
        """
        building = self.building
        chain = chain | {space.id}
        terms = []
        approximate = False

        for wall in building.elements_of_space(space.id):
            if wall.boundary not in (BoundaryCondition.EXTERIOR, BoundaryCondition.GROUND):
                continue
            entry.depends_on.add(wall.id)
            terms.append(self.u_for(wall) * building.net_area(wall))
            for window in building.windows_of_wall(wall.id):
                entry.depends_on.add(window.id)
                terms.append(self.u_for(window) * window.area)

        partitions = building.elements_of_space(space.id) + building.elements_next_to_space(space.id)
        for partition in partitions:
            if partition.boundary != BoundaryCondition.INTERIOR or partition.id == via_element_id:
                continue
            other = building.spaces.get(building.other_space_id(partition, space.id))
            if other is None or other.is_conditioned:
                continue
            entry.depends_on.add(partition.id)
            ua_partition = self.u_for(partition) * building.net_area(partition)
            if ua_partition <= 0:
                continue
            if other.id in chain:
                logger.warning(
                    f"Cycle between unconditioned spaces through {partition.id}: "
                    f"using its own U*A for {entry.element_id}"
                )
                terms.append(ua_partition)
                approximate = True
                continue
            h_other, approx_other = self._unconditioned_heat_transfer(other, partition.id, chain, entry)
            approximate = approximate or approx_other
            if h_other > 0:
                terms.append(1.0 / (1.0 / ua_partition + 1.0 / h_other))

        air_changes = self._air_changes(space)
        volume = space.area * building.space_net_height(space.id)
        terms.append(AIR_HEAT_CAPACITY * air_changes * volume)
        return math.fsum(terms), approximate

    def _air_changes(self, space: Space) -> float:
        if space.air_changes is not None:
            return space.air_changes
        ventilation = self.building.meta.global_ventilation_l_s
        volume = self.building.vol_env_inh_net
        if ventilation is not None and volume > 0:
            return 3.6 * ventilation / volume
        logger.warning(f"No air change rate for space {space.id}, ventilation ignored")
        return 0.0
