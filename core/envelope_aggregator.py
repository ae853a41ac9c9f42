"""
Envelope indicators: global heat loss coefficient K, July solar control
q_sol;jul, air change rate n50, compactness, and the per-element report.

Sums use math.fsum so results do not depend on iteration order.
"""

import logging
import math
from typing import Dict, Optional

from models.building import BoundaryCondition, Building, EnvelopeElement
from models.calculation_result import (
    ElementRecord,
    ElementStatus,
    EnvelopeIndicators,
    EnvelopeReport,
    GroupSummary,
    KDetail,
    N50Detail,
    ObstructionResult,
    QSolJulDetail,
)
from utils.config_loader import get_config_value
from utils.errors import CatalogError, ComputationError, GeometryError

from .climate import IrradianceTable
from .construction_resolver import ConstructionResolver
from .transmittance_cache import TransmittanceCache

logger = logging.getLogger(__name__)

# n50 = N50_FACTOR * (sum(A_o * C_o) + sum(A_h * C_h)) / V, C at 100 Pa
N50_FACTOR = 0.629
MIN_AREA = 0.01


class EnvelopeAggregator:
    """
    Combines cached U values, areas, thermal bridges and obstruction fractions.

    Must run after the transmittance cache and the obstruction engine are done.
    """

    def __init__(
        self,
        building: Building,
        cache: TransmittanceCache,
        resolver: ConstructionResolver,
        obstruction_results: Optional[Dict[str, ObstructionResult]] = None,
        irradiance: Optional[IrradianceTable] = None,
        config: Optional[dict] = None,
    ):
        """
        Args:
            building: Resolved element graph
            cache: Transmittance cache (computed or lazily filled)
            resolver: Construction resolver, for window solar factors
            obstruction_results: Hourly obstruction fractions keyed by window id
            irradiance: July irradiance table
            config: Configuration dictionary
        """
        config = config or {}
        self.building = building
        self.cache = cache
        self.resolver = resolver
        self.obstruction_results = obstruction_results or {}
        self.irradiance = irradiance
        self.c_o_new = get_config_value(config, 'calculation.permeability.new_building', 16.0)
        self.c_o_existing = get_config_value(config, 'calculation.permeability.existing_building', 29.0)

    def _area(self, element: EnvelopeElement) -> float:
        return self.building.net_area(element) * self.building.space_multiplier(element)

    # Report -------------------------------------------------------------

    def build_report(self) -> EnvelopeReport:
        """
        Classify every element of the building by (boundary, kind).

        Raises:
            CatalogError: no element at all could be resolved
        """
        report = EnvelopeReport()
        for element in self.building.elements.values():
            u_value = self.cache.try_u_for(element)
            entry = self.cache.entry(element.id)
            if u_value is None:
                status = ElementStatus.ERRORED
            elif element.excluded:
                status = ElementStatus.EXCLUDED
            else:
                status = ElementStatus.COMPUTED
            record = ElementRecord(
                element_id=element.id,
                name=element.name,
                kind=element.kind,
                boundary=element.boundary,
                area=self._area(element),
                u_value=u_value,
                status=status,
                approximate=bool(entry and entry.approximate),
                error=entry.error if entry else None,
            )
            report.records[element.id] = record

            key = (element.boundary, element.kind)
            if key not in report.groups:
                report.groups[key] = GroupSummary(boundary=element.boundary, kind=element.kind)
            report.groups[key].records.append(record)

        for group in report.groups.values():
            group.total_area = math.fsum(r.area for r in group.records)
            resolved = [r for r in group.records if r.u_value is not None]
            if not resolved:
                # Every element failed: no value rather than zero
                group.total_ua = None
                group.weighted_u = None
                continue
            group.total_ua = math.fsum(r.ua for r in resolved)
            resolved_area = math.fsum(r.area for r in resolved)
            group.weighted_u = group.total_ua / resolved_area if resolved_area > 0 else None

        if report.records and len(report.errored) == len(report.records):
            raise CatalogError(
                'construction', '*', self.building.id,
                detail=f"No element of building '{self.building.id}' could be resolved against the catalog",
            )

        logger.info(
            f"Envelope report: {len(report.records)} element(s), {len(report.excluded)} excluded, "
            f"{len(report.errored)} errored, {len(report.approximate)} approximate"
        )
        return report

    # Indicators ---------------------------------------------------------

    def k_detail(self) -> KDetail:
        """
        Global heat loss coefficient K in W/m2K.

        K = (sum(U*A) + sum(psi*L)) / A over the thermal envelope. Excluded
        elements add area but no U*A; errored elements add neither, and the
        windows of an errored wall are left out with it.
        """
        opaque_a, opaque_au, windows_a, windows_au, excluded_a = [], [], [], [], []
        envelope = self.building.envelope_elements() + self.building.envelope_windows()
        for element in envelope:
            u_value = self.cache.try_u_for(element)
            if u_value is None:
                continue
            if element.is_window and self.cache.try_u_for(element.parent_wall_id) is None:
                logger.warning(f"Window {element.id} left out of K with its errored wall {element.parent_wall_id}")
                continue
            area = self._area(element)
            target_a, target_au = (windows_a, windows_au) if element.is_window else (opaque_a, opaque_au)
            target_a.append(area)
            if element.excluded:
                excluded_a.append(area)
            else:
                target_au.append(u_value * area)

        bridges = list(self.building.thermal_bridges.values())
        detail = KDetail(
            opaque_a=math.fsum(opaque_a),
            opaque_au=math.fsum(opaque_au),
            windows_a=math.fsum(windows_a),
            windows_au=math.fsum(windows_au),
            excluded_a=math.fsum(excluded_a),
            tbridges_l=math.fsum(tb.length for tb in bridges),
            tbridges_psil=math.fsum(tb.psi * tb.length for tb in bridges),
        )
        detail.total_a = math.fsum(opaque_a + windows_a)
        total_au = math.fsum(opaque_au + windows_au + [tb.psi * tb.length for tb in bridges])
        detail.k = total_au / detail.total_a if detail.total_a > MIN_AREA else 0.0
        logger.info(
            f"K={detail.k:.2f} W/m2K, A_o={detail.opaque_a:.2f} m2, (A.U)_o={detail.opaque_au:.2f} W/K, "
            f"A_h={detail.windows_a:.2f} m2, (A.U)_h={detail.windows_au:.2f} W/K, "
            f"L_pt={detail.tbridges_l:.2f} m, Psi.L_pt={detail.tbridges_psil:.2f} W/K"
        )
        return detail

    def q_soljul_detail(self) -> QSolJulDetail:
        """
        July solar control parameter in kWh/m2.month.

        Sum over exterior envelope windows of
        (1 - mean obstruction fraction) * g_gl;sh;wi * (1 - frame fraction) * A * H_sol;jul,
        divided by the reference area.
        """
        if self.irradiance is None:
            raise ComputationError("q_sol;jul needs an irradiance table")

        detail = QSolJulDetail(a_ref=self.building.a_ref)
        for window in self.building.exterior_windows():
            try:
                construction = self.building.catalog.window_construction(window.construction_id, window.id)
                solar_factor = self.resolver.window_solar_factor(construction)
                h_sol = self.irradiance.get(window.orientation, window.tilt)
            except (CatalogError, ComputationError, GeometryError) as e:
                logger.warning(f"Window {window.id} left out of q_sol;jul: {e}")
                continue

            obstruction = self.obstruction_results.get(window.id)
            if obstruction is None or obstruction.mean_fraction is None:
                detail.unobstructed_fallback.append(window.id)
                logger.warning(f"Window {window.id} has no defined obstruction hour, taken as unobstructed")
                shading_factor = 1.0
            else:
                shading_factor = obstruction.shading_factor

            gain = shading_factor * solar_factor * self._area(window) * h_sol
            detail.window_gains[window.id] = gain
            logger.debug(
                f"q_sol;jul of {window.id}: A={window.area:.2f}, orientation={window.orientation.value}, "
                f"g*(1-ff)={solar_factor:.2f}, 1-F_obst={shading_factor:.2f}, H_sol;jul={h_sol:.2f}"
            )

        detail.total_gain = math.fsum(detail.window_gains.values())
        if detail.a_ref > MIN_AREA:
            detail.q_soljul = detail.total_gain / detail.a_ref
        else:
            logger.warning("Reference area is zero, q_sol;jul set to 0")
            detail.q_soljul = 0.0
        logger.info(
            f"q_sol;jul={detail.q_soljul:.2f} kWh/m2.month, Q_soljul={detail.total_gain:.2f} kWh/month, "
            f"A_ref={detail.a_ref:.2f} m2"
        )
        return detail

    def reference_opaque_permeability(self) -> float:
        """Default opaque air permeability C_o at 100 Pa by building age."""
        return self.c_o_new if self.building.meta.is_new_building else self.c_o_existing

    def _permeability_terms(self):
        opaque_a, windows_a, windows_ca = [], [], []
        for element in self.building.envelope_elements():
            if element.boundary != BoundaryCondition.EXTERIOR:
                continue
            multiplier = self.building.space_multiplier(element)
            opaque_a.append(self.building.net_area(element) * multiplier)
            for window in self.building.windows_of_wall(element.id):
                construction = self.building.catalog.window_constructions.get(window.construction_id)
                if construction is None:
                    continue
                windows_a.append(window.area * multiplier)
                windows_ca.append(window.area * construction.air_permeability * multiplier)
        return math.fsum(opaque_a), math.fsum(windows_a), math.fsum(windows_ca)

    def opaque_permeability_from_n50(self, n50: float) -> float:
        """
        Opaque air permeability C_o (m3/h.m2 at 100 Pa) matching a measured n50.
        """
        vol = self.building.vol_env_net
        opaque_a, _, windows_ca = self._permeability_terms()
        if opaque_a <= MIN_AREA:
            raise ComputationError("No exterior opaque area to back-compute the opaque permeability")
        c_o = ((n50 * vol) / N50_FACTOR - windows_ca) / opaque_a
        logger.info(f"C_o={c_o:.2f} m3/h.m2 from n50={n50:.2f} 1/h, V={vol:.2f} m3")
        return c_o

    def n50_detail(self) -> N50Detail:
        """
        Air change rate at 50 Pa (1/h), from the reference permeabilities or a test.
        """
        vol = self.building.vol_env_net
        opaque_a, windows_a, windows_ca = self._permeability_terms()
        c_o_ref = self.reference_opaque_permeability()
        detail = N50Detail(
            opaque_a=opaque_a,
            opaque_c_ref=c_o_ref,
            opaque_c=c_o_ref,
            opaque_ca=opaque_a * c_o_ref,
            windows_a=windows_a,
            windows_ca=windows_ca,
            vol=vol,
        )
        if vol <= MIN_AREA:
            logger.info(f"n50=0.00 1/h, empty envelope volume ({vol:.2f} m3)")
            return detail

        detail.n50_ref = N50_FACTOR * (detail.opaque_ca + windows_ca) / vol
        detail.n50 = detail.n50_ref
        n50_test = self.building.meta.n50_test
        if n50_test is not None:
            detail.n50 = n50_test
            detail.from_test = True
            detail.opaque_c = self.opaque_permeability_from_n50(n50_test)
        logger.info(
            f"n50={detail.n50:.2f} 1/h (reference {detail.n50_ref:.2f}), sum(A_o.C_o)={detail.opaque_ca:.2f} m3/h, "
            f"sum(A_h.C_h)={windows_ca:.2f} m3/h, V={vol:.2f} m3"
        )
        return detail

    def compacity(self) -> float:
        """
        Envelope volume over envelope area (m3/m2).

        Only exterior and ground elements count, with their gross area.
        """
        vol = self.building.vol_env_gross
        area = math.fsum(
            element.area * self.building.space_multiplier(element)
            for element in self.building.envelope_elements()
            if element.boundary in (BoundaryCondition.EXTERIOR, BoundaryCondition.GROUND)
        )
        compacity = vol / area if area > 0 else 0.0
        logger.info(f"V/A={compacity:.2f} m3/m2, V={vol:.2f} m3, A={area:.2f} m2")
        return compacity

    def indicators(self) -> EnvelopeIndicators:
        return EnvelopeIndicators(
            k=self.k_detail(),
            q_soljul=self.q_soljul_detail(),
            n50=self.n50_detail(),
            compacity=self.compacity(),
            a_ref=self.building.a_ref,
            vol_env_gross=self.building.vol_env_gross,
            vol_env_net=self.building.vol_env_net,
        )
