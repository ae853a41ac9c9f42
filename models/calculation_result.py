"""
Calculation result models for transmittance, obstruction and envelope indicators.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .building import BoundaryCondition, ElementKind


class ElementStatus(Enum):
    COMPUTED = 'COMPUTED'
    EXCLUDED = 'EXCLUDED'  # Has a U value but is left out of regulatory sums
    ERRORED = 'ERRORED'


@dataclass
class TransmittanceCacheEntry:
    """Memoized U value of one element."""

    element_id: str
    u_value: Optional[float] = None
    valid: bool = False  # Holds a usable U value
    stale: bool = False  # Invalidated, recomputed on the next request
    status: ElementStatus = ElementStatus.COMPUTED
    approximate: bool = False
    error: Optional[str] = None
    exception: Optional[Exception] = field(default=None, repr=False)
    depends_on: Set[str] = field(default_factory=set)  # Element ids
    constructions: Set[str] = field(default_factory=set)  # Construction ids
    computations: int = 0

    @property
    def errored(self) -> bool:
        return self.status == ElementStatus.ERRORED


@dataclass
class ObstructionResult:
    """Hourly obstruction fractions of one window over the representative period."""

    window_id: str
    fractions: Dict[int, Optional[float]] = field(default_factory=dict)
    undefined_reasons: Dict[int, str] = field(default_factory=dict)

    @property
    def defined_hours(self) -> List[int]:
        return [h for h, f in self.fractions.items() if f is not None]

    @property
    def mean_fraction(self) -> Optional[float]:
        """Average over defined hours, None when no hour is defined."""
        values = [f for f in self.fractions.values() if f is not None]
        if not values:
            return None
        return sum(values) / len(values)

    @property
    def shading_factor(self) -> float:
        """Fraction of the window left unobstructed (1.0 when no hour is defined)."""
        mean = self.mean_fraction
        return 1.0 if mean is None else 1.0 - mean


@dataclass
class ElementRecord:
    """Per-element line of the envelope report."""

    element_id: str
    name: str
    kind: ElementKind
    boundary: BoundaryCondition
    area: float  # Net area times space multiplier
    u_value: Optional[float] = None
    status: ElementStatus = ElementStatus.COMPUTED
    approximate: bool = False
    error: Optional[str] = None

    @property
    def ua(self) -> Optional[float]:
        if self.u_value is None:
            return None
        return self.u_value * self.area

    def to_dict(self) -> Dict:
        return {
            'id': self.element_id,
            'name': self.name,
            'kind': self.kind.value,
            'boundary': self.boundary.value,
            'area': self.area,
            'u': self.u_value,
            'status': self.status.value,
            'approximate': self.approximate,
            'error': self.error,
        }


@dataclass
class GroupSummary:
    """Elements sharing a boundary condition and kind."""

    boundary: BoundaryCondition
    kind: ElementKind
    records: List[ElementRecord] = field(default_factory=list)
    total_area: float = 0.0
    total_ua: Optional[float] = None
    weighted_u: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            'boundary': self.boundary.value,
            'kind': self.kind.value,
            'elements': [r.element_id for r in self.records],
            'total_area': self.total_area,
            'total_ua': self.total_ua,
            'weighted_u': self.weighted_u,
        }


@dataclass
class EnvelopeReport:
    """Element records grouped by (boundary, kind)."""

    groups: Dict[Tuple[BoundaryCondition, ElementKind], GroupSummary] = field(default_factory=dict)
    records: Dict[str, ElementRecord] = field(default_factory=dict)

    def with_status(self, status: ElementStatus) -> List[ElementRecord]:
        return [r for r in self.records.values() if r.status == status]

    @property
    def errored(self) -> List[ElementRecord]:
        return self.with_status(ElementStatus.ERRORED)

    @property
    def excluded(self) -> List[ElementRecord]:
        return self.with_status(ElementStatus.EXCLUDED)

    @property
    def approximate(self) -> List[ElementRecord]:
        return [r for r in self.records.values() if r.approximate]

    def to_dict(self) -> Dict:
        return {
            'groups': [g.to_dict() for g in self.groups.values()],
            'elements': [r.to_dict() for r in self.records.values()],
        }


@dataclass
class KDetail:
    """Global heat loss coefficient and its terms."""

    k: float = 0.0
    opaque_a: float = 0.0
    opaque_au: float = 0.0
    windows_a: float = 0.0
    windows_au: float = 0.0
    excluded_a: float = 0.0
    tbridges_l: float = 0.0
    tbridges_psil: float = 0.0
    total_a: float = 0.0

    def to_dict(self) -> Dict:
        return dict(self.__dict__)


@dataclass
class QSolJulDetail:
    """July solar gain indicator."""

    q_soljul: float = 0.0
    a_ref: float = 0.0
    total_gain: float = 0.0  # kWh/month
    window_gains: Dict[str, float] = field(default_factory=dict)
    unobstructed_fallback: List[str] = field(default_factory=list)  # Windows without any defined hour

    def to_dict(self) -> Dict:
        return {
            'q_soljul': self.q_soljul,
            'a_ref': self.a_ref,
            'total_gain': self.total_gain,
            'window_gains': dict(self.window_gains),
            'unobstructed_fallback': list(self.unobstructed_fallback),
        }


@dataclass
class N50Detail:
    """Air change rate at 50 Pa and its terms."""

    n50: float = 0.0
    n50_ref: float = 0.0  # Value from the reference opaque permeability
    from_test: bool = False
    opaque_a: float = 0.0
    opaque_c_ref: float = 0.0  # Reference opaque permeability, m3/h.m2 at 100 Pa
    opaque_c: float = 0.0  # Reference value, or back-computed from the test
    opaque_ca: float = 0.0
    windows_a: float = 0.0
    windows_ca: float = 0.0
    vol: float = 0.0

    def to_dict(self) -> Dict:
        return dict(self.__dict__)


@dataclass
class EnvelopeIndicators:
    k: KDetail = field(default_factory=KDetail)
    q_soljul: QSolJulDetail = field(default_factory=QSolJulDetail)
    n50: N50Detail = field(default_factory=N50Detail)
    compacity: float = 0.0
    a_ref: float = 0.0
    vol_env_gross: float = 0.0
    vol_env_net: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'K': self.k.to_dict(),
            'q_soljul': self.q_soljul.to_dict(),
            'n50': self.n50.to_dict(),
            'compacity': self.compacity,
            'a_ref': self.a_ref,
            'vol_env_gross': self.vol_env_gross,
            'vol_env_net': self.vol_env_net,
        }


@dataclass
class EnvelopeCalculationResult:
    """Complete calculation results for a building."""

    building_id: str
    building_name: str
    indicators: EnvelopeIndicators = field(default_factory=EnvelopeIndicators)
    report: EnvelopeReport = field(default_factory=EnvelopeReport)
    obstruction_results: Dict[str, ObstructionResult] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def get_summary(self) -> Dict:
        """Headline values of the run."""
        return {
            'K': self.indicators.k.k,
            'q_soljul': self.indicators.q_soljul.q_soljul,
            'n50': self.indicators.n50.n50,
            'compacity': self.indicators.compacity,
            'elements': len(self.report.records),
            'errored_elements': len(self.report.errored),
            'excluded_elements': len(self.report.excluded),
            'approximate_elements': len(self.report.approximate),
        }

    def to_dict(self) -> Dict:
        return {
            'building_id': self.building_id,
            'building_name': self.building_name,
            'indicators': self.indicators.to_dict(),
            'report': self.report.to_dict(),
            'obstruction': {
                wid: {'mean_fraction': r.mean_fraction, 'defined_hours': len(r.defined_hours)}
                for wid, r in self.obstruction_results.items()
            },
            'warnings': list(self.warnings),
            'errors': list(self.errors),
        }
