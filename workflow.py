"""
Calculation workflow functions for the envelope indicators.

This module contains the batch pipeline: import a project description,
validate it, compute U values and obstruction fractions in parallel, then
aggregate K, q_sol;jul and n50 once both are done.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from core import (
    ConstructionResolver,
    EdgeCorrectionTable,
    EnvelopeAggregator,
    IrradianceTable,
    ObstructionCalculator,
    RepresentativePeriod,
    SolarRayProvider,
    SunPositionCalculator,
    TransmittanceCache,
)
from importers import ModelValidator, ProjectImporter
from models.building import Building
from models.calculation_result import EnvelopeCalculationResult
from utils.config_loader import get_config_value, load_config

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.yaml', '.yml')


def import_building_model(file_path: str, config: dict) -> Tuple[List[Building], ProjectImporter]:
    """
    Import and validate a project description.

    Args:
        file_path: Path to the project file
        config: Configuration dictionary

    Returns:
        Tuple of (List of Building objects, importer instance)
    """
    logger.info(f"Starting import of project: {file_path}")
    file_ext = Path(file_path).suffix.lower()
    if file_ext not in SUPPORTED_EXTENSIONS:
        logger.error(f"Unsupported file format: {file_ext}")
        raise ValueError(f"Unsupported file format: {file_ext}")

    importer = ProjectImporter(file_path, config)
    buildings = importer.import_model()
    logger.info(f"Import complete. Found {len(buildings)} building(s)")

    for building in buildings:
        validation_result = ModelValidator.validate(building)
        logger.info(f"Model Validation ({building.id}): {validation_result.get_summary()}")
    return buildings, importer


def calculate_envelope(
    building: Building,
    config: dict,
    ray_for_hour: Optional[Callable] = None,
    hours: Optional[Iterable[int]] = None,
    irradiance: Optional[IrradianceTable] = None,
) -> EnvelopeCalculationResult:
    """
    Compute the envelope report and indicators of a building.

    Args:
        building: Resolved element graph
        config: Configuration dictionary
        ray_for_hour: Hour index -> sun ray direction (sun position of the
            building location over the configured period if None)
        hours: Hour indices to evaluate (the whole period if None)
        irradiance: July irradiance table (from config for the building's climate zone if None)

    Returns:
        EnvelopeCalculationResult
    """
    logger.info(f"Starting envelope calculation for building: {building.name}")
    max_workers = get_config_value(config, 'calculation.max_workers', 4)

    edge_correction = EdgeCorrectionTable.from_config(
        get_config_value(config, 'calculation.transmittance.edge_correction', [])
    )
    resolver = ConstructionResolver(building.catalog, edge_correction)
    cache = TransmittanceCache(building, resolver, config)

    if ray_for_hour is None:
        period = RepresentativePeriod.from_config(get_config_value(config, 'calculation.obstruction.period', {}))
        logger.info(
            f"Initializing SunPositionCalculator (lat: {building.location[0]}, lon: {building.location[1]}), "
            f"period starting {period.start} for {period.days} day(s)"
        )
        sun_calculator = SunPositionCalculator(building.location[0], building.location[1], building.timezone)
        ray_for_hour = SolarRayProvider(sun_calculator, period)
        if hours is None:
            hours = ray_for_hour.hours()
    if hours is None:
        raise ValueError("hours are required with a custom sun ray function")
    hours = list(hours)

    if irradiance is None:
        irradiance = IrradianceTable.from_config(config, building.meta.climate_zone)

    obstruction_calculator = ObstructionCalculator(
        building,
        ray_for_hour,
        tolerance=get_config_value(config, 'calculation.obstruction.tolerance', 1e-9),
    )
    windows = building.exterior_windows()

    # Fork: U values and obstruction fractions are independent; join before aggregating
    with ThreadPoolExecutor(max_workers=2) as executor:
        u_future = executor.submit(cache.compute_all, max_workers)
        obstruction_future = executor.submit(obstruction_calculator.compute_all, hours, windows, max_workers)
        u_future.result()
        obstruction_results = obstruction_future.result()

    aggregator = EnvelopeAggregator(building, cache, resolver, obstruction_results, irradiance, config)
    report = aggregator.build_report()
    indicators = aggregator.indicators()

    result = EnvelopeCalculationResult(
        building_id=building.id,
        building_name=building.name,
        indicators=indicators,
        report=report,
        obstruction_results=obstruction_results,
    )
    for record in report.errored:
        result.errors.append(f"Element {record.element_id} ({record.name}): {record.error}")
    for record in report.approximate:
        result.warnings.append(f"Element {record.element_id} ({record.name}): U value approximated in a cycle")
    for window_id in indicators.q_soljul.unobstructed_fallback:
        result.warnings.append(f"Window {window_id}: no defined obstruction hour, taken as unobstructed")

    summary = result.get_summary()
    logger.info(
        f"Building {building.id}: K={summary['K']:.2f} W/m2K, q_sol;jul={summary['q_soljul']:.2f} kWh/m2.month, "
        f"n50={summary['n50']:.2f} 1/h, errored={summary['errored_elements']}, "
        f"excluded={summary['excluded_elements']}"
    )
    return result


def run_project(project_path: str, config_path: str = 'config.yaml') -> List[EnvelopeCalculationResult]:
    """
    Import a project and compute every building in it.

    Args:
        project_path: Path to the project description
        config_path: Path to the configuration file

    Returns:
        One EnvelopeCalculationResult per building
    """
    config = load_config(config_path)
    buildings, _ = import_building_model(project_path, config)
    return [calculate_envelope(building, config) for building in buildings]
