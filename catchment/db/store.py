"""
@file store.py
@brief Persist coverage runs to PostGIS

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0

@see models.coverage for the ORM schema
"""

import logging

from geoalchemy2 import WKTElement
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catchment.models.coverage import CoverageRun, ReachabilityBoundary, UnitOverlap, working_srid
from catchment.services.coverage import CoverageReport
from catchment.services.normalizer import to_multipolygon

logger = logging.getLogger(__name__)


def build_run(report: CoverageReport, region_name: str) -> CoverageRun:
    """
    Build (unsaved) ORM objects for a report.

    Args:
        report (CoverageReport): Pipeline output
        region_name (str): Study region label

    Returns:
        CoverageRun: Run with its UnitOverlap rows and boundary attached
    """
    result = report.result
    run = CoverageRun(
        region_name=region_name,
        threshold_minutes=report.threshold_minutes,
        working_crs=report.boundary.crs or "",
        population_within=result.population_within,
        population_total=result.population_total,
        fraction_within=result.fraction_within,
        unit_count=result.unit_count,
        excluded_count=len(report.errors)
    )

    run.overlaps = [
        UnitOverlap(
            unit_id=str(row.unit_id),
            total_area=float(row.total_area),
            intersection_area=float(row.intersection_area),
            overlap=float(row.overlap),
            population=float(row.population),
            population_within=float(row.population_within)
        )
        for row in report.overlaps.itertuples(index=False)
    ]

    if not report.boundary.is_empty:
        geom = to_multipolygon(report.boundary.geometry)
        run.boundary = ReachabilityBoundary(geom=WKTElement(geom.wkt, srid=working_srid()))

    return run


def save_run(session: Session, report: CoverageReport, region_name: str) -> CoverageRun:
    """
    Store one run, its overlap rows and its boundary.

    Raises:
        SQLAlchemyError: After rolling back, if the commit fails
    """
    run = build_run(report, region_name)
    logger.info(f"Saving coverage run for {region_name} ({len(run.overlaps)} units)...")
    try:
        session.add(run)
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error saving coverage run: {e}")
        session.rollback()
        raise
    logger.info(f"  → Saved run {run.id}")
    return run
