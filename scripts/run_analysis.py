#!/usr/bin/env python3
"""
Coverage Analysis Runner

Runs the complete batch analysis for one state:

1. EXTRACT: source locations, isochrones, block groups, water, population
2. TRANSFORM: normalize, unify, apportion, aggregate (CoverageService)
3. LOAD: store the run in PostGIS (optional) and write overlap CSV + map

Usage:
    python scripts/run_analysis.py LOCATIONS UNITS STATE_FIPS [WATER]

    LOCATIONS   CSV/GeoJSON of service locations
    UNITS       Block group boundaries (path or URL)
    STATE_FIPS  2-digit state code for the ACS population query
    WATER       Optional water polygons to clip from the units

Environment: see catchment.core.config (ORS_API_KEY, CENSUS_API_KEY,
THRESHOLD_MINUTES, WORKING_CRS, DATABASE_URL, SAVE_TO_DATABASE, ...).

Author: Catchment Project
License: AGPL-3.0
"""

import os
import sys

import geopandas as gpd

from catchment.core import config
from catchment.core.exceptions import CatchmentError
from catchment.core.logging import setup_logging
from catchment.db.database import init_db, session_scope
from catchment.db.store import save_run
from catchment.etl.census import clip_water, fetch_areal_units, fetch_population
from catchment.etl.isochrones import fetch_reachability_regions
from catchment.etl.locations import fetch_source_locations
from catchment.services.coverage import CoverageService
from catchment.services.normalizer import normalize_frame
from catchment.viz.maps import render_coverage_map

logger = setup_logging()


def run_analysis(locations_path: str, units_source: str, state_fips: str,
                 water_source: str = None) -> bool:
    """
    Execute the complete analysis.

    Returns:
        bool: True if the run completed, False on a fatal pipeline error
    """
    logger.info("=" * 70)
    logger.info("STARTING COVERAGE ANALYSIS")
    logger.info("=" * 70)

    # STEP 1: EXTRACT
    logger.info("\n[STEP 1] EXTRACT - Loading source data...")
    locations = fetch_source_locations(locations_path)
    fetched = fetch_reachability_regions(locations, config.THRESHOLD_MINUTES)
    if len(fetched.regions) == 0:
        logger.critical("CRITICAL ERROR: No isochrones could be fetched. Aborting.")
        return False

    units = fetch_areal_units(units_source)
    if water_source:
        units, _ = normalize_frame(units, "unit_id")
        water = gpd.read_file(water_source)
        water, _ = normalize_frame(water.reset_index(), "index")
        units = clip_water(units, water)
    population = fetch_population(state_fips)

    # STEP 2: TRANSFORM
    logger.info("\n[STEP 2] TRANSFORM - Computing coverage...")
    service = CoverageService()
    try:
        report = service.run(units, fetched.regions, population, config.THRESHOLD_MINUTES)
    except CatchmentError as e:
        logger.critical(f"CRITICAL ERROR: {type(e).__name__}: {e.message}")
        return False

    result = report.result
    logger.info(
        f"Within {config.THRESHOLD_MINUTES:g} min: {result.population_within:,.0f} "
        f"of {result.population_total:,.0f} ({result.percent_within:.2f}%)"
    )
    logger.info(f"Beyond: {result.population_outside:,.0f} ({100 - result.percent_within:.2f}%)")

    # STEP 3: LOAD
    logger.info("\n[STEP 3] LOAD - Writing outputs...")
    os.makedirs(config.OUTPUT_DIR, exist_ok=True)
    tag = f"{state_fips}_{config.THRESHOLD_MINUTES:g}min"
    report.overlaps.to_csv(os.path.join(config.OUTPUT_DIR, f"overlaps_{tag}.csv"), index=False)
    if report.errors:
        report.errors.to_frame().to_csv(os.path.join(config.OUTPUT_DIR, f"excluded_{tag}.csv"), index=False)
    if report.region_errors:
        report.region_errors.to_frame().to_csv(
            os.path.join(config.OUTPUT_DIR, f"excluded_regions_{tag}.csv"), index=False
        )
    render_coverage_map(report, locations, path=os.path.join(config.OUTPUT_DIR, f"coverage_{tag}.html"))

    if os.getenv("SAVE_TO_DATABASE", "false").lower() in ("1", "true", "yes"):
        init_db()
        with session_scope() as session:
            save_run(session, report, region_name=f"state:{state_fips}")

    logger.info("\n" + "=" * 70)
    logger.info("✓ COVERAGE ANALYSIS COMPLETED")
    logger.info("=" * 70)
    return True


if __name__ == "__main__":
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(2)
    water = sys.argv[4] if len(sys.argv) > 4 else None
    success = run_analysis(sys.argv[1], sys.argv[2], sys.argv[3], water)
    sys.exit(0 if success else 1)
