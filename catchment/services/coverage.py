"""
@file coverage.py
@brief Coverage service: the full apportionment pipeline

@details
Wires the four core steps together:

1. Normalize areal units and reachability regions to the working CRS
2. Unify the reachability regions into one boundary
3. Apportion the overlap of every unit with that boundary
4. Aggregate population into within / total / fraction

Geometry-level errors (invalid or degenerate units) are collected into a
BatchErrorReport and the run continues. Isochrones that fail normalization
go to a separate region report, so a location identifier is never mistaken
for a unit identifier. Aggregation-level errors (missing
or empty population) propagate, since no partial number is meaningful.

The service performs no I/O: fetching shapes, isochrones and population is
done by the etl collaborators before calling it.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0

@see services.normalizer
@see services.unifier
@see services.apportioner
@see services.aggregator
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import geopandas as gpd
import pandas as pd

from catchment.core import config
from catchment.core.exceptions import BatchErrorReport
from catchment.models.records import AggregateResult, OverlapRecord, UnifiedReachability, overlap_records
from catchment.services.aggregator import aggregate_population
from catchment.services.apportioner import apportion_overlap
from catchment.services.normalizer import normalize_frame
from catchment.services.unifier import unify_reachability

logger = logging.getLogger(__name__)


@dataclass
class CoverageReport:
    """
    Outcome of one run for one threshold.

    Attributes:
        result (AggregateResult): Population totals
        overlaps (pd.DataFrame): Joined per-unit table (overlap + population)
        boundary (UnifiedReachability): Unified reachability region
        errors (BatchErrorReport): Areal units excluded along the way
        units (gpd.GeoDataFrame): Normalized units (for maps and storage)
        region_errors (BatchErrorReport): Isochrones excluded before the
            union, keyed by location_id
    """
    result: AggregateResult
    overlaps: pd.DataFrame
    boundary: UnifiedReachability
    errors: BatchErrorReport = field(default_factory=BatchErrorReport)
    units: gpd.GeoDataFrame = None
    region_errors: BatchErrorReport = field(default_factory=lambda: BatchErrorReport("region"))

    @property
    def threshold_minutes(self):
        return self.boundary.threshold_minutes

    def records(self) -> List[OverlapRecord]:
        return overlap_records(self.overlaps)

    def unit_map_frame(self) -> gpd.GeoDataFrame:
        """Normalized unit geometries joined with their overlap and population."""
        if self.units is None:
            raise ValueError("Report was built without unit geometries")
        return self.units.merge(self.overlaps, on="unit_id", how="inner")


class CoverageService:
    """
    @brief Service layer for population coverage analysis

    @details
    Holds the run configuration (working CRS, worker count, missing
    population policy) and executes the pipeline for one or several
    travel-time thresholds.
    """

    def __init__(
        self,
        working_crs: str = None,
        workers: int = None,
        tolerate_missing: bool = None,
        grid_size: float = None
    ):
        self.working_crs = working_crs or config.WORKING_CRS
        self.workers = workers or config.APPORTION_WORKERS
        self.tolerate_missing = (
            config.TOLERATE_MISSING_POPULATION if tolerate_missing is None else tolerate_missing
        )
        self.grid_size = grid_size

    def prepare_units(self, units: gpd.GeoDataFrame, report: BatchErrorReport,
                      id_column: str = "unit_id") -> gpd.GeoDataFrame:
        frame, errors = normalize_frame(units, id_column, self.working_crs, self.grid_size)
        report.extend(errors)
        if id_column != "unit_id":
            frame = frame.rename(columns={id_column: "unit_id"})
        frame["unit_id"] = frame["unit_id"].astype(str)
        return frame[["unit_id", frame.geometry.name]]

    def prepare_regions(self, regions: gpd.GeoDataFrame, report: BatchErrorReport,
                        id_column: str = "location_id") -> gpd.GeoDataFrame:
        if regions is None or len(regions) == 0:
            return gpd.GeoDataFrame(
                {id_column: [], "geometry": []}, geometry="geometry", crs=self.working_crs
            )
        frame, errors = normalize_frame(regions, id_column, self.working_crs, self.grid_size)
        report.extend(errors)
        return frame

    def run(
        self,
        units: gpd.GeoDataFrame,
        regions: gpd.GeoDataFrame,
        population: pd.DataFrame,
        threshold_minutes: float = None,
        unit_id_column: str = "unit_id",
        population_column: str = "population"
    ) -> CoverageReport:
        """
        @brief Execute the pipeline for one threshold

        @param units Areal units (any CRS, optionally water-clipped)
        @param regions Reachability regions for a single threshold
        @param population Population table keyed by unit_id_column
        @param threshold_minutes Threshold the regions represent (bookkeeping)

        @return CoverageReport

        @throws MissingPopulationError Units without population (default mode)
        @throws EmptyPopulationError Zero total population
        """
        report = BatchErrorReport("unit")
        region_report = BatchErrorReport("region")

        logger.info("[STEP 1] Normalizing geometry...")
        unit_frame = self.prepare_units(units, report, unit_id_column)
        region_frame = self.prepare_regions(regions, region_report)

        logger.info("[STEP 2] Unifying reachability regions...")
        boundary = unify_reachability(region_frame, threshold_minutes)

        logger.info("[STEP 3] Apportioning overlap...")
        overlaps, degenerate = apportion_overlap(unit_frame, boundary, workers=self.workers)
        report.extend(degenerate)
        excluded_ids = [e.unit_id for e in report if e.unit_id is not None]

        logger.info("[STEP 4] Aggregating population...")
        result, joined = aggregate_population(
            overlaps,
            population,
            id_column=unit_id_column,
            population_column=population_column,
            excluded_ids=excluded_ids,
            tolerate_missing=self.tolerate_missing,
            report=report
        )

        if report:
            logger.warning(f"Run completed with excluded units: {report.summary()}")
        if region_report:
            logger.warning(f"Run completed with excluded regions: {region_report.summary()}")

        return CoverageReport(
            result=result,
            overlaps=joined,
            boundary=boundary,
            errors=report,
            units=unit_frame,
            region_errors=region_report
        )

    def run_thresholds(
        self,
        units: gpd.GeoDataFrame,
        regions: gpd.GeoDataFrame,
        population: pd.DataFrame,
        threshold_column: str = "threshold_minutes",
        **kwargs
    ) -> Dict[float, CoverageReport]:
        """
        Run the pipeline once per distinct threshold in the regions frame.

        Regions without a threshold are skipped with a warning. An empty
        result (no regions, or none with a threshold) is logged as a warning.
        """
        reports = {}
        if regions is None or len(regions) == 0:
            logger.warning("No reachability regions given; no thresholds to run")
            return reports

        unlabelled = int(regions[threshold_column].isna().sum())
        if unlabelled:
            logger.warning(f"Skipping {unlabelled} region(s) without {threshold_column}")

        for threshold, group in regions.groupby(threshold_column, sort=True):
            logger.info(f"=== Threshold {threshold} min ===")
            reports[float(threshold)] = self.run(
                units, group, population, threshold_minutes=float(threshold), **kwargs
            )

        if not reports:
            logger.warning(f"No region carries a {threshold_column}; no thresholds were run")
        return reports
