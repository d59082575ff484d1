"""
Coverage Pipeline Tests

End-to-end runs of CoverageService: normalize → unify → apportion →
aggregate, including error collection and multi-threshold runs.

Author: Catchment Project
License: AGPL-3.0
"""

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Point, Polygon, box

from catchment.core.exceptions import (
    DegenerateUnitError,
    InvalidGeometryError,
    MissingPopulationError,
)
from catchment.models.records import OverlapRecord
from catchment.services.coverage import CoverageService

PLANAR = "EPSG:5070"


@pytest.fixture
def service():
    return CoverageService(working_crs=PLANAR, workers=1, tolerate_missing=False)


class TestEndToEnd:
    """The A/B/C scenario through the whole pipeline."""

    def test_scenario(self, service, scenario_units, scenario_regions, scenario_population):
        report = service.run(scenario_units, scenario_regions, scenario_population, 45.0)

        assert report.result.population_total == 2300
        assert report.result.population_within == pytest.approx(1200)
        assert report.result.fraction_within == pytest.approx(0.5217, abs=1e-4)
        assert report.threshold_minutes == 45.0
        assert not report.errors

    def test_records(self, service, scenario_units, scenario_regions, scenario_population):
        report = service.run(scenario_units, scenario_regions, scenario_population)
        records = {r.unit_id: r for r in report.records()}

        assert all(isinstance(r, OverlapRecord) for r in records.values())
        assert records["A"].overlap == 1.0
        assert records["B"].overlap == 0.0
        assert records["C"].overlap == pytest.approx(0.25)

    def test_no_regions_means_nobody_within(self, service, scenario_units, scenario_population):
        empty = gpd.GeoDataFrame({"location_id": [], "geometry": []}, crs=PLANAR)

        report = service.run(scenario_units, empty, scenario_population)

        assert report.boundary.is_empty
        assert report.result.population_within == 0.0
        assert report.result.fraction_within == 0.0

    def test_unit_map_frame(self, service, scenario_units, scenario_regions, scenario_population):
        report = service.run(scenario_units, scenario_regions, scenario_population)
        frame = report.unit_map_frame()

        assert isinstance(frame, gpd.GeoDataFrame)
        assert {"overlap", "population", "population_within"} <= set(frame.columns)
        assert len(frame) == 3


class TestGeographicInput:
    """Lon/lat inputs are projected before any area work."""

    def test_reprojected_run(self, service, geographic_units, geographic_regions):
        population = pd.DataFrame(
            {"unit_id": ["240010001001", "240010001002"], "population": [1200, 800]}
        )

        report = service.run(geographic_units, geographic_regions, population)
        overlaps = report.overlaps.set_index("unit_id")["overlap"]

        assert report.boundary.crs == PLANAR
        assert overlaps["240010001001"] == 1.0
        assert overlaps["240010001002"] == pytest.approx(0.5, abs=0.02)
        assert 0.0 < report.result.fraction_within < 1.0


class TestErrorCollection:
    """Geometry errors are collected; aggregation errors propagate."""

    def test_invalid_units_excluded_without_population(self, service, scenario_regions,
                                                       scenario_population):
        units = gpd.GeoDataFrame(
            {
                "unit_id": ["A", "B", "C", "BAD", "NONE"],
                "geometry": [
                    box(0, 0, 10, 10),
                    box(50, 0, 60, 10),
                    box(100, 0, 120, 10),
                    Point(3, 3),
                    Polygon(),
                ],
            },
            crs=PLANAR
        )

        report = service.run(units, scenario_regions, scenario_population)

        assert report.result.population_total == 2300
        assert sorted(report.errors.unit_ids(InvalidGeometryError)) == ["BAD", "NONE"]
        assert report.errors.summary() == {"InvalidGeometryError": 2}

    def test_collapsed_unit_reported_as_degenerate(self, service, scenario_regions):
        units = gpd.GeoDataFrame(
            {
                "unit_id": ["A", "Z"],
                "geometry": [box(0, 0, 10, 10), Polygon([(0, 0), (5, 0), (10, 0), (0, 0)])],
            },
            crs=PLANAR
        )
        population = pd.DataFrame({"unit_id": ["A"], "population": [1000]})

        report = service.run(units, scenario_regions, population)

        assert report.errors.summary() == {"DegenerateUnitError": 1}
        assert report.errors.unit_ids(DegenerateUnitError) == ["Z"]
        assert report.result.population_total == 1000

    def test_bad_region_does_not_exclude_unit_with_same_id(self, service):
        units = gpd.GeoDataFrame(
            {"unit_id": ["1", "2"], "geometry": [box(0, 0, 10, 10), box(50, 0, 60, 10)]},
            crs=PLANAR
        )
        regions = gpd.GeoDataFrame(
            {
                "location_id": ["1", "loc-2"],
                "geometry": [Point(100, 100), box(-5, -5, 15, 15)],
            },
            crs=PLANAR
        )
        population = pd.DataFrame({"unit_id": ["1", "2"], "population": [1000, 500]})

        report = service.run(units, regions, population)

        assert report.result.population_total == 1500
        assert report.result.population_within == pytest.approx(1000)
        assert not report.errors
        assert report.region_errors.unit_ids(InvalidGeometryError) == ["1"]

    def test_blank_population_outside_study_set_ignored(self, scenario_units, scenario_regions,
                                                         scenario_population):
        service = CoverageService(working_crs=PLANAR, tolerate_missing=True)
        population = pd.concat(
            [scenario_population, pd.DataFrame({"unit_id": ["OTHER"], "population": [None]})],
            ignore_index=True
        )

        report = service.run(scenario_units, scenario_regions, population)

        assert report.result.population_total == 2300
        assert not report.errors

    def test_null_population_tolerated(self, scenario_units, scenario_regions):
        service = CoverageService(working_crs=PLANAR, tolerate_missing=True)
        population = pd.DataFrame({"unit_id": ["A", "B", "C"], "population": [1000, None, 800]})

        report = service.run(scenario_units, scenario_regions, population)

        assert report.result.population_total == 1800
        assert report.errors.unit_ids(MissingPopulationError) == ["B"]

    def test_missing_population_aborts(self, service, scenario_units, scenario_regions):
        population = pd.DataFrame({"unit_id": ["A", "B"], "population": [1000, 500]})
        with pytest.raises(MissingPopulationError):
            service.run(scenario_units, scenario_regions, population)

    def test_missing_population_tolerated(self, scenario_units, scenario_regions):
        service = CoverageService(working_crs=PLANAR, tolerate_missing=True)
        population = pd.DataFrame({"unit_id": ["A", "B"], "population": [1000, 500]})

        report = service.run(scenario_units, scenario_regions, population)

        assert report.result.population_total == 1500
        assert report.errors.unit_ids(MissingPopulationError) == ["C"]


class TestThresholds:
    """One report per travel-time band."""

    def test_run_thresholds(self, service, scenario_units, scenario_population):
        regions = gpd.GeoDataFrame(
            {
                "location_id": ["loc-1", "loc-1"],
                "threshold_minutes": [30.0, 60.0],
                "geometry": [box(-5, -5, 15, 15), box(-5, -5, 200, 15)],
            },
            crs=PLANAR
        )

        reports = service.run_thresholds(scenario_units, regions, scenario_population)

        assert sorted(reports) == [30.0, 60.0]
        assert reports[30.0].result.population_within == pytest.approx(1000)
        assert reports[60.0].result.population_within == pytest.approx(2300)
        assert reports[60.0].result.fraction_within == 1.0

    def test_no_regions_logs_warning(self, service, scenario_units, scenario_population, caplog):
        empty = gpd.GeoDataFrame({"threshold_minutes": [], "geometry": []}, crs=PLANAR)

        reports = service.run_thresholds(scenario_units, empty, scenario_population)

        assert reports == {}
        assert "No reachability regions" in caplog.text

    def test_regions_without_threshold_skipped(self, service, scenario_units,
                                               scenario_population, caplog):
        regions = gpd.GeoDataFrame(
            {
                "location_id": ["loc-1", "loc-2"],
                "threshold_minutes": [None, None],
                "geometry": [box(-5, -5, 15, 15), box(95, -5, 105, 15)],
            },
            crs=PLANAR
        )

        reports = service.run_thresholds(scenario_units, regions, scenario_population)

        assert reports == {}
        assert "Skipping 2 region(s)" in caplog.text
        assert "no thresholds were run" in caplog.text
