"""
Test Configuration and Shared Fixtures

Shared pytest fixtures and configuration for the test suite.

Geometry fixtures live in a planar CRS (EPSG:5070) with simple boxes so that
areas are exact; the geographic fixtures sit in Maryland (EPSG:4326).

Fixtures:
- scenario_units: units A (area 100), B (area 100), C (area 200)
- scenario_regions: isochrones covering all of A, none of B, 50 of C
- scenario_population: A=1000, B=500, C=800
- geographic_units / geographic_regions: lon/lat inputs for reprojection

Author: Catchment Project
License: AGPL-3.0
"""

import logging

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

PLANAR_CRS = "EPSG:5070"
GEOGRAPHIC_CRS = "EPSG:4326"

CORE_MODULES = ("test_normalizer", "test_unifier", "test_apportioner", "test_aggregator", "test_coverage")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "core: Apportionment core tests (pure, fast)")
    config.addinivalue_line("markers", "etl: Data collaborator tests (HTTP mocked)")
    config.addinivalue_line("markers", "database: Persistence tests (session mocked)")
    config.addinivalue_line("markers", "viz: Map rendering tests")
    config.addinivalue_line("markers", "slow: Slow-running tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        path = str(item.fspath)
        if any(name in path for name in CORE_MODULES):
            item.add_marker(pytest.mark.core)
        elif any(name in path for name in ("test_isochrones", "test_census", "test_locations")):
            item.add_marker(pytest.mark.etl)
        elif "test_store" in path:
            item.add_marker(pytest.mark.database)
        elif "test_maps" in path:
            item.add_marker(pytest.mark.viz)


@pytest.fixture
def scenario_units():
    """
    Three planar units.

    Returns:
        gpd.GeoDataFrame: A (10x10 at origin), B (10x10 at x=50),
        C (20x10 at x=100)
    """
    return gpd.GeoDataFrame(
        {
            "unit_id": ["A", "B", "C"],
            "geometry": [
                box(0, 0, 10, 10),
                box(50, 0, 60, 10),
                box(100, 0, 120, 10),
            ],
        },
        crs=PLANAR_CRS
    )


@pytest.fixture
def scenario_regions():
    """
    Two isochrones: one containing A, one covering x in [100, 105] of C.

    Returns:
        gpd.GeoDataFrame: Planar reachability regions at 45 minutes
    """
    return gpd.GeoDataFrame(
        {
            "location_id": ["loc-1", "loc-2"],
            "name": ["North Center", "East Center"],
            "threshold_minutes": [45.0, 45.0],
            "geometry": [
                box(-5, -5, 15, 15),
                box(95, -5, 105, 15),
            ],
        },
        crs=PLANAR_CRS
    )


@pytest.fixture
def scenario_population():
    return pd.DataFrame({"unit_id": ["A", "B", "C"], "population": [1000, 500, 800]})


@pytest.fixture
def scenario_overlaps():
    """Apportioner-shaped table for the A/B/C scenario."""
    return pd.DataFrame(
        {
            "unit_id": ["A", "B", "C"],
            "total_area": [100.0, 100.0, 200.0],
            "intersection_area": [100.0, 0.0, 50.0],
            "overlap": [1.0, 0.0, 0.25],
        }
    )


@pytest.fixture
def geographic_units():
    """Two 0.1° block-group-like squares near Baltimore, lon/lat."""
    return gpd.GeoDataFrame(
        {
            "unit_id": ["240010001001", "240010001002"],
            "geometry": [
                box(-76.70, 39.30, -76.60, 39.40),
                box(-76.50, 39.30, -76.40, 39.40),
            ],
        },
        crs=GEOGRAPHIC_CRS
    )


@pytest.fixture
def geographic_regions():
    """One isochrone covering the first unit and half of the second."""
    return gpd.GeoDataFrame(
        {
            "location_id": ["loc-1"],
            "threshold_minutes": [45.0],
            "geometry": [box(-76.80, 39.20, -76.45, 39.50)],
        },
        crs=GEOGRAPHIC_CRS
    )
