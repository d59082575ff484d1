"""
Source Location Loading Tests

Author: Catchment Project
License: AGPL-3.0
"""

import geopandas as gpd
import pytest
from shapely.geometry import Point

from catchment.etl.locations import fetch_source_locations, location_points


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "hospitals.csv"
    path.write_text(
        "facility,name,latitude,longitude\n"
        "H1,North Hospital,39.30,-76.60\n"
        "H2,No Coordinates,,\n"
        "H3,South Hospital,39.10,-76.50\n"
    )
    return str(path)


class TestCsvLocations:

    def test_rows_without_coordinates_dropped(self, csv_file):
        gdf = fetch_source_locations(csv_file)

        assert len(gdf) == 2
        assert gdf.crs == "EPSG:4326"
        assert list(gdf["name"]) == ["North Hospital", "South Hospital"]

    def test_generated_ids(self, csv_file):
        gdf = fetch_source_locations(csv_file)
        assert list(gdf["location_id"]) == ["loc-0001", "loc-0002"]

    def test_id_column(self, csv_file):
        gdf = fetch_source_locations(csv_file, id_column="facility")
        assert list(gdf["location_id"]) == ["H1", "H3"]

    def test_coordinates(self, csv_file):
        point = fetch_source_locations(csv_file).geometry.iloc[0]
        assert (point.x, point.y) == (-76.60, 39.30)

    def test_records(self, csv_file):
        points = location_points(fetch_source_locations(csv_file, id_column="facility"))

        assert points[0].location_id == "H1"
        assert points[0].longitude == -76.60
        assert points[0].attributes["facility"] == "H1"


class TestVectorLocations:

    def test_geopackage_reprojected(self, tmp_path):
        source = gpd.GeoDataFrame(
            {"name": ["North Hospital"]},
            geometry=[Point(-76.6, 39.3)],
            crs="EPSG:4326"
        ).to_crs("EPSG:5070")
        path = tmp_path / "hospitals.gpkg"
        source.to_file(path, driver="GPKG")

        gdf = fetch_source_locations(str(path))

        assert gdf.crs == "EPSG:4326"
        assert gdf.geometry.iloc[0].x == pytest.approx(-76.6, abs=1e-6)
        assert gdf["location_id"].iloc[0] == "loc-0001"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        fetch_source_locations(str(tmp_path / "missing.csv"))
