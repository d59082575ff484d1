"""
Source Location Loading

Loads the list of service locations (e.g. certified stroke centers) that the
isochrones are computed from.

Supported inputs:
- CSV with latitude/longitude columns
- Any vector file geopandas can read (GeoJSON, GeoPackage, shapefile)

Output is a point GeoDataFrame in EPSG:4326 with at least location_id, name
and geometry columns.

Author: Catchment Project
License: AGPL-3.0
"""

import logging
import os
from typing import List

import geopandas as gpd
import pandas as pd

from catchment.models.records import LocationPoint

logger = logging.getLogger(__name__)


def fetch_source_locations(
    path: str,
    id_column: str = None,
    name_column: str = "name",
    lat_column: str = "latitude",
    lon_column: str = "longitude"
) -> gpd.GeoDataFrame:
    """
    Load labelled source locations.

    Rows without coordinates are dropped and logged. When id_column is not
    given (or absent), sequential identifiers "loc-0001", ... are assigned.

    Args:
        path (str): CSV or vector file
        id_column (str): Identifier column (optional)
        name_column (str): Display name column
        lat_column (str): Latitude column (CSV only)
        lon_column (str): Longitude column (CSV only)

    Returns:
        gpd.GeoDataFrame: Points in EPSG:4326

    Raises:
        FileNotFoundError: If path does not exist
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Location file not found: {path}")

    logger.info(f"Loading source locations: {path}")

    if path.lower().endswith(".csv"):
        df = pd.read_csv(path)
        initial_count = len(df)
        df = df.dropna(subset=[lat_column, lon_column])
        removed = initial_count - len(df)
        if removed > 0:
            logger.warning(f"  → Removed {removed} locations without coordinates")
        gdf = gpd.GeoDataFrame(
            df,
            geometry=gpd.points_from_xy(df[lon_column], df[lat_column]),
            crs="EPSG:4326"
        )
    else:
        gdf = gpd.read_file(path)
        gdf = gdf[gdf.geometry.notnull() & ~gdf.geometry.is_empty]
        if gdf.crs is None:
            gdf = gdf.set_crs("EPSG:4326")
        elif gdf.crs != "EPSG:4326":
            gdf = gdf.to_crs("EPSG:4326")
        gdf = gdf[gdf.geometry.geom_type == "Point"]

    gdf = gdf.reset_index(drop=True)
    if id_column and id_column in gdf.columns:
        gdf["location_id"] = gdf[id_column].astype(str)
    else:
        gdf["location_id"] = [f"loc-{i + 1:04d}" for i in range(len(gdf))]

    if name_column in gdf.columns:
        gdf["name"] = gdf[name_column].fillna("").astype(str)
    else:
        gdf["name"] = gdf["location_id"]

    logger.info(f"  → Loaded {len(gdf)} locations")
    return gdf


def location_points(locations: gpd.GeoDataFrame) -> List[LocationPoint]:
    """Record view of a locations frame; extra columns become attributes."""
    extra = [c for c in locations.columns if c not in ("location_id", "name", locations.geometry.name)]
    return [
        LocationPoint(
            location_id=str(row["location_id"]),
            name=str(row["name"]),
            geometry=row[locations.geometry.name],
            attributes={c: row[c] for c in extra}
        )
        for _, row in locations.iterrows()
    ]
