"""
Coverage Maps

Interactive sanity-check maps of a coverage run, rendered with folium
through GeoDataFrame.explore:

- Choropleth of per-unit overlap fraction (or apportioned population)
- Outline of the unified reachability region
- Source locations as point markers

Maps are optional output; nothing in the core depends on them.

Author: Catchment Project
License: AGPL-3.0
"""

import logging
import os

import folium
import geopandas as gpd

from catchment.services.coverage import CoverageReport

logger = logging.getLogger(__name__)

WEB_CRS = "EPSG:4326"


def render_coverage_map(
    report: CoverageReport,
    locations: gpd.GeoDataFrame = None,
    column: str = "overlap",
    cmap: str = "YlGnBu",
    path: str = None
) -> folium.Map:
    """
    Build a folium map for one coverage report.

    Args:
        report (CoverageReport): Pipeline output (must carry unit geometries)
        locations (gpd.GeoDataFrame): Optional source location points
        column (str): Per-unit column to color by
        cmap (str): Matplotlib colormap name
        path (str): If given, the map is saved there as HTML

    Returns:
        folium.Map
    """
    units = report.unit_map_frame().to_crs(WEB_CRS)
    tooltip = [c for c in ("unit_id", "overlap", "population", "population_within") if c in units.columns]

    vmin, vmax = (0.0, 1.0) if column == "overlap" else (None, None)
    m = units.explore(
        column=column,
        cmap=cmap,
        vmin=vmin,
        vmax=vmax,
        tooltip=tooltip,
        name=f"Units ({column})",
        style_kwds={"weight": 0.3, "fillOpacity": 0.7}
    )

    if not report.boundary.is_empty:
        boundary = gpd.GeoDataFrame(
            {"threshold_minutes": [report.threshold_minutes]},
            geometry=[report.boundary.geometry],
            crs=report.boundary.crs
        ).to_crs(WEB_CRS)
        boundary.explore(
            m=m,
            color="#d7301f",
            name="Reachable region",
            style_kwds={"fill": False, "weight": 2}
        )

    if locations is not None and len(locations):
        locations.to_crs(WEB_CRS).explore(
            m=m,
            color="black",
            name="Locations",
            tooltip=[c for c in ("location_id", "name") if c in locations.columns],
            marker_kwds={"radius": 4}
        )

    folium.LayerControl().add_to(m)

    if path:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        m.save(path)
        logger.info(f"Map written to {path}")

    return m
