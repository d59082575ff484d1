"""
@file unifier.py
@brief Reachability Unifier: merge per-location isochrones

@details
Merges possibly-overlapping reachability polygons into one boundary meaning
"reachable from at least one location". Which location covers a point is
discarded here.

Union is only computed in the planar working CRS; frames in a geographic
CRS are refused.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0

@see services.normalizer for projection and repair
"""

import logging
from typing import Dict, Iterable, Union

import geopandas as gpd
import shapely
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from catchment.models.records import UnifiedReachability
from catchment.services.normalizer import POLYGONAL_TYPES, repair_geometry, require_projected

logger = logging.getLogger(__name__)


def _union(geoms: Iterable[BaseGeometry]) -> BaseGeometry:
    parts = [g for g in geoms if g is not None and not g.is_empty]
    if not parts:
        return Polygon()
    merged = shapely.union_all(parts)
    if merged.is_empty:
        return Polygon()
    return repair_geometry(merged)


def unify_reachability(
    regions: Union[gpd.GeoDataFrame, gpd.GeoSeries],
    threshold_minutes: float = None
) -> UnifiedReachability:
    """
    Union all reachability polygons into a single region.

    Args:
        regions: Normalized isochrones (planar CRS). May be empty.
        threshold_minutes: Threshold the regions share, kept for bookkeeping

    Returns:
        UnifiedReachability: Empty polygon when no regions are given

    Raises:
        UnprojectedGeometryError: If the regions are in a geographic CRS
    """
    geoms = regions.geometry if isinstance(regions, gpd.GeoDataFrame) else regions
    crs = geoms.crs

    if len(geoms) == 0:
        logger.info("No reachability regions; unified region is empty")
        return UnifiedReachability(Polygon(), threshold_minutes, str(crs) if crs else None)

    require_projected(crs, "reachability regions")

    non_polygonal = [g.geom_type for g in geoms if g is not None and g.geom_type not in POLYGONAL_TYPES]
    if non_polygonal:
        logger.warning(f"Ignoring {len(non_polygonal)} non-polygonal reachability geometries")

    merged = _union(g for g in geoms if g is not None and g.geom_type in POLYGONAL_TYPES)
    logger.info(
        f"Unified {len(geoms)} reachability regions → {merged.geom_type} "
        f"(area {merged.area:,.0f})"
    )
    return UnifiedReachability(merged, threshold_minutes, crs.to_string())


def unify_by_threshold(
    regions: gpd.GeoDataFrame,
    threshold_column: str = "threshold_minutes"
) -> Dict[float, UnifiedReachability]:
    """Unify regions separately for every distinct travel-time threshold."""
    unified = {}
    for threshold, group in regions.groupby(threshold_column, sort=True):
        unified[float(threshold)] = unify_reachability(group, float(threshold))
    return unified
