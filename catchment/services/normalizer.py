"""
@file normalizer.py
@brief Geometry Normalizer: projection and topology repair

@details
Brings polygons (isochrones, areal units) into the single planar working CRS
used for all area computation and repairs their topology there.

**Order of operations:**
1. Reject missing, empty and non-polygonal input (InvalidGeometryError)
2. Re-project from the source CRS to the working CRS
3. Optionally snap coordinates to a grid (NORMALIZE_GRID_SIZE)
4. Repair with shapely.make_valid and keep only the polygonal part

**Collapsed polygons:** a non-empty polygon whose repair leaves no area (a
sliver with all vertices on one line) is a DegenerateUnitError, not an
InvalidGeometryError.

Repair runs after projection because curvature can introduce or reveal
invalid topology.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0
"""

import logging
from typing import List, Optional, Tuple

import geopandas as gpd
import shapely
from pyproj import CRS
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from catchment.core import config
from catchment.core.exceptions import (
    CatchmentError,
    DegenerateUnitError,
    InvalidGeometryError,
    UnprojectedGeometryError,
)

logger = logging.getLogger(__name__)

POLYGONAL_TYPES = ("Polygon", "MultiPolygon")


def _polygonal_part(geom: BaseGeometry) -> BaseGeometry:
    """Drop points and lines left over from a repair; return (Multi)Polygon."""
    if geom.geom_type in POLYGONAL_TYPES:
        return geom
    if isinstance(geom, GeometryCollection):
        polys = []
        for part in geom.geoms:
            if part.geom_type == "Polygon":
                polys.append(part)
            elif part.geom_type == "MultiPolygon":
                polys.extend(part.geoms)
        if not polys:
            return Polygon()
        if len(polys) == 1:
            return polys[0]
        return shapely.union_all(polys)
    return Polygon()


def repair_geometry(geom: BaseGeometry, grid_size: float = 0.0) -> BaseGeometry:
    """
    Snap (optionally) and repair a planar geometry.

    Args:
        geom: Polygon or MultiPolygon in a planar CRS
        grid_size: Snap grid in CRS units; 0 disables snapping

    Returns:
        Valid Polygon or MultiPolygon covering the intended area

    Raises:
        DegenerateUnitError: If a non-empty polygon collapses to zero area
        InvalidGeometryError: If nothing polygonal survives the repair
    """
    collapsible = geom.geom_type in POLYGONAL_TYPES and not geom.is_empty
    if grid_size and grid_size > 0:
        geom = shapely.set_precision(geom, grid_size)
    if not geom.is_valid:
        geom = shapely.make_valid(geom)
    geom = _polygonal_part(geom)
    if geom.is_empty and collapsible:
        raise DegenerateUnitError("Polygon collapses to zero area")
    if geom.is_empty:
        raise InvalidGeometryError("Geometry has no polygonal area after repair")
    return geom


def check_polygonal(geom, unit_id: Optional[str] = None) -> BaseGeometry:
    """Raise InvalidGeometryError unless geom is a non-empty (Multi)Polygon."""
    if geom is None:
        raise InvalidGeometryError("Geometry is missing", unit_id=unit_id)
    if isinstance(geom, (str, bytes)):
        try:
            geom = shapely.from_wkt(geom) if isinstance(geom, str) else shapely.from_wkb(geom)
        except GEOSException as e:
            raise InvalidGeometryError(f"Geometry could not be parsed: {e}", unit_id=unit_id)
    if not isinstance(geom, BaseGeometry):
        raise InvalidGeometryError(f"Not a geometry: {type(geom).__name__}", unit_id=unit_id)
    if geom.is_empty:
        raise InvalidGeometryError("Geometry is empty", unit_id=unit_id)
    if geom.geom_type not in POLYGONAL_TYPES:
        raise InvalidGeometryError(
            f"Expected Polygon or MultiPolygon, got {geom.geom_type}", unit_id=unit_id
        )
    return geom


def require_projected(crs, what: str = "geometries") -> None:
    """
    Refuse area/overlay work outside a planar CRS.

    Raises:
        UnprojectedGeometryError: If crs is missing or geographic
    """
    if crs is None:
        raise UnprojectedGeometryError(f"{what} have no CRS; normalize them first")
    if CRS.from_user_input(crs).is_geographic:
        raise UnprojectedGeometryError(
            f"{what} are in geographic CRS {crs}; normalize to a planar CRS first"
        )


def normalize_geometry(
    geom,
    source_crs: str = None,
    target_crs: str = None,
    grid_size: float = None
) -> BaseGeometry:
    """
    @brief Project a single polygon to the working CRS and repair it

    @param geom Polygon/MultiPolygon (shapely, WKT or WKB)
    @param source_crs CRS of geom [default: config.SOURCE_CRS]
    @param target_crs Planar working CRS [default: config.WORKING_CRS]
    @param grid_size Snap grid [default: config.NORMALIZE_GRID_SIZE]

    @return Valid Polygon/MultiPolygon in target_crs

    @throws InvalidGeometryError Empty, unparseable or non-polygonal input
    @throws DegenerateUnitError Polygon with zero area
    """
    source_crs = source_crs or config.SOURCE_CRS
    target_crs = target_crs or config.WORKING_CRS
    grid_size = config.NORMALIZE_GRID_SIZE if grid_size is None else grid_size

    geom = check_polygonal(geom)
    require_projected(target_crs, "target CRS")

    projected = gpd.GeoSeries([geom], crs=source_crs).to_crs(target_crs).iloc[0]
    return repair_geometry(projected, grid_size)


def normalize_frame(
    gdf: gpd.GeoDataFrame,
    id_column: str,
    target_crs: str = None,
    grid_size: float = None
) -> Tuple[gpd.GeoDataFrame, List[CatchmentError]]:
    """
    Normalize every row of a GeoDataFrame, excluding rows that cannot be.

    Rows with missing, empty or non-polygonal geometry (InvalidGeometryError)
    or with zero area (DegenerateUnitError) are dropped and returned as
    errors. The batch always
    continues. A frame without a CRS is assumed to be in config.SOURCE_CRS.

    Args:
        gdf (gpd.GeoDataFrame): Units or isochrones in any CRS
        id_column (str): Column holding the stable identifier
        target_crs (str): Planar working CRS [default: config.WORKING_CRS]
        grid_size (float): Snap grid [default: config.NORMALIZE_GRID_SIZE]

    Returns:
        (gpd.GeoDataFrame, list): Normalized frame in target_crs and the
        error raised for each excluded row
    """
    target_crs = target_crs or config.WORKING_CRS
    grid_size = config.NORMALIZE_GRID_SIZE if grid_size is None else grid_size
    require_projected(target_crs, "target CRS")

    logger.info(f"Normalizing {len(gdf)} geometries to {target_crs}...")

    errors: List[CatchmentError] = []
    keep = []
    for idx, uid, geom in zip(gdf.index, gdf[id_column], gdf.geometry):
        try:
            check_polygonal(geom, unit_id=str(uid))
            keep.append(idx)
        except InvalidGeometryError as e:
            errors.append(e)

    frame = gdf.loc[keep].copy()
    if frame.crs is None:
        frame = frame.set_crs(config.SOURCE_CRS)
    if frame.crs != target_crs:
        logger.info(f"  → Reprojecting from {frame.crs} to {target_crs}")
        frame = frame.to_crs(target_crs)

    repaired = {}
    for idx, uid, geom in zip(frame.index, frame[id_column], frame.geometry):
        try:
            repaired[idx] = repair_geometry(geom, grid_size)
        except (InvalidGeometryError, DegenerateUnitError) as e:
            e.unit_id = str(uid)
            errors.append(e)

    frame = frame.loc[list(repaired)].copy()
    frame[frame.geometry.name] = gpd.GeoSeries(
        list(repaired.values()), index=frame.index, crs=frame.crs
    )

    for e in errors:
        logger.warning(f"  → Excluded {e.unit_id}: {e.message}")
    logger.info(f"  → {len(frame)} valid, {len(errors)} excluded")

    return frame, errors


def to_multipolygon(geom: BaseGeometry) -> MultiPolygon:
    """Wrap a Polygon as a MultiPolygon (for fixed-type storage columns)."""
    if geom.geom_type == "MultiPolygon":
        return geom
    if geom.is_empty:
        return MultiPolygon()
    return MultiPolygon([geom])
