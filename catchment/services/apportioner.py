"""
@file apportioner.py
@brief Overlap Apportioner: area fraction of each unit inside the region

@details
For every areal unit computes

    overlap = area(unit ∩ region) / area(unit), clipped to [0, 1]

This is exact areal overlap, not centroid membership: a unit straddling the
reachable boundary gets a value proportional to its covered area.

**Exact boundaries:**
- Units disjoint from the region get exactly 0.0
- Units covered by the region get exactly 1.0

**Degenerate units:** a unit with zero area is reported as a
DegenerateUnitError and left out of the output table, so it never reaches
the aggregation step.

Intersection is the dominant cost and is a batch operation. Units are
independent, so large inputs can be split into chunks and computed in a
thread pool (shapely releases the GIL inside vectorised operations). Each
chunk works on its own prepared copy of the region; GEOS builds prepared
indexes lazily, so one prepared geometry is not shared between threads.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0

@see services.aggregator for the population join
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import shapely
from pyproj import CRS

from catchment.core.exceptions import DegenerateUnitError, UnprojectedGeometryError
from catchment.models.records import UnifiedReachability
from catchment.services.normalizer import require_projected

logger = logging.getLogger(__name__)

OVERLAP_COLUMNS = ["unit_id", "total_area", "intersection_area", "overlap"]


def _apportion_chunk(units: gpd.GeoDataFrame, region) -> pd.DataFrame:
    """Compute area, intersection area and overlap for one chunk of units."""
    geoms = units.geometry.to_numpy()
    total_area = np.asarray(shapely.area(geoms), dtype=float)

    intersection_area = np.zeros(len(units), dtype=float)
    overlap = np.zeros(len(units), dtype=float)

    # Zero-area and missing geometries are never intersected
    measurable = np.isfinite(total_area) & (total_area > 0)

    if not region.is_empty and measurable.any():
        hits = np.zeros(len(units), dtype=bool)
        covered = np.zeros(len(units), dtype=bool)
        hits[measurable] = shapely.intersects(region, geoms[measurable])
        covered[hits] = shapely.covered_by(geoms[hits], region)
        partial = hits & ~covered

        intersection_area[covered] = total_area[covered]
        overlap[covered] = 1.0

        if partial.any():
            inter = shapely.intersection(geoms[partial], region)
            intersection_area[partial] = shapely.area(inter)
            overlap[partial] = intersection_area[partial] / total_area[partial]

    # Floating point overshoot from the overlay (e.g. 1.0000000002)
    overlap = np.clip(overlap, 0.0, 1.0)

    return pd.DataFrame(
        {
            "unit_id": units["unit_id"].astype(str).values,
            "total_area": total_area,
            "intersection_area": intersection_area,
            "overlap": overlap,
        }
    )


def apportion_overlap(
    units: gpd.GeoDataFrame,
    region: Union[UnifiedReachability, "shapely.Geometry"],
    id_column: str = "unit_id",
    workers: int = 1,
    chunk_size: int = 2000
) -> Tuple[pd.DataFrame, List[DegenerateUnitError]]:
    """
    Compute one overlap record per areal unit.

    Args:
        units (gpd.GeoDataFrame): Normalized units in a planar CRS
        region: Unified reachability region (same CRS as units)
        id_column (str): Column holding the unit identifier
        workers (int): Thread pool size; 1 computes serially
        chunk_size (int): Units per task when workers > 1

    Returns:
        (pd.DataFrame, list): Table with unit_id, total_area,
        intersection_area and overlap (input order, degenerate units removed)
        and one DegenerateUnitError per zero-area unit

    Raises:
        UnprojectedGeometryError: If the units are in a geographic CRS, or
            the region carries a CRS different from the units
        ValueError: If unit identifiers are not unique
    """
    geometry = region.geometry if isinstance(region, UnifiedReachability) else region
    require_projected(units.crs, "areal units")
    if isinstance(region, UnifiedReachability) and region.crs is not None:
        if CRS.from_user_input(region.crs) != CRS.from_user_input(units.crs):
            raise UnprojectedGeometryError(
                f"Region is in {region.crs} but areal units are in {units.crs}; "
                "normalize both to the same working CRS"
            )

    if units[id_column].duplicated().any():
        dupes = units.loc[units[id_column].duplicated(), id_column].astype(str).unique()
        raise ValueError(f"Duplicate unit identifiers: {', '.join(dupes[:10])}")

    frame = units[[id_column, units.geometry.name]].rename(columns={id_column: "unit_id"})
    logger.info(f"Apportioning overlap for {len(frame)} units (workers={workers})...")

    if workers and workers > 1 and len(frame) > chunk_size:
        chunks = [frame.iloc[i:i + chunk_size] for i in range(0, len(frame), chunk_size)]
        wkb = shapely.to_wkb(geometry)

        def run_chunk(chunk):
            local = shapely.from_wkb(wkb)
            if not local.is_empty:
                shapely.prepare(local)
            return _apportion_chunk(chunk, local)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(run_chunk, chunks))
        table = pd.concat(results, ignore_index=True)
    elif len(frame):
        if not geometry.is_empty:
            shapely.prepare(geometry)
        table = _apportion_chunk(frame, geometry)
    else:
        table = pd.DataFrame(columns=OVERLAP_COLUMNS)

    degenerate_mask = ~(table["total_area"] > 0)
    errors = [
        DegenerateUnitError("Unit has zero area", unit_id=uid)
        for uid in table.loc[degenerate_mask, "unit_id"]
    ]
    table = table.loc[~degenerate_mask].reset_index(drop=True)

    logger.info(
        f"  → {int((table['overlap'] == 1.0).sum())} fully covered, "
        f"{int((table['overlap'] == 0.0).sum())} uncovered, "
        f"{int(((table['overlap'] > 0) & (table['overlap'] < 1)).sum())} partial, "
        f"{len(errors)} degenerate"
    )

    return table, errors
