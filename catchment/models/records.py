"""
Coverage Data Model

Immutable per-record views of the entities flowing through the pipeline.
Bulk data moves through the services as GeoDataFrames (one row per entity);
these dataclasses are what callers receive when they ask for records.

Entities:
- LocationPoint: a labelled service location (lon/lat point)
- ArealUnit: an administrative/statistical sub-region in the working CRS
- ReachabilityRegion: area reachable from one location within a threshold
- UnifiedReachability: union of all regions for one threshold
- OverlapRecord: fraction of a unit's area covered by the unified region
- PopulationRecord: population count of a unit
- AggregateResult: population within / total and their ratio

Author: Catchment Project
License: AGPL-3.0
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import geopandas as gpd
import pandas as pd
from shapely.geometry.base import BaseGeometry

Number = Union[int, float]


@dataclass(frozen=True)
class LocationPoint:
    """
    A source location (e.g. a certified stroke center).

    Attributes:
        location_id (str): Stable identifier used to key isochrone requests
        name (str): Display name
        geometry (Point): WGS84 point (x = longitude, y = latitude)
        attributes (dict): Bookkeeping fields carried through joins
    """
    location_id: str
    name: str
    geometry: BaseGeometry
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def longitude(self) -> float:
        return self.geometry.x

    @property
    def latitude(self) -> float:
        return self.geometry.y


@dataclass(frozen=True)
class ArealUnit:
    """
    Areal population unit (e.g. census block group).

    The geometry is expected to be normalized (planar, valid) and, when water
    exclusion applies, already clipped. Area is in working CRS units squared.
    """
    unit_id: str
    geometry: BaseGeometry

    @property
    def area(self) -> float:
        if self.geometry is None or self.geometry.is_empty:
            return 0.0
        return float(self.geometry.area)


@dataclass(frozen=True)
class ReachabilityRegion:
    """Polygon reachable from one location within threshold_minutes."""
    location_id: str
    geometry: BaseGeometry
    threshold_minutes: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UnifiedReachability:
    """Union of all reachability regions for one threshold."""
    geometry: BaseGeometry
    threshold_minutes: Optional[float] = None
    crs: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.geometry.is_empty

    @property
    def area(self) -> float:
        return float(self.geometry.area)


@dataclass(frozen=True)
class OverlapRecord:
    unit_id: str
    overlap: float
    total_area: float = 0.0
    intersection_area: float = 0.0

    def __post_init__(self):
        if not 0.0 <= self.overlap <= 1.0:
            raise ValueError(f"overlap must be in [0, 1], got {self.overlap}")


@dataclass(frozen=True)
class PopulationRecord:
    unit_id: str
    population: Number

    def __post_init__(self):
        if self.population < 0:
            raise ValueError(f"population must be non-negative, got {self.population}")


@dataclass(frozen=True)
class AggregateResult:
    """
    Apportioned population totals.

    Attributes:
        population_within (float): Σ population_i × overlap_i
        population_total (float): Σ population_i over the same units
        fraction_within (float): population_within / population_total
        unit_count (int): Number of units in the join set
    """
    population_within: float
    population_total: float
    fraction_within: float
    unit_count: int = 0

    @property
    def population_outside(self) -> float:
        return self.population_total - self.population_within

    @property
    def fraction_outside(self) -> float:
        return 1.0 - self.fraction_within

    @property
    def percent_within(self) -> float:
        return self.fraction_within * 100.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "population_within": self.population_within,
            "population_outside": self.population_outside,
            "population_total": self.population_total,
            "fraction_within": self.fraction_within,
            "unit_count": self.unit_count,
        }


# --------------------------------------------------------------------------
# Frame <-> record conversion
# --------------------------------------------------------------------------

def units_from_frame(units: gpd.GeoDataFrame, id_column: str = "unit_id") -> List[ArealUnit]:
    return [
        ArealUnit(unit_id=str(uid), geometry=geom)
        for uid, geom in zip(units[id_column], units.geometry)
    ]


def units_to_frame(units: List[ArealUnit], crs=None) -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {
            "unit_id": [u.unit_id for u in units],
            "geometry": [u.geometry for u in units],
        },
        geometry="geometry",
        crs=crs
    )


def regions_to_frame(regions: List[ReachabilityRegion], crs=None) -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {
            "location_id": [r.location_id for r in regions],
            "threshold_minutes": [r.threshold_minutes for r in regions],
            "geometry": [r.geometry for r in regions],
        },
        geometry="geometry",
        crs=crs
    )


def overlap_records(overlaps: pd.DataFrame) -> List[OverlapRecord]:
    """Convert an apportioner output table into OverlapRecords."""
    return [
        OverlapRecord(
            unit_id=str(row.unit_id),
            overlap=float(row.overlap),
            total_area=float(row.total_area),
            intersection_area=float(row.intersection_area),
        )
        for row in overlaps.itertuples(index=False)
    ]


def population_to_frame(records: List[PopulationRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "unit_id": [r.unit_id for r in records],
            "population": [r.population for r in records],
        }
    )
