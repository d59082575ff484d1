"""
@file isochrones.py
@brief Drive-time isochrones from the OpenRouteService API

@details
Fetches one reachability polygon per source location, location by location,
with a rate-limit delay between calls.

**Partial failure contract:**
A failing location never aborts the batch. The fetch returns the regions
that succeeded plus the identifiers that failed; the caller decides whether
to run a second pass over only those (retry_failed). Once handed to the core
the region set is final.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List

import geopandas as gpd
import pandas as pd
import requests
from shapely.geometry import shape

from catchment.core import config
from catchment.core.exceptions import IsochroneFetchError

logger = logging.getLogger(__name__)

REGION_COLUMNS = ["location_id", "name", "threshold_minutes", "geometry"]


@dataclass
class FetchResult:
    """
    Outcome of a batch isochrone fetch.

    Attributes:
        regions (gpd.GeoDataFrame): One row per succeeded location (EPSG:4326)
        failed (dict): location_id -> error message for failed locations
    """
    regions: gpd.GeoDataFrame
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def failed_ids(self) -> List[str]:
        return list(self.failed)

    @property
    def complete(self) -> bool:
        return not self.failed


def _empty_regions() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame({c: [] for c in REGION_COLUMNS}, geometry="geometry", crs="EPSG:4326")


class IsochroneClient:
    """
    @brief Thin OpenRouteService isochrone client

    @details
    POST {base_url}/v2/isochrones/{profile} with one location per request and
    range_type=time. The API returns a GeoJSON FeatureCollection in WGS84.
    """

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        profile: str = None,
        rate_limit_seconds: float = None,
        timeout: int = None,
        session: requests.Session = None
    ):
        self.api_key = api_key if api_key is not None else config.ORS_API_KEY
        self.base_url = (base_url or config.ORS_BASE_URL).rstrip("/")
        self.profile = profile or config.ORS_PROFILE
        self.rate_limit_seconds = (
            config.ISOCHRONE_RATE_LIMIT_SECONDS if rate_limit_seconds is None else rate_limit_seconds
        )
        self.timeout = timeout or config.REQUEST_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v2/isochrones/{self.profile}"

    def fetch_isochrone(self, location_id: str, lon: float, lat: float, threshold_minutes: float):
        """
        @brief Request the isochrone of a single location

        @return Shapely Polygon/MultiPolygon in EPSG:4326

        @throws IsochroneFetchError HTTP failure, bad payload or no polygon
        """
        body = {
            "locations": [[lon, lat]],
            "range": [int(round(threshold_minutes * 60))],
            "range_type": "time",
        }
        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json; charset=utf-8",
            "Accept": "application/geo+json, application/json",
        }
        try:
            resp = self.session.post(self.endpoint, json=body, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            raise IsochroneFetchError(f"Request failed: {e}", unit_id=location_id)
        except ValueError as e:
            raise IsochroneFetchError(f"Invalid JSON response: {e}", unit_id=location_id)

        features = data.get("features") or []
        if not features or not features[0].get("geometry"):
            raise IsochroneFetchError("Response contains no isochrone", unit_id=location_id)

        geom = shape(features[0]["geometry"])
        if geom.geom_type not in ("Polygon", "MultiPolygon") or geom.is_empty:
            raise IsochroneFetchError(f"Unexpected geometry {geom.geom_type}", unit_id=location_id)
        return geom

    def fetch_reachability_regions(
        self,
        locations: gpd.GeoDataFrame,
        threshold_minutes: float = None
    ) -> FetchResult:
        """
        @brief Fetch isochrones for every location, capturing failures

        @param locations Point frame with location_id and name (EPSG:4326)
        @param threshold_minutes Travel time [default: config.THRESHOLD_MINUTES]

        @return FetchResult with succeeded regions and failed identifiers
        """
        threshold_minutes = threshold_minutes or config.THRESHOLD_MINUTES
        if locations.crs is not None and locations.crs != "EPSG:4326":
            locations = locations.to_crs("EPSG:4326")

        logger.info(f"Fetching {threshold_minutes:g}-minute isochrones for {len(locations)} locations...")

        rows = []
        failed: Dict[str, str] = {}
        for i, (_, loc) in enumerate(locations.iterrows()):
            location_id = str(loc["location_id"])
            if i > 0 and self.rate_limit_seconds:
                time.sleep(self.rate_limit_seconds)
            try:
                geom = self.fetch_isochrone(location_id, loc.geometry.x, loc.geometry.y, threshold_minutes)
            except IsochroneFetchError as e:
                logger.warning(f"  → Isochrone failed for {location_id}: {e.message}")
                failed[location_id] = e.message
                continue
            rows.append({
                "location_id": location_id,
                "name": loc.get("name", location_id),
                "threshold_minutes": float(threshold_minutes),
                "geometry": geom,
            })

        regions = (
            gpd.GeoDataFrame(rows, geometry="geometry", crs="EPSG:4326") if rows else _empty_regions()
        )
        logger.info(f"  → {len(regions)} succeeded, {len(failed)} failed")
        return FetchResult(regions=regions, failed=failed)

    def retry_failed(
        self,
        previous: FetchResult,
        locations: gpd.GeoDataFrame,
        threshold_minutes: float = None
    ) -> FetchResult:
        """
        Second pass over only the failed locations of a previous fetch.

        Returns a merged FetchResult: previous successes plus retried
        successes; failed holds only the locations that failed again.
        """
        if previous.complete:
            return previous

        retry = locations[locations["location_id"].astype(str).isin(previous.failed_ids)]
        logger.info(f"Retrying {len(retry)} failed locations...")
        second = self.fetch_reachability_regions(retry, threshold_minutes)

        frames = [f for f in (previous.regions, second.regions) if len(f)]
        if frames:
            merged = gpd.GeoDataFrame(
                pd.concat(frames, ignore_index=True), geometry="geometry", crs="EPSG:4326"
            )
        else:
            merged = _empty_regions()
        return FetchResult(regions=merged, failed=second.failed)


def fetch_reachability_regions(
    locations: gpd.GeoDataFrame,
    threshold_minutes: float = None,
    client: IsochroneClient = None,
    retry: bool = True
) -> FetchResult:
    """Fetch isochrones for all locations, optionally with one retry pass."""
    client = client or IsochroneClient()
    result = client.fetch_reachability_regions(locations, threshold_minutes)
    if retry and not result.complete:
        result = client.retry_failed(result, locations, threshold_minutes)
    if not result.complete:
        logger.warning(f"Isochrones still missing for: {', '.join(result.failed_ids)}")
    return result
