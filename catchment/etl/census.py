"""
Census Data Extraction

Areal units and population counts for the study region.

Data Sources:
- Areal units: TIGER/Line or cartographic boundary files (block groups),
  read with geopandas from a local path or URL
- Water bodies: TIGER/Line AREAWATER (optional, used to clip units)
- Population: ACS 5-year estimate B01003_001E (total population) from the
  U.S. Census Bureau API, at block-group level

Both sides are keyed by the 12-digit block group GEOID
(state 2 + county 3 + tract 6 + block group 1).

Author: Catchment Project
License: AGPL-3.0
"""

import logging
from typing import List, Optional, Tuple

import geopandas as gpd
import pandas as pd
import requests

from catchment.core import config

logger = logging.getLogger(__name__)

POPULATION_VARIABLE = "B01003_001E"


def fetch_areal_units(
    source: str,
    id_column: str = "GEOID",
    county_fips: Optional[List[str]] = None,
    county_column: str = "COUNTYFP"
) -> gpd.GeoDataFrame:
    """
    Load areal unit boundaries.

    Args:
        source (str): Path or URL of any format geopandas can read
        id_column (str): Identifier column (GEOID for TIGER files)
        county_fips (list): Optional 3-digit county codes to keep
        county_column (str): Column holding the county code

    Returns:
        gpd.GeoDataFrame: unit_id + geometry, in the file's CRS
    """
    logger.info(f"Loading areal units: {source}")
    gdf = gpd.read_file(source)
    logger.info(f"  → Loaded {len(gdf)} features")

    if county_fips:
        wanted = {str(c).zfill(3) for c in county_fips}
        gdf = gdf[gdf[county_column].astype(str).str.zfill(3).isin(wanted)]
        logger.info(f"  → {len(gdf)} features in counties {sorted(wanted)}")

    gdf = gdf.rename(columns={id_column: "unit_id"}) if id_column != "unit_id" else gdf
    gdf["unit_id"] = gdf["unit_id"].astype(str)
    return gdf[["unit_id", gdf.geometry.name]].reset_index(drop=True)


def clip_water(units: gpd.GeoDataFrame, water: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Remove water bodies from unit geometries.

    Units lying entirely in water disappear from the result. Run this in the
    working CRS so the subtraction happens on planar geometry.

    Args:
        units (gpd.GeoDataFrame): Areal units
        water (gpd.GeoDataFrame): Water polygons (reprojected to units.crs)

    Returns:
        gpd.GeoDataFrame: Units with water removed
    """
    if water is None or len(water) == 0:
        return units

    logger.info(f"Clipping {len(water)} water bodies from {len(units)} units...")
    if water.crs != units.crs:
        water = water.to_crs(units.crs)

    water = water[water.geometry.notnull()][[water.geometry.name]]
    clipped = gpd.overlay(units, water, how="difference", keep_geom_type=True)

    lost = len(units) - len(clipped)
    if lost > 0:
        logger.warning(f"  → {lost} units lie entirely in water and were dropped")
    return clipped


def _population_params(state_fips: str, county_fips: str, api_key: str) -> List[Tuple[str, str]]:
    params = [
        ("get", f"NAME,{POPULATION_VARIABLE}"),
        ("for", "block group:*"),
        ("in", f"state:{state_fips}"),
        ("in", f"county:{county_fips}"),
        ("in", "tract:*"),
    ]
    if api_key:
        params.append(("key", api_key))
    return params


def fetch_population(
    state_fips: str,
    county_fips: str = "*",
    year: int = None,
    api_key: str = None,
    session: requests.Session = None
) -> pd.DataFrame:
    """
    Fetch ACS total population per block group.

    Census annotation values (negative sentinels such as -666666666) are
    treated as "no estimate" and dropped, so the affected units surface as
    missing population downstream rather than as zero.

    Args:
        state_fips (str): 2-digit state code (e.g. "24" for Maryland)
        county_fips (str): 3-digit county code or "*"
        year (int): ACS 5-year release [default: config.ACS_YEAR]
        api_key (str): Census API key [default: config.CENSUS_API_KEY]

    Returns:
        pd.DataFrame: unit_id (GEOID), name, population

    Raises:
        requests.HTTPError: Non-2xx response
        ValueError: Response is not a Census table
    """
    year = year or config.ACS_YEAR
    api_key = config.CENSUS_API_KEY if api_key is None else api_key
    session = session or requests.Session()
    url = f"{config.CENSUS_BASE_URL}/{year}/acs/acs5"

    logger.info(f"Fetching ACS {year} population for state {state_fips}, county {county_fips}...")
    resp = session.get(
        url,
        params=_population_params(str(state_fips).zfill(2), county_fips, api_key),
        timeout=config.REQUEST_TIMEOUT_SECONDS
    )
    resp.raise_for_status()
    data = resp.json()

    if not isinstance(data, list) or len(data) < 1 or POPULATION_VARIABLE not in data[0]:
        raise ValueError("Unexpected Census API response")

    df = pd.DataFrame(data[1:], columns=data[0])
    df["unit_id"] = (
        df["state"].astype(str).str.zfill(2)
        + df["county"].astype(str).str.zfill(3)
        + df["tract"].astype(str).str.zfill(6)
        + df["block group"].astype(str)
    )
    df["population"] = pd.to_numeric(df[POPULATION_VARIABLE], errors="coerce")

    invalid = df["population"].isna() | (df["population"] < 0)
    if invalid.any():
        logger.warning(f"  → Dropped {int(invalid.sum())} block groups without an estimate")
    df = df[~invalid]

    logger.info(f"  → {len(df)} block groups, population {df['population'].sum():,.0f}")
    return df[["unit_id", "NAME", "population"]].rename(columns={"NAME": "name"}).reset_index(drop=True)
