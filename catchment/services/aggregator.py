"""
@file aggregator.py
@brief Population Aggregator: apportion unit populations to within/outside

@details
Joins overlap records with population records on the unit identifier and
sums the apportioned population:

    population_within = Σ population_i × overlap_i
    population_total  = Σ population_i
    fraction_within   = population_within / population_total

Apportionment is fractional, assuming uniform density inside each unit: a
unit 40% inside the region contributes 40% of its population to "within".
Numerator and denominator use the same unit set. No rounding is applied.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0
"""

import logging
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from catchment.core.exceptions import (
    BatchErrorReport,
    EmptyPopulationError,
    MissingPopulationError,
)
from catchment.models.records import AggregateResult

logger = logging.getLogger(__name__)


def prepare_population(
    population: pd.DataFrame,
    id_column: str = "unit_id",
    population_column: str = "population",
    unit_ids: Optional[Iterable[str]] = None
) -> pd.DataFrame:
    """
    Validate a population table and return it as (unit_id, population).

    When unit_ids is given only those rows are kept and validated, so bad
    rows for units outside the study set never abort a run. Blank or
    non-numeric counts become NaN and surface as missing population.

    Raises:
        ValueError: On duplicate identifiers or negative counts
    """
    frame = population[[id_column, population_column]].rename(
        columns={id_column: "unit_id", population_column: "population"}
    )
    frame["unit_id"] = frame["unit_id"].astype(str)
    if unit_ids is not None:
        wanted = {str(u) for u in unit_ids}
        frame = frame[frame["unit_id"].isin(wanted)].copy()

    frame["population"] = pd.to_numeric(frame["population"], errors="coerce")
    unparsed = int(frame["population"].isna().sum())
    if unparsed:
        logger.warning(f"  → {unparsed} blank or non-numeric population value(s)")
    if (frame["population"] < 0).any():
        neg = frame.loc[frame["population"] < 0, "unit_id"].tolist()
        raise ValueError(f"Negative population for unit(s): {', '.join(neg[:10])}")

    if frame["unit_id"].duplicated().any():
        dupes = frame.loc[frame["unit_id"].duplicated(), "unit_id"].unique().tolist()
        raise ValueError(f"Duplicate population records: {', '.join(dupes[:10])}")

    return frame


def aggregate_population(
    overlaps: pd.DataFrame,
    population: pd.DataFrame,
    id_column: str = "unit_id",
    population_column: str = "population",
    excluded_ids: Optional[Iterable[str]] = None,
    tolerate_missing: bool = False,
    report: Optional[BatchErrorReport] = None
) -> Tuple[AggregateResult, pd.DataFrame]:
    """
    Apportion population to the reachable region.

    Args:
        overlaps (pd.DataFrame): Apportioner output (unit_id, overlap, ...)
        population (pd.DataFrame): Population table keyed by id_column
        id_column (str): Identifier column of the population table
        population_column (str): Count column of the population table
        excluded_ids: Units already excluded upstream (e.g. degenerate);
            they are dropped from the join and never count as missing
        tolerate_missing (bool): Exclude units without population instead of
            failing the run; each one is recorded in the report
        report (BatchErrorReport): Receives tolerated missing-population errors

    Returns:
        (AggregateResult, pd.DataFrame): Totals and the joined per-unit table
        with population, overlap, population_within and population_outside

    Raises:
        MissingPopulationError: Units without population (default mode)
        EmptyPopulationError: Total population of the join set is zero
    """
    joined = overlaps.copy()
    joined["unit_id"] = joined["unit_id"].astype(str)
    if excluded_ids:
        excluded = {str(u) for u in excluded_ids}
        joined = joined[~joined["unit_id"].isin(excluded)]

    pop = prepare_population(population, id_column, population_column, unit_ids=joined["unit_id"])

    logger.info(f"Joining {len(joined)} overlap records with {len(pop)} population records...")
    joined = joined.merge(pop, on="unit_id", how="left")

    missing: List[str] = joined.loc[joined["population"].isna(), "unit_id"].tolist()
    if missing:
        if not tolerate_missing:
            logger.error(f"  → {len(missing)} unit(s) have no population value")
            raise MissingPopulationError(missing)
        logger.warning(f"  → Excluding {len(missing)} unit(s) with no population value")
        if report is not None:
            report.extend(MissingPopulationError([uid]) for uid in missing)
        joined = joined[joined["population"].notna()]

    joined = joined.reset_index(drop=True)
    joined["population_within"] = joined["population"] * joined["overlap"]
    joined["population_outside"] = joined["population"] * (1.0 - joined["overlap"])

    population_total = float(joined["population"].sum())
    population_within = float(joined["population_within"].sum())

    if population_total == 0:
        raise EmptyPopulationError(
            f"Total population over {len(joined)} unit(s) is zero; fraction is undefined"
        )

    result = AggregateResult(
        population_within=population_within,
        population_total=population_total,
        fraction_within=population_within / population_total,
        unit_count=len(joined)
    )

    logger.info(
        f"  → {population_within:,.1f} of {population_total:,.1f} within "
        f"({result.percent_within:.2f}%)"
    )

    return result, joined
