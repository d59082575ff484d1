"""
@file exceptions.py
@brief Error taxonomy and batch error reporting
@details
Geometry-level errors (invalid or degenerate units) are collected per unit
into a BatchErrorReport so a run can continue past them. Aggregation-level
errors (missing or empty population) are raised and abort the aggregation.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0
"""

import logging
from typing import Dict, Iterable, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


class CatchmentError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, unit_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.unit_id = unit_id


class InvalidGeometryError(CatchmentError):
    """Malformed, empty or non-polygonal geometry. Not auto-repairable."""


class UnprojectedGeometryError(CatchmentError):
    """
    Area or overlay work attempted outside the working projection: geometries
    in a geographic CRS, or two inputs in different CRSs.
    """


class DegenerateUnitError(CatchmentError):
    """Areal unit with zero area; excluded from aggregation."""


class MissingPopulationError(CatchmentError):
    """
    Overlap records with no matching population record.

    Carries every missing identifier so the caller can report them at once.
    """

    def __init__(self, unit_ids: Iterable[str]):
        self.unit_ids = sorted(str(u) for u in unit_ids)
        preview = ", ".join(self.unit_ids[:10])
        if len(self.unit_ids) > 10:
            preview += ", ..."
        super().__init__(
            f"No population record for {len(self.unit_ids)} unit(s): {preview}",
            unit_id=self.unit_ids[0] if len(self.unit_ids) == 1 else None
        )


class EmptyPopulationError(CatchmentError):
    """Total population of the join set is zero; the ratio is undefined."""


class IsochroneFetchError(CatchmentError):
    """A single location's isochrone request failed."""


class BatchErrorReport:
    """
    @brief Per-unit error collector for a single run

    @details
    Errors are logged as they are added. The report is the surface through
    which excluded units are handed back to the caller. kind labels what the
    identifiers refer to ("unit" for areal units, "region" for isochrones).
    """

    def __init__(self, kind: str = "unit"):
        self.kind = kind
        self._errors: List[CatchmentError] = []

    def add(self, error: CatchmentError) -> None:
        logger.warning(f"Excluded {self.kind} {error.unit_id}: {type(error).__name__}: {error.message}")
        self._errors.append(error)

    def extend(self, errors: Iterable[CatchmentError]) -> None:
        for error in errors:
            self.add(error)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self):
        return iter(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    @property
    def errors(self) -> List[CatchmentError]:
        return list(self._errors)

    def by_type(self, error_type: type) -> List[CatchmentError]:
        return [e for e in self._errors if isinstance(e, error_type)]

    def unit_ids(self, error_type: type = CatchmentError) -> List[str]:
        return [e.unit_id for e in self.by_type(error_type) if e.unit_id is not None]

    def summary(self) -> Dict[str, int]:
        """Count of errors per error class name."""
        counts: Dict[str, int] = {}
        for error in self._errors:
            name = type(error).__name__
            counts[name] = counts.get(name, 0) + 1
        return counts

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {"unit_id": e.unit_id, "error": type(e).__name__, "message": e.message}
                for e in self._errors
            ],
            columns=["unit_id", "error", "message"]
        )
