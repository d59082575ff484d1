"""
Coverage Run Data Model

SQLAlchemy ORM models for persisted coverage runs in PostGIS.

Models:
- CoverageRun: one pipeline run for one region and threshold
- UnitOverlap: per-unit overlap and apportioned population of a run
- ReachabilityBoundary: unified reachability region of a run

Key Attributes:
- boundary geom: MULTIPOLYGON in the working CRS (SRID from WORKING_CRS)
- overlap: area fraction in [0, 1]

Author: Catchment Project
License: AGPL-3.0
"""

from datetime import datetime

from geoalchemy2 import Geometry
from pyproj import CRS
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from catchment.core import config
from catchment.db.base import Base


def working_srid() -> int:
    """EPSG code of the working CRS (0 if it has none)."""
    return CRS.from_user_input(config.WORKING_CRS).to_epsg() or 0


class CoverageRun(Base):
    """
    One coverage run.

    Attributes:
        id (int): Primary key
        region_name (str): Study region label (e.g. "Maryland")
        threshold_minutes (float): Travel-time threshold of the isochrones
        working_crs (str): CRS the areas were computed in
        population_within (float): Apportioned population inside the region
        population_total (float): Population of all joined units
        fraction_within (float): population_within / population_total
        unit_count (int): Units in the join set
        excluded_count (int): Units excluded (invalid, degenerate, missing)
        created_at (datetime): Run timestamp (UTC)
    """

    __tablename__ = "coverage_runs"

    id = Column(Integer, primary_key=True, index=True)
    region_name = Column(String(255), nullable=False, index=True)
    threshold_minutes = Column(Float, nullable=True)
    working_crs = Column(String(64), nullable=False)

    population_within = Column(Float, nullable=False)
    population_total = Column(Float, nullable=False)
    fraction_within = Column(Float, nullable=False)
    unit_count = Column(Integer, default=0)
    excluded_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    overlaps = relationship("UnitOverlap", back_populates="run", cascade="all, delete-orphan")
    boundary = relationship(
        "ReachabilityBoundary", back_populates="run", uselist=False, cascade="all, delete-orphan"
    )


class UnitOverlap(Base):
    """
    Overlap of one areal unit within a run.

    Attributes:
        unit_id (str): Areal unit identifier (e.g. 12-digit block group GEOID)
        total_area (float): Unit area in working CRS units²
        intersection_area (float): Area inside the unified region
        overlap (float): intersection_area / total_area
        population (float): Unit population
        population_within (float): population × overlap
    """

    __tablename__ = "unit_overlaps"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(Integer, ForeignKey("coverage_runs.id"), nullable=False, index=True)
    unit_id = Column(String(64), nullable=False, index=True)

    total_area = Column(Float)
    intersection_area = Column(Float)
    overlap = Column(Float, nullable=False)
    population = Column(Float)
    population_within = Column(Float)

    run = relationship("CoverageRun", back_populates="overlaps")


class ReachabilityBoundary(Base):
    """Unified reachability region of a run (MULTIPOLYGON, working SRID)."""

    __tablename__ = "reachability_boundaries"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(Integer, ForeignKey("coverage_runs.id"), nullable=False, unique=True)
    geom = Column(Geometry("MULTIPOLYGON", srid=working_srid()))

    run = relationship("CoverageRun", back_populates="boundary")
