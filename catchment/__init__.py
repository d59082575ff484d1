"""
@file __init__.py
@brief Catchment package initialization

@details
Population coverage analysis: what share of a region's population lives
within a travel-time radius of any of a set of service locations.

**Package Structure:**
- core/: configuration, logging, error taxonomy
- models/: immutable records and ORM models for persisted runs
- services/: normalizer, unifier, apportioner, aggregator, coverage pipeline
- db/: database engine, session management, run persistence
- etl/: collaborators fetching locations, isochrones, units and population
- viz/: interactive coverage maps

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0

@see services.coverage for the pipeline entry point
"""

__version__ = "1.0.0"
