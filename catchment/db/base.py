"""
Database Base Configuration Module

This module establishes the SQLAlchemy declarative base which all ORM models inherit from.

Author: Catchment Project
License: AGPL-3.0
"""

from sqlalchemy.orm import declarative_base

# All ORM models must inherit from this base to be registered with SQLAlchemy
Base = declarative_base()
