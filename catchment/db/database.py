"""
@file database.py
@brief SQLAlchemy database engine and session configuration

@details
Centralized database connection management for persisting coverage runs
to PostgreSQL/PostGIS. The engine is created lazily so the core pipeline
can run without a database.

@author Catchment Project
@date 2026-10-17
@version 1.0
@license AGPL-3.0

@see db.store for run persistence
"""

from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from catchment.core import config
from catchment.db.base import Base

_engine = None
_session_factory = None


def get_engine(url: str = None):
    """
    @brief Return the shared engine, creating it on first use

    @param url Database URL [default: config.DATABASE_URL]
    """
    global _engine, _session_factory
    if _engine is None or url is not None:
        _engine = create_engine(url or config.DATABASE_URL)
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


@contextmanager
def session_scope(url: str = None):
    """
    @brief Provide a session for one unit of work

    @details
    Verifies connectivity before yielding and always closes the session.
    Commit/rollback is left to the caller (see db.store.save_run).

    @code{.python}
    with session_scope() as session:
        save_run(session, report, "Maryland")
    @endcode
    """
    get_engine(url)
    session = _session_factory()
    try:
        session.execute(text("SELECT 1"))
        yield session
    finally:
        session.close()


def init_db(url: str = None) -> None:
    """Create all tables (PostGIS extension must already be installed)."""
    # Registers the coverage tables on Base.metadata
    import catchment.models.coverage  # noqa: F401

    engine = get_engine(url)
    Base.metadata.create_all(bind=engine)
