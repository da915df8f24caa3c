"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the `sqlite` cache backend: one row per
cache entry, keyed by the same name the file backend would use.
"""

from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, String, Text, DateTime
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class CacheEntry(Base):
    """Cached API response."""

    __tablename__ = "cache_entries"

    key = Column(String, primary_key=True)  # popular_page_<n>.json | movie_<id>.json
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def init_database(db_path: Path) -> Engine:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Engine bound to the database
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    return engine


def session_factory(engine: Engine):
    """
    Get a session factory for the engine.

    Returns:
        SQLAlchemy sessionmaker; call it to open a session
    """
    return sessionmaker(bind=engine)
