"""Database connection and session management."""
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from src.persistence.models import Base

logger = logging.getLogger(__name__)

# Columns added to pre-existing jobs tables by the enrichment pipeline
ENRICHMENT_COLUMNS = {
    "role_function": "VARCHAR",
    "language_requirements": "JSON",
    "industries": "JSON",
    "technologies": "JSON",
    "skills": "JSON",
    "employment_types": "JSON",
    "work_locations": "JSON",
    "experience_level": "VARCHAR",
    "enrichment_quality": "INTEGER",
    "enriched_at": "TIMESTAMP",
    "enriched_version": "VARCHAR",
}


def _build_engine(url: str) -> Engine:
    """Create SQLAlchemy engine with appropriate settings for the database backend."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
        )

    # PostgreSQL (or other server-based databases)
    return create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
    )


class Database:
    """Engine and session factory for one database.

    Created by the entry point and passed to the stores, so tests and
    scripts can point the pipeline at any database.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine = _build_engine(url)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def _migrate_add_enrichment_columns(self) -> None:
        """Add enrichment columns to jobs tables created before enrichment existed."""
        inspector = inspect(self.engine)
        if "jobs" not in inspector.get_table_names():
            return

        columns = {col["name"] for col in inspector.get_columns("jobs")}
        with self.engine.begin() as conn:
            for name, sql_type in ENRICHMENT_COLUMNS.items():
                if name not in columns:
                    conn.execute(text(f"ALTER TABLE jobs ADD COLUMN {name} {sql_type}"))
                    logger.info("Added %s column to jobs", name)

    def init_db(self) -> None:
        """Initialize the database, creating all tables."""
        Base.metadata.create_all(bind=self.engine)
        self._migrate_add_enrichment_columns()

    def drop_db(self) -> None:
        """Drop all tables (use with caution)."""
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Get a database session with automatic cleanup."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
