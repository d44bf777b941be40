"""
Database Service Layer

This module provides a service layer around the relational store. It owns the
SQLAlchemy engine and session factory, and hands out short-lived sessions that
commit on success and roll back on error.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import DATABASE_URL
from voidai.models.database import Base

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class DatabaseService:
    """
    Service class for relational store access.

    Guarded state transitions (credit debits, terminal task updates, promo use
    counters) are expressed as conditional UPDATE statements run through
    sessions from this service, so concurrent requests never interleave a
    read-modify-write.
    """

    def __init__(self, database_url: str = DATABASE_URL):
        """
        Initialize the database service.

        Args:
            database_url: SQLAlchemy URL of the database to connect to
        """
        self.database_url = database_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        """Get or create the SQLAlchemy engine."""
        if self._engine is None:
            connect_args = {}
            if self.database_url.startswith("sqlite"):
                # Sessions are used from FastAPI's threadpool
                connect_args["check_same_thread"] = False
            self._engine = create_engine(
                self.database_url, connect_args=connect_args, future=True
            )
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine, expire_on_commit=False, future=True
            )
        return self._session_factory

    def create_all(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(self.engine)
        logger.info("Database tables are up to date")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Open a session scoped to one unit of work.

        Yields:
            Session that is committed when the block exits cleanly and rolled
            back when it raises
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


# Global instance
_database_service: Optional[DatabaseService] = None


def get_database_service() -> DatabaseService:
    """
    Get a singleton database service instance.

    Returns:
        DatabaseService instance
    """
    global _database_service
    if _database_service is None:
        _database_service = DatabaseService()
    return _database_service
