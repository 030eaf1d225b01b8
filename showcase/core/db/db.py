"""Database connection and session management.

Works against PostgreSQL (production) and SQLite (development/tests).
"""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Owns the SQLAlchemy engine and hands out transactional sessions."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = self._create_engine(database_url, echo)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        logger.info(f"DatabaseManager initialized ({self.engine.dialect.name})")

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> Engine:
        if database_url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(database_url, echo=echo, **kwargs)
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
            return engine

        return create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
        )

    def init_db(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(self.engine)
        logger.info("Database tables ensured")

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Session scope: commit on success, roll back on error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        self.engine.dispose()


def wait_for_db(db_manager: DatabaseManager, retries: int = 10, delay: float = 2.0) -> bool:
    """Block until the database accepts connections or retries run out."""
    for attempt in range(1, retries + 1):
        try:
            db_manager.ping()
            if attempt > 1:
                logger.info(f"Database available after {attempt} attempts")
            return True
        except OperationalError as e:
            logger.warning(f"Database not ready (attempt {attempt}/{retries}): {e}")
            time.sleep(delay)
    logger.error("Database did not become available")
    return False


_db_manager: Optional[DatabaseManager] = None


def get_database_manager(database_url: Optional[str] = None) -> DatabaseManager:
    """Return the process-wide DatabaseManager, creating it on first use."""
    global _db_manager
    if _db_manager is None:
        if database_url is None:
            from ..config import get_settings
            database_url = get_settings().database_url
        _db_manager = DatabaseManager(database_url)
    return _db_manager
