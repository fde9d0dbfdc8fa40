"""Database connection and session management"""
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from trackfinder.core.errors import StoreUnavailable
from trackfinder.db.tables import Base

logger = logging.getLogger(__name__)

# Seconds a SQLite writer waits for a competing writer's lock
SQLITE_BUSY_TIMEOUT = 30


class Database:
    """Engine and session factory for the relational table store"""

    def __init__(self, url: str):
        self.url = url
        self._engine: Optional[Engine] = None
        self._SessionLocal: Optional[sessionmaker] = None

    def _connect_args(self) -> dict:
        if self.url.startswith("sqlite"):
            # Sync endpoints run on a thread pool; connections move between threads.
            return {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
        return {}

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self.url, connect_args=self._connect_args())
            self._SessionLocal = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._engine

    def _session_factory(self) -> sessionmaker:
        if self._SessionLocal is None:
            self._SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._SessionLocal

    def init(self) -> None:
        """
        Create tables if they do not exist yet.
        """
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database initialized successfully")
        except SQLAlchemyError as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations.

        Driver errors surface as StoreUnavailable; the raw text is only logged.
        """
        session = self._session_factory()()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Store operation failed: {e}")
            raise StoreUnavailable() from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """
        Clean up database connections.
        Should be called during application shutdown.
        """
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._SessionLocal = None
