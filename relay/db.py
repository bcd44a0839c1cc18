"""
Database wiring: declarative Base, portable column types and the process-wide
DatabaseManager.

The manager holds no engine until ``init`` is called (app lifespan, Celery
worker init, or tests); using it before then raises
``DatabaseNotInitializedError`` instead of silently connecting at import time.
"""

from __future__ import annotations

import contextlib
from typing import Any, Iterator, Optional

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()

# JSONB on Postgres, plain JSON on other backends (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class DatabaseNotInitializedError(RuntimeError):
    """Raised when the database manager is used before ``init``."""


class DatabaseManager:
    def __init__(self) -> None:
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseNotInitializedError(
                "DatabaseManager.init() must be called before using the database"
            )
        return self._engine

    def init(self, url: Optional[str] = None, **engine_kwargs: Any) -> Engine:
        """Create the engine and session factory. Re-initialising disposes the old engine."""
        if self._engine is not None:
            self.dispose()
        if url is None:
            from relay.config import get_settings

            settings = get_settings()
            url = settings.database_url
            if url and url.startswith("postgresql"):
                engine_kwargs.setdefault("pool_size", settings.database_pool_size)
                engine_kwargs.setdefault("max_overflow", settings.database_max_overflow)
                engine_kwargs.setdefault("pool_pre_ping", True)
        self._engine = create_engine(url, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self._engine, autoflush=False)
        return self._engine

    def init_with_engine(self, engine: Engine) -> None:
        """Adopt an engine created elsewhere (used by the test suite)."""
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def session(self) -> Session:
        if self._session_factory is None:
            raise DatabaseNotInitializedError(
                "DatabaseManager.init() must be called before opening a session"
            )
        return self._session_factory()

    @contextlib.contextmanager
    def db_session(self) -> Iterator[Session]:
        """Session scope for code running outside a request (workers, tasks)."""
        db = self.session()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


db_manager = DatabaseManager()


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session."""
    db = db_manager.session()
    try:
        yield db
    finally:
        db.close()
