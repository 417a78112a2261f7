"""Database handle and session management."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from notifier.domain.errors import InfrastructureError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def _engine_options(database_url: str) -> dict[str, object]:
    """Return ``create_engine`` keyword arguments suited to ``database_url``."""

    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    # Repositories run their sessions on worker threads.
    options: dict[str, object] = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


class Database:
    """Explicitly constructed storage handle.

    The process bootstrap owns the lifecycle: :meth:`connect` creates the
    engine and the tables, :meth:`disconnect` disposes the pool. Repositories
    receive the handle by reference and open one session per operation.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise InfrastructureError("Database is not connected")
        return self._engine

    def connect(self) -> None:
        """Create the engine and ensure every ORM table exists."""

        if self._engine is not None:
            return

        from notifier.infrastructure import models  # noqa: F401  # register models

        try:
            engine = create_engine(self.database_url, **_engine_options(self.database_url))
            Base.metadata.create_all(bind=engine, checkfirst=True)
        except SQLAlchemyError as exc:
            raise InfrastructureError(f"Could not connect to the database: {exc}") from exc

        self._engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        logger.info("Database connected (%s)", engine.url.render_as_string(hide_password=True))

    def disconnect(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database disconnected")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session, rolling back and closing it afterwards.

        SQLAlchemy failures are re-raised as :class:`InfrastructureError`.
        """

        if self._session_factory is None:
            raise InfrastructureError("Database is not connected")

        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            raise InfrastructureError(str(exc)) from exc
        finally:
            session.close()


__all__ = ["Base", "Database"]
