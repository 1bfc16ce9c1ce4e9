"""
Database handle for the report database.

The handle owns a SQLAlchemy async engine (SQLite through aiosqlite by default)
with an explicit open/close lifecycle. The application lifespan opens it once
and stores it on ``app.state.database``; request handlers receive it through
the ``get_database`` dependency.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterator, Optional

from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import settings

logger = logging.getLogger(__name__)

# Base class for ORM models
Base = declarative_base()


class DatabaseUnavailableError(RuntimeError):
    """Raised when the report database cannot be opened or connected to."""


class ReportDatabase:
    """Explicitly owned connection handle for the report database."""

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None) -> None:
        self.url = url or settings.DATABASE_URL
        self.echo = settings.DATABASE_ECHO if echo is None else echo
        self._engine: Optional[AsyncEngine] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseUnavailableError("Database handle is not open.")
        return self._engine

    async def open(self) -> None:
        """Create the engine and verify the connection. Idempotent."""
        if self._engine is not None:
            return

        _ensure_sqlite_directory(self.url)
        engine = create_async_engine(self.url, echo=self.echo, future=True)
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            await engine.dispose()
            raise DatabaseUnavailableError(f"Cannot open database: {exc}") from exc

        self._engine = engine
        logger.info("Database opened: %s", make_url(self.url).render_as_string(hide_password=True))

    async def close(self) -> None:
        """Dispose of the engine. Safe to call on a closed handle."""
        if self._engine is None:
            return
        try:
            await self._engine.dispose()
            logger.info("Database connections closed")
        finally:
            self._engine = None

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """
        Yield a connection, translating connection failures into
        DatabaseUnavailableError. Errors raised by the caller's own
        statements pass through untouched.
        """
        try:
            conn = await self.engine.connect()
        except (SQLAlchemyError, OSError) as exc:
            logger.error(f"Database connection failed: {exc}")
            raise DatabaseUnavailableError(f"Cannot connect to database: {exc}") from exc
        try:
            yield conn
        finally:
            await conn.close()

    async def ping(self) -> bool:
        """Return True if a trivial statement succeeds."""
        try:
            async with self.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (DatabaseUnavailableError, SQLAlchemyError) as exc:
            logger.error(f"Database ping failed: {exc}")
            return False


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    parsed = make_url(url)
    if not parsed.get_backend_name() == "sqlite":
        return
    database = parsed.database
    if not database or database == ":memory:":
        return
    Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def get_database(request: Request) -> ReportDatabase:
    """
    Dependency returning the handle opened by the application lifespan.

    Example:
        @router.get("/items")
        async def get_items(database: ReportDatabase = Depends(get_database)):
            async with database.connect() as conn:
                ...
    """
    database = getattr(request.app.state, "database", None)
    if database is None or not database.is_open:
        raise DatabaseUnavailableError("Database handle is not open.")
    return database
