"""Async database engine setup.

SQLAlchemy Core over the asyncio extension is the persistence layer. SQLite
(via aiosqlite) is the default backend: WAL mode for concurrent reads while
a ServiceContext holds a write transaction, foreign keys enforced.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine


def create_db_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite connections get WAL and foreign keys."""
    engine = create_async_engine(url, echo=echo)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine
