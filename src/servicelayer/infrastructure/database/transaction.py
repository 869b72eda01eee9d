"""Database — the persistence collaborator handed to contexts and services.

:meth:`Database.begin_transaction` opens the handle a
:class:`~servicelayer.services.context.ServiceContext` owns for one unit of
work. :meth:`Database.transaction` is the self-contained variant used by
actions invoked without a context:

- **Commit** when the block exits normally.
- **Rollback** when the block raises; the original error propagates.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from servicelayer.infrastructure.database.engine import create_db_engine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy import MetaData
    from sqlalchemy.engine import Result
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction
    from sqlalchemy.sql import Executable

    from servicelayer.config.settings import ServiceLayerSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Transaction: the handle owned by a ServiceContext
# ---------------------------------------------------------------------------


@dataclass
class Transaction:
    """An open connection with a begun transaction.

    ``commit()`` and ``rollback()`` end the transaction and release the
    connection; only one of them may be called.
    """

    conn: AsyncConnection
    _trans: AsyncTransaction

    @property
    def is_active(self) -> bool:
        return self._trans.is_active

    async def execute(self, statement: Executable, params: Any = None) -> Result[Any]:
        """Execute *statement* inside this transaction."""
        return await self.conn.execute(statement, params)

    async def commit(self) -> None:
        try:
            await self._trans.commit()
        finally:
            await self.conn.close()

    async def rollback(self) -> None:
        try:
            await self._trans.rollback()
        finally:
            await self.conn.close()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class Database:
    """Owns the async engine and hands out transactions and connections."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: ServiceLayerSettings) -> Database:
        """Build a Database from the ``[database]`` settings section."""
        return cls(create_db_engine(settings.database.url, echo=settings.database.echo))

    @property
    def engine(self) -> AsyncEngine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    async def begin_transaction(self) -> Transaction:
        """Open a connection and begin a transaction on it."""
        conn = await self._engine.connect()
        try:
            trans = await conn.begin()
        except BaseException:
            await conn.close()
            raise
        logger.debug("Transaction opened")
        return Transaction(conn=conn, _trans=trans)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Self-contained transaction: commit on success, rollback on error.

        Usage::

            async with database.transaction() as txn:
                await txn.execute(insert(users).values(...))
        """
        txn = await self.begin_transaction()
        try:
            yield txn
        except BaseException:
            await txn.rollback()
            raise
        await txn.commit()

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """Plain connection for reads outside any transaction."""
        async with self._engine.connect() as conn:
            yield conn

    async def create_all(self, metadata: MetaData) -> None:
        """Create every table in *metadata* that does not exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()
