"""SQLAlchemy Core table helpers shared by every entity.

Entity tables carry an integer primary key, a ``deleted`` soft-delete
marker (0 = active) and ISO-8601 ``created_at`` / ``updated_at`` stamps.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Column, Integer, MetaData, Table, Text

metadata = MetaData()

SOFT_DELETE_COLUMN = "deleted"
CREATED_AT_COLUMN = "created_at"
UPDATED_AT_COLUMN = "updated_at"


def entity_table(name: str, *columns: Column[Any], meta: MetaData | None = None) -> Table:
    """Declare a table with the standard entity columns plus *columns*."""
    return Table(
        name,
        meta if meta is not None else metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        *columns,
        Column(SOFT_DELETE_COLUMN, Integer, nullable=False, default=0, server_default="0"),
        Column(CREATED_AT_COLUMN, Text),
        Column(UPDATED_AT_COLUMN, Text),
    )
