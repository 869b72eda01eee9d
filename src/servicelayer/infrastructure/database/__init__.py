"""Async database engine, transactions, queries and table helpers."""

from servicelayer.infrastructure.database.engine import create_db_engine
from servicelayer.infrastructure.database.query import Query
from servicelayer.infrastructure.database.schema import entity_table, metadata
from servicelayer.infrastructure.database.transaction import Database, Transaction

__all__ = [
    "Database",
    "Query",
    "Transaction",
    "create_db_engine",
    "entity_table",
    "metadata",
]
