"""Query — a thin entity-aware wrapper around a SQLAlchemy ``select``.

Reads run on the bound transaction when one is set via :meth:`transacting`,
otherwise on a fresh connection from the Database.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from servicelayer.exceptions import NotFoundError
from servicelayer.infrastructure.database.schema import SOFT_DELETE_COLUMN

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement, Select

    from servicelayer.domain.entity import Entity
    from servicelayer.infrastructure.database.transaction import Database, Transaction

# "field:op" keys accepted by Query.filter
OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "like", "in", "between")


def parse_condition(key: str) -> tuple[str, str]:
    """Split a ``"field:op"`` filter key into ``(field, op)``.

    Examples:
        >>> parse_condition("age:gte")
        ('age', 'gte')
        >>> parse_condition("email")
        ('email', 'eq')
    """
    name, _, op = key.partition(":")
    op = op.strip().lower() or "eq"
    if op not in OPERATORS:
        msg = f"Unknown filter operator {op!r} in {key!r}"
        raise ValueError(msg)
    return name.strip(), op


class Query:
    """Builder over one entity table. Mutating methods return ``self``."""

    def __init__(self, entity_cls: type[Entity], database: Database) -> None:
        self._entity_cls = entity_cls
        self._database = database
        self._table = entity_cls.table()
        self._clauses: list[ColumnElement[bool]] = []
        self._order_by: list[Any] = []
        self._limit: int | None = None
        self._transaction: Transaction | None = None

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def where(self, attributes: Mapping[str, Any] | None = None, **attrs: Any) -> Query:
        """Add equality conditions for every ``column = value`` pair."""
        for name, value in {**(attributes or {}), **attrs}.items():
            self._clauses.append(self._column(name) == value)
        return self

    def filter(self, conditions: Mapping[str, Any]) -> Query:
        """Add conditions written as ``{"field:op": value}``."""
        for key, value in conditions.items():
            name, op = parse_condition(key)
            column = self._column(name)
            if op == "eq":
                clause = column == value
            elif op == "neq":
                clause = column != value
            elif op == "gt":
                clause = column > value
            elif op == "gte":
                clause = column >= value
            elif op == "lt":
                clause = column < value
            elif op == "lte":
                clause = column <= value
            elif op == "like":
                clause = column.like(value)
            elif op == "in":
                clause = column.in_(list(value))
            else:
                low, high = value
                clause = column.between(low, high)
            self._clauses.append(clause)
        return self

    def active(self) -> Query:
        """Restrict to rows whose soft-delete marker is unset."""
        if SOFT_DELETE_COLUMN in self._table.c:
            self._clauses.append(self._table.c[SOFT_DELETE_COLUMN] == 0)
        return self

    def transacting(self, transaction: Transaction | None) -> Query:
        """Run reads on *transaction* instead of a fresh connection."""
        self._transaction = transaction
        return self

    def order_by(self, *columns: str) -> Query:
        """Order by column names; a leading ``-`` sorts descending."""
        for name in columns:
            if name.startswith("-"):
                self._order_by.append(self._column(name[1:]).desc())
            else:
                self._order_by.append(self._column(name))
        return self

    def limit(self, count: int) -> Query:
        self._limit = count
        return self

    @property
    def statement(self) -> Select[Any]:
        """The SELECT this query would execute."""
        stmt = select(self._table).where(*self._clauses)
        if self._order_by:
            stmt = stmt.order_by(*self._order_by)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def first(self) -> Entity | None:
        """The first matching entity, or None."""
        rows = await self._fetch(self.statement.limit(1))
        if not rows:
            return None
        return self._entity_cls.from_row(rows[0])

    async def first_or_fail(self) -> Entity:
        """The first matching entity; raises :class:`NotFoundError` if none."""
        entity = await self.first()
        if entity is None:
            name = self._entity_cls.__name__
            raise NotFoundError(f"Cannot find database row for {name} model", model=name)
        return entity

    async def all(self) -> list[Entity]:
        rows = await self._fetch(self.statement)
        return [self._entity_cls.from_row(row) for row in rows]

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self._table).where(*self._clauses)
        rows = await self._fetch(stmt)
        return int(rows[0][0])

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _column(self, name: str) -> Any:
        try:
            return self._table.c[name]
        except KeyError:
            msg = f"{self._table.name} has no column {name!r}"
            raise ValueError(msg) from None

    async def _fetch(self, stmt: Any) -> list[Any]:
        if self._transaction is not None:
            result = await self._transaction.execute(stmt)
            return list(result.fetchall())
        async with self._database.connect() as conn:
            result = await conn.execute(stmt)
            return list(result.fetchall())
