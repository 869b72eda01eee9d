"""Entity — active-record wrapper over a SQLAlchemy Core table.

Subclasses bind a table and, optionally, a pydantic schema holding the
validation rules and a pydantic sanitizer normalising values before they
are validated or saved::

    class User(Entity):
        __table__ = entity_table("users", Column("email", Text))
        schema = UserSchema
        sanitizer = UserSanitizer

Persistence methods take the :class:`Transaction` they must write through;
an entity never opens connections on its own.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import delete, insert, update

from servicelayer.exceptions import FrozenEntityError, ValidationError
from servicelayer.infrastructure.database.query import Query
from servicelayer.infrastructure.database.schema import (
    CREATED_AT_COLUMN,
    SOFT_DELETE_COLUMN,
    UPDATED_AT_COLUMN,
)

if TYPE_CHECKING:
    from sqlalchemy import Row, Table

    from servicelayer.infrastructure.database.transaction import Database, Transaction

ENTITY_REGISTRY: dict[str, type[Entity]] = {}


def get_entity(name: str) -> type[Entity]:
    """Look up a registered entity class by class name."""
    try:
        return ENTITY_REGISTRY[name]
    except KeyError:
        msg = f"No entity registered as {name!r}"
        raise KeyError(msg) from None


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Entity:
    """Base class for persisted domain entities."""

    __table__: ClassVar[Table]
    schema: ClassVar[type[BaseModel] | None] = None
    sanitizer: ClassVar[type[BaseModel] | None] = None
    primary_key: ClassVar[str] = "id"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "__table__" in cls.__dict__:
            ENTITY_REGISTRY[cls.__name__] = cls

    def __init__(self, data: Mapping[str, Any] | None = None, **attrs: Any) -> None:
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_original", {})
        object.__setattr__(self, "_persisted", False)
        object.__setattr__(self, "_frozen", False)
        self.fill({**(data or {}), **attrs})

    @classmethod
    def table(cls) -> Table:
        return cls.__table__

    @classmethod
    def from_row(cls, row: Row[Any]) -> Entity:
        """Hydrate a persisted entity from a result row."""
        entity = cls()
        entity._attributes.update(row._mapping)
        object.__setattr__(entity, "_persisted", True)
        entity._sync_original()
        return entity

    @classmethod
    def query(cls, database: Database) -> Query:
        return Query(cls, database)

    # ------------------------------------------------------------------
    # Attribute access
    # ------------------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        attributes = self.__dict__.get("_attributes", {})
        if name in attributes:
            return attributes[name]
        if not name.startswith("_") and name in self.table().c:
            return None
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        if self._frozen:
            msg = f"Cannot set {name!r} on a deleted {type(self).__name__}"
            raise FrozenEntityError(msg)
        self._attributes[name] = value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.primary_key}={self.primary_key_value!r})"

    def fill(self, data: Mapping[str, Any]) -> None:
        for name, value in data.items():
            setattr(self, name, value)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._attributes)

    @property
    def primary_key_value(self) -> Any:
        return self._attributes.get(self.primary_key)

    @property
    def is_new(self) -> bool:
        return not self._persisted

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def dirty(self) -> dict[str, Any]:
        """Attributes changed since the last load or save."""
        return {
            name: value
            for name, value in self._attributes.items()
            if name not in self._original or self._original[name] != value
        }

    def freeze(self) -> None:
        object.__setattr__(self, "_frozen", True)

    def unfreeze(self) -> None:
        object.__setattr__(self, "_frozen", False)

    def _sync_original(self) -> None:
        object.__setattr__(self, "_original", dict(self._attributes))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def sanitize(self) -> dict[str, Any]:
        """Normalise attributes through ``sanitizer``. Returns the changed values.

        Only attributes the entity holds and the sanitizer declares are
        passed through it; its ``mode="before"`` validators do the work.
        """
        sanitizer = type(self).sanitizer
        if sanitizer is None:
            return {}
        picked = {
            name: value
            for name, value in self._attributes.items()
            if name in sanitizer.model_fields
        }
        if not picked:
            return {}
        cleaned = sanitizer.model_validate(picked).model_dump(include=set(picked))
        changes = {
            name: value for name, value in cleaned.items() if self._attributes.get(name) != value
        }
        self._attributes.update(changes)
        return changes

    async def validate(self) -> ValidationError | None:
        """Sanitize, then check attributes against ``schema``.

        New entities are validated in full; persisted entities only on the
        attributes they changed. Returns the error, or None when valid.
        """
        try:
            self.sanitize()
            schema = type(self).schema
            if schema is not None:
                schema.model_validate(self._attributes)
        except SchemaValidationError as exc:
            return self._validation_error(exc)
        return None

    def _validation_error(self, exc: SchemaValidationError) -> ValidationError | None:
        changed = None if self.is_new else set(self.dirty)
        messages: list[dict[str, Any]] = []
        for err in exc.errors():
            loc = err["loc"]
            field = str(loc[0]) if loc else "__root__"
            if changed is not None and field not in changed:
                continue
            messages.append({"field": field, "message": err["msg"], "validation": err["type"]})
        if not messages:
            return None
        return ValidationError(f"Validation failed for {type(self).__name__}.", messages)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self, transaction: Transaction) -> int:
        """Sanitize, then insert a new row or update the dirty columns.

        Returns affected rows.
        """
        self.sanitize()
        table = self.table()
        now = _now_iso()

        if self.is_new:
            if CREATED_AT_COLUMN in table.c:
                self._attributes.setdefault(CREATED_AT_COLUMN, now)
            if UPDATED_AT_COLUMN in table.c:
                self._attributes[UPDATED_AT_COLUMN] = now
            result = await transaction.execute(insert(table).values(**self._attributes))
            inserted = result.inserted_primary_key
            if inserted is not None and inserted[0] is not None:
                self._attributes[self.primary_key] = inserted[0]
            if SOFT_DELETE_COLUMN in table.c:
                self._attributes.setdefault(SOFT_DELETE_COLUMN, 0)
            affected = 1
        else:
            changes = self.dirty
            if not changes:
                return 0
            if UPDATED_AT_COLUMN in table.c:
                self._attributes[UPDATED_AT_COLUMN] = now
                changes[UPDATED_AT_COLUMN] = now
            result = await transaction.execute(
                update(table)
                .where(table.c[self.primary_key] == self.primary_key_value)
                .values(**changes)
            )
            affected = result.rowcount

        object.__setattr__(self, "_persisted", True)
        self._sync_original()
        return affected

    async def soft_delete(self, transaction: Transaction) -> bool:
        """Mark the row deleted but keep it; the entity is frozen afterwards."""
        setattr(self, SOFT_DELETE_COLUMN, 1)
        affected = await self.save(transaction)
        if affected:
            self.freeze()
        return bool(affected)

    async def undelete(self, transaction: Transaction) -> bool:
        """Clear the soft-delete marker and persist it."""
        self.unfreeze()
        setattr(self, SOFT_DELETE_COLUMN, 0)
        affected = await self.save(transaction)
        return bool(affected)

    async def delete_within_transaction(self, transaction: Transaction) -> bool:
        """Remove the row permanently, soft-deleted or not."""
        table = self.table()
        result = await transaction.execute(
            delete(table).where(table.c[self.primary_key] == self.primary_key_value)
        )
        if result.rowcount > 0:
            self.freeze()
            object.__setattr__(self, "_persisted", False)
        return result.rowcount > 0
