"""Shared pytest fixtures and test entities for servicelayer tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from pydantic import BaseModel, Field
from sqlalchemy import Column, MetaData, Text

from servicelayer.config.models import ServiceConfig
from servicelayer.config.settings import ServiceLayerSettings
from servicelayer.domain.entity import Entity
from servicelayer.infrastructure.database.engine import create_db_engine
from servicelayer.infrastructure.database.schema import entity_table
from servicelayer.infrastructure.database.transaction import Database
from servicelayer.services.base import BaseService

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

test_metadata = MetaData()

users = entity_table(
    "users",
    Column("email", Text, unique=True),
    Column("password", Text),
    meta=test_metadata,
)


class UserSchema(BaseModel):
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    password: str | None = None


class User(Entity):
    __table__ = users
    schema = UserSchema


class UserService(BaseService):
    model = User


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep SERVICELAYER_* env vars and stray servicelayer.toml files out of tests."""
    for name in ("SERVICELAYER_CONFIG", "SERVICELAYER_SERVICE__DEBUG", "SERVICELAYER_VERBOSE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """File-backed SQLite URL (in-memory databases are per-connection)."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def database(db_url: str) -> AsyncIterator[Database]:
    """Database with the test tables created."""
    db = Database(create_db_engine(db_url))
    await db.create_all(test_metadata)
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture
def settings() -> ServiceLayerSettings:
    return ServiceLayerSettings()


@pytest.fixture
def debug_settings() -> ServiceLayerSettings:
    return ServiceLayerSettings(service=ServiceConfig(debug=True))


@pytest.fixture
def user_service(database: Database, settings: ServiceLayerSettings) -> UserService:
    return UserService(database, settings=settings)


@pytest_asyncio.fixture
async def saved_user(user_service: UserService) -> User:
    """A persisted user with a valid e-mail."""
    result = await user_service.create(model=User(email="test@test.com", password="123"))
    assert result.ok, result.error
    return result.data
