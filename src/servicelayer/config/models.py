"""Pydantic configuration sections with code-baked defaults.

Sparse TOML contract: defaults baked here, servicelayer.toml only holds
overrides.
"""

from __future__ import annotations

from pydantic import BaseModel


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    url: str = "sqlite+aiosqlite:///servicelayer.db"
    echo: bool = False


class ServiceConfig(BaseModel):
    """[service] section."""

    model_config = {"frozen": True}

    # Built-in entry/exit hooks log every action call when set.
    debug: bool = False
