"""Pytest configuration and fixtures for integration tests."""

import pytest

from src.core import db_client
from src.domain.user import User
from src.services import user_service


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """A fresh on-disk SQLite store with the schema applied."""
    db_path = tmp_path / "chomper.db"
    monkeypatch.setattr("src.core.config.settings.sqlite_db_path", str(db_path))
    monkeypatch.setattr("src.core.config.settings.app_timezone", "UTC")

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
async def user(sqlite_db) -> User:
    """A seeded user in the SQLite store."""
    return await user_service.create_user(username="ada")
