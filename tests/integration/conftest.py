"""Fixtures for tests against a real SQLite file."""

import pytest

from taskdesk.core import db_client


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """Point the store at a fresh SQLite file with the schema applied."""
    db_path = tmp_path / "taskdesk.db"
    monkeypatch.setattr("taskdesk.core.config.settings.sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
def create_user(sqlite_db):
    async def _create(name: str, role: str = "editor") -> dict:
        return await db_client.create_record(
            collection="users",
            data={"name": name, "email": f"{name.lower()}@example.com", "role": role},
        )

    return _create
