"""Pytest configuration and fixtures for unit tests."""

from datetime import date

import pytest

from taskdesk.domain.task import Frequency, TaskStatus
from taskdesk.domain.user import Actor, UserRole
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches taskdesk.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("taskdesk.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("taskdesk.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("taskdesk.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("taskdesk.core.db_client.compare_and_update", in_memory_db.compare_and_update)
    monkeypatch.setattr("taskdesk.core.db_client.update_records", in_memory_db.update_records)
    monkeypatch.setattr("taskdesk.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("taskdesk.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("taskdesk.core.db_client.count_records", in_memory_db.count_records)
    monkeypatch.setattr("taskdesk.core.db_client.get_first_record", in_memory_db.get_first_record)
    return in_memory_db


@pytest.fixture
def user_factory(patched_db):
    """Factory for user rows."""

    async def _create(name: str = "Alice", role: str = UserRole.EDITOR, **overrides) -> dict:
        data = {
            "name": name,
            "email": f"{name.lower()}@example.com",
            "role": role,
            "can_view_all_tasks": False,
        }
        data.update(overrides)
        return await patched_db.create_record("users", data)

    return _create


@pytest.fixture
def task_factory(patched_db):
    """Factory for task rows with sensible defaults."""

    async def _create(title: str = "Water the plants", **overrides) -> dict:
        data = {
            "title": title,
            "description": "",
            "notes": "",
            "assigned_user_id": None,
            "deadline": date(2024, 1, 10),
            "start_date": None,
            "frequency": Frequency.ONE_TIME,
            "status": TaskStatus.PENDING,
            "priority": "normal",
            "checklist": [],
            "is_archived": False,
            "is_pinned": False,
            "overdue_notified": False,
            "revision": 0,
        }
        data.update(overrides)
        return await patched_db.create_record("tasks", data)

    return _create


@pytest.fixture
async def admins(user_factory):
    """Two admins, created in order."""
    first = await user_factory("Ana", role=UserRole.ADMIN)
    second = await user_factory("Bruno", role=UserRole.ADMIN)
    return [first, second]


@pytest.fixture
def admin_actor():
    return Actor(id="1", role=UserRole.ADMIN, can_view_all_tasks=True)


@pytest.fixture
def owner_actor():
    return Actor(id="42", role=UserRole.EDITOR)


@pytest.fixture
def stranger_actor():
    return Actor(id="99", role=UserRole.EDITOR)
