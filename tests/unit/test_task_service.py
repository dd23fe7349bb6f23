"""Tests for task creation, listing and editing."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from taskdesk.core.db_client import DatabaseError
from taskdesk.core.errors import NotFoundError, TaskValidationError, UnauthorizedError
from taskdesk.domain.task import Frequency, TaskStatus
from taskdesk.domain.user import Actor, UserRole
from taskdesk.services import task_service


@pytest.mark.unit
class TestCreateTask:
    """Tests for create_task."""

    async def test_non_admin_always_owns_the_task(self, patched_db, owner_actor):
        task = await task_service.create_task(
            actor=owner_actor, title=" Clean fridge ", deadline="2024-05-01", assigned_user_id="7"
        )

        assert task.title == "Clean fridge"
        assert task.assigned_user_id == "42"
        assert task.status == TaskStatus.PENDING
        assert task.frequency == Frequency.ONE_TIME
        assert task.overdue_notified is False

    async def test_admin_assigns_anyone(self, patched_db, admin_actor):
        task = await task_service.create_task(
            actor=admin_actor, title="Report", deadline=date(2024, 5, 1), assigned_user_id="7"
        )

        assert task.assigned_user_id == "7"

    async def test_checklist_titles_deduplicated(self, patched_db, admin_actor):
        task = await task_service.create_task(
            actor=admin_actor,
            title="Shopping",
            deadline="2024-05-01",
            checklist_titles=["Milk", "milk ", "", "Eggs"],
        )

        assert [item.title for item in task.checklist] == ["Milk", "Eggs"]
        assert len({item.id for item in task.checklist}) == 2

    async def test_date_range_requires_ordered_dates(self, patched_db, admin_actor):
        with pytest.raises(TaskValidationError, match="needs a start date"):
            await task_service.create_task(
                actor=admin_actor, title="Trip", deadline="2024-05-05", frequency=Frequency.DATE_RANGE
            )

        with pytest.raises(TaskValidationError, match="after end date"):
            await task_service.create_task(
                actor=admin_actor,
                title="Trip",
                deadline="2024-05-05",
                frequency=Frequency.DATE_RANGE,
                start_date="2024-05-06",
            )

    async def test_start_date_dropped_for_other_frequencies(self, patched_db, admin_actor):
        task = await task_service.create_task(
            actor=admin_actor, title="Standup", deadline="2024-05-01", frequency="daily", start_date="2024-04-01"
        )

        assert task.start_date is None

    @pytest.mark.parametrize(
        ("title", "deadline", "frequency", "priority"),
        [
            ("", "2024-05-01", None, "normal"),
            ("x" * 256, "2024-05-01", None, "normal"),
            ("Task", "not a date", None, "normal"),
            ("Task", "2024-05-01", "yearly", "normal"),
            ("Task", "2024-05-01", None, "critical"),
        ],
    )
    async def test_invalid_fields(self, patched_db, admin_actor, title, deadline, frequency, priority):
        with pytest.raises(TaskValidationError):
            await task_service.create_task(
                actor=admin_actor, title=title, deadline=deadline, frequency=frequency, priority=priority
            )

        assert patched_db._collections.get("tasks", {}) == {}


@pytest.mark.unit
class TestListTasks:
    """Tests for list_tasks."""

    async def test_restricted_user_sees_only_own(self, patched_db, task_factory, owner_actor):
        await task_factory("Mine", assigned_user_id="42")
        await task_factory("Theirs", assigned_user_id="7")

        tasks = await task_service.list_tasks(actor=owner_actor)

        assert [t.title for t in tasks] == ["Mine"]

    async def test_view_all_permission(self, patched_db, task_factory):
        await task_factory("Mine", assigned_user_id="42")
        await task_factory("Theirs", assigned_user_id="7")
        actor = Actor(id="42", role=UserRole.EDITOR, can_view_all_tasks=True)

        assert len(await task_service.list_tasks(actor=actor)) == 2
        assert [t.title for t in await task_service.list_tasks(actor=actor, view_mode="mine")] == ["Mine"]

    async def test_ordered_by_deadline_and_hides_archived(self, patched_db, task_factory, admin_actor):
        await task_factory("Later", deadline=date(2024, 3, 1))
        await task_factory("Sooner", deadline=date(2024, 2, 1))
        await task_factory("Archived", deadline=date(2024, 1, 1), is_archived=True)

        visible = await task_service.list_tasks(actor=admin_actor)
        everything = await task_service.list_tasks(actor=admin_actor, show_archived=True)

        assert [t.title for t in visible] == ["Sooner", "Later"]
        assert [t.title for t in everything] == ["Archived", "Sooner", "Later"]

    async def test_store_failure_degrades_to_empty(self, patched_db, admin_actor, monkeypatch):
        monkeypatch.setattr("taskdesk.core.db_client.list_records", AsyncMock(side_effect=DatabaseError("down")))

        assert await task_service.list_tasks(actor=admin_actor) == []

    async def test_invalid_view_mode(self, patched_db, admin_actor):
        with pytest.raises(TaskValidationError):
            await task_service.list_tasks(actor=admin_actor, view_mode="everyone")


@pytest.mark.unit
class TestUpdateTask:
    """Tests for update_task and the overdue re-arm rule."""

    async def test_future_deadline_rearms_overdue_alert(self, patched_db, task_factory, admin_actor):
        record = await task_factory(deadline=date(2024, 1, 1), overdue_notified=True)

        task = await task_service.update_task(
            task_id=record["id"], actor=admin_actor, deadline="2024-02-01", today=date(2024, 1, 15)
        )

        assert task.deadline == date(2024, 2, 1)
        assert task.overdue_notified is False

    async def test_deadline_today_rearms(self, patched_db, task_factory, admin_actor):
        record = await task_factory(deadline=date(2024, 1, 1), overdue_notified=True)

        task = await task_service.update_task(
            task_id=record["id"], actor=admin_actor, deadline="2024-01-15", today=date(2024, 1, 15)
        )

        assert task.overdue_notified is False

    async def test_past_deadline_keeps_flag(self, patched_db, task_factory, admin_actor):
        record = await task_factory(deadline=date(2024, 1, 1), overdue_notified=True)

        task = await task_service.update_task(
            task_id=record["id"], actor=admin_actor, deadline="2024-01-05", today=date(2024, 1, 15)
        )

        assert task.overdue_notified is True

    async def test_title_only_edit_keeps_flag(self, patched_db, task_factory, admin_actor):
        record = await task_factory(overdue_notified=True)

        task = await task_service.update_task(
            task_id=record["id"], actor=admin_actor, title="Renamed", today=date(2024, 1, 15)
        )

        assert task.title == "Renamed"
        assert task.overdue_notified is True

    async def test_switching_away_from_date_range_clears_start(self, patched_db, task_factory, admin_actor):
        record = await task_factory(
            frequency=Frequency.DATE_RANGE, start_date=date(2024, 1, 1), deadline=date(2024, 1, 5)
        )

        task = await task_service.update_task(
            task_id=record["id"], actor=admin_actor, frequency="daily", today=date(2024, 1, 1)
        )

        assert task.frequency == Frequency.DAILY
        assert task.start_date is None

    async def test_stranger_cannot_edit(self, patched_db, task_factory, stranger_actor):
        record = await task_factory(assigned_user_id="42")

        with pytest.raises(UnauthorizedError):
            await task_service.update_task(task_id=record["id"], actor=stranger_actor, title="Mine now")

    async def test_owner_cannot_reassign(self, patched_db, task_factory, owner_actor):
        record = await task_factory(assigned_user_id="42")

        with pytest.raises(UnauthorizedError):
            await task_service.update_task(task_id=record["id"], actor=owner_actor, assigned_user_id="7")

    async def test_update_notes(self, patched_db, task_factory, owner_actor):
        record = await task_factory(assigned_user_id="42")

        task = await task_service.update_notes(task_id=record["id"], notes="Call the plumber", actor=owner_actor)

        assert task.notes == "Call the plumber"

    async def test_get_missing_task(self, patched_db):
        with pytest.raises(NotFoundError):
            await task_service.get_task("404")
