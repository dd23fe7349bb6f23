"""Unit tests for notification_service module."""

from unittest.mock import AsyncMock

import pytest

from taskdesk.core.db_client import DatabaseError
from taskdesk.core.errors import ForbiddenError, NotFoundError
from taskdesk.domain.notification import TaskEvent, TaskEventKind
from taskdesk.domain.user import UserRole
from taskdesk.services import notification_service


@pytest.fixture
def overdue_event():
    return TaskEvent(kind=TaskEventKind.TASK_OVERDUE, task_id="500", task_title="Pay rent")


@pytest.mark.unit
class TestNotifyAll:
    """Tests for fan-out."""

    async def test_one_row_per_admin(self, patched_db, user_factory, admins, overdue_event):
        await user_factory("Carla", role=UserRole.EDITOR)

        result = await notification_service.notify_all(overdue_event)

        assert result.succeeded == 2
        assert result.failed == 0
        rows = list(patched_db._collections["notifications"].values())
        assert [row["recipient_id"] for row in rows] == [admins[0]["id"], admins[1]["id"]]
        assert rows[0]["message"] == '¡PLAZO VENCIDO! "Pay rent" ha superado su fecha límite.'
        assert rows[0]["is_read"] is False

    async def test_completed_message(self, patched_db, admins):
        event = TaskEvent(kind=TaskEventKind.TASK_COMPLETED, task_id="500", task_title="Pay rent")

        await notification_service.notify_all(event)

        row = next(iter(patched_db._collections["notifications"].values()))
        assert row["message"] == '¡Tarea Finalizada! "Pay rent" ha sido completada.'

    async def test_english_locale(self, patched_db, admins, overdue_event, monkeypatch):
        monkeypatch.setattr("taskdesk.core.config.settings.notification_locale", "en")

        await notification_service.notify_all(overdue_event)

        row = next(iter(patched_db._collections["notifications"].values()))
        assert row["message"].startswith("DEADLINE MISSED!")

    async def test_partial_failure_reported(self, patched_db, admins, overdue_event, monkeypatch):
        real_create = patched_db.create_record

        async def create(collection, data, timeout=None):
            if data["recipient_id"] == admins[0]["id"]:
                raise DatabaseError("disk full")
            return await real_create(collection, data)

        monkeypatch.setattr("taskdesk.core.db_client.create_record", create)

        result = await notification_service.notify_all(overdue_event)

        assert result.succeeded == 1
        assert result.failed_recipient_ids == [admins[0]["id"]]

    async def test_reaches_admins_beyond_one_page(self, patched_db, user_factory, overdue_event, monkeypatch):
        monkeypatch.setattr("taskdesk.core.config.Constants.DEFAULT_PER_PAGE_LIMIT", 2)
        created = [await user_factory(f"Admin{n}", role=UserRole.ADMIN) for n in range(5)]
        await user_factory("Viewer", role=UserRole.VIEWER)

        result = await notification_service.notify_all(overdue_event)

        assert result.succeeded == 5
        recipients = [row["recipient_id"] for row in patched_db._collections["notifications"].values()]
        assert recipients == [user["id"] for user in created]

    async def test_no_admins(self, patched_db, overdue_event):
        result = await notification_service.notify_all(overdue_event)

        assert result.succeeded == 0
        assert result.failed == 0

    async def test_recipient_failure_propagates(self, patched_db, overdue_event, monkeypatch):
        monkeypatch.setattr("taskdesk.core.db_client.list_records", AsyncMock(side_effect=DatabaseError("down")))

        with pytest.raises(DatabaseError):
            await notification_service.notify_all(overdue_event)


@pytest.mark.unit
class TestSendTestNotification:
    """Tests for send_test_notification."""

    async def test_goes_to_oldest_admin(self, patched_db, admins):
        notification = await notification_service.send_test_notification()

        assert notification.recipient_id == admins[0]["id"]

    async def test_no_admin(self, patched_db, user_factory):
        await user_factory("Carla", role=UserRole.EDITOR)

        with pytest.raises(NotFoundError):
            await notification_service.send_test_notification()


@pytest.mark.unit
class TestReadSide:
    """Tests for listing and marking notifications."""

    async def test_list_newest_first_and_count(self, patched_db, admins):
        ana = admins[0]["id"]
        first = await notification_service.create_notification(recipient_id=ana, message="first")
        second = await notification_service.create_notification(recipient_id=ana, message="second")
        await notification_service.create_notification(recipient_id=admins[1]["id"], message="other")

        listed = await notification_service.list_notifications(recipient_id=ana)

        assert [n.id for n in listed] == [second.id, first.id]
        assert await notification_service.count_unread(recipient_id=ana) == 2

    async def test_count_is_not_capped_by_page_size(self, patched_db, admins):
        ana = admins[0]["id"]
        for n in range(150):
            await notification_service.create_notification(recipient_id=ana, message=f"alert {n}")

        assert await notification_service.count_unread(recipient_id=ana) == 150

    async def test_mark_read(self, patched_db, admins):
        ana = admins[0]["id"]
        created = await notification_service.create_notification(recipient_id=ana, message="hello")

        updated = await notification_service.mark_read(notification_id=created.id, recipient_id=ana)

        assert updated.is_read is True
        assert await notification_service.count_unread(recipient_id=ana) == 0

    async def test_mark_read_of_someone_else(self, patched_db, admins):
        created = await notification_service.create_notification(recipient_id=admins[0]["id"], message="hello")

        with pytest.raises(ForbiddenError):
            await notification_service.mark_read(notification_id=created.id, recipient_id=admins[1]["id"])

        assert await notification_service.count_unread(recipient_id=admins[0]["id"]) == 1

    async def test_mark_read_missing(self, patched_db):
        with pytest.raises(NotFoundError):
            await notification_service.mark_read(notification_id="404", recipient_id="1")

    async def test_mark_all_read(self, patched_db, admins):
        ana = admins[0]["id"]
        for message in ("a", "b", "c"):
            await notification_service.create_notification(recipient_id=ana, message=message)
        await notification_service.create_notification(recipient_id=admins[1]["id"], message="d")

        assert await notification_service.mark_all_read(recipient_id=ana) == 3
        assert await notification_service.count_unread(recipient_id=ana) == 0
        assert await notification_service.count_unread(recipient_id=admins[1]["id"]) == 1

    async def test_reads_degrade_on_store_failure(self, patched_db, monkeypatch):
        monkeypatch.setattr("taskdesk.core.db_client.list_records", AsyncMock(side_effect=DatabaseError("down")))
        monkeypatch.setattr("taskdesk.core.db_client.count_records", AsyncMock(side_effect=DatabaseError("down")))

        assert await notification_service.list_notifications(recipient_id="1") == []
        assert await notification_service.count_unread(recipient_id="1") == 0


@pytest.mark.unit
def test_render_message_uses_title():
    event = TaskEvent(kind=TaskEventKind.TASK_OVERDUE, task_id="1", task_title="Renew permit")

    assert "Renew permit" in notification_service.render_message(event)
