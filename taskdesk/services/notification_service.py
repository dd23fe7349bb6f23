"""Notification service: fan out task events to admins and serve the polling inbox."""

import logging
from datetime import UTC, datetime

from taskdesk.core import db_client, message_templates
from taskdesk.core.config import Constants
from taskdesk.core.db_client import DatabaseError, RecordNotFoundError, sanitize_param
from taskdesk.core.errors import ForbiddenError, NotFoundError
from taskdesk.core.logging import span
from taskdesk.domain.notification import Notification, TaskEvent, TaskEventKind
from taskdesk.domain.user import User, UserRole
from taskdesk.models.service_models import FanOutResult


logger = logging.getLogger(__name__)


def render_message(event: TaskEvent) -> str:
    """Build the notification text for an event."""
    if event.kind == TaskEventKind.TASK_COMPLETED:
        return message_templates.task_completed(title=event.task_title)
    return message_templates.task_overdue(title=event.task_title)


async def resolve_recipients(event: TaskEvent) -> list[User]:
    """Resolve who hears about an event.

    Both completion and overdue events go to every admin, oldest account first.

    Raises:
        DatabaseError: If the user list cannot be read
    """
    recipients: list[User] = []
    page = 1
    while True:
        records = await db_client.list_records(
            collection="users",
            filter_query=f'role = "{UserRole.ADMIN}"',
            sort="created",
            page=page,
            per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
        )
        recipients.extend(User(**record) for record in records)
        if len(records) < Constants.DEFAULT_PER_PAGE_LIMIT:
            break
        page += 1

    logger.debug("Resolved %d recipients for %s", len(recipients), event.kind)
    return recipients


async def create_notification(*, recipient_id: str, message: str) -> Notification:
    """Write a single notification row.

    Raises:
        DatabaseError: If the insert fails
    """
    record = await db_client.create_record(
        collection="notifications",
        data={
            "recipient_id": recipient_id,
            "message": message,
            "is_read": False,
            "created_at": datetime.now(UTC).isoformat(),
        },
    )
    return Notification(**record)


async def notify_all(event: TaskEvent) -> FanOutResult:
    """Write one notification per admin for the event.

    Rows are written one by one. A failed row does not undo the rows already
    written; it is logged and reported in the result so the caller can see
    how many recipients were reached.

    Args:
        event: Completed or overdue task event

    Returns:
        FanOutResult with the created notification ids and failed recipients

    Raises:
        DatabaseError: If the recipient set cannot be resolved
    """
    with span("notification_service.notify_all"):
        recipients = await resolve_recipients(event)
        message = render_message(event)
        result = FanOutResult()

        for user in recipients:
            try:
                notification = await create_notification(recipient_id=user.id, message=message)
            except DatabaseError as e:
                logger.error(
                    "Failed to notify user=%s about %s task=%s: %s",
                    user.id,
                    event.kind,
                    event.task_id,
                    e,
                )
                result.failed_recipient_ids.append(user.id)
                continue
            result.created_ids.append(notification.id)

        logger.info(
            "Fan-out %s for task=%s: %d succeeded, %d failed",
            event.kind,
            event.task_id,
            result.succeeded,
            result.failed,
        )
        return result


async def send_test_notification() -> Notification:
    """Send a check message to the oldest admin.

    Raises:
        NotFoundError: If there is no admin
    """
    with span("notification_service.send_test_notification"):
        admin = await db_client.get_first_record(
            collection="users",
            filter_query=f'role = "{UserRole.ADMIN}"',
            sort="created",
        )
        if admin is None:
            msg = "Admin not found"
            raise NotFoundError(msg)

        return await create_notification(recipient_id=admin["id"], message=message_templates.notification_check())


async def list_notifications(
    *,
    recipient_id: str,
    limit: int = Constants.NOTIFICATION_LIST_LIMIT,
) -> list[Notification]:
    """List a recipient's notifications, newest first.

    Store failures degrade to an empty list so the inbox keeps rendering.
    """
    try:
        records = await db_client.list_records(
            collection="notifications",
            filter_query=f'recipient_id = "{sanitize_param(recipient_id)}"',
            sort="-created_at",
            per_page=limit,
        )
    except DatabaseError as e:
        logger.warning("Error fetching notifications for user=%s: %s", recipient_id, e)
        return []

    return [Notification(**record) for record in records]


async def count_unread(*, recipient_id: str) -> int:
    """Count unread notifications, degrading to 0 on store failure."""
    try:
        return await db_client.count_records(
            collection="notifications",
            filter_query=f'recipient_id = "{sanitize_param(recipient_id)}" && is_read = "false"',
        )
    except DatabaseError as e:
        logger.warning("Error counting unread notifications for user=%s: %s", recipient_id, e)
        return 0


async def mark_read(*, notification_id: str, recipient_id: str) -> Notification:
    """Mark one notification as read on behalf of its recipient.

    Raises:
        NotFoundError: If the notification does not exist
        ForbiddenError: If it belongs to another user
        DatabaseError: If the update fails
    """
    with span("notification_service.mark_read"):
        try:
            record = await db_client.get_record(collection="notifications", record_id=notification_id)
        except RecordNotFoundError as e:
            msg = f"Notification {notification_id} not found"
            raise NotFoundError(msg) from e

        if str(record["recipient_id"]) != str(recipient_id):
            logger.warning("User %s tried to mark notification %s of another user", recipient_id, notification_id)
            msg = f"Notification {notification_id} does not belong to user {recipient_id}"
            raise ForbiddenError(msg)

        if record.get("is_read"):
            return Notification(**record)

        updated = await db_client.update_record(
            collection="notifications",
            record_id=notification_id,
            data={"is_read": True},
        )
        return Notification(**updated)


async def mark_all_read(*, recipient_id: str) -> int:
    """Mark every unread notification of the recipient as read.

    Returns:
        Number of notifications updated

    Raises:
        DatabaseError: If the update fails
    """
    with span("notification_service.mark_all_read"):
        count = await db_client.update_records(
            collection="notifications",
            filter_query=f'recipient_id = "{sanitize_param(recipient_id)}" && is_read = "false"',
            data={"is_read": True},
        )
        logger.info("Marked %d notifications as read for user=%s", count, recipient_id)
        return count
