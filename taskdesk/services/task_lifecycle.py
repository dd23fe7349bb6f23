"""Task lifecycle controller: guarded mutations of a single task row.

Every mutation loads the task, checks that the actor may touch it, computes
the new field values and writes them with a compare-and-set on the task's
revision. A write that loses the race re-reads the task and tries again.
"""

import logging
import uuid
from collections.abc import Callable, Sequence
from typing import Any

from taskdesk.core import db_client
from taskdesk.core.config import Constants
from taskdesk.core.db_client import RecordNotFoundError
from taskdesk.core.errors import (
    ChecklistIncompleteError,
    ConcurrentUpdateError,
    DuplicateTitleError,
    NotFoundError,
    StoreUnavailableError,
    TaskValidationError,
    UnauthorizedError,
)
from taskdesk.core.logging import log_with_actor_context, span
from taskdesk.domain.notification import TaskEvent, TaskEventKind
from taskdesk.domain.task import ChecklistItem, Task, TaskStatus
from taskdesk.domain.user import Actor
from taskdesk.models.service_models import BulkResult
from taskdesk.services import notification_service


logger = logging.getLogger(__name__)

Change = Callable[[Task], dict[str, Any]]


def can_mutate(actor: Actor, task: Task) -> bool:
    """Return True if the actor owns the task or holds an elevated role."""
    if actor.is_elevated:
        return True
    return task.assigned_user_id is not None and task.assigned_user_id == actor.id


async def load_task(task_id: str) -> Task:
    """Fetch a task by id.

    Raises:
        NotFoundError: If the task does not exist
        DatabaseError: If the store fails
    """
    try:
        record = await db_client.get_record(collection="tasks", record_id=task_id)
    except RecordNotFoundError as e:
        msg = f"Task {task_id} not found"
        raise NotFoundError(msg) from e
    return Task(**record)


def _authorize(actor: Actor, task: Task, action: str) -> None:
    if not can_mutate(actor, task):
        log_with_actor_context(
            logger, "warning", "task_mutation_denied", actor_id=actor.id, role=actor.role, action=action, task_id=task.id
        )
        msg = f"Not allowed to {action} task {task.id}"
        raise UnauthorizedError(msg)


async def apply_mutation(*, task_id: str, actor: Actor, action: str, change: Change) -> tuple[Task, Task]:
    """Run a guarded compare-and-set mutation on a task.

    Args:
        task_id: Task to mutate
        actor: Caller, checked against the freshly loaded task on every attempt
        action: Short verb used in logs and error messages
        change: Computes the fields to write from the current task. May raise
            to reject the mutation, or return an empty dict for a no-op.

    Returns:
        Tuple of (task before, task after)

    Raises:
        NotFoundError: If the task does not exist
        UnauthorizedError: If the actor may not mutate the task
        ConcurrentUpdateError: If every attempt lost the race
        DatabaseError: If the store fails
    """
    for attempt in range(1, Constants.MAX_MUTATION_ATTEMPTS + 1):
        task = await load_task(task_id)
        _authorize(actor, task, action)

        data = change(task)
        if not data:
            return task, task

        record = await db_client.compare_and_update(
            collection="tasks",
            record_id=task_id,
            expected={"revision": task.revision},
            data={**data, "revision": task.revision + 1},
        )
        if record is not None:
            return task, Task(**record)

        logger.info("Task %s changed during %s (attempt %d), retrying", task_id, action, attempt)

    msg = f"Task {task_id} kept changing during {action}; gave up after {Constants.MAX_MUTATION_ATTEMPTS} attempts"
    raise ConcurrentUpdateError(msg)


def _dump_checklist(items: Sequence[ChecklistItem]) -> list[dict[str, Any]]:
    return [item.model_dump() for item in items]


async def _announce_completion(task: Task) -> None:
    event = TaskEvent(kind=TaskEventKind.TASK_COMPLETED, task_id=task.id, task_title=task.title)
    try:
        result = await notification_service.notify_all(event)
    except StoreUnavailableError as e:
        # The status change is already committed
        logger.error("Task %s completed but admins could not be notified: %s", task.id, e)
        return

    if result.failed:
        logger.warning(
            "Completion of task %s reached %d of %d admins",
            task.id,
            result.succeeded,
            result.succeeded + result.failed,
        )


async def set_status(*, task_id: str, new_status: str, actor: Actor) -> Task:
    """Move a task to a new status.

    Completing a task requires every checklist item to be checked, whatever
    the actor's role. Entering completed from another status notifies every
    admin.

    Args:
        task_id: Task to update
        new_status: One of pending, in_progress, completed
        actor: Caller

    Returns:
        The updated task

    Raises:
        TaskValidationError: If the status is unknown
        NotFoundError: If the task does not exist
        UnauthorizedError: If the actor may not mutate the task
        ChecklistIncompleteError: If completing with unchecked items
        ConcurrentUpdateError: If the task kept changing underneath
    """
    with span("task_lifecycle.set_status"):
        try:
            status = TaskStatus(new_status)
        except ValueError as e:
            msg = f"Invalid status: {new_status!r}"
            raise TaskValidationError(msg) from e

        def change(task: Task) -> dict[str, Any]:
            if status == TaskStatus.COMPLETED and task.has_pending_checklist:
                msg = f"Task {task.id} has unchecked checklist items"
                raise ChecklistIncompleteError(msg)
            if task.status == status:
                return {}
            return {"status": status}

        before, after = await apply_mutation(task_id=task_id, actor=actor, action="change status of", change=change)
        log_with_actor_context(
            logger, "info", "task_status_changed", actor_id=actor.id, task_id=task_id, old=before.status, new=after.status
        )

        if after.status == TaskStatus.COMPLETED and before.status != TaskStatus.COMPLETED:
            await _announce_completion(after)

        return after


async def toggle_checklist_item(*, task_id: str, item_id: str, completed: bool, actor: Actor) -> Task:
    """Check or uncheck one checklist item.

    Raises:
        NotFoundError: If the task or the item does not exist
        UnauthorizedError: If the actor may not mutate the task
    """
    with span("task_lifecycle.toggle_checklist_item"):

        def change(task: Task) -> dict[str, Any]:
            if not any(item.id == item_id for item in task.checklist):
                msg = f"Checklist item {item_id} not found in task {task.id}"
                raise NotFoundError(msg)
            items = [
                item.model_copy(update={"completed": completed}) if item.id == item_id else item
                for item in task.checklist
            ]
            return {"checklist": _dump_checklist(items)}

        _, after = await apply_mutation(task_id=task_id, actor=actor, action="edit checklist of", change=change)
        return after


async def add_checklist_item(*, task_id: str, title: str, actor: Actor) -> ChecklistItem:
    """Append an unchecked item to a task's checklist.

    Raises:
        TaskValidationError: If the title is blank
        DuplicateTitleError: If an item with the same title exists (case-insensitive)
        NotFoundError: If the task does not exist
        UnauthorizedError: If the actor may not mutate the task
    """
    with span("task_lifecycle.add_checklist_item"):
        clean_title = title.strip()
        if not clean_title:
            msg = "Checklist item title cannot be empty"
            raise TaskValidationError(msg)

        new_item = ChecklistItem(id=str(uuid.uuid4()), title=clean_title)

        def change(task: Task) -> dict[str, Any]:
            if any(item.title.lower() == clean_title.lower() for item in task.checklist):
                msg = f"Checklist item '{clean_title}' already exists in task {task.id}"
                raise DuplicateTitleError(msg)
            return {"checklist": _dump_checklist([*task.checklist, new_item])}

        await apply_mutation(task_id=task_id, actor=actor, action="edit checklist of", change=change)
        return new_item


async def remove_checklist_item(*, task_id: str, item_id: str, actor: Actor) -> Task:
    """Remove one item from a task's checklist.

    Raises:
        NotFoundError: If the task or the item does not exist
        UnauthorizedError: If the actor may not mutate the task
    """
    with span("task_lifecycle.remove_checklist_item"):

        def change(task: Task) -> dict[str, Any]:
            remaining = [item for item in task.checklist if item.id != item_id]
            if len(remaining) == len(task.checklist):
                msg = f"Checklist item {item_id} not found in task {task.id}"
                raise NotFoundError(msg)
            return {"checklist": _dump_checklist(remaining)}

        _, after = await apply_mutation(task_id=task_id, actor=actor, action="edit checklist of", change=change)
        return after


async def _set_flag(*, task_id: str, actor: Actor, field: str, value: bool, action: str) -> Task:
    def change(task: Task) -> dict[str, Any]:
        if getattr(task, field) == value:
            return {}
        return {field: value}

    _, after = await apply_mutation(task_id=task_id, actor=actor, action=action, change=change)
    logger.info("Task %s %s=%s by user %s", task_id, field, value, actor.id)
    return after


async def archive(*, task_id: str, actor: Actor) -> Task:
    """Hide a task from active views. Checklist and history are kept."""
    with span("task_lifecycle.archive"):
        return await _set_flag(task_id=task_id, actor=actor, field="is_archived", value=True, action="archive")


async def unarchive(*, task_id: str, actor: Actor) -> Task:
    """Bring an archived task back to active views."""
    with span("task_lifecycle.unarchive"):
        return await _set_flag(task_id=task_id, actor=actor, field="is_archived", value=False, action="unarchive")


async def pin(*, task_id: str, pinned: bool, actor: Actor) -> Task:
    with span("task_lifecycle.pin"):
        return await _set_flag(task_id=task_id, actor=actor, field="is_pinned", value=pinned, action="pin")


async def delete_task(*, task_id: str, actor: Actor) -> None:
    """Permanently delete a task.

    Raises:
        NotFoundError: If the task does not exist
        UnauthorizedError: If the actor may not mutate the task
    """
    with span("task_lifecycle.delete_task"):
        task = await load_task(task_id)
        _authorize(actor, task, "delete")

        try:
            await db_client.delete_record(collection="tasks", record_id=task_id)
        except RecordNotFoundError as e:
            msg = f"Task {task_id} not found"
            raise NotFoundError(msg) from e

        logger.info("Task %s deleted by user %s", task_id, actor.id)


async def _bulk(task_ids: Sequence[str], operation: Callable[[str], Any], name: str) -> BulkResult:
    result = BulkResult()
    for task_id in task_ids:
        try:
            await operation(task_id)
        except (UnauthorizedError, NotFoundError) as e:
            logger.info("Bulk %s rejected task %s: %s", name, task_id, e)
            result.rejected.append(task_id)
            continue
        result.succeeded.append(task_id)

    logger.info("Bulk %s: %d succeeded, %d rejected", name, len(result.succeeded), len(result.rejected))
    return result


async def bulk_archive(*, task_ids: Sequence[str], actor: Actor) -> BulkResult:
    """Archive many tasks, reporting the ids the actor could not archive.

    Raises:
        DatabaseError: If the store fails part way; earlier tasks stay archived
    """
    with span("task_lifecycle.bulk_archive"):
        return await _bulk(task_ids, lambda task_id: archive(task_id=task_id, actor=actor), "archive")


async def bulk_delete(*, task_ids: Sequence[str], actor: Actor) -> BulkResult:
    """Delete many tasks, reporting the ids the actor could not delete.

    Raises:
        DatabaseError: If the store fails part way; earlier tasks stay deleted
    """
    with span("task_lifecycle.bulk_delete"):
        return await _bulk(task_ids, lambda task_id: delete_task(task_id=task_id, actor=actor), "delete")


async def mark_overdue_notified(task_id: str, *, revision: int) -> bool:
    """Flag a task as alerted.

    The write only lands if the task is still at the revision the caller read,
    so a deadline, status or archive edit made since then makes it lose.
    Setting the flag does not bump the revision.

    Returns:
        False if another caller flagged it first or the task changed since it was read
    """
    record = await db_client.compare_and_update(
        collection="tasks",
        record_id=task_id,
        expected={"overdue_notified": False, "revision": revision},
        data={"overdue_notified": True},
    )
    return record is not None


async def clear_overdue_notified(task_id: str) -> bool:
    """Undo mark_overdue_notified so the next sweep alerts again."""
    record = await db_client.compare_and_update(
        collection="tasks",
        record_id=task_id,
        expected={"overdue_notified": True},
        data={"overdue_notified": False},
    )
    return record is not None
