"""Task service: creation, listing and editing of task fields."""

import logging
import uuid
from collections.abc import Sequence
from datetime import date
from typing import Any

from taskdesk.core import db_client
from taskdesk.core.config import Constants
from taskdesk.core.db_client import DatabaseError, sanitize_param
from taskdesk.core.errors import TaskValidationError, UnauthorizedError
from taskdesk.core.logging import span
from taskdesk.core.recurrence import local_today, parse_calendar_date, validate_frequency
from taskdesk.domain.task import ChecklistItem, Frequency, Task, TaskPriority, TaskStatus
from taskdesk.domain.user import Actor
from taskdesk.services import task_lifecycle


logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255
VIEW_MODES = ("all", "mine")


def _validate_title(title: str) -> str:
    clean = title.strip()
    if not clean:
        msg = "Task title cannot be empty"
        raise TaskValidationError(msg)
    if len(clean) > MAX_TITLE_LENGTH:
        msg = f"Task title is too long (max {MAX_TITLE_LENGTH} characters)"
        raise TaskValidationError(msg)
    return clean


def _validate_priority(priority: str) -> TaskPriority:
    try:
        return TaskPriority(priority)
    except ValueError as e:
        msg = f"Invalid priority: {priority!r}"
        raise TaskValidationError(msg) from e


def _resolve_schedule(
    *,
    frequency: str | None,
    deadline: date | str,
    start_date: date | str | None,
) -> tuple[str, date, date | None]:
    """Validate frequency and dates together. Only date_range tasks keep a start date."""
    freq = validate_frequency(frequency)
    end = parse_calendar_date(deadline)

    if freq != Frequency.DATE_RANGE:
        return freq, end, None

    if start_date is None or start_date == "":
        msg = "A date_range task needs a start date"
        raise TaskValidationError(msg)
    start = parse_calendar_date(start_date)
    if start > end:
        msg = f"Start date {start.isoformat()} is after end date {end.isoformat()}"
        raise TaskValidationError(msg)
    return freq, end, start


def _build_checklist(titles: Sequence[str]) -> list[ChecklistItem]:
    items: list[ChecklistItem] = []
    seen: set[str] = set()
    for raw in titles:
        title = raw.strip()
        if not title or title.lower() in seen:
            continue
        seen.add(title.lower())
        items.append(ChecklistItem(id=str(uuid.uuid4()), title=title))
    return items


async def create_task(
    *,
    actor: Actor,
    title: str,
    deadline: date | str,
    frequency: str | None = None,
    start_date: date | str | None = None,
    description: str = "",
    notes: str = "",
    priority: str = TaskPriority.NORMAL,
    assigned_user_id: str | None = None,
    checklist_titles: Sequence[str] = (),
) -> Task:
    """Create a pending task.

    Non-admin actors always own what they create. Checklist titles are
    trimmed and deduplicated case-insensitively, keeping the first spelling.

    Args:
        actor: Caller
        title: Task title
        deadline: Due date, or range end for date_range tasks
        frequency: Recurrence descriptor (defaults to one_time)
        start_date: Range start, required for date_range tasks
        description: Longer description
        notes: Free-form notes
        priority: normal or urgent
        assigned_user_id: Owner; only admins may assign someone else
        checklist_titles: Initial checklist items

    Returns:
        The created task

    Raises:
        TaskValidationError: If any field is invalid
        DatabaseError: If the insert fails
    """
    with span("task_service.create_task"):
        clean_title = _validate_title(title)
        freq, end, start = _resolve_schedule(frequency=frequency, deadline=deadline, start_date=start_date)
        task_priority = _validate_priority(priority)

        owner = assigned_user_id if actor.is_elevated else actor.id

        record = await db_client.create_record(
            collection="tasks",
            data={
                "title": clean_title,
                "description": description.strip(),
                "notes": notes,
                "assigned_user_id": owner,
                "deadline": end,
                "start_date": start,
                "frequency": freq,
                "status": TaskStatus.PENDING,
                "priority": task_priority,
                "checklist": [item.model_dump() for item in _build_checklist(checklist_titles)],
                "is_archived": False,
                "is_pinned": False,
                "overdue_notified": False,
                "revision": 0,
            },
        )

        task = Task(**record)
        logger.info("Created task %s '%s' (%s) for user %s", task.id, task.title, task.frequency, task.assigned_user_id)
        return task


async def get_task(task_id: str) -> Task:
    """Fetch a task by id.

    Raises:
        NotFoundError: If the task does not exist
    """
    return await task_lifecycle.load_task(task_id)


async def list_tasks(*, actor: Actor, show_archived: bool = False, view_mode: str = "all") -> list[Task]:
    """List the tasks the actor may see, earliest deadline first.

    Actors who are neither admins nor allowed to view all tasks only see
    their own. Store failures degrade to an empty list.

    Raises:
        TaskValidationError: If view_mode is not 'all' or 'mine'
    """
    if view_mode not in VIEW_MODES:
        msg = f"Invalid view mode: {view_mode!r}"
        raise TaskValidationError(msg)

    conditions: list[str] = []
    if not show_archived:
        conditions.append('is_archived = "false"')

    sees_everything = actor.is_elevated or actor.can_view_all_tasks
    if view_mode == "mine" or not sees_everything:
        conditions.append(f'assigned_user_id = "{sanitize_param(actor.id)}"')

    filter_query = " && ".join(conditions)

    tasks: list[Task] = []
    page = 1
    try:
        while True:
            records = await db_client.list_records(
                collection="tasks",
                filter_query=filter_query,
                sort="deadline",
                page=page,
                per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
            )
            tasks.extend(Task(**record) for record in records)
            if len(records) < Constants.DEFAULT_PER_PAGE_LIMIT:
                break
            page += 1
    except DatabaseError as e:
        logger.warning("Error listing tasks for user=%s: %s", actor.id, e)
        return []

    return tasks


async def update_task(
    *,
    task_id: str,
    actor: Actor,
    today: date | None = None,
    title: str | None = None,
    description: str | None = None,
    notes: str | None = None,
    deadline: date | str | None = None,
    frequency: str | None = None,
    start_date: date | str | None = None,
    priority: str | None = None,
    assigned_user_id: str | None = None,
) -> Task:
    """Edit task fields. Arguments left as None are unchanged.

    Moving the deadline to today or later re-arms the overdue alert, so a
    task that becomes overdue again is announced again. Moving it to another
    past date keeps the alert state.

    Args:
        task_id: Task to edit
        actor: Caller
        today: Reference date for the re-arm rule (defaults to today in the
            configured timezone)

    Returns:
        The updated task

    Raises:
        TaskValidationError: If any field is invalid
        UnauthorizedError: If the actor may not edit the task, or a non-admin
            tries to hand it to someone else
        NotFoundError: If the task does not exist
        ConcurrentUpdateError: If the task kept changing underneath
    """
    with span("task_service.update_task"):
        reference = today or local_today()

        if assigned_user_id is not None and not actor.is_elevated and assigned_user_id != actor.id:
            msg = "Only admins can assign tasks to other users"
            raise UnauthorizedError(msg)

        clean_title = _validate_title(title) if title is not None else None
        task_priority = _validate_priority(priority) if priority is not None else None

        def change(task: Task) -> dict[str, Any]:
            data: dict[str, Any] = {}
            if clean_title is not None:
                data["title"] = clean_title
            if description is not None:
                data["description"] = description.strip()
            if notes is not None:
                data["notes"] = notes
            if task_priority is not None:
                data["priority"] = task_priority
            if assigned_user_id is not None:
                data["assigned_user_id"] = assigned_user_id

            if deadline is not None or frequency is not None or start_date is not None:
                freq, end, start = _resolve_schedule(
                    frequency=frequency if frequency is not None else task.frequency,
                    deadline=deadline if deadline is not None else task.deadline,
                    start_date=start_date if start_date is not None else task.start_date,
                )
                data.update({"frequency": freq, "deadline": end, "start_date": start})

                if end != task.deadline and end >= reference and task.overdue_notified:
                    data["overdue_notified"] = False

            return data

        before, after = await task_lifecycle.apply_mutation(
            task_id=task_id, actor=actor, action="edit", change=change
        )
        if before.overdue_notified and not after.overdue_notified:
            logger.info("Task %s deadline moved to %s, overdue alert re-armed", task_id, after.deadline)
        return after


async def update_notes(*, task_id: str, notes: str, actor: Actor) -> Task:
    """Replace a task's notes."""
    with span("task_service.update_notes"):
        _, after = await task_lifecycle.apply_mutation(
            task_id=task_id,
            actor=actor,
            action="edit notes of",
            change=lambda task: {"notes": notes} if task.notes != notes else {},
        )
        return after
