"""Overdue sweep: flag newly overdue tasks once and alert every admin."""

import logging
from datetime import date

from taskdesk.core import db_client
from taskdesk.core.config import Constants
from taskdesk.core.errors import StoreUnavailableError, SweepIncompleteError
from taskdesk.core.logging import span
from taskdesk.core.recurrence import parse_calendar_date
from taskdesk.domain.notification import TaskEvent, TaskEventKind
from taskdesk.domain.task import Task, TaskStatus
from taskdesk.models.service_models import FanOutResult
from taskdesk.services import notification_service, task_lifecycle


logger = logging.getLogger(__name__)


async def find_overdue_candidates(today: date) -> list[Task]:
    """Return unarchived, unfinished, not-yet-alerted tasks whose deadline has passed.

    All pages are read before anything is flagged, since flagging removes
    rows from the result set.

    Raises:
        DatabaseError: If the query fails
    """
    filter_query = (
        f'deadline < "{today.isoformat()}" && status != "{TaskStatus.COMPLETED}" '
        f'&& overdue_notified = "false" && is_archived = "false"'
    )

    candidates: list[Task] = []
    page = 1
    while True:
        records = await db_client.list_records(
            collection="tasks",
            filter_query=filter_query,
            sort="deadline",
            page=page,
            per_page=Constants.SWEEP_BATCH_SIZE,
        )
        candidates.extend(Task(**record) for record in records)
        if len(records) < Constants.SWEEP_BATCH_SIZE:
            return candidates
        page += 1


def _reached_nobody(result: FanOutResult | None) -> bool:
    return result is None or (result.failed > 0 and result.succeeded == 0)


async def _emit_overdue(task: Task) -> FanOutResult | None:
    event = TaskEvent(kind=TaskEventKind.TASK_OVERDUE, task_id=task.id, task_title=task.title)
    try:
        return await notification_service.notify_all(event)
    except StoreUnavailableError as e:
        logger.error("Could not emit overdue alert for task %s: %s", task.id, e)
        return None


async def sweep(today: date | str) -> int:
    """Flag and announce every task that became overdue before today.

    Each task is flagged with a compare-and-set, so overlapping sweeps alert
    at most once per task. When the alert reaches no admin the flag is
    cleared again and the task is retried by the next sweep.

    Args:
        today: Reference date; tasks due strictly before it are overdue

    Returns:
        Number of tasks flagged and announced by this sweep

    Raises:
        SweepIncompleteError: If some alerts could not be delivered
        DatabaseError: If candidates cannot be read or a flag cannot be written
    """
    with span("overdue_service.sweep"):
        reference = parse_calendar_date(today)
        candidates = await find_overdue_candidates(reference)
        logger.info("Overdue sweep for %s: %d candidates", reference.isoformat(), len(candidates))

        flagged = 0
        failed_task_ids: list[str] = []

        for task in candidates:
            if not await task_lifecycle.mark_overdue_notified(task.id, revision=task.revision):
                logger.debug("Task %s was flagged or edited since it was read, skipping", task.id)
                continue

            result = await _emit_overdue(task)
            if _reached_nobody(result):
                try:
                    await task_lifecycle.clear_overdue_notified(task.id)
                except StoreUnavailableError:
                    logger.exception("Task %s stays flagged but its overdue alert was not delivered", task.id)
                    raise
                failed_task_ids.append(task.id)
                continue

            flagged += 1

        if failed_task_ids:
            logger.error(
                "Overdue sweep incomplete: %d flagged, %d failed (%s)",
                flagged,
                len(failed_task_ids),
                ", ".join(failed_task_ids),
            )
            msg = f"Overdue alerts failed for {len(failed_task_ids)} task(s)"
            raise SweepIncompleteError(msg, flagged_count=flagged, failed_task_ids=failed_task_ids)

        logger.info("Overdue sweep flagged %d task(s)", flagged)
        return flagged
