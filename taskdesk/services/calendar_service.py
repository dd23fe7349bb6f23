"""Calendar projection: expand tasks into the dates they are due on."""

import calendar
from collections.abc import Iterator, Sequence
from datetime import date, timedelta

from pydantic import BaseModel

from taskdesk.core.errors import TaskValidationError
from taskdesk.core.recurrence import is_active_on, parse_calendar_date
from taskdesk.domain.task import Task


class Occurrence(BaseModel):
    """One appearance of a task on a calendar day."""

    task: Task
    on_date: date


class OccurrenceProjection:
    """Lazily enumerated occurrences over an inclusive date range.

    Iterating walks the range date by date and, within a date, the tasks in
    the order they were given. Each iteration starts over, so the projection
    can be rendered more than once.
    """

    def __init__(self, tasks: Sequence[Task], range_start: date, range_end: date) -> None:
        self.tasks = list(tasks)
        self.range_start = range_start
        self.range_end = range_end

    def dates(self) -> Iterator[date]:
        current = self.range_start
        while current <= self.range_end:
            yield current
            current += timedelta(days=1)

    def __iter__(self) -> Iterator[Occurrence]:
        for day in self.dates():
            for task in self.tasks:
                if is_active_on(task, day):
                    yield Occurrence(task=task, on_date=day)

    def by_date(self) -> dict[date, list[Task]]:
        """Group occurrences by day. Days without occurrences are omitted."""
        grouped: dict[date, list[Task]] = {}
        for occurrence in self:
            grouped.setdefault(occurrence.on_date, []).append(occurrence.task)
        return grouped


def project_occurrences(
    tasks: Sequence[Task],
    range_start: date | str,
    range_end: date | str,
) -> OccurrenceProjection:
    """Project tasks onto every date of an inclusive range.

    Args:
        tasks: Tasks to project, in display order
        range_start: First day of the range
        range_end: Last day of the range

    Returns:
        A re-iterable projection of (task, date) occurrences

    Raises:
        TaskValidationError: If a bound is not a date or start is after end
    """
    start = parse_calendar_date(range_start)
    end = parse_calendar_date(range_end)
    if start > end:
        msg = f"Invalid range: start {start.isoformat()} is after end {end.isoformat()}"
        raise TaskValidationError(msg)
    return OccurrenceProjection(tasks, start, end)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return the first and last day of a month."""
    _, last_day = calendar.monthrange(year, month)
    return date(year, month, 1), date(year, month, last_day)
