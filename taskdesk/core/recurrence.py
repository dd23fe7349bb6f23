"""Frequency rules: decide whether a task is due on a given calendar date."""

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

from taskdesk.core.config import settings
from taskdesk.core.errors import TaskValidationError
from taskdesk.domain.task import Frequency, Task, TaskStatus


WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_WEEKLY_FIXED = re.compile(r"^weekly_([0-6])$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Legacy frequency names mapped to the rule they mean
_ALIASES = {Frequency.MONDAY: Frequency.WEEKLY_MONDAY}


def weekday_sunday_first(d: date) -> int:
    """Return the weekday with Sunday=0 .. Saturday=6."""
    return d.isoweekday() % 7


def parse_calendar_date(value: date | str | None) -> date:
    """Parse a calendar date from a date object or an ISO string.

    A datetime (object or string) is truncated to its date part.

    Raises:
        TaskValidationError: If the value is empty or not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        msg = f"Invalid date: {value!r}. Use YYYY-MM-DD"
        raise TaskValidationError(msg)

    candidate = value.strip()
    if len(candidate) > 10 and candidate[10] in "T ":
        candidate = candidate[:10]
    if not _ISO_DATE.match(candidate):
        msg = f"Invalid date: {value!r}. Use YYYY-MM-DD"
        raise TaskValidationError(msg)

    try:
        return date.fromisoformat(candidate)
    except ValueError as e:
        msg = f"Invalid date: {value!r}. Use YYYY-MM-DD"
        raise TaskValidationError(msg) from e


def validate_frequency(value: str | None) -> str:
    """Return the frequency if it is a known rule, defaulting empty input to one_time.

    Raises:
        TaskValidationError: If the value is not a known frequency
    """
    if not value:
        return Frequency.ONE_TIME
    try:
        return Frequency(value)
    except ValueError as e:
        allowed = ", ".join(f.value for f in Frequency)
        msg = f"Invalid frequency: {value!r}. Allowed: {allowed}"
        raise TaskValidationError(msg) from e


def is_active_on(task: Task, on_date: date) -> bool:
    """Decide whether the task appears as due on the given date.

    Completed and archived tasks never appear. No task appears before its
    deadline, recurring ones included. Unknown frequencies fail closed.

    Monthly tasks match the deadline's day-of-month literally: a task due on
    the 31st does not appear in months with fewer days.
    """
    if task.is_archived or task.status == TaskStatus.COMPLETED:
        return False

    deadline = task.deadline
    if on_date < deadline:
        return False

    frequency = _ALIASES.get(task.frequency, task.frequency) or Frequency.ONE_TIME

    if frequency == Frequency.ONE_TIME:
        return on_date == deadline

    if frequency == Frequency.DAILY:
        return True

    if frequency == Frequency.WEEKLY:
        return on_date.weekday() == deadline.weekday()

    fixed = _WEEKLY_FIXED.match(frequency)
    if fixed:
        return weekday_sunday_first(on_date) == int(fixed.group(1))

    if frequency == Frequency.MONTHLY:
        return on_date.day == deadline.day

    if frequency == Frequency.DATE_RANGE:
        if task.start_date is None:
            return False
        return task.start_date <= on_date <= deadline

    return False


def _ordinal(n: int) -> str:
    suffix = "th"
    if n % 100 not in (11, 12, 13):
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def frequency_to_human(frequency: str, deadline: date, start_date: date | None = None) -> str:
    """Describe a task's recurrence in words.

    Args:
        frequency: Stored frequency value
        deadline: Task deadline (anchors weekly and monthly rules)
        start_date: Range start for date_range tasks

    Returns:
        Human-readable description (e.g., "every Monday", "monthly on the 31st")
    """
    frequency = _ALIASES.get(frequency, frequency) or Frequency.ONE_TIME

    if frequency == Frequency.ONE_TIME:
        return f"once on {deadline.isoformat()}"
    if frequency == Frequency.DAILY:
        return f"daily from {deadline.isoformat()}"
    if frequency == Frequency.WEEKLY:
        return f"every {WEEKDAY_NAMES[weekday_sunday_first(deadline)]}"

    fixed = _WEEKLY_FIXED.match(frequency)
    if fixed:
        return f"every {WEEKDAY_NAMES[int(fixed.group(1))]}"

    if frequency == Frequency.MONTHLY:
        return f"monthly on the {_ordinal(deadline.day)}"
    if frequency == Frequency.DATE_RANGE and start_date is not None:
        return f"every day from {start_date.isoformat()} to {deadline.isoformat()}"

    return f"unscheduled ({frequency})"


def local_today(tz_name: str | None = None) -> date:
    """Return today's date in the configured timezone."""
    return datetime.now(ZoneInfo(tz_name or settings.timezone)).date()
