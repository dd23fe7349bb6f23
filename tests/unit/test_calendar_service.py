"""Tests for calendar projection."""

from datetime import date

import pytest

from taskdesk.core.errors import TaskValidationError
from taskdesk.domain.task import Frequency, Task
from taskdesk.services.calendar_service import month_bounds, project_occurrences


def make_task(task_id: str, **overrides) -> Task:
    data = {"id": task_id, "title": f"Task {task_id}", "deadline": date(2024, 1, 1)}
    data.update(overrides)
    return Task(**data)


@pytest.mark.unit
class TestProjectOccurrences:
    """Tests for project_occurrences."""

    def test_date_major_then_input_order(self):
        daily = make_task("a", frequency=Frequency.DAILY)
        once = make_task("b", deadline=date(2024, 1, 2))

        projection = project_occurrences([daily, once], date(2024, 1, 1), date(2024, 1, 3))
        pairs = [(o.on_date, o.task.id) for o in projection]

        assert pairs == [
            (date(2024, 1, 1), "a"),
            (date(2024, 1, 2), "a"),
            (date(2024, 1, 2), "b"),
            (date(2024, 1, 3), "a"),
        ]

    def test_restartable(self):
        projection = project_occurrences([make_task("a", frequency=Frequency.DAILY)], "2024-01-01", "2024-01-07")

        assert list(projection) == list(projection)
        assert len(list(projection)) == 7

    def test_by_date_omits_empty_days(self):
        weekly = make_task("a", frequency="weekly_1")

        grouped = project_occurrences([weekly], date(2024, 1, 1), date(2024, 1, 14)).by_date()

        assert list(grouped) == [date(2024, 1, 1), date(2024, 1, 8)]
        assert grouped[date(2024, 1, 8)][0].id == "a"

    def test_single_day_range(self):
        projection = project_occurrences([make_task("a")], date(2024, 1, 1), date(2024, 1, 1))

        assert [o.task.id for o in projection] == ["a"]

    def test_start_after_end_rejected(self):
        with pytest.raises(TaskValidationError, match="Invalid range"):
            project_occurrences([], date(2024, 1, 2), date(2024, 1, 1))

    def test_empty_task_list(self):
        assert list(project_occurrences([], date(2024, 1, 1), date(2024, 1, 31))) == []


@pytest.mark.unit
def test_month_bounds_leap_year():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2023, 2) == (date(2023, 2, 1), date(2023, 2, 28))
