"""Tests for the scheduled overdue sweep job."""

from unittest.mock import AsyncMock

import pytest

from taskdesk.core import scheduler
from taskdesk.core.db_client import DatabaseError
from taskdesk.core.errors import SweepIncompleteError


@pytest.mark.unit
class TestRunOverdueSweep:
    """Tests for run_overdue_sweep."""

    async def test_runs_sweep_for_local_today(self, monkeypatch):
        sweep = AsyncMock(return_value=2)
        monkeypatch.setattr("taskdesk.services.overdue_service.sweep", sweep)

        await scheduler.run_overdue_sweep()

        sweep.assert_awaited_once()

    @pytest.mark.parametrize(
        "error",
        [
            SweepIncompleteError("1 failed", flagged_count=0, failed_task_ids=["9"]),
            DatabaseError("down"),
        ],
    )
    async def test_failures_are_logged_not_raised(self, monkeypatch, caplog, error):
        monkeypatch.setattr("taskdesk.services.overdue_service.sweep", AsyncMock(side_effect=error))

        await scheduler.run_overdue_sweep()

        assert any(record.levelname == "ERROR" for record in caplog.records)
