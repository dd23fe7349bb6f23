"""Task domain models and enums."""

import json
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(StrEnum):
    """Task priority."""

    NORMAL = "normal"
    URGENT = "urgent"


class Frequency(StrEnum):
    """Recurrence descriptor stored on a task."""

    ONE_TIME = "one_time"
    DAILY = "daily"
    WEEKLY = "weekly"  # Same weekday as the deadline
    WEEKLY_SUNDAY = "weekly_0"
    WEEKLY_MONDAY = "weekly_1"
    WEEKLY_TUESDAY = "weekly_2"
    WEEKLY_WEDNESDAY = "weekly_3"
    WEEKLY_THURSDAY = "weekly_4"
    WEEKLY_FRIDAY = "weekly_5"
    WEEKLY_SATURDAY = "weekly_6"
    MONDAY = "monday"  # Legacy alias of weekly_1
    MONTHLY = "monthly"  # Same day-of-month as the deadline
    DATE_RANGE = "date_range"  # Every day in [start_date, deadline]


class ChecklistItem(BaseModel):
    """Single checklist entry inside a task."""

    id: str = Field(..., description="Item ID, unique within the task")
    title: str = Field(..., description="Item title, unique case-insensitively within the task")
    completed: bool = Field(default=False, description="Whether the item is checked")


def _to_date_string(value: Any) -> Any:
    # Stored values may carry a time part ("2024-01-01T00:00:00"); only the date matters
    if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
        return value[:10]
    return value


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    notes: str = Field(default="", description="Free-form notes kept by the assignee")
    assigned_user_id: str | None = Field(default=None, description="Owner user ID")
    deadline: date = Field(..., description="Due date, or range end for date_range tasks")
    start_date: date | None = Field(default=None, description="Range start for date_range tasks")
    frequency: str = Field(default=Frequency.ONE_TIME, description="Recurrence descriptor")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle state")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL, description="Task priority")
    checklist: list[ChecklistItem] = Field(default_factory=list, description="Ordered checklist items")
    is_archived: bool = Field(default=False, description="Soft-deleted, hidden from active views")
    is_pinned: bool = Field(default=False, description="Pinned to the top of the board")
    overdue_notified: bool = Field(default=False, description="Overdue alert already sent for this episode")
    revision: int = Field(default=0, description="Bumped on every lifecycle mutation")
    created: str | None = Field(default=None, description="Creation timestamp")
    updated: str | None = Field(default=None, description="Last update timestamp")

    @field_validator("deadline", "start_date", mode="before")
    @classmethod
    def strip_time_component(cls, v: Any) -> Any:
        """Accept stored datetimes by keeping only their date part."""
        return _to_date_string(v)

    @field_validator("frequency", mode="before")
    @classmethod
    def default_missing_frequency(cls, v: Any) -> Any:
        """Treat a missing frequency as one_time."""
        return v or Frequency.ONE_TIME

    @field_validator("checklist", mode="before")
    @classmethod
    def decode_checklist(cls, v: Any) -> Any:
        """Decode the JSON column the store returns."""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v

    @property
    def has_pending_checklist(self) -> bool:
        """True when the checklist is non-empty and any item is unchecked."""
        return any(not item.completed for item in self.checklist)
