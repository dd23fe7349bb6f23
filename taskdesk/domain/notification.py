"""Notification and task event models."""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class TaskEventKind(StrEnum):
    """Events that fan out to every elevated user."""

    TASK_COMPLETED = "task_completed"
    TASK_OVERDUE = "task_overdue"


class TaskEvent(BaseModel):
    """Something happened to a task that admins must hear about."""

    kind: TaskEventKind
    task_id: str
    task_title: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Notification(BaseModel):
    """Notification data transfer object."""

    id: str = Field(..., description="Unique notification ID from database")
    recipient_id: str = Field(..., description="User ID of the recipient")
    message: str = Field(..., description="Human-readable message")
    is_read: bool = Field(default=False, description="Whether the recipient has read it")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
