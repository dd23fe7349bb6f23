"""Domain models and DTOs."""

from taskdesk.domain.notification import Notification, TaskEvent, TaskEventKind
from taskdesk.domain.task import ChecklistItem, Frequency, Task, TaskPriority, TaskStatus
from taskdesk.domain.user import Actor, User, UserRole


__all__ = [
    "Actor",
    "ChecklistItem",
    "Frequency",
    "Notification",
    "Task",
    "TaskEvent",
    "TaskEventKind",
    "TaskPriority",
    "TaskStatus",
    "User",
    "UserRole",
]
