from taskdesk.services import (
    calendar_service,
    notification_service,
    overdue_service,
    task_lifecycle,
    task_service,
)


__all__ = [
    "calendar_service",
    "notification_service",
    "overdue_service",
    "task_lifecycle",
    "task_service",
]
