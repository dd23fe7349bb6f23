"""Centralized message templates for in-app notifications.

All user-facing notification strings are defined here so wording and
locale can be changed in one place.
"""

from taskdesk.core.config import settings


_TEMPLATES: dict[str, dict[str, str]] = {
    "es": {
        "task_completed": '¡Tarea Finalizada! "{title}" ha sido completada.',
        "task_overdue": '¡PLAZO VENCIDO! "{title}" ha superado su fecha límite.',
        "check": "\U0001f514 ¡Prueba de sonido de notificación exitosa!",
    },
    "en": {
        "task_completed": 'Task completed! "{title}" has been marked as done.',
        "task_overdue": 'DEADLINE MISSED! "{title}" is past its due date.',
        "check": "\U0001f514 Test notification delivered successfully!",
    },
}


def _templates(locale: str | None) -> dict[str, str]:
    return _TEMPLATES.get(locale or settings.notification_locale, _TEMPLATES["es"])


def task_completed(*, title: str, locale: str | None = None) -> str:
    return _templates(locale)["task_completed"].format(title=title)


def task_overdue(*, title: str, locale: str | None = None) -> str:
    return _templates(locale)["task_overdue"].format(title=title)


def notification_check(*, locale: str | None = None) -> str:
    return _templates(locale)["check"]
