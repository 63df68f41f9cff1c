"""Message composition for shift notices, task alerts and admin reminders."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from src.scheduler.models import Schedulable

_NAME_RE = re.compile(r"\{\{\s*(?:NAME|NOME)\s*\}\}")
_TASKS_RE = re.compile(r"\{\{\s*(?:TASKS|TAREFAS)\s*\}\}")


def format_task_list(tasks: list[Schedulable]) -> str:
    """Bullet list of task titles, each followed by its indented description."""
    lines = []
    for task in tasks:
        line = f"• {task.title}"
        if task.description:
            line += f"\n  {task.description}"
        lines.append(line)
    return "\n".join(lines)


def resolve_placeholders(template: str, name: str, tasks_list: str = "") -> str:
    """Fill ``{{NAME}}`` and ``{{TASKS}}`` (Portuguese aliases accepted)."""
    # Callables keep backslashes in names or task text from being read as escapes
    result = _NAME_RE.sub(lambda _: name, template)
    return _TASKS_RE.sub(lambda _: tasks_list, result)


def shift_message(template: str, name: str, tasks: list[Schedulable]) -> str:
    return resolve_placeholders(template, name, format_task_list(tasks))


def task_alert_message(task: Schedulable, name: str, time_of_day: str | None) -> str:
    """Per-task alert: the task's own text, or an inline default."""
    template = task.message or (
        f"Hi {{{{NAME}}}}!\n\n"
        f"Reminder: {task.title}\n"
        f"Time: {time_of_day or 'not set'}\n\n"
        f"{settings.app_name}"
    )
    return resolve_placeholders(template, name)


def admin_reminder_message(reminder: Schedulable, name: str, time_of_day: str | None) -> str:
    """Admin broadcast: the reminder's own text, or an inline default."""
    template = reminder.message or (
        f"🔔 Admin reminder\n\n"
        f"{reminder.title}\n"
        f"{reminder.description}\n\n"
        f"Time: {time_of_day or 'not set'}\n\n"
        f"{settings.app_name}"
    )
    return resolve_placeholders(template, name)
