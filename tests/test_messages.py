"""Tests for message composition."""

from src.scheduler.messages import (
    admin_reminder_message,
    format_task_list,
    resolve_placeholders,
    shift_message,
    task_alert_message,
)
from src.scheduler.models import Schedulable


def _task(title: str, description: str = "", message: str | None = None) -> Schedulable:
    return Schedulable(id=title.lower(), title=title, description=description, message=message)


def test_format_task_list_with_descriptions() -> None:
    text = format_task_list([_task("Feed", "Barn 2"), _task("Milk")])
    assert text == "• Feed\n  Barn 2\n• Milk"


def test_format_task_list_empty() -> None:
    assert format_task_list([]) == ""


def test_resolve_placeholders_tolerates_spaces_and_aliases() -> None:
    template = "Hi {{ NAME }} / {{NOME}}: {{TASKS}} {{ TAREFAS}}"
    assert resolve_placeholders(template, "Ana", "x") == "Hi Ana / Ana: x x"


def test_resolve_placeholders_keeps_backslashes() -> None:
    assert resolve_placeholders("{{NAME}}", r"A\1na") == r"A\1na"


def test_resolve_placeholders_without_tasks_blanks_them() -> None:
    assert resolve_placeholders("Tasks: {{TASKS}}", "Ana") == "Tasks: "


def test_shift_message() -> None:
    text = shift_message("Good morning {{NAME}}!\n{{TASKS}}", "Ana", [_task("Feed")])
    assert text == "Good morning Ana!\n• Feed"


def test_task_alert_uses_own_message() -> None:
    task = _task("Feed", message="{{NAME}}, feed now")
    assert task_alert_message(task, "Ana", "08:15") == "Ana, feed now"


def test_task_alert_fallback() -> None:
    text = task_alert_message(_task("Feed"), "Ana", "08:15")
    assert text.startswith("Hi Ana!")
    assert "Reminder: Feed" in text
    assert "Time: 08:15" in text
    assert text.endswith("AgroTask")


def test_task_alert_fallback_without_time() -> None:
    assert "Time: not set" in task_alert_message(_task("Feed"), "Ana", None)


def test_admin_reminder_fallback() -> None:
    reminder = _task("Pay invoices", "Supplier X")
    text = admin_reminder_message(reminder, "Bruno", "08:03")
    assert text.startswith("🔔 Admin reminder")
    assert "Pay invoices\nSupplier X" in text
    assert "Time: 08:03" in text


def test_admin_reminder_own_message() -> None:
    reminder = _task("Pay", message="{{NOME}}: pay today")
    assert admin_reminder_message(reminder, "Bruno", None) == "Bruno: pay today"
