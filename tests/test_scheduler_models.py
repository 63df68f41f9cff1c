"""Tests for scheduler data models."""

import json
from datetime import UTC, datetime, timedelta, timezone

from src.scheduler.models import (
    SCHEDULABLE_COLUMNS,
    ExecutionLogEntry,
    Recipient,
    Schedulable,
    ShiftDefinition,
    format_timestamp,
    parse_timestamp,
)

# -- Timestamps ----------------------------------------------------------------


def test_parse_timestamp_z_suffix() -> None:
    dt = parse_timestamp("2025-03-10T11:03:00Z")
    assert dt == datetime(2025, 3, 10, 11, 3, tzinfo=UTC)


def test_parse_timestamp_naive_is_utc() -> None:
    dt = parse_timestamp("2025-03-10T11:03:00")
    assert dt.tzinfo is UTC


def test_parse_timestamp_converts_offset_to_utc() -> None:
    dt = parse_timestamp("2025-03-10T08:03:00-03:00")
    assert dt == datetime(2025, 3, 10, 11, 3, tzinfo=UTC)


def test_parse_timestamp_empty() -> None:
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_format_timestamp_sorts_chronologically() -> None:
    earlier = datetime(2025, 3, 10, 9, 0, tzinfo=timezone(timedelta(hours=-3)))
    later = datetime(2025, 3, 10, 13, 0, 0, 1, tzinfo=UTC)
    assert format_timestamp(earlier) < format_timestamp(later)
    assert format_timestamp(None) is None


# -- Schedulable ---------------------------------------------------------------


def test_schedulable_defaults() -> None:
    task = Schedulable(id="t1", title="Feed cattle")
    assert task.is_pending
    assert task.is_repeating is False
    assert task.repeat_days_of_week == []
    assert task.created_at is not None
    assert task.updated_at == task.created_at


def test_schedulable_parses_string_dates() -> None:
    task = Schedulable(
        id="t1",
        title="Feed cattle",
        scheduled_date="2025-03-10T11:00:00Z",
        repeat_start_date="2025-03-10",
    )
    assert task.scheduled_date == datetime(2025, 3, 10, 11, 0, tzinfo=UTC)
    assert task.repeat_start_date == datetime(2025, 3, 10, tzinfo=UTC)


def test_schedulable_row_roundtrip_preserves_recurrence() -> None:
    task = Schedulable(
        id="t1",
        title="Irrigate",
        description="North field",
        scheduled_date="2025-03-10T11:00:00Z",
        is_repeating=True,
        repeat_interval=2,
        repeat_unit="week",
        repeat_start_date="2025-03-10T00:00:00Z",
        repeat_days_of_week=[2, 0],
        repeat_end_type="occurrences",
        repeat_occurrences=4,
        should_send_notification=False,
        message="Hi {{NAME}}",
        created_at="2025-03-01T00:00:00Z",
        updated_at="2025-03-02T00:00:00Z",
    )
    row = task.to_row()
    assert len(row) == len(SCHEDULABLE_COLUMNS.split(","))
    assert json.loads(row[9]) == [0, 2]

    restored = Schedulable.from_row(row, ["r1"])
    assert restored.repeat_days_of_week == [0, 2]
    assert restored.repeat_occurrences == 4
    assert restored.should_send_notification is False
    assert restored.updated_at == datetime(2025, 3, 2, tzinfo=UTC)
    assert restored.recipient_ids == ["r1"]


# -- Recipient / ShiftDefinition ----------------------------------------------


def test_recipient_from_row_flags() -> None:
    recipient = Recipient.from_row(("r1", "Ana", "15991775589", 1, 0))
    assert recipient.active is True
    assert recipient.is_admin is False


def test_shift_from_row_defaults_minutes() -> None:
    shift = ShiftDefinition.from_row(("s1", "Morning", "07:00", None, None))
    assert shift.alert_minutes_before == 0
    assert shift.message is None


# -- ExecutionLogEntry ---------------------------------------------------------


def test_log_entry_generates_id_and_timestamp() -> None:
    entry = ExecutionLogEntry(recipient_id="r1", alert_kind="individual", success=True)
    assert entry.id
    assert entry.executed_at is not None


def test_log_entry_metadata_roundtrip() -> None:
    entry = ExecutionLogEntry(
        recipient_id="r1",
        alert_kind="Morning",
        success=False,
        error_message="HTTP 500",
        metadata={"shift_id": "s1", "task_count": 2},
    )
    restored = ExecutionLogEntry.from_row(entry.to_row())
    assert restored.metadata == {"shift_id": "s1", "task_count": 2}
    assert restored.success is False
    assert restored.error_message == "HTTP 500"
    assert restored.executed_at == entry.executed_at
