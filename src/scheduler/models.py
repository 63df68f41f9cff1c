"""Scheduler data models — schedulable entities, recipients, shifts, ledger rows."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# Entity status
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELED = "canceled"

# Recurrence
UNIT_DAY = "day"
UNIT_WEEK = "week"
END_NEVER = "never"
END_DATE = "date"
END_OCCURRENCES = "occurrences"

# Alert kinds (part of the ledger idempotency key). Shift passes use the
# shift title as their kind.
ALERT_INDIVIDUAL = "individual"
ALERT_ADMIN_REMINDER = "admin-reminder"


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Naive values are taken to be UTC; a trailing ``Z`` is accepted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_timestamp(value: datetime | None) -> str | None:
    """Serialize a datetime to ISO 8601 in UTC (None passes through)."""
    if value is None:
        return None
    return parse_timestamp(value).isoformat(timespec="microseconds")


def make_id() -> str:
    """Generate a new row ID."""
    return uuid.uuid4().hex


@dataclass
class Schedulable:
    """A task or admin reminder with optional recurrence rules.

    Attributes:
        id: Unique identifier.
        title: Short human-readable title.
        description: Optional longer text, shown in task lists.
        status: ``"pending"``, ``"completed"`` or ``"canceled"``.
        scheduled_date: Absolute UTC instant. Anchors the time of day for
            both one-shot and repeating entities.
        is_repeating: Whether the recurrence fields apply.
        repeat_interval: Every N days / weeks.
        repeat_unit: ``"day"`` or ``"week"``.
        repeat_start_date: First eligible day (required when repeating).
        repeat_days_of_week: ISO weekday indices, 0=Mon … 6=Sun (weekly only).
        repeat_end_type: ``"never"``, ``"date"`` or ``"occurrences"``.
        repeat_end_date: Last eligible day for ``"date"``.
        repeat_occurrences: Execution cap for ``"occurrences"``.
        should_send_notification: Gate for the per-entity alert pass.
        message: Pre-resolved message text (None → inline fallback).
        recipient_ids: Assigned recipients, resolved through the join table.
        created_at: Creation instant.
        updated_at: Last edit instant. A same-day edit re-arms alerts.
    """

    id: str
    title: str
    description: str = ""
    status: str = STATUS_PENDING
    scheduled_date: datetime | None = None
    is_repeating: bool = False
    repeat_interval: int = 1
    repeat_unit: str = UNIT_DAY
    repeat_start_date: datetime | None = None
    repeat_days_of_week: list[int] = field(default_factory=list)
    repeat_end_type: str = END_NEVER
    repeat_end_date: datetime | None = None
    repeat_occurrences: int | None = None
    should_send_notification: bool = True
    message: str | None = None
    recipient_ids: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.scheduled_date = parse_timestamp(self.scheduled_date)
        self.repeat_start_date = parse_timestamp(self.repeat_start_date)
        self.repeat_end_date = parse_timestamp(self.repeat_end_date)
        self.created_at = parse_timestamp(self.created_at) or datetime.now(UTC)
        self.updated_at = parse_timestamp(self.updated_at) or self.created_at

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching ``SCHEDULABLE_COLUMNS``."""
        return (
            self.id,
            self.title,
            self.description,
            self.status,
            format_timestamp(self.scheduled_date),
            int(self.is_repeating),
            self.repeat_interval,
            self.repeat_unit,
            format_timestamp(self.repeat_start_date),
            json.dumps(sorted(self.repeat_days_of_week)),
            self.repeat_end_type,
            format_timestamp(self.repeat_end_date),
            self.repeat_occurrences,
            int(self.should_send_notification),
            self.message,
            format_timestamp(self.created_at),
            format_timestamp(self.updated_at),
        )

    @classmethod
    def from_row(cls, row: tuple, recipient_ids: list[str] | None = None) -> Schedulable:
        """Deserialize from a row selected with ``SCHEDULABLE_COLUMNS``."""
        return cls(
            id=row[0],
            title=row[1],
            description=row[2] or "",
            status=row[3],
            scheduled_date=row[4],
            is_repeating=bool(row[5]),
            repeat_interval=row[6] or 1,
            repeat_unit=row[7] or UNIT_DAY,
            repeat_start_date=row[8],
            repeat_days_of_week=json.loads(row[9] or "[]"),
            repeat_end_type=row[10] or END_NEVER,
            repeat_end_date=row[11],
            repeat_occurrences=row[12],
            should_send_notification=bool(row[13]),
            message=row[14],
            recipient_ids=list(recipient_ids or []),
            created_at=row[15],
            updated_at=row[16],
        )


SCHEDULABLE_COLUMNS = (
    "id, title, description, status, scheduled_date, is_repeating, "
    "repeat_interval, repeat_unit, repeat_start_date, repeat_days_of_week, "
    "repeat_end_type, repeat_end_date, repeat_occurrences, "
    "should_send_notification, message, created_at, updated_at"
)


@dataclass
class Recipient:
    """A person who can be notified. Only active recipients are."""

    id: str
    name: str
    phone: str | None = None
    active: bool = True
    is_admin: bool = False

    def to_row(self) -> tuple:
        return (self.id, self.name, self.phone, int(self.active), int(self.is_admin))

    @classmethod
    def from_row(cls, row: tuple) -> Recipient:
        return cls(
            id=row[0],
            name=row[1],
            phone=row[2],
            active=bool(row[3]),
            is_admin=bool(row[4]),
        )


@dataclass
class ShiftDefinition:
    """A work shift whose start triggers a bulk task-list notice.

    ``time`` is a business-clock ``"HH:MM"``; the notice fires
    ``alert_minutes_before`` minutes earlier.
    """

    id: str
    title: str
    time: str
    alert_minutes_before: int = 0
    message: str | None = None

    def to_row(self) -> tuple:
        return (self.id, self.title, self.time, self.alert_minutes_before, self.message)

    @classmethod
    def from_row(cls, row: tuple) -> ShiftDefinition:
        return cls(
            id=row[0],
            title=row[1],
            time=row[2],
            alert_minutes_before=row[3] or 0,
            message=row[4],
        )


@dataclass
class ExecutionLogEntry:
    """One dispatch attempt. Append-only; never updated."""

    recipient_id: str
    alert_kind: str
    success: bool
    entity_id: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    executed_at: datetime | None = None
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            self.id = make_id()
        self.executed_at = parse_timestamp(self.executed_at) or datetime.now(UTC)

    def to_row(self) -> tuple:
        return (
            self.id,
            self.entity_id,
            self.recipient_id,
            self.alert_kind,
            format_timestamp(self.executed_at),
            int(self.success),
            self.error_message,
            json.dumps(self.metadata),
        )

    @classmethod
    def from_row(cls, row: tuple) -> ExecutionLogEntry:
        return cls(
            id=row[0],
            entity_id=row[1],
            recipient_id=row[2],
            alert_kind=row[3],
            executed_at=row[4],
            success=bool(row[5]),
            error_message=row[6],
            metadata=json.loads(row[7] or "{}"),
        )
