"""Result models returned by one scheduler invocation (serialized camelCase)."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Report(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Plain dict with camelCase keys, ready for ``json.dumps``."""
        return self.model_dump(mode="json", by_alias=True)


class AlertResult(_Report):
    """Outcome of one pass (a shift, the individual pass, the reminder pass)."""

    executed: bool = False
    recipients_notified: int = 0
    entities_processed: int = 0
    errors: list[str] = Field(default_factory=list)


class ActivityResults(_Report):
    shifts: dict[str, AlertResult] = Field(default_factory=dict)
    individual_alerts: AlertResult = Field(default_factory=AlertResult)


class ReminderResults(_Report):
    reminders_processed: int = 0
    admins_notified: int = 0
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_alert_result(cls, result: AlertResult) -> ReminderResults:
        return cls(
            reminders_processed=result.entities_processed,
            admins_notified=result.recipients_notified,
            errors=list(result.errors),
        )


class RunReport(_Report):
    """Top-level invocation result.

    ``results`` is None and ``error`` is set when the run aborted on a
    configuration failure.
    """

    success: bool
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    results: ActivityResults | ReminderResults | None = None
    error: str | None = None

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
