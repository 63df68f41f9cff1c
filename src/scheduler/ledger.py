"""ExecutionLedger — same-day idempotency gate over the append-only execution log."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from src.scheduler.models import ExecutionLogEntry
from src.scheduler.recurrence import utc_date

if TYPE_CHECKING:
    from datetime import date

    from src.scheduler.store import SchedulerStore

logger = logging.getLogger(__name__)


def day_bounds(day: datetime | date) -> tuple[datetime, datetime]:
    """Return ``[day 00:00, day+1 00:00)`` in UTC."""
    start = datetime.combine(utc_date(day), time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


class ExecutionLedger:
    """Answers "was this already sent today?" and records every attempt.

    Args:
        store: Store providing ``count_logs``, ``count_entity_logs`` and
            ``append_log``.
    """

    def __init__(self, store: SchedulerStore) -> None:
        self._store = store

    async def already_sent(
        self,
        entity_id: str | None,
        recipient_id: str,
        alert_kind: str,
        day: datetime | date,
        *,
        entity_updated_at: datetime | None = None,
    ) -> bool:
        """True iff an attempt for the key was logged on *day*.

        When *entity_updated_at* is given, rows older than the entity's last
        edit are ignored so a same-day reschedule fires again. A failing read
        is treated as "not sent".
        """
        start, end = day_bounds(day)
        try:
            count = await self._store.count_logs(
                entity_id=entity_id,
                recipient_id=recipient_id,
                alert_kind=alert_kind,
                start=start,
                end=end,
                since=entity_updated_at,
            )
        except Exception:
            logger.exception(
                "Ledger check failed for entity=%s recipient=%s kind=%s; assuming not sent",
                entity_id,
                recipient_id,
                alert_kind,
            )
            return False
        return count > 0

    async def record_attempt(
        self,
        *,
        recipient_id: str,
        alert_kind: str,
        success: bool,
        entity_id: str | None = None,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
        executed_at: datetime | None = None,
    ) -> ExecutionLogEntry:
        """Append one row for a dispatch attempt, successful or not."""
        entry = ExecutionLogEntry(
            entity_id=entity_id,
            recipient_id=recipient_id,
            alert_kind=alert_kind,
            success=success,
            error_message=error_message,
            metadata=metadata or {},
            executed_at=executed_at,
        )
        await self._store.append_log(entry)
        logger.debug(
            "Logged %s attempt: entity=%s recipient=%s success=%s",
            alert_kind,
            entity_id,
            recipient_id,
            success,
        )
        return entry

    async def count_executions(self, entity_id: str, alert_kind: str) -> int:
        """Rows logged for *entity_id* under *alert_kind*, failures included."""
        return await self._store.count_entity_logs(entity_id, alert_kind)
