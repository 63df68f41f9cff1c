"""Recurrence evaluation — is an entity due on a given day, and is it exhausted?

All calendar arithmetic is done on UTC calendar dates: ``scheduled_date``,
``repeat_start_date`` and ``repeat_end_date`` are absolute instants reduced
to their UTC date, and so is the reference ``today``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from src.scheduler.models import (
    END_DATE,
    END_OCCURRENCES,
    UNIT_DAY,
    UNIT_WEEK,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.scheduler.models import Schedulable

logger = logging.getLogger(__name__)


def utc_date(value: datetime | date) -> date:
    """Reduce an instant to its UTC calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date()
    return value


def week_start(day: date) -> date:
    """Return the Monday of the week containing *day*."""
    return day - timedelta(days=day.weekday())


def _matches_pattern(entity: Schedulable, today: date) -> bool:
    """Day/week interval test for a repeating entity (ignores end criteria)."""
    start = utc_date(entity.repeat_start_date)
    if today < start:
        return False

    interval = entity.repeat_interval or 1

    if entity.repeat_unit == UNIT_DAY:
        return (today - start).days % interval == 0

    if entity.repeat_unit == UNIT_WEEK:
        if not entity.repeat_days_of_week:
            logger.warning("Entity %s repeats weekly but has no days of week", entity.id)
            return False
        if today.weekday() not in entity.repeat_days_of_week:
            return False
        weeks = (week_start(today) - week_start(start)).days // 7
        return weeks % interval == 0

    logger.warning("Entity %s has unknown repeat unit %r", entity.id, entity.repeat_unit)
    return False


def is_due_today(
    entity: Schedulable,
    today: datetime | date,
    execution_count: int = 0,
) -> bool:
    """Decide whether *entity* should fire on *today*.

    Args:
        entity: The task or reminder.
        today: Reference instant or date (reduced to its UTC date).
        execution_count: Ledger rows already recorded for this entity. Only
            consulted for the ``"occurrences"`` end criterion.
    """
    day = utc_date(today)

    if not entity.is_repeating:
        if entity.scheduled_date is None:
            return False
        return utc_date(entity.scheduled_date) == day

    if entity.repeat_start_date is None:
        logger.warning("Repeating entity %s has no repeat start date", entity.id)
        return False

    if not _matches_pattern(entity, day):
        return False

    if entity.repeat_end_type == END_DATE:
        if entity.repeat_end_date is None:
            return True
        return day <= utc_date(entity.repeat_end_date)

    if entity.repeat_end_type == END_OCCURRENCES:
        if not entity.repeat_occurrences:
            return True
        return execution_count < entity.repeat_occurrences

    return True


def has_reached_end(
    entity: Schedulable,
    today: datetime | date,
    execution_count: int = 0,
) -> bool:
    """Decide whether *entity* has exhausted its recurrence.

    One-shot entities are exhausted after their single cycle. Repeating
    entities with ``"never"`` (or an incomplete end rule) never are.
    """
    if not entity.is_repeating:
        return True

    if entity.repeat_end_type == END_DATE:
        if entity.repeat_end_date is None:
            return False
        return utc_date(today) >= utc_date(entity.repeat_end_date)

    if entity.repeat_end_type == END_OCCURRENCES:
        if not entity.repeat_occurrences:
            return False
        return execution_count >= entity.repeat_occurrences

    return False


def needs_execution_count(entity: Schedulable) -> bool:
    """True when the verdict for *entity* depends on its ledger count."""
    return (
        entity.is_repeating
        and entity.repeat_end_type == END_OCCURRENCES
        and bool(entity.repeat_occurrences)
    )


async def filter_due_today(
    entities: list[Schedulable],
    today: datetime | date,
    count_executions: Callable[[str], Awaitable[int]],
) -> list[Schedulable]:
    """Return the entities due on *today*, preserving order.

    *count_executions* is only awaited for occurrence-limited entities.
    """

    async def _check(entity: Schedulable) -> bool:
        count = await count_executions(entity.id) if needs_execution_count(entity) else 0
        return is_due_today(entity, today, count)

    verdicts = await asyncio.gather(*(_check(entity) for entity in entities))
    return [entity for entity, due in zip(entities, verdicts, strict=True) if due]
