"""Tests for recurrence evaluation."""

from datetime import UTC, date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

from src.scheduler.models import Schedulable
from src.scheduler.recurrence import (
    filter_due_today,
    has_reached_end,
    is_due_today,
    needs_execution_count,
    utc_date,
    week_start,
)

MONDAY = date(2025, 3, 10)


def _one_shot(when: str = "2025-03-10T11:00:00Z", **kwargs) -> Schedulable:
    return Schedulable(id="t1", title="Vaccinate", scheduled_date=when, **kwargs)


def _repeating(**kwargs) -> Schedulable:
    defaults = {
        "id": "t1",
        "title": "Feed",
        "scheduled_date": "2025-03-10T11:00:00Z",
        "is_repeating": True,
        "repeat_start_date": "2025-03-10T00:00:00Z",
    }
    defaults.update(kwargs)
    return Schedulable(**defaults)


# -- Helpers -------------------------------------------------------------------


def test_utc_date_converts_aware_instant() -> None:
    # 23:30 at UTC-3 is already the next UTC day
    local = datetime(2025, 3, 10, 23, 30, tzinfo=timezone(timedelta(hours=-3)))
    assert utc_date(local) == date(2025, 3, 11)


def test_week_start_is_monday() -> None:
    assert week_start(date(2025, 3, 13)) == MONDAY
    assert week_start(MONDAY) == MONDAY


# -- One-shot ------------------------------------------------------------------


def test_one_shot_due_only_on_its_date() -> None:
    task = _one_shot()
    due_days = [
        MONDAY + timedelta(days=offset)
        for offset in range(-5, 6)
        if is_due_today(task, MONDAY + timedelta(days=offset))
    ]
    assert due_days == [MONDAY]


def test_one_shot_without_date_never_due() -> None:
    assert is_due_today(Schedulable(id="t1", title="x"), MONDAY) is False


def test_one_shot_accepts_datetime_reference() -> None:
    assert is_due_today(_one_shot(), datetime(2025, 3, 10, 23, 59, tzinfo=UTC))


def test_one_shot_always_reaches_end() -> None:
    assert has_reached_end(_one_shot(), MONDAY) is True


# -- Daily ---------------------------------------------------------------------


def test_daily_interval_matches_every_n_days() -> None:
    task = _repeating(repeat_interval=3)
    due = [n for n in range(10) if is_due_today(task, MONDAY + timedelta(days=n))]
    assert due == [0, 3, 6, 9]


def test_not_due_before_start() -> None:
    task = _repeating()
    assert is_due_today(task, MONDAY - timedelta(days=1)) is False


def test_repeating_without_start_is_never_due() -> None:
    task = _repeating(repeat_start_date=None)
    assert is_due_today(task, MONDAY) is False


def test_zero_interval_treated_as_one() -> None:
    task = _repeating(repeat_interval=0)
    assert is_due_today(task, MONDAY + timedelta(days=1))


# -- Weekly --------------------------------------------------------------------


def test_weekly_monday_wednesday() -> None:
    task = _repeating(repeat_unit="week", repeat_days_of_week=[0, 2])
    due = [n for n in range(14) if is_due_today(task, MONDAY + timedelta(days=n))]
    assert due == [0, 2, 7, 9]


def test_weekly_every_other_week() -> None:
    task = _repeating(repeat_unit="week", repeat_interval=2, repeat_days_of_week=[4])
    due = [n for n in range(28) if is_due_today(task, MONDAY + timedelta(days=n))]
    assert due == [4, 18]


def test_weekly_start_mid_week_counts_calendar_weeks() -> None:
    # Started on a Thursday; the Monday after is already the next week
    task = _repeating(
        repeat_unit="week",
        repeat_interval=2,
        repeat_start_date="2025-03-13T00:00:00Z",
        repeat_days_of_week=[0, 3],
    )
    assert is_due_today(task, date(2025, 3, 13))
    assert not is_due_today(task, date(2025, 3, 17))
    assert is_due_today(task, date(2025, 3, 24))


def test_weekly_without_days_never_due() -> None:
    task = _repeating(repeat_unit="week", repeat_days_of_week=[])
    assert not any(is_due_today(task, MONDAY + timedelta(days=n)) for n in range(7))


def test_unknown_unit_never_due() -> None:
    assert is_due_today(_repeating(repeat_unit="month"), MONDAY) is False


# -- End criteria --------------------------------------------------------------


def test_end_date_inclusive() -> None:
    task = _repeating(repeat_end_type="date", repeat_end_date="2025-03-12T00:00:00Z")
    assert is_due_today(task, date(2025, 3, 12))
    assert not is_due_today(task, date(2025, 3, 13))


def test_end_date_reached_on_last_day() -> None:
    task = _repeating(repeat_end_type="date", repeat_end_date="2025-03-12T00:00:00Z")
    assert has_reached_end(task, date(2025, 3, 11)) is False
    assert has_reached_end(task, datetime(2025, 3, 12, 11, 0, tzinfo=UTC)) is True


def test_end_date_missing_never_ends() -> None:
    task = _repeating(repeat_end_type="date")
    assert is_due_today(task, MONDAY)
    assert has_reached_end(task, MONDAY + timedelta(days=400)) is False


def test_occurrences_stop_once_count_reached() -> None:
    task = _repeating(repeat_end_type="occurrences", repeat_occurrences=3)
    assert is_due_today(task, MONDAY, execution_count=2)
    assert not is_due_today(task, MONDAY, execution_count=3)
    assert not is_due_today(task, MONDAY + timedelta(days=30), execution_count=3)
    assert has_reached_end(task, MONDAY, execution_count=3)
    assert not has_reached_end(task, MONDAY, execution_count=2)


def test_never_does_not_end() -> None:
    task = _repeating(repeat_end_type="never")
    assert has_reached_end(task, MONDAY + timedelta(days=1000)) is False


def test_needs_execution_count() -> None:
    assert needs_execution_count(_repeating(repeat_end_type="occurrences", repeat_occurrences=2))
    assert not needs_execution_count(_repeating(repeat_end_type="occurrences"))
    assert not needs_execution_count(_one_shot())


# -- filter_due_today ----------------------------------------------------------


async def test_filter_due_today_only_counts_when_needed() -> None:
    counter = AsyncMock(return_value=5)
    capped = _repeating(id="capped", repeat_end_type="occurrences", repeat_occurrences=5)
    open_ended = _repeating(id="open")
    tomorrow = _one_shot("2025-03-11T11:00:00Z")

    due = await filter_due_today([capped, open_ended, tomorrow], MONDAY, counter)

    assert [t.id for t in due] == ["open"]
    counter.assert_awaited_once_with("capped")
