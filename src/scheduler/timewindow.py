"""Business-clock time-of-day matching.

Absolute instants are shifted by a fixed UTC offset (no daylight saving) to
get a wall-clock minute of the day. Two match modes are provided:

- exact minute: the current business minute must equal a target
  (shift alerts, per-task lookahead alerts);
- tolerant window: the scheduled minute must fall inside
  ``[now, now + period)`` (admin reminders), wrapping across midnight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from src.config import settings

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(value: str) -> int:
    """Convert ``"HH:MM"`` to minutes after midnight.

    Malformed or out-of-range values are logged and read as midnight.
    """
    try:
        hours_str, minutes_str = value.strip().split(":")[:2]
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        logger.error("Invalid time format: %r", value)
        return 0
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        logger.error("Time out of range: %r", value)
        return 0
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Render minutes after midnight as ``"HH:MM"`` (wrapping past 24h)."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class BusinessClock:
    """Converts UTC instants to business time of day at a fixed offset."""

    offset_hours: int = -3

    @classmethod
    def from_settings(cls) -> BusinessClock:
        return cls(offset_hours=settings.business_utc_offset_hours)

    def local(self, instant: datetime) -> datetime:
        """Shift *instant* to the business offset (naive values are UTC)."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return instant.astimezone(UTC) + timedelta(hours=self.offset_hours)

    def minutes(self, instant: datetime) -> int:
        """Business minute of the day for *instant*."""
        local = self.local(instant)
        return local.hour * 60 + local.minute

    def time_of_day(self, instant: datetime | None) -> str | None:
        """Business ``"HH:MM"`` for *instant*, or None when absent."""
        if instant is None:
            return None
        return format_minutes(self.minutes(instant))

    # -- Matching --------------------------------------------------------------

    def lookahead_target(self, now: datetime, lookahead_minutes: int) -> str:
        """``"HH:MM"`` that is *lookahead_minutes* after *now*."""
        return format_minutes(self.minutes(now) + lookahead_minutes)

    def matches_lookahead(
        self, instant: datetime | None, now: datetime, lookahead_minutes: int
    ) -> bool:
        """Exact match of *instant*'s time of day against now + lookahead."""
        if instant is None:
            return False
        return self.time_of_day(instant) == self.lookahead_target(now, lookahead_minutes)

    def matches_shift(self, shift_time: str, alert_minutes_before: int, now: datetime) -> bool:
        """Exact match of now against ``shift_time - alert_minutes_before``."""
        target = (time_to_minutes(shift_time) - alert_minutes_before) % MINUTES_PER_DAY
        return self.minutes(now) == target

    def within_window(
        self, instant: datetime | None, now: datetime, period_minutes: int
    ) -> bool:
        """True when *instant*'s time of day is in ``[now, now + period)``."""
        if instant is None:
            return False
        return is_within_window(self.minutes(instant), self.minutes(now), period_minutes)


def is_within_window(scheduled: int, current: int, period: int) -> bool:
    """Half-open window test on minutes of the day, wrapping at midnight."""
    window_end = current + period
    if window_end < MINUTES_PER_DAY:
        return current <= scheduled < window_end
    return scheduled >= current or scheduled < window_end % MINUTES_PER_DAY
