"""Admin reminder scheduler — broadcasts due reminders to every administrator."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.scheduler.engine import AlertEngine, AlertStrategy, invoke
from src.scheduler.messages import admin_reminder_message
from src.scheduler.models import ALERT_ADMIN_REMINDER
from src.scheduler.report import ReminderResults
from src.scheduler.store import ENTITY_REMINDER
from src.scheduler.timewindow import BusinessClock

if TYPE_CHECKING:
    from datetime import datetime

    from src.notifications.channels import MessagingGateway
    from src.scheduler.models import Recipient, Schedulable
    from src.scheduler.report import RunReport
    from src.scheduler.store import SchedulerStore

logger = logging.getLogger(__name__)


class AdminReminderStrategy(AlertStrategy):
    """Reminders whose time of day falls in the current invocation window.

    The window is ``[now, now + period)`` so a reminder scheduled between two
    invocations is still picked up by exactly one of them.
    """

    alert_kind = ALERT_ADMIN_REMINDER
    entity_type = ENTITY_REMINDER

    def __init__(
        self,
        store: SchedulerStore,
        clock: BusinessClock,
        period_minutes: int = 5,
    ) -> None:
        super().__init__(store)
        self.clock = clock
        self.period_minutes = period_minutes
        self._admins: list[Recipient] | None = None

    async def load_candidates(self) -> list[Schedulable]:
        return await self.store.list_pending_reminders()

    def matches_time(self, entity: Schedulable, now: datetime) -> bool:
        return self.clock.within_window(entity.scheduled_date, now, self.period_minutes)

    async def load_recipients(self, entity: Schedulable) -> list[Recipient]:
        if self._admins is None:
            self._admins = await self.store.list_admin_recipients()
            if not self._admins:
                logger.warning("No admin recipients found")
        return self._admins

    def build_message(self, entity: Schedulable, recipient: Recipient) -> str:
        return admin_reminder_message(
            entity, recipient.name, self.clock.time_of_day(entity.scheduled_date)
        )


async def run_reminder_pass(
    engine: AlertEngine,
    now: datetime,
    clock: BusinessClock | None = None,
    period_minutes: int | None = None,
) -> ReminderResults:
    clock = clock or BusinessClock.from_settings()
    if period_minutes is None:
        period_minutes = settings.invocation_period_minutes
    strategy = AdminReminderStrategy(engine.store, clock, period_minutes)
    return ReminderResults.from_alert_result(await engine.run_entity_pass(strategy, now))


async def run_reminder_scheduler(
    now: datetime | None = None,
    store: SchedulerStore | None = None,
    gateway: MessagingGateway | None = None,
) -> RunReport:
    """One reminder-domain invocation. Returns the run report; never raises."""
    return await invoke(run_reminder_pass, now=now, store=store, gateway=gateway)
