"""Activity scheduler — shift digests plus per-task lookahead alerts."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.scheduler.engine import AlertEngine, AlertStrategy, invoke
from src.scheduler.messages import shift_message, task_alert_message
from src.scheduler.models import ALERT_INDIVIDUAL
from src.scheduler.recurrence import filter_due_today
from src.scheduler.report import ActivityResults, AlertResult
from src.scheduler.store import ENTITY_TASK
from src.scheduler.timewindow import BusinessClock, format_minutes, time_to_minutes

if TYPE_CHECKING:
    from datetime import datetime

    from src.notifications.channels import MessagingGateway
    from src.scheduler.models import Recipient, Schedulable, ShiftDefinition
    from src.scheduler.report import RunReport
    from src.scheduler.store import SchedulerStore

logger = logging.getLogger(__name__)


class IndividualAlertStrategy(AlertStrategy):
    """Alerts each task's recipients shortly before the task's time of day."""

    alert_kind = ALERT_INDIVIDUAL
    entity_type = ENTITY_TASK
    invalidate_on_edit = True

    def __init__(
        self,
        store: SchedulerStore,
        clock: BusinessClock,
        lookahead_minutes: int = 15,
    ) -> None:
        super().__init__(store)
        self.clock = clock
        self.lookahead_minutes = lookahead_minutes

    async def load_candidates(self) -> list[Schedulable]:
        return await self.store.list_pending_tasks()

    def matches_time(self, entity: Schedulable, now: datetime) -> bool:
        return self.clock.matches_lookahead(entity.scheduled_date, now, self.lookahead_minutes)

    async def load_recipients(self, entity: Schedulable) -> list[Recipient]:
        return await self.store.list_task_recipients(entity.id)

    def build_message(self, entity: Schedulable, recipient: Recipient) -> str:
        return task_alert_message(entity, recipient.name, self.clock.time_of_day(entity.scheduled_date))

    def error_label(self, entity: Schedulable, recipient: Recipient) -> str:
        return f"{recipient.name} ({entity.title})"


async def run_shift_pass(
    engine: AlertEngine,
    shift: ShiftDefinition,
    now: datetime,
    clock: BusinessClock,
) -> AlertResult:
    """Send one shift's task digest to every active recipient with tasks today.

    The shift title is the ledger alert kind, so each recipient gets the
    digest at most once per day per shift.
    """
    result = AlertResult()
    try:
        if not clock.matches_shift(shift.time, shift.alert_minutes_before, now):
            return result

        if not shift.message:
            logger.warning("Shift %r has no message configured, skipping", shift.title)
            return result

        target = format_minutes(time_to_minutes(shift.time) - shift.alert_minutes_before)
        logger.info("Alert time for shift %r (%s)", shift.title, target)
        result.executed = True

        recipients = await engine.store.list_active_recipients()
        for recipient in recipients:
            try:
                await _notify_shift(engine, shift, recipient, now, result)
            except Exception as exc:
                logger.exception("Error processing recipient %s", recipient.name)
                result.errors.append(f"{recipient.name}: {exc}")
    except Exception as exc:
        logger.exception("Error in shift pass %r", shift.title)
        result.errors.append(f"System error: {exc}")
    return result


async def _notify_shift(
    engine: AlertEngine,
    shift: ShiftDefinition,
    recipient: Recipient,
    now: datetime,
    result: AlertResult,
) -> None:
    if await engine.ledger.already_sent(None, recipient.id, shift.title, now):
        logger.info("Already sent %r to %s today", shift.title, recipient.name)
        return

    tasks = await engine.store.list_pending_tasks(recipient.id, notifiable_only=False)
    due = await filter_due_today(
        tasks, now, lambda task_id: engine.ledger.count_executions(task_id, ALERT_INDIVIDUAL)
    )
    if not due:
        logger.debug("Recipient %s has no tasks today", recipient.name)
        return

    delivered = await engine.notify(
        recipient,
        shift_message(shift.message or "", recipient.name, due),
        alert_kind=shift.title,
        now=now,
        result=result,
        metadata={
            "shift_id": shift.id,
            "shift_time": shift.time,
            "task_ids": [task.id for task in due],
            "task_count": len(due),
        },
    )
    if delivered:
        result.entities_processed += len(due)


async def run_activity_passes(
    engine: AlertEngine,
    now: datetime,
    clock: BusinessClock | None = None,
    lookahead_minutes: int | None = None,
) -> ActivityResults:
    """Run every shift pass and the individual pass concurrently."""
    clock = clock or BusinessClock.from_settings()
    if lookahead_minutes is None:
        lookahead_minutes = settings.individual_alert_lookahead_minutes

    shifts = await engine.store.list_shifts()
    logger.info("Found %d shift(s): %s", len(shifts), ", ".join(s.title for s in shifts) or "none")

    strategy = IndividualAlertStrategy(engine.store, clock, lookahead_minutes)
    *shift_results, individual = await asyncio.gather(
        *(run_shift_pass(engine, shift, now, clock) for shift in shifts),
        engine.run_entity_pass(strategy, now),
    )

    results = ActivityResults(
        shifts={shift.title: res for shift, res in zip(shifts, shift_results, strict=True)},
        individual_alerts=individual,
    )
    executed = [title for title, res in results.shifts.items() if res.executed]
    logger.info(
        "Activity run: %d/%d shift(s) executed, %d shift notification(s), %d individual alert(s)",
        len(executed),
        len(shifts),
        sum(res.recipients_notified for res in results.shifts.values()),
        individual.recipients_notified,
    )
    return results


async def run_activity_scheduler(
    now: datetime | None = None,
    store: SchedulerStore | None = None,
    gateway: MessagingGateway | None = None,
) -> RunReport:
    """One activity-domain invocation. Returns the run report; never raises."""
    return await invoke(run_activity_passes, now=now, store=store, gateway=gateway)
