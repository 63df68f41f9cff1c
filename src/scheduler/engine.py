"""AlertEngine — one generic alert pass plus lifecycle completion.

A pass loads candidate entities, keeps those whose time of day matches
``now`` and that are due today, then notifies each of their recipients
unless the ledger says it already happened today. After an entity's
recipients are handled its end criteria are evaluated and the entity is
completed when exhausted, whatever the delivery outcome was.

Domain differences (which entities, which recipients, which text) live in
an ``AlertStrategy`` subclass.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from src.notifications.dispatcher import NotificationDispatcher
from src.scheduler.ledger import ExecutionLedger
from src.scheduler.models import STATUS_COMPLETED
from src.scheduler.recurrence import has_reached_end, is_due_today, needs_execution_count
from src.scheduler.report import AlertResult, RunReport
from src.scheduler.store import SchedulerStore
from src.whatsapp.client import WaapiClient

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.notifications.channels import MessagingGateway
    from src.scheduler.models import Recipient, Schedulable
    from src.scheduler.report import ActivityResults, ReminderResults

logger = logging.getLogger(__name__)


class AlertStrategy(ABC):
    """Domain hooks for ``AlertEngine.run_entity_pass``.

    Subclasses set the class attributes and implement the abstract methods.
    A strategy instance lives for a single invocation, so it may cache what
    it loads (e.g. the admin list).

    Attributes:
        alert_kind: Ledger alert kind for rows written by this pass.
        entity_type: Store entity type (``"task"`` or ``"reminder"``).
        invalidate_on_edit: Ignore ledger rows older than the entity's last
            edit, so a same-day reschedule fires again.
    """

    alert_kind: str = ""
    entity_type: str = ""
    invalidate_on_edit: bool = False

    def __init__(self, store: SchedulerStore) -> None:
        self.store = store

    @abstractmethod
    async def load_candidates(self) -> list[Schedulable]:
        """Pending entities this pass may alert on."""
        ...

    @abstractmethod
    def matches_time(self, entity: Schedulable, now: datetime) -> bool:
        """Whether *entity*'s time of day matches the invocation instant."""
        ...

    @abstractmethod
    async def load_recipients(self, entity: Schedulable) -> list[Recipient]:
        """Recipients linked to *entity*, inactive ones included.

        The engine skips inactive recipients itself, so an entity whose
        links are all inactive is still processed and can complete.
        """
        ...

    @abstractmethod
    def build_message(self, entity: Schedulable, recipient: Recipient) -> str:
        ...

    def error_label(self, entity: Schedulable, recipient: Recipient) -> str:
        """Prefix for per-recipient error strings."""
        return recipient.name

    async def mark_complete(self, entity: Schedulable) -> bool:
        return await self.store.update_status(self.entity_type, entity.id, STATUS_COMPLETED)


class AlertEngine:
    """Runs alert passes against a store, a ledger and a dispatcher.

    Holds no state between invocations; build one per run.

    Args:
        store: SchedulerStore (or a fake with the same coroutines).
        dispatcher: NotificationDispatcher used for every send.
        ledger: ExecutionLedger; defaults to one over *store*.
    """

    def __init__(
        self,
        store: SchedulerStore,
        dispatcher: NotificationDispatcher,
        ledger: ExecutionLedger | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.ledger = ledger or ExecutionLedger(store)

    # -- Building blocks -------------------------------------------------------

    async def notify(
        self,
        recipient: Recipient,
        text: str,
        *,
        alert_kind: str,
        now: datetime,
        result: AlertResult,
        label: str | None = None,
        entity_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Dispatch *text* to *recipient* and log the attempt.

        A recipient without a phone number gets an error entry and no
        ledger row. Returns True when the message was delivered.
        """
        label = label or recipient.name
        if not recipient.phone:
            logger.warning("Recipient %s has no phone number", recipient.name)
            result.errors.append(f"{label}: no phone number")
            return False

        outcome = await self.dispatcher.send(recipient.phone, text)
        await self.ledger.record_attempt(
            recipient_id=recipient.id,
            alert_kind=alert_kind,
            success=outcome.success,
            entity_id=entity_id,
            error_message=None if outcome.success else outcome.error,
            metadata=metadata,
            executed_at=now,
        )

        if outcome.success:
            logger.info("Sent %s alert to %s", alert_kind, recipient.name)
            result.recipients_notified += 1
            return True

        logger.error("Failed to send %s alert to %s: %s", alert_kind, recipient.name, outcome.error)
        result.errors.append(f"{label}: {outcome.error}")
        return False

    async def execution_count(self, entity: Schedulable, alert_kind: str) -> int:
        """Ledger count for *entity*, only queried when its end rule needs it."""
        if not needs_execution_count(entity):
            return 0
        return await self.ledger.count_executions(entity.id, alert_kind)

    async def complete_if_exhausted(
        self, strategy: AlertStrategy, entity: Schedulable, now: datetime
    ) -> bool:
        """Mark *entity* completed when its recurrence has run out."""
        count = await self.execution_count(entity, strategy.alert_kind)
        if not has_reached_end(entity, now, count):
            return False
        logger.info("Marking %s %s as completed", strategy.entity_type, entity.title)
        return await strategy.mark_complete(entity)

    # -- Entity pass -----------------------------------------------------------

    async def run_entity_pass(self, strategy: AlertStrategy, now: datetime) -> AlertResult:
        """Alert every due, time-matched entity of *strategy* and complete exhausted ones.

        Never raises: per-recipient and per-entity failures are collected,
        and a failure loading candidates becomes a ``System error`` entry.

        ``executed`` is set only once an entity both matches the time and
        is due today; a time match on an entity not due today leaves it
        False.
        """
        result = AlertResult()
        try:
            candidates = [e for e in await strategy.load_candidates() if strategy.matches_time(e, now)]
            if not candidates:
                return result

            for entity in candidates:
                try:
                    await self._process_entity(strategy, entity, now, result)
                except Exception as exc:
                    logger.exception("Error processing %s %s", strategy.entity_type, entity.title)
                    result.errors.append(f"{entity.title}: {exc}")
        except Exception as exc:
            logger.exception("Error in %s pass", strategy.alert_kind)
            result.errors.append(f"System error: {exc}")

        logger.info(
            "%s pass: %d recipient(s) notified, %d entities, %d error(s)",
            strategy.alert_kind,
            result.recipients_notified,
            result.entities_processed,
            len(result.errors),
        )
        return result

    async def _process_entity(
        self,
        strategy: AlertStrategy,
        entity: Schedulable,
        now: datetime,
        result: AlertResult,
    ) -> None:
        count = await self.execution_count(entity, strategy.alert_kind)
        if not is_due_today(entity, now, count):
            logger.debug("%s %s is not due today", strategy.entity_type, entity.title)
            return
        result.executed = True

        recipients = await strategy.load_recipients(entity)
        if not recipients:
            logger.warning("%s %s has no recipients", strategy.entity_type, entity.title)
            return

        updated_at = entity.updated_at if strategy.invalidate_on_edit else None
        for recipient in recipients:
            if not recipient.active:
                logger.debug("Skipping inactive recipient %s", recipient.name)
                continue
            label = strategy.error_label(entity, recipient)
            try:
                if await self.ledger.already_sent(
                    entity.id,
                    recipient.id,
                    strategy.alert_kind,
                    now,
                    entity_updated_at=updated_at,
                ):
                    logger.info("Already sent %s to %s today", entity.title, recipient.name)
                    continue
                await self.notify(
                    recipient,
                    strategy.build_message(entity, recipient),
                    alert_kind=strategy.alert_kind,
                    now=now,
                    result=result,
                    label=label,
                    entity_id=entity.id,
                )
            except Exception as exc:
                logger.exception("Error sending %s to %s", entity.title, recipient.name)
                result.errors.append(f"{label}: {exc}")

        result.entities_processed += 1
        await self.complete_if_exhausted(strategy, entity, now)


async def invoke(
    body: Callable[[AlertEngine, datetime], Awaitable[ActivityResults | ReminderResults]],
    *,
    now: datetime | None = None,
    store: SchedulerStore | None = None,
    gateway: MessagingGateway | None = None,
) -> RunReport:
    """Run one scheduler invocation and wrap its results in a RunReport.

    Builds the WhatsApp gateway from settings unless one is injected (and
    closes it afterwards). Missing gateway credentials, or any error that
    escapes *body*, abort the invocation with ``success=False``.
    """
    now = now or datetime.now(UTC)
    store = store or SchedulerStore.get()
    owned = None
    try:
        if gateway is None:
            gateway = owned = WaapiClient.from_settings()
        engine = AlertEngine(store, NotificationDispatcher.from_settings(gateway))
        results = await body(engine, now)
    except Exception as exc:
        logger.exception("Fatal error in scheduler invocation")
        return RunReport(success=False, timestamp=now, error=str(exc))
    finally:
        if owned is not None:
            await owned.close()
    return RunReport(success=True, timestamp=now, results=results)
