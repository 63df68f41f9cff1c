"""PeriodicRunner — in-process APScheduler trigger for the scheduler invocations."""

from __future__ import annotations

import json
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.config import settings
from src.webhooks.server import DOMAINS

logger = logging.getLogger(__name__)


class PeriodicRunner:
    """Fires each domain invocation every *period_minutes* on the minute.

    ``max_instances=1`` keeps a slow run from overlapping the next tick of
    the same domain; a missed tick is coalesced into one run.

    Args:
        domains: Domain names from ``DOMAINS`` to schedule (default: all).
        period_minutes: Cadence in minutes (default from settings).
    """

    def __init__(
        self,
        domains: list[str] | None = None,
        period_minutes: int | None = None,
    ) -> None:
        self._domains = domains or list(DOMAINS)
        unknown = [d for d in self._domains if d not in DOMAINS]
        if unknown:
            msg = f"Unknown domain(s): {', '.join(unknown)}"
            raise ValueError(msg)
        self._period = period_minutes or settings.invocation_period_minutes
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        for domain in self._domains:
            self._scheduler.add_job(
                self._run_domain,
                trigger=CronTrigger(minute=f"*/{self._period}", timezone="UTC"),
                id=domain,
                name=f"{domain} scheduler",
                args=[domain],
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self._scheduler.start()
        self._running = True
        logger.info(
            "Periodic runner started: %s every %d minute(s)", ", ".join(self._domains), self._period
        )

    def stop(self) -> None:
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Periodic runner stopped")

    async def _run_domain(self, domain: str) -> None:
        """Callback invoked by APScheduler."""
        report = await DOMAINS[domain]()
        if report.success:
            logger.info("%s run finished: %s", domain, json.dumps(report.to_json_dict()))
        else:
            logger.error("%s run failed: %s", domain, report.error)
