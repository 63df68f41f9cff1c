"""HTTP entry point for scheduler invocations.

An external cron (or any caller holding the shared secret) POSTs to
``/run/<domain>`` and gets the run report back as JSON: 200 when the run
succeeded, 500 when it aborted. The server only starts when
``WEBHOOK_SECRET`` is configured.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from src.config import settings
from src.scheduler.activities import run_activity_scheduler
from src.scheduler.reminders import run_reminder_scheduler
from src.scheduler.report import RunReport

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Webhook-Secret"

Invocation = Callable[[], Awaitable[RunReport]]

DOMAINS: dict[str, Invocation] = {
    "activities": run_activity_scheduler,
    "reminders": run_reminder_scheduler,
}


def _authorized(request: web.Request) -> bool:
    expected = settings.webhook_secret
    return bool(expected) and request.headers.get(SECRET_HEADER, "") == expected


async def _handle_run(request: web.Request) -> web.Response:
    domain = request.match_info["domain"]
    if not _authorized(request):
        logger.warning("Rejected run for %s: bad or missing secret", domain)
        return web.json_response({"error": "unauthorized"}, status=401)

    invocation = DOMAINS.get(domain)
    if invocation is None:
        logger.warning("Rejected run for unknown domain %r", domain)
        return web.json_response({"error": "unknown domain"}, status=404)

    logger.info("Running %s scheduler", domain)
    report = await invocation()
    status = 200 if report.success else 500
    return web.json_response(report.to_json_dict(), status=status)


async def _health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "domains": sorted(DOMAINS)})


def _create_web_app() -> web.Application:
    app = web.Application()
    app.add_routes(
        [
            web.get("/health", _health),
            web.post("/run/{domain}", _handle_run),
        ]
    )
    return app


class WebhookServer:
    """Owns the aiohttp runner so the CLI can start and stop it."""

    def __init__(self, port: int | None = None) -> None:
        self.port = port or settings.webhook_port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        if not settings.webhook_secret:
            logger.warning("WEBHOOK_SECRET not set; HTTP trigger disabled")
            return

        self._runner = web.AppRunner(_create_web_app())
        await self._runner.setup()
        await web.TCPSite(self._runner, "0.0.0.0", self.port).start()  # noqa: S104
        logger.info("Accepting scheduler runs on port %d", self.port)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("HTTP trigger stopped")
