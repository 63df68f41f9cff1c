"""AgroTask alerts entry point.

Usage::

    python -m src.main run activities     # one invocation, JSON on stdout
    python -m src.main run all
    python -m src.main serve --cron       # HTTP trigger + in-process cron
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agrotask-alerts", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run one scheduler invocation and print the result")
    run.add_argument("domain", choices=["activities", "reminders", "all"])

    serve = sub.add_parser("serve", help="Start the HTTP trigger server")
    serve.add_argument("--cron", action="store_true", help="Also run the periodic trigger in-process")
    serve.add_argument("--port", type=int, default=None, help="Listening port (default from settings)")
    return parser


async def run_once(domain: str) -> bool:
    """Run one or both domains, print each report, and return overall success."""
    from src.webhooks.server import DOMAINS

    names = list(DOMAINS) if domain == "all" else [domain]
    ok = True
    for name in names:
        report = await DOMAINS[name]()
        print(json.dumps(report.to_json_dict(), ensure_ascii=False, indent=2))
        ok = ok and report.success
    return ok


async def serve(port: int | None = None, cron: bool = False) -> None:
    """Run the HTTP server (and optionally the periodic runner) until cancelled."""
    from src.runner import PeriodicRunner
    from src.webhooks.server import WebhookServer

    server = WebhookServer(port=port)
    runner = PeriodicRunner() if cron else None
    await server.start()
    if runner is not None:
        runner.start()
    try:
        await asyncio.Event().wait()
    finally:
        if runner is not None:
            runner.stop()
        await server.stop()


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch. Returns the process exit code."""
    args = _build_parser().parse_args(argv)

    if args.command == "run":
        return 0 if asyncio.run(run_once(args.domain)) else 1

    logger.info("Starting AgroTask alerts server (cron=%s)...", args.cron)
    try:
        asyncio.run(serve(port=args.port, cron=args.cron))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
