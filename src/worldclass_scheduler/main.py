"""Entry point for the WorldClass scheduler."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import suppress
from typing import Awaitable, Optional, TypeVar

import structlog

from .commands import run_fetch, run_schedule
from .config import load_settings
from .errors import ConfigurationError, PortalError

T = TypeVar("T")


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(
        prog="worldclass-scheduler",
        description="Automate fetching and booking of WorldClass classes.",
    )
    parser.add_argument(
        "--config",
        help="Path to the configuration file (default: $WORLDCLASS_CONFIG or config.yaml).",
    )
    parser.add_argument("--verbose", action="store_true", help="Log debug output.")

    commands = parser.add_subparsers(dest="command", required=True)

    fetch = commands.add_parser("fetch", help="Fetch classes and print their status.")
    fetch.add_argument(
        "--all",
        dest="show_all",
        action="store_true",
        help="Show all classes, ignoring configured interests.",
    )

    schedule = commands.add_parser("schedule", help="Attempt to book interested classes.")
    schedule.add_argument(
        "--loop",
        action="store_true",
        help="Continuously monitor and book upcoming classes.",
    )

    return parser.parse_args(argv)


async def _until_signalled(work: Awaitable[T]) -> T:
    """Await ``work``, cancelling it on SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, task.cancel)
            handled.append(sig)
    try:
        return await work
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)


def cli(argv: Optional[list[str]] = None) -> int:
    """Console script entrypoint."""
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        LOGGER.error("settings.error", error=str(exc))
        return 2

    if args.command == "fetch":
        work = run_fetch(settings, show_all=args.show_all)
    else:
        work = run_schedule(settings, loop=args.loop)

    try:
        asyncio.run(_until_signalled(work))
    except asyncio.CancelledError:
        LOGGER.info("shutdown")
        return 0
    except ConfigurationError as exc:
        LOGGER.error("scheduler.configuration_error", error=str(exc))
        return 2
    except PortalError as exc:
        LOGGER.error("scheduler.portal_error", error=str(exc))
        return 1

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
