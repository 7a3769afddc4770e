from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import structlog

from .config import ValidatedConfig, load_config
from .errors import ConfigError
from .worker import MonitoringWorker


logger = structlog.get_logger(__name__)


def configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # The webhook token is part of the URL; keep request lines out of the logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def install_signal_handlers(worker: MonitoringWorker) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.cancel)
        except NotImplementedError:
            # Windows: no loop signal support, fall back to the plain handler.
            signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(worker.cancel))


async def run_worker(config: ValidatedConfig) -> None:
    worker = MonitoringWorker(config)
    install_signal_handlers(worker)
    await worker.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="downdetector",
        description="Check websites periodically and alert a Discord webhook when one is down",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to TOML config (default: the per-user config directory, created on first run)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    config_path = Path(args.config).expanduser() if args.config else None
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        logger.error("Failed to load configuration", error=str(exc))
        print(f"downdetector: configuration error: {exc}", file=sys.stderr)
        return 1

    asyncio.run(run_worker(config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
