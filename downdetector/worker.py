"""The monitoring loop: check every site, alert on DOWN, sleep, repeat."""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx
import structlog

from .checker import is_url_up
from .config import ValidatedConfig
from .errors import DowndetectorError
from .notifier import build_down_message, send_discord_notification


logger = structlog.get_logger(__name__)


Checker = Callable[..., Awaitable[bool]]
Notifier = Callable[..., Awaitable[None]]


class WorkerState(str, enum.Enum):
    IDLE = "idle"
    CHECKING = "checking"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class CheckOutcome:
    url: str
    # None when the check itself raised.
    up: bool | None
    notified: bool = False


class MonitoringWorker:
    """Runs check cycles over ``config.monitored_urls`` until cancelled.

    Cancellation is observed at the start of each cycle and raced against the
    inter-cycle sleep. A check that is already in flight runs to completion.
    """

    def __init__(
        self,
        config: ValidatedConfig,
        *,
        client: httpx.AsyncClient | None = None,
        checker: Checker = is_url_up,
        notifier: Notifier = send_discord_notification,
        cancel_event: asyncio.Event | None = None,
    ):
        self.config = config
        self._client = client
        self._checker = checker
        self._notifier = notifier
        self._cancel_event = cancel_event if cancel_event is not None else asyncio.Event()
        self._state = WorkerState.IDLE
        self.cycles_completed = 0

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Request shutdown. Safe to call more than once."""
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested")
        self._cancel_event.set()

    def _log_startup(self) -> None:
        cfg = self.config
        logger.info("Starting website monitoring")
        logger.info("Check interval configured", check_interval_secs=cfg.check_interval_secs)
        logger.info("Timeout configured", timeout_secs=cfg.timeout_secs)
        if cfg.webhook_url is None:
            logger.warning("Webhook is not set, no notifications will be sent")
        else:
            logger.info("Webhook is set, a notification will be sent on failure")
            if cfg.discord_id is None:
                logger.warning("Discord ID is not set, notifications will not tag any user")
            else:
                logger.info("Discord ID is set, notifications will be tagged for the user")
        logger.info("Monitoring websites", count=len(cfg.monitored_urls))

    async def run(self) -> None:
        self._log_startup()
        try:
            if self._client is not None:
                await self._loop(self._client)
            else:
                async with httpx.AsyncClient() as client:
                    await self._loop(client)
        finally:
            self._state = WorkerState.STOPPED
        logger.info("Website monitoring stopped gracefully", cycles=self.cycles_completed)

    async def _loop(self, client: httpx.AsyncClient) -> None:
        while True:
            if self._cancel_event.is_set():
                logger.info("Shutdown requested, stopping monitor")
                return

            self._state = WorkerState.CHECKING
            await self.run_cycle(client)
            self.cycles_completed += 1

            self._state = WorkerState.SLEEPING
            if await self._sleep_or_cancel(self.config.check_interval_secs):
                logger.info("Shutdown requested during sleep")
                return

    async def _sleep_or_cancel(self, seconds: float) -> bool:
        """Wait ``seconds`` or until cancelled. Returns True if cancelled."""
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def run_cycle(self, client: httpx.AsyncClient) -> list[CheckOutcome]:
        """Check every monitored URL once, sequentially and in file order."""
        logger.info("Checking website status")
        outcomes = []
        for url in self.config.monitored_urls:
            outcomes.append(await self._check_site(client, url))
        return outcomes

    async def _check_site(self, client: httpx.AsyncClient, url: str) -> CheckOutcome:
        try:
            up = await self._checker(url, self.config.timeout_secs, client=client)
        except DowndetectorError as err:
            logger.error("Error checking site", url=url, error=str(err))
            return CheckOutcome(url=url, up=None)
        except Exception as err:
            logger.exception("Site check crashed", url=url, error=str(err))
            return CheckOutcome(url=url, up=None)

        if up:
            logger.info("Site is UP", url=url)
            return CheckOutcome(url=url, up=True)

        logger.warning("Site is DOWN", url=url)
        webhook_url = self.config.webhook_url
        if webhook_url is None:
            return CheckOutcome(url=url, up=False)

        try:
            await self._notifier(client, webhook_url, build_down_message(url), self.config.discord_id)
        except DowndetectorError as err:
            logger.error("Failed to send DOWN notification", url=url, error=str(err))
            return CheckOutcome(url=url, up=False)
        except Exception as err:
            logger.exception("DOWN notification crashed", url=url, error=str(err))
            return CheckOutcome(url=url, up=False)
        return CheckOutcome(url=url, up=False, notified=True)


async def monitor_websites(
    config: ValidatedConfig,
    cancel_event: asyncio.Event | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Run a :class:`MonitoringWorker` until ``cancel_event`` is set."""
    worker = MonitoringWorker(config, client=client, cancel_event=cancel_event)
    await worker.run()
