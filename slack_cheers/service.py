"""Wires the SlackCheers components together for the API and MCP entry points."""

from __future__ import annotations

import logging
from typing import Optional

from .celebration import CelebrationService
from .config import Settings
from .dashboard import DashboardService
from .db import Database
from .inbound import InboundService
from .messaging import MessagingPort, NoopMessenger, SlackMessenger
from .onboarding import OnboardingService
from .scheduler import Scheduler
from .slack_client import SlackClient

LOGGER = logging.getLogger(__name__)


class SlackCheersService:
    """Holds one instance of every component, sharing a database and Slack client."""

    def __init__(
        self,
        settings: Settings,
        database: Optional[Database] = None,
        client: Optional[SlackClient] = None,
        messenger: Optional[MessagingPort] = None,
    ) -> None:
        self.settings = settings
        self.database = database or Database(settings.database_path)
        self.client = client or SlackClient(timeout=settings.slack_http_timeout)
        self.messenger = messenger or self._default_messenger()

        default_token = settings.slack_bot_token
        self.celebrations = CelebrationService(self.database, self.messenger)
        self.dashboard = DashboardService(self.database, self.client, default_token)
        self.inbound = InboundService(self.database, self.messenger, self.client, default_token)
        self.onboarding = OnboardingService(self.database, self.messenger, self.client, default_token)
        self.scheduler = Scheduler(self.celebrations, poll_interval=settings.scheduler_poll_interval)

    def _default_messenger(self) -> MessagingPort:
        # SlackMessenger looks the token up on every call.
        if self.settings.slack_dry_run:
            LOGGER.warning("SLACK_DRY_RUN is set; celebration messages will only be logged")
            return NoopMessenger()
        return SlackMessenger(self.database, self.client, self.settings.slack_bot_token)

    async def start(self) -> None:
        if self.settings.scheduler_enabled and not self.scheduler.running:
            self.scheduler.start()

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.client.close()


__all__ = ["SlackCheersService"]
