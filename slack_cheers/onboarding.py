"""Welcome DMs asking workspace members for their dates."""

from __future__ import annotations

import logging
from typing import Optional

from .db import Database
from .errors import ConfigurationError
from .messaging import MessagingPort
from .models import OnboardingDispatchResult
from .slack_client import SlackClient

LOGGER = logging.getLogger(__name__)


def build_onboarding_message(name: str) -> str:
    clean_name = (name or "").strip().rstrip(".!?,") or "there"
    return (
        f"Hi {clean_name}!\n\n"
        "SlackCheers is now active in your workspace to celebrate great moments.\n\n"
        "Tell us your birthday: `month day` and hire date: `month day, year`\n\n"
        "You can send only birthday or only hire date, and update later anytime."
    )


class OnboardingService:
    def __init__(
        self,
        database: Database,
        messenger: MessagingPort,
        client: SlackClient,
        default_token: Optional[str] = None,
    ) -> None:
        self.database = database
        self.messenger = messenger
        self.client = client
        self.default_token = (default_token or "").strip()

    async def send_onboarding_dms(self, workspace_id: str, force: bool = False) -> OnboardingDispatchResult:
        """DM every human member who has not been greeted yet (everyone when ``force``)."""

        installation = self.database.get_installation_by_workspace_id(workspace_id)
        token = installation.bot_token.strip() or self.default_token
        if not token:
            raise ConfigurationError("workspace is not connected to Slack yet")

        members = await self.client.fetch_users(token)
        already_sent = set() if force else self.database.list_onboarded_user_ids(workspace_id)

        result = OnboardingDispatchResult(total_members=len(members))
        for member in members:
            if member.slack_user_id in already_sent:
                result.skipped += 1
                continue
            try:
                await self.messenger.send_direct_message(
                    workspace_id, member.slack_user_id, build_onboarding_message(member.display_name)
                )
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Onboarding DM to %s failed: %s", member.slack_user_id, exc)
                result.failed += 1
                result.failed_users.append(member.slack_user_id)
                result.failed_details[member.slack_user_id] = str(exc)
                continue
            result.sent += 1
            try:
                self.database.mark_onboarded(workspace_id, member.slack_user_id)
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("Could not record onboarding DM to %s: %s", member.slack_user_id, exc)

        result.failed_users.sort()
        LOGGER.info(
            "Onboarding DMs for workspace %s: %s sent, %s skipped, %s failed",
            workspace_id,
            result.sent,
            result.skipped,
            result.failed,
        )
        return result


__all__ = ["OnboardingService", "build_onboarding_message"]
