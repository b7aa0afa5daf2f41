"""Daily celebration dispatch for configured Slack channels."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .db import Database
from .errors import ConfigurationError
from .messaging import MessagingPort
from .models import AnniversaryPerson, DispatchOutcome, Person, WorkspaceChannel

LOGGER = logging.getLogger(__name__)


def mention(slack_user_id: str) -> str:
    return f"<@{slack_user_id}>"


def render_birthday_message(template: str, people: Sequence[Person]) -> str:
    users = ", ".join(mention(person.slack_user_id) for person in people)
    return template.replace("{users}", users).replace("{years}", "").strip()


def render_anniversary_message(template: str, anniversaries: Sequence[AnniversaryPerson]) -> str:
    users = ", ".join(mention(item.person.slack_user_id) for item in anniversaries)
    years = ", ".join(str(item.years) for item in anniversaries)
    return template.replace("{users}", users).replace("{years}", years).strip()


def append_branding(message: str, emoji: str) -> str:
    emoji = (emoji or "").strip()
    if not emoji:
        return message
    return f"{message} {emoji}"


def avatar_urls(people: Sequence[Person]) -> List[str]:
    return [person.avatar_url for person in people if person.avatar_url.strip()]


def load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"invalid channel timezone {name!r}") from exc


class CelebrationService:
    """Finds today's birthdays and anniversaries per channel and posts them."""

    def __init__(self, database: Database, messenger: MessagingPort) -> None:
        self.database = database
        self.messenger = messenger

    async def run_due_celebrations(self, now: datetime | None = None) -> List[DispatchOutcome]:
        now = now or datetime.now(timezone.utc)
        channels = self.database.list_due_channels(now)
        outcomes = await self._dispatch_all(channels, now)
        if outcomes:
            failed = sum(1 for outcome in outcomes if not outcome.ok)
            LOGGER.info("Dispatched %s due channels (%s failed)", len(outcomes), failed)
        return outcomes

    async def dispatch_workspace_now(
        self, workspace_id: str, now: datetime | None = None
    ) -> List[DispatchOutcome]:
        """Dispatch every channel in a workspace regardless of posting time.

        Channels already dispatched for their local date are reported and
        left alone.
        """

        now = now or datetime.now(timezone.utc)
        channels = self.database.list_channels_by_workspace(workspace_id)
        return await self._dispatch_all(channels, now, skip_dispatched=True)

    async def _dispatch_all(
        self,
        channels: Sequence[WorkspaceChannel],
        now: datetime,
        *,
        skip_dispatched: bool = False,
    ) -> List[DispatchOutcome]:
        outcomes: List[DispatchOutcome] = []
        for channel in channels:
            outcome = DispatchOutcome(channel_id=channel.id, slack_channel_id=channel.slack_channel_id)
            try:
                await self.dispatch_channel(channel, now, outcome=outcome, skip_dispatched=skip_dispatched)
            except Exception as exc:  # noqa: BLE001
                outcome.error = str(exc)
                LOGGER.error(
                    "Celebration dispatch failed for channel %s in workspace %s: %s",
                    channel.id,
                    channel.workspace_id,
                    exc,
                )
            outcomes.append(outcome)
        return outcomes

    async def dispatch_channel(
        self,
        channel: WorkspaceChannel,
        now: datetime,
        *,
        outcome: DispatchOutcome | None = None,
        skip_dispatched: bool = False,
    ) -> DispatchOutcome:
        """Run one channel's pass; raises on failure without marking it dispatched."""

        if outcome is None:
            outcome = DispatchOutcome(channel_id=channel.id, slack_channel_id=channel.slack_channel_id)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        local_now = now.astimezone(load_timezone(channel.timezone))
        today = local_now.date()
        outcome.dispatch_date = today

        if skip_dispatched and self.database.has_dispatched(channel.id, today):
            outcome.already_dispatched = True
            return outcome

        if channel.birthdays_enabled:
            birthdays = self.database.find_birthdays(channel.workspace_id, today.month, today.day)
            outcome.birthdays = len(birthdays)
            if birthdays:
                message = render_birthday_message(channel.birthday_template, birthdays)
                message = append_branding(message, channel.branding_emoji)
                await self.messenger.post_message(
                    channel.workspace_id, channel.slack_channel_id, message, avatar_urls(birthdays)
                )
                outcome.birthday_posted = True

        if channel.anniversaries_enabled:
            anniversaries = self.database.find_anniversaries(
                channel.workspace_id, today.month, today.day, today.year
            )
            outcome.anniversaries = len(anniversaries)
            if anniversaries:
                message = render_anniversary_message(channel.anniversary_template, anniversaries)
                message = append_branding(message, channel.branding_emoji)
                await self.messenger.post_message(
                    channel.workspace_id,
                    channel.slack_channel_id,
                    message,
                    avatar_urls([item.person for item in anniversaries]),
                )
                outcome.anniversary_posted = True

        self.database.mark_channel_dispatched(channel.id, today)
        return outcome


__all__ = [
    "CelebrationService",
    "render_birthday_message",
    "render_anniversary_message",
    "append_branding",
    "avatar_urls",
    "load_timezone",
]
