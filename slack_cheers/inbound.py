"""Handle direct messages in which members share their birthday or hire date."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .db import Database
from .errors import NotFoundError
from .messaging import MessagingPort
from .models import DEFAULT_REMINDER_MODE, Person, SlackUserProfile
from .parser import ParsedProfileInput, ParseError, parse_profile_input
from .slack_client import SlackClient

LOGGER = logging.getLogger(__name__)

PRODUCT_NAME = "SlackCheers"


def first_non_blank(*values: Optional[str]) -> str:
    for value in values:
        if value and value.strip():
            return value.strip()
    return ""


def build_help_message(reason: str = "") -> str:
    reason = reason.strip()
    prefix = f"I couldn't save that yet ({reason}). " if reason else ""
    return (
        f"{prefix}Reply with one or both lines in this format:\n"
        "```text\nmarch 25\njanuary 23, 2024\n```\n"
        "Use `month day` for birthday and `month day, year` for hire date (year is required)."
    )


def build_ack_message(parsed: ParsedProfileInput) -> str:
    thanks = f"Thank you for sharing with {PRODUCT_NAME} :yellow_heart::tada:"
    if parsed.has_birthday and parsed.has_hire_date:
        return (
            f"Saved your birthday and hire date! {thanks} We can't wait to celebrate you on your "
            "special day :birthday::partying_face: and your work anniversary!"
        )
    if parsed.has_birthday:
        return (
            f"Saved your birthday! {thanks} We can't wait to celebrate you on your special day "
            ":birthday::partying_face:"
        )
    if parsed.has_hire_date:
        return f"Saved your hire date! {thanks} We can't wait to celebrate your work anniversary!"
    return "Saved your profile updates."


def merge_profile_input(
    workspace_id: str,
    slack_user_id: str,
    parsed: ParsedProfileInput,
    existing: Optional[Person],
    profile: Optional[SlackUserProfile] = None,
) -> Person:
    """Build the person to upsert, changing only what the message specified."""

    profile = profile or SlackUserProfile()
    merged = Person(
        workspace_id=workspace_id,
        slack_user_id=slack_user_id,
        slack_handle=first_non_blank(
            profile.slack_handle, existing.slack_handle if existing else "", slack_user_id
        ),
        display_name=first_non_blank(
            profile.display_name, existing.display_name if existing else "", slack_user_id
        ),
        avatar_url=first_non_blank(profile.avatar_url, existing.avatar_url if existing else ""),
    )
    if existing is not None:
        merged.public_celebration_opt_in = existing.public_celebration_opt_in
        merged.reminders_mode = existing.reminders_mode.strip() or DEFAULT_REMINDER_MODE
        merged.birthday_day = existing.birthday_day
        merged.birthday_month = existing.birthday_month
        merged.birthday_year = existing.birthday_year
        merged.hire_date = existing.hire_date

    if parsed.has_birthday:
        merged.birthday_day = parsed.birthday_day
        merged.birthday_month = parsed.birthday_month
        merged.birthday_year = parsed.birthday_year
    if parsed.has_hire_date:
        merged.hire_date = parsed.hire_date
    return merged


class InboundService:
    def __init__(
        self,
        database: Database,
        messenger: MessagingPort,
        client: Optional[SlackClient] = None,
        default_token: Optional[str] = None,
    ) -> None:
        self.database = database
        self.messenger = messenger
        self.client = client
        self.default_token = (default_token or "").strip()

    def apply_parsed_input(
        self,
        workspace_id: str,
        slack_user_id: str,
        parsed: ParsedProfileInput,
        profile: Optional[SlackUserProfile] = None,
    ) -> Person:
        try:
            existing: Optional[Person] = self.database.get_person(workspace_id, slack_user_id)
        except NotFoundError:
            existing = None
        merged = merge_profile_input(workspace_id, slack_user_id, parsed, existing, profile)
        return self.database.upsert_person(merged)

    async def _fetch_profile(self, bot_token: str, slack_user_id: str) -> Optional[SlackUserProfile]:
        token = bot_token.strip() or self.default_token
        if self.client is None or not token:
            return None
        try:
            return await self.client.fetch_user_profile(token, slack_user_id)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to fetch Slack profile for %s: %s", slack_user_id, exc)
            return None

    async def handle_direct_message(self, team_id: str, slack_user_id: str, text: str) -> Optional[Person]:
        installation = self.database.get_installation_by_team_id(team_id.strip())
        workspace_id = installation.workspace_id

        try:
            parsed = parse_profile_input(text)
        except ParseError as exc:
            try:
                await self.messenger.send_direct_message(workspace_id, slack_user_id, build_help_message(str(exc)))
            except Exception as send_exc:  # noqa: BLE001
                LOGGER.warning("Failed to send help message to %s: %s", slack_user_id, send_exc)
            return None

        profile = await self._fetch_profile(installation.bot_token, slack_user_id)
        person = self.apply_parsed_input(workspace_id, slack_user_id, parsed, profile)

        try:
            await self.messenger.send_direct_message(workspace_id, slack_user_id, build_ack_message(parsed))
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to send save acknowledgement to %s: %s", slack_user_id, exc)
        return person

    async def process_event(self, payload: Dict[str, Any]) -> Optional[Person]:
        """Handle a Slack Events API envelope; non-DM traffic is ignored."""

        if payload.get("type") != "event_callback":
            return None
        event = payload.get("event") or {}
        user = (event.get("user") or "").strip()
        if event.get("type") != "message" or event.get("channel_type") != "im" or not user:
            return None
        if (event.get("subtype") or "").strip() or (event.get("bot_id") or "").strip():
            return None
        return await self.handle_direct_message(payload.get("team_id") or "", user, event.get("text") or "")


__all__ = [
    "InboundService",
    "merge_profile_input",
    "build_help_message",
    "build_ack_message",
    "first_non_blank",
]
