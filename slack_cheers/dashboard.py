"""Read and write operations backing the admin dashboard."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from .celebration import load_timezone
from .dates import next_occurrence, years_since
from .db import Database, parse_posting_time
from .errors import ConfigurationError
from .models import (
    DEFAULT_REMINDER_MODE,
    REMINDER_MODES,
    Person,
    SlackUserProfile,
    UpcomingCelebration,
    Workspace,
    WorkspaceChannel,
)
from .slack_client import SlackClient

CELEBRATION_TYPES = ("all", "birthdays", "anniversaries")
DEFAULT_OVERVIEW_DAYS = 30


def _sort_key(person: Person) -> tuple[str, str]:
    name = person.display_name.strip() or person.slack_handle.strip() or person.slack_user_id
    return name.strip().lower(), person.slack_user_id.lower()


def merge_people_with_members(
    existing: List[Person], members: List[SlackUserProfile], workspace_id: str
) -> List[Person]:
    """Combine stored people with the Slack directory.

    Stored values always win; the directory only fills blank display fields.
    Members with no stored record are listed with default settings.
    """

    by_user: Dict[str, Person] = {person.slack_user_id: person for person in existing}
    merged: List[Person] = []
    for member in members:
        person = by_user.pop(member.slack_user_id, None)
        if person is None:
            merged.append(
                Person(
                    workspace_id=workspace_id,
                    slack_user_id=member.slack_user_id,
                    slack_handle=member.slack_handle,
                    display_name=member.display_name,
                    avatar_url=member.avatar_url,
                )
            )
            continue
        merged.append(
            replace(
                person,
                workspace_id=person.workspace_id or workspace_id,
                slack_handle=person.slack_handle if person.slack_handle.strip() else member.slack_handle,
                display_name=person.display_name if person.display_name.strip() else member.display_name,
                avatar_url=person.avatar_url if person.avatar_url.strip() else member.avatar_url,
                reminders_mode=person.reminders_mode.strip() or DEFAULT_REMINDER_MODE,
            )
        )
    merged.extend(by_user.values())
    merged.sort(key=_sort_key)
    return merged


def validate_posting_time(value: str) -> str:
    try:
        parse_posting_time(value)
    except ValueError as exc:
        raise ConfigurationError("posting time must use HH:MM format") from exc
    return value


class DashboardService:
    def __init__(
        self,
        database: Database,
        client: Optional[SlackClient] = None,
        default_token: Optional[str] = None,
    ) -> None:
        self.database = database
        self.client = client
        self.default_token = (default_token or "").strip()

    # region Overview
    def overview(
        self,
        workspace_id: str,
        days: int = DEFAULT_OVERVIEW_DAYS,
        celebration_type: str = "all",
        today: Optional[date] = None,
    ) -> List[UpcomingCelebration]:
        """Upcoming celebrations in the next ``days`` days, soonest first."""

        celebration_type = (celebration_type or "all").strip().lower()
        if celebration_type not in CELEBRATION_TYPES:
            raise ValueError("type must be one of all|birthdays|anniversaries")
        if days <= 0:
            days = DEFAULT_OVERVIEW_DAYS
        today = today or datetime.now(timezone.utc).date()
        end = today + timedelta(days=days)

        items: List[UpcomingCelebration] = []
        for person in self.database.list_people_by_workspace(workspace_id):
            if celebration_type in ("all", "birthdays") and person.birthday_month and person.birthday_day:
                when = next_occurrence(today, person.birthday_month, person.birthday_day)
                if when <= end:
                    items.append(
                        UpcomingCelebration(
                            date=when,
                            type="birthday",
                            user_id=person.slack_user_id,
                            slack_user=person.slack_handle,
                            name=person.display_name,
                        )
                    )
            if celebration_type in ("all", "anniversaries") and person.hire_date is not None:
                when = next_occurrence(today, person.hire_date.month, person.hire_date.day)
                if when <= end:
                    items.append(
                        UpcomingCelebration(
                            date=when,
                            type="anniversary",
                            user_id=person.slack_user_id,
                            slack_user=person.slack_handle,
                            name=person.display_name,
                            years=years_since(when, person.hire_date),
                        )
                    )
        items.sort(key=lambda item: (item.date, item.name))
        return items

    # endregion

    # region People
    async def list_people(self, workspace_id: str) -> List[Person]:
        existing = self.database.list_people_by_workspace(workspace_id)
        installation = self.database.get_installation_by_workspace_id(workspace_id)
        token = installation.bot_token.strip() or self.default_token
        if self.client is None or not token:
            return existing
        members = await self.client.fetch_users(token)
        return merge_people_with_members(existing, members, workspace_id)

    def upsert_person(
        self,
        workspace_id: str,
        slack_user_id: str,
        *,
        slack_handle: str,
        display_name: str,
        avatar_url: str = "",
        birthday_day: Optional[int] = None,
        birthday_month: Optional[int] = None,
        birthday_year: Optional[int] = None,
        hire_date: Optional[date] = None,
        public_celebration_opt_in: bool = True,
        reminders_mode: str = "",
    ) -> Person:
        self.database.get_installation_by_workspace_id(workspace_id)
        if not slack_handle.strip() or not display_name.strip():
            raise ValueError("slack_handle and display_name are required")
        if (birthday_day is None) != (birthday_month is None):
            raise ValueError("birthday_day and birthday_month must be provided together")
        if birthday_day is not None and not 1 <= birthday_day <= 31:
            raise ValueError("birthday_day must be between 1 and 31")
        if birthday_month is not None and not 1 <= birthday_month <= 12:
            raise ValueError("birthday_month must be between 1 and 12")
        if birthday_day is not None and birthday_month is not None:
            try:
                # 2000 is a leap year, so Feb 29 passes.
                date(2000, birthday_month, birthday_day)
            except ValueError as exc:
                raise ValueError("birthday is not a calendar date") from exc
        if birthday_year is not None and not 1900 <= birthday_year <= 3000:
            raise ValueError("birthday_year must be between 1900 and 3000")
        mode = reminders_mode.strip() or DEFAULT_REMINDER_MODE
        if mode not in REMINDER_MODES:
            raise ValueError("reminders_mode must be none|same_day|day_before")

        return self.database.upsert_person(
            Person(
                workspace_id=workspace_id,
                slack_user_id=slack_user_id,
                slack_handle=slack_handle.strip(),
                display_name=display_name.strip(),
                avatar_url=avatar_url.strip(),
                birthday_day=birthday_day,
                birthday_month=birthday_month,
                birthday_year=birthday_year,
                hire_date=hire_date,
                public_celebration_opt_in=public_celebration_opt_in,
                reminders_mode=mode,
            )
        )

    # endregion

    # region Channels
    def list_channels(self, workspace_id: str) -> List[WorkspaceChannel]:
        return self.database.list_channels_by_workspace(workspace_id)

    def update_channel_settings(
        self,
        workspace_id: str,
        channel_ref: str,
        posting_time: str,
        timezone_name: str,
        birthdays_enabled: bool,
        anniversaries_enabled: bool,
    ) -> WorkspaceChannel:
        validate_posting_time(posting_time)
        load_timezone(timezone_name)
        return self.database.update_channel_settings(
            workspace_id,
            channel_ref,
            posting_time,
            timezone_name,
            birthdays_enabled,
            anniversaries_enabled,
        )

    def update_channel_templates(
        self,
        workspace_id: str,
        channel_ref: str,
        birthday_template: str,
        anniversary_template: str,
        branding_emoji: str = "",
    ) -> WorkspaceChannel:
        if not birthday_template.strip() or not anniversary_template.strip():
            raise ConfigurationError("templates cannot be empty")
        return self.database.update_channel_templates(
            workspace_id, channel_ref, birthday_template, anniversary_template, branding_emoji.strip()
        )

    def bootstrap_workspace(
        self,
        slack_team_id: str,
        name: str,
        timezone_name: str,
        channel_id: str,
        channel_name: str,
        posting_time: str,
    ) -> tuple[Workspace, WorkspaceChannel]:
        """Create (or refresh) a workspace and its default celebration channel."""

        load_timezone(timezone_name)
        validate_posting_time(posting_time)
        workspace = self.database.ensure_workspace(slack_team_id, name, timezone_name)
        channel = self.database.create_default_channel(
            workspace.id, channel_id, channel_name, timezone_name, posting_time
        )
        return workspace, channel

    # endregion


__all__ = [
    "CELEBRATION_TYPES",
    "DashboardService",
    "merge_people_with_members",
    "validate_posting_time",
]
