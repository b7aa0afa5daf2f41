"""Dataclasses representing SlackCheers domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

REMINDER_MODES = ("none", "same_day", "day_before")
DEFAULT_REMINDER_MODE = "same_day"
DEFAULT_BIRTHDAY_TEMPLATE = "🎂 Happy birthday, {users}!"
DEFAULT_ANNIVERSARY_TEMPLATE = "🎉 Happy {years}-year anniversary, {users}!"


@dataclass(slots=True)
class Workspace:
    id: str
    slack_team_id: str
    name: str
    timezone: str = "UTC"


@dataclass(slots=True)
class SlackInstallation:
    workspace_id: str
    slack_team_id: str
    bot_token: str = ""
    bot_user_id: str = ""


@dataclass(slots=True)
class WorkspaceChannel:
    id: str
    workspace_id: str
    slack_channel_id: str
    slack_channel_name: str
    posting_time: str = "09:00"
    timezone: str = "UTC"
    birthdays_enabled: bool = True
    anniversaries_enabled: bool = True
    birthday_template: str = DEFAULT_BIRTHDAY_TEMPLATE
    anniversary_template: str = DEFAULT_ANNIVERSARY_TEMPLATE
    branding_emoji: str = ""


@dataclass(slots=True)
class Person:
    workspace_id: str
    slack_user_id: str
    slack_handle: str = ""
    display_name: str = ""
    avatar_url: str = ""
    birthday_day: Optional[int] = None
    birthday_month: Optional[int] = None
    birthday_year: Optional[int] = None
    hire_date: Optional[date] = None
    public_celebration_opt_in: bool = True
    reminders_mode: str = DEFAULT_REMINDER_MODE
    id: Optional[str] = None


@dataclass(slots=True)
class AnniversaryPerson:
    person: Person
    years: int


@dataclass(slots=True)
class SlackUserProfile:
    """Directory fields for a Slack member, blank when unknown."""

    slack_user_id: str = ""
    slack_handle: str = ""
    display_name: str = ""
    avatar_url: str = ""


@dataclass(slots=True)
class UpcomingCelebration:
    date: date
    type: str
    user_id: str
    slack_user: str
    name: str
    years: Optional[int] = None


@dataclass(slots=True)
class DispatchOutcome:
    """Result of one channel's dispatch pass."""

    channel_id: str
    slack_channel_id: str
    dispatch_date: Optional[date] = None
    birthdays: int = 0
    anniversaries: int = 0
    birthday_posted: bool = False
    anniversary_posted: bool = False
    already_dispatched: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class OnboardingDispatchResult:
    total_members: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    failed_users: List[str] = field(default_factory=list)
    failed_details: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "REMINDER_MODES",
    "DEFAULT_REMINDER_MODE",
    "DEFAULT_BIRTHDAY_TEMPLATE",
    "DEFAULT_ANNIVERSARY_TEMPLATE",
    "Workspace",
    "SlackInstallation",
    "WorkspaceChannel",
    "Person",
    "AnniversaryPerson",
    "SlackUserProfile",
    "UpcomingCelebration",
    "DispatchOutcome",
    "OnboardingDispatchResult",
]
