"""SQLite persistence layer for SlackCheers."""

from __future__ import annotations

import logging
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Set
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import NotFoundError
from .models import (
    AnniversaryPerson,
    Person,
    SlackInstallation,
    Workspace,
    WorkspaceChannel,
)

Connection = sqlite3.Connection
Row = sqlite3.Row

LOGGER = logging.getLogger(__name__)

POSTING_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")

_CHANNEL_COLUMNS = """
    id, workspace_id, slack_channel_id, slack_channel_name, posting_time, timezone,
    birthdays_enabled, anniversaries_enabled, birthday_template, anniversary_template,
    COALESCE(branding_emoji, '') AS branding_emoji
"""

_PERSON_COLUMNS = """
    id, workspace_id, slack_user_id, slack_handle, display_name,
    COALESCE(avatar_url, '') AS avatar_url, birthday_day, birthday_month, birthday_year,
    hire_date, public_celebration_opt_in, reminders_mode
"""


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_channel(row: Row) -> WorkspaceChannel:
    return WorkspaceChannel(
        id=row["id"],
        workspace_id=row["workspace_id"],
        slack_channel_id=row["slack_channel_id"],
        slack_channel_name=row["slack_channel_name"],
        posting_time=row["posting_time"],
        timezone=row["timezone"],
        birthdays_enabled=bool(row["birthdays_enabled"]),
        anniversaries_enabled=bool(row["anniversaries_enabled"]),
        birthday_template=row["birthday_template"],
        anniversary_template=row["anniversary_template"],
        branding_emoji=row["branding_emoji"],
    )


def _row_to_person(row: Row) -> Person:
    hire_date = row["hire_date"]
    return Person(
        id=row["id"],
        workspace_id=row["workspace_id"],
        slack_user_id=row["slack_user_id"],
        slack_handle=row["slack_handle"],
        display_name=row["display_name"],
        avatar_url=row["avatar_url"],
        birthday_day=row["birthday_day"],
        birthday_month=row["birthday_month"],
        birthday_year=row["birthday_year"],
        hire_date=date.fromisoformat(hire_date) if hire_date else None,
        public_celebration_opt_in=bool(row["public_celebration_opt_in"]),
        reminders_mode=row["reminders_mode"],
    )


def parse_posting_time(value: str) -> tuple[int, int]:
    match = POSTING_TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"invalid posting time: {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"invalid posting time: {value!r}")
    return hour, minute


class Database:
    """Lightweight wrapper around SQLite operations."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS workspaces (
                    id TEXT PRIMARY KEY,
                    slack_team_id TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    slack_bot_token TEXT,
                    slack_bot_user_id TEXT,
                    installed_by_user_id TEXT,
                    installed_scopes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS workspace_channels (
                    id TEXT PRIMARY KEY,
                    workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
                    slack_channel_id TEXT NOT NULL,
                    slack_channel_name TEXT NOT NULL,
                    posting_time TEXT NOT NULL DEFAULT '09:00',
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    birthdays_enabled INTEGER NOT NULL DEFAULT 1,
                    anniversaries_enabled INTEGER NOT NULL DEFAULT 1,
                    birthday_template TEXT NOT NULL DEFAULT '🎂 Happy birthday, {users}!',
                    anniversary_template TEXT NOT NULL
                        DEFAULT '🎉 Happy {years}-year anniversary, {users}!',
                    branding_emoji TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(workspace_id, slack_channel_id)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS people (
                    id TEXT PRIMARY KEY,
                    workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
                    slack_user_id TEXT NOT NULL,
                    slack_handle TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    avatar_url TEXT,
                    birthday_day INTEGER CHECK (birthday_day BETWEEN 1 AND 31),
                    birthday_month INTEGER CHECK (birthday_month BETWEEN 1 AND 12),
                    birthday_year INTEGER CHECK (birthday_year BETWEEN 1900 AND 3000),
                    hire_date TEXT,
                    public_celebration_opt_in INTEGER NOT NULL DEFAULT 1,
                    reminders_mode TEXT NOT NULL DEFAULT 'same_day'
                        CHECK (reminders_mode IN ('none', 'same_day', 'day_before')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(workspace_id, slack_user_id),
                    CHECK ((birthday_day IS NULL) = (birthday_month IS NULL))
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS celebration_dispatch_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workspace_channel_id TEXT NOT NULL
                        REFERENCES workspace_channels(id) ON DELETE CASCADE,
                    dispatch_date TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(workspace_channel_id, dispatch_date)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS onboarding_dm_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
                    slack_user_id TEXT NOT NULL,
                    sent_at TEXT NOT NULL,
                    UNIQUE(workspace_id, slack_user_id)
                )
                """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_people_birthday "
                "ON people(workspace_id, birthday_month, birthday_day)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_people_hire_date ON people(workspace_id, hire_date)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_workspace_channels_workspace "
                "ON workspace_channels(workspace_id)"
            )
            conn.commit()

    # region Workspaces
    def ensure_workspace(self, slack_team_id: str, name: str, timezone_name: str) -> Workspace:
        now = _utcnow()
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO workspaces (id, slack_team_id, name, timezone, created_at, updated_at)
                VALUES (:id, :slack_team_id, :name, :timezone, :now, :now)
                ON CONFLICT(slack_team_id) DO UPDATE SET
                    name=excluded.name,
                    timezone=excluded.timezone,
                    updated_at=excluded.updated_at
                """,
                {
                    "id": str(uuid.uuid4()),
                    "slack_team_id": slack_team_id,
                    "name": name,
                    "timezone": timezone_name,
                    "now": now,
                },
            )
            conn.commit()
            row = conn.execute(
                "SELECT id, slack_team_id, name, timezone FROM workspaces WHERE slack_team_id = ?",
                (slack_team_id,),
            ).fetchone()
        return Workspace(
            id=row["id"],
            slack_team_id=row["slack_team_id"],
            name=row["name"],
            timezone=row["timezone"],
        )

    def save_slack_installation(
        self,
        team_id: str,
        team_name: str,
        bot_token: str,
        bot_user_id: str,
        installer_user_id: str = "",
        scope: str = "",
    ) -> SlackInstallation:
        now = _utcnow()
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO workspaces (
                    id, slack_team_id, name, timezone, slack_bot_token, slack_bot_user_id,
                    installed_by_user_id, installed_scopes, created_at, updated_at
                )
                VALUES (:id, :team_id, :team_name, 'UTC', :bot_token, :bot_user_id,
                        :installer_user_id, :scope, :now, :now)
                ON CONFLICT(slack_team_id) DO UPDATE SET
                    name=excluded.name,
                    slack_bot_token=excluded.slack_bot_token,
                    slack_bot_user_id=excluded.slack_bot_user_id,
                    installed_by_user_id=excluded.installed_by_user_id,
                    installed_scopes=excluded.installed_scopes,
                    updated_at=excluded.updated_at
                """,
                {
                    "id": str(uuid.uuid4()),
                    "team_id": team_id,
                    "team_name": team_name,
                    "bot_token": bot_token,
                    "bot_user_id": bot_user_id,
                    "installer_user_id": installer_user_id,
                    "scope": scope,
                    "now": now,
                },
            )
            conn.commit()
        return self.get_installation_by_team_id(team_id)

    def _get_installation(self, column: str, value: str) -> SlackInstallation:
        with self.connect() as conn:
            row = conn.execute(
                f"""
                SELECT id, slack_team_id,
                       COALESCE(slack_bot_token, '') AS bot_token,
                       COALESCE(slack_bot_user_id, '') AS bot_user_id
                FROM workspaces
                WHERE {column} = ?
                """,
                (value,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"workspace not found: {value}")
        return SlackInstallation(
            workspace_id=row["id"],
            slack_team_id=row["slack_team_id"],
            bot_token=row["bot_token"],
            bot_user_id=row["bot_user_id"],
        )

    def get_installation_by_workspace_id(self, workspace_id: str) -> SlackInstallation:
        return self._get_installation("id", workspace_id)

    def get_installation_by_team_id(self, slack_team_id: str) -> SlackInstallation:
        return self._get_installation("slack_team_id", slack_team_id)

    # endregion

    # region Channels
    def create_default_channel(
        self,
        workspace_id: str,
        slack_channel_id: str,
        slack_channel_name: str,
        timezone_name: str,
        posting_time: str,
    ) -> WorkspaceChannel:
        now = _utcnow()
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO workspace_channels (
                    id, workspace_id, slack_channel_id, slack_channel_name,
                    posting_time, timezone, created_at, updated_at
                )
                VALUES (:id, :workspace_id, :slack_channel_id, :slack_channel_name,
                        :posting_time, :timezone, :now, :now)
                ON CONFLICT(workspace_id, slack_channel_id) DO UPDATE SET
                    slack_channel_name=excluded.slack_channel_name,
                    posting_time=excluded.posting_time,
                    timezone=excluded.timezone,
                    updated_at=excluded.updated_at
                """,
                {
                    "id": str(uuid.uuid4()),
                    "workspace_id": workspace_id,
                    "slack_channel_id": slack_channel_id,
                    "slack_channel_name": slack_channel_name,
                    "posting_time": posting_time,
                    "timezone": timezone_name,
                    "now": now,
                },
            )
            conn.commit()
        return self.get_channel(workspace_id, slack_channel_id)

    def get_channel(self, workspace_id: str, channel_ref: str) -> WorkspaceChannel:
        """Look a channel up by internal id or Slack channel id."""

        with self.connect() as conn:
            row = conn.execute(
                f"""
                SELECT {_CHANNEL_COLUMNS}
                FROM workspace_channels
                WHERE workspace_id = ? AND (id = ? OR slack_channel_id = ?)
                """,
                (workspace_id, channel_ref, channel_ref),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"channel not found: {channel_ref}")
        return _row_to_channel(row)

    def list_channels_by_workspace(self, workspace_id: str) -> List[WorkspaceChannel]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_CHANNEL_COLUMNS}
                FROM workspace_channels
                WHERE workspace_id = ?
                ORDER BY slack_channel_name
                """,
                (workspace_id,),
            )
            return [_row_to_channel(row) for row in cursor.fetchall()]

    def update_channel_settings(
        self,
        workspace_id: str,
        channel_ref: str,
        posting_time: str,
        timezone_name: str,
        birthdays_enabled: bool,
        anniversaries_enabled: bool,
    ) -> WorkspaceChannel:
        channel = self.get_channel(workspace_id, channel_ref)
        with self.connect() as conn:
            conn.execute(
                """
                UPDATE workspace_channels
                SET posting_time = ?, timezone = ?, birthdays_enabled = ?,
                    anniversaries_enabled = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    posting_time,
                    timezone_name,
                    int(birthdays_enabled),
                    int(anniversaries_enabled),
                    _utcnow(),
                    channel.id,
                ),
            )
            conn.commit()
        return self.get_channel(workspace_id, channel.id)

    def update_channel_templates(
        self,
        workspace_id: str,
        channel_ref: str,
        birthday_template: str,
        anniversary_template: str,
        branding_emoji: str,
    ) -> WorkspaceChannel:
        channel = self.get_channel(workspace_id, channel_ref)
        with self.connect() as conn:
            conn.execute(
                """
                UPDATE workspace_channels
                SET birthday_template = ?, anniversary_template = ?, branding_emoji = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (birthday_template, anniversary_template, branding_emoji, _utcnow(), channel.id),
            )
            conn.commit()
        return self.get_channel(workspace_id, channel.id)

    def list_due_channels(self, now: datetime) -> List[WorkspaceChannel]:
        """Return channels whose local posting minute is ``now`` and that have
        not been dispatched for their local calendar date."""

        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        # Local dates lag or lead UTC by at most one day.
        earliest = now.astimezone(timezone.utc).date() - timedelta(days=1)

        with self.connect() as conn:
            rows = conn.execute(
                f"SELECT {_CHANNEL_COLUMNS} FROM workspace_channels ORDER BY workspace_id, id"
            ).fetchall()
            dispatched = {
                (row["workspace_channel_id"], row["dispatch_date"])
                for row in conn.execute(
                    "SELECT workspace_channel_id, dispatch_date FROM celebration_dispatch_log "
                    "WHERE dispatch_date >= ?",
                    (earliest.isoformat(),),
                ).fetchall()
            }

        due: List[WorkspaceChannel] = []
        for row in rows:
            channel = _row_to_channel(row)
            try:
                local_now = now.astimezone(ZoneInfo(channel.timezone))
                hour, minute = parse_posting_time(channel.posting_time)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                LOGGER.error(
                    "Skipping channel %s with invalid schedule (%s %s): %s",
                    channel.id,
                    channel.posting_time,
                    channel.timezone,
                    exc,
                )
                continue
            if (local_now.hour, local_now.minute) != (hour, minute):
                continue
            if (channel.id, local_now.date().isoformat()) in dispatched:
                continue
            due.append(channel)
        return due

    def mark_channel_dispatched(self, channel_id: str, dispatch_date: date) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO celebration_dispatch_log (workspace_channel_id, dispatch_date, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(workspace_channel_id, dispatch_date) DO NOTHING
                """,
                (channel_id, dispatch_date.isoformat(), _utcnow()),
            )
            conn.commit()

    def has_dispatched(self, channel_id: str, dispatch_date: date) -> bool:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM celebration_dispatch_log "
                "WHERE workspace_channel_id = ? AND dispatch_date = ?",
                (channel_id, dispatch_date.isoformat()),
            ).fetchone()
        return row is not None

    # endregion

    # region People
    def list_people_by_workspace(self, workspace_id: str) -> List[Person]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_PERSON_COLUMNS} FROM people WHERE workspace_id = ? ORDER BY display_name",
                (workspace_id,),
            )
            return [_row_to_person(row) for row in cursor.fetchall()]

    def get_person(self, workspace_id: str, slack_user_id: str) -> Person:
        with self.connect() as conn:
            row = conn.execute(
                f"SELECT {_PERSON_COLUMNS} FROM people WHERE workspace_id = ? AND slack_user_id = ?",
                (workspace_id, slack_user_id),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"person not found: {slack_user_id}")
        return _row_to_person(row)

    def upsert_person(self, person: Person) -> Person:
        now = _utcnow()
        record: Dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "workspace_id": person.workspace_id,
            "slack_user_id": person.slack_user_id,
            "slack_handle": person.slack_handle,
            "display_name": person.display_name,
            "avatar_url": person.avatar_url,
            "birthday_day": person.birthday_day,
            "birthday_month": person.birthday_month,
            "birthday_year": person.birthday_year,
            "hire_date": person.hire_date.isoformat() if person.hire_date else None,
            "public_celebration_opt_in": int(person.public_celebration_opt_in),
            "reminders_mode": person.reminders_mode,
            "now": now,
        }
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO people (
                    id, workspace_id, slack_user_id, slack_handle, display_name, avatar_url,
                    birthday_day, birthday_month, birthday_year, hire_date,
                    public_celebration_opt_in, reminders_mode, created_at, updated_at
                )
                VALUES (
                    :id, :workspace_id, :slack_user_id, :slack_handle, :display_name, :avatar_url,
                    :birthday_day, :birthday_month, :birthday_year, :hire_date,
                    :public_celebration_opt_in, :reminders_mode, :now, :now
                )
                ON CONFLICT(workspace_id, slack_user_id) DO UPDATE SET
                    slack_handle=excluded.slack_handle,
                    display_name=excluded.display_name,
                    avatar_url=excluded.avatar_url,
                    birthday_day=excluded.birthday_day,
                    birthday_month=excluded.birthday_month,
                    birthday_year=excluded.birthday_year,
                    hire_date=excluded.hire_date,
                    public_celebration_opt_in=excluded.public_celebration_opt_in,
                    reminders_mode=excluded.reminders_mode,
                    updated_at=excluded.updated_at
                """,
                record,
            )
            conn.commit()
        return self.get_person(person.workspace_id, person.slack_user_id)

    def find_birthdays(self, workspace_id: str, month: int, day: int) -> List[Person]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_PERSON_COLUMNS}
                FROM people
                WHERE workspace_id = ?
                  AND public_celebration_opt_in = 1
                  AND birthday_month = ?
                  AND birthday_day = ?
                ORDER BY display_name
                """,
                (workspace_id, month, day),
            )
            return [_row_to_person(row) for row in cursor.fetchall()]

    def find_anniversaries(
        self, workspace_id: str, month: int, day: int, year: int
    ) -> List[AnniversaryPerson]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_PERSON_COLUMNS},
                       (? - CAST(strftime('%Y', hire_date) AS INTEGER)) AS years
                FROM people
                WHERE workspace_id = ?
                  AND public_celebration_opt_in = 1
                  AND hire_date IS NOT NULL
                  AND CAST(strftime('%m', hire_date) AS INTEGER) = ?
                  AND CAST(strftime('%d', hire_date) AS INTEGER) = ?
                ORDER BY display_name
                """,
                (year, workspace_id, month, day),
            )
            return [
                AnniversaryPerson(person=_row_to_person(row), years=row["years"])
                for row in cursor.fetchall()
            ]

    # endregion

    # region Onboarding
    def list_onboarded_user_ids(self, workspace_id: str) -> Set[str]:
        with self.connect() as conn:
            cursor = conn.execute(
                "SELECT slack_user_id FROM onboarding_dm_log WHERE workspace_id = ?",
                (workspace_id,),
            )
            return {row["slack_user_id"] for row in cursor.fetchall()}

    def mark_onboarded(self, workspace_id: str, slack_user_id: str) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO onboarding_dm_log (workspace_id, slack_user_id, sent_at)
                VALUES (?, ?, ?)
                ON CONFLICT(workspace_id, slack_user_id) DO NOTHING
                """,
                (workspace_id, slack_user_id, _utcnow()),
            )
            conn.commit()

    # endregion


__all__ = ["Database", "parse_posting_time"]
