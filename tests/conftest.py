from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import pytest

from slack_cheers.db import Database
from slack_cheers.models import SlackUserProfile, Workspace, WorkspaceChannel


@dataclass
class FakeMessenger:
    posts: List[Tuple[str, str, str, List[str]]] = field(default_factory=list)
    dms: List[Tuple[str, str, str]] = field(default_factory=list)
    fail_channels: Set[str] = field(default_factory=set)
    fail_users: Set[str] = field(default_factory=set)

    async def post_message(self, workspace_id: str, channel_id: str, text: str, avatar_urls) -> None:
        if channel_id in self.fail_channels:
            raise RuntimeError(f"post failed for {channel_id}")
        self.posts.append((workspace_id, channel_id, text, list(avatar_urls)))

    async def send_direct_message(self, workspace_id: str, user_id: str, text: str) -> None:
        if user_id in self.fail_users:
            raise RuntimeError(f"dm failed for {user_id}")
        self.dms.append((workspace_id, user_id, text))


@dataclass
class FakeDirectory:
    members: List[SlackUserProfile] = field(default_factory=list)
    profiles: Dict[str, SlackUserProfile] = field(default_factory=dict)
    fail_profiles: bool = False
    tokens: List[str] = field(default_factory=list)
    closed: bool = False

    async def fetch_users(self, token: str) -> List[SlackUserProfile]:
        self.tokens.append(token)
        return list(self.members)

    async def fetch_user_profile(self, token: str, user_id: str) -> SlackUserProfile:
        self.tokens.append(token)
        if self.fail_profiles:
            raise RuntimeError("users.info unavailable")
        return self.profiles.get(user_id, SlackUserProfile(slack_user_id=user_id))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(tmp_path / "cheers.db")


@pytest.fixture
def messenger() -> FakeMessenger:
    return FakeMessenger()


def make_channel(
    database: Database,
    team_id: str = "T1",
    channel_id: str = "C1",
    timezone_name: str = "UTC",
    posting_time: str = "09:00",
    bot_token: Optional[str] = "xoxb-test",
) -> Tuple[Workspace, WorkspaceChannel]:
    workspace = database.ensure_workspace(team_id, f"Team {team_id}", timezone_name)
    if bot_token:
        database.save_slack_installation(team_id, f"Team {team_id}", bot_token, "UBOT")
    channel = database.create_default_channel(
        workspace.id, channel_id, f"celebrations-{channel_id.lower()}", timezone_name, posting_time
    )
    return workspace, channel


def dispatch_dates(database: Database, channel_id: str) -> List[str]:
    with database.connect() as conn:
        rows = conn.execute(
            "SELECT dispatch_date FROM celebration_dispatch_log WHERE workspace_channel_id = ? ORDER BY dispatch_date",
            (channel_id,),
        ).fetchall()
    return [row["dispatch_date"] for row in rows]
