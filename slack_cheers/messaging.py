"""Outbound messaging port and its Slack-backed and no-op implementations."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .db import Database
from .errors import NotFoundError
from .slack_client import SlackClient

LOGGER = logging.getLogger(__name__)

MAX_AVATAR_BLOCKS = 8


class MessagingPort(Protocol):
    async def post_message(
        self, workspace_id: str, channel_id: str, text: str, avatar_urls: Sequence[str]
    ) -> None: ...

    async def send_direct_message(self, workspace_id: str, user_id: str, text: str) -> None: ...


def build_avatar_blocks(text: str, avatar_urls: Sequence[str]) -> Optional[List[Dict[str, Any]]]:
    """Section block with the text followed by up to eight avatar images."""

    images: List[Dict[str, Any]] = []
    for url in avatar_urls[:MAX_AVATAR_BLOCKS]:
        url = url.strip()
        if not url:
            continue
        images.append({"type": "image", "image_url": url, "alt_text": "celebrant_avatar"})
    if not images:
        return None
    return [{"type": "section", "text": {"type": "mrkdwn", "text": text}}, *images]


class SlackMessenger:
    """Posts through the Slack Web API with the workspace's installation token."""

    def __init__(self, database: Database, client: SlackClient, default_token: Optional[str] = None) -> None:
        self.database = database
        self.client = client
        self.default_token = (default_token or "").strip()

    def resolve_token(self, workspace_id: str) -> str:
        if workspace_id:
            try:
                installation = self.database.get_installation_by_workspace_id(workspace_id)
            except NotFoundError:
                installation = None
            if installation and installation.bot_token.strip():
                return installation.bot_token.strip()
        if self.default_token:
            return self.default_token
        raise RuntimeError(f"no Slack bot token configured for workspace {workspace_id!r}")

    async def post_message(
        self, workspace_id: str, channel_id: str, text: str, avatar_urls: Sequence[str]
    ) -> None:
        token = self.resolve_token(workspace_id)
        await self.client.post_message(token, channel_id, text, build_avatar_blocks(text, avatar_urls))

    async def send_direct_message(self, workspace_id: str, user_id: str, text: str) -> None:
        token = self.resolve_token(workspace_id)
        dm_channel = await self.client.open_dm(token, user_id)
        await self.client.post_message(token, dm_channel, text)


class NoopMessenger:
    """Logs outbound messages instead of sending them."""

    async def post_message(
        self, workspace_id: str, channel_id: str, text: str, avatar_urls: Sequence[str]
    ) -> None:
        LOGGER.info(
            "noop slack post workspace=%s channel=%s avatars=%s text=%s",
            workspace_id,
            channel_id,
            len(avatar_urls),
            text,
        )

    async def send_direct_message(self, workspace_id: str, user_id: str, text: str) -> None:
        LOGGER.info("noop slack dm workspace=%s user=%s text=%s", workspace_id, user_id, text)


__all__ = [
    "MAX_AVATAR_BLOCKS",
    "MessagingPort",
    "SlackMessenger",
    "NoopMessenger",
    "build_avatar_blocks",
]
