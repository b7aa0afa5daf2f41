"""HTTP client for interacting with Slack Web API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .errors import SlackApiError
from .models import SlackUserProfile

SLACK_API_BASE = "https://slack.com/api"
MAX_USER_PAGES = 10


def _is_human_member(member: Dict[str, Any]) -> bool:
    if not member.get("id") or member.get("deleted"):
        return False
    if member.get("is_bot") or member.get("is_app_user"):
        return False
    if member.get("id") == "USLACKBOT":
        return False
    return (member.get("name") or "").strip().lower() != "slackbot"


def member_profile(member: Dict[str, Any]) -> SlackUserProfile:
    profile = member.get("profile", {})
    handle = (member.get("name") or "").strip()
    display_name = (
        (profile.get("display_name") or "").strip()
        or (profile.get("real_name") or "").strip()
        or handle
    )
    return SlackUserProfile(
        slack_user_id=(member.get("id") or "").strip(),
        slack_handle=handle,
        display_name=display_name,
        avatar_url=(profile.get("image_192") or "").strip(),
    )


class SlackClient:
    """Async wrapper around the Slack Web API endpoints SlackCheers uses.

    Every call takes the bot token explicitly because each workspace has its
    own installation.
    """

    def __init__(self, timeout: float = 12.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._client = httpx.AsyncClient(
            base_url=SLACK_API_BASE,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(
        self,
        method: str,
        token: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"}
        if payload is not None:
            response = await self._client.post(
                method,
                json=payload,
                headers={**headers, "Content-Type": "application/json; charset=utf-8"},
            )
        else:
            response = await self._client.get(method, params=params, headers=headers)
        response.raise_for_status()
        data = response.json()
        if not data.get("ok"):
            raise SlackApiError(
                method,
                data.get("error") or "unknown_error",
                data.get("needed", ""),
                data.get("provided", ""),
            )
        return data

    async def post_message(
        self,
        token: str,
        channel: str,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        return await self._call("chat.postMessage", token, payload=payload)

    async def open_dm(self, token: str, user_id: str) -> str:
        data = await self._call("conversations.open", token, payload={"users": user_id})
        channel_id = (data.get("channel", {}).get("id") or "").strip()
        if not channel_id:
            raise SlackApiError("conversations.open", "missing dm channel id")
        return channel_id

    async def fetch_users(self, token: str) -> List[SlackUserProfile]:
        """Return human workspace members, following `users.list` pagination."""

        members: List[SlackUserProfile] = []
        cursor: Optional[str] = None
        for _ in range(MAX_USER_PAGES):
            params: Dict[str, Any] = {"limit": 200}
            if cursor:
                params["cursor"] = cursor
            data = await self._call("users.list", token, params=params)
            members.extend(
                member_profile(member) for member in data.get("members", []) if _is_human_member(member)
            )
            cursor = (data.get("response_metadata", {}).get("next_cursor") or "").strip()
            if not cursor:
                break
        return members

    async def fetch_user_profile(self, token: str, user_id: str) -> SlackUserProfile:
        data = await self._call("users.info", token, params={"user": user_id})
        profile = member_profile(data.get("user", {}))
        profile.slack_user_id = profile.slack_user_id or user_id
        return profile


__all__ = ["SlackClient", "SlackApiError", "member_profile"]
