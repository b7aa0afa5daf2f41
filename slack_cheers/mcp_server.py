"""MCP server exposing SlackCheers celebration tools."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from .config import load_settings
from .parser import parse_profile_input
from .service import SlackCheersService

mcp = FastMCP("slack-cheers")

_service: Optional[SlackCheersService] = None


def get_service() -> SlackCheersService:
    global _service
    if _service is None:
        _service = SlackCheersService(load_settings())
    return _service


def use_service(service: Optional[SlackCheersService]) -> None:
    """Replace the service the tools run against."""

    global _service
    _service = service


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, date):
        return value.isoformat()
    return value


@mcp.tool()
async def dispatch_workspace_now(workspace_id: str) -> dict:
    """Post today's birthday and anniversary messages for every channel in a workspace."""

    service = get_service()
    service.database.get_installation_by_workspace_id(workspace_id)
    outcomes = await service.celebrations.dispatch_workspace_now(workspace_id)
    return {
        "workspace_id": workspace_id,
        "results": [_jsonable({**asdict(outcome), "ok": outcome.ok}) for outcome in outcomes],
    }


@mcp.tool()
async def upcoming_celebrations(workspace_id: str, days: int = 30, type: str = "all") -> dict:
    """List birthdays and work anniversaries coming up in the next `days` days."""

    items = get_service().dashboard.overview(workspace_id, days, type)
    return {"workspace_id": workspace_id, "items": [_jsonable(asdict(item)) for item in items]}


@mcp.tool()
async def parse_profile_text(text: str) -> Dict[str, Any]:
    """Show how a direct message would be read as a birthday and/or hire date."""

    parsed = parse_profile_input(text)
    return _jsonable(asdict(parsed))


__all__ = [
    "mcp",
    "get_service",
    "use_service",
    "dispatch_workspace_now",
    "upcoming_celebrations",
    "parse_profile_text",
]
