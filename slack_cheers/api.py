"""FastAPI application exposing the SlackCheers REST API and Slack webhook."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import Settings, load_settings
from .db import Database
from .errors import NotFoundError, SlackApiError
from .messaging import MessagingPort
from .service import SlackCheersService
from .slack_client import SlackClient

LOGGER = logging.getLogger(__name__)

SLACK_SIGNATURE_VERSION = "v0"
SLACK_SIGNATURE_MAX_AGE = 60 * 5


def verify_slack_signature(
    signing_secret: str,
    timestamp: str,
    body: bytes,
    signature: str,
    now: Optional[float] = None,
) -> bool:
    """Check a Slack ``X-Slack-Signature`` header against the raw request body."""

    try:
        sent_at = int(timestamp)
    except (TypeError, ValueError):
        return False
    now = time.time() if now is None else now
    if abs(now - sent_at) > SLACK_SIGNATURE_MAX_AGE:
        return False
    base = f"{SLACK_SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(signing_secret.encode(), base, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"{SLACK_SIGNATURE_VERSION}={digest}", signature or "")


class BootstrapWorkspaceRequest(BaseModel):
    slack_team_id: str
    name: str
    timezone: str
    channel_id: str
    channel_name: str
    posting_time: str
    bot_token: Optional[str] = None
    bot_user_id: Optional[str] = None


class UpsertPersonRequest(BaseModel):
    slack_handle: str
    display_name: str
    avatar_url: str = ""
    birthday_day: Optional[int] = None
    birthday_month: Optional[int] = None
    birthday_year: Optional[int] = None
    hire_date: Optional[str] = None
    public_celebration_opt_in: bool = True
    reminders_mode: str = ""


class ChannelSettingsRequest(BaseModel):
    posting_time: str
    timezone: str
    birthdays_enabled: bool
    anniversaries_enabled: bool


class ChannelTemplatesRequest(BaseModel):
    birthday_template: str
    anniversary_template: str
    branding_emoji: str = ""


def _parse_hire_date(value: Optional[str]) -> Optional[date]:
    if not value or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError("hire_date must use YYYY-MM-DD") from exc


def create_app(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
    slack_client: Optional[SlackClient] = None,
    messenger: Optional[MessagingPort] = None,
) -> FastAPI:
    settings = settings or load_settings()
    service = SlackCheersService(settings, database, slack_client, messenger)

    async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
        if not x_api_key or not hmac.compare_digest(x_api_key, settings.api_key):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")

    def get_service() -> SlackCheersService:
        return service

    app = FastAPI(title="SlackCheers API", version="1.0.0")
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def invalid_input_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(SlackApiError)
    async def slack_error_handler(request: Request, exc: SlackApiError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})

    @app.exception_handler(httpx.HTTPError)
    async def transport_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
        LOGGER.error("Slack request failed: %s", exc)
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": "slack request failed"})

    @app.on_event("startup")
    async def startup_event() -> None:  # pragma: no cover - io bound
        await service.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - io bound
        await service.close()

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # region Workspaces
    @app.post("/api/workspaces/bootstrap", status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
    async def bootstrap_workspace(
        body: BootstrapWorkspaceRequest, svc: SlackCheersService = Depends(get_service)
    ) -> Dict[str, Any]:
        workspace, channel = svc.dashboard.bootstrap_workspace(
            body.slack_team_id,
            body.name,
            body.timezone,
            body.channel_id,
            body.channel_name,
            body.posting_time,
        )
        if body.bot_token:
            svc.database.save_slack_installation(
                body.slack_team_id, body.name, body.bot_token, body.bot_user_id or ""
            )
        return {"workspace": asdict(workspace), "channel": asdict(channel)}

    @app.get("/api/workspaces/{workspace_id}/overview", dependencies=[Depends(verify_api_key)])
    async def overview(
        workspace_id: str,
        days: int = 30,
        celebration_type: str = Query("all", alias="type"),
        svc: SlackCheersService = Depends(get_service),
    ) -> Dict[str, Any]:
        items = svc.dashboard.overview(workspace_id, days, celebration_type)
        return {"items": [asdict(item) for item in items]}

    @app.post("/api/workspaces/{workspace_id}/dispatch", dependencies=[Depends(verify_api_key)])
    async def dispatch_now(workspace_id: str, svc: SlackCheersService = Depends(get_service)) -> Dict[str, Any]:
        svc.database.get_installation_by_workspace_id(workspace_id)
        outcomes = await svc.celebrations.dispatch_workspace_now(workspace_id)
        return {"results": [{**asdict(outcome), "ok": outcome.ok} for outcome in outcomes]}

    @app.post("/api/workspaces/{workspace_id}/onboarding-dms", dependencies=[Depends(verify_api_key)])
    async def onboarding_dms(
        workspace_id: str, force: bool = False, svc: SlackCheersService = Depends(get_service)
    ) -> Dict[str, Any]:
        result = await svc.onboarding.send_onboarding_dms(workspace_id, force=force)
        return asdict(result)

    # endregion

    # region People
    @app.get("/api/workspaces/{workspace_id}/people", dependencies=[Depends(verify_api_key)])
    async def list_people(workspace_id: str, svc: SlackCheersService = Depends(get_service)) -> Dict[str, Any]:
        people = await svc.dashboard.list_people(workspace_id)
        return {"people": [asdict(person) for person in people]}

    @app.put("/api/workspaces/{workspace_id}/people/{slack_user_id}", dependencies=[Depends(verify_api_key)])
    async def upsert_person(
        workspace_id: str,
        slack_user_id: str,
        body: UpsertPersonRequest,
        svc: SlackCheersService = Depends(get_service),
    ) -> Dict[str, Any]:
        person = svc.dashboard.upsert_person(
            workspace_id,
            slack_user_id,
            slack_handle=body.slack_handle,
            display_name=body.display_name,
            avatar_url=body.avatar_url,
            birthday_day=body.birthday_day,
            birthday_month=body.birthday_month,
            birthday_year=body.birthday_year,
            hire_date=_parse_hire_date(body.hire_date),
            public_celebration_opt_in=body.public_celebration_opt_in,
            reminders_mode=body.reminders_mode,
        )
        return asdict(person)

    # endregion

    # region Channels
    @app.get("/api/workspaces/{workspace_id}/channels", dependencies=[Depends(verify_api_key)])
    async def list_channels(workspace_id: str, svc: SlackCheersService = Depends(get_service)) -> Dict[str, Any]:
        return {"channels": [asdict(channel) for channel in svc.dashboard.list_channels(workspace_id)]}

    @app.put(
        "/api/workspaces/{workspace_id}/channels/{channel_id}/settings",
        dependencies=[Depends(verify_api_key)],
    )
    async def update_channel_settings(
        workspace_id: str,
        channel_id: str,
        body: ChannelSettingsRequest,
        svc: SlackCheersService = Depends(get_service),
    ) -> Dict[str, Any]:
        channel = svc.dashboard.update_channel_settings(
            workspace_id,
            channel_id,
            body.posting_time,
            body.timezone,
            body.birthdays_enabled,
            body.anniversaries_enabled,
        )
        return asdict(channel)

    @app.put(
        "/api/workspaces/{workspace_id}/channels/{channel_id}/templates",
        dependencies=[Depends(verify_api_key)],
    )
    async def update_channel_templates(
        workspace_id: str,
        channel_id: str,
        body: ChannelTemplatesRequest,
        svc: SlackCheersService = Depends(get_service),
    ) -> Dict[str, Any]:
        channel = svc.dashboard.update_channel_templates(
            workspace_id,
            channel_id,
            body.birthday_template,
            body.anniversary_template,
            body.branding_emoji,
        )
        return asdict(channel)

    # endregion

    @app.post("/slack/events")
    async def slack_events(
        request: Request,
        x_slack_request_timestamp: Optional[str] = Header(None),
        x_slack_signature: Optional[str] = Header(None),
        svc: SlackCheersService = Depends(get_service),
    ) -> Dict[str, Any]:
        if not settings.slack_signing_secret:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="slack signing secret is not configured"
            )
        body = await request.body()
        if not verify_slack_signature(
            settings.slack_signing_secret, x_slack_request_timestamp or "", body, x_slack_signature or ""
        ):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid slack signature")

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid json payload") from exc

        if payload.get("type") == "url_verification":
            return {"challenge": payload.get("challenge", "")}

        try:
            await svc.inbound.process_event(payload)
        except NotFoundError:
            LOGGER.warning("Ignoring event for unknown Slack team %s", payload.get("team_id"))
        return {"ok": True}

    return app


__all__ = ["create_app", "verify_slack_signature"]
