"""Configuration helpers for SlackCheers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_TRUE_VALUES = {"1", "t", "true", "y", "yes", "on"}
_FALSE_VALUES = {"0", "f", "false", "n", "no", "off"}


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    api_key: str
    database_path: Path
    app_name: str = "slackcheers"
    app_env: str = "development"
    port: int = 9060
    log_level: str = "info"
    scheduler_enabled: bool = True
    scheduler_poll_interval: float = 60.0
    slack_bot_token: Optional[str] = None
    slack_signing_secret: Optional[str] = None
    slack_http_timeout: float = 12.0
    slack_dry_run: bool = False


def _env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        value = float(_env(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name).lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    api_key = _env("API_KEY")
    if not api_key:
        raise RuntimeError("API_KEY must be configured")

    return Settings(
        api_key=api_key,
        database_path=Path(_env("DATABASE_PATH", "slack_cheers.db")).expanduser(),
        app_name=_env("APP_NAME", "slackcheers"),
        app_env=_env("APP_ENV", "development"),
        port=_env_int("PORT", 9060),
        log_level=_env("LOG_LEVEL", "info").lower(),
        scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
        scheduler_poll_interval=_env_float("SCHEDULER_POLL_INTERVAL", 60.0),
        slack_bot_token=_env("SLACK_BOT_TOKEN") or None,
        slack_signing_secret=_env("SLACK_SIGNING_SECRET") or None,
        slack_http_timeout=_env_float("SLACK_HTTP_TIMEOUT", 12.0),
        slack_dry_run=_env_bool("SLACK_DRY_RUN", False),
    )


__all__ = ["Settings", "load_settings"]
