from pathlib import Path

import pytest

from slack_cheers.config import load_settings

KEYS = (
    "API_KEY",
    "DATABASE_PATH",
    "PORT",
    "LOG_LEVEL",
    "SCHEDULER_ENABLED",
    "SCHEDULER_POLL_INTERVAL",
    "SLACK_BOT_TOKEN",
    "SLACK_SIGNING_SECRET",
    "SLACK_HTTP_TIMEOUT",
    "SLACK_DRY_RUN",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so values written by load_dotenv are undone at teardown.
    for key in KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_missing_api_key_is_an_error() -> None:
    with pytest.raises(RuntimeError, match="API_KEY"):
        load_settings()


def test_defaults(monkeypatch) -> None:
    monkeypatch.setenv("API_KEY", "k")
    settings = load_settings()
    assert settings.port == 9060
    assert settings.database_path == Path("slack_cheers.db")
    assert settings.scheduler_enabled is True
    assert settings.scheduler_poll_interval == 60.0
    assert settings.slack_bot_token is None
    assert settings.slack_http_timeout == 12.0
    assert settings.slack_dry_run is False


def test_malformed_values_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("API_KEY", "k")
    monkeypatch.setenv("PORT", "eighty")
    monkeypatch.setenv("SCHEDULER_POLL_INTERVAL", "-5")
    monkeypatch.setenv("SCHEDULER_ENABLED", "maybe")
    monkeypatch.setenv("SLACK_HTTP_TIMEOUT", "abc")
    settings = load_settings()
    assert settings.port == 9060
    assert settings.scheduler_poll_interval == 60.0
    assert settings.scheduler_enabled is True
    assert settings.slack_http_timeout == 12.0
    assert settings.slack_dry_run is False


def test_env_file_is_loaded(tmp_path) -> None:
    env_file = tmp_path / "cheers.env"
    env_file.write_text("API_KEY=from-file\nSCHEDULER_ENABLED=off\nSLACK_BOT_TOKEN=xoxb-file\nSLACK_DRY_RUN=yes\n")
    settings = load_settings(str(env_file))
    assert settings.api_key == "from-file"
    assert settings.scheduler_enabled is False
    assert settings.slack_bot_token == "xoxb-file"
    assert settings.slack_dry_run is True
