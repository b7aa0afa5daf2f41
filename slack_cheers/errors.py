"""Exception types shared across SlackCheers services."""

from __future__ import annotations


class NotFoundError(LookupError):
    """Raised when a store lookup finds no matching row."""


class ConfigurationError(ValueError):
    """Raised for invalid channel configuration (timezone, posting time, templates)."""


class SlackApiError(RuntimeError):
    """Raised when Slack returns an error response."""

    def __init__(self, method: str, error: str, needed: str = "", provided: str = "") -> None:
        super().__init__(f"Slack API error for {method}: {error}{scope_hint(needed, provided)}")
        self.method = method
        self.error = error
        self.needed = needed
        self.provided = provided


def scope_hint(needed: str | None, provided: str | None) -> str:
    needed = (needed or "").strip()
    provided = (provided or "").strip()
    if not needed and not provided:
        return ""
    if not provided:
        return f" (needed={needed})"
    if not needed:
        return f" (provided={provided})"
    return f" (needed={needed} provided={provided})"


__all__ = ["NotFoundError", "ConfigurationError", "SlackApiError", "scope_hint"]
