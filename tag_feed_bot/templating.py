"""Jinja2 environment for tag_feed_bot message templates."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

_ENV: Environment | None = None

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


def _mrkdwn_escape(value: str | None) -> str:
    """Escape the characters Slack treats as mrkdwn control sequences."""
    if not value:
        return ""
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        _ENV = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        _ENV.filters["mrkdwn_escape"] = _mrkdwn_escape
    return _ENV
