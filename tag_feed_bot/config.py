"""Configuration loading for the tag feed bot."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL_TEMPLATE = "https://qiita.com/tags/{tag}/feed.atom"
DEFAULT_DATABASE = "sqlite:///qiitafeed.sql"
DEFAULT_CHANNEL_KEY = "qiita"
DEFAULT_USERNAME = "更新通知"
DEFAULT_INTRO_TEXT = "更新がありました。内容は以下の通りです。"

# Tags double as table names in the store.
TAG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.+#-]{0,63}$")

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    slack_url: str
    channel: Dict[str, str]
    tags: List[str]
    channel_key: str = DEFAULT_CHANNEL_KEY
    feed_url_template: str = DEFAULT_FEED_URL_TEMPLATE
    database: str = DEFAULT_DATABASE
    username: str = DEFAULT_USERNAME
    intro_text: str = DEFAULT_INTRO_TEXT
    http_timeout: float = 10.0
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def channel_for(self, tag: str) -> str:
        """Return the Slack channel that receives updates for ``tag``."""
        return self.channel[self.channel_key] + tag

    def feed_url_for(self, tag: str) -> str:
        return self.feed_url_template.format(tag=tag)


def validate_tag(tag: Any) -> str:
    """Return ``tag`` if it is safe to use as a store partition name."""
    if not isinstance(tag, str) or not TAG_PATTERN.match(tag):
        raise ValueError(f"Invalid tag {tag!r}: tags must match {TAG_PATTERN.pattern}")
    return tag


def _substitute_env_vars(value: Any) -> Any:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in string values."""
    if isinstance(value, str):

        def replacer(match: re.Match) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            logger.warning(
                "Environment variable '%s' not set and no default provided",
                match.group(1),
            )
            return match.group(0)

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {key: _substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _resolve_database(base_path: Path, url: str) -> str:
    """Anchor relative SQLite file paths to the config file's directory."""
    prefix = "sqlite:///"
    if not url.startswith(prefix):
        return url
    location = url[len(prefix) :]
    if not location or location == ":memory:" or location.startswith("/"):
        return url
    return prefix + _resolve_path(base_path, location)


def _require(raw: Dict[str, Any], key: str, kind: type) -> Any:
    value = raw.get(key)
    if value is None:
        raise ValueError(f"Config missing '{key}'")
    if not isinstance(value, kind):
        raise ValueError(f"Config '{key}' must be a {kind.__name__}")
    return value


def parse_settings(raw: Dict[str, Any], base_path: Optional[Path] = None) -> Settings:
    """Build validated settings from an already-parsed mapping."""
    if not isinstance(raw, dict):
        raise ValueError("Configuration must be a mapping")
    base_path = base_path or Path.cwd() / "settings.yml"

    slack_url = _require(raw, "slack_url", str).strip()
    if not slack_url:
        raise ValueError("Config 'slack_url' must not be empty")

    channel = _require(raw, "channel", dict)
    channel = {str(key): str(value) for key, value in channel.items()}

    tags = [validate_tag(tag) for tag in _require(raw, "tag", list)]
    if not tags:
        raise ValueError("Config 'tag' must list at least one tag")
    # Store table names and site tags both ignore case.
    seen: Dict[str, str] = {}
    for tag in tags:
        key = tag.casefold()
        if key in seen:
            raise ValueError(
                f"Config 'tag' contains duplicate tags: '{seen[key]}' and '{tag}'"
            )
        seen[key] = tag

    channel_key = str(raw.get("channel_key", DEFAULT_CHANNEL_KEY))
    if channel_key not in channel:
        raise ValueError(f"Config 'channel' has no entry for key '{channel_key}'")

    template = str(raw.get("feed_url_template", DEFAULT_FEED_URL_TEMPLATE))
    if "{tag}" not in template:
        raise ValueError("Config 'feed_url_template' must contain '{tag}'")

    try:
        http_timeout = float(raw.get("http_timeout", 10.0))
    except (TypeError, ValueError) as exc:
        raise ValueError("Config 'http_timeout' must be a number") from exc
    if http_timeout <= 0:
        raise ValueError("Config 'http_timeout' must be positive")

    log_raw = raw.get("logging") or {}
    logging_config = LoggingConfig(level=str(log_raw.get("level", "INFO")))
    if log_raw.get("file"):
        logging_config.file = _resolve_path(base_path, str(log_raw["file"]))

    return Settings(
        slack_url=slack_url,
        channel=channel,
        tags=tags,
        channel_key=channel_key,
        feed_url_template=template,
        database=_resolve_database(
            base_path, str(raw.get("database", DEFAULT_DATABASE))
        ),
        username=str(raw.get("username", DEFAULT_USERNAME)),
        intro_text=str(raw.get("intro_text", DEFAULT_INTRO_TEXT)),
        http_timeout=http_timeout,
        logging=logging_config,
    )


def load_settings(path: str) -> Settings:
    """Load the YAML settings file at ``path``."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading settings from %s", config_path)
    try:
        with open(config_path, encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Config file is not valid YAML: {exc}") from exc

    if raw is None:
        raise ValueError("Config file is empty")

    settings = parse_settings(_substitute_env_vars(raw), base_path=config_path)
    logger.info("Loaded settings watching %d tag(s)", len(settings.tags))
    return settings
