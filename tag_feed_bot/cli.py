"""Command-line interface for the tag feed bot."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pprint
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Settings, load_settings
from .runner import execute

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
MASK = "***MASKED***"

# Settings fields that may carry credentials.
SECRET_FIELDS = ("slack_url", "database")


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="tag-feed-bot",
        description="Post new entries from watched tag feeds to Slack.",
    )
    parser.add_argument(
        "--config",
        default="settings.yml",
        help="Path to the YAML settings file.",
    )
    parser.add_argument(
        "--tag",
        action="append",
        dest="tags",
        metavar="TAG",
        help="Only check TAG (repeatable). Must be one of the configured tags.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Route root logging to the console and, optionally, a file."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    logger.debug(
        "Logging at %s to %s",
        level_name.upper(),
        log_file or "console only",
    )


def redacted_settings(settings: Settings) -> Dict[str, Any]:
    """Return the settings as a dict safe to write to the log."""
    values = dataclasses.asdict(settings)
    for name in SECRET_FIELDS:
        if values.get(name):
            values[name] = MASK
    return values


def select_tags(settings: Settings, tags: Optional[List[str]]) -> Settings:
    """Narrow ``settings`` to the requested subset of configured tags."""
    if not tags:
        return settings
    unknown = [tag for tag in tags if tag not in settings.tags]
    if unknown:
        raise ValueError(f"Tags not in config: {', '.join(unknown)}")
    return dataclasses.replace(
        settings, tags=[tag for tag in settings.tags if tag in tags]
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = select_tags(load_settings(args.config), args.tags)
        configure_logging(
            args.log_level or settings.logging.level,
            args.log_file or settings.logging.file,
        )
        logger.info("Active settings:\n%s", pprint.pformat(redacted_settings(settings)))

        result = execute(settings)
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, FileNotFoundError) as exc:
        logger.exception("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    logger.debug("Run finished in state %s", result.state.value)
    return 0
