"""Feed retrieval and parsing for watched tags."""

from __future__ import annotations

import logging
from typing import List

import feedparser
import requests

from .config import Settings
from .errors import FetchError, SchemaError
from .models import FeedEntry, TagBucket

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "updated", "url", "title")


def parse_feed_entries(tag: str, content: bytes) -> List[FeedEntry]:
    """Parse a feed document into entries, keeping document order."""
    parsed = feedparser.parse(content)
    if parsed.bozo:
        problem = parsed.get("bozo_exception")
        if not parsed.entries:
            logger.warning("Failed to parse feed for tag '%s': %s", tag, problem)
            raise FetchError(f"Feed for tag '{tag}' could not be parsed: {problem}", tag)
        logger.debug("Feed for tag '%s' is not well-formed: %s", tag, problem)

    entries: List[FeedEntry] = []
    for position, entry in enumerate(parsed.entries, start=1):
        values = {}
        for name in REQUIRED_FIELDS:
            value = entry.get(name)
            if not isinstance(value, str) or not value.strip():
                logger.warning(
                    "Entry %d of tag '%s' has no <%s> element", position, tag, name
                )
                raise SchemaError(
                    f"Entry {position} of tag '{tag}' is missing '{name}'", tag
                )
            values[name] = value.strip()
        entries.append(FeedEntry(**values))

    logger.debug("Parsed %d entries for tag '%s'", len(entries), tag)
    return entries


def fetch_tag_feed(tag: str, url: str, timeout: float = 10.0) -> TagBucket:
    """Fetch and parse the feed for a single tag."""
    logger.info("Fetching feed for tag '%s' (%s)", tag, url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        content = response.content
    except requests.RequestException as exc:
        logger.warning("Failed to fetch feed for tag '%s' (%s): %s", tag, url, exc)
        raise FetchError(f"Failed to fetch feed for tag '{tag}': {exc}", tag) from exc

    entries = parse_feed_entries(tag, content)
    logger.info("Collected %d entries for tag '%s'", len(entries), tag)
    return TagBucket(tag=tag, entries=tuple(entries))


def fetch_all(settings: Settings) -> List[TagBucket]:
    """Fetch every configured tag in order; the first failure aborts."""
    return [
        fetch_tag_feed(tag, settings.feed_url_for(tag), timeout=settings.http_timeout)
        for tag in settings.tags
    ]
