"""Shared data models for tag_feed_bot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class FeedEntry:
    """A single entry from a tag feed."""

    id: str
    updated: str
    url: str
    title: str


@dataclass(frozen=True)
class TagBucket:
    """Entries fetched for one tag, in feed order."""

    tag: str
    entries: Tuple[FeedEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)
