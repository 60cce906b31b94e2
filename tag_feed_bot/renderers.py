"""Rendering helpers for Slack Block Kit messages."""

from __future__ import annotations

from typing import Any, Dict, List

from .models import FeedEntry, TagBucket
from .templating import get_environment

Block = Dict[str, Any]

DIVIDER: Block = {"type": "divider"}


def section(text: str) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def render_entry_text(entry: FeedEntry) -> str:
    """Render the mrkdwn text announcing a single entry."""
    template = get_environment().get_template("entry.md.j2")
    return template.render(entry=entry)


def build_blocks(bucket: TagBucket, intro_text: str) -> List[Block]:
    """Intro and divider, then each entry followed by its own divider."""
    blocks: List[Block] = [section(intro_text), dict(DIVIDER)]
    for entry in bucket.entries:
        blocks.append(section(render_entry_text(entry)))
        blocks.append(dict(DIVIDER))
    return blocks
