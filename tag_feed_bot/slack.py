"""Slack webhook delivery."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Sequence

import requests

from .config import Settings
from .errors import DeliveryError
from .models import TagBucket
from .renderers import Block, build_blocks

logger = logging.getLogger(__name__)

# Slack rejects messages with more blocks than this.
MAX_BLOCKS = 50


def chunk_blocks(blocks: Sequence[Block], size: int = MAX_BLOCKS) -> List[List[Block]]:
    """Split ``blocks`` into consecutive chunks of at most ``size`` items."""
    if size <= 0:
        raise ValueError("Chunk size must be positive.")
    return [list(blocks[start : start + size]) for start in range(0, len(blocks), size)]


def build_payloads(bucket: TagBucket, settings: Settings) -> List[Dict[str, Any]]:
    """Build one webhook payload per block chunk for ``bucket``."""
    channel = settings.channel_for(bucket.tag)
    return [
        {"channel": channel, "username": settings.username, "blocks": chunk}
        for chunk in chunk_blocks(build_blocks(bucket, settings.intro_text))
    ]


def post_payload(
    url: str, payload: Dict[str, Any], tag: str, timeout: float = 10.0
) -> None:
    """POST a single payload; raise DeliveryError when Slack does not accept it."""
    body = json.dumps(payload, ensure_ascii=False)
    try:
        response = requests.post(url, data={"payload": body}, timeout=timeout)
    except requests.RequestException as exc:
        raise DeliveryError(f"Webhook request failed: {exc}", tag) from exc

    if not response.ok:
        raise DeliveryError(
            f"Webhook returned HTTP {response.status_code}",
            tag,
            status_code=response.status_code,
            body=response.text,
        )


def notify_bucket(bucket: TagBucket, settings: Settings) -> int:
    """Announce ``bucket`` on Slack and return how many payloads were accepted.

    Every chunk is posted independently. Failures are logged and do not stop
    the remaining chunks.
    """
    payloads = build_payloads(bucket, settings)
    delivered = 0
    for index, payload in enumerate(payloads, start=1):
        try:
            post_payload(
                settings.slack_url, payload, bucket.tag, timeout=settings.http_timeout
            )
        except DeliveryError as exc:
            logger.warning(
                "Failed to post chunk %d/%d for tag '%s': %s %s",
                index,
                len(payloads),
                bucket.tag,
                exc,
                exc.body,
            )
            continue
        delivered += 1
        logger.info(
            "Posted chunk %d/%d for tag '%s' to %s",
            index,
            len(payloads),
            bucket.tag,
            payload["channel"],
        )
    return delivered
