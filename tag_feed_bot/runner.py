"""High-level orchestration for a single polling pass."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.engine import Engine

from . import db
from .config import Settings
from .errors import TagFeedError
from .feeds import fetch_all
from .models import TagBucket
from .slack import notify_bucket

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FILTERING = "filtering"
    NO_UPDATES = "no_updates"
    UPDATING = "updating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunResult:
    """Outcome of a polling pass."""

    state: RunState = RunState.IDLE
    new_entries: Dict[str, int] = field(default_factory=dict)
    delivered: int = 0

    @property
    def updated(self) -> bool:
        return any(self.new_entries.values())


def _transition(result: RunResult, state: RunState) -> None:
    logger.debug("Run state %s -> %s", result.state.value, state.value)
    result.state = state


def execute(settings: Settings, engine: Optional[Engine] = None) -> RunResult:
    """Fetch, filter, record and announce new entries for every tag."""
    logger.info("start checking...")
    result = RunResult()

    try:
        if engine is None:
            engine = db.init_engine(settings.database, settings.tags)

        _transition(result, RunState.FETCHING)
        buckets = fetch_all(settings)

        _transition(result, RunState.FILTERING)
        latest: List[TagBucket] = [db.filter_unseen(engine, bucket) for bucket in buckets]
        result.new_entries = {bucket.tag: len(bucket) for bucket in latest}

        if not result.updated:
            _transition(result, RunState.NO_UPDATES)
            logger.info("nothing updated")
            return result

        _transition(result, RunState.UPDATING)
        for bucket in latest:
            if not bucket.entries:
                continue
            db.record_entries(engine, bucket)
            result.delivered += notify_bucket(bucket, settings)
    except TagFeedError as exc:
        logger.warning("Run aborted in state %s: %s", result.state.value, exc)
        _transition(result, RunState.FAILED)
        raise

    _transition(result, RunState.DONE)
    logger.info("checking finished")
    return result
