"""Seen-entry store: one table per watched tag."""

from __future__ import annotations

import logging
from typing import Iterable, List

from sqlalchemy import (
    Column,
    MetaData,
    Table,
    Text,
    create_engine,
    insert,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from .config import validate_tag
from .errors import StoreError
from .models import FeedEntry, TagBucket

logger = logging.getLogger(__name__)

metadata = MetaData()


def tag_table(tag: str) -> Table:
    """Return the table holding seen entries for ``tag``."""
    validate_tag(tag)
    existing = metadata.tables.get(tag)
    if existing is not None:
        return existing
    return Table(
        tag,
        metadata,
        Column("id", Text, primary_key=True),
        Column("updated", Text, primary_key=True),
        Column("url", Text),
        Column("title", Text),
    )


def init_engine(connection_string: str, tags: Iterable[str]) -> Engine:
    """Create the engine and make sure every tag has its table."""
    logger.info(
        "Initializing seen-entry store: %s",
        make_url(connection_string).render_as_string(hide_password=True),
    )
    engine = create_engine(connection_string)
    tables = [tag_table(tag) for tag in tags]
    try:
        metadata.create_all(engine, tables=tables)
    except SQLAlchemyError as exc:
        logger.warning("Failed to prepare store tables: %s", exc)
        raise StoreError(f"Failed to prepare store tables: {exc}") from exc
    return engine


def filter_unseen(engine: Engine, bucket: TagBucket) -> TagBucket:
    """Return a bucket with only the entries not yet recorded for its tag."""
    table = tag_table(bucket.tag)
    unseen: List[FeedEntry] = []
    try:
        with engine.connect() as connection:
            for entry in bucket.entries:
                stmt = (
                    select(table.c.id)
                    .where(table.c.id == entry.id, table.c.updated == entry.updated)
                    .limit(1)
                )
                if connection.execute(stmt).first() is None:
                    unseen.append(entry)
    except SQLAlchemyError as exc:
        logger.warning("Store lookup failed for tag '%s': %s", bucket.tag, exc)
        raise StoreError(
            f"Store lookup failed for tag '{bucket.tag}': {exc}", bucket.tag
        ) from exc

    logger.info(
        "Tag '%s': %d of %d entries are new", bucket.tag, len(unseen), len(bucket)
    )
    return TagBucket(tag=bucket.tag, entries=tuple(unseen))


def record_entries(engine: Engine, bucket: TagBucket) -> None:
    """Insert every entry of ``bucket`` in a single transaction."""
    if not bucket.entries:
        return

    table = tag_table(bucket.tag)
    rows = [
        {
            "id": entry.id,
            "updated": entry.updated,
            "url": entry.url,
            "title": entry.title,
        }
        for entry in bucket.entries
    ]
    try:
        with engine.begin() as connection:
            connection.execute(insert(table), rows)
    except SQLAlchemyError as exc:
        logger.warning(
            "Store update failed for tag '%s'; transaction rolled back: %s",
            bucket.tag,
            exc,
        )
        raise StoreError(
            f"Store update failed for tag '{bucket.tag}': {exc}", bucket.tag
        ) from exc

    logger.info("Recorded %d entries for tag '%s'", len(rows), bucket.tag)

