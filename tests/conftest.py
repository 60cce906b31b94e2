from typing import Dict, List, Optional, Tuple

import pytest
import requests
from sqlalchemy import select

from tag_feed_bot import db
from tag_feed_bot.config import Settings
from tag_feed_bot.models import FeedEntry

ATOM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<feed xml:lang="ja-JP" xmlns="http://www.w3.org/2005/Atom">
  <id>tag:qiita.com,2005:/tags/{tag}/feed</id>
  <title>{tag}の記事 - Qiita</title>
  <updated>2024-01-01T00:00:00+09:00</updated>
{entries}
</feed>
"""

ENTRY_TEMPLATE = """  <entry>
    <id>{id}</id>
    <published>{updated}</published>
    <updated>{updated}</updated>
    <link rel="alternate" type="text/html" href="{url}"/>
    <url>{url}</url>
    <title>{title}</title>
    <content type="html">&lt;p&gt;body&lt;/p&gt;</content>
    <author>
      <name>someone</name>
    </author>
  </entry>"""


def make_entry(id: str, updated: str = "t1", title: Optional[str] = None) -> FeedEntry:
    return FeedEntry(
        id=id,
        updated=updated,
        url=f"https://qiita.com/someone/items/{id}",
        title=title or f"Article {id}",
    )


def atom_feed(tag: str, entries: List[FeedEntry]) -> bytes:
    body = "\n".join(
        ENTRY_TEMPLATE.format(
            id=entry.id, updated=entry.updated, url=entry.url, title=entry.title
        )
        for entry in entries
    )
    return ATOM_TEMPLATE.format(tag=tag, entries=body).encode("utf-8")


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", text: str = ""):
        self.status_code = status_code
        self.content = content
        self.text = text or content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeHttp:
    """Records requests made through ``requests.get`` / ``requests.post``."""

    def __init__(self) -> None:
        self.feeds: Dict[str, FakeResponse] = {}
        self.get_calls: List[str] = []
        self.post_calls: List[Tuple[str, dict]] = []
        self.post_responses: List[FakeResponse] = []

    def serve_feed(self, url: str, content: bytes, status_code: int = 200) -> None:
        self.feeds[url] = FakeResponse(status_code=status_code, content=content)

    def get(self, url, timeout=None):
        self.get_calls.append(url)
        if url not in self.feeds:
            raise requests.ConnectionError(f"no route to {url}")
        return self.feeds[url]

    def post(self, url, data=None, timeout=None):
        self.post_calls.append((url, data))
        if self.post_responses:
            return self.post_responses.pop(0)
        return FakeResponse(status_code=200, text="ok")


@pytest.fixture
def http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr(requests, "get", fake.get)
    monkeypatch.setattr(requests, "post", fake.post)
    return fake


@pytest.fixture
def settings(tmp_path):
    return Settings(
        slack_url="https://hooks.slack.test/services/T000/B000/XXX",
        channel={"qiita": "#qiita-"},
        tags=["go", "rust"],
        database=f"sqlite:///{tmp_path / 'qiitafeed.sql'}",
    )


@pytest.fixture
def engine(settings):
    engine = db.init_engine(settings.database, settings.tags)
    yield engine
    engine.dispose()


@pytest.fixture
def stored_rows(engine):
    def _rows(tag: str) -> List[tuple]:
        table = db.tag_table(tag)
        with engine.connect() as connection:
            return [
                tuple(row)
                for row in connection.execute(
                    select(table.c.id, table.c.updated, table.c.url, table.c.title)
                ).all()
            ]

    return _rows
