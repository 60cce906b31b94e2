import json

import pytest
import requests

from conftest import FakeResponse, make_entry
from tag_feed_bot import slack
from tag_feed_bot.models import TagBucket


def _bucket(count, tag="go"):
    return TagBucket(tag, tuple(make_entry(str(index)) for index in range(count)))


def test_chunk_blocks_boundaries():
    fifty = [{"type": "divider", "n": index} for index in range(50)]
    fifty_one = fifty + [{"type": "divider", "n": 50}]

    assert slack.chunk_blocks(fifty) == [fifty]

    chunks = slack.chunk_blocks(fifty_one)
    assert [len(chunk) for chunk in chunks] == [50, 1]
    assert [block["n"] for chunk in chunks for block in chunk] == list(range(51))


def test_chunk_blocks_rejects_non_positive_size():
    with pytest.raises(ValueError):
        slack.chunk_blocks([], size=0)


def test_build_payloads_single_chunk(settings):
    payloads = slack.build_payloads(_bucket(24), settings)

    assert len(payloads) == 1
    payload = payloads[0]
    assert payload["channel"] == "#qiita-go"
    assert payload["username"] == settings.username
    assert len(payload["blocks"]) == 50
    assert payload["blocks"][0]["text"]["text"] == settings.intro_text


def test_build_payloads_splits_after_fifty_blocks(settings):
    payloads = slack.build_payloads(_bucket(25, tag="rust"), settings)

    assert [len(payload["blocks"]) for payload in payloads] == [50, 2]
    assert all(payload["channel"] == "#qiita-rust" for payload in payloads)
    assert payloads[1]["blocks"][0]["type"] == "section"
    assert "items/24" in payloads[1]["blocks"][0]["text"]["text"]


def test_notify_bucket_posts_form_encoded_payload(http, settings):
    delivered = slack.notify_bucket(_bucket(1), settings)

    assert delivered == 1
    assert len(http.post_calls) == 1
    url, data = http.post_calls[0]
    assert url == settings.slack_url
    payload = json.loads(data["payload"])
    assert payload["channel"] == "#qiita-go"
    assert [block["type"] for block in payload["blocks"]] == [
        "section",
        "divider",
        "section",
        "divider",
    ]
    assert "更新日時" in data["payload"]


def test_notify_bucket_continues_after_failed_chunk(http, settings, caplog):
    caplog.set_level("WARNING")
    http.post_responses = [
        FakeResponse(status_code=400, text="invalid_blocks"),
        FakeResponse(status_code=200, text="ok"),
    ]

    delivered = slack.notify_bucket(_bucket(30), settings)

    assert delivered == 1
    assert len(http.post_calls) == 2
    assert "invalid_blocks" in caplog.text


def test_notify_bucket_swallows_transport_errors(monkeypatch, settings, caplog):
    caplog.set_level("WARNING")
    calls = []

    def failing_post(url, data=None, timeout=None):
        calls.append(url)
        raise requests.ConnectionError("connection reset")

    monkeypatch.setattr(requests, "post", failing_post)

    delivered = slack.notify_bucket(_bucket(30), settings)

    assert delivered == 0
    assert len(calls) == 2
    assert "connection reset" in caplog.text
