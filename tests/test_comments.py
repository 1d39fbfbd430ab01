from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from newsportal.comments import (
    ArticleNotFound,
    CommentWriter,
    append_comment,
    format_timestamp,
    new_comment,
    view_article,
)
from newsportal.models import Comment, User

FIXED_NOW = datetime(2024, 5, 17, 9, 30, 15, 250000, tzinfo=timezone.utc)


def _clock() -> datetime:
    return FIXED_NOW


EXISTING = [
    {"id": 1000, "user_id": 1, "text": "First!", "timestamp": "2024-05-01T10:00:00.000Z"},
    {"id": 2000, "user_id": "2", "text": "Second", "timestamp": "2024-05-02T10:00:00.000Z"},
]


def test_append_keeps_existing_comments_and_adds_new_one_last(gateway, store) -> None:
    store.news[0]["comments"] = [dict(entry) for entry in EXISTING]

    updated = append_comment(gateway, "1", "2", "Third", clock=_clock)

    assert len(updated) == 3
    assert updated[0] == Comment(id="1000", user_id="1", text="First!", timestamp="2024-05-01T10:00:00.000Z")
    assert updated[1] == Comment(id="2000", user_id="2", text="Second", timestamp="2024-05-02T10:00:00.000Z")
    assert updated[2].text == "Third"
    assert updated[2].user_id == "2"
    assert updated[2].timestamp == "2024-05-17T09:30:15.250Z"
    assert updated[2].id == str(int(FIXED_NOW.timestamp() * 1000))

    persisted = store.news[0]["comments"]
    assert [entry["text"] for entry in persisted] == ["First!", "Second", "Third"]


def test_append_reads_the_article_fresh(gateway, store) -> None:
    append_comment(gateway, "1", "1", "Hello", clock=_clock)

    methods = [(method, path) for method, path, _ in store.requests]
    assert methods == [("GET", "/news/1"), ("PATCH", "/news/1")]


def test_append_to_missing_article_raises(gateway, store) -> None:
    with pytest.raises(ArticleNotFound):
        append_comment(gateway, "99", "1", "Hello")
    assert store.mutations() == []


def test_new_comment_id_sorts_after_existing_ids() -> None:
    future = Comment(id=str(10**15), user_id="1", text="x", timestamp="")

    comment = new_comment((future,), "1", "later", clock=_clock)

    assert int(comment.id) == 10**15 + 1


def test_view_article_projects_detail(gateway, store) -> None:
    store.news[0]["comments"] = [dict(entry) for entry in EXISTING]
    users = gateway.list_users()

    detail = view_article(gateway, "1", current_user=User(id="1", name="Alice Editor"), users=users)

    assert detail is not None
    assert detail.is_owner
    assert detail.author_name == "Alice Editor"
    assert [view.author_name for view in detail.comments] == ["Alice Editor", "Bob Reporter"]
    assert detail.comments[0].posted_at == "May 01, 2024, 10:00 AM"
    assert detail.comment_count == 2


def test_view_article_returns_none_for_missing(gateway) -> None:
    assert view_article(gateway, "404") is None


def test_format_timestamp_falls_back_to_raw_text() -> None:
    assert format_timestamp("") == ""
    assert format_timestamp("yesterday") == "yesterday"


def test_comment_writer_serialises_appends_per_article(gateway, store) -> None:
    writer = CommentWriter(gateway)
    threads = [
        threading.Thread(target=writer.append, args=("1", "1", f"comment {index}"))
        for index in range(5)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    texts = sorted(entry["text"] for entry in store.news[0]["comments"])
    assert texts == [f"comment {index}" for index in range(5)]


def test_append_leaves_zero_padded_comments_untouched(gateway, store) -> None:
    original = {"id": "0042", "user_id": "0007", "text": "Padded", "timestamp": "2024-05-01T10:00:00.000Z"}
    store.news[0]["comments"] = [dict(original)]

    append_comment(gateway, "1", "2", "Reply", clock=_clock)

    persisted = store.news[0]["comments"]
    assert persisted[0] == original
    assert persisted[1]["user_id"] == 2


def test_writer_releases_article_locks(gateway, store) -> None:
    writer = CommentWriter(gateway, clock=_clock)

    writer.append("1", "1", "First")
    writer.append("3", "1", "Second")
    with pytest.raises(ArticleNotFound):
        writer.append("99", "1", "Nowhere")

    assert writer.active_locks == 0
