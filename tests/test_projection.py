from __future__ import annotations

import math

import pytest

from newsportal.models import Article, Comment, User
from newsportal.projection import (
    UNKNOWN_AUTHOR,
    clamp_page,
    count_pages,
    project_list,
    truncate,
)


USERS = [User(id="1", name="Alice"), User(id="2", name="Bob")]


def _articles(count: int, *, author_id: str = "1") -> list[Article]:
    # Newest first, as the store returns them.
    return [
        Article(id=str(number), title=f"Story {number}", body=f"Body {number}", author_id=author_id)
        for number in range(count, 0, -1)
    ]


def test_thirteen_articles_split_across_three_pages() -> None:
    articles = list(reversed(_articles(13)))

    first = project_list(articles, current_page=1, page_size=6, users=USERS)
    assert first.total_pages == 3
    assert [card.id for card in first.items] == ["1", "2", "3", "4", "5", "6"]

    last = project_list(articles, current_page=3, page_size=6, users=USERS)
    assert [card.id for card in last.items] == ["13"]
    assert last.page == 3


@pytest.mark.parametrize("count", [0, 1, 5, 6, 7, 12, 13, 30])
@pytest.mark.parametrize("requested", [-3, 0, 1, 2, 99])
def test_page_is_always_clamped_into_range(count: int, requested: int) -> None:
    projection = project_list(_articles(count), current_page=requested, page_size=6)

    assert projection.total_pages == math.ceil(count / 6)
    assert 1 <= projection.page <= max(projection.total_pages, 1)


def test_deleting_only_article_on_last_page_clamps_to_previous_page() -> None:
    articles = _articles(13)
    assert project_list(articles, current_page=3, page_size=6).page == 3

    remaining = articles[:-1]
    projection = project_list(remaining, current_page=3, page_size=6)

    assert projection.total_pages == 2
    assert projection.page == 2
    assert len(projection.items) == 6


def test_search_is_case_insensitive_and_ignores_body() -> None:
    articles = [
        Article(id="1", title="Breaking NEWS Today", body="nothing here", author_id="1"),
        Article(id="2", title="Weather report", body="the news is sunny", author_id="1"),
    ]

    projection = project_list(articles, search_query="news", page_size=6)

    assert [card.id for card in projection.items] == ["1"]
    assert projection.filtered_count == 1


def test_blank_search_keeps_everything() -> None:
    projection = project_list(_articles(4), search_query="   ", page_size=6)
    assert projection.filtered_count == 4


def test_search_keeps_surrounding_spaces_in_the_query() -> None:
    articles = [
        Article(id="1", title="newsroom", body="b", author_id="1"),
        Article(id="2", title="Good NEWS today", body="b", author_id="1"),
    ]

    projection = project_list(articles, search_query="news ", page_size=6)

    assert projection.filtered_count == 1
    assert [card.title for card in projection.items] == ["Good NEWS today"]


def test_no_matches_produce_explicit_empty_projection() -> None:
    projection = project_list(_articles(4), search_query="zebra", current_page=2, page_size=6)

    assert projection.is_empty
    assert projection.items == ()
    assert projection.total_pages == 0
    assert projection.page == 1
    assert projection.pages == []


def test_projection_is_idempotent_and_leaves_input_untouched() -> None:
    articles = _articles(9)
    snapshot = list(articles)
    kwargs = dict(search_query="story", current_page=2, page_size=4, users=USERS, current_user=USERS[0])

    assert project_list(articles, **kwargs) == project_list(articles, **kwargs)
    assert articles == snapshot


def test_ownership_flag_matches_normalised_identifiers() -> None:
    articles = [
        Article.from_dict({"id": 1, "title": "Numeric author", "body": "x", "author_id": 1}),
        Article.from_dict({"id": 2, "title": "String author", "body": "x", "author_id": "1"}),
        Article.from_dict({"id": 3, "title": "Someone else", "body": "x", "author_id": 2}),
    ]
    viewer = User.from_dict({"id": "1", "name": "Alice"})

    flags = {card.id: card.is_owner for card in project_list(articles, current_user=viewer).items}
    assert flags == {"1": True, "2": True, "3": False}

    anonymous = project_list(articles)
    assert not any(card.is_owner for card in anonymous.items)


def test_cards_carry_author_preview_and_comment_count() -> None:
    comment = Comment(id="10", user_id="2", text="Nice", timestamp="")
    articles = [
        Article(id="1", title="Long", body="a" * 200, author_id="2", comments=(comment,)),
        Article(id="2", title="Orphan", body="short", author_id="99"),
    ]

    cards = project_list(articles, users=USERS, preview_limit=150).items

    assert cards[0].author_name == "Bob"
    assert cards[0].preview == "a" * 150 + "..."
    assert cards[0].comment_count == 1
    assert cards[1].author_name == UNKNOWN_AUTHOR
    assert cards[1].preview == "short"


def test_pager_hidden_for_single_page() -> None:
    assert project_list(_articles(6), page_size=6).pages == []
    assert project_list(_articles(7), page_size=6).pages == [1, 2]


def test_helpers() -> None:
    assert truncate("", 5) == ""
    assert truncate("12345", 5) == "12345"
    assert truncate("123456", 5) == "12345..."
    assert count_pages(0, 6) == 0
    assert count_pages(13, 6) == 3
    assert clamp_page("not-a-number", 4) == 1
    assert clamp_page(10, 0) == 1
    with pytest.raises(ValueError):
        count_pages(3, 0)
