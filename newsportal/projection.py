"""Derive the paginated, searchable article list shown to a reader."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Article, ItemId, User

UNKNOWN_AUTHOR = "Unknown Author"
ELLIPSIS = "..."


@dataclass(frozen=True)
class ArticleCard:
    """Presentation details for one article in the list view."""

    id: ItemId
    title: str
    author_name: str
    preview: str
    comment_count: int
    is_owner: bool


@dataclass(frozen=True)
class ListProjection:
    """The visible slice of the article list plus pager metadata."""

    items: Tuple[ArticleCard, ...]
    page: int
    total_pages: int
    filtered_count: int
    search_query: str

    @property
    def is_empty(self) -> bool:
        return self.filtered_count == 0

    @property
    def pages(self) -> List[int]:
        if self.total_pages <= 1:
            return []
        return list(range(1, self.total_pages + 1))


def truncate(text: str, limit: int = 150) -> str:
    if not text:
        return ""
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def user_directory(users: Iterable[User]) -> Dict[ItemId, User]:
    return {user.id: user for user in users}


def author_name(author_id: ItemId, directory: Dict[ItemId, User]) -> str:
    user = directory.get(author_id)
    return user.name if user is not None else UNKNOWN_AUTHOR


def filter_articles(articles: Sequence[Article], search_query: str) -> List[Article]:
    """Keep articles whose title contains ``search_query``, ignoring case.

    Body text is never searched and a blank query keeps every article.
    """

    query = search_query or ""
    if not query.strip():
        return list(articles)
    query = query.casefold()
    return [article for article in articles if query in article.title.casefold()]


def count_pages(item_count: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    return math.ceil(item_count / page_size) if item_count > 0 else 0


def clamp_page(requested: object, total_pages: int) -> int:
    try:
        page = int(requested)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        page = 1
    return min(max(page, 1), max(total_pages, 1))


def project_list(
    articles: Sequence[Article],
    *,
    search_query: str = "",
    current_page: object = 1,
    page_size: int = 6,
    current_user: Optional[User] = None,
    users: Iterable[User] = (),
    preview_limit: int = 150,
) -> ListProjection:
    """Recompute the list view from scratch.

    The function is pure: identical inputs always produce an identical
    projection and nothing passed in is modified. Requests for a page past
    the end (for example after a delete shrank the list) clamp to the last
    page instead of failing.
    """

    filtered = filter_articles(articles, search_query)
    total_pages = count_pages(len(filtered), page_size)
    page = clamp_page(current_page, total_pages)

    start = (page - 1) * page_size
    directory = user_directory(users)
    cards = tuple(
        ArticleCard(
            id=article.id,
            title=article.title,
            author_name=author_name(article.author_id, directory),
            preview=truncate(article.body, preview_limit),
            comment_count=len(article.comments),
            is_owner=article.is_owned_by(current_user),
        )
        for article in filtered[start : start + page_size]
    )

    return ListProjection(
        items=cards,
        page=page,
        total_pages=total_pages,
        filtered_count=len(filtered),
        search_query=search_query or "",
    )


__all__ = [
    "ArticleCard",
    "ListProjection",
    "UNKNOWN_AUTHOR",
    "author_name",
    "clamp_page",
    "count_pages",
    "filter_articles",
    "project_list",
    "truncate",
    "user_directory",
]
