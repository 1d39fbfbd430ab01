"""Single-article view and the append-only comment thread."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .gateway import NewsGateway
from .models import Article, Comment, ItemId, User, normalize_id
from .projection import author_name, user_directory

logger = logging.getLogger("newsportal.comments")

Clock = Callable[[], datetime]


class ArticleNotFound(LookupError):
    """Raised when a comment targets an article the store no longer has."""


@dataclass(frozen=True)
class CommentView:
    id: ItemId
    author_name: str
    text: str
    posted_at: str


@dataclass(frozen=True)
class ArticleDetail:
    """Presentation details for the article detail page."""

    article: Article
    author_name: str
    is_owner: bool
    comments: Tuple[CommentView, ...]

    @property
    def comment_count(self) -> int:
        return len(self.comments)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: str) -> str:
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%b %d, %Y, %I:%M %p")


def build_comment_views(comments: Iterable[Comment], users: Iterable[User]) -> Tuple[CommentView, ...]:
    directory = user_directory(users)
    return tuple(
        CommentView(
            id=comment.id,
            author_name=author_name(comment.user_id, directory),
            text=comment.text,
            posted_at=format_timestamp(comment.timestamp),
        )
        for comment in comments
    )


def view_article(
    gateway: NewsGateway,
    article_id: ItemId,
    *,
    current_user: Optional[User] = None,
    users: Iterable[User] = (),
) -> Optional[ArticleDetail]:
    """Fetch ``article_id`` fresh from the store and project it for display.

    The cached list is deliberately bypassed because comments may have
    changed since it was loaded. Returns ``None`` when the article is gone.
    """

    article = gateway.get_article(article_id)
    if article is None:
        return None
    users = list(users)
    return ArticleDetail(
        article=article,
        author_name=author_name(article.author_id, user_directory(users)),
        is_owner=article.is_owned_by(current_user),
        comments=build_comment_views(article.comments, users),
    )


def new_comment(
    existing: Tuple[Comment, ...],
    author_id: ItemId,
    text: str,
    *,
    clock: Optional[Clock] = None,
) -> Comment:
    """Create a comment whose timestamp-derived id sorts after ``existing``."""

    now = (clock or _utcnow)()
    identifier = int(now.timestamp() * 1000)
    if existing:
        try:
            last = int(existing[-1].id)
        except ValueError:
            last = None
        if last is not None and identifier <= last:
            identifier = last + 1
    return Comment(
        id=normalize_id(identifier),
        user_id=author_id,
        text=text,
        timestamp=now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    )


def append_comment(
    gateway: NewsGateway,
    article_id: ItemId,
    author_id: ItemId,
    text: str,
    *,
    clock: Optional[Clock] = None,
) -> Tuple[Comment, ...]:
    """Append a comment with a read-modify-write against the store.

    The article is re-read so the newest thread is extended, the comment goes
    last, and earlier comments are passed through untouched. The store offers
    no atomic append, so writers in other processes can still overwrite each
    other; :class:`CommentWriter` serialises writers inside this process.
    """

    article = gateway.get_article(article_id)
    if article is None:
        raise ArticleNotFound(f"Article {article_id} no longer exists")
    comment = new_comment(article.comments, author_id, text, clock=clock)
    updated = article.comments + (comment,)
    gateway.update_article(article_id, comments=updated)
    logger.info("User %s commented on article %s", author_id, article_id)
    return updated


class CommentWriter:
    """Serialise comment appends per article within this process."""

    def __init__(self, gateway: NewsGateway, *, clock: Optional[Clock] = None) -> None:
        self._gateway = gateway
        self._clock = clock
        # article id -> [lock, number of callers holding or waiting on it]
        self._locks: Dict[ItemId, List[Any]] = {}
        self._guard = threading.Lock()

    @property
    def active_locks(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def _article_lock(self, article_id: ItemId) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(article_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[article_id]

    def append(self, article_id: ItemId, author_id: ItemId, text: str) -> Tuple[Comment, ...]:
        with self._article_lock(article_id):
            return append_comment(self._gateway, article_id, author_id, text, clock=self._clock)


__all__ = [
    "ArticleDetail",
    "ArticleNotFound",
    "CommentView",
    "CommentWriter",
    "append_comment",
    "build_comment_views",
    "format_timestamp",
    "new_comment",
    "view_article",
]
