"""Per-session view state for the news portal."""

from __future__ import annotations

import logging
import secrets
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

from .models import Article, ItemId, User
from .projection import ListProjection, project_list

logger = logging.getLogger("newsportal.state")


class View(str, Enum):
    LOGIN = "login"
    LIST = "list"
    DETAIL = "detail"
    CREATE = "create"
    EDIT = "edit"


class StateBusy(RuntimeError):
    """Raised when a session submits a change while another is still running."""


class NotAuthenticated(RuntimeError):
    """Raised when an authenticated view is requested without a current user."""


@dataclass
class ViewState:
    """Mutable state behind one reader's session.

    ``users`` is loaded once when the state is created and ``articles`` is a
    cached copy of the store that callers refresh after every mutation.
    """

    current_user: Optional[User] = None
    users: List[User] = field(default_factory=list)
    articles: List[Article] = field(default_factory=list)
    current_page: int = 1
    selected_article_id: Optional[ItemId] = None
    search_query: str = ""
    view: View = View.LOGIN
    users_loaded: bool = False
    articles_loaded: bool = False
    _busy: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def is_busy(self) -> bool:
        return self._busy

    def find_user(self, user_id: ItemId) -> Optional[User]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def set_users(self, users: Sequence[User]) -> None:
        with self._lock:
            self.users = list(users)
            self.users_loaded = True

    def login(self, user: User, articles: Sequence[Article]) -> None:
        with self._lock:
            self.current_user = user
            self.articles = list(articles)
            self.articles_loaded = True
            self.current_page = 1
            self.selected_article_id = None
            self.view = View.LIST

    def logout(self) -> None:
        with self._lock:
            self.current_user = None
            self.articles = []
            self.articles_loaded = False
            self.current_page = 1
            self.selected_article_id = None
            self.search_query = ""
            self.view = View.LOGIN

    def navigate(self, view: View) -> None:
        with self._lock:
            if view is not View.LOGIN and not self.is_authenticated:
                raise NotAuthenticated(f"Sign in to open the {view.value} view")
            self.view = view

    def go_home(self) -> None:
        with self._lock:
            self.navigate(View.LIST)
            self.search_query = ""
            self.current_page = 1

    def search(self, query: str) -> None:
        with self._lock:
            self.search_query = query
            self.current_page = 1

    def set_page(self, page: int) -> None:
        with self._lock:
            self.current_page = page

    def select_article(self, article_id: Optional[ItemId]) -> None:
        with self._lock:
            self.selected_article_id = article_id

    def replace_articles(self, articles: Sequence[Article]) -> None:
        with self._lock:
            self.articles = list(articles)
            self.articles_loaded = True

    def show_list(
        self,
        *,
        query: Optional[str] = None,
        page: Optional[int] = None,
        page_size: int,
        preview_limit: int = 150,
    ) -> ListProjection:
        """Apply the reader's search and page request and project the list.

        The clamped page is written back and the view moves to the list, all
        under one hold of the state lock.
        """

        with self._lock:
            if not self.is_authenticated:
                raise NotAuthenticated("Sign in to open the list view")
            if query is not None:
                self.search_query = query
                self.current_page = 1
            if page is not None:
                self.current_page = page
            projection = project_list(
                self.articles,
                search_query=self.search_query,
                current_page=self.current_page,
                page_size=page_size,
                current_user=self.current_user,
                users=self.users,
                preview_limit=preview_limit,
            )
            self.current_page = projection.page
            self.view = View.LIST
            return projection

    @contextmanager
    def busy(self) -> Iterator["ViewState"]:
        """Hold the state for one mutating action.

        A second action submitted before the first finishes is rejected with
        :class:`StateBusy` rather than queued behind it.
        """

        with self._lock:
            if self._busy:
                raise StateBusy("Another request is still in progress. Please wait.")
            self._busy = True
        try:
            yield self
        finally:
            with self._lock:
                self._busy = False


@dataclass
class _StateRecord:
    state: ViewState
    expires_at: datetime


class ViewStateStore:
    """Generate, resolve, and discard view states keyed by session token."""

    def __init__(self, *, ttl: timedelta = timedelta(hours=8)) -> None:
        self._ttl = ttl
        self._states: Dict[str, _StateRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def create(self) -> tuple[str, ViewState]:
        token = secrets.token_urlsafe(32)
        state = ViewState()
        with self._lock:
            self._purge_expired(self._now())
            self._states[token] = _StateRecord(state=state, expires_at=self._now() + self._ttl)
        logger.debug("Created view state %s", token[:8])
        return token, state

    def resolve(self, token: Optional[str]) -> Optional[ViewState]:
        if not token:
            return None
        now = self._now()
        with self._lock:
            record = self._states.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._states.pop(token, None)
                return None
            record.expires_at = now + self._ttl
            return record.state

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            self._states.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def _purge_expired(self, now: datetime) -> None:
        expired = [token for token, record in self._states.items() if record.expires_at <= now]
        for token in expired:
            self._states.pop(token, None)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["NotAuthenticated", "StateBusy", "View", "ViewState", "ViewStateStore"]
