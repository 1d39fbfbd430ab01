"""HTTP gateway to the json-server style collection store."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Union

import httpx
from pydantic import BaseModel, Field

from .models import Article, Comment, ItemId, User, wire_id

logger = logging.getLogger("newsportal.gateway")


class TransportError(Exception):
    """Raised when the collection store rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ArticleDraft(BaseModel):
    title: str = Field(..., min_length=1)
    body: str
    author_id: Union[int, str]
    comments: List[dict] = Field(default_factory=list)


class ArticlePatch(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    comments: Optional[List[dict]] = None


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("Collection store URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


class NewsGateway:
    """Wrap the collection store's users and news endpoints.

    Every method performs exactly one HTTP request and never retries. Failures
    surface as :class:`TransportError`; a missing article is reported as
    ``None`` by :meth:`get_article`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=self._base_url, timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s%s", method, self._base_url, path)
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            logger.warning("Collection store unreachable for %s %s: %s", method, path, exc)
            raise TransportError(f"Failed to contact the news store: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        if response.status_code < 400:
            return
        default = f"Failed to {action} (status {response.status_code})"
        try:
            parsed = response.json()
        except ValueError:
            parsed = response.text
        message = _extract_error_message(parsed, default)
        logger.warning("Collection store refused to %s: %s", action, message)
        raise TransportError(message, status_code=response.status_code)

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"The news store returned an invalid response to {action}") from exc

    def _parse_article(self, payload: object, action: str) -> Article:
        if not isinstance(payload, dict):
            raise TransportError(f"The news store returned an unexpected payload to {action}")
        try:
            return Article.from_dict(payload)
        except (TypeError, ValueError) as exc:
            raise TransportError(f"The news store returned a malformed article: {exc}") from exc

    def _parse_articles(self, payload: object, action: str) -> List[Article]:
        if not isinstance(payload, list):
            raise TransportError(f"The news store returned an unexpected payload to {action}")
        return [self._parse_article(item, action) for item in payload]

    def list_users(self) -> List[User]:
        response = self._request("GET", "/users")
        self._raise_for_status(response, "fetch users")
        payload = self._json(response, "fetch users")
        if not isinstance(payload, list):
            raise TransportError("The news store returned an unexpected payload to fetch users")
        try:
            return [User.from_dict(item) for item in payload]
        except (TypeError, ValueError) as exc:
            raise TransportError(f"The news store returned a malformed user: {exc}") from exc

    def list_articles(self) -> List[Article]:
        """Return all articles, newest first as ordered by the store."""

        response = self._request("GET", "/news", params={"_sort": "id", "_order": "desc"})
        self._raise_for_status(response, "fetch news")
        return self._parse_articles(self._json(response, "fetch news"), "fetch news")

    def get_article(self, article_id: ItemId) -> Optional[Article]:
        response = self._request("GET", f"/news/{article_id}")
        if response.status_code == 404:
            logger.info("Article %s not found", article_id)
            return None
        self._raise_for_status(response, "fetch the article")
        return self._parse_article(self._json(response, "fetch the article"), "fetch the article")

    def create_article(self, title: str, body: str, author_id: ItemId) -> Article:
        draft = ArticleDraft(title=title, body=body, author_id=wire_id(author_id))
        response = self._request("POST", "/news", json=draft.model_dump())
        self._raise_for_status(response, "create news")
        article = self._parse_article(self._json(response, "create news"), "create news")
        logger.info("Created article %s by user %s", article.id, author_id)
        return article

    def update_article(
        self,
        article_id: ItemId,
        *,
        title: Optional[str] = None,
        body: Optional[str] = None,
        comments: Optional[Sequence[Comment]] = None,
    ) -> Article:
        """Apply a partial update; only the supplied fields reach the store."""

        patch = ArticlePatch(
            title=title,
            body=body,
            comments=[comment.to_dict() for comment in comments] if comments is not None else None,
        )
        payload = patch.model_dump(exclude_none=True)
        if not payload:
            raise ValueError("At least one field must be supplied to update an article")
        response = self._request("PATCH", f"/news/{article_id}", json=payload)
        self._raise_for_status(response, "update news")
        article = self._parse_article(self._json(response, "update news"), "update news")
        logger.info("Updated article %s (%s)", article_id, ", ".join(sorted(payload)))
        return article

    def delete_article(self, article_id: ItemId) -> None:
        response = self._request("DELETE", f"/news/{article_id}")
        self._raise_for_status(response, "delete news")
        logger.info("Deleted article %s", article_id)


__all__ = ["ArticleDraft", "ArticlePatch", "NewsGateway", "TransportError"]
