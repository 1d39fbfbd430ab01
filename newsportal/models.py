"""Domain models for the news portal front-end."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

ItemId = str
"""Canonical identifier type; produced only by :func:`normalize_id`."""


def normalize_id(value: object) -> ItemId:
    """Coerce an identifier from the store or a form into its canonical text.

    The collection store returns numeric ids for seeded records and string ids
    for some created ones, and HTML forms always submit text, so ``1``,
    ``1.0`` and ``" 1 "`` all normalise to ``"1"``.
    """

    if value is None or isinstance(value, bool):
        raise ValueError(f"Invalid identifier: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Invalid identifier: {value!r}")
        value = int(value)
    text = str(value).strip()
    if not text:
        raise ValueError("Identifier must not be empty")
    return text


def wire_id(identifier: ItemId) -> Union[int, str]:
    """Return the representation sent back to the store for ``identifier``.

    Only canonical ASCII integers travel as numbers. Ids such as ``"0042"``
    stay text so the store sees exactly the value it generated.
    """

    if identifier.isascii() and identifier.isdigit() and str(int(identifier)) == identifier:
        return int(identifier)
    return identifier


def _require(data: Mapping[str, Any], keys: Tuple[str, ...], kind: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ValueError(f"{kind} payload is missing fields: {', '.join(missing)}")


@dataclass(frozen=True)
class User:
    """A portal user as listed by the collection store."""

    id: ItemId
    name: str
    email: str = ""

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "User":
        _require(data, ("id", "name"), "User")
        return User(
            id=normalize_id(data["id"]),
            name=str(data["name"]),
            email=str(data.get("email") or ""),
        )

    def to_dict(self) -> Dict[str, object]:
        return {"id": wire_id(self.id), "name": self.name, "email": self.email}


@dataclass(frozen=True)
class Comment:
    """A single entry in an article's append-only discussion."""

    id: ItemId
    user_id: ItemId
    text: str
    timestamp: str
    # Payload as read from the store; written back untouched.
    source: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Comment":
        _require(data, ("id", "user_id", "text"), "Comment")
        return Comment(
            id=normalize_id(data["id"]),
            user_id=normalize_id(data["user_id"]),
            text=str(data["text"]),
            timestamp=str(data.get("timestamp") or ""),
            source=dict(data),
        )

    def to_dict(self) -> Dict[str, object]:
        if self.source is not None:
            return dict(self.source)
        return {
            "id": wire_id(self.id),
            "user_id": wire_id(self.user_id),
            "text": self.text,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Article:
    """A news article together with its comments."""

    id: ItemId
    title: str
    body: str
    author_id: ItemId
    comments: Tuple[Comment, ...] = field(default_factory=tuple)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Article":
        _require(data, ("id", "title", "body", "author_id"), "Article")
        raw_comments = data.get("comments") or []
        if not isinstance(raw_comments, list):
            raise ValueError("Article comments must be a list")
        return Article(
            id=normalize_id(data["id"]),
            title=str(data["title"]),
            body=str(data["body"]),
            author_id=normalize_id(data["author_id"]),
            comments=tuple(Comment.from_dict(item) for item in raw_comments),
        )

    def is_owned_by(self, user: Optional[User]) -> bool:
        """Return ``True`` when ``user`` wrote this article.

        This only decides which controls are shown; the store itself must
        enforce access control.
        """

        return user is not None and user.id == self.author_id


__all__ = [
    "Article",
    "Comment",
    "ItemId",
    "User",
    "normalize_id",
    "wire_id",
]
