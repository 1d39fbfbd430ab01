"""Form validation performed before anything reaches the news store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

MIN_BODY_LENGTH = 20

TITLE_REQUIRED = "Title is required"
COMMENT_REQUIRED = "Comment cannot be empty"


def body_too_short_message(min_length: int = MIN_BODY_LENGTH) -> str:
    return f"Content must be at least {min_length} characters"


def character_count_label(text: str, min_length: int = MIN_BODY_LENGTH) -> str:
    return f"{len(text)} / {min_length} characters min"


@dataclass
class ArticleForm:
    """Trimmed article form input together with any field errors."""

    title: str
    body: str
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_article(title: str, body: str, *, min_body_length: int = MIN_BODY_LENGTH) -> ArticleForm:
    form = ArticleForm(title=(title or "").strip(), body=(body or "").strip())
    if not form.title:
        form.errors["title"] = TITLE_REQUIRED
    if len(form.body) < min_body_length:
        form.errors["body"] = body_too_short_message(min_body_length)
    return form


def validate_comment(text: str) -> Dict[str, str]:
    if not (text or "").strip():
        return {"text": COMMENT_REQUIRED}
    return {}


__all__ = [
    "ArticleForm",
    "COMMENT_REQUIRED",
    "MIN_BODY_LENGTH",
    "TITLE_REQUIRED",
    "body_too_short_message",
    "character_count_label",
    "validate_article",
    "validate_comment",
]
