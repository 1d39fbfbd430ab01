"""Server-rendered front-end for a json-server backed news portal."""

from __future__ import annotations

from typing import Any

from .config import PortalSettings, load_settings
from .gateway import NewsGateway, TransportError
from .models import Article, Comment, User, normalize_id
from .projection import ListProjection, project_list


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the portal web application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Article",
    "Comment",
    "ListProjection",
    "NewsGateway",
    "PortalSettings",
    "TransportError",
    "User",
    "create_app",
    "load_settings",
    "normalize_id",
    "project_list",
]
