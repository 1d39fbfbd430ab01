"""Application factory wiring the portal to its collection store."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from .comments import CommentWriter
from .config import PortalSettings, load_settings
from .gateway import NewsGateway
from .state import ViewStateStore
from .web import register_ui_routes

logger = logging.getLogger("newsportal.service")

SESSION_COOKIE_NAME = "newsportal_session"


def create_app(
    *,
    settings: Optional[PortalSettings] = None,
    gateway: Optional[NewsGateway] = None,
    view_states: Optional[ViewStateStore] = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the news portal."""

    settings = settings or load_settings()
    if not settings.session_secret:
        raise RuntimeError(
            "NEWSPORTAL_SESSION_SECRET must be configured to use the news portal"
        )

    owns_gateway = gateway is None
    portal_gateway = gateway or NewsGateway(
        settings.api_base_url,
        timeout=settings.request_timeout,
    )
    ttl = timedelta(minutes=settings.session_ttl_minutes)
    states = view_states or ViewStateStore(ttl=ttl)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("News portal using collection store at %s", portal_gateway.base_url)
        try:
            yield
        finally:
            if owns_gateway:
                portal_gateway.close()

    app = FastAPI(
        title="News Portal",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    if not settings.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        https_only=settings.secure_cookies,
        same_site="lax",
        max_age=int(ttl.total_seconds()),
    )

    comment_writer = CommentWriter(portal_gateway)
    app.state.settings = settings
    app.state.gateway = portal_gateway
    app.state.view_states = states
    app.state.comment_writer = comment_writer

    register_ui_routes(
        app,
        portal_gateway,
        states,
        settings=settings,
        comment_writer=comment_writer,
    )
    return app


__all__ = ["SESSION_COOKIE_NAME", "create_app"]
