"""Web interface for the news portal."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, FastAPI, Form, Query, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from .comments import ArticleDetail, ArticleNotFound, CommentWriter, view_article
from .config import PortalSettings
from .gateway import NewsGateway, TransportError
from .models import Article, ItemId, User, normalize_id
from .state import NotAuthenticated, StateBusy, View, ViewState, ViewStateStore
from .validation import ArticleForm, character_count_label, validate_article, validate_comment

logger = logging.getLogger("newsportal.web")

CURRENT_USER_KEY = "currentUser"
VIEW_TOKEN_KEY = "view_token"

CONNECTION_ERROR = "Error connecting to server. Is JSON-Server running?"
NOT_FOUND_MESSAGE = "Article not found"


def _template_environment() -> Jinja2Templates:
    base_dir = Path(__file__).resolve().parent
    return Jinja2Templates(directory=str(base_dir / "templates"))


def _flash(request: Request, message: str, *, category: str = "success") -> None:
    messages = request.session.get("flash_messages")
    if not isinstance(messages, list):
        messages = []
    messages.append({"message": message, "category": category})
    request.session["flash_messages"] = messages


def _consume_flash(request: Request) -> List[Dict[str, str]]:
    messages = request.session.pop("flash_messages", [])
    if isinstance(messages, list):
        return messages
    return []


def _parse_item_id(raw: str) -> Optional[ItemId]:
    try:
        return normalize_id(raw)
    except ValueError:
        return None


def register_ui_routes(
    app: FastAPI,
    gateway: NewsGateway,
    view_states: ViewStateStore,
    *,
    settings: PortalSettings,
    comment_writer: CommentWriter,
) -> None:
    """Expose the HTML portal on the provided FastAPI app."""

    templates = _template_environment()
    static_dir = Path(__file__).resolve().parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    router = APIRouter(include_in_schema=False)

    def _redirect(request: Request, name: str, **params: str) -> RedirectResponse:
        return RedirectResponse(
            request.url_for(name, **params),
            status_code=status.HTTP_303_SEE_OTHER,
        )

    def _stored_user(request: Request) -> Optional[User]:
        raw = request.session.get(CURRENT_USER_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return User.from_dict(raw)
        except ValueError:
            request.session.pop(CURRENT_USER_KEY, None)
            return None

    def _refresh_articles(request: Request, state: ViewState) -> bool:
        try:
            articles = gateway.list_articles()
        except TransportError:
            _flash(request, "Failed to load news", category="error")
            return False
        state.replace_articles(articles)
        return True

    def _load_state(request: Request) -> ViewState:
        """Resolve the caller's view state, creating or resuming it as needed."""

        state = view_states.resolve(request.session.get(VIEW_TOKEN_KEY))
        if state is None:
            token, state = view_states.create()
            request.session[VIEW_TOKEN_KEY] = token

        if not state.users_loaded:
            try:
                state.set_users(gateway.list_users())
            except TransportError:
                logger.warning("Unable to load users from %s", gateway.base_url)

        stored = _stored_user(request)
        if stored is None:
            if state.is_authenticated:
                state.logout()
        elif not state.is_authenticated or state.current_user != stored:
            logger.info("Resuming session for user %s", stored.id)
            try:
                articles = gateway.list_articles()
            except TransportError:
                _flash(request, "Failed to load news", category="error")
                state.login(stored, [])
                state.articles_loaded = False
            else:
                state.login(stored, articles)
        return state

    def _authenticated_state(request: Request) -> Tuple[ViewState, Optional[RedirectResponse]]:
        state = _load_state(request)
        if not state.is_authenticated:
            return state, _redirect(request, "show_login")
        return state, None

    def _back_to(request: Request, state: ViewState, article_id: Optional[ItemId] = None) -> RedirectResponse:
        if (
            article_id is not None
            and state.view in (View.DETAIL, View.EDIT)
            and state.selected_article_id == article_id
        ):
            return _redirect(request, "article_detail", article_id=article_id)
        return _redirect(request, "news_list")

    def _render(
        request: Request,
        state: ViewState,
        template: str,
        *,
        status_code: int = status.HTTP_200_OK,
        **extra: object,
    ) -> HTMLResponse:
        context: Dict[str, object] = {
            "user": state.current_user,
            "active_view": state.view.value,
            "messages": _consume_flash(request),
            "toast_duration_ms": settings.toast_duration_ms,
            "min_body_length": settings.min_body_length,
        }
        context.update(extra)
        return templates.TemplateResponse(request, template, context, status_code=status_code)

    def _render_login(
        request: Request,
        state: ViewState,
        *,
        error: Optional[str] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        return _render(
            request,
            state,
            "login.html",
            status_code=status_code,
            users=state.users,
            error=error,
            connection_error=None if state.users_loaded else CONNECTION_ERROR,
        )

    def _render_article_form(
        request: Request,
        state: ViewState,
        form: ArticleForm,
        *,
        article_id: Optional[ItemId] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        return _render(
            request,
            state,
            "news_form.html",
            status_code=status_code,
            form=form,
            article_id=article_id,
            mode="edit" if article_id is not None else "create",
            char_count=character_count_label(form.body, settings.min_body_length),
        )

    def _render_detail(
        request: Request,
        state: ViewState,
        detail: ArticleDetail,
        *,
        comment_text: str = "",
        comment_error: Optional[str] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        return _render(
            request,
            state,
            "news_detail.html",
            status_code=status_code,
            detail=detail,
            comment_text=comment_text,
            comment_error=comment_error,
        )

    def _fetch_owned_article(
        request: Request, state: ViewState, article_id: ItemId, *, action: str
    ) -> Optional[Article]:
        article = gateway.get_article(article_id)
        if article is None:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return None
        if not article.is_owned_by(state.current_user):
            logger.warning(
                "User %s tried to %s article %s owned by %s",
                state.current_user.id if state.current_user else None,
                action,
                article_id,
                article.author_id,
            )
            _flash(request, f"You are not authorized to {action} this article", category="error")
            return None
        return article

    @router.get("/", response_class=HTMLResponse, name="home")
    def root(request: Request):
        state = _load_state(request)
        if state.is_authenticated:
            return _redirect(request, "news_list")
        return _redirect(request, "show_login")

    @router.get("/login", response_class=HTMLResponse, name="show_login")
    def login_form(request: Request):
        state = _load_state(request)
        if state.is_authenticated:
            return _redirect(request, "news_list")
        state.navigate(View.LOGIN)
        return _render_login(request, state)

    @router.post("/login", name="process_login")
    def process_login(request: Request, user_id: str = Form("")):
        state = _load_state(request)
        selected = _parse_item_id(user_id)
        if selected is None:
            return _render_login(
                request,
                state,
                error="Please select a user",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        user = state.find_user(selected)
        if user is None:
            return _render_login(
                request,
                state,
                error="Unknown user selected",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        request.session[CURRENT_USER_KEY] = user.to_dict()
        try:
            articles = gateway.list_articles()
        except TransportError:
            _flash(request, "Failed to load news", category="error")
            state.login(user, [])
            state.articles_loaded = False
        else:
            state.login(user, articles)

        logger.info("User %s signed in", user.id)
        _flash(request, f"Welcome back, {user.name}!")
        return _redirect(request, "news_list")

    @router.get("/logout", name="logout")
    def logout(request: Request):
        state = _load_state(request)
        if state.current_user is not None:
            logger.info("User %s signed out", state.current_user.id)
        state.logout()
        request.session.pop(CURRENT_USER_KEY, None)
        _flash(request, "Logged out successfully")
        return _redirect(request, "show_login")

    @router.get("/home", name="go_home")
    def go_home(request: Request):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect
        state.go_home()
        return _redirect(request, "news_list")

    @router.get("/news", response_class=HTMLResponse, name="news_list")
    def news_list(
        request: Request,
        q: Optional[str] = Query(None),
        page: Optional[str] = Query(None),
    ):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect

        requested_page: Optional[int] = None
        if page is not None:
            try:
                requested_page = int(page)
            except ValueError:
                requested_page = 1
        if not state.articles_loaded:
            _refresh_articles(request, state)

        projection = state.show_list(
            query=q,
            page=requested_page,
            page_size=settings.page_size,
            preview_limit=settings.preview_limit,
        )
        return _render(request, state, "news_list.html", projection=projection)

    @router.get("/news/new", response_class=HTMLResponse, name="create_form")
    def create_form(request: Request):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect
        state.navigate(View.CREATE)
        return _render_article_form(request, state, ArticleForm(title="", body=""))

    @router.post("/news", name="create_article")
    def create_article(request: Request, title: str = Form(""), body: str = Form("")):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect

        form = validate_article(title, body, min_body_length=settings.min_body_length)
        if not form.is_valid:
            return _render_article_form(
                request, state, form, status_code=status.HTTP_400_BAD_REQUEST
            )

        try:
            with state.busy():
                gateway.create_article(form.title, form.body, state.current_user.id)
                _flash(request, "Article published successfully!")
                _refresh_articles(request, state)
                state.navigate(View.LIST)
        except StateBusy as exc:
            _flash(request, str(exc), category="warning")
            return _redirect(request, "create_form")
        except TransportError:
            _flash(request, "Failed to publish article", category="error")
            return _render_article_form(
                request, state, form, status_code=status.HTTP_502_BAD_GATEWAY
            )
        return _redirect(request, "news_list")

    @router.get("/news/{article_id}", response_class=HTMLResponse, name="article_detail")
    def article_detail(article_id: str, request: Request):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect

        identifier = _parse_item_id(article_id)
        if identifier is None:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return _redirect(request, "news_list")

        try:
            detail = view_article(
                gateway, identifier, current_user=state.current_user, users=state.users
            )
        except TransportError:
            _flash(request, "Failed to load the article", category="error")
            return _redirect(request, "news_list")
        if detail is None:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return _redirect(request, "news_list")

        state.select_article(identifier)
        state.navigate(View.DETAIL)
        return _render_detail(request, state, detail)

    @router.post("/news/{article_id}/comments", name="post_comment")
    def post_comment(article_id: str, request: Request, text: str = Form("")):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect

        identifier = _parse_item_id(article_id)
        if identifier is None:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return _redirect(request, "news_list")

        errors = validate_comment(text)
        if errors:
            try:
                detail = view_article(
                    gateway, identifier, current_user=state.current_user, users=state.users
                )
            except TransportError:
                detail = None
            if detail is None:
                _flash(request, errors["text"], category="error")
                return _redirect(request, "article_detail", article_id=identifier)
            return _render_detail(
                request,
                state,
                detail,
                comment_text=text,
                comment_error=errors["text"],
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            with state.busy():
                comment_writer.append(identifier, state.current_user.id, text.strip())
                _flash(request, "Comment posted!")
                _refresh_articles(request, state)
        except StateBusy as exc:
            _flash(request, str(exc), category="warning")
        except ArticleNotFound:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return _redirect(request, "news_list")
        except TransportError:
            _flash(request, "Failed to post comment", category="error")
        return _redirect(request, "article_detail", article_id=identifier)

    @router.get("/news/{article_id}/edit", response_class=HTMLResponse, name="edit_form")
    def edit_form(article_id: str, request: Request):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect

        identifier = _parse_item_id(article_id)
        if identifier is None:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return _redirect(request, "news_list")

        try:
            article = _fetch_owned_article(request, state, identifier, action="edit")
        except TransportError:
            _flash(request, "Failed to load the article", category="error")
            article = None
        if article is None:
            return _back_to(request, state, identifier)

        state.navigate(View.EDIT)
        return _render_article_form(
            request,
            state,
            ArticleForm(title=article.title, body=article.body),
            article_id=identifier,
        )

    @router.post("/news/{article_id}/edit", name="update_article")
    def update_article(
        article_id: str,
        request: Request,
        title: str = Form(""),
        body: str = Form(""),
    ):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect

        identifier = _parse_item_id(article_id)
        if identifier is None:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return _redirect(request, "news_list")

        form = validate_article(title, body, min_body_length=settings.min_body_length)
        if not form.is_valid:
            return _render_article_form(
                request,
                state,
                form,
                article_id=identifier,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            with state.busy():
                if _fetch_owned_article(request, state, identifier, action="edit") is None:
                    return _back_to(request, state, identifier)
                gateway.update_article(identifier, title=form.title, body=form.body)
                _flash(request, "Article updated successfully!")
                _refresh_articles(request, state)
        except StateBusy as exc:
            _flash(request, str(exc), category="warning")
            return _redirect(request, "edit_form", article_id=identifier)
        except TransportError:
            _flash(request, "Failed to update article", category="error")
            return _render_article_form(
                request,
                state,
                form,
                article_id=identifier,
                status_code=status.HTTP_502_BAD_GATEWAY,
            )

        if state.selected_article_id == identifier:
            return _redirect(request, "article_detail", article_id=identifier)
        state.navigate(View.LIST)
        return _redirect(request, "news_list")

    @router.post("/news/{article_id}/delete", name="delete_article")
    def delete_article(article_id: str, request: Request):
        state, redirect = _authenticated_state(request)
        if redirect is not None:
            return redirect

        identifier = _parse_item_id(article_id)
        if identifier is None:
            _flash(request, NOT_FOUND_MESSAGE, category="error")
            return _redirect(request, "news_list")

        try:
            with state.busy():
                if _fetch_owned_article(request, state, identifier, action="delete") is None:
                    return _back_to(request, state, identifier)
                gateway.delete_article(identifier)
                _flash(request, "Article deleted successfully")
                _refresh_articles(request, state)
                state.select_article(None)
                state.navigate(View.LIST)
        except StateBusy as exc:
            _flash(request, str(exc), category="warning")
            return _back_to(request, state, identifier)
        except TransportError:
            _flash(request, "Failed to delete article", category="error")
            return _back_to(request, state, identifier)
        return _redirect(request, "news_list")

    @router.get("/healthz", name="healthz")
    def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok", "store": gateway.base_url})

    @app.exception_handler(NotAuthenticated)
    async def handle_not_authenticated(request: Request, exc: NotAuthenticated):
        _flash(request, str(exc), category="error")
        return _redirect(request, "show_login")

    app.include_router(router)


__all__ = ["CURRENT_USER_KEY", "register_ui_routes"]
