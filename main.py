"""Command-line interface for the news portal front-end."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

try:
    import httpx  # noqa: F401
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'httpx' package is required. Execute `pip install -e .` to install dependencies."
    ) from exc

from newsportal.config import PortalSettings, load_settings
from newsportal.gateway import NewsGateway, TransportError
from newsportal.projection import project_list

logger = logging.getLogger("newsportal.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="News portal utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: NEWSPORTAL_CONFIG or config/portal.yaml)",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Base URL of the json-server collection store (default: http://localhost:3000)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the news portal web server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the portal")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the portal (default: 8000)",
    )

    subparsers.add_parser("users", help="List the users known to the collection store")

    articles_parser = subparsers.add_parser(
        "articles", help="Show one page of the article list as the portal would"
    )
    articles_parser.add_argument("--search", default="", help="Case-insensitive title filter")
    articles_parser.add_argument("--page", type=int, default=1, help="Page number to display")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "users", "articles"}

    global_options = ("--config", "--api-url")
    command_index = 0
    while command_index < len(args_list):
        token = args_list[command_index]
        if token in global_options:
            command_index += 2
        elif token.startswith(tuple(f"{option}=" for option in global_options)):
            command_index += 1
        else:
            break

    if command_index >= len(args_list):
        args_list = [*args_list, "serve"]
    else:
        first = args_list[command_index]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = [*args_list[:command_index], "serve", *args_list[command_index:]]

    return parser.parse_args(args_list)


def _load_settings(args: argparse.Namespace) -> PortalSettings:
    config_path = Path(args.config).expanduser() if args.config else None
    try:
        settings = load_settings(config_path)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    return settings.with_overrides(api_base_url=args.api_url.rstrip("/") if args.api_url else None)


def _serve(settings: PortalSettings, *, host: str, port: int) -> None:
    from newsportal.service import create_app
    import uvicorn

    if not settings.session_secret:
        raise SystemExit(
            "Set NEWSPORTAL_SESSION_SECRET (or session_secret in the config file) before serving."
        )

    logger.info("Starting news portal on http://%s:%s", host, port)
    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(gateway: NewsGateway) -> int:
    try:
        users = gateway.list_users()
    except TransportError as exc:
        print(f"Failed to contact the news store: {exc}")
        return 1

    if not users:
        print("No users are currently registered.")
        return 0

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  Email")
    print("-" * 64)
    for user in users:
        email = user.email or "<no email>"
        print(f"{user.id:>4}  {user.name:<24}  {email}")
    return 0


def _show_articles(gateway: NewsGateway, settings: PortalSettings, *, search: str, page: int) -> int:
    try:
        users = gateway.list_users()
        articles = gateway.list_articles()
    except TransportError as exc:
        print(f"Failed to contact the news store: {exc}")
        return 1

    projection = project_list(
        articles,
        search_query=search,
        current_page=page,
        page_size=settings.page_size,
        users=users,
        preview_limit=settings.preview_limit,
    )
    if projection.is_empty:
        print("No articles found.")
        return 0

    print(
        f"Page {projection.page} of {projection.total_pages} "
        f"({projection.filtered_count} matching article(s))"
    )
    print(f"{'ID':>6}  {'Title':<40}  {'Author':<20}  Comments")
    print("-" * 80)
    for card in projection.items:
        title = card.title if len(card.title) <= 40 else card.title[:37] + "..."
        print(f"{card.id:>6}  {title:<40}  {card.author_name:<20}  {card.comment_count}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = _load_settings(args)

    if args.command == "serve":
        _serve(settings, host=args.host, port=args.port)
        return 0

    gateway = NewsGateway(settings.api_base_url, timeout=settings.request_timeout)
    try:
        if args.command == "users":
            return _list_users(gateway)
        if args.command == "articles":
            return _show_articles(gateway, settings, search=args.search, page=args.page)
    finally:
        gateway.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
