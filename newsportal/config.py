"""Configuration management for the news portal front-end."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_API_BASE_URL = "http://localhost:3000"

_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in _FALSE_VALUES


def _positive_int(data: Mapping[str, object], key: str, default: int) -> int:
    raw = data.get(key, default)
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Configuration value '{key}' must be an integer") from exc
    if value < 1:
        raise ValueError(f"Configuration value '{key}' must be at least 1")
    return value


@dataclass(frozen=True)
class PortalSettings:
    """Runtime settings for the portal and its collection store."""

    api_base_url: str = DEFAULT_API_BASE_URL
    page_size: int = 6
    preview_limit: int = 150
    min_body_length: int = 20
    request_timeout: float = 10.0
    toast_duration_ms: int = 3000
    session_secret: Optional[str] = None
    session_ttl_minutes: int = 480
    secure_cookies: bool = False

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "PortalSettings":
        """Create :class:`PortalSettings` from raw dictionary data."""

        base_url = str(data.get("api_base_url") or DEFAULT_API_BASE_URL).strip()
        if not base_url:
            raise ValueError("Configuration value 'api_base_url' must not be empty")

        try:
            timeout = float(data.get("request_timeout", 10.0))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError("Configuration value 'request_timeout' must be a number") from exc
        if timeout <= 0:
            raise ValueError("Configuration value 'request_timeout' must be positive")

        secret = data.get("session_secret")
        return PortalSettings(
            api_base_url=base_url.rstrip("/"),
            page_size=_positive_int(data, "page_size", 6),
            preview_limit=_positive_int(data, "preview_limit", 150),
            min_body_length=_positive_int(data, "min_body_length", 20),
            request_timeout=timeout,
            toast_duration_ms=_positive_int(data, "toast_duration_ms", 3000),
            session_secret=str(secret) if secret else None,
            session_ttl_minutes=_positive_int(data, "session_ttl_minutes", 480),
            secure_cookies=_parse_bool(data.get("secure_cookies", False)),
        )

    def with_overrides(self, **changes: object) -> "PortalSettings":
        cleaned = {key: value for key, value in changes.items() if value is not None}
        if not cleaned:
            return self
        return replace(self, **cleaned)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "portal.yaml").resolve(strict=False)
    return candidate


def _environment_overrides(environ: Mapping[str, str]) -> Dict[str, object]:
    overrides: Dict[str, object] = {}
    api_url = environ.get("NEWSPORTAL_API_URL")
    if api_url:
        overrides["api_base_url"] = api_url
    page_size = environ.get("NEWSPORTAL_PAGE_SIZE")
    if page_size:
        overrides["page_size"] = page_size
    secret = environ.get("NEWSPORTAL_SESSION_SECRET")
    if secret:
        overrides["session_secret"] = secret
    secure = environ.get("NEWSPORTAL_SESSION_SECURE")
    if secure is not None:
        overrides["secure_cookies"] = secure
    return overrides


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> PortalSettings:
    """Load settings from YAML (when present) and apply environment overrides.

    An explicitly supplied ``config_path`` must exist; the default location is
    optional so the portal runs with built-in defaults.
    """

    env = os.environ if environ is None else environ
    explicit = config_path is not None or bool(env.get("NEWSPORTAL_CONFIG"))
    path = config_path or resolve_config_path(env.get("NEWSPORTAL_CONFIG"))

    raw: Dict[str, object] = {}
    if path.is_file():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        portal_section = loaded.get("portal", loaded)
        if not isinstance(portal_section, dict):
            raise ValueError("The 'portal' configuration section must be a mapping")
        raw.update(portal_section)
    elif explicit:
        raise ValueError(f"Configuration file not found: {path}")

    raw.update(_environment_overrides(env))
    return PortalSettings.from_dict(raw)


__all__ = ["DEFAULT_API_BASE_URL", "PortalSettings", "load_settings", "resolve_config_path"]
