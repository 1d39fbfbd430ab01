from __future__ import annotations

import copy
import json
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("NEWSPORTAL_SESSION_SECRET", "tests-secret-key")

from newsportal.config import PortalSettings
from newsportal.gateway import NewsGateway

STORE_URL = "http://store.test"


class FakeNewsStore:
    """In-memory stand-in for json-server's /users and /news collections."""

    def __init__(self, users: List[dict], news: List[dict]) -> None:
        self.users = copy.deepcopy(users)
        self.news = copy.deepcopy(news)
        self.requests: List[Tuple[str, str, Optional[dict]]] = []
        self.failures: Dict[Tuple[str, str], int] = {}
        self.offline = False

    def fail(self, method: str, path: str, status_code: int = 500) -> None:
        self.failures[(method, path)] = status_code

    def mutations(self) -> List[Tuple[str, str, Optional[dict]]]:
        return [entry for entry in self.requests if entry[0] != "GET"]

    def _find(self, raw_id: str) -> Optional[dict]:
        for item in self.news:
            if str(item["id"]) == raw_id:
                return item
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        payload = json.loads(request.content) if request.content else None
        self.requests.append((method, path, payload))

        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        status_code = self.failures.pop((method, path), None)
        if status_code is not None:
            return httpx.Response(status_code, json={"message": "store failure"})

        if path == "/users" and method == "GET":
            return httpx.Response(200, json=self.users)

        if path == "/news":
            if method == "GET":
                ordered = self.news
                if request.url.params.get("_sort") == "id":
                    reverse = request.url.params.get("_order") == "desc"
                    ordered = sorted(self.news, key=lambda item: int(item["id"]), reverse=reverse)
                return httpx.Response(200, json=ordered)
            if method == "POST":
                created = dict(payload or {})
                created["id"] = max((int(item["id"]) for item in self.news), default=0) + 1
                self.news.append(created)
                return httpx.Response(201, json=created)

        if path.startswith("/news/"):
            item = self._find(path.rsplit("/", 1)[1])
            if item is None:
                return httpx.Response(404, json={})
            if method == "GET":
                return httpx.Response(200, json=item)
            if method == "PATCH":
                item.update(payload or {})
                return httpx.Response(200, json=item)
            if method == "DELETE":
                self.news.remove(item)
                return httpx.Response(200, json={})

        return httpx.Response(404, json={})


USERS = [
    {"id": 1, "name": "Alice Editor", "email": "alice@example.com"},
    {"id": "2", "name": "Bob Reporter", "email": "bob@example.com"},
]


def make_article(article_id: int, *, author_id: object = 1, title: Optional[str] = None, body: Optional[str] = None, comments: Optional[list] = None) -> dict:
    return {
        "id": article_id,
        "title": title or f"Headline number {article_id}",
        "body": body or f"Body text for article {article_id} with enough characters to pass.",
        "author_id": author_id,
        "comments": comments if comments is not None else [],
    }


@pytest.fixture
def store() -> FakeNewsStore:
    news = [make_article(1), make_article(2, author_id="2"), make_article(3)]
    return FakeNewsStore(USERS, news)


@pytest.fixture
def gateway(store: FakeNewsStore):
    client = httpx.Client(base_url=STORE_URL, transport=httpx.MockTransport(store.handler))
    portal_gateway = NewsGateway(STORE_URL, client=client)
    yield portal_gateway
    client.close()


@pytest.fixture
def settings() -> PortalSettings:
    return PortalSettings(api_base_url=STORE_URL, session_secret="not-so-secret")
