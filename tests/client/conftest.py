"""Fixtures for the sync agent tests."""

import json

import httpx
import pytest

from anithing_client.api_client import ApiClient
from anithing_client.config import Config
from anithing_client.database import LocalStore
from anithing_client.services.media_cache import MediaCache
from anithing_client.services.offline_queue import OfflineQueue


class FakeBackend:
    """
    Scriptable stand-in for the HTTP API.

    ``fail(path, *outcomes)`` queues outcomes for the next requests to
    `path`: an int status code, a ready httpx.Response, or an exception
    instance to raise.
    Unscripted requests succeed.
    """

    def __init__(self):
        self.requests: list[tuple[str, str, dict | None]] = []
        self.scripted: dict[str, list] = {}
        self.titles: dict[int, dict] = {}

    def fail(self, path: str, *outcomes) -> None:
        self.scripted.setdefault(path, []).extend(outcomes)

    def sent(self, path: str | None = None) -> list[dict | None]:
        return [body for _, p, body in self.requests if path is None or p == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v1")
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        outcomes = self.scripted.get(path)
        if outcomes:
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, httpx.Response):
                return outcome
            return httpx.Response(
                outcome,
                json={
                    "success": False,
                    "error": {"code": "SCRIPTED", "message": f"scripted {outcome}"},
                },
            )

        if path.startswith("/titles/"):
            title = self.titles.get(int(path.rsplit("/", 1)[1]))
            if title is None:
                return httpx.Response(
                    404,
                    json={"success": False, "error": {"code": "NOT_FOUND", "message": "Title not found"}},
                )
            return httpx.Response(200, json={"success": True, "data": {"title": title}})

        if path == "/titles":
            query = request.url.params["q"].lower()
            results = [t for t in self.titles.values() if query in t["title"].lower()]
            return httpx.Response(200, json={"success": True, "data": {"results": results}})

        return httpx.Response(200, json={"success": True, "data": {}})


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def config(tmp_path):
    return Config(
        API_URL="http://backend.test/api/v1",
        API_TOKEN="token",
        CACHE_DB_URL=f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}",
        MAX_RETRIES=3,
        REQUEST_TIMEOUT=5.0,
    )


@pytest.fixture
async def store(config):
    store = LocalStore(config.CACHE_DB_URL)
    await store.init()
    yield store
    await store.close()


@pytest.fixture
async def api(config, backend):
    client = ApiClient(config, transport=httpx.MockTransport(backend))
    yield client
    await client.close()


@pytest.fixture
def queue(store, api, config):
    return OfflineQueue(store, api, max_retries=config.MAX_RETRIES)


@pytest.fixture
def cache(store):
    return MediaCache(store, recent_limit=10, search_history_limit=3)
