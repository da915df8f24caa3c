"""
Pytest configuration and shared fixtures.
"""

import pytest
import json
from typing import Dict, Any, Iterable, List, Optional

import requests

from tmdbcache.client import TMDbClient
from tmdbcache.config import Config, FetchSettings
from tmdbcache.logger import StructuredLogger
from tmdbcache.store import MemoryStore

BASE_URL = "https://api.tmdb.test/3"
API_KEY = "test-key-123"


def make_response(status: int = 200, payload: Any = None, text: Optional[str] = None) -> requests.Response:
    """Build a requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    resp.reason = "OK" if status < 400 else "Service Unavailable"
    body = text if text is not None else json.dumps(payload)
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    return resp


class FakeTMDb:
    """
    Stands in for requests.Session in front of TMDb.

    Pages list movie ids from `pages` (default: three ids per page derived from
    the page number). Anything in `failing` answers 503 on every call; keys are
    ("page", n) or ("movie", id).
    """

    def __init__(
        self,
        total_pages: int = 5,
        pages: Optional[Dict[int, List[int]]] = None,
        failing: Iterable[tuple] = (),
    ):
        self.total_pages = total_pages
        self.pages = pages or {}
        self.failing = set(failing)
        self.calls: List[tuple] = []
        self.params: List[dict] = []
        self.timeouts: List[float] = []

    def page_payload(self, page: int) -> Dict[str, Any]:
        ids = self.pages.get(page, [page * 100 + i for i in range(3)])
        payload = {
            "page": page,
            "results": [{"id": i, "title": f"Movie {i}"} for i in ids],
        }
        # None leaves the totals out, like a truncated TMDb answer
        if self.total_pages is not None:
            payload["total_pages"] = self.total_pages
            payload["total_results"] = self.total_pages * 20
        return payload

    def get(self, url, params=None, timeout=None):
        params = dict(params or {})
        path = url[len(BASE_URL):]
        if path == "/movie/popular":
            key = ("page", params["page"])
            payload = self.page_payload(params["page"])
        else:
            movie_id = int(path.rsplit("/", 1)[1])
            key = ("movie", movie_id)
            payload = {"id": movie_id, "title": f"Movie {movie_id}", "credits": {"cast": [], "crew": []}}

        self.calls.append(key)
        self.params.append(params)
        self.timeouts.append(timeout)
        if key in self.failing:
            return make_response(503, text='{"status_message": "try later"}')
        return make_response(200, payload)

    def count(self, key: tuple) -> int:
        return self.calls.count(key)

    def close(self):
        pass


@pytest.fixture
def config() -> Config:
    """Config with no pacing so tests run instantly."""
    return Config(
        api_key=API_KEY,
        base_url=BASE_URL,
        pages=FetchSettings(delay_ms=0, retries=3),
        details=FetchSettings(delay_ms=0, retries=3),
    )


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """Logger with no handlers; metrics still work."""
    return StructuredLogger(name="tmdbcache-test", enable_console=False, enable_file=False)


@pytest.fixture
def make_client():
    """Factory: TMDbClient backed by a FakeTMDb session. Returns (client, fake)."""
    def _make(**kwargs):
        fake = FakeTMDb(**kwargs)
        client = TMDbClient(API_KEY, base_url=BASE_URL, timeout=5.0, session=fake)
        return client, fake
    return _make


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def page_payload():
    """Factory for a popular page payload listing the given ids."""
    def _make(ids: Iterable[Any], total_pages: int = 5, page: int = 1) -> Dict[str, Any]:
        return {
            "page": page,
            "results": [{"id": i} for i in ids],
            "total_pages": total_pages,
        }
    return _make
