"""TMDb API client and the shared fetch-with-retry primitive."""

from typing import Any, Callable, Dict, Optional

import requests

from .config import Config, DEFAULT_BASE_URL
from .logger import StructuredLogger
from .retry import retry

TRANSIENT_ERRORS = (requests.exceptions.RequestException,)


class FetchError(Exception):
    """Raised for any non-2xx response. Carries the status code and body."""

    def __init__(self, status: int, reason: str = "", body: str = ""):
        super().__init__(f"HTTP {status} {reason}: {body}".strip())
        self.status = status
        self.body = body


def redact(text: str, secret: str) -> str:
    """Hide the API key in messages that echo the request URL."""
    return text.replace(secret, "***") if secret else text


def logging_callbacks(logger: StructuredLogger, label: str, secret: str = "") -> Dict[str, Callable]:
    """Attempt and retry hooks for fetch_json that report progress through logger."""

    def on_attempt(attempt: int):
        logger.record_api_call()
        logger.info(f"Fetching {label} (attempt {attempt})...")

    def on_retry(attempt, exc, delay):
        logger.warning(f"Failed {label} on attempt {attempt}: {redact(str(exc), secret)}")
        logger.info(f"Retrying after {int(delay * 1000)}ms...")

    return {"on_attempt": on_attempt, "on_retry": on_retry}


def fetch_json(
    session: requests.Session,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    attempts: int = 3,
    delay: float = 0.25,
    timeout: float = 15.0,
    on_attempt: Optional[Callable[[int], None]] = None,
    on_retry: Optional[Callable] = None,
) -> Any:
    """GET url and decode the JSON body, retrying transient failures.

    Every response outside 2xx becomes a FetchError and is retried like a
    connection error or timeout. After `attempts` tries the last error is
    raised wrapped in RetryError.

    Args:
        session: requests session used for the call
        url: Absolute URL
        params: Query parameters
        attempts: Total attempts, first call included
        delay: Seconds between attempts
        timeout: Per-request timeout in seconds
        on_attempt: Optional callback(attempt) invoked before each request
        on_retry: Optional callback(attempt, exception, delay) after a failure
    """
    attempt = [0]

    @retry(
        max_attempts=attempts,
        delay=delay,
        exceptions=(FetchError,) + TRANSIENT_ERRORS,
        on_retry=on_retry,
    )
    def _get():
        attempt[0] += 1
        if on_attempt:
            on_attempt(attempt[0])
        resp = session.get(url, params=params, timeout=timeout)
        if not resp.ok:
            raise FetchError(resp.status_code, resp.reason or "", resp.text)
        return resp.json()

    return _get()


class TMDbClient:
    """Thin wrapper around the two TMDb endpoints the cache is built from."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        language: str = "en-US",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Config, session: Optional[requests.Session] = None) -> "TMDbClient":
        return cls(
            api_key=config.require_api_key(),
            base_url=config.base_url,
            language=config.language,
            timeout=config.request_timeout,
            session=session,
        )

    def _get(self, path: str, params: Dict[str, Any], attempts: int, delay: float, **callbacks) -> Any:
        query = {"api_key": self.api_key, "language": self.language}
        query.update(params)
        return fetch_json(
            self.session,
            f"{self.base_url}{path}",
            params=query,
            attempts=attempts,
            delay=delay,
            timeout=self.timeout,
            **callbacks,
        )

    def popular_page(self, page: int, attempts: int = 3, delay: float = 0.25, **callbacks) -> Any:
        """GET /movie/popular for one page."""
        return self._get("/movie/popular", {"page": page}, attempts, delay, **callbacks)

    def movie_details(self, movie_id: int, attempts: int = 3, delay: float = 0.25, **callbacks) -> Any:
        """GET /movie/<id> with cast and crew embedded."""
        return self._get(
            f"/movie/{movie_id}", {"append_to_response": "credits"}, attempts, delay, **callbacks
        )

    def close(self) -> None:
        self.session.close()
