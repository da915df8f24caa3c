"""
Run configuration.

Settings are read from the environment exactly once, in the CLI, and handed
to the fetchers as a Config object. Nothing below the CLI reads os.environ.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_DELAY_MS = 250
DEFAULT_RETRIES = 3
BACKENDS = ("file", "sqlite")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised for missing or malformed configuration."""
    pass


@dataclass(frozen=True)
class FetchSettings:
    """Pacing policy for one fetcher."""

    delay_ms: int = DEFAULT_DELAY_MS
    retries: int = DEFAULT_RETRIES  # total attempts per item

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0


@dataclass(frozen=True)
class Config:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    language: str = "en-US"
    cache_dir: Path = Path("cache")
    backend: str = "file"
    start_page: int = 1
    end_page: Optional[int] = None
    refresh_total: bool = False
    pages: FetchSettings = field(default_factory=FetchSettings)
    details: FetchSettings = field(default_factory=FetchSettings)
    request_timeout: float = 15.0
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a Config from environment variables; unset values keep their defaults."""
        env = os.environ if environ is None else environ

        backend = env.get("CACHE_BACKEND", "file").strip().lower() or "file"
        if backend not in BACKENDS:
            raise ConfigError(f"CACHE_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}")

        log_level = env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if log_level not in LOG_LEVELS:
            raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

        log_dir = env.get("LOG_DIR", "").strip()

        return cls(
            api_key=env.get("TMDB_API_KEY", "").strip(),
            base_url=env.get("TMDB_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            language=env.get("TMDB_LANGUAGE", "en-US"),
            cache_dir=Path(env.get("CACHE_DIR", "cache")),
            backend=backend,
            start_page=_int(env, "START_PAGE", 1, minimum=1),
            end_page=_optional_int(env, "END_PAGE"),
            refresh_total=_flag(env, "REFRESH_TOTAL_PAGES"),
            pages=FetchSettings(
                delay_ms=_int(env, "DELAY_MS", DEFAULT_DELAY_MS, minimum=0),
                retries=_int(env, "RETRIES", DEFAULT_RETRIES, minimum=1),
            ),
            details=FetchSettings(
                delay_ms=_int(env, "DETAIL_DELAY_MS", DEFAULT_DELAY_MS, minimum=0),
                retries=_int(env, "DETAIL_RETRIES", DEFAULT_RETRIES, minimum=1),
            ),
            request_timeout=_float(env, "REQUEST_TIMEOUT", 15.0),
            host=env.get("HOST", "127.0.0.1"),
            port=_int(env, "PORT", 3000, minimum=1),
            log_level=log_level,
            log_dir=Path(log_dir) if log_dir else None,
        )

    def with_overrides(self, **changes) -> "Config":
        """Return a copy with the non-None values in changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError(
                "TMDB_API_KEY not set. Put it in .env, export it in your shell, or pass --api-key."
            )
        return self.api_key


def _int(env: Mapping[str, str], name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if minimum is not None and value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _optional_int(env: Mapping[str, str], name: str) -> Optional[int]:
    if not env.get(name, "").strip():
        return None
    return _int(env, name, 0, minimum=1)


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in ("1", "true", "yes", "on")
