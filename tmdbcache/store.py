"""
Cache stores.

A store is a flat key -> JSON document map. Presence of a key is the cache
hit: fetchers check has() before going to the network and never overwrite an
entry. FileStore keeps one pretty-printed file per key (the layout the HTTP
server has always exposed); MemoryStore backs the tests; SqliteStore keeps the
same keys in one SQLite file.
"""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from .database import CacheEntry, init_database, session_factory

KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
PAGE_KEY_RE = re.compile(r"^popular_page_(\d+)\.json$")
DETAIL_KEY_RE = re.compile(r"^movie_(\d+)\.json$")
PART_SUFFIX = ".part"


def page_key(page: int) -> str:
    return f"popular_page_{page}.json"


def detail_key(movie_id: int) -> str:
    return f"movie_{movie_id}.json"


def page_number(key: str) -> Optional[int]:
    m = PAGE_KEY_RE.match(key)
    return int(m.group(1)) if m else None


def dumps(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def check_key(key: str) -> str:
    """Reject names that could leave the cache root or name an in-progress write."""
    if not isinstance(key, str) or not KEY_RE.match(key) or key.strip(".") == "":
        raise ValueError(f"Invalid cache key: {key!r}")
    if key.endswith(PART_SUFFIX):
        raise ValueError(f"Invalid cache key: {key!r}")
    return key


class CacheStore(ABC):
    """Interface shared by all cache backends."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Return True if an entry exists for key."""

    @abstractmethod
    def get_raw(self, key: str) -> str:
        """Return the stored text for key. Raises KeyError if absent."""

    @abstractmethod
    def put_raw(self, key: str, text: str) -> None:
        """Store text under key."""

    @abstractmethod
    def keys(self) -> List[str]:
        """List every key in the store."""

    def get(self, key: str) -> Any:
        """Return the parsed entry. Raises KeyError if absent, ValueError if not JSON."""
        return json.loads(self.get_raw(key))

    def put(self, key: str, value: Any) -> None:
        self.put_raw(check_key(key), dumps(value))

    def page_keys(self) -> List[str]:
        """Popular-page keys ordered by page number."""
        return sorted((k for k in self.keys() if PAGE_KEY_RE.match(k)), key=page_number)

    def detail_keys(self) -> List[str]:
        return sorted(k for k in self.keys() if DETAIL_KEY_RE.match(k))


class FileStore(CacheStore):
    def __init__(self, root: Path):
        self.root = Path(root)

    def __repr__(self):
        return f"FileStore({str(self.root)!r})"

    def _path(self, key: str) -> Path:
        return self.root / check_key(key)

    def has(self, key: str) -> bool:
        return self._path(key).is_file()

    def get_raw(self, key: str) -> str:
        path = self._path(key)
        if not path.is_file():
            raise KeyError(key)
        return path.read_text(encoding="utf-8")

    def put_raw(self, key: str, text: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # entries appear atomically; a .part file is never a cache hit
        tmp = path.with_name(path.name + PART_SUFFIX)
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)

    def keys(self) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            p.name for p in self.root.iterdir()
            if p.is_file() and KEY_RE.match(p.name) and not p.name.endswith(PART_SUFFIX)
        )


class MemoryStore(CacheStore):
    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self.entries: Dict[str, str] = dict(entries or {})

    def has(self, key: str) -> bool:
        return key in self.entries

    def get_raw(self, key: str) -> str:
        return self.entries[key]

    def put_raw(self, key: str, text: str) -> None:
        self.entries[check_key(key)] = text

    def keys(self) -> List[str]:
        return sorted(self.entries)


class SqliteStore(CacheStore):
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.engine = init_database(self.db_path)
        self.Session = session_factory(self.engine)

    def __repr__(self):
        return f"SqliteStore({str(self.db_path)!r})"

    def has(self, key: str) -> bool:
        session = self.Session()
        try:
            return session.get(CacheEntry, key) is not None
        finally:
            session.close()

    def get_raw(self, key: str) -> str:
        session = self.Session()
        try:
            entry = session.get(CacheEntry, key)
            if entry is None:
                raise KeyError(key)
            return entry.body
        finally:
            session.close()

    def put_raw(self, key: str, text: str) -> None:
        session = self.Session()
        try:
            session.merge(CacheEntry(key=check_key(key), body=text))
            session.commit()
        finally:
            session.close()

    def keys(self) -> List[str]:
        session = self.Session()
        try:
            return sorted(k for (k,) in session.query(CacheEntry.key).all())
        finally:
            session.close()


def open_store(backend: str, cache_dir: Path) -> CacheStore:
    """Open the configured backend rooted at cache_dir."""
    if backend == "file":
        return FileStore(cache_dir)
    if backend == "sqlite":
        return SqliteStore(Path(cache_dir) / "cache.db")
    raise ValueError(f"Unknown cache backend: {backend!r}")
