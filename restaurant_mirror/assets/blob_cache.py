from __future__ import annotations

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..errors import StoreCorrupt, StoreUnavailable

# Headers describing the wire encoding, not the cached body
_DROPPED_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def cache_key(url: str, ignore_search: bool = True) -> str:
    """Normalise a request URL into a cache lookup key."""
    parts = urlsplit(url)._replace(fragment="")
    if ignore_search:
        parts = parts._replace(query="")
    return urlunsplit(parts)


@dataclass(frozen=True)
class CacheEntry:
    url: str
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> CacheEntry:
        headers = {
            k: v for k, v in response.headers.items() if k.lower() not in _DROPPED_HEADERS
        }
        return cls(url=url, status_code=response.status_code, headers=headers, body=response.content)

    def to_response(self, request: httpx.Request | None = None) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.body,
            request=request,
        )


class BlobCache(ABC):
    """Capability interface over a named bucket of cached responses."""

    name: str

    @abstractmethod
    def install(self, entries: list[CacheEntry]) -> None:
        """Commit every entry at once, or none of them."""

    @abstractmethod
    def match(self, url: str, ignore_search: bool = True) -> CacheEntry | None: ...

    @abstractmethod
    def put(self, entry: CacheEntry) -> None: ...

    @abstractmethod
    def keys(self) -> list[str]: ...

    @abstractmethod
    def clear(self) -> None: ...


class InMemoryBlobCache(BlobCache):
    def __init__(self, name: str = "restaurant-cache") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    def install(self, entries: list[CacheEntry]) -> None:
        with self._lock:
            merged = dict(self._entries)
            merged.update({entry.url: entry for entry in entries})
            self._entries = merged

    def match(self, url: str, ignore_search: bool = True) -> CacheEntry | None:
        with self._lock:
            entries = self._entries
        exact = entries.get(url)
        if exact is not None or not ignore_search:
            return exact
        wanted = cache_key(url)
        for stored_url, entry in entries.items():
            if cache_key(stored_url) == wanted:
                return entry
        return None

    def put(self, entry: CacheEntry) -> None:
        self.install([entry])

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries = {}


class SqliteBlobCache(BlobCache):
    """Buckets share one SQLite file, partitioned by bucket name."""

    def __init__(self, db_path: Path, name: str = "restaurant-cache") -> None:
        self.name = name
        self._db_path = db_path
        self._initialised = False

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._db_path)
        except (OSError, sqlite3.Error) as exc:
            raise StoreUnavailable(f"Cannot open asset cache {self._db_path}: {exc}") from exc

        try:
            if not self._initialised:
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS cache_entries ("
                    "bucket TEXT NOT NULL, url TEXT NOT NULL, search_key TEXT NOT NULL, "
                    "status INTEGER NOT NULL, headers TEXT NOT NULL, body BLOB NOT NULL, "
                    "PRIMARY KEY (bucket, url))"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS cache_entries_search "
                    "ON cache_entries (bucket, search_key)"
                )
                self._initialised = True
            yield conn
        except sqlite3.OperationalError as exc:
            raise StoreUnavailable(f"Asset cache {self.name!r} is not usable: {exc}") from exc
        except sqlite3.DatabaseError as exc:
            raise StoreCorrupt(f"Asset cache {self.name!r} is damaged: {exc}") from exc
        finally:
            conn.close()

    def install(self, entries: list[CacheEntry]) -> None:
        rows = [
            (self.name, e.url, cache_key(e.url), e.status_code, json.dumps(e.headers), e.body)
            for e in entries
        ]
        with self._connect() as conn:
            with conn:
                conn.executemany(
                    "INSERT OR REPLACE INTO cache_entries "
                    "(bucket, url, search_key, status, headers, body) VALUES (?, ?, ?, ?, ?, ?)",
                    rows,
                )

    def match(self, url: str, ignore_search: bool = True) -> CacheEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT url, status, headers, body FROM cache_entries WHERE bucket = ? AND url = ?",
                (self.name, url),
            ).fetchone()
            if row is None and ignore_search:
                row = conn.execute(
                    "SELECT url, status, headers, body FROM cache_entries "
                    "WHERE bucket = ? AND search_key = ? ORDER BY rowid LIMIT 1",
                    (self.name, cache_key(url)),
                ).fetchone()
        if row is None:
            return None

        stored_url, status, raw_headers, body = row
        try:
            headers = json.loads(raw_headers)
        except ValueError as exc:
            raise StoreCorrupt(f"Cached headers for {stored_url} are unreadable") from exc
        return CacheEntry(url=stored_url, status_code=status, headers=headers, body=bytes(body))

    def put(self, entry: CacheEntry) -> None:
        self.install([entry])

    def keys(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT url FROM cache_entries WHERE bucket = ? ORDER BY rowid", (self.name,),
            ).fetchall()
        return [url for (url,) in rows]

    def clear(self) -> None:
        with self._connect() as conn:
            with conn:
                conn.execute("DELETE FROM cache_entries WHERE bucket = ?", (self.name,))
