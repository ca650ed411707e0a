"""
Key-value storage backends for the record mirror.

Both backends hold JSON-encoded values keyed by record id and honour the
same contract:

* ``open()`` is idempotent and prepares the keyed collection.
* ``put_all()`` upserts every value in a single atomic step, so a concurrent
  ``get_all()`` sees either the previous or the next state, never a mix.
* ``get_all()`` returns an empty list for a store that was never populated.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..errors import StoreCorrupt, StoreUnavailable
from .config import DEFAULT_STORE_CONFIG, StoreConfig

logger = logging.getLogger(__name__)


def _decode(raw: str) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise StoreCorrupt(f"Stored record is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise StoreCorrupt(f"Stored record is a {type(value).__name__}, expected an object")
    return value


class KeyValueStore(ABC):
    """Capability interface over a persistent keyed collection."""

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def get_all(self) -> list[dict[str, Any]]: ...

    @abstractmethod
    def put_all(self, values: list[dict[str, Any]]) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local backend used by tests and ephemeral deployments."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[int | str, str] = {}
        self.simulate_unavailable = False

    def _check_available(self) -> None:
        if self.simulate_unavailable:
            raise StoreUnavailable("In-memory store is disabled")

    def open(self) -> None:
        self._check_available()

    def get_all(self) -> list[dict[str, Any]]:
        self._check_available()
        with self._lock:
            snapshot = list(self._data.values())
        return [_decode(raw) for raw in snapshot]

    def put_all(self, values: list[dict[str, Any]]) -> None:
        self._check_available()
        encoded = {value["id"]: json.dumps(value) for value in values}
        with self._lock:
            # Swap in a fresh mapping so readers holding the old one are unaffected
            merged = dict(self._data)
            merged.update(encoded)
            self._data = merged

    def clear(self) -> None:
        self._check_available()
        with self._lock:
            self._data = {}


class SqliteKeyValueStore(KeyValueStore):
    """On-disk backend: one SQLite table keyed by the JSON-encoded record id."""

    def __init__(self, config: StoreConfig = DEFAULT_STORE_CONFIG) -> None:
        self._config = config

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            self._config.data_dir.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._config.db_path)
        except (OSError, sqlite3.Error) as exc:
            raise StoreUnavailable(f"Cannot open {self._config.db_path}: {exc}") from exc

        try:
            yield conn
        except sqlite3.OperationalError as exc:
            raise StoreUnavailable(f"{self._config.db_name} is not usable: {exc}") from exc
        except sqlite3.DatabaseError as exc:
            raise StoreCorrupt(f"{self._config.db_name} is damaged: {exc}") from exc
        finally:
            conn.close()

    def open(self) -> None:
        cfg = self._config
        with self._connect() as conn:
            current = conn.execute("PRAGMA user_version").fetchone()[0]
            if current == cfg.version:
                return
            if current > cfg.version:
                raise StoreUnavailable(
                    f"{cfg.db_name} schema v{current} is newer than supported v{cfg.version}"
                )
            logger.info("Initialising %s schema v%d (found v%d)", cfg.db_name, cfg.version, current)
            with conn:
                conn.execute(
                    f'CREATE TABLE IF NOT EXISTS "{cfg.store_name}" '
                    "(id TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )
                conn.execute(
                    f'CREATE INDEX IF NOT EXISTS "{cfg.index_name}" ON "{cfg.store_name}" (id)'
                )
                conn.execute(f"PRAGMA user_version = {int(cfg.version)}")

    def get_all(self) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(f'SELECT value FROM "{self._config.store_name}"').fetchall()
        return [_decode(raw) for (raw,) in rows]

    def put_all(self, values: list[dict[str, Any]]) -> None:
        rows = [(json.dumps(value["id"]), json.dumps(value)) for value in values]
        with self._connect() as conn:
            with conn:
                conn.executemany(
                    f'INSERT INTO "{self._config.store_name}" (id, value) VALUES (?, ?) '
                    "ON CONFLICT(id) DO UPDATE SET value = excluded.value",
                    rows,
                )

    def clear(self) -> None:
        with self._connect() as conn:
            with conn:
                conn.execute(f'DELETE FROM "{self._config.store_name}"')
