from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

LOGGER = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS client_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


@contextmanager
def get_connection(db_path: str) -> Iterator[sqlite3.Connection]:
    path = Path(db_path)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        with conn:
            yield conn
    finally:
        conn.close()


class SqliteStore:
    """Client-local key-value store that survives process restarts."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        with get_connection(db_path) as conn:
            conn.executescript(SCHEMA_SQL)
        LOGGER.debug("Client state store ready at %s", db_path)

    def get(self, key: str) -> str | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute("SELECT value FROM client_state WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO client_state (key, value) VALUES (?, ?)",
                (key, value),
            )

    def delete(self, key: str) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute("DELETE FROM client_state WHERE key = ?", (key,))


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)
