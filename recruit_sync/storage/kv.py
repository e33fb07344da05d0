"""SQLite key/value storage — the durable store under the offline queue and cache."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from recruit_sync.storage.models import ALL_TABLES

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path("data/recruit_sync.db")


class StorageError(Exception):
    """Raised when the underlying SQLite write fails."""


class KeyValueStore:
    """Wraps SQLite as a JSON key/value store.

    Designed for single-threaded use from an async event loop — all calls are
    synchronous/blocking but complete without yielding, so each call is atomic
    with respect to other coroutines on the same loop.

    Reads fail open: a missing key or an unparseable stored value both read as
    ``None``. Writes raise StorageError so callers decide how loud to be.

    Usage::

        store = KeyValueStore()
        store.set("offline_queue", [])
        queue = store.get("offline_queue")
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    # ── Read API ────────────────────────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the decoded value for key, or None if absent or unreadable."""
        try:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Storage read failed for %r: %s", key, exc)
            return None
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding unparseable value stored under %r", key)
            return None

    def keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with prefix, sorted."""
        rows = self._conn.execute(
            "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
            (_escape_like(prefix) + "%",),
        ).fetchall()
        return [row["key"] for row in rows]

    # ── Write API ───────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under key in a single write.

        Raises:
            StorageError: if the value cannot be encoded or SQLite rejects the write.
        """
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value for {key!r} is not JSON-serialisable: {exc}") from exc
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv (key, value, updated_at)
                    VALUES (?, ?, datetime('now'))
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, encoded),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        """Remove key if present."""
        try:
            with self._conn:
                self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete {key!r}: {exc}") from exc

    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix. Returns the number removed."""
        try:
            with self._conn:
                cursor = self._conn.execute(
                    "DELETE FROM kv WHERE key LIKE ? ESCAPE '\\'",
                    (_escape_like(prefix) + "%",),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete prefix {prefix!r}: {exc}") from exc
        return cursor.rowcount

    # ── Private ─────────────────────────────────────────────────────────────────

    def _create_tables(self) -> None:
        with self._conn:
            for ddl in ALL_TABLES:
                self._conn.execute(ddl)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
