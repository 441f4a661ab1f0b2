# src/deskboard/storage/kv_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..core.errors import StoreError

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
EVENTS_KEY = "events"
VIEW_MODE_KEY = "viewMode"

# Pre-dual-view layout kept a single list per kind.
LEGACY_ITEMS_KEY = "items"
LEGACY_MINIMIZED_KEY = "minimized"


def items_key(mode: str) -> str:
    return f"items:{mode}"


def minimized_key(mode: str) -> str:
    return f"minimized:{mode}"


class KeyValueStore:
    """
    SQLite key -> serialized blob map.

    No business logic lives here: the core (de)serializes its own values.
    Reads never fail hard: a malformed blob reads as the caller's default.

    Thread-safety:
    - each method opens its own SQLite connection
    - set_many() writes all keys in one transaction (all-or-nothing)
    """

    def __init__(self, db_path: str | Path = "deskboard.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = len(self.keys())
        except Exception:
            total = -1
        logger.info("KeyValueStore ready db=%s keys=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---- raw API ----

    def get(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return None if row is None else str(row["value"])
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        if not values:
            return
        now = time.time()
        conn = self._get_conn()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    [(k, v, now) for k, v in values.items()],
                )
        except sqlite3.Error as e:
            raise StoreError(f"write failed for keys={sorted(values)}: {e}") from e
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StoreError(f"delete failed for key={key}: {e}") from e
        finally:
            conn.close()

    def keys(self) -> list[str]:
        conn = self._get_conn()
        try:
            return [str(r["key"]) for r in conn.execute("SELECT key FROM kv ORDER BY key")]
        finally:
            conn.close()

    # ---- JSON helpers ----

    def get_json(self, key: str, default: Any) -> Any:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Malformed blob under key=%s; treating as empty.", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))

    def set_many_json(self, values: Mapping[str, Any]) -> None:
        self.set_many({k: json.dumps(v, ensure_ascii=False) for k, v in values.items()})

    def get_list(self, key: str) -> list[Any]:
        val = self.get_json(key, [])
        if not isinstance(val, list):
            logger.warning("Expected a list under key=%s, got %s; treating as empty.", key, type(val).__name__)
            return []
        return val
