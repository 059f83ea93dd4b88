"""SQLite key/value persistence for the account store."""

import json
import sqlite3
from pathlib import Path
from typing import Any

import structlog


logger = structlog.get_logger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key   TEXT PRIMARY KEY,
    value TEXT
);

-- Load/save bookkeeping
CREATE TABLE IF NOT EXISTS sync_meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);
"""

ACCOUNTS_KEY = "llcFinancialData"


class Database:
    """SQLite database wrapper for the local store."""

    def __init__(self, db_path: str | Path | None = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite file, or None/":memory:" for in-memory DB.
        """
        if db_path is None:
            db_path = ":memory:"
        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def init_schema(self) -> None:
        """Create all tables."""
        conn = self.connect()
        conn.executescript(SCHEMA)
        conn.commit()

    # -------------------------------------------------------------------------
    # Key/value store
    # -------------------------------------------------------------------------

    def get_value(self, key: str) -> str | None:
        conn = self.connect()
        row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_value(self, key: str, value: str) -> None:
        conn = self.connect()
        conn.execute(
            "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    def delete_value(self, key: str) -> int:
        conn = self.connect()
        cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()
        return cursor.rowcount

    # -------------------------------------------------------------------------
    # Sync metadata
    # -------------------------------------------------------------------------

    def get_meta(self, key: str) -> str | None:
        """Get metadata value by key."""
        conn = self.connect()
        row = conn.execute(
            "SELECT value FROM sync_meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        """Set metadata value."""
        conn = self.connect()
        conn.execute(
            "INSERT OR REPLACE INTO sync_meta (key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()


class AccountStore:
    """Persisted account store: one JSON object keyed by slot id.

    Persistence is best-effort: read and write failures are logged and never
    raised to the caller.
    """

    def __init__(self, db: Database, key: str = ACCOUNTS_KEY):
        self.db = db
        self.key = key

    def get(self) -> dict[str, Any] | None:
        """Return the stored accounts, or None if absent or unreadable."""
        try:
            raw = self.db.get_value(self.key)
        except sqlite3.Error as e:
            logger.error("store_read_failed", key=self.key, error=str(e))
            return None
        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("store_decode_failed", key=self.key, error=str(e))
            return None
        if not isinstance(data, dict):
            logger.error("store_not_an_object", key=self.key)
            return None
        return data

    def set(self, data: dict[str, Any]) -> bool:
        """Persist the accounts. Returns False if the write failed."""
        try:
            self.db.set_value(self.key, json.dumps(data, ensure_ascii=False))
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error("store_write_failed", key=self.key, error=str(e))
            return False
        return True

    def clear(self) -> None:
        self.db.delete_value(self.key)
