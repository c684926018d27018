"""Durable key-value state: debounce timers and down-observation log entries."""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from .models import LogEntry

logger = logging.getLogger(__name__)

LAST_EMAIL_SENT_KEY = "lastEmailSentTime"
LAST_CHAT_REPORT_KEY = "lastDiscordReportTime"


class StoreError(Exception):
    """Raised when a state store read or write fails."""

    pass


class StateStore(Protocol):
    """Mapping from string keys to string values that outlives the process."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


# SQLite allows concurrent reads but only one writer at a time.
# Probe worker threads write log entries concurrently through one connection.
_db_lock = threading.Lock()


class SqliteStore:
    """State store backed by a single SQLite key-value table."""

    def __init__(self, db_path: str) -> None:
        """Open (and create if needed) the database at db_path.

        Raises:
            StoreError: If the database cannot be initialized.
        """
        self._path = db_path
        try:
            parent_dir = Path(db_path).parent
            if not parent_dir.exists():
                parent_dir.mkdir(parents=True, exist_ok=True)

            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            self._conn.commit()

        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialize state store: {e}")
        except OSError as e:
            raise StoreError(f"Failed to create state store directory: {e}")

    @property
    def path(self) -> str:
        return self._path

    def get(self, key: str) -> str | None:
        try:
            with _db_lock:
                row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
                return row[0] if row else None
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read '{key}': {e}")

    def put(self, key: str, value: str) -> None:
        try:
            with _db_lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (key, value),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write '{key}': {e}")

    def keys(self, prefix: str = "") -> list[str]:
        """Return stored keys starting with prefix, sorted."""
        try:
            with _db_lock:
                cursor = self._conn.execute(
                    "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                )
                return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list keys: {e}")

    def close(self) -> None:
        self._conn.close()


def get_timer(store: StateStore, name: str) -> int:
    """Read a debounce timer as epoch milliseconds; absent reads as 0.

    Raises:
        StoreError: If the store read fails.
    """
    value = store.get(name)
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring unparsable value for %s: %r", name, value)
        return 0


def set_timer(store: StateStore, name: str, epoch_ms: int) -> None:
    """Write a debounce timer as epoch milliseconds."""
    store.put(name, str(epoch_ms))


def save_log_entry(store: StateStore, entry: LogEntry) -> None:
    """Persist a down observation under its log:<timestamp>:<website>:<attempt> key."""
    store.put(entry.key, entry.to_json())
