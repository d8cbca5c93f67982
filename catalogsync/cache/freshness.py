"""Persistent "last successful sync" marker."""

import logging
import sqlite3
import threading
from pathlib import Path

from ..errors import StorageError

logger = logging.getLogger(__name__)

PREFERENCES_SCHEMA = """
CREATE TABLE IF NOT EXISTS preferences (
    key TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
"""

LAST_SYNC_KEY = "last_sync_time"

# Sentinel for "never synced"
NEVER = 0


class FreshnessStore:
    """Key-value preference store holding the freshness marker.

    The marker is nanoseconds since the Unix epoch. Reads fail open: if the
    store cannot be read, the cache is reported as never synced so that the
    caller refreshes rather than trusting stale data.
    """

    def __init__(self, db_path: str | Path):
        """Initialize the freshness store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Initialize database connection and schema."""
        with self._lock:
            if self._conn is not None:
                return
            try:
                if str(self.db_path) != ":memory:":
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)

                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.executescript(PREFERENCES_SCHEMA)
                conn.commit()
            except (sqlite3.Error, OSError) as e:
                raise StorageError(
                    f"Cannot open freshness store {self.db_path}: {e}"
                ) from e

            self._conn = conn
            logger.info(f"FreshnessStore connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def record_sync_time(self, timestamp: int) -> None:
        """Persist the marker, replacing any prior value.

        Raises:
            StorageError: If the value could not be written.
        """
        with self._lock:
            conn = self._ensure_connected()
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO preferences (key, value) VALUES (?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value
                        """,
                        (LAST_SYNC_KEY, timestamp),
                    )
            except sqlite3.Error as e:
                raise StorageError(f"record_sync_time failed: {e}") from e

    def last_sync_time(self) -> int:
        """Return the last recorded marker, or ``NEVER``."""
        try:
            with self._lock:
                conn = self._ensure_connected()
                row = conn.execute(
                    "SELECT value FROM preferences WHERE key = ?",
                    (LAST_SYNC_KEY,),
                ).fetchone()
        except (sqlite3.Error, StorageError) as e:
            logger.warning(f"Freshness store unreadable, treating as never synced: {e}")
            return NEVER

        return row[0] if row else NEVER

    def clear(self) -> None:
        """Reset the marker to ``NEVER``."""
        with self._lock:
            conn = self._ensure_connected()
            try:
                with conn:
                    conn.execute("DELETE FROM preferences")
            except sqlite3.Error as e:
                raise StorageError(f"clear failed: {e}") from e
