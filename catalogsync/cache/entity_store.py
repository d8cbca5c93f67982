"""SQLite-backed durable cache for the entity collection."""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Sequence

from ..errors import NotFound, StorageError
from ..models import Entity

logger = logging.getLogger(__name__)

# AUTOINCREMENT keeps identifiers monotonic: a uuid is never handed out twice,
# even after every row has been deleted.
ENTITY_SCHEMA = """
CREATE TABLE IF NOT EXISTS entity (
    uuid INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    region TEXT,
    capital TEXT,
    currency TEXT,
    language TEXT,
    image_url TEXT
);
"""

COLUMNS = ("name", "region", "capital", "currency", "language", "image_url")


def _row_to_entity(row: sqlite3.Row) -> Entity:
    return Entity(
        uuid=row["uuid"],
        name=row["name"],
        region=row["region"],
        capital=row["capital"],
        currency=row["currency"],
        language=row["language"],
        image_url=row["image_url"],
    )


class EntityStore:
    """Last known-good snapshot of the entity collection.

    All connection access is serialized, so a reader always observes either
    the collection before a ``replace_all`` or the one after it.
    """

    def __init__(self, db_path: str | Path):
        """Initialize the entity store.

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
                conn.row_factory = sqlite3.Row
                conn.executescript(ENTITY_SCHEMA)
                conn.commit()
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Cannot open entity store {self.db_path}: {e}") from e

            self._conn = conn
            logger.info(f"EntityStore connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("EntityStore connection closed")

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure we have a database connection."""
        if self._conn is None:
            self.connect()
        return self._conn

    def replace_all(self, entities: Sequence[Entity]) -> list[Entity]:
        """Atomically discard the stored collection and store a new one.

        Args:
            entities: New collection, in display order.

        Returns:
            The same entities with fresh identifiers, in input order.

        Raises:
            StorageError: If the transaction failed; the old collection is kept.
        """
        with self._lock:
            conn = self._ensure_connected()
            try:
                stored = []
                with conn:
                    conn.execute("DELETE FROM entity")
                    for entity in entities:
                        cursor = conn.execute(
                            """
                            INSERT INTO entity (
                                name, region, capital, currency, language, image_url
                            ) VALUES (?, ?, ?, ?, ?, ?)
                            """,
                            tuple(getattr(entity, c) for c in COLUMNS),
                        )
                        stored.append(entity.with_id(cursor.lastrowid))
            except sqlite3.Error as e:
                raise StorageError(f"replace_all failed: {e}") from e

        logger.debug(f"Replaced cached collection with {len(stored)} entities")
        return stored

    def read_all(self) -> list[Entity]:
        """Return the current snapshot in insertion order."""
        with self._lock:
            conn = self._ensure_connected()
            try:
                cursor = conn.execute(
                    f"SELECT uuid, {', '.join(COLUMNS)} FROM entity ORDER BY uuid"
                )
                return [_row_to_entity(row) for row in cursor]
            except sqlite3.Error as e:
                raise StorageError(f"read_all failed: {e}") from e

    def read_by_id(self, uuid: int) -> Entity:
        """Return a single entity.

        Raises:
            NotFound: If no entity has this identifier.
        """
        with self._lock:
            conn = self._ensure_connected()
            try:
                row = conn.execute(
                    f"SELECT uuid, {', '.join(COLUMNS)} FROM entity WHERE uuid = ?",
                    (uuid,),
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"read_by_id failed: {e}") from e

        if row is None:
            raise NotFound(uuid)
        return _row_to_entity(row)

    def clear(self) -> None:
        """Delete every cached entity."""
        with self._lock:
            conn = self._ensure_connected()
            try:
                with conn:
                    conn.execute("DELETE FROM entity")
            except sqlite3.Error as e:
                raise StorageError(f"clear failed: {e}") from e
        logger.info("EntityStore cleared")

    def count(self) -> int:
        """Number of cached entities."""
        with self._lock:
            conn = self._ensure_connected()
            try:
                return conn.execute("SELECT COUNT(*) FROM entity").fetchone()[0]
            except sqlite3.Error as e:
                raise StorageError(f"count failed: {e}") from e

    def get_stats(self) -> dict[str, Any]:
        """Get database statistics.

        Returns:
            Dict with entity count, last assigned uuid and file size.
        """
        stats: dict[str, Any] = {"entity_count": self.count()}

        with self._lock:
            conn = self._ensure_connected()
            try:
                row = conn.execute(
                    "SELECT seq FROM sqlite_sequence WHERE name = 'entity'"
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"get_stats failed: {e}") from e
        stats["last_uuid"] = row[0] if row else 0

        if self.db_path.exists():
            stats["db_size_mb"] = round(self.db_path.stat().st_size / (1024 * 1024), 2)

        return stats
