"""Tests for the FreshnessStore marker."""

import sqlite3
import pytest

from catalogsync.cache import NEVER, FreshnessStore
from catalogsync.errors import StorageError


@pytest.fixture
def freshness():
    """Create an in-memory FreshnessStore."""
    store = FreshnessStore(":memory:")
    store.connect()
    yield store
    store.close()


class TestFreshnessStore:
    """Tests for recording and reading the marker."""

    def test_never_synced_initially(self, freshness):
        """Test a new store reports the never-synced sentinel."""
        assert freshness.last_sync_time() == NEVER == 0

    def test_record_and_read(self, freshness):
        """Test a recorded marker is returned."""
        freshness.record_sync_time(1_700_000_000_123_456_789)

        assert freshness.last_sync_time() == 1_700_000_000_123_456_789

    def test_record_replaces_prior_value(self, freshness):
        """Test a second record overwrites the first."""
        freshness.record_sync_time(100)
        freshness.record_sync_time(200)

        assert freshness.last_sync_time() == 200
        rows = freshness._conn.execute("SELECT COUNT(*) FROM preferences").fetchone()
        assert rows[0] == 1

    def test_clear_resets_to_never(self, freshness):
        """Test clear() restores the sentinel."""
        freshness.record_sync_time(100)

        freshness.clear()

        assert freshness.last_sync_time() == NEVER

    def test_survives_restart(self, tmp_path):
        """Test the marker persists across reopening the database file."""
        path = tmp_path / "prefs.db"
        first = FreshnessStore(path)
        first.record_sync_time(42)
        first.close()

        second = FreshnessStore(path)
        assert second.last_sync_time() == 42
        second.close()

    def test_shares_file_with_entity_store(self, tmp_path):
        """Test the marker can live in the same database as the entity table."""
        from catalogsync.cache import EntityStore
        from catalogsync.models import Entity

        path = tmp_path / "catalog.db"
        entities = EntityStore(path)
        freshness = FreshnessStore(path)

        entities.replace_all([Entity(name="Chile")])
        freshness.record_sync_time(7)

        assert freshness.last_sync_time() == 7
        assert entities.count() == 1
        entities.close()
        freshness.close()


class TestFreshnessFailures:
    """Tests for storage failures."""

    def test_unreadable_store_reads_as_never(self, tmp_path):
        """Test an unopenable store fails open to never synced."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = FreshnessStore(blocker / "prefs.db")

        assert store.last_sync_time() == NEVER

    def test_broken_table_reads_as_never(self, freshness):
        """Test a driver error on read fails open."""
        freshness.record_sync_time(100)
        freshness._conn.execute("DROP TABLE preferences")

        assert freshness.last_sync_time() == NEVER

    def test_record_failure_raises(self, freshness):
        """Test a failed write raises StorageError."""
        freshness._conn.execute("DROP TABLE preferences")

        with pytest.raises(StorageError) as exc_info:
            freshness.record_sync_time(100)

        assert isinstance(exc_info.value.__cause__, sqlite3.Error)

    def test_unopenable_connect_raises(self, tmp_path):
        """Test connect() on a bad path raises StorageError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = FreshnessStore(blocker / "prefs.db")

        with pytest.raises(StorageError):
            store.connect()
