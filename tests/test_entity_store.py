"""Tests for the EntityStore durable cache."""

import pytest

from catalogsync.cache import EntityStore
from catalogsync.errors import NotFound, StorageError
from catalogsync.models import Entity


@pytest.fixture
def store():
    """Create an in-memory EntityStore for testing."""
    store = EntityStore(":memory:")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def countries():
    return [
        Entity(name="Turkey", region="Asia", capital="Ankara", currency="TRY",
               language="Turkish", image_url="https://flags.example/tr.png"),
        Entity(name="Japan", region="Asia", capital="Tokyo", currency="JPY",
               language="Japanese"),
        Entity(name="Peru", region="South America", capital="Lima"),
    ]


class TestEntityStoreSchema:
    """Tests for database schema initialization."""

    def test_connect_creates_table(self):
        """Test that connect() creates the entity table."""
        store = EntityStore(":memory:")
        store.connect()

        tables = store._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
        table_names = [t[0] for t in tables]

        assert "entity" in table_names
        store.close()

    def test_connect_is_idempotent(self, store):
        """Test that calling connect() multiple times is safe."""
        store.connect()
        store.connect()

        assert store.count() == 0

    def test_lazy_connect(self):
        """Test operations connect on first use."""
        store = EntityStore(":memory:")

        assert store.read_all() == []
        store.close()

    def test_unopenable_path_raises_storage_error(self, tmp_path):
        """Test a path that cannot be created raises StorageError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = EntityStore(blocker / "catalog.db")

        with pytest.raises(StorageError):
            store.connect()


class TestReplaceAll:
    """Tests for the atomic bulk replace."""

    def test_assigns_ids_in_order(self, store, countries):
        """Test replace_all returns entities with ids in input order."""
        stored = store.replace_all(countries)

        assert [e.uuid for e in stored] == [1, 2, 3]
        assert [e.name for e in stored] == ["Turkey", "Japan", "Peru"]
        assert stored[0].image_url == "https://flags.example/tr.png"

    def test_read_all_matches_replace_result(self, store, countries):
        """Test re-reading returns exactly the returned ids, in the same order."""
        stored = store.replace_all(countries)

        assert store.read_all() == stored

    def test_replace_discards_previous(self, store, countries):
        """Test a second replace drops every earlier entity."""
        store.replace_all(countries)
        store.replace_all([Entity(name="Chile")])

        entities = store.read_all()

        assert [e.name for e in entities] == ["Chile"]

    def test_ids_never_recycled(self, store, countries):
        """Test identifiers keep increasing across replaces."""
        first = store.replace_all(countries)
        second = store.replace_all(countries)

        assert [e.uuid for e in second] == [4, 5, 6]
        assert {e.uuid for e in first}.isdisjoint({e.uuid for e in second})

    def test_ids_never_recycled_after_clear(self, store, countries):
        """Test clear() does not reset the identifier sequence."""
        store.replace_all(countries)
        store.clear()

        stored = store.replace_all([Entity(name="Chile")])

        assert stored[0].uuid == 4

    def test_replace_with_empty(self, store, countries):
        """Test replacing with an empty collection empties the store."""
        store.replace_all(countries)

        assert store.replace_all([]) == []
        assert store.read_all() == []

    def test_input_not_mutated(self, store, countries):
        """Test the input entities keep uuid 0."""
        store.replace_all(countries)

        assert all(e.uuid == 0 for e in countries)

    def test_failed_replace_keeps_old_collection(self, store, countries):
        """Test a failure mid-transaction rolls back to the previous snapshot."""
        before = store.replace_all(countries)

        store._conn.execute(
            """
            CREATE TRIGGER reject_bad BEFORE INSERT ON entity
            WHEN NEW.name = 'Bad'
            BEGIN SELECT RAISE(ABORT, 'rejected'); END
            """
        )

        with pytest.raises(StorageError):
            store.replace_all([Entity(name="Chile"), Entity(name="Bad")])

        assert store.read_all() == before


class TestReads:
    """Tests for read operations."""

    def test_read_by_id(self, store, countries):
        """Test reading a single entity."""
        stored = store.replace_all(countries)

        entity = store.read_by_id(stored[1].uuid)

        assert entity == stored[1]
        assert entity.capital == "Tokyo"

    def test_read_by_id_not_found(self, store):
        """Test a miss raises NotFound."""
        with pytest.raises(NotFound) as exc_info:
            store.read_by_id(42)

        assert exc_info.value.uuid == 42

    def test_read_by_id_stale_identifier(self, store, countries):
        """Test an identifier from a previous generation is a miss."""
        old = store.replace_all(countries)
        store.replace_all(countries)

        with pytest.raises(NotFound):
            store.read_by_id(old[0].uuid)

    def test_nullable_fields(self, store):
        """Test entities with all fields null round-trip."""
        stored = store.replace_all([Entity()])

        assert store.read_by_id(stored[0].uuid) == Entity(uuid=stored[0].uuid)

    def test_read_error_raises_storage_error(self, store):
        """Test driver errors surface as StorageError."""
        store._conn.execute("DROP TABLE entity")

        with pytest.raises(StorageError):
            store.read_all()


class TestMaintenance:
    """Tests for clear and statistics."""

    def test_clear(self, store, countries):
        """Test clear empties the store."""
        store.replace_all(countries)

        store.clear()

        assert store.count() == 0

    def test_get_stats(self, store, countries):
        """Test statistics report count and last id."""
        store.replace_all(countries)
        store.replace_all(countries[:1])

        stats = store.get_stats()

        assert stats["entity_count"] == 1
        assert stats["last_uuid"] == 4

    def test_get_stats_empty(self, store):
        """Test statistics on a never-used store."""
        stats = store.get_stats()

        assert stats["entity_count"] == 0
        assert stats["last_uuid"] == 0

    def test_persists_across_connections(self, tmp_path, countries):
        """Test the snapshot survives reopening the database file."""
        path = tmp_path / "catalog.db"
        first = EntityStore(path)
        stored = first.replace_all(countries)
        first.close()

        second = EntityStore(path)
        assert second.read_all() == stored
        assert "db_size_mb" in second.get_stats()
        second.close()
