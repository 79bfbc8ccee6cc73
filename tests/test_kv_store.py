"""Tests for the key-value store backends."""

import pytest

from storage.kv_store import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    SQLiteKeyValueStore,
    create_store,
    load_json,
    save_json,
)


@pytest.fixture(params=["memory", "json", "sqlite"])
def any_store(request, tmp_path):
    """Each backend, writing under a temporary directory."""
    path = tmp_path / ("store.json" if request.param == "json" else "store.db")
    store = create_store(request.param, str(path))
    yield store
    store.close()


class TestKeyValueContract:
    """Behaviour shared by every backend."""

    def test_missing_key_is_none(self, any_store) -> None:
        """Unknown keys read as None."""
        assert any_store.get("missing") is None

    def test_set_then_get(self, any_store) -> None:
        """Stored bytes come back unchanged."""
        any_store.set("key", b"\x00value\xff")
        assert any_store.get("key") == b"\x00value\xff"

    def test_set_replaces(self, any_store) -> None:
        """A second set overwrites the first."""
        any_store.set("key", b"one")
        any_store.set("key", b"two")
        assert any_store.get("key") == b"two"

    def test_remove(self, any_store) -> None:
        """Removed keys disappear; removing twice is harmless."""
        any_store.set("key", b"value")
        any_store.remove("key")
        any_store.remove("key")
        assert any_store.get("key") is None

    def test_json_helpers(self, any_store) -> None:
        """JSON documents round-trip through the helpers."""
        save_json(any_store, "records", [{"name": "Alice", "confidence": 90}])
        assert load_json(any_store, "records", []) == [{"name": "Alice", "confidence": 90}]
        assert load_json(any_store, "absent", []) == []


class TestJsonFileStore:
    """Tests specific to the JSON file backend."""

    def test_survives_reopen(self, tmp_path) -> None:
        """Values written by one instance are read by the next."""
        path = tmp_path / "nested" / "store.json"
        JsonFileKeyValueStore(str(path)).set("key", b"value")

        assert JsonFileKeyValueStore(str(path)).get("key") == b"value"

    def test_no_temp_files_left(self, tmp_path) -> None:
        """Atomic writes clean up after themselves."""
        store = JsonFileKeyValueStore(str(tmp_path / "store.json"))
        store.set("a", b"1")
        store.set("b", b"2")

        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

    def test_corrupt_file_raises(self, tmp_path) -> None:
        """A damaged file is reported rather than treated as empty."""
        path = tmp_path / "store.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(ValueError):
            JsonFileKeyValueStore(str(path))


class TestSQLiteStore:
    """Tests specific to the SQLite backend."""

    def test_survives_reopen(self, tmp_path) -> None:
        """Values persist in the database file."""
        path = str(tmp_path / "store.db")
        first = SQLiteKeyValueStore(path)
        first.set("key", b"value")
        first.close()

        second = SQLiteKeyValueStore(path)
        assert second.get("key") == b"value"
        second.close()


class TestCreateStore:
    """Tests for create_store."""

    def test_memory(self) -> None:
        assert isinstance(create_store("memory"), InMemoryKeyValueStore)

    def test_backend_name_is_case_insensitive(self, tmp_path) -> None:
        assert isinstance(create_store("JSON", str(tmp_path / "s.json")), JsonFileKeyValueStore)

    def test_unknown_backend(self) -> None:
        """Unsupported backends are rejected."""
        with pytest.raises(ValueError):
            create_store("redis")
