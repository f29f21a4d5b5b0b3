"""
Tests for the JSON-file local store.
"""

import pytest

from ideaspark_client.storage import LocalStore
from shared.errors import LocalStorageUnavailable


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "nested" / "storage.json")


class TestLocalStore:

    def test_missing_file_reads_as_empty(self, store):
        assert store.get_item("anything") is None

    def test_set_get_remove(self, store):
        store.set_item("a", "1")
        store.set_item("b", "2")

        assert store.get_item("a") == "1"
        store.remove_item("a")
        assert store.get_item("a") is None
        assert store.get_item("b") == "2"

    def test_values_survive_new_instance(self, store):
        store.set_item("key", "value")

        assert LocalStore(store.path).get_item("key") == "value"

    def test_non_string_values_are_ignored(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text('{"n": 5}', encoding="utf-8")

        assert store.get_item("n") is None

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_corrupt_file_is_unavailable(self, store, content):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(content, encoding="utf-8")

        with pytest.raises(LocalStorageUnavailable):
            store.get_item("key")

    def test_unwritable_location_is_unavailable(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        store = LocalStore(blocker / "storage.json")

        with pytest.raises(LocalStorageUnavailable):
            store.set_item("key", "value")

    def test_undecodable_file_is_unavailable(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b'{"ideaspark_rate": "\xff\xfe"}')

        with pytest.raises(LocalStorageUnavailable):
            store.get_item("ideaspark_rate")
