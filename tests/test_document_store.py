"""Tests for the document store implementations."""
import json

import pytest

from notesync.exceptions import NetworkError
from notesync.storage.document_store import InMemoryDocumentStore, JsonFileDocumentStore


@pytest.fixture(params=["memory", "json"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return JsonFileDocumentStore(tmp_path / "remote" / "store.json")


class TestDocumentStoreContract:
    """Behaviour shared by every store."""

    def test_set_and_get(self, any_store):
        any_store.set("c", "k", {"title": "x"})

        assert any_store.get("c", "k") == {"title": "x"}
        assert any_store.get("c", "missing") is None
        assert any_store.get("other", "k") is None

    def test_set_many_and_list(self, any_store):
        any_store.set_many("c", {"a": {"n": 1}, "b": {"n": 2}})

        assert sorted(doc["n"] for doc in any_store.list("c")) == [1, 2]
        assert any_store.list("empty") == []

    def test_set_overwrites(self, any_store):
        any_store.set("c", "k", {"n": 1})
        any_store.set("c", "k", {"n": 2})

        assert any_store.list("c") == [{"n": 2}]

    def test_delete_missing_key_is_not_an_error(self, any_store):
        any_store.set("c", "k", {"n": 1})

        any_store.delete("c", "k")
        any_store.delete("c", "k")
        any_store.delete("nowhere", "k")

        assert any_store.get("c", "k") is None

    def test_clear_only_touches_one_collection(self, any_store):
        any_store.set("a", "k", {"n": 1})
        any_store.set("b", "k", {"n": 2})

        any_store.clear("a")

        assert any_store.list("a") == []
        assert any_store.list("b") == [{"n": 2}]


class TestInMemoryDocumentStore:
    """In-memory specific behaviour."""

    def test_returned_documents_are_copies(self):
        store = InMemoryDocumentStore()
        original = {"title": "x"}
        store.set("c", "k", original)

        original["title"] = "changed"
        store.get("c", "k")["title"] = "also changed"

        assert store.get("c", "k") == {"title": "x"}


class TestJsonFileDocumentStore:
    """Persistence and failure translation for the JSON file store."""

    def test_data_survives_a_new_instance(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileDocumentStore(path).set("c", "k", {"n": 1})

        assert JsonFileDocumentStore(path).get("c", "k") == {"n": 1}
        assert not path.with_suffix(".json.tmp").exists()

    def test_missing_file_reads_as_empty(self, tmp_path):
        store = JsonFileDocumentStore(tmp_path / "absent.json")

        assert store.list("c") == []
        assert not (tmp_path / "absent.json").exists()

    def test_corrupt_file_raises_network_error(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(NetworkError) as exc_info:
            JsonFileDocumentStore(path).list("c")
        assert exc_info.value.details["operation"] == "read"

    def test_non_object_file_raises_network_error(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")

        with pytest.raises(NetworkError):
            JsonFileDocumentStore(path).get("c", "k")

    def test_unwritable_location_raises_network_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonFileDocumentStore(blocker / "store.json")

        with pytest.raises(NetworkError) as exc_info:
            store.set("c", "k", {"n": 1})
        assert exc_info.value.details["operation"] == "write"

    def test_file_layout(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileDocumentStore(path).set("notes/u/notes", "k", {"n": 1})

        assert json.loads(path.read_text(encoding="utf-8")) == {"notes/u/notes": {"k": {"n": 1}}}
