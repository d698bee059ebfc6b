"""Tests for the document-backed note network."""
import pytest

from notesync.exceptions import BatchSizeExceededError, ConfigurationError, NetworkError
from notesync.storage.document_store import InMemoryDocumentStore
from notesync.storage.note_network import DocumentNoteNetwork
from tests.fakes import FakeClock, at, make_note


class TestLiveNotes:
    """Tests for writes and reads on the live notes collection."""

    def test_write_stamps_server_time(self, network, clock):
        network.insert_or_update(make_note("n1", 1, title="Hello"))

        [stored] = network.get_all()
        assert stored.title == "Hello"
        assert stored.updated_at == clock.now
        assert stored.updated_at != at(1)

    def test_preserve_timestamp_keeps_updated_at(self, network, clock):
        network.insert_or_update(make_note("n1", 1), preserve_timestamp=True)

        assert network.get_all()[0].updated_at == at(1)
        assert clock.readings == 0

    def test_batch_write(self, network):
        notes = [make_note(f"n{i}", i) for i in range(3)]

        network.insert_or_update_many(notes, preserve_timestamp=True)

        assert sorted(n.id for n in network.get_all()) == ["n0", "n1", "n2"]

    def test_batch_write_rejects_oversized_batch(self, store):
        network = DocumentNoteNetwork(store, "u", clock=FakeClock(), batch_limit=2)

        with pytest.raises(BatchSizeExceededError) as exc_info:
            network.insert_or_update_many([make_note(f"n{i}", i) for i in range(3)])

        assert exc_info.value.limit == 2
        assert network.get_all() == []

    @pytest.mark.parametrize("limit", [0, 501])
    def test_batch_limit_must_be_in_range(self, store, limit):
        with pytest.raises(ConfigurationError):
            DocumentNoteNetwork(store, "u", batch_limit=limit)

    def test_delete(self, network):
        network.insert_or_update(make_note("n1", 1))

        network.delete("n1")
        network.delete("n1")

        assert network.get_all() == []

    def test_search_by_id(self, network):
        note = make_note("n1", 1)
        network.insert_or_update(note, preserve_timestamp=True)

        assert network.search_by_id(note) == note
        assert network.search_by_id(make_note("other", 1)) is None


class TestTombstones:
    """Tests for the deletes collection."""

    def test_tombstone_keeps_original_timestamp(self, network, clock):
        note = make_note("n1", 7)

        network.insert_deleted(note)

        assert network.get_deleted_all() == [note]
        assert clock.readings == 0

    def test_tombstones_are_separate_from_live_notes(self, network):
        network.insert_or_update(make_note("live", 1))
        network.insert_deleted(make_note("gone", 1))

        assert [n.id for n in network.get_all()] == ["live"]
        assert [n.id for n in network.get_deleted_all()] == ["gone"]

    def test_delete_deleted(self, network):
        note = make_note("n1", 1)
        network.insert_deleted(note)

        network.delete_deleted(note)

        assert network.get_deleted_all() == []

    def test_insert_deleted_many(self, network):
        network.insert_deleted_many([make_note("a", 1), make_note("b", 2)])
        assert sorted(n.id for n in network.get_deleted_all()) == ["a", "b"]

    def test_insert_deleted_many_respects_limit(self, store):
        network = DocumentNoteNetwork(store, "u", batch_limit=1)
        with pytest.raises(BatchSizeExceededError):
            network.insert_deleted_many([make_note("a", 1), make_note("b", 2)])


class TestUserScoping:
    """Collections are scoped per user."""

    def test_collection_names(self, network):
        assert network.notes_collection == "notes/test-user/notes"
        assert network.deletes_collection == "deletes/test-user/notes"

    def test_users_do_not_see_each_other(self):
        store = InMemoryDocumentStore()
        alice = DocumentNoteNetwork(store, "alice")
        bob = DocumentNoteNetwork(store, "bob")

        alice.insert_or_update(make_note("n1", 1))
        alice.insert_deleted(make_note("n2", 1))

        assert bob.get_all() == []
        assert bob.get_deleted_all() == []

    def test_delete_all_clears_only_one_user(self):
        store = InMemoryDocumentStore()
        alice = DocumentNoteNetwork(store, "alice")
        bob = DocumentNoteNetwork(store, "bob")
        alice.insert_or_update(make_note("a", 1))
        alice.insert_deleted(make_note("a2", 1))
        bob.insert_or_update(make_note("b", 1))

        alice.delete_all()

        assert alice.get_all() == []
        assert alice.get_deleted_all() == []
        assert [n.id for n in bob.get_all()] == ["b"]


class TestMalformedDocuments:
    """Documents that do not parse surface as network faults."""

    def test_missing_field(self, store, network):
        store.set(network.notes_collection, "bad", {"id": "bad", "title": "x"})

        with pytest.raises(NetworkError) as exc_info:
            network.get_all()
        assert exc_info.value.collection == network.notes_collection

    def test_invalid_value(self, store, network):
        document = make_note("ok", 1).to_document()
        document["updated_at"] = "yesterday"
        store.set(network.deletes_collection, "ok", document)

        with pytest.raises(NetworkError):
            network.get_deleted_all()
