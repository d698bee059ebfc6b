"""Tests for the single-note use cases and their network mirroring."""
from notesync.exceptions import ErrorCode
from notesync.models.state import InsertNewNoteEvent, MessageType, UIComponentType
from notesync.services.note_use_cases import (
    DELETE_NOTE_FAILED,
    DELETE_NOTE_SUCCESS,
    GET_NUM_NOTES_SUCCESS,
    INSERT_NOTE_EXISTS,
    INSERT_NOTE_FAILED,
    INSERT_NOTE_SUCCESS,
    RESTORE_NOTE_SUCCESS,
    SEARCH_NOTES_NO_MATCHING_RESULTS,
    SEARCH_NOTES_SUCCESS,
    UPDATE_NOTE_FAILED,
    UPDATE_NOTE_SUCCESS,
)
from notesync.storage.document_store import InMemoryDocumentStore
from notesync.storage.note_network import DocumentNoteNetwork
from notesync.services.dispatcher import build_interactors
from tests.fakes import (
    FORCE_DELETE_NOTE_EXCEPTION,
    FORCE_GENERAL_FAILURE,
    FORCE_NEW_NOTE_EXCEPTION,
    FORCE_SEARCH_NOTES_EXCEPTION,
    FORCE_UPDATE_NOTE_EXCEPTION,
    FlakyDocumentStore,
    at,
    make_note,
)


class TestInsertNewNote:
    """Tests for InsertNewNote."""

    def test_insert_writes_cache_and_network(self, interactors, cache, network):
        state = interactors.insert_new_note.execute(title="Groceries", body="milk")

        assert not state.is_error
        assert state.message == INSERT_NOTE_SUCCESS
        assert state.response.ui_component_type == UIComponentType.TOAST
        note = state.data
        assert cache.get_by_id(note.id) == note
        [remote] = network.get_all()
        assert remote.id == note.id
        assert remote.title == "Groceries"

    def test_explicit_id(self, interactors, cache):
        state = interactors.insert_new_note.execute(note_id="chosen", title="Hi")

        assert state.data.id == "chosen"
        assert cache.get_by_id("chosen") is not None

    def test_blank_title_is_a_validation_error(self, interactors, cache, network):
        state = interactors.insert_new_note.execute(title="   ")

        assert state.is_error
        assert state.error_code == ErrorCode.NOTE_VALIDATION_FAILED
        assert state.message.startswith("Error inserting new note.\n\nReason: title")
        assert cache.count() == 0
        assert network.get_all() == []

    def test_zero_rows_is_a_negative_result(self, faulty_interactors, network):
        state = faulty_interactors.insert_new_note.execute(
            note_id=FORCE_GENERAL_FAILURE, title="Hi"
        )

        assert state.is_error
        assert state.message == INSERT_NOTE_FAILED
        assert state.error_code == ErrorCode.CACHE_NEGATIVE_RESULT
        assert state.response.ui_component_type == UIComponentType.TOAST
        assert network.get_all() == []

    def test_cache_fault_is_reported_and_not_mirrored(self, faulty_interactors, network):
        state = faulty_interactors.insert_new_note.execute(
            note_id=FORCE_NEW_NOTE_EXCEPTION, title="Hi"
        )

        assert state.is_error
        assert state.message == "Error inserting new note.\n\nReason: Unknown cache error"
        assert state.error_code == ErrorCode.CACHE_FAULT
        assert network.get_all() == []

    def test_taken_id_is_rejected_and_original_kept(self, interactors, cache, network, mirror):
        first = interactors.insert_new_note.execute(note_id="dup", title="Original", body="keep me")
        submitted = mirror.stats()["submitted"]

        second = interactors.insert_new_note.execute(note_id="dup", title="Other")

        assert second.is_error
        assert second.message == INSERT_NOTE_EXISTS
        assert second.error_code == ErrorCode.CACHE_NEGATIVE_RESULT
        assert second.response.ui_component_type == UIComponentType.TOAST
        assert cache.get_by_id("dup") == first.data
        assert mirror.stats()["submitted"] == submitted
        [remote] = network.get_all()
        assert remote.title == "Original"
        assert remote.created_at == first.data.created_at

    def test_failed_id_lookup_writes_nothing(self, faulty_interactors, faulty_cache, network):
        faulty_cache.fail_reads = True

        state = faulty_interactors.insert_new_note.execute(note_id="n1", title="Hi")

        assert state.is_error
        assert state.error_code == ErrorCode.CACHE_FAULT
        assert state.message == "Error inserting new note.\n\nReason: Unknown cache error"
        assert faulty_cache.inner.count() == 0
        assert network.get_all() == []

    def test_supplied_event_is_echoed(self, interactors):
        event = InsertNewNoteEvent(title="Hi")
        state = interactors.insert_new_note.execute(title="Hi", state_event=event)
        assert state.state_event is event

    def test_network_failure_does_not_change_the_answer(self, cache, mirror, test_config, factory):
        store = FlakyDocumentStore(InMemoryDocumentStore())
        network = DocumentNoteNetwork(store, "test-user")
        interactors = build_interactors(cache, network, mirror, test_config, factory)

        state = interactors.insert_new_note.execute(title="Offline")

        assert not state.is_error
        assert cache.get_by_id(state.data.id) is not None
        assert mirror.stats()["failed"] == 1


class TestUpdateNote:
    """Tests for UpdateNote."""

    def test_update_stamps_now_and_mirrors_stored_copy(self, interactors, cache, network, clock):
        cache.insert(make_note("n1", 1))

        state = interactors.update_note.execute("n1", "New", "body")

        assert not state.is_error
        assert state.message == UPDATE_NOTE_SUCCESS
        assert state.data.title == "New"
        stamped = cache.get_by_id("n1").updated_at
        assert stamped > at(1)
        [remote] = network.get_all()
        assert remote.title == "New"
        assert remote.body == "body"

    def test_explicit_timestamp(self, interactors, cache):
        cache.insert(make_note("n1", 1))

        interactors.update_note.execute("n1", "New", timestamp=at(50))

        assert cache.get_by_id("n1").updated_at == at(50)

    def test_missing_note(self, interactors, network):
        state = interactors.update_note.execute("ghost", "Title")

        assert state.is_error
        assert state.message == UPDATE_NOTE_FAILED
        assert state.error_code == ErrorCode.CACHE_NEGATIVE_RESULT
        assert network.get_all() == []

    def test_blank_title(self, interactors, cache):
        cache.insert(make_note("n1", 1, title="Keep"))

        state = interactors.update_note.execute("n1", "")

        assert state.error_code == ErrorCode.NOTE_VALIDATION_FAILED
        assert cache.get_by_id("n1").title == "Keep"

    def test_cache_fault(self, faulty_interactors):
        state = faulty_interactors.update_note.execute(FORCE_UPDATE_NOTE_EXCEPTION, "Title")

        assert state.is_error
        assert state.message.startswith("Error updating note.")
        assert state.error_code == ErrorCode.CACHE_FAULT


class TestDeleteNote:
    """Tests for DeleteNote."""

    def test_delete_removes_remote_copy_and_leaves_tombstone(self, interactors, cache, network):
        note = make_note("n1", 1)
        cache.insert(note)
        network.insert_or_update(note, preserve_timestamp=True)

        state = interactors.delete_note.execute(note)

        assert not state.is_error
        assert state.message == DELETE_NOTE_SUCCESS
        assert state.response.ui_component_type == UIComponentType.NONE
        assert state.data == note
        assert cache.get_by_id("n1") is None
        assert network.get_all() == []
        assert network.get_deleted_all() == [note]

    def test_missing_note_is_a_negative_result(self, interactors, network):
        state = interactors.delete_note.execute(make_note("ghost", 1))

        assert state.message == DELETE_NOTE_FAILED
        assert state.response.ui_component_type == UIComponentType.TOAST
        assert network.get_deleted_all() == []

    def test_cache_fault(self, faulty_interactors, network):
        state = faulty_interactors.delete_note.execute(make_note(FORCE_DELETE_NOTE_EXCEPTION, 1))

        assert state.error_code == ErrorCode.CACHE_FAULT
        assert network.get_deleted_all() == []

    def test_tombstone_is_written_even_if_remote_delete_fails(self, cache, mirror, test_config, factory):
        store = FlakyDocumentStore(InMemoryDocumentStore(), operations=["delete"])
        network = DocumentNoteNetwork(store, "test-user")
        interactors = build_interactors(cache, network, mirror, test_config, factory)
        note = make_note("n1", 1)
        cache.insert(note)

        state = interactors.delete_note.execute(note)

        assert not state.is_error
        ops = [op for op, _ in store.calls]
        assert ops[0] == "delete"
        assert ops[-1] == "set"
        assert store.calls[-1][1] == network.deletes_collection
        assert network.get_deleted_all() == [note]


class TestRestoreDeletedNote:
    """Tests for RestoreDeletedNote."""

    def test_restore(self, interactors, cache, network):
        note = make_note("n1", 1)
        network.insert_deleted(note)

        state = interactors.restore_deleted_note.execute(note)

        assert state.message == RESTORE_NOTE_SUCCESS
        assert cache.get_by_id("n1") == note
        assert [n.id for n in network.get_all()] == ["n1"]
        assert network.get_deleted_all() == []

    def test_cache_fault_keeps_tombstone(self, faulty_interactors, network):
        note = make_note(FORCE_NEW_NOTE_EXCEPTION, 1)
        network.insert_deleted(note)

        state = faulty_interactors.restore_deleted_note.execute(note)

        assert state.error_code == ErrorCode.CACHE_FAULT
        assert network.get_deleted_all() == [note]


class TestSearchNotes:
    """Tests for SearchNotes."""

    def test_results(self, interactors, seeded_notes):
        state = interactors.search_notes.execute()

        assert state.message == SEARCH_NOTES_SUCCESS
        assert state.response.ui_component_type == UIComponentType.NONE
        assert [n.id for n in state.data] == ["seed-3", "seed-2", "seed-1"]

    def test_no_matches_is_info(self, interactors, seeded_notes):
        state = interactors.search_notes.execute(query="nothing like this")

        assert not state.is_error
        assert state.data == []
        assert state.message == SEARCH_NOTES_NO_MATCHING_RESULTS
        assert state.response.message_type == MessageType.INFO

    def test_cache_fault(self, faulty_interactors):
        state = faulty_interactors.search_notes.execute(query=FORCE_SEARCH_NOTES_EXCEPTION)

        assert state.is_error
        assert state.message.startswith("Error getting list of notes.")


class TestGetNumNotes:
    """Tests for GetNumNotes."""

    def test_count(self, interactors, seeded_notes):
        state = interactors.get_num_notes.execute()

        assert state.data == 3
        assert state.message == GET_NUM_NOTES_SUCCESS

    def test_empty_cache_counts_zero(self, interactors):
        state = interactors.get_num_notes.execute()

        assert not state.is_error
        assert state.data == 0
