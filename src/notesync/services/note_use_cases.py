"""Use cases for writing and reading notes.

Each use case writes to the cache first and answers with one DataState.
Only after the cache accepted the change is the matching network write
queued on the NetworkMirror. A network failure therefore never changes
the answer the caller gets.
"""

import datetime
import logging
from functools import partial
from typing import List, Optional

from notesync.exceptions import ErrorCode, NoteValidationError
from notesync.models.schema import DEFAULT_FILTER_AND_ORDER, Note, NoteFactory
from notesync.models.state import (
    DataState,
    DeleteMultipleNotesEvent,
    DeleteNoteEvent,
    GetNumNotesEvent,
    InsertNewNoteEvent,
    MessageType,
    RestoreDeletedNoteEvent,
    SearchNotesEvent,
    StateEvent,
    UIComponentType,
    UpdateNoteEvent,
    error_response,
    success_response,
)
from notesync.services.network_mirror import NetworkMirror
from notesync.services.response_handlers import (
    CacheResponseHandler,
    CacheResult,
    build_error_message,
    safe_cache_call,
)
from notesync.storage.base import NoteCacheDataSource, NoteNetworkDataSource

logger = logging.getLogger(__name__)

INSERT_NOTE_SUCCESS = "Successfully inserted new note."
INSERT_NOTE_FAILED = "Failed to insert new note."
INSERT_NOTE_EXISTS = "A note with this id already exists."

UPDATE_NOTE_SUCCESS = "Successfully updated note."
UPDATE_NOTE_FAILED = "Failed to update note."

DELETE_NOTE_SUCCESS = "Successfully deleted note."
DELETE_NOTE_FAILED = "Failed to delete note."

DELETE_NOTES_SUCCESS = "Successfully deleted notes."
DELETE_NOTES_ERRORS = "Not all the notes you selected were deleted. There was some errors."
DELETE_NOTES_YOU_MUST_SELECT = "You haven't selected any notes to delete."

RESTORE_NOTE_SUCCESS = "Successfully restored the deleted note."
RESTORE_NOTE_FAILED = "Failed to restore the deleted note."

SEARCH_NOTES_SUCCESS = "Successfully retrieved list of notes."
SEARCH_NOTES_NO_MATCHING_RESULTS = "There are no notes that match that query."

GET_NUM_NOTES_SUCCESS = "Successfully retrieved the number of notes from the cache."


def _negative_result(message: str, state_event: StateEvent, ui: UIComponentType) -> DataState:
    return DataState.error(
        error_response(message, ErrorCode.CACHE_NEGATIVE_RESULT, ui),
        state_event=state_event,
    )


class _NoteUseCase:
    """Shared wiring: the two stores and the mirror."""

    def __init__(
        self,
        cache: NoteCacheDataSource,
        network: NoteNetworkDataSource,
        mirror: NetworkMirror,
    ):
        self.cache = cache
        self.network = network
        self.mirror = mirror

    def _mirror_delete(self, note: Note) -> None:
        # Run in FIFO order, delete first. A failed delete does not stop the tombstone
        self.mirror.submit("delete", partial(self.network.delete, note.id), note.id)
        self.mirror.submit("insert_deleted", partial(self.network.insert_deleted, note), note.id)


class InsertNewNote(_NoteUseCase):
    """Create a note in the cache, then mirror it to the network."""

    def __init__(self, cache, network, mirror, factory: Optional[NoteFactory] = None):
        super().__init__(cache, network, mirror)
        self.factory = factory or NoteFactory()

    def execute(
        self,
        note_id: Optional[str] = None,
        title: str = "",
        body: Optional[str] = None,
        state_event: Optional[StateEvent] = None,
    ) -> DataState[Note]:
        event = state_event or InsertNewNoteEvent(title=title, body=body, note_id=note_id)

        try:
            note = self.factory.create_single_note(note_id=note_id, title=title, body=body)
        except NoteValidationError as e:
            logger.info(f"Rejected new note: {e.message}")
            return DataState.error(
                error_response(
                    build_error_message(event, e.message),
                    ErrorCode.NOTE_VALIDATION_FAILED,
                ),
                state_event=event,
            )

        # insert is an upsert, so a taken id has to be caught here
        existing = safe_cache_call(self.cache.get_by_id, note.id)
        if isinstance(existing, CacheResult.GenericError):
            return CacheResponseHandler(existing, event, lambda _: None).get_result()
        if existing.value is not None:
            logger.info(f"Rejected new note: id {note.id} is already cached")
            return _negative_result(INSERT_NOTE_EXISTS, event, UIComponentType.TOAST)

        def handle_success(rows: int) -> DataState[Note]:
            if rows > 0:
                return DataState.data_state(
                    success_response(INSERT_NOTE_SUCCESS), data=note, state_event=event
                )
            return _negative_result(INSERT_NOTE_FAILED, event, UIComponentType.TOAST)

        state = CacheResponseHandler(
            safe_cache_call(self.cache.insert, note), event, handle_success
        ).get_result()

        if not state.is_error:
            self.mirror.submit(
                "insert_or_update", partial(self.network.insert_or_update, note), note.id
            )
        return state


class UpdateNote(_NoteUseCase):
    """Update title and body of a cached note, then mirror the stored copy."""

    def execute(
        self,
        note_id: str,
        title: str,
        body: Optional[str] = None,
        timestamp: Optional[datetime.datetime] = None,
        state_event: Optional[StateEvent] = None,
    ) -> DataState[Note]:
        event = state_event or UpdateNoteEvent(note_id=note_id, title=title, body=body)

        if not title or not title.strip():
            return DataState.error(
                error_response(
                    build_error_message(event, "title: Title cannot be empty"),
                    ErrorCode.NOTE_VALIDATION_FAILED,
                ),
                state_event=event,
            )

        def handle_success(rows: int) -> DataState[Note]:
            if rows > 0:
                return DataState.data_state(
                    success_response(UPDATE_NOTE_SUCCESS), state_event=event
                )
            return _negative_result(UPDATE_NOTE_FAILED, event, UIComponentType.TOAST)

        state = CacheResponseHandler(
            safe_cache_call(self.cache.update, note_id, title, body, timestamp),
            event,
            handle_success,
        ).get_result()

        if state.is_error:
            return state

        reread = safe_cache_call(self.cache.get_by_id, note_id)
        if isinstance(reread, CacheResult.Success) and reread.value is not None:
            state.data = reread.value
            self.mirror.submit(
                "insert_or_update",
                partial(self.network.insert_or_update, reread.value),
                note_id,
            )
        else:
            logger.warning(f"Updated note {note_id} could not be re-read, skipping mirror")
        return state


class DeleteNote(_NoteUseCase):
    """Delete a note from the cache, then remove it remotely and leave a tombstone."""

    def execute(self, note: Note, state_event: Optional[StateEvent] = None) -> DataState[Note]:
        event = state_event or DeleteNoteEvent(note=note)

        def handle_success(rows: int) -> DataState[Note]:
            if rows > 0:
                return DataState.data_state(
                    success_response(DELETE_NOTE_SUCCESS, UIComponentType.NONE),
                    data=note,
                    state_event=event,
                )
            return _negative_result(DELETE_NOTE_FAILED, event, UIComponentType.TOAST)

        state = CacheResponseHandler(
            safe_cache_call(self.cache.delete, note.id), event, handle_success
        ).get_result()

        if not state.is_error:
            self._mirror_delete(note)
        return state


class DeleteMultipleNotes(_NoteUseCase):
    """Delete a selection of notes and report one aggregated outcome.

    The returned data is the list of notes that were actually deleted, and
    only those are mirrored, even when some of the other deletes failed.
    """

    def execute(
        self,
        notes: List[Note],
        state_event: Optional[StateEvent] = None,
    ) -> DataState[List[Note]]:
        event = state_event or DeleteMultipleNotesEvent(notes=tuple(notes))

        if not notes:
            return DataState.data_state(
                success_response(
                    DELETE_NOTES_YOU_MUST_SELECT,
                    UIComponentType.TOAST,
                    MessageType.INFO,
                ),
                data=[],
                state_event=event,
            )

        deleted: List[Note] = []
        fault_seen = False
        for note in notes:
            result = safe_cache_call(self.cache.delete, note.id)
            if isinstance(result, CacheResult.Success) and result.value:
                deleted.append(note)
                continue
            if isinstance(result, CacheResult.GenericError):
                fault_seen = True
            logger.warning(f"Bulk delete: note {note.id} was not deleted")

        for note in deleted:
            self._mirror_delete(note)

        if len(deleted) < len(notes):
            code = ErrorCode.CACHE_FAULT if fault_seen else ErrorCode.CACHE_NEGATIVE_RESULT
            return DataState.error(
                error_response(DELETE_NOTES_ERRORS, code, UIComponentType.DIALOG),
                state_event=event,
                data=deleted,
            )
        return DataState.data_state(
            success_response(DELETE_NOTES_SUCCESS), data=deleted, state_event=event
        )


class RestoreDeletedNote(_NoteUseCase):
    """Put a deleted note back into the cache and clear its tombstone."""

    def execute(self, note: Note, state_event: Optional[StateEvent] = None) -> DataState[Note]:
        event = state_event or RestoreDeletedNoteEvent(note=note)

        def handle_success(rows: int) -> DataState[Note]:
            if rows > 0:
                return DataState.data_state(
                    success_response(RESTORE_NOTE_SUCCESS), data=note, state_event=event
                )
            return _negative_result(RESTORE_NOTE_FAILED, event, UIComponentType.TOAST)

        state = CacheResponseHandler(
            safe_cache_call(self.cache.insert, note), event, handle_success
        ).get_result()

        if not state.is_error:
            self.mirror.submit(
                "insert_or_update", partial(self.network.insert_or_update, note), note.id
            )
            self.mirror.submit(
                "delete_deleted", partial(self.network.delete_deleted, note), note.id
            )
        return state


class SearchNotes(_NoteUseCase):
    """One page of cached notes matching a query."""

    def execute(
        self,
        query: str = "",
        filter_and_order: str = DEFAULT_FILTER_AND_ORDER,
        page: int = 1,
        state_event: Optional[StateEvent] = None,
    ) -> DataState[List[Note]]:
        event = state_event or SearchNotesEvent(
            query=query, filter_and_order=filter_and_order, page=page
        )

        def handle_success(notes: List[Note]) -> DataState[List[Note]]:
            if not notes:
                response = success_response(
                    SEARCH_NOTES_NO_MATCHING_RESULTS,
                    UIComponentType.TOAST,
                    MessageType.INFO,
                )
            else:
                response = success_response(SEARCH_NOTES_SUCCESS, UIComponentType.NONE)
            return DataState.data_state(response, data=notes, state_event=event)

        return CacheResponseHandler(
            safe_cache_call(self.cache.search, query, filter_and_order, page),
            event,
            handle_success,
        ).get_result()


class GetNumNotes(_NoteUseCase):
    """Number of notes currently in the cache."""

    def execute(self, state_event: Optional[StateEvent] = None) -> DataState[int]:
        event = state_event or GetNumNotesEvent()

        def handle_success(count: int) -> DataState[int]:
            return DataState.data_state(
                success_response(GET_NUM_NOTES_SUCCESS, UIComponentType.NONE),
                data=count,
                state_event=event,
            )

        return CacheResponseHandler(
            safe_cache_call(self.cache.count), event, handle_success
        ).get_result()
