"""Routes StateEvents to use cases on a worker pool."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Optional

from notesync.config import NoteSyncConfig
from notesync.models.schema import NoteFactory
from notesync.models.state import (
    DataState,
    DeleteMultipleNotesEvent,
    DeleteNoteEvent,
    EventKind,
    InsertNewNoteEvent,
    RestoreDeletedNoteEvent,
    SearchNotesEvent,
    StateEvent,
    UpdateNoteEvent,
)
from notesync.observability import MetricsCollector, timed_operation
from notesync.services.network_mirror import NetworkMirror
from notesync.services.note_use_cases import (
    DeleteMultipleNotes,
    DeleteNote,
    GetNumNotes,
    InsertNewNote,
    RestoreDeletedNote,
    SearchNotes,
    UpdateNote,
)
from notesync.services.response_handlers import invalid_state_event
from notesync.services.sync_service import StartupSync, SyncDeletedNotes, SyncNotes
from notesync.storage.base import NoteCacheDataSource, NoteNetworkDataSource

logger = logging.getLogger(__name__)


@dataclass
class NoteInteractors:
    insert_new_note: InsertNewNote
    update_note: UpdateNote
    delete_note: DeleteNote
    delete_multiple_notes: DeleteMultipleNotes
    restore_deleted_note: RestoreDeletedNote
    search_notes: SearchNotes
    get_num_notes: GetNumNotes
    sync_deleted_notes: SyncDeletedNotes
    sync_notes: SyncNotes
    startup_sync: StartupSync


def build_interactors(
    cache: NoteCacheDataSource,
    network: NoteNetworkDataSource,
    mirror: NetworkMirror,
    config: Optional[NoteSyncConfig] = None,
    factory: Optional[NoteFactory] = None,
) -> NoteInteractors:
    """Wire every use case to the same stores and mirror."""
    if config is None:
        from notesync.config import config as default_config
        config = default_config
    sync_deleted_notes = SyncDeletedNotes(cache, network)
    sync_notes = SyncNotes(cache, network, config)
    return NoteInteractors(
        insert_new_note=InsertNewNote(cache, network, mirror, factory),
        update_note=UpdateNote(cache, network, mirror),
        delete_note=DeleteNote(cache, network, mirror),
        delete_multiple_notes=DeleteMultipleNotes(cache, network, mirror),
        restore_deleted_note=RestoreDeletedNote(cache, network, mirror),
        search_notes=SearchNotes(cache, network, mirror),
        get_num_notes=GetNumNotes(cache, network, mirror),
        sync_deleted_notes=sync_deleted_notes,
        sync_notes=sync_notes,
        startup_sync=StartupSync(sync_deleted_notes, sync_notes),
    )


class StateEventDispatcher:
    """Runs one use case per StateEvent, at most one job per event key.

    A second event with the key of a job that is still running is dropped
    and ``dispatch`` returns None for it.
    """

    def __init__(
        self,
        interactors: NoteInteractors,
        max_workers: int = 4,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.interactors = interactors
        self.metrics = metrics if metrics is not None else MetricsCollector()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notesync-dispatch"
        )
        self._active: Dict[str, Future] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls,
        interactors: NoteInteractors,
        config: Optional[NoteSyncConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "StateEventDispatcher":
        """Build a dispatcher sized by ``dispatcher_workers``."""
        if config is None:
            from notesync.config import config as default_config
            config = default_config
        return cls(interactors, max_workers=config.dispatcher_workers, metrics=metrics)

    def is_active(self, state_event: StateEvent) -> bool:
        with self._lock:
            return state_event.key in self._active

    def dispatch(self, state_event: StateEvent) -> Optional["Future[DataState]"]:
        key = state_event.key
        with self._lock:
            if key in self._active:
                logger.debug(f"Dropping duplicate event {key}")
                return None
            future = self._executor.submit(self._run, state_event)
            self._active[key] = future
        future.add_done_callback(lambda _: self._release(key))
        return future

    def _release(self, key: str) -> None:
        with self._lock:
            self._active.pop(key, None)

    def _run(self, state_event: StateEvent) -> DataState:
        with timed_operation(state_event.event_name(), self.metrics, key=state_event.key) as op:
            state = self.route(state_event)
            if state.is_error:
                op["error"] = state.message
            return state

    def route(self, state_event: StateEvent) -> DataState:
        """Run the use case for an event in the calling thread."""
        i = self.interactors
        kind = getattr(state_event, "kind", None)
        if kind == EventKind.INSERT_NEW_NOTE and isinstance(state_event, InsertNewNoteEvent):
            return i.insert_new_note.execute(
                note_id=state_event.note_id,
                title=state_event.title,
                body=state_event.body,
                state_event=state_event,
            )
        elif kind == EventKind.UPDATE_NOTE and isinstance(state_event, UpdateNoteEvent):
            return i.update_note.execute(
                state_event.note_id, state_event.title, state_event.body,
                state_event=state_event,
            )
        elif kind == EventKind.DELETE_NOTE and isinstance(state_event, DeleteNoteEvent):
            return i.delete_note.execute(state_event.note, state_event=state_event)
        elif kind == EventKind.DELETE_MULTIPLE_NOTES and isinstance(state_event, DeleteMultipleNotesEvent):
            return i.delete_multiple_notes.execute(
                list(state_event.notes), state_event=state_event
            )
        elif kind == EventKind.RESTORE_DELETED_NOTE and isinstance(state_event, RestoreDeletedNoteEvent):
            return i.restore_deleted_note.execute(state_event.note, state_event=state_event)
        elif kind == EventKind.SEARCH_NOTES and isinstance(state_event, SearchNotesEvent):
            return i.search_notes.execute(
                state_event.query, state_event.filter_and_order, state_event.page,
                state_event=state_event,
            )
        elif kind == EventKind.GET_NUM_NOTES:
            return i.get_num_notes.execute(state_event=state_event)
        elif kind == EventKind.SYNC_DELETED_NOTES:
            return i.sync_deleted_notes.execute(state_event=state_event)
        elif kind == EventKind.SYNC_NOTES:
            return i.sync_notes.execute(state_event=state_event)
        logger.error(f"No use case for event {state_event!r}")
        return invalid_state_event(state_event)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
