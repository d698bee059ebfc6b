"""Note network adapter over an abstract document store."""

import datetime
import logging
from typing import Callable, List, Optional

from notesync.config import MAX_BATCH_SIZE
from notesync.exceptions import BatchSizeExceededError, ConfigurationError, NetworkError
from notesync.models.schema import Note, utc_now
from notesync.storage.base import (
    DELETES_COLLECTION,
    NOTES_COLLECTION,
    DocumentStore,
    NoteNetworkDataSource,
    user_collection,
)

logger = logging.getLogger(__name__)


class DocumentNoteNetwork(NoteNetworkDataSource):
    """Remote notes and tombstones for a single user.

    Live notes go to ``notes/<user>/notes`` and tombstones to
    ``deletes/<user>/notes``. Primary writes are stamped with this
    adapter's clock, standing in for the server time a hosted store would
    assign. Reconciliation passes ``preserve_timestamp=True`` so the
    cache's ``updated_at`` survives the round trip. Tombstones always keep
    the note exactly as it was deleted.

    Args:
        store: The document store to write to
        user_id: Identity both collections are scoped to
        clock: Source of the server timestamp
        batch_limit: Maximum documents per batched write
    """

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        clock: Callable[[], datetime.datetime] = utc_now,
        batch_limit: int = MAX_BATCH_SIZE,
    ):
        if not 1 <= batch_limit <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"batch_limit must be between 1 and {MAX_BATCH_SIZE}",
                config_key="network_batch_limit",
            )
        self.store = store
        self.user_id = user_id
        self.clock = clock
        self.batch_limit = batch_limit
        self.notes_collection = user_collection(NOTES_COLLECTION, user_id)
        self.deletes_collection = user_collection(DELETES_COLLECTION, user_id)

    def _stamp(self, note: Note, preserve_timestamp: bool) -> Note:
        if preserve_timestamp:
            return note
        return note.model_copy(update={"updated_at": self.clock()})

    def _check_batch(self, notes: List[Note], operation: str) -> None:
        if len(notes) > self.batch_limit:
            raise BatchSizeExceededError(len(notes), self.batch_limit, operation=operation)

    def _to_notes(self, documents: List[dict], collection: str) -> List[Note]:
        notes = []
        for document in documents:
            try:
                notes.append(Note.from_document(document))
            except (KeyError, ValueError) as e:
                raise NetworkError(
                    f"Malformed document in {collection}",
                    operation="read",
                    collection=collection,
                    original_error=e,
                ) from e
        return notes

    def insert_or_update(self, note: Note, preserve_timestamp: bool = False) -> None:
        stored = self._stamp(note, preserve_timestamp)
        self.store.set(self.notes_collection, stored.id, stored.to_document())
        logger.debug(f"Mirrored note {note.id} to network")

    def insert_or_update_many(
        self, notes: List[Note], preserve_timestamp: bool = False
    ) -> None:
        """Write a batch of notes.

        Raises:
            BatchSizeExceededError: If more than ``batch_limit`` notes are given
        """
        self._check_batch(notes, "insert_or_update_many")
        documents = {}
        for note in notes:
            stored = self._stamp(note, preserve_timestamp)
            documents[stored.id] = stored.to_document()
        self.store.set_many(self.notes_collection, documents)

    def delete(self, note_id: str) -> None:
        self.store.delete(self.notes_collection, note_id)

    def get_all(self) -> List[Note]:
        return self._to_notes(self.store.list(self.notes_collection), self.notes_collection)

    def insert_deleted(self, note: Note) -> None:
        self.store.set(self.deletes_collection, note.id, note.to_document())

    def insert_deleted_many(self, notes: List[Note]) -> None:
        self._check_batch(notes, "insert_deleted_many")
        self.store.set_many(
            self.deletes_collection, {note.id: note.to_document() for note in notes}
        )

    def delete_deleted(self, note: Note) -> None:
        self.store.delete(self.deletes_collection, note.id)

    def get_deleted_all(self) -> List[Note]:
        return self._to_notes(
            self.store.list(self.deletes_collection), self.deletes_collection
        )

    def search_by_id(self, note: Note) -> Optional[Note]:
        document = self.store.get(self.notes_collection, note.id)
        if document is None:
            return None
        return self._to_notes([document], self.notes_collection)[0]

    def delete_all(self) -> None:
        self.store.clear(self.notes_collection)
        self.store.clear(self.deletes_collection)
        logger.info(f"Cleared all remote notes for user {self.user_id}")
