"""Storage ports for the note cache, the note network and the document store."""
import datetime
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from notesync.models.schema import DEFAULT_FILTER_AND_ORDER, Note

# Root collections in the remote store, each scoped per user
NOTES_COLLECTION = "notes"
DELETES_COLLECTION = "deletes"


def user_collection(root: str, user_id: str) -> str:
    """Name of a per-user collection, e.g. ``notes/<user_id>/notes``."""
    return f"{root}/{user_id}/notes"


class NoteCacheDataSource(ABC):
    """The local durable cache.

    Write methods return the number of affected rows. Zero is a legitimate
    answer (nothing matched) and is never raised as an error here.
    """

    @abstractmethod
    def insert(self, note: Note) -> int:
        """Insert or replace a note."""
        pass

    @abstractmethod
    def insert_many(self, notes: List[Note]) -> int:
        pass

    @abstractmethod
    def delete(self, note_id: str) -> int:
        pass

    @abstractmethod
    def delete_many(self, notes: List[Note]) -> int:
        pass

    @abstractmethod
    def update(
        self,
        note_id: str,
        title: str,
        body: Optional[str],
        timestamp: Optional[datetime.datetime] = None,
    ) -> int:
        """Update title and body. A missing timestamp means "now"."""
        pass

    @abstractmethod
    def get_all(self) -> List[Note]:
        pass

    @abstractmethod
    def get_by_id(self, note_id: str) -> Optional[Note]:
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def search(
        self,
        query: str = "",
        filter_and_order: str = DEFAULT_FILTER_AND_ORDER,
        page: int = 1,
    ) -> List[Note]:
        pass


class NoteNetworkDataSource(ABC):
    """The remote authoritative store, holding live notes and tombstones."""

    @abstractmethod
    def insert_or_update(self, note: Note, preserve_timestamp: bool = False) -> None:
        pass

    @abstractmethod
    def insert_or_update_many(
        self, notes: List[Note], preserve_timestamp: bool = False
    ) -> None:
        pass

    @abstractmethod
    def delete(self, note_id: str) -> None:
        pass

    @abstractmethod
    def get_all(self) -> List[Note]:
        pass

    @abstractmethod
    def insert_deleted(self, note: Note) -> None:
        pass

    @abstractmethod
    def insert_deleted_many(self, notes: List[Note]) -> None:
        pass

    @abstractmethod
    def delete_deleted(self, note: Note) -> None:
        pass

    @abstractmethod
    def get_deleted_all(self) -> List[Note]:
        pass

    @abstractmethod
    def search_by_id(self, note: Note) -> Optional[Note]:
        pass

    @abstractmethod
    def delete_all(self) -> None:
        """Remove every live note and tombstone for the user."""
        pass


class DocumentStore(ABC):
    """An abstract key/document service.

    Documents are JSON-compatible dicts addressed by ``(collection, key)``.
    Implementations raise ``NetworkError`` on I/O failure.
    """

    @abstractmethod
    def set(self, collection: str, key: str, document: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def set_many(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        """Write several documents as one batch."""
        pass

    @abstractmethod
    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def delete(self, collection: str, key: str) -> None:
        """Delete a document. Deleting a missing key is not an error."""
        pass

    @abstractmethod
    def list(self, collection: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def clear(self, collection: str) -> None:
        pass
