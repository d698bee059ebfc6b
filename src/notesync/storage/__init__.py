"""Storage layer for notesync."""

from notesync.storage.base import (
    DocumentStore,
    NoteCacheDataSource,
    NoteNetworkDataSource,
)
from notesync.storage.document_store import InMemoryDocumentStore, JsonFileDocumentStore
from notesync.storage.note_cache import SqlNoteCache
from notesync.storage.note_network import DocumentNoteNetwork

__all__ = [
    "DocumentStore",
    "NoteCacheDataSource",
    "NoteNetworkDataSource",
    "InMemoryDocumentStore",
    "JsonFileDocumentStore",
    "SqlNoteCache",
    "DocumentNoteNetwork",
]
