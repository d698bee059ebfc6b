"""Document store implementations backing the note network."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from notesync.exceptions import NetworkError
from notesync.storage.base import DocumentStore

logger = logging.getLogger(__name__)

Documents = Dict[str, Dict[str, Dict[str, Any]]]


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe document store kept in process memory.

    Documents are copied on the way in and out, so callers can never mutate
    stored state by accident.
    """

    def __init__(self):
        self._collections: Documents = {}
        self._lock = threading.Lock()

    def set(self, collection: str, key: str, document: Dict[str, Any]) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[key] = dict(document)

    def set_many(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        with self._lock:
            target = self._collections.setdefault(collection, {})
            for key, document in documents.items():
                target[key] = dict(document)

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._collections.get(collection, {}).get(key)
            return dict(document) if document is not None else None

    def delete(self, collection: str, key: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(key, None)

    def list(self, collection: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(doc) for doc in self._collections.get(collection, {}).values()]

    def clear(self, collection: str) -> None:
        with self._lock:
            self._collections.pop(collection, None)


class JsonFileDocumentStore(DocumentStore):
    """Document store persisted as a single JSON file.

    Each mutation rewrites the whole file through a temp file and
    ``os.replace``, so a crash leaves either the old or the new content on
    disk and never a torn write.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Documents:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise NetworkError(
                f"Failed to read document store {self.path}",
                operation="read",
                original_error=e,
            ) from e
        if not isinstance(data, dict):
            raise NetworkError(
                f"Document store {self.path} is not a JSON object",
                operation="read",
            )
        return data

    def _save(self, data: Documents) -> None:
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(temp_file, self.path)
        except OSError as e:
            raise NetworkError(
                f"Failed to write document store {self.path}",
                operation="write",
                original_error=e,
            ) from e

    def set(self, collection: str, key: str, document: Dict[str, Any]) -> None:
        with self._lock:
            data = self._load()
            data.setdefault(collection, {})[key] = dict(document)
            self._save(data)

    def set_many(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        if not documents:
            return
        with self._lock:
            data = self._load()
            target = data.setdefault(collection, {})
            for key, document in documents.items():
                target[key] = dict(document)
            self._save(data)
        logger.debug(f"Wrote {len(documents)} documents to {collection}")

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._load().get(collection, {}).get(key)

    def delete(self, collection: str, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.get(collection, {}).pop(key, None) is not None:
                self._save(data)

    def list(self, collection: str) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._load().get(collection, {}).values())

    def clear(self, collection: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(collection, None) is not None:
                self._save(data)
