from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

_logger = logging.getLogger(__name__)

COLLECTIONS = ("users", "sleep_entries", "logs")
UNIQUE_FIELDS: Dict[str, tuple] = {"users": ("email",)}

_IDENTIFIER = re.compile(r"^[0-9a-f]{32}$")

Document = Dict[str, Any]


class StorageError(RuntimeError):
    """Raised when the document store cannot be reached or written."""


class DuplicateKeyError(StorageError):
    """Raised when an insert or update would break a unique index."""

    def __init__(self, collection: str, field: str, value: Any) -> None:
        super().__init__(f"Duplicate {field} in {collection}: {value!r}")
        self.collection = collection
        self.field = field
        self.value = value


class InvalidIdentifier(StorageError, ValueError):
    """Raised when a document identifier is not well formed."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"Malformed identifier: {value!r}")
        self.value = value


def check_identifier(value: str) -> str:
    if not isinstance(value, str) or not _IDENTIFIER.match(value):
        raise InvalidIdentifier(value)
    return value


def _matches(document: Document, filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(document.get(key) == expected for key, expected in filters.items())


class DocumentStore:
    """A small JSON document store.

    Each collection lives in its own ``<name>.json`` file under the directory
    named by a ``file://`` connection string. ``memory://`` keeps everything in
    process, which is what the test-suite uses.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._data_dir = self._parse_url(url)
        self._memory: Dict[str, List[Document]] = {name: [] for name in COLLECTIONS}
        self._lock = threading.Lock()
        # per-collection write locks; _lock only guards connection state
        self._locks = {name: threading.Lock() for name in COLLECTIONS}
        self._state = "pending"

    @staticmethod
    def _parse_url(url: str) -> Optional[Path]:
        if url.startswith("memory://"):
            return None
        if url.startswith("file://"):
            return Path(url[len("file://"):]).expanduser()
        if "://" in url:
            raise StorageError(f"Unsupported storage URL: {url}")
        return Path(url).expanduser()

    @property
    def name(self) -> str:
        return self._data_dir.name if self._data_dir is not None else "memory"

    @property
    def host(self) -> str:
        return str(self._data_dir.resolve()) if self._data_dir is not None else "in-process"

    @property
    def state(self) -> str:
        return self._state

    def connect(self) -> "DocumentStore":
        with self._lock:
            try:
                self._ensure_files()
            except OSError as err:
                self._state = "failed"
                _logger.error("Storage connection failed for %s: %s", self.url, err)
                raise StorageError(f"Unable to open storage at {self.url}") from err
            self._state = "connected"
        _logger.info("Storage connected: %s (%s)", self.name, self.host)
        return self

    def status(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"status": self._state}
        if self._state == "connected":
            payload["name"] = self.name
            payload["host"] = self.host
        return payload

    def _ensure_files(self) -> None:
        if self._data_dir is None:
            return
        self._data_dir.mkdir(parents=True, exist_ok=True)
        for collection in COLLECTIONS:
            path = self._path(collection)
            if not path.exists():
                path.write_text("[]", encoding="utf-8")

    def _path(self, collection: str) -> Path:
        assert self._data_dir is not None
        return self._data_dir / f"{collection}.json"

    def _load(self, collection: str) -> List[Document]:
        if collection not in COLLECTIONS:
            raise StorageError(f"Unknown collection: {collection}")
        if self._state != "connected":
            raise StorageError("Storage is not connected")
        if self._data_dir is None:
            return [dict(doc) for doc in self._memory[collection]]
        try:
            with self._path(collection).open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return []
        except json.JSONDecodeError as err:
            _logger.error("Collection %s is unreadable: %s", collection, err)
            raise StorageError(f"Collection {collection} is corrupt") from err

    def _dump(self, collection: str, documents: List[Document]) -> None:
        if self._data_dir is None:
            self._memory[collection] = [dict(doc) for doc in documents]
            return
        path = self._path(collection)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{collection}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(documents, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _check_unique(self, collection: str, documents: Iterable[Document], candidate: Document) -> None:
        for field in UNIQUE_FIELDS.get(collection, ()):
            value = candidate.get(field)
            if value is None:
                continue
            for existing in documents:
                if existing.get("id") != candidate.get("id") and existing.get(field) == value:
                    raise DuplicateKeyError(collection, field, value)

    def _collection_lock(self, collection: str) -> threading.Lock:
        try:
            return self._locks[collection]
        except KeyError:
            raise StorageError(f"Unknown collection: {collection}") from None

    def insert(self, collection: str, document: Document) -> Document:
        with self._collection_lock(collection):
            documents = self._load(collection)
            self._check_unique(collection, documents, document)
            documents.append(document)
            self._dump(collection, documents)
        return document

    def find(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        """Matching documents in insertion order."""

        with self._collection_lock(collection):
            return [doc for doc in self._load(collection) if _matches(doc, filters)]

    def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Document]:
        with self._collection_lock(collection):
            for document in self._load(collection):
                if _matches(document, filters):
                    return document
        return None

    def find_by_id(self, collection: str, doc_id: str, filters: Optional[Dict[str, Any]] = None) -> Optional[Document]:
        check_identifier(doc_id)
        return self.find_one(collection, {"id": doc_id, **(filters or {})})

    def replace(self, collection: str, document: Document) -> bool:
        with self._collection_lock(collection):
            documents = self._load(collection)
            for idx, existing in enumerate(documents):
                if existing.get("id") == document.get("id"):
                    self._check_unique(collection, documents, document)
                    documents[idx] = document
                    self._dump(collection, documents)
                    return True
        return False

    def delete(self, collection: str, doc_id: str, filters: Optional[Dict[str, Any]] = None) -> bool:
        check_identifier(doc_id)
        criteria = {"id": doc_id, **(filters or {})}
        with self._collection_lock(collection):
            documents = self._load(collection)
            remaining = [doc for doc in documents if not _matches(doc, criteria)]
            if len(remaining) == len(documents):
                return False
            self._dump(collection, remaining)
        return True


def connect(url: str) -> DocumentStore:
    return DocumentStore(url).connect()
