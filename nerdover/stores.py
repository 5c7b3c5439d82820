"""Storage back ends: a document store and a blob store."""

from __future__ import annotations

import copy
import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

PUBLIC_URL_BASE = "https://storage.googleapis.com"


class DocumentStore:
    """Named collections of JSON-like documents keyed by id.

    Documents live in memory; when ``path`` is given they are loaded from and
    saved to that JSON file on every change.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        if self._path is not None and self._path.exists():
            with self._path.open(encoding="utf-8") as fh:
                self._collections = json.load(fh)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return a copy of the document, or ``None`` if it does not exist."""
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc)

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace the document."""
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(dict(data))
            self._save()

    def delete(self, collection: str, doc_id: str) -> None:
        """Remove the document; removing a missing document is not an error."""
        with self._lock:
            docs = self._collections.get(collection)
            if docs is not None and docs.pop(doc_id, None) is not None:
                self._save()

    def documents(self, collection: str) -> Iterator[dict[str, Any]]:
        """Yield copies of every document in the collection, ordered by id."""
        with self._lock:
            snapshot = copy.deepcopy(self._collections.get(collection, {}))
        for doc_id in sorted(snapshot):
            yield snapshot[doc_id]

    def where(self, collection: str, field: str, value: Any) -> Iterator[dict[str, Any]]:
        """Yield documents whose ``field`` equals ``value``, ordered by id."""
        return (doc for doc in self.documents(collection) if doc.get(field) == value)

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(self._collections, fh, indent=2, sort_keys=True)
        os.replace(tmp, self._path)


@dataclass
class _Blob:
    data: bytes
    content_type: str
    cache_control: str
    public: bool = False


class BlobStore:
    """An in-memory bucket of named objects with public URLs."""

    def __init__(self, bucket_name: str, base_url: str = PUBLIC_URL_BASE) -> None:
        self.bucket_name = bucket_name
        self.base_url = base_url.rstrip("/")
        self._lock = threading.RLock()
        self._blobs: dict[str, _Blob] = {}

    def write(
        self,
        name: str,
        data: bytes | str,
        content_type: str = "application/octet-stream",
        cache_control: str = "",
    ) -> None:
        """Create or replace an object; a replaced object is no longer public."""
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        with self._lock:
            self._blobs[name] = _Blob(payload, content_type, cache_control)

    def read(self, name: str) -> bytes:
        """Return the object's bytes."""
        return self._blob(name).data

    def make_public(self, name: str) -> None:
        """Grant everyone read access to the object."""
        with self._lock:
            self._blob(name).public = True

    def is_public(self, name: str) -> bool:
        """Tell whether everyone may read the object."""
        return self._blob(name).public

    def list(self, prefix: str = "") -> list[str]:
        """Return the names of objects starting with ``prefix``, sorted."""
        with self._lock:
            return sorted(name for name in self._blobs if name.startswith(prefix))

    def public_url(self, name: str) -> str:
        """Return the URL under which a public object is served."""
        return f"{self.base_url}/{self.bucket_name}/{name}"

    def _blob(self, name: str) -> _Blob:
        with self._lock:
            try:
                return self._blobs[name]
            except KeyError:
                raise FileNotFoundError(f"object doesn't exist: {name}") from None