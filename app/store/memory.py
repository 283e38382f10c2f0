# app/store/memory.py
from __future__ import annotations

import copy
from threading import Lock
from typing import Any, Optional, Sequence

from app.store.base import DocumentMissing, Write, check_expect, utcnow_iso


class InMemoryDocumentStore:
    """
    Dev/test document store.

    Documents are deep-copied on the way in and out so callers never hold a
    reference into the store. `commit` validates the whole batch before
    applying anything, under one lock, so readers see either the old or the
    new version of every document in the batch.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._docs: dict[str, dict[str, dict[str, Any]]] = {}
        self.commit_count = 0

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        now = utcnow_iso()
        with self._lock:
            bucket = self._docs.setdefault(collection, {})
            if doc_id in bucket:
                return False
            doc = copy.deepcopy(data)
            doc["created_at"] = now
            doc["updated_at"] = now
            bucket[doc_id] = doc
            return True

    def commit(self, writes: Sequence[Write]) -> None:
        now = utcnow_iso()
        with self._lock:
            staged: dict[tuple[str, str], Optional[dict[str, Any]]] = {}

            for w in writes:
                key = (w.collection, w.doc_id)
                current = staged[key] if key in staged else self._docs.get(w.collection, {}).get(w.doc_id)
                check_expect(w, current)

                if w.op == "delete":
                    staged[key] = None
                    continue

                if current is None:
                    raise DocumentMissing(w.collection, w.doc_id)
                merged = copy.deepcopy(current)
                merged.update(copy.deepcopy(w.fields))
                merged["updated_at"] = now
                staged[key] = merged

            for (collection, doc_id), doc in staged.items():
                bucket = self._docs.setdefault(collection, {})
                if doc is None:
                    bucket.pop(doc_id, None)
                else:
                    bucket[doc_id] = doc
            self.commit_count += 1

    # test helper
    def put(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            self._docs.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
