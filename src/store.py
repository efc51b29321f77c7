"""Document-store clients used by the classroom hooks.

Two implementations share one small contract:

``subscribe(collection, predicates, callback)``
    Open a live query.  ``callback`` receives the *full* matching set as a
    list of ``(doc_id, data)`` pairs on every notification.  Returns a
    handle with an ``unsubscribe()`` method.
``query(collection, predicates)``
    One-shot read with the same filter semantics.
``insert`` / ``update`` / ``delete`` / ``batch_insert``
    Writes.  Any backend failure surfaces as :class:`StoreError`.

:class:`FirestoreCollectionClient` talks to Cloud Firestore;
:class:`MemoryCollectionClient` keeps documents in dictionaries and is used
for local development (``AULA_DEV=1``) and in the tests.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1 import FieldFilter

Document = Tuple[str, Dict[str, Any]]
SnapshotCallback = Callable[[List[Document]], None]

EQUALS = "=="
MEMBER_OF = "in"

# Firestore caps ``in`` filters at 30 values and batches at 500 writes.
IN_QUERY_LIMIT = 30
BATCH_CHUNK = 450


class StoreError(Exception):
    """A read or write against the document store failed."""


class ScopeError(Exception):
    """A query was requested without the owner id that scopes it."""


@dataclass(frozen=True)
class Predicate:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in (EQUALS, MEMBER_OF):
            raise ValueError(f"Unsupported operator {self.op!r}")

    def matches(self, data: Mapping[str, Any]) -> bool:
        actual = data.get(self.field)
        if self.op == EQUALS:
            return actual == self.value
        return actual in self.value


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class CollectionClient(Protocol):
    def subscribe(
        self, collection: str, predicates: Sequence[Predicate], callback: SnapshotCallback
    ) -> Subscription:
        ...

    def query(self, collection: str, predicates: Sequence[Predicate]) -> List[Document]:
        ...

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        ...

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def batch_insert(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> List[str]:
        ...


def _check_predicates(predicates: Sequence[Predicate]) -> None:
    for pred in predicates:
        if pred.op == MEMBER_OF and not list(pred.value):
            raise StoreError(f"Empty 'in' filter on {pred.field!r}")


def _chunks(values: Sequence[Any], size: int) -> List[List[Any]]:
    return [list(values[i : i + size]) for i in range(0, len(values), size)]


# ---------------------------------------------------------------------------
# Firestore
# ---------------------------------------------------------------------------


def _firestore_where(query: Any, field: str, op: str, value: Any) -> Any:
    return query.where(filter=FieldFilter(field, op, value))


class _WatchGroup:
    """Several Firestore watches merged into one full-set subscription."""

    def __init__(self, callback: SnapshotCallback, parts: int) -> None:
        self._callback = callback
        self._lock = threading.Lock()
        self._results: List[Optional[List[Document]]] = [None] * parts
        self._watches: List[Any] = []

    def listener(self, index: int):
        def _on_snapshot(docs, changes, read_time):
            documents = [(snap.id, snap.to_dict() or {}) for snap in docs]
            with self._lock:
                self._results[index] = documents
                if any(part is None for part in self._results):
                    return
                merged: Dict[str, Dict[str, Any]] = {}
                for part in self._results:
                    for doc_id, data in part or []:
                        merged[doc_id] = data
            try:
                self._callback(list(merged.items()))
            except Exception:
                logging.exception("Snapshot callback failed")

        return _on_snapshot

    def add(self, watch: Any) -> None:
        self._watches.append(watch)

    def unsubscribe(self) -> None:
        watches, self._watches = self._watches, []
        for watch in watches:
            try:
                watch.unsubscribe()
            except Exception:  # pragma: no cover - watch threads best-effort
                logging.debug("Failed to stop Firestore watch", exc_info=True)


class FirestoreCollectionClient:
    """:class:`CollectionClient` backed by a ``google.cloud.firestore`` client."""

    def __init__(self, db: Any) -> None:
        self.db = db

    def _queries(self, collection: str, predicates: Sequence[Predicate]) -> List[Any]:
        _check_predicates(predicates)
        base = self.db.collection(collection)
        split: Optional[Predicate] = None
        for pred in predicates:
            if pred.op == MEMBER_OF and len(list(pred.value)) > IN_QUERY_LIMIT:
                split = pred
                continue
            base = _firestore_where(base, pred.field, pred.op, list(pred.value) if pred.op == MEMBER_OF else pred.value)
        if split is None:
            return [base]
        return [
            _firestore_where(base, split.field, MEMBER_OF, chunk)
            for chunk in _chunks(list(split.value), IN_QUERY_LIMIT)
        ]

    def subscribe(
        self, collection: str, predicates: Sequence[Predicate], callback: SnapshotCallback
    ) -> _WatchGroup:
        queries = self._queries(collection, predicates)
        group = _WatchGroup(callback, len(queries))
        try:
            for index, query in enumerate(queries):
                group.add(query.on_snapshot(group.listener(index)))
        except GoogleAPIError as exc:
            group.unsubscribe()
            raise StoreError(f"Could not subscribe to {collection}: {exc}") from exc
        return group

    def query(self, collection: str, predicates: Sequence[Predicate]) -> List[Document]:
        merged: Dict[str, Dict[str, Any]] = {}
        try:
            for query in self._queries(collection, predicates):
                for snap in query.stream():
                    merged[snap.id] = snap.to_dict() or {}
        except GoogleAPIError as exc:
            raise StoreError(f"Query on {collection} failed: {exc}") from exc
        return list(merged.items())

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        try:
            _, ref = self.db.collection(collection).add(dict(document))
        except GoogleAPIError as exc:
            raise StoreError(f"Insert into {collection} failed: {exc}") from exc
        return ref.id

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        try:
            self.db.collection(collection).document(doc_id).update(dict(fields))
        except GoogleAPIError as exc:
            raise StoreError(f"Update of {collection}/{doc_id} failed: {exc}") from exc

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            self.db.collection(collection).document(doc_id).delete()
        except GoogleAPIError as exc:
            raise StoreError(f"Delete of {collection}/{doc_id} failed: {exc}") from exc

    def batch_insert(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> List[str]:
        col = self.db.collection(collection)
        ids: List[str] = []
        try:
            batch = self.db.batch()
            ops = 0
            for document in documents:
                ref = col.document()
                batch.set(ref, dict(document))
                ids.append(ref.id)
                ops += 1
                if ops >= BATCH_CHUNK:
                    batch.commit()
                    batch = self.db.batch()
                    ops = 0
            if ops:
                batch.commit()
        except GoogleAPIError as exc:
            raise StoreError(f"Batch insert into {collection} failed: {exc}") from exc
        return ids


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class _MemorySubscription:
    def __init__(self, client: "MemoryCollectionClient", key: int) -> None:
        self._client = client
        self._key = key

    def unsubscribe(self) -> None:
        self._client._listeners.pop(self._key, None)


class MemoryCollectionClient:
    """Dictionary-backed :class:`CollectionClient` with synchronous notifications."""

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[int, Tuple[str, Tuple[Predicate, ...], SnapshotCallback]] = {}
        self._next_key = 0
        self._lock = threading.RLock()

    @property
    def active_subscriptions(self) -> int:
        return len(self._listeners)

    def _matching(self, collection: str, predicates: Sequence[Predicate]) -> List[Document]:
        docs = self.collections.get(collection, {})
        return [
            (doc_id, dict(data))
            for doc_id, data in docs.items()
            if all(pred.matches(data) for pred in predicates)
        ]

    def _notify(self, collection: str) -> None:
        for col, predicates, callback in list(self._listeners.values()):
            if col == collection:
                callback(self._matching(col, predicates))

    def subscribe(
        self, collection: str, predicates: Sequence[Predicate], callback: SnapshotCallback
    ) -> _MemorySubscription:
        _check_predicates(predicates)
        with self._lock:
            key = self._next_key
            self._next_key += 1
            self._listeners[key] = (collection, tuple(predicates), callback)
            callback(self._matching(collection, predicates))
        return _MemorySubscription(self, key)

    def query(self, collection: str, predicates: Sequence[Predicate]) -> List[Document]:
        _check_predicates(predicates)
        with self._lock:
            return self._matching(collection, predicates)

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        with self._lock:
            self.collections.setdefault(collection, {})[doc_id] = dict(document)
            self._notify(collection)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        with self._lock:
            docs = self.collections.get(collection, {})
            if doc_id not in docs:
                raise StoreError(f"No document {collection}/{doc_id}")
            docs[doc_id].update(fields)
            self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self.collections.get(collection, {}).pop(doc_id, None)
            self._notify(collection)

    def batch_insert(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> List[str]:
        with self._lock:
            docs = self.collections.setdefault(collection, {})
            ids = []
            for document in documents:
                doc_id = uuid.uuid4().hex
                docs[doc_id] = dict(document)
                ids.append(doc_id)
            self._notify(collection)
        return ids


__all__ = [
    "BATCH_CHUNK",
    "CollectionClient",
    "Document",
    "EQUALS",
    "FirestoreCollectionClient",
    "IN_QUERY_LIMIT",
    "MEMBER_OF",
    "MemoryCollectionClient",
    "Predicate",
    "ScopeError",
    "StoreError",
    "Subscription",
]
