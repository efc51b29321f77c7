from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import PermissionDenied

from src import store
from src.store import (
    BATCH_CHUNK,
    FirestoreCollectionClient,
    MemoryCollectionClient,
    Predicate,
    StoreError,
)


class _SentinelFieldFilter:
    def __init__(self, *args):
        self.args = args


class DummySnap:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    def to_dict(self):
        return dict(self._data)


class DummyWatch:
    def __init__(self):
        self.stopped = False

    def unsubscribe(self):
        self.stopped = True


class DummyQuery:
    """Immutable query chain that remembers its filters."""

    def __init__(self, docs, filters=(), registry=None):
        self.docs = docs
        self.filters = tuple(filters)
        self.registry = registry if registry is not None else []

    def where(self, *args, **kwargs):
        return DummyQuery(self.docs, self.filters + (kwargs["filter"].args,), self.registry)

    def _matches(self, data):
        for field, op, value in self.filters:
            if op == "==" and data.get(field) != value:
                return False
            if op == "in" and data.get(field) not in value:
                return False
        return True

    def stream(self):
        return [DummySnap(i, d) for i, d in self.docs.items() if self._matches(d)]

    def on_snapshot(self, callback):
        watch = DummyWatch()
        self.registry.append((self, callback, watch))
        return watch

    def deliver(self, callback):
        callback(self.stream(), [], None)


def _firestore_client(monkeypatch, docs):
    monkeypatch.setattr(store, "FieldFilter", _SentinelFieldFilter)
    registry = []
    db = MagicMock()
    db.collection.return_value = DummyQuery(docs, registry=registry)
    return FirestoreCollectionClient(db), registry


def test_firestore_query_applies_each_predicate(monkeypatch):
    docs = {
        "a": {"userId": "prof", "period": "Verano 25"},
        "b": {"userId": "prof", "period": "Otoño 25"},
        "c": {"userId": "other", "period": "Verano 25"},
    }
    client, _ = _firestore_client(monkeypatch, docs)

    result = client.query(
        "students", [Predicate("userId", "==", "prof"), Predicate("period", "==", "Verano 25")]
    )

    assert result == [("a", {"userId": "prof", "period": "Verano 25"})]


def test_firestore_where_uses_field_filter(monkeypatch):
    query = MagicMock()
    monkeypatch.setattr(store, "FieldFilter", _SentinelFieldFilter)
    store._firestore_where(query, "userId", "==", "prof")
    (flt,) = query.where.call_args.kwargs.values()
    assert flt.args == ("userId", "==", "prof")


def test_firestore_subscribe_splits_large_in_filters(monkeypatch):
    ids = [f"s{i}" for i in range(65)]
    docs = {f"r{i}": {"userId": "prof", "studentId": sid} for i, sid in enumerate(ids)}
    client, registry = _firestore_client(monkeypatch, docs)
    received = []

    handle = client.subscribe(
        "attendance",
        [Predicate("userId", "==", "prof"), Predicate("studentId", "in", ids)],
        received.append,
    )

    assert len(registry) == 3
    assert [len(q.filters[-1][2]) for q, _, _ in registry] == [30, 30, 5]

    for query, callback, _ in registry[:-1]:
        query.deliver(callback)
    assert received == []  # waits until every chunk reported once

    query, callback, _ = registry[-1]
    query.deliver(callback)
    assert len(received) == 1
    assert {doc_id for doc_id, _ in received[0]} == set(docs)

    handle.unsubscribe()
    assert all(watch.stopped for _, _, watch in registry)


def test_firestore_rejects_empty_in_filter(monkeypatch):
    client, registry = _firestore_client(monkeypatch, {})
    with pytest.raises(StoreError):
        client.subscribe("mood", [Predicate("studentId", "in", [])], lambda docs: None)
    assert registry == []


def test_firestore_write_errors_become_store_errors():
    db = MagicMock()
    db.collection.return_value.add.side_effect = PermissionDenied("nope")
    client = FirestoreCollectionClient(db)

    with pytest.raises(StoreError) as excinfo:
        client.insert("students", {"name": "Ana"})
    assert isinstance(excinfo.value.__cause__, PermissionDenied)


def test_firestore_insert_returns_new_id():
    db = MagicMock()
    ref = MagicMock()
    ref.id = "new-id"
    db.collection.return_value.add.return_value = (None, ref)
    client = FirestoreCollectionClient(db)
    assert client.insert("students", {"name": "Ana"}) == "new-id"


def test_firestore_batch_insert_commits_in_chunks():
    db = MagicMock()
    batches = []

    def new_batch():
        batch = MagicMock()
        batches.append(batch)
        return batch

    db.batch.side_effect = new_batch
    client = FirestoreCollectionClient(db)

    ids = client.batch_insert("students", ({"name": f"n{i}"} for i in range(BATCH_CHUNK * 2 + 10)))

    assert len(ids) == BATCH_CHUNK * 2 + 10
    assert sum(b.commit.call_count for b in batches) == 3
    assert sum(b.set.call_count for b in batches) == BATCH_CHUNK * 2 + 10


def test_memory_subscription_receives_full_sets():
    client = MemoryCollectionClient()
    snapshots = []
    handle = client.subscribe("students", [Predicate("userId", "==", "prof")], snapshots.append)

    assert snapshots == [[]]
    first = client.insert("students", {"userId": "prof", "name": "Ana"})
    client.insert("students", {"userId": "other", "name": "Bo"})
    client.insert("students", {"userId": "prof", "name": "Cy"})

    assert [len(s) for s in snapshots] == [0, 1, 1, 2]
    assert snapshots[-1][0] == (first, {"userId": "prof", "name": "Ana"})

    handle.unsubscribe()
    client.delete("students", first)
    assert len(snapshots) == 4
    assert client.active_subscriptions == 0


def test_memory_update_of_missing_document_fails():
    client = MemoryCollectionClient()
    with pytest.raises(StoreError):
        client.update("students", "missing", {"name": "x"})


def test_memory_rejects_empty_in_filter():
    client = MemoryCollectionClient()
    with pytest.raises(StoreError):
        client.query("attendance", [Predicate("studentId", "in", [])])


def test_predicate_rejects_unknown_operator():
    with pytest.raises(ValueError):
        Predicate("date", ">=", "2025-01-01")
