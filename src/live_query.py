"""Live, scope-filtered snapshots of a store collection.

A :class:`LiveQuery` owns at most one store subscription.  Changing the
scope (owner id or any filter) releases the current subscription before the
next one is opened, and :meth:`LiveQuery.close` (or leaving the ``with``
block) releases it for good.  The local snapshot is only ever replaced by a
notification from the store; mutations in subclasses never touch it.
"""

from __future__ import annotations

import logging
import threading
from functools import partial
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .store import EQUALS, MEMBER_OF, CollectionClient, Document, Predicate, ScopeError, StoreError, Subscription

E = TypeVar("E")

OWNER_FIELD = "userId"
STUDENT_IDS = "student_ids"

Listener = Callable[[List[Any]], None]


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(value)
    return value


class LiveQuery(Generic[E]):
    """Base class for the per-entity hooks.

    Subclasses set :attr:`collection`, :attr:`entity` (a type with a
    ``from_document(doc_id, data)`` constructor) and :attr:`scope_fields`,
    which maps accepted scope keyword names to store field names.  The
    ``student_ids`` scope is a set-membership filter; every other scope is an
    equality filter.  ``None`` and ``""`` mean "no filter".
    """

    collection: str = ""
    entity: Any = None
    scope_fields: Mapping[str, str] = {}
    required_scope: Tuple[str, ...] = ()

    def __init__(self, client: CollectionClient, owner_id: Optional[str] = None, **scope: Any) -> None:
        self.client = client
        self.owner_id: Optional[str] = None
        self.scope: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._items: List[E] = []
        self._subscription: Optional[Subscription] = None
        self._scope_key: Any = object()
        self._generation = 0
        self._listeners: List[Listener] = []
        self.set_scope(owner_id, **scope)

    @classmethod
    def for_context(cls, client: CollectionClient, context: Any, **scope: Any) -> "LiveQuery[E]":
        """Open a query scoped to ``context.owner_id`` and ``context.period``."""

        return cls(client, context.owner_id, period=context.period, **scope)

    # ------------------------------------------------------------------
    # snapshot access
    # ------------------------------------------------------------------

    @property
    def items(self) -> List[E]:
        with self._lock:
            return list(self._items)

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def add_listener(self, listener: Listener) -> None:
        """Call ``listener(items)`` after every snapshot replacement."""

        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # scope handling
    # ------------------------------------------------------------------

    def predicates(self, owner_id: Optional[str], scope: Mapping[str, Any]) -> List[Predicate]:
        """Return the conjunction of filters for ``owner_id`` and ``scope``.

        Raises :class:`ScopeError` if the owner id, or any scope listed in
        :attr:`required_scope`, is missing.
        """

        if not owner_id:
            raise ScopeError(f"{type(self).__name__} needs an owner id")
        for name in self.required_scope:
            if not scope.get(name):
                raise ScopeError(f"{type(self).__name__} needs {name!r}")
        preds = [Predicate(OWNER_FIELD, EQUALS, owner_id)]
        for name, value in scope.items():
            if value is None or value == "":
                continue
            field = self.scope_fields[name]
            if name == STUDENT_IDS:
                preds.append(Predicate(field, MEMBER_OF, list(value)))
            else:
                preds.append(Predicate(field, EQUALS, value))
        return preds

    def set_scope(self, owner_id: Optional[str], **scope: Any) -> None:
        """Re-target the live query; a no-op when nothing changed."""

        unknown = set(scope) - set(self.scope_fields)
        if unknown:
            raise TypeError(f"Unknown scope for {type(self).__name__}: {sorted(unknown)}")

        key = (owner_id, tuple(sorted((name, _freeze(value)) for name, value in scope.items())))
        if key == self._scope_key:
            return

        self._release()
        self._scope_key = key
        self.owner_id = owner_id
        self.scope = dict(scope)

        try:
            preds = self.predicates(owner_id, scope)
        except ScopeError:
            self._replace(self._generation, [])
            return

        student_ids = scope.get(STUDENT_IDS)
        if student_ids is not None and not list(student_ids):
            # scope resolved to zero students; an empty ``in`` filter is
            # rejected by the store, so there is nothing to subscribe to
            self._replace(self._generation, [])
            return

        try:
            self._subscription = self.client.subscribe(
                self.collection, preds, partial(self._replace_documents, self._generation)
            )
        except StoreError:
            # forget the scope so the next call retries the subscription
            self._scope_key = object()
            raise

    def _release(self) -> None:
        with self._lock:
            self._generation += 1
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def close(self) -> None:
        """Release the subscription; the snapshot is kept as last seen."""

        self._release()
        self._scope_key = object()

    def __enter__(self) -> "LiveQuery[E]":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # notifications
    # ------------------------------------------------------------------

    def _replace_documents(self, generation: int, documents: Sequence[Document]) -> None:
        items = [self.entity.from_document(doc_id, data) for doc_id, data in documents]
        self._replace(generation, items)

    def _replace(self, generation: int, items: List[E]) -> None:
        with self._lock:
            if generation != self._generation:
                # late delivery from a released subscription
                return
            self._items = list(items)
        for listener in list(self._listeners):
            listener(list(items))

    # ------------------------------------------------------------------
    # mutation helpers
    # ------------------------------------------------------------------

    def _owner_or_warn(self, action: str) -> Optional[str]:
        if not self.owner_id:
            logging.warning("Skipping %s on %s: no owner id", action, self.collection)
            return None
        return self.owner_id


__all__ = ["LiveQuery", "OWNER_FIELD", "STUDENT_IDS"]
