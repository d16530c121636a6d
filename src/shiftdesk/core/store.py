"""Ordered in-memory entity collections keyed by id.

A ``CacheStore`` holds value copies of one entity type (users, rosters,
activity logs) in display order.  It performs no I/O; the fetch orchestrator
and the mutation runner are its only writers.

Missing ids are silent no-ops for ``update``, ``remove`` and ``replace``:
callers must not rely on an exception to detect a missing id.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any, Generic, Protocol, TypeVar

from shiftdesk.models import EntityId

logger = logging.getLogger(__name__)


class Identified(Protocol):
    @property
    def id(self) -> EntityId: ...

    def model_copy(self, *, update: dict[str, Any] | None = None, deep: bool = False) -> Any: ...


T = TypeVar("T", bound=Identified)


class CacheStore(Generic[T]):
    """Ordered collection of entity copies for one entity type.

    Parameters
    ----------
    name:
        Collection name used in log lines (``"users"``, ``"rosters"`` ...).
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._items: list[T] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __contains__(self, entity_id: object) -> bool:
        return self._index_of(entity_id) is not None

    @property
    def items(self) -> list[T]:
        """Snapshot of the collection in display order."""
        return list(self._items)

    def get(self, entity_id: EntityId) -> T | None:
        index = self._index_of(entity_id)
        return None if index is None else self._items[index]

    def load(self, items: Iterable[T]) -> None:
        """Replace the whole collection (full refresh)."""
        self._items = [item.model_copy() for item in items]
        logger.debug("Loaded %d %s into cache", len(self._items), self.name)

    def add(self, item: T) -> None:
        """Prepend *item* (optimistic create)."""
        self._items.insert(0, item.model_copy())

    def update(self, entity_id: EntityId, replacement: T) -> bool:
        """Replace the entry whose id is *entity_id*.  Returns False when absent."""
        index = self._index_of(entity_id)
        if index is None:
            logger.debug("update(%r) on %s: id not cached, ignoring", entity_id, self.name)
            return False
        self._items[index] = replacement.model_copy()
        return True

    def patch(self, entity_id: EntityId, **fields: Any) -> T | None:
        """Apply a partial field update; returns the previous value, or None when absent."""
        index = self._index_of(entity_id)
        if index is None:
            return None
        previous = self._items[index]
        self._items[index] = previous.model_copy(update=fields)
        return previous

    def remove(self, entity_id: EntityId) -> bool:
        index = self._index_of(entity_id)
        if index is None:
            return False
        del self._items[index]
        return True

    def replace(self, temp_id: EntityId, real: T | None) -> None:
        """Resolve an optimistic placeholder.

        The entry for *temp_id* is removed and *real* takes its position.  Any
        entry already carrying ``real.id`` (e.g. loaded by a refresh that
        raced the create) is dropped so exactly one copy survives.  ``real is
        None`` is a pure rollback: the placeholder is removed, nothing is added.
        """
        index = self._index_of(temp_id)
        if index is not None:
            del self._items[index]
        if real is None:
            return

        existing = self._index_of(real.id)
        if existing is not None:
            del self._items[existing]
            if index is not None and existing < index:
                index -= 1
        self._items.insert(index if index is not None else 0, real.model_copy())

    def clear(self) -> None:
        self._items = []

    def _index_of(self, entity_id: object) -> int | None:
        for index, item in enumerate(self._items):
            if item.id == entity_id:
                return index
        return None
