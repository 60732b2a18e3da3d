from __future__ import annotations

import dataclasses
import threading
from typing import Any, Callable, Generic, Iterable, TypeVar

from ..errors import RepositoryError
from .interfaces import CollectionRepository

T = TypeVar("T")


class InMemoryRepository(CollectionRepository[T], Generic[T]):
    """Process-local collection; copies on the way in and out.

    Used for tests and for ephemeral boards that do not need durability.
    """

    def __init__(self, copier: Callable[[T], T], key: str = "items") -> None:
        self._copier = copier
        self._key = key
        self._items: dict[str, T] = {}
        self._lock = threading.RLock()

    def get_all(self) -> list[T]:
        with self._lock:
            return [self._copier(item) for item in self._items.values()]

    def add(self, entity: T) -> str:
        entity_id = getattr(entity, "id")
        with self._lock:
            if entity_id in self._items:
                raise RepositoryError(f"{self._key}: {entity_id} already exists")
            self._items[entity_id] = self._copier(entity)
        return entity_id

    def update(self, entity_id: str, changes: dict[str, Any]) -> bool:
        with self._lock:
            existing = self._items.get(entity_id)
            if existing is None:
                return False
            self._items[entity_id] = self._copier(dataclasses.replace(existing, **changes))
        return True

    def delete(self, entity_id: str) -> bool:
        with self._lock:
            return self._items.pop(entity_id, None) is not None

    def bulk_add(self, entities: Iterable[T]) -> bool:
        incoming = list(entities)
        with self._lock:
            ids = [getattr(e, "id") for e in incoming]
            clashes = [i for i in ids if i in self._items]
            if clashes or len(ids) != len(set(ids)):
                raise RepositoryError(f"{self._key}: duplicate ids {sorted(set(clashes)) or ids}")
            for entity in incoming:
                self._items[getattr(entity, "id")] = self._copier(entity)
        return True

    def clear(self) -> bool:
        with self._lock:
            self._items.clear()
        return True
