from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, TypeVar

T = TypeVar("T")


class CollectionRepository(ABC, Generic[T]):
    """Storage contract for one entity collection (tasks, projects or tags).

    Implementations may raise ``OSError``, ``yaml.YAMLError`` or
    :class:`~taskdeck.errors.RepositoryError`; the record store turns any of
    these, and any ``False`` return, into a ``PersistenceError``.
    """

    @abstractmethod
    def get_all(self) -> list[T]:
        raise NotImplementedError

    @abstractmethod
    def add(self, entity: T) -> str:
        raise NotImplementedError

    @abstractmethod
    def update(self, entity_id: str, changes: dict[str, Any]) -> bool:
        raise NotImplementedError

    @abstractmethod
    def delete(self, entity_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def bulk_add(self, entities: Iterable[T]) -> bool:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> bool:
        raise NotImplementedError
