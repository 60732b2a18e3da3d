from __future__ import annotations

import dataclasses
import threading
from pathlib import Path
from typing import Any, Callable, Generic, Iterable, TypeVar

import yaml

from ..constants import STATE_SCHEMA_VERSION
from ..errors import RepositoryError
from ..io_utils import FileLock, _atomic_write_yaml
from .interfaces import CollectionRepository

T = TypeVar("T")


class _YamlCollection(Generic[T]):
    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()
        self._key = key
        self._loader = loader
        self._dumper = dumper

    def _load(self) -> list[T]:
        if not self._path.exists():
            return []
        raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        if raw is None:
            return []
        if not isinstance(raw, dict):
            raise RepositoryError(f"{self._path.name}: expected mapping, got {type(raw).__name__}")
        items = raw.get(self._key, [])
        if items is None:
            return []
        if not isinstance(items, list):
            raise RepositoryError(f"{self._path.name}: '{self._key}' must be a list")
        return [self._loader(item) for item in items if isinstance(item, dict)]

    def _save(self, items: list[T]) -> None:
        payload = {"version": STATE_SCHEMA_VERSION, self._key: [self._dumper(item) for item in items]}
        _atomic_write_yaml(self._path, payload)


class FileCollectionRepository(CollectionRepository[T]):
    """YAML-file backed collection guarded by a file lock.

    Every call is a full read-modify-write of the collection file, written
    atomically through a temporary file.
    """

    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        self._repo = _YamlCollection[T](path, lock_path, key, loader, dumper)

    def get_all(self) -> list[T]:
        with self._repo._thread_lock:
            with self._repo._lock:
                return self._repo._load()

    def add(self, entity: T) -> str:
        entity_id = getattr(entity, "id")
        with self._repo._thread_lock:
            with self._repo._lock:
                items = self._repo._load()
                if any(getattr(item, "id") == entity_id for item in items):
                    raise RepositoryError(f"{self._repo._key}: {entity_id} already exists")
                items.append(entity)
                self._repo._save(items)
        return entity_id

    def update(self, entity_id: str, changes: dict[str, Any]) -> bool:
        with self._repo._thread_lock:
            with self._repo._lock:
                items = self._repo._load()
                for idx, existing in enumerate(items):
                    if getattr(existing, "id") == entity_id:
                        items[idx] = dataclasses.replace(existing, **changes)
                        self._repo._save(items)
                        return True
        return False

    def delete(self, entity_id: str) -> bool:
        with self._repo._thread_lock:
            with self._repo._lock:
                items = self._repo._load()
                keep = [item for item in items if getattr(item, "id") != entity_id]
                if len(keep) == len(items):
                    return False
                self._repo._save(keep)
        return True

    def bulk_add(self, entities: Iterable[T]) -> bool:
        incoming = list(entities)
        with self._repo._thread_lock:
            with self._repo._lock:
                items = self._repo._load()
                seen = {getattr(item, "id") for item in items}
                for entity in incoming:
                    entity_id = getattr(entity, "id")
                    if entity_id in seen:
                        raise RepositoryError(f"{self._repo._key}: {entity_id} already exists")
                    seen.add(entity_id)
                self._repo._save(items + incoming)
        return True

    def clear(self) -> bool:
        with self._repo._thread_lock:
            with self._repo._lock:
                self._repo._save([])
        return True
