"""Persistence adapters for the task board collections."""

from __future__ import annotations

from .container import Container
from .file_repos import FileCollectionRepository
from .interfaces import CollectionRepository
from .memory import InMemoryRepository

__all__ = ["CollectionRepository", "Container", "FileCollectionRepository", "InMemoryRepository"]
