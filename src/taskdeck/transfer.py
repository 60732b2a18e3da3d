"""Export/import of the full record set as one JSON document.

The document uses camelCase field names::

    {"tasks": [...], "projects": [...], "tags": [...],
     "exportedAt": "<iso timestamp>", "version": "1.0.0"}

Import replaces everything (clear, then bulk insert); it never merges.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from loguru import logger

from .constants import EXPORT_VERSION
from .errors import ValidationError
from .models import Project, Tag, Task, TaskStatus, now_iso

if TYPE_CHECKING:
    from .store import RecordStore

_CAMEL_RE = re.compile(r"_([a-z])")
_SNAKE_RE = re.compile(r"([A-Z])")

COLLECTIONS = ("tasks", "projects", "tags")


def _camel(data: dict[str, Any]) -> dict[str, Any]:
    return {_CAMEL_RE.sub(lambda m: m.group(1).upper(), k): v for k, v in data.items()}


def _snake(data: dict[str, Any]) -> dict[str, Any]:
    return {_SNAKE_RE.sub(lambda m: "_" + m.group(1).lower(), k): v for k, v in data.items()}


def export_document(store: "RecordStore") -> dict[str, Any]:
    return {
        "tasks": [_camel(t.to_dict()) for t in store.tasks()],
        "projects": [_camel(p.to_dict()) for p in store.projects()],
        "tags": [_camel(t.to_dict()) for t in store.tags()],
        "exportedAt": now_iso(),
        "version": EXPORT_VERSION,
    }


def dumps(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2)


def _sync_completed_at(task: Task) -> None:
    """Set ``completed_at`` exactly while the task is completed."""
    if task.status == TaskStatus.COMPLETED and not task.completed_at:
        logger.debug("Imported task {} is completed without completedAt; using updatedAt", task.id)
        task.completed_at = task.updated_at
    elif task.status != TaskStatus.COMPLETED and task.completed_at is not None:
        logger.debug("Imported task {} is pending with completedAt; clearing it", task.id)
        task.completed_at = None


def parse_document(document: dict[str, Any] | str) -> tuple[list[Task], list[Project], list[Tag]]:
    """Validate an export document and decode its records."""
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Invalid data format: {exc}") from exc
    if not isinstance(document, dict):
        raise ValidationError("Invalid data format")
    errors = [f"'{key}' must be a list" for key in COLLECTIONS if not isinstance(document.get(key), list)]
    if errors:
        raise ValidationError(["Invalid data format", *errors])

    tasks = [Task.from_dict(_snake(item)) for item in document["tasks"] if isinstance(item, dict)]
    for task in tasks:
        _sync_completed_at(task)
    projects = [Project.from_dict(_snake(item)) for item in document["projects"] if isinstance(item, dict)]
    tags = [Tag.from_dict(_snake(item)) for item in document["tags"] if isinstance(item, dict)]

    for key, records in (("tasks", tasks), ("projects", projects), ("tags", tags)):
        ids = [r.id for r in records]
        if len(ids) != len(set(ids)):
            errors.append(f"duplicate ids in '{key}'")
    if errors:
        raise ValidationError(errors)

    version = document.get("version")
    if version and version != EXPORT_VERSION:
        logger.warning("Importing document version {} (expected {})", version, EXPORT_VERSION)
    return tasks, projects, tags


def import_document(store: "RecordStore", document: dict[str, Any] | str) -> None:
    tasks, projects, tags = parse_document(document)
    store.replace_all(tasks, projects, tags)
