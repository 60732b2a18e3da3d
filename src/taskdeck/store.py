"""Authoritative in-memory record store backed by a persistence container.

Every mutation follows the same discipline: validate, write to the
repository, and only then replace the in-memory record. A failed write raises
:class:`~taskdeck.errors.PersistenceError` and leaves memory as it was, so
memory never runs ahead of durable state. Multi-write operations (cascading
deletes, bulk replacement) that fail part way bring memory in line with the
writes that did land before re-raising.
"""

from __future__ import annotations

import dataclasses
import random
from typing import Any, Callable, Iterable, Optional

import yaml
from loguru import logger

from .constants import PROJECT_COLORS, TAG_COLORS
from .errors import PersistenceError, RepositoryError, ValidationError
from .models import (
    Project,
    Tag,
    Task,
    TaskStatus,
    coerce_task_changes,
    now_iso,
    validate_name,
    validate_task,
)
from .ordering import next_order
from .storage.container import Container

_PROJECT_FIELDS = {"name", "color", "order"}
_TAG_FIELDS = {"name", "color"}


class RecordStore:
    """Owns the canonical task, project and tag collections.

    Records handed out by the store are its own instances and must be treated
    as read-only; change them through the ``update_*`` methods.
    """

    def __init__(self, container: Container, clock: Callable[[], str] = now_iso) -> None:
        self._container = container
        self._clock = clock
        self._tasks: dict[str, Task] = {}
        self._projects: dict[str, Project] = {}
        self._tags: dict[str, Tag] = {}
        self.initialized = False
        self.load_error: Optional[str] = None
        self.revision = 0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """Fetch all three collections. Returns False (and never raises) on failure."""
        try:
            tasks = self._container.tasks.get_all()
            projects = self._container.projects.get_all()
            tags = self._container.tags.get_all()
        except Exception as exc:
            self.initialized = False
            self.load_error = f"{exc.__class__.__name__}: {exc}"
            logger.exception("Failed to load records")
            return False
        self._tasks = {t.id: t for t in tasks}
        self._projects = {p.id: p for p in projects}
        self._tags = {t.id: t for t in tags}
        self.initialized = True
        self.load_error = None
        self._bump()
        logger.debug(
            "Loaded {} tasks, {} projects, {} tags",
            len(self._tasks), len(self._projects), len(self._tags),
        )
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def projects(self) -> list[Project]:
        return sorted(self._projects.values(), key=lambda p: p.order)

    def tags(self) -> list[Tag]:
        return list(self._tags.values())

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        return self._tags.get(tag_id)

    def partition(self, status: TaskStatus | str) -> list[Task]:
        """Tasks sharing *status*, in manual order."""
        status = TaskStatus(status)
        members = [t for t in self._tasks.values() if t.status == status]
        members.sort(key=lambda t: t.order)
        return members

    def resolve_project(self, task: Task) -> Optional[Project]:
        """The task's project, or None when unset or since deleted."""
        if task.project_id is None:
            return None
        return self._projects.get(task.project_id)

    def visible_tag_ids(self, task: Task) -> list[str]:
        return [tid for tid in task.tag_ids if tid in self._tags]

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(self, task: Task) -> Task:
        """Persist a new task placed last in its status partition."""
        errors = validate_task(task)
        if task.id in self._tasks:
            errors.append(f"task {task.id} already exists")
        if errors:
            raise ValidationError(errors)

        now = self._clock()
        new = task.copy()
        new.order = next_order(self._tasks.values(), new.status)
        new.created_at = now
        new.updated_at = now
        if new.status == TaskStatus.COMPLETED:
            new.completed_at = new.completed_at or now
        else:
            new.completed_at = None
        new.tag_ids = self._known_tag_ids(new.tag_ids)
        new.project_id = self._known_project_id(new.project_id)

        self._persist("add task", self._container.tasks.add, new)
        self._tasks[new.id] = new
        self._bump()
        logger.info("Created task {}: {}", new.id, new.title)
        return new

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        """Merge *changes* into a task. Returns None when the id is unknown.

        A status change moves the task to the end of its new partition
        (unless ``order`` is part of *changes*) and keeps ``completed_at`` in
        step with the status.
        """
        current = self._tasks.get(task_id)
        if current is None:
            logger.debug("update_task: {} not found", task_id)
            return None
        coerced, errors = coerce_task_changes(changes)
        if errors:
            raise ValidationError(errors)

        now = self._clock()
        new_status = coerced.get("status", current.status)
        if new_status != current.status and "order" not in coerced:
            others = (t for t in self._tasks.values() if t.id != task_id)
            coerced["order"] = next_order(others, new_status)
        if new_status == TaskStatus.COMPLETED:
            previous = current.completed_at if current.status == TaskStatus.COMPLETED else None
            coerced["completed_at"] = coerced.get("completed_at") or previous or now
        else:
            coerced["completed_at"] = None
        if "tag_ids" in coerced:
            coerced["tag_ids"] = self._known_tag_ids(coerced["tag_ids"])
        if "project_id" in coerced:
            coerced["project_id"] = self._known_project_id(coerced["project_id"])
        coerced["updated_at"] = now

        updated = dataclasses.replace(current.copy(), **coerced)
        self._persist("update task", self._container.tasks.update, task_id, coerced)
        self._tasks[task_id] = updated
        self._bump()
        return updated

    def delete_task(self, task_id: str) -> bool:
        if task_id not in self._tasks:
            return False
        self._persist("delete task", self._container.tasks.delete, task_id)
        del self._tasks[task_id]
        self._bump()
        logger.info("Deleted task {}", task_id)
        return True

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(self, name: str, color: Optional[str] = None) -> Project:
        errors = validate_name("project", name)
        if errors:
            raise ValidationError(errors)
        orders = [p.order for p in self._projects.values()]
        project = Project(
            name=name,
            color=color or random.choice(PROJECT_COLORS),
            order=max(orders) + 1 if orders else 0,
            created_at=self._clock(),
        )
        self._persist("add project", self._container.projects.add, project)
        self._projects[project.id] = project
        self._bump()
        logger.info("Created project {}: {}", project.id, name)
        return project

    def update_project(self, project_id: str, changes: dict[str, Any]) -> Optional[Project]:
        current = self._projects.get(project_id)
        if current is None:
            return None
        self._check_fields("project", changes, _PROJECT_FIELDS)
        updated = dataclasses.replace(current.copy(), **changes)
        self._persist("update project", self._container.projects.update, project_id, dict(changes))
        self._projects[project_id] = updated
        self._bump()
        return updated

    def delete_project(self, project_id: str) -> bool:
        """Delete a project; referencing tasks keep existing with no project."""
        if project_id not in self._projects:
            return False
        detached: list[tuple[str, dict[str, Any]]] = []
        try:
            self._detach_project(project_id, detached)
            self._persist("delete project", self._container.projects.delete, project_id)
            del self._projects[project_id]
        finally:
            self._apply_detached(detached)
        logger.info("Deleted project {} (detached from {} tasks)", project_id, len(detached))
        return True

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def add_tag(self, name: str, color: Optional[str] = None) -> Tag:
        errors = validate_name("tag", name)
        if errors:
            raise ValidationError(errors)
        tag = Tag(name=name, color=color or random.choice(TAG_COLORS), created_at=self._clock())
        self._persist("add tag", self._container.tags.add, tag)
        self._tags[tag.id] = tag
        self._bump()
        logger.info("Created tag {}: {}", tag.id, name)
        return tag

    def update_tag(self, tag_id: str, changes: dict[str, Any]) -> Optional[Tag]:
        current = self._tags.get(tag_id)
        if current is None:
            return None
        self._check_fields("tag", changes, _TAG_FIELDS)
        updated = dataclasses.replace(current.copy(), **changes)
        self._persist("update tag", self._container.tags.update, tag_id, dict(changes))
        self._tags[tag_id] = updated
        self._bump()
        return updated

    def delete_tag(self, tag_id: str) -> bool:
        """Delete a tag and strip it from every task that carries it."""
        if tag_id not in self._tags:
            return False
        detached: list[tuple[str, dict[str, Any]]] = []
        try:
            self._detach_tag(tag_id, detached)
            self._persist("delete tag", self._container.tags.delete, tag_id)
            del self._tags[tag_id]
        finally:
            self._apply_detached(detached)
        logger.info("Deleted tag {} (removed from {} tasks)", tag_id, len(detached))
        return True

    # ------------------------------------------------------------------
    # Bulk replacement
    # ------------------------------------------------------------------

    def replace_all(
        self,
        tasks: Iterable[Task],
        projects: Iterable[Project],
        tags: Iterable[Tag],
    ) -> None:
        """Clear every collection and bulk-insert the given records."""
        tasks, projects, tags = list(tasks), list(projects), list(tags)
        c = self._container
        try:
            self._persist("clear tasks", c.tasks.clear)
            self._persist("clear projects", c.projects.clear)
            self._persist("clear tags", c.tags.clear)
            if projects:
                self._persist("bulk add projects", c.projects.bulk_add, projects)
            if tags:
                self._persist("bulk add tags", c.tags.bulk_add, tags)
            if tasks:
                self._persist("bulk add tasks", c.tasks.bulk_add, tasks)
        except PersistenceError:
            logger.warning("Replacing records failed part way; reloading from storage")
            self.load()
            raise
        self._tasks = {t.id: t.copy() for t in tasks}
        self._projects = {p.id: p.copy() for p in projects}
        self._tags = {t.id: t.copy() for t in tags}
        self.initialized = True
        self.load_error = None
        self._bump()
        logger.info("Replaced records: {} tasks, {} projects, {} tags", len(tasks), len(projects), len(tags))

    # ------------------------------------------------------------------
    # Integrity maintenance
    # ------------------------------------------------------------------

    def _detach_project(self, project_id: str, detached: list[tuple[str, dict[str, Any]]]) -> None:
        """Persist ``project_id = None`` on every referencing task, recording each write in *detached*."""
        now = self._clock()
        for task in self._tasks.values():
            if task.project_id == project_id:
                changes = {"project_id": None, "updated_at": now}
                self._persist("detach project", self._container.tasks.update, task.id, changes)
                detached.append((task.id, changes))

    def _detach_tag(self, tag_id: str, detached: list[tuple[str, dict[str, Any]]]) -> None:
        """Persist removal of ``tag_id`` from every carrying task, recording each write in *detached*."""
        now = self._clock()
        for task in self._tasks.values():
            if tag_id in task.tag_ids:
                changes = {"tag_ids": [t for t in task.tag_ids if t != tag_id], "updated_at": now}
                self._persist("detach tag", self._container.tasks.update, task.id, changes)
                detached.append((task.id, changes))

    def _apply_detached(self, detached: list[tuple[str, dict[str, Any]]]) -> None:
        for task_id, changes in detached:
            self._tasks[task_id] = dataclasses.replace(self._tasks[task_id].copy(), **changes)
        self._bump()

    def _known_tag_ids(self, tag_ids: list[str]) -> list[str]:
        known = [t for t in dict.fromkeys(tag_ids) if t in self._tags]
        if len(known) != len(tag_ids):
            logger.debug("Dropping unknown or duplicate tag ids from {}", tag_ids)
        return known

    def _known_project_id(self, project_id: Optional[str]) -> Optional[str]:
        if project_id is not None and project_id not in self._projects:
            logger.debug("Dropping unknown project id {}", project_id)
            return None
        return project_id

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_fields(kind: str, changes: dict[str, Any], allowed: set[str]) -> None:
        errors = [f"unknown {kind} field '{k}'" for k in changes if k not in allowed]
        if "name" in changes:
            errors.extend(validate_name(kind, changes["name"]))
        if "order" in changes and (isinstance(changes["order"], bool) or not isinstance(changes["order"], int)):
            errors.append("'order' must be an integer")
        if errors:
            raise ValidationError(errors)

    def _persist(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            result = fn(*args)
        except (OSError, yaml.YAMLError, RepositoryError) as exc:
            logger.error("Persistence failure during {}: {}", operation, exc)
            raise PersistenceError(operation, f"{exc.__class__.__name__}: {exc}") from exc
        if result is False:
            logger.error("Persistence failure during {}: storage reported failure", operation)
            raise PersistenceError(operation, "storage reported failure")
        return result

    def _bump(self) -> None:
        self.revision += 1
