"""Task board: the application-root object wiring store, ordering, recurrence and views.

A board owns one :class:`RecordStore` and the collaborators that operate on
it. Construct one per application (or per test); nothing in the package keeps
module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from .config import get_anchor_undated_recurrence, get_week_starts_on, load_board_config
from .errors import PersistenceError, ValidationError
from .filtering import FilterSpec, TaskView
from .models import Priority, Project, Recurrence, Subtask, Tag, Task, TaskStatus, now_iso
from .ordering import OrderingManager
from .recurrence import RecurrenceScheduler
from .storage.container import Container
from .store import RecordStore
from .transfer import export_document, import_document


@dataclass
class StatusChange:
    """Result of a status mutation."""

    task: Task
    changed: bool
    spawned: Optional[Task] = None


class TaskBoard:
    """Manage tasks, projects and tags on one board.

    Parameters
    ----------
    container:
        Persistence collaborator holding the three collection repositories.
    anchor_undated_recurrence:
        When true, completing an undated recurring task schedules the next
        occurrence one unit after the completion time instead of skipping it.
    week_starts_on:
        First weekday (0 = Monday) of the ``this-week`` due-date filter.
    """

    def __init__(
        self,
        container: Container,
        *,
        anchor_undated_recurrence: bool = False,
        week_starts_on: int = 0,
        clock: Callable[[], str] = now_iso,
    ) -> None:
        self.container = container
        self.store = RecordStore(container, clock=clock)
        self.ordering = OrderingManager(self.store)
        self.recurrence = RecurrenceScheduler(self.store, anchor_undated=anchor_undated_recurrence)
        self.views = TaskView(self.store, week_starts_on=week_starts_on)

    @classmethod
    def open(cls, project_dir: Path) -> "TaskBoard":
        """Open (and load) the file-backed board stored under *project_dir*."""
        config, err = load_board_config(project_dir)
        if err:
            logger.warning("Ignoring unreadable board config: {}", err)
        board = cls(
            Container.for_project(project_dir),
            anchor_undated_recurrence=get_anchor_undated_recurrence(config),
            week_starts_on=get_week_starts_on(config),
        )
        board.load()
        return board

    def load(self) -> bool:
        return self.store.load()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        notes: str = "",
        priority: str = "medium",
        due_date: Optional[str] = None,
        project_id: Optional[str] = None,
        tag_ids: Optional[list[str]] = None,
        subtasks: Optional[list[Any]] = None,
        attachments: Optional[list[str]] = None,
        recurrence: str = "none",
        status: str = "pending",
    ) -> Task:
        """Create and persist a new task, returning it."""
        try:
            task = Task(
                title=title,
                notes=notes,
                priority=Priority(priority),
                due_date=due_date,
                project_id=project_id,
                tag_ids=list(tag_ids or []),
                subtasks=[_as_subtask(s) for s in subtasks or []],
                attachments=list(attachments or []),
                recurrence=Recurrence(recurrence),
                status=TaskStatus(status),
            )
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        return self.store.add_task(task)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.store.get_task(task_id)

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        """Apply partial updates. A status change here behaves like :meth:`set_status`."""
        result = self.apply_changes(task_id, changes)
        return result.task if result is not None else None

    def delete_task(self, task_id: str) -> bool:
        return self.store.delete_task(task_id)

    def set_status(self, task_id: str, status: TaskStatus | str) -> Optional[StatusChange]:
        """Move a task to *status*; completing a recurring task spawns its next occurrence."""
        return self.apply_changes(task_id, {"status": status})

    def toggle_status(self, task_id: str) -> Optional[StatusChange]:
        task = self.store.get_task(task_id)
        if task is None:
            return None
        target = TaskStatus.PENDING if task.is_completed else TaskStatus.COMPLETED
        return self.set_status(task_id, target)

    def apply_changes(self, task_id: str, changes: dict[str, Any]) -> Optional[StatusChange]:
        """Like :meth:`update_task` but reports the status transition and any spawned occurrence."""
        before = self.store.get_task(task_id)
        if before is None:
            return None
        updated = self.store.update_task(task_id, changes)
        if updated is None:
            return None
        changed = updated.status != before.status
        spawned = None
        if changed and updated.status == TaskStatus.COMPLETED:
            try:
                spawned = self.recurrence.on_completed(updated)
            except PersistenceError:
                logger.warning("Next occurrence of {} not saved; restoring status {}", task_id, before.status.value)
                self.store.update_task(task_id, {"status": before.status, "order": before.order})
                raise
        if changed:
            logger.info("Task {} moved {} -> {}", task_id, before.status.value, updated.status.value)
        return StatusChange(task=updated, changed=changed, spawned=spawned)

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    def add_subtask(self, task_id: str, title: str) -> Optional[Task]:
        task = self.store.get_task(task_id)
        if task is None:
            return None
        if not title or not title.strip():
            raise ValidationError("subtask title is required and must be non-empty")
        subtasks = [*task.subtasks, Subtask(title=title)]
        return self.store.update_task(task_id, {"subtasks": subtasks})

    def update_subtask(self, task_id: str, subtask_id: str, changes: dict[str, Any]) -> Optional[Task]:
        task = self.store.get_task(task_id)
        if task is None:
            return None
        unknown = [k for k in changes if k not in ("title", "completed")]
        if unknown:
            raise ValidationError([f"unknown subtask field '{k}'" for k in unknown])
        if not any(s.id == subtask_id for s in task.subtasks):
            return task
        subtasks = [
            Subtask(
                id=s.id,
                title=str(changes.get("title", s.title)),
                completed=bool(changes.get("completed", s.completed)),
            )
            if s.id == subtask_id
            else s
            for s in task.subtasks
        ]
        return self.store.update_task(task_id, {"subtasks": subtasks})

    def toggle_subtask(self, task_id: str, subtask_id: str) -> Optional[Task]:
        task = self.store.get_task(task_id)
        if task is None:
            return None
        current = next((s for s in task.subtasks if s.id == subtask_id), None)
        if current is None:
            return task
        return self.update_subtask(task_id, subtask_id, {"completed": not current.completed})

    def delete_subtask(self, task_id: str, subtask_id: str) -> Optional[Task]:
        task = self.store.get_task(task_id)
        if task is None:
            return None
        subtasks = [s for s in task.subtasks if s.id != subtask_id]
        if len(subtasks) == len(task.subtasks):
            return task
        return self.store.update_task(task_id, {"subtasks": subtasks})

    # ------------------------------------------------------------------
    # Views and ordering
    # ------------------------------------------------------------------

    def view(self, spec: Optional[FilterSpec] = None, today: Optional[date] = None) -> list[Task]:
        return self.views.get(spec or FilterSpec(), today)

    def columns(self, spec: Optional[FilterSpec] = None, today: Optional[date] = None) -> dict[str, list[Task]]:
        """Kanban columns keyed by status value."""
        return {s.value: self.views.column(s, spec, today) for s in TaskStatus}

    def calendar(self, year: int, month: int, spec: Optional[FilterSpec] = None) -> dict[date, list[Task]]:
        """Tasks due in one month, keyed by due day."""
        try:
            return self.views.calendar(year, month, spec)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    def reorder(self, status: TaskStatus | str, ordered_ids: list[str]) -> list[Task]:
        try:
            status = TaskStatus(status)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        return self.ordering.reorder(status, ordered_ids)

    # ------------------------------------------------------------------
    # Projects and tags
    # ------------------------------------------------------------------

    def create_project(self, name: str, color: Optional[str] = None) -> Project:
        return self.store.add_project(name, color)

    def update_project(self, project_id: str, changes: dict[str, Any]) -> Optional[Project]:
        return self.store.update_project(project_id, changes)

    def delete_project(self, project_id: str) -> bool:
        return self.store.delete_project(project_id)

    def reorder_projects(self, ordered_ids: list[str]) -> list[Project]:
        self.ordering.reorder_projects(ordered_ids)
        return self.store.projects()

    def create_tag(self, name: str, color: Optional[str] = None) -> Tag:
        return self.store.add_tag(name, color)

    def update_tag(self, tag_id: str, changes: dict[str, Any]) -> Optional[Tag]:
        return self.store.update_tag(tag_id, changes)

    def delete_tag(self, tag_id: str) -> bool:
        return self.store.delete_tag(tag_id)

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_data(self) -> dict[str, Any]:
        return export_document(self.store)

    def import_data(self, document: dict[str, Any] | str) -> None:
        """Replace every record with the contents of an export document."""
        import_document(self.store, document)


def _as_subtask(value: Any) -> Subtask:
    if isinstance(value, Subtask):
        return value
    if isinstance(value, dict):
        return Subtask.from_dict(value)
    return Subtask(title=str(value))
