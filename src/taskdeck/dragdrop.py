"""Drag-and-drop transition controller.

An explicit state machine per gesture (``idle -> dragging -> over -> idle``)
fed with plain event objects, so any input source (pointer, touch, keyboard,
an HTTP request) can drive it.

On drop the target resolves to a status: a column id is a status value, a
task target contributes its own status. A differing status is applied first
(completion stamping and recurrence included); then, for manually sorted
views, the destination partition's visible sequence is renumbered with the
dragged task at the target's position. Drops that cannot be resolved change
nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Optional

from loguru import logger

from .models import SortOption, Task, TaskStatus
from .ordering import move

if TYPE_CHECKING:
    from .engine import TaskBoard


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    OVER = "over"


class DropAction(str, Enum):
    NOOP = "noop"
    REORDER = "reorder"
    STATUS_CHANGE = "status_change"
    STATUS_CHANGE_REORDER = "status_change_reorder"


@dataclass(frozen=True)
class DropTarget:
    kind: Literal["column", "task"]
    id: str


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass
class DragStart:
    """Begin dragging *task_id* over the currently displayed view."""

    task_id: str
    view: list[Task] = field(default_factory=list)
    sort_by: SortOption = SortOption.MANUAL


@dataclass
class DragOver:
    target: Optional[DropTarget]


@dataclass
class DragEnd:
    pass


@dataclass
class DragCancel:
    pass


@dataclass
class DropOutcome:
    action: DropAction
    task: Optional[Task] = None
    spawned: Optional[Task] = None
    reason: Optional[str] = None


class DragController:
    def __init__(self, board: "TaskBoard") -> None:
        self._board = board
        self.state = DragState.IDLE
        self.active_id: Optional[str] = None
        self._view_ids: list[str] = []
        self._view_status: dict[str, TaskStatus] = {}
        self._sort_by = SortOption.MANUAL
        self._target: Optional[DropTarget] = None

    @property
    def target(self) -> Optional[DropTarget]:
        return self._target

    def dispatch(self, event: Any) -> Optional[DropOutcome]:
        """Feed one gesture event; returns an outcome for ``DragEnd``/``DragCancel``."""
        if isinstance(event, DragStart):
            self._start(event)
            return None
        if isinstance(event, DragOver):
            if self.state != DragState.IDLE:
                self._target = event.target
                self.state = DragState.OVER if event.target is not None else DragState.DRAGGING
            return None
        if isinstance(event, DragCancel):
            self._reset()
            return DropOutcome(DropAction.NOOP, reason="cancelled")
        if isinstance(event, DragEnd):
            if self.state == DragState.IDLE:
                return DropOutcome(DropAction.NOOP, reason="no active drag")
            try:
                return self._drop()
            finally:
                self._reset()
        raise TypeError(f"Unsupported drag event: {event!r}")

    def drop(
        self,
        task_id: str,
        target: Optional[DropTarget],
        view: list[Task],
        sort_by: SortOption | str = SortOption.MANUAL,
    ) -> DropOutcome:
        """Run a whole gesture (start, over, end) in one call."""
        self.dispatch(DragStart(task_id=task_id, view=view, sort_by=SortOption(sort_by)))
        self.dispatch(DragOver(target=target))
        return self.dispatch(DragEnd()) or DropOutcome(DropAction.NOOP)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _start(self, event: DragStart) -> None:
        if self.state != DragState.IDLE:
            logger.debug("Drag of {} superseded by {}", self.active_id, event.task_id)
        self.state = DragState.DRAGGING
        self.active_id = event.task_id
        self._view_ids = [t.id for t in event.view]
        self._view_status = {t.id: t.status for t in event.view}
        self._sort_by = SortOption(event.sort_by)
        self._target = None

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.active_id = None
        self._view_ids = []
        self._view_status = {}
        self._target = None

    def _resolve_status(self, target: DropTarget) -> Optional[TaskStatus]:
        if target.kind == "column":
            try:
                return TaskStatus(target.id)
            except ValueError:
                return None
        if target.kind == "task":
            over = self._board.store.get_task(target.id)
            return over.status if over is not None else None
        return None

    def _drop(self) -> DropOutcome:
        target = self._target
        task_id = self.active_id
        dragged = self._board.store.get_task(task_id) if task_id else None
        if target is None or dragged is None:
            return DropOutcome(DropAction.NOOP, reason="unresolved target")
        target_status = self._resolve_status(target)
        if target_status is None:
            return DropOutcome(DropAction.NOOP, task=dragged, reason="unresolved target")

        spawned = None
        status_changed = target_status != dragged.status
        if status_changed:
            change = self._board.set_status(dragged.id, target_status)
            if change is None:
                return DropOutcome(DropAction.NOOP, reason="task vanished")
            dragged, spawned = change.task, change.spawned

        reordered = self._reorder(dragged, target, target_status, status_changed)
        if status_changed:
            action = DropAction.STATUS_CHANGE_REORDER if reordered else DropAction.STATUS_CHANGE
        elif reordered:
            action = DropAction.REORDER
        else:
            return DropOutcome(DropAction.NOOP, task=dragged, reason="position unchanged")
        task = self._board.store.get_task(dragged.id) or dragged
        logger.debug("Drop of {} on {} {}: {}", task.id, target.kind, target.id, action.value)
        return DropOutcome(action, task=task, spawned=spawned)

    def _reorder(self, dragged: Task, target: DropTarget, status: TaskStatus, status_changed: bool) -> bool:
        """Renumber the destination partition's visible sequence if the position moved."""
        if self._sort_by != SortOption.MANUAL:
            return False
        if target.kind == "column" and status_changed:
            # The status change already appended the task to the partition.
            return False

        partition = [tid for tid in self._view_ids if self._view_status.get(tid) == status]
        if not status_changed:
            if dragged.id not in partition:
                return False
            if target.kind == "column":
                new_ids = [tid for tid in partition if tid != dragged.id] + [dragged.id]
            else:
                if target.id == dragged.id or target.id not in partition:
                    return False
                new_ids = move(partition, partition.index(dragged.id), partition.index(target.id))
        else:
            if target.id not in partition:
                return False
            new_ids = [tid for tid in partition if tid != dragged.id]
            new_ids.insert(new_ids.index(target.id), dragged.id)

        if new_ids == partition and not status_changed:
            return False
        self._board.reorder(status, new_ids)
        return True
