"""Partition-scoped manual ordering.

``order`` is only compared between tasks of the same status. Inserts place a
task after the current partition maximum and never renumber existing
records; an explicit :meth:`OrderingManager.reorder` renumbers the supplied
sequence densely from zero.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from loguru import logger

from .models import Task, TaskStatus

if TYPE_CHECKING:
    from .store import RecordStore


def next_order(tasks: Iterable[Task], status: TaskStatus | str) -> int:
    """Order value that places a new member last in the *status* partition."""
    status = TaskStatus(status)
    orders = [t.order for t in tasks if t.status == status]
    return max(orders) + 1 if orders else 0


def move(ids: list[str], source_index: int, target_index: int) -> list[str]:
    """Return a copy of *ids* with the element at *source_index* moved to *target_index*."""
    out = list(ids)
    item = out.pop(source_index)
    out.insert(target_index, item)
    return out


class OrderingManager:
    def __init__(self, store: "RecordStore") -> None:
        self._store = store

    def reorder(self, status: TaskStatus | str, ordered_ids: list[str]) -> list[Task]:
        """Assign ``order = index`` along *ordered_ids* within one partition.

        Callers must pass the complete visible sequence of the partition:
        members left out keep their previous values. Ids that are unknown or
        belong to the other partition are skipped and do not take an index.
        Only records whose order actually changes are persisted. Returns the
        partition members in their new sequence.
        """
        status = TaskStatus(status)
        accepted: list[Task] = []
        seen: set[str] = set()
        for task_id in ordered_ids:
            task = self._store.get_task(task_id)
            if task is None or task.status != status or task_id in seen:
                logger.warning("reorder({}): skipping {}", status.value, task_id)
                continue
            seen.add(task_id)
            accepted.append(task)

        result: list[Task] = []
        changed = 0
        for index, task in enumerate(accepted):
            if task.order != index:
                updated = self._store.update_task(task.id, {"order": index})
                changed += 1
                result.append(updated if updated is not None else task)
            else:
                result.append(task)
        logger.debug("reorder({}): {} of {} records renumbered", status.value, changed, len(accepted))
        return result

    def reorder_projects(self, ordered_ids: list[str]) -> None:
        """Assign the global project order along *ordered_ids*."""
        accepted = [pid for pid in dict.fromkeys(ordered_ids) if self._store.get_project(pid) is not None]
        for index, project_id in enumerate(accepted):
            project = self._store.get_project(project_id)
            if project is not None and project.order != index:
                self._store.update_project(project_id, {"order": index})
