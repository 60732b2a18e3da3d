"""Spawning of follow-up occurrences for recurring tasks."""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from loguru import logger

from .models import Recurrence, Subtask, Task, TaskStatus, parse_iso

if TYPE_CHECKING:
    from .store import RecordStore

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def add_months(dt: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def next_due_date(due_date: str, recurrence: Recurrence | str) -> Optional[str]:
    """Advance *due_date* by one recurrence unit.

    Date-only inputs (``YYYY-MM-DD``) produce date-only outputs; timestamps
    keep their time of day and offset. Returns None for ``none`` or an
    unparseable date.
    """
    recurrence = Recurrence(recurrence)
    current = parse_iso(due_date)
    if current is None or recurrence == Recurrence.NONE:
        return None
    if recurrence == Recurrence.DAILY:
        nxt = current + timedelta(days=1)
    elif recurrence == Recurrence.WEEKLY:
        nxt = current + timedelta(weeks=1)
    else:
        nxt = add_months(current, 1)
    raw = due_date.strip()
    if _DATE_ONLY_RE.match(raw):
        return nxt.date().isoformat()
    if raw.endswith("Z"):
        return nxt.isoformat().replace("+00:00", "Z")
    if datetime.fromisoformat(raw).tzinfo is None:
        return nxt.replace(tzinfo=None).isoformat()
    return nxt.isoformat()


class RecurrenceScheduler:
    """Clones a completed recurring task into its next pending occurrence.

    The schedule drifts forward from the task's own due date, not from the
    completion time. Undated tasks do not recur unless ``anchor_undated`` is
    set, in which case the completion time serves as the anchor.
    """

    def __init__(self, store: "RecordStore", anchor_undated: bool = False) -> None:
        self._store = store
        self.anchor_undated = anchor_undated

    def next_occurrence_due(self, task: Task) -> Optional[str]:
        if task.recurrence == Recurrence.NONE:
            return None
        anchor = task.due_date
        if not anchor:
            if not self.anchor_undated or not task.completed_at:
                return None
            anchor = task.completed_at
        return next_due_date(anchor, task.recurrence)

    def on_completed(self, task: Task) -> Optional[Task]:
        """Spawn the next occurrence for a task that just became completed.

        Must be called once per transition into completed; the original task
        is left untouched as the historical record.
        """
        if task.status != TaskStatus.COMPLETED or task.recurrence == Recurrence.NONE:
            return None
        due = self.next_occurrence_due(task)
        if due is None:
            logger.info("Recurring task {} has no due date; no next occurrence", task.id)
            return None
        occurrence = Task(
            title=task.title,
            notes=task.notes,
            status=TaskStatus.PENDING,
            priority=task.priority,
            due_date=due,
            project_id=task.project_id,
            tag_ids=list(task.tag_ids),
            subtasks=[Subtask(title=s.title, completed=False) for s in task.subtasks],
            attachments=list(task.attachments),
            recurrence=task.recurrence,
            completed_at=None,
        )
        spawned = self._store.add_task(occurrence)
        logger.info("Spawned {} occurrence {} of {} due {}", task.recurrence.value, spawned.id, task.id, due)
        return spawned
