"""Pure filter/sort functions producing derived task views.

Nothing here mutates a task or a collection: each call returns a new list,
so the same inputs can be evaluated any number of times (and memoized with
:class:`TaskView`).

Dimensions combine with AND, except ``tag_ids`` which matches a task that
carries *any* of the listed tags before being AND-ed with the rest.

Manual sorting is defined per status partition. A view that mixes pending
and completed tasks lists the pending partition first, then the completed
one, each in its own ``order`` sequence.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Iterable, Optional

from .models import DueDateFilter, Priority, SortOption, Task, TaskStatus, parse_iso

if TYPE_CHECKING:
    from .store import RecordStore

STATUS_ALL = "all"

_DUE_FILTER_ALIASES = {
    "all": DueDateFilter.NONE,
    "week": DueDateFilter.THIS_WEEK,
    "noDate": DueDateFilter.NO_DUE_DATE,
}


@dataclass(frozen=True)
class FilterSpec:
    status: str = STATUS_ALL
    project_id: Optional[str] = None
    tag_ids: tuple[str, ...] = field(default_factory=tuple)
    priority: Optional[Priority] = None
    due_date_filter: DueDateFilter = DueDateFilter.NONE
    search_query: str = ""
    sort_by: SortOption = SortOption.MANUAL

    def __post_init__(self) -> None:
        # Normalize so equal filters hash equally for memoization.
        if self.status != STATUS_ALL:
            object.__setattr__(self, "status", TaskStatus(self.status).value)
        object.__setattr__(self, "tag_ids", tuple(self.tag_ids))
        if self.priority is not None:
            object.__setattr__(self, "priority", Priority(self.priority))
        object.__setattr__(self, "due_date_filter", DueDateFilter(self.due_date_filter))
        object.__setattr__(self, "sort_by", SortOption(self.sort_by))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FilterSpec":
        """Build a filter from loose input; ``any``/empty values mean "no filter"."""
        project_id = data.get("project_id")
        priority = data.get("priority")
        due = data.get("due_date_filter") or DueDateFilter.NONE
        due = _DUE_FILTER_ALIASES.get(due, due) if isinstance(due, str) else due
        return cls(
            status=data.get("status") or STATUS_ALL,
            project_id=None if project_id in (None, "", "any") else str(project_id),
            tag_ids=tuple(data.get("tag_ids") or ()),
            priority=None if priority in (None, "", "any") else Priority(priority),
            due_date_filter=DueDateFilter(due),
            search_query=str(data.get("search_query") or ""),
            sort_by=SortOption(data.get("sort_by") or SortOption.MANUAL),
        )


def _week_bounds(today: date, week_starts_on: int) -> tuple[date, date]:
    start = today - timedelta(days=(today.weekday() - week_starts_on) % 7)
    return start, start + timedelta(days=6)


def _matches_due(task: Task, flt: DueDateFilter, today: date, week_starts_on: int) -> bool:
    due = task.due
    if due is None:
        return flt == DueDateFilter.NO_DUE_DATE
    day = due.date()
    if flt == DueDateFilter.TODAY:
        return day == today
    if flt == DueDateFilter.THIS_WEEK:
        start, end = _week_bounds(today, week_starts_on)
        return start <= day <= end
    if flt == DueDateFilter.OVERDUE:
        return day < today and task.status == TaskStatus.PENDING
    return False


def filter_tasks(
    tasks: Iterable[Task],
    spec: FilterSpec,
    today: Optional[date] = None,
    week_starts_on: int = 0,
) -> list[Task]:
    """Return the tasks matching every active dimension of *spec*, in input order."""
    today = today or date.today()
    wanted_tags = set(spec.tag_ids)
    query = spec.search_query.strip().lower()
    out: list[Task] = []
    for task in tasks:
        if spec.status != STATUS_ALL and task.status.value != spec.status:
            continue
        if spec.project_id is not None and task.project_id != spec.project_id:
            continue
        if wanted_tags and wanted_tags.isdisjoint(task.tag_ids):
            continue
        if spec.priority is not None and task.priority != spec.priority:
            continue
        if spec.due_date_filter != DueDateFilter.NONE and not _matches_due(
            task, spec.due_date_filter, today, week_starts_on
        ):
            continue
        if query and query not in task.title.lower() and query not in task.notes.lower():
            continue
        out.append(task)
    return out


def _due_key(task: Task) -> tuple[bool, float]:
    due = task.due
    return (due is None, due.timestamp() if due is not None else 0.0)


def _created_key(task: Task) -> float:
    created = parse_iso(task.created_at)
    return created.timestamp() if created is not None else 0.0


def sort_tasks(tasks: Iterable[Task], sort_by: SortOption | str) -> list[Task]:
    """Stable sort; ties keep their input order."""
    sort_by = SortOption(sort_by)
    items = list(tasks)
    if sort_by == SortOption.DUE_DATE:
        return sorted(items, key=_due_key)
    if sort_by == SortOption.PRIORITY:
        return sorted(items, key=lambda t: t.priority.sort_key)
    if sort_by == SortOption.NEWEST:
        return sorted(items, key=_created_key, reverse=True)
    return sorted(items, key=lambda t: (t.status.partition_rank, t.order))


def apply_view(
    tasks: Iterable[Task],
    spec: FilterSpec,
    today: Optional[date] = None,
    week_starts_on: int = 0,
) -> list[Task]:
    return sort_tasks(filter_tasks(tasks, spec, today, week_starts_on), spec.sort_by)


def group_by_due_day(tasks: Iterable[Task], year: int, month: int) -> dict[date, list[Task]]:
    """Bucket the tasks due in *year*/*month* by the calendar day written in ``due_date``.

    Buckets keep the input order and only days with at least one task appear.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    buckets: dict[date, list[Task]] = {}
    for task in tasks:
        due = task.due
        if due is None:
            continue
        day = due.date()
        if day.year == year and day.month == month:
            buckets.setdefault(day, []).append(task)
    return dict(sorted(buckets.items()))


class TaskView:
    """Memoized views over a record store, invalidated by store revision."""

    def __init__(self, store: "RecordStore", week_starts_on: int = 0) -> None:
        self._store = store
        self._week_starts_on = week_starts_on
        self._revision = -1
        self._cache: dict[tuple[FilterSpec, date], tuple[Task, ...]] = {}

    def get(self, spec: FilterSpec, today: Optional[date] = None) -> list[Task]:
        today = today or date.today()
        if self._store.revision != self._revision:
            self._cache.clear()
            self._revision = self._store.revision
        key = (spec, today)
        cached = self._cache.get(key)
        if cached is None:
            cached = tuple(apply_view(self._store.tasks(), spec, today, self._week_starts_on))
            self._cache[key] = cached
        return list(cached)

    def column(self, status: TaskStatus | str, spec: Optional[FilterSpec] = None, today: Optional[date] = None) -> list[Task]:
        """One kanban column: *spec* narrowed to a single status partition."""
        base = spec or FilterSpec()
        narrowed = replace(base, status=TaskStatus(status).value)
        return self.get(narrowed, today)

    def calendar(self, year: int, month: int, spec: Optional[FilterSpec] = None) -> dict[date, list[Task]]:
        """Month grid data: the view for *spec* bucketed by due day."""
        return group_by_due_day(self.get(spec or FilterSpec()), year, month)

    def tasks_on(self, day: date, spec: Optional[FilterSpec] = None) -> list[Task]:
        return self.calendar(day.year, day.month, spec).get(day, [])
