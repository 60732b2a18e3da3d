"""Record types for the task board: tasks, subtasks, projects and tags.

Records are plain dataclasses that serialize to YAML/JSON-friendly dicts.
Enum fields are ``str`` enums so they compare equal to their raw values and
``from_dict`` coerces unknown values back to defaults instead of failing.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Two-state lifecycle; each value is also a board column and an order partition."""

    PENDING = "pending"
    COMPLETED = "completed"

    @property
    def partition_rank(self) -> int:
        return 0 if self is TaskStatus.PENDING else 1


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def sort_key(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class Recurrence(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SortOption(str, Enum):
    MANUAL = "manual"
    DUE_DATE = "dueDate"
    PRIORITY = "priority"
    NEWEST = "newest"


class DueDateFilter(str, Enum):
    NONE = "none"
    TODAY = "today"
    THIS_WEEK = "this-week"
    OVERDUE = "overdue"
    NO_DUE_DATE = "no-due-date"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 date or timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


def _enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except (ValueError, KeyError):
        return default


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class Subtask:
    id: str = field(default_factory=lambda: _id("st"))
    title: str = ""
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subtask":
        return cls(
            id=str(data.get("id") or _id("st")),
            title=str(data.get("title") or ""),
            completed=bool(data.get("completed", False)),
        )


@dataclass
class Task:
    """A single task on the board.

    ``order`` only has meaning relative to other tasks with the same
    ``status``; ``completed_at`` is set exactly while the task is completed.
    ``project_id`` and ``tag_ids`` are weak references that the store clears
    when the referenced project or tag goes away.
    """

    id: str = field(default_factory=lambda: _id("task"))
    title: str = ""
    notes: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: Priority = Priority.MEDIUM
    due_date: Optional[str] = None
    order: int = 0
    project_id: Optional[str] = None
    tag_ids: list[str] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)
    recurrence: Recurrence = Recurrence.NONE
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "subtasks":
                data[f.name] = [s.to_dict() for s in value]
            elif isinstance(value, list):
                data[f.name] = list(value)
            else:
                data[f.name] = _plain(value)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing enums gracefully."""
        subtasks = [
            Subtask.from_dict(s) for s in list(data.get("subtasks") or []) if isinstance(s, dict)
        ]
        order = data.get("order")
        return cls(
            id=str(data.get("id") or _id("task")),
            title=str(data.get("title") or ""),
            notes=str(data.get("notes") or ""),
            status=_enum(TaskStatus, data.get("status"), TaskStatus.PENDING),
            priority=_enum(Priority, data.get("priority"), Priority.MEDIUM),
            due_date=data.get("due_date") or None,
            order=int(order) if order is not None else 0,
            project_id=data.get("project_id") or None,
            tag_ids=[str(t) for t in list(data.get("tag_ids") or [])],
            subtasks=subtasks,
            attachments=[str(a) for a in list(data.get("attachments") or [])],
            recurrence=_enum(Recurrence, data.get("recurrence"), Recurrence.NONE),
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
            completed_at=data.get("completed_at") or None,
        )

    def copy(self) -> "Task":
        return Task.from_dict(self.to_dict())

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def due(self) -> Optional[datetime]:
        return parse_iso(self.due_date)


@dataclass
class Project:
    id: str = field(default_factory=lambda: _id("proj"))
    name: str = ""
    color: str = ""
    order: int = 0
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=str(data.get("id") or _id("proj")),
            name=str(data.get("name") or ""),
            color=str(data.get("color") or ""),
            order=int(data.get("order") or 0),
            created_at=str(data.get("created_at") or now_iso()),
        )

    def copy(self) -> "Project":
        return Project.from_dict(self.to_dict())


@dataclass
class Tag:
    id: str = field(default_factory=lambda: _id("tag"))
    name: str = ""
    color: str = ""
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tag":
        return cls(
            id=str(data.get("id") or _id("tag")),
            name=str(data.get("name") or ""),
            color=str(data.get("color") or ""),
            created_at=str(data.get("created_at") or now_iso()),
        )

    def copy(self) -> "Tag":
        return Tag.from_dict(self.to_dict())


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

TASK_FIELDS = frozenset(f.name for f in fields(Task))

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "status": TaskStatus,
    "priority": Priority,
    "recurrence": Recurrence,
}

_LIST_FIELDS = ("tag_ids", "subtasks", "attachments")
_TIMESTAMP_FIELDS = ("completed_at", "updated_at")


def coerce_task_changes(changes: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Validate and coerce a partial task update.

    Returns ``(coerced, errors)``. String values for enum fields become enum
    members, subtask dicts become :class:`Subtask` objects. The ``id`` and
    ``created_at`` fields are immutable and reported as errors.
    """
    errors: list[str] = []
    out: dict[str, Any] = {}
    for key, value in changes.items():
        if key not in TASK_FIELDS:
            errors.append(f"unknown task field '{key}'")
            continue
        if key in ("id", "created_at"):
            errors.append(f"'{key}' cannot be changed")
            continue
        if key in _ENUM_FIELDS:
            enum_cls = _ENUM_FIELDS[key]
            try:
                out[key] = value if isinstance(value, enum_cls) else enum_cls(str(value))
            except ValueError:
                valid = sorted(e.value for e in enum_cls)
                errors.append(f"'{key}' must be one of {valid}, got '{value}'")
            continue
        if key in _LIST_FIELDS:
            if not isinstance(value, (list, tuple)):
                errors.append(f"'{key}' must be an array")
                continue
            if key == "subtasks":
                out[key] = [s if isinstance(s, Subtask) else Subtask.from_dict(dict(s)) for s in value]
            else:
                out[key] = [str(v) for v in value]
            continue
        if key == "order":
            if isinstance(value, bool) or not isinstance(value, int):
                errors.append("'order' must be an integer")
                continue
        if key == "title":
            if not isinstance(value, str) or not value.strip():
                errors.append("'title' is required and must be non-empty")
                continue
        if key == "due_date" and value is not None and parse_iso(value) is None:
            errors.append(f"'due_date' is not an ISO-8601 date: '{value}'")
            continue
        if key == "notes" and not isinstance(value, str):
            errors.append("'notes' must be a string")
            continue
        if key == "project_id" and value is not None and not isinstance(value, str):
            errors.append("'project_id' must be a string or null")
            continue
        if key in _TIMESTAMP_FIELDS and value is not None:
            if not isinstance(value, str) or parse_iso(value) is None:
                errors.append(f"'{key}' is not an ISO-8601 timestamp: '{value}'")
                continue
        out[key] = value
    subtasks = out.get("subtasks")
    if subtasks is not None:
        ids = [s.id for s in subtasks]
        if len(ids) != len(set(ids)):
            errors.append("subtask ids must be unique within a task")
    return out, errors


def validate_task(task: Task) -> list[str]:
    """Return a list of problems with *task* (empty = valid for saving)."""
    data = task.to_dict()
    data.pop("id")
    data.pop("created_at")
    _, errors = coerce_task_changes(data)
    return errors


def validate_name(kind: str, name: Any) -> list[str]:
    if not isinstance(name, str) or not name.strip():
        return [f"{kind} name is required and must be non-empty"]
    return []
