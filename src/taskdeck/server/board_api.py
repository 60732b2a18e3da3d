"""Task board API endpoints.

This module provides a FastAPI router with CRUD for tasks, projects and tags,
filtered views, reordering, drag-and-drop drops and export/import. It is
mounted under ``/api`` by the ``create_app`` factory.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from ..dragdrop import DragController, DropTarget
from ..engine import TaskBoard
from ..errors import ValidationError
from ..filtering import FilterSpec
from ..models import Task
from ..store import RecordStore


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class SubtaskIn(BaseModel):
    id: Optional[str] = None
    title: str
    completed: bool = False


class CreateTaskRequest(BaseModel):
    title: str
    notes: str = ""
    priority: str = "medium"
    due_date: Optional[str] = None
    project_id: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)
    subtasks: list[SubtaskIn] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)
    recurrence: str = "none"
    status: str = "pending"


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    notes: str = ""
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    order: Optional[int] = None
    project_id: Optional[str] = None
    tag_ids: Optional[list[str]] = None
    subtasks: Optional[list[SubtaskIn]] = None
    attachments: Optional[list[str]] = None
    recurrence: Optional[str] = None


class StatusRequest(BaseModel):
    status: str


class ReorderRequest(BaseModel):
    status: str
    task_ids: list[str]


class FilterRequest(BaseModel):
    status: str = "all"
    project_id: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)
    priority: Optional[str] = None
    due_date_filter: str = "none"
    search_query: str = ""
    sort_by: str = "manual"


class DropRequest(BaseModel):
    task_id: str
    target_kind: Optional[Literal["column", "task"]] = None
    target_id: Optional[str] = None
    filter: FilterRequest = Field(default_factory=FilterRequest)


class SubtaskCreateRequest(BaseModel):
    title: str


class SubtaskUpdateRequest(BaseModel):
    title: Optional[str] = None
    completed: Optional[bool] = None


class NamedRequest(BaseModel):
    name: str
    color: Optional[str] = None


class NamedUpdateRequest(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class ProjectUpdateRequest(NamedUpdateRequest):
    order: Optional[int] = None


class ReorderProjectsRequest(BaseModel):
    project_ids: list[str]


class TaskResponse(BaseModel):
    task: dict[str, Any]
    spawned: Optional[dict[str, Any]] = None


class TaskListResponse(BaseModel):
    tasks: list[dict[str, Any]]
    total: int


class ColumnsResponse(BaseModel):
    columns: dict[str, list[dict[str, Any]]]


class CalendarResponse(BaseModel):
    year: int
    month: int
    days: dict[str, list[dict[str, Any]]]


class DropResponse(BaseModel):
    action: str
    task: Optional[dict[str, Any]] = None
    spawned: Optional[dict[str, Any]] = None
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def task_payload(store: RecordStore, task: Task) -> dict[str, Any]:
    """Serialize a task with dangling project/tag references hidden."""
    data = task.to_dict()
    data["tag_ids"] = store.visible_tag_ids(task)
    data["project_id"] = task.project_id if store.resolve_project(task) is not None else None
    return data


def _not_found(kind: str, entity_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{kind} {entity_id} not found")


def _filter_spec(data: dict[str, Any]) -> FilterSpec:
    try:
        return FilterSpec.from_dict(data)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_board_router(get_board: Callable[[], TaskBoard]) -> APIRouter:
    """Create the board API router.

    Parameters
    ----------
    get_board:
        A callable returning the :class:`TaskBoard` serving the request.
    """
    router = APIRouter(prefix="/api", tags=["board"])

    def _payload(board: TaskBoard, task: Task) -> dict[str, Any]:
        return task_payload(board.store, task)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @router.get("/tasks", response_model=TaskListResponse)
    async def list_tasks(
        status: str = Query("all"),
        project_id: Optional[str] = Query(None),
        tag_ids: Optional[list[str]] = Query(None),
        priority: Optional[str] = Query(None),
        due_date_filter: str = Query("none"),
        search_query: str = Query(""),
        sort_by: str = Query("manual"),
    ) -> TaskListResponse:
        board = get_board()
        spec = _filter_spec({
            "status": status,
            "project_id": project_id,
            "tag_ids": tag_ids or [],
            "priority": priority,
            "due_date_filter": due_date_filter,
            "search_query": search_query,
            "sort_by": sort_by,
        })
        data = [_payload(board, t) for t in board.view(spec)]
        return TaskListResponse(tasks=data, total=len(data))

    @router.get("/tasks/columns", response_model=ColumnsResponse)
    async def get_columns(sort_by: str = Query("manual")) -> ColumnsResponse:
        board = get_board()
        spec = _filter_spec({"sort_by": sort_by})
        columns = {
            status: [_payload(board, t) for t in tasks]
            for status, tasks in board.columns(spec).items()
        }
        return ColumnsResponse(columns=columns)

    @router.get("/tasks/calendar", response_model=CalendarResponse)
    async def get_calendar(
        year: int = Query(...),
        month: int = Query(...),
        status: str = Query("all"),
        project_id: Optional[str] = Query(None),
    ) -> CalendarResponse:
        board = get_board()
        spec = _filter_spec({"status": status, "project_id": project_id})
        days = {
            day.isoformat(): [_payload(board, t) for t in tasks]
            for day, tasks in board.calendar(year, month, spec).items()
        }
        return CalendarResponse(year=year, month=month, days=days)

    # ------------------------------------------------------------------
    # Task CRUD
    # ------------------------------------------------------------------

    @router.post("/tasks", response_model=TaskResponse, status_code=201)
    async def create_task(body: CreateTaskRequest) -> TaskResponse:
        board = get_board()
        task = board.create_task(**body.model_dump())
        return TaskResponse(task=_payload(board, task))

    @router.post("/tasks/reorder", response_model=TaskListResponse)
    async def reorder_tasks(body: ReorderRequest) -> TaskListResponse:
        board = get_board()
        tasks = board.reorder(body.status, body.task_ids)
        data = [_payload(board, t) for t in tasks]
        return TaskListResponse(tasks=data, total=len(data))

    @router.post("/tasks/drop", response_model=DropResponse)
    async def drop_task(body: DropRequest) -> DropResponse:
        board = get_board()
        spec = _filter_spec(body.filter.model_dump())
        target = None
        if body.target_kind and body.target_id:
            target = DropTarget(kind=body.target_kind, id=body.target_id)
        outcome = DragController(board).drop(body.task_id, target, board.view(spec), spec.sort_by)
        return DropResponse(
            action=outcome.action.value,
            task=_payload(board, outcome.task) if outcome.task else None,
            spawned=_payload(board, outcome.spawned) if outcome.spawned else None,
            reason=outcome.reason,
        )

    @router.get("/tasks/{task_id}", response_model=TaskResponse)
    async def get_task(task_id: str) -> TaskResponse:
        board = get_board()
        task = board.get_task(task_id)
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=_payload(board, task))

    @router.patch("/tasks/{task_id}", response_model=TaskResponse)
    async def update_task(task_id: str, body: UpdateTaskRequest) -> TaskResponse:
        board = get_board()
        change = board.apply_changes(task_id, body.model_dump(exclude_unset=True))
        if change is None:
            raise _not_found("Task", task_id)
        spawned = _payload(board, change.spawned) if change.spawned else None
        return TaskResponse(task=_payload(board, change.task), spawned=spawned)

    @router.delete("/tasks/{task_id}")
    async def delete_task(task_id: str) -> dict[str, Any]:
        board = get_board()
        if not board.delete_task(task_id):
            raise _not_found("Task", task_id)
        return {"deleted": True, "task_id": task_id}

    @router.post("/tasks/{task_id}/toggle", response_model=TaskResponse)
    async def toggle_task(task_id: str) -> TaskResponse:
        board = get_board()
        change = board.toggle_status(task_id)
        if change is None:
            raise _not_found("Task", task_id)
        spawned = _payload(board, change.spawned) if change.spawned else None
        return TaskResponse(task=_payload(board, change.task), spawned=spawned)

    @router.post("/tasks/{task_id}/status", response_model=TaskResponse)
    async def set_status(task_id: str, body: StatusRequest) -> TaskResponse:
        board = get_board()
        change = board.set_status(task_id, body.status)
        if change is None:
            raise _not_found("Task", task_id)
        spawned = _payload(board, change.spawned) if change.spawned else None
        return TaskResponse(task=_payload(board, change.task), spawned=spawned)

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    @router.post("/tasks/{task_id}/subtasks", response_model=TaskResponse, status_code=201)
    async def add_subtask(task_id: str, body: SubtaskCreateRequest) -> TaskResponse:
        board = get_board()
        task = board.add_subtask(task_id, body.title)
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=_payload(board, task))

    @router.patch("/tasks/{task_id}/subtasks/{subtask_id}", response_model=TaskResponse)
    async def update_subtask(task_id: str, subtask_id: str, body: SubtaskUpdateRequest) -> TaskResponse:
        board = get_board()
        task = board.update_subtask(task_id, subtask_id, body.model_dump(exclude_unset=True))
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=_payload(board, task))

    @router.post("/tasks/{task_id}/subtasks/{subtask_id}/toggle", response_model=TaskResponse)
    async def toggle_subtask(task_id: str, subtask_id: str) -> TaskResponse:
        board = get_board()
        task = board.toggle_subtask(task_id, subtask_id)
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=_payload(board, task))

    @router.delete("/tasks/{task_id}/subtasks/{subtask_id}", response_model=TaskResponse)
    async def delete_subtask(task_id: str, subtask_id: str) -> TaskResponse:
        board = get_board()
        task = board.delete_subtask(task_id, subtask_id)
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=_payload(board, task))

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @router.get("/projects")
    async def list_projects() -> dict[str, Any]:
        board = get_board()
        return {"projects": [p.to_dict() for p in board.store.projects()]}

    @router.post("/projects", status_code=201)
    async def create_project(body: NamedRequest) -> dict[str, Any]:
        board = get_board()
        return {"project": board.create_project(body.name, body.color).to_dict()}

    @router.post("/projects/reorder")
    async def reorder_projects(body: ReorderProjectsRequest) -> dict[str, Any]:
        board = get_board()
        return {"projects": [p.to_dict() for p in board.reorder_projects(body.project_ids)]}

    @router.patch("/projects/{project_id}")
    async def update_project(project_id: str, body: ProjectUpdateRequest) -> dict[str, Any]:
        board = get_board()
        project = board.update_project(project_id, body.model_dump(exclude_unset=True))
        if project is None:
            raise _not_found("Project", project_id)
        return {"project": project.to_dict()}

    @router.delete("/projects/{project_id}")
    async def delete_project(project_id: str) -> dict[str, Any]:
        board = get_board()
        if not board.delete_project(project_id):
            raise _not_found("Project", project_id)
        return {"deleted": True, "project_id": project_id}

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    @router.get("/tags")
    async def list_tags() -> dict[str, Any]:
        board = get_board()
        return {"tags": [t.to_dict() for t in board.store.tags()]}

    @router.post("/tags", status_code=201)
    async def create_tag(body: NamedRequest) -> dict[str, Any]:
        board = get_board()
        return {"tag": board.create_tag(body.name, body.color).to_dict()}

    @router.patch("/tags/{tag_id}")
    async def update_tag(tag_id: str, body: NamedUpdateRequest) -> dict[str, Any]:
        board = get_board()
        tag = board.update_tag(tag_id, body.model_dump(exclude_unset=True))
        if tag is None:
            raise _not_found("Tag", tag_id)
        return {"tag": tag.to_dict()}

    @router.delete("/tags/{tag_id}")
    async def delete_tag(tag_id: str) -> dict[str, Any]:
        board = get_board()
        if not board.delete_tag(tag_id):
            raise _not_found("Tag", tag_id)
        return {"deleted": True, "tag_id": tag_id}

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    @router.get("/export")
    async def export_data() -> dict[str, Any]:
        return get_board().export_data()

    @router.post("/import")
    async def import_data(body: dict[str, Any]) -> dict[str, Any]:
        board = get_board()
        board.import_data(body)
        return {
            "imported": True,
            "tasks": len(board.store.tasks()),
            "projects": len(board.store.projects()),
            "tags": len(board.store.tags()),
        }

    return router

