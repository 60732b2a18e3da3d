from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from .config import get_default_sort, get_log_level, load_board_config
from .dragdrop import DragController, DropTarget
from .engine import TaskBoard
from .errors import TaskDeckError
from .filtering import FilterSpec
from .models import Task, TaskStatus
from .server.board_api import task_payload

PRIORITY_STYLES = {"high": "bold red", "medium": "yellow", "low": "dim"}


def _configure_logging(level: str = "WARNING") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
            "{message}"
        ),
    )


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _ctx(args: argparse.Namespace) -> TaskBoard:
    board = TaskBoard.open(_resolve_project_dir(args.project_dir))
    if not board.store.initialized:
        raise TaskDeckError(f"Could not load board state: {board.store.load_error}")
    return board


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


def _sort_for(args: argparse.Namespace) -> str:
    if getattr(args, "sort", None):
        return args.sort
    config, _ = load_board_config(_resolve_project_dir(args.project_dir))
    return get_default_sort(config)


def _task_out(board: TaskBoard, task: Task) -> dict[str, Any]:
    return task_payload(board.store, task)


# ---------------------------------------------------------------------------
# task
# ---------------------------------------------------------------------------

def _task_add(args: argparse.Namespace) -> int:
    board = _ctx(args)
    task = board.create_task(
        title=args.title,
        notes=args.notes or "",
        priority=args.priority,
        due_date=args.due,
        project_id=args.project,
        tag_ids=args.tag or [],
        subtasks=args.subtask or [],
        recurrence=args.recurrence,
    )
    _emit({"task": _task_out(board, task)})
    return 0


def _task_list(args: argparse.Namespace) -> int:
    board = _ctx(args)
    spec = FilterSpec.from_dict({
        "status": args.status,
        "project_id": args.project,
        "tag_ids": args.tag or [],
        "priority": args.priority,
        "due_date_filter": args.due_filter,
        "search_query": args.search,
        "sort_by": _sort_for(args),
    })
    tasks = board.view(spec)
    _emit({"tasks": [_task_out(board, t) for t in tasks]})
    return 0


def _set_status(args: argparse.Namespace, status: TaskStatus) -> int:
    board = _ctx(args)
    change = board.set_status(args.task_id, status)
    if change is None:
        sys.stderr.write(f"Task not found: {args.task_id}\n")
        return 1
    payload: dict[str, Any] = {"task": _task_out(board, change.task)}
    if change.spawned is not None:
        payload["spawned"] = _task_out(board, change.spawned)
    _emit(payload)
    return 0


def _task_done(args: argparse.Namespace) -> int:
    return _set_status(args, TaskStatus.COMPLETED)


def _task_reopen(args: argparse.Namespace) -> int:
    return _set_status(args, TaskStatus.PENDING)


def _task_delete(args: argparse.Namespace) -> int:
    board = _ctx(args)
    deleted = board.delete_task(args.task_id)
    _emit({"deleted": deleted, "task_id": args.task_id})
    return 0 if deleted else 1


def _task_move(args: argparse.Namespace) -> int:
    board = _ctx(args)
    if args.before:
        target = DropTarget(kind="task", id=args.before)
    else:
        target = DropTarget(kind="column", id=args.to)
    spec = FilterSpec()
    outcome = DragController(board).drop(args.task_id, target, board.view(spec), spec.sort_by)
    _emit({
        "action": outcome.action.value,
        "task": _task_out(board, outcome.task) if outcome.task else None,
        "spawned": _task_out(board, outcome.spawned) if outcome.spawned else None,
        "reason": outcome.reason,
    })
    return 0


# ---------------------------------------------------------------------------
# project / tag
# ---------------------------------------------------------------------------

def _project_add(args: argparse.Namespace) -> int:
    board = _ctx(args)
    _emit({"project": board.create_project(args.name, args.color).to_dict()})
    return 0


def _project_list(args: argparse.Namespace) -> int:
    board = _ctx(args)
    _emit({"projects": [p.to_dict() for p in board.store.projects()]})
    return 0


def _project_delete(args: argparse.Namespace) -> int:
    board = _ctx(args)
    deleted = board.delete_project(args.project_id)
    _emit({"deleted": deleted, "project_id": args.project_id})
    return 0 if deleted else 1


def _tag_add(args: argparse.Namespace) -> int:
    board = _ctx(args)
    _emit({"tag": board.create_tag(args.name, args.color).to_dict()})
    return 0


def _tag_list(args: argparse.Namespace) -> int:
    board = _ctx(args)
    _emit({"tags": [t.to_dict() for t in board.store.tags()]})
    return 0


def _tag_delete(args: argparse.Namespace) -> int:
    board = _ctx(args)
    deleted = board.delete_tag(args.tag_id)
    _emit({"deleted": deleted, "tag_id": args.tag_id})
    return 0 if deleted else 1


# ---------------------------------------------------------------------------
# board / export / import / server
# ---------------------------------------------------------------------------

def _cell(board: TaskBoard, task: Task) -> str:
    style = PRIORITY_STYLES.get(task.priority.value, "")
    text = f"[{style}]{task.title}[/{style}]" if style else task.title
    details = []
    if task.due_date:
        details.append(task.due_date)
    project = board.store.resolve_project(task)
    if project is not None:
        details.append(project.name)
    if task.subtasks:
        done = sum(1 for s in task.subtasks if s.completed)
        details.append(f"{done}/{len(task.subtasks)}")
    if details:
        text += f" [dim]({', '.join(details)})[/dim]"
    return text


def _board(args: argparse.Namespace) -> int:
    board = _ctx(args)
    columns = board.columns(FilterSpec.from_dict({"sort_by": _sort_for(args)}))
    table = Table(title="Taskdeck")
    for status in TaskStatus:
        table.add_column(f"{status.value.title()} ({len(columns[status.value])})")
    depth = max((len(tasks) for tasks in columns.values()), default=0)
    for i in range(depth):
        table.add_row(*[
            _cell(board, columns[s.value][i]) if i < len(columns[s.value]) else ""
            for s in TaskStatus
        ])
    Console().print(table)
    return 0


def _export(args: argparse.Namespace) -> int:
    board = _ctx(args)
    text = json.dumps(board.export_data(), indent=2)
    if args.output:
        try:
            Path(args.output).write_text(text + "\n")
        except OSError as exc:
            raise TaskDeckError(f"Could not write {args.output}: {exc}") from exc
        sys.stdout.write(f"Exported to {args.output}\n")
    else:
        sys.stdout.write(text + "\n")
    return 0


def _import(args: argparse.Namespace) -> int:
    board = _ctx(args)
    try:
        text = Path(args.path).read_text()
    except OSError as exc:
        raise TaskDeckError(f"Could not read {args.path}: {exc}") from exc
    board.import_data(text)
    _emit({
        "imported": True,
        "tasks": len(board.store.tasks()),
        "projects": len(board.store.projects()),
        "tags": len(board.store.tags()),
    })
    return 0


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'taskdeck[server]'\n")
        return 1

    from .server import create_app

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Taskdeck task board")
    parser.add_argument("--project-dir", default=None, help="Board directory (default: current working directory)")
    parser.add_argument("--log-level", default=None, help="Log level (default: config log_level or WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", help="Start the web API server")
    server.add_argument("--host", default="127.0.0.1")
    server.add_argument("--port", default=8000, type=int)
    server.set_defaults(func=_server)

    task = subparsers.add_parser("task", help="Manage tasks")
    task_sub = task.add_subparsers(dest="task_cmd", required=True)
    tadd = task_sub.add_parser("add", help="Create a task")
    tadd.add_argument("title")
    tadd.add_argument("--notes", default="")
    tadd.add_argument("--priority", default="medium", choices=["high", "medium", "low"])
    tadd.add_argument("--due", default=None, help="Due date (ISO 8601)")
    tadd.add_argument("--project", default=None, help="Project ID")
    tadd.add_argument("--tag", action="append", help="Tag ID (repeatable)")
    tadd.add_argument("--subtask", action="append", help="Subtask title (repeatable)")
    tadd.add_argument("--recurrence", default="none", choices=["none", "daily", "weekly", "monthly"])
    tadd.set_defaults(func=_task_add)
    tlist = task_sub.add_parser("list", help="List tasks")
    tlist.add_argument("--status", default="all", choices=["all", "pending", "completed"])
    tlist.add_argument("--project", default=None)
    tlist.add_argument("--tag", action="append")
    tlist.add_argument("--priority", default=None, choices=["high", "medium", "low"])
    tlist.add_argument("--due-filter", default="none", choices=["none", "today", "this-week", "overdue", "no-due-date"])
    tlist.add_argument("--search", default="")
    tlist.add_argument("--sort", default=None, choices=["manual", "dueDate", "priority", "newest"])
    tlist.set_defaults(func=_task_list)
    tdone = task_sub.add_parser("done", help="Mark a task completed")
    tdone.add_argument("task_id")
    tdone.set_defaults(func=_task_done)
    treopen = task_sub.add_parser("reopen", help="Mark a task pending")
    treopen.add_argument("task_id")
    treopen.set_defaults(func=_task_reopen)
    tdelete = task_sub.add_parser("delete", help="Delete a task")
    tdelete.add_argument("task_id")
    tdelete.set_defaults(func=_task_delete)
    tmove = task_sub.add_parser("move", help="Move a task to a column or before another task")
    tmove.add_argument("task_id")
    tmove.add_argument("--to", default="pending", choices=["pending", "completed"])
    tmove.add_argument("--before", default=None, help="Task ID to drop onto")
    tmove.set_defaults(func=_task_move)

    project = subparsers.add_parser("project", help="Manage projects")
    project_sub = project.add_subparsers(dest="project_cmd", required=True)
    padd = project_sub.add_parser("add", help="Create a project")
    padd.add_argument("name")
    padd.add_argument("--color", default=None)
    padd.set_defaults(func=_project_add)
    plist = project_sub.add_parser("list", help="List projects")
    plist.set_defaults(func=_project_list)
    pdelete = project_sub.add_parser("delete", help="Delete a project")
    pdelete.add_argument("project_id")
    pdelete.set_defaults(func=_project_delete)

    tag = subparsers.add_parser("tag", help="Manage tags")
    tag_sub = tag.add_subparsers(dest="tag_cmd", required=True)
    gadd = tag_sub.add_parser("add", help="Create a tag")
    gadd.add_argument("name")
    gadd.add_argument("--color", default=None)
    gadd.set_defaults(func=_tag_add)
    glist = tag_sub.add_parser("list", help="List tags")
    glist.set_defaults(func=_tag_list)
    gdelete = tag_sub.add_parser("delete", help="Delete a tag")
    gdelete.add_argument("tag_id")
    gdelete.set_defaults(func=_tag_delete)

    board = subparsers.add_parser("board", help="Show the board as columns")
    board.add_argument("--sort", default=None, choices=["manual", "dueDate", "priority", "newest"])
    board.set_defaults(func=_board)

    export = subparsers.add_parser("export", help="Export all records as JSON")
    export.add_argument("--output", "-o", default=None)
    export.set_defaults(func=_export)

    imp = subparsers.add_parser("import", help="Replace all records from an export file")
    imp.add_argument("path")
    imp.set_defaults(func=_import)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = args.log_level
    if not level:
        config, _ = load_board_config(_resolve_project_dir(args.project_dir))
        level = get_log_level(config, default="WARNING")
    _configure_logging(level)
    try:
        return int(args.func(args))
    except TaskDeckError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
