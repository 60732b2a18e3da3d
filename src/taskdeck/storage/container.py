from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..constants import PROJECTS_FILE, STATE_DIR_NAME, STATE_SCHEMA_VERSION, TAGS_FILE, TASKS_FILE
from ..models import Project, Tag, Task
from .file_repos import FileCollectionRepository
from .interfaces import CollectionRepository
from .memory import InMemoryRepository

STATE_FILES = {
    "tasks": TASKS_FILE,
    "projects": PROJECTS_FILE,
    "tags": TAGS_FILE,
}


def ensure_state_root(project_dir: Path) -> Path:
    state_root = project_dir / STATE_DIR_NAME
    state_root.mkdir(parents=True, exist_ok=True)
    for file_name in STATE_FILES.values():
        target = state_root / file_name
        if not target.exists():
            target.write_text(f"version: {STATE_SCHEMA_VERSION}\n", encoding="utf-8")
    return state_root


class Container:
    """Holds the three collection repositories the record store depends on."""

    def __init__(
        self,
        tasks: CollectionRepository[Task],
        projects: CollectionRepository[Project],
        tags: CollectionRepository[Tag],
        state_root: Optional[Path] = None,
    ) -> None:
        self.tasks = tasks
        self.projects = projects
        self.tags = tags
        self.state_root = state_root

    @classmethod
    def for_project(cls, project_dir: Path) -> "Container":
        state_root = ensure_state_root(project_dir.resolve())

        def _repo(key: str, loader, dumper) -> FileCollectionRepository:
            return FileCollectionRepository(
                state_root / STATE_FILES[key],
                state_root / f"{key}.lock",
                key,
                loader=loader,
                dumper=dumper,
            )

        return cls(
            tasks=_repo("tasks", Task.from_dict, lambda t: t.to_dict()),
            projects=_repo("projects", Project.from_dict, lambda p: p.to_dict()),
            tags=_repo("tags", Tag.from_dict, lambda t: t.to_dict()),
            state_root=state_root,
        )

    @classmethod
    def in_memory(cls) -> "Container":
        return cls(
            tasks=InMemoryRepository(lambda t: t.copy(), "tasks"),
            projects=InMemoryRepository(lambda p: p.copy(), "projects"),
            tags=InMemoryRepository(lambda t: t.copy(), "tags"),
        )
