"""Tests for the `taskdeck` command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from loguru import logger

from taskdeck.cli import build_parser, main


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger.remove()


def _run(capsys, project_dir: Path, *argv: str) -> tuple[int, dict | str]:
    code = main(["--project-dir", str(project_dir), *argv])
    out = capsys.readouterr().out
    try:
        return code, json.loads(out)
    except json.JSONDecodeError:
        return code, out


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_task_add_list_done(tmp_path: Path, capsys) -> None:
    code, data = _run(capsys, tmp_path, "task", "add", "Renew passport", "--priority", "high",
                      "--due", "2024-06-01", "--recurrence", "monthly", "--subtask", "Photos")
    assert code == 0
    task = data["task"]
    assert task["priority"] == "high"
    assert task["subtasks"][0]["title"] == "Photos"

    code, data = _run(capsys, tmp_path, "task", "done", task["id"])
    assert code == 0
    assert data["task"]["status"] == "completed"
    assert data["spawned"]["due_date"] == "2024-07-01"

    code, data = _run(capsys, tmp_path, "task", "list", "--status", "pending")
    assert [t["due_date"] for t in data["tasks"]] == ["2024-07-01"]

    code, data = _run(capsys, tmp_path, "task", "reopen", task["id"])
    assert data["task"]["completed_at"] is None


def test_task_move_and_delete(tmp_path: Path, capsys) -> None:
    ids = []
    for title in ("a", "b", "c"):
        _, data = _run(capsys, tmp_path, "task", "add", title)
        ids.append(data["task"]["id"])

    code, data = _run(capsys, tmp_path, "task", "move", ids[2], "--before", ids[0])
    assert code == 0
    assert data["action"] == "reorder"
    _, data = _run(capsys, tmp_path, "task", "list")
    assert [t["title"] for t in data["tasks"]] == ["c", "a", "b"]

    _, data = _run(capsys, tmp_path, "task", "move", ids[1], "--to", "completed")
    assert data["action"] == "status_change"

    code, data = _run(capsys, tmp_path, "task", "delete", ids[0])
    assert code == 0 and data["deleted"] is True
    code, data = _run(capsys, tmp_path, "task", "delete", ids[0])
    assert code == 1


def test_projects_and_tags(tmp_path: Path, capsys) -> None:
    _, data = _run(capsys, tmp_path, "project", "add", "Travel", "--color", "#3B82F6")
    project = data["project"]
    _, data = _run(capsys, tmp_path, "tag", "add", "visa")
    tag = data["tag"]
    _, data = _run(capsys, tmp_path, "task", "add", "Book flights", "--project", project["id"], "--tag", tag["id"])
    task_id = data["task"]["id"]

    _, data = _run(capsys, tmp_path, "task", "list", "--project", project["id"])
    assert [t["id"] for t in data["tasks"]] == [task_id]

    _run(capsys, tmp_path, "tag", "delete", tag["id"])
    _run(capsys, tmp_path, "project", "delete", project["id"])
    _, data = _run(capsys, tmp_path, "task", "list")
    assert data["tasks"][0]["tag_ids"] == []
    assert data["tasks"][0]["project_id"] is None
    _, data = _run(capsys, tmp_path, "project", "list")
    assert data["projects"] == []
    _, data = _run(capsys, tmp_path, "tag", "list")
    assert data["tags"] == []


def test_validation_error_exits_nonzero(tmp_path: Path, capsys) -> None:
    code = main(["--project-dir", str(tmp_path), "task", "add", "   "])
    captured = capsys.readouterr()
    assert code == 1
    assert "Error:" in captured.err


def test_board_renders_columns(tmp_path: Path, capsys) -> None:
    _run(capsys, tmp_path, "task", "add", "Plan trip")
    _run(capsys, tmp_path, "task", "add", "Pack", "--due", "2024-07-01")
    code, out = _run(capsys, tmp_path, "board")
    assert code == 0
    assert "Pending (2)" in out
    assert "Completed (0)" in out
    assert "Plan trip" in out


def test_export_import_round_trip(tmp_path: Path, capsys) -> None:
    source = tmp_path / "source"
    target = tmp_path / "target"
    _run(capsys, source, "task", "add", "Carry over")
    export_file = tmp_path / "export.json"
    code, _ = _run(capsys, source, "export", "--output", str(export_file))
    assert code == 0
    assert json.loads(export_file.read_text())["version"] == "1.0.0"

    _run(capsys, target, "task", "add", "Overwritten")
    code, data = _run(capsys, target, "import", str(export_file))
    assert code == 0
    assert data["tasks"] == 1
    _, data = _run(capsys, target, "task", "list")
    assert [t["title"] for t in data["tasks"]] == ["Carry over"]


def test_bad_import_exits_nonzero(tmp_path: Path, capsys) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{}")
    code = main(["--project-dir", str(tmp_path), "import", str(bad)])
    assert code == 1
    assert "Invalid data format" in capsys.readouterr().err


def test_unreadable_import_and_unwritable_export_exit_nonzero(tmp_path: Path, capsys) -> None:
    code = main(["--project-dir", str(tmp_path), "import", str(tmp_path / "missing.json")])
    assert code == 1
    assert capsys.readouterr().err.startswith("Error: Could not read")

    code = main(["--project-dir", str(tmp_path), "export", "--output", str(tmp_path / "no-dir" / "out.json")])
    assert code == 1
    assert capsys.readouterr().err.startswith("Error: Could not write")


def test_default_sort_from_config(tmp_path: Path, capsys) -> None:
    state = tmp_path / ".taskdeck"
    state.mkdir()
    (state / "config.yaml").write_text("default_sort: priority\n", encoding="utf-8")
    _run(capsys, tmp_path, "task", "add", "low", "--priority", "low")
    _run(capsys, tmp_path, "task", "add", "high", "--priority", "high")
    _, data = _run(capsys, tmp_path, "task", "list")
    assert [t["title"] for t in data["tasks"]] == ["high", "low"]
