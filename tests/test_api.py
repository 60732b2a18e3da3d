"""Tests for the board HTTP API."""

from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from taskdeck.engine import TaskBoard
from taskdeck.server.api import create_app
from taskdeck.storage.container import Container
from taskdeck.storage.memory import InMemoryRepository


class ReadOnlyTasks(InMemoryRepository):
    def add(self, entity):
        raise OSError("read-only file system")


@pytest.fixture
def app(board: TaskBoard):
    return create_app(board=board, enable_cors=False)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _create(client: AsyncClient, **body) -> dict:
    resp = await client.post("/api/tasks", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["task"]


@pytest.mark.anyio
class TestTaskEndpoints:
    async def test_root(self, client: AsyncClient) -> None:
        resp = await client.get("/")
        assert resp.status_code == 200
        assert resp.json()["loaded"] is True

    async def test_create_get_update_delete(self, client: AsyncClient) -> None:
        task = await _create(client, title="Book dentist", priority="high", due_date="2024-05-20")
        assert task["status"] == "pending"
        assert task["order"] == 0

        resp = await client.get(f"/api/tasks/{task['id']}")
        assert resp.json()["task"]["title"] == "Book dentist"

        resp = await client.patch(f"/api/tasks/{task['id']}", json={"notes": "after 3pm", "priority": "low"})
        assert resp.status_code == 200
        assert resp.json()["task"]["notes"] == "after 3pm"
        assert resp.json()["task"]["priority"] == "low"

        resp = await client.delete(f"/api/tasks/{task['id']}")
        assert resp.json() == {"deleted": True, "task_id": task["id"]}
        assert (await client.get(f"/api/tasks/{task['id']}")).status_code == 404

    async def test_missing_task_is_404(self, client: AsyncClient) -> None:
        assert (await client.get("/api/tasks/task-none")).status_code == 404
        assert (await client.patch("/api/tasks/task-none", json={"title": "x"})).status_code == 404
        assert (await client.delete("/api/tasks/task-none")).status_code == 404
        assert (await client.post("/api/tasks/task-none/toggle")).status_code == 404

    async def test_validation_errors_are_422(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"title": "  "})
        assert resp.status_code == 422
        assert resp.json()["detail"] == ["'title' is required and must be non-empty"]

        resp = await client.post("/api/tasks", json={"title": "x", "priority": "urgent"})
        assert resp.status_code == 422

        task = await _create(client, title="ok")
        resp = await client.patch(f"/api/tasks/{task['id']}", json={"status": "archived"})
        assert resp.status_code == 422

    async def test_toggle_recurring_returns_spawned(self, client: AsyncClient) -> None:
        task = await _create(client, title="Gym", due_date="2024-05-06", recurrence="daily")
        resp = await client.post(f"/api/tasks/{task['id']}/toggle")
        data = resp.json()
        assert data["task"]["status"] == "completed"
        assert data["task"]["completed_at"] is not None
        assert data["spawned"]["due_date"] == "2024-05-07"

        resp = await client.patch(f"/api/tasks/{data['spawned']['id']}", json={"status": "completed"})
        assert resp.json()["spawned"]["due_date"] == "2024-05-08"

    async def test_set_status(self, client: AsyncClient) -> None:
        task = await _create(client, title="x", status="completed")
        resp = await client.post(f"/api/tasks/{task['id']}/status", json={"status": "pending"})
        assert resp.json()["task"]["completed_at"] is None

    async def test_list_with_filters(self, client: AsyncClient) -> None:
        await _create(client, title="Low chore", priority="low")
        await _create(client, title="High chore", priority="high")
        await _create(client, title="Done chore", priority="high", status="completed")

        resp = await client.get("/api/tasks", params={"priority": "high"})
        assert [t["title"] for t in resp.json()["tasks"]] == ["High chore", "Done chore"]

        resp = await client.get("/api/tasks", params={"status": "pending", "sort_by": "priority"})
        assert [t["title"] for t in resp.json()["tasks"]] == ["High chore", "Low chore"]

        resp = await client.get("/api/tasks", params={"search_query": "LOW"})
        assert resp.json()["total"] == 1

    async def test_filter_by_tags(self, client: AsyncClient) -> None:
        red = (await client.post("/api/tags", json={"name": "red"})).json()["tag"]
        blue = (await client.post("/api/tags", json={"name": "blue"})).json()["tag"]
        await _create(client, title="r", tag_ids=[red["id"]])
        await _create(client, title="b", tag_ids=[blue["id"]])
        await _create(client, title="none")
        resp = await client.get("/api/tasks", params=[("tag_ids", red["id"]), ("tag_ids", blue["id"])])
        assert [t["title"] for t in resp.json()["tasks"]] == ["r", "b"]

    async def test_columns(self, client: AsyncClient) -> None:
        await _create(client, title="a")
        await _create(client, title="b", status="completed")
        resp = await client.get("/api/tasks/columns")
        columns = resp.json()["columns"]
        assert [t["title"] for t in columns["pending"]] == ["a"]
        assert [t["title"] for t in columns["completed"]] == ["b"]

    async def test_null_notes_rejected_and_search_keeps_working(self, client: AsyncClient) -> None:
        task = await _create(client, title="Call plumber", notes="leak under sink")
        resp = await client.patch(f"/api/tasks/{task['id']}", json={"notes": None})
        assert resp.status_code == 422
        resp = await client.get("/api/tasks", params={"search_query": "sink"})
        assert resp.status_code == 200
        assert [t["title"] for t in resp.json()["tasks"]] == ["Call plumber"]

    async def test_calendar_groups_by_due_day(self, client: AsyncClient) -> None:
        await _create(client, title="date only", due_date="2024-05-02")
        await _create(client, title="offset", due_date="2024-05-31T23:30:00-05:00")
        await _create(client, title="done", due_date="2024-05-02T08:00:00Z", status="completed")
        await _create(client, title="june", due_date="2024-06-01")
        await _create(client, title="undated")

        resp = await client.get("/api/tasks/calendar", params={"year": 2024, "month": 5})
        assert resp.status_code == 200
        days = resp.json()["days"]
        assert list(days) == ["2024-05-02", "2024-05-31"]
        assert [t["title"] for t in days["2024-05-02"]] == ["date only", "done"]
        assert [t["title"] for t in days["2024-05-31"]] == ["offset"]

        resp = await client.get("/api/tasks/calendar", params={"year": 2024, "month": 5, "status": "pending"})
        assert [t["title"] for t in resp.json()["days"]["2024-05-02"]] == ["date only"]

        resp = await client.get("/api/tasks/calendar", params={"year": 2024, "month": 13})
        assert resp.status_code == 422


@pytest.mark.anyio
class TestOrderingEndpoints:
    async def test_reorder(self, client: AsyncClient) -> None:
        ids = [(await _create(client, title=n))["id"] for n in ("a", "b", "c")]
        resp = await client.post("/api/tasks/reorder", json={"status": "pending", "task_ids": ids[::-1]})
        assert [t["title"] for t in resp.json()["tasks"]] == ["c", "b", "a"]
        listed = (await client.get("/api/tasks")).json()["tasks"]
        assert [t["title"] for t in listed] == ["c", "b", "a"]

    async def test_drop_on_column(self, client: AsyncClient) -> None:
        task = await _create(client, title="a")
        resp = await client.post("/api/tasks/drop", json={
            "task_id": task["id"], "target_kind": "column", "target_id": "completed",
        })
        data = resp.json()
        assert data["action"] == "status_change"
        assert data["task"]["status"] == "completed"

    async def test_drop_on_task(self, client: AsyncClient) -> None:
        a = await _create(client, title="a")
        await _create(client, title="b")
        c = await _create(client, title="c")
        resp = await client.post("/api/tasks/drop", json={
            "task_id": c["id"], "target_kind": "task", "target_id": a["id"],
        })
        assert resp.json()["action"] == "reorder"
        listed = (await client.get("/api/tasks")).json()["tasks"]
        assert [t["title"] for t in listed] == ["c", "a", "b"]

    async def test_drop_without_target_is_noop(self, client: AsyncClient) -> None:
        task = await _create(client, title="a")
        resp = await client.post("/api/tasks/drop", json={"task_id": task["id"]})
        assert resp.json()["action"] == "noop"


@pytest.mark.anyio
class TestSubtaskEndpoints:
    async def test_subtask_lifecycle(self, client: AsyncClient) -> None:
        task = await _create(client, title="Move house")
        resp = await client.post(f"/api/tasks/{task['id']}/subtasks", json={"title": "Pack books"})
        assert resp.status_code == 201
        subtask = resp.json()["task"]["subtasks"][0]
        assert subtask["completed"] is False

        base = f"/api/tasks/{task['id']}/subtasks/{subtask['id']}"
        resp = await client.post(f"{base}/toggle")
        assert resp.json()["task"]["subtasks"][0]["completed"] is True
        resp = await client.patch(base, json={"title": "Pack all books"})
        assert resp.json()["task"]["subtasks"][0]["title"] == "Pack all books"
        resp = await client.delete(base)
        assert resp.json()["task"]["subtasks"] == []

    async def test_blank_subtask_title_is_422(self, client: AsyncClient) -> None:
        task = await _create(client, title="x")
        resp = await client.post(f"/api/tasks/{task['id']}/subtasks", json={"title": ""})
        assert resp.status_code == 422


@pytest.mark.anyio
class TestProjectAndTagEndpoints:
    async def test_project_crud_and_cascade(self, client: AsyncClient) -> None:
        resp = await client.post("/api/projects", json={"name": "Garden", "color": "#10B981"})
        project = resp.json()["project"]
        assert project["color"] == "#10B981"
        task = await _create(client, title="Mow", project_id=project["id"])
        assert task["project_id"] == project["id"]

        resp = await client.patch(f"/api/projects/{project['id']}", json={"name": "Yard"})
        assert resp.json()["project"]["name"] == "Yard"

        resp = await client.delete(f"/api/projects/{project['id']}")
        assert resp.json()["deleted"] is True
        resp = await client.get(f"/api/tasks/{task['id']}")
        assert resp.json()["task"]["project_id"] is None
        assert (await client.get("/api/projects")).json()["projects"] == []

    async def test_reorder_projects(self, client: AsyncClient) -> None:
        one = (await client.post("/api/projects", json={"name": "One"})).json()["project"]
        two = (await client.post("/api/projects", json={"name": "Two"})).json()["project"]
        resp = await client.post("/api/projects/reorder", json={"project_ids": [two["id"], one["id"]]})
        assert [p["name"] for p in resp.json()["projects"]] == ["Two", "One"]

    async def test_tag_crud_and_cascade(self, client: AsyncClient) -> None:
        tag = (await client.post("/api/tags", json={"name": "errand"})).json()["tag"]
        task = await _create(client, title="Post office", tag_ids=[tag["id"]])
        resp = await client.patch(f"/api/tags/{tag['id']}", json={"color": "#000000"})
        assert resp.json()["tag"]["color"] == "#000000"
        await client.delete(f"/api/tags/{tag['id']}")
        resp = await client.get(f"/api/tasks/{task['id']}")
        assert resp.json()["task"]["tag_ids"] == []
        assert (await client.delete(f"/api/tags/{tag['id']}")).status_code == 404

    async def test_blank_project_name_is_422(self, client: AsyncClient) -> None:
        resp = await client.post("/api/projects", json={"name": ""})
        assert resp.status_code == 422


@pytest.mark.anyio
class TestTransferEndpoints:
    async def test_export_then_import(self, client: AsyncClient) -> None:
        await _create(client, title="keep me")
        doc = (await client.get("/api/export")).json()
        assert doc["version"] == "1.0.0"
        assert doc["tasks"][0]["title"] == "keep me"

        await _create(client, title="discard me")
        resp = await client.post("/api/import", json=doc)
        assert resp.json() == {"imported": True, "tasks": 1, "projects": 0, "tags": 0}
        listed = (await client.get("/api/tasks")).json()["tasks"]
        assert [t["title"] for t in listed] == ["keep me"]

    async def test_import_bad_document_is_422(self, client: AsyncClient) -> None:
        resp = await client.post("/api/import", json={"tasks": "nope"})
        assert resp.status_code == 422


@pytest.mark.anyio
async def test_persistence_failure_is_503(clock) -> None:
    container = Container(
        tasks=ReadOnlyTasks(lambda t: t.copy(), "tasks"),
        projects=InMemoryRepository(lambda p: p.copy(), "projects"),
        tags=InMemoryRepository(lambda t: t.copy(), "tags"),
    )
    board = TaskBoard(container, clock=clock)
    board.load()
    app = create_app(board=board, enable_cors=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/api/tasks", json={"title": "x"})
        assert resp.status_code == 503
        assert "add task failed" in resp.json()["detail"]
        assert (await client.get("/api/tasks")).json()["total"] == 0


@pytest.mark.anyio
async def test_file_backed_app(tmp_path: Path) -> None:
    app = create_app(project_dir=tmp_path, enable_cors=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/api/tasks", json={"title": "persisted"})
    reopened = TaskBoard.open(tmp_path)
    assert [t.title for t in reopened.store.tasks()] == ["persisted"]
