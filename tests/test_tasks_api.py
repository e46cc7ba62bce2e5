from datetime import datetime, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from task_api.errors import StorageError
from task_api.main import create_app
from task_api.repositories import InMemoryTaskStore
from task_api.settings import Settings


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def local_midnight(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day).astimezone(timezone.utc)


def create_task_payload(
    title="Test Task",
    description="Do something",
    due_date: Optional[str] = "2099-12-25",
):
    payload = {
        "title": title,
        "description": description,
    }
    if due_date is not None:
        payload["dueDate"] = due_date
    return payload


def assert_task_shape(task: dict):
    for key in ["id", "title", "description", "dueDate", "completed", "createdAt", "updatedAt"]:
        assert key in task
    assert isinstance(task["id"], str) and task["id"]
    assert isinstance(task["title"], str)
    assert isinstance(task["completed"], bool)
    parse_ts(task["createdAt"])
    parse_ts(task["dueDate"])
    if task["updatedAt"] is not None:
        parse_ts(task["updatedAt"])


class TestHealth:
    def test_health_check(self, client: TestClient):
        res = client.get("/")
        assert res.status_code == 200
        assert res.json() == {"message": "Task Tracker API", "status": "Running", "storage": "transient"}

    def test_unknown_route(self, client: TestClient):
        res = client.get("/api/nope")
        assert res.status_code == 404
        assert res.json() == {"message": "Route not found"}

    def test_unsupported_method_is_unknown_route(self, client: TestClient):
        res = client.patch("/api/tasks")
        assert res.status_code == 404
        assert res.json() == {"message": "Route not found"}


class TestTasksCRUD:
    def test_create_task(self, client: TestClient):
        res = client.post("/api/tasks", json=create_task_payload(title="Buy milk", description=None))
        assert res.status_code == 201
        task = res.json()
        assert_task_shape(task)
        assert task["title"] == "Buy milk"
        assert task["description"] == ""
        assert task["completed"] is False
        assert task["updatedAt"] is None
        # Date-only due dates are promoted to local midnight and returned in UTC
        assert parse_ts(task["dueDate"]) == local_midnight(2099, 12, 25)

    def test_create_ignores_completed(self, client: TestClient):
        payload = create_task_payload()
        payload["completed"] = True
        res = client.post("/api/tasks", json=payload)
        assert res.status_code == 201
        assert res.json()["completed"] is False

    def test_get_task_and_not_found(self, client: TestClient):
        created = client.post("/api/tasks", json=create_task_payload(title="Read book")).json()

        res_get = client.get(f"/api/tasks/{created['id']}")
        assert res_get.status_code == 200
        assert res_get.json() == created

        res_404 = client.get("/api/tasks/nonexistent")
        assert res_404.status_code == 404
        assert res_404.json() == {"message": "Task not found"}

    def test_list_newest_first(self, client: TestClient):
        ids = [client.post("/api/tasks", json=create_task_payload(title=t)).json()["id"] for t in "ABC"]
        res = client.get("/api/tasks")
        assert res.status_code == 200
        assert [t["id"] for t in res.json()] == list(reversed(ids))

    def test_put_update(self, client: TestClient):
        tid = client.post("/api/tasks", json=create_task_payload(title="Initial", description="A")).json()["id"]

        res_put = client.put(
            f"/api/tasks/{tid}",
            json={"title": "Replaced", "dueDate": "2100-01-01", "completed": True},
        )
        assert res_put.status_code == 200
        updated = res_put.json()
        assert_task_shape(updated)
        assert updated["id"] == tid
        assert updated["title"] == "Replaced"
        assert updated["description"] == ""
        assert updated["completed"] is True
        assert parse_ts(updated["dueDate"]) == local_midnight(2100, 1, 1)
        assert parse_ts(updated["updatedAt"]) > parse_ts(updated["createdAt"])

        # The full record is returned, createdAt included
        assert client.get(f"/api/tasks/{tid}").json() == updated

    def test_put_keeps_completed_when_omitted(self, client: TestClient):
        tid = client.post("/api/tasks", json=create_task_payload()).json()["id"]
        client.patch(f"/api/tasks/{tid}/status", json={"completed": True})

        res = client.put(f"/api/tasks/{tid}", json={"title": "Renamed"})
        assert res.status_code == 200
        assert res.json()["completed"] is True
        assert parse_ts(res.json()["dueDate"]) == local_midnight(2099, 12, 25)

    def test_put_not_found(self, client: TestClient):
        res = client.put("/api/tasks/424242", json={"title": "Nope"})
        assert res.status_code == 404
        assert res.json()["message"] == "Task not found"

    def test_patch_status(self, client: TestClient):
        created = client.post("/api/tasks", json=create_task_payload(title="Partial", description="X")).json()

        res = client.patch(f"/api/tasks/{created['id']}/status", json={"completed": True})
        assert res.status_code == 200
        patched = res.json()
        assert patched["completed"] is True
        for key in ("title", "description", "dueDate", "createdAt"):
            assert patched[key] == created[key]

        res_nf = client.patch("/api/tasks/123456/status", json={"completed": True})
        assert res_nf.status_code == 404

    def test_delete_task(self, client: TestClient):
        tid = client.post("/api/tasks", json=create_task_payload(title="ToDelete")).json()["id"]

        res_del = client.delete(f"/api/tasks/{tid}")
        assert res_del.status_code == 200
        assert res_del.json() == {"message": "Task deleted successfully", "id": tid}

        assert client.get(f"/api/tasks/{tid}").status_code == 404
        assert all(t["id"] != tid for t in client.get("/api/tasks").json())

        res_del_again = client.delete(f"/api/tasks/{tid}")
        assert res_del_again.status_code == 404
        assert res_del_again.json()["message"] == "Task not found"

    def test_end_to_end_lifecycle(self, client: TestClient):
        res = client.post("/api/tasks", json={"title": "Buy milk", "dueDate": "2025-06-01"})
        assert res.status_code == 201
        task = res.json()
        assert task["completed"] is False

        res = client.patch(f"/api/tasks/{task['id']}/status", json={"completed": True})
        assert res.status_code == 200
        assert res.json()["completed"] is True

        res = client.delete(f"/api/tasks/{task['id']}")
        assert res.status_code == 200
        assert set(res.json()) == {"message", "id"}

        assert client.get(f"/api/tasks/{task['id']}").status_code == 404


class TestValidationErrors:
    @pytest.mark.parametrize(
        "payload",
        [
            {"title": "", "dueDate": "2025-01-01"},
            {"title": "  ", "dueDate": "2025-01-01"},
            {"title": "X"},
            {"title": "X", "dueDate": "not-a-date"},
            {"description": "no title", "dueDate": "2025-01-01"},
            {"title": 123, "dueDate": "2025-06-01"},
        ],
    )
    def test_create_validation_error(self, client: TestClient, payload: dict):
        res = client.post("/api/tasks", json=payload)
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "ValidationError"
        assert body["message"]
        assert isinstance(body["detail"], list) and body["detail"]

    def test_create_without_body(self, client: TestClient):
        res = client.post("/api/tasks")
        assert res.status_code == 400

    def test_missing_due_date_is_named(self, client: TestClient):
        res = client.post("/api/tasks", json={"title": "X"})
        assert "dueDate" in res.json()["message"]

    @pytest.mark.parametrize(
        "payload",
        [
            {"title": ["x"]},
            {"title": 7},
            {"title": "Ok", "completed": "yes"},
            {"title": "Ok", "completed": 1},
        ],
    )
    def test_put_rejects_wrongly_typed_fields(self, client: TestClient, payload: dict):
        created = client.post("/api/tasks", json=create_task_payload()).json()
        res = client.put(f"/api/tasks/{created['id']}", json=payload)
        assert res.status_code == 400
        assert res.json()["error"] == "ValidationError"
        assert client.get(f"/api/tasks/{created['id']}").json() == created

    def test_put_requires_title(self, client: TestClient):
        tid = client.post("/api/tasks", json=create_task_payload()).json()["id"]
        res = client.put(f"/api/tasks/{tid}", json={"description": "x"})
        assert res.status_code == 400
        assert client.get(f"/api/tasks/{tid}").json()["description"] == "Do something"

    @pytest.mark.parametrize("payload", [{}, {"completed": None}, {"completed": "yes"}])
    def test_patch_status_requires_boolean(self, client: TestClient, payload: dict):
        tid = client.post("/api/tasks", json=create_task_payload()).json()["id"]
        res = client.patch(f"/api/tasks/{tid}/status", json=payload)
        assert res.status_code == 400
        assert res.json()["error"] == "ValidationError"


class _BrokenStore(InMemoryTaskStore):
    def _fetch_all(self):
        raise StorageError("Failed to retrieve tasks") from ConnectionError("redis is down")

    def _fetch(self, task_id):
        raise RuntimeError("boom")


class TestServerErrors:
    def test_storage_error_detail_in_development(self):
        client = TestClient(create_app(Settings(app_env="development"), store=_BrokenStore()))
        res = client.get("/api/tasks")
        assert res.status_code == 500
        assert res.json() == {"message": "Failed to retrieve tasks", "error": "redis is down"}

    def test_storage_error_redacted_in_production(self):
        client = TestClient(create_app(Settings(app_env="production"), store=_BrokenStore()))
        res = client.get("/api/tasks")
        assert res.status_code == 500
        assert res.json() == {"message": "Failed to retrieve tasks", "error": "Internal server error"}

    @pytest.mark.parametrize("app_env,detail", [("development", "boom"), ("production", "Internal server error")])
    def test_unhandled_error(self, app_env: str, detail: str):
        app = create_app(Settings(app_env=app_env), store=_BrokenStore())
        client = TestClient(app, raise_server_exceptions=False)
        res = client.get("/api/tasks/anything")
        assert res.status_code == 500
        assert res.json() == {"message": "An unexpected error occurred", "error": detail}


class TestDueDateStorage:
    def test_due_dates_are_returned_in_utc(self, client: TestClient):
        later = client.post("/api/tasks", json={"title": "Later", "dueDate": "2025-06-01T09:00:00-05:00"}).json()
        earlier = client.post("/api/tasks", json={"title": "Earlier", "dueDate": "2025-06-01T10:00:00+02:00"}).json()
        local = client.post("/api/tasks", json={"title": "Local", "dueDate": "2025-06-01T10:00:00"}).json()

        assert later["dueDate"] == "2025-06-01T14:00:00Z"
        assert earlier["dueDate"] == "2025-06-01T08:00:00Z"
        assert parse_ts(local["dueDate"]) == datetime(2025, 6, 1, 10).astimezone(timezone.utc)
        assert local["dueDate"].endswith("Z")

        tasks = client.get("/api/tasks").json()
        by_text = [t["title"] for t in sorted(tasks, key=lambda t: t["dueDate"])]
        by_instant = [t["title"] for t in sorted(tasks, key=lambda t: parse_ts(t["dueDate"]))]
        assert by_text == by_instant
