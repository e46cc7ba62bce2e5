from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

import httpx

from .schemas import TaskOut
from .views import TaskRow, build_view

logger = logging.getLogger(__name__)

DueDateArg = Union[date, datetime, str]


# PUBLIC_INTERFACE
class ApiError(Exception):
    """A non-2xx response from the task API."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _due(value: DueDateArg) -> str:
    return value if isinstance(value, str) else value.isoformat()


# PUBLIC_INTERFACE
class TaskClient:
    """
    Synchronous client for the task API.

    The client keeps no cache beyond `tasks`, the list from the last
    `refresh()`. Call `refresh()` after every mutation to see the server's
    current state.

    Usage:
        with TaskClient("http://localhost:5000") as client:
            client.create_task("Buy milk", "2025-06-01")
            rows = client.refresh(status="pending", search="milk")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        *,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)
        self.tasks: List[TaskOut] = []

    def __enter__(self) -> "TaskClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        response = self._http.request(method, path, json=json)
        if response.is_error:
            try:
                message = response.json().get("message")
            except ValueError:
                message = None
            logger.warning("%s %s failed with %d: %s", method, path, response.status_code, message)
            raise ApiError(response.status_code, message or f"Error: {response.status_code}")
        return response.json()

    # PUBLIC_INTERFACE
    def list_tasks(self) -> List[TaskOut]:
        return [TaskOut.model_validate(t) for t in self._request("GET", "/api/tasks")]

    # PUBLIC_INTERFACE
    def get_task(self, task_id: str) -> TaskOut:
        return TaskOut.model_validate(self._request("GET", f"/api/tasks/{task_id}"))

    # PUBLIC_INTERFACE
    def create_task(self, title: str, due_date: DueDateArg, description: str = "") -> TaskOut:
        body = {"title": title, "description": description, "dueDate": _due(due_date)}
        return TaskOut.model_validate(self._request("POST", "/api/tasks", json=body))

    # PUBLIC_INTERFACE
    def update_task(
        self,
        task_id: str,
        title: str,
        due_date: Optional[DueDateArg] = None,
        description: str = "",
        completed: Optional[bool] = None,
    ) -> TaskOut:
        """Full update; `due_date` and `completed` are left unchanged when None."""
        body: Dict[str, Any] = {"title": title, "description": description}
        if due_date is not None:
            body["dueDate"] = _due(due_date)
        if completed is not None:
            body["completed"] = completed
        return TaskOut.model_validate(self._request("PUT", f"/api/tasks/{task_id}", json=body))

    # PUBLIC_INTERFACE
    def delete_task(self, task_id: str) -> Dict[str, str]:
        return self._request("DELETE", f"/api/tasks/{task_id}")

    # PUBLIC_INTERFACE
    def toggle_task_status(self, task_id: str, completed: bool) -> TaskOut:
        return TaskOut.model_validate(
            self._request("PATCH", f"/api/tasks/{task_id}/status", json={"completed": completed})
        )

    # PUBLIC_INTERFACE
    def refresh(self, status: str = "all", search: str = "", today: Optional[date] = None) -> List[TaskRow]:
        """Reload the full list from the server and return the filtered, sorted view."""
        self.tasks = self.list_tasks()
        return build_view(self.tasks, status=status, search=search, today=today)
