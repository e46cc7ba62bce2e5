from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Optional

from .errors import NotFoundError
from .models import TaskEntity, apply_status, apply_update, new_task
from .schemas import TaskCreate, TaskStatusUpdate, TaskUpdate, parse_payload
from .settings import Settings

logger = logging.getLogger(__name__)

DELETE_MESSAGE = "Task deleted successfully"


# PUBLIC_INTERFACE
class TaskStore(ABC):
    """
    Storage contract for tasks.

    The public operations (create, get, list, update, set_completed, delete)
    live here so every backend validates, defaults and patches records the same
    way. Backends only implement the storage primitives below.

    Payloads may be schema instances or plain mappings using either wire
    (camelCase) or Python (snake_case) field names. Validation always runs
    before the backend is touched.
    """

    #: Reported by the health endpoint: "durable" or "transient".
    storage_mode: str = "transient"

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    # storage primitives

    @abstractmethod
    def _insert(self, task: TaskEntity) -> None:
        """Persist a brand new task."""

    @abstractmethod
    def _fetch(self, task_id: str) -> Optional[TaskEntity]:
        """Return the stored task or None."""

    @abstractmethod
    def _fetch_all(self) -> List[TaskEntity]:
        """Return every stored task, most recently inserted first."""

    @abstractmethod
    def _write(self, task: TaskEntity) -> None:
        """Overwrite an existing task. Raise NotFoundError if it no longer exists."""

    @abstractmethod
    def _remove(self, task_id: str) -> bool:
        """Delete a task. Return True if it existed."""

    # public operations

    def create(self, data: Any) -> TaskEntity:
        """
        Create a pending task from `data` (title and dueDate required).

        Raises:
            ValidationError: title empty or dueDate missing/invalid.
        """
        payload = parse_payload(TaskCreate, data)
        task = new_task(payload, self._now())
        self._insert(task)
        logger.debug("Created task %s", task["id"])
        return task.copy()

    def get(self, task_id: str) -> TaskEntity:
        """
        Raises:
            NotFoundError: no task has this id.
        """
        task = self._fetch(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def list(self) -> List[TaskEntity]:
        """Return all tasks, newest created first."""
        # sorted() is stable, so equal timestamps keep the newest-inserted-first order
        return sorted(self._fetch_all(), key=lambda t: t["created_at"], reverse=True)

    def update(self, task_id: str, data: Any) -> TaskEntity:
        """
        Full update with patch semantics (see models.apply_update). Returns the
        complete post-update record.

        Raises:
            ValidationError: title missing or empty, or a field has the wrong type.
            NotFoundError: no task has this id.
        """
        payload = parse_payload(TaskUpdate, data)
        updated = apply_update(self.get(task_id), payload, self._now())
        self._write(updated)
        logger.debug("Updated task %s", task_id)
        return updated

    def set_completed(self, task_id: str, completed: Any) -> TaskEntity:
        """
        Set only the completion flag. Returns the complete record.

        Raises:
            ValidationError: `completed` is not a boolean.
            NotFoundError: no task has this id.
        """
        payload = parse_payload(TaskStatusUpdate, {"completed": completed})
        updated = apply_status(self.get(task_id), payload.completed, self._now())
        self._write(updated)
        logger.debug("Set task %s completed=%s", task_id, payload.completed)
        return updated

    def delete(self, task_id: str) -> Dict[str, str]:
        """
        Permanently remove a task.

        Raises:
            NotFoundError: no task has this id (including one already deleted).
        """
        if not self._remove(task_id):
            raise NotFoundError(task_id)
        logger.debug("Deleted task %s", task_id)
        return {"message": DELETE_MESSAGE, "id": task_id}


class InMemoryTaskStore(TaskStore):
    """
    Process-local task list, guarded by a lock. Contents are lost on restart.
    """

    storage_mode = "transient"

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: List[TaskEntity] = []

    def _index_of(self, task_id: str) -> int:
        for i, item in enumerate(self._items):
            if item["id"] == task_id:
                return i
        return -1

    def _insert(self, task: TaskEntity) -> None:
        with self._lock:
            self._items.append(task.copy())

    def _fetch(self, task_id: str) -> Optional[TaskEntity]:
        with self._lock:
            i = self._index_of(task_id)
            return None if i < 0 else self._items[i].copy()

    def _fetch_all(self) -> List[TaskEntity]:
        with self._lock:
            # Return copies to avoid external mutation
            return [t.copy() for t in reversed(self._items)]

    def _write(self, task: TaskEntity) -> None:
        with self._lock:
            i = self._index_of(task["id"])
            if i < 0:
                raise NotFoundError(task["id"])
            self._items[i] = task.copy()

    def _remove(self, task_id: str) -> bool:
        with self._lock:
            i = self._index_of(task_id)
            if i < 0:
                return False
            del self._items[i]
            return True


# PUBLIC_INTERFACE
def build_store(settings: Settings) -> TaskStore:
    """
    Pick the task store for this process from settings.
    - REDIS_URL set: RedisTaskStore (durable)
    - otherwise: InMemoryTaskStore (transient)

    Raises:
        ConfigError: REDIS_URL is set but cannot be used.
    """
    if settings.durable_configured:
        from .redis_store import RedisTaskStore

        logger.info("Using Redis task storage (prefix %r)", settings.key_prefix)
        return RedisTaskStore(url=settings.redis_url, key_prefix=settings.key_prefix)  # type: ignore[arg-type]

    logger.warning("REDIS_URL not set: using in-memory storage, tasks will not persist across restarts")
    return InMemoryTaskStore()
