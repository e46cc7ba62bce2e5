from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, TypedDict

from .schemas import TaskCreate, TaskUpdate, to_utc


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    Storage-neutral representation of a task.

    Fields:
    - id: UUID4 string, generated at creation
    - title: Non-empty, trimmed title
    - description: Detailed description, "" when not given
    - due_date: Due datetime, aware UTC
    - completed: Boolean completion flag
    - created_at: UTC creation timestamp, never changes
    - updated_at: UTC timestamp of the last mutation, None until the first one
    """

    id: str
    title: str
    description: str
    due_date: datetime
    completed: bool
    created_at: datetime
    updated_at: Optional[datetime]


# PUBLIC_INTERFACE
def new_task(data: TaskCreate, now: datetime) -> TaskEntity:
    """Build a fresh pending task from validated create input."""
    return {
        "id": str(uuid.uuid4()),
        "title": data.title,
        "description": data.description,
        "due_date": data.due_date,
        "completed": False,
        "created_at": now,
        "updated_at": None,
    }


def _stamp(current: TaskEntity, now: datetime) -> datetime:
    # updatedAt must sort strictly after every earlier timestamp of the task,
    # even when the clock has not advanced between two calls.
    floor = current["updated_at"] or current["created_at"]
    return now if now > floor else floor + timedelta(microseconds=1)


# PUBLIC_INTERFACE
def apply_update(current: TaskEntity, data: TaskUpdate, now: datetime) -> TaskEntity:
    """
    Apply a full update to `current` and return the new record.

    Field rules:
    - title: replaced
    - description: replaced ("" when the caller omitted it)
    - due_date: replaced when given, otherwise kept
    - completed: replaced when given (not None), otherwise kept
    - id, created_at: always kept
    - updated_at: set to `now`
    """
    updated = current.copy()
    updated["title"] = data.title
    updated["description"] = data.description
    if data.due_date is not None:
        updated["due_date"] = data.due_date
    if data.completed is not None:
        updated["completed"] = data.completed
    updated["updated_at"] = _stamp(current, now)
    return updated


# PUBLIC_INTERFACE
def apply_status(current: TaskEntity, completed: bool, now: datetime) -> TaskEntity:
    """Set only `completed` and `updated_at`; every other field is kept."""
    updated = current.copy()
    updated["completed"] = completed
    updated["updated_at"] = _stamp(current, now)
    return updated


def _iso(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat()


def _parse(value: Optional[str]) -> Optional[datetime]:
    return None if value is None else datetime.fromisoformat(value)


# PUBLIC_INTERFACE
def to_document(task: TaskEntity) -> Dict[str, Any]:
    """Serialize a task to a JSON-compatible document with ISO8601 timestamps."""
    return {
        "id": task["id"],
        "title": task["title"],
        "description": task["description"],
        "dueDate": _iso(task["due_date"]),
        "completed": task["completed"],
        "createdAt": _iso(task["created_at"]),
        "updatedAt": _iso(task["updated_at"]),
    }


# PUBLIC_INTERFACE
def from_document(doc: Mapping[str, Any]) -> TaskEntity:
    """
    Inverse of to_document. Missing optional fields get their defaults, so
    `completed` is always a bool on the way out.

    Raises:
        KeyError / ValueError: the document lacks required fields or holds bad timestamps.
    """
    return {
        "id": str(doc["id"]),
        "title": doc["title"],
        "description": doc.get("description") or "",
        "due_date": to_utc(datetime.fromisoformat(doc["dueDate"])),
        "completed": bool(doc.get("completed", False)),
        "created_at": datetime.fromisoformat(doc["createdAt"]),
        "updated_at": _parse(doc.get("updatedAt")),
    }
