from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, status

from ..repositories import TaskStore
from ..schemas import TaskCreate, TaskDeleted, TaskOut, TaskStatusUpdate, TaskUpdate

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)


def get_store(request: Request) -> TaskStore:
    """
    Dependency returning the store created once by the app factory.
    """
    return request.app.state.store


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description="Return every task, newest created first. Filtering is left to the client.",
    responses={
        200: {"description": "List retrieved successfully"},
        500: {"description": "Storage failure"},
    },
)
def list_tasks(store: TaskStore = Depends(get_store)) -> List[TaskOut]:
    return [TaskOut.model_validate(t) for t in store.list()]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: str, store: TaskStore = Depends(get_store)) -> TaskOut:
    return TaskOut.model_validate(store.get(task_id))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new pending task and return it.",
    responses={
        201: {"description": "Task created successfully"},
        400: {"description": "title or dueDate missing or invalid"},
    },
)
def create_task(payload: TaskCreate, store: TaskStore = Depends(get_store)) -> TaskOut:
    """
    Create a new task. `completed` always starts false.
    """
    return TaskOut.model_validate(store.create(payload))


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Replace the editable fields of a task. title is required; description "
        "defaults to an empty string; dueDate and completed keep their stored "
        "values when omitted."
    ),
    responses={
        200: {"description": "Task updated"},
        400: {"description": "title missing or invalid"},
        404: {"description": "Task not found"},
    },
)
def update_task(task_id: str, payload: TaskUpdate, store: TaskStore = Depends(get_store)) -> TaskOut:
    return TaskOut.model_validate(store.update(task_id, payload))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=TaskDeleted,
    summary="Delete Task",
    description="Delete a task by ID.",
    responses={
        200: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: str, store: TaskStore = Depends(get_store)) -> TaskDeleted:
    """
    Delete a task. Returns 200 with the deleted id, 404 if not found.
    """
    return TaskDeleted(**store.delete(task_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}/status",
    response_model=TaskOut,
    summary="Set Task Status",
    description="Set only the completion flag of a task.",
    responses={
        200: {"description": "Task updated"},
        400: {"description": "completed missing or not a boolean"},
        404: {"description": "Task not found"},
    },
)
def set_task_status(
    task_id: str, payload: TaskStatusUpdate, store: TaskStore = Depends(get_store)
) -> TaskOut:
    return TaskOut.model_validate(store.set_completed(task_id, payload.completed))
