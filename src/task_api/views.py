"""
Client-side view of the task list: status filter, text search, ordering and
the display status shown next to each task.

None of this is stored or computed by the server; the client always works on
the full list it last fetched.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional

from .schemas import TaskOut

STATUS_FILTERS = ("all", "completed", "pending")


@dataclass(frozen=True)
class TaskRow:
    """One rendered line of the task list."""

    task: TaskOut
    status: str  # "pending" | "completed" | "overdue"


def _local_naive(value: datetime) -> datetime:
    # Aware datetimes are shown in the local zone; naive ones already are local.
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# PUBLIC_INTERFACE
def filter_tasks(tasks: Iterable[TaskOut], status: str = "all", search: str = "") -> List[TaskOut]:
    """
    Apply the status filter, then a case-insensitive substring search over
    title and description.

    Raises:
        ValueError: `status` is not one of "all", "completed", "pending".
    """
    if status not in STATUS_FILTERS:
        raise ValueError(f"status must be one of {STATUS_FILTERS}, got {status!r}")

    result = list(tasks)
    if status == "completed":
        result = [t for t in result if t.completed]
    elif status == "pending":
        result = [t for t in result if not t.completed]

    needle = (search or "").strip().lower()
    if needle:
        result = [
            t for t in result
            if needle in t.title.lower() or needle in (t.description or "").lower()
        ]
    return result


# PUBLIC_INTERFACE
def sort_tasks(tasks: Iterable[TaskOut]) -> List[TaskOut]:
    """Incomplete tasks first, then completed; each group by ascending due date."""
    return sorted(tasks, key=lambda t: (t.completed, _local_naive(t.due_date)))


# PUBLIC_INTERFACE
def display_status(task: TaskOut, today: Optional[date] = None) -> str:
    """
    "completed" for finished tasks, "overdue" for unfinished tasks due on a day
    before `today` (default: the current local date), else "pending".
    """
    if task.completed:
        return "completed"
    today = today or date.today()
    if _local_naive(task.due_date).date() < today:
        return "overdue"
    return "pending"


# PUBLIC_INTERFACE
def build_view(
    tasks: Iterable[TaskOut],
    status: str = "all",
    search: str = "",
    today: Optional[date] = None,
) -> List[TaskRow]:
    """Filter, sort and label `tasks` for display."""
    today = today or date.today()
    return [TaskRow(task=t, status=display_status(t, today)) for t in sort_tasks(filter_tasks(tasks, status, search))]
