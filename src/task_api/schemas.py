from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ValidationError

# Shared type for incoming dueDate which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

_Schema = TypeVar("_Schema", bound=BaseModel)


_DUE_DATE_HELP = "Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00Z')."


# PUBLIC_INTERFACE
def to_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime; naive values are taken as local time."""
    return value.astimezone(timezone.utc)


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Normalize dueDate input into an aware UTC datetime, so the stored ISO text
    always carries an offset and sorts in time order.
    - If value is a string, parse via datetime.fromisoformat; a bare date becomes local 00:00.
    - If value is a date (not datetime), convert to local 00:00.
    - Naive datetimes are local time; aware ones keep their instant.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return to_utc(value)

    if isinstance(value, date):
        return to_utc(datetime(value.year, value.month, value.day, 0, 0, 0))

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        # fromisoformat only learned the "Z" suffix in 3.11
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(s))
        except ValueError:
            try:
                d = date.fromisoformat(s)
            except ValueError as e:
                raise ValueError(f"Invalid dueDate format. {_DUE_DATE_HELP}") from e
            return to_utc(datetime(d.year, d.month, d.day, 0, 0, 0))

    raise ValueError("Invalid type for dueDate; expected date, datetime, or ISO8601 string.")


def _clean_title(v: Any) -> str:
    if v is None:
        raise ValueError("title is required")
    if not isinstance(v, str):
        raise ValueError("title must be a string")
    s = v.strip()
    if not s:
        raise ValueError("title is required")
    return s


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; either is accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# PUBLIC_INTERFACE
class TaskCreate(_WireModel):
    """
    Schema for creating a new task. `completed` is not accepted; new tasks start pending.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "description": "Two litres, semi-skimmed",
                "dueDate": "2025-06-01",
            }
        }
    )

    title: str = Field(..., description="Short title for the task")
    description: str = Field(default="", description="Optional detailed description")
    due_date: datetime = Field(
        ...,
        description="Due date/time of the task. Accepts ISO8601 date or datetime; dates are set to local 00:00; stored as UTC",
    )

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        """Strip whitespace and reject empty titles."""
        return _clean_title(v)

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        parsed = _parse_due_date(v)
        if parsed is None:
            raise ValueError("dueDate is required")
        return parsed


# PUBLIC_INTERFACE
class TaskUpdate(_WireModel):
    """
    Schema for the full update (PUT) of an existing task.

    `title` is required. `description` falls back to "" when omitted.
    `dueDate` and `completed` keep their stored values when omitted or null.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk and bread",
                "description": "",
                "dueDate": "2025-06-02T09:30:00",
                "completed": True,
            }
        }
    )

    title: str = Field(..., description="Short title for the task")
    description: str = Field(default="", description="Optional detailed description")
    due_date: Optional[datetime] = Field(default=None, description="New due date/time")
    completed: Optional[StrictBool] = Field(default=None, description="Completion status flag")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        return _clean_title(v)

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskStatusUpdate(_WireModel):
    """Schema for PATCH /status. `completed` must be a JSON boolean."""

    model_config = ConfigDict(json_schema_extra={"example": {"completed": True}})

    completed: StrictBool = Field(..., description="New completion status")


# PUBLIC_INTERFACE
class TaskOut(_WireModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0d6f3c8e-5f7a-4c1e-9a55-0e1b3f0e2f11",
                "title": "Buy milk",
                "description": "",
                "dueDate": "2025-05-31T22:00:00Z",
                "completed": False,
                "createdAt": "2025-05-25T10:15:30.123456Z",
                "updatedAt": None,
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    description: str = Field(default="", description="Detailed description")
    due_date: datetime = Field(..., description="Due date/time as an ISO8601 UTC datetime")
    completed: bool = Field(default=False, description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp (UTC); null until first update")

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskDeleted(BaseModel):
    """Confirmation returned after a delete."""

    message: str = Field(..., description="Human readable confirmation")
    id: str = Field(..., description="Id of the deleted task")


# PUBLIC_INTERFACE
def describe_errors(errors: List[Dict[str, Any]]) -> str:
    """
    Flatten pydantic error dicts into one readable line, e.g.
    "title: Value error, title is required; dueDate: Field required".
    """
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        where = ".".join(loc)
        parts.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


# PUBLIC_INTERFACE
def parse_payload(schema: Type[_Schema], data: Any) -> _Schema:
    """
    Validate `data` (a schema instance or a mapping in wire or Python field names)
    against `schema`.

    Raises:
        ValidationError: the payload does not satisfy the schema.
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(describe_errors(e.errors())) from e
