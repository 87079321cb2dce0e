from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import TaskEntity, TaskPriority, TaskStatus, new_task

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[date]:
    """
    Internal helper to normalize due_date input into a calendar date.
    - None or an empty string means "no due date".
    - A datetime keeps only its date part.
    - A string is parsed as an ISO date, or as an ISO datetime whose date part is kept.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use an ISO8601 date such as '2025-01-31'."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _clean_title(v: Optional[str]) -> str:
    if v is None:
        raise ValueError("title is required")
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


def _clean_tags(v: Optional[List[str]]) -> List[str]:
    seen: List[str] = []
    for tag in v or []:
        t = tag.strip()
        if "," in t:
            raise ValueError("tags cannot contain commas")
        if t and t not in seen:
            seen.append(t)
    return seen


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for the "Add New Task" form.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "due_date": "2025-02-01",
                "priority": "medium",
                "status": "not-started",
                "tags": ["errands"],
            }
        }
    )

    title: str = Field(..., description="Short title for the task", max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    due_date: Optional[date] = Field(default=None, description="Optional due date (ISO8601 date)")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="low, medium, high or urgent")
    status: TaskStatus = Field(
        default=TaskStatus.NOT_STARTED, description="not-started, in-progress, completed or blocked"
    )
    tags: List[str] = Field(default_factory=list, description="Free-form labels")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _clean_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        """
        Normalize due_date from str/date/datetime to date.
        """
        return _parse_due_date(v)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)

    def to_entity(self) -> TaskEntity:
        return new_task(
            self.title,
            description=self.description,
            due_date=self.due_date,
            priority=self.priority.value,
            status=self.status.value,
            tags=self.tags,
        )


# PUBLIC_INTERFACE
class TaskReplace(TaskCreate):
    """
    Schema for the "Edit Task" form: a full replacement of every writable
    field. Omitted optional fields are cleared.
    """

    completed_at: Optional[datetime] = Field(
        default=None,
        description="Completion timestamp; when omitted on a completed task the stored value is kept, or now if none",
    )
    owner: Optional[str] = Field(default=None, description="Username of the task owner")


# PUBLIC_INTERFACE
class StatusChange(BaseModel):
    """Target status for a status toggle."""

    status: TaskStatus = Field(..., description="not-started, in-progress, completed or blocked")


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "due_date": "2025-02-01",
                "priority": "medium",
                "status": "completed",
                "completed_at": "2025-01-30T18:02:11.512000",
                "tags": ["errands"],
                "owner": "ann",
                "created_on": "2025-01-25T10:15:30.123456",
                "modified_on": "2025-01-30T18:02:11.540000",
                "overdue": False,
            }
        }
    )

    id: Union[int, str] = Field(..., description="Identifier assigned by the record store")
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: str
    status: str
    completed_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    owner: Optional[str] = None
    created_on: Optional[datetime] = None
    modified_on: Optional[datetime] = None
    overdue: bool = Field(False, description="Derived: due date passed and not completed")


class TaskListOut(BaseModel):
    """Filtered and sorted view of the cached tasks."""

    items: List[TaskOut] = Field(..., description="Tasks matching the filter, in display order")
    total: int = Field(..., description="Number of tasks matching the filter")
    filter: str
    sort: str
    direction: str
    loading: bool = False
    submitting: bool = False


class TaskStatsOut(BaseModel):
    total: int
    in_progress: int
    completed: int
    overdue: int


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(BaseModel):
    username: str
    display_name: str
    is_guest: bool = False


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserOut


class DarkModeIn(BaseModel):
    dark_mode: bool


class DarkModeOut(BaseModel):
    dark_mode: bool


class NotificationOut(BaseModel):
    level: str
    message: str
    created_at: datetime
