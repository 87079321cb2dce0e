from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional, TypedDict, Union

TaskId = Union[int, str]


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A task as held in the controller cache.

    Fields:
    - id: Identifier assigned by the record store (int or str), None before creation
    - title: Short title, never empty once validated
    - description: Optional detailed description
    - due_date: Optional calendar date
    - priority: One of TaskPriority values
    - status: One of TaskStatus values
    - completed_at: Set while status is 'completed', None otherwise
    - tags: Free-form labels
    - owner: Username of the creator, when known
    - created_on / modified_on: Audit timestamps assigned by the record store
    """

    id: Optional[TaskId]
    title: str
    description: Optional[str]
    due_date: Optional[date]
    priority: str
    status: str
    completed_at: Optional[datetime]
    tags: List[str]
    owner: Optional[str]
    created_on: Optional[datetime]
    modified_on: Optional[datetime]


# PUBLIC_INTERFACE
class User(TypedDict):
    """Authenticated user delivered to auth success callbacks."""

    username: str
    display_name: str
    is_guest: bool


def new_task(
    title: str,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
    priority: str = TaskPriority.MEDIUM.value,
    status: str = TaskStatus.NOT_STARTED.value,
    tags: Optional[List[str]] = None,
    task_id: Optional[TaskId] = None,
) -> TaskEntity:
    """Build an unsaved TaskEntity with the form defaults."""
    return {
        "id": task_id,
        "title": title,
        "description": description,
        "due_date": due_date,
        "priority": priority,
        "status": status,
        "completed_at": None,
        "tags": list(tags or []),
        "owner": None,
        "created_on": None,
        "modified_on": None,
    }
