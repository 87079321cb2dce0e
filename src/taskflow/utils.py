from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .models import TaskEntity, TaskId
from .task_list import is_overdue


# PUBLIC_INTERFACE
def coerce_task_id(value: Union[str, int]) -> TaskId:
    """Path ids arrive as text; numeric ones are handed to the record store as ints."""
    if isinstance(value, int):
        return value
    s = value.strip()
    return int(s) if s.isascii() and s.isdigit() else s


# PUBLIC_INTERFACE
def task_payload(task: TaskEntity, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Serialize a cached task for responses, adding the derived overdue flag."""
    payload: Dict[str, Any] = dict(task)
    payload["tags"] = list(task.get("tags") or [])
    payload["overdue"] = is_overdue(task, now)
    return payload


# PUBLIC_INTERFACE
def list_envelope(
    items: Union[Sequence[TaskEntity], Iterable[TaskEntity]],
    status_filter: str,
    sort: str,
    direction: str,
    now: Optional[datetime] = None,
    loading: bool = False,
    submitting: bool = False,
) -> Dict[str, Any]:
    """
    Build the standard envelope for the task list endpoint.

    Args:
        items: Tasks already filtered and sorted for display.
        status_filter: The status filter that was applied.
        sort: The sort field that was applied.
        direction: The sort direction that was applied.
        now: Reference time for the overdue flag (defaults to the current time).
        loading: Whether a load is in flight.
        submitting: Whether a create/update is in flight.

    Returns:
        Dict with keys: items, total, filter, sort, direction, loading, submitting.
    """
    materialized: List[Dict[str, Any]] = [task_payload(t, now) for t in items]
    return {
        "items": materialized,
        "total": len(materialized),
        "filter": status_filter,
        "sort": sort,
        "direction": direction,
        "loading": loading,
        "submitting": submitting,
    }
