"""
Task persistence through the record store.

This is a thin pass-through: it maps TaskEntity dicts to record store
payloads (restricted to the writable fields), checks the response envelope
and maps records back. It keeps no state of its own.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .errors import RecordStoreError, TaskValidationError
from .models import TaskEntity, TaskId, TaskPriority, TaskStatus
from .record_store import Record, RecordStore

logger = logging.getLogger(__name__)

UPDATEABLE_FIELDS = (
    "Name",
    "Tags",
    "Owner",
    "title",
    "description",
    "dueDate",
    "priority",
    "status",
    "completedAt",
)

ALL_FIELDS = UPDATEABLE_FIELDS + ("CreatedOn", "CreatedBy", "ModifiedOn", "ModifiedBy")


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        logger.warning("Ignoring unparseable timestamp %r", value)
        return None


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        logger.warning("Ignoring unparseable due date %r", value)
        return None


def _parse_tags(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(t).strip() for t in value if str(t).strip()]
    return [t.strip() for t in str(value).split(",") if t.strip()]


# PUBLIC_INTERFACE
def task_to_record(task: TaskEntity, include_id: bool = False) -> Record:
    """Map a TaskEntity to a record holding only the writable fields."""
    due = task.get("due_date")
    completed_at = task.get("completed_at")
    record: Record = {
        "Name": task["title"],
        "Tags": ",".join(task.get("tags") or []),
        "Owner": task.get("owner"),
        "title": task["title"],
        "description": task.get("description"),
        "dueDate": due.isoformat() if due else None,
        "priority": task.get("priority") or TaskPriority.MEDIUM.value,
        "status": task.get("status") or TaskStatus.NOT_STARTED.value,
        "completedAt": completed_at.isoformat() if completed_at else None,
    }
    if include_id:
        record = {"Id": task["id"], **record}
    return record


# PUBLIC_INTERFACE
def record_to_task(record: Record) -> TaskEntity:
    """Map a record store record back to a TaskEntity."""
    return {
        "id": record.get("Id"),
        "title": record.get("title") or record.get("Name") or "",
        "description": record.get("description") or None,
        "due_date": _parse_date(record.get("dueDate")),
        "priority": record.get("priority") or TaskPriority.MEDIUM.value,
        "status": record.get("status") or TaskStatus.NOT_STARTED.value,
        "completed_at": _parse_datetime(record.get("completedAt")),
        "tags": _parse_tags(record.get("Tags")),
        "owner": record.get("Owner") or None,
        "created_on": _parse_datetime(record.get("CreatedOn")),
        "modified_on": _parse_datetime(record.get("ModifiedOn")),
    }


class TaskService:
    """CRUD calls for tasks against a single record store table."""

    def __init__(self, store: RecordStore, table: str = "task1", page_size: int = 100) -> None:
        self.store = store
        self.table = table
        self.page_size = page_size

    def _call(self, action: str, fn: Any, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = fn(self.table, params)
        except RecordStoreError:
            raise
        except Exception as e:
            logger.exception("Error %s tasks", action)
            raise RecordStoreError(f"Failed to {action} task") from e
        return response

    @staticmethod
    def _first_result(response: Optional[Dict[str, Any]], action: str) -> Record:
        results = (response or {}).get("results") or []
        if not response or not response.get("success") or not results:
            detail = [r.get("message") for r in results if r.get("message")] or None
            raise RecordStoreError(f"Failed to {action} task", detail=detail)
        data = results[0].get("data")
        if not isinstance(data, dict):
            raise RecordStoreError(f"Failed to {action} task", detail="missing record data")
        return data

    def fetch_tasks(self) -> List[TaskEntity]:
        """Fetch the most recently modified page of tasks."""
        params = {
            "fields": list(ALL_FIELDS),
            "orderBy": [{"field": "ModifiedOn", "direction": "desc"}],
            "pagingInfo": {"limit": self.page_size, "offset": 0},
        }
        response = self._call("fetch", self.store.fetch_records, params)
        if not response or not response.get("success", True):
            raise RecordStoreError("Failed to fetch tasks", detail=(response or {}).get("message"))
        data = response.get("data") or []
        return [record_to_task(r) for r in data]

    def create_task(self, task: TaskEntity) -> TaskEntity:
        response = self._call("create", self.store.create_record, {"records": [task_to_record(task)]})
        return record_to_task(self._first_result(response, "create"))

    def update_task(self, task: TaskEntity) -> TaskEntity:
        if task.get("id") in (None, ""):
            raise TaskValidationError("Task ID is required for update")
        params = {"records": [task_to_record(task, include_id=True)]}
        response = self._call("update", self.store.update_record, params)
        return record_to_task(self._first_result(response, "update"))

    def delete_task(self, task_id: TaskId) -> bool:
        response = self._call("delete", self.store.delete_record, {"RecordIds": [task_id]})
        if not response or not response.get("success"):
            raise RecordStoreError("Failed to delete task", detail=(response or {}).get("message"))
        return True
