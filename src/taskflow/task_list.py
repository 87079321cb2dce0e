"""
Task list controller: the cached task set plus the create/update/delete/toggle
commands that keep it in step with the record store.

The cache is only touched after the record store call succeeds, so a failed
call always leaves it exactly as it was.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, time
from enum import Enum
from threading import Lock, RLock
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import RecordStoreError, SubmissionInProgressError, TaskNotFoundError, TaskValidationError
from .models import TaskEntity, TaskId, TaskStatus
from .notifications import Notifier
from .task_service import TaskService

logger = logging.getLogger(__name__)


class TaskFilter(str, Enum):
    ALL = "all"
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class SortField(str, Enum):
    DUE_DATE = "dueDate"
    TITLE = "title"
    PRIORITY = "priority"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _enum_value(enum_cls: Any, value: Union[str, Enum]) -> Any:
    try:
        return enum_cls(value.value if isinstance(value, Enum) else value)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise TaskValidationError(f"Invalid value {value!r}; expected one of: {allowed}") from e


def same_id(a: Optional[TaskId], b: Optional[TaskId]) -> bool:
    """Identifiers match when their string forms match (path ids arrive as text)."""
    return a is not None and b is not None and str(a) == str(b)


# PUBLIC_INTERFACE
def filter_tasks(tasks: Iterable[TaskEntity], status_filter: Union[str, TaskFilter] = TaskFilter.ALL) -> List[TaskEntity]:
    """Return the tasks whose status matches the filter; 'all' matches every task."""
    f = _enum_value(TaskFilter, status_filter)
    if f is TaskFilter.ALL:
        return list(tasks)
    return [t for t in tasks if t.get("status") == f.value]


def _due_date_key(task: TaskEntity) -> Tuple[int, date]:
    due = task.get("due_date")
    if due is None:
        return (1, date.max)
    return (0, due)


def _title_key(task: TaskEntity) -> Tuple[str, str]:
    title = task.get("title") or ""
    return (title.casefold(), title)


def _priority_key(task: TaskEntity) -> str:
    return task.get("priority") or ""


_SORT_KEYS: Dict[SortField, Callable[[TaskEntity], Any]] = {
    SortField.DUE_DATE: _due_date_key,
    SortField.TITLE: _title_key,
    SortField.PRIORITY: _priority_key,
}


# PUBLIC_INTERFACE
def sort_tasks(
    tasks: Iterable[TaskEntity],
    field: Union[str, SortField] = SortField.DUE_DATE,
    direction: Union[str, SortDirection] = SortDirection.ASC,
) -> List[TaskEntity]:
    """
    Sort tasks by dueDate, title or priority.

    - dueDate: calendar order; tasks without a due date compare greater than
      any date, so they come last ascending and first descending.
    - title: case-insensitive order, original text as tie-break.
    - priority: plain string order (high < low < medium < urgent), not severity.

    Equal keys keep their input order in both directions.
    """
    key = _SORT_KEYS[_enum_value(SortField, field)]
    reverse = _enum_value(SortDirection, direction) is SortDirection.DESC
    return sorted(tasks, key=key, reverse=reverse)


# PUBLIC_INTERFACE
def is_overdue(task: TaskEntity, now: Optional[datetime] = None) -> bool:
    """
    A task is overdue when it has a due date, is not completed, and the start
    of its due date is strictly before now.
    """
    due = task.get("due_date")
    if due is None or task.get("status") == TaskStatus.COMPLETED.value:
        return False
    now = now or datetime.now()
    due_start = datetime.combine(due, time.min, tzinfo=now.tzinfo)
    return due_start < now


# PUBLIC_INTERFACE
def compute_stats(tasks: Iterable[TaskEntity], now: Optional[datetime] = None) -> Dict[str, int]:
    """Dashboard counters: total, in_progress, completed, overdue."""
    now = now or datetime.now()
    items = list(tasks)
    return {
        "total": len(items),
        "in_progress": sum(1 for t in items if t.get("status") == TaskStatus.IN_PROGRESS.value),
        "completed": sum(1 for t in items if t.get("status") == TaskStatus.COMPLETED.value),
        "overdue": sum(1 for t in items if is_overdue(t, now)),
    }


class TaskListController:
    """
    Holds the cached task list and runs task commands against the record store.

    Thread-safe: the cache is guarded by a re-entrant lock that is never held
    across a record store call. Create and update are additionally serialized
    by a non-blocking submission guard; a second submission while one is in
    flight raises SubmissionInProgressError.
    """

    def __init__(
        self,
        service: TaskService,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.service = service
        self.notifier = notifier if notifier is not None else Notifier()
        self.clock = clock
        self._lock = RLock()
        self._submit_lock = Lock()
        self._tasks: List[TaskEntity] = []
        self._loading = False

    @property
    def tasks(self) -> List[TaskEntity]:
        with self._lock:
            return [self._copy(t) for t in self._tasks]

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    def _set_loading(self, value: bool) -> None:
        with self._lock:
            self._loading = value

    @property
    def submitting(self) -> bool:
        return self._submit_lock.locked()

    @staticmethod
    def _copy(task: TaskEntity) -> TaskEntity:
        copied = dict(task)
        copied["tags"] = list(task.get("tags") or [])
        return copied  # type: ignore[return-value]

    def _index_of(self, task_id: TaskId) -> Optional[int]:
        for i, t in enumerate(self._tasks):
            if same_id(t.get("id"), task_id):
                return i
        return None

    def _replace(self, task: TaskEntity) -> bool:
        with self._lock:
            idx = self._index_of(task["id"])  # type: ignore[arg-type]
            if idx is None:
                return False
            self._tasks[idx] = self._copy(task)
            return True

    def _cached_completed_at(self, task_id: TaskId) -> Optional[datetime]:
        with self._lock:
            idx = self._index_of(task_id)
            return None if idx is None else self._tasks[idx].get("completed_at")

    def _validate_title(self, task: TaskEntity) -> str:
        title = (task.get("title") or "").strip()
        if not title:
            self.notifier.error("Task title is required")
            raise TaskValidationError("Task title is required")
        return title

    def _stamp_completion(self, task: TaskEntity) -> None:
        if task.get("status") == TaskStatus.COMPLETED.value:
            if task.get("completed_at") is None:
                task["completed_at"] = self.clock()
        else:
            task["completed_at"] = None

    @contextmanager
    def _submission(self) -> Iterator[None]:
        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgressError("Another task submission is in progress")
        try:
            yield
        finally:
            self._submit_lock.release()

    def load(self) -> List[TaskEntity]:
        """Replace the cache with the record store's current task set."""
        self._set_loading(True)
        try:
            fetched = self.service.fetch_tasks()
        except RecordStoreError:
            logger.exception("Error loading tasks")
            self.notifier.error("Failed to load tasks")
            raise
        finally:
            self._set_loading(False)
        with self._lock:
            self._tasks = [self._copy(t) for t in fetched]
            logger.info("Loaded %d tasks", len(self._tasks))
            return [self._copy(t) for t in self._tasks]

    def get(self, task_id: TaskId) -> TaskEntity:
        with self._lock:
            idx = self._index_of(task_id)
            if idx is None:
                raise TaskNotFoundError(f"Task {task_id!r} not found")
            return self._copy(self._tasks[idx])

    def create(self, candidate: TaskEntity, owner: Optional[str] = None) -> TaskEntity:
        """Validate, persist and append a new task; returns the stored task."""
        title = self._validate_title(candidate)
        with self._submission():
            task = self._copy(candidate)
            task["id"] = None
            task["title"] = title
            if owner and not task.get("owner"):
                task["owner"] = owner
            self._stamp_completion(task)
            try:
                created = self.service.create_task(task)
            except RecordStoreError:
                logger.exception("Error creating task")
                self.notifier.error("Failed to create task")
                raise
            with self._lock:
                self._tasks.append(self._copy(created))
        self.notifier.success("Task added successfully")
        return created

    def update(self, record: TaskEntity) -> TaskEntity:
        """
        Persist a full replacement record, then swap it into the cache.

        When the cache holds no task with that id the cache is left as is.
        A completed record without completed_at keeps the cached timestamp.
        """
        title = self._validate_title(record)
        if record.get("id") is None:
            raise TaskValidationError("Task ID is required for update")
        with self._submission():
            task = self._copy(record)
            task["title"] = title
            if task.get("completed_at") is None:
                task["completed_at"] = self._cached_completed_at(task["id"])  # type: ignore[arg-type]
            self._stamp_completion(task)
            try:
                updated = self.service.update_task(task)
            except RecordStoreError:
                logger.exception("Error updating task %r", record.get("id"))
                self.notifier.error("Failed to update task")
                raise
            if not self._replace(updated):
                logger.warning("Updated task %r is not cached; cache left unchanged", updated.get("id"))
        self.notifier.success("Task updated successfully")
        return updated

    def delete(self, task_id: TaskId, confirmed: bool = True) -> bool:
        """Delete a task once confirmed. Returns False when not confirmed."""
        if not confirmed:
            return False
        try:
            self.service.delete_task(task_id)
        except RecordStoreError:
            logger.exception("Error deleting task %r", task_id)
            self.notifier.error("Failed to delete task")
            raise
        with self._lock:
            self._tasks = [t for t in self._tasks if not same_id(t.get("id"), task_id)]
        self.notifier.success("Task deleted successfully")
        return True

    def toggle_status(self, task_id: TaskId, status: Union[str, TaskStatus]) -> TaskEntity:
        """Move a cached task to status, stamping or clearing completed_at."""
        target = _enum_value(TaskStatus, status)
        task = self.get(task_id)
        task["status"] = target.value
        task["completed_at"] = self.clock() if target is TaskStatus.COMPLETED else None
        try:
            updated = self.service.update_task(task)
        except RecordStoreError:
            logger.exception("Error changing status of task %r", task_id)
            self.notifier.error("Failed to update task status")
            raise
        if not self._replace(updated):
            logger.warning("Task %r was removed while its status changed", task_id)
        self.notifier.success(f"Task marked as {target.value.replace('-', ' ')}")
        return updated

    def view(
        self,
        status_filter: Union[str, TaskFilter] = TaskFilter.ALL,
        sort_field: Union[str, SortField] = SortField.DUE_DATE,
        direction: Union[str, SortDirection] = SortDirection.ASC,
    ) -> List[TaskEntity]:
        return sort_tasks(filter_tasks(self.tasks, status_filter), sort_field, direction)

    def stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        return compute_stats(self.tasks, now or self.clock())
