from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..auth import require_user
from ..models import User
from ..schemas import StatusChange, TaskCreate, TaskListOut, TaskOut, TaskReplace, TaskStatsOut
from ..task_list import SortDirection, SortField, TaskFilter, TaskListController
from ..utils import coerce_task_id, list_envelope, task_payload

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
    dependencies=[Depends(require_user)],
)


def get_controller(request: Request) -> TaskListController:
    """
    Dependency returning the process-wide task list controller.
    """
    return request.app.state.controller


# PUBLIC_INTERFACE
@router.post(
    "/load",
    response_model=TaskListOut,
    summary="Load Tasks",
    description="Reload the task cache from the record store and return it in default order.",
    responses={
        200: {"description": "Tasks loaded"},
        502: {"description": "Record store failure; cache unchanged"},
    },
)
def load_tasks(controller: TaskListController = Depends(get_controller)) -> TaskListOut:
    """
    Replace the cached tasks with the record store's current set.
    """
    controller.load()
    items = controller.view()
    envelope = list_envelope(
        items,
        TaskFilter.ALL.value,
        SortField.DUE_DATE.value,
        SortDirection.ASC.value,
        now=controller.clock(),
    )
    return TaskListOut(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TaskListOut,
    summary="List Tasks",
    description=(
        "List cached tasks with a status filter and a sort order.\n\n"
        "Query parameters:\n"
        "- status: all, not-started, in-progress, completed or blocked\n"
        "- sort: dueDate, title or priority\n"
        "- direction: asc or desc\n\n"
        "Tasks without a due date sort last ascending and first descending."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        422: {"description": "Invalid query parameters"},
    },
)
def list_tasks(
    status_filter: TaskFilter = Query(TaskFilter.ALL, alias="status", description="Status filter"),
    sort: SortField = Query(SortField.DUE_DATE, description="Sort field"),
    direction: SortDirection = Query(SortDirection.ASC, description="Sort direction"),
    controller: TaskListController = Depends(get_controller),
) -> TaskListOut:
    """
    Filtered and sorted view of the task cache.
    """
    items = controller.view(status_filter, sort, direction)
    envelope = list_envelope(
        items,
        status_filter.value,
        sort.value,
        direction.value,
        now=controller.clock(),
        loading=controller.loading,
        submitting=controller.submitting,
    )
    return TaskListOut(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=TaskStatsOut,
    summary="Dashboard Stats",
    description="Total, in-progress, completed and overdue counts over the task cache.",
)
def task_stats(controller: TaskListController = Depends(get_controller)) -> TaskStatsOut:
    return TaskStatsOut(**controller.stats())


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single cached task by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: str, controller: TaskListController = Depends(get_controller)) -> TaskOut:
    task = controller.get(coerce_task_id(task_id))
    return TaskOut(**task_payload(task, controller.clock()))


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a task in the record store and add it to the cache.",
    responses={
        201: {"description": "Task created successfully"},
        409: {"description": "Another submission is in progress"},
        422: {"description": "Validation error"},
        502: {"description": "Record store failure; cache unchanged"},
    },
)
def create_task(
    payload: TaskCreate,
    user: User = Depends(require_user),
    controller: TaskListController = Depends(get_controller),
) -> TaskOut:
    """
    Create a new task owned by the current user.
    """
    owner = None if user.get("is_guest") else user["username"]
    created = controller.create(payload.to_entity(), owner=owner)
    return TaskOut(**task_payload(created, controller.clock()))


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Replace Task",
    description=(
        "Replace every writable field of a task. Omitted optional fields are cleared. "
        "If the task is not in the cache the record store is still updated but the cache is left as is."
    ),
    responses={
        200: {"description": "Task updated"},
        409: {"description": "Another submission is in progress"},
        502: {"description": "Record store failure; cache unchanged"},
    },
)
def replace_task(
    task_id: str,
    payload: TaskReplace,
    controller: TaskListController = Depends(get_controller),
) -> TaskOut:
    """
    Full update (replace) of a task.
    """
    record = payload.to_entity()
    record["id"] = coerce_task_id(task_id)
    record["completed_at"] = payload.completed_at
    record["owner"] = payload.owner
    updated = controller.update(record)
    return TaskOut(**task_payload(updated, controller.clock()))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}/status",
    response_model=TaskOut,
    summary="Change Task Status",
    description="Move a cached task to a new status; completed_at is set for 'completed' and cleared otherwise.",
    responses={
        200: {"description": "Status changed"},
        404: {"description": "Task not found"},
        502: {"description": "Record store failure; cache unchanged"},
    },
)
def change_status(
    task_id: str,
    payload: StatusChange,
    controller: TaskListController = Depends(get_controller),
) -> TaskOut:
    updated = controller.toggle_status(coerce_task_id(task_id), payload.status)
    return TaskOut(**task_payload(updated, controller.clock()))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description="Delete a task. The request must carry confirm=true.",
    responses={
        204: {"description": "Task deleted"},
        400: {"description": "Deletion not confirmed"},
        502: {"description": "Record store failure; cache unchanged"},
    },
)
def delete_task(
    task_id: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    controller: TaskListController = Depends(get_controller),
) -> None:
    """
    Delete a task. Returns 204 on success, 400 if not confirmed.
    """
    if not controller.delete(coerce_task_id(task_id), confirmed=confirm):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Deletion must be confirmed")
    return None
