"""
api/routes/v1/tasks.py -- Task routes across all of the caller's projects.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /tasks                  -- list with per-status summary, capped at TASK_LIST_LIMIT
  GET    /tasks/stats            -- aggregate counts (must be before /tasks/{task_id})
  GET    /tasks/{task_id}        -- task detail
  PUT    /tasks/{task_id}        -- partial update
  PATCH  /tasks/{task_id}/status -- status-only update
  DELETE /tasks/{task_id}        -- delete, returns a confirmation summary

A task is owned through its project. get_owned_task() resolves the task with
its parent project and raises 404 unless the caller owns that project.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import MAX_ID, TaskAccess, get_owned_task, get_tracker
from api.models import (
    TaskDeleteResponse,
    TaskListResponse,
    TaskResponse,
    TaskStatsResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from auth.dependencies import get_current_user
from auth.models import User

router = APIRouter(dependencies=[Depends(get_current_user)])


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    request: Request,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    project_id: Optional[int] = Query(None, ge=1, le=MAX_ID),
    sort: Optional[str] = None,
    order: Optional[str] = None,
    current_user: User = Depends(get_current_user),
) -> TaskListResponse:
    """Return the caller's tasks across all projects.

    ?project_id must name one of the caller's projects (403 otherwise).
    """
    tasks = get_tracker(request).list_tasks(
        current_user.id,
        status=status,
        priority=priority,
        project_id=project_id,
        sort=sort,
        order=order,
    )
    return TaskListResponse.from_tasks(tasks)


@router.get("/tasks/stats", response_model=TaskStatsResponse)
def task_stats(request: Request, current_user: User = Depends(get_current_user)) -> TaskStatsResponse:
    return TaskStatsResponse.from_stats(get_tracker(request).task_stats(current_user.id))


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(access: TaskAccess = Depends(get_owned_task)) -> TaskResponse:
    return TaskResponse.from_task(access.task)


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    request: Request,
    body: TaskUpdate,
    access: TaskAccess = Depends(get_owned_task),
) -> TaskResponse:
    """Apply the fields present in the body. "due_date": null clears the due date."""
    task = get_tracker(request).update_task(
        access.task.id,
        access.caller.id,
        body.model_dump(exclude_unset=True),
    )
    return TaskResponse.from_task(task)


@router.patch("/tasks/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    request: Request,
    body: TaskStatusUpdate,
    access: TaskAccess = Depends(get_owned_task),
) -> TaskResponse:
    task = get_tracker(request).update_task_status(access.task.id, access.caller.id, body.status)
    return TaskResponse.from_task(task)


@router.delete("/tasks/{task_id}", response_model=TaskDeleteResponse)
def delete_task(request: Request, access: TaskAccess = Depends(get_owned_task)) -> TaskDeleteResponse:
    summary = get_tracker(request).delete_task(access.task.id, access.caller.id)
    return TaskDeleteResponse.from_summary(summary)
