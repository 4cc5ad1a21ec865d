"""
api/routes/v1/projects.py -- Project routes and the nested task routes.

Routes:
  POST   /projects                      -- create a project owned by the caller
  GET    /projects                      -- the caller's projects (?status, ?sort, ?order)
  GET    /projects/{project_id}         -- detail with task_count and recent tasks
  PUT    /projects/{project_id}         -- partial update of name/description/status
  DELETE /projects/{project_id}         -- delete the project and all its tasks
  GET    /projects/{project_id}/tasks   -- tasks of one project
  POST   /projects/{project_id}/tasks   -- create a task in the project

Every {project_id} route depends on get_owned_project(), so a project that is
missing and a project that belongs to someone else both produce 404. The
store calls below are scoped by the caller's id as well.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.dependencies import ProjectAccess, get_owned_project, get_tracker
from api.models import (
    ProjectCreate,
    ProjectDeleteResponse,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
)
from auth.dependencies import get_current_user
from auth.models import User

router = APIRouter(dependencies=[Depends(get_current_user)])


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.post("/projects", response_model=ProjectResponse, status_code=201)
def create_project(
    request: Request,
    body: ProjectCreate,
    current_user: User = Depends(get_current_user),
) -> ProjectResponse:
    """Create a project. 409 if the caller already has one with this name."""
    project = get_tracker(request).create_project(
        current_user.id,
        name=body.name,
        description=body.description,
        status=body.status,
    )
    return ProjectResponse.from_project(project)


@router.get("/projects", response_model=ProjectListResponse)
def list_projects(
    request: Request,
    status: Optional[str] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    current_user: User = Depends(get_current_user),
) -> ProjectListResponse:
    """Return only the caller's projects, newest first by default."""
    projects = get_tracker(request).list_projects(current_user.id, status=status, sort=sort, order=order)
    return ProjectListResponse(
        count=len(projects),
        projects=[ProjectResponse.from_project(p) for p in projects],
    )


# ---------------------------------------------------------------------------
# Single project
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}", response_model=ProjectDetailResponse)
def get_project(request: Request, access: ProjectAccess = Depends(get_owned_project)) -> ProjectDetailResponse:
    project = access.project
    recent = get_tracker(request).recent_tasks(project.id, access.caller.id)
    return ProjectDetailResponse(
        **ProjectResponse.from_project(project).model_dump(),
        recent_tasks=[TaskResponse.from_task(t) for t in recent],
    )


@router.put("/projects/{project_id}", response_model=ProjectResponse)
def update_project(
    request: Request,
    body: ProjectUpdate,
    access: ProjectAccess = Depends(get_owned_project),
) -> ProjectResponse:
    """Apply the fields present in the body; absent fields keep their values."""
    project = get_tracker(request).update_project(
        access.project.id,
        access.caller.id,
        body.model_dump(exclude_unset=True),
    )
    return ProjectResponse.from_project(project)


@router.delete("/projects/{project_id}", response_model=ProjectDeleteResponse)
def delete_project(request: Request, access: ProjectAccess = Depends(get_owned_project)) -> ProjectDeleteResponse:
    """Delete the project and every task in it in one transaction."""
    deletion = get_tracker(request).delete_project(access.project.id, access.caller.id)
    return ProjectDeleteResponse.from_deletion(deletion)


# ---------------------------------------------------------------------------
# Nested tasks
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/tasks", response_model=TaskListResponse)
def list_project_tasks(
    request: Request,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    access: ProjectAccess = Depends(get_owned_project),
) -> TaskListResponse:
    tasks = get_tracker(request).list_project_tasks(
        access.project.id,
        access.caller.id,
        status=status,
        priority=priority,
        sort=sort,
        order=order,
    )
    return TaskListResponse.from_tasks(tasks)


@router.post("/projects/{project_id}/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    access: ProjectAccess = Depends(get_owned_project),
) -> TaskResponse:
    """Create a task. 404 if the project was deleted after authorization."""
    task = get_tracker(request).create_task(
        access.project.id,
        access.caller.id,
        title=body.title,
        description=body.description,
        status=body.status,
        priority=body.priority,
        due_date=body.due_date,
    )
    return TaskResponse.from_task(task)
