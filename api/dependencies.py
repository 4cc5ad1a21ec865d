"""
api/dependencies.py -- Ownership-checked path resources for route handlers.

get_owned_project() and get_owned_task() run after authentication and before
the handler body. Each resolves the id from the path, confirms the caller owns
it (tracker/ownership.py), and attaches the record to request.state so the
handler and any logging see one consistent view:

    request.state.caller   -- the re-fetched User (set by get_current_user)
    request.state.project  -- the authorized Project
    request.state.task     -- the authorized Task

A handler that declares one of these dependencies cannot run against a record
the caller does not own.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Path, Request

from auth.dependencies import get_current_user
from auth.models import User
from tracker.models import Project, Task
from tracker.ownership import authorize_project, authorize_task
from tracker.store import TrackerStore

# Largest id SQLite (and BIGINT columns) can store.
MAX_ID = 2**63 - 1


@dataclass(frozen=True)
class ProjectAccess:
    caller: User
    project: Project


@dataclass(frozen=True)
class TaskAccess:
    caller: User
    task: Task


def get_tracker(request: Request) -> TrackerStore:
    return request.app.state.tracker


def get_owned_project(
    request: Request,
    project_id: int = Path(ge=1, le=MAX_ID),
    caller: User = Depends(get_current_user),
) -> ProjectAccess:
    """Authorize the {project_id} path parameter for the caller. NotFound otherwise."""
    project = authorize_project(get_tracker(request), project_id, caller.id)
    request.state.project = project
    return ProjectAccess(caller=caller, project=project)


def get_owned_task(
    request: Request,
    task_id: int = Path(ge=1, le=MAX_ID),
    caller: User = Depends(get_current_user),
) -> TaskAccess:
    """Authorize the {task_id} path parameter through its parent project."""
    task = authorize_task(get_tracker(request), task_id, caller.id)
    request.state.task = task
    return TaskAccess(caller=caller, task=task)
