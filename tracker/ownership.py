"""
tracker/ownership.py -- Resolve a resource id and confirm the caller owns it.

These run before a handler touches a project or task. They answer one
question: may this caller act on this record? The answer is either the record
itself or an exception; there is no partial result.

    missing record        -> NotFound
    someone else's record -> NotFound (same message, existence is not leaked)
    task whose owner_id disagrees with its project's owner -> InternalError

The repository methods scope their own writes by owner_id as well, so a record
that changes hands or disappears between this check and the write still fails
closed.
"""

from __future__ import annotations

import logging

from core.errors import InternalError, NotFound
from tracker.models import Project, Task
from tracker.store import TrackerStore

logger = logging.getLogger("tasktracker.ownership")


def authorize_project(store: TrackerStore, project_id: int, caller_id: int) -> Project:
    """Return the project if caller_id owns it, else raise NotFound."""
    project = store.find_project(project_id)
    if project is None:
        raise NotFound("Project not found.")
    if project.owner_id != caller_id:
        logger.warning(
            "User id=%s attempted access to project id=%s owned by user id=%s",
            caller_id,
            project_id,
            project.owner_id,
        )
        raise NotFound("Project not found.")
    return project


def authorize_task(store: TrackerStore, task_id: int, caller_id: int) -> Task:
    """Return the task if caller_id owns its parent project, else raise NotFound.

    Raises InternalError when the task's denormalized owner_id has drifted
    from the parent project's owner.
    """
    task = store.find_task(task_id)
    if task is None or task.project_owner_id is None:
        raise NotFound("Task not found.")
    if task.project_owner_id != caller_id:
        logger.warning(
            "User id=%s attempted access to task id=%s in project id=%s owned by user id=%s",
            caller_id,
            task_id,
            task.project_id,
            task.project_owner_id,
        )
        raise NotFound("Task not found.")
    if task.owner_id != task.project_owner_id:
        logger.error(
            "Ownership drift on task id=%s: task owner id=%s, project owner id=%s",
            task_id,
            task.owner_id,
            task.project_owner_id,
        )
        raise InternalError()
    return task
