"""
tracker/models.py -- Domain dataclasses for projects and tasks.

These are pure data containers with zero logic. Validation lives in
tracker/validation.py; persistence and ownership scoping live in
tracker/store.py.

Separation of concerns: these dataclasses are the tracker's domain truth, just
as auth/models.py is the identity layer's. API response models are built from
them in the route handlers.
"""

from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

PROJECT_STATUSES: tuple[str, ...] = ("Active", "Completed", "On Hold", "Cancelled")
TASK_STATUSES: tuple[str, ...] = ("To Do", "In Progress", "Done")
TASK_PRIORITIES: tuple[str, ...] = ("Low", "Medium", "High", "Urgent")

DEFAULT_PROJECT_STATUS = "Active"
DEFAULT_TASK_STATUS = "To Do"
DEFAULT_TASK_PRIORITY = "Medium"
STATUS_DONE = "Done"

PROJECT_NAME_MIN = 3
PROJECT_NAME_MAX = 100
PROJECT_DESCRIPTION_MAX = 500
TASK_TITLE_MIN = 3
TASK_TITLE_MAX = 100
TASK_DESCRIPTION_MAX = 1000

PROJECT_SORT_FIELDS: tuple[str, ...] = ("created_at", "updated_at", "name", "status")
TASK_SORT_FIELDS: tuple[str, ...] = ("created_at", "updated_at", "title", "status", "priority", "due_date")
SORT_ORDERS: tuple[str, ...] = ("asc", "desc")


@dataclass
class Project:
    """A project owned by exactly one user.

    owner_id is set on insert and never updated. task_count is filled in by
    list/detail queries and is 0 on a freshly created record.

    id is None before the record is written to the database.
    """

    owner_id: int
    name: str
    description: str = ""
    status: str = DEFAULT_PROJECT_STATUS
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
    task_count: int = 0


@dataclass
class Task:
    """A task inside a project.

    owner_id is a denormalized copy of the parent project's owner written at
    insert time. project_name and project_owner_id are resolved by the join
    in TrackerStore.find_task(); authorization compares project_owner_id with
    owner_id to detect drift.
    """

    project_id: int
    owner_id: int
    title: str
    description: str = ""
    status: str = DEFAULT_TASK_STATUS
    priority: str = DEFAULT_TASK_PRIORITY
    due_date: Optional[str] = None  # ISO 8601 UTC
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    project_name: Optional[str] = None
    project_owner_id: Optional[int] = None


@dataclass(frozen=True)
class TaskSummary:
    """Confirmation payload returned after a task is deleted."""

    id: int
    title: str
    project_name: str


@dataclass(frozen=True)
class ProjectDeletion:
    """Outcome of a cascading project delete."""

    project: Project
    deleted_task_count: int


@dataclass(frozen=True)
class TaskStats:
    """Aggregate counts across every task the owner can see."""

    total: int
    todo: int
    in_progress: int
    done: int
    high_priority: int
    urgent: int
    overdue: int
    completion_rate: int  # 0-100, 0 when total is 0
    project_count: int
