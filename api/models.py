"""
API request and response models for the TaskTracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tracker/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models only check shape (required keys, JSON types, no unknown keys).
Field rules -- lengths, enum values, due dates -- are enforced by the stores
so that every entry point reports them with the same per-field messages.

Separation of concerns: domain models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from tracker.models import TASK_STATUSES, Project, ProjectDeletion, Task, TaskStats, TaskSummary

# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users/register."""

    model_config = ConfigDict(extra="forbid")

    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login."""

    model_config = ConfigDict(extra="forbid")

    email: str
    password: str


class PasswordChangeRequest(BaseModel):
    """Request body for POST /api/v1/users/password."""

    model_config = ConfigDict(extra="forbid")

    current_password: str
    new_password: str


# ---------------------------------------------------------------------------
# Users -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method -- the mapping lives beside the output model."""
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    """Response for register and login: the session token plus the user."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    """Request body for POST /api/v1/projects."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: Optional[str] = ""
    status: Optional[str] = None


class ProjectUpdate(BaseModel):
    """Request body for PUT /api/v1/projects/{project_id}.

    Every field is optional; only keys present in the body are changed.
    owner_id is not a field here, so it cannot be reassigned.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    owner_id: int
    name: str
    description: str
    status: str
    task_count: int = 0
    created_at: str
    updated_at: str

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            owner_id=project.owner_id,
            name=project.name,
            description=project.description,
            status=project.status,
            task_count=project.task_count,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
    projects: list[ProjectResponse]


class ProjectDeleteResponse(BaseModel):
    """Confirmation for DELETE /api/v1/projects/{project_id}."""

    model_config = ConfigDict(frozen=True)

    message: str
    project: ProjectResponse
    deleted_task_count: int

    @classmethod
    def from_deletion(cls, deletion: ProjectDeletion) -> "ProjectDeleteResponse":
        return cls(
            message="Project and all associated tasks deleted.",
            project=ProjectResponse.from_project(deletion.project),
            deleted_task_count=deletion.deleted_task_count,
        )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/projects/{project_id}/tasks.

    due_date is an ISO 8601 date or date-time; naive values are read as UTC.
    """

    model_config = ConfigDict(extra="forbid")

    title: str
    description: Optional[str] = ""
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None


class TaskUpdate(BaseModel):
    """Request body for PUT /api/v1/tasks/{task_id}.

    Partial update: absent keys are left alone, "due_date": null clears the
    due date. project_id and owner_id are not accepted.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    """Request body for PATCH /api/v1/tasks/{task_id}/status."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    project_id: int
    project_name: Optional[str] = None
    owner_id: int
    title: str
    description: str
    status: str
    priority: str
    due_date: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            project_id=task.project_id,
            project_name=task.project_name,
            owner_id=task.owner_id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class ProjectDetailResponse(ProjectResponse):
    """Project detail: the project plus its most recently updated tasks."""

    recent_tasks: list[TaskResponse] = Field(default_factory=list)


class TaskListResponse(BaseModel):
    """Task list with a count of the returned tasks per status."""

    model_config = ConfigDict(frozen=True)

    count: int
    summary: dict[str, int]
    tasks: list[TaskResponse]

    @classmethod
    def from_tasks(cls, tasks: list[Task]) -> "TaskListResponse":
        summary = {status: 0 for status in TASK_STATUSES}
        for task in tasks:
            summary[task.status] = summary.get(task.status, 0) + 1
        return cls(
            count=len(tasks),
            summary=summary,
            tasks=[TaskResponse.from_task(t) for t in tasks],
        )


class TaskDeleteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    id: int
    title: str
    project_name: Optional[str] = None

    @classmethod
    def from_summary(cls, summary: TaskSummary) -> "TaskDeleteResponse":
        return cls(
            message="Task deleted.",
            id=summary.id,
            title=summary.title,
            project_name=summary.project_name,
        )


class TaskStatsResponse(BaseModel):
    """Response for GET /api/v1/tasks/stats."""

    model_config = ConfigDict(frozen=True)

    total: int
    todo: int
    in_progress: int
    done: int
    high_priority: int
    urgent: int
    overdue: int
    completion_rate: int
    project_count: int

    @classmethod
    def from_stats(cls, stats: TaskStats) -> "TaskStatsResponse":
        return cls(
            total=stats.total,
            todo=stats.todo,
            in_progress=stats.in_progress,
            done=stats.done,
            high_priority=stats.high_priority,
            urgent=stats.urgent,
            overdue=stats.overdue,
            completion_rate=stats.completion_rate,
            project_count=stats.project_count,
        )


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload. fields maps input fields to messages."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[dict[str, str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
