"""
tracker/store.py -- SQLAlchemy-backed persistence for projects and tasks.

Uses SQLAlchemy Core (not ORM) so the dataclasses in tracker/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. TrackerStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Ownership rules enforced here, not in the routes:
  - Every read, update and delete is scoped by owner_id in its WHERE clause.
    The ownership check and the mutation are the same statement, so there is
    no window between "verify owner" and "mutate".
  - Missing and not-owned records raise the same NotFound.
  - Tasks carry a denormalized owner_id; task writes require it to match AND
    the parent project to be owned by the caller.
  - A task insert selects from the owning project row (INSERT ... SELECT).
    If the project was deleted (or is someone else's) nothing is inserted.
  - delete_project removes the tasks and the project in one transaction and
    rolls back unless the project row itself was deleted. The tasks.project_id
    foreign key has ON DELETE CASCADE as a second line of defence.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TrackerStore("sqlite:///:memory:")
    project = store.create_project(owner_id=1, name="Website")
    task = store.create_task(project.id, owner_id=1, title="Draft copy")
    store.delete_project(project.id, owner_id=1)   # removes the task too
    store.close()
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    case,
    func,
    literal,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.config import get_settings
from core.database import make_engine, now_iso, storage_errors, to_iso
from core.errors import AccessDenied, DuplicateName, NotFound, ValidationError
from core.validation import check_choice
from tracker.models import (
    PROJECT_SORT_FIELDS,
    PROJECT_STATUSES,
    STATUS_DONE,
    TASK_PRIORITIES,
    TASK_SORT_FIELDS,
    TASK_STATUSES,
    Project,
    ProjectDeletion,
    Task,
    TaskStats,
    TaskSummary,
)
from tracker.validation import check_sort, clean_project_fields, clean_task_fields

logger = logging.getLogger("tasktracker.tracker")

_RECENT_TASKS = 5

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("status", String(20), nullable=False, server_default="Active"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("owner_id", "name", name="uq_project_owner_name"),
)

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("owner_id", Integer, nullable=False, index=True),  # denormalized project owner
    Column("title", String(100), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("status", String(20), nullable=False, server_default="To Do"),
    Column("priority", String(20), nullable=False, server_default="Medium"),
    Column("due_date", String(32)),  # ISO 8601 UTC, NULL = no due date
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Enum columns sort by their declared order, not alphabetically.
_STATUS_RANK = case({s: i for i, s in enumerate(TASK_STATUSES)}, value=_tasks.c.status, else_=len(TASK_STATUSES))
_PRIORITY_RANK = case(
    {p: i for i, p in enumerate(TASK_PRIORITIES)}, value=_tasks.c.priority, else_=len(TASK_PRIORITIES)
)
_PROJECT_STATUS_RANK = case(
    {s: i for i, s in enumerate(PROJECT_STATUSES)}, value=_projects.c.status, else_=len(PROJECT_STATUSES)
)

_PROJECT_SORT_COLUMNS = {
    "created_at": _projects.c.created_at,
    "updated_at": _projects.c.updated_at,
    "name": _projects.c.name,
    "status": _PROJECT_STATUS_RANK,
}
_TASK_SORT_COLUMNS = {
    "created_at": _tasks.c.created_at,
    "updated_at": _tasks.c.updated_at,
    "title": _tasks.c.title,
    "status": _STATUS_RANK,
    "priority": _PRIORITY_RANK,
    "due_date": _tasks.c.due_date,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ordering(column, key_column, order: str) -> tuple:
    """ORDER BY clause with the primary key as a stable tie-breaker."""
    if order == "asc":
        return column.asc(), key_column.asc()
    return column.desc(), key_column.desc()


def _filter_choice(field: str, value: Optional[str], choices: tuple[str, ...], label: str) -> Optional[str]:
    """Canonicalize an optional list filter, raising ValidationError when it is not a valid choice."""
    if value is None or value == "":
        return None
    errors: dict[str, str] = {}
    canonical = check_choice(errors, field, value, choices, label=label)
    if errors:
        raise ValidationError(errors)
    return canonical


def _project_with_count():
    """SELECT projects.* plus the number of tasks per project, in one query."""
    counts = (
        select(_tasks.c.project_id, func.count().label("task_count")).group_by(_tasks.c.project_id).subquery()
    )
    return select(_projects, func.coalesce(counts.c.task_count, 0).label("task_count")).select_from(
        _projects.outerjoin(counts, counts.c.project_id == _projects.c.id)
    )


def _task_with_project():
    """SELECT tasks.* with the parent project's name and owner resolved."""
    return select(
        _tasks,
        _projects.c.name.label("project_name"),
        _projects.c.owner_id.label("project_owner_id"),
    ).select_from(_tasks.outerjoin(_projects, _projects.c.id == _tasks.c.project_id))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TrackerStore:
    def __init__(self, db_url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        settings = get_settings()
        self.engine: Engine = make_engine(
            db_url or settings.database_url,
            timeout if timeout is not None else settings.db_timeout_seconds,
        )
        with storage_errors("tracker.create_schema"):
            metadata.create_all(self.engine)

    def ping(self) -> None:
        with storage_errors("tracker.ping"), self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(
        self,
        owner_id: int,
        name: str,
        description: Optional[str] = "",
        status: Optional[str] = None,
    ) -> Project:
        """Insert a project owned by owner_id.

        Raises ValidationError on bad fields, DuplicateName if the owner
        already has a project with this name.
        """
        fields = clean_project_fields(
            {"name": name, "description": description, "status": status},
            creating=True,
        )
        now = now_iso()
        try:
            with storage_errors("projects.create"), self.engine.begin() as conn:
                result = conn.execute(
                    _projects.insert().values(owner_id=owner_id, created_at=now, updated_at=now, **fields)
                )
                project_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateName() from exc
        logger.info("Project id=%s created by user id=%s", project_id, owner_id)
        return Project(id=project_id, owner_id=owner_id, created_at=now, updated_at=now, **fields)

    def list_projects(
        self,
        owner_id: int,
        status: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> list[Project]:
        """Return the owner's projects with task counts. Defaults to newest first."""
        status = _filter_choice("status", status, PROJECT_STATUSES, "Status")
        sort, order = check_sort(sort, order, PROJECT_SORT_FIELDS)
        stmt = _project_with_count().where(_projects.c.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(_projects.c.status == status)
        stmt = stmt.order_by(*_ordering(_PROJECT_SORT_COLUMNS[sort], _projects.c.id, order))
        with storage_errors("projects.list"), self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_project(r) for r in rows]

    def get_project(self, project_id: int, owner_id: int) -> Project:
        """Fetch one of the owner's projects. NotFound if missing or not owned."""
        stmt = _project_with_count().where((_projects.c.id == project_id) & (_projects.c.owner_id == owner_id))
        with storage_errors("projects.get"), self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            raise NotFound("Project not found.")
        return _row_to_project(row)

    def find_project(self, project_id: int) -> Optional[Project]:
        """Unscoped lookup for the authorization layer. Never expose the result directly."""
        with storage_errors("projects.find"), self.engine.connect() as conn:
            row = conn.execute(_project_with_count().where(_projects.c.id == project_id)).first()
        return _row_to_project(row) if row is not None else None

    def update_project(self, project_id: int, owner_id: int, changes: dict[str, Any]) -> Project:
        """Apply a partial update of name/description/status.

        The UPDATE is scoped by (id, owner_id); zero affected rows means the
        project is missing or not owned and raises NotFound.
        """
        fields = clean_project_fields(changes, creating=False)
        if fields:
            try:
                with storage_errors("projects.update"), self.engine.begin() as conn:
                    result = conn.execute(
                        _projects.update()
                        .where((_projects.c.id == project_id) & (_projects.c.owner_id == owner_id))
                        .values(updated_at=now_iso(), **fields)
                    )
            except IntegrityError as exc:
                raise DuplicateName() from exc
            if result.rowcount == 0:
                raise NotFound("Project not found.")
        return self.get_project(project_id, owner_id)

    def delete_project(self, project_id: int, owner_id: int) -> ProjectDeletion:
        """Delete a project and every task in it, atomically.

        Both deletes run in one transaction. If the project row is not
        removed (missing, not owned, or deleted concurrently) the transaction
        rolls back and NotFound is raised, so tasks are never removed without
        their project and a project is never removed with tasks left behind.
        """
        owned = (_projects.c.id == project_id) & (_projects.c.owner_id == owner_id)
        with storage_errors("projects.delete"), self.engine.begin() as conn:
            row = conn.execute(_project_with_count().where(owned)).first()
            if row is None:
                raise NotFound("Project not found.")
            deleted_tasks = conn.execute(_tasks.delete().where(_tasks.c.project_id == project_id)).rowcount
            if conn.execute(_projects.delete().where(owned)).rowcount == 0:
                raise NotFound("Project not found.")
        logger.info(
            "Project id=%s deleted by user id=%s (%d tasks cascaded)", project_id, owner_id, deleted_tasks
        )
        return ProjectDeletion(project=_row_to_project(row), deleted_task_count=deleted_tasks)

    def recent_tasks(self, project_id: int, owner_id: int, limit: int = _RECENT_TASKS) -> list[Task]:
        """Most recently updated tasks of an owned project."""
        stmt = (
            _task_with_project()
            .where(
                (_tasks.c.project_id == project_id)
                & (_tasks.c.owner_id == owner_id)
                & (_projects.c.owner_id == owner_id)
            )
            .order_by(_tasks.c.updated_at.desc(), _tasks.c.id.desc())
            .limit(limit)
        )
        with storage_errors("tasks.recent"), self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_task(r) for r in rows]

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        project_id: int,
        owner_id: int,
        title: str,
        description: Optional[str] = "",
        status: Optional[str] = None,
        priority: Optional[str] = None,
        due_date: Optional[datetime | str] = None,
    ) -> Task:
        """Insert a task under an owned project.

        INSERT ... SELECT FROM projects WHERE id = :project AND owner_id = :owner
        makes the ownership check and the insert one statement. Zero inserted
        rows means the project is missing, not owned, or was deleted
        concurrently, and raises NotFound.
        """
        fields = clean_task_fields(
            {
                "title": title,
                "description": description,
                "status": status,
                "priority": priority,
                "due_date": due_date,
            },
            creating=True,
        )
        now = now_iso()
        source = select(
            _projects.c.id,
            _projects.c.owner_id,
            literal(fields["title"], String),
            literal(fields["description"], Text),
            literal(fields["status"], String),
            literal(fields["priority"], String),
            literal(fields["due_date"], String),
            literal(now, String),
            literal(now, String),
        ).where((_projects.c.id == project_id) & (_projects.c.owner_id == owner_id))
        stmt = (
            _tasks.insert()
            .from_select(
                [
                    "project_id",
                    "owner_id",
                    "title",
                    "description",
                    "status",
                    "priority",
                    "due_date",
                    "created_at",
                    "updated_at",
                ],
                source,
            )
            .returning(_tasks.c.id)
        )
        try:
            with storage_errors("tasks.create"), self.engine.begin() as conn:
                task_id = conn.execute(stmt).scalar_one_or_none()
        except IntegrityError as exc:
            # Foreign key rejected the insert: the project vanished mid-statement.
            raise NotFound("Project not found.") from exc
        if task_id is None:
            raise NotFound("Project not found.")
        logger.info("Task id=%s created in project id=%s by user id=%s", task_id, project_id, owner_id)
        return self.get_task(task_id, owner_id)

    def find_task(self, task_id: int) -> Optional[Task]:
        """Unscoped lookup with the parent project resolved, for the authorization layer."""
        with storage_errors("tasks.find"), self.engine.connect() as conn:
            row = conn.execute(_task_with_project().where(_tasks.c.id == task_id)).first()
        return _row_to_task(row) if row is not None else None

    def get_task(self, task_id: int, owner_id: int) -> Task:
        """Fetch a task whose parent project the owner owns. NotFound otherwise."""
        stmt = _task_with_project().where(
            (_tasks.c.id == task_id) & (_tasks.c.owner_id == owner_id) & (_projects.c.owner_id == owner_id)
        )
        with storage_errors("tasks.get"), self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            raise NotFound("Task not found.")
        return _row_to_task(row)

    def update_task(self, task_id: int, owner_id: int, changes: dict[str, Any]) -> Task:
        """Apply a partial update; unchanged fields keep their values.

        The UPDATE requires both the task's owner_id and its parent project's
        owner to match, in a single statement.
        """
        fields = clean_task_fields(changes, creating=False)
        if fields:
            parent_owned = (
                select(_projects.c.id)
                .where((_projects.c.id == _tasks.c.project_id) & (_projects.c.owner_id == owner_id))
                .correlate(_tasks)
                .exists()
            )
            with storage_errors("tasks.update"), self.engine.begin() as conn:
                result = conn.execute(
                    _tasks.update()
                    .where((_tasks.c.id == task_id) & (_tasks.c.owner_id == owner_id) & parent_owned)
                    .values(updated_at=now_iso(), **fields)
                )
            if result.rowcount == 0:
                raise NotFound("Task not found.")
        return self.get_task(task_id, owner_id)

    def update_task_status(self, task_id: int, owner_id: int, status: Optional[str]) -> Task:
        """Status-only update (PATCH /tasks/{id}/status)."""
        return self.update_task(task_id, owner_id, {"status": status})

    def delete_task(self, task_id: int, owner_id: int) -> TaskSummary:
        """Remove a task and return a confirmation summary."""
        scoped = (_tasks.c.id == task_id) & (_tasks.c.owner_id == owner_id)
        with storage_errors("tasks.delete"), self.engine.begin() as conn:
            row = conn.execute(_task_with_project().where(scoped & (_projects.c.owner_id == owner_id))).first()
            if row is None:
                raise NotFound("Task not found.")
            if conn.execute(_tasks.delete().where(scoped)).rowcount == 0:
                raise NotFound("Task not found.")
        logger.info("Task id=%s deleted by user id=%s", task_id, owner_id)
        return TaskSummary(id=row.id, title=row.title, project_name=row.project_name)

    def list_tasks(
        self,
        owner_id: int,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        project_id: Optional[int] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Task]:
        """Return the owner's tasks across all projects, capped at TASK_LIST_LIMIT.

        A project_id filter that does not name one of the owner's projects
        raises AccessDenied (missing and foreign projects look the same).
        """
        if project_id is not None:
            project = self.find_project(project_id)
            if project is None or project.owner_id != owner_id:
                logger.info("User id=%s filtered tasks by foreign project id=%s", owner_id, project_id)
                raise AccessDenied("Invalid project ID or project does not belong to you.")
        return self._query_tasks(owner_id, status, priority, project_id, sort, order, limit)

    def list_project_tasks(
        self,
        project_id: int,
        owner_id: int,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> list[Task]:
        """Tasks of one owned project (nested route). NotFound if the project is not the owner's."""
        self.get_project(project_id, owner_id)
        return self._query_tasks(owner_id, status, priority, project_id, sort, order, None)

    def _query_tasks(
        self,
        owner_id: int,
        status: Optional[str],
        priority: Optional[str],
        project_id: Optional[int],
        sort: Optional[str],
        order: Optional[str],
        limit: Optional[int],
    ) -> list[Task]:
        status = _filter_choice("status", status, TASK_STATUSES, "Status")
        priority = _filter_choice("priority", priority, TASK_PRIORITIES, "Priority")
        sort, order = check_sort(sort, order, TASK_SORT_FIELDS)
        cap = get_settings().task_list_limit
        limit = min(limit, cap) if limit else cap

        stmt = _task_with_project().where((_tasks.c.owner_id == owner_id) & (_projects.c.owner_id == owner_id))
        if project_id is not None:
            stmt = stmt.where(_tasks.c.project_id == project_id)
        if status is not None:
            stmt = stmt.where(_tasks.c.status == status)
        if priority is not None:
            stmt = stmt.where(_tasks.c.priority == priority)
        stmt = stmt.order_by(*_ordering(_TASK_SORT_COLUMNS[sort], _tasks.c.id, order)).limit(limit)
        with storage_errors("tasks.list"), self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_task(r) for r in rows]

    def task_stats(self, owner_id: int, now: Optional[datetime] = None) -> TaskStats:
        """Aggregate task counts for the owner in a single query.

        Uses conditional aggregation: COUNT(CASE WHEN condition THEN 1 END).
        overdue = due_date < now AND status != Done. completion_rate is
        round(done / total * 100), and 0 when there are no tasks.
        """
        now_str = to_iso(now or datetime.now(timezone.utc))
        stmt = (
            select(
                func.count().label("total"),
                func.count(case((_tasks.c.status == "To Do", 1))).label("todo"),
                func.count(case((_tasks.c.status == "In Progress", 1))).label("in_progress"),
                func.count(case((_tasks.c.status == STATUS_DONE, 1))).label("done"),
                func.count(case((_tasks.c.priority == "High", 1))).label("high_priority"),
                func.count(case((_tasks.c.priority == "Urgent", 1))).label("urgent"),
                func.count(
                    case(
                        (
                            _tasks.c.due_date.isnot(None)
                            & (_tasks.c.due_date < now_str)
                            & (_tasks.c.status != STATUS_DONE),
                            1,
                        )
                    )
                ).label("overdue"),
            )
            .select_from(_tasks.join(_projects, _projects.c.id == _tasks.c.project_id))
            .where((_tasks.c.owner_id == owner_id) & (_projects.c.owner_id == owner_id))
        )
        project_count_stmt = select(func.count()).select_from(_projects).where(_projects.c.owner_id == owner_id)
        with storage_errors("tasks.stats"), self.engine.connect() as conn:
            row = conn.execute(stmt).one()
            project_count = conn.execute(project_count_stmt).scalar() or 0

        total = row.total or 0
        done = row.done or 0
        # Halves round up (1 of 8 done is 13).
        completion_rate = (done * 200 + total) // (2 * total) if total else 0
        return TaskStats(
            total=total,
            todo=row.todo or 0,
            in_progress=row.in_progress or 0,
            done=done,
            high_priority=row.high_priority or 0,
            urgent=row.urgent or 0,
            overdue=row.overdue or 0,
            completion_rate=completion_rate,
            project_count=project_count,
        )

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        description=row.description or "",
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
        task_count=getattr(row, "task_count", 0) or 0,
    )


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        project_id=row.project_id,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description or "",
        status=row.status,
        priority=row.priority,
        due_date=row.due_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
        project_name=getattr(row, "project_name", None),
        project_owner_id=getattr(row, "project_owner_id", None),
    )
