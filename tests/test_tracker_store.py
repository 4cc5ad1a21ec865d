"""Unit tests for tracker/store.py -- project and task repository.

Covers:
- create_project() defaults, trimming, per-owner name uniqueness
- list_projects() owner scoping, task counts, status filter, sorting
- get/update/delete_project() NotFound for foreign records
- delete_project() cascades tasks and reports the count
- create_task() requires an owned project; due date rules
- update_task() partial updates, due date clearing, immutable fields
- list_tasks() filters, AccessDenied on a foreign project filter, list cap
- task_stats() counts, overdue, completion rate
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from core.errors import AccessDenied, DuplicateName, InvalidDueDate, NotFound, ValidationError

ALICE = 1
BOB = 2


def _future(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _past(days: int = 1) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class TestCreateProject:
    def test_defaults_and_trimming(self, tracker):
        project = tracker.create_project(ALICE, name="  Website  ")
        assert project.id is not None
        assert project.name == "Website"
        assert project.description == ""
        assert project.status == "Active"
        assert project.owner_id == ALICE
        assert project.created_at == project.updated_at

    def test_status_alias_is_canonicalized(self, tracker):
        project = tracker.create_project(ALICE, name="Paused", status="on_hold")
        assert project.status == "On Hold"

    def test_invalid_fields_reported_together(self, tracker):
        with pytest.raises(ValidationError) as exc_info:
            tracker.create_project(ALICE, name="ab", description="x" * 501, status="Archived")
        assert set(exc_info.value.fields) == {"name", "description", "status"}

    def test_duplicate_name_same_owner(self, tracker):
        tracker.create_project(ALICE, name="Website")
        with pytest.raises(DuplicateName):
            tracker.create_project(ALICE, name="Website")

    def test_same_name_different_owners(self, tracker):
        a = tracker.create_project(ALICE, name="Website")
        b = tracker.create_project(BOB, name="Website")
        assert a.id != b.id


class TestListProjects:
    def test_only_owner_projects_with_task_counts(self, tracker):
        p1 = tracker.create_project(ALICE, name="Alpha")
        tracker.create_project(ALICE, name="Beta")
        tracker.create_project(BOB, name="Gamma")
        tracker.create_task(p1.id, ALICE, title="First")
        tracker.create_task(p1.id, ALICE, title="Second")

        projects = tracker.list_projects(ALICE)
        assert {p.name for p in projects} == {"Alpha", "Beta"}
        counts = {p.name: p.task_count for p in projects}
        assert counts == {"Alpha": 2, "Beta": 0}

    def test_status_filter(self, tracker):
        tracker.create_project(ALICE, name="Alpha")
        tracker.create_project(ALICE, name="Beta", status="Completed")
        projects = tracker.list_projects(ALICE, status="completed")
        assert [p.name for p in projects] == ["Beta"]

    def test_sort_by_name_ascending(self, tracker):
        for name in ("Charlie", "Alpha", "Bravo"):
            tracker.create_project(ALICE, name=name)
        projects = tracker.list_projects(ALICE, sort="name", order="asc")
        assert [p.name for p in projects] == ["Alpha", "Bravo", "Charlie"]

    def test_default_order_is_newest_first(self, tracker):
        for name in ("First", "Second", "Third"):
            tracker.create_project(ALICE, name=name)
        assert [p.name for p in tracker.list_projects(ALICE)] == ["Third", "Second", "First"]

    def test_unknown_sort_field_rejected(self, tracker):
        with pytest.raises(ValidationError) as exc_info:
            tracker.list_projects(ALICE, sort="owner_id")
        assert "sort" in exc_info.value.fields


class TestProjectOwnership:
    def test_get_foreign_project_is_not_found(self, tracker):
        project = tracker.create_project(ALICE, name="Private")
        with pytest.raises(NotFound):
            tracker.get_project(project.id, BOB)

    def test_update_foreign_project_is_not_found(self, tracker):
        project = tracker.create_project(ALICE, name="Private")
        with pytest.raises(NotFound):
            tracker.update_project(project.id, BOB, {"name": "Hijacked"})
        assert tracker.get_project(project.id, ALICE).name == "Private"

    def test_delete_foreign_project_is_not_found(self, tracker):
        project = tracker.create_project(ALICE, name="Private")
        with pytest.raises(NotFound):
            tracker.delete_project(project.id, BOB)
        assert tracker.get_project(project.id, ALICE).id == project.id

    def test_owner_id_cannot_be_updated(self, tracker):
        project = tracker.create_project(ALICE, name="Private")
        with pytest.raises(ValidationError) as exc_info:
            tracker.update_project(project.id, ALICE, {"owner_id": BOB})
        assert exc_info.value.fields == {"owner_id": "Field cannot be set"}


class TestUpdateProject:
    def test_partial_update_keeps_other_fields(self, tracker):
        project = tracker.create_project(ALICE, name="Website", description="Marketing site")
        updated = tracker.update_project(project.id, ALICE, {"status": "Completed"})
        assert updated.status == "Completed"
        assert updated.name == "Website"
        assert updated.description == "Marketing site"
        assert updated.updated_at >= project.updated_at

    def test_rename_collision(self, tracker):
        tracker.create_project(ALICE, name="Alpha")
        beta = tracker.create_project(ALICE, name="Beta")
        with pytest.raises(DuplicateName):
            tracker.update_project(beta.id, ALICE, {"name": "Alpha"})

    def test_null_status_rejected(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        with pytest.raises(ValidationError) as exc_info:
            tracker.update_project(project.id, ALICE, {"status": None})
        assert "status" in exc_info.value.fields


class TestDeleteProject:
    def test_cascades_tasks(self, tracker):
        project = tracker.create_project(ALICE, name="Doomed")
        task_ids = [tracker.create_task(project.id, ALICE, title=f"Task {i}").id for i in range(3)]

        deletion = tracker.delete_project(project.id, ALICE)
        assert deletion.deleted_task_count == 3
        assert deletion.project.name == "Doomed"
        for task_id in task_ids:
            assert tracker.find_task(task_id) is None
        with tracker.engine.connect() as conn:
            remaining = conn.execute(
                text("SELECT COUNT(*) FROM tasks WHERE project_id = :pid"), {"pid": project.id}
            ).scalar()
        assert remaining == 0

    def test_other_projects_untouched(self, tracker):
        doomed = tracker.create_project(ALICE, name="Doomed")
        kept = tracker.create_project(ALICE, name="Kept")
        tracker.create_task(doomed.id, ALICE, title="Goes away")
        survivor = tracker.create_task(kept.id, ALICE, title="Stays")
        tracker.delete_project(doomed.id, ALICE)
        assert tracker.get_task(survivor.id, ALICE).title == "Stays"

    def test_missing_project(self, tracker):
        with pytest.raises(NotFound):
            tracker.delete_project(999, ALICE)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TestCreateTask:
    def test_defaults(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        task = tracker.create_task(project.id, ALICE, title="  Draft copy ")
        assert task.title == "Draft copy"
        assert task.status == "To Do"
        assert task.priority == "Medium"
        assert task.due_date is None
        assert task.owner_id == ALICE
        assert task.project_name == "Website"

    def test_foreign_project_inserts_nothing(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        with pytest.raises(NotFound):
            tracker.create_task(project.id, BOB, title="Sneaky")
        assert tracker.list_tasks(ALICE) == []

    def test_missing_project(self, tracker):
        with pytest.raises(NotFound):
            tracker.create_task(12345, ALICE, title="Orphan")

    def test_past_due_date_rejected(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        with pytest.raises(InvalidDueDate):
            tracker.create_task(project.id, ALICE, title="Late", due_date=_past())

    def test_future_due_date_stored_as_utc(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        task = tracker.create_task(project.id, ALICE, title="Soon", due_date="2999-01-01T12:00:00+02:00")
        assert task.due_date == "2999-01-01T10:00:00.000000+00:00"

    def test_enum_aliases(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        task = tracker.create_task(project.id, ALICE, title="Aliased", status="in-progress", priority="URGENT")
        assert task.status == "In Progress"
        assert task.priority == "Urgent"

    def test_invalid_priority(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        with pytest.raises(ValidationError) as exc_info:
            tracker.create_task(project.id, ALICE, title="Bad", priority="Critical")
        assert "priority" in exc_info.value.fields


class TestUpdateTask:
    @pytest.fixture
    def task(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        return tracker.create_task(project.id, ALICE, title="Draft copy", description="v1", due_date=_future())

    def test_partial_update(self, tracker, task):
        updated = tracker.update_task(task.id, ALICE, {"priority": "High"})
        assert updated.priority == "High"
        assert updated.title == "Draft copy"
        assert updated.description == "v1"
        assert updated.due_date == task.due_date

    def test_clear_due_date(self, tracker, task):
        assert tracker.update_task(task.id, ALICE, {"due_date": None}).due_date is None

    def test_past_due_date_on_update(self, tracker, task):
        with pytest.raises(InvalidDueDate):
            tracker.update_task(task.id, ALICE, {"due_date": _past()})

    def test_project_id_is_immutable(self, tracker, task):
        other = tracker.create_project(ALICE, name="Other")
        with pytest.raises(ValidationError) as exc_info:
            tracker.update_task(task.id, ALICE, {"project_id": other.id})
        assert "project_id" in exc_info.value.fields

    def test_foreign_update_is_not_found(self, tracker, task):
        with pytest.raises(NotFound):
            tracker.update_task(task.id, BOB, {"title": "Hijacked"})
        assert tracker.get_task(task.id, ALICE).title == "Draft copy"

    def test_status_update(self, tracker, task):
        assert tracker.update_task_status(task.id, ALICE, "done").status == "Done"

    def test_status_update_requires_status(self, tracker, task):
        with pytest.raises(ValidationError):
            tracker.update_task_status(task.id, ALICE, None)


class TestDeleteTask:
    def test_returns_summary(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        task = tracker.create_task(project.id, ALICE, title="Draft copy")
        summary = tracker.delete_task(task.id, ALICE)
        assert (summary.id, summary.title, summary.project_name) == (task.id, "Draft copy", "Website")
        assert tracker.find_task(task.id) is None

    def test_foreign_delete_is_not_found(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        task = tracker.create_task(project.id, ALICE, title="Draft copy")
        with pytest.raises(NotFound):
            tracker.delete_task(task.id, BOB)
        assert tracker.find_task(task.id) is not None


class TestListTasks:
    @pytest.fixture
    def projects(self, tracker):
        web = tracker.create_project(ALICE, name="Website")
        app = tracker.create_project(ALICE, name="Mobile App")
        foreign = tracker.create_project(BOB, name="Bob's")
        tracker.create_task(web.id, ALICE, title="Low one", priority="Low")
        tracker.create_task(web.id, ALICE, title="Urgent one", priority="Urgent", status="In Progress")
        tracker.create_task(app.id, ALICE, title="High one", priority="High", status="Done")
        tracker.create_task(foreign.id, BOB, title="Not yours")
        return web, app, foreign

    def test_across_owner_projects(self, tracker, projects):
        titles = {t.title for t in tracker.list_tasks(ALICE)}
        assert titles == {"Low one", "Urgent one", "High one"}

    def test_filters(self, tracker, projects):
        web, _app, _foreign = projects
        assert [t.title for t in tracker.list_tasks(ALICE, status="in_progress")] == ["Urgent one"]
        assert [t.title for t in tracker.list_tasks(ALICE, priority="high")] == ["High one"]
        assert {t.title for t in tracker.list_tasks(ALICE, project_id=web.id)} == {"Low one", "Urgent one"}

    def test_foreign_project_filter_denied(self, tracker, projects):
        _web, _app, foreign = projects
        with pytest.raises(AccessDenied):
            tracker.list_tasks(ALICE, project_id=foreign.id)

    def test_priority_sorts_by_rank(self, tracker, projects):
        tasks = tracker.list_tasks(ALICE, sort="priority", order="asc")
        assert [t.priority for t in tasks] == ["Low", "High", "Urgent"]

    def test_limit_is_capped(self, tracker):
        project = tracker.create_project(ALICE, name="Bulk")
        for i in range(5):
            tracker.create_task(project.id, ALICE, title=f"Task {i}")
        assert len(tracker.list_tasks(ALICE, limit=3)) == 3

    def test_project_tasks_foreign_is_not_found(self, tracker, projects):
        _web, _app, foreign = projects
        with pytest.raises(NotFound):
            tracker.list_project_tasks(foreign.id, ALICE)


class TestTaskStats:
    def test_no_tasks(self, tracker):
        stats = tracker.task_stats(ALICE)
        assert stats.total == 0
        assert stats.completion_rate == 0
        assert stats.project_count == 0

    def test_counts(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        tracker.create_project(ALICE, name="Empty")
        tracker.create_task(project.id, ALICE, title="Todo high", priority="High", due_date=_future(1))
        tracker.create_task(project.id, ALICE, title="Doing urgent", priority="Urgent", status="In Progress")
        tracker.create_task(project.id, ALICE, title="Finished", status="Done", due_date=_future(1))
        other = tracker.create_project(BOB, name="Bob's")
        tracker.create_task(other.id, BOB, title="Not counted")

        stats = tracker.task_stats(ALICE)
        assert (stats.total, stats.todo, stats.in_progress, stats.done) == (3, 1, 1, 1)
        assert (stats.high_priority, stats.urgent) == (1, 1)
        assert stats.completion_rate == 33
        assert stats.project_count == 2
        assert stats.overdue == 0

    def test_overdue_excludes_done(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        tracker.create_task(project.id, ALICE, title="Open", due_date=_future(1))
        tracker.create_task(project.id, ALICE, title="Closed", status="Done", due_date=_future(1))
        # Two days later, both due dates have passed but only the open task is overdue.
        later = datetime.now(timezone.utc) + timedelta(days=2)
        assert tracker.task_stats(ALICE, now=later).overdue == 1

    def test_completion_rate_rounds_half_up(self, tracker):
        project = tracker.create_project(ALICE, name="Website")
        tracker.create_task(project.id, ALICE, title="Shipped", status="Done")
        for i in range(7):
            tracker.create_task(project.id, ALICE, title=f"Open {i}")
        # 1/8 = 12.5%
        assert tracker.task_stats(ALICE).completion_rate == 13
