"""
tracker/validation.py -- Field rules for projects and tasks.

clean_project_fields() and clean_task_fields() take only the fields a caller
supplied (a full set on create, a partial patch on update), check each one
independently, and return the normalized values ready to write. Every bad
field is reported in one ValidationError; a due date in the past on its own
raises the narrower InvalidDueDate.

Keys outside the updatable set are rejected, which is what keeps owner_id and
project_id immutable after insert.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from core.database import to_iso
from core.errors import InvalidDueDate, ValidationError
from core.validation import check_choice, check_length
from tracker.models import (
    DEFAULT_PROJECT_STATUS,
    DEFAULT_TASK_PRIORITY,
    DEFAULT_TASK_STATUS,
    PROJECT_DESCRIPTION_MAX,
    PROJECT_NAME_MAX,
    PROJECT_NAME_MIN,
    PROJECT_STATUSES,
    SORT_ORDERS,
    TASK_DESCRIPTION_MAX,
    TASK_PRIORITIES,
    TASK_STATUSES,
    TASK_TITLE_MAX,
    TASK_TITLE_MIN,
)

PROJECT_FIELDS = frozenset({"name", "description", "status"})
TASK_FIELDS = frozenset({"title", "description", "status", "priority", "due_date"})

_DUE_DATE_PAST = "Due date must not be in the past"


def _reject_unknown(errors: dict[str, str], fields: dict[str, Any], allowed: frozenset) -> None:
    for key in fields:
        if key not in allowed:
            errors[key] = "Field cannot be set"


def parse_due_date(value: Any) -> Optional[datetime]:
    """Accept a datetime or an ISO 8601 string. Naive values are UTC. Raises ValueError."""
    if value is None or isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported due date type {type(value).__name__}")
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_project_fields(fields: dict[str, Any], *, creating: bool) -> dict[str, Any]:
    """Validate and normalize project fields.

    On create, name is required and missing description/status get defaults.
    On update, only the keys present in `fields` are checked and returned.
    """
    errors: dict[str, str] = {}
    cleaned: dict[str, Any] = {}
    _reject_unknown(errors, fields, PROJECT_FIELDS)

    if creating or "name" in fields:
        cleaned["name"] = check_length(
            errors,
            "name",
            fields.get("name"),
            label="Project name",
            min_length=PROJECT_NAME_MIN,
            max_length=PROJECT_NAME_MAX,
        )
    if creating or "description" in fields:
        cleaned["description"] = (
            check_length(
                errors,
                "description",
                fields.get("description") or "",
                label="Description",
                max_length=PROJECT_DESCRIPTION_MAX,
                required=False,
            )
            or ""
        )
    if "status" in fields and fields["status"] is not None:
        cleaned["status"] = check_choice(errors, "status", fields["status"], PROJECT_STATUSES, label="Status")
    elif "status" in fields and not creating:
        errors["status"] = "Status cannot be empty"
    elif creating:
        cleaned["status"] = DEFAULT_PROJECT_STATUS

    if errors:
        raise ValidationError(errors)
    return cleaned


def clean_task_fields(fields: dict[str, Any], *, creating: bool, now: Optional[datetime] = None) -> dict[str, Any]:
    """Validate and normalize task fields.

    due_date may be None (no due date / clear it). A value strictly before
    `now` is rejected. The returned due_date is the stored ISO string.
    """
    errors: dict[str, str] = {}
    cleaned: dict[str, Any] = {}
    _reject_unknown(errors, fields, TASK_FIELDS)

    if creating or "title" in fields:
        cleaned["title"] = check_length(
            errors,
            "title",
            fields.get("title"),
            label="Task title",
            min_length=TASK_TITLE_MIN,
            max_length=TASK_TITLE_MAX,
        )
    if creating or "description" in fields:
        cleaned["description"] = (
            check_length(
                errors,
                "description",
                fields.get("description") or "",
                label="Description",
                max_length=TASK_DESCRIPTION_MAX,
                required=False,
            )
            or ""
        )

    for field, choices, default, label in (
        ("status", TASK_STATUSES, DEFAULT_TASK_STATUS, "Status"),
        ("priority", TASK_PRIORITIES, DEFAULT_TASK_PRIORITY, "Priority"),
    ):
        if fields.get(field) is not None:
            cleaned[field] = check_choice(errors, field, fields[field], choices, label=label)
        elif field in fields and not creating:
            errors[field] = f"{label} cannot be empty"
        elif creating:
            cleaned[field] = default

    due_date_past = False
    if "due_date" in fields:
        try:
            due = parse_due_date(fields["due_date"])
        except ValueError:
            errors["due_date"] = "Due date must be an ISO 8601 date/time"
        else:
            if due is not None and due < (now or datetime.now(timezone.utc)):
                due_date_past = True
                errors["due_date"] = _DUE_DATE_PAST
            cleaned["due_date"] = to_iso(due) if due is not None else None
    elif creating:
        cleaned["due_date"] = None

    if due_date_past and len(errors) == 1:
        raise InvalidDueDate()
    if errors:
        raise ValidationError(errors)
    return cleaned


def check_sort(sort: Optional[str], order: Optional[str], allowed: tuple[str, ...]) -> tuple[str, str]:
    """Resolve a caller-supplied sort field/order, defaulting to created_at desc."""
    errors: dict[str, str] = {}
    sort = sort or "created_at"
    order = (order or "desc").lower()
    if sort not in allowed:
        errors["sort"] = f"Sort must be one of: {', '.join(allowed)}"
    if order not in SORT_ORDERS:
        errors["order"] = "Order must be asc or desc"
    if errors:
        raise ValidationError(errors)
    return sort, order
