"""
core/validation.py -- Small field checks shared by the auth and tracker stores.

Each helper records a message in an `errors` dict instead of raising, so a
single ValidationError can report every bad field at once. Callers raise
core.errors.ValidationError(errors) when the dict is non-empty.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Optional

_CHOICE_NOISE = re.compile(r"[\s_\-]+")


def check_length(
    errors: dict[str, str],
    field: str,
    value: Optional[str],
    *,
    label: str,
    min_length: int = 0,
    max_length: int,
    required: bool = True,
) -> Optional[str]:
    """Trim `value` and check its length. Returns the trimmed value."""
    if value is None:
        if required:
            errors[field] = f"{label} is required"
        return None
    if not isinstance(value, str):
        errors[field] = f"{label} must be a string"
        return None
    value = value.strip()
    if required and not value:
        errors[field] = f"{label} is required"
    elif min_length and len(value) < min_length:
        errors[field] = f"{label} must be at least {min_length} characters"
    elif len(value) > max_length:
        errors[field] = f"{label} cannot exceed {max_length} characters"
    return value


def canonical_choice(value: object, choices: Iterable[str]) -> Optional[str]:
    """Return the canonical spelling of `value` in `choices`, or None.

    Case, whitespace, underscores and hyphens are ignored, so "todo",
    "To Do" and "to_do" all resolve to "To Do".
    """
    if not isinstance(value, str):
        return None
    wanted = _CHOICE_NOISE.sub("", value).lower()
    for choice in choices:
        if _CHOICE_NOISE.sub("", choice).lower() == wanted:
            return choice
    return None


def check_choice(
    errors: dict[str, str],
    field: str,
    value: object,
    choices: tuple[str, ...],
    *,
    label: str,
) -> Optional[str]:
    """Resolve `value` against `choices`, recording an error when it is not one of them."""
    canonical = canonical_choice(value, choices)
    if canonical is None:
        errors[field] = f"{label} must be one of: {', '.join(choices)}"
    return canonical
