"""
core/errors.py -- Error taxonomy shared by every layer.

Stores and services raise these; api/main.py turns them into the standard
error envelope. Each class carries the HTTP status and the machine-readable
code the API reports, so route handlers never map errors by hand.

Layer rule: no imports from api/, auth/, or tracker/.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all expected, request-scoped failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# --- 400 ---


class ValidationError(TrackerError):
    """Malformed input. fields maps each offending field to its message."""

    status_code = 400
    code = "validation_error"
    default_message = "Validation error."

    def __init__(self, fields: dict[str, str] | None = None, message: str | None = None) -> None:
        self.fields = dict(fields or {})
        super().__init__(message)


class InvalidDueDate(ValidationError):
    code = "invalid_due_date"
    default_message = "Due date must not be in the past."

    def __init__(self, field: str = "due_date") -> None:
        super().__init__({field: self.default_message})


# --- 401 ---


class InvalidCredentials(TrackerError):
    """Same message for unknown email and wrong password."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class TokenMissing(TrackerError):
    status_code = 401
    code = "token_missing"
    default_message = "Authentication required."


class TokenInvalid(TrackerError):
    status_code = 401
    code = "token_invalid"
    default_message = "Invalid token."


class TokenExpired(TrackerError):
    status_code = 401
    code = "token_expired"
    default_message = "Token expired."


class IdentityNotFound(TrackerError):
    status_code = 401
    code = "identity_not_found"
    default_message = "Token is valid but the user no longer exists."


# --- 403 / 404 / 409 ---


class AccessDenied(TrackerError):
    status_code = 403
    code = "access_denied"
    default_message = "Access denied."


class NotFound(TrackerError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class DuplicateIdentity(TrackerError):
    status_code = 409
    code = "duplicate_identity"
    default_message = "A user with this email already exists."


class DuplicateName(TrackerError):
    status_code = 409
    code = "duplicate_name"
    default_message = "You already have a project with this name."


# --- 5xx ---


class StorageTimeout(TrackerError):
    status_code = 502
    code = "storage_timeout"
    default_message = "The database did not respond in time."


class StorageUnavailable(TrackerError):
    status_code = 500
    code = "storage_unavailable"
    default_message = "The database is unavailable."


class InternalError(TrackerError):
    """Unexpected state (e.g. ownership drift). Detail goes to the log only."""

    status_code = 500
    code = "internal_error"
