"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper (same as tracker/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Registration is an explicit repository operation: register_user() validates,
hashes the password, and inserts in one call, so there is no code path that
persists a plaintext secret.

The hash only leaves this module when a caller asks for it with
with_secret=True (login and password rotation). Every other read returns a
User whose hashed_password is None.

Security:
  All queries use bound parameters. No f-strings in SQL.
  email is normalized (trim + lower) before every read and write; the UNIQUE
  index on the normalized value is the final guard against concurrent
  registrations of the same address.

Layer rule: no imports from api/ or tracker/.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import (
    EMAIL_PATTERN,
    PASSWORD_MAX,
    PASSWORD_MIN,
    ROLE_ADMIN,
    ROLE_USER,
    USERNAME_MAX,
    USERNAME_MIN,
    User,
)
from auth.tokens import hash_password, verify_password
from core.config import get_settings
from core.database import make_engine, now_iso, storage_errors
from core.errors import DuplicateIdentity, InvalidCredentials, NotFound, ValidationError
from core.validation import check_length

logger = logging.getLogger("tasktracker.auth.store")

_EMAIL_RE = re.compile(EMAIL_PATTERN)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(USERNAME_MAX), nullable=False),
    Column("email", String(255), nullable=False, unique=True),  # stored normalized
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=ROLE_USER),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_password(errors: dict[str, str], field: str, password: Optional[str]) -> None:
    """Passwords are not trimmed; length is checked in characters and bcrypt bytes."""
    if not isinstance(password, str) or not password:
        errors[field] = "Password is required"
    elif len(password) < PASSWORD_MIN:
        errors[field] = f"Password must be at least {PASSWORD_MIN} characters"
    elif len(password.encode("utf-8")) > PASSWORD_MAX:
        errors[field] = f"Password cannot exceed {PASSWORD_MAX} bytes"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user = store.register_user("alice", "alice@example.com", "s3cret!")
        store.get_by_email("ALICE@example.com")  # same user
        store.close()
    """

    def __init__(self, db_url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        settings = get_settings()
        self.engine: Engine = make_engine(
            db_url or settings.database_url,
            timeout if timeout is not None else settings.db_timeout_seconds,
        )
        with storage_errors("users.create_schema"):
            _metadata.create_all(self.engine)

    def ping(self) -> None:
        """Run a trivial query. Raises StorageUnavailable/StorageTimeout on failure."""
        with storage_errors("users.ping"), self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Registration and credentials
    # ------------------------------------------------------------------

    def register_user(self, username: str, email: str, password: str, role: str = ROLE_USER) -> User:
        """Validate, hash and insert a new user. Returns the user without its hash.

        Raises:
            ValidationError:   username/email/password fail format constraints.
            DuplicateIdentity: the normalized email is already registered.
        """
        errors: dict[str, str] = {}
        username = check_length(
            errors, "username", username, label="Username", min_length=USERNAME_MIN, max_length=USERNAME_MAX
        )
        if not isinstance(email, str) or not email.strip():
            errors["email"] = "Email is required"
        else:
            email = normalize_email(email)
            if len(email) > 255 or not _EMAIL_RE.match(email):
                errors["email"] = "Please enter a valid email address"
        _check_password(errors, "password", password)
        if role not in (ROLE_ADMIN, ROLE_USER):
            errors["role"] = f"Role must be one of: {ROLE_ADMIN}, {ROLE_USER}"
        if errors:
            raise ValidationError(errors)

        if self.get_by_email(email) is not None:
            raise DuplicateIdentity()

        now = now_iso()
        try:
            with storage_errors("users.register"), self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=username,
                        email=email,
                        hashed_password=hash_password(password),
                        role=role,
                        created_at=now,
                        updated_at=now,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            # A concurrent registration won the race for this email.
            raise DuplicateIdentity() from exc

        logger.info("Registered user id=%s role=%s", user_id, role)
        return User(id=user_id, username=username, email=email, role=role, created_at=now, updated_at=now)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """Rotate a user's password after re-verifying the current one.

        Raises:
            InvalidCredentials: current_password does not match.
            ValidationError:    new_password fails format constraints.
            NotFound:           user_id does not exist.
        """
        user = self.get_by_id(user_id, with_secret=True)
        if user is None:
            raise NotFound("User not found.")
        if not verify_password(current_password or "", user.hashed_password or ""):
            raise InvalidCredentials("Current password is incorrect.")
        errors: dict[str, str] = {}
        _check_password(errors, "new_password", new_password)
        if errors:
            raise ValidationError(errors)
        with storage_errors("users.change_password"), self.engine.begin() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hash_password(new_password), updated_at=now_iso())
            )
        logger.info("Password rotated for user id=%s", user_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str, with_secret: bool = False) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        if not isinstance(email, str):
            return None
        with storage_errors("users.get_by_email"), self.engine.connect() as conn:
            row = conn.execute(select(_users).where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row, with_secret) if row is not None else None

    def get_by_id(self, user_id: int, with_secret: bool = False) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with storage_errors("users.get_by_id"), self.engine.connect() as conn:
            row = conn.execute(select(_users).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row, with_secret) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username. Admin-only operation."""
        with storage_errors("users.list"), self.engine.connect() as conn:
            rows = conn.execute(select(_users).order_by(_users.c.username, _users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, with_secret: bool = False) -> User:
    user = User(
        id=row.id,
        username=row.username,
        email=row.email,
        role=row.role,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
    return user if with_secret else replace(user, hashed_password=None)
