"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tracker/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or tracker/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_USER = "user"

USERNAME_MIN = 3
USERNAME_MAX = 30
PASSWORD_MIN = 6
# bcrypt only looks at the first 72 bytes of a password.
PASSWORD_MAX = 72

EMAIL_PATTERN = r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,})+$"


@dataclass
class User:
    """A registered identity.

    email is stored lower-cased and trimmed; the UNIQUE index on it therefore
    enforces case-insensitive uniqueness.

    hashed_password is the bcrypt digest. It never leaves the auth layer:
    API response models copy only the public fields.
    """

    username: str
    email: str
    role: str = ROLE_USER  # "admin" | "user"
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class TokenClaims:
    """Decoded payload of a verified session token."""

    user_id: int
    username: str
    email: str
    role: str
    expires_at: int  # epoch seconds
