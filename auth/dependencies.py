"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the login endpoint.
  2. Authorization: Bearer <token> header -- API clients.

get_current_user() is the authentication step of every protected request:
  no token          -> TokenMissing
  bad token         -> TokenInvalid / TokenExpired
  user was deleted  -> IdentityNotFound
The user is always re-fetched from the store by the token's user_id, so the
identity used for the rest of the request is the stored record, not the
claims.

require_admin() wraps get_current_user() and raises AccessDenied if the
caller is not an admin. It is only used on the user listing endpoint.

Layer rule: no imports from tracker/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import User
from auth.tokens import decode_access_token
from core.errors import AccessDenied, IdentityNotFound, TokenMissing

logger = logging.getLogger("tasktracker.auth")


def extract_token(request: Request) -> str | None:
    """Return the raw token from the cookie or Bearer header, or None."""
    token: str | None = request.cookies.get("access_token")
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header[:7].lower() == "bearer ":
            token = auth_header[7:].strip()
    return token or None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises a 401-class TrackerError on failure.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = extract_token(request)
    if token is None:
        raise TokenMissing()

    claims = decode_access_token(token)
    user = request.app.state.user_store.get_by_id(claims.user_id)
    if user is None:
        logger.warning("Token for deleted user id=%s presented on %s", claims.user_id, request.url.path)
        raise IdentityNotFound()

    request.state.caller = user
    return user


def require_admin(request: Request) -> User:
    """Require the admin role. 401 if unauthenticated, 403 if not admin."""
    user = get_current_user(request)
    if not user.is_admin:
        logger.info("Non-admin user id=%s denied on %s", user.id, request.url.path)
        raise AccessDenied("Admin access required.")
    return user
