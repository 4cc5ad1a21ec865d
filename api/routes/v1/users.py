"""
api/routes/v1/users.py -- Registration, login, and account endpoints.

Routes:
  POST /api/v1/users/register   -- create a plain user; returns token + user (201)
  POST /api/v1/users/login      -- email/password login; sets JWT cookie
  POST /api/v1/users/logout     -- clears the cookie
  GET  /api/v1/users/profile    -- the caller's own record (requires auth)
  POST /api/v1/users/password   -- rotate the caller's password (requires auth)
  GET  /api/v1/users            -- list all users (admin only)

Security:
  register and login are rate-limited per client IP (LOGIN_RATE_LIMIT,
  REGISTER_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Unknown email and wrong password raise the same InvalidCredentials.
  Cache-Control: no-store on every response that carries a token.
  The register endpoint never grants the admin role; `main.py create-admin`
  is the only way to create an admin.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    RegisterRequest,
    UserResponse,
)
from auth.dependencies import get_current_user, require_admin
from auth.models import User
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("tasktracker.api")

_settings = get_settings()

# Auth policy:
# - POST /users/register, /users/login, /users/logout: public
# - GET  /users/profile, POST /users/password:          requires auth (get_current_user)
# - GET  /users:                                         requires admin (require_admin)
router = APIRouter()


def _token_response(user: User, status_code: int) -> JSONResponse:
    """Issue a token for `user`, set it as a cookie, and return token + user."""
    token = create_access_token(user)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            access_token=token,
            expires_in=_settings.token_expire_seconds,
            user=UserResponse.from_user(user),
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)
@router.post("/users/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and log it in.

    400 with per-field messages on bad username/email/password, 409 if the
    email is already registered.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.register_user(body.username, body.email, body.password)
    logger.info("User id=%s registered", user.id)
    return _token_response(user, status_code=201)


@limiter.limit(_settings.login_rate_limit)
@router.post("/users/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the JWT cookie."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    return _token_response(user, status_code=200)


@router.post("/users/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    """Clear the JWT cookie. Bearer tokens stay valid until they expire."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/users/profile", response_model=UserResponse)
def profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the caller's stored record (re-fetched, not read from the token)."""
    return UserResponse.from_user(current_user)


@router.post("/users/password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Rotate the caller's password. Existing tokens remain valid until expiry."""
    user_store: UserStore = request.app.state.user_store
    user_store.change_password(current_user.id, body.current_password, body.new_password)
    logger.info("User id=%s changed password", current_user.id)
    return MessageResponse(message="Password updated.")


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, admin: User = Depends(require_admin)) -> list[UserResponse]:
    """Return every user ordered by username. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]
