"""
api/routes/v1/auth.py -- Accounts and sessions.

  POST /api/v1/auth/register   open sign-up, unless SELF_REGISTRATION_ENABLED=false
  POST /api/v1/auth/login      returns a bearer token and sets the session cookie
  POST /api/v1/auth/logout     drops the session cookie
  GET  /api/v1/auth/me         the caller's own account

An unknown email and a wrong password produce the same 401 bad_credentials.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, RegisterRequest, UserResponse
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import authenticate_user, clear_auth_cookie, create_access_token, hash_password, set_auth_cookie
from core.config import get_settings
from kanban.errors import Conflict

logger = logging.getLogger("deltask.auth")

_settings = get_settings()

router = APIRouter(prefix="/auth")


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _api_error(status_code: int, code: str, message: str, detail: str | None = None) -> HTTPException:
    return HTTPException(
        status_code=status_code, detail=ErrorDetail(code=code, message=message, detail=detail).model_dump()
    )


@limiter.limit("5/minute")
@router.post("/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    if not _settings.self_registration_enabled:
        raise _api_error(403, "registration_disabled", "Accounts are created by an administrator on this server.")
    user_store: UserStore = request.app.state.user_store
    account = User(email=body.email, name=body.name, hashed_password=hash_password(body.password))
    try:
        user_id = user_store.create_user(account)
    except IntegrityError:
        raise Conflict("That email is already registered.", field="email") from None
    logger.info("Registered user %s", user_id)
    return UserResponse.from_domain(user_store.get_by_id(user_id))


# The limit decorator sits above the route decorator so FastAPI still sees the
# original signature.
@limiter.limit(_settings.login_rate_limit)
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        logger.info("Failed login for %s", body.email)
        failure = ErrorResponse(error=ErrorDetail(code="bad_credentials", message="Invalid email or password."))
        return _no_store(JSONResponse(status_code=401, content=failure.model_dump()))

    user_store.update_last_login(user.id)
    token = create_access_token(user.id, user.email, user.role)
    payload = LoginResponse(
        access_token=token,
        expires_in=_settings.token_expire_seconds,
        user=UserResponse.from_domain(user_store.get_by_id(user.id)),
    )
    resp = JSONResponse(content=payload.model_dump(mode="json"))
    set_auth_cookie(resp, token)
    logger.info("User %s logged in", user.id)
    return _no_store(resp)


@router.post("/logout")
def logout() -> JSONResponse:
    """Drop the cookie. A bearer token already handed out stays valid until exp."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_domain(current_user)
