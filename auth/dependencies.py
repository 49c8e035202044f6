"""
auth/dependencies.py -- Resolve the calling User for FastAPI routes.

The session cookie wins over an Authorization: Bearer header when a request
carries both. Every kanban router mounts get_current_user as a router-level
dependency, so an unauthenticated request never reaches a handler.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.tokens import AUTH_COOKIE, decode_access_token

_BEARER = "bearer"


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == _BEARER and credentials.strip():
        return credentials.strip()
    return None


def try_get_current_user(request: Request) -> User | None:
    """Return the active User behind the request's token, or None."""
    token = _extract_token(request)
    claims = decode_access_token(token) if token else None
    if claims is None:
        return None
    user = request.app.state.user_store.get_by_id(claims["user_id"])
    return user if user is not None and user.is_active else None


def get_current_user(request: Request) -> User:
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required.", "detail": None},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
