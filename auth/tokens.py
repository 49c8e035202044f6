"""
auth/tokens.py -- Password hashing, session tokens and the session cookie.

Tokens are HS256 JWTs (python-jose) signed with SECRET_KEY. Claims:

    sub      the user's email
    user_id  the opaque id used as caller throughout kanban/
    role     "user" or "admin"
    iat/exp  issue and expiry times (UTC)

decode_access_token() returns None for anything it cannot trust; turning
that into a 401 is auth/dependencies.py's job.

Layer rule: imports core/ only, never api/ or kanban/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("deltask.auth")

_settings = get_settings()

AUTH_COOKIE = "deltask_token"
_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "user_id", "role")
# bcrypt only looks at the first 72 bytes of its input.
_BCRYPT_MAX_BYTES = 72


def _lifetime(expire_seconds: int) -> int:
    return expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt()).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed.encode("ascii"))
    except ValueError:
        # not a bcrypt hash
        return False


# Checked against when the email is unknown, so a miss costs one bcrypt round
# just like a wrong password does.
_DUMMY_HASH = hash_password("no-such-deltask-user")


def create_access_token(user_id: str, email: str, role: str, expire_seconds: int = 0) -> str:
    """Sign a session token. expire_seconds <= 0 means TOKEN_EXPIRE_SECONDS."""
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": email,
        "user_id": user_id,
        "role": role,
        "iat": issued,
        "exp": issued + timedelta(seconds=_lifetime(expire_seconds)),
    }
    return jwt.encode(claims, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    try:
        claims = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        return None
    if any(name not in claims for name in _REQUIRED_CLAIMS):
        return None
    return claims


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair. Returns the active User, or None.

    A bcrypt comparison runs on every path, including unknown emails, so
    response time does not tell a caller which emails are registered.
    """
    user = store.get_by_email(email)
    if user is None or not user.hashed_password:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        logger.info("Login refused for deactivated user %s", user.id)
        return None
    return user


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Attach the token as an httpOnly cookie that expires with the token."""
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        max_age=_lifetime(expire_seconds),
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(AUTH_COOKIE, httponly=True, samesite="lax", secure=_settings.secure_cookies)
