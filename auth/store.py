"""
auth/store.py -- Account storage on SQLAlchemy Core.

UserStore is the only code that knows the users table exists; everything
else deals in auth.models.User. Email uniqueness is a database constraint,
so two concurrent registrations for one address cannot both succeed.
Addresses are lower-cased on the way in and on lookup.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.models import User
from core.db import make_engine, utc_now_iso

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'deltask_auth.db'}"

_metadata = MetaData()

users_table = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(120), nullable=False),
    Column("role", String(16), nullable=False, default="user"),
    Column("hashed_password", Text),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", String(40), nullable=False),
    Column("last_login", String(40)),
)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> str:
        """Insert user and return the new id.

        A taken email raises sqlalchemy.exc.IntegrityError; the register
        route and the create-user command report it as a conflict.
        """
        user_id = user.id or uuid.uuid4().hex
        with self.engine.begin() as conn:
            conn.execute(
                users_table.insert().values(
                    id=user_id,
                    email=_normalize_email(user.email),
                    name=user.name,
                    role=user.role,
                    hashed_password=user.hashed_password,
                    is_active=user.is_active,
                    created_at=utc_now_iso(),
                )
            )
        return user_id

    def get_by_email(self, email: str) -> User | None:
        return self._fetch_one(users_table.c.email == _normalize_email(email))

    def get_by_id(self, user_id: str) -> User | None:
        return self._fetch_one(users_table.c.id == user_id)

    def list_users(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(users_table.select().order_by(users_table.c.email)).fetchall()
        return [_row_to_user(row) for row in rows]

    def update_last_login(self, user_id: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(users_table.update().where(users_table.c.id == user_id).values(last_login=utc_now_iso()))

    def close(self) -> None:
        self.engine.dispose()

    def _fetch_one(self, condition) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(users_table.select().where(condition)).first()
        return None if row is None else _row_to_user(row)


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=row.role,
        hashed_password=row.hashed_password,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        last_login=row.last_login,
    )
