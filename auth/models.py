"""auth/models.py -- The User record shared by auth/, api/ and the CLI."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A Deltask account.

    id is what kanban/ knows the user by: Workspace.owner, Workspace.members,
    Board.created_by and Card.assigned_to all hold it. The store lower-cases
    email on write.
    """

    email: str
    name: str
    role: str = "user"
    id: str = ""
    hashed_password: str | None = None
    created_at: str | None = None
    is_active: bool = True
    last_login: str | None = None
