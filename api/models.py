"""
api/models.py -- Request and response bodies for /api/v1.

The domain keeps its own dataclasses (kanban/models.py, auth/models.py);
responses are built from them with from_domain(). Request models check
shape only: lengths, types, and which fields are present. order is a
StrictInt so JSON true or "3" is refused here, as the service would refuse
it. Whether a caller may do something is decided in kanban/service.py.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictInt, model_validator

from auth.models import User
from kanban.models import Board, Card, Column, Workspace

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    name: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class UserResponse(BaseModel):
    """Public view of a User -- never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: RoleEnum
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            created_at=user.created_at,
            last_login=user.last_login,
        )


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


class WorkspaceCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)


class WorkspaceRename(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)


class MemberAdd(BaseModel):
    """Request body for POST /workspaces/{id}/members.

    Exactly one of user_id or email identifies the new member.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    email: Optional[EmailStr] = None

    @model_validator(mode="after")
    def one_identifier(self) -> "MemberAdd":
        if (self.user_id is None) == (self.email is None):
            raise ValueError("Provide exactly one of user_id or email.")
        return self


class WorkspaceResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    owner: str
    members: list[str]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_domain(cls, workspace: Workspace) -> "WorkspaceResponse":
        return cls(
            id=workspace.id,
            name=workspace.name,
            owner=workspace.owner,
            members=list(workspace.members),
            created_at=workspace.created_at,
            updated_at=workspace.updated_at,
        )


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


class BoardCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)


class BoardRename(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)


class BoardResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    workspace_id: str
    created_by: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_domain(cls, board: Board) -> "BoardResponse":
        return cls(
            id=board.id,
            title=board.title,
            workspace_id=board.workspace_id,
            created_by=board.created_by,
            created_at=board.created_at,
            updated_at=board.updated_at,
        )


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


class ColumnCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    order: Optional[StrictInt] = None


class ColumnUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    order: Optional[StrictInt] = None


class ColumnResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    board_id: str
    order: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_domain(cls, column: Column) -> "ColumnResponse":
        return cls(
            id=column.id,
            title=column.title,
            board_id=column.board_id,
            order=column.order,
            created_at=column.created_at,
            updated_at=column.updated_at,
        )


class ReorderRequest(BaseModel):
    """Request body for the PUT .../order batch endpoints.

    ids lists siblings in the desired sequence. Siblings left out keep their
    relative order after the listed ones.
    """

    ids: list[str] = Field(min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


class ChecklistItemModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    checked: bool = False


class CardCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=10000)
    order: Optional[StrictInt] = None
    tags: list[str] = Field(default_factory=list, max_length=50)
    due_date: Optional[str] = Field(default=None, max_length=40)
    assigned_to: Optional[str] = Field(default=None, max_length=64)
    checklist: list[ChecklistItemModel] = Field(default_factory=list, max_length=100)


class CardUpdate(BaseModel):
    """Partial update. Only fields present in the JSON body are applied.

    Setting column_id to another column moves the card there; due_date and
    assigned_to may be sent as null to clear them.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    order: Optional[StrictInt] = None
    column_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    tags: Optional[list[str]] = Field(default=None, max_length=50)
    due_date: Optional[str] = Field(default=None, max_length=40)
    assigned_to: Optional[str] = Field(default=None, max_length=64)
    checklist: Optional[list[ChecklistItemModel]] = Field(default=None, max_length=100)

    def changes(self) -> dict:
        """Return only the explicitly-sent fields, as plain Python values."""
        return self.model_dump(exclude_unset=True)


class CardResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    column_id: str
    board_id: str
    order: int
    tags: list[str]
    due_date: Optional[str] = None
    assigned_to: Optional[str] = None
    checklist: list[ChecklistItemModel]
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_domain(cls, card: Card) -> "CardResponse":
        return cls(
            id=card.id,
            title=card.title,
            description=card.description,
            column_id=card.column_id,
            board_id=card.board_id,
            order=card.order,
            tags=list(card.tags),
            due_date=card.due_date,
            assigned_to=card.assigned_to,
            checklist=[ChecklistItemModel(title=i.title, checked=i.checked) for i in card.checklist],
            created_by=card.created_by,
            created_at=card.created_at,
            updated_at=card.updated_at,
        )
