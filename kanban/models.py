"""
kanban/models.py -- Domain dataclasses for the containment hierarchy.

Pattern: Data class (pure data container, zero logic). Stores, the ordering
engine and the access evaluator do the work; these only own domain shape.

Hierarchy: Workspace 1-* Board 1-* Column 1-* Card.

Card.board_id is a cached back-reference. It must always equal the board_id
of the column named by Card.column_id; the operation layer keeps the two in
sync on cross-column moves.

touched is a store-assigned monotonic stamp. It is not part of the API
contract -- listings use it to break ties between siblings sharing an order
value (most recently written first).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Workspace:
    """Top-level container. owner is always present in members."""

    name: str
    owner: str
    id: str = ""
    members: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Board:
    title: str
    workspace_id: str
    created_by: str
    id: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Column:
    title: str
    board_id: str
    order: int = 0
    id: str = ""
    created_at: str = ""
    updated_at: str = ""
    touched: int = 0


@dataclass
class ChecklistItem:
    title: str
    checked: bool = False


@dataclass
class Card:
    """A unit of work inside a column.

    due_date is an ISO 8601 string (None = no due date).
    assigned_to is a user id; it is not required to be a workspace member.
    """

    title: str
    column_id: str
    board_id: str
    description: str = ""
    order: int = 0
    tags: list[str] = field(default_factory=list)
    due_date: Optional[str] = None
    assigned_to: Optional[str] = None
    checklist: list[ChecklistItem] = field(default_factory=list)
    created_by: Optional[str] = None
    id: str = ""
    created_at: str = ""
    updated_at: str = ""
    touched: int = 0
