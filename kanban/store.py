"""
kanban/store.py -- SQLAlchemy Core persistence layer for the kanban hierarchy.

Pattern: Repository + Data Mapper (same as auth/store.py).
KanbanStore is the repository; the _row_to_* functions are the mappers.
Route, service and evaluator code never touches SQL directly.

The store is authorization-agnostic and trusts its caller:
  - missing ids are reported as None (get/update) or False (delete)
  - it never raises NotFound/Forbidden/ValidationError
  - it never cascades deletes on its own; the delete_*_for_* bulk helpers
    exist for the operation layer's opt-in cascade policy

Ordering:
  Columns and cards carry an integer position ("order" in the domain model;
  stored as "position" because ORDER is an SQL keyword). Sibling listings
  sort by position ascending, then by the touched stamp descending, so the
  most recent write wins a tie.

Concurrency:
  Every mutation is a single statement or a single short transaction.
  Workspace membership lives in its own table so add/remove member never
  does a read-modify-write of a list column.

Layer rule: imports core/ only, never api/ or auth/.
"""

from __future__ import annotations

import json
import threading
import time
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Protocol

from sqlalchemy import (
    BigInteger,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.db import make_engine, utc_now_iso
from kanban.models import Board, Card, ChecklistItem, Workspace
from kanban.models import Column as BoardColumn

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'deltask_kanban.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_workspaces = Table(
    "workspaces",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("owner", String(64), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_members = Table(
    "workspace_members",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("workspace_id", String(32), nullable=False, index=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("added_at", String(32), nullable=False),
    UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),
)

_boards = Table(
    "boards",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("workspace_id", String(32), nullable=False, index=True),
    Column("created_by", String(64), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_columns = Table(
    "board_columns",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("board_id", String(32), nullable=False, index=True),
    Column("position", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("touched", BigInteger, nullable=False, server_default="0"),
)

_cards = Table(
    "cards",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("column_id", String(32), nullable=False, index=True),
    Column("board_id", String(32), nullable=False, index=True),
    Column("position", Integer, nullable=False, server_default="0"),
    Column("tags", Text),  # JSON array serialized as text
    Column("due_date", String(40)),  # ISO 8601
    Column("assigned_to", String(64)),
    Column("checklist", Text),  # JSON array of {"title", "checked"}
    Column("created_by", String(64)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("touched", BigInteger, nullable=False, server_default="0"),
)

# Domain attribute name -> column name, where they differ.
_RENAMES = {"order": "position"}

_BOARD_FIELDS = {"title"}
_COLUMN_FIELDS = {"title", "order", "board_id"}
_CARD_FIELDS = {
    "title",
    "description",
    "order",
    "column_id",
    "board_id",
    "tags",
    "due_date",
    "assigned_to",
    "checklist",
}


# ---------------------------------------------------------------------------
# Abstract contract
# ---------------------------------------------------------------------------


class EntityStore(Protocol):
    """The storage contract the evaluator, ordering engine and service rely on.

    KanbanStore is the SQL implementation. Any object exposing these methods
    (an in-memory dict store, a remote table store) is a drop-in replacement.
    """

    def create_workspace(self, workspace: Workspace) -> Workspace: ...
    def get_workspace(self, workspace_id: str) -> Optional[Workspace]: ...
    def list_workspaces_for_member(self, user_id: str) -> list[Workspace]: ...
    def update_workspace(self, workspace_id: str, **fields) -> Optional[Workspace]: ...
    def delete_workspace(self, workspace_id: str) -> bool: ...
    def add_member(self, workspace_id: str, user_id: str) -> Optional[Workspace]: ...
    def remove_member(self, workspace_id: str, user_id: str) -> bool: ...

    def create_board(self, board: Board) -> Board: ...
    def get_board(self, board_id: str) -> Optional[Board]: ...
    def list_boards(self, workspace_id: str) -> list[Board]: ...
    def update_board(self, board_id: str, **fields) -> Optional[Board]: ...
    def delete_board(self, board_id: str) -> bool: ...

    def create_column(self, column: BoardColumn) -> BoardColumn: ...
    def get_column(self, column_id: str) -> Optional[BoardColumn]: ...
    def list_columns(self, board_id: str) -> list[BoardColumn]: ...
    def update_column(self, column_id: str, **fields) -> Optional[BoardColumn]: ...
    def delete_column(self, column_id: str) -> bool: ...

    def create_card(self, card: Card) -> Card: ...
    def get_card(self, card_id: str) -> Optional[Card]: ...
    def list_cards(self, column_id: str) -> list[Card]: ...
    def update_card(self, card_id: str, **fields) -> Optional[Card]: ...
    def delete_card(self, card_id: str) -> bool: ...

    # Bulk deletes by parent, used only when the service cascades.
    def delete_boards_for_workspace(self, workspace_id: str) -> int: ...
    def delete_columns_for_board(self, board_id: str) -> int: ...
    def delete_cards_for_column(self, column_id: str) -> int: ...
    def delete_cards_for_board(self, board_id: str) -> int: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _new_id() -> str:
    return uuid.uuid4().hex


class _Stamper:
    """Strictly increasing nanosecond stamps, shared by all writes of a store.

    time.time_ns() alone can repeat under fast successive writes; the lock and
    the last+1 floor make every stamp unique within the process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            self._last = max(time.time_ns(), self._last + 1)
            return self._last


def _dump_checklist(items: Iterable) -> str:
    payload = []
    for item in items:
        if isinstance(item, ChecklistItem):
            payload.append({"title": item.title, "checked": item.checked})
        else:
            payload.append({"title": item["title"], "checked": bool(item.get("checked", False))})
    return json.dumps(payload)


def _to_columns(fields: dict) -> dict:
    """Rename domain attributes to column names and serialize JSON fields."""
    values = {}
    for key, value in fields.items():
        if key == "tags":
            value = json.dumps(list(value))
        elif key == "checklist":
            value = _dump_checklist(value)
        values[_RENAMES.get(key, key)] = value
    return values


def _check_fields(fields: dict, allowed: set[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)!r}")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class KanbanStore:
    """Repository for Workspace, Board, Column and Card records.

    Usage:
        store = KanbanStore("sqlite:///:memory:")
        ws = store.create_workspace(Workspace(name="Team", owner="u1"))
        store.add_member(ws.id, "u2")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)
        self._stamp = _Stamper()

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    def create_workspace(self, workspace: Workspace) -> Workspace:
        """Insert a workspace and its owner's membership row in one transaction."""
        ws_id = workspace.id or _new_id()
        now = utc_now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _workspaces.insert().values(
                    id=ws_id,
                    name=workspace.name,
                    owner=workspace.owner,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.execute(_members.insert().values(workspace_id=ws_id, user_id=workspace.owner, added_at=now))
        return self.get_workspace(ws_id)

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        """Fetch a workspace with its member list (in join order). None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_workspaces.select().where(_workspaces.c.id == workspace_id)).fetchone()
            if row is None:
                return None
            members = conn.execute(
                _members.select().where(_members.c.workspace_id == workspace_id).order_by(_members.c.id)
            ).fetchall()
        return _row_to_workspace(row, [m.user_id for m in members])

    def list_workspaces_for_member(self, user_id: str) -> list[Workspace]:
        """Return every workspace whose member set contains user_id, oldest first."""
        member_of = _members.select().with_only_columns(_members.c.workspace_id).where(_members.c.user_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(
                _workspaces.select()
                .where(_workspaces.c.id.in_(member_of.scalar_subquery()))
                .order_by(_workspaces.c.created_at, _workspaces.c.id)
            ).fetchall()
            if not rows:
                return []
            member_rows = conn.execute(
                _members.select().where(_members.c.workspace_id.in_([r.id for r in rows])).order_by(_members.c.id)
            ).fetchall()
        by_workspace: dict[str, list[str]] = {}
        for m in member_rows:
            by_workspace.setdefault(m.workspace_id, []).append(m.user_id)
        return [_row_to_workspace(r, by_workspace.get(r.id, [])) for r in rows]

    def update_workspace(self, workspace_id: str, **fields) -> Optional[Workspace]:
        """Update the workspace name. Returns the updated record, None if not found."""
        _check_fields(fields, {"name"})
        with self.engine.connect() as conn:
            result = conn.execute(
                _workspaces.update()
                .where(_workspaces.c.id == workspace_id)
                .values(updated_at=utc_now_iso(), **fields)
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_workspace(workspace_id)

    def delete_workspace(self, workspace_id: str) -> bool:
        """Delete a workspace and its membership rows. Boards are left in place."""
        with self.engine.begin() as conn:
            result = conn.execute(_workspaces.delete().where(_workspaces.c.id == workspace_id))
            conn.execute(_members.delete().where(_members.c.workspace_id == workspace_id))
        return result.rowcount > 0

    def add_member(self, workspace_id: str, user_id: str) -> Optional[Workspace]:
        """Add user_id to the member set. Idempotent.

        Returns the updated workspace, or None if workspace_id does not exist.
        The UNIQUE(workspace_id, user_id) constraint turns a concurrent
        duplicate insert into a no-op instead of a second row.
        """
        if self.get_workspace(workspace_id) is None:
            return None
        try:
            with self.engine.connect() as conn:
                conn.execute(_members.insert().values(workspace_id=workspace_id, user_id=user_id, added_at=utc_now_iso()))
                conn.commit()
        except IntegrityError:
            pass  # already a member
        return self.get_workspace(workspace_id)

    def remove_member(self, workspace_id: str, user_id: str) -> bool:
        """Remove user_id from the member set. False if it was not a member.

        The store does not protect the owner; the operation layer enforces
        owner-in-members before calling this.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _members.delete().where((_members.c.workspace_id == workspace_id) & (_members.c.user_id == user_id))
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    def create_board(self, board: Board) -> Board:
        board_id = board.id or _new_id()
        now = utc_now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _boards.insert().values(
                    id=board_id,
                    title=board.title,
                    workspace_id=board.workspace_id,
                    created_by=board.created_by,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return self.get_board(board_id)

    def get_board(self, board_id: str) -> Optional[Board]:
        with self.engine.connect() as conn:
            row = conn.execute(_boards.select().where(_boards.c.id == board_id)).fetchone()
        return _row_to_board(row) if row is not None else None

    def list_boards(self, workspace_id: str) -> list[Board]:
        """Return the boards of a workspace in creation order (no positional order)."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _boards.select()
                .where(_boards.c.workspace_id == workspace_id)
                .order_by(_boards.c.created_at, _boards.c.id)
            ).fetchall()
        return [_row_to_board(r) for r in rows]

    def update_board(self, board_id: str, **fields) -> Optional[Board]:
        _check_fields(fields, _BOARD_FIELDS)
        with self.engine.connect() as conn:
            result = conn.execute(
                _boards.update().where(_boards.c.id == board_id).values(updated_at=utc_now_iso(), **fields)
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_board(board_id)

    def delete_board(self, board_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_boards.delete().where(_boards.c.id == board_id))
            conn.commit()
        return result.rowcount > 0

    def delete_boards_for_workspace(self, workspace_id: str) -> int:
        """Bulk-delete every board of a workspace. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_boards.delete().where(_boards.c.workspace_id == workspace_id))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def create_column(self, column: BoardColumn) -> BoardColumn:
        """Insert a column at the position chosen by the caller."""
        col_id = column.id or _new_id()
        now = utc_now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _columns.insert().values(
                    id=col_id,
                    title=column.title,
                    board_id=column.board_id,
                    position=column.order,
                    created_at=now,
                    updated_at=now,
                    touched=self._stamp.next(),
                )
            )
            conn.commit()
        return self.get_column(col_id)

    def get_column(self, column_id: str) -> Optional[BoardColumn]:
        with self.engine.connect() as conn:
            row = conn.execute(_columns.select().where(_columns.c.id == column_id)).fetchone()
        return _row_to_column(row) if row is not None else None

    def list_columns(self, board_id: str) -> list[BoardColumn]:
        """Return a board's columns sorted by order, most recent write first on ties."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _columns.select()
                .where(_columns.c.board_id == board_id)
                .order_by(_columns.c.position, _columns.c.touched.desc())
            ).fetchall()
        return [_row_to_column(r) for r in rows]

    def update_column(self, column_id: str, **fields) -> Optional[BoardColumn]:
        """Overwrite any subset of title/order. Returns the updated column or None."""
        _check_fields(fields, _COLUMN_FIELDS)
        with self.engine.connect() as conn:
            result = conn.execute(
                _columns.update()
                .where(_columns.c.id == column_id)
                .values(updated_at=utc_now_iso(), touched=self._stamp.next(), **_to_columns(fields))
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_column(column_id)

    def delete_column(self, column_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_columns.delete().where(_columns.c.id == column_id))
            conn.commit()
        return result.rowcount > 0

    def delete_columns_for_board(self, board_id: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(_columns.delete().where(_columns.c.board_id == board_id))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def create_card(self, card: Card) -> Card:
        card_id = card.id or _new_id()
        now = utc_now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _cards.insert().values(
                    id=card_id,
                    title=card.title,
                    description=card.description,
                    column_id=card.column_id,
                    board_id=card.board_id,
                    position=card.order,
                    tags=json.dumps(card.tags),
                    due_date=card.due_date,
                    assigned_to=card.assigned_to,
                    checklist=_dump_checklist(card.checklist),
                    created_by=card.created_by,
                    created_at=now,
                    updated_at=now,
                    touched=self._stamp.next(),
                )
            )
            conn.commit()
        return self.get_card(card_id)

    def get_card(self, card_id: str) -> Optional[Card]:
        with self.engine.connect() as conn:
            row = conn.execute(_cards.select().where(_cards.c.id == card_id)).fetchone()
        return _row_to_card(row) if row is not None else None

    def list_cards(self, column_id: str) -> list[Card]:
        """Return a column's cards sorted by order, most recent write first on ties."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _cards.select()
                .where(_cards.c.column_id == column_id)
                .order_by(_cards.c.position, _cards.c.touched.desc())
            ).fetchall()
        return [_row_to_card(r) for r in rows]

    def update_card(self, card_id: str, **fields) -> Optional[Card]:
        """Overwrite any subset of the card's mutable fields.

        tags and checklist are whole-field replacements; pass lists and this
        method serializes them to JSON before writing.
        """
        _check_fields(fields, _CARD_FIELDS)
        with self.engine.connect() as conn:
            result = conn.execute(
                _cards.update()
                .where(_cards.c.id == card_id)
                .values(updated_at=utc_now_iso(), touched=self._stamp.next(), **_to_columns(fields))
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_card(card_id)

    def delete_card(self, card_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_cards.delete().where(_cards.c.id == card_id))
            conn.commit()
        return result.rowcount > 0

    def delete_cards_for_column(self, column_id: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(_cards.delete().where(_cards.c.column_id == column_id))
            conn.commit()
        return result.rowcount

    def delete_cards_for_board(self, board_id: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(_cards.delete().where(_cards.c.board_id == board_id))
            conn.commit()
        return result.rowcount

    def count_orphans(self) -> dict[str, int]:
        """Count boards, columns and cards whose parent no longer exists.

        Orphans are the documented result of non-cascading deletes; this lets
        operators see how many have accumulated.
        """
        with self.engine.connect() as conn:
            boards = conn.execute(
                _boards.select()
                .with_only_columns(_boards.c.id)
                .where(_boards.c.workspace_id.not_in(_workspaces.select().with_only_columns(_workspaces.c.id)))
            ).fetchall()
            columns = conn.execute(
                _columns.select()
                .with_only_columns(_columns.c.id)
                .where(_columns.c.board_id.not_in(_boards.select().with_only_columns(_boards.c.id)))
            ).fetchall()
            cards = conn.execute(
                _cards.select()
                .with_only_columns(_cards.c.id)
                .where(_cards.c.column_id.not_in(_columns.select().with_only_columns(_columns.c.id)))
            ).fetchall()
        return {"boards": len(boards), "columns": len(columns), "cards": len(cards)}

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(_workspaces.select().limit(1)).fetchall()
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_workspace(row, members: list[str]) -> Workspace:
    return Workspace(
        id=row.id,
        name=row.name,
        owner=row.owner,
        members=members,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_board(row) -> Board:
    return Board(
        id=row.id,
        title=row.title,
        workspace_id=row.workspace_id,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_column(row) -> BoardColumn:
    return BoardColumn(
        id=row.id,
        title=row.title,
        board_id=row.board_id,
        order=row.position,
        created_at=row.created_at,
        updated_at=row.updated_at,
        touched=row.touched,
    )


def _row_to_card(row) -> Card:
    tags: list[str] = json.loads(row.tags) if row.tags else []
    checklist_raw: list[dict] = json.loads(row.checklist) if row.checklist else []
    return Card(
        id=row.id,
        title=row.title,
        description=row.description or "",
        column_id=row.column_id,
        board_id=row.board_id,
        order=row.position,
        tags=tags,
        due_date=row.due_date,
        assigned_to=row.assigned_to,
        checklist=[ChecklistItem(title=i["title"], checked=bool(i.get("checked", False))) for i in checklist_raw],
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        touched=row.touched,
    )
