"""
kanban/service.py -- Operation contracts for workspaces, boards, columns, cards.

Each public method is one operation: it validates input, asks the
AccessEvaluator to resolve and authorize the target, lets the OrderingEngine
pick positions on writes, and persists through the EntityStore.

Callers always pass an already-authenticated caller id; this module never
sees credentials.

Errors raised (kanban/errors.py):
  ValidationError  -- empty title, malformed order/tags/due date/checklist,
                      removing the workspace owner, no fields to update
  NotFound         -- any id in the chain does not resolve, unknown member
  Forbidden        -- resolved but not allowed (see kanban/access.py)

Deletes do not cascade unless the service is built with cascade_deletes=True.
Without it, deleting a workspace/board/column leaves its children orphaned
(reachable by id in the store, unreachable through the evaluator).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Optional

from kanban.access import AccessEvaluator, Action, Chain
from kanban.errors import Forbidden, NotFound, ValidationError
from kanban.models import Board, Card, ChecklistItem, Column, Workspace
from kanban.ordering import OrderingEngine
from kanban.store import EntityStore

logger = logging.getLogger("deltask.kanban")

_CARD_UPDATABLE = {"title", "description", "order", "tags", "due_date", "assigned_to", "checklist", "column_id"}


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required.", field=field)
    return str(value).strip()


def _check_order(value: Any) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass; True is not a position.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("order must be an integer.", field="order")
    return value


def _clean_tags(tags: Optional[Iterable[str]]) -> list[str]:
    """Strip, drop empties and de-duplicate while preserving first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            raise ValidationError("tags must be strings.", field="tags")
        tag = tag.strip()
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def _check_due_date(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        # fromisoformat() rejects a trailing Z before Python 3.11
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("due_date must be an ISO 8601 timestamp.", field="due_date") from None
    return str(value)


def _clean_checklist(items: Optional[Iterable[Any]]) -> list[ChecklistItem]:
    result: list[ChecklistItem] = []
    for item in items or []:
        if isinstance(item, ChecklistItem):
            title, checked = item.title, item.checked
        elif isinstance(item, dict):
            title, checked = item.get("title"), item.get("checked", False)
        else:
            raise ValidationError("checklist items must have a title.", field="checklist")
        result.append(ChecklistItem(title=_require_text(title, "checklist.title"), checked=bool(checked)))
    return result


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class KanbanService:
    """The operation layer. One instance per process, shared by all requests."""

    def __init__(self, store: EntityStore, cascade_deletes: bool = False) -> None:
        self.store = store
        self.access = AccessEvaluator(store)
        self.ordering = OrderingEngine(store)
        self.cascade_deletes = cascade_deletes

    def _authorize(self, caller_id: str, kind: str, action: Action, entity_id: str) -> Chain:
        try:
            return self.access.authorize(caller_id, kind, action, entity_id)
        except Forbidden:
            logger.warning("Forbidden: user=%s %s %s %s", caller_id, action.value, kind, entity_id)
            raise

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    def create_workspace(self, name: str, owner_id: str) -> Workspace:
        workspace = self.store.create_workspace(Workspace(name=_require_text(name, "name"), owner=owner_id))
        logger.info("Workspace %s created by %s", workspace.id, owner_id)
        return workspace

    def list_workspaces_for_user(self, user_id: str) -> list[Workspace]:
        return self.store.list_workspaces_for_member(user_id)

    def get_workspace(self, workspace_id: str, caller_id: str) -> Workspace:
        return self._authorize(caller_id, "workspace", Action.read, workspace_id).workspace

    def rename_workspace(self, workspace_id: str, name: str, caller_id: str) -> Workspace:
        name = _require_text(name, "name")
        self._authorize(caller_id, "workspace", Action.update, workspace_id)
        updated = self.store.update_workspace(workspace_id, name=name)
        if updated is None:
            raise NotFound(f"Workspace {workspace_id} not found.", code="workspace_not_found", entity=workspace_id)
        logger.info("Workspace %s renamed by %s", workspace_id, caller_id)
        return updated

    def delete_workspace(self, workspace_id: str, caller_id: str) -> None:
        self._authorize(caller_id, "workspace", Action.delete, workspace_id)
        if self.cascade_deletes:
            for board in self.store.list_boards(workspace_id):
                self._delete_board_contents(board.id)
            removed = self.store.delete_boards_for_workspace(workspace_id)
            logger.info("Cascade removed %d boards of workspace %s", removed, workspace_id)
        self.store.delete_workspace(workspace_id)
        logger.info("Workspace %s deleted by %s (cascade=%s)", workspace_id, caller_id, self.cascade_deletes)

    def add_member(self, workspace_id: str, member_id: str, caller_id: str) -> Workspace:
        member_id = _require_text(member_id, "member_id")
        self._authorize(caller_id, "workspace", Action.manage_members, workspace_id)
        updated = self.store.add_member(workspace_id, member_id)
        if updated is None:
            raise NotFound(f"Workspace {workspace_id} not found.", code="workspace_not_found", entity=workspace_id)
        logger.info("User %s added to workspace %s by %s", member_id, workspace_id, caller_id)
        return updated

    def remove_member(self, workspace_id: str, member_id: str, caller_id: str) -> Workspace:
        chain = self._authorize(caller_id, "workspace", Action.manage_members, workspace_id)
        if member_id == chain.workspace.owner:
            raise ValidationError(
                "The workspace owner cannot be removed from its members.",
                code="owner_not_removable",
                field="member_id",
            )
        if not self.store.remove_member(workspace_id, member_id):
            raise NotFound(
                f"User {member_id} is not a member of workspace {workspace_id}.",
                code="member_not_found",
                entity=member_id,
            )
        logger.info("User %s removed from workspace %s by %s", member_id, workspace_id, caller_id)
        return self.store.get_workspace(workspace_id)

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    def create_board(self, workspace_id: str, title: str, caller_id: str) -> Board:
        title = _require_text(title, "title")
        self._authorize(caller_id, "board", Action.create, workspace_id)
        board = self.store.create_board(Board(title=title, workspace_id=workspace_id, created_by=caller_id))
        logger.info("Board %s created in workspace %s by %s", board.id, workspace_id, caller_id)
        return board

    def list_boards(self, workspace_id: str, caller_id: str) -> list[Board]:
        self._authorize(caller_id, "board", Action.list, workspace_id)
        return self.store.list_boards(workspace_id)

    def get_board(self, board_id: str, caller_id: str) -> Board:
        return self._authorize(caller_id, "board", Action.read, board_id).board

    def rename_board(self, board_id: str, title: str, caller_id: str) -> Board:
        title = _require_text(title, "title")
        self._authorize(caller_id, "board", Action.update, board_id)
        updated = self.store.update_board(board_id, title=title)
        if updated is None:
            raise NotFound(f"Board {board_id} not found.", code="board_not_found", entity=board_id)
        logger.info("Board %s renamed by %s", board_id, caller_id)
        return updated

    def delete_board(self, board_id: str, caller_id: str) -> None:
        self._authorize(caller_id, "board", Action.delete, board_id)
        if self.cascade_deletes:
            self._delete_board_contents(board_id)
        self.store.delete_board(board_id)
        logger.info("Board %s deleted by %s (cascade=%s)", board_id, caller_id, self.cascade_deletes)

    def _delete_board_contents(self, board_id: str) -> None:
        cards = self.store.delete_cards_for_board(board_id)
        columns = self.store.delete_columns_for_board(board_id)
        logger.info("Cascade removed %d columns and %d cards of board %s", columns, cards, board_id)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def create_column(self, board_id: str, title: str, caller_id: str, order: Optional[int] = None) -> Column:
        title = _require_text(title, "title")
        order = _check_order(order)
        self._authorize(caller_id, "column", Action.create, board_id)
        position = self.ordering.column_position(board_id, order)
        column = self.store.create_column(Column(title=title, board_id=board_id, order=position))
        logger.info("Column %s created on board %s at order %d", column.id, board_id, position)
        return column

    def list_columns(self, board_id: str, caller_id: str) -> list[Column]:
        self._authorize(caller_id, "column", Action.list, board_id)
        return self.store.list_columns(board_id)

    def update_column(
        self,
        column_id: str,
        caller_id: str,
        title: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Column:
        """Rename and/or overwrite the order of one column."""
        fields: dict[str, Any] = {}
        if title is not None:
            fields["title"] = _require_text(title, "title")
        if order is not None:
            fields["order"] = _check_order(order)
        if not fields:
            raise ValidationError("No fields to update.", code="no_changes")
        self._authorize(caller_id, "column", Action.update, column_id)
        updated = self.store.update_column(column_id, **fields)
        if updated is None:
            raise NotFound(f"Column {column_id} not found.", code="column_not_found", entity=column_id)
        logger.info("Column %s updated by %s (%s)", column_id, caller_id, ", ".join(sorted(fields)))
        return updated

    def reorder_columns(self, board_id: str, ordered_ids: Sequence[str], caller_id: str) -> list[Column]:
        self._authorize(caller_id, "column", Action.reorder, board_id)
        return self.ordering.reorder_columns(board_id, ordered_ids)

    def delete_column(self, column_id: str, caller_id: str) -> None:
        self._authorize(caller_id, "column", Action.delete, column_id)
        if self.cascade_deletes:
            removed = self.store.delete_cards_for_column(column_id)
            logger.info("Cascade removed %d cards of column %s", removed, column_id)
        self.store.delete_column(column_id)
        logger.info("Column %s deleted by %s", column_id, caller_id)

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def create_card(
        self,
        column_id: str,
        title: str,
        caller_id: str,
        description: Optional[str] = None,
        order: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
        due_date: Optional[str] = None,
        assigned_to: Optional[str] = None,
        checklist: Optional[Iterable[Any]] = None,
    ) -> Card:
        title = _require_text(title, "title")
        order = _check_order(order)
        card = Card(
            title=title,
            column_id=column_id,
            board_id="",
            description=(description or "").strip(),
            tags=_clean_tags(tags),
            due_date=_check_due_date(due_date),
            assigned_to=assigned_to or None,
            checklist=_clean_checklist(checklist),
            created_by=caller_id,
        )
        chain = self._authorize(caller_id, "card", Action.create, column_id)
        card.board_id = chain.column.board_id
        card.order = self.ordering.card_position(column_id, order)
        created = self.store.create_card(card)
        logger.info("Card %s created in column %s at order %d", created.id, column_id, created.order)
        return created

    def list_cards(self, column_id: str, caller_id: str) -> list[Card]:
        self._authorize(caller_id, "card", Action.list, column_id)
        return self.store.list_cards(column_id)

    def get_card(self, card_id: str, caller_id: str) -> Card:
        return self._authorize(caller_id, "card", Action.read, card_id).card

    def update_card(self, card_id: str, caller_id: str, **changes: Any) -> Card:
        """Apply a partial update; only the keyword arguments given are written.

        Passing column_id different from the card's current column moves the
        card: the caller must also be a member of the destination's workspace,
        board_id is re-synced, and order is the requested value or the end of
        the destination column.

        due_date=None and assigned_to=None clear those fields.
        """
        unknown = set(changes) - _CARD_UPDATABLE
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}.", field=sorted(unknown)[0])
        if not changes:
            raise ValidationError("No fields to update.", code="no_changes")

        fields: dict[str, Any] = {}
        if "title" in changes:
            fields["title"] = _require_text(changes["title"], "title")
        if "description" in changes:
            fields["description"] = (changes["description"] or "").strip()
        if "tags" in changes:
            fields["tags"] = _clean_tags(changes["tags"])
        if "due_date" in changes:
            fields["due_date"] = _check_due_date(changes["due_date"])
        if "assigned_to" in changes:
            fields["assigned_to"] = changes["assigned_to"] or None
        if "checklist" in changes:
            fields["checklist"] = _clean_checklist(changes["checklist"])
        order = _check_order(changes.get("order"))
        destination_id = changes.get("column_id")

        chain = self._authorize(caller_id, "card", Action.update, card_id)
        card = chain.card

        if destination_id and destination_id != card.column_id:
            destination = self._authorize(caller_id, "card", Action.create, destination_id).column
            moved = self.ordering.move_card(card, destination, order, **fields)
            if moved is None:
                raise NotFound(f"Card {card_id} not found.", code="card_not_found", entity=card_id)
            return moved

        if order is not None:
            fields["order"] = order
        if not fields:
            # column_id equal to the current column and nothing else to write
            return card
        updated = self.store.update_card(card_id, **fields)
        if updated is None:
            raise NotFound(f"Card {card_id} not found.", code="card_not_found", entity=card_id)
        logger.info("Card %s updated by %s (%s)", card_id, caller_id, ", ".join(sorted(fields)))
        return updated

    def reorder_cards(self, column_id: str, ordered_ids: Sequence[str], caller_id: str) -> list[Card]:
        self._authorize(caller_id, "card", Action.reorder, column_id)
        return self.ordering.reorder_cards(column_id, ordered_ids)

    def delete_card(self, card_id: str, caller_id: str) -> None:
        self._authorize(caller_id, "card", Action.delete, card_id)
        self.store.delete_card(card_id)
        logger.info("Card %s deleted by %s", card_id, caller_id)
