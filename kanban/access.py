"""
kanban/access.py -- Authorization by climbing the containment chain.

Every operation names an entity kind, an action, and an id. The evaluator
resolves that id up to its governing workspace (card -> column -> board ->
workspace), then applies the rule for (kind, action) to the caller.

For CREATE, LIST and REORDER the id is the parent's: creating a card is
authorized against its column, listing boards against their workspace,
reordering columns against their board.

Two failure modes are kept distinct:
  NotFound   -- some link of the chain does not resolve (entity names the
                missing level). The caller should stop or refresh.
  Forbidden  -- the chain resolves but the caller fails the rule.
                The caller may ask an owner for access.

A card is resolved through its column, not its cached board_id, so a card
whose column was deleted (orphaned) reports column_not_found.

Rules (reference behaviour, board-level creator rules are intentionally not
mirrored on columns and cards):

  workspace  read                   member
  workspace  update/delete/members  owner
  board      list/create/read       member
  board      update                 board creator
  board      delete                 board creator or workspace owner
  column     any                    member
  card       any                    member

No state is held between calls; the evaluator reads through the store.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kanban.errors import Forbidden, NotFound
from kanban.models import Board, Card, Column, Workspace
from kanban.store import EntityStore


class Role(str, Enum):
    owner = "owner"
    member = "member"
    none = "none"


class Action(str, Enum):
    read = "read"
    list = "list"
    create = "create"
    update = "update"
    delete = "delete"
    reorder = "reorder"
    manage_members = "manage_members"


@dataclass
class Chain:
    """The resolved path from a target entity up to its workspace."""

    workspace: Workspace
    board: Optional[Board] = None
    column: Optional[Column] = None
    card: Optional[Card] = None


def role_of(workspace: Workspace, user_id: str) -> Role:
    if user_id == workspace.owner:
        return Role.owner
    if user_id in workspace.members:
        return Role.member
    return Role.none


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

_Predicate = Callable[[Chain, str], bool]


def _is_member(chain: Chain, user_id: str) -> bool:
    return role_of(chain.workspace, user_id) is not Role.none


def _is_owner(chain: Chain, user_id: str) -> bool:
    return role_of(chain.workspace, user_id) is Role.owner


def _is_board_creator(chain: Chain, user_id: str) -> bool:
    return chain.board is not None and chain.board.created_by == user_id


def _is_board_creator_or_owner(chain: Chain, user_id: str) -> bool:
    return _is_board_creator(chain, user_id) or _is_owner(chain, user_id)


_MEMBER_MSG = "Workspace membership required."

# (kind, action) -> (kind the id refers to, predicate, message on failure)
_RULES: dict[tuple[str, Action], tuple[str, _Predicate, str]] = {
    ("workspace", Action.read): ("workspace", _is_member, _MEMBER_MSG),
    ("workspace", Action.update): ("workspace", _is_owner, "Only the workspace owner can rename it."),
    ("workspace", Action.delete): ("workspace", _is_owner, "Only the workspace owner can delete it."),
    ("workspace", Action.manage_members): ("workspace", _is_owner, "Only the workspace owner can manage members."),
    ("board", Action.list): ("workspace", _is_member, _MEMBER_MSG),
    ("board", Action.create): ("workspace", _is_member, _MEMBER_MSG),
    ("board", Action.read): ("board", _is_member, _MEMBER_MSG),
    ("board", Action.update): ("board", _is_board_creator, "Only the board creator can modify it."),
    (
        "board",
        Action.delete,
    ): ("board", _is_board_creator_or_owner, "Only the board creator or the workspace owner can delete it."),
    ("column", Action.list): ("board", _is_member, _MEMBER_MSG),
    ("column", Action.create): ("board", _is_member, _MEMBER_MSG),
    ("column", Action.reorder): ("board", _is_member, _MEMBER_MSG),
    ("column", Action.read): ("column", _is_member, _MEMBER_MSG),
    ("column", Action.update): ("column", _is_member, _MEMBER_MSG),
    ("column", Action.delete): ("column", _is_member, _MEMBER_MSG),
    ("card", Action.list): ("column", _is_member, _MEMBER_MSG),
    ("card", Action.create): ("column", _is_member, _MEMBER_MSG),
    ("card", Action.reorder): ("column", _is_member, _MEMBER_MSG),
    ("card", Action.read): ("card", _is_member, _MEMBER_MSG),
    ("card", Action.update): ("card", _is_member, _MEMBER_MSG),
    ("card", Action.delete): ("card", _is_member, _MEMBER_MSG),
}


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class AccessEvaluator:
    """Resolves containment chains and enforces the rule table above."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Chain resolution
    # ------------------------------------------------------------------

    def resolve_workspace(self, workspace_id: str) -> Chain:
        workspace = self.store.get_workspace(workspace_id)
        if workspace is None:
            raise NotFound(f"Workspace {workspace_id} not found.", code="workspace_not_found", entity=workspace_id)
        return Chain(workspace=workspace)

    def resolve_board(self, board_id: str) -> Chain:
        board = self.store.get_board(board_id)
        if board is None:
            raise NotFound(f"Board {board_id} not found.", code="board_not_found", entity=board_id)
        chain = self.resolve_workspace(board.workspace_id)
        chain.board = board
        return chain

    def resolve_column(self, column_id: str) -> Chain:
        column = self.store.get_column(column_id)
        if column is None:
            raise NotFound(f"Column {column_id} not found.", code="column_not_found", entity=column_id)
        chain = self.resolve_board(column.board_id)
        chain.column = column
        return chain

    def resolve_card(self, card_id: str) -> Chain:
        card = self.store.get_card(card_id)
        if card is None:
            raise NotFound(f"Card {card_id} not found.", code="card_not_found", entity=card_id)
        chain = self.resolve_column(card.column_id)
        chain.card = card
        return chain

    def resolve(self, kind: str, entity_id: str) -> Chain:
        resolvers = {
            "workspace": self.resolve_workspace,
            "board": self.resolve_board,
            "column": self.resolve_column,
            "card": self.resolve_card,
        }
        return resolvers[kind](entity_id)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def role(self, user_id: str, workspace_id: str) -> Role:
        """Return the caller's role in a workspace. Raises NotFound if it is missing."""
        return role_of(self.resolve_workspace(workspace_id).workspace, user_id)

    def authorize(self, user_id: str, kind: str, action: Action, entity_id: str) -> Chain:
        """Resolve entity_id and check the (kind, action) rule for user_id.

        Returns the resolved Chain so callers can use the fetched entities
        without a second lookup. Raises NotFound or Forbidden.
        """
        try:
            target_kind, allowed, message = _RULES[(kind, Action(action))]
        except KeyError:
            raise ValueError(f"No access rule for {kind}/{action}") from None
        chain = self.resolve(target_kind, entity_id)
        if not allowed(chain, user_id):
            raise Forbidden(message, entity=entity_id)
        return chain
