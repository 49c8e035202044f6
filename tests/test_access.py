"""Unit tests for kanban/access.py -- chain resolution and the rule table.

Covers:
- roles: owner, member, none
- NotFound names the missing level of the chain (including orphans)
- Forbidden for non-members at every level below the workspace
- board update is creator-only; board delete is creator or owner
- reorder actions resolve the parent, like create and list
"""

import pytest

from kanban.access import AccessEvaluator, Action, Role
from kanban.errors import Forbidden, NotFound
from kanban.models import Board, Card, Column, Workspace
from kanban.store import KanbanStore

OWNER, MEMBER, OUTSIDER = "u-owner", "u-member", "u-outsider"


def _allowed(evaluator: AccessEvaluator, user_id: str, kind: str, action: Action, entity_id: str) -> bool:
    try:
        evaluator.authorize(user_id, kind, action, entity_id)
    except Forbidden:
        return False
    return True


@pytest.fixture
def tree():
    """Workspace (owner + member) -> board created by MEMBER -> column -> card."""
    store = KanbanStore("sqlite:///:memory:")
    ws = store.create_workspace(Workspace(name="Team", owner=OWNER))
    store.add_member(ws.id, MEMBER)
    board = store.create_board(Board(title="Roadmap", workspace_id=ws.id, created_by=MEMBER))
    column = store.create_column(Column(title="Todo", board_id=board.id))
    card = store.create_card(Card(title="Ship", column_id=column.id, board_id=board.id))
    yield store, ws, board, column, card
    store.close()


class TestRoles:
    def test_roles(self, tree) -> None:
        store, ws, *_ = tree
        evaluator = AccessEvaluator(store)
        assert evaluator.role(OWNER, ws.id) is Role.owner
        assert evaluator.role(MEMBER, ws.id) is Role.member
        assert evaluator.role(OUTSIDER, ws.id) is Role.none

    def test_role_of_missing_workspace(self, tree) -> None:
        store, *_ = tree
        with pytest.raises(NotFound):
            AccessEvaluator(store).role(OWNER, "missing")


class TestResolution:
    def test_card_chain_carries_every_level(self, tree) -> None:
        store, ws, board, column, card = tree
        chain = AccessEvaluator(store).authorize(MEMBER, "card", Action.read, card.id)
        assert (chain.workspace.id, chain.board.id, chain.column.id, chain.card.id) == (
            ws.id,
            board.id,
            column.id,
            card.id,
        )

    @pytest.mark.parametrize(
        "kind,code",
        [
            ("workspace", "workspace_not_found"),
            ("board", "board_not_found"),
            ("column", "column_not_found"),
            ("card", "card_not_found"),
        ],
    )
    def test_missing_target(self, tree, kind: str, code: str) -> None:
        store, *_ = tree
        with pytest.raises(NotFound) as exc_info:
            AccessEvaluator(store).authorize(OWNER, kind, Action.read, "missing")
        assert exc_info.value.code == code
        assert exc_info.value.entity == "missing"

    def test_orphaned_card_reports_missing_column(self, tree) -> None:
        store, _ws, _board, column, card = tree
        store.delete_column(column.id)
        with pytest.raises(NotFound) as exc_info:
            AccessEvaluator(store).authorize(OWNER, "card", Action.read, card.id)
        assert exc_info.value.code == "column_not_found"
        assert exc_info.value.entity == column.id

    def test_orphaned_board_reports_missing_workspace(self, tree) -> None:
        store, ws, board, *_ = tree
        store.delete_workspace(ws.id)
        with pytest.raises(NotFound) as exc_info:
            AccessEvaluator(store).authorize(OWNER, "board", Action.read, board.id)
        assert exc_info.value.code == "workspace_not_found"


class TestRules:
    @pytest.mark.parametrize(
        "kind,action,target",
        [
            ("board", Action.read, "board"),
            ("board", Action.list, "workspace"),
            ("column", Action.create, "board"),
            ("column", Action.update, "column"),
            ("card", Action.create, "column"),
            ("card", Action.read, "card"),
            ("card", Action.delete, "card"),
        ],
    )
    def test_outsider_forbidden_below_workspace(self, tree, kind: str, action: Action, target: str) -> None:
        store, ws, board, column, card = tree
        ids = {"workspace": ws.id, "board": board.id, "column": column.id, "card": card.id}
        with pytest.raises(Forbidden):
            AccessEvaluator(store).authorize(OUTSIDER, kind, action, ids[target])

    def test_member_cannot_manage_workspace(self, tree) -> None:
        store, ws, *_ = tree
        evaluator = AccessEvaluator(store)
        assert _allowed(evaluator, MEMBER, "workspace", Action.read, ws.id)
        assert not _allowed(evaluator, MEMBER, "workspace", Action.update, ws.id)
        assert not _allowed(evaluator, MEMBER, "workspace", Action.manage_members, ws.id)
        assert _allowed(evaluator, OWNER, "workspace", Action.delete, ws.id)

    def test_board_update_is_creator_only(self, tree) -> None:
        store, _ws, board, *_ = tree
        evaluator = AccessEvaluator(store)
        assert _allowed(evaluator, MEMBER, "board", Action.update, board.id)
        # The workspace owner is not the creator.
        assert not _allowed(evaluator, OWNER, "board", Action.update, board.id)

    def test_board_delete_creator_or_owner(self, tree) -> None:
        store, ws, board, *_ = tree
        store.add_member(ws.id, "u-third")
        evaluator = AccessEvaluator(store)
        assert _allowed(evaluator, MEMBER, "board", Action.delete, board.id)
        assert _allowed(evaluator, OWNER, "board", Action.delete, board.id)
        assert not _allowed(evaluator, "u-third", "board", Action.delete, board.id)

    def test_column_and_card_need_only_membership(self, tree) -> None:
        store, ws, _board, column, card = tree
        store.add_member(ws.id, "u-third")
        evaluator = AccessEvaluator(store)
        assert _allowed(evaluator, "u-third", "column", Action.delete, column.id)
        assert _allowed(evaluator, "u-third", "card", Action.update, card.id)

    def test_reorder_is_authorized_on_the_parent(self, tree) -> None:
        store, _ws, board, column, _card = tree
        evaluator = AccessEvaluator(store)
        assert evaluator.authorize(MEMBER, "column", Action.reorder, board.id).board.id == board.id
        assert evaluator.authorize(MEMBER, "card", Action.reorder, column.id).column.id == column.id
        assert not _allowed(evaluator, OUTSIDER, "column", Action.reorder, board.id)
        assert not _allowed(evaluator, OUTSIDER, "card", Action.reorder, column.id)

    def test_reorder_on_missing_parent(self, tree) -> None:
        store, *_ = tree
        with pytest.raises(NotFound) as exc_info:
            AccessEvaluator(store).authorize(OWNER, "card", Action.reorder, "missing")
        assert exc_info.value.code == "column_not_found"

    def test_forbidden_names_entity(self, tree) -> None:
        store, _ws, board, *_ = tree
        with pytest.raises(Forbidden) as exc_info:
            AccessEvaluator(store).authorize(OUTSIDER, "board", Action.read, board.id)
        assert exc_info.value.entity == board.id
        assert exc_info.value.code == "forbidden"
