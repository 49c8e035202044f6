"""Unit tests for kanban/ordering.py -- position planning and the ordering engine.

Covers:
- next_order() appends at max+1, or 0 for an empty sibling set
- resolve_order() prefers an explicit request, including negative values
- plan_reorder() full, partial, no-op and invalid sequences
- OrderingEngine reorder/move against a real in-memory store
"""

from dataclasses import dataclass

import pytest

from kanban.errors import ValidationError
from kanban.models import Board, Card, Column, Workspace
from kanban.ordering import OrderingEngine, next_order, plan_reorder, resolve_order
from kanban.store import KanbanStore


@dataclass
class _Item:
    id: str
    order: int


def _items(*orders: int) -> list[_Item]:
    return [_Item(id=f"i{n}", order=o) for n, o in enumerate(orders)]


# ---------------------------------------------------------------------------
# Pure planning
# ---------------------------------------------------------------------------


class TestNextOrder:
    def test_empty_sibling_set_starts_at_zero(self) -> None:
        assert next_order([]) == 0

    def test_appends_after_max(self) -> None:
        assert next_order(_items(0, 1, 2)) == 3

    def test_gaps_and_duplicates_do_not_renumber(self) -> None:
        assert next_order(_items(5, 5, 1)) == 6

    def test_negative_orders(self) -> None:
        assert next_order(_items(-4, -2)) == -1


class TestResolveOrder:
    def test_explicit_value_wins(self) -> None:
        assert resolve_order(_items(0, 1), 7) == 7

    def test_explicit_zero_is_not_treated_as_missing(self) -> None:
        assert resolve_order(_items(0, 1, 2), 0) == 0

    def test_none_appends(self) -> None:
        assert resolve_order(_items(0, 1), None) == 2


class TestPlanReorder:
    def test_full_reversal_writes_every_changed_item(self) -> None:
        siblings = _items(0, 1, 2)
        plan = plan_reorder(siblings, ["i2", "i1", "i0"])
        assert plan == [("i2", 0), ("i0", 2)]

    def test_same_sequence_is_a_no_op(self) -> None:
        siblings = _items(0, 1, 2)
        assert plan_reorder(siblings, ["i0", "i1", "i2"]) == []

    def test_partial_list_puts_listed_first(self) -> None:
        siblings = _items(0, 1, 2, 3)
        plan = dict(plan_reorder(siblings, ["i3"]))
        assert plan == {"i3": 0, "i0": 1, "i1": 2, "i2": 3}

    def test_compacts_gaps(self) -> None:
        siblings = _items(10, 20, 30)
        assert plan_reorder(siblings, ["i0", "i1", "i2"]) == [("i0", 0), ("i1", 1), ("i2", 2)]

    def test_duplicate_id_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            plan_reorder(_items(0, 1), ["i0", "i0"])
        assert exc_info.value.code == "duplicate_id"
        assert exc_info.value.field == "ids"

    def test_unknown_id_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            plan_reorder(_items(0, 1), ["i0", "nope"])
        assert exc_info.value.code == "unknown_id"


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@pytest.fixture
def board_setup():
    """Store with one workspace, two boards, and two columns on the first board."""
    store = KanbanStore("sqlite:///:memory:")
    ws = store.create_workspace(Workspace(name="Team", owner="u1"))
    b1 = store.create_board(Board(title="Roadmap", workspace_id=ws.id, created_by="u1"))
    b2 = store.create_board(Board(title="Ops", workspace_id=ws.id, created_by="u1"))
    todo = store.create_column(Column(title="Todo", board_id=b1.id, order=0))
    done = store.create_column(Column(title="Done", board_id=b1.id, order=1))
    yield store, b1, b2, todo, done
    store.close()


class TestOrderingEngine:
    def test_column_position_appends(self, board_setup) -> None:
        store, b1, b2, _todo, _done = board_setup
        engine = OrderingEngine(store)
        assert engine.column_position(b1.id) == 2
        assert engine.column_position(b2.id) == 0

    def test_reorder_columns_returns_new_listing(self, board_setup) -> None:
        store, b1, _b2, todo, done = board_setup
        engine = OrderingEngine(store)
        listing = engine.reorder_columns(b1.id, [done.id, todo.id])
        assert [c.title for c in listing] == ["Done", "Todo"]
        assert [c.order for c in listing] == [0, 1]

    def test_reorder_cards_idempotent(self, board_setup) -> None:
        store, b1, _b2, todo, _done = board_setup
        engine = OrderingEngine(store)
        ids = [
            store.create_card(Card(title=t, column_id=todo.id, board_id=b1.id, order=i)).id
            for i, t in enumerate(["a", "b", "c"])
        ]
        first = engine.reorder_cards(todo.id, [ids[2], ids[0], ids[1]])
        second = engine.reorder_cards(todo.id, [ids[2], ids[0], ids[1]])
        assert [c.title for c in first] == ["c", "a", "b"]
        assert [(c.id, c.order) for c in second] == [(c.id, c.order) for c in first]

    def test_move_card_across_boards_resyncs_board_id(self, board_setup) -> None:
        store, b1, b2, todo, _done = board_setup
        engine = OrderingEngine(store)
        target = store.create_column(Column(title="Inbox", board_id=b2.id, order=0))
        store.create_card(Card(title="existing", column_id=target.id, board_id=b2.id, order=0))
        card = store.create_card(Card(title="mover", column_id=todo.id, board_id=b1.id, order=0))

        moved = engine.move_card(card, target)

        assert moved.column_id == target.id
        assert moved.board_id == b2.id
        assert moved.order == 1
        assert store.list_cards(todo.id) == []

    def test_move_card_with_requested_order_and_extra_fields(self, board_setup) -> None:
        store, b1, _b2, todo, done = board_setup
        engine = OrderingEngine(store)
        card = store.create_card(Card(title="mover", column_id=todo.id, board_id=b1.id, order=4))
        moved = engine.move_card(card, done, 0, title="renamed")
        assert (moved.column_id, moved.order, moved.title, moved.board_id) == (done.id, 0, "renamed", b1.id)
