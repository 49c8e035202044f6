"""
kanban/ordering.py -- Position maintenance for columns and cards.

Siblings (columns of a board, cards of a column) are totally ordered by an
integer `order`. Listings sort by (order asc, touched desc): when two
siblings share a value, the one written most recently comes first.

Policies:
  Append       -- no explicit order: max(sibling orders) + 1, or 0 when the
                  sibling set is empty. Existing siblings are not renumbered.
  Overwrite    -- an explicit order on create/update is written as-is. A batch
                  of such writes (one per sibling, in the desired sequence)
                  leaves the listing in that sequence.
  Reorder      -- plan_reorder() derives the full renumbering from a list of
                  ids. Only siblings whose value changes are written, so
                  replaying the same batch is a no-op.
  Move         -- a card changing column takes the requested order, or is
                  appended to the destination. The source column keeps its
                  gaps; only relative order matters.

Consistency: every write is an independent per-item update. Concurrent
batches on the same sibling set are last-writer-wins per item and may leave
duplicate or inverted values until the next reorder.

The pure plan_* / next_order functions know nothing about storage.
OrderingEngine applies them through the EntityStore contract.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional, Protocol

from kanban.errors import ValidationError
from kanban.models import Card, Column
from kanban.store import EntityStore

logger = logging.getLogger("deltask.kanban.ordering")


class _Ordered(Protocol):
    id: str
    order: int


# ---------------------------------------------------------------------------
# Pure planning
# ---------------------------------------------------------------------------


def next_order(siblings: Sequence[_Ordered]) -> int:
    """Return the append position for a new sibling."""
    if not siblings:
        return 0
    return max(s.order for s in siblings) + 1


def resolve_order(siblings: Sequence[_Ordered], requested: Optional[int]) -> int:
    """Return requested when given, otherwise the append position."""
    if requested is not None:
        return requested
    return next_order(siblings)


def plan_reorder(siblings: Sequence[_Ordered], ordered_ids: Sequence[str]) -> list[tuple[str, int]]:
    """Compute the writes that put siblings into the requested sequence.

    ordered_ids may be partial: the listed ids take positions 0..k-1 in the
    given order, and unlisted siblings follow in their current relative order.

    siblings must already be in listing order (as returned by the store).

    Returns (id, new_order) pairs for the siblings whose order changes.
    Raises ValidationError for repeated ids or ids that are not siblings.
    """
    known = {s.id for s in siblings}
    seen: set[str] = set()
    for sid in ordered_ids:
        if sid in seen:
            raise ValidationError(f"Id {sid} appears more than once.", code="duplicate_id", field="ids")
        if sid not in known:
            raise ValidationError(f"Id {sid} is not part of this sibling set.", code="unknown_id", field="ids")
        seen.add(sid)

    sequence = list(ordered_ids) + [s.id for s in siblings if s.id not in seen]
    current = {s.id: s.order for s in siblings}
    return [(sid, index) for index, sid in enumerate(sequence) if current[sid] != index]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class OrderingEngine:
    """Applies ordering plans through an EntityStore."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def column_position(self, board_id: str, requested: Optional[int] = None) -> int:
        return resolve_order(self.store.list_columns(board_id), requested)

    def card_position(self, column_id: str, requested: Optional[int] = None) -> int:
        return resolve_order(self.store.list_cards(column_id), requested)

    def reorder_columns(self, board_id: str, ordered_ids: Sequence[str]) -> list[Column]:
        """Renumber a board's columns to match ordered_ids. Returns the new listing."""
        writes = plan_reorder(self.store.list_columns(board_id), ordered_ids)
        for column_id, order in writes:
            self.store.update_column(column_id, order=order)
        logger.info("Reordered board %s columns (%d writes)", board_id, len(writes))
        return self.store.list_columns(board_id)

    def reorder_cards(self, column_id: str, ordered_ids: Sequence[str]) -> list[Card]:
        """Renumber a column's cards to match ordered_ids. Returns the new listing."""
        writes = plan_reorder(self.store.list_cards(column_id), ordered_ids)
        for card_id, order in writes:
            self.store.update_card(card_id, order=order)
        logger.info("Reordered column %s cards (%d writes)", column_id, len(writes))
        return self.store.list_cards(column_id)

    def move_card(self, card: Card, destination: Column, requested: Optional[int] = None, **fields) -> Card:
        """Relocate a card into destination as one logical update.

        Sets column_id, re-syncs board_id when the destination column lives on
        another board, and assigns the requested order or appends at the end.
        Extra fields (title, tags, ...) are written in the same update.
        """
        order = self.card_position(destination.id, requested)
        fields.update(column_id=destination.id, order=order)
        if destination.board_id != card.board_id:
            fields["board_id"] = destination.board_id
        moved = self.store.update_card(card.id, **fields)
        logger.info(
            "Moved card %s from column %s to column %s at order %d",
            card.id,
            card.column_id,
            destination.id,
            order,
        )
        return moved
