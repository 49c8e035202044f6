"""
kanban/errors.py -- Error kinds raised by the Deltask core.

Every error carries a machine-readable code, a human message, and the
offending field or entity so callers can decide whether to retry, prompt the
user, or abort. The API layer maps each kind to an HTTP status through
status_code; nothing here knows about HTTP otherwise.

Propagation policy:
  KanbanStore         -- never raises these; reports missing ids as None/False.
  AccessEvaluator     -- raises NotFound (broken chain) and Forbidden.
  KanbanService       -- raises ValidationError.
  POST /auth/register -- raises Conflict for an email that is already taken.
"""

from __future__ import annotations

from typing import Optional


class KanbanError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    default_code = "kanban_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        field: Optional[str] = None,
        entity: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.field = field
        self.entity = entity

    @property
    def detail(self) -> Optional[str]:
        if self.field:
            return f"field={self.field}"
        if self.entity:
            return f"entity={self.entity}"
        return None


class ValidationError(KanbanError):
    """Missing or malformed input, e.g. an empty title."""

    status_code = 400
    default_code = "validation_error"


class NotFound(KanbanError):
    """An id does not resolve, at any level of the containment chain."""

    status_code = 404
    default_code = "not_found"


class Forbidden(KanbanError):
    """The entity resolves but the caller fails the access predicate."""

    status_code = 403
    default_code = "forbidden"


class Conflict(KanbanError):
    """A uniqueness constraint would be violated (e.g. duplicate email)."""

    status_code = 409
    default_code = "conflict"
