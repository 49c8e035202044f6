"""
api/routes/v1/cards.py -- Card routes.

Routes:
  POST   /columns/{column_id}/cards        -- create; appended unless order is given
  GET    /columns/{column_id}/cards        -- list by order
  PUT    /columns/{column_id}/cards/order  -- batch reorder by id sequence
  GET    /cards/{card_id}                  -- detail
  PUT    /cards/{card_id}                  -- partial update; column_id moves the card
  DELETE /cards/{card_id}                  -- delete

A move (PUT with a different column_id) needs membership in both the
source and the destination workspace.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import READ_LIMIT, WRITE_LIMIT, limiter
from api.models import CardCreate, CardResponse, CardUpdate, ReorderRequest
from auth.dependencies import get_current_user
from auth.models import User
from kanban.service import KanbanService

router = APIRouter(dependencies=[Depends(get_current_user)])


@limiter.limit(WRITE_LIMIT)
@router.post("/columns/{column_id}/cards", response_model=CardResponse, status_code=201)
def create_card(
    request: Request,
    column_id: str,
    body: CardCreate,
    current_user: User = Depends(get_current_user),
) -> CardResponse:
    service: KanbanService = request.app.state.service
    card = service.create_card(
        column_id,
        body.title,
        current_user.id,
        description=body.description,
        order=body.order,
        tags=body.tags,
        due_date=body.due_date,
        assigned_to=body.assigned_to,
        checklist=[item.model_dump() for item in body.checklist],
    )
    return CardResponse.from_domain(card)


@limiter.limit(READ_LIMIT)
@router.get("/columns/{column_id}/cards", response_model=list[CardResponse])
def list_cards(
    request: Request,
    column_id: str,
    current_user: User = Depends(get_current_user),
) -> list[CardResponse]:
    service: KanbanService = request.app.state.service
    return [CardResponse.from_domain(c) for c in service.list_cards(column_id, current_user.id)]


@limiter.limit(WRITE_LIMIT)
@router.put("/columns/{column_id}/cards/order", response_model=list[CardResponse])
def reorder_cards(
    request: Request,
    column_id: str,
    body: ReorderRequest,
    current_user: User = Depends(get_current_user),
) -> list[CardResponse]:
    service: KanbanService = request.app.state.service
    return [CardResponse.from_domain(c) for c in service.reorder_cards(column_id, body.ids, current_user.id)]


@limiter.limit(READ_LIMIT)
@router.get("/cards/{card_id}", response_model=CardResponse)
def get_card(request: Request, card_id: str, current_user: User = Depends(get_current_user)) -> CardResponse:
    service: KanbanService = request.app.state.service
    return CardResponse.from_domain(service.get_card(card_id, current_user.id))


@limiter.limit(WRITE_LIMIT)
@router.put("/cards/{card_id}", response_model=CardResponse)
def update_card(
    request: Request,
    card_id: str,
    body: CardUpdate,
    current_user: User = Depends(get_current_user),
) -> CardResponse:
    """Apply the fields present in the body. Omitted fields are left unchanged."""
    service: KanbanService = request.app.state.service
    return CardResponse.from_domain(service.update_card(card_id, current_user.id, **body.changes()))


@limiter.limit(WRITE_LIMIT)
@router.delete("/cards/{card_id}", status_code=204)
def delete_card(request: Request, card_id: str, current_user: User = Depends(get_current_user)) -> Response:
    service: KanbanService = request.app.state.service
    service.delete_card(card_id, current_user.id)
    return Response(status_code=204)
