"""
api/routes/v1/columns.py -- Column routes.

Routes (order endpoint registered before /columns/{column_id}):
  POST   /boards/{board_id}/columns        -- create; appended unless order is given
  GET    /boards/{board_id}/columns        -- list by order
  PUT    /boards/{board_id}/columns/order  -- batch reorder by id sequence
  PUT    /columns/{column_id}              -- rename and/or overwrite order
  DELETE /columns/{column_id}              -- delete

All column operations require workspace membership.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import READ_LIMIT, WRITE_LIMIT, limiter
from api.models import ColumnCreate, ColumnResponse, ColumnUpdate, ReorderRequest
from auth.dependencies import get_current_user
from auth.models import User
from kanban.service import KanbanService

router = APIRouter(dependencies=[Depends(get_current_user)])


@limiter.limit(WRITE_LIMIT)
@router.post("/boards/{board_id}/columns", response_model=ColumnResponse, status_code=201)
def create_column(
    request: Request,
    board_id: str,
    body: ColumnCreate,
    current_user: User = Depends(get_current_user),
) -> ColumnResponse:
    service: KanbanService = request.app.state.service
    column = service.create_column(board_id, body.title, current_user.id, order=body.order)
    return ColumnResponse.from_domain(column)


@limiter.limit(READ_LIMIT)
@router.get("/boards/{board_id}/columns", response_model=list[ColumnResponse])
def list_columns(
    request: Request,
    board_id: str,
    current_user: User = Depends(get_current_user),
) -> list[ColumnResponse]:
    service: KanbanService = request.app.state.service
    return [ColumnResponse.from_domain(c) for c in service.list_columns(board_id, current_user.id)]


@limiter.limit(WRITE_LIMIT)
@router.put("/boards/{board_id}/columns/order", response_model=list[ColumnResponse])
def reorder_columns(
    request: Request,
    board_id: str,
    body: ReorderRequest,
    current_user: User = Depends(get_current_user),
) -> list[ColumnResponse]:
    """Renumber the board's columns to follow body.ids; returns the new listing."""
    service: KanbanService = request.app.state.service
    return [ColumnResponse.from_domain(c) for c in service.reorder_columns(board_id, body.ids, current_user.id)]


@limiter.limit(WRITE_LIMIT)
@router.put("/columns/{column_id}", response_model=ColumnResponse)
def update_column(
    request: Request,
    column_id: str,
    body: ColumnUpdate,
    current_user: User = Depends(get_current_user),
) -> ColumnResponse:
    service: KanbanService = request.app.state.service
    column = service.update_column(column_id, current_user.id, title=body.title, order=body.order)
    return ColumnResponse.from_domain(column)


@limiter.limit(WRITE_LIMIT)
@router.delete("/columns/{column_id}", status_code=204)
def delete_column(request: Request, column_id: str, current_user: User = Depends(get_current_user)) -> Response:
    service: KanbanService = request.app.state.service
    service.delete_column(column_id, current_user.id)
    return Response(status_code=204)
